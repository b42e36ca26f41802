"""
Error taxonomy for the workshop sync services.
Nothing here is fatal to the process: callers get a structured result or one of
these exceptions, and re-invoking the operation is always the recovery path.
"""
from typing import Optional


class WorkshopError(Exception):
    """Base class for all workshop service errors"""


class UpstreamUnavailable(WorkshopError):
    """Upstream commerce feed unreachable or misconfigured"""


class Unauthenticated(UpstreamUnavailable):
    """Upstream credentials missing or rejected"""


class StorageError(WorkshopError):
    """Persistence layer failure"""


class NotFound(StorageError):
    """Requested record does not exist"""


class ValidationError(WorkshopError):
    """Malformed input, rejected before any write"""


class IdentityConflict(WorkshopError):
    """A line item is already bound to a different serial number"""

    def __init__(self, line_item_id: str, existing_serial: str, attempted_serial: str, message: Optional[str] = None):
        self.line_item_id = line_item_id
        self.existing_serial = existing_serial
        self.attempted_serial = attempted_serial
        super().__init__(
            message
            or f"Line item {line_item_id} is bound to {existing_serial}, refusing {attempted_serial}"
        )
