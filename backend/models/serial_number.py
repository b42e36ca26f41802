from pydantic import BaseModel, Field, ConfigDict
from typing import Any, Dict, Optional
from datetime import datetime, timezone
from enum import Enum


class SerialNumberRecord(BaseModel):
    """Frozen identity of one physical instrument. Written once, never changed."""
    model_config = ConfigDict(extra="ignore")
    serial_number: str  # normalized, without order prefix
    type: str
    tuning: str  # stored without the minor suffix: Dm4 -> D4
    minor: bool = False
    frequency: Optional[str] = None
    color: Optional[str] = None
    notes: Optional[str] = None
    frozen_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def display_tuning(self) -> str:
        """Tuning with the minor suffix restored, e.g. D4 + minor -> Dm4"""
        if not self.minor or len(self.tuning) < 2:
            return self.tuning
        return f"{self.tuning[:-1]}m{self.tuning[-1]}"


class LineItemBinding(BaseModel):
    model_config = ConfigDict(extra="ignore")
    line_item_id: str
    serial_number: str
    bound_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class FreezeStatus(str, Enum):
    FROZEN = "frozen"
    ALREADY_FROZEN = "alreadyFrozen"


class BindStatus(str, Enum):
    BOUND = "bound"
    ALREADY_BOUND = "alreadyBound"
    CONFLICT = "conflict"


class FreezeRequest(BaseModel):
    serial_number: str
    specifications: Dict[str, Any]
    line_item_id: Optional[str] = None


class FreezeResult(BaseModel):
    status: FreezeStatus
    serial_number: str
    record: SerialNumberRecord
    binding: Optional[BindStatus] = None
