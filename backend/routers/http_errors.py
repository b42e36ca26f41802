from fastapi import HTTPException

from services.errors import (
    WorkshopError, NotFound, StorageError, Unauthenticated, UpstreamUnavailable, ValidationError
)


def to_http_exception(error: WorkshopError) -> HTTPException:
    """Map a service error onto the status code the API reports"""
    if isinstance(error, NotFound):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, ValidationError):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, Unauthenticated):
        return HTTPException(status_code=401, detail=str(error))
    if isinstance(error, UpstreamUnavailable):
        return HTTPException(status_code=502, detail=str(error))
    if isinstance(error, StorageError):
        return HTTPException(status_code=500, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
