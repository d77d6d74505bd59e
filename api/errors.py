"""
Mapping from the domain error taxonomy to HTTP errors.
"""

from fastapi import HTTPException

from domain.errors import (
    AmbiguousOrderError,
    OrderNotFoundError,
    OrderSyncError,
    StatusConflictError,
    StoreUnavailableError,
)


def to_http_exception(error: OrderSyncError) -> HTTPException:
    if isinstance(error, OrderNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, AmbiguousOrderError):
        return HTTPException(
            status_code=409,
            detail={"message": str(error), "candidates": error.candidates},
        )
    if isinstance(error, StatusConflictError):
        return HTTPException(
            status_code=409,
            detail={"message": str(error), "current": error.current, "requested": error.requested},
        )
    if isinstance(error, StoreUnavailableError):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=500, detail=str(error))
