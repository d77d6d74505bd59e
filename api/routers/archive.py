"""
Archive API Endpoints.

Soft-deleted orders stay here for the retention window before the purge
removes them.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Response

from api.dependencies import get_lifecycle
from api.errors import to_http_exception
from api.models import ArchivedOrderResponse, ArchiveListResponse, PurgeRequest, PurgeResponse
from domain.errors import OrderSyncError
from services.lifecycle_service import LifecycleManager

router = APIRouter()


@router.get(
    "/archive",
    response_model=ArchiveListResponse,
    summary="List Archived Orders",
    description="Archived orders with the whole days left before purge, soonest first."
)
def list_archived(lifecycle: LifecycleManager = Depends(get_lifecycle)):
    try:
        listings = lifecycle.list_archived()
    except OrderSyncError as e:
        raise to_http_exception(e) from e
    items = [ArchivedOrderResponse.from_listing(listing) for listing in listings]
    return ArchiveListResponse(items=items, total_count=len(items))


@router.delete(
    "/archive/{original_order_id}",
    status_code=204,
    response_class=Response,
    summary="Permanently Delete Archived Order",
)
def permanently_delete(original_order_id: str, lifecycle: LifecycleManager = Depends(get_lifecycle)):
    try:
        lifecycle.permanently_delete(original_order_id)
    except OrderSyncError as e:
        raise to_http_exception(e) from e
    return Response(status_code=204)


@router.post(
    "/archive/purge",
    response_model=PurgeResponse,
    summary="Purge Expired Archived Orders",
)
def purge_expired(
    request: Optional[PurgeRequest] = Body(None),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    """
    Delete every archived order whose retention deadline has passed.

    Safe to call repeatedly; a second call with the same `now` purges nothing.
    Entries with an unreadable deadline are kept and listed in `unreadable`.
    """
    try:
        now = request.now if request else None
        return PurgeResponse.from_result(lifecycle.purge_expired(now))
    except OrderSyncError as e:
        raise to_http_exception(e) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
