"""
Orders API Endpoints.

Read, update, soft-delete and attach documents to orders. Order ids are the
boundary form: "<clientEmail>_<orderToken>" or a bare order token.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException

from api.dependencies import get_coordinator, get_document_service, get_lifecycle
from api.errors import to_http_exception
from api.models import OrderResponse, SoftDeleteRequest, SoftDeleteResponse, UpdateResponse
from domain.errors import OrderSyncError
from services.document_service import DocumentService
from services.dual_write_service import DualWriteCoordinator
from services.lifecycle_service import LifecycleManager

router = APIRouter()


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Get Order",
    description="Resolve an order id and return the order, canonical copy first."
)
def get_order(order_id: str, coordinator: DualWriteCoordinator = Depends(get_coordinator)):
    try:
        return OrderResponse.from_record(coordinator.resolve(order_id))
    except OrderSyncError as e:
        raise to_http_exception(e) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.patch(
    "/orders/{order_id}",
    response_model=UpdateResponse,
    summary="Update Order",
    description="Apply a partial update to every stored copy of an order."
)
def update_order(
    order_id: str,
    patch: Dict[str, Any] = Body(...),
    coordinator: DualWriteCoordinator = Depends(get_coordinator),
):
    """
    Update an order in the canonical store and in the client's legacy
    profile, where a legacy copy exists.

    **Patch fields:** `status`, `paymentStatus`, `paymentMethod`,
    `trackingNumber`, `courier`, `comment`, `documentUrl`, `adminMessage`
    (string or `{"message", "attachments"}`). Unknown fields are stored as-is.

    **Example request:**
    ```json
    {"status": "shipped", "trackingNumber": "TRK-9", "courier": "DHL"}
    ```

    **Outcome:**
    - `ok`: every copy written
    - `degraded`: some copies written, some failed (see `store_results`)
    - `failed`: no copy written

    An unreachable status returns 409 and nothing is written.
    """
    try:
        result = coordinator.apply_update(order_id, patch)
        return UpdateResponse.from_result(result)
    except OrderSyncError as e:
        raise to_http_exception(e) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.post(
    "/orders/{order_id}/messages/read",
    response_model=UpdateResponse,
    summary="Mark Admin Messages Read",
)
def mark_messages_read(order_id: str, coordinator: DualWriteCoordinator = Depends(get_coordinator)):
    try:
        return UpdateResponse.from_result(coordinator.mark_messages_read(order_id))
    except OrderSyncError as e:
        raise to_http_exception(e) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete(
    "/orders/{order_id}",
    response_model=SoftDeleteResponse,
    summary="Soft Delete Order",
    description="Archive an order for the retention window, then remove its live copies."
)
def soft_delete_order(
    order_id: str,
    request: Optional[SoftDeleteRequest] = Body(None),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    try:
        deleted_by = request.deleted_by if request else ""
        return SoftDeleteResponse.from_result(lifecycle.soft_delete(order_id, deleted_by=deleted_by))
    except OrderSyncError as e:
        raise to_http_exception(e) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post(
    "/orders/{order_id}/document",
    response_model=UpdateResponse,
    summary="Generate Order Document",
)
def generate_document(order_id: str, documents: DocumentService = Depends(get_document_service)):
    try:
        return UpdateResponse.from_result(documents.attach_document(order_id))
    except OrderSyncError as e:
        raise to_http_exception(e) from e
    except ValueError as e:
        raise HTTPException(status_code=502, detail=str(e))
