"""
Accounts API Endpoints.

Account deletion removes every record stored for an identity, in every
configured environment.
"""

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import get_batch_deleter
from api.errors import to_http_exception
from api.models import AccountDeleteRequest, AccountDeleteResponse
from domain.errors import OrderSyncError
from services.batch_delete_service import BatchDeleter

router = APIRouter()


@router.post(
    "/accounts/delete",
    response_model=AccountDeleteResponse,
    summary="Delete Account Data",
)
def delete_account(request: AccountDeleteRequest, deleter: BatchDeleter = Depends(get_batch_deleter)):
    """
    Delete profiles, orders, archived orders and push recipients for an
    identity.

    Every lookup and delete is independent; failures are listed in the
    response instead of aborting. `complete` is false when anything failed,
    and the call can be repeated.
    """
    try:
        result = deleter.delete_all_for_identity(request.email, request.external_id)
    except OrderSyncError as e:
        raise to_http_exception(e) from e
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return AccountDeleteResponse(
        orders_deleted=result.orders_deleted,
        profiles_deleted=result.profiles_deleted,
        other_deleted=result.other_deleted,
        failed_probes=result.failed_probes,
        failed_deletes=result.failed_deletes,
        complete=result.complete,
    )
