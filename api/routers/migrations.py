"""
Migration API Endpoints.

Moves orders embedded in legacy client profiles into canonical order
documents.
"""

from typing import Optional

from fastapi import APIRouter, Body, Depends

from api.dependencies import get_lifecycle
from api.errors import to_http_exception
from api.models import MigrationRequest, MigrationResponse
from domain.errors import OrderSyncError
from services.lifecycle_service import LifecycleManager, MigrationSummary

router = APIRouter()


@router.post(
    "/migrations/profiles",
    response_model=MigrationResponse,
    summary="Migrate Legacy Profiles",
)
def migrate_profiles(
    request: Optional[MigrationRequest] = Body(None),
    lifecycle: LifecycleManager = Depends(get_lifecycle),
):
    """
    Migrate one profile (`email`) or every legacy profile.

    Idempotent: already-migrated profiles are counted as skipped. A profile
    with any failed order write is left untouched and listed in `failures`.
    """
    try:
        if request is None or not request.email:
            return MigrationResponse.from_summary(lifecycle.migrate_all())

        result = lifecycle.migrate_profile(request.email)
        summary = MigrationSummary(
            profiles_scanned=1,
            profiles_migrated=int(not result.skipped and result.success),
            profiles_skipped=int(result.skipped),
            orders_migrated=result.migrated_order_count,
            orders_already_present=result.already_present_count,
            deleted_orders_skipped=result.deleted_skipped_count,
            failures=[] if result.success else [result],
        )
        return MigrationResponse.from_summary(summary)
    except OrderSyncError as e:
        raise to_http_exception(e) from e
