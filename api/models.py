"""
API Request and Response Models.

Pydantic models for validating API requests and serializing responses.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from domain.order import OrderRecord
from services.dual_write_service import StoreWriteResult, UpdateResult
from services.lifecycle_service import ArchiveListing, MigrationSummary, PurgeResult, SoftDeleteResult


# ============================================================================
# Order Models
# ============================================================================

class LineItemResponse(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    variant: str = ""
    brand: str = ""


class AdminMessageResponse(BaseModel):
    message: str
    at: datetime
    is_read: bool
    attachments: List[str] = []


class OrderResponse(BaseModel):
    """Canonical view of one order."""
    order_id: str
    client_email: str
    order_token: str
    invoice_number: str
    order_number: str
    status: str
    payment_status: str
    payment_method: str
    items: List[LineItemResponse]
    subtotal: Decimal
    shipping_cost: Decimal
    total: Decimal
    ordered_at: Optional[datetime] = None
    last_updated: Optional[datetime] = None
    document_url: str = ""
    tracking_number: str = ""
    courier: str = ""
    comment: str = ""
    admin_messages: List[AdminMessageResponse] = []
    has_unread_messages: bool = False

    class Config:
        json_schema_extra = {
            "example": {
                "order_id": "ana@example.com_INV-1001",
                "client_email": "ana@example.com",
                "order_token": "INV-1001",
                "invoice_number": "INV-1001",
                "order_number": "",
                "status": "shipped",
                "payment_status": "paid",
                "payment_method": "transfer",
                "items": [],
                "subtotal": "120.00",
                "shipping_cost": "5.00",
                "total": "125.00",
                "tracking_number": "TRK-9",
                "courier": "DHL",
            }
        }

    @classmethod
    def from_record(cls, order: OrderRecord) -> "OrderResponse":
        return cls(
            order_id=order.order_id.serialize(),
            client_email=order.client_email,
            order_token=order.order_token,
            invoice_number=order.invoice_number,
            order_number=order.order_number,
            status=order.status.value,
            payment_status=order.payment_status.value,
            payment_method=order.payment_method,
            items=[
                LineItemResponse(
                    product_id=item.product_id,
                    name=item.name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    variant=item.variant,
                    brand=item.brand,
                )
                for item in order.items
            ],
            subtotal=order.subtotal,
            shipping_cost=order.shipping_cost,
            total=order.total,
            ordered_at=order.ordered_at,
            last_updated=order.last_updated,
            document_url=order.document_url,
            tracking_number=order.tracking.number,
            courier=order.tracking.courier,
            comment=order.comment,
            admin_messages=[
                AdminMessageResponse(
                    message=m.message,
                    at=m.at,
                    is_read=m.is_read,
                    attachments=list(m.attachments),
                )
                for m in order.admin_messages
            ],
            has_unread_messages=order.has_unread_messages,
        )


class StoreResultResponse(BaseModel):
    target: str
    success: bool
    error: Optional[str] = None

    @classmethod
    def from_result(cls, result: StoreWriteResult) -> "StoreResultResponse":
        return cls(target=result.target, success=result.success, error=result.error)


class UpdateResponse(BaseModel):
    """Result of a dual-write update."""
    success: bool
    outcome: str  # "ok", "degraded" or "failed"
    store_results: List[StoreResultResponse]
    order: Optional[OrderResponse] = None

    @classmethod
    def from_result(cls, result: UpdateResult) -> "UpdateResponse":
        return cls(
            success=result.success,
            outcome=result.outcome.value,
            store_results=[StoreResultResponse.from_result(r) for r in result.store_results],
            order=OrderResponse.from_record(result.order) if result.order else None,
        )


class SoftDeleteRequest(BaseModel):
    deleted_by: str = Field("", description="Actor performing the deletion")


class SoftDeleteResponse(BaseModel):
    original_order_id: str
    deleted_at: datetime
    retention_deadline: datetime
    outcome: str
    store_results: List[StoreResultResponse]

    @classmethod
    def from_result(cls, result: SoftDeleteResult) -> "SoftDeleteResponse":
        return cls(
            original_order_id=result.archived.original_order_id,
            deleted_at=result.archived.deleted_at,
            retention_deadline=result.archived.retention_deadline,
            outcome=result.outcome.value,
            store_results=[StoreResultResponse.from_result(r) for r in result.store_results],
        )


# ============================================================================
# Archive Models
# ============================================================================

class ArchivedOrderResponse(BaseModel):
    original_order_id: str
    readable: bool
    client_email: Optional[str] = None
    deleted_at: Optional[datetime] = None
    retention_deadline: Optional[datetime] = None
    remaining_days: Optional[int] = None
    source_env: Optional[str] = None
    deleted_by: Optional[str] = None

    @classmethod
    def from_listing(cls, listing: ArchiveListing) -> "ArchivedOrderResponse":
        archived = listing.archived
        if archived is None:
            return cls(original_order_id=listing.original_order_id, readable=False)
        return cls(
            original_order_id=listing.original_order_id,
            readable=True,
            client_email=archived.order.client_email,
            deleted_at=archived.deleted_at,
            retention_deadline=archived.retention_deadline,
            remaining_days=listing.remaining_days,
            source_env=archived.source_env,
            deleted_by=archived.deleted_by,
        )


class ArchiveListResponse(BaseModel):
    items: List[ArchivedOrderResponse]
    total_count: int


class PurgeRequest(BaseModel):
    now: Optional[datetime] = Field(
        None,
        description="Reference instant (UTC, timezone-aware). Defaults to the server clock."
    )


class PurgeResponse(BaseModel):
    purged_count: int
    kept_count: int
    unreadable: List[str]
    failures: List[str]

    @classmethod
    def from_result(cls, result: PurgeResult) -> "PurgeResponse":
        return cls(
            purged_count=result.purged_count,
            kept_count=result.kept_count,
            unreadable=result.unreadable,
            failures=result.failures,
        )


# ============================================================================
# Migration Models
# ============================================================================

class MigrationRequest(BaseModel):
    email: Optional[str] = Field(
        None,
        description="Migrate a single profile. Omit to migrate every legacy profile."
    )


class MigrationFailureResponse(BaseModel):
    email: str
    migrated_order_count: int
    errors: List[str]


class MigrationResponse(BaseModel):
    profiles_scanned: int
    profiles_migrated: int
    profiles_skipped: int
    orders_migrated: int
    orders_already_present: int = 0
    deleted_orders_skipped: int = 0
    failures: List[MigrationFailureResponse]

    @classmethod
    def from_summary(cls, summary: MigrationSummary) -> "MigrationResponse":
        return cls(
            profiles_scanned=summary.profiles_scanned,
            profiles_migrated=summary.profiles_migrated,
            profiles_skipped=summary.profiles_skipped,
            orders_migrated=summary.orders_migrated,
            orders_already_present=summary.orders_already_present,
            deleted_orders_skipped=summary.deleted_orders_skipped,
            failures=[
                MigrationFailureResponse(
                    email=f.email,
                    migrated_order_count=f.migrated_order_count,
                    errors=f.errors,
                )
                for f in summary.failures
            ],
        )


# ============================================================================
# Account Models
# ============================================================================

class AccountDeleteRequest(BaseModel):
    email: str = Field(..., min_length=3, description="Email of the account to delete")
    external_id: Optional[str] = Field(None, description="Auth provider user id, if known")

    class Config:
        json_schema_extra = {
            "example": {
                "email": "ana@example.com",
                "external_id": "uid-123"
            }
        }


class AccountDeleteResponse(BaseModel):
    orders_deleted: int
    profiles_deleted: int
    other_deleted: int
    failed_probes: List[str]
    failed_deletes: List[str]
    complete: bool


class ErrorResponse(BaseModel):
    """Standard error response."""
    detail: str
