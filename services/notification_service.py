"""
New-order push notifications.

Delivery itself belongs to an external dispatcher (anything implementing
`NotificationDispatcher`). This module builds the payload, splits the
recipient list into provider-sized batches, sends the batches concurrently
and prunes recipients the dispatcher reports as invalid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Protocol, Sequence

from domain.order import OrderRecord
from repositories.recipient_repository import RecipientRepository
from services.fanout import run_all

logger = logging.getLogger(__name__)

# Provider limit on recipients per multicast call.
BATCH_SIZE = 500


@dataclass(frozen=True, slots=True)
class DispatchReport:
    success_count: int = 0
    failure_count: int = 0
    invalid_recipients: List[str] = field(default_factory=list)


class NotificationDispatcher(Protocol):
    def send(
        self,
        recipients: Sequence[str],
        title: str,
        body: str,
        data: Mapping[str, str],
    ) -> DispatchReport:
        ...


@dataclass(frozen=True, slots=True)
class NotificationPayload:
    title: str
    body: str
    data: Dict[str, str]


def new_order_payload(order: OrderRecord) -> NotificationPayload:
    """Payload announcing a newly placed order to staff devices."""

    reference = order.invoice_number or order.order_token
    who = order.client.name if order.client and order.client.name else order.client_email
    item_count = sum(item.quantity for item in order.items)
    return NotificationPayload(
        title=f"New order {reference}",
        body=f"{who}: {item_count} item(s), total {order.total}",
        data={
            "type": "new_order",
            "orderId": order.order_id.serialize(),
            "clientEmail": order.client_email,
            "total": str(order.total),
        },
    )


def batched(tokens: Sequence[str], size: int = BATCH_SIZE) -> List[List[str]]:
    return [list(tokens[i : i + size]) for i in range(0, len(tokens), size)]


class NotificationService:
    def __init__(self, dispatcher: NotificationDispatcher, recipients: RecipientRepository) -> None:
        self._dispatcher = dispatcher
        self._recipients = recipients

    def notify_new_order(self, order: OrderRecord) -> DispatchReport:
        """
        Send the new-order notification to every registered recipient.

        A batch whose send raised counts every recipient in it as failed; it
        does not stop the other batches. Invalid recipients are removed from
        the registry afterwards.
        """

        tokens = self._recipients.list_tokens()
        if not tokens:
            logger.info("No push recipients registered", extra={"order_id": order.order_id.serialize()})
            return DispatchReport()

        payload = new_order_payload(order)
        batches = batched(tokens)
        result = run_all(
            [
                (f"batch-{n}", self._sender(batch, payload))
                for n, batch in enumerate(batches)
            ]
        )

        success = failure = 0
        invalid: List[str] = []
        for batch, outcome in zip(batches, result.outcomes):
            if not outcome.ok:
                failure += len(batch)
                continue
            report: DispatchReport = outcome.value
            success += report.success_count
            failure += report.failure_count
            invalid.extend(report.invalid_recipients)

        if invalid:
            removed = self._recipients.remove(invalid)
            logger.info(
                f"Pruned {removed} invalid push recipients",
                extra={"invalid_count": len(invalid)},
            )

        logger.info(
            f"New order notification: {success} delivered, {failure} failed",
            extra={"order_id": order.order_id.serialize(), "batches": len(batches)},
        )
        return DispatchReport(success_count=success, failure_count=failure, invalid_recipients=invalid)

    def _sender(self, batch: List[str], payload: NotificationPayload):
        return lambda: self._dispatcher.send(batch, payload.title, payload.body, payload.data)


__all__ = [
    "BATCH_SIZE",
    "DispatchReport",
    "NotificationDispatcher",
    "NotificationPayload",
    "NotificationService",
    "batched",
    "new_order_payload",
]
