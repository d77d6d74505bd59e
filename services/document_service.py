"""
Order documents (invoices / receipts).

Rendering and upload happen in an external `DocumentGenerator`; the returned
URL is stored on every copy of the order through the dual-write coordinator.
"""

from __future__ import annotations

import logging
from typing import Protocol, Union

from domain.identifiers import OrderId
from domain.order import OrderPatch, OrderRecord
from services.dual_write_service import DualWriteCoordinator, UpdateResult

logger = logging.getLogger(__name__)


class DocumentGenerator(Protocol):
    def generate(self, order: OrderRecord) -> str:
        """Render the order document and return its public URL."""
        ...


class DocumentService:
    def __init__(self, generator: DocumentGenerator, coordinator: DualWriteCoordinator) -> None:
        self._generator = generator
        self._coordinator = coordinator

    def attach_document(self, order_id: Union[OrderId, str]) -> UpdateResult:
        """
        Generate the document for an order and record its URL.

        Raises:
            OrderNotFoundError / AmbiguousOrderError: resolution failed
            ValueError: the generator returned an empty URL
        """

        order = self._coordinator.resolve(order_id)
        url = self._generator.generate(order)
        if not url:
            raise ValueError(f"Document generator returned no URL for {order.order_id}")

        logger.info("Order document generated", extra={"order_id": order.order_id.serialize(), "url": url})
        return self._coordinator.apply_update(order.order_id, OrderPatch(document_url=url))


__all__ = ["DocumentGenerator", "DocumentService"]
