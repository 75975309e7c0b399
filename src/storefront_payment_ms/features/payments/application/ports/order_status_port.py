"""Order status collaborator port."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from storefront_payment_ms.features.payments.domain.enums import OrderStatus


@dataclass
class OrderStatusRecord:
    """Payment status of an order as stored by the order service."""

    order_id: str
    status: OrderStatus
    transaction_id: str | None = None


class OrderStatusPort(ABC):
    """
    Persistence API for order payment status.

    Implementations:
    - InMemoryOrderStatusRepository
    - SqlAlchemyOrderStatusRepository
    - OrderServiceClient (internal order service over HTTP)
    """

    @abstractmethod
    async def get_order_status(self, order_id: str) -> OrderStatusRecord | None:
        """Return the current record, or None for an unknown order."""

    @abstractmethod
    async def update_order_status(
        self, order_id: str, status: OrderStatus, transaction_id: str | None
    ) -> None:
        """Store ``status`` for the order."""

    @abstractmethod
    async def flag_anomaly(
        self,
        order_id: str,
        attempted_status: OrderStatus,
        transaction_id: str | None,
        reason: str,
    ) -> None:
        """Record an event that was not applied because it would regress the order."""
