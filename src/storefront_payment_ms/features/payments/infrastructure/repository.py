"""Order status repositories."""

import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront_payment_ms.features.payments.application.ports import (
    OrderStatusPort,
    OrderStatusRecord,
)
from storefront_payment_ms.features.payments.domain.enums import OrderStatus
from storefront_payment_ms.shared.infrastructure.database.models import (
    OrderPaymentAnomalyModel,
    OrderPaymentStatusModel,
)

logger = logging.getLogger(__name__)


@dataclass
class OrderStatusAnomaly:
    order_id: str
    attempted_status: OrderStatus
    transaction_id: str | None
    reason: str


class InMemoryOrderStatusRepository(OrderStatusPort):
    """Process-local order status store for development and tests."""

    def __init__(self) -> None:
        self._records: dict[str, OrderStatusRecord] = {}
        self.anomalies: list[OrderStatusAnomaly] = []

    async def get_order_status(self, order_id: str) -> OrderStatusRecord | None:
        return self._records.get(order_id)

    async def update_order_status(
        self, order_id: str, status: OrderStatus, transaction_id: str | None
    ) -> None:
        self._records[order_id] = OrderStatusRecord(order_id, status, transaction_id)

    async def flag_anomaly(
        self,
        order_id: str,
        attempted_status: OrderStatus,
        transaction_id: str | None,
        reason: str,
    ) -> None:
        self.anomalies.append(
            OrderStatusAnomaly(order_id, attempted_status, transaction_id, reason)
        )


class SqlAlchemyOrderStatusRepository(OrderStatusPort):
    """
    Order status repository using async SQLAlchemy.

    Each call runs in its own session and commits immediately, since
    webhook handling has no surrounding unit of work.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_order_status(self, order_id: str) -> OrderStatusRecord | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderPaymentStatusModel).where(
                    OrderPaymentStatusModel.order_id == order_id
                )
            )
            model = result.scalar_one_or_none()
        if model is None:
            return None
        return OrderStatusRecord(
            order_id=model.order_id,
            status=OrderStatus(model.status),
            transaction_id=model.transaction_id,
        )

    async def update_order_status(
        self, order_id: str, status: OrderStatus, transaction_id: str | None
    ) -> None:
        async with self._session_factory() as session:
            model = await session.get(OrderPaymentStatusModel, order_id)
            if model is None:
                session.add(
                    OrderPaymentStatusModel(
                        order_id=order_id,
                        status=status.value,
                        transaction_id=transaction_id,
                    )
                )
            else:
                model.status = status.value
                model.transaction_id = transaction_id
            await session.commit()
        logger.debug(
            "Order payment status stored",
            extra={"order_id": order_id, "status": status.value},
        )

    async def flag_anomaly(
        self,
        order_id: str,
        attempted_status: OrderStatus,
        transaction_id: str | None,
        reason: str,
    ) -> None:
        async with self._session_factory() as session:
            session.add(
                OrderPaymentAnomalyModel(
                    order_id=order_id,
                    attempted_status=attempted_status.value,
                    transaction_id=transaction_id,
                    reason=reason,
                )
            )
            await session.commit()

    async def list_anomalies(self, order_id: str) -> list[OrderStatusAnomaly]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(OrderPaymentAnomalyModel)
                .where(OrderPaymentAnomalyModel.order_id == order_id)
                .order_by(OrderPaymentAnomalyModel.id)
            )
            models = result.scalars().all()
        return [
            OrderStatusAnomaly(
                order_id=model.order_id,
                attempted_status=OrderStatus(model.attempted_status),
                transaction_id=model.transaction_id,
                reason=model.reason,
            )
            for model in models
        ]
