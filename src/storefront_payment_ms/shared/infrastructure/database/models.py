"""Order payment status ORM models for SQLAlchemy."""

from sqlalchemy import Column, DateTime, Integer, String, Text, func

from storefront_payment_ms.shared.infrastructure.database.connection import Base


class OrderPaymentStatusModel(Base):
    """
    Payment status per storefront order.

    Maps to the 'order_payment_status' table.
    """

    __tablename__ = "order_payment_status"

    order_id = Column(String(128), primary_key=True)
    status = Column(String(20), nullable=False)
    transaction_id = Column(String(128), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class OrderPaymentAnomalyModel(Base):
    """Webhook events that were not applied because they would regress an order."""

    __tablename__ = "order_payment_anomalies"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(128), nullable=False, index=True)
    attempted_status = Column(String(20), nullable=False)
    transaction_id = Column(String(128), nullable=True)
    reason = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
