"""Persistence rows for loyalty orders and their accrual amounts."""

from __future__ import annotations

from sqlalchemy import BigInteger, Column, DateTime, Enum as SqlEnum, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID

from loyalty_api.db.base import Base
from loyalty_api.domain.orders import OrderStatus

_PURCHASE_ONLY = text("status != 'WITHDRAW'")


class OrderRecord(Base):
    """One purchase order or withdrawal. Withdrawals reuse the row shape."""

    __tablename__ = "orders"
    __table_args__ = (
        Index(
            "uq_orders_purchase_number",
            "number",
            unique=True,
            postgresql_where=_PURCHASE_ONLY,
            sqlite_where=_PURCHASE_ONLY,
        ),
        Index("ix_orders_user_status", "user_id", "status"),
        Index("ix_orders_status", "status"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False)
    number = Column(BigInteger, nullable=False)
    status = Column(
        SqlEnum(OrderStatus, name="order_status_enum"),
        nullable=False,
        server_default=OrderStatus.NEW.value,
    )
    uploaded_at = Column(DateTime(timezone=True), nullable=False)


class OrderAccrualRecord(Base):
    """Accrual amount of an order in minor units; absent while undetermined."""

    __tablename__ = "order_accruals"

    order_id = Column(
        UUID(as_uuid=True),
        ForeignKey("orders.id", ondelete="CASCADE"),
        primary_key=True,
    )
    amount_minor = Column(BigInteger, nullable=False)
