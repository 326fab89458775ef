"""Users, orders and order accruals.

Revision ID: 20261019_01
Revises: 
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261019_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ORDER_STATUS = sa.Enum(
    "NEW",
    "REGISTERED",
    "PROCESSING",
    "INVALID",
    "PROCESSED",
    "WITHDRAW",
    name="order_status_enum",
)


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("login", sa.String(length=50), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_login", "users", ["login"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.dialects.postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "user_id",
            sa.dialects.postgresql.UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("number", sa.BigInteger(), nullable=False),
        sa.Column("status", ORDER_STATUS, nullable=False, server_default="NEW"),
        sa.Column("uploaded_at", sa.DateTime(timezone=True), nullable=False),
    )
    purchase_only = sa.text("status != 'WITHDRAW'")
    op.create_index(
        "uq_orders_purchase_number",
        "orders",
        ["number"],
        unique=True,
        postgresql_where=purchase_only,
        sqlite_where=purchase_only,
    )
    op.create_index("ix_orders_user_status", "orders", ["user_id", "status"])
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "order_accruals",
        sa.Column(
            "order_id",
            sa.dialects.postgresql.UUID(as_uuid=True),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("amount_minor", sa.BigInteger(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table("order_accruals")
    op.drop_index("ix_orders_status", table_name="orders")
    op.drop_index("ix_orders_user_status", table_name="orders")
    op.drop_index("uq_orders_purchase_number", table_name="orders")
    op.drop_table("orders")
    ORDER_STATUS.drop(op.get_bind(), checkfirst=True)
    op.drop_index("ix_users_login", table_name="users")
    op.drop_table("users")
