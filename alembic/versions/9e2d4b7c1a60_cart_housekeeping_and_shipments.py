"""Cart abandonment fields and shipments

Revision ID: 9e2d4b7c1a60
Revises: 5c1e0f3a9b27
Create Date: 2026-10-19
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "9e2d4b7c1a60"
down_revision: Union[str, Sequence[str], None] = "5c1e0f3a9b27"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(12, 2)


def upgrade() -> None:
    """Upgrade schema."""
    with op.batch_alter_table("carts") as batch:
        batch.add_column(sa.Column("abandoned_at", sa.DateTime(timezone=True), nullable=True))
        batch.add_column(sa.Column("abandon_reason", sa.String(200), nullable=True))

    op.create_table(
        "shipments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("order_id", sa.String(36), sa.ForeignKey("orders.id", ondelete="CASCADE"), nullable=False),
        sa.Column("carrier", sa.String(64), nullable=False),
        sa.Column("service_type", sa.String(64), nullable=False),
        sa.Column("tracking_number", sa.String(64), nullable=False),
        sa.Column("tracking_url", sa.String(1024)),
        sa.Column("status", sa.String(16), nullable=False, server_default="preparing"),
        sa.Column("pallet_count", sa.Integer, nullable=False, server_default="1"),
        sa.Column("weight_kg", sa.Numeric(10, 2)),
        sa.Column("shipping_cost", MONEY),
        sa.Column("shipping_address", sa.JSON, nullable=False),
        sa.Column("estimated_delivery", sa.Date),
        sa.Column("shipped_at", sa.DateTime(timezone=True)),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("created_by", sa.String(120)),
        sa.Column("notes", sa.Text),
    )
    op.create_index("ix_shipments_order_id", "shipments", ["order_id"])
    op.create_index("ix_shipments_tracking_number", "shipments", ["tracking_number"], unique=True)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_shipments_tracking_number", table_name="shipments")
    op.drop_index("ix_shipments_order_id", table_name="shipments")
    op.drop_table("shipments")
    with op.batch_alter_table("carts") as batch:
        batch.drop_column("abandon_reason")
        batch.drop_column("abandoned_at")
