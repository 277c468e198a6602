"""create purchase order, item and lot tables

Revision ID: 3f1a9c2d7b10
Revises:
Create Date: 2026-10-17
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1a9c2d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")

po_status = sa.Enum(
    "pending_approval",
    "pending_receive",
    "received",
    "rejected",
    name="purchase_order_status",
)


def upgrade() -> None:
    op.create_table(
        "purchase_orders",
        sa.Column("id", PK, primary_key=True),
        sa.Column("unique_id", sa.Text(), nullable=False),
        sa.Column("create_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", po_status, nullable=False, server_default="pending_approval"),
        sa.UniqueConstraint("unique_id", name="uq_purchase_orders_unique_id"),
    )
    op.create_index("ix_purchase_orders_create_date", "purchase_orders", ["create_date"])

    op.create_table(
        "purchase_order_items",
        sa.Column("id", PK, primary_key=True),
        sa.Column(
            "purchase_order_id",
            PK,
            sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("item_code", sa.Text(), nullable=False),
        sa.Column("item_name", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_po_item_qty_pos"),
    )
    op.create_index("ix_purchase_order_items_purchase_order_id", "purchase_order_items", ["purchase_order_id"])

    op.create_table(
        "inventory_lots",
        sa.Column("id", PK, primary_key=True),
        sa.Column(
            "purchase_order_item_id",
            PK,
            sa.ForeignKey("purchase_order_items.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("lot_number", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_inventory_lot_qty_pos"),
    )
    op.create_index("ix_inventory_lots_purchase_order_item_id", "inventory_lots", ["purchase_order_item_id"])


def downgrade() -> None:
    op.drop_index("ix_inventory_lots_purchase_order_item_id", table_name="inventory_lots")
    op.drop_table("inventory_lots")
    op.drop_index("ix_purchase_order_items_purchase_order_id", table_name="purchase_order_items")
    op.drop_table("purchase_order_items")
    op.drop_index("ix_purchase_orders_create_date", table_name="purchase_orders")
    op.drop_table("purchase_orders")
    # Postgres garde le type enum apres DROP TABLE
    po_status.drop(op.get_bind(), checkfirst=True)
