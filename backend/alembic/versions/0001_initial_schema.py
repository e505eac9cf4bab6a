"""initial schema: catalogue, route stock, warehouse ledger, sales, notifications

Revision ID: 0001_initial_schema
Revises:
Create Date: 2025-12-20 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001_initial_schema"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create every table of the versioned schema."""
    op.create_table(
        "product",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("pcs_per_box", sa.Integer(), nullable=True),
        sa.Column("box_price", sa.Float(), nullable=False, server_default="0"),
        sa.Column("pcs_price", sa.Float(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_product_name", "product", ["name"])
    op.create_index("ix_product_status", "product", ["status"])

    op.create_table(
        "route",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("truck_id", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_route_name", "route", ["name"])
    op.create_index("ix_route_truck_id", "route", ["truck_id"])

    op.create_table(
        "driver",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("truck_id", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_driver_name", "driver", ["name"])
    op.create_index("ix_driver_truck_id", "driver", ["truck_id"])

    op.create_table(
        "daily_stock",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("route_id", sa.String(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("driver_id", sa.String(), nullable=True),
        sa.Column("truck_id", sa.String(), nullable=True),
        sa.Column("stock", sa.JSON(), nullable=False),
        sa.Column("initial_stock", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_daily_stock_route_id", "daily_stock", ["route_id"])
    op.create_index("ix_daily_stock_date", "daily_stock", ["date"])
    op.create_index("ix_daily_stock_driver_id", "daily_stock", ["driver_id"])
    op.create_index("ix_daily_stock_truck_id", "daily_stock", ["truck_id"])

    op.create_table(
        "warehouse_stock",
        sa.Column("product_id", sa.String(), sa.ForeignKey("product.id"), primary_key=True),
        sa.Column("boxes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pcs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "warehouse_movement",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("product_id", sa.String(), sa.ForeignKey("product.id"), nullable=False),
        sa.Column("movement_type", sa.String(), nullable=False),
        sa.Column("boxes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("pcs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("note", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_warehouse_movement_product_id", "warehouse_movement", ["product_id"])
    op.create_index("ix_warehouse_movement_movement_type", "warehouse_movement", ["movement_type"])
    op.create_index("ix_warehouse_movement_created_at", "warehouse_movement", ["created_at"])

    op.create_table(
        "sale",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("route_id", sa.String(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("driver_id", sa.String(), nullable=True),
        sa.Column("truck_id", sa.String(), nullable=True),
        sa.Column("shop_name", sa.String(), nullable=False, server_default=""),
        sa.Column("products_sold", sa.JSON(), nullable=False),
        sa.Column("total_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_sale_route_id", "sale", ["route_id"])
    op.create_index("ix_sale_date", "sale", ["date"])
    op.create_index("ix_sale_driver_id", "sale", ["driver_id"])

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False, server_default="info"),
        sa.Column("category", sa.String(), nullable=False, server_default="system"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notification_category", "notification", ["category"])
    op.create_index("ix_notification_is_read", "notification", ["is_read"])
    op.create_index("ix_notification_created_at", "notification", ["created_at"])


def downgrade() -> None:
    """Drop every table (reverse dependency order)."""
    for table in (
        "notification",
        "sale",
        "warehouse_movement",
        "warehouse_stock",
        "daily_stock",
        "driver",
        "route",
        "product",
    ):
        op.drop_table(table)
