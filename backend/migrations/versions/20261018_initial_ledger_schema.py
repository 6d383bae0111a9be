"""Initial stock ledger schema

Revision ID: 20261018_initial_ledger
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_initial_ledger"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sku", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("stock_in_pieces", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("pieces_per_sheet", sa.Integer(), nullable=True, server_default=sa.text("1")),
        sa.Column("sheets_per_box", sa.Integer(), nullable=True, server_default=sa.text("1")),
        sa.Column("reorder_level", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("stock_in_pieces >= 0", name="ck_products_stock_non_negative"),
        sa.CheckConstraint("pieces_per_sheet IS NULL OR pieces_per_sheet >= 1", name="ck_products_pieces_per_sheet"),
        sa.CheckConstraint("sheets_per_box IS NULL OR sheets_per_box >= 1", name="ck_products_sheets_per_box"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sku"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("total_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_edited", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("edited_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("edit_reason", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('pending', 'completed')", name="ck_sales_status"),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_status", ["status"], unique=False)
        batch_op.create_index("ix_sales_status_created", ["status", "created_at"], unique=False)

    op.create_table(
        "sale_line_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_type", sa.String(16), nullable=False, server_default="piece"),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("total_price_cents", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_sale_line_items_quantity_positive"),
        sa.CheckConstraint("unit_type IN ('piece', 'sheet', 'box')", name="ck_sale_line_items_unit_type"),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("sale_line_items", schema=None) as batch_op:
        batch_op.create_index("ix_sale_line_items_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sale_line_items_product_id", ["product_id"], unique=False)

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("movement_type", sa.String(8), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("reference_type", sa.String(32), nullable=False),
        sa.Column("stock_before", sa.Integer(), nullable=False),
        sa.Column("stock_after", sa.Integer(), nullable=False),
        sa.Column("reversal_of_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        sa.CheckConstraint("movement_type IN ('in', 'out')", name="ck_stock_movements_type"),
        sa.CheckConstraint(
            "(movement_type = 'out' AND stock_after = stock_before - quantity)"
            " OR (movement_type = 'in' AND stock_after = stock_before + quantity)",
            name="ck_stock_movements_balance",
        ),
        sa.CheckConstraint("stock_after >= 0", name="ck_stock_movements_after_non_negative"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.ForeignKeyConstraint(["reversal_of_id"], ["stock_movements.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reversal_of_id", name="uq_stock_movements_reversal_of"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.create_index("ix_stock_movements_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_stock_movements_created_at", ["created_at"], unique=False)
        batch_op.create_index("ix_stock_movements_reference", ["reference_type", "reference_id"], unique=False)
        batch_op.create_index("ix_stock_movements_product_id_id", ["product_id", "id"], unique=False)

    op.create_table(
        "low_stock_alerts",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("stock_after", sa.Integer(), nullable=False),
        sa.Column("reorder_level", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("low_stock_alerts", schema=None) as batch_op:
        batch_op.create_index("ix_low_stock_alerts_product_id", ["product_id"], unique=False)
        batch_op.create_index("ix_low_stock_alerts_created_at", ["created_at"], unique=False)


def downgrade():
    with op.batch_alter_table("low_stock_alerts", schema=None) as batch_op:
        batch_op.drop_index("ix_low_stock_alerts_created_at")
        batch_op.drop_index("ix_low_stock_alerts_product_id")
    op.drop_table("low_stock_alerts")

    with op.batch_alter_table("stock_movements", schema=None) as batch_op:
        batch_op.drop_index("ix_stock_movements_product_id_id")
        batch_op.drop_index("ix_stock_movements_reference")
        batch_op.drop_index("ix_stock_movements_created_at")
        batch_op.drop_index("ix_stock_movements_product_id")
    op.drop_table("stock_movements")

    with op.batch_alter_table("sale_line_items", schema=None) as batch_op:
        batch_op.drop_index("ix_sale_line_items_product_id")
        batch_op.drop_index("ix_sale_line_items_sale_id")
    op.drop_table("sale_line_items")

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.drop_index("ix_sales_status_created")
        batch_op.drop_index("ix_sales_status")
    op.drop_table("sales")

    op.drop_table("products")
