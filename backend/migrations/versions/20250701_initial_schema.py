"""Initial delivery ledger schema

Revision ID: 20250701_initial_schema
Revises:
Create Date: 2025-07-01
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20250701_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "delivery_courses",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("unit", sa.String(32), nullable=True),
        sa.Column("unit_price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("course_id", sa.Integer(), nullable=True),
        sa.Column("delivery_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["course_id"], ["delivery_courses.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_course_id", ["course_id"], unique=False)
        batch_op.create_index("ix_customers_course_order", ["course_id", "delivery_order"], unique=False)

    op.create_table(
        "delivery_patterns",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=False),
        sa.Column("delivery_days", sa.JSON(), nullable=True),
        sa.Column("daily_quantities", sa.JSON(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("delivery_patterns", schema=None) as batch_op:
        batch_op.create_index("ix_delivery_patterns_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_delivery_patterns_customer_product", ["customer_id", "product_id"], unique=False)
        batch_op.create_index("ix_delivery_patterns_product_active", ["product_id", "is_active"], unique=False)

    op.create_table(
        "temporary_changes",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("change_date", sa.Date(), nullable=False),
        sa.Column("change_type", sa.String(16), nullable=False),
        sa.Column("product_id", sa.Integer(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("unit_price", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("change_type IN ('skip', 'modify', 'add')", name="ck_temporary_changes_type"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("temporary_changes", schema=None) as batch_op:
        batch_op.create_index("ix_temporary_changes_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_temporary_changes_customer_date", ["customer_id", "change_date"], unique=False)

    op.create_table(
        "ar_invoices",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("rounding_enabled", sa.Boolean(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="confirmed"),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id", "year", "month", name="uq_ar_invoices_customer_month"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("ar_invoices", schema=None) as batch_op:
        batch_op.create_index("ix_ar_invoices_customer_id", ["customer_id"], unique=False)

    op.create_table(
        "ar_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("method", sa.String(16), nullable=False),
        sa.Column("note", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("method IN ('collection', 'debit')", name="ck_ar_payments_method"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("ar_payments", schema=None) as batch_op:
        batch_op.create_index("ix_ar_payments_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_ar_payments_customer_month", ["customer_id", "year", "month"], unique=False)

    op.create_table(
        "customer_settings",
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("billing_method", sa.String(16), nullable=True),
        sa.Column("rounding_enabled", sa.Boolean(), nullable=True),
        sa.Column("bank_code", sa.String(4), nullable=True),
        sa.Column("branch_code", sa.String(3), nullable=True),
        sa.Column("account_type", sa.Integer(), nullable=True),
        sa.Column("account_number", sa.String(7), nullable=True),
        sa.Column("account_holder_katakana", sa.String(64), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("billing_method IN ('collection', 'debit')", name="ck_customer_settings_method"),
        sa.CheckConstraint("account_type IN (1, 2)", name="ck_customer_settings_account_type"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("customer_id"),
    )

    op.create_table(
        "operation_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("op_type", sa.String(32), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("params_json", sa.JSON(), nullable=False),
        sa.Column("data_json", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("reversed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )

    with op.batch_alter_table("operation_logs", schema=None) as batch_op:
        batch_op.create_index("ix_operation_logs_op_type_created", ["op_type", "created_at"], unique=False)


def downgrade():
    op.drop_table("operation_logs")
    op.drop_table("customer_settings")
    op.drop_table("ar_payments")
    op.drop_table("ar_invoices")
    op.drop_table("temporary_changes")
    op.drop_table("delivery_patterns")
    op.drop_table("customers")
    op.drop_table("products")
    op.drop_table("delivery_courses")
