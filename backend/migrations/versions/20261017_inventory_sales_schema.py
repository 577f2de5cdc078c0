"""Inventory and sale posting schema

Revision ID: 20261017_inventory_sales
Revises:
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261017_inventory_sales"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated_nullable: bool = False):
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=None if updated_nullable else sa.text("(CURRENT_TIMESTAMP)"),
            nullable=updated_nullable,
        ),
    ]


def upgrade():
    op.create_table(
        "companies",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("companies", schema=None) as batch_op:
        batch_op.create_index("ix_companies_is_active", ["is_active"], unique=False)

    op.create_table(
        "users",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=True),
        sa.Column("last_name", sa.String(100), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("avatar", sa.String(512), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("users", schema=None) as batch_op:
        batch_op.create_index("ix_users_email", ["email"], unique=True)

    op.create_table(
        "product_variants",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("sku", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("product_variants", schema=None) as batch_op:
        batch_op.create_index("ix_product_variants_sku", ["sku"], unique=False)

    op.create_table(
        "company_products",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("company_id", sa.String(10), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("unit", sa.String(32), nullable=True),
        sa.Column("is_available_for_purchase", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], name="fk_company_products_company_id_companies"),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("company_products", schema=None) as batch_op:
        batch_op.create_index("ix_company_products_company_id", ["company_id"], unique=False)

    op.create_table(
        "company_services",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("company_id", sa.String(10), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="Active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], name="fk_company_services_company_id_companies"),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("company_services", schema=None) as batch_op:
        batch_op.create_index("ix_company_services_company_id", ["company_id"], unique=False)

    op.create_table(
        "company_product_variants",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("company_product_id", sa.String(10), nullable=False),
        sa.Column("system_product_variant_id", sa.String(10), nullable=False),
        sa.Column("type", sa.String(32), nullable=False, server_default="service"),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        # Plain column: lots -> variants is the only FK between the two tables
        sa.Column("active_stock_id", sa.String(10), nullable=True),
        sa.Column("min_stock", sa.Integer(), nullable=False, server_default=sa.text("10")),
        sa.Column("max_stock", sa.Integer(), nullable=False, server_default=sa.text("100")),
        *_timestamps(),
        sa.ForeignKeyConstraint(["company_product_id"], ["company_products.id"], name="fk_company_product_variants_company_product_id_company_products"),
        sa.ForeignKeyConstraint(["system_product_variant_id"], ["product_variants.id"], name="fk_company_product_variants_system_product_variant_id_product_variants"),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("company_product_variants", schema=None) as batch_op:
        batch_op.create_index("ix_company_product_variants_company_product_id", ["company_product_id"], unique=False)
        batch_op.create_index("ix_company_product_variants_system_product_variant_id", ["system_product_variant_id"], unique=False)
        batch_op.create_index("ix_variants_product_default", ["company_product_id", "is_default"], unique=False)

    op.create_table(
        "company_product_stock",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("variant_id", sa.String(10), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cost_price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("sell_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("purchase_date", sa.Date(), nullable=True),
        sa.Column("expiry_date", sa.Date(), nullable=True),
        sa.Column("supplier_id", sa.String(10), nullable=True),
        sa.Column("batch_number", sa.String(64), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("quantity >= 0", name="ck_stock_quantity_non_negative"),
        sa.CheckConstraint("cost_price >= 0", name="ck_stock_cost_non_negative"),
        sa.ForeignKeyConstraint(["variant_id"], ["company_product_variants.id"], name="fk_company_product_stock_variant_id_company_product_variants"),
        sa.ForeignKeyConstraint(["supplier_id"], ["users.id"], name="fk_company_product_stock_supplier_id_users"),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("company_product_stock", schema=None) as batch_op:
        batch_op.create_index("ix_company_product_stock_variant_id", ["variant_id"], unique=False)
        batch_op.create_index("ix_company_product_stock_supplier_id", ["supplier_id"], unique=False)
        batch_op.create_index("ix_company_product_stock_is_active", ["is_active"], unique=False)
        batch_op.create_index("ix_stock_variant_active_purchase", ["variant_id", "is_active", "purchase_date"], unique=False)

    op.create_table(
        "company_sales",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("user_id", sa.String(10), nullable=False),
        sa.Column("company_id", sa.String(10), nullable=False),
        sa.Column("staff_id", sa.String(10), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        *_timestamps(updated_nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_company_sales_user_id_users"),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], name="fk_company_sales_company_id_companies"),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("company_sales", schema=None) as batch_op:
        batch_op.create_index("ix_company_sales_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_company_sales_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_company_sales_staff_id", ["staff_id"], unique=False)
        batch_op.create_index("ix_sales_company_created", ["company_id", "created_at"], unique=False)

    op.create_table(
        "company_sales_items",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("sale_id", sa.String(10), nullable=False),
        sa.Column("item_type", sa.String(16), nullable=False),
        sa.Column("service_id", sa.String(10), nullable=True),
        sa.Column("variant_id", sa.String(10), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        *_timestamps(updated_nullable=True),
        sa.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity_positive"),
        sa.CheckConstraint("discount >= 0 AND discount <= 100", name="ck_sale_items_discount_pct"),
        sa.CheckConstraint(
            "(item_type = 'service' AND service_id IS NOT NULL AND variant_id IS NULL) OR "
            "(item_type = 'product' AND variant_id IS NOT NULL AND service_id IS NULL)",
            name="ck_sale_items_reference_matches_type",
        ),
        sa.ForeignKeyConstraint(["sale_id"], ["company_sales.id"], name="fk_company_sales_items_sale_id_company_sales"),
        sa.ForeignKeyConstraint(["service_id"], ["company_services.id"], name="fk_company_sales_items_service_id_company_services"),
        sa.ForeignKeyConstraint(["variant_id"], ["company_product_variants.id"], name="fk_company_sales_items_variant_id_company_product_variants"),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("company_sales_items", schema=None) as batch_op:
        batch_op.create_index("ix_company_sales_items_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_company_sales_items_service_id", ["service_id"], unique=False)
        batch_op.create_index("ix_company_sales_items_variant_id", ["variant_id"], unique=False)
        batch_op.create_index("ix_sale_items_sale_type_created", ["sale_id", "item_type", "created_at"], unique=False)

    op.create_table(
        "company_appointments",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("company_id", sa.String(10), nullable=False),
        sa.Column("user_id", sa.String(10), nullable=False),
        sa.Column("service_id", sa.String(10), nullable=True),
        sa.Column("space_id", sa.String(10), nullable=True),
        sa.Column("sale_id", sa.String(10), nullable=True),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated_nullable=True),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], name="fk_company_appointments_company_id_companies"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_company_appointments_user_id_users"),
        sa.ForeignKeyConstraint(["service_id"], ["company_services.id"], name="fk_company_appointments_service_id_company_services"),
        sa.ForeignKeyConstraint(["sale_id"], ["company_sales.id"], name="fk_company_appointments_sale_id_company_sales"),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("company_appointments", schema=None) as batch_op:
        batch_op.create_index("ix_company_appointments_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_company_appointments_user_id", ["user_id"], unique=False)
        batch_op.create_index("ix_company_appointments_service_id", ["service_id"], unique=False)
        batch_op.create_index("ix_company_appointments_sale_id", ["sale_id"], unique=False)

    op.create_table(
        "company_users",
        sa.Column("id", sa.String(10), nullable=False),
        sa.Column("company_id", sa.String(10), nullable=False),
        sa.Column("user_id", sa.String(10), nullable=False),
        sa.Column("first_interaction_date", sa.Date(), nullable=False),
        sa.Column("last_interaction_date", sa.Date(), nullable=False),
        sa.Column("total_appointments", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_sales", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_spent", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        *_timestamps(updated_nullable=True),
        sa.ForeignKeyConstraint(["company_id"], ["companies.id"], name="fk_company_users_company_id_companies"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], name="fk_company_users_user_id_users"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("company_id", "user_id", name="uq_company_users_company_user"),
    )
    with op.batch_alter_table("company_users", schema=None) as batch_op:
        batch_op.create_index("ix_company_users_company_id", ["company_id"], unique=False)
        batch_op.create_index("ix_company_users_user_id", ["user_id"], unique=False)


def downgrade():
    op.drop_table("company_users")
    op.drop_table("company_appointments")
    op.drop_table("company_sales_items")
    op.drop_table("company_sales")
    op.drop_table("company_product_stock")
    op.drop_table("company_product_variants")
    op.drop_table("company_services")
    op.drop_table("company_products")
    op.drop_table("product_variants")
    op.drop_table("users")
    op.drop_table("companies")
