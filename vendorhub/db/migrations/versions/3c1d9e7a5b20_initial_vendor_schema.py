"""Initial vendor platform schema with row-level security.

- vendors (tenant registry), categories (global or vendor-authored)
- customers, leads
- suppliers, supplier_payments, ledger_transactions, expenses
- vendor_products, stock_movements
- coupons, coupon_usages

Every policy reads the session variables stamped by the scoped executor:
app.tenant_id and app.role. An empty app.tenant_id matches no rows.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1d9e7a5b20"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

IS_ADMIN = "current_setting('app.role', true) = 'admin'"
CURRENT_TENANT = "NULLIF(current_setting('app.tenant_id', true), '')"

TENANT_TABLES = [
    "customers",
    "leads",
    "suppliers",
    "supplier_payments",
    "ledger_transactions",
    "expenses",
    "vendor_products",
    "stock_movements",
    "coupons",
    "coupon_usages",
]


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def _tenant_column() -> sa.Column:
    return sa.Column("tenant_id", sa.Text(), nullable=False)


def upgrade() -> None:
    op.create_table(
        "vendors",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("business_name", sa.Text(), nullable=False),
        sa.Column("owner_name", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("subcategory", sa.Text(), nullable=True),
        sa.Column("custom_category", sa.Text(), nullable=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        *_timestamps(),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Text(), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("logo", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Text(), nullable=False),
        sa.Column("is_global", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_categories_created_by", "categories", ["created_by"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("city", sa.Text(), nullable=True),
        sa.Column("company", sa.Text(), nullable=True),
        sa.Column("customer_type", sa.Text(), nullable=False, server_default="walk-in"),
        sa.Column("membership_type", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "leads",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("phone", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("company", sa.Text(), nullable=True),
        sa.Column("source", sa.Text(), nullable=False, server_default="offline"),
        sa.Column("status", sa.Text(), nullable=False, server_default="new"),
        sa.Column("priority", sa.Text(), nullable=False, server_default="medium"),
        sa.Column("lead_score", sa.Integer(), nullable=True),
        sa.Column("assigned_employee_id", sa.Text(), nullable=True),
        sa.Column("estimated_budget", sa.Integer(), nullable=True),
        sa.Column("next_follow_up_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "suppliers",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("business_name", sa.Text(), nullable=True),
        sa.Column("phone", sa.Text(), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("category", sa.Text(), nullable=False, server_default="product"),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        sa.Column("total_purchases", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("outstanding_balance", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_transaction_date", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("outstanding_balance >= 0", name="outstanding_balance_non_negative"),
    )

    op.create_table(
        "supplier_payments",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("supplier_id", sa.Text(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("applied_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_mode", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["supplier_id"], ["suppliers.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_supplier_payments_supplier_id", "supplier_payments", ["supplier_id"])

    op.create_table(
        "ledger_transactions",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("customer_id", sa.Text(), nullable=True),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("transaction_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("category", sa.Text(), nullable=False, server_default="other"),
        sa.Column("payment_method", sa.Text(), nullable=False, server_default="cash"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("reference_type", sa.Text(), nullable=True),
        sa.Column("reference_id", sa.Text(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
        sa.CheckConstraint("type IN ('in', 'out')", name="type_in_out"),
    )
    op.create_index("ix_ledger_transactions_customer_id", "ledger_transactions", ["customer_id"])
    op.create_index(
        "ix_ledger_transactions_reference", "ledger_transactions", ["reference_type", "reference_id"]
    )

    op.create_table(
        "expenses",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("title", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("expense_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("payment_type", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="paid"),
        sa.Column("supplier_id", sa.Text(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("ledger_transaction_id", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["ledger_transaction_id"], ["ledger_transactions.id"], ondelete="SET NULL"),
    )

    op.create_table(
        "vendor_products",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("brand", sa.Text(), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False),
        sa.Column("unit", sa.Text(), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("stock >= 0", name="stock_non_negative"),
    )

    op.create_table(
        "stock_movements",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("product_id", sa.Text(), nullable=False),
        sa.Column("movement_type", sa.Text(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("previous_stock", sa.Integer(), nullable=False),
        sa.Column("new_stock", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("reference_type", sa.Text(), nullable=True),
        sa.Column("reference_id", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["product_id"], ["vendor_products.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_stock_movements_product_id", "stock_movements", ["product_id"])

    op.create_table(
        "coupons",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("code", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("discount_type", sa.Text(), nullable=False),
        sa.Column("discount_value", sa.Integer(), nullable=False),
        sa.Column("min_order_amount", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expiry_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_usage", sa.Integer(), nullable=False),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "code", name="uq_coupons_tenant_code"),
    )

    op.create_table(
        "coupon_usages",
        sa.Column("id", sa.Text(), primary_key=True),
        _tenant_column(),
        sa.Column("coupon_id", sa.Text(), nullable=False),
        sa.Column("customer_id", sa.Text(), nullable=False),
        sa.Column("order_id", sa.Text(), nullable=True),
        sa.Column("booking_id", sa.Text(), nullable=True),
        sa.Column("discount_amount", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_coupon_usages_coupon_id", "coupon_usages", ["coupon_id"])

    for tbl in TENANT_TABLES:
        op.create_index(f"ix_{tbl}_tenant_id", tbl, ["tenant_id"])

    # Row-level security. FORCE applies the policies to the table owner too.
    for tbl in TENANT_TABLES:
        op.execute(f"ALTER TABLE {tbl} ENABLE ROW LEVEL SECURITY;")
        op.execute(f"ALTER TABLE {tbl} FORCE ROW LEVEL SECURITY;")
        op.execute(
            f"""
            CREATE POLICY {tbl}_tenant_isolation ON {tbl}
            USING ({IS_ADMIN} OR tenant_id = {CURRENT_TENANT})
            WITH CHECK ({IS_ADMIN} OR tenant_id = {CURRENT_TENANT});
            """
        )

    op.execute("ALTER TABLE vendors ENABLE ROW LEVEL SECURITY;")
    op.execute("ALTER TABLE vendors FORCE ROW LEVEL SECURITY;")
    op.execute(
        f"""
        CREATE POLICY vendors_self_access ON vendors
        USING ({IS_ADMIN} OR id = {CURRENT_TENANT})
        WITH CHECK ({IS_ADMIN} OR id = {CURRENT_TENANT});
        """
    )

    op.execute("ALTER TABLE categories ENABLE ROW LEVEL SECURITY;")
    op.execute("ALTER TABLE categories FORCE ROW LEVEL SECURITY;")
    op.execute(
        f"""
        CREATE POLICY categories_read ON categories FOR SELECT
        USING ({IS_ADMIN} OR is_global OR created_by = {CURRENT_TENANT});
        """
    )
    for action in ("INSERT", "UPDATE", "DELETE"):
        clause = "WITH CHECK" if action == "INSERT" else "USING"
        op.execute(
            f"""
            CREATE POLICY categories_{action.lower()} ON categories FOR {action}
            {clause} ({IS_ADMIN} OR (NOT is_global AND created_by = {CURRENT_TENANT}));
            """
        )


def downgrade() -> None:
    for action in ("read", "insert", "update", "delete"):
        op.execute(f"DROP POLICY IF EXISTS categories_{action} ON categories;")
    op.execute("DROP POLICY IF EXISTS vendors_self_access ON vendors;")
    for tbl in TENANT_TABLES:
        op.execute(f"DROP POLICY IF EXISTS {tbl}_tenant_isolation ON {tbl};")

    op.drop_table("coupon_usages")
    op.drop_table("coupons")
    op.drop_table("stock_movements")
    op.drop_table("vendor_products")
    op.drop_table("expenses")
    op.drop_table("ledger_transactions")
    op.drop_table("supplier_payments")
    op.drop_table("suppliers")
    op.drop_table("leads")
    op.drop_table("customers")
    op.drop_table("categories")
    op.drop_table("vendors")
