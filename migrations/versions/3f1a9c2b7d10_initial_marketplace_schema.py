from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "3f1a9c2b7d10"
down_revision = None
branch_labels = None
depends_on = None

ORDER_STATUSES = (
    "PENDING",
    "CONFIRMED_PAYMENT",
    "PROCESSING",
    "PROCESSED",
    "DELIVERED",
    "COMPLETED",
    "RECEIVED",
    "REPAIR_IN_PROGRESS",
    "REPAIR_SUCCEEDED",
    "REPAIR_FAILED",
    "SENT",
    "PAID",
    "ORDER_REJECTED",
    "OUT_OF_STOCK",
)
REFUND_REASONS = (
    "ITEM_OUT_OF_STOCK",
    "CANCELED_ORDER",
    "PACKAGE_NOT_RECEIVED",
    "PACKAGE_DAMAGED",
    "OTHERS",
)
REFUND_PROGRESS = (
    "IN_REVIEW", "PROCESSING", "SUCCEEDED", "REJECTED", "FAILED")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("first_name", sa.String(length=100), nullable=False),
        sa.Column("last_name", sa.String(length=100), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("STANDARD", "ADMIN", "SUPERUSER", name="userrole"),
            nullable=False,
        ),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("delivery_address", sa.Text(), nullable=True),
        sa.Column("xp", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "currencies",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("country", sa.String(length=100), nullable=False),
        sa.Column("code", sa.String(length=3), nullable=False),
        sa.Column("rate", sa.Float(), nullable=False),
    )
    op.create_index("ix_currencies_code", "currencies", ["code"], unique=True)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("subcategory", sa.String(length=100), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("condition", sa.String(length=50), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("stock_qty", sa.Integer(), nullable=False),
        sa.Column("image_urls", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_products_title", "products", ["title"])

    op.create_table(
        "gamedownloads",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("platform", sa.String(length=50), nullable=False),
        sa.Column("image_url", sa.String(length=255), nullable=True),
        sa.Column("install_type", sa.String(length=50), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("home_service", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "gamerents",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("image_url", sa.String(length=255), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("sub_category", sa.String(length=100), nullable=True),
        sa.Column("info", sa.Text(), nullable=True),
        sa.Column("rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "gameswaps",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("image_url", sa.String(length=255), nullable=True),
        sa.Column("platform", sa.String(length=50), nullable=False),
        sa.Column("condition", sa.String(length=50), nullable=True),
        sa.Column("swap_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("accepted_titles", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_table(
        "gamerepairs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("image_url", sa.String(length=255), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=False),
        sa.Column("game", sa.String(length=200), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "cart_items",
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "product_id",
            sa.Integer(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.CheckConstraint("quantity > 0", name="check_quantity_positive"),
    )

    op.create_table(
        "purchase_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("products", sa.JSON(), nullable=False),
        sa.Column("total_amount", sa.String(length=50), nullable=False),
    )
    op.create_index(
        "ix_purchase_records_user_id", "purchase_records", ["user_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("user_info", sa.JSON(), nullable=False),
        sa.Column("pay_on_delivery", sa.JSON(), nullable=True),
        sa.Column("items", sa.JSON(), nullable=True),
        sa.Column("product", sa.JSON(), nullable=True),
        sa.Column("payment", sa.JSON(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(*ORDER_STATUSES, name="orderstatus"),
            nullable=False,
        ),
        sa.Column("to_expire", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(items IS NULL) <> (product IS NULL)",
            name="ck_order_single_content",
        ),
    )
    op.create_index("ix_orders_user_id", "orders", ["user_id"])
    op.create_index("ix_orders_to_expire", "orders", ["to_expire"])

    op.create_table(
        "refunds",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("user_info", sa.JSON(), nullable=False),
        sa.Column("amount", sa.String(length=50), nullable=False),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("prod_id", sa.String(length=64), nullable=True),
        sa.Column(
            "reason",
            sa.Enum(*REFUND_REASONS, name="refundreason"),
            nullable=False,
        ),
        sa.Column("other_reason", sa.Text(), nullable=True),
        sa.Column("image_urls", sa.JSON(), nullable=False),
        sa.Column(
            "progress",
            sa.Enum(*REFUND_PROGRESS, name="refundprogress"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("INCOMPLETE", "COMPLETED", name="refundstatus"),
            nullable=False,
        ),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "order_id", "prod_id", name="uq_refund_order_prod"),
    )
    op.create_index("ix_refunds_user_id", "refunds", ["user_id"])
    op.create_index("ix_refunds_order_id", "refunds", ["order_id"])
    # Only one whole-order refund; NULL prod_ids escape the constraint above
    op.create_index(
        "uq_refund_whole_order",
        "refunds",
        ["order_id"],
        unique=True,
        sqlite_where=sa.text("prod_id IS NULL"),
        postgresql_where=sa.text("prod_id IS NULL"),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "actor_id",
            sa.Integer(),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("actor_role", sa.String(length=20), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("target_type", sa.String(length=50), nullable=True),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("ip", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=500), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])


def downgrade():
    op.drop_index("ix_audit_logs_created_at", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("uq_refund_whole_order", table_name="refunds")
    op.drop_index("ix_refunds_order_id", table_name="refunds")
    op.drop_index("ix_refunds_user_id", table_name="refunds")
    op.drop_table("refunds")
    op.drop_index("ix_orders_to_expire", table_name="orders")
    op.drop_index("ix_orders_user_id", table_name="orders")
    op.drop_table("orders")
    op.drop_index(
        "ix_purchase_records_user_id", table_name="purchase_records")
    op.drop_table("purchase_records")
    op.drop_table("cart_items")
    op.drop_table("gamerepairs")
    op.drop_table("gameswaps")
    op.drop_table("gamerents")
    op.drop_table("gamedownloads")
    op.drop_index("ix_products_title", table_name="products")
    op.drop_table("products")
    op.drop_index("ix_currencies_code", table_name="currencies")
    op.drop_table("currencies")
    op.drop_index("ix_users_username", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
