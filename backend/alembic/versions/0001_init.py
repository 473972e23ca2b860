"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def _now():
    return sa.text("(CURRENT_TIMESTAMP)")


def upgrade() -> None:
    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())

    def existing_indexes(table: str) -> set[str]:
        if table not in existing_tables:
            return set()
        return {idx["name"] for idx in inspector.get_indexes(table)}

    def ensure_index(table: str, name: str, columns: list[str], **kw) -> None:
        if name not in existing_indexes(table):
            op.create_index(name, table, columns, **kw)

    if "products" not in existing_tables:
        op.create_table(
            "products",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("landing_page_url", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
        )
    ensure_index("products", "ix_products_id", ["id"])

    if "profiles" not in existing_tables:
        op.create_table(
            "profiles",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("email", sa.String(), nullable=True),
            sa.Column("username", sa.String(), nullable=True),
            sa.Column("role", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
        )
    ensure_index("profiles", "ix_profiles_id", ["id"])
    ensure_index("profiles", "ix_profiles_email", ["email"])
    ensure_index("profiles", "ix_profiles_username", ["username"], unique=True)

    if "plans" not in existing_tables:
        op.create_table(
            "plans",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("is_free", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
        )
    ensure_index("plans", "ix_plans_id", ["id"])

    if "subscriptions" not in existing_tables:
        op.create_table(
            "subscriptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=True),
            sa.Column("plan_id", sa.String(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("current_period_end", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_now(), nullable=True),
        )
    ensure_index("subscriptions", "ix_subscriptions_id", ["id"])
    ensure_index("subscriptions", "ix_subscriptions_user_id", ["user_id"])
    ensure_index("subscriptions", "ix_subscriptions_plan_id", ["plan_id"])
    ensure_index("subscriptions", "ix_subscriptions_status", ["status"])

    if "commissions" not in existing_tables:
        op.create_table(
            "commissions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("affiliate_id", sa.String(), nullable=True),
            sa.Column("product_id", sa.String(), nullable=True),
            sa.Column("status", sa.String(), nullable=True),
            sa.Column("amount", sa.Numeric(12, 2), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
        )
    ensure_index("commissions", "ix_commissions_id", ["id"])
    ensure_index("commissions", "ix_commissions_affiliate_id", ["affiliate_id"])
    ensure_index("commissions", "ix_commissions_product_id", ["product_id"])
    ensure_index("commissions", "ix_commissions_status", ["status"])

    if "coupons" not in existing_tables:
        op.create_table(
            "coupons",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("code", sa.String(), nullable=False),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("type", sa.String(), nullable=False),
            sa.Column("value", sa.Numeric(10, 2), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("is_visible_to_affiliates", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("product_id", sa.String(), nullable=True),
            sa.Column("valid_until", sa.DateTime(timezone=True), nullable=True),
            sa.Column("max_uses", sa.Integer(), nullable=True),
            sa.Column("current_uses", sa.Integer(), nullable=True),
            sa.Column("created_by", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_now(), nullable=True),
        )
    ensure_index("coupons", "ix_coupons_id", ["id"])
    ensure_index("coupons", "ix_coupons_code", ["code"])
    ensure_index("coupons", "ix_coupons_product_id", ["product_id"])

    if "affiliate_coupons" not in existing_tables:
        op.create_table(
            "affiliate_coupons",
            sa.Column("id", sa.String(), primary_key=True),
            sa.Column("affiliate_id", sa.String(), nullable=False),
            sa.Column("coupon_id", sa.String(), nullable=False),
            sa.Column("product_id", sa.String(), nullable=True),
            sa.Column("custom_code", sa.String(), nullable=False),
            sa.Column("custom_code_history", sa.Text(), nullable=True),
            sa.Column("username_at_creation", sa.String(), nullable=True),
            sa.Column("coupon_code_at_creation", sa.String(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
        )
    ensure_index("affiliate_coupons", "ix_affiliate_coupons_id", ["id"])
    ensure_index("affiliate_coupons", "ix_affiliate_coupons_affiliate_id", ["affiliate_id"])
    ensure_index("affiliate_coupons", "ix_affiliate_coupons_coupon_id", ["coupon_id"])
    ensure_index("affiliate_coupons", "ix_affiliate_coupons_product_id", ["product_id"])
    ensure_index("affiliate_coupons", "ix_affiliate_coupons_custom_code", ["custom_code"])
    # At most one live activation per affiliate and template; deleted rows are history.
    ensure_index(
        "affiliate_coupons",
        "ux_affiliate_coupons_live",
        ["affiliate_id", "coupon_id"],
        unique=True,
        sqlite_where=sa.text("deleted_at IS NULL"),
        postgresql_where=sa.text("deleted_at IS NULL"),
    )
    ensure_index(
        "affiliate_coupons",
        "ux_affiliate_coupons_live_code",
        ["affiliate_id", "product_id", "custom_code"],
        unique=True,
        sqlite_where=sa.text("deleted_at IS NULL"),
        postgresql_where=sa.text("deleted_at IS NULL"),
    )

    if "coupon_eligibility_policies" not in existing_tables:
        op.create_table(
            "coupon_eligibility_policies",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("product_id", sa.String(), nullable=False),
            sa.Column("minimum_cross_product_sales", sa.Integer(), nullable=False),
            sa.Column("requires_plan_name_contains", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_now(), nullable=True),
        )
    ensure_index("coupon_eligibility_policies", "ix_coupon_eligibility_policies_id", ["id"])
    ensure_index(
        "coupon_eligibility_policies",
        "ix_coupon_eligibility_policies_product_id",
        ["product_id"],
        unique=True,
    )

    if "activities" not in existing_tables:
        op.create_table(
            "activities",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.String(), nullable=True),
            sa.Column("activity_type", sa.String(), nullable=True),
            sa.Column("category", sa.String(), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_now()),
        )
    ensure_index("activities", "ix_activities_id", ["id"])
    ensure_index("activities", "ix_activities_user_id", ["user_id"])
    ensure_index("activities", "ix_activities_activity_type", ["activity_type"])
    ensure_index("activities", "ix_activities_category", ["category"])


def downgrade() -> None:
    for table in (
        "activities",
        "coupon_eligibility_policies",
        "affiliate_coupons",
        "coupons",
        "commissions",
        "subscriptions",
        "plans",
        "profiles",
        "products",
    ):
        op.drop_table(table)
