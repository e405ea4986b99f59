"""plan catalog, subscriptions and seat usage

Revision ID: 202610180001
Revises:
Create Date: 2026-10-18
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "202610180001"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(12, 2)


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=True),
        sa.Column("ts", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actor_id", sa.Integer(), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("event_id"),
    )
    op.create_index("ix_events_event_type", "events", ["event_type"])
    op.create_index("ix_events_company_id", "events", ["company_id"])
    op.create_index("ix_events_ts", "events", ["ts"])
    op.create_index("ix_events_actor_id", "events", ["actor_id"])

    op.create_table(
        "plan_types",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("type_name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_plan_types_type_name", "plan_types", ["type_name"])
    op.create_index("ix_plan_types_is_active", "plan_types", ["is_active"])
    op.create_index("ix_plan_types_created_at", "plan_types", ["created_at"])

    op.create_table(
        "plans",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("plan_type_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("default_amount", MONEY, nullable=False),
        sa.Column("duration", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["plan_type_id"], ["plan_types.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("default_amount >= 0", name="ck_plans_default_amount_non_negative"),
    )
    op.create_index("ix_plans_plan_type_id", "plans", ["plan_type_id"])
    op.create_index("ix_plans_name", "plans", ["name"])
    op.create_index("ix_plans_duration", "plans", ["duration"])
    op.create_index("ix_plans_created_at", "plans", ["created_at"])

    op.create_table(
        "seat_limit_configs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("plan_type_id", sa.Integer(), nullable=False),
        sa.Column("scope", sa.String(length=20), nullable=False),
        sa.Column("max_seats", sa.Integer(), nullable=False),
        sa.Column("extra_seat_price", MONEY, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["plan_type_id"], ["plan_types.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plan_type_id", "scope", name="uq_seat_limit_configs_plan_type_scope"),
        sa.CheckConstraint("max_seats > 0", name="ck_seat_limit_configs_max_seats_positive"),
    )
    op.create_index("ix_seat_limit_configs_plan_type_id", "seat_limit_configs", ["plan_type_id"])

    op.create_table(
        "company_subscriptions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("company_id", sa.Integer(), nullable=False),
        sa.Column("plan_id", sa.Integer(), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("additional_user_amount", MONEY, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["plan_id"], ["plans.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("end_date > start_date", name="ck_company_subscriptions_date_range"),
    )
    op.create_index("ix_company_subscriptions_company_id", "company_subscriptions", ["company_id"])
    op.create_index("ix_company_subscriptions_plan_id", "company_subscriptions", ["plan_id"])
    op.create_index("ix_company_subscriptions_status", "company_subscriptions", ["status"])
    op.create_index("ix_company_subscriptions_created_at", "company_subscriptions", ["created_at"])
    op.create_index(
        "uq_company_subscriptions_one_active",
        "company_subscriptions",
        ["company_id"],
        unique=True,
        postgresql_where=sa.text("status = 'active'"),
        sqlite_where=sa.text("status = 'active'"),
    )

    op.create_table(
        "seat_usages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("subscription_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("scope", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["subscription_id"], ["company_subscriptions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subscription_id", "user_id", name="uq_seat_usages_subscription_user"),
    )
    op.create_index("ix_seat_usages_subscription_id", "seat_usages", ["subscription_id"])
    op.create_index("ix_seat_usages_user_id", "seat_usages", ["user_id"])
    op.create_index("ix_seat_usages_subscription_scope", "seat_usages", ["subscription_id", "scope"])

    op.create_table(
        "price_overrides",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("subscription_id", sa.Integer(), nullable=False),
        sa.Column("scope", sa.String(length=20), nullable=False),
        sa.Column("extra_seat_price", MONEY, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["subscription_id"], ["company_subscriptions.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("subscription_id", "scope", name="uq_price_overrides_subscription_scope"),
    )
    op.create_index("ix_price_overrides_subscription_id", "price_overrides", ["subscription_id"])

    op.create_table(
        "plan_cancellations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("subscription_id", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("details", sa.String(), nullable=True),
        sa.Column("cancelled_by_user_id", sa.Integer(), nullable=True),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["subscription_id"], ["company_subscriptions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_plan_cancellations_subscription_id", "plan_cancellations", ["subscription_id"])
    op.create_index("ix_plan_cancellations_cancelled_by_user_id", "plan_cancellations", ["cancelled_by_user_id"])
    op.create_index("ix_plan_cancellations_cancelled_at", "plan_cancellations", ["cancelled_at"])

    op.create_table(
        "subscription_history",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("subscription_id", sa.Integer(), nullable=False),
        sa.Column("previous_plan_id", sa.Integer(), nullable=True),
        sa.Column("new_plan_id", sa.Integer(), nullable=True),
        sa.Column("change_type", sa.String(length=20), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("changed_by_user_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["subscription_id"], ["company_subscriptions.id"]),
        sa.ForeignKeyConstraint(["previous_plan_id"], ["plans.id"]),
        sa.ForeignKeyConstraint(["new_plan_id"], ["plans.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscription_history_subscription_id", "subscription_history", ["subscription_id"])
    op.create_index("ix_subscription_history_change_type", "subscription_history", ["change_type"])
    op.create_index("ix_subscription_history_changed_at", "subscription_history", ["changed_at"])

    op.create_table(
        "plan_reports",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("plan_type_id", sa.Integer(), nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["plan_type_id"], ["plan_types.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_plan_reports_plan_type_id", "plan_reports", ["plan_type_id"])
    op.create_index("ix_plan_reports_template_id", "plan_reports", ["template_id"])


def downgrade() -> None:
    op.drop_table("plan_reports")
    op.drop_table("subscription_history")
    op.drop_table("plan_cancellations")
    op.drop_table("price_overrides")
    op.drop_table("seat_usages")
    op.drop_index("uq_company_subscriptions_one_active", table_name="company_subscriptions")
    op.drop_table("company_subscriptions")
    op.drop_table("seat_limit_configs")
    op.drop_table("plans")
    op.drop_table("plan_types")
    op.drop_table("events")
