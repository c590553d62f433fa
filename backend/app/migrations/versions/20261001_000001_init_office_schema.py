"""init office schema

Revision ID: 20261001_000001
Revises:
Create Date: 2026-10-01 09:00:00

Organizations, staff, clients, locations, subscriptions, routes, jobs,
shifts, invoices, payments, pricing rules, change requests, activity logs.
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "20261001_000001"
down_revision = None
branch_labels = None
depends_on = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=True),
        primary_key=True,
        nullable=False,
        server_default=sa.text("gen_random_uuid()"),
    )


def _org() -> sa.Column:
    return sa.Column(
        "org_id",
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )


def _created() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def _updated() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))


def _fk(name: str, target: str, ondelete: str, nullable: bool = True) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto")

    op.create_table(
        "organizations",
        _id(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(128), nullable=False, unique=True),
        sa.Column("timezone", sa.String(64), nullable=False, server_default=sa.text("'America/Los_Angeles'")),
        sa.Column("settings", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _created(),
        _updated(),
    )

    op.create_table(
        "users",
        _id(),
        _org(),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(32), nullable=False),
        sa.Column("first_name", sa.String(128)),
        sa.Column("last_name", sa.String(128)),
        sa.Column("phone", sa.String(32)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
        _created(),
        _updated(),
        sa.CheckConstraint(
            "role IN ('OWNER','MANAGER','OFFICE','CREW_LEAD','FIELD_TECH','ACCOUNTANT','CLIENT')",
            name="chk_user_role",
        ),
    )
    op.create_index("ix_users_org_id", "users", ["org_id"])

    op.create_table(
        "staff_profiles",
        _id(),
        _org(),
        _fk("user_id", "users.id", "CASCADE", nullable=False),
        sa.Column("employee_id", sa.String(64)),
        sa.Column("hire_date", sa.Date()),
        sa.Column("hourly_rate_cents", sa.Integer()),
        sa.Column("vehicle_type", sa.String(64)),
        sa.Column("license_plate", sa.String(32)),
        sa.Column("emergency_contact", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("certifications", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("notes", sa.Text()),
        _created(),
        _updated(),
        sa.UniqueConstraint("org_id", "user_id", name="uq_staff_profile_user"),
    )
    op.create_index("ix_staff_profiles_org_id", "staff_profiles", ["org_id"])

    op.create_table(
        "service_plans",
        _id(),
        _org(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("frequency", sa.String(16), nullable=False, server_default=sa.text("'WEEKLY'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created(),
    )
    op.create_index("ix_service_plans_org_id", "service_plans", ["org_id"])

    op.create_table(
        "clients",
        _id(),
        _org(),
        sa.Column("stripe_customer_id", sa.String(64), unique=True),
        sa.Column("client_type", sa.String(16), nullable=False, server_default=sa.text("'RESIDENTIAL'")),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("first_name", sa.String(128), nullable=False),
        sa.Column("last_name", sa.String(128)),
        sa.Column("company_name", sa.String(255)),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(32)),
        sa.Column("referral_source", sa.String(128)),
        _created(),
        _updated(),
        sa.Column("canceled_at", sa.DateTime(timezone=True)),
        sa.CheckConstraint("client_type IN ('RESIDENTIAL','COMMERCIAL')", name="chk_client_type"),
        sa.CheckConstraint("status IN ('ACTIVE','PAUSED','CANCELED','DELINQUENT')", name="chk_client_status"),
    )
    op.create_index("ix_clients_org_id", "clients", ["org_id"])
    op.create_index("idx_clients_org_status", "clients", ["org_id", "status"])

    op.create_table(
        "locations",
        _id(),
        _org(),
        _fk("client_id", "clients.id", "CASCADE", nullable=False),
        sa.Column("address_line1", sa.String(255), nullable=False),
        sa.Column("city", sa.String(128), nullable=False),
        sa.Column("state", sa.String(8), nullable=False, server_default=sa.text("'CA'")),
        sa.Column("zip_code", sa.String(10), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created(),
    )
    op.create_index("ix_locations_org_id", "locations", ["org_id"])
    op.create_index("ix_locations_client_id", "locations", ["client_id"])

    op.create_table(
        "subscriptions",
        _id(),
        _org(),
        _fk("client_id", "clients.id", "CASCADE", nullable=False),
        _fk("location_id", "locations.id", "CASCADE", nullable=False),
        _fk("plan_id", "service_plans.id", "SET NULL"),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("frequency", sa.String(16), nullable=False, server_default=sa.text("'WEEKLY'")),
        sa.Column("preferred_day", sa.String(16)),
        sa.Column("price_per_visit_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("initial_cleanup_required", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("initial_cleanup_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("cancel_reason", sa.String(128)),
        sa.Column("canceled_at", sa.DateTime(timezone=True)),
        _created(),
        sa.CheckConstraint("status IN ('ACTIVE','PAUSED','CANCELED','PAST_DUE')", name="chk_subscription_status"),
        sa.CheckConstraint(
            "preferred_day IN ('MONDAY','TUESDAY','WEDNESDAY','THURSDAY','FRIDAY','SATURDAY','SUNDAY')",
            name="chk_subscription_preferred_day",
        ),
    )
    op.create_index("ix_subscriptions_org_id", "subscriptions", ["org_id"])
    op.create_index("ix_subscriptions_client_id", "subscriptions", ["client_id"])
    op.create_index("ix_subscriptions_location_id", "subscriptions", ["location_id"])
    op.create_index("idx_subscriptions_org_status", "subscriptions", ["org_id", "status"])

    op.create_table(
        "routes",
        _id(),
        _org(),
        _fk("assigned_to", "users.id", "SET NULL"),
        sa.Column("route_date", sa.Date(), nullable=False),
        sa.Column("name", sa.String(128)),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'PLANNED'")),
        sa.Column("optimized_at", sa.DateTime(timezone=True)),
        _created(),
    )
    op.create_index("ix_routes_org_id", "routes", ["org_id"])
    op.create_index("idx_routes_org_date", "routes", ["org_id", "route_date"])

    op.create_table(
        "jobs",
        _id(),
        _org(),
        _fk("subscription_id", "subscriptions.id", "SET NULL"),
        _fk("client_id", "clients.id", "CASCADE", nullable=False),
        _fk("location_id", "locations.id", "CASCADE"),
        _fk("assigned_to", "users.id", "SET NULL"),
        _fk("route_id", "routes.id", "SET NULL"),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'SCHEDULED'")),
        sa.Column("duration_minutes", sa.Integer()),
        sa.Column("price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("metadata", postgresql.JSONB()),
        _created(),
        sa.CheckConstraint(
            "status IN ('SCHEDULED','EN_ROUTE','IN_PROGRESS','COMPLETED','SKIPPED','CANCELED')",
            name="chk_job_status",
        ),
    )
    op.create_index("ix_jobs_org_id", "jobs", ["org_id"])
    op.create_index("ix_jobs_subscription_id", "jobs", ["subscription_id"])
    op.create_index("ix_jobs_client_id", "jobs", ["client_id"])
    op.create_index("ix_jobs_route_id", "jobs", ["route_id"])
    op.create_index("idx_jobs_date_status", "jobs", ["org_id", "scheduled_date", "status"])

    op.create_table(
        "shifts",
        _id(),
        _org(),
        _fk("user_id", "users.id", "CASCADE", nullable=False),
        sa.Column("shift_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'SCHEDULED'")),
        sa.Column("start_time", sa.DateTime(timezone=True)),
        sa.Column("end_time", sa.DateTime(timezone=True)),
        sa.Column("breaks", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        _created(),
    )
    op.create_index("ix_shifts_org_id", "shifts", ["org_id"])
    op.create_index("idx_shifts_org_date", "shifts", ["org_id", "shift_date"])

    op.create_table(
        "invoices",
        _id(),
        _org(),
        _fk("client_id", "clients.id", "CASCADE", nullable=False),
        _fk("subscription_id", "subscriptions.id", "SET NULL"),
        sa.Column("invoice_number", sa.String(32), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("due_date", sa.Date()),
        _created(),
        sa.CheckConstraint("status IN ('DRAFT','OPEN','OVERDUE','FAILED','PAID','VOID')", name="chk_invoice_status"),
    )
    op.create_index("ix_invoices_org_id", "invoices", ["org_id"])
    op.create_index("ix_invoices_client_id", "invoices", ["client_id"])
    op.create_index("idx_invoices_org_status", "invoices", ["org_id", "status"])

    op.create_table(
        "payments",
        _id(),
        _org(),
        _fk("client_id", "clients.id", "CASCADE", nullable=False),
        _fk("invoice_id", "invoices.id", "SET NULL"),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'usd'")),
        sa.Column("status", sa.String(24), nullable=False),
        _created(),
        sa.CheckConstraint(
            "status IN ('PENDING','SUCCEEDED','FAILED','REFUNDED','PARTIALLY_REFUNDED')",
            name="chk_payment_status",
        ),
    )
    op.create_index("ix_payments_org_id", "payments", ["org_id"])
    op.create_index("ix_payments_client_id", "payments", ["client_id"])
    op.create_index("idx_payments_org_created", "payments", ["org_id", "created_at"])

    op.create_table(
        "pricing_rules",
        _id(),
        _org(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("zone", sa.String(16)),
        sa.Column("zip_codes", postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("base_price_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("priority", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _created(),
        _updated(),
        sa.CheckConstraint("zone IN ('REGULAR','PREMIUM')", name="chk_pricing_rule_zone"),
    )
    op.create_index("ix_pricing_rules_org_id", "pricing_rules", ["org_id"])

    op.create_table(
        "change_requests",
        _id(),
        _org(),
        _fk("client_id", "clients.id", "CASCADE", nullable=False),
        _fk("subscription_id", "subscriptions.id", "SET NULL"),
        sa.Column("request_type", sa.String(64), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default=sa.text("'OPEN'")),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("current_value", postgresql.JSONB()),
        sa.Column("requested_value", postgresql.JSONB()),
        sa.Column("resolution_notes", sa.Text()),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
        _fk("resolved_by", "users.id", "SET NULL"),
        _created(),
        _updated(),
        sa.CheckConstraint(
            "status IN ('OPEN','IN_PROGRESS','COMPLETED','DISMISSED')",
            name="chk_change_request_status",
        ),
    )
    op.create_index("ix_change_requests_org_id", "change_requests", ["org_id"])
    op.create_index("ix_change_requests_client_id", "change_requests", ["client_id"])
    op.create_index("idx_change_requests_status", "change_requests", ["org_id", "status"])

    op.create_table(
        "activity_logs",
        _id(),
        _org(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True)),
        sa.Column("action", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True)),
        sa.Column("details", postgresql.JSONB()),
        sa.Column("ip_address", postgresql.INET()),
        sa.Column("user_agent", sa.Text()),
        _created(),
    )
    op.create_index("ix_activity_logs_org_id", "activity_logs", ["org_id"])


def downgrade() -> None:
    for table in (
        "activity_logs",
        "change_requests",
        "pricing_rules",
        "payments",
        "invoices",
        "shifts",
        "jobs",
        "routes",
        "subscriptions",
        "locations",
        "clients",
        "service_plans",
        "staff_profiles",
        "users",
        "organizations",
    ):
        op.drop_table(table)
