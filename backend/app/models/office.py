import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import INET, JSONB
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func
from sqlalchemy.types import CHAR, TypeDecorator

Base = declarative_base()


class GUID(TypeDecorator):
    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(PGUUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, uuid.UUID):
            return value if dialect.name == "postgresql" else str(value)
        if isinstance(value, str):
            try:
                parsed = uuid.UUID(value)
            except ValueError:
                return value
            return parsed if dialect.name == "postgresql" else str(parsed)
        return value

    def process_result_value(self, value, dialect):
        if value is None or isinstance(value, uuid.UUID):
            return value
        try:
            return uuid.UUID(value)
        except ValueError:
            return value


UUID_TYPE = GUID()
JSON_TYPE = JSON().with_variant(JSONB, "postgresql")
INET_TYPE = String(45).with_variant(INET, "postgresql")


def _uuid_pk():
    return Column(
        UUID_TYPE,
        primary_key=True,
        default=uuid.uuid4,
        server_default=text("gen_random_uuid()"),
    )


def _org_fk():
    return Column(UUID_TYPE, ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False, index=True)


class Organization(Base):
    __tablename__ = "organizations"

    id = _uuid_pk()
    name = Column(String(255), nullable=False)
    slug = Column(String(128), nullable=False, unique=True)
    timezone = Column(String(64), nullable=False, default="America/Los_Angeles")
    settings = Column(JSON_TYPE, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class User(Base):
    __tablename__ = "users"

    id = _uuid_pk()
    org_id = _org_fk()
    email = Column(String(255), nullable=False, unique=True)
    role = Column(String(32), nullable=False)
    first_name = Column(String(128))
    last_name = Column(String(128))
    phone = Column(String(32))
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    last_login_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    staff_profile = relationship("StaffProfile", uselist=False, back_populates="user")

    __table_args__ = (
        CheckConstraint(
            "role IN ('OWNER','MANAGER','OFFICE','CREW_LEAD','FIELD_TECH','ACCOUNTANT','CLIENT')",
            name="chk_user_role",
        ),
    )


class StaffProfile(Base):
    __tablename__ = "staff_profiles"

    id = _uuid_pk()
    org_id = _org_fk()
    user_id = Column(UUID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    employee_id = Column(String(64))
    hire_date = Column(Date)
    hourly_rate_cents = Column(Integer)
    vehicle_type = Column(String(64))
    license_plate = Column(String(32))
    emergency_contact = Column(JSON_TYPE, nullable=False, default=dict)
    certifications = Column(JSON_TYPE, nullable=False, default=list)
    notes = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    user = relationship("User", back_populates="staff_profile")

    __table_args__ = (UniqueConstraint("org_id", "user_id", name="uq_staff_profile_user"),)


class ServicePlan(Base):
    __tablename__ = "service_plans"

    id = _uuid_pk()
    org_id = _org_fk()
    name = Column(String(255), nullable=False)
    description = Column(Text)
    frequency = Column(String(16), nullable=False, default="WEEKLY")
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Client(Base):
    __tablename__ = "clients"

    id = _uuid_pk()
    org_id = _org_fk()
    stripe_customer_id = Column(String(64), unique=True)
    client_type = Column(String(16), nullable=False, default="RESIDENTIAL")
    status = Column(String(16), nullable=False, default="ACTIVE")
    first_name = Column(String(128), nullable=False)
    last_name = Column(String(128))
    company_name = Column(String(255))
    email = Column(String(255))
    phone = Column(String(32))
    referral_source = Column(String(128))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)
    canceled_at = Column(DateTime(timezone=True))

    __table_args__ = (
        CheckConstraint("client_type IN ('RESIDENTIAL','COMMERCIAL')", name="chk_client_type"),
        CheckConstraint("status IN ('ACTIVE','PAUSED','CANCELED','DELINQUENT')", name="chk_client_status"),
        Index("idx_clients_org_status", "org_id", "status"),
    )


class Location(Base):
    __tablename__ = "locations"

    id = _uuid_pk()
    org_id = _org_fk()
    client_id = Column(UUID_TYPE, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    address_line1 = Column(String(255), nullable=False)
    city = Column(String(128), nullable=False)
    state = Column(String(8), nullable=False, default="CA")
    zip_code = Column(String(10), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = _uuid_pk()
    org_id = _org_fk()
    client_id = Column(UUID_TYPE, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    location_id = Column(UUID_TYPE, ForeignKey("locations.id", ondelete="CASCADE"), nullable=False, index=True)
    plan_id = Column(UUID_TYPE, ForeignKey("service_plans.id", ondelete="SET NULL"))
    status = Column(String(16), nullable=False, default="ACTIVE")
    frequency = Column(String(16), nullable=False, default="WEEKLY")
    preferred_day = Column(String(16))
    price_per_visit_cents = Column(Integer, nullable=False, default=0)
    initial_cleanup_required = Column(Boolean, nullable=False, default=False)
    initial_cleanup_completed = Column(Boolean, nullable=False, default=False)
    cancel_reason = Column(String(128))
    canceled_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("status IN ('ACTIVE','PAUSED','CANCELED','PAST_DUE')", name="chk_subscription_status"),
        CheckConstraint(
            "preferred_day IN ('MONDAY','TUESDAY','WEDNESDAY','THURSDAY','FRIDAY','SATURDAY','SUNDAY')",
            name="chk_subscription_preferred_day",
        ),
        Index("idx_subscriptions_org_status", "org_id", "status"),
    )


class Route(Base):
    __tablename__ = "routes"

    id = _uuid_pk()
    org_id = _org_fk()
    assigned_to = Column(UUID_TYPE, ForeignKey("users.id", ondelete="SET NULL"))
    route_date = Column(Date, nullable=False)
    name = Column(String(128))
    status = Column(String(16), nullable=False, default="PLANNED")
    optimized_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("idx_routes_org_date", "org_id", "route_date"),)


class Job(Base):
    __tablename__ = "jobs"

    id = _uuid_pk()
    org_id = _org_fk()
    subscription_id = Column(UUID_TYPE, ForeignKey("subscriptions.id", ondelete="SET NULL"), index=True)
    client_id = Column(UUID_TYPE, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    location_id = Column(UUID_TYPE, ForeignKey("locations.id", ondelete="CASCADE"))
    assigned_to = Column(UUID_TYPE, ForeignKey("users.id", ondelete="SET NULL"))
    route_id = Column(UUID_TYPE, ForeignKey("routes.id", ondelete="SET NULL"), index=True)
    scheduled_date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default="SCHEDULED")
    duration_minutes = Column(Integer)
    price_cents = Column(Integer, nullable=False, default=0)
    # "metadata" is reserved on declarative classes.
    meta = Column("metadata", JSON_TYPE)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('SCHEDULED','EN_ROUTE','IN_PROGRESS','COMPLETED','SKIPPED','CANCELED')",
            name="chk_job_status",
        ),
        Index("idx_jobs_date_status", "org_id", "scheduled_date", "status"),
    )


class Shift(Base):
    __tablename__ = "shifts"

    id = _uuid_pk()
    org_id = _org_fk()
    user_id = Column(UUID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    shift_date = Column(Date, nullable=False)
    status = Column(String(16), nullable=False, default="SCHEDULED")
    start_time = Column(DateTime(timezone=True))
    end_time = Column(DateTime(timezone=True))
    # [{"start_time": iso, "end_time": iso | null}, ...]
    breaks = Column(JSON_TYPE, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (Index("idx_shifts_org_date", "org_id", "shift_date"),)


class Invoice(Base):
    __tablename__ = "invoices"

    id = _uuid_pk()
    org_id = _org_fk()
    client_id = Column(UUID_TYPE, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    # NULL means one-time, otherwise recurring.
    subscription_id = Column(UUID_TYPE, ForeignKey("subscriptions.id", ondelete="SET NULL"))
    invoice_number = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default="DRAFT")
    total_cents = Column(Integer, nullable=False, default=0)
    due_date = Column(Date)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint("status IN ('DRAFT','OPEN','OVERDUE','FAILED','PAID','VOID')", name="chk_invoice_status"),
        Index("idx_invoices_org_status", "org_id", "status"),
    )


class Payment(Base):
    __tablename__ = "payments"

    id = _uuid_pk()
    org_id = _org_fk()
    client_id = Column(UUID_TYPE, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    invoice_id = Column(UUID_TYPE, ForeignKey("invoices.id", ondelete="SET NULL"))
    amount_cents = Column(Integer, nullable=False)
    currency = Column(String(3), nullable=False, default="usd")
    status = Column(String(24), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING','SUCCEEDED','FAILED','REFUNDED','PARTIALLY_REFUNDED')",
            name="chk_payment_status",
        ),
        Index("idx_payments_org_created", "org_id", "created_at"),
    )


class PricingRule(Base):
    __tablename__ = "pricing_rules"

    id = _uuid_pk()
    org_id = _org_fk()
    name = Column(String(255), nullable=False)
    description = Column(Text)
    zone = Column(String(16))
    zip_codes = Column(JSON_TYPE, nullable=False, default=list)
    base_price_cents = Column(Integer, nullable=False, default=0)
    priority = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    __table_args__ = (CheckConstraint("zone IN ('REGULAR','PREMIUM')", name="chk_pricing_rule_zone"),)


class ChangeRequest(Base):
    __tablename__ = "change_requests"

    id = _uuid_pk()
    org_id = _org_fk()
    client_id = Column(UUID_TYPE, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    subscription_id = Column(UUID_TYPE, ForeignKey("subscriptions.id", ondelete="SET NULL"))
    request_type = Column(String(64), nullable=False)
    status = Column(String(16), nullable=False, default="OPEN")
    title = Column(String(255), nullable=False)
    description = Column(Text)
    current_value = Column(JSON_TYPE)
    requested_value = Column(JSON_TYPE)
    resolution_notes = Column(Text)
    resolved_at = Column(DateTime(timezone=True))
    resolved_by = Column(UUID_TYPE, ForeignKey("users.id", ondelete="SET NULL"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    client = relationship("Client")
    resolver = relationship("User")

    __table_args__ = (
        CheckConstraint(
            "status IN ('OPEN','IN_PROGRESS','COMPLETED','DISMISSED')",
            name="chk_change_request_status",
        ),
        Index("idx_change_requests_status", "org_id", "status"),
    )


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = _uuid_pk()
    org_id = _org_fk()
    user_id = Column(UUID_TYPE)
    action = Column(String(64), nullable=False)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(UUID_TYPE)
    details = Column(JSON_TYPE)
    ip_address = Column(INET_TYPE)
    user_agent = Column(Text)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
