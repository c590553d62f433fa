"""Office dashboard read model.

Fan-out: every source read runs concurrently in its own worker thread and
session. Fan-in: once all rows are back the snapshot is reduced in memory by
plain functions. The result is a best-effort snapshot; the reads are not
taken from one transaction.
"""

from __future__ import annotations

import asyncio
import calendar
import logging
from collections import Counter
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from app.core.permissions import FIELD_ROLES
from app.models.office import (
    Client,
    Invoice,
    Job,
    Location,
    Payment,
    Route,
    Shift,
    Subscription,
    User,
)
from app.schemas.dashboard import (
    CancelationReason,
    ChartData,
    DailyNewVsLost,
    DailySales,
    DailyValue,
    DashboardMetrics,
    MetricValues,
    ReferralSource,
    StatusCardCounts,
)
from app.services.unassigned_locations import find_orphaned_locations, find_unassigned_subscriptions

logger = logging.getLogger(__name__)

RESIDENTIAL = "RESIDENTIAL"
COMMERCIAL = "COMMERCIAL"
OPEN_JOB_STATUSES = ("SCHEDULED", "EN_ROUTE", "IN_PROGRESS")

CANCEL_REASON_COLORS = {
    "No response": "#94a3b8",
    "Moved": "#f59e0b",
    "Dog deceased": "#ef4444",
    "Got a fence/yard job done": "#10b981",
    "DIY attitude paid off": "#3b82f6",
    "Expensive": "#8b5cf6",
    "Inactive": "#6b7280",
    "Gift certificate used up": "#ec4899",
    "Miss payment": "#dc2626",
    "Slow Service Rolled": "#f97316",
    "Client Fired by Vendor": "#be123c",
    "Started With Competitor": "#7c3aed",
    "Other": "#64748b",
}
DEFAULT_REASON_COLOR = "#64748b"

# (status, recurring) pairs behind the invoice status cards.
INVOICE_COUNT_KEYS = (
    ("OPEN", False),
    ("OPEN", True),
    ("OVERDUE", False),
    ("OVERDUE", True),
    ("FAILED", False),
    ("FAILED", True),
    ("DRAFT", False),
    ("DRAFT", True),
)


class DashboardDataError(Exception):
    """A source read failed; the dashboard has no partial-result mode."""


@dataclass(frozen=True)
class DashboardWindow:
    today: date
    month_start: date
    month_end: date
    days: tuple[date, ...]

    @classmethod
    def for_today(cls, today: date, window_days: int = 30) -> "DashboardWindow":
        last_day = calendar.monthrange(today.year, today.month)[1]
        days = tuple(today - timedelta(days=offset) for offset in range(window_days - 1, -1, -1))
        return cls(
            today=today,
            month_start=today.replace(day=1),
            month_end=today.replace(day=last_day),
            days=days,
        )

    @property
    def window_start(self) -> date:
        return self.days[0]

    @property
    def payments_since(self) -> datetime:
        start = min(self.window_start, self.month_start)
        return datetime.combine(start, time.min, tzinfo=timezone.utc)

    @property
    def payments_until(self) -> datetime:
        return datetime.combine(self.today + timedelta(days=1), time.min, tzinfo=timezone.utc)


@dataclass
class DashboardSources:
    active_subscriptions: list = field(default_factory=list)
    subscription_jobs: list = field(default_factory=list)
    invoice_counts: dict = field(default_factory=dict)
    open_jobs: int = 0
    unoptimized_routes: int = 0
    shifts: list = field(default_factory=list)
    staff: list = field(default_factory=list)
    payments: list = field(default_factory=list)
    clients: list = field(default_factory=list)
    subscriptions: list = field(default_factory=list)
    month_jobs: list = field(default_factory=list)
    active_locations: list = field(default_factory=list)


# ---------------------------------------------------------------------------
# Source reads (one session each)
# ---------------------------------------------------------------------------


def _dialect_name(db: Session) -> str:
    dialect = getattr(getattr(db, "bind", None), "dialect", None)
    return (getattr(dialect, "name", "") or "").lower()


def _as_db_dt(db: Session, dt: datetime) -> datetime:
    dt_utc = dt.astimezone(timezone.utc)
    if _dialect_name(db) == "sqlite":
        return dt_utc.replace(tzinfo=None)
    return dt_utc


def _read_active_subscriptions(db: Session, org_id: str, window: DashboardWindow) -> list:
    return db.execute(
        select(
            Subscription.id,
            Subscription.initial_cleanup_required,
            Subscription.initial_cleanup_completed,
            Subscription.location_id,
        )
        .where(Subscription.org_id == org_id)
        .where(Subscription.status == "ACTIVE")
        .order_by(Subscription.created_at, Subscription.id)
    ).all()


def _read_subscription_jobs(db: Session, org_id: str, window: DashboardWindow) -> list:
    return db.execute(
        select(Job.subscription_id, Job.route_id, Job.status, Job.scheduled_date)
        .where(Job.org_id == org_id)
        .where(Job.subscription_id.is_not(None))
    ).all()


def _invoice_counter(status: str, recurring: bool) -> Callable[[Session, str, DashboardWindow], int]:
    def _read(db: Session, org_id: str, window: DashboardWindow) -> int:
        stmt = (
            select(func.count(Invoice.id))
            .where(Invoice.org_id == org_id)
            .where(Invoice.status == status)
        )
        if recurring:
            stmt = stmt.where(Invoice.subscription_id.is_not(None))
        else:
            stmt = stmt.where(Invoice.subscription_id.is_(None))
        return int(db.execute(stmt).scalar_one() or 0)

    return _read


def _read_open_jobs(db: Session, org_id: str, window: DashboardWindow) -> int:
    return int(
        db.execute(
            select(func.count(Job.id))
            .where(Job.org_id == org_id)
            .where(Job.scheduled_date == window.today)
            .where(Job.status.in_(OPEN_JOB_STATUSES))
        ).scalar_one()
        or 0
    )


def _read_unoptimized_routes(db: Session, org_id: str, window: DashboardWindow) -> int:
    return int(
        db.execute(
            select(func.count(Route.id))
            .where(Route.org_id == org_id)
            .where(Route.route_date == window.today)
            .where(Route.optimized_at.is_(None))
        ).scalar_one()
        or 0
    )


def _read_shifts(db: Session, org_id: str, window: DashboardWindow) -> list:
    return db.execute(
        select(Shift.id, Shift.status, Shift.user_id, Shift.start_time, Shift.end_time, Shift.breaks)
        .where(Shift.org_id == org_id)
        .where(Shift.shift_date == window.today)
    ).all()


def _read_staff(db: Session, org_id: str, window: DashboardWindow) -> list:
    return db.execute(
        select(User.id, User.is_active)
        .where(User.org_id == org_id)
        .where(User.role.in_(FIELD_ROLES))
    ).all()


def _read_payments(db: Session, org_id: str, window: DashboardWindow) -> list:
    return db.execute(
        select(Payment.id, Payment.amount_cents, Payment.created_at, Client.client_type)
        .join(Client, Client.id == Payment.client_id)
        .where(Payment.org_id == org_id)
        .where(Payment.status == "SUCCEEDED")
        .where(Payment.created_at >= _as_db_dt(db, window.payments_since))
        .where(Payment.created_at < _as_db_dt(db, window.payments_until))
        .order_by(Payment.created_at, Payment.id)
    ).all()


def _read_clients(db: Session, org_id: str, window: DashboardWindow) -> list:
    return db.execute(
        select(
            Client.id,
            Client.status,
            Client.client_type,
            Client.referral_source,
            Client.created_at,
            Client.canceled_at,
        )
        .where(Client.org_id == org_id)
        .order_by(Client.created_at, Client.id)
    ).all()


def _read_subscriptions(db: Session, org_id: str, window: DashboardWindow) -> list:
    return db.execute(
        select(
            Subscription.id,
            Subscription.status,
            Subscription.client_id,
            Subscription.cancel_reason,
            Subscription.canceled_at,
            Subscription.created_at,
            Client.client_type,
        )
        .join(Client, Client.id == Subscription.client_id)
        .where(Subscription.org_id == org_id)
        .order_by(Subscription.created_at, Subscription.id)
    ).all()


def _read_month_jobs(db: Session, org_id: str, window: DashboardWindow) -> list:
    return db.execute(
        select(
            Job.id,
            Job.status,
            Job.scheduled_date,
            Job.duration_minutes,
            Job.assigned_to,
            Job.route_id,
            Client.client_type,
        )
        .join(Client, Client.id == Job.client_id)
        .where(Job.org_id == org_id)
        .where(Job.scheduled_date >= window.month_start)
        .where(Job.scheduled_date <= window.month_end)
    ).all()


def _read_active_locations(db: Session, org_id: str, window: DashboardWindow) -> list:
    return db.execute(
        select(Location.id, Client.status.label("client_status"))
        .join(Client, Client.id == Location.client_id)
        .where(Location.org_id == org_id)
        .where(Location.is_active.is_(True))
    ).all()


SOURCE_READERS: dict[str, Callable[[Session, str, DashboardWindow], Any]] = {
    "active_subscriptions": _read_active_subscriptions,
    "subscription_jobs": _read_subscription_jobs,
    "open_jobs": _read_open_jobs,
    "unoptimized_routes": _read_unoptimized_routes,
    "shifts": _read_shifts,
    "staff": _read_staff,
    "payments": _read_payments,
    "clients": _read_clients,
    "subscriptions": _read_subscriptions,
    "month_jobs": _read_month_jobs,
}
for _status, _recurring in INVOICE_COUNT_KEYS:
    SOURCE_READERS[f"invoices:{_status}:{'recurring' if _recurring else 'one_time'}"] = _invoice_counter(
        _status, _recurring
    )


def _run_reader(
    session_factory: sessionmaker,
    reader: Callable[[Session, str, DashboardWindow], Any],
    org_id: str,
    window: DashboardWindow,
) -> Any:
    db = session_factory()
    try:
        return reader(db, org_id, window)
    finally:
        db.close()


async def fetch_dashboard_sources(
    session_factory: sessionmaker,
    org_id: str,
    window: DashboardWindow,
) -> DashboardSources:
    names = list(SOURCE_READERS)
    try:
        results = await asyncio.gather(
            *(
                asyncio.to_thread(_run_reader, session_factory, SOURCE_READERS[name], org_id, window)
                for name in names
            ),
            return_exceptions=True,
        )
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            raise failures[0]
        by_name = dict(zip(names, results))
        # Depends on the first batch: runs only after every read above succeeded.
        active_locations = await asyncio.to_thread(
            _run_reader, session_factory, _read_active_locations, org_id, window
        )
    except Exception as exc:
        raise DashboardDataError(str(exc)) from exc

    invoice_counts = {}
    for status, recurring in INVOICE_COUNT_KEYS:
        kind = "recurring" if recurring else "one_time"
        invoice_counts[(status, recurring)] = by_name[f"invoices:{status}:{kind}"]

    return DashboardSources(
        active_subscriptions=list(by_name["active_subscriptions"]),
        subscription_jobs=list(by_name["subscription_jobs"]),
        invoice_counts=invoice_counts,
        open_jobs=by_name["open_jobs"],
        unoptimized_routes=by_name["unoptimized_routes"],
        shifts=list(by_name["shifts"]),
        staff=list(by_name["staff"]),
        payments=list(by_name["payments"]),
        clients=list(by_name["clients"]),
        subscriptions=list(by_name["subscriptions"]),
        month_jobs=list(by_name["month_jobs"]),
        active_locations=list(active_locations),
    )


# ---------------------------------------------------------------------------
# Pure reduction
# ---------------------------------------------------------------------------


def _utc_date(value: Any) -> date | None:
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(timezone.utc).date()
    return value


def _cents_to_units(cents: int) -> float:
    return cents / 100


def _safe_ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0


def _churn_rate(active: int, lost: int) -> float | None:
    denominator = active + lost
    if denominator <= 0:
        return None
    return lost / denominator * 100


def _open_break(breaks: Any) -> bool:
    if not isinstance(breaks, list):
        return False
    return any(isinstance(item, dict) and not item.get("end_time") for item in breaks)


def build_status_counts(sources: DashboardSources, window: DashboardWindow) -> StatusCardCounts:
    unassigned = find_unassigned_subscriptions(
        sources.active_subscriptions, sources.subscription_jobs, window.today
    )
    covered = {sub.location_id for sub in sources.active_subscriptions}
    orphaned = find_orphaned_locations(sources.active_locations, covered)

    invoices = sources.invoice_counts
    shifts = sources.shifts
    return StatusCardCounts(
        unassigned_locations=len(unassigned) + len(orphaned),
        change_requests=0,
        open_one_time_invoices=invoices.get(("OPEN", False), 0),
        open_recurring_invoices=invoices.get(("OPEN", True), 0),
        overdue_one_time_invoices=invoices.get(("OVERDUE", False), 0),
        overdue_recurring_invoices=invoices.get(("OVERDUE", True), 0),
        failed_one_time_invoices=invoices.get(("FAILED", False), 0),
        failed_recurring_invoices=invoices.get(("FAILED", True), 0),
        open_jobs=sources.open_jobs,
        recurring_invoice_drafts=invoices.get(("DRAFT", True), 0),
        one_time_invoice_drafts=invoices.get(("DRAFT", False), 0),
        unoptimized_routes=sources.unoptimized_routes,
        open_shifts=sum(1 for s in shifts if s.status == "SCHEDULED"),
        incomplete_shifts=sum(1 for s in shifts if s.status == "IN_PROGRESS" and not s.end_time),
        clocked_in_staff=sum(1 for s in shifts if s.status == "IN_PROGRESS" and s.start_time),
        staff_on_break=sum(1 for s in shifts if _open_break(s.breaks)),
    )


def _cancelation_reasons(subscriptions: Iterable[Any], client_type: str) -> list[CancelationReason]:
    counts: Counter = Counter()
    for sub in subscriptions:
        if sub.status == "CANCELED" and sub.client_type == client_type and sub.cancel_reason:
            counts[sub.cancel_reason] += 1
    return [
        CancelationReason(reason=reason, count=count, color=CANCEL_REASON_COLORS.get(reason, DEFAULT_REASON_COLOR))
        for reason, count in counts.items()
    ]


def _referral_sources(clients: Iterable[Any], limit: int) -> list[ReferralSource]:
    counts: Counter = Counter(c.referral_source for c in clients if c.referral_source)
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [ReferralSource(source=source, count=count) for source, count in ranked[:limit]]


def build_charts(
    sources: DashboardSources,
    window: DashboardWindow,
    *,
    referral_limit: int = 10,
) -> ChartData:
    payments_by_day: dict[date, dict[str, list[int]]] = {}
    for p in sources.payments:
        day = _utc_date(p.created_at)
        payments_by_day.setdefault(day, {}).setdefault(p.client_type, []).append(p.amount_cents or 0)

    clients = [
        (c, _utc_date(c.created_at), _utc_date(c.canceled_at))
        for c in sources.clients
    ]

    total_sales = []
    active_res, active_comm = [], []
    new_vs_lost_res, new_vs_lost_comm = [], []
    avg_res, avg_comm = [], []

    for day in window.days:
        label = day.isoformat()
        day_payments = payments_by_day.get(day, {})
        res_amounts = day_payments.get(RESIDENTIAL, [])
        comm_amounts = day_payments.get(COMMERCIAL, [])
        res_cents, comm_cents = sum(res_amounts), sum(comm_amounts)
        total_sales.append(
            DailySales(
                date=label,
                residential=_cents_to_units(res_cents),
                commercial=_cents_to_units(comm_cents),
                total=_cents_to_units(res_cents + comm_cents),
            )
        )
        avg_res.append(DailyValue(date=label, value=_cents_to_units(_safe_ratio(res_cents, len(res_amounts)))))
        avg_comm.append(DailyValue(date=label, value=_cents_to_units(_safe_ratio(comm_cents, len(comm_amounts)))))

        for client_type, active_series, new_lost_series in (
            (RESIDENTIAL, active_res, new_vs_lost_res),
            (COMMERCIAL, active_comm, new_vs_lost_comm),
        ):
            of_type = [entry for entry in clients if entry[0].client_type == client_type]
            active = sum(
                1 for c, created, _ in of_type if c.status == "ACTIVE" and created is not None and created <= day
            )
            new = sum(1 for _, created, _ in of_type if created == day)
            lost = sum(1 for _, _, canceled in of_type if canceled == day)
            active_series.append(DailyValue(date=label, value=active))
            new_lost_series.append(DailyNewVsLost(date=label, new=new, lost=lost, net=new - lost))

    return ChartData(
        total_sales=total_sales,
        active_res_clients=active_res,
        active_comm_clients=active_comm,
        new_vs_lost_res=new_vs_lost_res,
        new_vs_lost_comm=new_vs_lost_comm,
        avg_res_client_value=avg_res,
        avg_comm_client_value=avg_comm,
        res_cancelation_reasons=_cancelation_reasons(sources.subscriptions, RESIDENTIAL),
        comm_cancelation_reasons=_cancelation_reasons(sources.subscriptions, COMMERCIAL),
        referral_sources=_referral_sources(sources.clients, referral_limit),
    )


def _jobs_performance(jobs: list) -> tuple[float, float]:
    """(yards per hour, yards per route) for completed jobs of one client type."""
    minutes = sum(j.duration_minutes or 0 for j in jobs)
    routes = {j.route_id for j in jobs if j.route_id}
    per_hour = len(jobs) / (minutes / 60) if minutes > 0 else 0
    return per_hour, _safe_ratio(len(jobs), len(routes))


def build_metrics(sources: DashboardSources, window: DashboardWindow) -> MetricValues:
    month_start, month_end = window.month_start, window.month_end

    def _in_month(value: Any) -> bool:
        day = _utc_date(value)
        return day is not None and month_start <= day <= month_end

    month_payments = [p for p in sources.payments if _in_month(p.created_at)]
    res_cents = sum(p.amount_cents or 0 for p in month_payments if p.client_type == RESIDENTIAL)
    comm_cents = sum(p.amount_cents or 0 for p in month_payments if p.client_type == COMMERCIAL)
    sales_res = _cents_to_units(res_cents)
    sales_comm = _cents_to_units(comm_cents)

    def _clients(client_type: str) -> list:
        return [c for c in sources.clients if c.client_type == client_type]

    res_clients, comm_clients = _clients(RESIDENTIAL), _clients(COMMERCIAL)
    active_res = sum(1 for c in res_clients if c.status == "ACTIVE")
    active_comm = sum(1 for c in comm_clients if c.status == "ACTIVE")
    new_res = sum(1 for c in res_clients if _in_month(c.created_at))
    lost_res = sum(1 for c in res_clients if c.canceled_at is not None and _in_month(c.canceled_at))
    new_comm = sum(1 for c in comm_clients if _in_month(c.created_at))
    lost_comm = sum(1 for c in comm_clients if c.canceled_at is not None and _in_month(c.canceled_at))

    active_staff = sum(1 for s in sources.staff if s.is_active)

    completed = [j for j in sources.month_jobs if j.status == "COMPLETED"]
    res_per_hour, res_per_route = _jobs_performance([j for j in completed if j.client_type == RESIDENTIAL])
    comm_per_hour, comm_per_route = _jobs_performance([j for j in completed if j.client_type == COMMERCIAL])

    return MetricValues(
        total_sales_residential=sales_res,
        total_sales_commercial=sales_comm,
        total_sales_total=_cents_to_units(res_cents + comm_cents),
        active_residential_clients=active_res,
        active_commercial_clients=active_comm,
        new_res_clients=new_res,
        lost_res_clients=lost_res,
        net_res_clients=new_res - lost_res,
        new_comm_clients=new_comm,
        lost_comm_clients=lost_comm,
        net_comm_clients=new_comm - lost_comm,
        avg_res_client_value=_safe_ratio(sales_res, active_res),
        avg_comm_client_value=_safe_ratio(sales_comm, active_comm),
        avg_res_clients_per_tech=_safe_ratio(active_res, active_staff),
        avg_comm_clients_per_tech=_safe_ratio(active_comm, active_staff),
        avg_res_yards_per_hour=res_per_hour,
        avg_comm_yards_per_hour=comm_per_hour,
        avg_res_yards_per_route=res_per_route,
        avg_comm_yards_per_route=comm_per_route,
        res_churn_rate=_churn_rate(active_res, lost_res),
        comm_churn_rate=_churn_rate(active_comm, lost_comm),
        client_lifetime_value=None,
    )


def build_dashboard_metrics(
    sources: DashboardSources,
    window: DashboardWindow,
    *,
    referral_limit: int = 10,
) -> DashboardMetrics:
    return DashboardMetrics(
        counts=build_status_counts(sources, window),
        charts=build_charts(sources, window, referral_limit=referral_limit),
        metrics=build_metrics(sources, window),
    )


async def load_dashboard_metrics(
    session_factory: sessionmaker,
    org_id: str,
    *,
    today: date | None = None,
    window_days: int = 30,
    referral_limit: int = 10,
) -> DashboardMetrics:
    today = today or datetime.now(timezone.utc).date()
    window = DashboardWindow.for_today(today, window_days)
    sources = await fetch_dashboard_sources(session_factory, org_id, window)
    return build_dashboard_metrics(sources, window, referral_limit=referral_limit)
