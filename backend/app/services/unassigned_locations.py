"""Unassigned-location classification shared by the dashboard and the
unassigned-subscriptions listing.

A subscription is unassigned when it still needs its initial cleanup, when
it has an upcoming SCHEDULED job without a route, or when it has no jobs at
all. A location is orphaned when it is active, no ACTIVE subscription covers
it and its client is ACTIVE. Both inputs are rows that were already fetched;
nothing here touches the database.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import date
from typing import Any


@dataclass(frozen=True)
class SubscriptionJobIndex:
    with_jobs: frozenset
    with_unrouted_jobs: frozenset


@dataclass(frozen=True)
class SubscriptionAssignment:
    needs_initial_cleanup: bool
    needs_route_assignment: bool
    has_no_jobs: bool

    @property
    def is_unassigned(self) -> bool:
        return self.needs_initial_cleanup or self.needs_route_assignment or self.has_no_jobs


def _as_date(value: Any) -> date | None:
    if value is None:
        return None
    if hasattr(value, "date") and callable(value.date):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def index_subscription_jobs(jobs: Iterable[Any], today: date) -> SubscriptionJobIndex:
    """Which subscriptions have any job, and which have an unrouted upcoming one."""
    with_jobs = set()
    with_unrouted = set()
    for job in jobs:
        if job.subscription_id is None:
            continue
        with_jobs.add(job.subscription_id)
        scheduled = _as_date(job.scheduled_date)
        if job.status == "SCHEDULED" and scheduled is not None and scheduled >= today and not job.route_id:
            with_unrouted.add(job.subscription_id)
    return SubscriptionJobIndex(with_jobs=frozenset(with_jobs), with_unrouted_jobs=frozenset(with_unrouted))


def classify_subscription(subscription: Any, index: SubscriptionJobIndex) -> SubscriptionAssignment:
    return SubscriptionAssignment(
        needs_initial_cleanup=bool(subscription.initial_cleanup_required)
        and not bool(subscription.initial_cleanup_completed),
        needs_route_assignment=subscription.id in index.with_unrouted_jobs,
        has_no_jobs=subscription.id not in index.with_jobs,
    )


def find_unassigned_subscriptions(
    subscriptions: Iterable[Any],
    jobs: Iterable[Any],
    today: date,
) -> list[tuple[Any, SubscriptionAssignment]]:
    index = index_subscription_jobs(jobs, today)
    result = []
    for sub in subscriptions:
        assignment = classify_subscription(sub, index)
        if assignment.is_unassigned:
            result.append((sub, assignment))
    return result


def find_orphaned_locations(
    locations: Iterable[Any],
    covered_location_ids: Iterable[Any],
    *,
    client_status: Callable[[Any], str] | None = None,
) -> list[Any]:
    """Active locations of ACTIVE clients that no active subscription covers.

    Each location must expose ``id``. The owning client's status is read from
    ``client_status`` on the row unless a lookup callable is given.
    """
    covered = set(covered_location_ids)
    status_of = client_status or (lambda loc: loc.client_status)
    return [loc for loc in locations if loc.id not in covered and status_of(loc) == "ACTIVE"]
