import uuid
from datetime import datetime, timedelta, timezone

from app.models.office import ActivityLog, Job, Route, ServicePlan, Subscription
from office_seed import OfficeApiTestCase, make_client, make_location, make_org, make_subscription, make_user


class UnassignedSubscriptionsApiTests(OfficeApiTestCase):
    def test_lists_unassigned_subscriptions_then_orphaned_locations(self):
        db = self.db
        now = datetime.now(timezone.utc)
        client = make_client(db, self.org, first_name="Ann", last_name="Lee", stripe_customer_id="cus_9")
        business = make_client(db, self.org, client_type="COMMERCIAL", company_name="Acme Kennels")

        plan = ServicePlan(org_id=self.org.id, name="Weekly Scoop", frequency="WEEKLY")
        db.add(plan)
        db.flush()

        new_loc = make_location(db, self.org, client, zip_code="10001")
        new_sub = make_subscription(
            db, self.org, client, new_loc, frequency="WEEKLY", plan_id=plan.id, created_at=now - timedelta(days=2)
        )

        routed_loc = make_location(db, self.org, business)
        routed_sub = make_subscription(db, self.org, business, routed_loc, created_at=now - timedelta(days=1))
        db.add(
            Job(
                org_id=self.org.id,
                client_id=business.id,
                subscription_id=routed_sub.id,
                scheduled_date=now.date(),
                status="COMPLETED",
            )
        )

        orphan_loc = make_location(db, self.org, business, address_line1="9 Side St")
        paused = make_client(db, self.org, status="PAUSED")
        make_location(db, self.org, paused)

        other_org = make_org(db, name="Elsewhere")
        stranger = make_client(db, other_org)
        make_location(db, other_org, stranger)
        db.commit()

        resp = self.client.get("/api/v1/admin/unassigned-subscriptions")
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertEqual(data["total"], 2)

        first, second = data["subscriptions"]
        self.assertEqual(first["id"], str(new_sub.id))
        self.assertEqual(first["clientName"], "Ann Lee")
        self.assertEqual(first["zipCode"], "10001")
        self.assertEqual(first["frequency"], "WEEKLY")
        self.assertEqual(first["planName"], "Weekly Scoop")
        self.assertTrue(first["hasPaymentMethod"])
        self.assertFalse(first["needsInitialCleanup"])
        self.assertTrue(first["needsRouteAssignment"])

        self.assertEqual(second["id"], f"loc-{orphan_loc.id}")
        self.assertEqual(second["clientName"], "Acme Kennels")
        self.assertEqual(second["address"], "9 Side St")
        self.assertEqual(second["frequency"], "N/A")
        self.assertIsNone(second["planName"])
        self.assertFalse(second["hasPaymentMethod"])
        self.assertTrue(second["needsInitialCleanup"])
        self.assertTrue(second["needsRouteAssignment"])

    def test_empty_org(self):
        resp = self.client.get("/api/v1/admin/unassigned-subscriptions")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json(), {"subscriptions": [], "total": 0})

    def test_requires_subscriptions_read(self):
        self.as_role("OFFICE")
        self.assertEqual(self.client.get("/api/v1/admin/unassigned-subscriptions").status_code, 200)
        self.as_role("FIELD_TECH")
        self.assertEqual(self.client.get("/api/v1/admin/unassigned-subscriptions").status_code, 403)


class AssignSubscriptionApiTests(OfficeApiTestCase):
    def setUp(self):
        super().setUp()
        db = self.db
        self.today = datetime.now(timezone.utc).date()
        self.tech = make_user(db, self.org, role="FIELD_TECH", first_name="Rae", last_name="Kim")
        self.customer = make_client(db, self.org)
        self.location = make_location(db, self.org, self.customer)
        self.sub = make_subscription(
            db,
            self.org,
            self.customer,
            self.location,
            initial_cleanup_required=True,
            price_per_visit_cents=2500,
        )
        db.commit()

    def _job(self, days_ahead, status="SCHEDULED", route_id=None):
        job = Job(
            org_id=self.org.id,
            client_id=self.customer.id,
            subscription_id=self.sub.id,
            location_id=self.location.id,
            scheduled_date=self.today + timedelta(days=days_ahead),
            status=status,
            route_id=route_id,
        )
        self.db.add(job)
        return job

    def _assign(self, **overrides):
        body = {
            "subscriptionId": str(self.sub.id),
            "recurringService": {
                "startDate": self.today.isoformat(),
                "serviceDays": ["TUESDAY", "FRIDAY"],
                "techId": str(self.tech.id),
            },
        }
        body.update(overrides)
        return self.client.post("/api/v1/admin/unassigned-subscriptions/assign", json=body)

    def test_routes_future_jobs_and_books_initial_cleanup(self):
        upcoming = self._job(1)
        later = self._job(8)
        past = self._job(-3)
        done = self._job(2, status="COMPLETED")
        self.db.commit()

        cleanup_day = self.today + timedelta(days=1)
        resp = self._assign(
            initialCleanup={"date": cleanup_day.isoformat(), "techId": str(self.tech.id), "estimatedMinutes": 45}
        )
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data["success"])
        self.assertEqual(data["recurringJobsUpdated"], 2)
        self.assertEqual(data["subscription"], {"id": str(self.sub.id), "preferredDay": "TUESDAY"})

        cleanup = data["initialCleanupJob"]
        self.assertEqual(cleanup["scheduledDate"], cleanup_day.isoformat())
        self.assertEqual(cleanup["durationMinutes"], 45)
        self.assertEqual(cleanup["priceCents"], 2500)
        self.assertTrue(cleanup["isInitialCleanup"])

        self.db.expire_all()
        routes = self.db.query(Route).order_by(Route.route_date).all()
        # The cleanup and the first recurring visit share one route on the same day.
        self.assertEqual([r.route_date for r in routes], [cleanup_day, self.today + timedelta(days=8)])
        self.assertEqual(routes[0].name, f"Rae Kim - {cleanup_day.isoformat()}")
        self.assertEqual(routes[0].status, "PLANNED")
        self.assertEqual(cleanup["routeId"], str(routes[0].id))

        for job in (upcoming, later):
            refreshed = self.db.get(Job, job.id)
            self.assertEqual(refreshed.assigned_to, self.tech.id)
            self.assertEqual(refreshed.duration_minutes, 15)
        self.assertEqual(self.db.get(Job, upcoming.id).route_id, routes[0].id)
        self.assertIsNone(self.db.get(Job, past.id).route_id)
        self.assertIsNone(self.db.get(Job, done.id).route_id)
        self.assertEqual(self.db.get(Subscription, self.sub.id).preferred_day, "TUESDAY")

        log = self.db.query(ActivityLog).filter_by(action="SUBSCRIPTION_ASSIGNED").one()
        self.assertEqual(log.details["recurringJobsUpdated"], 2)
        self.assertTrue(log.details["initialCleanupCreated"])

    def test_reuses_existing_route_for_tech_and_day(self):
        existing = Route(org_id=self.org.id, assigned_to=self.tech.id, route_date=self.today + timedelta(days=1))
        self.db.add(existing)
        self.db.flush()
        job = self._job(1)
        self.db.commit()

        resp = self._assign()
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(resp.json()["initialCleanupJob"])

        self.db.expire_all()
        self.assertEqual(self.db.query(Route).count(), 1)
        self.assertEqual(self.db.get(Job, job.id).route_id, existing.id)

    def test_assignment_clears_unassigned_listing(self):
        self.db.query(Subscription).filter_by(id=self.sub.id).update({"initial_cleanup_required": False})
        self._job(3)
        self.db.commit()
        before = self.client.get("/api/v1/admin/unassigned-subscriptions").json()
        self.assertEqual(before["total"], 1)

        self.assertEqual(self._assign().status_code, 200)

        after = self.client.get("/api/v1/admin/unassigned-subscriptions").json()
        self.assertEqual(after["total"], 0)

    def test_unknown_subscription_or_tech(self):
        self.assertEqual(self._assign(subscriptionId=str(uuid.uuid4())).status_code, 404)

        other_org = make_org(self.db, name="Elsewhere")
        outsider = make_user(self.db, other_org, role="FIELD_TECH")
        self.db.commit()
        resp = self._assign(
            recurringService={
                "startDate": self.today.isoformat(),
                "serviceDays": ["MONDAY"],
                "techId": str(outsider.id),
            }
        )
        self.assertEqual(resp.status_code, 404)
        self.assertEqual(resp.json()["detail"], "Tech not found")

    def test_body_validation(self):
        no_days = self._assign(
            recurringService={"startDate": self.today.isoformat(), "serviceDays": [], "techId": str(self.tech.id)}
        )
        self.assertEqual(no_days.status_code, 422)
        bad_day = self._assign(
            recurringService={"startDate": self.today.isoformat(), "serviceDays": ["FUNDAY"], "techId": str(self.tech.id)}
        )
        self.assertEqual(bad_day.status_code, 422)
        missing = self.client.post(
            "/api/v1/admin/unassigned-subscriptions/assign", json={"subscriptionId": str(self.sub.id)}
        )
        self.assertEqual(missing.status_code, 422)

    def test_requires_subscriptions_write(self):
        self.as_role("ACCOUNTANT")
        self.assertEqual(self._assign().status_code, 403)
