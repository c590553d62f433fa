import uuid
from datetime import datetime, timezone

import pytest

from app.api.v1 import staff as staff_api
from app.core.supabase_admin import AuthProviderError
from app.models.office import ActivityLog, Shift, StaffProfile, User
from office_seed import OfficeApiTestCase, make_org, make_user


class StaffApiTests(OfficeApiTestCase):
    def setUp(self):
        super().setUp()
        self.auth_calls = []
        self._patches = pytest.MonkeyPatch()

        def fake_create(email, password=None):
            self.auth_calls.append(("create", email))
            return str(uuid.uuid4())

        def fake_delete(user_id):
            self.auth_calls.append(("delete", user_id))

        def fake_update_email(user_id, email):
            self.auth_calls.append(("update_email", email))

        self._patches.setattr(staff_api, "create_auth_user", fake_create)
        self._patches.setattr(staff_api, "delete_auth_user", fake_delete)
        self._patches.setattr(staff_api, "update_auth_user_email", fake_update_email)

    def tearDown(self):
        self._patches.undo()
        super().tearDown()

    def _create(self, **overrides):
        body = {"email": "Tech@Example.com", "role": "FIELD_TECH", "firstName": "Sam"}
        body.update(overrides)
        return self.client.post("/api/v1/admin/staff", json=body)

    def test_create_staff_with_profile(self):
        resp = self._create(
            lastName="Ortiz",
            profile={"employeeId": "E-7", "hourlyRateCents": 2200, "emergencyContactName": "Lu"},
        )
        self.assertEqual(resp.status_code, 201)
        user = resp.json()["user"]
        self.assertEqual(user["email"], "tech@example.com")
        self.assertEqual(user["role"], "FIELD_TECH")
        self.assertTrue(user["isActive"])
        self.assertEqual(user["staffProfile"]["employeeId"], "E-7")
        self.assertEqual(user["staffProfile"]["emergencyContact"], {"name": "Lu"})
        self.assertEqual(self.auth_calls, [("create", "tech@example.com")])

        log = self.db.query(ActivityLog).filter_by(action="STAFF_CREATED").one()
        self.assertEqual(log.details["role"], "FIELD_TECH")
        self.assertEqual(log.details["email"], "[REDACTED]")

    def test_duplicate_email_rejected_before_auth_call(self):
        make_user(self.db, self.org, role="OFFICE", email="tech@example.com")
        self.db.commit()
        resp = self._create()
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.auth_calls, [])

    def test_client_role_rejected(self):
        self.assertEqual(self._create(role="CLIENT").status_code, 400)

    def test_auth_provider_failure(self):
        def failing_create(email, password=None):
            raise AuthProviderError("boom")

        self._patches.setattr(staff_api, "create_auth_user", failing_create)
        resp = self._create()
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["detail"], "Failed to create user account")

    def test_failed_commit_removes_auth_account(self):
        def broken_activity(db, *, org_id, **_kwargs):
            # entity_type is NOT NULL, so the commit fails.
            db.add(ActivityLog(org_id=org_id, action="STAFF_CREATED", entity_type=None))

        self._patches.setattr(staff_api, "record_activity", broken_activity)
        resp = self._create()

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["detail"], "Failed to create user")
        self.assertEqual([call[0] for call in self.auth_calls], ["create", "delete"])
        self.assertIsNone(self.db.query(User).filter_by(email="tech@example.com").first())

    def test_list_filters_and_clock_status(self):
        tech = make_user(self.db, self.org, role="FIELD_TECH", first_name="Ada", email="ada@example.com")
        make_user(self.db, self.org, role="CREW_LEAD", first_name="Bo", is_active=False)
        make_user(self.db, self.org, role="CLIENT", first_name="Cy")
        make_user(self.db, make_org(self.db, name="Else"), role="OWNER", first_name="Di")
        self.db.add(
            Shift(
                org_id=self.org.id,
                user_id=tech.id,
                shift_date=datetime.now(timezone.utc).date(),
                status="IN_PROGRESS",
                breaks=[],
            )
        )
        self.db.commit()

        data = self.client.get("/api/v1/admin/staff").json()
        self.assertEqual([s["firstName"] for s in data["staff"]], ["Ada", "Bo", "Pat"])
        self.assertEqual(data["total"], 3)
        self.assertEqual(data["active"], 2)
        self.assertEqual(data["clockedIn"], 1)
        self.assertTrue(data["staff"][0]["isClockedIn"])

        inactive = self.client.get("/api/v1/admin/staff", params={"status": "inactive"}).json()
        self.assertEqual([s["firstName"] for s in inactive["staff"]], ["Bo"])

        found = self.client.get("/api/v1/admin/staff", params={"search": "ADA@"}).json()
        self.assertEqual([s["firstName"] for s in found["staff"]], ["Ada"])

    def test_update_staff_and_upsert_profile(self):
        tech = make_user(self.db, self.org, role="FIELD_TECH", email="old@example.com")
        self.db.commit()
        resp = self.client.put(
            "/api/v1/admin/staff",
            json={
                "id": str(tech.id),
                "email": "new@example.com",
                "role": "CREW_LEAD",
                "profile": {"vehicleType": "Truck", "certifications": ["CPR"]},
            },
        )
        self.assertEqual(resp.status_code, 200)
        user = resp.json()["user"]
        self.assertEqual(user["email"], "new@example.com")
        self.assertEqual(user["role"], "CREW_LEAD")
        self.assertEqual(user["staffProfile"]["vehicleType"], "Truck")
        self.assertEqual(user["staffProfile"]["certifications"], ["CPR"])
        self.assertIn(("update_email", "new@example.com"), self.auth_calls)
        self.assertEqual(self.db.query(StaffProfile).count(), 1)

    def test_cannot_change_own_role_or_deactivate_self(self):
        me = str(self.user.id)
        resp = self.client.put("/api/v1/admin/staff", json={"id": me, "role": "OFFICE"})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["detail"], "Cannot change your own role")

        resp = self.client.put("/api/v1/admin/staff", json={"id": me, "isActive": False})
        self.assertEqual(resp.json()["detail"], "Cannot deactivate your own account")

        resp = self.client.delete("/api/v1/admin/staff", params={"id": me})
        self.assertEqual(resp.status_code, 400)

    def test_update_user_in_other_org_is_not_found(self):
        stranger = make_user(self.db, make_org(self.db, name="Else"), role="OFFICE")
        self.db.commit()
        resp = self.client.put("/api/v1/admin/staff", json={"id": str(stranger.id), "firstName": "X"})
        self.assertEqual(resp.status_code, 404)

    def test_delete_soft_deactivates(self):
        tech = make_user(self.db, self.org, role="FIELD_TECH")
        self.db.commit()
        resp = self.client.delete("/api/v1/admin/staff", params={"id": str(tech.id)})
        self.assertEqual(resp.status_code, 200)
        self.db.expire_all()
        self.assertFalse(self.db.get(User, tech.id).is_active)
        self.assertEqual(self.db.query(ActivityLog).filter_by(action="STAFF_DEACTIVATED").count(), 1)

    def test_delete_requires_staff_delete(self):
        self.as_role("MANAGER")
        tech = make_user(self.db, self.org, role="FIELD_TECH")
        self.db.commit()
        resp = self.client.delete("/api/v1/admin/staff", params={"id": str(tech.id)})
        self.assertEqual(resp.status_code, 403)
