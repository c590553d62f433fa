from app.models.office import PricingRule
from office_seed import OfficeApiTestCase


class ServiceAreaApiTests(OfficeApiTestCase):
    def _post(self, action, zone, zips):
        return self.client.post(
            "/api/v1/admin/service-area",
            json={"action": action, "zone": zone, "zipCodes": zips},
        )

    def test_add_creates_zone_rule_and_reports_duplicates(self):
        resp = self._post("add", "PREMIUM", ["90210", "90211"])
        self.assertEqual(resp.status_code, 200)
        data = resp.json()
        self.assertTrue(data["success"])
        self.assertEqual(data["added"], ["90210", "90211"])
        self.assertEqual(data["alreadyExisted"], [])
        self.assertEqual(data["zipCodes"], ["90210", "90211"])

        again = self._post("add", "PREMIUM", ["90211", "90212"]).json()
        self.assertEqual(again["added"], ["90212"])
        self.assertEqual(again["alreadyExisted"], ["90211"])
        self.assertEqual(again["message"], "Added 1 zip code(s). 1 already existed")

        rules = self.db.query(PricingRule).all()
        self.assertEqual(len(rules), 1)
        self.assertEqual(rules[0].name, "Service Area - PREMIUM")

    def test_zone_rules_rank_premium_above_regular(self):
        self._post("add", "REGULAR", ["10001"])
        self._post("add", "PREMIUM", ["90210"])
        priorities = {rule.zone: rule.priority for rule in self.db.query(PricingRule).all()}
        self.assertEqual(priorities, {"REGULAR": 5, "PREMIUM": 10})

    def test_adding_only_existing_codes_is_not_a_success(self):
        self._post("add", "REGULAR", ["10001"])
        data = self._post("add", "REGULAR", ["10001"]).json()
        self.assertFalse(data["success"])
        self.assertEqual(data["message"], "All 1 zip code(s) already exist")

    def test_delete_reports_not_found(self):
        self._post("add", "REGULAR", ["10001", "10002"])
        data = self._post("delete", "REGULAR", ["10002", "99999"]).json()
        self.assertEqual(data["deleted"], ["10002"])
        self.assertEqual(data["notFound"], ["99999"])
        self.assertEqual(data["zipCodes"], ["10001"])

    def test_get_groups_codes_by_zone(self):
        self._post("add", "REGULAR", ["10002", "10001"])
        self._post("add", "PREMIUM", ["90210"])
        self.db.add(
            PricingRule(org_id=self.org.id, name="Legacy", zone=None, zip_codes=["10003"], is_active=True)
        )
        self.db.add(
            PricingRule(org_id=self.org.id, name="Old", zone="PREMIUM", zip_codes=["90000"], is_active=False)
        )
        self.db.commit()

        data = self.client.get("/api/v1/admin/service-area").json()
        self.assertEqual(data["zipCodes"], {"regular": ["10001", "10002", "10003"], "premium": ["90210"]})

    def test_invalid_zip_codes_are_listed(self):
        resp = self._post("add", "REGULAR", ["1234", "12345", "abcde", "12345\n", "١٢٣٤٥"])
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(
            resp.json()["detail"],
            "Invalid zip codes: 1234, abcde, 12345\n, ١٢٣٤٥",
        )
        self.assertEqual(self.db.query(PricingRule).count(), 0)

    def test_invalid_action_or_zone(self):
        self.assertEqual(self._post("replace", "REGULAR", ["12345"]).status_code, 422)
        self.assertEqual(self._post("add", "GOLD", ["12345"]).status_code, 422)
        self.assertEqual(self._post("add", "REGULAR", []).status_code, 422)

    def test_manager_can_read_but_not_write(self):
        self.as_role("MANAGER")
        self.assertEqual(self.client.get("/api/v1/admin/service-area").status_code, 200)
        self.assertEqual(self._post("add", "REGULAR", ["12345"]).status_code, 403)
