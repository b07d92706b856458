import unittest

from agency.commissions import CommissionService, rate_for_level
from agency.db import InMemoryDbClient
from agency.errors import DocumentNotFoundError, ValidationFailedError
from shared.types import Commission, CommissionStatus


class CommissionServiceTests(unittest.TestCase):
    def setUp(self):
        self.db = InMemoryDbClient()
        self.db.create_streamer(
            {"id": "s1", "name": "Ana", "level": 3, "agency_id": "lux"}
        )
        self.db.create_streamer({"id": "s2", "name": "Beto"})
        self.service = CommissionService(self.db, default_agency_id="luxeryprime")

    def test_rate_for_level(self):
        self.assertEqual(rate_for_level(1), 0.15)
        self.assertEqual(rate_for_level(5), 0.35)
        self.assertEqual(rate_for_level(9), 0.15)

    def test_calculate_commission(self):
        commission = self.service.calculate_commission("s1", 1000, "yameet")

        self.assertIsInstance(commission, Commission)
        self.assertTrue(commission.id.startswith("COMM_"))
        self.assertTrue(commission.id.endswith("_s1"))
        self.assertEqual(commission.commission_rate, 0.25)
        self.assertEqual(commission.commission_amount, 250.0)
        self.assertEqual(commission.net_amount, 750.0)
        self.assertEqual(commission.agency_id, "lux")
        self.assertEqual(commission.status, CommissionStatus.PENDING)
        self.assertEqual(self.db.get_commissions(), [])

    def test_calculate_defaults_level_and_agency(self):
        commission = self.service.calculate_commission("s2", 200)

        self.assertEqual(commission.level, 1)
        self.assertEqual(commission.agency_id, "luxeryprime")
        self.assertEqual(commission.commission_amount, 30.0)
        self.assertEqual(commission.net_amount, 170.0)

    def test_calculate_rejects_bad_amounts(self):
        for amount in (-1, "100", None, True, float("nan"), float("inf")):
            with self.subTest(amount=amount):
                with self.assertRaises(ValidationFailedError):
                    self.service.calculate_commission("s1", amount)

    def test_calculate_unknown_streamer(self):
        with self.assertRaises(DocumentNotFoundError):
            self.service.calculate_commission("missing", 100)

    def test_create_and_query_commissions(self):
        created = self.service.create_commission(
            self.service.calculate_commission("s1", 400, "salsa")
        )

        self.assertEqual(created["status"], "pending")
        self.assertEqual(len(self.service.get_streamer_commissions("s1")), 1)
        self.assertEqual(len(self.service.get_agency_commissions("lux")), 1)
        self.assertEqual(self.service.get_agency_commissions("other"), [])

    def test_update_commission_status(self):
        created = self.service.create_commission(
            self.service.calculate_commission("s1", 400)
        )

        updated = self.service.update_commission_status(
            created["id"], "paid", payment_reference="tx-1"
        )

        self.assertEqual(updated["status"], "paid")
        self.assertEqual(updated["payment_reference"], "tx-1")

    def test_update_status_invalid(self):
        created = self.service.create_commission(
            self.service.calculate_commission("s1", 400)
        )

        with self.assertRaises(ValidationFailedError):
            self.service.update_commission_status(created["id"], "lost")
        with self.assertRaises(DocumentNotFoundError):
            self.service.update_commission_status("missing", "paid")

    def test_process_commission_batch(self):
        result = self.service.process_commission_batch(
            [
                {"streamer_id": "s1", "amount": 100, "id": "c1"},
                {"streamer_id": "s2", "base_amount": 200},
                {"streamer_id": "missing", "amount": 100},
                {"streamer_id": "s1", "amount": -3, "id": "c4"},
            ]
        )

        self.assertEqual(result.total, 4)
        self.assertEqual(result.successful, 2)
        self.assertEqual(result.failed, 2)
        self.assertEqual(
            [e["commission_id"] for e in result.errors], ["missing", "c4"]
        )
        self.assertIsNotNone(self.db.get_commission("c1"))

    def test_get_commission_stats(self):
        self.service.process_commission_batch(
            [
                {"streamer_id": "s1", "amount": 1000, "app": "yameet", "id": "c1"},
                {"streamer_id": "s1", "amount": 200, "app": "salsa", "id": "c2"},
                {"streamer_id": "s2", "amount": 100, "app": "yameet", "id": "c3"},
            ]
        )

        stats = self.service.get_commission_stats("lux")

        self.assertEqual(stats["total"], 2)
        self.assertEqual(stats["total_amount"], 1200.0)
        self.assertEqual(stats["total_commission"], 300.0)
        self.assertEqual(stats["by_status"], {"pending": 2})
        self.assertEqual(stats["by_level"], {"3": 2})
        self.assertEqual(stats["by_app"], {"yameet": 1, "salsa": 1})
        self.assertIn(stats["report_id"], self.db.collections["reports"])


if __name__ == "__main__":
    unittest.main()
