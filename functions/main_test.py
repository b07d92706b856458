# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================
# Standard library imports
import os
import unittest
from unittest.mock import MagicMock, patch

# Third-party library imports
from functions_framework import create_app

# Local application imports
# This patch must be applied before importing 'main'
with patch("firebase_admin.initialize_app"):
    import main as main_module
from agency.db import InMemoryDbClient
from agency.sync import FullSyncResult, SyncResult

MAIN_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "main.py")


def _seeded_db() -> InMemoryDbClient:
    db = InMemoryDbClient()
    db.create_streamer(
        {"id": "s1", "name": "Ana", "email": "ana@gmail.com", "level": 3, "agency_id": "lux"}
    )
    return db


class TestMainCalculateCommission(unittest.TestCase):

    @patch("firebase_admin.initialize_app")
    def setUp(self, initialize_app_mock):
        self.client = create_app("calculate_commission", MAIN_PATH).test_client()
        self.db = _seeded_db()

    def test_calculate_commission(self):
        with patch("main._db_client", return_value=self.db):
            response = self.client.post(
                "/",
                json={"data": {"streamerId": "s1", "amount": 1000, "app": "yameet"}},
            )

        self.assertEqual(
            response.status_code,
            200,
            f"Request failed with status {response.status_code}. Body: {response.get_data(as_text=True)}",
        )
        result = response.get_json()["result"]
        self.assertEqual(result["streamerId"], "s1")
        self.assertEqual(result["streamerName"], "Ana")
        self.assertEqual(result["agencyId"], "lux")
        self.assertEqual(result["commissionRate"], 0.25)
        self.assertEqual(result["commissionAmount"], 250.0)
        self.assertEqual(result["netAmount"], 750.0)
        self.assertEqual(result["status"], "pending")
        self.assertTrue(result["id"].startswith("COMM_"))
        self.assertEqual(self.db.get_commissions(), [])

    def test_calculate_commission_saves_when_requested(self):
        with patch("main._db_client", return_value=self.db):
            response = self.client.post(
                "/",
                json={"data": {"streamerId": "s1", "amount": 200, "save": True}},
            )

        self.assertEqual(response.status_code, 200)
        saved = self.db.get_commissions(streamer_id="s1")
        self.assertEqual(len(saved), 1)
        self.assertEqual(saved[0]["commission_amount"], 50.0)

    def test_calculate_commission_unknown_streamer(self):
        with patch("main._db_client", return_value=self.db):
            response = self.client.post(
                "/", json={"data": {"streamerId": "missing", "amount": 100}}
            )

        self.assertEqual(response.status_code, 404)
        response_data = response.get_json()
        self.assertIn("error", response_data)
        self.assertEqual(response_data["error"]["status"], "NOT_FOUND")

    def test_calculate_commission_missing_streamer_id(self):
        response = self.client.post("/", json={"data": {"amount": 100}})

        self.assertEqual(response.status_code, 400)
        response_data = response.get_json()
        self.assertEqual(response_data["error"]["status"], "INVALID_ARGUMENT")

    def test_calculate_commission_invalid_amount(self):
        with patch("main._db_client", return_value=self.db):
            response = self.client.post(
                "/", json={"data": {"streamerId": "s1", "amount": -5}}
            )

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["status"], "INVALID_ARGUMENT")


class TestMainValidateStreamer(unittest.TestCase):

    @patch("firebase_admin.initialize_app")
    def setUp(self, initialize_app_mock):
        self.client = create_app("validate_streamer", MAIN_PATH).test_client()

    def test_validate_streamer_with_corrections(self):
        payload = {
            "id": "s1",
            "name": "Ana",
            "email": "ana@gmial.com",
            "country": "colombia",
            "level": 2,
            "earnings": 1000,
            "binanceEmail": "ana@hotmial.com",
        }
        response = self.client.post("/", json={"data": payload})

        self.assertEqual(response.status_code, 200)
        result = response.get_json()["result"]
        self.assertTrue(result["isValid"])
        self.assertTrue(result["hasCorrections"])
        self.assertEqual(result["correctedData"]["email"], "ana@gmail.com")
        self.assertEqual(result["correctedData"]["binanceEmail"], "ana@hotmail.com")
        self.assertEqual(result["correctedData"]["country"], "Colombia")

    def test_validate_streamer_reports_errors(self):
        response = self.client.post("/", json={"data": {"name": "A"}})

        self.assertEqual(response.status_code, 200)
        result = response.get_json()["result"]
        self.assertFalse(result["isValid"])
        self.assertIn("Streamer id is required", result["errors"])

    def test_validate_streamer_empty_payload(self):
        response = self.client.post("/", json={"data": {}})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.get_json()["error"]["status"], "INVALID_ARGUMENT")


class TestMainQuoteCommission(unittest.TestCase):

    @patch("firebase_admin.initialize_app")
    def setUp(self, initialize_app_mock):
        self.client = create_app("quote_commission", MAIN_PATH).test_client()

    def test_quote_commission(self):
        response = self.client.post(
            "/", json={"data": {"id": "s1", "earnings": 1000, "level": 2}}
        )

        self.assertEqual(response.status_code, 200)
        result = response.get_json()["result"]
        self.assertTrue(result["success"])
        self.assertEqual(result["commission"], 100.0)
        self.assertEqual(result["multiplier"], 0.10)
        self.assertEqual(result["baseEarnings"], 1000.0)

    def test_quote_commission_invalid_earnings(self):
        response = self.client.post(
            "/", json={"data": {"id": "s2", "earnings": -1, "level": 1}}
        )

        self.assertEqual(response.status_code, 200)
        result = response.get_json()["result"]
        self.assertFalse(result["success"])
        self.assertEqual(result["commission"], 0.0)
        self.assertIn("Earnings must be a positive number", result["error"])


class TestMainScheduledSync(unittest.TestCase):

    def test_scheduled_sync_runs_full_sync(self):
        sync_service = MagicMock()
        sync_service.full_sync.return_value = FullSyncResult(
            success=True,
            results={"streamers_to_sheets": SyncResult(success=True, count=2)},
        )
        with patch.object(main_module, "SyncService", return_value=sync_service), \
                patch.object(main_module, "_db_client"), \
                patch.object(main_module, "_gas_client"):
            main_module.scheduled_sync.__wrapped__(MagicMock())

        sync_service.full_sync.assert_called_once_with()


if __name__ == "__main__":
    unittest.main()
