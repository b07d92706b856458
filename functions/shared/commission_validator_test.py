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

import unittest
from unittest import mock

from shared.commission_validator import (
    CommissionValidator,
    _cache_key,
    round_money,
    suggest_level_by_earnings,
)


def _key(streamer_id, earnings, level):
    return _cache_key({"id": streamer_id, "earnings": earnings, "level": level})


class CommissionValidatorTest(unittest.TestCase):

    def setUp(self):
        self.validator = CommissionValidator()

    def test_round_money(self):
        self.assertEqual(round_money(2.675), 2.68)
        self.assertEqual(round_money(10), 10.0)

    def test_suggest_level_by_earnings(self):
        self.assertEqual(suggest_level_by_earnings(12000), 5)
        self.assertEqual(suggest_level_by_earnings(500), 2)
        self.assertEqual(suggest_level_by_earnings(499), 1)
        self.assertEqual(suggest_level_by_earnings("a lot"), 1)

    def test_quote(self):
        quote = self.validator.calculate_commission(
            {"id": "s1", "earnings": 1000, "level": 3, "country": "Perú"}
        )

        self.assertTrue(quote.success)
        self.assertEqual(quote.commission, 150.0)
        self.assertEqual(quote.multiplier, 0.15)
        self.assertEqual(quote.warnings, [])

    def test_level_is_suggested_from_earnings(self):
        quote = self.validator.calculate_commission({"id": "s1", "earnings": 6000})

        self.assertTrue(quote.success)
        self.assertEqual(quote.level, 4)
        self.assertEqual(quote.commission, 1200.0)
        self.assertIn("Level corrected: None -> 4", quote.warnings)

    def test_invalid_data(self):
        quote = self.validator.calculate_commission(
            {"id": "bad id!", "earnings": 2_000_000, "level": 1}
        )

        self.assertFalse(quote.success)
        self.assertEqual(quote.commission, 0.0)
        self.assertEqual(len(quote.errors), 2)
        self.assertIn("Earnings exceed the maximum allowed", quote.error)

    def test_non_numeric_earnings(self):
        for earnings in ("100", None, True, float("nan")):
            with self.subTest(earnings=earnings):
                result = self.validator.validate_streamer_data(
                    {"id": "s1", "earnings": earnings, "level": 1}
                )
                self.assertIn("Earnings must be a valid number", result.errors)

    def test_quotes_are_cached(self):
        data = {"id": "s1", "earnings": 1000, "level": 2}

        with mock.patch.object(
            self.validator,
            "validate_streamer_data",
            wraps=self.validator.validate_streamer_data,
        ) as validate:
            first = self.validator.calculate_commission(data)
            second = self.validator.calculate_commission(dict(data))

        validate.assert_called_once()
        self.assertEqual(first, second)
        self.assertIsNot(first, second)

    def test_cached_quote_cannot_be_changed_by_callers(self):
        data = {"id": "s1", "earnings": 6000}
        first = self.validator.calculate_commission(data)
        first.warnings.append("edited")
        first.commission = 0.0

        second = self.validator.calculate_commission(data)

        self.assertEqual(second.commission, 1200.0)
        self.assertEqual(second.warnings, ["Level corrected: None -> 4"])

    def test_bool_and_int_levels_are_cached_separately(self):
        valid = {"id": "s1", "earnings": 1000, "level": 1}
        flagged = {"id": "s1", "earnings": 1000, "level": True}

        for order in ((valid, flagged), (flagged, valid)):
            with self.subTest(first_level=order[0]["level"]):
                validator = CommissionValidator()
                quotes = [validator.calculate_commission(data) for data in order]
                by_level = dict(zip((type(d["level"]) for d in order), quotes))

                self.assertEqual(by_level[int].warnings, [])
                self.assertEqual(
                    by_level[bool].warnings, ["Level corrected: True -> 2"]
                )
                self.assertEqual(by_level[bool].commission, 100.0)

    def test_expired_quotes_are_dropped_on_use(self):
        now = [0.0]
        validator = CommissionValidator(cache_ttl_seconds=60, clock=lambda: now[0])
        validator.calculate_commission({"id": "s1", "earnings": 10, "level": 1})
        validator.calculate_commission({"id": "s2", "earnings": 10, "level": 1})
        self.assertEqual(len(validator._cache), 2)

        now[0] = 61.0
        validator.calculate_commission({"id": "s3", "earnings": 10, "level": 1})

        self.assertEqual(list(validator._cache), [_key("s3", 10, 1)])

    def test_cache_size_is_bounded(self):
        validator = CommissionValidator(max_cache_entries=2)
        for streamer_id in ("s1", "s2", "s3"):
            validator.calculate_commission(
                {"id": streamer_id, "earnings": 10, "level": 1}
            )

        self.assertEqual(
            list(validator._cache), [_key("s2", 10, 1), _key("s3", 10, 1)]
        )

    def test_clear_expired_cache(self):
        now = [0.0]
        validator = CommissionValidator(cache_ttl_seconds=60, clock=lambda: now[0])
        validator.calculate_commission({"id": "s1", "earnings": 10, "level": 1})
        validator.calculate_commission({"id": "s2", "earnings": 10, "level": 1})

        self.assertEqual(validator.clear_expired_cache(), 0)
        now[0] = 60.0
        self.assertEqual(validator.clear_expired_cache(), 2)
        self.assertEqual(validator.clear_expired_cache(), 0)

    def test_validate_many(self):
        summary = self.validator.validate_many(
            [
                {"id": "s1", "earnings": 100, "level": 1},
                {"id": "", "earnings": 100, "level": 1},
            ]
        )

        self.assertEqual(summary["total"], 2)
        self.assertEqual(summary["successful"], 1)
        self.assertEqual(summary["results"][1]["streamer_id"], "")
        self.assertFalse(summary["results"][1]["success"])


if __name__ == "__main__":
    unittest.main()
