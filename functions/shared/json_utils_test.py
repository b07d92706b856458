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

from shared.json_utils import camel_to_snake, convert_keys, snake_to_camel


class JsonUtilsTest(unittest.TestCase):

    def test_key_helpers(self):
        self.assertEqual(snake_to_camel("binance_email"), "binanceEmail")
        self.assertEqual(snake_to_camel("id"), "id")
        self.assertEqual(camel_to_snake("streamerId"), "streamer_id")
        self.assertEqual(camel_to_snake("createdAt"), "created_at")

    def test_convert_nested(self):
        data = {
            "streamer_id": "s1",
            "corrected_data": {"binance_email": "a@b.com"},
            "results": [{"is_valid": True}],
            1: "non-string key",
        }

        converted = convert_keys(data, "snake_to_camel")

        self.assertEqual(
            converted,
            {
                "streamerId": "s1",
                "correctedData": {"binanceEmail": "a@b.com"},
                "results": [{"isValid": True}],
                1: "non-string key",
            },
        )
        self.assertEqual(convert_keys(converted, "camel_to_snake"), data)

    def test_scalars_pass_through(self):
        self.assertEqual(convert_keys("some_value", "snake_to_camel"), "some_value")

    def test_unknown_direction(self):
        with self.assertRaises(ValueError):
            convert_keys({}, "sideways")


if __name__ == "__main__":
    unittest.main()
