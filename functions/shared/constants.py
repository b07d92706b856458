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

VALID_LEVELS = (1, 2, 3, 4, 5)
DEFAULT_LEVEL = 1

# (minimum earnings, level), checked in order.
LEVEL_EARNINGS_THRESHOLDS = (
    (10000, 5),
    (5000, 4),
    (2000, 3),
    (500, 2),
)

# Quick-quote multipliers applied to a streamer's own earnings.
LEVEL_MULTIPLIERS = {
    1: 0.05,
    2: 0.10,
    3: 0.15,
    4: 0.20,
    5: 0.25,
}

# Agency commission rates applied to a base amount.
AGENCY_COMMISSION_RATES = {
    1: 0.15,
    2: 0.20,
    3: 0.25,
    4: 0.30,
    5: 0.35,
}
DEFAULT_AGENCY_COMMISSION_RATE = 0.15

MAX_EARNINGS = 1_000_000

DEFAULT_COUNTRY = "Colombia"
VALID_COUNTRIES = (
    "Colombia",
    "México",
    "Venezuela",
    "Perú",
    "Ecuador",
    "Chile",
    "Argentina",
)

EMAIL_TYPO_CORRECTIONS = {
    "gmail.com": ("gmial.com", "gmail.co", "gmail.coom"),
    "hotmail.com": ("hotmial.com", "hotmail.co", "hotmail.coom"),
    "yahoo.com": ("yaho.com", "yahoo.co", "yahoo.coom"),
}

STREAMER_ID_MAX_LENGTH = 128
MIN_NAME_LENGTH = 2

# Seconds a proxied response stays cached, by category.
CACHE_CATEGORY_TTLS = {
    "streamers": 300,
    "commissions": 600,
    "agencies": 1800,
}
CACHE_CATEGORY_MAX_SIZES = {
    "streamers": 1000,
    "commissions": 500,
    "agencies": 100,
}
DEFAULT_CACHE_MAX_SIZE = 1000
