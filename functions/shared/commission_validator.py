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

"""
Quick commission quotes computed from a streamer's own earnings and level.

Unlike the agency commission service, no database lookup is involved: the
caller supplies the streamer fields and receives the commission that the
level multiplier yields, after the fields have been validated and corrected.
"""

import re
import threading
import time
from dataclasses import asdict, dataclass, field, replace
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable, Dict, Iterable, List, Optional

from shared.constants import (
    DEFAULT_COUNTRY,
    LEVEL_EARNINGS_THRESHOLDS,
    LEVEL_MULTIPLIERS,
    MAX_EARNINGS,
    VALID_LEVELS,
)
from shared.types import ValidationResult

STREAMER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
QUOTE_CACHE_TTL_SECONDS = 5 * 60
QUOTE_CACHE_MAX_ENTRIES = 1000


@dataclass
class CommissionQuote:
    success: bool
    commission: float
    level: Optional[int] = None
    multiplier: Optional[float] = None
    base_earnings: Optional[float] = None
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    error: Optional[str] = None


def round_money(value: float) -> float:
    """Rounds half-up to cents."""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def suggest_level_by_earnings(earnings: Any) -> int:
    if isinstance(earnings, (int, float)) and not isinstance(earnings, bool):
        for minimum, level in LEVEL_EARNINGS_THRESHOLDS:
            if earnings >= minimum:
                return level
    return 1


def is_valid_streamer_id(value: Any) -> bool:
    return (
        isinstance(value, str)
        and value.strip() != ""
        and bool(STREAMER_ID_PATTERN.match(value))
    )


def _earnings_errors(earnings: Any) -> List[str]:
    if isinstance(earnings, bool) or not isinstance(earnings, (int, float)):
        return ["Earnings must be a valid number"]
    if earnings != earnings:
        return ["Earnings must be a valid number"]
    if earnings < 0:
        return ["Earnings must be a positive number"]
    if earnings > MAX_EARNINGS:
        return ["Earnings exceed the maximum allowed"]
    return []


def _cache_key(data: Dict[str, Any]) -> Optional[tuple]:
    # Typed so that 1, 1.0 and True do not share an entry.
    key = tuple(
        (type(value).__name__, value)
        for value in (data.get("id"), data.get("earnings"), data.get("level"))
    )
    try:
        hash(key)
    except TypeError:
        return None
    return key


def _copy_quote(quote: CommissionQuote) -> CommissionQuote:
    return replace(quote, warnings=list(quote.warnings), errors=list(quote.errors))


class CommissionValidator:
    """Validates streamer fields and quotes level-based commissions."""

    def __init__(
        self,
        cache_ttl_seconds: float = QUOTE_CACHE_TTL_SECONDS,
        max_cache_entries: int = QUOTE_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.cache_ttl_seconds = cache_ttl_seconds
        self.max_cache_entries = max_cache_entries
        self._clock = clock
        self._cache: Dict[tuple, tuple[float, CommissionQuote]] = {}
        self._lock = threading.Lock()

    def validate_streamer_data(self, data: Dict[str, Any]) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []
        corrected = dict(data)

        if not is_valid_streamer_id(data.get("id")):
            errors.append(
                "Streamer id is required and may only contain letters, digits, '_' and '-'"
            )

        level = data.get("level")
        if isinstance(level, bool) or level not in VALID_LEVELS:
            suggested = suggest_level_by_earnings(data.get("earnings"))
            warnings.append(f"Level corrected: {level} -> {suggested}")
            corrected["level"] = suggested

        errors.extend(_earnings_errors(data.get("earnings")))

        if not data.get("country"):
            warnings.append(f"Country not specified, defaulting to {DEFAULT_COUNTRY}")
            corrected["country"] = DEFAULT_COUNTRY

        return ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            corrected_data=corrected,
        )

    def calculate_commission(self, data: Dict[str, Any]) -> CommissionQuote:
        """
        Quotes the commission for `data`.

        Quotes are remembered per (id, earnings, level) for `cache_ttl_seconds`.
        Callers always receive their own copy.
        """
        key = _cache_key(data)
        now = self._clock()
        if key is not None:
            with self._lock:
                self._remove_expired(now)
                cached = self._cache.get(key)
            if cached:
                return _copy_quote(cached[1])

        validation = self.validate_streamer_data(data)
        if not validation.is_valid:
            quote = CommissionQuote(
                success=False,
                commission=0.0,
                errors=validation.errors,
                warnings=validation.warnings,
                error=", ".join(validation.errors),
            )
        else:
            corrected = validation.corrected_data
            level = corrected["level"]
            multiplier = LEVEL_MULTIPLIERS[level]
            earnings = float(corrected["earnings"])
            quote = CommissionQuote(
                success=True,
                commission=round_money(earnings * multiplier),
                level=level,
                multiplier=multiplier,
                base_earnings=earnings,
                warnings=validation.warnings,
            )

        if key is not None:
            with self._lock:
                self._cache.pop(key, None)
                self._cache[key] = (now, _copy_quote(quote))
                while len(self._cache) > self.max_cache_entries:
                    del self._cache[next(iter(self._cache))]
        return quote

    def validate_many(self, items: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
        results = []
        for item in items:
            quote = self.calculate_commission(item)
            results.append({"streamer_id": item.get("id"), **asdict(quote)})
        successful = sum(1 for r in results if r["success"])
        return {
            "total": len(results),
            "successful": successful,
            "failed": len(results) - successful,
            "results": results,
        }

    def clear_expired_cache(self) -> int:
        with self._lock:
            return self._remove_expired(self._clock())

    def _remove_expired(self, now: float) -> int:
        # Caller holds the lock.
        expired = [
            key
            for key, (stored_at, _) in self._cache.items()
            if now - stored_at >= self.cache_ttl_seconds
        ]
        for key in expired:
            del self._cache[key]
        return len(expired)
