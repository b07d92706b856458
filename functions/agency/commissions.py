"""
Agency commissions: calculation from stored streamer levels, persistence and
reporting.
"""

from __future__ import annotations

import logging
import math
import time
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from agency.db import DbClient
from agency.errors import DocumentNotFoundError, ValidationFailedError
from shared.commission_validator import round_money
from shared.constants import (
    AGENCY_COMMISSION_RATES,
    DEFAULT_AGENCY_COMMISSION_RATE,
    DEFAULT_LEVEL,
)
from shared.firebase_constants import COMMISSIONS_COLLECTION, STREAMERS_COLLECTION
from shared.types import Commission, CommissionStatus

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    total: int
    successful: int = 0
    failed: int = 0
    errors: list[dict] = field(default_factory=list)


def rate_for_level(level: Any) -> float:
    return AGENCY_COMMISSION_RATES.get(level, DEFAULT_AGENCY_COMMISSION_RATE)


class CommissionService:
    def __init__(self, db: DbClient, default_agency_id: str = "luxeryprime"):
        self.db = db
        self.default_agency_id = default_agency_id

    def calculate_commission(
        self, streamer_id: str, amount: float, app: Optional[str] = None
    ) -> Commission:
        """
        Builds a pending commission for `amount` at the streamer's level rate.

        Nothing is persisted; pass the result to `create_commission`.
        """
        if (
            isinstance(amount, bool)
            or not isinstance(amount, (int, float))
            or not math.isfinite(amount)
            or amount < 0
        ):
            raise ValidationFailedError(["Amount must be a positive number"])

        streamer = self.db.get_streamer(streamer_id)
        if streamer is None:
            raise DocumentNotFoundError(STREAMERS_COLLECTION, streamer_id)

        level = streamer.get("level") or DEFAULT_LEVEL
        rate = rate_for_level(level)
        commission_amount = round_money(amount * rate)
        now = datetime.now(timezone.utc)
        return Commission(
            id=f"COMM_{int(time.time() * 1000)}_{streamer_id}",
            streamer_id=streamer_id,
            streamer_name=streamer.get("name"),
            agency_id=streamer.get("agency_id") or self.default_agency_id,
            app=app,
            level=level,
            base_amount=float(amount),
            commission_rate=rate,
            commission_amount=commission_amount,
            net_amount=round_money(amount - commission_amount),
            status=CommissionStatus.PENDING,
            created_at=now,
            updated_at=now,
        )

    def create_commission(self, commission: Commission | dict) -> dict:
        data = asdict(commission) if isinstance(commission, Commission) else dict(commission)
        created = self.db.create_commission(data)
        self._notify(
            "Commission created for %s: $%s",
            created.get("streamer_name") or created.get("streamer_id"),
            created.get("commission_amount"),
        )
        return created

    def get_streamer_commissions(self, streamer_id: str, **filters) -> list[dict]:
        return self.db.get_commissions(streamer_id=streamer_id, **filters)

    def get_agency_commissions(self, agency_id: str, **filters) -> list[dict]:
        return self.db.get_commissions(agency_id=agency_id, **filters)

    def update_commission_status(
        self, commission_id: str, status: str, **extra: Any
    ) -> dict:
        try:
            status = CommissionStatus(status)
        except ValueError as e:
            raise ValidationFailedError([f"Invalid commission status: {status}"]) from e
        if self.db.get_commission(commission_id) is None:
            raise DocumentNotFoundError(COMMISSIONS_COLLECTION, commission_id)
        updated = self.db.update_commission(commission_id, {**extra, "status": status})
        self._notify("Commission %s moved to %s", commission_id, status.value)
        return updated

    def process_commission_batch(self, items: Iterable[dict]) -> BatchResult:
        """
        Calculates and stores one commission per item.

        Each item needs `streamer_id` and `amount` (or `base_amount`) and may
        carry `app` and `id`. Failures are collected per item.
        """
        items = list(items)
        result = BatchResult(total=len(items))
        for item in items:
            try:
                commission = self.calculate_commission(
                    item.get("streamer_id"),
                    item.get("amount", item.get("base_amount")),
                    item.get("app"),
                )
                if item.get("id"):
                    commission.id = item["id"]
                self.create_commission(commission)
                result.successful += 1
            except Exception as e:
                logger.exception("Commission batch item failed: %s", item)
                result.failed += 1
                result.errors.append(
                    {
                        "commission_id": item.get("id") or item.get("streamer_id"),
                        "error": str(e),
                    }
                )
        return result

    def get_commission_stats(self, agency_id: Optional[str] = None) -> dict:
        commissions = self.db.get_commissions(agency_id=agency_id, limit=None)
        total_amount = sum(c.get("base_amount") or 0 for c in commissions)
        total_commission = sum(c.get("commission_amount") or 0 for c in commissions)
        stats = {
            "agency_id": agency_id,
            "total": len(commissions),
            "total_amount": round_money(total_amount),
            "total_commission": round_money(total_commission),
            "by_status": dict(Counter(str(c.get("status")) for c in commissions)),
            "by_level": dict(Counter(str(c.get("level")) for c in commissions)),
            "by_app": dict(Counter(str(c.get("app")) for c in commissions)),
        }
        stats["report_id"] = self.db.save_report("commission_stats", dict(stats))
        return stats

    def _notify(self, message: str, *args: Any) -> None:
        # Notification channels (WhatsApp, email) are not wired up yet.
        logger.info(message, *args)
