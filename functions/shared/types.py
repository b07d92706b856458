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

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Dict, List, Optional


class StreamerStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class CommissionStatus(StrEnum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class UserRole(StrEnum):
    ADMIN = "admin"
    LEADER = "leader"
    STREAMER = "streamer"


class PaymentMethod(StrEnum):
    BINANCE = "binance"
    PAYPAL = "paypal"
    BANK = "bank"


@dataclass
class Commission:
    id: str
    streamer_id: str
    app: Optional[str]
    base_amount: float
    commission_rate: float
    commission_amount: float
    net_amount: float
    level: int = 1
    streamer_name: Optional[str] = None
    agency_id: Optional[str] = None
    status: CommissionStatus = CommissionStatus.PENDING
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class ValidationResult:
    """Outcome of validating a single record."""

    is_valid: bool
    errors: List[str]
    warnings: List[str]
    corrected_data: Dict[str, Any]

    @property
    def has_corrections(self) -> bool:
        return len(self.warnings) > 0


@dataclass
class BatchValidationReport:
    total: int
    successful: int
    failed: int
    total_errors: int
    total_warnings: int
    total_corrections: int
    results: List[Dict[str, Any]]
