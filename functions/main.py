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

# Cloud functions for the streamer agency backend - commissions, validation
# and the scheduled Firestore <-> Sheets sync.
#
# This file containing Python cloud functions must be named main.py.
# See https://cloud.google.com/run/docs/write-functions#python for more info.

# Standard library imports
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional

# Third-party library imports
from dacite import Config, DaciteError, from_dict
from firebase_admin import initialize_app, firestore
from firebase_functions import https_fn, logger, options, scheduler_fn

# Local application imports
from agency.commissions import CommissionService
from agency.config import get_settings
from agency.db import DbClient, FirestoreDbClient
from agency.errors import DocumentNotFoundError, ValidationFailedError
from agency.gas_client import GasClient
from agency.resilience import CircuitBreaker
from agency.sync import SyncService
from shared.commission_validator import CommissionValidator
from shared.constants import STREAMER_ID_MAX_LENGTH
from shared.json_utils import convert_keys
from shared.streamer_validator import validate_streamer as validate_streamer_data

SYNC_SCHEDULE = "every 5 minutes"

initialize_app()

# Module level so quotes stay memoized while the instance is warm.
commission_validator = CommissionValidator()


@dataclass
class CalculateCommissionRequest:
    streamer_id: str
    amount: float
    app: Optional[str] = None
    save: bool = False


def _db_client() -> DbClient:
    return FirestoreDbClient(firestore.client())


def _gas_client() -> GasClient:
    settings = get_settings()
    return GasClient(
        settings.gas_api_url,
        timeout=settings.gas_timeout_seconds,
        max_retries=settings.gas_max_retries,
        retry_delay=settings.gas_retry_delay_seconds,
        retry_max_delay=settings.gas_retry_max_delay_seconds,
        breaker=CircuitBreaker(
            threshold=settings.circuit_breaker_threshold,
            reset_timeout=settings.circuit_breaker_reset_seconds,
        ),
    )


def _to_client(value: Any) -> Any:
    """Camel-cases keys and turns datetimes into ISO strings for the response."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _to_client(v) for k, v in convert_keys(value, "snake_to_camel").items()}
    if isinstance(value, list):
        return [_to_client(v) for v in value]
    return value


@https_fn.on_call(memory=options.MemoryOption.MB_512)
def calculate_commission(req: https_fn.CallableRequest) -> dict:
    """
    Calculates the agency commission for a streamer and optionally stores it.

    Args:
        req (https_fn.CallableRequest): The request, containing streamerId,
            amount, and optionally app and save.

    Returns:
        The camelCased commission.
    """
    try:
        request = from_dict(
            data_class=CalculateCommissionRequest,
            data=convert_keys(req.data or {}, "camel_to_snake"),
            config=Config(check_types=False),
        )
    except DaciteError as e:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            f"Invalid request: {e}",
        )

    if not request.streamer_id or len(request.streamer_id) > STREAMER_ID_MAX_LENGTH:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Incorrect streamerId length.",
        )

    service = CommissionService(
        _db_client(), default_agency_id=get_settings().default_agency_id
    )
    try:
        commission = service.calculate_commission(
            request.streamer_id, request.amount, request.app
        )
    except ValidationFailedError as e:
        raise https_fn.HttpsError(https_fn.FunctionsErrorCode.INVALID_ARGUMENT, str(e))
    except DocumentNotFoundError as e:
        raise https_fn.HttpsError(https_fn.FunctionsErrorCode.NOT_FOUND, str(e))

    if request.save:
        return _to_client(service.create_commission(commission))
    return _to_client(asdict(commission))


@https_fn.on_call(memory=options.MemoryOption.MB_512)
def quote_commission(req: https_fn.CallableRequest) -> dict:
    """Quick quote from the streamer's own earnings and level."""
    if not isinstance(req.data, dict):
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Must specify the streamer fields.",
        )
    quote = commission_validator.calculate_commission(
        convert_keys(req.data, "camel_to_snake")
    )
    return _to_client(asdict(quote))


@https_fn.on_call(memory=options.MemoryOption.MB_512)
def validate_streamer(req: https_fn.CallableRequest) -> dict:
    if not isinstance(req.data, dict) or not req.data:
        raise https_fn.HttpsError(
            https_fn.FunctionsErrorCode.INVALID_ARGUMENT,
            "Must specify the streamer fields.",
        )
    result = validate_streamer_data(convert_keys(req.data, "camel_to_snake"))
    return _to_client({**asdict(result), "has_corrections": result.has_corrections})


@scheduler_fn.on_schedule(schedule=SYNC_SCHEDULE, timeout_sec=300)
def scheduled_sync(event: scheduler_fn.ScheduledEvent) -> None:
    """Runs a full Firestore <-> Sheets sync."""
    settings = get_settings()
    sync = SyncService(
        _db_client(),
        _gas_client(),
        sheet_id=settings.google_sheets_id,
        sheet_range=settings.google_sheets_range,
    )
    result = sync.full_sync()
    summary = {name: asdict(step) for name, step in result.results.items()}
    if result.success:
        logger.info("Scheduled sync finished", summary)
    else:
        logger.warn("Scheduled sync failed", result.error or summary)
