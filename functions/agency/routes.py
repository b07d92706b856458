"""
HTTP routes for the agency API.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from dataclasses import asdict
from typing import Any, Optional

import requests
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from agency.auth import AuthManager, permissions_for_role
from agency.cache import ResponseCache, get_or_fetch
from agency.commissions import CommissionService
from agency.config import Settings, get_settings
from agency.db import DbClient
from agency.dependencies import (
    get_auth_manager,
    get_circuit_breaker,
    get_commission_service,
    get_commission_validator,
    get_db_client,
    get_error_tracker,
    get_gas_client,
    get_request_log,
    get_response_cache,
    get_sync_service,
    require_permission,
)
from agency.errors import (
    AgencyError,
    AuthError,
    DocumentNotFoundError,
    ErrorTracker,
    ValidationFailedError,
    error_body,
    utc_timestamp,
)
from agency.gas_client import GasClient
from agency.request_log import RequestLog
from agency.resilience import CircuitBreaker
from agency.schemas import (
    AgencyPayload,
    BatchResponse,
    BatchValidationRequest,
    CommissionBatchRequest,
    CommissionCalculateRequest,
    CommissionStatusUpdate,
    GasProxyResponse,
    HealthResponse,
    QuoteRequest,
    QuoteResponse,
    RefreshRequest,
    StreamerPayload,
    StreamerUpdate,
    SyncRequest,
    TokenRequest,
    TokenResponse,
)
from agency.sync import SyncService
from shared.commission_validator import CommissionValidator
from shared.firebase_constants import STREAMERS_COLLECTION
from shared.streamer_validator import generate_report, validate_email, validate_many, validate_streamer

logger = logging.getLogger(__name__)

router = APIRouter()

GAS_CACHE_PREFIX = "gas_api:"
DEFAULT_GET_ACTION = "health"
DEFAULT_POST_ACTION = "updateStreamer"

can_write = require_permission("write")
can_sync = require_permission("sync")


def _gas_cache_key(action: str, params: dict) -> str:
    return f"{GAS_CACHE_PREFIX}{action}:{json.dumps(params, sort_keys=True)}"


def _proxy_params(request: Request) -> dict:
    """Query parameters minus `action`; repeated keys keep every value as a list."""
    params: dict = {}
    for key, value in request.query_params.multi_items():
        if key == "action":
            continue
        if key not in params:
            params[key] = value
        elif isinstance(params[key], list):
            params[key].append(value)
        else:
            params[key] = [params[key], value]
    return params


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _gas_failure(
    error: Exception,
    action: str,
    tracker: ErrorTracker,
    request_log: RequestLog,
) -> JSONResponse:
    tracked = tracker.track(error, {"action": action})
    request_log.error(f"GAS action {action} failed", error=error, error_id=tracked.id)
    return JSONResponse(status_code=500, content=error_body(error, tracked, action))


def _listing(items: list[dict]) -> dict:
    return {"success": True, "data": items, "count": len(items)}


@router.get("/gas", response_model=GasProxyResponse)
def gas_proxy_get(
    request: Request,
    gas: GasClient = Depends(get_gas_client),
    cache: ResponseCache = Depends(get_response_cache),
    tracker: ErrorTracker = Depends(get_error_tracker),
    request_log: RequestLog = Depends(get_request_log),
):
    """
    Forwards `action` and every other query parameter to the GAS deployment.

    Successful answers are cached per action and parameters.
    """
    started = time.perf_counter()
    params = _proxy_params(request)
    action = request.query_params.get("action") or DEFAULT_GET_ACTION
    try:
        data, cached = get_or_fetch(
            cache,
            _gas_cache_key(action, params),
            lambda: gas.get(action, params),
        )
    except (AgencyError, requests.RequestException) as e:
        return _gas_failure(e, action, tracker, request_log)
    return GasProxyResponse(
        success=True,
        data=data,
        timestamp=utc_timestamp(),
        system={"responseTime": _elapsed_ms(started), "cached": cached},
    )


@router.post("/gas", response_model=GasProxyResponse)
def gas_proxy_post(
    request: Request,
    body: Any = Body(default=None),
    gas: GasClient = Depends(get_gas_client),
    cache: ResponseCache = Depends(get_response_cache),
    tracker: ErrorTracker = Depends(get_error_tracker),
    request_log: RequestLog = Depends(get_request_log),
    _auth=Depends(can_write),
):
    started = time.perf_counter()
    params = _proxy_params(request)
    action = request.query_params.get("action") or DEFAULT_POST_ACTION
    try:
        data = gas.post(action, body, params)
    except (AgencyError, requests.RequestException) as e:
        return _gas_failure(e, action, tracker, request_log)
    cleared = cache.delete_prefix(GAS_CACHE_PREFIX)
    logger.debug("Cleared %d cached GAS responses after %s", cleared, action)
    return GasProxyResponse(
        success=True,
        data=data,
        timestamp=utc_timestamp(),
        system={"responseTime": _elapsed_ms(started), "cached": False},
    )


@router.get("/health", response_model=HealthResponse)
def health(
    db: DbClient = Depends(get_db_client),
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
    settings: Settings = Depends(get_settings),
):
    database = db.health_check()
    breaker_status = breaker.status()
    healthy = database.get("status") == "healthy" and not breaker_status["is_open"]
    return HealthResponse(
        status="ok" if healthy else "degraded",
        timestamp=utc_timestamp(),
        version=settings.app_version,
        database=database,
        circuit_breaker=breaker_status,
    )


@router.get("/monitoring")
def monitoring(
    request_log: RequestLog = Depends(get_request_log),
    tracker: ErrorTracker = Depends(get_error_tracker),
    cache: ResponseCache = Depends(get_response_cache),
    breaker: CircuitBreaker = Depends(get_circuit_breaker),
    auth: AuthManager = Depends(get_auth_manager),
    sync: SyncService = Depends(get_sync_service),
):
    return {
        "success": True,
        "timestamp": utc_timestamp(),
        "logs": request_log.analytics(),
        "errors": tracker.report(),
        "cache": cache.metrics(),
        "circuit_breaker": breaker.status(),
        "auth": auth.stats(),
        "sync": {"in_progress": sync.is_syncing},
    }


@router.get("/streamers")
def list_streamers(
    agency_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    app: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: DbClient = Depends(get_db_client),
):
    return _listing(db.get_streamers(agency_id=agency_id, status=status, app=app, limit=limit))


@router.post("/streamers", status_code=201)
def create_streamer(
    payload: StreamerPayload,
    db: DbClient = Depends(get_db_client),
    _auth=Depends(can_write),
):
    validation = validate_streamer(payload.model_dump(mode="json", exclude_none=True))
    if not validation.is_valid:
        raise ValidationFailedError(validation.errors, validation.warnings)
    data = validation.corrected_data
    if db.get_streamer(data["id"]) is not None:
        raise HTTPException(status_code=409, detail=f"Streamer {data['id']} already exists")
    created = db.create_streamer(data)
    return {"success": True, "data": created, "warnings": validation.warnings}


@router.post("/streamers/validate")
def validate_streamers(payload: BatchValidationRequest):
    return {"success": True, **generate_report(validate_many(payload.streamers))}


@router.get("/streamers/{streamer_id}")
def get_streamer(streamer_id: str, db: DbClient = Depends(get_db_client)):
    streamer = db.get_streamer(streamer_id)
    if streamer is None:
        raise DocumentNotFoundError(STREAMERS_COLLECTION, streamer_id)
    return {"success": True, "data": streamer}


@router.patch("/streamers/{streamer_id}")
def update_streamer(
    streamer_id: str,
    payload: StreamerUpdate,
    db: DbClient = Depends(get_db_client),
    _auth=Depends(can_write),
):
    updates = payload.model_dump(mode="json", exclude_unset=True)
    warnings = []
    for field_name in ("email", "binance_email"):
        if updates.get(field_name) is None:
            continue
        email = validate_email(updates[field_name])
        if not email.is_valid and not email.corrected:
            raise ValidationFailedError([f"{field_name}: {email.error}"])
        if not email.is_valid:
            warnings.append(f"{field_name} corrected: {updates[field_name]} -> {email.corrected}")
        updates[field_name] = email.corrected
    updated = db.update_streamer(streamer_id, updates)
    return {"success": True, "data": updated, "warnings": warnings}


@router.get("/commissions")
def list_commissions(
    streamer_id: Optional[str] = Query(None),
    agency_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    app: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: DbClient = Depends(get_db_client),
):
    return _listing(
        db.get_commissions(
            streamer_id=streamer_id,
            agency_id=agency_id,
            status=status,
            app=app,
            limit=limit,
        )
    )


@router.post("/commissions", status_code=201)
def create_commission(
    payload: CommissionCalculateRequest,
    service: CommissionService = Depends(get_commission_service),
    _auth=Depends(can_write),
):
    commission = service.calculate_commission(payload.streamer_id, payload.amount, payload.app)
    return {"success": True, "data": service.create_commission(commission)}


@router.post("/commissions/calculate")
def calculate_commission(
    payload: CommissionCalculateRequest,
    service: CommissionService = Depends(get_commission_service),
    _auth=Depends(can_write),
):
    """Returns the commission; `save=true` also stores it."""
    commission = service.calculate_commission(payload.streamer_id, payload.amount, payload.app)
    if payload.save:
        return {"success": True, "saved": True, "data": service.create_commission(commission)}
    return {"success": True, "saved": False, "data": asdict(commission)}


@router.post("/commissions/quote", response_model=QuoteResponse)
def quote_commission(
    payload: QuoteRequest,
    validator: CommissionValidator = Depends(get_commission_validator),
):
    quote = validator.calculate_commission(payload.model_dump(exclude_none=True))
    return QuoteResponse(**asdict(quote))


@router.post("/commissions/batch", response_model=BatchResponse)
def process_commission_batch(
    payload: CommissionBatchRequest,
    service: CommissionService = Depends(get_commission_service),
    _auth=Depends(can_write),
):
    return BatchResponse(**asdict(service.process_commission_batch(payload.commissions)))


@router.patch("/commissions/{commission_id}/status")
def update_commission_status(
    commission_id: str,
    payload: CommissionStatusUpdate,
    service: CommissionService = Depends(get_commission_service),
    _auth=Depends(can_write),
):
    extra = payload.model_dump(mode="json", exclude={"status"})
    updated = service.update_commission_status(commission_id, payload.status, **extra)
    return {"success": True, "data": updated}


@router.get("/commissions/stats")
def commission_stats(
    agency_id: Optional[str] = Query(None),
    service: CommissionService = Depends(get_commission_service),
):
    return {"success": True, "data": service.get_commission_stats(agency_id)}


@router.get("/agencies")
def list_agencies(db: DbClient = Depends(get_db_client)):
    return _listing(db.get_agencies())


@router.post("/agencies", status_code=201)
def create_agency(
    payload: AgencyPayload,
    db: DbClient = Depends(get_db_client),
    _auth=Depends(can_write),
):
    return {"success": True, "data": db.create_agency(payload.model_dump(mode="json", exclude_none=True))}


@router.post("/sync")
def run_sync(
    payload: Optional[SyncRequest] = None,
    sync: SyncService = Depends(get_sync_service),
    _auth=Depends(can_sync),
):
    target = payload.target if payload else "full"
    result = sync.run_target(target)
    return {"target": target, **asdict(result)}


@router.post("/auth/token", response_model=TokenResponse)
def issue_token(
    payload: TokenRequest,
    db: DbClient = Depends(get_db_client),
    auth: AuthManager = Depends(get_auth_manager),
    settings: Settings = Depends(get_settings),
):
    if not settings.admin_api_key:
        raise AuthError("Token issuing is disabled")
    if not secrets.compare_digest(payload.api_key, settings.admin_api_key):
        raise AuthError("Invalid API key")
    user = db.get_user_by_email(payload.email.strip().lower())
    if user is None:
        raise AuthError("Unknown user")
    grant = auth.create_token(user, permissions_for_role(user.get("role")))
    return TokenResponse(**asdict(grant))


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh_token(
    payload: RefreshRequest,
    auth: AuthManager = Depends(get_auth_manager),
):
    return TokenResponse(**asdict(auth.refresh(payload.refresh_token)))
