"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

import logging
from typing import Optional

import firebase_admin
from fastapi import Depends, Header
from firebase_admin import credentials, firestore

from agency.auth import AuthManager, TokenValidation
from agency.cache import InMemoryResponseCache, RedisResponseCache, ResponseCache
from agency.commissions import CommissionService
from agency.config import Settings, get_settings
from agency.db import DbClient, FirestoreDbClient, InMemoryDbClient
from agency.errors import ErrorTracker
from agency.gas_client import GasClient
from agency.request_log import RequestLog
from agency.resilience import CircuitBreaker
from agency.sync import SyncService
from shared.commission_validator import CommissionValidator

logger = logging.getLogger(__name__)

_db_client: DbClient | None = None
_response_cache: ResponseCache | None = None
_circuit_breaker: CircuitBreaker | None = None
_gas_client: GasClient | None = None
_request_log: RequestLog | None = None
_error_tracker: ErrorTracker | None = None
_auth_manager: AuthManager | None = None
_commission_validator: CommissionValidator | None = None
_sync_service: SyncService | None = None


def _firebase_app(settings: Settings) -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        cred = (
            credentials.Certificate(settings.firebase_service_account_key)
            if settings.firebase_service_account_key
            else None
        )
        return firebase_admin.initialize_app(
            cred, options={"projectId": settings.firebase_project_id}
        )


def get_db_client() -> DbClient:
    """
    Return a singleton DB client so state persists across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.firebase_project_id:
        logger.info("Using in-memory database")
        _db_client = InMemoryDbClient()
    else:
        _db_client = FirestoreDbClient(firestore.client(_firebase_app(settings)))
    return _db_client


def get_response_cache() -> ResponseCache:
    global _response_cache
    if _response_cache:
        return _response_cache

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _response_cache = RedisResponseCache(
            url=settings.redis_url,
            prefix=settings.redis_cache_prefix,
            default_ttl=settings.cache_ttl_seconds,
        )
    else:
        _response_cache = InMemoryResponseCache(default_ttl=settings.cache_ttl_seconds)
    return _response_cache


def get_circuit_breaker() -> CircuitBreaker:
    global _circuit_breaker
    if _circuit_breaker:
        return _circuit_breaker

    settings = get_settings()
    _circuit_breaker = CircuitBreaker(
        threshold=settings.circuit_breaker_threshold,
        reset_timeout=settings.circuit_breaker_reset_seconds,
    )
    return _circuit_breaker


def get_gas_client() -> GasClient:
    global _gas_client
    if _gas_client:
        return _gas_client

    settings = get_settings()
    _gas_client = GasClient(
        settings.gas_api_url,
        timeout=settings.gas_timeout_seconds,
        max_retries=settings.gas_max_retries,
        retry_delay=settings.gas_retry_delay_seconds,
        retry_max_delay=settings.gas_retry_max_delay_seconds,
        breaker=get_circuit_breaker(),
    )
    return _gas_client


def get_request_log() -> RequestLog:
    global _request_log
    if _request_log is None:
        _request_log = RequestLog()
    return _request_log


def get_error_tracker() -> ErrorTracker:
    global _error_tracker
    if _error_tracker is None:
        _error_tracker = ErrorTracker()
    return _error_tracker


def get_auth_manager() -> AuthManager:
    global _auth_manager
    if _auth_manager:
        return _auth_manager

    settings = get_settings()
    _auth_manager = AuthManager(
        session_timeout=settings.session_timeout_seconds,
        refresh_threshold=settings.refresh_threshold_seconds,
    )
    return _auth_manager


def get_commission_validator() -> CommissionValidator:
    global _commission_validator
    if _commission_validator is None:
        _commission_validator = CommissionValidator()
    return _commission_validator


def get_commission_service(
    db: DbClient = Depends(get_db_client),
    settings: Settings = Depends(get_settings),
) -> CommissionService:
    return CommissionService(db, default_agency_id=settings.default_agency_id)


def get_sync_service() -> SyncService:
    """
    Singleton, so the full-sync guard is shared by every request.
    """
    global _sync_service
    if _sync_service is None:
        settings = get_settings()
        _sync_service = SyncService(
            get_db_client(),
            get_gas_client(),
            sheet_id=settings.google_sheets_id,
            sheet_range=settings.google_sheets_range,
        )
    return _sync_service


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def require_permission(permission: str):
    """Route dependency enforcing `permission` when `require_auth` is on."""

    def dependency(
        authorization: Optional[str] = Header(default=None),
        auth: AuthManager = Depends(get_auth_manager),
        settings: Settings = Depends(get_settings),
    ) -> Optional[TokenValidation]:
        if not settings.require_auth:
            return None
        return auth.require(_bearer_token(authorization), [permission])

    return dependency
