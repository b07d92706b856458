"""
Domain exceptions plus the helpers that classify errors and describe how a
client might recover from them.
"""

from __future__ import annotations

import threading
import uuid
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Optional


class AgencyError(Exception):
    """Base class for errors raised by the agency backend."""

    status_code = 500


class GasApiError(AgencyError):
    """The Apps Script deployment answered with an error or unusable body."""

    status_code = 502

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status

    @property
    def retryable(self) -> bool:
        return self.status is None or self.status == 429 or self.status >= 500


class DocumentNotFoundError(AgencyError):
    status_code = 404

    def __init__(self, collection: str, document_id: str):
        super().__init__(f"{collection}/{document_id} not found")
        self.collection = collection
        self.document_id = document_id


class ValidationFailedError(AgencyError):
    status_code = 422

    def __init__(self, errors: list[str], warnings: list[str] | None = None):
        super().__init__(f"Validation failed: {', '.join(errors)}")
        self.errors = errors
        self.warnings = warnings or []


class CircuitOpenError(AgencyError):
    status_code = 503

    def __init__(self, message: str = "Circuit breaker is open, service temporarily unavailable"):
        super().__init__(message)


class SyncInProgressError(AgencyError):
    status_code = 409

    def __init__(self):
        super().__init__("Sync already in progress")


class AuthError(AgencyError):
    status_code = 401

    def __init__(self, message: str, action: str = "LOGIN_REQUIRED", status_code: int = 401):
        super().__init__(message)
        self.action = action
        self.status_code = status_code


class ErrorType(StrEnum):
    NETWORK_ERROR = "NETWORK_ERROR"
    API_ERROR = "API_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    AUTH_ERROR = "AUTH_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


# Checked in order; the first matching group wins.
_CLASSIFICATION_KEYWORDS = (
    (ErrorType.NETWORK_ERROR, ("network", "connection", "timeout", "timed out", "fetch")),
    (ErrorType.API_ERROR, ("api", "http", "status", "500", "404")),
    (ErrorType.VALIDATION_ERROR, ("validation", "invalid", "required")),
    (ErrorType.AUTH_ERROR, ("auth", "permission", "unauthorized")),
    (ErrorType.DATABASE_ERROR, ("database", "firestore", "query")),
)


def classify_error(error: BaseException) -> ErrorType:
    message = str(error).lower()
    for error_type, keywords in _CLASSIFICATION_KEYWORDS:
        if any(keyword in message for keyword in keywords):
            return error_type
    return ErrorType.UNKNOWN_ERROR


@dataclass(frozen=True)
class StatusInfo:
    type: str
    message: str
    retryable: bool


STATUS_INFO = {
    400: StatusInfo("BAD_REQUEST", "Invalid request", False),
    401: StatusInfo("UNAUTHORIZED", "Token expired", True),
    403: StatusInfo("FORBIDDEN", "Missing permissions", False),
    404: StatusInfo("NOT_FOUND", "Resource not found", False),
    429: StatusInfo("RATE_LIMITED", "Rate limit reached", True),
    500: StatusInfo("SERVER_ERROR", "Internal server error", True),
    502: StatusInfo("BAD_GATEWAY", "Bad gateway", True),
    503: StatusInfo("SERVICE_UNAVAILABLE", "Service unavailable", True),
    504: StatusInfo("GATEWAY_TIMEOUT", "Gateway timeout", True),
}


def describe_status(status_code: Optional[int]) -> StatusInfo:
    return STATUS_INFO.get(status_code or 500, STATUS_INFO[500])


def recovery_action(error_type: str, action: Optional[str] = None) -> Optional[str]:
    """Suggested client-side recovery for a status type, if any."""
    if error_type == "UNAUTHORIZED":
        return "REFRESH_TOKEN"
    if error_type == "RATE_LIMITED":
        return "WAIT_AND_RETRY"
    if error_type == "SERVER_ERROR":
        if action == "calculateCommission":
            return "FALLBACK_COMMISSION_CALCULATION"
        if action == "getStreamers":
            return "FALLBACK_CACHE_DATA"
        return "RETRY_WITH_BACKOFF"
    if error_type == "SERVICE_UNAVAILABLE":
        return "ACTIVATE_FALLBACK_MODE"
    return None


def recovery_suggestions(error: BaseException, action: Optional[str] = None) -> list[str]:
    message = str(error).lower()
    suggestions = []
    if "network" in message or "timeout" in message:
        suggestions.append("Check the network connection")
        suggestions.append("Retry the operation")
    if "500" in message or "server" in message:
        suggestions.append("The server is having problems")
        suggestions.append("Try again in a few minutes")
    if "commission" in message:
        suggestions.append("Check the streamer data")
        suggestions.append("Use the quick commission quote instead")
    if action:
        suggestions.append(f"Retry action: {action}")
    return suggestions


def new_error_id() -> str:
    return f"ERR_{uuid.uuid4().hex[:12]}"


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class TrackedError:
    id: str
    type: str
    message: str
    context: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=utc_timestamp)


class ErrorTracker:
    """Keeps a bounded, in-process history of handled errors."""

    def __init__(self, max_history: int = 500):
        self._history: deque[TrackedError] = deque(maxlen=max_history)
        self._total = 0
        self._lock = threading.Lock()

    def track(self, error: BaseException, context: Optional[dict] = None) -> TrackedError:
        tracked = TrackedError(
            id=new_error_id(),
            type=classify_error(error).value,
            message=str(error),
            context=dict(context or {}),
        )
        with self._lock:
            self._history.append(tracked)
            self._total += 1
        return tracked

    def report(self, recent: int = 10) -> dict:
        with self._lock:
            recent_errors = list(self._history)[-recent:]
            total = self._total
        return {
            "recent_errors": [asdict(e) for e in recent_errors],
            "total_errors": total,
        }

    def reset(self) -> None:
        with self._lock:
            self._history.clear()
            self._total = 0


def error_body(
    error: BaseException, tracked: TrackedError, action: Optional[str] = None
) -> dict:
    """JSON body returned for a failed API request."""
    body = {
        "success": False,
        "error": str(error),
        "errorId": tracked.id,
        "errorType": tracked.type,
        "timestamp": tracked.timestamp,
    }
    if isinstance(error, AuthError):
        body["action"] = error.action
    if isinstance(error, ValidationFailedError):
        body["errors"] = error.errors
        body["warnings"] = error.warnings
    if isinstance(error, (GasApiError, CircuitOpenError)):
        info = describe_status(getattr(error, "status", None) or error.status_code)
        body["retryable"] = info.retryable
        body["recoveryAction"] = recovery_action(info.type, action)
        body["suggestions"] = recovery_suggestions(error, action)
    return body
