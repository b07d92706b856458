"""
Pydantic schemas for the agency API.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.types import CommissionStatus, PaymentMethod, StreamerStatus


class SystemInfo(BaseModel):
    responseTime: int
    cached: bool


class GasProxyResponse(BaseModel):
    success: bool
    data: Any = None
    timestamp: str
    system: SystemInfo


class StreamerPayload(BaseModel):
    """Raw streamer fields; the validator decides what is acceptable."""

    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    country: Optional[str] = None
    level: Optional[Any] = None
    earnings: Optional[Any] = None
    phone: Optional[str] = None
    status: StreamerStatus = StreamerStatus.ACTIVE
    app: Optional[str] = None
    agency_id: Optional[str] = None
    commission: Optional[float] = None
    binance_email: Optional[str] = None


class StreamerUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=2)
    email: Optional[str] = None
    country: Optional[str] = None
    level: Optional[int] = Field(default=None, ge=1, le=5)
    earnings: Optional[float] = Field(default=None, gt=0, allow_inf_nan=False)
    phone: Optional[str] = None
    status: Optional[StreamerStatus] = None
    app: Optional[str] = None
    agency_id: Optional[str] = None
    commission: Optional[float] = None
    binance_email: Optional[str] = None


class BatchValidationRequest(BaseModel):
    streamers: list[dict]


class CommissionCalculateRequest(BaseModel):
    streamer_id: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0, allow_inf_nan=False)
    app: Optional[str] = None
    save: bool = False


class CommissionBatchRequest(BaseModel):
    commissions: list[dict]


class CommissionStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: CommissionStatus


class QuoteRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[Any] = None
    earnings: Optional[Any] = None
    level: Optional[Any] = None
    country: Optional[str] = None


class QuoteResponse(BaseModel):
    success: bool
    commission: float
    level: Optional[int] = None
    multiplier: Optional[float] = None
    base_earnings: Optional[float] = None
    warnings: list[str] = []
    errors: list[str] = []
    error: Optional[str] = None


class BatchResponse(BaseModel):
    total: int
    successful: int
    failed: int
    errors: list[dict]


class AgencySettingsPayload(BaseModel):
    commission_rate: float = Field(default=0.0, ge=0, le=1)
    payment_method: PaymentMethod = PaymentMethod.BINANCE
    notification_channels: list[str] = []


class AgencyPayload(BaseModel):
    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    status: str = "active"
    settings: AgencySettingsPayload = AgencySettingsPayload()


class SyncRequest(BaseModel):
    target: Literal[
        "full",
        "streamers_to_sheets",
        "commissions_to_sheets",
        "streamers_from_sheets",
    ] = "full"


class TokenRequest(BaseModel):
    email: str
    api_key: str


class RefreshRequest(BaseModel):
    refresh_token: str


class TokenResponse(BaseModel):
    token: str
    refresh_token: str
    expires_at: float
    permissions: list[str]


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    timestamp: str
    version: str
    database: dict
    circuit_breaker: dict
