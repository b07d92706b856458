"""
Two-way sync between Firestore and the Google Sheets workbook behind GAS.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

from agency.db import DbClient
from agency.errors import GasApiError, SyncInProgressError
from agency.gas_client import GasClient

logger = logging.getLogger(__name__)

# Column headers of the sheets kept by the GAS deployment.
STREAMER_SHEET_HEADERS = [
    "ID",
    "Nombre",
    "App",
    "Nivel",
    "Comision",
    "Agencia",
    "Telefono",
    "Email",
    "Estado",
    "Fecha_Registro",
    "Ultima_Actualizacion",
]
COMMISSION_SHEET_HEADERS = [
    "ID",
    "Streamer_ID",
    "App",
    "Monto_Base",
    "Comision_Streamer",
    "Comision_Lider",
    "Comision_Agencia",
    "Total_Comision",
    "Fecha",
    "Estado",
    "Metodo_Pago",
]

SYNC_STREAMERS_ACTION = "syncStreamersToSheets"
SYNC_COMMISSIONS_ACTION = "syncCommissionsToSheets"
READ_STREAMERS_ACTION = "getStreamersFromSheets"

SYNC_TARGETS = (
    "full",
    "streamers_to_sheets",
    "commissions_to_sheets",
    "streamers_from_sheets",
)


@dataclass
class SyncResult:
    success: bool
    count: int = 0
    error: Optional[str] = None


@dataclass
class FullSyncResult:
    success: bool
    results: dict[str, SyncResult] = field(default_factory=dict)
    error: Optional[str] = None
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )


def _sheet_date(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.isoformat()[:10]
    if isinstance(value, str):
        return value[:10]
    return ""


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_float(value: Any, default: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def streamer_row(streamer: dict) -> list:
    return [
        streamer.get("id"),
        streamer.get("name") or "",
        streamer.get("app") or "",
        streamer.get("level") or 1,
        streamer.get("commission") or 0,
        streamer.get("agency_id") or "",
        streamer.get("phone") or "",
        streamer.get("email") or "",
        streamer.get("status") or "active",
        _sheet_date(streamer.get("created_at")),
        _sheet_date(streamer.get("updated_at")),
    ]


def commission_row(commission: dict) -> list:
    agency_share = commission.get("commission_amount") or 0
    return [
        commission.get("id"),
        commission.get("streamer_id") or "",
        commission.get("app") or "",
        commission.get("base_amount") or 0,
        commission.get("net_amount") or 0,
        commission.get("leader_commission") or 0,
        agency_share,
        agency_share + (commission.get("leader_commission") or 0),
        _sheet_date(commission.get("created_at")),
        commission.get("status") or "pending",
        commission.get("payment_method") or "Binance",
    ]


def streamer_from_sheet(row: dict) -> dict:
    """Maps a sheet row (keyed by header) to streamer fields."""
    return {
        "name": row.get("Nombre"),
        "app": row.get("App"),
        "level": _to_int(row.get("Nivel"), 1),
        "commission": _to_float(row.get("Comision"), 0.0),
        "agency_id": row.get("Agencia"),
        "phone": row.get("Telefono"),
        "email": row.get("Email"),
        "status": row.get("Estado") or "active",
    }


def _check_gas_response(response: Any) -> Any:
    if not isinstance(response, dict) or not response.get("success"):
        error = response.get("error") if isinstance(response, dict) else None
        raise GasApiError(error or "GAS action failed")
    return response.get("data")


class SyncService:
    def __init__(
        self,
        db: DbClient,
        gas: GasClient,
        sheet_id: str = "",
        sheet_range: Optional[str] = None,
    ):
        self.db = db
        self.gas = gas
        self.sheet_id = sheet_id
        self.sheet_range = sheet_range
        self._lock = threading.Lock()

    @property
    def is_syncing(self) -> bool:
        return self._lock.locked()

    def _payload(self, headers: list[str], rows: list[list]) -> dict:
        payload = {"headers": headers, "data": rows}
        if self.sheet_id:
            payload["sheetId"] = self.sheet_id
        if self.sheet_range:
            payload["range"] = self.sheet_range
        return payload

    def _run_step(self, name: str, step: Callable[[], int]) -> SyncResult:
        logger.info("Sync step %s started", name)
        try:
            count = step()
        except Exception as e:
            logger.exception("Sync step %s failed", name)
            return SyncResult(success=False, error=str(e))
        logger.info("Sync step %s finished: %d records", name, count)
        return SyncResult(success=True, count=count)

    def sync_streamers_to_sheets(self) -> SyncResult:
        def step() -> int:
            rows = [streamer_row(s) for s in self.db.get_streamers(limit=None)]
            _check_gas_response(
                self.gas.post(
                    SYNC_STREAMERS_ACTION,
                    self._payload(STREAMER_SHEET_HEADERS, rows),
                )
            )
            return len(rows)

        return self._run_step("streamers_to_sheets", step)

    def sync_commissions_to_sheets(self) -> SyncResult:
        def step() -> int:
            rows = [commission_row(c) for c in self.db.get_commissions(limit=None)]
            _check_gas_response(
                self.gas.post(
                    SYNC_COMMISSIONS_ACTION,
                    self._payload(COMMISSION_SHEET_HEADERS, rows),
                )
            )
            return len(rows)

        return self._run_step("commissions_to_sheets", step)

    def sync_streamers_from_sheets(self) -> SyncResult:
        def step() -> int:
            rows = _check_gas_response(self.gas.get(READ_STREAMERS_ACTION)) or []
            count = 0
            for row in rows:
                if not isinstance(row, dict):
                    logger.warning("Skipping sheet row that is not an object: %r", row)
                    continue
                streamer_id = str(row.get("ID") or "").strip()
                if not streamer_id:
                    logger.warning("Skipping sheet row without ID: %s", row)
                    continue
                fields = streamer_from_sheet(row)
                if self.db.get_streamer(streamer_id) is None:
                    self.db.create_streamer({"id": streamer_id, **fields})
                else:
                    self.db.update_streamer(streamer_id, fields)
                count += 1
            return count

        return self._run_step("streamers_from_sheets", step)

    def full_sync(self, raise_if_busy: bool = False) -> FullSyncResult:
        """
        Runs the three sync steps in order.

        Only one full sync runs at a time; a concurrent call returns a failed
        result immediately, or raises `SyncInProgressError` if `raise_if_busy`.
        """
        if not self._lock.acquire(blocking=False):
            logger.info("Sync already in progress")
            if raise_if_busy:
                raise SyncInProgressError()
            return FullSyncResult(success=False, error="Sync already in progress")
        try:
            results = {
                "streamers_to_sheets": self.sync_streamers_to_sheets(),
                "commissions_to_sheets": self.sync_commissions_to_sheets(),
                "streamers_from_sheets": self.sync_streamers_from_sheets(),
            }
        finally:
            self._lock.release()
        success = all(r.success for r in results.values())
        logger.info("Full sync finished, success=%s", success)
        return FullSyncResult(success=success, results=results)

    def run_target(self, target: str) -> FullSyncResult | SyncResult:
        if target == "full":
            return self.full_sync(raise_if_busy=True)
        steps = {
            "streamers_to_sheets": self.sync_streamers_to_sheets,
            "commissions_to_sheets": self.sync_commissions_to_sheets,
            "streamers_from_sheets": self.sync_streamers_from_sheets,
        }
        if target not in steps:
            raise ValueError(f"Unknown sync target: {target}")
        return steps[target]()

    def run_forever(self, interval: float, stop_event: threading.Event) -> int:
        """Runs `full_sync` every `interval` seconds until `stop_event` is set."""
        runs = 0
        logger.info("Auto sync started, every %s seconds", interval)
        while not stop_event.is_set():
            self.full_sync()
            runs += 1
            stop_event.wait(interval)
        logger.info("Auto sync stopped after %d runs", runs)
        return runs
