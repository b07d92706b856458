"""
Database abstraction for Firestore and an in-memory test implementation.

Documents are plain dicts with snake_case keys. Every document carries its
own `id`, which is also the Firestore document id.
"""

from __future__ import annotations

import threading
import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from google.api_core import exceptions as google_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from agency.errors import DocumentNotFoundError
from shared.firebase_constants import (
    AGENCIES_COLLECTION,
    ALL_COLLECTIONS,
    COMMISSIONS_COLLECTION,
    REPORTS_COLLECTION,
    STREAMERS_COLLECTION,
    USERS_COLLECTION,
)

DEFAULT_LIST_LIMIT = 100


class DbClient(Protocol):
    """Interface for database access."""

    def create_streamer(self, data: dict) -> dict:
        ...

    def get_streamers(
        self,
        agency_id: Optional[str] = None,
        status: Optional[str] = None,
        app: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[dict]:
        ...

    def get_streamer(self, streamer_id: str) -> Optional[dict]:
        ...

    def update_streamer(self, streamer_id: str, updates: dict) -> dict:
        ...

    def create_commission(self, data: dict) -> dict:
        ...

    def get_commissions(
        self,
        streamer_id: Optional[str] = None,
        agency_id: Optional[str] = None,
        status: Optional[str] = None,
        app: Optional[str] = None,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> list[dict]:
        ...

    def get_commission(self, commission_id: str) -> Optional[dict]:
        ...

    def update_commission(self, commission_id: str, updates: dict) -> dict:
        ...

    def create_agency(self, data: dict) -> dict:
        ...

    def get_agencies(self) -> list[dict]:
        ...

    def get_user_by_email(self, email: str) -> Optional[dict]:
        ...

    def save_user(self, data: dict) -> dict:
        ...

    def save_report(self, kind: str, payload: dict) -> str:
        ...

    def health_check(self) -> dict:
        ...


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _plain(value: Any) -> Any:
    """Converts enums (including nested ones) to their raw values."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


def _new_document(data: dict) -> dict:
    now = _now()
    document = _plain(dict(data))
    document["id"] = document.get("id") or uuid.uuid4().hex
    document.setdefault("created_at", now)
    document["updated_at"] = now
    return document


def _sort_key(document: dict) -> datetime:
    return document.get("created_at") or datetime.min.replace(tzinfo=timezone.utc)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {
            name: {} for name in ALL_COLLECTIONS
        }
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            for documents in self.collections.values():
                documents.clear()

    def _create(self, collection: str, data: dict) -> dict:
        document = _new_document(data)
        with self._lock:
            self.collections[collection][document["id"]] = document
        return dict(document)

    def _get(self, collection: str, document_id: str) -> Optional[dict]:
        with self._lock:
            document = self.collections[collection].get(document_id)
        return dict(document) if document else None

    def _update(self, collection: str, document_id: str, updates: dict) -> dict:
        with self._lock:
            document = self.collections[collection].get(document_id)
            if document is None:
                raise DocumentNotFoundError(collection, document_id)
            document.update(_plain(dict(updates)))
            document["id"] = document_id
            document["updated_at"] = _now()
            return dict(document)

    def _query(
        self, collection: str, filters: dict, limit: Optional[int]
    ) -> list[dict]:
        with self._lock:
            documents = [
                dict(d)
                for d in self.collections[collection].values()
                if all(d.get(k) == v for k, v in filters.items() if v is not None)
            ]
        documents.sort(key=_sort_key, reverse=True)
        return documents[:limit] if limit else documents

    def create_streamer(self, data: dict) -> dict:
        return self._create(STREAMERS_COLLECTION, data)

    def get_streamers(self, agency_id=None, status=None, app=None, limit=DEFAULT_LIST_LIMIT):
        return self._query(
            STREAMERS_COLLECTION,
            {"agency_id": agency_id, "status": _plain(status), "app": app},
            limit,
        )

    def get_streamer(self, streamer_id: str) -> Optional[dict]:
        return self._get(STREAMERS_COLLECTION, streamer_id)

    def update_streamer(self, streamer_id: str, updates: dict) -> dict:
        return self._update(STREAMERS_COLLECTION, streamer_id, updates)

    def create_commission(self, data: dict) -> dict:
        return self._create(COMMISSIONS_COLLECTION, data)

    def get_commissions(
        self,
        streamer_id=None,
        agency_id=None,
        status=None,
        app=None,
        limit=DEFAULT_LIST_LIMIT,
    ):
        return self._query(
            COMMISSIONS_COLLECTION,
            {
                "streamer_id": streamer_id,
                "agency_id": agency_id,
                "status": _plain(status),
                "app": app,
            },
            limit,
        )

    def get_commission(self, commission_id: str) -> Optional[dict]:
        return self._get(COMMISSIONS_COLLECTION, commission_id)

    def update_commission(self, commission_id: str, updates: dict) -> dict:
        return self._update(COMMISSIONS_COLLECTION, commission_id, updates)

    def create_agency(self, data: dict) -> dict:
        return self._create(AGENCIES_COLLECTION, data)

    def get_agencies(self) -> list[dict]:
        return self._query(AGENCIES_COLLECTION, {"status": "active"}, None)

    def get_user_by_email(self, email: str) -> Optional[dict]:
        matches = self._query(USERS_COLLECTION, {"email": email}, 1)
        return matches[0] if matches else None

    def save_user(self, data: dict) -> dict:
        return self._create(USERS_COLLECTION, data)

    def save_report(self, kind: str, payload: dict) -> str:
        report = self._create(REPORTS_COLLECTION, {"kind": kind, "payload": payload})
        return report["id"]

    def health_check(self) -> dict:
        with self._lock:
            counts = {name: len(docs) for name, docs in self.collections.items()}
        return {"status": "healthy", "backend": "memory", "documents": counts}


class FirestoreDbClient:
    """
    Firestore-backed implementation.

    Accepts any `google.cloud.firestore.Client`; in production this is the
    client returned by `firebase_admin.firestore.client()`.
    """

    def __init__(self, client: firestore.Client):
        self.client = client

    def _create(self, collection: str, data: dict) -> dict:
        document = _new_document(data)
        self.client.collection(collection).document(document["id"]).set(document)
        return document

    def _get(self, collection: str, document_id: str) -> Optional[dict]:
        snapshot = self.client.collection(collection).document(document_id).get()
        if not snapshot.exists:
            return None
        return {**snapshot.to_dict(), "id": snapshot.id}

    def _update(self, collection: str, document_id: str, updates: dict) -> dict:
        ref = self.client.collection(collection).document(document_id)
        if not ref.get().exists:
            raise DocumentNotFoundError(collection, document_id)
        changes = _plain(dict(updates))
        changes.pop("id", None)
        changes["updated_at"] = _now()
        ref.update(changes)
        return {**ref.get().to_dict(), "id": document_id}

    def _query(
        self, collection: str, filters: dict, limit: Optional[int]
    ) -> list[dict]:
        query = self.client.collection(collection)
        for field_name, value in filters.items():
            if value is not None:
                query = query.where(filter=FieldFilter(field_name, "==", value))
        query = query.order_by("created_at", direction=firestore.Query.DESCENDING)
        if limit:
            query = query.limit(limit)
        return [{**doc.to_dict(), "id": doc.id} for doc in query.stream()]

    def create_streamer(self, data: dict) -> dict:
        return self._create(STREAMERS_COLLECTION, data)

    def get_streamers(self, agency_id=None, status=None, app=None, limit=DEFAULT_LIST_LIMIT):
        return self._query(
            STREAMERS_COLLECTION,
            {"agency_id": agency_id, "status": _plain(status), "app": app},
            limit,
        )

    def get_streamer(self, streamer_id: str) -> Optional[dict]:
        return self._get(STREAMERS_COLLECTION, streamer_id)

    def update_streamer(self, streamer_id: str, updates: dict) -> dict:
        return self._update(STREAMERS_COLLECTION, streamer_id, updates)

    def create_commission(self, data: dict) -> dict:
        return self._create(COMMISSIONS_COLLECTION, data)

    def get_commissions(
        self,
        streamer_id=None,
        agency_id=None,
        status=None,
        app=None,
        limit=DEFAULT_LIST_LIMIT,
    ):
        return self._query(
            COMMISSIONS_COLLECTION,
            {
                "streamer_id": streamer_id,
                "agency_id": agency_id,
                "status": _plain(status),
                "app": app,
            },
            limit,
        )

    def get_commission(self, commission_id: str) -> Optional[dict]:
        return self._get(COMMISSIONS_COLLECTION, commission_id)

    def update_commission(self, commission_id: str, updates: dict) -> dict:
        return self._update(COMMISSIONS_COLLECTION, commission_id, updates)

    def create_agency(self, data: dict) -> dict:
        return self._create(AGENCIES_COLLECTION, data)

    def get_agencies(self) -> list[dict]:
        return self._query(AGENCIES_COLLECTION, {"status": "active"}, None)

    def get_user_by_email(self, email: str) -> Optional[dict]:
        matches = self._query(USERS_COLLECTION, {"email": email}, 1)
        return matches[0] if matches else None

    def save_user(self, data: dict) -> dict:
        return self._create(USERS_COLLECTION, data)

    def save_report(self, kind: str, payload: dict) -> str:
        report = self._create(REPORTS_COLLECTION, {"kind": kind, "payload": payload})
        return report["id"]

    def health_check(self) -> dict:
        try:
            list(self.client.collection(STREAMERS_COLLECTION).limit(1).stream())
        except google_exceptions.GoogleAPICallError as e:
            return {"status": "unhealthy", "backend": "firestore", "error": str(e)}
        return {"status": "healthy", "backend": "firestore"}
