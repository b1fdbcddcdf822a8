import json
import logging
import os

import requests

import config
from ledger import PersistenceError, RawLedgerState

logger = logging.getLogger(__name__)

# ============================================================
# CONFIG
# ============================================================
FIRESTORE_REST_URL = "https://firestore.googleapis.com/v1/projects/{project_id}/databases/(default)/documents"
REQUEST_TIMEOUT = 10

# ------------------------------------------------------------
# Local JSON file
# ------------------------------------------------------------


class LocalLedgerStore:
    """Raw ledger persisted as a single JSON document on disk."""

    def __init__(self, path: str = None):
        self.path = path or config.LEDGER_FILE

    def fetch(self) -> RawLedgerState:
        if not os.path.exists(self.path):
            return RawLedgerState()
        try:
            with open(self.path, "r") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Could not read ledger file {self.path}: {e}") from e
        return RawLedgerState.from_dict(raw)

    def save(self, state: RawLedgerState):
        tmp_path = f"{self.path}.tmp"
        try:
            with open(tmp_path, "w") as f:
                json.dump(state.to_dict(), f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Could not write ledger file {self.path}: {e}") from e

    def describe(self) -> str:
        return f"Local file ({self.path})"


# ------------------------------------------------------------
# Firestore REST typed values
# ------------------------------------------------------------

def to_firestore_value(val):
    if val is None:
        return {"nullValue": None}
    if isinstance(val, bool):
        return {"booleanValue": val}
    if isinstance(val, int):
        return {"integerValue": str(val)}
    if isinstance(val, float):
        if val.is_integer():
            return {"integerValue": str(int(val))}
        return {"doubleValue": val}
    if isinstance(val, str):
        return {"stringValue": val}
    if isinstance(val, (list, tuple)):
        return {"arrayValue": {"values": [to_firestore_value(v) for v in val]}}
    if isinstance(val, dict):
        return {"mapValue": {"fields": {str(k): to_firestore_value(v) for k, v in val.items()}}}
    return {"stringValue": str(val)}


def from_firestore_value(val: dict):
    if "nullValue" in val:
        return None
    if "stringValue" in val:
        return val["stringValue"]
    if "integerValue" in val:
        return int(val["integerValue"])
    if "doubleValue" in val:
        return float(val["doubleValue"])
    if "booleanValue" in val:
        return val["booleanValue"]
    if "arrayValue" in val:
        return [from_firestore_value(v) for v in val["arrayValue"].get("values", [])]
    if "mapValue" in val:
        fields = val["mapValue"].get("fields", {})
        return {k: from_firestore_value(v) for k, v in fields.items()}
    return None


# ------------------------------------------------------------
# Firestore document
# ------------------------------------------------------------


class FirestoreLedgerStore:
    """
    Raw ledger persisted as one Firestore document through the REST API.

    fetch: GET the document; a missing document is an empty ledger.
    save:  PATCH the whole document (last write wins).
    """

    def __init__(self, project_id: str = None, api_key: str = None, doc_path: str = None, session=None):
        self.project_id = project_id or config.FIRESTORE_PROJECT_ID
        self.api_key = api_key or config.FIRESTORE_API_KEY
        self.doc_path = doc_path or config.FIRESTORE_DOC_PATH
        self.session = session or requests.Session()

    @property
    def url(self) -> str:
        base = FIRESTORE_REST_URL.format(project_id=self.project_id)
        return f"{base}/{self.doc_path}"

    def fetch(self) -> RawLedgerState:
        try:
            resp = self.session.get(self.url, params={"key": self.api_key}, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise PersistenceError(f"Firestore fetch failed: {e}") from e

        if resp.status_code == 404:
            return RawLedgerState()
        if resp.status_code != 200:
            raise PersistenceError(f"Firestore fetch failed: HTTP {resp.status_code}")

        doc = resp.json()
        fields = doc.get("fields")
        if not fields:
            return RawLedgerState()
        return RawLedgerState.from_dict(from_firestore_value({"mapValue": {"fields": fields}}))

    def save(self, state: RawLedgerState):
        payload = {"fields": {k: to_firestore_value(v) for k, v in state.to_dict().items()}}
        try:
            resp = self.session.patch(
                self.url,
                params={"key": self.api_key},
                json=payload,
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as e:
            raise PersistenceError(f"Firestore save failed: {e}") from e

        if resp.status_code != 200:
            raise PersistenceError(f"Firestore save failed: HTTP {resp.status_code}")

    def describe(self) -> str:
        return f"Firestore ({self.project_id}/{self.doc_path})"


def get_backend(kind: str = None):
    """Storage backend selected by configuration."""
    kind = kind or config.PERSISTENCE_BACKEND
    if kind == "firestore":
        return FirestoreLedgerStore()
    return LocalLedgerStore()
