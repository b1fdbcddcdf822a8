import json

import pytest
import requests

from data_loader import (
    FirestoreLedgerStore,
    LocalLedgerStore,
    from_firestore_value,
    get_backend,
    to_firestore_value,
)
from ledger import Movement, PersistenceError, RawLedgerState

D1, D2 = "2026-01-01", "2026-01-02"


@pytest.fixture()
def state():
    return RawLedgerState(
        final_by_day={D1: 1000.0, D2: 1012.5},
        movements_by_client={
            "client-001": {D1: Movement(increment=1000.0), D2: Movement(decrement=0.0)},
        },
    )


class TestLocalLedgerStore:
    def test_missing_file_is_empty(self, tmp_path):
        assert LocalLedgerStore(str(tmp_path / "ledger.json")).fetch() == RawLedgerState()

    def test_round_trip(self, tmp_path, state):
        backend = LocalLedgerStore(str(tmp_path / "ledger.json"))
        backend.save(state)
        assert backend.fetch() == state

    def test_file_layout(self, tmp_path, state):
        path = tmp_path / "ledger.json"
        LocalLedgerStore(str(path)).save(state)
        raw = json.loads(path.read_text())
        assert set(raw) == {"finalByDay", "movementsByClient"}
        assert raw["movementsByClient"]["client-001"][D2] == {"decrement": 0.0}
        assert not (tmp_path / "ledger.json.tmp").exists()

    def test_corrupt_file_raises(self, tmp_path):
        path = tmp_path / "ledger.json"
        path.write_text("{not json")
        with pytest.raises(PersistenceError):
            LocalLedgerStore(str(path)).fetch()

    def test_unwritable_path_raises(self, tmp_path, state):
        backend = LocalLedgerStore(str(tmp_path / "missing-dir" / "ledger.json"))
        with pytest.raises(PersistenceError):
            backend.save(state)


class TestFirestoreValues:
    def test_scalars(self):
        assert to_firestore_value(None) == {"nullValue": None}
        assert to_firestore_value(True) == {"booleanValue": True}
        assert to_firestore_value(5) == {"integerValue": "5"}
        assert to_firestore_value(1000.0) == {"integerValue": "1000"}
        assert to_firestore_value(12.5) == {"doubleValue": 12.5}
        assert to_firestore_value("x") == {"stringValue": "x"}

    def test_nested(self):
        encoded = to_firestore_value({"a": [1, {"b": 2.5}]})
        assert encoded == {
            "mapValue": {
                "fields": {
                    "a": {
                        "arrayValue": {
                            "values": [
                                {"integerValue": "1"},
                                {"mapValue": {"fields": {"b": {"doubleValue": 2.5}}}},
                            ]
                        }
                    }
                }
            }
        }
        assert from_firestore_value(encoded) == {"a": [1, {"b": 2.5}]}

    def test_decode_unknown_is_none(self):
        assert from_firestore_value({"timestampValue": "2026-01-01T00:00:00Z"}) is None


class TestFirestoreLedgerStore:
    def _backend(self, session):
        return FirestoreLedgerStore("demo-project", "key-123", "portfolio/state", session=session)

    def test_url(self, fake_session):
        backend = self._backend(fake_session())
        assert backend.url.endswith("/projects/demo-project/databases/(default)/documents/portfolio/state")

    def test_missing_document_is_empty(self, fake_session, fake_response):
        session = fake_session(get_response=fake_response(404))
        assert self._backend(session).fetch() == RawLedgerState()
        method, _, params, _ = session.calls[0]
        assert method == "GET"
        assert params == {"key": "key-123"}

    def test_http_error_raises(self, fake_session, fake_response):
        session = fake_session(get_response=fake_response(500))
        with pytest.raises(PersistenceError):
            self._backend(session).fetch()

    def test_network_error_raises(self, fake_session):
        session = fake_session(error=requests.ConnectionError("offline"))
        with pytest.raises(PersistenceError):
            self._backend(session).fetch()
        with pytest.raises(PersistenceError):
            self._backend(session).save(RawLedgerState())

    def test_document_without_fields(self, fake_session, fake_response):
        session = fake_session(get_response=fake_response(200, {"name": "doc"}))
        assert self._backend(session).fetch() == RawLedgerState()

    def test_save_then_fetch(self, fake_session, fake_response, state):
        session = fake_session()
        backend = self._backend(session)
        backend.save(state)

        method, _, _, payload = session.calls[-1]
        assert method == "PATCH"
        assert set(payload["fields"]) == {"finalByDay", "movementsByClient"}

        session.get_response = fake_response(200, payload)
        assert backend.fetch() == state

    def test_save_http_error(self, fake_session, fake_response, state):
        session = fake_session(patch_response=fake_response(403))
        with pytest.raises(PersistenceError):
            self._backend(session).save(state)


class TestGetBackend:
    def test_local(self):
        assert isinstance(get_backend("local"), LocalLedgerStore)

    def test_firestore(self):
        assert isinstance(get_backend("firestore"), FirestoreLedgerStore)
