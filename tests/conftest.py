import pytest

from calendar_days import build_calendar_days
from ledger import PersistenceError, RawLedgerState


@pytest.fixture()
def days():
    """First ten days of January 2026 (Thu 1st .. Sat 10th)."""
    return build_calendar_days(2026)[:10]


class FakeTimer:
    """Stands in for threading.Timer; fired by hand."""

    created = []

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.created.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if not self.cancelled:
            self.function()


@pytest.fixture()
def fake_timer():
    FakeTimer.created = []
    return FakeTimer


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}

    def json(self):
        return self._payload


class FakeSession:
    """Records requests and replays canned responses."""

    def __init__(self, get_response=None, patch_response=None, error=None):
        self.get_response = get_response or FakeResponse(404)
        self.patch_response = patch_response or FakeResponse(200)
        self.error = error
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append(("GET", url, params, None))
        if self.error:
            raise self.error
        return self.get_response

    def patch(self, url, params=None, json=None, timeout=None):
        self.calls.append(("PATCH", url, params, json))
        if self.error:
            raise self.error
        return self.patch_response


@pytest.fixture()
def fake_response():
    return FakeResponse


@pytest.fixture()
def fake_session():
    return FakeSession


class MemoryBackend:
    """In-memory persistence backend."""

    def __init__(self, state=None, fail=False):
        self.state = state
        self.fail = fail
        self.saved = []

    def fetch(self):
        if self.fail:
            raise PersistenceError("backend unavailable")
        return self.state or RawLedgerState()

    def save(self, state):
        if self.fail:
            raise PersistenceError("backend unavailable")
        self.saved.append(state)

    def describe(self):
        return "Memory"


@pytest.fixture()
def memory_backend():
    return MemoryBackend
