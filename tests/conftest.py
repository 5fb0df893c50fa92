import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import date

import pytest
from fastapi.testclient import TestClient

from kuaagro.main import create_app
from kuaagro.services.document_store import DocumentStore
from kuaagro.services.identity_service import AnonymousIdentityProvider, AuthGate, IdentityProvider
from kuaagro.services.session_service import FieldSession

COLLECTION = "artifacts/kua-agro-app/public/data/kua-data"


class FakeClock:
    """Reloj en ms que avanza 1 por lectura."""

    def __init__(self, start: int = 1_710_460_800_000):
        self.value = start

    def __call__(self) -> int:
        self.value += 1
        return self.value


@pytest.fixture
def store():
    s = DocumentStore("sqlite://").initialize()
    yield s
    s.close()


@pytest.fixture
def make_session(store):
    sessions = []

    def _make(today=date(2024, 3, 15), clock_ms=None):
        session = FieldSession(
            store,
            AuthGate(AnonymousIdentityProvider()),
            COLLECTION,
            today=lambda: today,
            clock_ms=clock_ms or FakeClock(),
        ).start()
        sessions.append(session)
        return session

    yield _make
    for s in sessions:
        s.close()


@pytest.fixture
def client():
    app = create_app(database_url="sqlite://")
    with TestClient(app) as c:
        yield c


def login(client, codigo="A7"):
    resp = client.post("/auth/login", json={"codigo": codigo})
    assert resp.status_code == 200, resp.text
    token = resp.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}


class DeferredProvider(IdentityProvider):
    """Proveedor cuya sesión anónima se concede más tarde, con grant()."""

    def __init__(self):
        self.current_user = None
        self.requests = 0
        self._listeners = []

    def auth_state_changes(self, callback):
        self._listeners.append(callback)
        callback(self.current_user)
        return lambda: self._listeners.remove(callback)

    def sign_in_anonymously(self):
        self.requests += 1

    def grant(self, user="anon-tarde"):
        self.current_user = user
        for listener in list(self._listeners):
            listener(user)
