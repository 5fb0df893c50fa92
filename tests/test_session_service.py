import asyncio
import threading
from datetime import datetime, timezone

import pytest

from kuaagro.enums.enums import VistaEnum
from kuaagro.services.identity_service import AuthGate, IdentityProvider, normalize_identity
from kuaagro.services.session_service import FieldSession, SessionRegistry
from kuaagro.utils.errors import (
    AuthRetryableError, ConfigurationError, ExportDisabledError, FieldValidationError, WriteFailure
)

from conftest import COLLECTION, DeferredProvider


def _fill(session, **campos):
    for campo, valor in campos.items():
        assert session.update_field(campo, valor)


# ============================================================================
# Identidad
# ============================================================================

def test_normalize_identity():
    assert normalize_identity("  a7 ") == "A7"
    with pytest.raises(FieldValidationError) as exc:
        normalize_identity("   ")
    assert exc.value.message == "Por favor, ingrese su código de agricultor."


class FlakyProvider(IdentityProvider):
    """Falla el primer intento de sesión anónima y concede el segundo."""

    def __init__(self):
        self.attempts = 0
        self.listener = None

    def auth_state_changes(self, callback):
        self.listener = callback
        callback(None)
        return lambda: None

    def sign_in_anonymously(self):
        self.attempts += 1
        if self.attempts == 1:
            raise RuntimeError("sin red")
        self.listener("anon-1")


def test_auth_gate_survives_failed_sign_in():
    provider = FlakyProvider()
    gate = AuthGate(provider)
    changes = []
    gate.on_change(changes.append)

    gate.start()
    assert gate.is_ready is False

    provider.listener(None)
    assert gate.is_ready is True
    assert changes == [True]


def test_login_requires_ready(store):
    provider = FlakyProvider()
    session = FieldSession(store, AuthGate(provider), COLLECTION).start()
    with pytest.raises(AuthRetryableError):
        session.login("a7")
    assert session.agricultor is None


# ============================================================================
# Flujo completo
# ============================================================================

def test_example_scenario(make_session):
    session = make_session()
    assert session.login(" a7") == "A7"
    assert session.week.value == 11

    _fill(session, lote="Lote 2", color="Azul", presente="10", novedades="2", cosecha="9")
    registro = session.commit()

    assert (registro.embolse, registro.faltante) == (12, 3)
    assert session.ledger.first() == registro
    assert session.vista == VistaEnum.datos

    filename, content = session.export(datetime(2024, 3, 15, 12, tzinfo=timezone.utc))
    assert filename == "Kua_AgroApp_Export_2024-03-15.csv"
    assert content.decode("utf-8").split("\n")[1] == "11,A7,Lote 2,Azul,,10,2,9,12,3"


def test_commit_grows_ledger_by_one_and_keeps_selection(make_session):
    session = make_session()
    session.login("A7")
    _fill(session, lote="Lote 3", color="Verde", presente="4")
    session.commit()
    _fill(session, presente="6")
    second = session.commit()

    assert len(session.ledger) == 2
    assert session.ledger.first() == second
    assert session.form.borrador.lote == "Lote 3"
    assert session.form.borrador.color == "Verde"
    assert session.form.borrador.presente == ""


def test_overridden_week_goes_into_record(make_session):
    session = make_session()
    session.login("A7")
    session.set_week(30)
    assert session.commit().week == 30
    session.reset_week()
    assert session.commit().week == 11


def test_write_failure_keeps_draft_and_view(make_session, monkeypatch):
    session = make_session()
    session.login("A7")
    _fill(session, presente="10")

    def rejected(key, doc):
        raise WriteFailure("rechazado")

    monkeypatch.setattr(session.channel.store, "write", rejected)
    with pytest.raises(WriteFailure):
        session.commit()

    assert session.vista == VistaEnum.formulario
    assert session.form.borrador.presente == "10"
    assert len(session.ledger) == 0


def test_identity_switch_never_shows_other_records(make_session):
    a7 = make_session()
    a7.login("A7")
    a7.commit()

    seen = []
    a7.ledger.subscribe(lambda records: seen.append({r.agricultor for r in records}))
    a7.login("B1")

    assert seen[0] == set()
    assert all(agricultores <= {"B1"} for agricultores in seen)
    assert len(a7.ledger) == 0


def test_two_sessions_same_identity_see_each_other(make_session):
    one = make_session()
    two = make_session()
    one.login("A7")
    two.login("a7")

    one.commit()
    assert len(two.ledger) == 1

    _fill(two, presente="3")
    two.commit()
    assert len(one.ledger) == 2


def test_export_disabled_when_empty(make_session):
    session = make_session()
    session.login("A7")
    with pytest.raises(ExportDisabledError):
        session.export()


def test_commit_without_identity_is_rejected(make_session):
    session = make_session()
    with pytest.raises(AuthRetryableError):
        session.commit()


def test_formulario_reports_warning_and_count(make_session):
    session = make_session()
    session.login("A7")
    _fill(session, presente="1", cosecha="5")
    out = session.formulario()
    assert out.derivados.faltante == -4
    assert out.derivados.alerta_faltante is True
    assert out.total_registros == 0
    assert out.agricultor == "A7"


def test_close_tears_down_subscription(make_session, store):
    session = make_session()
    session.login("A7")
    key = session.channel.key_for("A7")
    assert store.listener_count(key) == 1
    session.close()
    assert store.listener_count(key) == 0


def test_failing_viewer_does_not_undo_commit(make_session):
    writer = make_session()
    viewer = make_session()
    writer.login("A7")
    viewer.login("A7")

    def broken(records):
        raise RuntimeError("visor caído")

    seen = []
    viewer.ledger.subscribe(broken)
    viewer.ledger.subscribe(seen.append)

    _fill(writer, presente="10")
    registro = writer.commit()

    assert writer.vista == VistaEnum.datos
    assert writer.form.borrador.presente == ""
    assert writer.ledger.ids == [registro.id]
    assert viewer.ledger.ids == [registro.id]
    assert [r.id for r in seen[-1]] == [registro.id]


# ============================================================================
# Registro de sesiones
# ============================================================================

class FakeMonotonic:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def make_registry(store):
    registries = []

    def _make(**kwargs):
        registry = SessionRegistry(store, COLLECTION, **kwargs)
        registries.append(registry)
        return registry

    yield _make
    for r in registries:
        r.close_all()
        r.shutdown()


def _drain(registry):
    registry.submit(lambda: None).result(timeout=5)


def test_registry_without_store_is_blocked():
    registry = SessionRegistry(None, COLLECTION, config_error="sin base")
    try:
        assert registry.configuracion_ok is False
        with pytest.raises(ConfigurationError):
            registry.create()
    finally:
        registry.shutdown()


def test_registry_create_get_close(make_registry):
    registry = make_registry()
    session = registry.create()
    assert registry.get(session.session_id) is session
    assert session.is_ready is True
    registry.close(session.session_id)
    assert registry.get(session.session_id) is None
    assert len(registry) == 0


def test_late_sign_in_lets_next_login_succeed(make_registry):
    providers = []

    def factory():
        providers.append(DeferredProvider())
        return providers[-1]

    registry = make_registry(provider_factory=factory)
    first = registry.create()
    with pytest.raises(AuthRetryableError):
        first.login("A7")
    registry.close(first.session_id)

    providers[0].grant()
    _drain(registry)

    second = registry.create()
    assert second.login("A7") == "A7"
    assert len(providers) == 1
    assert providers[0].requests == 1


def test_ready_change_rebinds_open_sessions(make_registry, store):
    provider = DeferredProvider()
    registry = make_registry(provider_factory=lambda: provider)
    session = registry.create()
    session.agricultor = "A7"

    provider.grant()
    _drain(registry)

    assert session.channel.is_subscribed
    assert store.listener_count(session.channel.key_for("A7")) == 1


def test_idle_sessions_are_closed(make_registry, store):
    clock = FakeMonotonic()
    registry = make_registry(max_idle=60, clock=clock)
    old = registry.create()
    old.login("A7")
    key = old.channel.key_for("A7")

    clock.now = 30
    assert registry.get(old.session_id) is old

    clock.now = 95
    fresh = registry.create()
    assert registry.get(old.session_id) is None
    assert old.closed is True
    assert store.listener_count(key) == 0
    assert len(registry) == 1
    assert registry.get(fresh.session_id) is fresh


def test_session_cap_closes_least_recently_used(make_registry):
    registry = make_registry(max_sessions=2)
    a = registry.create()
    b = registry.create()
    registry.get(a.session_id)

    c = registry.create()

    assert len(registry) == 2
    assert registry.get(b.session_id) is None
    assert registry.get(a.session_id) is a
    assert registry.get(c.session_id) is c


def test_run_uses_session_thread(make_registry):
    registry = make_registry()
    name = asyncio.run(registry.run(lambda: threading.current_thread().name))
    assert name.startswith("kuaagro-sesiones")
    assert name != threading.current_thread().name
