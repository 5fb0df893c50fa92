# services/session_service.py
"""
Sesión de captura de un cliente.

Une la identidad del agricultor, la compuerta de disponibilidad, la semana,
el formulario, el libro y el canal de sincronización, y lleva la vista
actual (formulario o listado).

El estado de las sesiones y el almacén se tocan solo desde el hilo de
sesiones del registro (`SessionRegistry.run`): el loop de eventos nunca
espera a la base de datos y las sesiones siguen siendo de un solo hilo.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import time
import uuid
from collections import OrderedDict
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import date, datetime
from typing import Any, Callable, Optional, Tuple

from kuaagro.config.settings import settings
from kuaagro.enums.enums import CampoEnum, VistaEnum
from kuaagro.schemas.registro import DerivadosOut, FormularioOut, Registro
from kuaagro.services.document_store import DocumentStore
from kuaagro.services.export_service import export_filename, is_export_enabled, to_delimited_text
from kuaagro.services.form_service import FieldRecordForm
from kuaagro.services.identity_service import (
    AnonymousIdentityProvider, AuthGate, IdentityProvider, normalize_identity
)
from kuaagro.services.ledger_service import Ledger
from kuaagro.services.sync_service import SyncChannel
from kuaagro.services.week_service import WeekClock
from kuaagro.utils.datetime_utils import now_millis, now_utc, today_local
from kuaagro.utils.errors import (
    CONFIGURATION_NOTICE, CONNECTING_NOTICE, AuthRetryableError, ConfigurationError, ExportDisabledError
)

logger = logging.getLogger(__name__)


class FieldSession:
    def __init__(
        self,
        store: DocumentStore,
        auth: AuthGate,
        collection: str,
        *,
        today: Callable[[], date] = today_local,
        clock_ms: Callable[[], int] = now_millis,
        session_id: str | None = None,
    ):
        self.session_id = session_id or uuid.uuid4().hex
        self.closed = False
        self.agricultor: Optional[str] = None
        self.vista = VistaEnum.formulario

        self.auth = auth
        self.week = WeekClock(today)
        self.form = FieldRecordForm(clock_ms)
        self.ledger = Ledger()
        self.channel = SyncChannel(store, self.ledger, collection)

        self._unsubscribe_auth = self.auth.on_change(self._on_ready_change)

    # ==================== CICLO DE VIDA ====================

    def start(self) -> "FieldSession":
        self.auth.start()
        return self

    def close(self) -> None:
        self.closed = True
        self._unsubscribe_auth()
        self.channel.teardown()
        logger.info("Sesión %s cerrada", self.session_id)

    @property
    def is_ready(self) -> bool:
        return self.auth.is_ready

    def _on_ready_change(self, ready: bool) -> None:
        if self.closed:
            return
        self.channel.bind(self.agricultor, ready)

    # ==================== IDENTIDAD ====================

    def login(self, codigo: str) -> str:
        """
        Fija (o cambia) el agricultor de la sesión.

        El libro se vacía antes de escuchar el documento del nuevo agricultor,
        así nunca se muestran registros de otro código.

        Raises:
            FieldValidationError: código vacío
            AuthRetryableError: la sesión anónima aún no está lista
        """
        identity = normalize_identity(codigo)
        if not self.is_ready:
            raise AuthRetryableError(CONNECTING_NOTICE)
        if identity != self.agricultor:
            logger.info("Sesión %s: agricultor %s -> %s", self.session_id, self.agricultor, identity)
        self.agricultor = identity
        self.vista = VistaEnum.formulario
        self.channel.bind(identity, self.is_ready)
        return identity

    def logout(self) -> None:
        self.agricultor = None
        self.channel.bind(None, self.is_ready)

    # ==================== FORMULARIO ====================

    def update_field(self, campo: str | CampoEnum, valor: str) -> bool:
        return self.form.update_field(campo, valor)

    def set_week(self, semana: int) -> None:
        self.week.set_override(semana)

    def reset_week(self) -> None:
        self.week.reset()

    def set_view(self, vista: VistaEnum) -> None:
        self.vista = vista

    def commit(self) -> Registro:
        """
        Guarda el borrador en el libro remoto.

        Solo tras una escritura exitosa se limpian los conteos y se pasa al
        listado. Si la escritura falla, el borrador y la vista quedan igual.

        Raises:
            AuthRetryableError: sin agricultor o sesión no lista
            WriteFailure: el almacén rechazó la escritura
        """
        if not self.agricultor or not self.is_ready:
            raise AuthRetryableError(CONNECTING_NOTICE)
        registro = self.form.commit(
            self.agricultor,
            self.week.value,
            self.channel.commit_record,
            existing_ids=self.ledger.ids,
        )
        self.vista = VistaEnum.datos
        return registro

    def formulario(self) -> FormularioOut:
        derivados = self.form.derived_fields()
        return FormularioOut(
            borrador=self.form.borrador,
            derivados=DerivadosOut(
                embolse=derivados.embolse,
                faltante=derivados.faltante,
                alerta_faltante=derivados.faltante < 0,
            ),
            semana=self.week.estado(),
            agricultor=self.agricultor or "",
            total_registros=len(self.ledger),
            vista=self.vista,
        )

    # ==================== EXPORTACIÓN ====================

    def export(self, moment: datetime | None = None) -> Tuple[str, bytes]:
        """
        Raises:
            ExportDisabledError: el libro está vacío
        """
        records = self.ledger.records
        if not is_export_enabled(records):
            raise ExportDisabledError("No hay registros para exportar.")
        filename = export_filename(moment or now_utc())
        logger.info("Exportando %s registros de %s a %s", len(records), self.agricultor, filename)
        return filename, to_delimited_text(records)


class SessionRegistry:
    """
    Sesiones abiertas de la aplicación, por id.

    - Una compuerta de identidad para toda la app: un proveedor que tarda en
      conceder la sesión anónima no obliga a empezar de nuevo en cada intento
    - Un solo hilo de trabajo para sesiones y almacén (`run`)
    - Las sesiones inactivas por más de `max_idle` segundos se cierran al
      buscar o crear; si se llega a `max_sessions` se cierra la menos usada
    """

    def __init__(
        self,
        store: DocumentStore | None,
        collection: str,
        provider_factory: Callable[[], IdentityProvider] = AnonymousIdentityProvider,
        config_error: str | None = None,
        *,
        max_idle: float | None = None,
        max_sessions: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.store = store
        self.collection = collection
        self.config_error = config_error
        self.max_idle = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60 if max_idle is None else max_idle
        self.max_sessions = settings.MAX_SESSIONS if max_sessions is None else max_sessions
        self._clock = clock
        self._sessions: "OrderedDict[str, FieldSession]" = OrderedDict()
        self._last_seen: dict[str, float] = {}

        self.worker = ThreadPoolExecutor(max_workers=1, thread_name_prefix="kuaagro-sesiones")
        self.auth = AuthGate(provider_factory(), dispatch=self.submit)
        self.auth.start()

    @property
    def configuracion_ok(self) -> bool:
        return self.store is not None and self.store.is_ready

    # ==================== HILO DE SESIONES ====================

    def submit(self, fn: Callable[..., Any], *args) -> Future:
        future = self.worker.submit(fn, *args)
        future.add_done_callback(_log_failure)
        return future

    async def run(self, fn: Callable[..., Any], *args, **kwargs) -> Any:
        """Ejecuta `fn` en el hilo de sesiones sin bloquear el loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.worker, functools.partial(fn, *args, **kwargs))

    # ==================== SESIONES ====================

    def create(self, **kwargs) -> FieldSession:
        if not self.configuracion_ok:
            raise ConfigurationError(CONFIGURATION_NOTICE)
        self.evict_idle()
        while len(self._sessions) >= max(self.max_sessions, 1):
            oldest = next(iter(self._sessions))
            logger.info("Límite de %s sesiones: se cierra %s", self.max_sessions, oldest)
            self.close(oldest)
        session = FieldSession(self.store, self.auth, self.collection, **kwargs)
        self._sessions[session.session_id] = session
        self._last_seen[session.session_id] = self._clock()
        return session.start()

    def get(self, session_id: str) -> Optional[FieldSession]:
        self.evict_idle()
        session = self._sessions.get(session_id)
        if session is not None:
            self._sessions.move_to_end(session_id)
            self._last_seen[session_id] = self._clock()
        return session

    def evict_idle(self) -> int:
        now = self._clock()
        idle = [sid for sid, seen in self._last_seen.items() if now - seen > self.max_idle]
        for sid in idle:
            logger.info("Sesión %s inactiva; se cierra", sid)
            self.close(sid)
        return len(idle)

    def close(self, session_id: str) -> None:
        self._last_seen.pop(session_id, None)
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()

    def close_all(self) -> None:
        for session_id in list(self._sessions):
            self.close(session_id)

    def shutdown(self) -> None:
        self.auth.stop()
        self.worker.shutdown(wait=True)

    def __len__(self) -> int:
        return len(self._sessions)


def _log_failure(future: Future) -> None:
    if not future.cancelled() and future.exception() is not None:
        logger.error("Falló una tarea del hilo de sesiones", exc_info=future.exception())
