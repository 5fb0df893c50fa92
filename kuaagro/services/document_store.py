# services/document_store.py
"""
Almacén de documentos por clave con suscripción a cambios.

Contrato:
- write(key, doc): sobrescribe el documento completo (no hay actualizaciones parciales)
- get(key): documento actual o None
- delete(key): elimina el documento; los suscriptores reciben None
- subscribe(key, on_change): entrega el documento actual de inmediato y luego
  cada cambio; retorna la función para cancelar la suscripción

El cliente se construye una vez por aplicación, se inicializa con initialize()
y se libera con close(). Se inyecta a quien lo necesite.
"""
from __future__ import annotations

import copy
import logging
from collections import defaultdict
from typing import Callable, Optional

from sqlalchemy import select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from kuaagro.models.base import Base
from kuaagro.models.documento import Documento
from kuaagro.utils.db import build_engine, build_session_factory
from kuaagro.utils.errors import ConfigurationError, WriteFailure
from kuaagro.utils.transactions import uow

logger = logging.getLogger(__name__)

Snapshot = Optional[dict]
Listener = Callable[[Snapshot], None]
Unsubscribe = Callable[[], None]


class DocumentStore:
    def __init__(self, database_url: str):
        self.database_url = database_url
        self.engine: Engine | None = None
        self.session_factory: sessionmaker | None = None
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    # ==================== CICLO DE VIDA ====================

    def initialize(self) -> "DocumentStore":
        """
        Crea el engine, verifica conexión y asegura la tabla de documentos.

        Raises:
            ConfigurationError: URL vacía o almacén inaccesible
        """
        if not self.database_url:
            raise ConfigurationError("DATABASE_URL no está configurada")
        try:
            self.engine = build_engine(self.database_url)
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            logger.error("No se pudo inicializar el almacén de documentos: %s", e)
            if self.engine is not None:
                self.engine.dispose()
                self.engine = None
            raise ConfigurationError(f"No se pudo conectar a la base de datos: {e}") from e
        self.session_factory = build_session_factory(self.engine)
        logger.info("Almacén de documentos listo (%s)", self.engine.dialect.name)
        return self

    def close(self) -> None:
        self._listeners.clear()
        if self.engine is not None:
            self.engine.dispose()
            self.engine = None
            self.session_factory = None
            logger.info("Almacén de documentos cerrado")

    @property
    def is_ready(self) -> bool:
        return self.session_factory is not None

    def _require_ready(self) -> sessionmaker:
        if self.session_factory is None:
            raise ConfigurationError("El almacén de documentos no está inicializado")
        return self.session_factory

    # ==================== LECTURA / ESCRITURA ====================

    def get(self, key: str) -> Snapshot:
        factory = self._require_ready()
        with uow(factory) as db:
            row = db.execute(select(Documento).where(Documento.ruta == key)).scalar_one_or_none()
            return copy.deepcopy(row.contenido) if row else None

    def write(self, key: str, doc: dict) -> None:
        """
        Sobrescribe el documento completo (último en escribir gana).

        Raises:
            WriteFailure: el almacén rechazó la escritura
        """
        factory = self._require_ready()
        payload = copy.deepcopy(doc)
        try:
            with uow(factory) as db:
                row = db.get(Documento, key)
                if row is None:
                    db.add(Documento(ruta=key, contenido=payload))
                else:
                    row.contenido = payload
        except SQLAlchemyError as e:
            logger.error("Escritura rechazada para %s: %s", key, e)
            raise WriteFailure("No se pudo guardar el registro") from e
        logger.debug("Documento %s escrito", key)
        self._notify(key, payload)

    def delete(self, key: str) -> None:
        factory = self._require_ready()
        try:
            with uow(factory) as db:
                row = db.get(Documento, key)
                if row is not None:
                    db.delete(row)
        except SQLAlchemyError as e:
            logger.error("No se pudo eliminar %s: %s", key, e)
            raise WriteFailure("No se pudo eliminar el documento") from e
        self._notify(key, None)

    # ==================== SUSCRIPCIONES ====================

    def subscribe(self, key: str, on_change: Listener) -> Unsubscribe:
        self._require_ready()
        self._listeners[key].append(on_change)
        logger.debug("Suscripción abierta a %s", key)

        def unsubscribe() -> None:
            listeners = self._listeners.get(key)
            if listeners and on_change in listeners:
                listeners.remove(on_change)
                if not listeners:
                    del self._listeners[key]
                logger.debug("Suscripción cerrada a %s", key)

        on_change(self.get(key))
        return unsubscribe

    def listener_count(self, key: str) -> int:
        return len(self._listeners.get(key, ()))

    def _notify(self, key: str, doc: Snapshot) -> None:
        # Copia de la lista: un listener puede cancelar su suscripción durante el aviso
        for listener in list(self._listeners.get(key, ())):
            try:
                listener(copy.deepcopy(doc))
            except Exception:
                logger.exception("Falló un suscriptor de %s", key)
