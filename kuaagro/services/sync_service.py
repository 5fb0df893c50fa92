# services/sync_service.py
"""
Canal entre el libro local y el documento remoto de cada agricultor.

- Escritura: siempre el libro completo, {records: [nuevo, ...actuales]}
- Lectura: solo por snapshots; cada snapshot reemplaza el libro completo
- Cambio de agricultor: primero se cierra la suscripción anterior, luego se
  vacía el libro y, si hay agricultor y la sesión está lista, se abre la nueva
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from kuaagro.schemas.registro import Registro
from kuaagro.services.document_store import DocumentStore, Snapshot
from kuaagro.services.ledger_service import Ledger

logger = logging.getLogger(__name__)


def document_key(collection: str, identity: str) -> str:
    return f"{collection}/{identity}"


class SyncChannel:
    def __init__(self, store: DocumentStore, ledger: Ledger, collection: str):
        self.store = store
        self.ledger = ledger
        self.collection = collection
        self.identity: Optional[str] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def is_subscribed(self) -> bool:
        return self._unsubscribe is not None

    def key_for(self, identity: str) -> str:
        return document_key(self.collection, identity)

    # ==================== SUSCRIPCIÓN ====================

    def bind(self, identity: Optional[str], ready: bool) -> None:
        self.teardown()
        self.identity = identity
        self.ledger.clear()
        if not identity or not ready:
            return

        def on_change(doc: Snapshot) -> None:
            if self.identity != identity:
                return
            self.on_remote_snapshot(doc)

        self._unsubscribe = self.store.subscribe(self.key_for(identity), on_change)
        logger.info("Escuchando registros de %s", identity)

    def teardown(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
            logger.info("Suscripción de %s cerrada", self.identity)

    def on_remote_snapshot(self, doc: Snapshot) -> None:
        raw = (doc or {}).get("records") or []
        self.ledger.replace([Registro.model_validate(r) for r in raw])

    # ==================== ESCRITURA ====================

    def commit_record(self, record: Registro) -> None:
        """
        Escribe el libro completo con `record` al frente.

        No hay control de concurrencia ni reintento: el último en escribir gana.
        El libro local no se toca aquí; se actualiza con el eco del snapshot.

        Raises:
            WriteFailure: el almacén rechazó la escritura
        """
        updated = self.ledger.with_prepended(record)
        self.store.write(
            self.key_for(record.agricultor),
            {"records": [r.model_dump() for r in updated]},
        )
