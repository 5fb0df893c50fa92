# services/ledger_service.py
from __future__ import annotations

import logging
from typing import Callable, Iterable, List

from kuaagro.schemas.registro import Registro

logger = logging.getLogger(__name__)

LedgerListener = Callable[[List[Registro]], None]


class Ledger:
    """
    Libro de registros de un agricultor, del más nuevo al más viejo.

    Nunca se modifica registro por registro: solo se reemplaza completo con
    cada snapshot del documento remoto, o se vacía al cambiar de agricultor.
    El orden es el del arreglo remoto; no se reordena por semana ni por id.
    """

    def __init__(self):
        self._records: tuple[Registro, ...] = ()
        self._listeners: list[LedgerListener] = []

    @property
    def records(self) -> List[Registro]:
        return list(self._records)

    @property
    def ids(self) -> List[int]:
        return [r.id for r in self._records]

    def __len__(self) -> int:
        return len(self._records)

    def first(self) -> Registro | None:
        return self._records[0] if self._records else None

    def with_prepended(self, record: Registro) -> List[Registro]:
        """Libro que resultaría de agregar `record` al frente. No modifica el libro."""
        return [record, *self._records]

    def replace(self, records: Iterable[Registro]) -> None:
        self._records = tuple(records)
        self._publish()

    def clear(self) -> None:
        self.replace(())

    def subscribe(self, listener: LedgerListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self) -> None:
        snapshot = self.records
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Falló un visor del libro")
