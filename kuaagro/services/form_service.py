# services/form_service.py
from __future__ import annotations

import logging
import re
from typing import Callable, Iterable

from kuaagro.enums.enums import CAMPOS_NUMERICOS, CAMPOS_SELECCION, CampoEnum
from kuaagro.schemas.registro import Borrador, CamposDerivados, Registro
from kuaagro.schemas.shared import normalize_number
from kuaagro.utils.datetime_utils import now_millis

logger = logging.getLogger(__name__)

# Decimal parcial permitido mientras se escribe: "", "12", "12.", ".5", "12.5"
PARTIAL_DECIMAL = re.compile(r"\d*\.?\d*", re.ASCII)

_NUMERIC_NAMES = {c.value for c in CAMPOS_NUMERICOS}
_SELECT_NAMES = {c.value for c in CAMPOS_SELECCION}


# ============================================================================
# Cálculos
# ============================================================================

def parse_count(raw: str) -> float:
    """Vacío o inválido (".", "") cuenta como 0."""
    try:
        return float(raw)
    except (TypeError, ValueError):
        return 0.0


def compute_derived(borrador: Borrador) -> CamposDerivados:
    """
    Fórmulas:
    embolse  = presente + novedades
    faltante = embolse - cosecha
    """
    embolse = parse_count(borrador.presente) + parse_count(borrador.novedades)
    faltante = embolse - parse_count(borrador.cosecha)
    return CamposDerivados(embolse=normalize_number(embolse), faltante=normalize_number(faltante))


def next_record_id(existing_ids: Iterable[int], now_ms: int) -> int:
    """Timestamp en ms; si choca con un id del libro se corre al siguiente libre."""
    taken = set(existing_ids)
    candidate = now_ms
    while candidate in taken:
        candidate += 1
    return candidate


# ============================================================================
# Formulario
# ============================================================================

class FieldRecordForm:
    """Borrador del registro en captura y su confirmación."""

    def __init__(self, clock_ms: Callable[[], int] = now_millis):
        self._clock_ms = clock_ms
        self.borrador = Borrador()

    def update_field(self, name: str | CampoEnum, raw_value: str) -> bool:
        """
        Actualiza un campo del borrador.

        - lote / color: se guardan tal cual.
        - Campos numéricos: se ignoran las teclas que no dejan un decimal parcial válido.

        Returns:
            True si el valor se guardó, False si se rechazó (el borrador no cambia).
        """
        name = name.value if isinstance(name, CampoEnum) else name
        if name not in _SELECT_NAMES and name not in _NUMERIC_NAMES:
            return False
        if name in _NUMERIC_NAMES and not PARTIAL_DECIMAL.fullmatch(raw_value):
            return False
        self.borrador = self.borrador.model_copy(update={name: raw_value})
        return True

    def derived_fields(self) -> CamposDerivados:
        return compute_derived(self.borrador)

    def commit(
        self,
        identity: str,
        week: int,
        sink: Callable[[Registro], None],
        existing_ids: Iterable[int] = (),
    ) -> Registro:
        """
        Confirma el borrador.

        Pasos:
        1. Construir el registro con los derivados del momento
        2. Entregarlo a `sink` (escritura del libro)
        3. Solo si `sink` termina sin error: limpiar los conteos, conservando lote y color
        """
        derivados = self.derived_fields()
        registro = Registro(
            id=next_record_id(existing_ids, self._clock_ms()),
            week=week,
            agricultor=identity,
            **self.borrador.model_dump(),
            embolse=derivados.embolse,
            faltante=derivados.faltante,
        )
        sink(registro)
        self.borrador = self.borrador.model_copy(
            update={c.value: "" for c in CAMPOS_NUMERICOS}
        )
        logger.info("Registro %s confirmado para %s (semana %s)", registro.id, identity, week)
        return registro
