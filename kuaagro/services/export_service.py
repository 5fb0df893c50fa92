# services/export_service.py
from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Sequence

from kuaagro.config.settings import settings
from kuaagro.schemas.registro import Registro
from kuaagro.schemas.shared import MAX_SAFE_INTEGER
from kuaagro.utils.datetime_utils import to_utc_date

HEADERS = (
    "Semana",
    "Agricultor",
    "Lote",
    "Color de la Cinta",
    "Prematuro",
    "Presente",
    "Novedades",
    "Cosecha",
    "Embolse (calculado)",
    "Faltante (calculado)",
)

COLUMNS = (
    "week",
    "agricultor",
    "lote",
    "color",
    "prematuro",
    "presente",
    "novedades",
    "cosecha",
    "embolse",
    "faltante",
)

DELIMITER = ","
MEDIA_TYPE = "text/csv; charset=utf-8"


def format_number(value) -> str:
    """
    Número como lo escribe la app de campo (Number#toString de JavaScript).

    - Enteros hasta 2**53 tal cual
    - Notación decimal si el exponente decimal está entre -6 y 20
    - Fuera de ese rango, exponente sin ceros a la izquierda: 1e-7, 1.5e+21
    """
    if isinstance(value, int) and abs(value) < MAX_SAFE_INTEGER:
        return str(value)
    value = float(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    # repr da los dígitos más cortos que reconstruyen el float, igual que JS
    parts = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(str(d) for d in parts.digits)
    k = len(digits)
    n = parts.exponent + k

    if k <= n <= 21:
        text = digits + "0" * (n - k)
    elif 0 < n <= 21:
        text = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        text = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        text = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + text


def _cell(value) -> str:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return format_number(value)
    return str(value)


def to_delimited_text(records: Iterable[Registro]) -> bytes:
    """
    CSV del libro: encabezado + una fila por registro, en el orden del libro.

    Los valores se insertan tal cual, sin comillas ni escape: un valor con coma
    desplaza las columnas de esa fila.
    """
    rows = [DELIMITER.join(HEADERS)]
    for r in records:
        rows.append(DELIMITER.join(_cell(getattr(r, col)) for col in COLUMNS))
    return "\n".join(rows).encode("utf-8")


def export_filename(moment: datetime, prefix: str | None = None) -> str:
    """<prefijo>_YYYY-MM-DD.csv con la fecha UTC del momento de exportar."""
    return f"{prefix or settings.EXPORT_FILENAME_PREFIX}_{to_utc_date(moment).isoformat()}.csv"


def is_export_enabled(records: Sequence[Registro]) -> bool:
    return len(records) > 0
