# services/week_service.py
"""
Semana ISO-8601 de trabajo.

La semana se detecta automáticamente con la fecha local; el usuario puede
fijarla a mano y volver a la detectada con reset().
"""
from __future__ import annotations

import math
from datetime import date, timedelta
from typing import Callable

from kuaagro.schemas.registro import SemanaOut
from kuaagro.utils.datetime_utils import today_local


def current_week_number(d: date) -> int:
    """
    Número de semana ISO-8601.

    Pasos:
    1. Mover la fecha al jueves de su semana (lunes=1 .. domingo=7)
    2. Tomar el 1 de enero del año de ese jueves
    3. ceil((días transcurridos + 1) / 7)
    """
    thursday = d + timedelta(days=4 - d.isoweekday())
    year_start = date(thursday.year, 1, 1)
    return math.ceil(((thursday - year_start).days + 1) / 7)


class WeekClock:
    """Estado de la semana activa del formulario."""

    def __init__(self, today: Callable[[], date] = today_local):
        self._today = today
        self.value: int = current_week_number(today())
        self.overridden: bool = False

    def set_override(self, n: int) -> None:
        # Sin clamp: cualquier entero se acepta como semana manual
        self.value = int(n)
        self.overridden = True

    def reset(self) -> None:
        self.value = current_week_number(self._today())
        self.overridden = False

    def estado(self) -> SemanaOut:
        return SemanaOut(value=self.value, overridden=self.overridden)
