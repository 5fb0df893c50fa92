# schemas/shared.py
from __future__ import annotations

from typing import Union
from pydantic import BaseModel

# -------------------------------------------------------------------
# Base común para todos los schemas (Pydantic v2)
# -------------------------------------------------------------------
class ORMModel(BaseModel):
    """
    Modelo base para schemas.
    - from_attributes=True: permite construir el schema desde objetos ORM o servicios.
    - populate_by_name=True: habilita usar 'alias' si decides nombrar distinto.
    """
    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
    }


# Los cálculos conservan int cuando el resultado es entero (12, no 12.0)
Numero = Union[int, float]

# Límite de enteros exactos en un float (Number.MAX_SAFE_INTEGER + 1)
MAX_SAFE_INTEGER = 2 ** 53


def normalize_number(value: float) -> Numero:
    if isinstance(value, float) and value.is_integer() and abs(value) < MAX_SAFE_INTEGER:
        return int(value)
    return value
