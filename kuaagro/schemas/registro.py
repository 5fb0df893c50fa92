# schemas/registro.py
from __future__ import annotations

from typing import List
from pydantic import BaseModel, Field

from kuaagro.enums.enums import CampoEnum, ColorCintaEnum, LoteEnum, VistaEnum
from kuaagro.schemas.shared import ORMModel, Numero


# ====== Borrador (formulario en edición) ======

class Borrador(BaseModel):
    lote: str = LoteEnum.lote_1.value
    color: str = ColorCintaEnum.blanco.value
    prematuro: str = ""
    presente: str = ""
    novedades: str = ""
    cosecha: str = ""


class CamposDerivados(BaseModel):
    embolse: Numero = 0
    faltante: Numero = 0


# ====== Registro confirmado (inmutable) ======

class Registro(BaseModel):
    """Entrada confirmada del libro de un agricultor. Los campos del borrador se guardan tal cual."""
    model_config = {"frozen": True}

    id: int
    week: int
    agricultor: str
    lote: str
    color: str
    prematuro: str
    presente: str
    novedades: str
    cosecha: str
    embolse: Numero
    faltante: Numero


# ====== Semana ======

class SemanaOut(ORMModel):
    value: int
    overridden: bool


class SemanaIn(BaseModel):
    semana: int = Field(..., description="Semana manual; no se valida el rango")


# ====== Entradas / salidas de la API ======

class CampoUpdateIn(BaseModel):
    campo: CampoEnum
    valor: str = Field(..., max_length=64)


class DerivadosOut(CamposDerivados):
    alerta_faltante: bool = Field(False, description="True cuando el faltante es negativo")


class FormularioOut(BaseModel):
    borrador: Borrador
    derivados: DerivadosOut
    semana: SemanaOut
    agricultor: str
    total_registros: int
    vista: VistaEnum


class CampoUpdateOut(FormularioOut):
    aceptado: bool


class VistaIn(BaseModel):
    vista: VistaEnum


class RegistrosOut(BaseModel):
    agricultor: str
    total: int
    registros: List[Registro]


class CatalogosOut(BaseModel):
    lotes: List[str]
    colores: List[str]
