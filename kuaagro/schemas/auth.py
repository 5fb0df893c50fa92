from pydantic import BaseModel, Field
from typing import Optional

from kuaagro.enums.enums import VistaEnum


class LoginIn(BaseModel):
    codigo: str = Field(..., max_length=64, description="Código de agricultor; se normaliza con trim + mayúsculas")


class SesionOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    agricultor: str
    listo: bool
    vista: VistaEnum


class EstadoOut(BaseModel):
    configuracion_ok: bool
    mensaje: Optional[str] = None
