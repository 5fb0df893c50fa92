from fastapi import APIRouter, Depends

from kuaagro.enums.enums import ColorCintaEnum, LoteEnum
from kuaagro.schemas.auth import EstadoOut
from kuaagro.schemas.registro import CatalogosOut
from kuaagro.services.session_service import SessionRegistry
from kuaagro.utils.dependencies import get_registry
from kuaagro.utils.errors import CONFIGURATION_NOTICE

router = APIRouter(tags=["catalogos"])


@router.get("/catalogos", response_model=CatalogosOut, summary="Opciones de lote y color de cinta")
async def get_catalogos():
    return CatalogosOut(
        lotes=[l.value for l in LoteEnum],
        colores=[c.value for c in ColorCintaEnum],
    )


@router.get(
    "/estado",
    response_model=EstadoOut,
    summary="Estado de configuración",
    description="Si `configuracion_ok` es false, el ingreso queda bloqueado y `mensaje` trae el aviso a mostrar."
)
async def get_estado(registry: SessionRegistry = Depends(get_registry)):
    if registry.configuracion_ok:
        return EstadoOut(configuracion_ok=True)
    return EstadoOut(configuracion_ok=False, mensaje=CONFIGURATION_NOTICE)
