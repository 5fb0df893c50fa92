from __future__ import annotations
from fastapi import APIRouter, Depends, status

from kuaagro.schemas.registro import (
    CampoUpdateIn, CampoUpdateOut, FormularioOut, Registro, SemanaIn, VistaIn
)
from kuaagro.services.session_service import FieldSession, SessionRegistry
from kuaagro.utils.dependencies import get_agricultor_session, get_registry

router = APIRouter(tags=["formulario"])


# Se ejecutan en el hilo de sesiones
def _apply(session: FieldSession, action, *args) -> FormularioOut:
    action(*args)
    return session.formulario()


def _patch_campo(session: FieldSession, campo, valor: str) -> CampoUpdateOut:
    aceptado = session.update_field(campo, valor)
    return CampoUpdateOut(aceptado=aceptado, **session.formulario().model_dump())


@router.get(
    "/formulario",
    response_model=FormularioOut,
    summary="Estado del formulario",
    description=(
        "Borrador actual, campos calculados y semana activa.\n\n"
        "**Fórmulas:**\n"
        "```\n"
        "embolse  = presente + novedades\n"
        "faltante = embolse - cosecha\n"
        "```\n"
        "Campos vacíos o incompletos cuentan como 0. `alerta_faltante` indica faltante negativo."
    )
)
async def get_formulario(
    session: FieldSession = Depends(get_agricultor_session),
    registry: SessionRegistry = Depends(get_registry),
):
    return await registry.run(session.formulario)


@router.patch(
    "/formulario/campos",
    response_model=CampoUpdateOut,
    summary="Actualizar campo del borrador",
    description=(
        "Actualiza un campo del borrador.\n\n"
        "- `lote` / `color`: se guardan tal cual\n"
        "- Conteos: solo dígitos con a lo sumo un punto (`12.`, `.5` y vacío son válidos). "
        "Cualquier otro valor se ignora y se responde `aceptado: false` con el borrador sin cambios."
    )
)
async def patch_campo(
    payload: CampoUpdateIn,
    session: FieldSession = Depends(get_agricultor_session),
    registry: SessionRegistry = Depends(get_registry),
):
    return await registry.run(_patch_campo, session, payload.campo, payload.valor)


@router.put(
    "/formulario/semana",
    response_model=FormularioOut,
    summary="Fijar semana manualmente",
    description="La semana queda fija hasta que se vuelva a la semana actual. No se valida el rango."
)
async def put_semana(
    payload: SemanaIn,
    session: FieldSession = Depends(get_agricultor_session),
    registry: SessionRegistry = Depends(get_registry),
):
    return await registry.run(_apply, session, session.set_week, payload.semana)


@router.delete(
    "/formulario/semana",
    response_model=FormularioOut,
    summary="Volver a la semana actual",
)
async def delete_semana(
    session: FieldSession = Depends(get_agricultor_session),
    registry: SessionRegistry = Depends(get_registry),
):
    return await registry.run(_apply, session, session.reset_week)


@router.post(
    "/formulario/guardar",
    response_model=Registro,
    status_code=status.HTTP_201_CREATED,
    summary="Guardar registro",
    description=(
        "Confirma el borrador y reescribe el libro completo del agricultor.\n\n"
        "**Efectos:**\n"
        "- Los conteos vuelven a vacío; lote y color se conservan\n"
        "- La vista pasa al listado de registros\n\n"
        "**Si la escritura falla (502 `write_failure`):** el borrador y la vista no cambian."
    )
)
async def post_guardar(
    session: FieldSession = Depends(get_agricultor_session),
    registry: SessionRegistry = Depends(get_registry),
):
    return await registry.run(session.commit)


@router.put(
    "/vista",
    response_model=FormularioOut,
    summary="Cambiar vista",
)
async def put_vista(
    payload: VistaIn,
    session: FieldSession = Depends(get_agricultor_session),
    registry: SessionRegistry = Depends(get_registry),
):
    return await registry.run(_apply, session, session.set_view, payload.vista)
