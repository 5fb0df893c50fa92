# api/auth.py
"""
API de sesión.
Endpoints: login con código de agricultor, cierre de sesión.
"""
from fastapi import APIRouter, Depends, status

from kuaagro.schemas.auth import LoginIn, SesionOut
from kuaagro.services.identity_service import normalize_identity
from kuaagro.services.session_service import FieldSession, SessionRegistry
from kuaagro.utils.dependencies import get_current_session, get_optional_session, get_registry
from kuaagro.utils.errors import KuaAgroError
from kuaagro.utils.security import create_access_token

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/login",
    response_model=SesionOut,
    summary="Ingresar con código de agricultor",
    description=(
        "Abre una sesión de captura para el código indicado.\n\n"
        "**Normalización:** se eliminan espacios y se pasa a mayúsculas (`a7 ` → `A7`).\n\n"
        "**Cambio de agricultor:** si se envía un token válido, la misma sesión cambia de código; "
        "el listado se vacía antes de recibir los registros del nuevo código.\n\n"
        "**Errores:**\n"
        "- 422 `validation_error`: código vacío\n"
        "- 503 `configuration_error`: no hay conexión con la base de datos\n"
        "- 503 `auth_not_ready`: conectando al servidor, reintentar"
    )
)
async def login(
    payload: LoginIn,
    registry: SessionRegistry = Depends(get_registry),
    current: FieldSession | None = Depends(get_optional_session),
):
    """Login / cambio de agricultor"""
    normalize_identity(payload.codigo)

    def _login() -> SesionOut:
        session = current
        created = session is None
        if created:
            session = registry.create()
        try:
            agricultor = session.login(payload.codigo)
        except KuaAgroError:
            if created:
                registry.close(session.session_id)
            raise
        return SesionOut(
            access_token=create_access_token(session.session_id),
            agricultor=agricultor,
            listo=session.is_ready,
            vista=session.vista,
        )

    return await registry.run(_login)


@router.delete(
    "/sesion",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cerrar sesión",
    description="Cierra la sesión y la suscripción a los registros del agricultor."
)
async def logout(
    session: FieldSession = Depends(get_current_session),
    registry: SessionRegistry = Depends(get_registry),
):
    await registry.run(registry.close, session.session_id)
