from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials

from kuaagro.services.session_service import FieldSession, SessionRegistry
from kuaagro.utils.security import bearer_scheme, decode_access_token


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


def session_from_token(registry: SessionRegistry, token: str | None) -> FieldSession | None:
    """Debe llamarse en el hilo de sesiones (`registry.run`)."""
    if not token:
        return None
    payload = decode_access_token(token)
    if not payload or "sub" not in payload:
        return None
    return registry.get(payload["sub"])


async def get_optional_session(
    registry: SessionRegistry = Depends(get_registry),
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> FieldSession | None:
    token = credentials.credentials if credentials else None
    return await registry.run(session_from_token, registry, token)


def get_current_session(session: FieldSession | None = Depends(get_optional_session)) -> FieldSession:
    if session is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sesión inválida o expirada")
    return session


def get_agricultor_session(session: FieldSession = Depends(get_current_session)) -> FieldSession:
    if not session.agricultor:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Ingrese su código de agricultor")
    return session
