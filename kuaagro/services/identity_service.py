# services/identity_service.py
"""
Identidad del agricultor y disponibilidad de la sesión.

El mecanismo de autenticación es externo: solo se consume como una señal
booleana de "listo" antes de permitir lecturas o escrituras remotas.
"""
from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Callable, Optional

from kuaagro.utils.errors import EMPTY_CODE_MESSAGE, FieldValidationError

logger = logging.getLogger(__name__)

AuthListener = Callable[[Optional[str]], None]
ReadyListener = Callable[[bool], None]


def normalize_identity(code: str | None) -> str:
    """
    trim + mayúsculas. Sin más validación de formato.

    Raises:
        FieldValidationError: código vacío
    """
    identity = (code or "").strip().upper()
    if not identity:
        raise FieldValidationError(EMPTY_CODE_MESSAGE)
    return identity


# ============================================================================
# Proveedor de identidad
# ============================================================================

class IdentityProvider(ABC):
    @abstractmethod
    def auth_state_changes(self, callback: AuthListener) -> Callable[[], None]:
        """Entrega el usuario actual (o None) de inmediato y en cada cambio."""

    @abstractmethod
    def sign_in_anonymously(self) -> None:
        """Solicita una sesión anónima. Los reintentos son responsabilidad del proveedor."""


class AnonymousIdentityProvider(IdentityProvider):
    """Proveedor local: la sesión anónima se concede en el acto."""

    def __init__(self):
        self.current_user: Optional[str] = None
        self._listeners: list[AuthListener] = []

    def auth_state_changes(self, callback: AuthListener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        callback(self.current_user)
        return unsubscribe

    def sign_in_anonymously(self) -> None:
        if self.current_user is not None:
            return
        self.current_user = f"anon-{uuid.uuid4().hex}"
        for listener in list(self._listeners):
            listener(self.current_user)


# ============================================================================
# Compuerta de disponibilidad
# ============================================================================

class AuthGate:
    """
    Traduce el estado del proveedor a listo / no listo.

    - Usuario presente: listo
    - Sin usuario: pide sesión anónima; si falla, se registra y se espera el
      reintento del propio proveedor

    Hay una sola compuerta por aplicación, compartida por todas las sesiones.
    `dispatch`, si se indica, entrega los cambios a los listeners (por ejemplo
    en el hilo de sesiones); sin él se avisan en el hilo del proveedor.
    """

    def __init__(self, provider: IdentityProvider, dispatch: Optional[Callable[..., object]] = None):
        self.provider = provider
        self.is_ready = False
        self._dispatch = dispatch
        self._listeners: list[ReadyListener] = []
        self._unsubscribe: Optional[Callable[[], None]] = None

    def on_change(self, listener: ReadyListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def start(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.provider.auth_state_changes(self._handle)

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._set_ready(False)

    def _handle(self, user: Optional[str]) -> None:
        if user:
            self._set_ready(True)
            return
        self._set_ready(False)
        try:
            self.provider.sign_in_anonymously()
        except Exception as e:
            logger.error("Falló el inicio de sesión anónimo: %s", e)

    def _set_ready(self, ready: bool) -> None:
        if ready == self.is_ready:
            return
        self.is_ready = ready
        for listener in list(self._listeners):
            if self._dispatch is None:
                listener(ready)
            else:
                self._dispatch(listener, ready)
