from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError


# ───────────────────────────────────────────────
# Jerarquía de errores del dominio
# ───────────────────────────────────────────────
class KuaAgroError(Exception):
    """Base de los errores de la aplicación."""
    status_code = 500
    code = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(KuaAgroError):
    """El almacén no se pudo inicializar; lecturas y escrituras quedan deshabilitadas."""
    status_code = 503
    code = "configuration_error"


class AuthRetryableError(KuaAgroError):
    """La sesión anónima aún no está lista; el proveedor reintenta por su cuenta."""
    status_code = 503
    code = "auth_not_ready"


class FieldValidationError(KuaAgroError):
    status_code = 422
    code = "validation_error"


class WriteFailure(KuaAgroError):
    """El almacén rechazó la escritura del documento. No se reintenta."""
    status_code = 502
    code = "write_failure"


class ExportDisabledError(KuaAgroError):
    status_code = 409
    code = "export_disabled"


CONFIGURATION_NOTICE = "Error de Configuración: No se pudo conectar a la base de datos."
CONNECTING_NOTICE = "Conectando al servidor..."
EMPTY_CODE_MESSAGE = "Por favor, ingrese su código de agricultor."


def _normalize_errors(errs):
    norm = []
    for e in errs:
        e = dict(e)
        val = e.get("input")
        if isinstance(val, (bytes, bytearray)):
            try:
                e["input"] = val.decode("utf-8", errors="ignore")
            except Exception:
                e["input"] = repr(val)
        norm.append(e)
    return norm


def install_error_handlers(app: FastAPI):
    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": "validation_error", "detail": _normalize_errors(exc.errors())},
        )

    @app.exception_handler(KuaAgroError)
    async def domain_handler(request: Request, exc: KuaAgroError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.code, "detail": exc.message})
