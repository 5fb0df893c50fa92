# config/settings.py
"""
Configuración centralizada de la aplicación usando Pydantic Settings.
Las variables se cargan desde el archivo .env
"""

from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    """Configuración de la aplicación"""

    # Almacén de documentos (vacío = sin configuración)
    DATABASE_URL: str = "sqlite:///./kua_agro.db"

    # JWT de sesión
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 720  # también es el tiempo máximo de inactividad de una sesión

    # Sesiones de captura abiertas a la vez; al llegar al límite se cierra la menos usada
    MAX_SESSIONS: int = 1000

    # CORS
    CORS_ALLOW_ORIGINS: List[str] = ["http://localhost:5173"]

    # Ruta lógica de documentos: artifacts/<APP_ID>/public/data/<DATA_COLLECTION_NAME>/<agricultor>
    APP_ID: str = "kua-agro-app"
    DATA_COLLECTION_NAME: str = "kua-data"

    # Zona horaria para detectar la semana actual
    TIMEZONE: str = "America/Bogota"

    # Exportación
    EXPORT_FILENAME_PREFIX: str = "Kua_AgroApp_Export"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str | None = None  # Si se define, además se escribe kua_agro.log con rotación

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def data_collection(self) -> str:
        return f"artifacts/{self.APP_ID}/public/data/{self.DATA_COLLECTION_NAME}"


settings = Settings()
