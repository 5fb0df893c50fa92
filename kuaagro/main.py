import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kuaagro.api.router import api_router
from kuaagro.config.settings import settings
from kuaagro.services.document_store import DocumentStore
from kuaagro.services.identity_service import AnonymousIdentityProvider, IdentityProvider
from kuaagro.services.session_service import SessionRegistry
from kuaagro.utils.errors import ConfigurationError, install_error_handlers
from kuaagro.utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


def create_app(
    database_url: str | None = None,
    provider_factory: Callable[[], IdentityProvider] = AnonymousIdentityProvider,
) -> FastAPI:
    setup_logging()
    url = settings.DATABASE_URL if database_url is None else database_url

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = DocumentStore(url)
        config_error = None
        try:
            store.initialize()
        except ConfigurationError as e:
            # Sin almacén la app arranca igual; el ingreso muestra el aviso de configuración
            config_error = e.message
            store = None
        registry = SessionRegistry(
            store, settings.data_collection, provider_factory=provider_factory, config_error=config_error
        )
        app.state.registry = registry
        logger.info("Kua AgroApp lista (configuración %s)", "ok" if store else "con errores")
        try:
            yield
        finally:
            await registry.run(registry.close_all)
            registry.shutdown()
            if store is not None:
                store.close()

    app = FastAPI(
        title="Kua AgroApp API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)
    app.include_router(api_router)

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok"}

    return app


app = create_app()
