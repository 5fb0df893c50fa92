from fastapi import APIRouter
from .auth import router as auth_router
from .catalogos import router as catalogos_router
from .formulario import router as formulario_router
from .registros import router as registros_router

api_router = APIRouter()
api_router.include_router(auth_router)
api_router.include_router(catalogos_router)
api_router.include_router(formulario_router)
api_router.include_router(registros_router)
