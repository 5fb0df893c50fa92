from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from fastapi.responses import Response

from kuaagro.schemas.registro import RegistrosOut
from kuaagro.services.export_service import MEDIA_TYPE
from kuaagro.services.session_service import FieldSession, SessionRegistry
from kuaagro.utils.dependencies import get_agricultor_session, get_registry, session_from_token

logger = logging.getLogger(__name__)

router = APIRouter(tags=["registros"])


def _registros_out(session: FieldSession) -> RegistrosOut:
    records = session.ledger.records
    return RegistrosOut(agricultor=session.agricultor or "", total=len(records), registros=records)


@router.get(
    "/registros",
    response_model=RegistrosOut,
    summary="Listar registros del agricultor",
    description=(
        "Registros del agricultor de la sesión, del más nuevo al más viejo.\n\n"
        "El orden es el del documento remoto; no se reordena por semana."
    )
)
async def get_registros(
    session: FieldSession = Depends(get_agricultor_session),
    registry: SessionRegistry = Depends(get_registry),
):
    return await registry.run(_registros_out, session)


@router.get(
    "/registros/exportar",
    summary="Exportar registros a CSV",
    description=(
        "Descarga `Kua_AgroApp_Export_YYYY-MM-DD.csv` (fecha UTC).\n\n"
        "Los valores van tal cual, sin comillas.\n\n"
        "**Sin registros:** 409 `export_disabled`."
    ),
    response_class=Response,
)
async def get_exportar(
    session: FieldSession = Depends(get_agricultor_session),
    registry: SessionRegistry = Depends(get_registry),
):
    filename, content = await registry.run(session.export)
    return Response(
        content=content,
        media_type=MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.websocket("/ws/registros")
async def ws_registros(websocket: WebSocket, token: str = Query(...)):
    """
    Envía el listado al conectar y cada vez que llega un snapshot del documento.
    """
    registry: SessionRegistry = websocket.app.state.registry
    session = await registry.run(session_from_token, registry, token)
    if session is None or not session.agricultor:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    loop = asyncio.get_running_loop()
    queue: asyncio.Queue = asyncio.Queue()

    # Lo invoca el hilo de sesiones
    def on_ledger(records) -> None:
        out = RegistrosOut(agricultor=session.agricultor or "", total=len(records), registros=records)
        loop.call_soon_threadsafe(queue.put_nowait, out)

    def _open():
        return session.ledger.subscribe(on_ledger), _registros_out(session)

    unsubscribe, inicial = await registry.run(_open)
    receiver = asyncio.ensure_future(websocket.receive())
    getter: asyncio.Future | None = None
    try:
        await websocket.send_json(inicial.model_dump(mode="json"))
        while True:
            getter = asyncio.ensure_future(queue.get())
            done, _ = await asyncio.wait({receiver, getter}, return_when=asyncio.FIRST_COMPLETED)
            if receiver in done:
                if receiver.result()["type"] == "websocket.disconnect":
                    break
                # Los mensajes del visor se ignoran
                receiver = asyncio.ensure_future(websocket.receive())
            if getter in done:
                await websocket.send_json(getter.result().model_dump(mode="json"))
            else:
                getter.cancel()
    except WebSocketDisconnect:
        pass
    finally:
        unsubscribe()
        receiver.cancel()
        if getter is not None:
            getter.cancel()
        logger.debug("Visor de %s desconectado", session.agricultor)
