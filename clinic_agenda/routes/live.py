# clinic_agenda/routes/live.py
# WebSocket feeds backed by the store's live queries. Each socket owns its
# subscription and releases it when the socket goes away.
import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from ..context import AppContext, get_context
from ..models import Appointment

logger = logging.getLogger(__name__)

router = APIRouter()

CLOSE_UNAUTHORIZED = 4401
CLOSE_FORBIDDEN = 4403


async def _drain(websocket: WebSocket) -> None:
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass


async def _wait_until_closed(websocket: WebSocket, stop: Optional[asyncio.Event] = None) -> bool:
    """Block until the client leaves or ``stop`` is set. True when stopped by us."""
    drain = asyncio.ensure_future(_drain(websocket))
    waiters = {drain}
    stopper = None
    if stop is not None:
        stopper = asyncio.ensure_future(stop.wait())
        waiters.add(stopper)
    done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
    for task in pending:
        task.cancel()
    return stopper is not None and stopper in done


@router.websocket("/appointments")
async def admin_feed(websocket: WebSocket, token: str = Query(""), ctx: AppContext = Depends(get_context)):
    session = ctx.identity.get_session(token)
    if session is None:
        await websocket.close(code=CLOSE_UNAUTHORIZED)
        return
    if not ctx.identity.is_admin(session):
        await websocket.close(code=CLOSE_FORBIDDEN)
        return
    await websocket.accept()

    signed_out = asyncio.Event()

    def on_session(current):
        if current is None:
            signed_out.set()

    detach = ctx.identity.on_session_change(token, on_session)

    async def push(appointments: List[Appointment]):
        await websocket.send_json({"type": "appointments", "data": jsonable_encoder(appointments)})

    async def failed(_error: Exception):
        await websocket.send_json({"type": "error", "detail": "No se pudieron cargar las citas"})

    subscription = ctx.store.subscribe_all(push, failed)
    try:
        if await _wait_until_closed(websocket, signed_out):
            await websocket.close(code=CLOSE_UNAUTHORIZED)
    finally:
        subscription()
        detach()
        logger.debug("Admin feed closed for %s", session.email)


@router.websocket("/public/appointments/{appointment_id}")
async def appointment_feed(websocket: WebSocket, appointment_id: str, ctx: AppContext = Depends(get_context)):
    await websocket.accept()

    async def push(appointment: Optional[Appointment]):
        await websocket.send_json({"type": "appointment", "data": jsonable_encoder(appointment)})

    async def failed(_error: Exception):
        await websocket.send_json({"type": "error", "detail": "No se pudo cargar la cita"})

    subscription = ctx.store.subscribe_one(appointment_id, push, failed)
    try:
        await _wait_until_closed(websocket)
    finally:
        subscription()
