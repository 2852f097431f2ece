import asyncio
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from osviz.session import (
    ENGINES,
    get_engine_state,
    get_settings,
    init_process_session,
    init_sync_session,
    is_running,
    reset_process_session,
    reset_sync_session,
    run_process_session,
    run_sync_session,
    set_running,
    set_speed,
    tick_engine,
)

logger = logging.getLogger(__name__)

router = APIRouter()


async def _send_state(ws: WebSocket, engine: str, error: Optional[str] = None) -> None:
    msg: Dict[str, Any] = {"type": "state", "engine": engine, "data": get_engine_state(engine)}
    if error:
        msg["error"] = error
    await ws.send_json(msg)


def _handle(engine: str, mtype: str, msg: Dict[str, Any]) -> None:
    payload = dict(msg)
    payload.pop("type", None)
    payload.pop("engine", None)

    if mtype == "init":
        if engine == "process":
            init_process_session(payload)
        else:
            init_sync_session(payload)
    elif mtype == "tick":
        tick_engine(engine)
    elif mtype == "run":
        steps = int(msg.get("steps", 1))
        if engine == "process":
            run_process_session(steps)
        else:
            run_sync_session(steps)
    elif mtype == "start":
        set_running(engine, True)
    elif mtype == "pause":
        set_running(engine, False)
    elif mtype == "reset":
        if engine == "process":
            reset_process_session()
        else:
            reset_sync_session()
    elif mtype == "set_speed":
        set_speed(int(msg.get("tick_ms", 500)))
    else:
        raise ValueError(f"unknown message type '{mtype}'")


@router.websocket("/ws/state")
async def ws_state(websocket: WebSocket) -> None:
    await websocket.accept()
    engine = "process"
    await _send_state(websocket, engine)

    try:
        while True:
            if is_running(engine):
                timeout = get_settings().get("tick_ms", 500) / 1000.0
                try:
                    msg: Dict[str, Any] = await asyncio.wait_for(websocket.receive_json(), timeout=timeout)
                except asyncio.TimeoutError:
                    tick_engine(engine)
                    await _send_state(websocket, engine)
                    continue
            else:
                msg = await websocket.receive_json()

            if not isinstance(msg, dict):
                await _send_state(websocket, engine, "message must be a JSON object")
                continue

            requested = str(msg.get("engine", engine)).lower()
            if requested not in ENGINES:
                await _send_state(websocket, engine, f"unknown engine '{requested}'")
                continue
            engine = requested
            mtype = str(msg.get("type", "")).lower()

            try:
                _handle(engine, mtype, msg)
            except (TypeError, ValueError) as exc:
                await _send_state(websocket, engine, str(exc))
                continue

            await _send_state(websocket, engine)
    except WebSocketDisconnect:
        logger.info("websocket client disconnected")
        return
