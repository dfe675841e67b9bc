import json

from fastapi import APIRouter, Depends, HTTPException, Query, WebSocket, WebSocketDisconnect
from loguru import logger

from app.core.auth import decode_token
from .hub import RelayHub, get_relay_hub

router = APIRouter(prefix="/relay", tags=["relay"])

WS_POLICY_VIOLATION = 1008


@router.websocket("/ws")
async def relay_socket(
    websocket: WebSocket,
    token: str = Query(...),
    hub: RelayHub = Depends(get_relay_hub),
):
    try:
        user = decode_token(token)
    except HTTPException:
        await websocket.close(code=WS_POLICY_VIOLATION)
        return

    await websocket.accept()
    hub.attach(user.user_id, websocket)

    try:
        while True:
            try:
                frame = json.loads(await websocket.receive_text())
            except ValueError:
                await websocket.send_json({"event": "error", "payload": "frame is not valid JSON"})
                continue

            target = frame.get("to") if isinstance(frame, dict) else None
            if not target:
                await websocket.send_json({"event": "error", "payload": "frame needs a 'to' address"})
                continue

            delivered = await hub.forward(
                user.user_id,
                str(target),
                str(frame.get("event") or "message"),
                frame.get("payload"),
            )
            if frame.get("ack"):
                await websocket.send_json({"event": "ack", "payload": {"delivered": delivered}})
    except WebSocketDisconnect:
        logger.debug(f"[relay] socket closed | user={user.user_id}")
    finally:
        hub.detach(user.user_id, websocket)
