import uuid
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
import structlog

from ..auth.security import decode_token
from ..db import get_db
from ..errors import AuthError
from ..models.models import User

router = APIRouter(tags=["events"])
log = structlog.get_logger(__name__)


@router.websocket("/ws/events")
async def ws_events(websocket: WebSocket, token: Optional[str] = None, db: Session = Depends(get_db)):
    if not token:
        await websocket.close(code=4401)
        return
    try:
        payload = decode_token(token)
        user_id = uuid.UUID(str(payload.get("sub")))
    except (AuthError, ValueError):
        await websocket.close(code=4401)
        return
    if db.get(User, user_id) is None:
        await websocket.close(code=4401)
        return
    db.close()

    hub = websocket.app.state.broadcaster
    channel = str(user_id)
    await websocket.accept()
    await hub.connect(channel, websocket)
    log.info("ws_connected", user_id=channel)
    try:
        while True:
            data = await websocket.receive_text()
            if data and data.strip().lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await hub.disconnect(channel, websocket)
        log.info("ws_disconnected", user_id=channel)
