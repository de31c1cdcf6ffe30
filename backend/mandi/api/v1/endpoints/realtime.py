"""
Realtime negotiation socket.

WHAT: WebSocket endpoint carrying negotiation chat events
WHY: Push messages, offers, typing and status changes to both parties
HOW: Authenticate before accept (close 1008 on failure), then feed decoded
     JSON frames to the NegotiationHub until the client disconnects
"""

import json
from typing import Optional

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from ....core.security import decode_access_token, extract_bearer_token
from ....services.realtime_hub import ClientConnection, negotiation_hub
from ....utils.exceptions import AuthenticationException
from ....utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def negotiation_socket(websocket: WebSocket, token: Optional[str] = Query(default=None)):
    token = token or extract_bearer_token(websocket.headers.get("authorization"))
    try:
        if not token:
            raise AuthenticationException()
        user_id = decode_access_token(token)
    except AuthenticationException as e:
        logger.warning(f"Rejected socket connection: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    connection = ClientConnection(websocket, user_id)
    logger.info(f"User {user_id} connected")

    try:
        while True:
            received = await websocket.receive()
            if received["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(received.get("code", status.WS_1000_NORMAL_CLOSURE))

            raw = received.get("text")
            if raw is None:
                await negotiation_hub.send_error(connection, "Binary frames are not supported", "INVALID_FRAME")
                continue

            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await negotiation_hub.send_error(connection, "Invalid JSON", "INVALID_FRAME")
                continue

            await negotiation_hub.handle_frame(connection, frame)
    except WebSocketDisconnect:
        logger.info(f"User {user_id} disconnected")
    finally:
        negotiation_hub.disconnect(connection)
