"""
Realtime negotiation hub.

WHAT: Room membership and event fan-out for negotiation chat over WebSockets
WHY: Both parties see messages, offers and status changes as they happen
HOW: One room per negotiation ("negotiation:<id>"); handlers validate through
     the negotiation manager (run in the threadpool) and broadcast JSON frames
"""

from collections import defaultdict
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from ..core.negotiation_manager import NegotiationManager, negotiation_manager
from ..models.api_schemas import (
    RealtimeFrame,
    RealtimeMessagePayload,
    RoomPayload,
    TypingPayload,
)
from ..utils.exceptions import BusinessException
from ..utils.logger import get_logger, negotiation_logger
from .translation import TranslationService, translation_service

logger = get_logger(__name__)


class ClientConnection:
    """An authenticated socket. Anything with user_id and send_event works."""

    def __init__(self, websocket, user_id: str):
        self.websocket = websocket
        self.user_id = user_id

    async def send_event(self, event: str, data: Dict[str, Any]) -> None:
        await self.websocket.send_json({"event": event, "data": data})

    def __repr__(self):
        return f"<ClientConnection(user={self.user_id})>"


Handler = Callable[[Any, Dict[str, Any]], Awaitable[None]]


class NegotiationHub:
    """
    Dispatch client events and broadcast server events.

    Client events: negotiation:join, :leave, :message, :accept, :cancel, :typing.
    Server events: negotiation:joined, :message, :offer, :status, :typing, error.
    """

    def __init__(
        self,
        manager: Optional[NegotiationManager] = None,
        translator: Optional[TranslationService] = None,
    ):
        self.manager = manager or negotiation_manager
        self.translator = translator or translation_service
        self.rooms: Dict[str, Set[Any]] = defaultdict(set)
        self._handlers: Dict[str, Handler] = {
            "negotiation:join": self.on_join,
            "negotiation:leave": self.on_leave,
            "negotiation:message": self.on_message,
            "negotiation:accept": self.on_accept,
            "negotiation:cancel": self.on_cancel,
            "negotiation:typing": self.on_typing,
        }

    @staticmethod
    def room_name(negotiation_id: str) -> str:
        return f"negotiation:{negotiation_id}"

    def members(self, negotiation_id: str) -> Set[Any]:
        return set(self.rooms.get(self.room_name(negotiation_id), ()))

    # ------------------------------------------------------------------
    # Membership and fan-out
    # ------------------------------------------------------------------

    def disconnect(self, connection) -> None:
        """Drop a connection from every room it joined."""
        for room in list(self.rooms):
            self.rooms[room].discard(connection)
            if not self.rooms[room]:
                del self.rooms[room]

    async def broadcast(
        self,
        negotiation_id: str,
        event: str,
        data: Dict[str, Any],
        exclude=None,
    ) -> None:
        for connection in list(self.rooms.get(self.room_name(negotiation_id), ())):
            if connection is exclude:
                continue
            try:
                await connection.send_event(event, data)
            except Exception as e:
                logger.warning(f"Dropping {connection} after failed send of {event}: {e}")
                self.disconnect(connection)

    async def send_error(self, connection, message: str, code: Optional[str] = None) -> None:
        try:
            await connection.send_event("error", {"message": message, "code": code})
        except Exception as e:
            logger.warning(f"Could not deliver error to {connection}: {e}")
            self.disconnect(connection)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle_frame(self, connection, raw: Any) -> None:
        """Validate a decoded frame and route it to its handler."""
        try:
            frame = RealtimeFrame.model_validate(raw)
        except ValidationError:
            await self.send_error(connection, "Frames must look like {\"event\": ..., \"data\": {...}}", "INVALID_FRAME")
            return

        handler = self._handlers.get(frame.event)
        if handler is None:
            await self.send_error(connection, f"Unknown event: {frame.event}", "UNKNOWN_EVENT")
            return

        try:
            await handler(connection, frame.data)
        except ValidationError as e:
            await self.send_error(connection, f"Invalid payload for {frame.event}: {e.errors()[0]['msg']}", "VALIDATION_ERROR")
        except BusinessException as e:
            await self.send_error(connection, e.message, e.code)
        except Exception as e:
            logger.error(f"Handler for {frame.event} failed for {connection}: {e}", exc_info=True)
            await self.send_error(connection, f"Failed to process {frame.event}", "INTERNAL_ERROR")

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def on_join(self, connection, data: Dict[str, Any]) -> None:
        payload = RoomPayload.model_validate(data)
        # Raises NegotiationNotFoundException for outsiders
        await run_in_threadpool(self.manager.get_negotiation, payload.negotiation_id, connection.user_id)

        self.rooms[self.room_name(payload.negotiation_id)].add(connection)
        await connection.send_event("negotiation:joined", {"negotiation_id": payload.negotiation_id})
        negotiation_logger(logger, payload.negotiation_id, connection.user_id).info("Joined room")

    async def on_leave(self, connection, data: Dict[str, Any]) -> None:
        payload = RoomPayload.model_validate(data)
        room = self.room_name(payload.negotiation_id)
        members = self.rooms.get(room)
        if members is not None:
            members.discard(connection)
            if not members:
                del self.rooms[room]
        negotiation_logger(logger, payload.negotiation_id, connection.user_id).info("Left room")

    async def on_message(self, connection, data: Dict[str, Any]) -> None:
        payload = RealtimeMessagePayload.model_validate(data)
        sender_id = connection.user_id

        participants = await run_in_threadpool(
            self.manager.resolve_participants, payload.negotiation_id, sender_id
        )

        translated_message = None
        if participants["sender_language"] != participants["receiver_language"]:
            try:
                translation = await self.translator.translate(
                    payload.message,
                    participants["sender_language"],
                    participants["receiver_language"],
                )
                if translation.translated_text != payload.message:
                    translated_message = translation.translated_text
            except Exception as e:
                negotiation_logger(logger, payload.negotiation_id, sender_id).error(
                    f"Translation failed, sending original: {e}"
                )

        stored = await run_in_threadpool(
            self.manager.add_message,
            payload.negotiation_id,
            sender_id,
            payload.message,
            payload.offer_price,
            payload.offer_quantity,
            translated_message,
        )

        await self.broadcast(payload.negotiation_id, "negotiation:message", {
            "negotiation_id": payload.negotiation_id,
            "message": stored["message"],
        })

        if stored["offer_updated"]:
            await self.broadcast(payload.negotiation_id, "negotiation:offer", {
                "negotiation_id": payload.negotiation_id,
                "offer": stored["negotiation"]["current_offer"],
            })

    async def on_accept(self, connection, data: Dict[str, Any]) -> None:
        payload = RoomPayload.model_validate(data)
        result = await run_in_threadpool(
            self.manager.complete_negotiation, payload.negotiation_id, connection.user_id
        )
        await self.broadcast(payload.negotiation_id, "negotiation:status", {
            "negotiation_id": payload.negotiation_id,
            "status": result["status"],
            "final_price": result["final_price"],
            "final_quantity": result["final_quantity"],
        })

    async def on_cancel(self, connection, data: Dict[str, Any]) -> None:
        payload = RoomPayload.model_validate(data)
        result = await run_in_threadpool(
            self.manager.cancel_negotiation, payload.negotiation_id, connection.user_id
        )
        await self.broadcast(payload.negotiation_id, "negotiation:status", {
            "negotiation_id": payload.negotiation_id,
            "status": result["status"],
        })

    async def on_typing(self, connection, data: Dict[str, Any]) -> None:
        payload = TypingPayload.model_validate(data)
        if connection not in self.rooms.get(self.room_name(payload.negotiation_id), ()):
            await self.send_error(connection, "Join the negotiation before sending typing events", "NOT_JOINED")
            return

        await self.broadcast(
            payload.negotiation_id,
            "negotiation:typing",
            {
                "negotiation_id": payload.negotiation_id,
                "user_id": connection.user_id,
                "is_typing": payload.is_typing,
            },
            exclude=connection,
        )


# Singleton instance
negotiation_hub = NegotiationHub()
