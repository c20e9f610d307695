import asyncio
import logging
import uuid
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket

from chat_app.schemas.events import cursor_advanced_event, new_message_event
from chat_app.schemas.user import Identity


logger = logging.getLogger(__name__)


class ClientSession:
    """One live connection: its identity, joined rooms and bounded outbox."""

    def __init__(self, websocket: WebSocket, identity: Identity, queue_size: int = 256) -> None:
        self.session_id = uuid.uuid4().hex
        self.websocket = websocket
        self.identity = identity
        self.rooms: Set[int] = set()
        self.dropped = 0
        self.closed = False
        self._writer: Optional[asyncio.Task] = None
        self._outbox: "asyncio.Queue[Dict[str, Any]]" = asyncio.Queue(maxsize=queue_size)

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    def deliver(self, event: Dict[str, Any]) -> None:
        """Enqueue without blocking; a full outbox loses its oldest event."""
        if self.closed:
            return
        if self._outbox.full():
            self._outbox.get_nowait()
            self.dropped += 1
            logger.warning("Outbox full for session %s (user %s), dropped oldest event", self.session_id, self.user_id)
        self._outbox.put_nowait(event)

    def pending(self) -> int:
        return self._outbox.qsize()

    def start_writer(self) -> None:
        if self._writer is None:
            self._writer = asyncio.create_task(self.pump())

    async def stop_writer(self) -> None:
        if self._writer is None:
            return
        self._writer.cancel()
        try:
            await self._writer
        except asyncio.CancelledError:
            pass
        self._writer = None

    @property
    def writing(self) -> bool:
        return self._writer is not None and not self._writer.done()

    async def pump(self) -> None:
        while True:
            event = await self._outbox.get()
            try:
                await self.websocket.send_json(event)
            except Exception as exc:
                logger.debug("Send to session %s failed, stopping writer: %s", self.session_id, exc)
                return


class ConnectionManager:
    """Room registry: conversation id -> sessions currently joined to it.

    Soft state only; rebuilt from live connections calling join.
    """

    def __init__(self, queue_size: int = 256) -> None:
        self.rooms: Dict[int, Set[ClientSession]] = {}
        self._queue_size = queue_size

    def open_session(self, websocket: WebSocket, identity: Identity) -> ClientSession:
        return ClientSession(websocket, identity, queue_size=self._queue_size)

    def join(self, session: ClientSession, conversation_id: int) -> bool:
        members = self.rooms.setdefault(conversation_id, set())
        if session in members:
            return False
        members.add(session)
        session.rooms.add(conversation_id)
        logger.info("User %s joined room %s (%d sessions)", session.user_id, conversation_id, len(members))
        return True

    def leave(self, session: ClientSession, conversation_id: int) -> bool:
        members = self.rooms.get(conversation_id)
        session.rooms.discard(conversation_id)
        if not members or session not in members:
            return False
        members.discard(session)
        if not members:
            del self.rooms[conversation_id]
        return True

    def release(self, session: ClientSession) -> None:
        for conversation_id in list(session.rooms):
            self.leave(session, conversation_id)
        session.closed = True

    def members(self, conversation_id: int) -> List[ClientSession]:
        return list(self.rooms.get(conversation_id, ()))

    def room_size(self, conversation_id: int) -> int:
        return len(self.rooms.get(conversation_id, ()))

    def broadcast(
        self,
        conversation_id: int,
        event: Dict[str, Any],
        exclude: Optional[ClientSession] = None,
    ) -> int:
        sent = 0
        for session in self.members(conversation_id):
            if session is exclude:
                continue
            session.deliver(event)
            sent += 1
        logger.debug("Event %s fanned out to %d sessions in room %s", event.get("type"), sent, conversation_id)
        return sent

    def publish_message(self, message: Dict[str, Any]) -> int:
        # only ever called with a message that is already stored
        return self.broadcast(message["conversationId"], new_message_event(message))

    def publish_cursor(
        self,
        conversation_id: int,
        user_id: str,
        cursor: int,
        exclude: Optional[ClientSession] = None,
    ) -> int:
        return self.broadcast(conversation_id, cursor_advanced_event(conversation_id, user_id, cursor), exclude=exclude)
