import logging
from dataclasses import dataclass
from typing import Optional

from chat_app.errors import NotFound
from chat_app.repositories.message_repository import MessageRepository
from chat_app.repositories.read_cursor_repository import ReadCursorRepository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CursorAdvance:
    previous: int
    current: int

    @property
    def moved(self) -> bool:
        return self.current > self.previous


class ReadCursorTracker:
    """Per (conversation, user) high-water mark of the last message seen.

    Advance-only: stored value is max(old, candidate), applied atomically by
    the store, so concurrent calls converge on the largest candidate.
    A user's own messages never move their cursor.
    """

    def __init__(self, cursor_repo: ReadCursorRepository, message_repo: MessageRepository) -> None:
        self._cursor_repo = cursor_repo
        self._message_repo = message_repo

    async def get(self, conversation_id: int, user_id: str) -> int:
        return await self._cursor_repo.get(conversation_id, user_id)

    async def max_other(self, conversation_id: int, user_id: str) -> int:
        return await self._cursor_repo.max_other(conversation_id, user_id)

    async def advance(self, conversation_id: int, user_id: str, candidate: Optional[int] = None) -> CursorAdvance:
        if candidate is None:
            latest = await self._message_repo.get_latest_not_from(conversation_id, user_id)
            if latest is None:
                raise NotFound("No message to mark as read")
            return await self._raise(conversation_id, user_id, latest["_id"])

        current = await self.get(conversation_id, user_id)
        if candidate <= current:
            return CursorAdvance(current, current)
        message = await self._message_repo.get_message(conversation_id, candidate)
        if message is None:
            raise NotFound(f"Message {candidate} not found in this conversation")
        if message["sender_id"] == user_id:
            return CursorAdvance(current, current)
        return await self._raise(conversation_id, user_id, candidate)

    async def advance_to_latest(self, conversation_id: int, user_id: str) -> Optional[CursorAdvance]:
        try:
            return await self.advance(conversation_id, user_id)
        except NotFound:
            return None

    async def _raise(self, conversation_id: int, user_id: str, candidate: int) -> CursorAdvance:
        current = await self.get(conversation_id, user_id)
        if candidate <= current:
            return CursorAdvance(current, current)
        previous, after = await self._cursor_repo.raise_to(conversation_id, user_id, candidate)
        if after > previous:
            logger.debug("Cursor %s/%s advanced %s -> %s", conversation_id, user_id, previous, after)
        return CursorAdvance(previous, after)
