from chat_app.schemas.chat import MessagePage
from chat_app.schemas.user import Identity
from chat_app.services.access_gate import AccessGate, ConversationRef
from chat_app.services.message_store import MessageStore, present
from chat_app.services.read_cursor_service import ReadCursorTracker
from chat_app.utils.websocket_manager import ConnectionManager


class HistoryQueryService:

    def __init__(
        self,
        gate: AccessGate,
        store: MessageStore,
        tracker: ReadCursorTracker,
        hub: ConnectionManager,
        page_size: int = 50,
    ) -> None:
        self._gate = gate
        self._store = store
        self._tracker = tracker
        self._hub = hub
        self._page_size = page_size

    async def fetch_page(self, ref: ConversationRef, caller: Identity, page: int = 1) -> MessagePage:
        access = await self._gate.authorize(ref, caller.user_id)
        conversation_id = access.conversation_id
        messages = await self._store.page(conversation_id, page, self._page_size)

        # viewing a page means having seen it
        last_from_others = next(
            (m for m in reversed(messages) if m["sender_id"] != caller.user_id), None
        )
        if last_from_others is not None:
            advance = await self._tracker.advance(conversation_id, caller.user_id, last_from_others["_id"])
            if advance.moved:
                self._hub.publish_cursor(conversation_id, caller.user_id, advance.current)
            cursor = advance.current
        else:
            cursor = await self._tracker.get(conversation_id, caller.user_id)

        max_other = await self._tracker.max_other(conversation_id, caller.user_id)
        return MessagePage(
            conversation_id=conversation_id,
            page=page,
            cursor=cursor,
            messages=[present(m, caller.user_id, max_other) for m in messages],
        )
