from typing import Any, Dict, List

from chat_app.errors import ValidationFailed
from chat_app.repositories.message_repository import MessageRepository
from chat_app.schemas.chat import MessageOut
from chat_app.schemas.user import Identity


def message_payload(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Viewer-independent wire form used for live fan-out."""
    return {
        "id": doc["_id"],
        "conversationId": doc["conversation_id"],
        "senderId": doc["sender_id"],
        "username": doc.get("sender_username", ""),
        "body": doc["body"],
        "createdAt": doc["created_at"].isoformat(),
    }


def present(doc: Dict[str, Any], viewer_id: str, max_other_cursor: int) -> MessageOut:
    is_mine = doc["sender_id"] == viewer_id
    return MessageOut(
        id=doc["_id"],
        conversation_id=doc["conversation_id"],
        sender_id=doc["sender_id"],
        username=doc.get("sender_username", ""),
        body=doc["body"],
        created_at=doc["created_at"],
        is_mine=is_mine,
        # own messages are seen once another member's cursor reaches them
        seen=doc["_id"] <= max_other_cursor if is_mine else True,
    )


class MessageStore:

    def __init__(self, message_repo: MessageRepository, max_length: int = 2000) -> None:
        self._message_repo = message_repo
        self._max_length = max_length

    def validate_body(self, body: Any) -> str:
        if not isinstance(body, str) or not body.strip():
            raise ValidationFailed("Message cannot be empty")
        if len(body) > self._max_length:
            raise ValidationFailed(f"Message exceeds {self._max_length} characters")
        return body

    async def append(self, conversation_id: int, sender: Identity, body: Any) -> Dict[str, Any]:
        body = self.validate_body(body)
        return await self._message_repo.save_message(
            conversation_id=conversation_id,
            sender_id=sender.user_id,
            sender_username=sender.username,
            body=body,
        )

    async def page(self, conversation_id: int, page: int, page_size: int) -> List[Dict[str, Any]]:
        if page < 1:
            raise ValidationFailed("page must be >= 1")
        return await self._message_repo.get_page(conversation_id, page, page_size)

    async def count(self, conversation_id: int) -> int:
        return await self._message_repo.count(conversation_id)
