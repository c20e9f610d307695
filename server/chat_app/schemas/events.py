from typing import Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field


class ClientEvent(BaseModel):
    """Client -> server frame on the live channel."""

    type: Literal["joinRoom", "leaveRoom", "sendMessage"]
    conversation_id: Union[int, str] = Field(alias="conversationId")
    body: Optional[str] = None


def new_message_event(message: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "newMessage", "conversationId": message["conversationId"], "message": message}


def cursor_advanced_event(conversation_id: int, user_id: str, cursor: int) -> Dict[str, Any]:
    return {"type": "cursorAdvanced", "conversationId": conversation_id, "userId": user_id, "cursor": cursor}


def joined_room_event(conversation_id: int) -> Dict[str, Any]:
    return {"type": "joinedRoom", "conversationId": conversation_id}


def error_event(kind: str, reason: str) -> Dict[str, Any]:
    return {"type": "error", "kind": kind, "reason": reason}
