from datetime import datetime
from typing import TypedDict


class MessageDocument(TypedDict, total=False):
    # drawn from the "messages" sequence, strictly increasing
    _id: int
    conversation_id: int
    sender_id: str
    sender_username: str
    body: str
    created_at: datetime


class ReadCursorDocument(TypedDict, total=False):
    conversation_id: int
    user_id: str
    last_read_message_id: int
