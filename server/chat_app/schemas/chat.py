import re
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


PUBLIC_NAME_RE = re.compile(r"^[\w\- ]{3,50}$")


class MessageOut(BaseModel):

    id: int
    conversation_id: int = Field(serialization_alias="conversationId")
    sender_id: str = Field(serialization_alias="senderId")
    username: str
    body: str
    created_at: datetime = Field(serialization_alias="createdAt")
    is_mine: bool = Field(serialization_alias="isMine")
    seen: bool


class MessagePage(BaseModel):

    conversation_id: int = Field(serialization_alias="conversationId")
    page: int
    cursor: int
    messages: List[MessageOut]


class SendMessageIn(BaseModel):

    body: str


class MarkReadIn(BaseModel):

    message_id: Optional[int] = Field(default=None, alias="messageId", ge=1)


class CursorOut(BaseModel):

    conversation_id: int = Field(serialization_alias="conversationId")
    cursor: int


class ParticipantOut(BaseModel):

    id: str
    username: str
    is_mine: bool = Field(serialization_alias="isMine")


class ConversationSummary(BaseModel):

    id: int
    kind: Literal["direct", "public"]
    name: Optional[str] = None
    participants: List[ParticipantOut]
    last_message: Optional[str] = Field(default=None, serialization_alias="lastMessage")
    last_message_at: Optional[datetime] = Field(default=None, serialization_alias="lastMessageAt")
    unread_count: int = Field(serialization_alias="unreadCount")
    is_member: bool = Field(serialization_alias="isMember")
    created_at: datetime = Field(serialization_alias="createdAt")


class CreateDirectIn(BaseModel):

    username: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")

    @model_validator(mode="after")
    def _one_target(self):
        if not self.username and not self.user_id:
            raise ValueError("username or userId is required")
        return self


class CreatePublicIn(BaseModel):

    name: str

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        value = value.strip()
        if not PUBLIC_NAME_RE.match(value):
            raise ValueError("name must be 3-50 letters, digits, spaces, '_' or '-'")
        if value.isdigit():
            raise ValueError("name cannot be purely numeric")
        return value


class ConversationCreated(BaseModel):

    conversation_id: int = Field(serialization_alias="conversationId")
    kind: Literal["direct", "public"]
    name: Optional[str] = None


class MembershipOut(BaseModel):

    conversation_id: int = Field(serialization_alias="conversationId")
    joined: bool
