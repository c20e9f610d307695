from datetime import datetime
from typing import Literal, TypedDict


ConversationKind = Literal["direct", "public"]


class ConversationDocument(TypedDict, total=False):
    _id: int
    kind: ConversationKind
    # public only, unique
    name: str
    # direct only: both user ids sorted and joined with "|", unique
    direct_key: str
    created_by: str
    created_at: datetime


class MembershipDocument(TypedDict, total=False):
    conversation_id: int
    user_id: str
    joined_at: datetime
