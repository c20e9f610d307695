from datetime import datetime
from typing import TypedDict


class UserDocument(TypedDict, total=False):

    _id: str
    username: str
    role: int


class SessionDocument(TypedDict, total=False):

    _id: str
    token: str
    user_id: str
    expires_at: datetime
