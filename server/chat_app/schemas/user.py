from pydantic import BaseModel


class Identity(BaseModel):
    """Already-authenticated caller, handed to every core operation."""

    user_id: str
    username: str
    role: int = 0


class UserPublic(BaseModel):

    id: str
    username: str
