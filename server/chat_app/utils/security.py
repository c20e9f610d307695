from datetime import timedelta
from typing import Optional

from fastapi.requests import HTTPConnection
from motor.motor_asyncio import AsyncIOMotorDatabase

from chat_app.config import Settings
from chat_app.errors import AuthRequired
from chat_app.repositories.session_repository import SessionRepository
from chat_app.repositories.user_repository import UserRepository
from chat_app.schemas.user import Identity
from chat_app.utils.clock import utcnow


def session_token_from(conn: HTTPConnection, cookie_name: str) -> Optional[str]:
    token = conn.cookies.get(cookie_name)
    if token:
        return token
    auth = conn.headers.get("authorization", "")
    scheme, _, value = auth.partition(" ")
    if scheme.lower() == "bearer" and value.strip():
        return value.strip()
    # browsers cannot set headers on a websocket handshake
    return conn.query_params.get("token") or None


async def resolve_identity(db: AsyncIOMotorDatabase, token: Optional[str], settings: Settings) -> Identity:
    if not token:
        raise AuthRequired("Session not found")
    sessions = SessionRepository(db)
    now = utcnow()
    session = await sessions.find_active(token, now)
    if not session:
        raise AuthRequired("Session invalid or expired")
    user = await UserRepository(db).get_user_by_id(session["user_id"])
    if not user:
        raise AuthRequired("Session user no longer exists")
    # sliding expiry
    await sessions.extend(session["_id"], now + timedelta(days=settings.session_ttl_days))
    return Identity(user_id=str(user["_id"]), username=user.get("username", ""), role=int(user.get("role", 0)))
