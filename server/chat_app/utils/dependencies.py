from fastapi import Depends
from fastapi.requests import HTTPConnection
from motor.motor_asyncio import AsyncIOMotorDatabase

from chat_app.config import Settings
from chat_app.database.connection import mongo_db_dependency
from chat_app.repositories.conversation_repository import ConversationRepository
from chat_app.repositories.message_repository import MessageRepository
from chat_app.repositories.read_cursor_repository import ReadCursorRepository
from chat_app.repositories.user_repository import UserRepository
from chat_app.schemas.user import Identity
from chat_app.services.access_gate import AccessGate
from chat_app.services.chat_service import ChatService
from chat_app.services.directory_service import ConversationDirectory
from chat_app.services.history_service import HistoryQueryService
from chat_app.services.message_store import MessageStore
from chat_app.services.read_cursor_service import ReadCursorTracker
from chat_app.utils.security import resolve_identity, session_token_from


def build_chat_service(conn: HTTPConnection, db: AsyncIOMotorDatabase) -> ChatService:
    settings: Settings = conn.app.state.settings
    convo_repo = ConversationRepository(db)
    msg_repo = MessageRepository(db)
    return ChatService(
        gate=AccessGate(convo_repo),
        store=MessageStore(msg_repo, max_length=settings.message_max_length),
        tracker=ReadCursorTracker(ReadCursorRepository(db), msg_repo),
        conversation_repo=convo_repo,
        user_repo=UserRepository(db),
        hub=conn.app.state.hub,
        send_locks=conn.app.state.send_locks,
    )


def get_chat_service(conn: HTTPConnection, db=Depends(mongo_db_dependency)) -> ChatService:
    return build_chat_service(conn, db)


def get_history_service(conn: HTTPConnection, db=Depends(mongo_db_dependency)) -> HistoryQueryService:
    settings: Settings = conn.app.state.settings
    convo_repo = ConversationRepository(db)
    msg_repo = MessageRepository(db)
    return HistoryQueryService(
        gate=AccessGate(convo_repo),
        store=MessageStore(msg_repo, max_length=settings.message_max_length),
        tracker=ReadCursorTracker(ReadCursorRepository(db), msg_repo),
        hub=conn.app.state.hub,
        page_size=settings.page_size,
    )


def get_directory(db=Depends(mongo_db_dependency)) -> ConversationDirectory:
    msg_repo = MessageRepository(db)
    return ConversationDirectory(
        conversation_repo=ConversationRepository(db),
        message_repo=msg_repo,
        user_repo=UserRepository(db),
        tracker=ReadCursorTracker(ReadCursorRepository(db), msg_repo),
    )


async def get_current_user(conn: HTTPConnection, db=Depends(mongo_db_dependency)) -> Identity:
    settings: Settings = conn.app.state.settings
    return await resolve_identity(db, session_token_from(conn, settings.session_cookie), settings)
