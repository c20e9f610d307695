import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from chat_app.config import Settings, get_settings
from chat_app.database.connection import close_mongo_connection, connect_to_mongo
from chat_app.errors import ChatError, TransientStoreError, ValidationFailed
from chat_app.repositories.conversation_repository import ConversationRepository
from chat_app.repositories.message_repository import MessageRepository
from chat_app.repositories.read_cursor_repository import ReadCursorRepository
from chat_app.repositories.session_repository import SessionRepository
from chat_app.routers.chat import router as chat_router
from chat_app.routers.conversations import router as conversations_router
from chat_app.services.maintenance import SessionJanitor
from chat_app.utils.keyed_lock import KeyedLock
from chat_app.utils.websocket_manager import ConnectionManager


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

logger = logging.getLogger(__name__)


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await ConversationRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()
    await ReadCursorRepository(db).ensure_indexes()
    await SessionRepository(db).ensure_indexes()


def create_app(settings: Optional[Settings] = None, database: Optional[AsyncIOMotorDatabase] = None) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        level = getattr(logging, settings.log_level.upper(), None)
        if isinstance(level, int):
            logging.getLogger().setLevel(level)

        owns_connection = database is None
        db = await connect_to_mongo(settings) if owns_connection else database
        app.state.db = db
        await ensure_indexes(db)

        janitor = SessionJanitor(SessionRepository(db), settings.session_cleanup_interval)
        app.state.janitor = janitor
        janitor.start()
        try:
            yield
        finally:
            await janitor.stop()
            if owns_connection:
                await close_mongo_connection()

    app = FastAPI(title="Realtime chat", lifespan=lifespan)
    app.state.settings = settings
    app.state.hub = ConnectionManager(queue_size=settings.outbound_queue_size)
    app.state.send_locks = KeyedLock()

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        err = ValidationFailed(message)
        return JSONResponse(status_code=err.status_code, content={"error": err.to_dict()})

    @app.exception_handler(PyMongoError)
    async def store_error_handler(request: Request, exc: PyMongoError):
        logger.warning("Store failure on %s %s: %s", request.method, request.url.path, exc)
        err = TransientStoreError("Message store unavailable, try again")
        return JSONResponse(status_code=err.status_code, content={"error": err.to_dict()})

    app.include_router(conversations_router)
    app.include_router(chat_router)

    @app.get("/")
    async def root():
        return {"message": "Realtime chat is running", "rooms": len(app.state.hub.rooms)}

    return app


app = create_app()
