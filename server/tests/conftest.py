"""Shared fixtures: an in-memory Mongo per test and services/app built on it."""
from dataclasses import dataclass

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from chat_app.config import Settings
from chat_app.main import create_app
from chat_app.repositories.conversation_repository import ConversationRepository
from chat_app.repositories.message_repository import MessageRepository
from chat_app.repositories.read_cursor_repository import ReadCursorRepository
from chat_app.repositories.user_repository import UserRepository
from chat_app.services.access_gate import AccessGate
from chat_app.services.chat_service import ChatService
from chat_app.services.directory_service import ConversationDirectory
from chat_app.services.history_service import HistoryQueryService
from chat_app.services.message_store import MessageStore
from chat_app.services.read_cursor_service import ReadCursorTracker
from chat_app.utils.keyed_lock import KeyedLock
from chat_app.utils.websocket_manager import ConnectionManager
from chat_helpers import Account, add_account


@pytest.fixture
def db():
    return AsyncMongoMockClient()["chat_test"]


@pytest.fixture
def settings():
    return Settings(session_cleanup_interval=0, page_size=50, message_max_length=100)


@dataclass
class Services:
    conversations: ConversationRepository
    messages: MessageRepository
    cursors: ReadCursorRepository
    gate: AccessGate
    store: MessageStore
    tracker: ReadCursorTracker
    hub: ConnectionManager
    chat: ChatService
    history: HistoryQueryService
    directory: ConversationDirectory


@pytest.fixture
def services(db, settings):
    conversations = ConversationRepository(db)
    messages = MessageRepository(db)
    cursors = ReadCursorRepository(db)
    users = UserRepository(db)
    gate = AccessGate(conversations)
    store = MessageStore(messages, max_length=settings.message_max_length)
    tracker = ReadCursorTracker(cursors, messages)
    hub = ConnectionManager(queue_size=settings.outbound_queue_size)
    return Services(
        conversations=conversations,
        messages=messages,
        cursors=cursors,
        gate=gate,
        store=store,
        tracker=tracker,
        hub=hub,
        chat=ChatService(gate, store, tracker, conversations, users, hub, KeyedLock()),
        history=HistoryQueryService(gate, store, tracker, hub, page_size=settings.page_size),
        directory=ConversationDirectory(conversations, messages, users, tracker),
    )


@pytest.fixture
def client(settings, db):
    app = create_app(settings=settings, database=db)
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register(client, db):
    """Create a user plus a live session through the app's event loop."""

    def _register(user_id: str, username: str) -> Account:
        return client.portal.call(add_account, db, user_id, username)

    return _register
