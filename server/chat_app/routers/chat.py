import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from chat_app.errors import AuthRequired, ChatError, InternalError, TransientStoreError, ValidationFailed
from chat_app.schemas.events import ClientEvent, error_event
from chat_app.services.chat_service import ChatService
from chat_app.utils.dependencies import build_chat_service
from chat_app.utils.security import resolve_identity, session_token_from
from chat_app.utils.websocket_manager import ClientSession


logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])

AUTH_CLOSE_CODE = 4401


async def _dispatch(service: ChatService, session: ClientSession, event: ClientEvent) -> None:
    if event.type == "joinRoom":
        await service.join_room(session, event.conversation_id)
    elif event.type == "leaveRoom":
        await service.leave_room(session, event.conversation_id)
    elif event.type == "sendMessage":
        await service.send_message(session.identity, event.conversation_id, event.body)


@router.websocket("/ws")
async def chat_socket(websocket: WebSocket):
    app = websocket.app
    db = app.state.db
    settings = app.state.settings
    try:
        identity = await resolve_identity(db, session_token_from(websocket, settings.session_cookie), settings)
    except AuthRequired as exc:
        logger.info("Rejected websocket handshake: %s", exc.message)
        await websocket.close(code=AUTH_CLOSE_CODE, reason=exc.message)
        return

    await websocket.accept()
    hub = app.state.hub
    session = hub.open_session(websocket, identity)
    session.start_writer()
    service = build_chat_service(websocket, db)
    logger.info("Session %s opened for user %s", session.session_id, identity.user_id)
    try:
        while True:
            raw = await websocket.receive_text()
            try:
                event = ClientEvent.model_validate_json(raw)
                await _dispatch(service, session, event)
            except ValidationError as exc:
                session.deliver(error_event(ValidationFailed.kind, f"Malformed event: {exc.errors()[0]['msg']}"))
            except ChatError as exc:
                session.deliver(error_event(exc.kind, exc.message))
            except PyMongoError as exc:
                logger.warning("Store failure handling %s for session %s: %s", event.type, session.session_id, exc)
                session.deliver(error_event(TransientStoreError.kind, "Message store unavailable, try again"))
            except Exception:
                logger.exception("Unexpected failure handling an event for session %s", session.session_id)
                session.deliver(error_event(InternalError.kind, "Event could not be processed"))
    except WebSocketDisconnect:
        pass
    finally:
        hub.release(session)
        await session.stop_writer()
        logger.info("Session %s closed for user %s", session.session_id, identity.user_id)
