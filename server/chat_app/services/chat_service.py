import logging
from typing import List, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from chat_app.errors import AccessDenied, Conflict, NotFound, TransientStoreError, ValidationFailed
from chat_app.repositories.conversation_repository import ConversationRepository
from chat_app.repositories.user_repository import UserRepository
from chat_app.schemas.chat import ConversationCreated, CursorOut, MembershipOut, MessageOut
from chat_app.schemas.events import joined_room_event
from chat_app.schemas.user import Identity, UserPublic
from chat_app.services.access_gate import AccessGate, ConversationAccess, ConversationRef
from chat_app.services.message_store import MessageStore, message_payload, present
from chat_app.services.read_cursor_service import ReadCursorTracker
from chat_app.utils.keyed_lock import KeyedLock
from chat_app.utils.websocket_manager import ClientSession, ConnectionManager


logger = logging.getLogger(__name__)


class ChatService:

    def __init__(
        self,
        gate: AccessGate,
        store: MessageStore,
        tracker: ReadCursorTracker,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        hub: ConnectionManager,
        send_locks: KeyedLock,
    ) -> None:
        self._gate = gate
        self._store = store
        self._tracker = tracker
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._hub = hub
        self._send_locks = send_locks

    async def send_message(self, sender: Identity, ref: ConversationRef, body) -> MessageOut:
        access = await self._gate.authorize(ref, sender.user_id)
        body = self._store.validate_body(body)
        conversation_id = access.conversation_id
        # append and publish under one per-conversation lock so rooms see commit order
        async with self._send_locks.hold(conversation_id):
            try:
                saved = await self._store.append(conversation_id, sender, body)
            except PyMongoError as exc:
                logger.warning("Append to conversation %s failed: %s", conversation_id, exc)
                raise TransientStoreError("Message store unavailable, try again") from exc
            self._hub.publish_message(message_payload(saved))
        return present(saved, sender.user_id, max_other_cursor=0)

    async def mark_read(self, reader: Identity, ref: ConversationRef, message_id: Optional[int] = None) -> CursorOut:
        access = await self._gate.authorize(ref, reader.user_id)
        advance = await self._tracker.advance(access.conversation_id, reader.user_id, message_id)
        if advance.moved:
            self._hub.publish_cursor(access.conversation_id, reader.user_id, advance.current)
        return CursorOut(conversation_id=access.conversation_id, cursor=advance.current)

    async def create_direct(
        self,
        creator: Identity,
        username: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> ConversationCreated:
        if user_id:
            other = await self._user_repo.get_user_by_id(user_id)
        else:
            other = await self._user_repo.get_user_by_username(username or "")
        if not other:
            raise NotFound("User not found")
        other_id = str(other["_id"])
        if other_id == creator.user_id:
            raise ValidationFailed("Cannot start a direct conversation with yourself")

        existing = await self._conversation_repo.find_direct(creator.user_id, other_id)
        if existing:
            raise Conflict("Direct conversation already exists", conversation_id=existing["_id"])
        try:
            convo = await self._conversation_repo.create_direct(creator.user_id, other_id)
        except DuplicateKeyError:
            existing = await self._conversation_repo.find_direct(creator.user_id, other_id)
            raise Conflict(
                "Direct conversation already exists",
                conversation_id=existing["_id"] if existing else None,
            )
        except PyMongoError as exc:
            logger.warning("Creating direct conversation %s/%s failed: %s", creator.user_id, other_id, exc)
            raise TransientStoreError("Conversation store unavailable, try again") from exc
        logger.info("Direct conversation %s created by %s with %s", convo["_id"], creator.user_id, other_id)
        return ConversationCreated(conversation_id=convo["_id"], kind="direct")

    async def create_public(self, creator: Identity, name: str) -> ConversationCreated:
        existing = await self._conversation_repo.get_by_name(name)
        if existing:
            raise Conflict("Conversation name already taken", conversation_id=existing["_id"])
        try:
            convo = await self._conversation_repo.create_public(creator.user_id, name)
        except DuplicateKeyError:
            raise Conflict("Conversation name already taken")
        except PyMongoError as exc:
            logger.warning("Creating public conversation %r failed: %s", name, exc)
            raise TransientStoreError("Conversation store unavailable, try again") from exc
        logger.info("Public conversation %s (%r) created by %s", convo["_id"], name, creator.user_id)
        return ConversationCreated(conversation_id=convo["_id"], kind="public", name=name)

    async def join_public(self, user: Identity, ref: ConversationRef) -> MembershipOut:
        convo = await self._gate.resolve(ref)
        if convo["kind"] != "public":
            raise AccessDenied("Direct conversation membership cannot change")
        joined = await self._conversation_repo.add_member(convo["_id"], user.user_id)
        return MembershipOut(conversation_id=convo["_id"], joined=joined)

    async def available_users(self, user: Identity) -> List[UserPublic]:
        """Users the caller has no direct conversation with yet."""
        partners = await self._conversation_repo.direct_partner_ids(user.user_id)
        users = await self._user_repo.list_excluding([user.user_id, *partners])
        return [UserPublic(id=str(u["_id"]), username=u.get("username", "")) for u in users]

    async def join_room(self, session: ClientSession, ref: ConversationRef) -> ConversationAccess:
        access = await self._gate.authorize(ref, session.user_id)
        self._hub.join(session, access.conversation_id)
        session.deliver(joined_room_event(access.conversation_id))
        advance = await self._tracker.advance_to_latest(access.conversation_id, session.user_id)
        if advance is not None and advance.moved:
            self._hub.publish_cursor(access.conversation_id, session.user_id, advance.current, exclude=session)
        return access

    async def leave_room(self, session: ClientSession, ref: ConversationRef) -> Optional[int]:
        convo = await self._gate.resolve(ref)
        if self._hub.leave(session, convo["_id"]):
            return convo["_id"]
        return None
