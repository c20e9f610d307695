from typing import List, Tuple

from chat_app.repositories.conversation_repository import ConversationRepository
from chat_app.repositories.message_repository import MessageRepository
from chat_app.repositories.user_repository import UserRepository
from chat_app.schemas.chat import ConversationSummary, ParticipantOut
from chat_app.services.read_cursor_service import ReadCursorTracker


PREVIEW_LENGTH = 200


class ConversationDirectory:
    """Per-user conversation list, recomputed from messages and cursors on every call."""

    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        user_repo: UserRepository,
        tracker: ReadCursorTracker,
    ) -> None:
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._user_repo = user_repo
        self._tracker = tracker

    async def list(self, user_id: str) -> List[ConversationSummary]:
        convos = await self._conversation_repo.list_for_user(user_id)
        ranked: List[Tuple[tuple, ConversationSummary]] = []
        for convo in convos:
            conversation_id = convo["_id"]
            member_ids = await self._conversation_repo.member_ids(conversation_id)
            names = await self._user_repo.usernames(member_ids)
            last = await self._message_repo.get_last_message(conversation_id)
            cursor = await self._tracker.get(conversation_id, user_id)
            unread = await self._message_repo.count_unread(conversation_id, user_id, cursor)
            summary = ConversationSummary(
                id=conversation_id,
                kind=convo["kind"],
                name=convo.get("name"),
                participants=[
                    ParticipantOut(id=m, username=names.get(m, ""), is_mine=m == user_id)
                    for m in member_ids
                ],
                last_message=last["body"][:PREVIEW_LENGTH] if last else None,
                last_message_at=last["created_at"] if last else None,
                unread_count=unread,
                is_member=user_id in member_ids,
                created_at=convo["created_at"],
            )
            # message ids break timestamp ties in commit order
            activity = (last["created_at"], last["_id"]) if last else (convo["created_at"], 0)
            ranked.append((activity, summary))
        ranked.sort(key=lambda item: item[0], reverse=True)
        return [summary for _, summary in ranked]
