import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from chat_app.errors import AccessDenied, NotFound
from chat_app.repositories.conversation_repository import ConversationRepository


logger = logging.getLogger(__name__)

ConversationRef = Union[int, str]

# ids are positive int64 values written as plain ASCII digits
ID_REF_RE = re.compile(r"^[0-9]{1,18}$")
MAX_ID = 2 ** 63 - 1


@dataclass(frozen=True)
class ConversationAccess:
    conversation_id: int
    kind: str
    name: Optional[str] = None


class AccessGate:
    """Decides whether a caller may read or write a conversation.

    Membership is loaded on every call; results are never cached.
    """

    def __init__(self, conversation_repo: ConversationRepository) -> None:
        self._conversation_repo = conversation_repo

    async def resolve(self, ref: ConversationRef) -> Dict[str, Any]:
        if isinstance(ref, int):
            convo = await self._conversation_repo.get_by_id(ref) if 0 < ref <= MAX_ID else None
        else:
            ref = ref.strip()
            if ID_REF_RE.match(ref):
                convo = await self._conversation_repo.get_by_id(int(ref))
            else:
                convo = await self._conversation_repo.get_by_name(ref)
        if not convo:
            raise NotFound(f"Conversation {ref!r} not found")
        return convo

    async def authorize(self, ref: ConversationRef, user_id: str) -> ConversationAccess:
        convo = await self.resolve(ref)
        members = await self._conversation_repo.member_ids(convo["_id"])
        if convo["kind"] == "direct":
            allowed = len(set(members)) == 2 and user_id in members
        else:
            allowed = user_id in members
        if not allowed:
            logger.info("Denied user %s on conversation %s", user_id, convo["_id"])
            raise AccessDenied("You cannot access this conversation")
        return ConversationAccess(conversation_id=convo["_id"], kind=convo["kind"], name=convo.get("name"))
