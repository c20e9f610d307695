from typing import Any, Dict, Optional


class ChatError(Exception):
    """Base for failures surfaced to clients with a stable kind."""

    kind = "ChatError"
    status_code = 500

    def __init__(self, message: str, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        payload.update(self.extra)
        return payload


class AuthRequired(ChatError):
    kind = "AuthRequired"
    status_code = 401


class AccessDenied(ChatError):
    kind = "AccessDenied"
    status_code = 403


class NotFound(ChatError):
    kind = "NotFound"
    status_code = 404


class ValidationFailed(ChatError):
    kind = "ValidationError"
    status_code = 400


class Conflict(ChatError):
    kind = "Conflict"
    status_code = 409

    def __init__(self, message: str, conversation_id: Optional[int] = None) -> None:
        if conversation_id is None:
            super().__init__(message)
        else:
            super().__init__(message, conversationId=conversation_id)
        self.conversation_id = conversation_id


class TransientStoreError(ChatError):
    kind = "TransientStoreError"
    status_code = 503


class InternalError(ChatError):
    kind = "InternalError"
    status_code = 500
