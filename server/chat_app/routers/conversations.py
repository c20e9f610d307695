from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from chat_app.schemas.chat import (
    ConversationCreated,
    ConversationSummary,
    CreateDirectIn,
    CreatePublicIn,
    CursorOut,
    MarkReadIn,
    MembershipOut,
    MessageOut,
    MessagePage,
    SendMessageIn,
)
from chat_app.schemas.user import Identity, UserPublic
from chat_app.services.chat_service import ChatService
from chat_app.services.directory_service import ConversationDirectory
from chat_app.services.history_service import HistoryQueryService
from chat_app.utils.dependencies import get_chat_service, get_current_user, get_directory, get_history_service


router = APIRouter(prefix="/conversations", tags=["chat"])


@router.get("", response_model=List[ConversationSummary])
async def list_conversations(current_user: Identity = Depends(get_current_user), directory: ConversationDirectory = Depends(get_directory)):
    return await directory.list(current_user.user_id)


@router.get("/users", response_model=List[UserPublic])
async def available_users(current_user: Identity = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.available_users(current_user)


@router.post("/direct", response_model=ConversationCreated, status_code=status.HTTP_201_CREATED)
async def create_direct(payload: CreateDirectIn, current_user: Identity = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.create_direct(current_user, username=payload.username, user_id=payload.user_id)


@router.post("/public", response_model=ConversationCreated, status_code=status.HTTP_201_CREATED)
async def create_public(payload: CreatePublicIn, current_user: Identity = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.create_public(current_user, payload.name)


@router.post("/{conversation_ref}/members", response_model=MembershipOut)
async def join_public(conversation_ref: str, current_user: Identity = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.join_public(current_user, conversation_ref)


@router.get("/{conversation_ref}/messages", response_model=MessagePage)
async def list_messages(conversation_ref: str, page: int = Query(1, ge=1), current_user: Identity = Depends(get_current_user), history: HistoryQueryService = Depends(get_history_service)):
    return await history.fetch_page(conversation_ref, current_user, page)


@router.post("/{conversation_ref}/messages", response_model=MessageOut, status_code=status.HTTP_201_CREATED)
async def send_message(conversation_ref: str, payload: SendMessageIn, current_user: Identity = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.send_message(current_user, conversation_ref, payload.body)


@router.post("/{conversation_ref}/read", response_model=CursorOut)
async def mark_read(conversation_ref: str, payload: Optional[MarkReadIn] = None, current_user: Identity = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    message_id = payload.message_id if payload else None
    return await service.mark_read(current_user, conversation_ref, message_id)
