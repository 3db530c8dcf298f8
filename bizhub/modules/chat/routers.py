# bizhub/modules/chat/routers.py
from typing import List

from fastapi import APIRouter, Depends, Path

from bizhub.core.security import CurrentUser
from bizhub.modules.users.repository import UserRepository, get_user_repository
from .models import ChatMessageAPI, ConversationAPI, OnlineUsersAPI
from .repository import ChatMessageRepository, get_chat_message_repository
from .services import ChatService, get_chat_service

router = APIRouter()


@router.get("/messages/{user_id}", response_model=List[ChatMessageAPI], summary="Private chat history with a user")
async def get_private_history(
    current_user: CurrentUser,
    user_id: str = Path(...),
    service: ChatService = Depends(get_chat_service),
    repo: ChatMessageRepository = Depends(get_chat_message_repository),
    user_repo: UserRepository = Depends(get_user_repository),
):
    return await service.history(user_id, current_user, repo, user_repo)


@router.get("/conversations", response_model=List[ConversationAPI], summary="Private conversations")
async def list_conversations(
    current_user: CurrentUser,
    service: ChatService = Depends(get_chat_service),
    repo: ChatMessageRepository = Depends(get_chat_message_repository),
    user_repo: UserRepository = Depends(get_user_repository),
):
    return await service.conversations(current_user, repo, user_repo)


@router.get("/online", response_model=OnlineUsersAPI, summary="Users connected to the chat")
async def online_users(current_user: CurrentUser, service: ChatService = Depends(get_chat_service)):
    return service.online()
