# bizhub/modules/inbox/routers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status

from bizhub.core.rate_limit import PUBLIC_ENDPOINT_LIMIT, limiter
from bizhub.core.security import CurrentUser
from bizhub.modules.notifications.services import NotificationService, get_notification_service
from bizhub.modules.users.repository import UserRepository, get_user_repository
from bizhub.services.email_service import EmailService, get_email_service
from bizhub.services.twilio_service import TwilioMessagingService, get_twilio_service
from .models import CustomerMessageAPI, CustomerMessageCreateAPI, CustomerMessageSendAPI, InboxStatsAPI, ThreadSummaryAPI
from .repository import CustomerMessageRepository, get_customer_message_repository
from .services import InboxService, get_inbox_service

router = APIRouter()


@router.get("/", response_model=List[CustomerMessageAPI], summary="List customer messages")
async def list_customer_messages(
    current_user: CurrentUser,
    thread_id: Optional[str] = Query(None),
    customer_email: Optional[str] = Query(None),
    customer_phone: Optional[str] = Query(None),
    unread_only: bool = Query(False),
    service: InboxService = Depends(get_inbox_service),
    repo: CustomerMessageRepository = Depends(get_customer_message_repository),
):
    messages = await service.list_messages(repo, thread_id, customer_email, customer_phone, unread_only)
    return [CustomerMessageAPI.model_validate(m) for m in messages]


@router.get("/threads", response_model=List[ThreadSummaryAPI], summary="Conversation threads")
async def list_threads(
    current_user: CurrentUser,
    service: InboxService = Depends(get_inbox_service),
    repo: CustomerMessageRepository = Depends(get_customer_message_repository),
):
    return await service.threads(repo)


@router.get("/stats", response_model=InboxStatsAPI, summary="Inbox statistics")
async def inbox_stats(
    current_user: CurrentUser,
    service: InboxService = Depends(get_inbox_service),
    repo: CustomerMessageRepository = Depends(get_customer_message_repository),
):
    return await service.stats(repo)


@router.get("/thread/{thread_id}", response_model=List[CustomerMessageAPI], summary="Messages in a thread")
async def get_thread(
    current_user: CurrentUser,
    thread_id: str = Path(...),
    service: InboxService = Depends(get_inbox_service),
    repo: CustomerMessageRepository = Depends(get_customer_message_repository),
):
    messages = await service.thread(thread_id, repo)
    return [CustomerMessageAPI.model_validate(m) for m in messages]


@router.post("/send", response_model=CustomerMessageAPI, status_code=status.HTTP_201_CREATED, summary="Reply to a customer")
async def send_customer_message(
    payload: CustomerMessageSendAPI,
    current_user: CurrentUser,
    service: InboxService = Depends(get_inbox_service),
    repo: CustomerMessageRepository = Depends(get_customer_message_repository),
    email_service: EmailService = Depends(get_email_service),
    twilio: TwilioMessagingService = Depends(get_twilio_service),
):
    message = await service.send(payload, current_user, repo, email_service, twilio)
    return CustomerMessageAPI.model_validate(message)


@router.post("/receive", response_model=CustomerMessageAPI, status_code=status.HTTP_201_CREATED, summary="Inbound customer message webhook")
@limiter.limit(PUBLIC_ENDPOINT_LIMIT)
async def receive_customer_message(
    request: Request,
    payload: CustomerMessageCreateAPI,
    service: InboxService = Depends(get_inbox_service),
    repo: CustomerMessageRepository = Depends(get_customer_message_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    notifier: NotificationService = Depends(get_notification_service),
):
    message = await service.receive(payload, repo, user_repo, notifier)
    return CustomerMessageAPI.model_validate(message)


@router.put("/{message_id}/read", response_model=CustomerMessageAPI, summary="Mark a customer message read")
async def mark_customer_message_read(
    current_user: CurrentUser,
    message_id: str = Path(...),
    service: InboxService = Depends(get_inbox_service),
    repo: CustomerMessageRepository = Depends(get_customer_message_repository),
):
    return CustomerMessageAPI.model_validate(await service.mark_read(message_id, repo))
