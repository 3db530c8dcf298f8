# bizhub/modules/messaging/routers.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, Request

from bizhub.core.security import CurrentUser
from bizhub.modules.activity.services import ActivityLogger, get_activity_logger
from bizhub.modules.sales.repository import SaleRepository, get_sale_repository
from bizhub.services.email_service import EmailService, get_email_service
from bizhub.services.twilio_service import TwilioMessagingService, get_twilio_service
from .models import (
    CHANNELS, MESSAGE_STATUSES, BulkSendResultAPI, ChannelStatusAPI, CustomerAPI, MessageAPI, MessageStatsAPI,
    SendEmailAPI, SendSmsAPI, SendWhatsAppAPI, SmsResponseAPI,
)
from .repository import MessageRepository, get_message_repository
from .services import MessagingService, get_messaging_service

router = APIRouter()


@router.get("/messages", response_model=List[MessageAPI], summary="List sent messages")
async def list_messages(
    current_user: CurrentUser,
    channel: Optional[CHANNELS] = Query(None),
    status_filter: Optional[MESSAGE_STATUSES] = Query(None, alias="status"),
    service: MessagingService = Depends(get_messaging_service),
    repo: MessageRepository = Depends(get_message_repository),
):
    messages = await service.list_messages(current_user, repo, channel, status_filter)
    return [MessageAPI.model_validate(m) for m in messages]


@router.get("/email-status", response_model=ChannelStatusAPI, summary="Email configuration status")
async def email_status(
    current_user: CurrentUser,
    service: MessagingService = Depends(get_messaging_service),
    email_service: EmailService = Depends(get_email_service),
    twilio: TwilioMessagingService = Depends(get_twilio_service),
):
    return service.channel_status("email", email_service, twilio)


@router.get("/whatsapp-status", response_model=ChannelStatusAPI, summary="WhatsApp configuration status")
async def whatsapp_status(
    current_user: CurrentUser,
    service: MessagingService = Depends(get_messaging_service),
    email_service: EmailService = Depends(get_email_service),
    twilio: TwilioMessagingService = Depends(get_twilio_service),
):
    return service.channel_status("whatsapp", email_service, twilio)


@router.get("/sms-status", response_model=ChannelStatusAPI, summary="SMS configuration status")
async def sms_status(
    current_user: CurrentUser,
    service: MessagingService = Depends(get_messaging_service),
    email_service: EmailService = Depends(get_email_service),
    twilio: TwilioMessagingService = Depends(get_twilio_service),
):
    return service.channel_status("sms", email_service, twilio)


@router.post("/send-email", response_model=BulkSendResultAPI, summary="Send an email to one or more recipients")
async def send_email(
    payload: SendEmailAPI,
    request: Request,
    current_user: CurrentUser,
    service: MessagingService = Depends(get_messaging_service),
    repo: MessageRepository = Depends(get_message_repository),
    email_service: EmailService = Depends(get_email_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    return await service.send_email(payload, current_user, repo, email_service, activity_logger, request)


@router.post("/send-whatsapp", response_model=BulkSendResultAPI, summary="Send a WhatsApp message")
async def send_whatsapp(
    payload: SendWhatsAppAPI,
    request: Request,
    current_user: CurrentUser,
    service: MessagingService = Depends(get_messaging_service),
    repo: MessageRepository = Depends(get_message_repository),
    twilio: TwilioMessagingService = Depends(get_twilio_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    return await service.send_whatsapp(payload, current_user, repo, twilio, activity_logger, request)


@router.post("/send-sms", response_model=SmsResponseAPI, summary="Send an SMS")
async def send_sms(
    payload: SendSmsAPI,
    request: Request,
    current_user: CurrentUser,
    service: MessagingService = Depends(get_messaging_service),
    repo: MessageRepository = Depends(get_message_repository),
    twilio: TwilioMessagingService = Depends(get_twilio_service),
    activity_logger: ActivityLogger = Depends(get_activity_logger),
):
    return await service.send_sms(payload, current_user, repo, twilio, activity_logger, request)


@router.get("/customers", response_model=List[CustomerAPI], summary="Customers known from sales")
async def list_customers(
    current_user: CurrentUser,
    service: MessagingService = Depends(get_messaging_service),
    sale_repo: SaleRepository = Depends(get_sale_repository),
):
    return await service.customers(current_user, sale_repo)


@router.get("/stats", response_model=MessageStatsAPI, summary="Messaging statistics")
async def message_stats(
    current_user: CurrentUser,
    service: MessagingService = Depends(get_messaging_service),
    repo: MessageRepository = Depends(get_message_repository),
):
    return await service.stats(current_user, repo)
