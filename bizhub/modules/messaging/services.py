# bizhub/modules/messaging/services.py
from datetime import timedelta
from html import escape
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, Request, status
from loguru import logger

from bizhub.core.config import settings
from bizhub.core.repository import utc_now
from bizhub.modules.activity.services import ActivityLogger
from bizhub.modules.sales.repository import SaleRepository
from bizhub.modules.users.models import UserInDB
from bizhub.services.email_service import EmailService
from bizhub.services.twilio_service import TwilioMessagingService
from bizhub.websocket.events import push_event
from .models import (
    CHANNELS, BulkSendResultAPI, ChannelStatAPI, ChannelStatusAPI, CustomerAPI, DeliveryResultAPI,
    MessageAPI, MessageInDB, MessageStatsAPI, SendEmailAPI, SendSmsAPI, SendWhatsAppAPI, SmsResponseAPI,
)
from .repository import MessageRepository


def _summarise(channel: str, results: List[DeliveryResultAPI], messages: List[MessageInDB]) -> BulkSendResultAPI:
    success_count = sum(1 for r in results if r.success)
    failed = [r for r in results if not r.success]
    return BulkSendResultAPI(
        success=not failed,
        code="OK" if not failed else (failed[0].code if len(results) == 1 else "PARTIAL_FAILURE"),
        message=f"{channel.capitalize()} sent to {success_count} of {len(results)} recipient(s)",
        messages=[MessageAPI.model_validate(m) for m in messages],
        results=results,
        total_sent=len(results),
        success_count=success_count,
        failed_count=len(failed),
        errors=[f"{r.to}: {r.error or 'Unknown error'}" for r in failed],
    )


class MessagingService:
    @staticmethod
    def scope_query(user: UserInDB) -> Dict[str, Any]:
        return {} if user.is_admin else {"owner_id": user.scope_owner_id}

    async def list_messages(
        self,
        user: UserInDB,
        message_repo: MessageRepository,
        channel: Optional[str] = None,
        status_filter: Optional[str] = None,
        limit: int = 100,
    ) -> List[MessageInDB]:
        query = self.scope_query(user)
        if channel:
            query["channel"] = channel
        if status_filter:
            query["status"] = status_filter
        return await message_repo.list_by(query, limit=limit, sort=[("created_at", -1)])

    def channel_status(
        self, channel: CHANNELS, email_service: EmailService, twilio: TwilioMessagingService
    ) -> ChannelStatusAPI:
        if channel == "email":
            missing = email_service.missing_config()
        elif channel == "whatsapp":
            missing = twilio.missing_whatsapp_config()
        else:
            missing = twilio.missing_sms_config()
        return ChannelStatusAPI(channel=channel, configured=not missing, missing=missing)

    async def _record(
        self,
        message_repo: MessageRepository,
        user: UserInDB,
        channel: CHANNELS,
        to_address: str,
        content: str,
        result: DeliveryResultAPI,
        subject: Optional[str] = None,
        from_address: Optional[str] = None,
    ) -> MessageInDB:
        return await message_repo.create({
            "channel": channel,
            "from_address": from_address or user.email,
            "to_address": to_address,
            "subject": subject,
            "content": content,
            "status": "sent" if result.success else "failed",
            "sent_by": user.id,
            "owner_id": user.scope_owner_id,
            "metadata": result.model_dump(exclude_none=True),
        })

    async def send_email(
        self,
        payload: SendEmailAPI,
        user: UserInDB,
        message_repo: MessageRepository,
        email_service: EmailService,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> BulkSendResultAPI:
        recipients = payload.recipients()
        log = logger.bind(user_id=str(user.id), channel="email", recipients=len(recipients))
        html = f"<p>{escape(payload.content)}</p>"
        results, messages = [], []
        for recipient in recipients:
            sent = await email_service.send_email(recipient, payload.subject, html=html, text=payload.content)
            result = DeliveryResultAPI(
                to=recipient, success=sent.success, code=sent.code or "OK", sid=sent.message_id, error=sent.error
            )
            results.append(result)
            messages.append(await self._record(
                message_repo, user, "email", recipient, payload.content, result, subject=payload.subject
            ))

        await push_event("new-message", {
            "channel": "email",
            "from": user.email,
            "recipients": len(recipients),
            "subject": payload.subject,
        })
        await activity_logger.log(
            user, "send", "message", f"Sent email '{payload.subject}' to {len(recipients)} recipient(s)",
            {"channel": "email", "recipients": len(recipients)}, request,
        )
        summary = _summarise("email", results, messages)
        log.info(f"Email send finished: {summary.success_count}/{summary.total_sent} delivered")
        return summary

    async def send_whatsapp(
        self,
        payload: SendWhatsAppAPI,
        user: UserInDB,
        message_repo: MessageRepository,
        twilio: TwilioMessagingService,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> BulkSendResultAPI:
        if not twilio.whatsapp_configured:
            logger.warning("WhatsApp send requested but Twilio WhatsApp is not configured")
            return BulkSendResultAPI(
                success=False,
                code="WHATSAPP_NOT_CONFIGURED",
                message="WhatsApp service is not configured. Set TWILIO_ACCOUNT_SID, TWILIO_AUTH_TOKEN and TWILIO_WHATSAPP_NUMBER.",
            )

        recipients = [r for r in payload.recipients() if r and r.strip()]
        if not recipients:
            return BulkSendResultAPI(success=False, code="INVALID_PHONE", message="At least one phone number is required")

        results, messages = [], []
        for recipient in recipients:
            sent = await twilio.send_whatsapp(recipient, payload.message)
            result = DeliveryResultAPI(**sent.model_dump())
            results.append(result)
            if sent.code in ("INVALID_MESSAGE", "INVALID_PHONE") and not sent.sid:
                continue
            messages.append(await self._record(
                message_repo, user, "whatsapp", recipient, payload.message, result,
                from_address=settings.TWILIO_WHATSAPP_NUMBER,
            ))

        if messages:
            await push_event("new-message", {"channel": "whatsapp", "from": user.email, "recipients": len(messages)})
            await activity_logger.log(
                user, "send", "message", f"Sent WhatsApp message to {len(messages)} recipient(s)",
                {"channel": "whatsapp", "recipients": len(messages)}, request,
            )
        return _summarise("whatsapp", results, messages)

    async def send_sms(
        self,
        payload: SendSmsAPI,
        user: UserInDB,
        message_repo: MessageRepository,
        twilio: TwilioMessagingService,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> SmsResponseAPI:
        if not payload.phone.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Phone number is required")
        if not payload.message.strip():
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")
        if not twilio.sms_configured:
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="SMS service not configured")

        sent = await twilio.send_sms(payload.phone, payload.message)
        result = DeliveryResultAPI(**sent.model_dump())
        await self._record(
            message_repo, user, "sms", sent.to, payload.message, result, from_address=settings.TWILIO_SMS_NUMBER
        )
        if not sent.success:
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=sent.error or "Failed to send SMS")

        await push_event("new-message", {"channel": "sms", "from": user.email, "recipients": 1})
        await activity_logger.log(user, "send", "message", f"Sent SMS to {sent.to}", {"channel": "sms"}, request)
        return SmsResponseAPI(success=True, message="SMS sent successfully!", sid=sent.sid)

    async def customers(self, user: UserInDB, sale_repo: SaleRepository) -> List[CustomerAPI]:
        scope = {} if user.is_admin else {"owner_id": user.scope_owner_id}
        rows = await sale_repo.customers(scope)
        return [
            CustomerAPI(
                name=row.get("name"),
                email=row["_id"].get("email"),
                phone=row["_id"].get("phone"),
                total_purchases=row["total_purchases"],
                total_spent=round(float(row["total_spent"]), 2),
                last_purchase=row["last_purchase"],
            )
            for row in rows
        ]

    async def stats(self, user: UserInDB, message_repo: MessageRepository) -> MessageStatsAPI:
        scope = self.scope_query(user)
        breakdown = await message_repo.channel_breakdown(scope)
        return MessageStatsAPI(
            by_channel={
                row["_id"]: ChannelStatAPI(count=row["count"], sent=row["sent"], failed=row["failed"])
                for row in breakdown if row.get("_id")
            },
            total_messages=await message_repo.count(scope),
            recent_messages=await message_repo.count({**scope, "created_at": {"$gte": utc_now() - timedelta(hours=24)}}),
        )


async def get_messaging_service() -> MessagingService:
    return MessagingService()
