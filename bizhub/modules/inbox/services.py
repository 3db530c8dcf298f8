# bizhub/modules/inbox/services.py
from html import escape
from typing import Any, Dict, List, Optional

from fastapi import HTTPException, status
from loguru import logger

from bizhub.core.repository import utc_now
from bizhub.modules.notifications.services import NotificationService
from bizhub.modules.users.models import UserInDB
from bizhub.modules.users.repository import UserRepository
from bizhub.services.email_service import EmailService
from bizhub.services.twilio_service import TwilioMessagingService
from bizhub.websocket.events import push_event
from .models import (
    CustomerMessageCreateAPI, CustomerMessageInDB, CustomerMessageSendAPI, InboxStatsAPI, ThreadSummaryAPI,
    make_thread_id,
)
from .repository import UNREAD_INBOUND, CustomerMessageRepository

PREVIEW_LENGTH = 100


def preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    return content[:length] + ("..." if len(content) > length else "")


class InboxService:
    """Customer conversations: staff replies out, webhook messages in."""

    async def list_messages(
        self,
        repo: CustomerMessageRepository,
        thread_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        customer_phone: Optional[str] = None,
        unread_only: bool = False,
    ) -> List[CustomerMessageInDB]:
        query: Dict[str, Any] = {}
        if thread_id:
            query["thread_id"] = thread_id
        elif customer_email:
            query["customer.email"] = customer_email
        elif customer_phone:
            query["customer.phone"] = customer_phone
        if unread_only:
            query.update(UNREAD_INBOUND)
        return await repo.list_by(query, limit=100, sort=[("created_at", -1)])

    async def threads(self, repo: CustomerMessageRepository) -> List[ThreadSummaryAPI]:
        rows = await repo.thread_summaries()
        return [ThreadSummaryAPI(thread_id=row.pop("_id"), **row) for row in rows]

    async def thread(self, thread_id: str, repo: CustomerMessageRepository) -> List[CustomerMessageInDB]:
        messages = await repo.list_by({"thread_id": thread_id}, limit=0, sort=[("created_at", 1)])
        marked = await repo.mark_thread_read(thread_id)
        if marked:
            logger.debug(f"Marked {marked} inbound message(s) read in thread {thread_id}")
        return messages

    async def _dispatch(
        self,
        payload: CustomerMessageSendAPI,
        email_service: EmailService,
        twilio: TwilioMessagingService,
    ) -> Dict[str, Any]:
        customer = payload.customer
        if payload.channel == "email":
            if not customer.email:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Customer email is required for email messages")
            subject = payload.subject or "Message from our team"
            result = await email_service.send_email(
                customer.email, subject, html=f"<p>{escape(payload.content)}</p>", text=payload.content
            )
            return result.model_dump(exclude_none=True)

        if not customer.phone:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Customer phone is required for {payload.channel} messages",
            )
        if payload.channel == "whatsapp":
            result = await twilio.send_whatsapp(customer.phone, payload.content)
        else:
            result = await twilio.send_sms(customer.phone, payload.content)
        return result.model_dump(exclude_none=True)

    async def send(
        self,
        payload: CustomerMessageSendAPI,
        user: UserInDB,
        repo: CustomerMessageRepository,
        email_service: EmailService,
        twilio: TwilioMessagingService,
    ) -> CustomerMessageInDB:
        customer = payload.customer
        thread_id = payload.thread_id or make_thread_id(customer.name, customer.email, customer.phone)
        log = logger.bind(user_id=str(user.id), thread_id=thread_id, channel=payload.channel)

        delivery: Dict[str, Any] = {}
        message_status = "sent"
        if payload.channel != "web":
            delivery = await self._dispatch(payload, email_service, twilio)
            message_status = "sent" if delivery.get("success") else "failed"
            if message_status == "failed":
                log.warning(f"Customer message delivery failed: {delivery.get('code')} {delivery.get('error')}")

        message = await repo.create({
            "customer": customer.model_dump(),
            "thread_id": thread_id,
            "direction": "outbound",
            "channel": payload.channel,
            "sender": {"type": "staff", "user_id": user.id, "name": user.name, "email": user.email},
            "recipient": {"type": "customer", "name": customer.name, "email": customer.email},
            "subject": payload.subject or "",
            "content": payload.content,
            "status": message_status,
            "owner_id": user.scope_owner_id,
            "metadata": {"delivery": delivery} if delivery else {},
        })
        await push_event("new-customer-message", {
            "thread_id": thread_id,
            "customer": customer.name,
            "message": payload.content,
            "from": user.name,
            "channel": payload.channel,
        })
        log.info(f"Customer message {message.id} sent ({message_status})")
        return message

    async def receive(
        self,
        payload: CustomerMessageCreateAPI,
        repo: CustomerMessageRepository,
        user_repo: UserRepository,
        notifier: NotificationService,
    ) -> CustomerMessageInDB:
        customer = payload.customer
        thread_id = payload.thread_id or make_thread_id(customer.name, customer.email, customer.phone)
        message = await repo.create({
            "customer": customer.model_dump(),
            "thread_id": thread_id,
            "direction": "inbound",
            "channel": "web",
            "sender": {"type": "customer", "name": customer.name, "email": customer.email},
            "recipient": {"type": "staff", "name": "Support Team"},
            "subject": payload.subject or "",
            "content": payload.content,
            "status": "sent",
        })
        log = logger.bind(thread_id=thread_id, message_id=str(message.id))
        log.info(f"Inbound customer message received from {customer.name}")

        staff = await user_repo.list_by({"role": {"$in": ["admin", "employee"]}, "is_active": True}, limit=0)
        for member in staff:
            await notifier.notify(
                member.id,
                "new_message",
                "New Customer Message",
                f"New message from {customer.name}: {preview(payload.content)}",
                link=f"/messages/thread/{thread_id}",
                metadata={
                    "thread_id": thread_id,
                    "customer_name": customer.name,
                    "customer_email": customer.email,
                    "customer_phone": customer.phone,
                    "message_id": str(message.id),
                },
            )
        if not staff:
            log.warning("No active staff users to notify about customer message")

        await push_event("new-customer-message", {
            "thread_id": thread_id,
            "customer": customer.name,
            "message": payload.content,
            "from": customer.name,
            "is_inbound": True,
        })
        return message

    async def mark_read(self, message_id: str, repo: CustomerMessageRepository) -> CustomerMessageInDB:
        message = await repo.update(message_id, {"status": "read", "read_at": utc_now()})
        if message is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Message not found")
        return message

    async def stats(self, repo: CustomerMessageRepository) -> InboxStatsAPI:
        return InboxStatsAPI(**await repo.totals())


async def get_inbox_service() -> InboxService:
    return InboxService()
