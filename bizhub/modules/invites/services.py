# bizhub/modules/invites/services.py
import math
import secrets
from datetime import timedelta
from typing import List, Optional, Tuple

from fastapi import HTTPException, Request, status
from loguru import logger

from bizhub.core.config import settings
from bizhub.core.repository import utc_now
from bizhub.modules.activity.services import ActivityLogger
from bizhub.modules.users.models import UserInDB
from bizhub.modules.users.repository import UserRepository
from bizhub.services.email_service import EmailService
from .models import InviteAPI, InviteCreateAPI, InviteDetailsAPI, InviteInDB, InviteResultAPI
from .repository import InviteRepository


def new_invite_token() -> str:
    return secrets.token_hex(32)


def invite_url(token: str) -> str:
    return f"{settings.CLIENT_URL.rstrip('/')}/register?invite={token}"


class InviteService:
    """Collaborator invitations: creation, resend cooldown, public lookup and acceptance."""

    def _check_cooldown(self, invite: InviteInDB) -> None:
        cooldown = timedelta(minutes=settings.INVITE_RESEND_COOLDOWN_MINUTES)
        remaining = invite.last_sent_at + cooldown - utc_now()
        if remaining.total_seconds() > 0:
            minutes = math.ceil(remaining.total_seconds() / 60)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Please wait {minutes} minutes before resending.",
            )

    def _refresh_fields(self) -> dict:
        now = utc_now()
        return {
            "token": new_invite_token(),
            "status": "pending",
            "last_sent_at": now,
            "expires_at": now + timedelta(days=settings.INVITE_EXPIRY_DAYS),
        }

    async def _send(self, invite: InviteInDB, inviter: UserInDB, email_service: EmailService) -> Tuple[bool, Optional[str]]:
        result = await email_service.send_invitation(invite.email, inviter.name, invite_url(invite.token), invite.expires_at)
        if not result.success:
            logger.bind(invite_id=str(invite.id)).warning(f"Invitation email to {invite.email} failed: {result.code} {result.error}")
        return result.success, result.error

    async def invite(
        self,
        invite_in: InviteCreateAPI,
        user: UserInDB,
        invite_repo: InviteRepository,
        user_repo: UserRepository,
        email_service: EmailService,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> InviteResultAPI:
        email = str(invite_in.email).strip().lower()
        log = logger.bind(user_id=str(user.id), invitee=email)
        if email == user.email:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot invite yourself.")

        latest = await invite_repo.latest_for_email(email)
        to_resend: Optional[InviteInDB] = None
        if latest is not None:
            if latest.status == "accepted":
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="This user has already accepted an invitation and joined a team.",
                )
            if latest.status == "pending" and latest.invited_by != user.id:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="This email address has already been invited by another user.",
                )
            if latest.status in ("pending", "expired") and latest.invited_by == user.id:
                self._check_cooldown(latest)
                to_resend = latest

        existing_user = await user_repo.get_by_email(email)
        if existing_user is not None and existing_user.owner_id is not None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="This user is already part of a team.")

        if to_resend is not None:
            invite = await invite_repo.update(to_resend.id, self._refresh_fields())
            message = "Invitation resent successfully"
            failed_message = "Invitation renewed, but the email could not be delivered"
            log.info("Refreshing pending invitation")
        else:
            invite = await invite_repo.create({
                "email": email,
                "invited_by": user.id,
                "owner_id": user.scope_owner_id,
                "invited_at": utc_now(),
                **self._refresh_fields(),
            })
            message = "Invitation sent successfully"
            failed_message = "Invitation created, but the email could not be delivered"
            log.info("Created new invitation")

        email_sent, email_error = await self._send(invite, user, email_service)
        if not email_sent:
            message = failed_message
        await activity_logger.log(
            user, "send", "team", f"Invited {email} to collaborate", {"invite_id": str(invite.id)}, request
        )
        return InviteResultAPI(
            success=True,
            message=message,
            invite=InviteAPI.model_validate(invite),
            email_sent=email_sent,
            email_error=email_error,
        )

    async def list_mine(self, user: UserInDB, invite_repo: InviteRepository) -> List[InviteInDB]:
        expired = await invite_repo.expire_stale(user.id)
        if expired:
            logger.bind(user_id=str(user.id)).debug(f"Marked {expired} invitation(s) expired")
        return await invite_repo.list_by({"invited_by": user.id}, limit=0, sort=[("created_at", -1)])

    async def get_open_invite(self, token: str, invite_repo: InviteRepository) -> Optional[InviteInDB]:
        invite = await invite_repo.get_by_token(token)
        if invite is None or not invite.is_open():
            return None
        return invite

    async def details(self, token: str, invite_repo: InviteRepository, user_repo: UserRepository) -> InviteDetailsAPI:
        invite = await self.get_open_invite(token, invite_repo)
        if invite is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid or expired invitation")
        inviter = await user_repo.get_by_id(invite.invited_by)
        return InviteDetailsAPI(
            email=invite.email,
            inviter_name=inviter.name if inviter else "A team owner",
            inviter_email=inviter.email if inviter else "",
            expires_at=invite.expires_at,
            invited_at=invite.invited_at,
        )

    async def decline(self, token: str, invite_repo: InviteRepository) -> None:
        invite = await invite_repo.get_by_token(token)
        if invite is None or invite.status != "pending":
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid invitation")
        await invite_repo.update(invite.id, {"status": "rejected"})
        logger.bind(invite_id=str(invite.id)).info(f"Invitation for {invite.email} declined")

    async def accept(self, invite: InviteInDB, user: UserInDB, invite_repo: InviteRepository) -> InviteInDB:
        return await invite_repo.update(invite.id, {
            "status": "accepted",
            "accepted_at": utc_now(),
            "accepted_by": user.id,
        })

    async def resend(
        self,
        invite_id: str,
        user: UserInDB,
        invite_repo: InviteRepository,
        email_service: EmailService,
    ) -> InviteResultAPI:
        invite = await invite_repo.get_by_id(invite_id)
        if invite is None or invite.invited_by != user.id:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invitation not found")
        if invite.status == "accepted":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot resend an accepted invitation.")
        self._check_cooldown(invite)

        invite = await invite_repo.update(invite.id, self._refresh_fields())
        email_sent, email_error = await self._send(invite, user, email_service)
        return InviteResultAPI(
            success=True,
            message="Invitation resent successfully" if email_sent else "Invitation renewed, but the email could not be delivered",
            invite=InviteAPI.model_validate(invite),
            email_sent=email_sent,
            email_error=email_error,
        )


async def get_invite_service() -> InviteService:
    return InviteService()
