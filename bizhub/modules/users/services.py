# bizhub/modules/users/services.py
import asyncio
import hashlib
import secrets
import uuid
from datetime import timedelta
from pathlib import Path
from typing import List, Optional
from urllib.parse import urlencode

from fastapi import HTTPException, Request, UploadFile, status
from loguru import logger

from bizhub.core.config import settings
from bizhub.core.repository import utc_now
from bizhub.core.security import create_user_token, get_password_hash, verify_password
from bizhub.modules.activity.services import ActivityLogger
from bizhub.modules.invites.repository import InviteRepository
from bizhub.modules.invites.services import InviteService
from bizhub.modules.notifications.services import NotificationService
from bizhub.modules.teams.repository import TeamRepository
from bizhub.modules.teams.services import TeamService
from bizhub.services.email_service import EmailService
from .models import (
    PasswordChangeAPI, ProfileUpdateAPI, RegisterAPI, ResetPasswordAPI, TokenAPI, UserAdminUpdateAPI, UserAPI,
    UserCreateInternal, UserInDB,
)
from .repository import UserRepository

AVATAR_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/jpg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
}
AVATAR_EXTENSIONS = {".jpeg", ".jpg", ".png", ".gif"}
FORGOT_PASSWORD_MESSAGE = "If an account with that email exists, a password reset link has been sent."


def hash_reset_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def avatar_dir() -> Path:
    return Path(settings.UPLOAD_DIR) / "avatars"


class UserService:
    """Account lifecycle: registration, authentication, password reset and profile."""

    async def authenticate(self, email: str, password: str, user_repo: UserRepository) -> UserInDB:
        log = logger.bind(email=email)
        user = await user_repo.get_by_email(email)
        if user is None or not verify_password(password, user.hashed_password):
            log.warning("Authentication failed: invalid email or password")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid email or password",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not user.is_active:
            log.warning("Authentication failed: account is deactivated")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account is deactivated")
        return user

    async def login(
        self,
        email: str,
        password: str,
        user_repo: UserRepository,
        activity_logger: ActivityLogger,
        request: Optional[Request] = None,
    ) -> TokenAPI:
        user = await self.authenticate(email, password, user_repo)
        await user_repo.touch_last_login(user.id)
        user = await user_repo.get_by_id(user.id)
        await activity_logger.log(user, "login", "user", "User logged in", request=request)
        logger.bind(user_id=str(user.id)).success(f"Login successful for {user.email}")
        return TokenAPI(access_token=create_user_token(user), user=UserAPI.model_validate(user))

    async def register(
        self,
        user_in: RegisterAPI,
        user_repo: UserRepository,
        invite_repo: InviteRepository,
        team_repo: TeamRepository,
        invite_service: InviteService,
        team_service: TeamService,
        notifier: NotificationService,
    ) -> TokenAPI:
        email = str(user_in.email).strip().lower()
        log = logger.bind(email=email)
        if await user_repo.get_by_email(email):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists with this email")

        invite = None
        if user_in.invite_token:
            invite = await invite_service.get_open_invite(user_in.invite_token, invite_repo)
            if invite is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired invitation token.")
            if invite.email != email:
                raise HTTPException(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="This invitation is for a different email address.",
                )

        role = "admin" if email in settings.admin_emails else "user"
        if invite is not None:
            role = "employee"
        user_data = UserCreateInternal(
            name=user_in.name,
            email=email,
            hashed_password=get_password_hash(user_in.password),
            role=role,
            owner_id=invite.invited_by if invite else None,
            phone=user_in.phone,
        )
        try:
            user = await user_repo.create(user_data)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="User already exists with this email") from e
        log.success(f"User registered with role '{role}' (ID: {user.id})")

        if invite is not None:
            await invite_service.accept(invite, user, invite_repo)
            await self._join_inviter_team(user, invite.invited_by, user_repo, team_repo, team_service, notifier)

        return TokenAPI(access_token=create_user_token(user), user=UserAPI.model_validate(user))

    async def _join_inviter_team(
        self,
        user: UserInDB,
        inviter_id,
        user_repo: UserRepository,
        team_repo: TeamRepository,
        team_service: TeamService,
        notifier: NotificationService,
    ) -> None:
        log = logger.bind(user_id=str(user.id), inviter_id=str(inviter_id))
        try:
            inviter = await user_repo.get_by_id(inviter_id)
            if inviter is None:
                log.warning("Inviter no longer exists; skipping team join")
                return
            await team_service.ensure_member(inviter, user, team_repo)
            await notifier.notify(
                inviter.id,
                "team",
                "Collaborator Joined",
                f"{user.name} ({user.email}) accepted your invitation and joined your team",
                link="/team",
                metadata={"user_id": str(user.id)},
            )
        except (RuntimeError, ValueError) as e:
            log.error(f"Post-registration team setup failed: {e}")

    async def forgot_password(self, email: str, user_repo: UserRepository, email_service: EmailService) -> str:
        user = await user_repo.get_by_email(email)
        if user is None:
            logger.info(f"Password reset requested for unknown email {email}")
            return FORGOT_PASSWORD_MESSAGE

        token = secrets.token_hex(32)
        await user_repo.update(user.id, {
            "reset_password_token": hash_reset_token(token),
            "reset_password_expires": utc_now() + timedelta(minutes=settings.PASSWORD_RESET_EXPIRE_MINUTES),
        })
        query = urlencode({"token": token, "email": user.email})
        reset_url = f"{settings.CLIENT_URL.rstrip('/')}/reset-password?{query}"

        result = await email_service.send_password_reset(user.email, user.name, reset_url)
        if not result.success:
            await user_repo.update(user.id, {"reset_password_token": None, "reset_password_expires": None})
            logger.bind(user_id=str(user.id)).error(f"Password reset email failed: {result.code} {result.error}")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Email could not be sent. Please try again later.",
            )
        return FORGOT_PASSWORD_MESSAGE

    async def reset_password(self, reset_in: ResetPasswordAPI, user_repo: UserRepository, email_service: EmailService) -> None:
        user = await user_repo.get_by({
            "email": str(reset_in.email).lower(),
            "reset_password_token": hash_reset_token(reset_in.token),
            "reset_password_expires": {"$gt": utc_now()},
        })
        if user is None:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired reset token")

        await user_repo.update(user.id, {
            "hashed_password": get_password_hash(reset_in.password),
            "reset_password_token": None,
            "reset_password_expires": None,
        })
        logger.bind(user_id=str(user.id)).success("Password reset completed")
        result = await email_service.send_password_changed(user.email, user.name)
        if not result.success:
            logger.warning(f"Password change confirmation to {user.email} not sent: {result.code}")

    async def update_profile(self, user: UserInDB, profile_in: ProfileUpdateAPI, user_repo: UserRepository) -> UserInDB:
        data = profile_in.model_dump(exclude_unset=True)
        if "name" in data and data["name"] is not None:
            data["name"] = data["name"].strip()
        return await user_repo.update(user.id, data)

    async def change_password(self, user: UserInDB, change_in: PasswordChangeAPI, user_repo: UserRepository) -> None:
        if not verify_password(change_in.current_password, user.hashed_password):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
        await user_repo.update(user.id, {"hashed_password": get_password_hash(change_in.new_password)})

    async def upload_avatar(self, user: UserInDB, file: UploadFile, user_repo: UserRepository) -> UserInDB:
        suffix = Path(file.filename or "").suffix.lower()
        if file.content_type not in AVATAR_CONTENT_TYPES or suffix not in AVATAR_EXTENSIONS:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only image files (jpeg, jpg, png, gif) are allowed",
            )
        contents = await file.read()
        max_bytes = settings.MAX_AVATAR_SIZE_MB * 1024 * 1024
        if len(contents) > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large. Maximum size is {settings.MAX_AVATAR_SIZE_MB}MB",
            )

        target_dir = avatar_dir()
        target_dir.mkdir(parents=True, exist_ok=True)
        filename = f"avatar-{user.id}-{uuid.uuid4().hex[:12]}{suffix}"
        await asyncio.to_thread((target_dir / filename).write_bytes, contents)

        if user.avatar and user.avatar.startswith("/uploads/avatars/"):
            old_file = target_dir / Path(user.avatar).name
            if old_file.exists():
                await asyncio.to_thread(old_file.unlink)

        logger.bind(user_id=str(user.id)).info(f"Avatar stored as {filename} ({len(contents)} bytes)")
        return await user_repo.update(user.id, {"avatar": f"/uploads/avatars/{filename}"})

    async def list_users(self, user_repo: UserRepository) -> List[UserInDB]:
        return await user_repo.list_by({}, limit=0, sort=[("created_at", -1)])

    async def admin_update(self, user_id: str, update_in: UserAdminUpdateAPI, user_repo: UserRepository) -> UserInDB:
        target = await user_repo.get_by_id(user_id)
        if target is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        data = update_in.model_dump(exclude_unset=True, exclude_none=True)
        updated = await user_repo.update(target.id, data)
        logger.info(f"Admin updated user {target.email}: {data}")
        return updated


async def get_user_service() -> UserService:
    return UserService()
