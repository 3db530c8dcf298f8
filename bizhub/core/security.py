# bizhub/core/security.py

from datetime import datetime, timedelta, timezone
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from loguru import logger
from passlib.context import CryptContext
from pydantic import BaseModel

from bizhub.core.config import settings
from bizhub.modules.users.models import USER_ROLES, UserInDB
from bizhub.modules.users.repository import UserRepository, get_user_repository


class TokenData(BaseModel):
    email: Optional[str] = None  # 'sub' claim
    user_id: Optional[str] = None  # 'uid' claim


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/token")

CredentialsException = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Could not validate credentials",
    headers={"WWW-Authenticate": "Bearer"},
)
InactiveUserException = HTTPException(
    status_code=status.HTTP_403_FORBIDDEN,
    detail="Inactive user",
)
PermissionException = HTTPException(
    status_code=status.HTTP_403_FORBIDDEN,
    detail="Operation not permitted",
)


# --- Password helpers ---

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.error(f"Error verifying password (hash might be invalid): {e}")
        return False


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# --- JWT helpers ---

def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Creates a signed JWT; 'sub' is mandatory."""
    to_encode = data.copy()
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire, "iat": now, "nbf": now})

    subject = to_encode.get("sub")
    if not subject:
        logger.critical("Attempted to create JWT token without 'sub' claim.")
        raise ValueError("Missing 'sub' claim in token data for JWT creation")

    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    logger.debug(f"Access token created for subject: {subject}, expires {expire.isoformat()}")
    return encoded_jwt


def create_user_token(user: UserInDB) -> str:
    return create_access_token({"sub": user.email, "uid": str(user.id), "role": user.role})


def decode_access_token(token: str) -> TokenData:
    """Decodes a JWT into TokenData, raising 401 HTTPExceptions on any failure."""
    log = logger.bind(service="AuthTokenValidation")
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        log.warning("Token validation failed: signature has expired.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
            headers={"WWW-Authenticate": 'Bearer error="invalid_token", error_description="The token has expired"'},
        )
    except JWTError as e:
        log.warning(f"Invalid JWT token: {e}")
        raise CredentialsException from e

    email, user_id = payload.get("sub"), payload.get("uid")
    if not email or not user_id:
        log.warning("Token validation failed: 'sub' or 'uid' claim missing.")
        raise CredentialsException
    return TokenData(email=email, user_id=user_id)


async def get_current_user_from_token(token: Annotated[str, Depends(oauth2_scheme)]) -> TokenData:
    return decode_access_token(token)


async def resolve_token_user(token_data: TokenData, user_repo: UserRepository) -> UserInDB:
    """Loads the token's user and checks the account is active."""
    user = await user_repo.get_by_id(token_data.user_id)
    if user is None or user.email != token_data.email:
        logger.warning(f"Authenticated user '{token_data.email}' not found in database.")
        raise CredentialsException
    if not user.is_active:
        logger.warning(f"Authentication failed: user '{user.email}' is inactive.")
        raise InactiveUserException
    return user


async def get_current_active_user(
    token_data: Annotated[TokenData, Depends(get_current_user_from_token)],
    user_repo: Annotated[UserRepository, Depends(get_user_repository)],
) -> UserInDB:
    return await resolve_token_user(token_data, user_repo)


CurrentUser = Annotated[UserInDB, Depends(get_current_active_user)]


def require_role(*required_roles: USER_ROLES):
    """Dependency factory restricting an endpoint to the given roles."""

    async def role_checker(current_user: CurrentUser) -> UserInDB:
        if current_user.role not in required_roles:
            logger.warning(f"User {current_user.email} with role '{current_user.role}' denied; requires {required_roles}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="You do not have permission to perform this action",
            )
        return current_user

    return role_checker


AdminUser = Annotated[UserInDB, Depends(require_role("admin"))]
