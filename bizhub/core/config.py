# bizhub/core/config.py

from functools import lru_cache
from pathlib import Path
from typing import List, Optional
import warnings

from loguru import logger
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SECRET_KEY = "!!!GENERATE_A_STRONG_SECRET_KEY_32_BYTES_HEX!!!"


def find_dotenv_path(filename: str = ".env") -> str | None:
    """Walks up from this file (then the CWD) looking for an env file."""
    current_dir = Path(__file__).resolve().parent
    for _ in range(10):
        env_path = current_dir / filename
        if env_path.is_file():
            return str(env_path)
        if current_dir.parent == current_dir:
            break
        current_dir = current_dir.parent
    env_path_cwd = Path.cwd() / filename
    if env_path_cwd.is_file():
        return str(env_path_cwd)
    return None


def dotenv_files(*filenames: str) -> tuple[str, ...] | None:
    """Env files among `filenames` that exist; later ones override earlier ones."""
    found = tuple(path for path in map(find_dotenv_path, filenames) if path)
    return found or None


class Settings(BaseSettings):
    PROJECT_NAME: str = "AI Business Hub"
    API_V1_STR: str = "/api/v1"
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: str = "*"
    CLIENT_URL: str = "http://localhost:3000"

    # Database
    MONGODB_URI: str = "mongodb://localhost:27017/bizhub"

    # Security
    SECRET_KEY: str = DEFAULT_SECRET_KEY
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24 * 7
    PASSWORD_RESET_EXPIRE_MINUTES: int = 60
    ADMIN_EMAILS: str = Field(default="", description="Comma separated emails promoted to admin on registration")

    # Collaborator invitations
    INVITE_EXPIRY_DAYS: int = 7
    INVITE_RESEND_COOLDOWN_MINUTES: int = 60

    # Email (SMTP)
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASS: Optional[str] = None
    SMTP_FROM_NAME: str = "AI Business Hub"
    SMTP_TIMEOUT_SECONDS: int = 20

    # Twilio (SMS + WhatsApp)
    TWILIO_ACCOUNT_SID: Optional[str] = None
    TWILIO_AUTH_TOKEN: Optional[str] = None
    TWILIO_WHATSAPP_NUMBER: Optional[str] = None
    TWILIO_SMS_NUMBER: Optional[str] = None
    TWILIO_API_BASE_URL: str = "https://api.twilio.com/2010-04-01"

    # LLM
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_API_URL: str = "https://api.openai.com/v1/chat/completions"
    OPENAI_CHAT_MODEL: str = "gpt-3.5-turbo"

    # Uploads
    UPLOAD_DIR: str = "uploads"
    MAX_AVATAR_SIZE_MB: int = 3

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_DEFAULT: str = "500/minute"

    # Background jobs
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"
    EMAIL_ALERTS_ENABLED: bool = False

    DEFAULT_CURRENCY: str = "INR"

    model_config = SettingsConfigDict(
        env_file=dotenv_files(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def admin_emails(self) -> List[str]:
        return [e.strip().lower() for e in self.ADMIN_EMAILS.split(",") if e.strip()]

    @property
    def cors_origins(self) -> List[str]:
        if self.CORS_ORIGINS.strip() == "*":
            return ["*"]
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def email_configured(self) -> bool:
        return bool(self.SMTP_USER and self.SMTP_PASS)

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_WHATSAPP_NUMBER)

    @property
    def sms_configured(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_SMS_NUMBER)


@lru_cache()
def get_settings() -> Settings:
    """Loads and validates application settings."""
    logger.info("Loading application settings...")
    env_files_found = [p for p in [find_dotenv_path(".env"), find_dotenv_path(".env.local")] if p]
    if env_files_found:
        logger.info(f"Loading environment variables from: {', '.join(env_files_found)}")
    else:
        logger.warning("No .env file found. Loading settings from system environment variables only.")

    settings_instance = Settings()

    if settings_instance.SECRET_KEY == DEFAULT_SECRET_KEY:
        logger.warning("SECURITY WARNING: Using default SECRET_KEY. Generate one with `openssl rand -hex 32`.")
        warnings.warn("SECURITY WARNING: Using default SECRET_KEY. Please set a strong secret key!")

    if not settings_instance.email_configured:
        logger.warning("SMTP credentials missing (SMTP_USER, SMTP_PASS). Email sending is disabled.")
    if not settings_instance.whatsapp_configured:
        logger.warning("Twilio WhatsApp settings missing. WhatsApp sending is disabled.")
    if not settings_instance.sms_configured:
        logger.warning("Twilio SMS settings missing. SMS sending is disabled.")
    if not settings_instance.OPENAI_API_KEY:
        logger.info("OPENAI_API_KEY not set. Chatbot will answer with rule-based responses only.")

    logger.info("Settings loaded successfully.")
    return settings_instance


settings = get_settings()
