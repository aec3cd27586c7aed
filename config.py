"""
Configuration for the Maison Darin API.

Everything is read from environment variables (a local .env file is
loaded first when present). Secrets must come from the environment in
production deployments.
"""

import logging
import os
import secrets
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DatabaseConfig:
    """
    MongoDB connection settings.

    Attributes:
        url: Connection string
        name: Database name
        max_retries: Connection attempts before giving up
        retry_delay: Fixed wait between attempts (seconds)
    """
    url: str = "mongodb://localhost:27017"
    name: str = "maison_darin"
    max_retries: int = 5
    retry_delay: float = 5.0
    server_selection_timeout_ms: int = 30000
    max_pool_size: int = 50


@dataclass(frozen=True)
class AuthConfig:
    """JWT and login policy settings."""
    secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    access_expire_minutes: int = 15
    refresh_expire_days: int = 7
    issuer: str = "maison-darin-api"
    audience: str = "maison-darin-client"
    max_login_attempts: int = 5
    lock_minutes: int = 30
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None


@dataclass(frozen=True)
class CloudinaryConfig:
    cloud_name: str = ""
    api_key: str = ""
    api_secret: str = ""
    folder: str = "maison-darin"
    max_upload_mb: int = 5

    @property
    def configured(self) -> bool:
        return bool(self.cloud_name and self.api_key and self.api_secret)


@dataclass(frozen=True)
class PayPalConfig:
    client_id: str = ""
    client_secret: str = ""
    mode: str = "sandbox"
    currency: str = "USD"

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @property
    def base_url(self) -> str:
        if self.mode == "live":
            return "https://api-m.paypal.com"
        return "https://api-m.sandbox.paypal.com"


@dataclass(frozen=True)
class RateLimitConfig:
    """
    Fixed-window limits per client IP.

    Attributes:
        window: Window length (seconds)
        search: Search requests per window
        auth: Login/register attempts per window
        submit: Public form submissions per window
    """
    window: int = 60
    search: int = 60
    auth: int = 10
    submit: int = 5


def _secret(name: str) -> str:
    value = os.getenv(name)
    if value:
        return value
    logger.warning(f"{name} is not set - using a random per-process secret")
    return secrets.token_urlsafe(48)


class Settings:
    """
    Central settings manager that aggregates all configuration.
    """

    def __init__(self):
        self.database = DatabaseConfig(
            url=os.getenv("DATABASE_URL", os.getenv("MONGODB_URI", "mongodb://localhost:27017")),
            name=os.getenv("DATABASE_NAME", "maison_darin"),
            max_retries=int(os.getenv("DB_MAX_RETRIES", "5")),
            retry_delay=float(os.getenv("DB_RETRY_DELAY", "5.0")),
            server_selection_timeout_ms=int(os.getenv("DB_SERVER_SELECTION_TIMEOUT_MS", "30000")),
            max_pool_size=int(os.getenv("DB_MAX_POOL_SIZE", "50")),
        )

        self.auth = AuthConfig(
            secret=_secret("JWT_SECRET"),
            refresh_secret=_secret("JWT_REFRESH_SECRET"),
            algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", "15")),
            refresh_expire_days=int(os.getenv("JWT_REFRESH_EXPIRE_DAYS", "7")),
            issuer=os.getenv("JWT_ISSUER", "maison-darin-api"),
            audience=os.getenv("JWT_AUDIENCE", "maison-darin-client"),
            max_login_attempts=int(os.getenv("MAX_LOGIN_ATTEMPTS", "5")),
            lock_minutes=int(os.getenv("LOCK_MINUTES", "30")),
            admin_email=os.getenv("ADMIN_EMAIL"),
            admin_password=os.getenv("ADMIN_PASSWORD"),
        )

        self.cloudinary = CloudinaryConfig(
            cloud_name=os.getenv("CLOUDINARY_CLOUD_NAME", ""),
            api_key=os.getenv("CLOUDINARY_API_KEY", ""),
            api_secret=os.getenv("CLOUDINARY_API_SECRET", ""),
            folder=os.getenv("CLOUDINARY_FOLDER", "maison-darin"),
            max_upload_mb=int(os.getenv("MAX_UPLOAD_MB", "5")),
        )

        self.paypal = PayPalConfig(
            client_id=os.getenv("PAYPAL_CLIENT_ID", ""),
            client_secret=os.getenv("PAYPAL_CLIENT_SECRET", ""),
            mode=os.getenv("PAYPAL_MODE", "sandbox"),
            currency=os.getenv("PAYPAL_CURRENCY", "USD"),
        )

        self.rate_limit = RateLimitConfig(
            window=int(os.getenv("RATE_LIMIT_WINDOW", "60")),
            search=int(os.getenv("RATE_LIMIT_SEARCH", "60")),
            auth=int(os.getenv("RATE_LIMIT_AUTH", "10")),
            submit=int(os.getenv("RATE_LIMIT_SUBMIT", "5")),
        )

    @property
    def server_port(self) -> int:
        return int(os.getenv("PORT", "8000"))

    @property
    def cors_origins(self) -> List[str]:
        raw = os.getenv("CORS_ORIGINS", "*")
        return [o.strip() for o in raw.split(",") if o.strip()]

    @property
    def api_title(self) -> str:
        return "Maison Darin API"

    @property
    def api_version(self) -> str:
        return "1.0.0"

    @property
    def api_description(self) -> str:
        return "Backend for the Maison Darin luxury perfume store."


# Global settings instance - imported throughout the application
settings = Settings()
