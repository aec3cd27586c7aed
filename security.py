"""
Authentication: password hashing, JWT issuance/verification, and the
FastAPI dependencies that guard admin routes.
"""

import hashlib
import logging
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Set

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from config import settings
from database import get_collection, serialize, to_object_id, utcnow
from errors import AuthenticationError, AuthorizationError, ConflictError, ValidationError
from schemas import User

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer(auto_error=False)

ADMIN_ROLES = ("admin", "super_admin")
SPECIAL_CHARS = re.compile(r"[!@#$%^&*(),.?\":{}|<>]")

# sha256 digests of logged-out tokens; lives for the process lifetime
_token_blacklist: Set[str] = set()


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def validate_password_strength(password: str, role: str = "customer") -> bool:
    if role not in ADMIN_ROLES:
        return len(password) >= 6
    return (
        len(password) >= 8
        and re.search(r"[A-Z]", password) is not None
        and re.search(r"[a-z]", password) is not None
        and re.search(r"\d", password) is not None
        and SPECIAL_CHARS.search(password) is not None
    )


def public_user(user: dict) -> dict:
    """User document without credentials or lockout bookkeeping."""
    hidden = {"password_hash", "login_attempts", "lock_until"}
    return serialize({k: v for k, v in user.items() if k not in hidden})


# ============================================================
# Tokens
# ============================================================

def _token_digest(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _encode(user: dict, token_type: str, expires: timedelta, secret: str, session_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user["_id"]),
        "email": user["email"],
        "role": user.get("role", "customer"),
        "sid": session_id,
        "type": token_type,
        "iss": settings.auth.issuer,
        "aud": settings.auth.audience,
        "iat": now,
        "exp": now + expires,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=settings.auth.algorithm)


def create_access_token(user: dict, session_id: Optional[str] = None) -> str:
    return _encode(
        user, "access",
        timedelta(minutes=settings.auth.access_expire_minutes),
        settings.auth.secret,
        session_id or uuid.uuid4().hex,
    )


def create_tokens(user: dict) -> dict:
    session_id = uuid.uuid4().hex
    return {
        "access_token": create_access_token(user, session_id),
        "refresh_token": _encode(
            user, "refresh",
            timedelta(days=settings.auth.refresh_expire_days),
            settings.auth.refresh_secret,
            session_id,
        ),
        "token_type": "bearer",
    }


def decode_token(token: str, token_type: str = "access") -> dict:
    """
    Verify a token and return its claims.

    Raises:
        AuthenticationError: expired, tampered, wrong type or logged out
    """
    label = "Access" if token_type == "access" else "Refresh"
    if is_token_blacklisted(token):
        raise AuthenticationError("Token has been invalidated")

    secret = settings.auth.secret if token_type == "access" else settings.auth.refresh_secret
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.auth.algorithm],
            issuer=settings.auth.issuer,
            audience=settings.auth.audience,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError(f"{label} token has expired", code="TOKEN_EXPIRED")
    except jwt.InvalidTokenError:
        raise AuthenticationError(f"Invalid {label.lower()} token", code="INVALID_TOKEN")

    if payload.get("type") != token_type:
        raise AuthenticationError(f"Invalid {label.lower()} token", code="INVALID_TOKEN")
    return payload


def blacklist_token(token: str) -> None:
    _token_blacklist.add(_token_digest(token))


def is_token_blacklisted(token: str) -> bool:
    return _token_digest(token) in _token_blacklist


def refresh_access_token(refresh_token: str) -> dict:
    claims = decode_token(refresh_token, "refresh")
    user = _load_active_user(claims["sub"])
    return {"access_token": create_access_token(user, claims.get("sid")), "token_type": "bearer"}


# ============================================================
# Users
# ============================================================

def register_user(email: str, password: str, first_name: str, last_name: str,
                  phone: Optional[str] = None, role: str = "customer") -> dict:
    users = get_collection("user")
    if users.find_one({"email": email}):
        raise ConflictError("User with this email already exists", code="USER_EXISTS")
    if not validate_password_strength(password, role):
        raise ValidationError("Password does not meet security requirements", code="WEAK_PASSWORD")

    doc = User(
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone=phone,
        role=role,
    ).model_dump()
    now = utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    doc["_id"] = users.insert_one(doc).inserted_id
    logger.info(f"User registered: {email} ({role})")
    return doc


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def authenticate(email: str, password: str) -> dict:
    """
    Check credentials with account lockout.

    Five consecutive failures lock the account for lock_minutes; a
    successful login clears the counter.
    """
    users = get_collection("user")
    user = users.find_one({"email": email})
    if not user or not user.get("is_active", True):
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    now = utcnow()
    lock_until = _as_utc(user.get("lock_until"))
    if lock_until and lock_until > now:
        raise AuthenticationError(
            "Account is temporarily locked due to too many failed login attempts",
            code="ACCOUNT_LOCKED",
        )

    if not verify_password(password, user.get("password_hash", "")):
        attempts = user.get("login_attempts", 0) + 1
        update = {"login_attempts": attempts}
        if attempts >= settings.auth.max_login_attempts:
            update["lock_until"] = now + timedelta(minutes=settings.auth.lock_minutes)
            logger.warning(f"Account locked after {attempts} failed logins: {email}")
        users.update_one({"_id": user["_id"]}, {"$set": update})
        raise AuthenticationError("Invalid credentials", code="INVALID_CREDENTIALS")

    update = {"login_attempts": 0, "lock_until": None, "last_login": now}
    users.update_one({"_id": user["_id"]}, {"$set": update})
    user.update(update)
    return user


def change_password(user: dict, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.get("password_hash", "")):
        raise AuthenticationError("Current password is incorrect", code="INVALID_CREDENTIALS")
    if not validate_password_strength(new_password, user.get("role", "customer")):
        raise ValidationError("Password does not meet security requirements", code="WEAK_PASSWORD")
    get_collection("user").update_one(
        {"_id": user["_id"]},
        {"$set": {"password_hash": hash_password(new_password), "updated_at": utcnow()}},
    )


def ensure_admin(email: Optional[str], password: Optional[str]) -> Optional[dict]:
    """Create the bootstrap admin if configured and missing."""
    if not email or not password:
        return None
    email = email.strip().lower()
    existing = get_collection("user").find_one({"email": email})
    if existing:
        return existing
    logger.info(f"Creating bootstrap admin {email}")
    return register_user(email, password, "Admin", "User", role="admin")


def _load_active_user(user_id: str) -> dict:
    try:
        oid = to_object_id(user_id)
    except ValidationError:
        raise AuthenticationError("Invalid access token", code="INVALID_TOKEN")
    user = get_collection("user").find_one({"_id": oid})
    if not user or not user.get("is_active", True):
        raise AuthenticationError("User not found or inactive", code="USER_INACTIVE")
    return user


# ============================================================
# Dependencies
# ============================================================

def get_bearer_token(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Access token is required", code="TOKEN_MISSING")
    return credentials.credentials


def get_current_user(token: str = Depends(get_bearer_token)) -> dict:
    claims = decode_token(token, "access")
    return _load_active_user(claims["sub"])


def require_admin(user: dict = Depends(get_current_user)) -> dict:
    if user.get("role") not in ADMIN_ROLES:
        raise AuthorizationError("Admin access required")
    return user
