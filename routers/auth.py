import logging

from fastapi import APIRouter, Depends

from ratelimit import auth_limiter
from routers.common import ok
from schemas import ChangePasswordRequest, LoginRequest, RefreshRequest, RegisterRequest
import security
from security import get_bearer_token, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", status_code=201, dependencies=[Depends(auth_limiter)])
def register(payload: RegisterRequest):
    user = security.register_user(
        payload.email, payload.password, payload.first_name, payload.last_name, payload.phone
    )
    return ok({"user": security.public_user(user), "tokens": security.create_tokens(user)},
              message="Registration successful")


@router.post("/login", dependencies=[Depends(auth_limiter)])
def login(payload: LoginRequest):
    user = security.authenticate(payload.email, payload.password)
    logger.info(f"User logged in: {user['email']}")
    return ok({"user": security.public_user(user), "tokens": security.create_tokens(user)},
              message="Login successful")


@router.post("/refresh")
def refresh(payload: RefreshRequest):
    return ok(security.refresh_access_token(payload.refresh_token))


@router.post("/logout")
def logout(token: str = Depends(get_bearer_token), user: dict = Depends(get_current_user)):
    security.blacklist_token(token)
    logger.info(f"User logged out: {user['email']}")
    return ok(message="Logout successful")


@router.get("/me")
def me(user: dict = Depends(get_current_user)):
    return ok(security.public_user(user))


@router.get("/verify")
def verify(user: dict = Depends(get_current_user)):
    return ok({"valid": True, "user": security.public_user(user)})


@router.put("/password")
def change_password(payload: ChangePasswordRequest, user: dict = Depends(get_current_user)):
    security.change_password(user, payload.current_password, payload.new_password)
    return ok(message="Password updated")
