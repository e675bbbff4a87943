"""
Authentication: the bearer-token gate and the /auth routes.

`authenticate` is the gate itself: it reads `Authorization: Bearer <token>`,
verifies the token and yields the caller's user id. `get_current_user_id`
wraps it as a FastAPI dependency; every protected route depends on it and
passes the id into every store query. There are no roles; ownership scoping is
the whole authorization model.
"""

import logging
from dataclasses import dataclass
from typing import Annotated, Mapping

from beanie import PydanticObjectId
from bson.errors import InvalidId
from fastapi import APIRouter, Depends, Request, status

from callisto.config import Settings, get_settings
from callisto.errors import InvalidTokenError, MissingTokenError
from callisto.schemas import (
    LoginRequest,
    OnboardingRequest,
    ResendOtpRequest,
    SignupRequest,
    VerifyOtpRequest,
)
from callisto.services import account_service
from callisto.services.notifier import Notifier, get_notifier
from callisto.services.token_service import TokenService, get_token_service

logger = logging.getLogger(__name__)
router = APIRouter()


@dataclass(frozen=True)
class AuthContext:
    user_id: PydanticObjectId
    email: str


def authenticate(headers: Mapping[str, str], token_service: TokenService) -> AuthContext:
    """Resolve request headers to the calling user, or raise MissingToken / InvalidToken."""
    header = headers.get("authorization") or headers.get("Authorization") or ""
    scheme, _, token = header.strip().partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise MissingTokenError()

    claims = token_service.verify(token.strip())
    if claims is None:
        raise InvalidTokenError()
    try:
        user_id = PydanticObjectId(claims.user_id)
    except (InvalidId, TypeError):
        logger.warning("Token carries a malformed userId: %r", claims.user_id)
        raise InvalidTokenError()
    return AuthContext(user_id=user_id, email=claims.email)


async def get_auth_context(
    request: Request,
    token_service: Annotated[TokenService, Depends(get_token_service)],
) -> AuthContext:
    return authenticate(request.headers, token_service)


async def get_current_user_id(
    auth: Annotated[AuthContext, Depends(get_auth_context)],
) -> PydanticObjectId:
    """Dependency: the authenticated caller's id."""
    return auth.user_id


CurrentUserId = Annotated[PydanticObjectId, Depends(get_current_user_id)]


def _session_body(session: account_service.AuthSession, message: str) -> dict:
    return {
        "success": True,
        "message": message,
        "token": session.token,
        "user": session.user.public(),
    }


@router.post("/signup", status_code=status.HTTP_201_CREATED, response_model=dict, summary="Create an account")
async def signup(
    body: SignupRequest,
    tokens: Annotated[TokenService, Depends(get_token_service)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    session = await account_service.signup(
        body.email,
        body.name,
        body.password,
        tokens=tokens,
        notifier=notifier,
        otp_ttl_minutes=settings.otp_ttl_minutes,
    )
    return _session_body(session, "User created successfully")


@router.post("/login", response_model=dict, summary="Log in with email and password")
async def login(
    body: LoginRequest,
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> dict:
    session = await account_service.login(body.email, body.password, tokens=tokens)
    return _session_body(session, "Login successful")


@router.get("/me", response_model=dict, summary="Current user profile")
async def me(user_id: CurrentUserId) -> dict:
    user = await account_service.get_user(user_id)
    return {"user": user.public()}


@router.post("/onboarding", response_model=dict, summary="Record the onboarding answers")
async def onboarding(body: OnboardingRequest, user_id: CurrentUserId) -> dict:
    user = await account_service.complete_onboarding(user_id, body.use_case)
    return {"success": True, "message": "Onboarding completed successfully", "user": user.public()}


@router.post("/resend-otp", response_model=dict, summary="Send a fresh verification code")
async def resend_otp(
    body: ResendOtpRequest,
    notifier: Annotated[Notifier, Depends(get_notifier)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> dict:
    await account_service.resend_otp(body.email, notifier=notifier, otp_ttl_minutes=settings.otp_ttl_minutes)
    return {"success": True, "message": "OTP has been resent to your email"}


@router.post("/verify-otp", response_model=dict, summary="Verify the emailed code")
async def verify_otp(
    body: VerifyOtpRequest,
    tokens: Annotated[TokenService, Depends(get_token_service)],
) -> dict:
    session = await account_service.verify_otp(body.email, body.otp, tokens=tokens)
    return _session_body(session, "Email verified successfully")
