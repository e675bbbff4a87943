"""
Account flows: signup, login, email verification by OTP, onboarding.

Each flow returns plain results or raises one of the typed errors in
callisto.errors; routes stay thin.
"""

import logging
import secrets
from datetime import timedelta
from typing import NamedTuple, Optional

from beanie import PydanticObjectId
from pymongo.errors import DuplicateKeyError

from callisto.errors import (
    AlreadyVerifiedError,
    AppError,
    DuplicateEmailError,
    InvalidCredentialsError,
    InvalidOtpError,
    OtpExpiredError,
    UserNotFoundError,
    WeakPasswordError,
)
from callisto.models.common import utcnow
from callisto.models.user import UseCase, User
from callisto.services.notifier import Notifier
from callisto.services.passwords import hash_password, verify_password
from callisto.services.token_service import TokenClaims, TokenService

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
OTP_DIGITS = 6


class AuthSession(NamedTuple):
    token: str
    user: User


def normalize_email(email: str) -> str:
    return email.strip().lower()


def generate_otp() -> str:
    return f"{secrets.randbelow(10 ** OTP_DIGITS):0{OTP_DIGITS}d}"


def _session(user: User, tokens: TokenService) -> AuthSession:
    token = tokens.issue(TokenClaims(user_id=str(user.id), email=user.email))
    return AuthSession(token=token, user=user)


async def _find_by_email(email: str) -> Optional[User]:
    return await User.find_one(User.email == normalize_email(email))


async def _issue_otp(user: User, notifier: Notifier, ttl_minutes: int) -> None:
    """Mint and persist a fresh code, then hand it to the notifier."""
    user.otp = generate_otp()
    user.otp_expires = utcnow() + timedelta(minutes=ttl_minutes)
    user.updated_at = utcnow()
    await user.save_changes()
    await notifier.send_otp(user.email, user.name, user.otp)


async def signup(
    email: str,
    name: str,
    password: str,
    *,
    tokens: TokenService,
    notifier: Notifier,
    otp_ttl_minutes: int,
) -> AuthSession:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise WeakPasswordError()
    email = normalize_email(email)
    if await _find_by_email(email):
        raise DuplicateEmailError()

    user = User(email=email, name=name.strip(), password_hash=hash_password(password))
    try:
        await user.insert()
    except DuplicateKeyError:
        # Lost a race with a concurrent signup for the same address
        raise DuplicateEmailError()
    logger.info("Created user %s", user.id)

    try:
        await _issue_otp(user, notifier, otp_ttl_minutes)
    except AppError as e:
        # The account exists either way; the user can ask for a new code
        logger.warning("Could not deliver signup OTP to %s: %s", email, e.message)

    return _session(user, tokens)


async def login(email: str, password: str, *, tokens: TokenService) -> AuthSession:
    user = await _find_by_email(email)
    if not user or not verify_password(password, user.password_hash):
        raise InvalidCredentialsError()
    return _session(user, tokens)


async def resend_otp(email: str, *, notifier: Notifier, otp_ttl_minutes: int) -> None:
    user = await _find_by_email(email)
    if not user:
        raise UserNotFoundError()
    if user.email_verified:
        raise AlreadyVerifiedError()
    await _issue_otp(user, notifier, otp_ttl_minutes)
    logger.info("Resent OTP for user %s", user.id)


async def verify_otp(email: str, code: str, *, tokens: TokenService) -> AuthSession:
    user = await _find_by_email(email)
    if not user:
        raise UserNotFoundError()
    if not user.otp or not secrets.compare_digest(user.otp.encode("utf-8"), code.strip().encode("utf-8")):
        raise InvalidOtpError()
    if user.otp_expires and utcnow() > user.otp_expires:
        raise OtpExpiredError()

    user.email_verified = True
    user.otp = None
    user.otp_expires = None
    user.updated_at = utcnow()
    await user.save_changes()
    logger.info("Verified email for user %s", user.id)
    return _session(user, tokens)


async def get_user(user_id: PydanticObjectId) -> User:
    user = await User.get(user_id)
    if not user:
        raise UserNotFoundError()
    return user


async def complete_onboarding(user_id: PydanticObjectId, use_case: UseCase) -> User:
    user = await get_user(user_id)
    user.use_case = use_case
    user.onboarding_completed = True
    user.updated_at = utcnow()
    await user.save_changes()
    logger.info("User %s completed onboarding (%s)", user.id, use_case.value)
    return user
