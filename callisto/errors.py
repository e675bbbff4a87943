"""
Error taxonomy shared by services and routes.

Services raise these; the handlers registered in main.py turn them into
`{"error": ..., "code": ..., "details": ...}` responses with the class status.
"""

from typing import Any, Optional

from fastapi import status


class AppError(Exception):
    """Base for every expected failure. `code` is stable and safe to match on."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "AppError"
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_body(self) -> dict:
        body: dict = {"error": self.message, "code": self.code}
        if self.details is not None:
            body["details"] = self.details
        return body


# 400
class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "ValidationFailed"
    default_message = "Validation failed"


class WeakPasswordError(ValidationError):
    code = "WeakPassword"
    default_message = "Password must be at least 6 characters"


class AlreadyVerifiedError(ValidationError):
    code = "AlreadyVerified"
    default_message = "Email is already verified"


class InvalidOtpError(ValidationError):
    code = "InvalidOtp"
    default_message = "Invalid OTP"


class OtpExpiredError(ValidationError):
    code = "Expired"
    default_message = "OTP has expired. Please request a new one."


# 401
class AuthError(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "Unauthorized"
    default_message = "Unauthorized"


class MissingTokenError(AuthError):
    code = "MissingToken"
    default_message = "No token provided"


class InvalidTokenError(AuthError):
    code = "InvalidToken"
    default_message = "Invalid token"


class InvalidCredentialsError(AuthError):
    code = "InvalidCredentials"
    # Same text for unknown email and wrong password
    default_message = "Invalid email or password"


# 404
class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "NotFound"
    default_message = "Not found"


class UserNotFoundError(NotFoundError):
    default_message = "User not found"


# 409
class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "Conflict"
    default_message = "Conflict"


class DuplicateEmailError(ConflictError):
    code = "DuplicateEmail"
    default_message = "User with this email already exists"


class CategoryInUseError(ConflictError):
    code = "CategoryInUse"


# 500
class UpstreamError(AppError):
    code = "UpstreamError"
    default_message = "Upstream service failed"


class DeliveryFailedError(UpstreamError):
    code = "DeliveryFailed"
    default_message = "Failed to send OTP email"


class InvalidCredentialError(UpstreamError):
    """The generative model rejected our API key; retrying other models is pointless."""

    code = "InvalidApiKey"
    default_message = (
        "Your Groq API key is expired or invalid. Create a new key at "
        "https://console.groq.com/keys and set GROQ_API_KEY in the backend .env file."
    )


class RoadmapUnavailableError(UpstreamError):
    code = "RoadmapUnavailable"
    default_message = "All roadmap models failed"


class MalformedResponseError(UpstreamError):
    code = "MalformedResponse"
    default_message = "Invalid response format from the roadmap model"
