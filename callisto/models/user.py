"""
User model for MongoDB (Beanie ODM).

Identity lives here: email/password login with an emailed one-time passcode
for verification, plus the onboarding answers.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from beanie import Document, Indexed
from pydantic import Field

from callisto.models.common import utcnow


class UseCase(str, Enum):
    PERSONAL = "personal"
    TEAM = "team"
    ORGANIZATION = "organization"


class User(Document):
    """
    User document. email is stored lowercased; password_hash is never returned.
    """

    email: Indexed(str, unique=True)
    name: str
    password_hash: str
    email_verified: bool = False
    otp: Optional[str] = None
    otp_expires: Optional[datetime] = None
    use_case: Optional[UseCase] = None
    onboarding_completed: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "users"
        use_state_management = True

    class Config:
        json_schema_extra = {
            "example": {
                "email": "user@example.com",
                "name": "Ada",
                "email_verified": False,
                "onboarding_completed": False,
            }
        }

    def public(self) -> dict:
        """Fields safe to send to the client."""
        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "emailVerified": self.email_verified,
            "onboardingCompleted": self.onboarding_completed,
            "useCase": self.use_case.value if self.use_case else None,
        }
