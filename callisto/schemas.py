"""
Request bodies, one per endpoint.

Validation happens here once, at the boundary; services receive plain,
already-checked values. Field names are camelCase on the wire.
"""

from datetime import date
from typing import List, Optional

from pydantic import ConfigDict, EmailStr, Field, field_validator

from callisto.models.common import CamelModel
from callisto.models.learning_item import GoalStatus
from callisto.models.user import UseCase

DEADLINE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def _calendar_date(value: Optional[str]) -> Optional[str]:
    # The pattern only checks the shape; 2025-13-45 must still fail
    if value is not None:
        date.fromisoformat(value)
    return value


class _Body(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)


# Auth (passwords are taken verbatim, so no whitespace stripping)
class SignupRequest(CamelModel):
    email: EmailStr
    name: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class OnboardingRequest(_Body):
    use_case: UseCase


class ResendOtpRequest(_Body):
    email: EmailStr


class VerifyOtpRequest(_Body):
    email: EmailStr
    otp: str = Field(..., min_length=1)


# Categories
class CategoryCreate(_Body):
    name: str = Field(..., min_length=1)
    color: str = Field(..., min_length=1)
    icon: Optional[str] = None


class CategoryUpdate(_Body):
    name: Optional[str] = Field(None, min_length=1)
    color: Optional[str] = Field(None, min_length=1)
    icon: Optional[str] = Field(None, min_length=1)


# Topic tree input (JSON import and full replacement)
class SubTopicIn(_Body):
    id: Optional[str] = None
    title: str = Field(..., min_length=1)
    is_completed: bool = False
    notes: Optional[str] = None


class TopicIn(_Body):
    id: Optional[str] = None
    title: str = Field(..., min_length=1)
    is_completed: bool = False
    deadline: Optional[str] = Field(None, pattern=DEADLINE_PATTERN)
    notes: Optional[str] = None
    sub_topics: List[SubTopicIn] = Field(default_factory=list)

    @field_validator("deadline", mode="before")
    @classmethod
    def blank_deadline(cls, v):
        return v or None

    @field_validator("deadline")
    @classmethod
    def real_deadline(cls, v):
        return _calendar_date(v)


# Items
class ItemCreate(_Body):
    category_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    topics: List[TopicIn] = Field(default_factory=list)


class ItemUpdate(_Body):
    category_id: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    status: Optional[GoalStatus] = None
    comments: Optional[str] = None
    topics: Optional[List[TopicIn]] = None


class TopicsReplace(_Body):
    topics: List[TopicIn]


class TopicCreate(_Body):
    id: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = None


class TopicPatch(_Body):
    title: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None
    deadline: Optional[str] = Field(None, pattern=DEADLINE_PATTERN)

    @field_validator("deadline")
    @classmethod
    def real_deadline(cls, v):
        return _calendar_date(v)


class SubTopicCreate(_Body):
    id: Optional[str] = Field(None, min_length=1)
    title: Optional[str] = None


class SubTopicPatch(_Body):
    title: Optional[str] = Field(None, min_length=1)
    notes: Optional[str] = None


class CompletionUpdate(_Body):
    is_completed: bool


# Roadmap
class RoadmapRequest(_Body):
    item_name: str = Field(..., min_length=1)
