"""
LearningItem ("goal") and its embedded Topic / SubTopic tree.

Topic and SubTopic are embedded schemas (no separate collection). Their ids are
minted by the caller and stored verbatim. The topics array is always written
as a whole; `version` is bumped on every such write so concurrent writers can
detect each other (see services/item_store.py).
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from beanie import Document, PydanticObjectId
from pydantic import Field

from callisto.models.common import CamelModel, utcnow


class GoalStatus(str, Enum):
    """Set by the user; never derived from progress."""

    NOT_STARTED = "Not started"
    IN_PROGRESS = "In progress"
    COMPLETED = "Completed"


class SubTopic(CamelModel):
    """Smallest unit of progress. Embedded inside Topic.sub_topics."""

    id: str
    title: str
    is_completed: bool = False
    notes: Optional[str] = None


class Topic(CamelModel):
    """
    Module of a learning item. is_completed is stored, not derived: it cascades
    down on toggle and is recomputed from sub-topics when one of them is toggled.
    """

    id: str
    title: str
    is_completed: bool = False
    deadline: Optional[str] = None  # YYYY-MM-DD
    notes: Optional[str] = None
    sub_topics: List[SubTopic] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "id": "topic-1718000000000-0",
                "title": "Ownership and borrowing",
                "isCompleted": False,
                "deadline": "2025-01-31",
                "subTopics": [
                    {"id": "subtopic-1718000000000-0-0", "title": "Move semantics", "isCompleted": False},
                ],
            }
        }


class LearningItem(Document):
    """
    One learning goal. Progress is computed from sub-topics on read and never
    stored; status is whatever the user last set.
    """

    user_id: PydanticObjectId
    category_id: PydanticObjectId
    name: str
    description: str = ""
    topics: List[Topic] = Field(default_factory=list)
    status: GoalStatus = GoalStatus.NOT_STARTED
    comments: str = ""
    version: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "learning_items"
        use_state_management = True
