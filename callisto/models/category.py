"""
Category model: a named, colored grouping of learning items owned by one user.
"""

from datetime import datetime

from beanie import Document, PydanticObjectId
from pydantic import Field

from callisto.models.common import utcnow


class Category(Document):
    """
    A user's grouping of learning items. Deleting one does not touch its items;
    the API refuses the delete while any item still points at it.
    """

    user_id: PydanticObjectId
    name: str
    color: str  # Tailwind class token, e.g. "bg-blue-500"
    icon: str = "Tag"
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "categories"
        use_state_management = True

    def summary(self) -> dict:
        return {"id": str(self.id), "name": self.name, "color": self.color, "icon": self.icon}

    def to_response(self) -> dict:
        return {
            **self.summary(),
            "userId": str(self.user_id),
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
