"""Beanie document models and embedded Pydantic schemas."""

from callisto.models.category import Category
from callisto.models.learning_item import GoalStatus, LearningItem, SubTopic, Topic
from callisto.models.user import UseCase, User

__all__ = ["User", "UseCase", "Category", "LearningItem", "GoalStatus", "Topic", "SubTopic"]
