"""
Learning item APIs, including the topic-tree edit routes.

Topic and sub-topic routes each apply one rule from services/progress.py via
item_store.mutate_topics, so every edit is a whole-array read-modify-write of
the item's topics. Responses always carry the derived `progress` percentage
and a summary of the item's category.
"""

import logging
from functools import partial
from typing import Annotated, Dict

from beanie import PydanticObjectId
from fastapi import APIRouter, Depends, Query, status

from callisto.api.auth import CurrentUserId
from callisto.models.category import Category
from callisto.models.learning_item import LearningItem
from callisto.schemas import (
    CompletionUpdate,
    ItemCreate,
    ItemUpdate,
    SubTopicCreate,
    SubTopicPatch,
    TopicCreate,
    TopicPatch,
    TopicsReplace,
)
from callisto.services import item_store, progress
from callisto.services.roadmap_service import RoadmapGenerator, get_roadmap_generator

logger = logging.getLogger(__name__)
router = APIRouter()


def item_response(item: LearningItem, categories: Dict[str, Category]) -> dict:
    category = categories.get(str(item.category_id))
    return {
        "id": str(item.id),
        "userId": str(item.user_id),
        "categoryId": str(item.category_id),
        "category": category.summary() if category else None,
        "name": item.name,
        "description": item.description,
        "topics": [t.model_dump(by_alias=True, exclude_none=True) for t in item.topics],
        "status": item.status.value,
        "comments": item.comments,
        "progress": progress.progress_percent(item.topics),
        "createdAt": item.created_at.isoformat(),
        "updatedAt": item.updated_at.isoformat(),
    }


async def categories_by_id(user_id: PydanticObjectId) -> Dict[str, Category]:
    return {str(c.id): c for c in await item_store.list_categories(user_id)}


async def _single(user_id: PydanticObjectId, item: LearningItem) -> dict:
    return {"item": item_response(item, await categories_by_id(user_id))}


@router.get("", response_model=dict, summary="List items")
async def list_items(
    user_id: CurrentUserId,
    has_completed_topics: Annotated[bool, Query(alias="hasCompletedTopics")] = False,
) -> dict:
    """Return the caller's items (newest first), optionally only those with a completed topic."""
    items = await item_store.list_items(user_id, has_completed_topics=has_completed_topics)
    categories = await categories_by_id(user_id)
    return {"items": [item_response(i, categories) for i in items]}


@router.post("", status_code=status.HTTP_201_CREATED, response_model=dict, summary="Create an item")
async def create_item(body: ItemCreate, user_id: CurrentUserId) -> dict:
    """Create an item in one of the caller's categories. Topic ids are minted where the body leaves them out."""
    item = await item_store.create_item(
        user_id,
        body.category_id,
        body.name,
        body.description,
        progress.topics_from_input(body.topics),
    )
    return await _single(user_id, item)


@router.get("/{item_id}", response_model=dict, summary="Get one item")
async def get_item(item_id: str, user_id: CurrentUserId) -> dict:
    """Return one item with its progress. Only the owner can access."""
    return await _single(user_id, await item_store.get_item(user_id, item_id))


@router.put("/{item_id}", response_model=dict, summary="Update an item")
async def update_item(item_id: str, body: ItemUpdate, user_id: CurrentUserId) -> dict:
    """Partial update. A new categoryId must be one of the caller's categories; topics replace the whole list."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True, exclude={"topics"})
    if body.topics is not None:
        changes["topics"] = progress.topics_from_input(body.topics)
    item = await item_store.update_item(user_id, item_id, changes)
    return await _single(user_id, item)


@router.delete("/{item_id}", response_model=dict, summary="Delete an item")
async def delete_item(item_id: str, user_id: CurrentUserId) -> dict:
    """Delete the item and its embedded topics."""
    await item_store.delete_item(user_id, item_id)
    return {"message": "Item deleted successfully"}


@router.put("/{item_id}/topics", response_model=dict, summary="Replace all topics")
async def replace_topics(item_id: str, body: TopicsReplace, user_id: CurrentUserId) -> dict:
    """Replace the whole topics array, e.g. from a JSON import."""
    item = await item_store.replace_topics(user_id, item_id, progress.topics_from_input(body.topics))
    return await _single(user_id, item)


@router.post("/{item_id}/topics", status_code=status.HTTP_201_CREATED, response_model=dict, summary="Add a topic")
async def add_topic(item_id: str, body: TopicCreate, user_id: CurrentUserId) -> dict:
    """Append a topic with no sub-topics. A client-supplied id must not already exist."""
    item = await item_store.mutate_topics(
        user_id, item_id, partial(progress.add_topic, topic_id=body.id, title=body.title)
    )
    return await _single(user_id, item)


@router.patch("/{item_id}/topics/{topic_id}", response_model=dict, summary="Edit a topic")
async def update_topic(item_id: str, topic_id: str, body: TopicPatch, user_id: CurrentUserId) -> dict:
    """Edit title, notes or deadline. Completion is untouched."""
    item = await item_store.mutate_topics(
        user_id,
        item_id,
        partial(progress.update_topic, topic_id=topic_id, title=body.title, notes=body.notes, deadline=body.deadline),
    )
    return await _single(user_id, item)


@router.put("/{item_id}/topics/{topic_id}/completed", response_model=dict, summary="Complete or reopen a topic")
async def set_topic_completed(
    item_id: str, topic_id: str, body: CompletionUpdate, user_id: CurrentUserId
) -> dict:
    """Set a topic's completion and cascade the same value to every sub-topic."""
    item = await item_store.mutate_topics(
        user_id, item_id, partial(progress.set_topic_completed, topic_id=topic_id, value=body.is_completed)
    )
    return await _single(user_id, item)


@router.delete("/{item_id}/topics/{topic_id}", response_model=dict, summary="Delete a topic")
async def delete_topic(item_id: str, topic_id: str, user_id: CurrentUserId) -> dict:
    """Remove a topic and its sub-topics."""
    item = await item_store.mutate_topics(user_id, item_id, partial(progress.delete_topic, topic_id=topic_id))
    return await _single(user_id, item)


@router.post(
    "/{item_id}/topics/{topic_id}/subtopics",
    status_code=status.HTTP_201_CREATED,
    response_model=dict,
    summary="Add a sub-topic",
)
async def add_sub_topic(item_id: str, topic_id: str, body: SubTopicCreate, user_id: CurrentUserId) -> dict:
    """Append a sub-topic. The parent's completion flag is not recomputed."""
    item = await item_store.mutate_topics(
        user_id,
        item_id,
        partial(progress.add_sub_topic, topic_id=topic_id, sub_topic_id=body.id, title=body.title),
    )
    return await _single(user_id, item)


@router.patch("/{item_id}/topics/{topic_id}/subtopics/{sub_topic_id}", response_model=dict, summary="Edit a sub-topic")
async def update_sub_topic(
    item_id: str, topic_id: str, sub_topic_id: str, body: SubTopicPatch, user_id: CurrentUserId
) -> dict:
    """Edit a sub-topic's title or notes."""
    item = await item_store.mutate_topics(
        user_id,
        item_id,
        partial(
            progress.update_sub_topic,
            topic_id=topic_id,
            sub_topic_id=sub_topic_id,
            title=body.title,
            notes=body.notes,
        ),
    )
    return await _single(user_id, item)


@router.put(
    "/{item_id}/topics/{topic_id}/subtopics/{sub_topic_id}/completed",
    response_model=dict,
    summary="Complete or reopen a sub-topic",
)
async def set_sub_topic_completed(
    item_id: str, topic_id: str, sub_topic_id: str, body: CompletionUpdate, user_id: CurrentUserId
) -> dict:
    """Set one sub-topic; the parent becomes complete exactly when all its sub-topics are."""
    item = await item_store.mutate_topics(
        user_id,
        item_id,
        partial(
            progress.set_sub_topic_completed,
            topic_id=topic_id,
            sub_topic_id=sub_topic_id,
            value=body.is_completed,
        ),
    )
    return await _single(user_id, item)


@router.delete("/{item_id}/topics/{topic_id}/subtopics/{sub_topic_id}", response_model=dict, summary="Delete a sub-topic")
async def delete_sub_topic(item_id: str, topic_id: str, sub_topic_id: str, user_id: CurrentUserId) -> dict:
    """Remove a sub-topic. The parent's completion flag is left as it was."""
    item = await item_store.mutate_topics(
        user_id,
        item_id,
        partial(progress.delete_sub_topic, topic_id=topic_id, sub_topic_id=sub_topic_id),
    )
    return await _single(user_id, item)


@router.post("/{item_id}/roadmap", response_model=dict, summary="Generate a roadmap and replace the item's topics")
async def apply_roadmap(
    item_id: str,
    user_id: CurrentUserId,
    generator: Annotated[RoadmapGenerator, Depends(get_roadmap_generator)],
) -> dict:
    """Generate a roadmap for the item's name and replace its topics with it."""
    item = await item_store.get_item(user_id, item_id)
    # Any generator error propagates before the write, leaving topics as they were
    topics = await generator.generate(item.name)
    item = await item_store.replace_topics(user_id, item_id, topics)
    logger.info("Applied generated roadmap (%d topics) to item %s", len(topics), item_id)
    return await _single(user_id, item)
