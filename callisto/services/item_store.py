"""
User-scoped persistence for categories and learning items.

Every query carries the caller's user_id; an id that exists but belongs to
someone else is reported exactly like one that does not exist.

Topic-tree edits go through `mutate_topics`: read the item, compute the new
topics list with one rule from services/progress.py, and write the whole list
back with a compare-and-set on `version`. A writer that loses the race
re-reads and tries again, a few times at most.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from beanie import PydanticObjectId
from beanie.operators import Inc, Set
from bson.errors import InvalidId
from pydantic import BaseModel

from callisto.errors import ConflictError, NotFoundError
from callisto.models.category import Category
from callisto.models.common import utcnow
from callisto.models.learning_item import LearningItem, Topic
from callisto.services.progress import TopicsMutation

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3


def parse_id(value: str, what: str) -> PydanticObjectId:
    """Ids that are not valid ObjectIds cannot match anything; treat them as missing."""
    try:
        return PydanticObjectId(value)
    except (InvalidId, TypeError):
        raise NotFoundError(f"{what} not found")


# Categories
async def list_categories(user_id: PydanticObjectId) -> List[Category]:
    return await Category.find(Category.user_id == user_id).sort(-Category.created_at).to_list()


async def get_category(user_id: PydanticObjectId, category_id: str) -> Category:
    cid = parse_id(category_id, "Category")
    category = await Category.find_one(Category.id == cid, Category.user_id == user_id)
    if not category:
        raise NotFoundError("Category not found")
    return category


async def create_category(
    user_id: PydanticObjectId, name: str, color: str, icon: Optional[str] = None
) -> Category:
    category = Category(user_id=user_id, name=name, color=color, icon=icon or "Tag")
    await category.insert()
    logger.info("Created category %s for user %s", category.id, user_id)
    return category


async def update_category(
    user_id: PydanticObjectId,
    category_id: str,
    *,
    name: Optional[str] = None,
    color: Optional[str] = None,
    icon: Optional[str] = None,
) -> Category:
    category = await get_category(user_id, category_id)
    if name is not None:
        category.name = name
    if color is not None:
        category.color = color
    if icon is not None:
        category.icon = icon
    category.updated_at = utcnow()
    await category.save_changes()
    return category


async def count_items_in_category(user_id: PydanticObjectId, category_id: str) -> int:
    cid = parse_id(category_id, "Category")
    return await LearningItem.find(
        LearningItem.user_id == user_id, LearningItem.category_id == cid
    ).count()


async def delete_category(user_id: PydanticObjectId, category_id: str) -> None:
    """
    Unconditional delete. Callers must check count_items_in_category first;
    this does not look at dependents.
    """
    category = await get_category(user_id, category_id)
    await category.delete()
    logger.info("Deleted category %s for user %s", category_id, user_id)


# Items
async def list_items(user_id: PydanticObjectId, *, has_completed_topics: bool = False) -> List[LearningItem]:
    items = await LearningItem.find(LearningItem.user_id == user_id).sort(-LearningItem.created_at).to_list()
    if has_completed_topics:
        items = [i for i in items if any(t.is_completed for t in i.topics)]
    return items


async def get_item(user_id: PydanticObjectId, item_id: str) -> LearningItem:
    iid = parse_id(item_id, "Item")
    item = await LearningItem.find_one(LearningItem.id == iid, LearningItem.user_id == user_id)
    if not item:
        raise NotFoundError("Item not found")
    return item


async def create_item(
    user_id: PydanticObjectId,
    category_id: str,
    name: str,
    description: Optional[str] = None,
    topics: Sequence[Topic] = (),
) -> LearningItem:
    # Scoped lookup: the category has to be the caller's own
    category = await get_category(user_id, category_id)
    item = LearningItem(
        user_id=user_id,
        category_id=category.id,
        name=name,
        description=description or "",
        topics=list(topics),
    )
    await item.insert()
    logger.info("Created item %s in category %s for user %s", item.id, category.id, user_id)
    return item


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [v.model_dump(by_alias=True) if isinstance(v, BaseModel) else v for v in value]
    return value


async def _compare_and_set(item: LearningItem, fields: Dict[str, Any]) -> bool:
    """Write fields only if nobody bumped the version since `item` was read."""
    update = {k: _to_db(v) for k, v in fields.items()}
    result = await LearningItem.find_one(
        LearningItem.id == item.id,
        LearningItem.user_id == item.user_id,
        LearningItem.version == item.version,
    ).update(Set({**update, "updated_at": utcnow()}), Inc({"version": 1}))
    return bool(result and result.matched_count)


async def update_item(user_id: PydanticObjectId, item_id: str, changes: Dict[str, Any]) -> LearningItem:
    """
    Partial update. `changes` keys are LearningItem field names; a category_id
    must resolve to one of the caller's categories, and topics replace the
    whole list.
    """
    fields = dict(changes)
    if "category_id" in fields:
        category = await get_category(user_id, str(fields["category_id"]))
        fields["category_id"] = category.id
    if not fields:
        return await get_item(user_id, item_id)

    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        item = await get_item(user_id, item_id)
        if await _compare_and_set(item, fields):
            return await get_item(user_id, item_id)
        logger.info("Item %s changed during update (attempt %d); retrying", item_id, attempt)
    raise ConflictError("Item was modified by another request; please retry")


async def mutate_topics(user_id: PydanticObjectId, item_id: str, mutation: TopicsMutation) -> LearningItem:
    """Apply one topic-tree rule as a single read-modify-write of the topics array."""
    for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
        item = await get_item(user_id, item_id)
        # Raises NotFoundError for unknown topic/sub-topic ids before anything is written
        topics = mutation(list(item.topics))
        if await _compare_and_set(item, {"topics": topics}):
            return await get_item(user_id, item_id)
        logger.info("Item %s topics changed concurrently (attempt %d); retrying", item_id, attempt)
    raise ConflictError("Item was modified by another request; please retry")


async def replace_topics(user_id: PydanticObjectId, item_id: str, topics: Sequence[Topic]) -> LearningItem:
    new_topics = list(topics)
    return await mutate_topics(user_id, item_id, lambda _current: new_topics)


async def delete_item(user_id: PydanticObjectId, item_id: str) -> None:
    item = await get_item(user_id, item_id)
    await item.delete()
    logger.info("Deleted item %s for user %s", item_id, user_id)
