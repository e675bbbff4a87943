"""
Category APIs. All routes are scoped to the authenticated user.

DELETE refuses while items still reference the category; the store's delete
itself is unconditional, so the check has to happen here first.
"""

import logging

from fastapi import APIRouter, status

from callisto.api.auth import CurrentUserId
from callisto.errors import CategoryInUseError
from callisto.schemas import CategoryCreate, CategoryUpdate
from callisto.services import item_store

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=dict, summary="List categories")
async def list_categories(user_id: CurrentUserId) -> dict:
    """Return the caller's categories, newest first."""
    categories = await item_store.list_categories(user_id)
    return {"categories": [c.to_response() for c in categories]}


@router.post("", status_code=status.HTTP_201_CREATED, response_model=dict, summary="Create a category")
async def create_category(body: CategoryCreate, user_id: CurrentUserId) -> dict:
    """Create a category; icon defaults to "Tag"."""
    category = await item_store.create_category(user_id, body.name, body.color, body.icon)
    return {"category": category.to_response()}


@router.put("/{category_id}", response_model=dict, summary="Update a category")
async def update_category(category_id: str, body: CategoryUpdate, user_id: CurrentUserId) -> dict:
    """Update name, color or icon. Omitted fields keep their values."""
    category = await item_store.update_category(
        user_id, category_id, name=body.name, color=body.color, icon=body.icon
    )
    return {"category": category.to_response()}


@router.delete("/{category_id}", response_model=dict, summary="Delete an empty category")
async def delete_category(category_id: str, user_id: CurrentUserId) -> dict:
    """Delete a category. Refused with 409 while any item still belongs to it."""
    category = await item_store.get_category(user_id, category_id)
    in_use = await item_store.count_items_in_category(user_id, category_id)
    if in_use:
        logger.info("Refusing to delete category %s: %d item(s) attached", category_id, in_use)
        raise CategoryInUseError(
            f'Cannot delete category "{category.name}" because it contains {in_use} goal(s). '
            "Please move or delete the goals first."
        )
    await item_store.delete_category(user_id, category_id)
    return {"message": "Category deleted successfully"}
