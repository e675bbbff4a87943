"""
Combined read APIs used by the dashboard: initial load, stats and search.
"""

from typing import Annotated

from fastapi import APIRouter, Query

from callisto.api.auth import CurrentUserId
from callisto.api.items import item_response
from callisto.services import insights, item_store

router = APIRouter()


@router.get("/data", response_model=dict, summary="Categories and items in one call")
async def get_data(user_id: CurrentUserId) -> dict:
    """Return categories and items together for the dashboard's first load."""
    categories = await item_store.list_categories(user_id)
    items = await item_store.list_items(user_id)
    by_id = {str(c.id): c for c in categories}
    return {
        "categories": [c.to_response() for c in categories],
        "items": [item_response(i, by_id) for i in items],
    }


@router.get("/stats", response_model=dict, summary="Dashboard summary")
async def get_stats(user_id: CurrentUserId) -> dict:
    """Return totals, average progress and per-category counts."""
    categories = await item_store.list_categories(user_id)
    items = await item_store.list_items(user_id)
    return insights.build_stats(categories, items)


@router.get("/search", response_model=dict, summary="Search categories, goals, topics and sub-topics")
async def search(user_id: CurrentUserId, q: Annotated[str, Query(max_length=200)] = "") -> dict:
    """Search titles across categories, items, topics and sub-topics (exact matches first)."""
    if not q.strip():
        return {"results": []}
    categories = await item_store.list_categories(user_id)
    items = await item_store.list_items(user_id)
    return {"results": insights.search(categories, items, q)}
