"""
Read-only views over a user's categories and items: dashboard stats and
search. Pure functions; routes load the documents and pass them in.
"""

from typing import Dict, List, Sequence

from callisto.models.category import Category
from callisto.models.learning_item import LearningItem
from callisto.services.progress import progress_percent, round_half_up


def build_stats(categories: Sequence[Category], items: Sequence[LearningItem]) -> dict:
    progress = [(item, progress_percent(item.topics)) for item in items]
    counts: Dict[str, int] = {}
    for item in items:
        key = str(item.category_id)
        counts[key] = counts.get(key, 0) + 1

    average = round_half_up(sum(p for _, p in progress), len(progress)) if progress else 0
    return {
        "totalItems": len(items),
        "totalCategories": len(categories),
        "completedTopics": sum(1 for item in items for t in item.topics if t.is_completed),
        "averageProgress": average,
        "itemsPerCategory": [
            {"id": str(c.id), "name": c.name, "color": c.color, "count": counts[str(c.id)]}
            for c in categories
            if counts.get(str(c.id))
        ],
        "items": [{"id": str(item.id), "name": item.name, "progress": p} for item, p in progress],
    }


def search(categories: Sequence[Category], items: Sequence[LearningItem], query: str) -> List[dict]:
    """
    Case-insensitive substring search over categories, items, topics and
    sub-topics. Exact title matches come first; otherwise input order is kept.
    """
    needle = query.strip().lower()
    if not needle:
        return []

    hits: List[dict] = []
    for c in categories:
        if needle in c.name.lower():
            hits.append({"type": "category", "id": str(c.id), "title": c.name})
    for item in items:
        item_id = str(item.id)
        if needle in item.name.lower():
            hits.append({"type": "item", "id": item_id, "title": item.name})
        elif item.description and needle in item.description.lower():
            hits.append({"type": "description", "id": item_id, "title": item.name})
        for topic in item.topics:
            if needle in topic.title.lower():
                hits.append({"type": "topic", "id": topic.id, "title": topic.title, "itemId": item_id})
            for sub in topic.sub_topics:
                if needle in sub.title.lower():
                    hits.append(
                        {
                            "type": "subTopic",
                            "id": sub.id,
                            "title": sub.title,
                            "itemId": item_id,
                            "topicId": topic.id,
                        }
                    )

    # sorted() is stable, so non-exact hits keep their order
    return sorted(hits, key=lambda h: h["title"].lower() != needle)
