"""
Roadmap API: generate a topic tree for a subject without saving it.

The client shows the result and may then PUT it to /items/{id}/topics, or use
POST /items/{id}/roadmap to generate and apply in one step.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from callisto.api.auth import CurrentUserId
from callisto.schemas import RoadmapRequest
from callisto.services.roadmap_service import RoadmapGenerator, get_roadmap_generator

router = APIRouter()


@router.post("/generate-roadmap", response_model=dict, summary="Generate a learning roadmap")
async def generate_roadmap(
    body: RoadmapRequest,
    _user_id: CurrentUserId,
    generator: Annotated[RoadmapGenerator, Depends(get_roadmap_generator)],
) -> dict:
    topics = await generator.generate(body.item_name)
    return {"topics": [t.model_dump(by_alias=True, exclude_none=True) for t in topics]}
