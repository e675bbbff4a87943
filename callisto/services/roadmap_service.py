"""
Roadmap generation: ask a Groq-hosted model for a topic/sub-topic tree.

Candidate models are tried in order. A rejected API key stops the chain at
once since every other model would fail the same way; any other failure moves
on to the next candidate. The generator only returns topics. Writing them to
an item is the caller's job, and a failure must leave the item untouched.
"""

import json
import logging
import re
from typing import Any, List, Optional, Sequence

import groq
from fastapi import Depends

from callisto.config import Settings, get_settings
from callisto.errors import (
    InvalidCredentialError,
    MalformedResponseError,
    RoadmapUnavailableError,
    UpstreamError,
)
from callisto.models.learning_item import SubTopic, Topic
from callisto.services.progress import mint_sub_topic_id, mint_topic_id, timestamp_ms

logger = logging.getLogger(__name__)

ROADMAP_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "The title of the main learning module"},
            "subTopics": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {"type": "string", "description": "The specific sub-topic or skill to learn"},
                    },
                    "required": ["title"],
                },
            },
        },
        "required": ["title", "subTopics"],
    },
}

ROADMAP_PROMPT = """Generate a structured learning roadmap for the subject: "{subject}".
The roadmap should consist of main topics and for each topic, several detailed sub-topics.
Limit to 5-8 main topics to keep it focused.

Return ONLY a JSON array (no prose, no markdown) that validates against this JSON schema:
{schema}

Example: [{{"title":"Basics","subTopics":[{{"title":"Syntax"}},{{"title":"Variables"}}]}}]
"""

# Substrings seen in provider errors for a bad or expired key
_CREDENTIAL_MARKERS = ("invalid_api_key", "invalid api key", "api key expired", "api_key_invalid", "api key is invalid")


def is_credential_error(exc: Exception) -> bool:
    if isinstance(exc, groq.AuthenticationError):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _CREDENTIAL_MARKERS)


def _strip_code_fence(raw: str) -> str:
    text = raw.strip()
    if "```" in text:
        match = re.search(r"```(?:json)?\s*([\s\S]*?)```", text)
        if match:
            return match.group(1).strip()
    return text


def parse_roadmap(raw: str) -> List[Any]:
    text = _strip_code_fence(raw or "")
    if not text:
        raise MalformedResponseError("Empty response from the roadmap model")
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning("Failed to parse roadmap response as JSON: %s", e)
        raise MalformedResponseError("Invalid JSON response from the roadmap model")
    if not isinstance(data, list):
        raise MalformedResponseError("Invalid response format from the roadmap model - expected array")
    return data


def to_topics(raw_topics: Sequence[Any], stamp: Optional[int] = None) -> List[Topic]:
    """Fresh ids, nothing completed, positional titles where the model left them out."""
    stamp = stamp if stamp is not None else timestamp_ms()
    topics: List[Topic] = []
    for i, raw in enumerate(raw_topics):
        raw = raw if isinstance(raw, dict) else {}
        raw_subs = raw.get("subTopics")
        if not isinstance(raw_subs, list):
            raw_subs = []
        subs = []
        for j, raw_sub in enumerate(raw_subs):
            raw_sub = raw_sub if isinstance(raw_sub, dict) else {}
            subs.append(
                SubTopic(
                    id=mint_sub_topic_id(stamp, i, j),
                    title=str(raw_sub.get("title") or f"Sub-topic {j + 1}"),
                    is_completed=False,
                )
            )
        topics.append(
            Topic(
                id=mint_topic_id(stamp, i),
                title=str(raw.get("title") or f"Topic {i + 1}"),
                is_completed=False,
                sub_topics=subs,
            )
        )
    return topics


class RoadmapGenerator:
    """
    Wraps an AsyncGroq-compatible client (anything exposing
    `chat.completions.create`) and a fixed, ordered list of model names.
    """

    def __init__(self, client: Any, models: Sequence[str]) -> None:
        if not models:
            raise ValueError("At least one roadmap model is required")
        self.client = client
        self.models = list(models)

    async def _ask(self, model: str, item_name: str) -> str:
        prompt = ROADMAP_PROMPT.format(subject=item_name, schema=json.dumps(ROADMAP_SCHEMA))
        response = await self.client.chat.completions.create(
            model=model,
            messages=[{"role": "user", "content": prompt}],
            temperature=0.4,
            max_tokens=4096,
        )
        return response.choices[0].message.content or ""

    async def generate(self, item_name: str) -> List[Topic]:
        content: Optional[str] = None
        last_error: Optional[Exception] = None

        for model in self.models:
            try:
                logger.info("Trying roadmap model: %s", model)
                content = await self._ask(model, item_name)
                logger.info("Roadmap generated with model: %s", model)
                break
            except Exception as e:
                if is_credential_error(e):
                    logger.error("Roadmap model %s rejected the API key: %s", model, e)
                    raise InvalidCredentialError() from e
                logger.warning("Roadmap model %s failed: %s", model, e)
                last_error = e

        if content is None:
            message = str(last_error) if last_error else "Unknown error"
            raise RoadmapUnavailableError(
                f"All roadmap models failed. Last error: {message}. "
                "Please check your API key and available models."
            )

        topics = to_topics(parse_roadmap(content))
        logger.info("Roadmap for %r has %d topics", item_name, len(topics))
        return topics


def get_roadmap_generator(settings: Settings = Depends(get_settings)) -> RoadmapGenerator:
    """Dependency: generator backed by AsyncGroq, or an error when no key is configured."""
    api_key = (settings.groq_api_key or "").strip()
    if not api_key:
        logger.error("GROQ_API_KEY is missing")
        raise UpstreamError(
            "Roadmap generation is not configured. Please set GROQ_API_KEY in your environment variables."
        )
    return RoadmapGenerator(groq.AsyncGroq(api_key=api_key), settings.roadmap_models)
