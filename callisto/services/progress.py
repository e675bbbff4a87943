"""
Topic-tree rules for a learning item.

Every function here is pure: it takes the current topics list and returns a
new one, leaving the input untouched. The store reads an item, runs exactly
one of these, and writes the whole list back.

Completion propagation is deliberately asymmetric:

- toggling a topic pushes its value down to every sub-topic;
- toggling a sub-topic recomputes the parent as "has sub-topics and all done";
- deleting a sub-topic leaves the parent's flag as it was.
"""

import time
from typing import Callable, List, Optional, Sequence, Tuple

from callisto.errors import ConflictError, NotFoundError
from callisto.models.learning_item import SubTopic, Topic
from callisto.schemas import TopicIn

DEFAULT_TOPIC_TITLE = "New Module"
DEFAULT_SUB_TOPIC_TITLE = "New Objective"

TopicsMutation = Callable[[List[Topic]], List[Topic]]


def timestamp_ms() -> int:
    return int(time.time() * 1000)


def mint_topic_id(stamp: int, index: int) -> str:
    return f"topic-{stamp}-{index}"


def mint_sub_topic_id(stamp: int, topic_index: int, sub_index: int) -> str:
    return f"subtopic-{stamp}-{topic_index}-{sub_index}"


def count_sub_topics(topics: Sequence[Topic]) -> Tuple[int, int]:
    """(completed, total) across every topic's sub-topics."""
    total = 0
    completed = 0
    for topic in topics:
        total += len(topic.sub_topics)
        completed += sum(1 for st in topic.sub_topics if st.is_completed)
    return completed, total


def round_half_up(numerator: int, denominator: int) -> int:
    """numerator / denominator rounded to the nearest int, halves going up."""
    return (2 * numerator + denominator) // (2 * denominator)


def progress_percent(topics: Sequence[Topic]) -> int:
    """
    Percentage of completed sub-topics, rounded half up.
    Topics without sub-topics count for nothing, even when marked complete.
    """
    completed, total = count_sub_topics(topics)
    if total == 0:
        return 0
    return round_half_up(100 * completed, total)


def _topic_index(topics: Sequence[Topic], topic_id: str) -> int:
    for i, topic in enumerate(topics):
        if topic.id == topic_id:
            return i
    raise NotFoundError("Topic not found")


def _sub_topic_index(topic: Topic, sub_topic_id: str) -> int:
    for i, sub in enumerate(topic.sub_topics):
        if sub.id == sub_topic_id:
            return i
    raise NotFoundError("Sub-topic not found")


def _replace_topic(topics: Sequence[Topic], index: int, topic: Topic) -> List[Topic]:
    updated = list(topics)
    updated[index] = topic
    return updated


def set_topic_completed(topics: Sequence[Topic], topic_id: str, value: bool) -> List[Topic]:
    i = _topic_index(topics, topic_id)
    topic = topics[i]
    subs = [st.model_copy(update={"is_completed": value}) for st in topic.sub_topics]
    return _replace_topic(topics, i, topic.model_copy(update={"is_completed": value, "sub_topics": subs}))


def set_sub_topic_completed(
    topics: Sequence[Topic], topic_id: str, sub_topic_id: str, value: bool
) -> List[Topic]:
    i = _topic_index(topics, topic_id)
    topic = topics[i]
    j = _sub_topic_index(topic, sub_topic_id)
    subs = list(topic.sub_topics)
    subs[j] = subs[j].model_copy(update={"is_completed": value})
    all_done = len(subs) > 0 and all(st.is_completed for st in subs)
    return _replace_topic(topics, i, topic.model_copy(update={"is_completed": all_done, "sub_topics": subs}))


def update_topic(
    topics: Sequence[Topic],
    topic_id: str,
    *,
    title: Optional[str] = None,
    notes: Optional[str] = None,
    deadline: Optional[str] = None,
) -> List[Topic]:
    i = _topic_index(topics, topic_id)
    changes = {k: v for k, v in (("title", title), ("notes", notes), ("deadline", deadline)) if v is not None}
    return _replace_topic(topics, i, topics[i].model_copy(update=changes))


def update_sub_topic(
    topics: Sequence[Topic],
    topic_id: str,
    sub_topic_id: str,
    *,
    title: Optional[str] = None,
    notes: Optional[str] = None,
) -> List[Topic]:
    i = _topic_index(topics, topic_id)
    topic = topics[i]
    j = _sub_topic_index(topic, sub_topic_id)
    changes = {k: v for k, v in (("title", title), ("notes", notes)) if v is not None}
    subs = list(topic.sub_topics)
    subs[j] = subs[j].model_copy(update=changes)
    return _replace_topic(topics, i, topic.model_copy(update={"sub_topics": subs}))


def add_topic(
    topics: Sequence[Topic], *, topic_id: Optional[str] = None, title: Optional[str] = None
) -> List[Topic]:
    new_id = topic_id or mint_topic_id(timestamp_ms(), len(topics))
    if any(t.id == new_id for t in topics):
        raise ConflictError(f"Topic id already exists: {new_id}")
    return [*topics, Topic(id=new_id, title=title or DEFAULT_TOPIC_TITLE)]


def add_sub_topic(
    topics: Sequence[Topic],
    topic_id: str,
    *,
    sub_topic_id: Optional[str] = None,
    title: Optional[str] = None,
) -> List[Topic]:
    i = _topic_index(topics, topic_id)
    topic = topics[i]
    new_id = sub_topic_id or mint_sub_topic_id(timestamp_ms(), i, len(topic.sub_topics))
    if any(st.id == new_id for st in topic.sub_topics):
        raise ConflictError(f"Sub-topic id already exists: {new_id}")
    subs = [*topic.sub_topics, SubTopic(id=new_id, title=title or DEFAULT_SUB_TOPIC_TITLE)]
    return _replace_topic(topics, i, topic.model_copy(update={"sub_topics": subs}))


def delete_topic(topics: Sequence[Topic], topic_id: str) -> List[Topic]:
    i = _topic_index(topics, topic_id)
    return [t for k, t in enumerate(topics) if k != i]


def delete_sub_topic(topics: Sequence[Topic], topic_id: str, sub_topic_id: str) -> List[Topic]:
    i = _topic_index(topics, topic_id)
    topic = topics[i]
    j = _sub_topic_index(topic, sub_topic_id)
    subs = [st for k, st in enumerate(topic.sub_topics) if k != j]
    # Parent flag intentionally left alone
    return _replace_topic(topics, i, topic.model_copy(update={"sub_topics": subs}))


def topics_from_input(raw: Sequence[TopicIn], stamp: Optional[int] = None) -> List[Topic]:
    """Build stored topics from client input, minting ids the client left out."""
    stamp = stamp if stamp is not None else timestamp_ms()
    topics: List[Topic] = []
    for i, t in enumerate(raw):
        subs = [
            SubTopic(
                id=st.id or mint_sub_topic_id(stamp, i, j),
                title=st.title,
                is_completed=st.is_completed,
                notes=st.notes,
            )
            for j, st in enumerate(t.sub_topics)
        ]
        topics.append(
            Topic(
                id=t.id or mint_topic_id(stamp, i),
                title=t.title,
                is_completed=t.is_completed,
                deadline=t.deadline,
                notes=t.notes,
                sub_topics=subs,
            )
        )
    _check_unique_ids(topics)
    return topics


def _check_unique_ids(topics: Sequence[Topic]) -> None:
    """Topic ids are unique per item; sub-topic ids are unique per topic."""
    seen = set()
    for topic in topics:
        if topic.id in seen:
            raise ConflictError(f"Topic id already exists: {topic.id}")
        seen.add(topic.id)
        sub_ids = set()
        for sub in topic.sub_topics:
            if sub.id in sub_ids:
                raise ConflictError(f"Sub-topic id already exists: {sub.id}")
            sub_ids.add(sub.id)
