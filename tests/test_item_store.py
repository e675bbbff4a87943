from functools import partial

import pytest
from beanie import PydanticObjectId

from callisto.errors import ConflictError, NotFoundError
from callisto.models.learning_item import GoalStatus, LearningItem, Topic
from callisto.services import item_store, progress


@pytest.fixture
async def category(db, user_id):
    return await item_store.create_category(user_id, "Languages", "bg-blue-500")


@pytest.fixture
async def item(category, user_id):
    return await item_store.create_item(user_id, str(category.id), "Learn Rust")


async def test_learn_rust_scenario(item, user_id):
    iid = str(item.id)
    assert item.topics == []
    assert item.status == GoalStatus.NOT_STARTED

    item = await item_store.mutate_topics(user_id, iid, partial(progress.add_topic, topic_id="t1"))
    item = await item_store.mutate_topics(user_id, iid, partial(progress.add_sub_topic, topic_id="t1", sub_topic_id="a"))
    item = await item_store.mutate_topics(user_id, iid, partial(progress.add_sub_topic, topic_id="t1", sub_topic_id="b"))
    assert progress.progress_percent(item.topics) == 0

    item = await item_store.mutate_topics(
        user_id, iid, partial(progress.set_sub_topic_completed, topic_id="t1", sub_topic_id="a", value=True)
    )
    assert progress.progress_percent(item.topics) == 50
    assert item.topics[0].is_completed is False

    item = await item_store.mutate_topics(
        user_id, iid, partial(progress.set_sub_topic_completed, topic_id="t1", sub_topic_id="b", value=True)
    )
    assert progress.progress_percent(item.topics) == 100
    assert item.topics[0].is_completed is True
    # Status is the user's call, not derived from progress
    assert item.status == GoalStatus.NOT_STARTED


async def test_topic_writes_bump_version(item, user_id):
    updated = await item_store.mutate_topics(user_id, str(item.id), progress.add_topic)
    assert updated.version == item.version + 1


async def test_unknown_topic_writes_nothing(item, user_id):
    with pytest.raises(NotFoundError):
        await item_store.mutate_topics(
            user_id, str(item.id), partial(progress.set_topic_completed, topic_id="missing", value=True)
        )
    fresh = await item_store.get_item(user_id, str(item.id))
    assert fresh.version == item.version


async def test_lost_race_is_retried(item, user_id, monkeypatch):
    calls = []

    async def sneak_in():
        # Another request writes between our read and our compare-and-set
        await item_store.replace_topics(user_id, str(item.id), [])

    def mutation(topics):
        calls.append(len(topics))
        return progress.add_topic(topics, topic_id=f"t{len(calls)}")

    original = item_store._compare_and_set
    raced = []

    async def racing_compare_and_set(current, fields):
        if not raced:
            raced.append(True)
            await sneak_in()
        return await original(current, fields)

    monkeypatch.setattr(item_store, "_compare_and_set", racing_compare_and_set)
    result = await item_store.mutate_topics(user_id, str(item.id), mutation)

    assert len(calls) == 2
    assert [t.id for t in result.topics] == ["t2"]


async def test_persistent_conflict_raises(item, user_id, monkeypatch):
    async def always_stale(current, fields):
        return False

    monkeypatch.setattr(item_store, "_compare_and_set", always_stale)
    with pytest.raises(ConflictError):
        await item_store.mutate_topics(user_id, str(item.id), progress.add_topic)


async def test_other_users_cannot_see_or_touch(item, category):
    stranger = PydanticObjectId()
    with pytest.raises(NotFoundError):
        await item_store.get_item(stranger, str(item.id))
    with pytest.raises(NotFoundError):
        await item_store.mutate_topics(stranger, str(item.id), progress.add_topic)
    with pytest.raises(NotFoundError):
        await item_store.delete_category(stranger, str(category.id))
    assert await item_store.list_items(stranger) == []


async def test_create_item_requires_own_category(db, category):
    with pytest.raises(NotFoundError):
        await item_store.create_item(PydanticObjectId(), str(category.id), "Sneaky")


async def test_move_item_to_other_users_category_is_rejected(item, user_id):
    foreign = await item_store.create_category(PydanticObjectId(), "Theirs", "bg-red-500")
    with pytest.raises(NotFoundError):
        await item_store.update_item(user_id, str(item.id), {"category_id": str(foreign.id)})


async def test_move_item_between_own_categories(item, user_id):
    other = await item_store.create_category(user_id, "Science", "bg-emerald-500")
    moved = await item_store.update_item(user_id, str(item.id), {"category_id": str(other.id)})
    assert moved.category_id == other.id


async def test_update_item_fields(item, user_id):
    updated = await item_store.update_item(
        user_id, str(item.id), {"status": GoalStatus.IN_PROGRESS, "comments": "half way", "name": "Learn Rust 2024"}
    )
    assert updated.status == GoalStatus.IN_PROGRESS
    assert updated.comments == "half way"
    assert updated.name == "Learn Rust 2024"


async def test_malformed_id_is_not_found(db, user_id):
    with pytest.raises(NotFoundError):
        await item_store.get_item(user_id, "not-an-object-id")


async def test_delete_category_is_unconditional(item, category, user_id):
    assert await item_store.count_items_in_category(user_id, str(category.id)) == 1
    await item_store.delete_category(user_id, str(category.id))
    assert await item_store.list_categories(user_id) == []
    # The item is left pointing at the deleted category
    assert await LearningItem.get(item.id) is not None


async def test_list_items_with_completed_topics(category, user_id):
    first = await item_store.create_item(user_id, str(category.id), "One")
    await item_store.create_item(user_id, str(category.id), "Two")
    await item_store.mutate_topics(user_id, str(first.id), partial(progress.add_topic, topic_id="t"))
    await item_store.mutate_topics(
        user_id, str(first.id), partial(progress.set_topic_completed, topic_id="t", value=True)
    )
    items = await item_store.list_items(user_id, has_completed_topics=True)
    assert [i.name for i in items] == ["One"]


async def test_topic_writes_store_camel_case_keys(category, user_id):
    created = await item_store.create_item(
        user_id, str(category.id), "Imported", topics=[Topic(id="z", title="From create")]
    )
    iid = str(created.id)
    await item_store.mutate_topics(user_id, iid, partial(progress.add_topic, topic_id="t1"))
    await item_store.mutate_topics(user_id, iid, partial(progress.add_sub_topic, topic_id="t1", sub_topic_id="a"))

    raw = await LearningItem.get_motor_collection().find_one({"_id": created.id})
    for topic in raw["topics"]:
        assert {"isCompleted", "subTopics"} <= set(topic)
        assert "is_completed" not in topic and "sub_topics" not in topic
    assert set(raw["topics"][1]["subTopics"][0]) >= {"id", "title", "isCompleted"}
