import pytest
from pydantic import ValidationError as PydanticValidationError

from callisto.errors import ConflictError, NotFoundError
from callisto.models.learning_item import SubTopic, Topic
from callisto.schemas import TopicIn
from callisto.services import progress


def make_topic(topic_id="t1", done=(), completed=False):
    subs = [SubTopic(id=f"{topic_id}-s{i}", title=f"Sub {i}", is_completed=d) for i, d in enumerate(done)]
    return Topic(id=topic_id, title=f"Topic {topic_id}", is_completed=completed, sub_topics=subs)


class TestProgressPercent:
    def test_zero_when_no_sub_topics_even_if_topics_completed(self):
        topics = [make_topic("a", completed=True), make_topic("b", completed=True)]
        assert progress.progress_percent(topics) == 0

    def test_empty_item(self):
        assert progress.progress_percent([]) == 0

    def test_counts_across_topics(self):
        topics = [make_topic("a", done=(True, False)), make_topic("b", done=(True, True))]
        assert progress.progress_percent(topics) == 75

    def test_topic_without_sub_topics_does_not_dilute(self):
        topics = [make_topic("a", done=(True,)), make_topic("b", completed=False)]
        assert progress.progress_percent(topics) == 100

    def test_rounds_half_up(self):
        # 1 of 8 is 12.5%
        topics = [make_topic("a", done=(True,) + (False,) * 7)]
        assert progress.progress_percent(topics) == 13

    def test_rounds_down_below_half(self):
        topics = [make_topic("a", done=(True, False, False))]
        assert progress.progress_percent(topics) == 33


class TestTopicToggle:
    @pytest.mark.parametrize("value", [True, False])
    def test_cascades_to_every_sub_topic(self, value):
        topics = [make_topic("a", done=(True, False, not value), completed=not value)]
        result = progress.set_topic_completed(topics, "a", value)
        assert result[0].is_completed is value
        assert all(st.is_completed is value for st in result[0].sub_topics)

    def test_leaves_siblings_and_input_alone(self):
        topics = [make_topic("a", done=(False,)), make_topic("b", done=(False,))]
        result = progress.set_topic_completed(topics, "a", True)
        assert result[1].sub_topics[0].is_completed is False
        assert topics[0].is_completed is False

    def test_unknown_topic(self):
        with pytest.raises(NotFoundError):
            progress.set_topic_completed([make_topic("a")], "missing", True)


class TestSubTopicToggle:
    def test_parent_completes_when_last_sub_topic_done(self):
        topics = [make_topic("a", done=(True, False))]
        result = progress.set_sub_topic_completed(topics, "a", "a-s1", True)
        assert result[0].is_completed is True

    def test_parent_reopens_when_any_sub_topic_undone(self):
        topics = [make_topic("a", done=(True, True), completed=True)]
        result = progress.set_sub_topic_completed(topics, "a", "a-s0", False)
        assert result[0].is_completed is False
        assert result[0].sub_topics[1].is_completed is True

    def test_topic_without_sub_topics_is_untouched(self):
        topics = [make_topic("a", completed=True)]
        with pytest.raises(NotFoundError):
            progress.set_sub_topic_completed(topics, "a", "nope", False)
        assert topics[0].is_completed is True


class TestDeletes:
    def test_delete_sub_topic_keeps_parent_flag_false(self):
        # Remaining sub-topic is done, but the parent must not flip to complete
        topics = [make_topic("a", done=(True, False), completed=False)]
        result = progress.delete_sub_topic(topics, "a", "a-s1")
        assert [st.id for st in result[0].sub_topics] == ["a-s0"]
        assert result[0].is_completed is False

    def test_delete_sub_topic_keeps_parent_flag_true(self):
        topics = [make_topic("a", done=(True,), completed=True)]
        result = progress.delete_sub_topic(topics, "a", "a-s0")
        assert result[0].sub_topics == []
        assert result[0].is_completed is True

    def test_delete_topic_removes_only_that_topic(self):
        topics = [make_topic("a", done=(True,)), make_topic("b", done=(False,))]
        result = progress.delete_topic(topics, "a")
        assert [t.id for t in result] == ["b"]
        assert result[0].sub_topics[0].is_completed is False


class TestAddAndEdit:
    def test_add_topic_defaults(self):
        result = progress.add_topic([])
        topic = result[0]
        assert topic.title == progress.DEFAULT_TOPIC_TITLE
        assert topic.is_completed is False
        assert topic.sub_topics == []
        assert topic.id.startswith("topic-")

    def test_add_topic_keeps_caller_id(self):
        result = progress.add_topic([make_topic("a")], topic_id="client-42", title="Lifetimes")
        assert result[-1].id == "client-42"
        assert result[-1].title == "Lifetimes"

    def test_add_topic_rejects_duplicate_id(self):
        with pytest.raises(ConflictError):
            progress.add_topic([make_topic("a")], topic_id="a")

    def test_add_sub_topic(self):
        result = progress.add_sub_topic([make_topic("a", done=(True,))], "a", sub_topic_id="x")
        sub = result[0].sub_topics[-1]
        assert (sub.id, sub.title, sub.is_completed) == ("x", progress.DEFAULT_SUB_TOPIC_TITLE, False)

    def test_add_sub_topic_does_not_recompute_parent(self):
        topics = [make_topic("a", done=(True,), completed=True)]
        result = progress.add_sub_topic(topics, "a")
        assert result[0].is_completed is True

    def test_update_topic_replaces_fields_without_cascade(self):
        topics = [make_topic("a", done=(False,))]
        result = progress.update_topic(topics, "a", title="Renamed", deadline="2025-03-01", notes="n")
        topic = result[0]
        assert (topic.title, topic.deadline, topic.notes) == ("Renamed", "2025-03-01", "n")
        assert topic.sub_topics == topics[0].sub_topics

    def test_update_sub_topic(self):
        topics = [make_topic("a", done=(False,))]
        result = progress.update_sub_topic(topics, "a", "a-s0", title="New", notes="x")
        assert result[0].sub_topics[0].title == "New"
        assert result[0].sub_topics[0].notes == "x"
        assert result[0].sub_topics[0].is_completed is False

    def test_update_unknown_sub_topic(self):
        with pytest.raises(NotFoundError):
            progress.update_sub_topic([make_topic("a")], "a", "missing", title="x")


def test_topics_from_input_mints_missing_ids_and_keeps_given_ones():
    raw = [
        TopicIn(id="keep", title="First", sub_topics=[{"title": "one"}, {"id": "s-keep", "title": "two"}]),
        TopicIn(title="Second", isCompleted=True),
    ]
    topics = progress.topics_from_input(raw, stamp=1700)
    assert topics[0].id == "keep"
    assert [st.id for st in topics[0].sub_topics] == ["subtopic-1700-0-0", "s-keep"]
    assert topics[1].id == "topic-1700-1"
    assert topics[1].is_completed is True


@pytest.mark.parametrize(
    "raw",
    [
        [TopicIn(id="same", title="A"), TopicIn(id="same", title="B")],
        [TopicIn(title="A", sub_topics=[{"id": "s", "title": "one"}, {"id": "s", "title": "two"}])],
    ],
)
def test_topics_from_input_rejects_duplicate_ids(raw):
    with pytest.raises(ConflictError):
        progress.topics_from_input(raw, stamp=1700)


def test_same_sub_topic_id_under_different_topics_is_allowed():
    raw = [
        TopicIn(id="a", title="A", sub_topics=[{"id": "s", "title": "one"}]),
        TopicIn(id="b", title="B", sub_topics=[{"id": "s", "title": "one"}]),
    ]
    assert len(progress.topics_from_input(raw)) == 2


@pytest.mark.parametrize("deadline", ["2025-13-45", "2025-02-30", "March 1"])
def test_impossible_deadline_is_rejected(deadline):
    with pytest.raises(PydanticValidationError):
        TopicIn(title="A", deadline=deadline)


def test_real_deadline_and_blank_deadline():
    assert TopicIn(title="A", deadline="2024-02-29").deadline == "2024-02-29"
    assert TopicIn(title="A", deadline="").deadline is None


@pytest.mark.parametrize("num,den,expected", [(1, 2, 1), (33, 2, 17), (49, 100, 0), (50, 100, 1), (7, 1, 7)])
def test_round_half_up(num, den, expected):
    assert progress.round_half_up(num, den) == expected
