"""
Unit tests for the review queue builder.

Tests:
- Due/new pool selection, ordering and topic filtering
- New card cap and micro truncation
- Topic interleaving (permutation, adjacency, directed relations)
- Due counts and breakdown

Run: pytest tests/unit/test_queue_builder.py -v
"""

from datetime import timedelta

import pytest

from conftest import NOW, make_card, make_topic
from mnemonic.errors import InvalidArgumentError
from mnemonic.models import CardState, SessionMode
from mnemonic.queue_builder import (
    QueueBuilder,
    QueueOptions,
    build_queue,
    get_due_breakdown,
    get_due_count,
    interleave_by_topic,
)
from mnemonic.topics import TopicRelationIndex


def add_cards(store, *cards):
    for card in cards:
        store.upsert_card(card)


def ids(cards):
    return [c.id for c in cards]


@pytest.fixture
def builder(store, clock):
    return QueueBuilder(store, clock)


def no_interleave(**kwargs) -> QueueOptions:
    return QueueOptions(interleave_related=False, **kwargs)


# =============================================================================
# Pools
# =============================================================================


class TestPools:
    """Test due/new pool selection and ordering."""

    def test_empty_store(self, builder):
        result = builder.build_queue()

        assert result.card_ids == []
        assert result.total_due == 0
        assert result.total_new == 0

    def test_learning_then_review_then_new(self, store, builder):
        add_cards(
            store,
            make_card("n1"),
            make_card("r1", state=CardState.REVIEW, due=NOW - timedelta(hours=3)),
            make_card("l1", state=CardState.LEARNING, due=NOW - timedelta(hours=1)),
            make_card("rl1", state=CardState.RELEARNING, due=NOW - timedelta(hours=2)),
        )

        result = builder.build_queue(no_interleave())

        assert result.card_ids == ["rl1", "l1", "r1", "n1"]
        assert result.total_due == 3
        assert result.total_new == 1

    def test_future_cards_excluded(self, store, builder):
        add_cards(
            store,
            make_card("past", state=CardState.REVIEW, due=NOW - timedelta(days=1)),
            make_card("future", state=CardState.REVIEW, due=NOW + timedelta(days=1)),
        )

        result = builder.build_queue(no_interleave())

        assert result.card_ids == ["past"]

    def test_due_exactly_now_included(self, store, builder):
        add_cards(store, make_card("edge", state=CardState.REVIEW, due=NOW))

        assert builder.build_queue().card_ids == ["edge"]

    def test_new_cards_not_counted_as_due(self, store, builder):
        add_cards(
            store,
            make_card("n1", due=NOW - timedelta(days=30)),
            make_card("r1", state=CardState.REVIEW),
        )

        result = builder.build_queue(no_interleave())

        assert result.total_due == 1
        assert result.total_new == 1
        assert result.card_ids == ["r1", "n1"]

    def test_new_cards_in_creation_order(self, store, builder):
        for i in range(4):
            add_cards(store, make_card(f"n{i}", created=NOW - timedelta(days=10 - i)))

        result = builder.build_queue(no_interleave())

        assert result.card_ids == ["n0", "n1", "n2", "n3"]

    def test_new_card_cap(self, store, builder):
        for i in range(8):
            add_cards(store, make_card(f"n{i}"))

        result = builder.build_queue(no_interleave(new_card_limit=3))

        assert result.card_ids == ["n0", "n1", "n2"]
        assert result.total_new == 3

    def test_zero_new_card_limit(self, store, builder):
        add_cards(store, make_card("n1"), make_card("r1", state=CardState.REVIEW))

        result = builder.build_queue(no_interleave(new_card_limit=0))

        assert result.card_ids == ["r1"]
        assert result.total_new == 0


class TestTopicFilter:
    """Test topic filtering."""

    def test_keeps_cards_sharing_a_topic(self, store, builder):
        add_cards(
            store,
            make_card("a", ["t1"], state=CardState.REVIEW),
            make_card("b", ["t2"], state=CardState.REVIEW),
            make_card("ab", ["t2", "t1"], state=CardState.REVIEW),
            make_card("new-a", ["t1"]),
            make_card("new-b", ["t2"]),
        )

        result = builder.build_queue(no_interleave(topic_ids=["t1"]))

        assert result.card_ids == ["a", "ab", "new-a"]
        assert result.total_due == 2
        assert result.total_new == 1

    def test_empty_filter_means_all(self, store, builder):
        add_cards(store, make_card("a", ["t1"]), make_card("b", ["t2"]))

        result = builder.build_queue(no_interleave(topic_ids=[]))

        assert sorted(result.card_ids) == ["a", "b"]

    def test_unknown_topic_matches_nothing(self, store, builder):
        add_cards(store, make_card("a", ["t1"], state=CardState.REVIEW))

        result = builder.build_queue(QueueOptions(topic_ids=["missing"]))

        assert result.card_ids == []
        assert result.total_due == 0


class TestModes:
    """Test session mode limits."""

    def test_micro_truncates(self, store, builder):
        for i in range(20):
            add_cards(store, make_card(f"r{i:02d}", state=CardState.REVIEW))

        result = builder.build_queue(QueueOptions(mode=SessionMode.MICRO))

        assert len(result.card_ids) == 12
        assert result.total_due == 20

    def test_micro_custom_limit(self, store, builder):
        for i in range(10):
            add_cards(store, make_card(f"r{i}", state=CardState.REVIEW))

        result = builder.build_queue(QueueOptions(mode="micro", micro_limit=4))

        assert len(result.card_ids) == 4

    def test_micro_shorter_than_limit(self, store, builder):
        for i in range(3):
            add_cards(store, make_card(f"r{i}", state=CardState.REVIEW))

        result = builder.build_queue(QueueOptions(mode=SessionMode.MICRO))

        assert len(result.card_ids) == 3

    @pytest.mark.parametrize("mode", [SessionMode.STANDARD, SessionMode.TOPIC])
    def test_other_modes_do_not_truncate(self, store, builder, mode):
        for i in range(20):
            add_cards(store, make_card(f"r{i:02d}", state=CardState.REVIEW))

        result = builder.build_queue(QueueOptions(mode=mode))

        assert len(result.card_ids) == 20

    def test_unknown_mode_rejected(self):
        with pytest.raises(InvalidArgumentError):
            QueueOptions(mode="marathon")

    def test_negative_limit_rejected(self):
        with pytest.raises(InvalidArgumentError):
            QueueOptions(new_card_limit=-1)


# =============================================================================
# Interleaving
# =============================================================================


class TestInterleaving:
    """Test topic interleaving."""

    def test_two_topic_scenario(self, store, builder):
        add_cards(
            store,
            make_card("a1", ["A"]),
            make_card("a2", ["A"]),
            make_card("b1", ["B"]),
            make_card("b2", ["B"]),
        )

        result = builder.build_queue(QueueOptions())

        assert result.total_new == 4
        assert result.card_ids == ["a1", "b1", "a2", "b2"]
        topics = [store.get_card_by_id(cid).topic_ids[0] for cid in result.card_ids]
        assert all(x != y for x, y in zip(topics, topics[1:]))

    def test_is_permutation(self):
        cards = [make_card(f"c{i}", [f"t{i % 3}"]) for i in range(10)]

        result = interleave_by_topic(cards, TopicRelationIndex())

        assert sorted(ids(result)) == sorted(ids(cards))

    def test_input_not_mutated(self):
        cards = [make_card(f"c{i}", ["t1" if i < 3 else "t2"]) for i in range(5)]
        before = ids(cards)

        interleave_by_topic(cards, TopicRelationIndex())

        assert ids(cards) == before

    def test_short_input_unchanged(self):
        cards = [make_card("a1", ["A"]), make_card("a2", ["A"])]

        assert ids(interleave_by_topic(cards, TopicRelationIndex())) == ["a1", "a2"]

    def test_single_topic_keeps_order(self):
        cards = [make_card(f"a{i}", ["A"]) for i in range(4)]

        result = interleave_by_topic(cards, TopicRelationIndex())

        assert ids(result) == ["a0", "a1", "a2", "a3"]

    def test_avoids_related_topic(self):
        relations = TopicRelationIndex.from_topics([make_topic("A", related=["B"])])
        cards = [
            make_card("a1", ["A"]),
            make_card("a2", ["A"]),
            make_card("b1", ["B"]),
            make_card("c1", ["C"]),
        ]

        result = interleave_by_topic(cards, relations)

        assert ids(result) == ["a1", "c1", "a2", "b1"]

    def test_relations_are_directed(self):
        relations = TopicRelationIndex.from_topics([
            make_topic("A"),
            make_topic("B", related=["A"]),
        ])
        cards = [make_card("a1", ["A"]), make_card("b1", ["B"]), make_card("c1", ["C"])]

        result = interleave_by_topic(cards, relations)

        assert ids(result) == ["a1", "b1", "c1"]

    def test_forced_adjacency_falls_back(self):
        cards = [
            make_card("a1", ["A"]),
            make_card("a2", ["A"]),
            make_card("a3", ["A"]),
            make_card("b1", ["B"]),
        ]

        result = interleave_by_topic(cards, TopicRelationIndex())

        assert ids(result) == ["a1", "b1", "a2", "a3"]

    def test_cards_without_topics_share_a_group(self):
        cards = [make_card("n1", []), make_card("n2", []), make_card("a1", ["A"])]

        result = interleave_by_topic(cards, TopicRelationIndex())

        assert ids(result) == ["n1", "a1", "n2"]

    def test_dangling_topics_tolerated(self, store, builder):
        store.upsert_topic(make_topic("A", related=["gone"]))
        add_cards(
            store,
            make_card("x1", ["gone"]),
            make_card("x2", ["gone"]),
            make_card("a1", ["A"]),
        )

        result = builder.build_queue()

        assert result.card_ids == ["x1", "a1", "x2"]

    def test_interleave_uses_stored_relations(self, store, builder):
        store.upsert_topic(make_topic("A", related=["B"]))
        add_cards(
            store,
            make_card("a1", ["A"]),
            make_card("a2", ["A"]),
            make_card("b1", ["B"]),
            make_card("c1", ["C"]),
        )

        result = builder.build_queue()

        assert result.card_ids == ["a1", "c1", "a2", "b1"]

    def test_interleave_before_micro_truncation(self, store, builder):
        for i in range(6):
            add_cards(store, make_card(f"a{i}", ["A"], state=CardState.REVIEW))
        add_cards(store, make_card("b0", ["B"], state=CardState.REVIEW))

        result = builder.build_queue(QueueOptions(mode=SessionMode.MICRO, micro_limit=3))

        assert result.card_ids == ["a0", "b0", "a1"]


# =============================================================================
# Counts
# =============================================================================


class TestDueCounts:
    """Test get_due_count and get_due_breakdown."""

    def seed(self, store):
        add_cards(
            store,
            make_card("l1", ["t1"], state=CardState.LEARNING),
            make_card("rl1", ["t2"], state=CardState.RELEARNING),
            make_card("r1", ["t1"], state=CardState.REVIEW),
            make_card("r2", ["t2"], state=CardState.REVIEW),
            make_card("later", ["t1"], state=CardState.REVIEW, due=NOW + timedelta(days=2)),
        )
        for i in range(8):
            add_cards(store, make_card(f"n{i}", ["t1" if i % 2 else "t2"]))

    def test_due_count(self, store, builder):
        self.seed(store)

        assert builder.get_due_count() == 4
        assert builder.get_due_count(["t1"]) == 2

    def test_breakdown(self, store, builder):
        self.seed(store)

        breakdown = builder.get_due_breakdown()

        assert breakdown.learning == 2
        assert breakdown.review == 2
        assert breakdown.new == 8
        assert breakdown.total == 12

    def test_breakdown_new_ignores_cap(self, store, builder):
        self.seed(store)

        assert builder.get_due_breakdown().new == 8
        assert builder.build_queue().total_new == 5

    def test_breakdown_filtered(self, store, builder):
        self.seed(store)

        breakdown = builder.get_due_breakdown(["t1"])

        assert breakdown.learning == 1
        assert breakdown.review == 1
        assert breakdown.new == 4

    def test_module_functions(self, store, clock):
        self.seed(store)

        assert get_due_count(store, clock=clock) == 4
        assert get_due_breakdown(store, ["t2"], clock=clock).new == 4
        assert build_queue(store, no_interleave(), clock=clock).total_due == 4

    def test_clock_decides_due(self, store, clock):
        self.seed(store)
        clock.advance(days=3)

        assert QueueBuilder(store, clock).get_due_count() == 5
