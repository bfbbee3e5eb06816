"""
Topic hierarchy and relation lookup.

Topics form a tree through ``parent_id`` and carry a directed set of
related topic ids. The interleaver only ever asks "is B related to A?"
using A's own declared set; relations are never symmetrized.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime

from .errors import InvalidArgumentError
from .models import Topic, utcnow

DEFAULT_TOPIC_COLOR = "#C75D38"
PATH_SEPARATOR = " › "

_UNCHANGED = object()


# =============================================================================
# Relation Index
# =============================================================================


class TopicRelationIndex:
    """
    Read-only map of topic id -> declared related topic ids.

    Unknown topic ids resolve to an empty set.
    """

    def __init__(self, relations: dict[str, frozenset[str]] | None = None):
        self._relations = relations or {}

    @classmethod
    def from_topics(cls, topics: Iterable[Topic]) -> TopicRelationIndex:
        return cls({t.id: frozenset(t.related_topic_ids) for t in topics})

    def related_to(self, topic_id: str | None) -> frozenset[str]:
        if topic_id is None:
            return frozenset()
        return self._relations.get(topic_id, frozenset())

    def is_related(self, source_id: str | None, target_id: str | None) -> bool:
        """Whether ``target_id`` is in ``source_id``'s related set."""
        return target_id is not None and target_id in self.related_to(source_id)


# =============================================================================
# Hierarchy
# =============================================================================


@dataclass
class TopicNode:
    """A topic with its children, for tree display."""

    topic: Topic
    children: list[TopicNode] = field(default_factory=list)


def new_topic(
    name: str,
    existing: Iterable[Topic],
    parent_id: str | None = None,
    color: str = DEFAULT_TOPIC_COLOR,
    icon: str | None = None,
    related_topic_ids: Iterable[str] = (),
    now: datetime | None = None,
) -> Topic:
    """
    Create a topic placed after its existing siblings.

    Args:
        name: Display name (must not be blank)
        existing: All topics currently stored
        parent_id: Parent topic id, None for a root topic
        color: Display color
        icon: Optional icon
        related_topic_ids: Topics to space this one away from
        now: Creation timestamp

    Returns:
        New Topic with ``order = max(sibling orders) + 1``
    """
    name = name.strip()
    if not name:
        raise InvalidArgumentError("Topic name cannot be empty")

    sibling_orders = [t.order for t in existing if t.parent_id == parent_id]
    timestamp = now or utcnow()

    return Topic(
        id=str(uuid.uuid4()),
        name=name,
        parent_id=parent_id,
        order=max(sibling_orders, default=-1) + 1,
        related_topic_ids=list(dict.fromkeys(related_topic_ids)),
        color=color,
        icon=icon,
        created_at=timestamp,
        updated_at=timestamp,
    )


def update_topic(
    topic: Topic,
    existing: Iterable[Topic],
    name: str | None = None,
    parent_id: str | None | object = _UNCHANGED,
    related_topic_ids: Iterable[str] | None = None,
    color: str | None = None,
    icon: str | None = None,
    now: datetime | None = None,
) -> Topic:
    """
    Return ``topic`` with the given fields replaced.

    Pass ``parent_id=None`` to move the topic to the root. A topic that
    changes parent is placed after its new siblings. A topic cannot be
    moved under itself or one of its descendants, and is never listed
    as related to itself.

    Args:
        topic: Topic being edited
        existing: All topics currently stored
        name: New display name (must not be blank)
        parent_id: New parent id, None for root, omitted to keep
        related_topic_ids: Replacement related set
        color: New display color
        icon: New icon
        now: Update timestamp

    Returns:
        Updated Topic
    """
    existing = list(existing)
    changes: dict = {"updated_at": now or utcnow()}

    if name is not None:
        name = name.strip()
        if not name:
            raise InvalidArgumentError("Topic name cannot be empty")
        changes["name"] = name

    if parent_id is not _UNCHANGED and parent_id != topic.parent_id:
        if parent_id == topic.id or parent_id in descendant_ids(topic.id, existing):
            raise InvalidArgumentError("A topic cannot be moved under itself")
        sibling_orders = [
            t.order for t in existing if t.parent_id == parent_id and t.id != topic.id
        ]
        changes["parent_id"] = parent_id
        changes["order"] = max(sibling_orders, default=-1) + 1

    if related_topic_ids is not None:
        changes["related_topic_ids"] = [
            tid for tid in dict.fromkeys(related_topic_ids) if tid != topic.id
        ]
    if color is not None:
        changes["color"] = color
    if icon is not None:
        changes["icon"] = icon

    return replace(topic, **changes)


def topic_path(topic_id: str, topics: Iterable[Topic], separator: str = PATH_SEPARATOR) -> str:
    """
    Breadcrumb of topic names from the root down to ``topic_id``.

    Returns an empty string for an unknown topic.
    """
    by_id = {t.id: t for t in topics}
    names: list[str] = []
    seen: set[str] = set()

    current = by_id.get(topic_id)
    while current is not None and current.id not in seen:
        seen.add(current.id)
        names.append(current.name)
        current = by_id.get(current.parent_id) if current.parent_id else None

    return separator.join(reversed(names))


def descendant_ids(topic_id: str, topics: Iterable[Topic]) -> list[str]:
    """All descendants of ``topic_id``, breadth first, excluding itself."""
    children: dict[str | None, list[str]] = {}
    for topic in topics:
        children.setdefault(topic.parent_id, []).append(topic.id)

    result: list[str] = []
    seen = {topic_id}
    frontier = [topic_id]
    while frontier:
        next_frontier = []
        for parent in frontier:
            for child in children.get(parent, []):
                if child not in seen:
                    seen.add(child)
                    result.append(child)
                    next_frontier.append(child)
        frontier = next_frontier
    return result


def build_topic_tree(topics: Iterable[Topic]) -> list[TopicNode]:
    """
    Nest topics under their parents, siblings sorted by ``order``.

    Topics whose parent is unknown are treated as roots.
    """
    nodes = {t.id: TopicNode(topic=t) for t in topics}
    roots: list[TopicNode] = []

    for node in nodes.values():
        parent = nodes.get(node.topic.parent_id) if node.topic.parent_id else None
        if parent is None or parent is node:
            roots.append(node)
        else:
            parent.children.append(node)

    def _sort(level: list[TopicNode]) -> None:
        level.sort(key=lambda n: n.topic.order)
        for n in level:
            _sort(n.children)

    _sort(roots)
    return roots
