"""
Card authoring.

Creates basic, cloze and formula cards with a fresh memory state.
Every card must belong to at least one topic when it is created or
edited; topics deleted later are tolerated as dangling references.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import datetime

from loguru import logger

from .cloze import generate_cloze_cards, generate_formula_cards
from .errors import InvalidArgumentError
from .models import Card, CardType, utcnow
from .scheduler import empty_memory_state


def _require_topics(topic_ids: Iterable[str]) -> list[str]:
    topics = list(dict.fromkeys(topic_ids))
    if not topics:
        raise InvalidArgumentError("A card needs at least one topic")
    return topics


def new_card(
    card_type: CardType | str,
    front: str,
    back: str,
    topic_ids: Sequence[str],
    tags: Sequence[str] = (),
    template: str | None = None,
    cloze_index: int | None = None,
    now: datetime | None = None,
) -> Card:
    """
    Create a card that has never been reviewed.

    Args:
        card_type: basic, cloze or formula
        front: Prompt side
        back: Answer side
        topic_ids: At least one topic id
        tags: Free-form tags
        template: Source template for cloze/formula cards
        cloze_index: Which cloze deletion this card tests
        now: Creation time; also the card's first due date

    Returns:
        New Card in lifecycle state ``new``
    """
    try:
        card_type = CardType(card_type)
    except ValueError:
        raise InvalidArgumentError(f"Unknown card type: {card_type!r}") from None

    timestamp = now or utcnow()
    return Card(
        id=str(uuid.uuid4()),
        type=card_type,
        front=front,
        back=back,
        memory=empty_memory_state(timestamp),
        topic_ids=_require_topics(topic_ids),
        tags=list(tags),
        template=template,
        cloze_index=cloze_index,
        created_at=timestamp,
        updated_at=timestamp,
    )


def update_card(
    card: Card,
    now: datetime | None = None,
    front: str | None = None,
    back: str | None = None,
    topic_ids: Sequence[str] | None = None,
    tags: Sequence[str] | None = None,
) -> Card:
    """Return ``card`` with the given fields replaced; memory state is kept."""
    changes: dict = {"updated_at": now or utcnow()}
    if front is not None:
        changes["front"] = front
    if back is not None:
        changes["back"] = back
    if topic_ids is not None:
        changes["topic_ids"] = _require_topics(topic_ids)
    if tags is not None:
        changes["tags"] = list(tags)
    return replace(card, **changes)


def cloze_cards(
    template: str,
    topic_ids: Sequence[str],
    tags: Sequence[str] = (),
    now: datetime | None = None,
) -> list[Card]:
    """One cloze card per deletion index in ``template``."""
    rendered = generate_cloze_cards(template)
    if not rendered:
        raise InvalidArgumentError("Template has no cloze deletions")

    cards = [
        new_card(
            CardType.CLOZE,
            r.front,
            r.back,
            topic_ids,
            tags=tags,
            template=template,
            cloze_index=r.cloze_index,
            now=now,
        )
        for r in rendered
    ]
    logger.debug(f"Generated {len(cards)} cloze card(s)")
    return cards


def formula_cards(
    template: str,
    topic_ids: Sequence[str],
    tags: Sequence[str] = (),
    now: datetime | None = None,
) -> list[Card]:
    """Forward and reverse cards for the formula pair in ``template``."""
    rendered = generate_formula_cards(template)
    if not rendered:
        raise InvalidArgumentError("Template has no {{f::name::formula}} pair")

    return [
        new_card(CardType.FORMULA, r.front, r.back, topic_ids, tags=tags, template=template, now=now)
        for r in rendered
    ]


def filter_cards(
    cards: Iterable[Card],
    query: str = "",
    topic_ids: Sequence[str] | None = None,
) -> list[Card]:
    """
    Cards matching a text search and a topic filter.

    ``query`` matches front or back text, case-insensitively. A card
    passes the topic filter when it shares at least one topic id; an
    empty query or topic filter matches everything.
    """
    needle = query.strip().lower()
    wanted = set(topic_ids or ())

    matched = []
    for card in cards:
        if needle and needle not in card.front.lower() and needle not in card.back.lower():
            continue
        if wanted and not card.shares_topic(wanted):
            continue
        matched.append(card)
    return matched
