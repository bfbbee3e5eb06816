"""
Cloze and formula template parsing.

Cloze syntax:    {{c1::hidden text}} or {{c1::hidden text::hint}}
Formula syntax:  {{f::name::formula}}, e.g. {{f::Determinant 2x2::ad - bc}}

All functions are pure; compiled patterns carry no scanning state
between calls.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

CLOZE_PATTERN = re.compile(r"\{\{c(\d+)::([^}]+?)(?:::([^}]+))?\}\}")
FORMULA_PATTERN = re.compile(r"\{\{f::([^:]+?)::([\s\S]+?)\}\}")


# =============================================================================
# Cloze
# =============================================================================


@dataclass(frozen=True)
class ClozeDeletion:
    index: int
    text: str
    hint: str | None = None


@dataclass(frozen=True)
class ParsedCloze:
    deletions: list[ClozeDeletion]
    max_index: int


@dataclass(frozen=True)
class RenderedCloze:
    """Front/back pair for one cloze index."""

    front: str
    back: str
    cloze_index: int


def parse_cloze(template: str) -> ParsedCloze:
    """Parse every cloze deletion in ``template``, in order of appearance."""
    deletions = [
        ClozeDeletion(index=int(m.group(1)), text=m.group(2), hint=m.group(3))
        for m in CLOZE_PATTERN.finditer(template)
    ]
    max_index = max((d.index for d in deletions), default=0)
    return ParsedCloze(deletions=deletions, max_index=max_index)


def render_cloze_front(template: str, target_index: int) -> str:
    """Hide deletion ``target_index`` as [hint] or [...]; reveal all others."""

    def _replace(match: re.Match) -> str:
        if int(match.group(1)) == target_index:
            hint = match.group(3)
            return f"[{hint}]" if hint else "[...]"
        return match.group(2)

    return CLOZE_PATTERN.sub(_replace, template)


def render_cloze_back(template: str, target_index: int) -> str:
    """Highlight deletion ``target_index`` as **text**; reveal all others."""

    def _replace(match: re.Match) -> str:
        if int(match.group(1)) == target_index:
            return f"**{match.group(2)}**"
        return match.group(2)

    return CLOZE_PATTERN.sub(_replace, template)


def has_cloze(text: str) -> bool:
    return CLOZE_PATTERN.search(text) is not None


def count_cloze_deletions(template: str) -> int:
    """Number of cards a template yields (its highest cloze index)."""
    return parse_cloze(template).max_index


def generate_cloze_cards(template: str) -> list[RenderedCloze]:
    """One front/back pair per cloze index, 1 through the highest index."""
    max_index = parse_cloze(template).max_index
    return [
        RenderedCloze(
            front=render_cloze_front(template, i),
            back=render_cloze_back(template, i),
            cloze_index=i,
        )
        for i in range(1, max_index + 1)
    ]


# =============================================================================
# Formula
# =============================================================================


@dataclass(frozen=True)
class FormulaPair:
    name: str
    formula: str


@dataclass(frozen=True)
class RenderedFormula:
    front: str
    back: str
    is_reverse: bool


def parse_formula(template: str) -> FormulaPair | None:
    """First formula pair in ``template`` (trimmed), or None."""
    match = FORMULA_PATTERN.search(template)
    if match is None:
        return None
    return FormulaPair(name=match.group(1).strip(), formula=match.group(2).strip())


def has_formula(text: str) -> bool:
    return FORMULA_PATTERN.search(text) is not None


def generate_formula_cards(template: str) -> list[RenderedFormula]:
    """
    Forward (name -> $formula$) and reverse ($formula$ -> name) cards.

    Formulas already starting with ``$`` are used as written. Returns an
    empty list when the template holds no formula.
    """
    pair = parse_formula(template)
    if pair is None:
        return []

    display = pair.formula if pair.formula.startswith("$") else f"${pair.formula}$"
    return [
        RenderedFormula(front=pair.name, back=display, is_reverse=False),
        RenderedFormula(front=display, back=pair.name, is_reverse=True),
    ]
