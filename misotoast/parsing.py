"""Turning a text-service reply into a dish draft.

The reply is resolved once, at the service boundary, into either a
`DishDraft` or a `RawText`. Only `RawText` goes through the heuristics here.
"""

import re
from typing import TypeAlias

from misotoast.errors import GenerationRefused
from misotoast.models import DEFAULT_DESCRIPTION, DEFAULT_TITLE, Recipe


REFUSAL_PATTERNS = (
    re.compile(r"^I'm sorry", re.IGNORECASE),
    re.compile(r"^Sorry", re.IGNORECASE),
    re.compile(r"^Could you please provide", re.IGNORECASE),
    re.compile(r"^It seems like", re.IGNORECASE),
    re.compile(r"^It looks like", re.IGNORECASE),
)

TITLE_MARKER = re.compile(r"Dish Name:(.*)", re.IGNORECASE)
DESCRIPTION_MARKER = re.compile(
    r"Description:([\s\S]*?)(?=Main Ingredients:|Ingredients:|Instructions:|$)",
    re.IGNORECASE,
)


class DishDraft:
    def __init__(
        self,
        *,
        title: str = "",
        description: str = "",
        recipe: Recipe | None = None,
    ) -> None:
        self.title = title
        self.description = description
        self.recipe = recipe

    def __repr__(self) -> str:
        return f"<DishDraft(title={self.title})>"


class RawText:
    def __init__(self, text: str) -> None:
        self.text = text

    def __str__(self) -> str:
        return self.text


TextResult: TypeAlias = DishDraft | RawText


def is_refusal(text: str) -> bool:
    text = text.strip()
    return any(p.match(text) for p in REFUSAL_PATTERNS)


def _lines(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


def parse_dish_text(
    text: str,
    *,
    default_title: str = DEFAULT_TITLE,
    default_description: str = DEFAULT_DESCRIPTION,
) -> DishDraft:
    lines = _lines(text)

    title = ""
    match = TITLE_MARKER.search(text)
    if match:
        title = match.group(1).strip()
    if not title:
        title = lines[0] if lines else default_title
    title = re.sub(r"^Dish Name:\s*", "", title, flags=re.IGNORECASE).strip()

    description = ""
    match = DESCRIPTION_MARKER.search(text)
    if match:
        description = " ".join(match.group(1).split())
    if not description:
        description = lines[1] if len(lines) > 1 else default_description

    return DishDraft(title=title or default_title, description=description)


def resolve(
    result: TextResult,
    *,
    default_title: str = DEFAULT_TITLE,
    default_description: str = DEFAULT_DESCRIPTION,
) -> DishDraft:
    """The draft behind a service reply, raising if the service declined."""
    if isinstance(result, DishDraft):
        return result
    if is_refusal(result.text):
        raise GenerationRefused(result.text)
    return parse_dish_text(
        result.text,
        default_title=default_title,
        default_description=default_description,
    )
