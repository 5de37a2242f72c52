import base64
import binascii
import json
import logging
from urllib.parse import parse_qs, urlencode, urlsplit

import markdown2  # pyright: ignore[reportMissingTypeStubs]

from misotoast.models import Dish


logger = logging.getLogger(__name__)


HEADER = "🍽️ MisoToast\nRemixing meals, daily 🍽️\n\n---"

SHARED_FIELDS = ("id", "title", "description", "image", "recipe", "timestamp")


def _numbered(items: list[str]) -> str:
    return "\n".join(f"{n}. {item}" for n, item in enumerate(items, 1))


def share_text(dish: Dish) -> str:
    """A plain text card for messaging apps."""
    recipe = dish.recipe
    ingredients = [] if recipe is None else recipe.ingredients
    instructions = [] if recipe is None else recipe.instructions
    if recipe is not None and recipe.nutrition:
        nutrition = "\n".join(f"{k}: {v}" for k, v in recipe.nutrition.items())
    else:
        nutrition = "Not available"

    return "\n\n".join(
        (
            HEADER,
            f"🍽️ {dish.title}",
            dish.description,
            f"📋 Ingredients:\n{_numbered(ingredients)}",
            f"👨‍🍳 Instructions:\n{_numbered(instructions)}",
            f"📊 Nutrition:\n{nutrition}",
        )
    )


def share_url(dish: Dish, base_url: str) -> str:
    data = dish.to_dict()
    payload = json.dumps({k: data[k] for k in SHARED_FIELDS}, ensure_ascii=False)
    encoded = base64.urlsafe_b64encode(payload.encode()).decode()
    return f"{base_url}?{urlencode({'recipe': encoded})}"


def parse_share_url(url: str) -> Dish | None:
    """The dish in a share link, or None if the link carries none."""
    encoded = parse_qs(urlsplit(url).query).get("recipe")
    if not encoded:
        return None
    try:
        data = json.loads(base64.urlsafe_b64decode(encoded[0]))
        return Dish.from_dict(data)
    except (binascii.Error, ValueError, KeyError, TypeError) as e:
        logger.warning("Could not read shared dish from %s: %s", url, e)
        return None


def share_markdown(dish: Dish) -> str:
    parts = [f"### {dish.title}", dish.description]
    if dish.recipe is not None:
        parts.append(dish.recipe.markdown)
    return "\n\n".join(parts)


def share_html(dish: Dish) -> str:
    return markdown2.markdown(  # pyright: ignore[reportUnknownVariableType, reportUnknownMemberType]
        share_markdown(dish)
    )
