import base64

import pytest

from misotoast.models import Dish
from misotoast.share import (
    HEADER,
    parse_share_url,
    share_html,
    share_markdown,
    share_text,
    share_url,
)

from tests.fakes import make_recipe


BASE_URL = "https://misotoast.test/shared"


def encoded(payload: bytes) -> str:
    return base64.urlsafe_b64encode(payload).decode()


@pytest.fixture
def dish() -> Dish:
    return Dish(
        id="d1",
        title="Miso Toast",
        description="Savoury, crunchy and quick.",
        image="https://img.example/Miso-Toast.png",
        recipe=make_recipe(),
        preferences={"cuisines": ("Japanese",)},
    )


def test_share_text(dish: Dish) -> None:
    text = share_text(dish)

    assert text.startswith(HEADER)
    assert "🍽️ Miso Toast" in text
    assert "📋 Ingredients:\n1. 2 slices toast\n2. 1 tbsp miso" in text
    assert "👨‍🍳 Instructions:\n1. Toast it.\n2. Spread the miso." in text
    assert "📊 Nutrition:\ncalories: 210" in text


def test_share_text_without_recipe() -> None:
    text = share_text(Dish(id="d2", title="Toast", description="Plain."))
    assert "📊 Nutrition:\nNot available" in text


def test_share_url_carries_the_dish(dish: Dish) -> None:
    url = share_url(dish, BASE_URL)
    assert url.startswith(f"{BASE_URL}?recipe=")

    shared = parse_share_url(url)

    assert shared is not None
    assert shared.id == dish.id
    assert shared.title == dish.title
    assert shared.image == dish.image
    assert shared.timestamp == dish.timestamp
    assert shared.recipe is not None
    assert shared.recipe.to_dict() == make_recipe().to_dict()
    # Preferences stay private.
    assert dict(shared.preferences) == {}


@pytest.mark.parametrize(
    "url",
    (
        BASE_URL,
        f"{BASE_URL}?other=1",
        BASE_URL + "?recipe=" + encoded(b"not json"),
        BASE_URL + "?recipe=" + encoded(b'{"title": "x"}'),
    ),
)
def test_parse_share_url_rejects_bad_links(url: str) -> None:
    assert parse_share_url(url) is None


def test_share_markdown_and_html(dish: Dish) -> None:
    markdown = share_markdown(dish)
    assert markdown.startswith("### Miso Toast\n\nSavoury, crunchy and quick.")
    assert "⏰ Preparation time: 5 minutes" in markdown

    html = share_html(dish)
    assert "<h3>Miso Toast</h3>" in html
    assert "<li>2 slices toast</li>" in html
    assert "<li>1 tbsp miso</li>" in html
