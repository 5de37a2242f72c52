"""Conversation context: typed preference signals picked out of free text.

The context is kept in lockstep with the `Preferences` it wraps. The one
exception is `update_preferences_only`, used when replaying a dish from
history.
"""

from datetime import datetime
from enum import Enum
import logging
from typing import Iterable, Mapping

from misotoast.models import now
from misotoast.preferences import Category, Preferences


logger = logging.getLogger(__name__)


class ContextType(Enum):
    dietary = "dietary"
    cuisine = "cuisine"
    style = "style"
    ingredient = "ingredient"
    dish_type = "dishType"
    classic_dish = "classicDish"
    user_word = "userWord"


CATEGORY_TYPES: dict[Category, ContextType] = {
    Category.dietary: ContextType.dietary,
    Category.cuisine: ContextType.cuisine,
    Category.classic_dish: ContextType.classic_dish,
    Category.plate_style: ContextType.style,
    Category.ingredient: ContextType.ingredient,
}

TYPE_CATEGORIES: dict[ContextType, Category] = {t: c for c, t in CATEGORY_TYPES.items()}


class ContextEntry:
    def __init__(
        self,
        type: ContextType,
        value: str,
        timestamp: datetime | None = None,
    ) -> None:
        self.type = type
        self.value = value
        self.timestamp = now() if timestamp is None else timestamp

    def __repr__(self) -> str:
        return f"<ContextEntry({self.type.value}={self.value})>"

    @property
    def key(self) -> tuple[ContextType, str]:
        return self.type, self.value


# Rows are (group, type, keywords, label). Within a group the first row with
# any keyword in the text wins. Groups are independent of each other.
KEYWORD_TABLE: tuple[tuple[str, ContextType, tuple[str, ...], str], ...] = (
    ("cuisine", ContextType.style, ("american",), "American"),
    ("cuisine", ContextType.style, ("mexican",), "Mexican"),
    ("cuisine", ContextType.style, ("italian",), "Italian"),
    ("cuisine", ContextType.style, ("asian",), "Asian"),
    ("cuisine", ContextType.style, ("indian",), "Indian"),
    ("cuisine", ContextType.style, ("french",), "French"),
    ("cuisine", ContextType.style, ("mediterranean",), "Mediterranean"),
    ("cuisine", ContextType.style, ("thai",), "Thai"),
    ("cuisine", ContextType.style, ("chinese",), "Chinese"),
    ("cuisine", ContextType.style, ("japanese",), "Japanese"),
    ("cuisine", ContextType.style, ("korean",), "Korean"),
    ("cuisine", ContextType.style, ("greek",), "Greek"),
    ("cuisine", ContextType.style, ("spanish",), "Spanish"),
    ("cuisine", ContextType.style, ("middle eastern",), "Middle Eastern"),
    ("cuisine", ContextType.style, ("caribbean",), "Caribbean"),
    ("cuisine", ContextType.style, ("southern",), "Southern"),
    ("cuisine", ContextType.style, ("cajun",), "Cajun"),
    ("cuisine", ContextType.style, ("tex-mex",), "Tex-Mex"),
    ("cuisine", ContextType.style, ("fusion",), "Fusion"),
    ("method", ContextType.style, ("grilled", "grill"), "Grilled"),
    ("method", ContextType.style, ("roasted", "roast"), "Roasted"),
    ("method", ContextType.style, ("fried", "fry"), "Fried"),
    ("method", ContextType.style, ("baked", "bake"), "Baked"),
    ("method", ContextType.style, ("steamed", "steam"), "Steamed"),
    ("method", ContextType.style, ("braised", "braise"), "Braised"),
    ("method", ContextType.style, ("sautéed", "sauté", "sauteed", "saute"), "Sautéed"),
    ("dietary", ContextType.dietary, ("healthier", "healthy", "health"), "Healthy"),
    ("dietary", ContextType.dietary, ("vegetarian", "veggie"), "Vegetarian"),
    ("dietary", ContextType.dietary, ("vegan",), "Vegan"),
    ("dietary", ContextType.dietary, ("gluten-free", "gluten free"), "Gluten-Free"),
    ("dietary", ContextType.dietary, ("dairy-free", "dairy free"), "Dairy-Free"),
    ("dietary", ContextType.dietary, ("keto", "ketogenic"), "Keto"),
    ("dietary", ContextType.dietary, ("paleo",), "Paleo"),
    ("dietary", ContextType.dietary, ("low-carb", "low carb"), "Low-Carb"),
    ("dietary", ContextType.dietary, ("low-fat", "low fat"), "Low-Fat"),
    ("dietary", ContextType.dietary, ("high-protein", "high protein"), "High-Protein"),
    ("ingredient", ContextType.ingredient, ("extra spicy", "very spicy"), "Extra Spicy"),
    ("ingredient", ContextType.ingredient, ("not spicy", "mild"), "Mild"),
    ("ingredient", ContextType.ingredient, ("spicy", "spice", "hot"), "Spicy"),
    ("ingredient", ContextType.ingredient, ("cheese", "cheesy"), "Cheese"),
    ("ingredient", ContextType.ingredient, ("garlic", "garlicky"), "Garlic"),
    ("ingredient", ContextType.ingredient, ("herbs", "herby"), "Herbs"),
    ("ingredient", ContextType.ingredient, ("citrus", "lemon", "lime"), "Citrus"),
    ("ingredient", ContextType.ingredient, ("nuts", "nutty"), "Nuts"),
    ("ingredient", ContextType.ingredient, ("seafood", "fish"), "Seafood"),
    ("ingredient", ContextType.ingredient, ("vegetables", "veggies"), "Vegetables"),
    ("dish", ContextType.dish_type, ("soup", "soupy"), "Soup"),
    ("dish", ContextType.dish_type, ("salad", "salady"), "Salad"),
    ("dish", ContextType.dish_type, ("sandwich", "wrap"), "Sandwich"),
    ("dish", ContextType.dish_type, ("pasta", "noodles"), "Pasta"),
    ("dish", ContextType.dish_type, ("rice",), "Rice"),
    ("dish", ContextType.dish_type, ("pizza",), "Pizza"),
    ("dish", ContextType.dish_type, ("burger",), "Burger"),
    ("dish", ContextType.dish_type, ("taco",), "Taco"),
    ("dish", ContextType.dish_type, ("bowl",), "Bowl"),
    ("dish", ContextType.dish_type, ("skillet",), "Skillet"),
)

STOP_WORDS = frozenset(
    (
        "make",
        "this",
        "that",
        "more",
        "less",
        "add",
        "remove",
        "change",
        "modify",
        "style",
        "version",
        "remix",
        "transform",
    )
)


def extract_signals(text: str) -> list[tuple[ContextType, str]]:
    """Typed signals found in `text`, one per keyword group at most."""
    lowered = text.lower()
    matched: dict[str, tuple[ContextType, str]] = {}
    for group, type, keywords, label in KEYWORD_TABLE:
        if group in matched:
            continue
        if any(k in lowered for k in keywords):
            matched[group] = (type, label)
    return list(matched.values())


def first_content_word(text: str) -> str | None:
    for word in text.split():
        if len(word) > 3 and word.lower() not in STOP_WORDS:
            return word
    return None


class ConversationContext:
    def __init__(self, preferences: Preferences | None = None) -> None:
        self.preferences = Preferences() if preferences is None else preferences
        self._entries: list[ContextEntry] = []
        self.last_update = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: tuple[ContextType, str]) -> bool:
        return any(e.key == key for e in self._entries)

    @property
    def entries(self) -> tuple[ContextEntry, ...]:
        return tuple(self._entries)

    def _touch(self) -> None:
        self.last_update += 1

    def values(self, type: ContextType) -> list[str]:
        return [e.value for e in self._entries if e.type == type]

    def wanted(self) -> dict[str, list[str]]:
        return {
            "wantedIngredients": self.values(ContextType.ingredient),
            "wantedStyles": self.values(ContextType.style),
            "wantedDishTypes": self.values(ContextType.dish_type),
            "wantedClassicDishes": self.values(ContextType.classic_dish),
            "wantedDietary": self.values(ContextType.dietary),
        }

    def as_text(self) -> str:
        """User words first, then typed values, joined for a regeneration request."""
        words = self.values(ContextType.user_word)
        for type in (
            ContextType.dietary,
            ContextType.cuisine,
            ContextType.classic_dish,
            ContextType.style,
            ContextType.ingredient,
        ):
            words += self.values(type)
        return " ".join(words)

    def add_conversation_preference(self, type: ContextType, value: str) -> bool:
        if (type, value) in self:
            return False
        self._entries.append(ContextEntry(type, value))
        if type in TYPE_CATEGORIES:
            self.preferences.add(TYPE_CATEGORIES[type], value)
        self._touch()
        logger.debug("Added %s=%s to conversation context", type.value, value)
        return True

    def remove_conversation_preference(self, type: ContextType, value: str) -> None:
        self._entries = [e for e in self._entries if e.key != (type, value)]
        if type in TYPE_CATEGORIES:
            self.preferences.discard(TYPE_CATEGORIES[type], value)
        self._touch()

    def update_preferences(self, values: Mapping[str, Iterable[str]]) -> None:
        self.preferences.merge(values)
        provided = [Category(k) for k in values]
        replaced = {CATEGORY_TYPES[c] for c in provided}
        if not replaced:
            return

        kept: list[ContextEntry] = []
        for entry in self._entries:
            if entry.type in replaced:
                category = TYPE_CATEGORIES[entry.type]
                if entry.value not in self.preferences[category]:
                    continue
            kept.append(entry)

        present = {e.key for e in kept}
        for category in provided:
            type = CATEGORY_TYPES[category]
            for value in self.preferences[category]:
                if (type, value) not in present:
                    kept.append(ContextEntry(type, value))
                    present.add((type, value))

        self._entries = kept
        self._touch()

    def update_preferences_only(self, values: Mapping[str, Iterable[str]]) -> None:
        self.preferences.merge(values)
        self._touch()

    def absorb(self, text: str) -> list[ContextEntry]:
        """Record the signals in a free-text instruction.

        Falls back to the first content word when nothing in the table matches.
        """
        signals = extract_signals(text)
        if not signals:
            word = first_content_word(text)
            if word is not None:
                signals = [(ContextType.user_word, word)]
        added: list[ContextEntry] = []
        for type, value in signals:
            if self.add_conversation_preference(type, value):
                added.append(self._entries[-1])
        return added

    def clear(self) -> None:
        self._entries = []
        self._touch()
