import logging
from enum import Enum
from typing import Iterable, Mapping, TypeAlias


logger = logging.getLogger(__name__)


class Category(Enum):
    dietary = "dietaryRestrictions"
    cuisine = "cuisines"
    classic_dish = "classicDishes"
    plate_style = "plateStyles"
    ingredient = "ingredientPreferences"


Snapshot: TypeAlias = dict[str, tuple[str, ...]]


def _unique(values: Iterable[str]) -> list[str]:
    seen: list[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen


class Preferences:
    """The five user-selected label sets.

    Labels are unique within a category. Insertion order is kept for display.
    """

    def __init__(self, values: Mapping[str, Iterable[str]] | None = None) -> None:
        self._values: dict[Category, list[str]] = {c: [] for c in Category}
        if values:
            self.merge(values)

    def __getitem__(self, category: Category) -> tuple[str, ...]:
        return tuple(self._values[category])

    def __repr__(self) -> str:
        parts = ", ".join(f"{c.value}={v}" for c, v in self._values.items() if v)
        return f"<Preferences({parts})>"

    @property
    def dietary(self) -> tuple[str, ...]:
        return self[Category.dietary]

    @property
    def cuisines(self) -> tuple[str, ...]:
        return self[Category.cuisine]

    @property
    def classic_dishes(self) -> tuple[str, ...]:
        return self[Category.classic_dish]

    @property
    def plate_styles(self) -> tuple[str, ...]:
        return self[Category.plate_style]

    @property
    def ingredients(self) -> tuple[str, ...]:
        return self[Category.ingredient]

    def has_preferences(self) -> bool:
        return any(self._values.values())

    def add(self, category: Category, value: str) -> bool:
        """Add a label. Returns False if it is already present."""
        if value in self._values[category]:
            logger.debug("Rejected duplicate %s label %r", category.value, value)
            return False
        self._values[category].append(value)
        return True

    def discard(self, category: Category, value: str) -> bool:
        if value not in self._values[category]:
            return False
        self._values[category].remove(value)
        return True

    def merge(self, values: Mapping[str, Iterable[str]]) -> set[Category]:
        """Overwrite every provided category. Returns the categories that changed."""
        changed: set[Category] = set()
        for key, labels in values.items():
            category = Category(key)
            new = _unique(labels)
            if new != self._values[category]:
                changed.add(category)
            self._values[category] = new
        return changed

    def to_dict(self) -> dict[str, list[str]]:
        return {c.value: list(v) for c, v in self._values.items()}
