from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Self
import uuid

from misotoast.preferences import Category, Snapshot


DEFAULT_TITLE = "Generated Dish"
DEFAULT_DESCRIPTION = "A delicious dish generated just for you."


def new_id() -> str:
    return uuid.uuid4().hex


def now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str | datetime | None) -> datetime:
    if value is None:
        return now()
    if isinstance(value, datetime):
        return value
    # Older entries were written with a trailing "Z".
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class Recipe:
    def __init__(
        self,
        *,
        ingredients: list[str] | None = None,
        instructions: list[str] | None = None,
        nutrition: dict[str, float] | None = None,
        estimated_time: str = "",
    ) -> None:
        self.ingredients = [] if ingredients is None else ingredients
        self.instructions = [] if instructions is None else instructions
        self.nutrition = {} if nutrition is None else nutrition
        self.estimated_time = estimated_time

    @classmethod
    def fallback(cls) -> Self:
        return cls(
            ingredients=["ingredient 1", "ingredient 2", "ingredient 3"],
            instructions=[
                "Step 1: Prepare ingredients",
                "Step 2: Cook according to taste",
                "Step 3: Serve hot",
            ],
            nutrition={
                "calories": 300,
                "protein": 25,
                "carbs": 30,
                "fat": 12,
                "fiber": 5,
                "sugar": 8,
                "sodium": 400,
            },
            estimated_time="30 minutes",
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        return cls(
            ingredients=[str(i) for i in data.get("ingredients") or []],
            instructions=[str(i) for i in data.get("instructions") or []],
            nutrition=dict(data.get("nutrition") or {}),
            estimated_time=str(data.get("estimated_time") or ""),
        )

    def __repr__(self) -> str:
        return (
            f"<Recipe(ingredients={len(self.ingredients)}, "
            f"instructions={len(self.instructions)})>"
        )

    @property
    def is_complete(self) -> bool:
        return bool(self.ingredients)

    def update(self, changes: Mapping[str, Any]) -> None:
        for key in ("ingredients", "instructions", "nutrition", "estimated_time"):
            if key in changes:
                setattr(self, key, changes[key])

    @property
    def markdown(self) -> str:
        lines: list[str] = []
        if self.estimated_time:
            lines += [f"⏰ Preparation time: {self.estimated_time}", ""]
        lines += ["#### 📝 Ingredients", ""]
        lines += [f"- {i}" for i in self.ingredients]
        lines += ["", "#### ✅ Instructions", ""]
        lines += [f"{n}. {step}" for n, step in enumerate(self.instructions, 1)]
        if self.nutrition:
            lines += ["", "#### 📊 Nutrition", ""]
            lines += [f"- {k}: {v}" for k, v in self.nutrition.items()]
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "ingredients": list(self.ingredients),
            "instructions": list(self.instructions),
            "nutrition": dict(self.nutrition),
        }
        if self.estimated_time:
            data["estimated_time"] = self.estimated_time
        return data


class ModificationType(Enum):
    none = "none"
    transformative = "transformative"
    minor = "minor"
    remix = "remix"
    fusion = "fusion"


class Dish:
    """One version of a dish.

    `image` and `recipe` are filled in place by background completions,
    everything else is fixed once the dish is published.
    """

    def __init__(
        self,
        *,
        id: str,
        title: str,
        description: str,
        image: str = "",
        recipe: Recipe | None = None,
        timestamp: datetime | None = None,
        modification_type: ModificationType = ModificationType.none,
        original_dish_id: str | None = None,
        preferences: Snapshot | None = None,
        chat_context: str = "",
    ) -> None:
        self.id = id
        self.title = title.strip() or DEFAULT_TITLE
        self.description = description.strip() or DEFAULT_DESCRIPTION
        self.image = image
        self.recipe = recipe
        self.timestamp = now() if timestamp is None else timestamp
        self.modification_type = modification_type
        self.original_dish_id = original_dish_id
        self._preferences: Snapshot = dict(preferences or {})
        self.chat_context = chat_context

    def __repr__(self) -> str:
        return f"<Dish(id={self.id}, title={self.title})>"

    @property
    def preferences(self) -> Mapping[str, tuple[str, ...]]:
        return MappingProxyType(self._preferences)

    @property
    def image_prompt(self) -> str:
        return f"{self.title}. {self.description}"

    def derive(
        self,
        *,
        modification_type: ModificationType,
        title: str | None = None,
        description: str | None = None,
        image: str | None = None,
        recipe: Recipe | None = None,
    ) -> "Dish":
        """A new version of this dish with a fresh id pointing back here."""
        if recipe is None and self.recipe is not None:
            recipe = Recipe.from_dict(self.recipe.to_dict())
        return Dish(
            id=new_id(),
            title=title or self.title,
            description=description or self.description,
            image=self.image if image is None else image,
            recipe=recipe,
            modification_type=modification_type,
            original_dish_id=self.id,
            preferences=self._preferences,
            chat_context=self.chat_context,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Self:
        recipe = data.get("recipe")
        preferences = data.get("preferences") or {}
        return cls(
            id=str(data["id"]),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            image=str(data.get("image") or ""),
            recipe=Recipe.from_dict(recipe) if recipe else None,
            timestamp=parse_timestamp(data.get("timestamp")),
            modification_type=ModificationType(
                data.get("modificationType") or ModificationType.none.value
            ),
            original_dish_id=data.get("originalDishId"),
            preferences={k: tuple(v) for k, v in preferences.items()},
            chat_context=str(data.get("chatContext") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "image": self.image,
            "recipe": None if self.recipe is None else self.recipe.to_dict(),
            "timestamp": self.timestamp.isoformat(),
            "modificationType": self.modification_type.value,
            "originalDishId": self.original_dish_id,
            "preferences": {k: list(v) for k, v in self._preferences.items()},
            "chatContext": self.chat_context,
        }


class ChatMessage:
    def __init__(self, *, text: str, is_user: bool) -> None:
        self.id = new_id()
        self.text = text
        self.is_user = is_user
        self.timestamp = now()

    def __repr__(self) -> str:
        who = "user" if self.is_user else "chef"
        return f"<ChatMessage({who}: {self.text[:30]})>"


class GenerationRequest:
    """What is sent to the text service to draft a dish.

    With nothing asked for at all the request is sent as the unconstrained
    flag, which the service reads as "anything goes".
    """

    def __init__(
        self,
        *,
        preferences: Mapping[str, tuple[str, ...] | list[str]] | None = None,
        wanted: Mapping[str, list[str]] | None = None,
        specific_dish: str | None = None,
        chat_context: str | None = None,
        dish: str | None = None,
    ) -> None:
        self.preferences = {c.value: list((preferences or {}).get(c.value, [])) for c in Category}
        self.wanted = {k: list(v) for k, v in (wanted or {}).items()}
        self.specific_dish = specific_dish
        self.chat_context = chat_context
        self.dish = dish

    @property
    def is_unconstrained(self) -> bool:
        return not any(self.preferences.values()) and not any(self.wanted.values())

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = (
            {"random": True}
            if self.is_unconstrained
            else {**self.preferences, **self.wanted}
        )
        if self.specific_dish:
            data["specificDish"] = self.specific_dish
        if self.chat_context:
            data["chatContext"] = self.chat_context
        if self.dish:
            data["dish"] = self.dish
        return data
