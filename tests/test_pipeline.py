import asyncio

import pytest

from misotoast.config import Config
from misotoast.context import ContextType
from misotoast.errors import (
    REFUSAL_MESSAGE,
    GenerationRefused,
    ImageUnavailable,
    PreferenceConflict,
    RecipeUnavailable,
)
from misotoast.kitchen import Kitchen
from misotoast.models import Recipe
from misotoast.parsing import DishDraft
from misotoast.repository import DurableHistoryStore

from tests.fakes import FakeCache, FakeServices, make_cooked_recipe, make_recipe


@pytest.mark.asyncio
async def test_create_without_preferences_is_unconstrained(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    await kitchen.generate_dish()
    await kitchen.close()

    assert llm.requests[0].to_dict() == {"random": True}


@pytest.mark.asyncio
async def test_create_merges_preferences_override_and_context(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    kitchen.update_preferences({"dietaryRestrictions": ["Vegan"]})
    kitchen.add_conversation_preference(ContextType.dish_type, "Bowl")

    dish = await kitchen.generate_dish({"cuisines": ["Thai"]})
    await kitchen.close()

    sent = llm.requests[0].to_dict()
    assert sent["dietaryRestrictions"] == ["Vegan"]
    assert sent["cuisines"] == ["Thai"]
    assert sent["wantedDishTypes"] == ["Bowl"]
    assert dish.preferences["cuisines"] == ("Thai",)
    # The override is for this request only.
    assert kitchen.preferences.cuisines == ()


@pytest.mark.asyncio
async def test_create_publishes_before_the_image_arrives(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    gate = asyncio.Event()
    llm.image_gates["Dish 1"] = gate

    dish = await kitchen.generate_dish()

    assert kitchen.current_dish is dish
    assert dish.image == ""
    assert kitchen.is_generating_image
    assert not kitchen.is_generating_dish

    gate.set()
    await kitchen.close()

    assert dish.image == "https://img.example/Dish-1.png"
    assert not kitchen.is_generating_image
    assert kitchen.history == [dish]


@pytest.mark.asyncio
async def test_create_parses_raw_text(kitchen: Kitchen, llm: FakeServices) -> None:
    llm.say(
        "Dish Name: Spicy Kimchi Stew\n"
        "Description: A fiery favorite.\n"
        "Main Ingredients: kimchi, pork"
    )
    dish = await kitchen.generate_dish()
    await kitchen.close()

    assert dish.title == "Spicy Kimchi Stew"
    assert dish.description == "A fiery favorite."
    assert llm.image_prompts == ["Spicy Kimchi Stew. A fiery favorite."]


@pytest.mark.asyncio
async def test_refusal_creates_nothing(
    kitchen: Kitchen, llm: FakeServices, cache: FakeCache
) -> None:
    llm.say("I'm sorry, I can't help with that.")

    with pytest.raises(GenerationRefused):
        await kitchen.generate_dish()
    await kitchen.close()

    assert kitchen.current_dish is None
    assert kitchen.history == []
    assert cache.writes == 0
    assert kitchen.last_error == REFUSAL_MESSAGE
    assert not kitchen.is_generating_dish
    assert llm.image_prompts == []


@pytest.mark.asyncio
async def test_late_image_does_not_touch_a_newer_dish(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    gate = asyncio.Event()
    llm.image_gates["Dish 1"] = gate

    first = await kitchen.generate_dish()
    second = await kitchen.generate_dish()
    # Let the second dish's image land first.
    for _ in range(5):
        await asyncio.sleep(0)
    gate.set()
    await kitchen.close()

    assert kitchen.current_dish is second
    assert second.image == "https://img.example/Dish-2.png"
    assert first.image == "https://img.example/Dish-1.png"
    assert [d.id for d in kitchen.history] == [second.id, first.id]


@pytest.mark.asyncio
async def test_image_timeout_is_soft(
    llm: FakeServices, store: DurableHistoryStore, config: Config
) -> None:
    config.image_timeout = 0.01
    kitchen = Kitchen(llm=llm, store=store, config=config)
    gate = asyncio.Event()
    llm.image_gates["Dish 1"] = gate

    dish = await kitchen.generate_dish()
    await asyncio.sleep(0.05)

    assert not kitchen.is_generating_image
    assert dish.image == ""
    # Committed without an image once the wait was abandoned.
    assert kitchen.history == [dish]

    gate.set()
    await kitchen.close()

    assert dish.image == "https://img.example/Dish-1.png"


@pytest.mark.asyncio
async def test_image_failure_is_silent(kitchen: Kitchen, llm: FakeServices) -> None:
    llm.image_error = ImageUnavailable("no pictures today")

    dish = await kitchen.generate_dish()
    await kitchen.close()

    assert dish.image == ""
    assert kitchen.last_error is None
    assert kitchen.history == [dish]


@pytest.mark.asyncio
async def test_recipe_enrichment(kitchen: Kitchen, llm: FakeServices) -> None:
    dish = await kitchen.generate_dish()
    await kitchen.close()

    assert llm.recipe_titles == ["Dish 1"]
    assert dish.recipe is not None
    assert dish.recipe.ingredients == make_recipe("Dish 1").ingredients


@pytest.mark.asyncio
async def test_recipe_failure_installs_fallback(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    llm.recipe_error = RecipeUnavailable("no recipe")

    dish = await kitchen.generate_dish()
    await kitchen.close()

    assert dish.recipe is not None
    assert dish.recipe.to_dict() == Recipe.fallback().to_dict()


@pytest.mark.asyncio
async def test_structured_draft_with_recipe_skips_enrichment(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    llm.say(DishDraft(title="Miso Toast", description="Savoury.", recipe=make_recipe()))

    dish = await kitchen.generate_dish()
    await kitchen.close()

    assert llm.recipe_titles == []
    assert dish.recipe is not None and dish.recipe.is_complete


@pytest.mark.asyncio
async def test_cook_dish_sets_flag_and_recipe(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    llm.say(DishDraft(title="Miso Toast", description="Savoury.", recipe=make_recipe()))
    dish = await kitchen.generate_dish()
    llm.recipe_gate = asyncio.Event()

    task = asyncio.create_task(kitchen.cook_dish())
    await asyncio.sleep(0)
    assert kitchen.is_generating_recipe
    llm.recipe_gate.set()
    await task
    await kitchen.close()

    assert not kitchen.is_generating_recipe
    assert llm.cooked_titles == ["Miso Toast"]
    assert dish.recipe is not None
    assert dish.recipe.ingredients == make_cooked_recipe("Miso Toast").ingredients


@pytest.mark.parametrize("enrichment_fails", (True, False))
@pytest.mark.asyncio
async def test_late_enrichment_keeps_the_cooked_recipe(
    kitchen: Kitchen, llm: FakeServices, enrichment_fails: bool
) -> None:
    llm.enrich_gate = asyncio.Event()
    dish = await kitchen.generate_dish()
    await kitchen.cook_dish()

    if enrichment_fails:
        llm.recipe_error = RecipeUnavailable("too late")
    llm.enrich_gate.set()
    await kitchen.close()

    assert llm.recipe_titles == ["Dish 1"]
    assert dish.recipe is not None
    assert dish.recipe.to_dict() == make_cooked_recipe("Dish 1").to_dict()


@pytest.mark.asyncio
async def test_failed_cook_keeps_a_complete_recipe(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    llm.say(DishDraft(title="Miso Toast", description="Savoury.", recipe=make_recipe()))
    dish = await kitchen.generate_dish()
    llm.recipe_error = RecipeUnavailable("stove broken")

    recipe = await kitchen.cook_dish()
    await kitchen.close()

    assert recipe is dish.recipe
    assert dish.recipe is not None
    assert dish.recipe.to_dict() == make_recipe().to_dict()


@pytest.mark.asyncio
async def test_regenerate_uses_current_context(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    kitchen.add_conversation_preference(ContextType.user_word, "zingy")
    kitchen.add_conversation_preference(ContextType.dietary, "Vegan")
    await kitchen.generate_dish()
    kitchen.add_conversation_preference(ContextType.ingredient, "Garlic")

    dish = await kitchen.regenerate_with_context()
    await kitchen.close()

    assert llm.requests[-1].dish == "zingy Vegan Garlic"
    assert dish.chat_context == "zingy Vegan Garlic"


@pytest.mark.asyncio
async def test_regenerate_with_empty_context_creates(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    await kitchen.regenerate_with_context()
    await kitchen.close()

    assert llm.requests[0].to_dict() == {"random": True}


@pytest.mark.asyncio
async def test_specific_dish_conflict_is_rejected_before_any_call(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    kitchen.update_preferences({"dietaryRestrictions": ["Vegan"]})

    with pytest.raises(PreferenceConflict) as info:
        await kitchen.generate_specific_dish("Chicken Parmesan")

    assert info.value.category == "vegan"
    assert info.value.suggestion == "plant-based alternatives"
    assert kitchen.last_error == str(info.value)
    assert llm.requests == []


@pytest.mark.asyncio
async def test_specific_dish(kitchen: Kitchen, llm: FakeServices) -> None:
    dish = await kitchen.generate_specific_dish(
        "carbonara", chat_context="a creamy carbonara with pancetta"
    )
    await kitchen.close()

    sent = llm.requests[0].to_dict()
    assert sent["random"] is True
    assert sent["specificDish"] == "carbonara"
    assert sent["chatContext"] == "a creamy carbonara with pancetta"
    assert llm.image_prompts == ["a creamy carbonara with pancetta"]
    assert dish.chat_context == "a creamy carbonara with pancetta"
