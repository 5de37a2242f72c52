import asyncio

import pytest

from misotoast.context import ContextType
from misotoast.kitchen import Kitchen
from misotoast.models import Dish, ModificationType
from misotoast.parsing import DishDraft

from tests.fakes import FakeServices, make_recipe, make_version


async def served(kitchen: Kitchen, llm: FakeServices) -> Dish:
    llm.say(
        DishDraft(title="Miso Toast", description="Savoury toast.", recipe=make_recipe())
    )
    dish = await kitchen.generate_dish({"cuisines": ["Japanese"]})
    await kitchen.pipeline.settle()
    return dish


@pytest.mark.asyncio
async def test_modify_branches_a_new_version(kitchen: Kitchen, llm: FakeServices) -> None:
    source = await served(kitchen, llm)

    result = await kitchen.modify("make it spicy and vegan")
    await kitchen.close()

    dish = result.dish
    assert dish.id != source.id
    assert dish.original_dish_id == source.id
    assert dish.modification_type == ModificationType.transformative
    assert dish.title == "Spicy Vegan Toast"
    assert dish.preferences == source.preferences
    assert result.summary == "Done!"
    assert (ContextType.ingredient, "Spicy") in kitchen.context
    assert (ContextType.dietary, "Vegan") in kitchen.context
    # The source is kept unchanged behind the new version.
    assert [d.id for d in kitchen.history] == [dish.id, source.id]
    assert source.title == "Miso Toast"
    assert kitchen.current_dish is dish


@pytest.mark.asyncio
async def test_minor_modify_keeps_title(kitchen: Kitchen, llm: FakeServices) -> None:
    source = await served(kitchen, llm)
    llm.version = make_version(is_transformative=False, title="Ignored")

    result = await kitchen.modify("a little less salt")
    await kitchen.close()

    assert result.dish.modification_type == ModificationType.minor
    assert result.dish.title == source.title
    assert result.dish.recipe is not None
    assert result.dish.recipe.ingredients == ["tofu", "chili"]


@pytest.mark.asyncio
async def test_unchanged_image_is_regenerated_for_the_new_id(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    source = await served(kitchen, llm)

    result = await kitchen.modify("make it spicy")
    await kitchen.close()

    assert llm.image_prompts[-1] == "Spicy Vegan Toast. Savoury toast."
    assert result.dish.image == "https://img.example/Spicy-Vegan-Toast.png"
    assert source.image == "https://img.example/Miso-Toast.png"


@pytest.mark.asyncio
async def test_supplied_image_is_used(kitchen: Kitchen, llm: FakeServices) -> None:
    await served(kitchen, llm)
    llm.version = make_version(title="Fusion Toast", new_image_url="https://cdn/f.png")
    prompts = len(llm.image_prompts)

    result = await kitchen.fuse("with tacos")
    await kitchen.close()

    assert result.dish.image == "https://cdn/f.png"
    assert result.dish.modification_type == ModificationType.fusion
    assert len(llm.image_prompts) == prompts


@pytest.mark.asyncio
async def test_remix_sends_source_preferences(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    source = await served(kitchen, llm)

    result = await kitchen.remix("go wild")
    await kitchen.close()

    assert result.dish.modification_type == ModificationType.remix
    assert llm.remix_preferences == dict(source.preferences)
    assert (ContextType.user_word, "wild") in kitchen.context


@pytest.mark.asyncio
async def test_backend_error_propagates_and_resets_flag(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    source = await served(kitchen, llm)
    llm.version_error = RuntimeError("kitchen on fire")

    with pytest.raises(RuntimeError):
        await kitchen.modify("more garlic")
    await kitchen.close()

    assert not kitchen.is_modifying_recipe
    assert kitchen.last_error == "kitchen on fire"
    assert kitchen.history == [source]
    assert len(kitchen.context) == 0


@pytest.mark.asyncio
async def test_modify_without_a_dish(kitchen: Kitchen, llm: FakeServices) -> None:
    with pytest.raises(ValueError):
        await kitchen.modify("anything")
    assert llm.version_calls == []


@pytest.mark.asyncio
async def test_flag_is_set_while_modifying(kitchen: Kitchen, llm: FakeServices) -> None:
    await served(kitchen, llm)
    llm.version_gate = asyncio.Event()

    task = asyncio.create_task(kitchen.modify("more garlic"))
    await asyncio.sleep(0)
    assert kitchen.is_modifying_recipe
    llm.version_gate.set()
    await task
    await kitchen.close()
    assert not kitchen.is_modifying_recipe


@pytest.mark.asyncio
async def test_lineage_walks_back_to_the_root(
    kitchen: Kitchen, llm: FakeServices
) -> None:
    root = await served(kitchen, llm)
    first = (await kitchen.modify("spicy")).dish
    second = (await kitchen.remix("go wild", dish=first)).dish
    await kitchen.close()

    chain = kitchen.lineage(second.id)
    assert [d.id for d in chain] == [second.id, first.id, root.id]
    assert chain[-1].original_dish_id is None
    assert len(chain) <= len(kitchen.history)


@pytest.mark.asyncio
async def test_updating_a_version_leaves_the_source_recipe_alone(kitchen: Kitchen) -> None:
    source = Dish(id="v1", title="Miso Toast", description="Savoury.", recipe=make_recipe())
    version = source.derive(modification_type=ModificationType.minor)
    kitchen.state.replace_history([version, source])
    kitchen.state.current = version

    await kitchen.update_recipe({"estimated_time": "1 hour", "ingredients": ["tofu"]})
    await kitchen.close()

    assert version.recipe is not None
    assert version.recipe.estimated_time == "1 hour"
    assert source.recipe is not None
    assert source.recipe.to_dict() == make_recipe().to_dict()
