"""Artifact generation: text first, then image and recipe in the background.

A dish is published as soon as its text is in. Image and recipe requests
carry the dish `id` they were launched for and write back only to that dish.
Timeouts stop the waiting, not the request: a late image is still applied
to its own dish if that dish is still around.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Coroutine, Iterable, Mapping, Protocol, TypeAlias

from misotoast import chef
from misotoast.config import Config
from misotoast.context import ConversationContext
from misotoast.errors import PreferenceConflict
from misotoast.models import (
    DEFAULT_DESCRIPTION,
    DEFAULT_TITLE,
    Dish,
    GenerationRequest,
    Recipe,
    new_id,
)
from misotoast.parsing import DishDraft, TextResult, resolve
from misotoast.preferences import Category
from misotoast.state import DishState


logger = logging.getLogger(__name__)


Persist: TypeAlias = Callable[[], Awaitable[None]]


class DishServices(Protocol):
    async def generate_dish_text(self, request: GenerationRequest) -> TextResult: ...

    async def generate_image(self, prompt: str) -> str: ...

    async def get_recipe_info(self, title: str) -> Recipe: ...

    async def cook_dish(self, title: str) -> Recipe: ...


class DishPipeline:
    def __init__(
        self,
        *,
        state: DishState,
        context: ConversationContext,
        llm: DishServices,
        persist: Persist,
        config: Config | None = None,
    ) -> None:
        self.state = state
        self.context = context
        self.llm = llm
        self.persist = persist
        self.config = Config() if config is None else config
        self._tasks: set[asyncio.Task[Any]] = set()

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def settle(self) -> None:
        """Wait for every background completion, including ones they start."""
        while self._tasks:
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, BaseException):
                    logger.warning("Background task failed: %r", result)

    def build_request(
        self,
        override: Mapping[str, Iterable[str]] | None = None,
        *,
        include_context: bool = True,
        specific_dish: str | None = None,
        chat_context: str | None = None,
        dish: str | None = None,
    ) -> GenerationRequest:
        preferences = self.context.preferences.to_dict()
        for key, values in (override or {}).items():
            preferences[key] = list(values)
        return GenerationRequest(
            preferences=preferences,
            wanted=self.context.wanted() if include_context else None,
            specific_dish=specific_dish,
            chat_context=chat_context,
            dish=dish,
        )

    async def _draft(
        self,
        request: GenerationRequest,
        *,
        default_title: str = DEFAULT_TITLE,
        default_description: str = DEFAULT_DESCRIPTION,
    ) -> DishDraft:
        self.state.last_error = None
        self.state.is_generating_dish = True
        # Nothing stale is shown while the new dish is drafted.
        self.state.current = None
        try:
            result = await self.llm.generate_dish_text(request)
            return resolve(
                result,
                default_title=default_title,
                default_description=default_description,
            )
        except Exception as e:
            self.state.last_error = str(e)
            logger.warning("Dish generation failed: %s", e)
            raise
        finally:
            self.state.is_generating_dish = False

    def _publish(
        self,
        draft: DishDraft,
        request: GenerationRequest,
        *,
        chat_context: str,
        image_prompt: str | None = None,
    ) -> Dish:
        recipe = Recipe() if draft.recipe is None else draft.recipe
        dish = Dish(
            id=new_id(),
            title=draft.title,
            description=draft.description,
            recipe=recipe,
            preferences={k: tuple(v) for k, v in request.preferences.items()},
            chat_context=chat_context,
        )
        self.state.publish(dish)
        logger.info("Published %s", dish)

        self.illustrate(dish, prompt=image_prompt)
        if self.config.enrich_recipe_on_create and not recipe.is_complete:
            self._spawn(self.enrich_recipe(dish.id, dish.title))
        return dish

    async def create(
        self,
        override: Mapping[str, Iterable[str]] | None = None,
    ) -> Dish:
        request = self.build_request(override)
        if request.is_unconstrained:
            logger.info("Nothing asked for, requesting an unconstrained dish")
        draft = await self._draft(request)
        return self._publish(draft, request, chat_context=self.context.as_text())

    async def regenerate_with_context(self, dish: Dish | None = None) -> Dish:
        """A new dish from the conversation as it stands now.

        The `chat_context` stored on `dish` is stale and is not used. Only the
        dish's preference snapshot carries over.
        """
        text = self.context.as_text()
        if not text:
            return await self.create()

        override = None if dish is None else dict(dish.preferences)
        request = self.build_request(override, dish=text)
        draft = await self._draft(
            request,
            default_title=f"{text} Dish",
            default_description=f"A dish inspired by {text}.",
        )
        return self._publish(draft, request, chat_context=text)

    async def generate_specific(
        self,
        name: str,
        chat_context: str | None = None,
        override: Mapping[str, Iterable[str]] | None = None,
    ) -> Dish:
        request = self.build_request(
            override,
            include_context=False,
            specific_dish=name,
            chat_context=chat_context,
        )
        rule = chef.find_conflict(name, request.preferences[Category.dietary.value])
        if rule is not None:
            conflict = PreferenceConflict(rule.name, rule.suggestion)
            self.state.last_error = str(conflict)
            logger.info("%r conflicts with %s", name, rule)
            raise conflict

        draft = await self._draft(
            request,
            default_title=name[:1].upper() + name[1:],
            default_description=chef.describe_specific(name, chat_context),
        )
        return self._publish(
            draft,
            request,
            chat_context=chat_context or self.context.as_text(),
            image_prompt=chat_context or name,
        )

    def illustrate(self, dish: Dish, *, prompt: str | None = None) -> asyncio.Task[Any]:
        """Start the image request for `dish` in the background."""
        self.state.illustrating.add(dish.id)
        return self._spawn(self._illustrate(dish.id, prompt or dish.image_prompt))

    def _apply_image(self, dish_id: str, request: asyncio.Future[str]) -> bool:
        try:
            url = request.result().strip()
        except Exception as e:
            logger.warning("Could not illustrate %s: %s", dish_id, e)
            return False
        if not url:
            logger.warning("Image service returned nothing for %s", dish_id)
            return False
        dish = self.state.find(dish_id)
        if dish is None:
            logger.info("Dropping image for %s, the dish is gone", dish_id)
            return False
        dish.image = url
        return True

    async def _illustrate(self, dish_id: str, prompt: str) -> None:
        request = asyncio.ensure_future(self.llm.generate_image(prompt))
        try:
            done, _ = await asyncio.wait({request}, timeout=self.config.image_timeout)
            if done:
                self._apply_image(dish_id, request)
            else:
                logger.warning(
                    "Image for %s timed out after %ss", dish_id, self.config.image_timeout
                )
                self._spawn(self._apply_late_image(dish_id, request))
        finally:
            self.state.illustrating.discard(dish_id)

        dish = self.state.find(dish_id)
        if dish is not None:
            self.state.commit(dish)
            await self.persist()

    async def _apply_late_image(self, dish_id: str, request: asyncio.Future[str]) -> None:
        await asyncio.wait({request})
        if self._apply_image(dish_id, request):
            logger.info("Applied late image to %s", dish_id)
            await self.persist()

    async def _install_recipe(
        self,
        dish_id: str,
        title: str,
        fetch: Callable[[str], Awaitable[Recipe]],
        *,
        replace: bool,
    ) -> Recipe:
        """Fetch and install a recipe on the dish `dish_id`.

        A complete recipe already on the dish is only replaced by a fetched
        one, and only when `replace` is set. The fallback never replaces it.
        """
        recipe: Recipe | None
        try:
            recipe = await fetch(title)
        except Exception as e:
            logger.warning("Recipe for %r unavailable: %s", title, e)
            recipe = None

        dish = self.state.find(dish_id)
        if dish is None:
            logger.info("Dropping recipe for %s, the dish is gone", dish_id)
            return Recipe.fallback() if recipe is None else recipe
        current = dish.recipe
        if current is not None and current.is_complete and (recipe is None or not replace):
            logger.info("Keeping the recipe already on %s", dish_id)
            return current
        if recipe is None:
            logger.info("Using the fallback recipe for %s", dish_id)
            recipe = Recipe.fallback()
        dish.recipe = recipe
        if self.state.is_committed(dish_id):
            await self.persist()
        return recipe

    async def enrich_recipe(self, dish_id: str, title: str) -> Recipe:
        return await self._install_recipe(
            dish_id, title, self.llm.get_recipe_info, replace=False
        )

    async def cook(self, dish_id: str, title: str) -> Recipe:
        """Fetch the detailed recipe for a dish."""
        self.state.is_generating_recipe = True
        try:
            return await self._install_recipe(
                dish_id, title, self.llm.cook_dish, replace=True
            )
        finally:
            self.state.is_generating_recipe = False
