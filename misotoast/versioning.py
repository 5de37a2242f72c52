import logging
from typing import Any, Awaitable, Callable, Mapping, Protocol

from misotoast.context import ConversationContext
from misotoast.models import Dish, ModificationType
from misotoast.pipeline import DishPipeline, Persist
from misotoast.schemas import VersionResponse
from misotoast.state import DishState


logger = logging.getLogger(__name__)


class VersionServices(Protocol):
    async def modify_recipe(self, dish: Dish, instruction: str) -> VersionResponse: ...

    async def remix_dish(
        self,
        dish: Dish,
        request: str,
        preferences: Mapping[str, Any] | None = None,
    ) -> VersionResponse: ...

    async def fuse_dish(self, dish: Dish, instruction: str) -> VersionResponse: ...


class VersionResult:
    def __init__(self, *, summary: str, dish: Dish) -> None:
        self.summary = summary
        self.dish = dish

    def __repr__(self) -> str:
        return f"<VersionResult(dish={self.dish}, summary={self.summary})>"


class LineageEngine:
    """Branches new versions off a dish.

    The source dish is never changed. Each version gets a new id and points
    back at its source through `original_dish_id`.
    """

    def __init__(
        self,
        *,
        state: DishState,
        context: ConversationContext,
        pipeline: DishPipeline,
        llm: VersionServices,
        persist: Persist,
    ) -> None:
        self.state = state
        self.context = context
        self.pipeline = pipeline
        self.llm = llm
        self.persist = persist

    def _source(self, dish: Dish | None) -> Dish:
        source = self.state.current if dish is None else dish
        if source is None:
            raise ValueError("There is no dish to work from")
        return source

    async def _branch(
        self,
        source: Dish,
        text: str,
        call: Callable[[], Awaitable[VersionResponse]],
        modification_type: Callable[[VersionResponse], ModificationType],
    ) -> VersionResult:
        self.state.last_error = None
        self.state.is_modifying_recipe = True
        try:
            resp = await call()
        except Exception as e:
            self.state.last_error = str(e)
            logger.warning("Could not version %s: %s", source, e)
            raise
        finally:
            self.state.is_modifying_recipe = False

        kind = modification_type(resp)
        keeps_identity = kind == ModificationType.minor
        dish = source.derive(
            modification_type=kind,
            title=None if keeps_identity else resp.title,
            description=None if keeps_identity else resp.description,
            image=resp.new_image_url or None,
            recipe=resp.recipe.to_recipe(),
        )
        self.state.publish(dish)
        self.state.commit(dish)
        logger.info("%s is a %s version of %s", dish, kind.value, source)

        if dish.image == source.image:
            self.pipeline.illustrate(dish)
        await self.persist()

        self.context.absorb(text)
        return VersionResult(summary=resp.summary, dish=dish)

    async def modify(self, instruction: str, dish: Dish | None = None) -> VersionResult:
        source = self._source(dish)
        return await self._branch(
            source,
            instruction,
            lambda: self.llm.modify_recipe(source, instruction),
            lambda resp: (
                ModificationType.transformative
                if resp.is_transformative
                else ModificationType.minor
            ),
        )

    async def remix(
        self,
        request: str,
        dish: Dish | None = None,
        override: Mapping[str, Any] | None = None,
    ) -> VersionResult:
        source = self._source(dish)
        preferences = dict(source.preferences) if override is None else dict(override)
        return await self._branch(
            source,
            request,
            lambda: self.llm.remix_dish(source, request, preferences),
            lambda _: ModificationType.remix,
        )

    async def fuse(self, instruction: str, dish: Dish | None = None) -> VersionResult:
        source = self._source(dish)
        return await self._branch(
            source,
            instruction,
            lambda: self.llm.fuse_dish(source, instruction),
            lambda _: ModificationType.fusion,
        )
