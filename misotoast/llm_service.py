import logging
from typing import Any, Mapping

import openai
from pydantic import ValidationError

from misotoast.aopenai import openai_client_factory, quick_chat, strip_fences
from misotoast.config import Config
from misotoast.errors import ImageUnavailable, RecipeUnavailable
from misotoast.models import Dish, GenerationRequest, Recipe
from misotoast.parsing import DishDraft, RawText, TextResult
from misotoast.prompts import (
    FUSE_GUIDANCE,
    MODIFY_GUIDANCE,
    REMIX_GUIDANCE,
    describe,
    dish_prompt,
    recipe_prompt,
    version_prompt,
)
from misotoast.schemas import DishDraftSchema, RecipeSchema, VersionResponse


logger = logging.getLogger(__name__)


def _dish_summary(dish: Dish) -> dict[str, Any]:
    data = dish.to_dict()
    return {k: data[k] for k in ("title", "description", "recipe", "preferences")}


class LLMService:
    """The backend services a `Kitchen` talks to, on top of OpenAI."""

    def __init__(
        self,
        openai_client: openai.AsyncClient | None = None,
        config: Config | None = None,
    ) -> None:
        self.config = Config() if config is None else config
        self.openai_client = (
            openai_client_factory() if openai_client is None else openai_client
        )

    async def qa(self, q: str, *, system: str | None = None) -> str:
        return await quick_chat(
            q,
            system=system,
            openai_client=self.openai_client,
            model=self.config.core_model,
        )

    async def generate_dish_text(self, request: GenerationRequest) -> TextResult:
        ans = await self.qa(f"Preferences: {describe(request.to_dict())}", system=dish_prompt())
        try:
            draft = DishDraftSchema.model_validate_json(strip_fences(ans))
        except ValidationError:
            logger.info("Dish reply was not JSON, handing back raw text")
            return RawText(ans)
        return DishDraft(
            title=draft.title,
            description=draft.description,
            recipe=None if draft.recipe is None else draft.recipe.to_recipe(),
        )

    async def generate_image(self, prompt: str) -> str:
        try:
            resp = await self.openai_client.images.generate(
                model=self.config.image_model,
                prompt=f"{prompt} A beautiful food photograph.",
                size=self.config.image_size,  # pyright: ignore[reportArgumentType]
                n=1,
            )
        except openai.OpenAIError as e:
            raise ImageUnavailable(str(e)) from e
        if not resp.data:
            return ""
        return resp.data[0].url or ""

    async def _recipe(self, title: str, *, detailed: bool) -> Recipe:
        ans = await self.qa(f"Dish: {title}", system=recipe_prompt(detailed=detailed))
        try:
            return RecipeSchema.model_validate_json(strip_fences(ans)).to_recipe()
        except ValidationError as e:
            raise RecipeUnavailable(f"Unusable recipe for {title}") from e

    async def get_recipe_info(self, title: str) -> Recipe:
        return await self._recipe(title, detailed=False)

    async def cook_dish(self, title: str) -> Recipe:
        return await self._recipe(title, detailed=True)

    async def _version(self, guidance: str, payload: Mapping[str, Any]) -> VersionResponse:
        ans = await self.qa(describe(payload), system=version_prompt(guidance))
        return VersionResponse.model_validate_json(strip_fences(ans))

    async def modify_recipe(self, dish: Dish, instruction: str) -> VersionResponse:
        return await self._version(
            MODIFY_GUIDANCE,
            {"dish": _dish_summary(dish), "modification": instruction},
        )

    async def remix_dish(
        self,
        dish: Dish,
        request: str,
        preferences: Mapping[str, Any] | None = None,
    ) -> VersionResponse:
        resp = await self._version(
            REMIX_GUIDANCE,
            {
                "dish": _dish_summary(dish),
                "request": request,
                "preferences": dict(preferences or {}),
            },
        )
        resp.is_transformative = True
        return resp

    async def fuse_dish(self, dish: Dish, instruction: str) -> VersionResponse:
        resp = await self._version(
            FUSE_GUIDANCE,
            {"dish": _dish_summary(dish), "modification": instruction},
        )
        resp.is_transformative = True
        return resp
