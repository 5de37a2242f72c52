"""Shapes of the JSON the language model is asked to reply with."""

from pydantic import BaseModel, Field

from misotoast.models import Recipe


class RecipeSchema(BaseModel):
    ingredients: list[str] = Field(min_length=1)
    instructions: list[str] = Field(min_length=1)
    nutrition: dict[str, float] = Field(default_factory=dict)
    estimated_time: str = ""

    def to_recipe(self) -> Recipe:
        return Recipe(
            ingredients=self.ingredients,
            instructions=self.instructions,
            nutrition=self.nutrition,
            estimated_time=self.estimated_time,
        )


class DishDraftSchema(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    recipe: RecipeSchema | None = None


class VersionResponse(BaseModel):
    """Reply to a modify, remix or fuse request."""

    recipe: RecipeSchema
    summary: str = ""
    is_transformative: bool = True
    title: str | None = None
    description: str | None = None
    new_image_url: str | None = None
