REFUSAL_MESSAGE = "🥲 Emm... I guess cooking is postponed by a bit, try again soon."


class DishError(Exception):
    pass


class GenerationRefused(DishError):
    """The text service answered with an apology instead of a dish."""

    def __init__(self, text: str = "") -> None:
        super().__init__(REFUSAL_MESSAGE)
        self.text = text


class ImageUnavailable(DishError):
    pass


class RecipeUnavailable(DishError):
    pass


class NetworkUnavailable(DishError):
    pass


class StoreTimeout(NetworkUnavailable):
    pass


class PreferenceConflict(DishError):
    def __init__(self, category: str, suggestion: str) -> None:
        self.category = category
        self.suggestion = suggestion
        super().__init__(
            f"😅 Emm... that dish doesn't fit your {category} preferences. "
            f"Try asking for {suggestion} instead."
        )
