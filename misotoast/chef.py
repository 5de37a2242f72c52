"""The chef's side of the chat.

Replies are picked from keyword tables, not inferred. Everything can be
mixed with everything, except what the user's diet rules out.
"""

import re
from typing import Iterable, TypeAlias

from misotoast.preferences import Preferences


Keywords: TypeAlias = tuple[str, ...]


CUISINE_KEYWORDS: dict[str, Keywords] = {
    "Italian": ("pasta", "pizza", "risotto", "italian", "carbonara", "pomodoro", "bolognese", "parmesan", "basil", "oregano"),
    "Japanese": ("sushi", "ramen", "japanese", "asian", "miso", "dashi", "nori", "wasabi", "ginger", "soy sauce"),
    "Mexican": ("taco", "burrito", "mexican", "salsa", "guacamole", "jalapeño", "cilantro", "lime", "corn", "beans"),
    "Indian": ("curry", "indian", "spice", "masala", "tikka", "biryani", "naan", "cardamom", "cumin", "turmeric"),
    "French": ("french", "bistro", "sauce", "beurre", "wine", "shallot", "herbs", "dijon", "béchamel"),
    "Thai": ("thai", "pad thai", "curry", "lemongrass", "fish sauce", "coconut milk", "lime", "basil", "chili"),
    "Mediterranean": ("mediterranean", "feta", "olive", "za'atar", "hummus", "tahini", "eggplant", "cucumber", "tomato", "pita"),
}

CLASSIC_DISH_KEYWORDS: dict[str, Keywords] = {
    "Pasta Carbonara": ("carbonara", "pasta", "eggs", "bacon", "pecorino"),
    "Margherita Pizza": ("pizza", "margherita", "mozzarella", "tomato", "basil"),
    "Risotto Milanese": ("risotto", "milanese", "saffron", "rice", "parmesan"),
    "Osso Buco": ("osso buco", "veal", "braised", "gremolata", "white wine"),
    "Tiramisu": ("tiramisu", "dessert", "coffee", "mascarpone", "ladyfingers"),
    "Sushi Roll": ("sushi", "roll", "fish", "rice", "nori"),
    "Ramen Bowl": ("ramen", "noodles", "broth", "egg", "pork"),
    "Taco": ("taco", "tortilla", "meat", "vegetables", "salsa"),
    "Burrito": ("burrito", "wrap", "beans", "rice", "guacamole"),
    "Curry": ("curry", "spices", "sauce", "rice", "naan"),
    "Biryani": ("biryani", "rice", "spices", "meat", "saffron"),
    "Coq au Vin": ("coq au vin", "chicken", "wine", "bacon", "mushrooms"),
    "Beef Bourguignon": ("beef bourguignon", "beef", "wine", "vegetables", "braised"),
    "Pad Thai": ("pad thai", "noodles", "shrimp", "peanuts", "tamarind"),
    "Green Curry": ("green curry", "coconut", "vegetables", "spicy", "thai"),
}


class DietRule:
    def __init__(
        self,
        *,
        label: str,
        pattern: str,
        suggestion: str,
        advice: str,
    ) -> None:
        self.label = label
        self.pattern = re.compile(pattern)
        self.suggestion = suggestion
        self.advice = advice

    def __repr__(self) -> str:
        return f"<DietRule({self.label})>"

    @property
    def name(self) -> str:
        return self.label.lower()

    def conflicts(self, text: str) -> bool:
        return self.pattern.search(text.lower()) is not None


# Checked in order, the first conflicting rule is reported.
DIET_RULES: tuple[DietRule, ...] = (
    DietRule(
        label="Diabetic-Friendly",
        pattern=r"sugar|sweet|dessert",
        suggestion="diabetic-friendly alternatives",
        advice=(
            "Since you have diabetic-friendly preferences, I suggest using natural "
            "sweeteners like stevia, erythritol, or monk fruit instead of sugar. "
            "Want to see a diabetic-friendly version?"
        ),
    ),
    DietRule(
        label="Vegan",
        pattern=r"meat|chicken|beef|fish|dairy|cheese|eggs|milk",
        suggestion="plant-based alternatives",
        advice=(
            "You're vegan, so I'll suggest plant-based alternatives (like tofu for "
            "meat, or plant milk for dairy). Want a vegan version?"
        ),
    ),
    DietRule(
        label="Vegetarian",
        pattern=r"meat|chicken|beef|fish|pork",
        suggestion="vegetarian alternatives",
        advice=(
            "You're vegetarian, so I'll suggest plant-based alternatives for meat. "
            "Want a vegetarian version?"
        ),
    ),
    DietRule(
        label="Gluten-Free",
        pattern=r"pasta|bread|flour|wheat|gluten",
        suggestion="gluten-free alternatives",
        advice=(
            "You're gluten-free, so I'll suggest alternatives like rice, quinoa, or "
            "gluten-free pasta. Want a gluten-free version?"
        ),
    ),
    DietRule(
        label="Keto",
        pattern=r"pasta|rice|bread|potato|sugar|carb",
        suggestion="low-carb alternatives",
        advice=(
            "You're keto, so I'll suggest low-carb alternatives like cauliflower rice "
            "or zucchini noodles. Want a keto version?"
        ),
    ),
)

DEFAULT_REPLY = (
    "Tell me what you're craving, and I'll mix up something special "
    "using your preferences!"
)

# Context words folded into the description of a specific dish.
DETAIL_WORDS: Keywords = (
    "creamy",
    "spicy",
    "fresh",
    "traditional",
    "modern",
    "authentic",
    "homemade",
    "gourmet",
)
INGREDIENT_WORDS: Keywords = (
    "pancetta",
    "parmesan",
    "black pepper",
    "basil",
    "garlic",
    "olive oil",
    "tomato",
    "mushroom",
    "chicken",
    "seafood",
)


def find_conflict(text: str, dietary: Iterable[str]) -> DietRule | None:
    """The first active dietary rule `text` breaks, if any."""
    active = set(dietary)
    for rule in DIET_RULES:
        if rule.label in active and rule.conflicts(text):
            return rule
    return None


def _matches(message: str, table: dict[str, Keywords]) -> list[str]:
    return [name for name, keywords in table.items() if any(k in message for k in keywords)]


def _diet_text(diets: Iterable[str]) -> str:
    return " and ".join(diets).lower()


def reply(message: str, preferences: Preferences) -> str:
    message = message.lower()
    cuisines = preferences.cuisines
    diets = preferences.dietary

    rule = find_conflict(message, diets)
    if rule is not None:
        return rule.advice

    classics = _matches(message, CLASSIC_DISH_KEYWORDS)
    if classics:
        dish = classics[0]
        if cuisines and cuisines[0].lower() not in dish.lower():
            text = f"Let's make a {cuisines[0]}-inspired {dish}!"
        else:
            text = f"Let's make a creative take on {dish}!"
        if diets:
            text += f" I'll also make sure it's {_diet_text(diets)}."
        return f"{text} Would you like to see the recipe?"

    matched = _matches(message, CUISINE_KEYWORDS)
    if matched:
        diet = f" and make it {_diet_text(diets)}" if diets else ""
        return (
            f"Let's create a unique {matched[0]} dish{diet}! "
            "What main ingredient would you like to use?"
        )

    if preferences.classic_dishes:
        favourite = preferences.classic_dishes[0]
        if cuisines:
            text = f"How about a {cuisines[0]}-inspired version of your favorite, {favourite}?"
        else:
            text = f"How about a creative version of your favorite, {favourite}?"
        if diets:
            text += f" I'll make it {_diet_text(diets)}."
        return f"{text} Want to see the recipe?"

    if cuisines and diets:
        return (
            f"Let's invent a new dish that's both {' and '.join(cuisines)} and "
            f"{_diet_text(diets)}! What are you in the mood for?"
        )
    if cuisines:
        return f"What kind of {cuisines[0]} dish are you craving?"
    if diets:
        return (
            f"Let's come up with a delicious recipe that's {_diet_text(diets)}. "
            "Any cuisine or dish in mind?"
        )

    if any(k in message for k in ("quick", "fast", "30 minute")):
        return "I can suggest some quick 30-minute recipes! What ingredients do you have on hand?"
    if "healthy" in message or "low calorie" in message:
        return (
            "I can help you find healthy, low-calorie options. "
            "What type of cuisine or ingredients do you prefer?"
        )
    if "ingredient" in message or "substitute" in message:
        return "I can help you find ingredient substitutes! What ingredient are you looking to replace?"

    return DEFAULT_REPLY


def describe_specific(name: str, chat_context: str | None) -> str:
    """Fallback description for a named dish, enriched from the chat."""
    text = (chat_context or "").lower()
    details = [w for w in DETAIL_WORDS if w in text]
    ingredients = [w for w in INGREDIENT_WORDS if w in text]
    if not details and not ingredients:
        return f"A delicious {name} recipe"
    description = " ".join(p for p in ("A", ", ".join(details), name) if p)
    if ingredients:
        description += f" with {', '.join(ingredients)}"
    return description
