"""The mutable state a kitchen session owns.

Every background completion resolves against a dish `id`, never against
`current`. `find` is the only way such a completion gets hold of a dish.
"""

import logging

from misotoast.models import Dish


logger = logging.getLogger(__name__)


class DishState:
    def __init__(self) -> None:
        self.current: Dish | None = None
        self.history: list[Dish] = []
        # Published but not yet committed, keyed by id.
        self.pending: dict[str, Dish] = {}
        self.illustrating: set[str] = set()

        self.is_generating_dish = False
        self.is_modifying_recipe = False
        self.is_generating_recipe = False
        self.is_dish_final = False
        self.last_error: str | None = None

    def __repr__(self) -> str:
        return f"<DishState(current={self.current}, history={len(self.history)})>"

    @property
    def is_generating_image(self) -> bool:
        return self.current is not None and self.current.id in self.illustrating

    def find(self, dish_id: str) -> Dish | None:
        if self.current is not None and self.current.id == dish_id:
            return self.current
        if dish_id in self.pending:
            return self.pending[dish_id]
        for dish in self.history:
            if dish.id == dish_id:
                return dish
        return None

    def publish(self, dish: Dish) -> None:
        """Make `dish` current. It stays findable until committed."""
        self.pending[dish.id] = dish
        self.current = dish
        self.is_dish_final = False

    def is_committed(self, dish_id: str) -> bool:
        return any(d.id == dish_id for d in self.history)

    def commit(self, dish: Dish) -> None:
        """Put `dish` in history, replacing the entry with the same id if any."""
        self.pending.pop(dish.id, None)
        for i, existing in enumerate(self.history):
            if existing.id == dish.id:
                self.history[i] = dish
                return
        # Newest first.
        i = 0
        while i < len(self.history) and self.history[i].timestamp >= dish.timestamp:
            i += 1
        self.history.insert(i, dish)
        logger.debug("Committed %s at position %d", dish, i)

    def replace_history(self, dishes: list[Dish]) -> None:
        seen: set[str] = set()
        history: list[Dish] = []
        for dish in sorted(dishes, key=lambda d: d.timestamp, reverse=True):
            if dish.id in seen:
                continue
            seen.add(dish.id)
            history.append(dish)
        self.history = history

    def lineage(self, dish_id: str) -> list[Dish]:
        """The chain from `dish_id` back to its root, newest first."""
        chain: list[Dish] = []
        visited: set[str] = set()
        dish = self.find(dish_id)
        limit = len(self.history) + len(self.pending) + 1
        while dish is not None and dish.id not in visited and len(chain) < limit:
            chain.append(dish)
            visited.add(dish.id)
            if dish.original_dish_id is None:
                break
            dish = self.find(dish.original_dish_id)
        return chain
