"""The one object a UI layer talks to.

A `Kitchen` owns the preferences, the conversation context, the dish state
and the chat log of a single user session. Every mutation goes through it.
"""

import logging
from typing import Any, Iterable, Mapping, Protocol, Self

from misotoast import chef
from misotoast.config import Config
from misotoast.context import ContextType, ConversationContext
from misotoast.llm_service import LLMService
from misotoast.models import ChatMessage, Dish, Recipe
from misotoast.pipeline import DishPipeline, DishServices
from misotoast.preferences import Category, Preferences
from misotoast.repository import (
    DurableHistoryStore,
    HistoryPolicy,
    HttpDocumentStore,
    HttpReachability,
    SqliteCache,
)
from misotoast.share import (
    parse_share_url,
    share_html,
    share_markdown,
    share_text,
    share_url,
)
from misotoast.state import DishState
from misotoast.versioning import LineageEngine, VersionResult, VersionServices


logger = logging.getLogger(__name__)


class KitchenServices(DishServices, VersionServices, Protocol):
    pass


class Kitchen:
    def __init__(
        self,
        *,
        llm: KitchenServices,
        store: DurableHistoryStore,
        config: Config | None = None,
    ) -> None:
        self.config = Config() if config is None else config
        self.store = store
        self.user_key: str | None = None

        self.preferences = Preferences()
        self.context = ConversationContext(self.preferences)
        self.state = DishState()
        self.messages: list[ChatMessage] = []

        self.pipeline = DishPipeline(
            state=self.state,
            context=self.context,
            llm=llm,
            persist=self.save_history,
            config=self.config,
        )
        self.lineage_engine = LineageEngine(
            state=self.state,
            context=self.context,
            pipeline=self.pipeline,
            llm=llm,
            persist=self.save_history,
        )

    def __repr__(self) -> str:
        return f"<Kitchen(user={self.user_key}, state={self.state})>"

    @classmethod
    def from_config(cls, config: Config | None = None) -> Self:
        config = Config() if config is None else config
        store = DurableHistoryStore(
            local=SqliteCache(config=config),
            remote=HttpDocumentStore(config=config),
            reachable=HttpReachability(config=config),
            policy=HistoryPolicy.from_config(config),
        )
        return cls(llm=LLMService(config=config), store=store, config=config)

    # Observable flags

    @property
    def current_dish(self) -> Dish | None:
        return self.state.current

    @property
    def history(self) -> list[Dish]:
        return list(self.state.history)

    @property
    def is_generating_dish(self) -> bool:
        return self.state.is_generating_dish

    @property
    def is_generating_image(self) -> bool:
        return self.state.is_generating_image

    @property
    def is_generating_recipe(self) -> bool:
        return self.state.is_generating_recipe

    @property
    def is_modifying_recipe(self) -> bool:
        return self.state.is_modifying_recipe

    @property
    def is_loading_history(self) -> bool:
        return self.store.is_loading

    @property
    def is_dish_final(self) -> bool:
        return self.state.is_dish_final

    @property
    def last_error(self) -> str | None:
        return self.state.last_error

    def clear_error(self) -> None:
        self.state.last_error = None

    def has_preferences(self) -> bool:
        return self.preferences.has_preferences()

    # Persistence

    async def start_session(self, user_key: str | None) -> list[Dish]:
        self.user_key = user_key
        history = await self.store.load(user_key)
        self.state.replace_history(history)
        logger.info("Session for %s starts with %d dishes", user_key, len(history))
        return self.history

    async def save_history(self) -> None:
        await self.store.save(self.user_key, self.state.history)

    # Generation

    async def generate_dish(
        self, override: Mapping[str, Iterable[str]] | None = None
    ) -> Dish:
        return await self.pipeline.create(override)

    async def generate_specific_dish(
        self,
        name: str,
        chat_context: str | None = None,
        override: Mapping[str, Iterable[str]] | None = None,
    ) -> Dish:
        return await self.pipeline.generate_specific(name, chat_context, override)

    async def regenerate_with_context(self) -> Dish:
        return await self.pipeline.regenerate_with_context(self.state.current)

    async def enrich_recipe(self, dish_id: str, title: str) -> Recipe:
        return await self.pipeline.enrich_recipe(dish_id, title)

    async def cook_dish(self, dish_id: str | None = None) -> Recipe:
        dish = self.state.current if dish_id is None else self.state.find(dish_id)
        if dish is None:
            raise ValueError("There is no dish to cook")
        return await self.pipeline.cook(dish.id, dish.title)

    # Versions

    async def modify(self, instruction: str, dish: Dish | None = None) -> VersionResult:
        return await self.lineage_engine.modify(instruction, dish)

    async def remix(
        self,
        request: str,
        dish: Dish | None = None,
        override: Mapping[str, Any] | None = None,
    ) -> VersionResult:
        return await self.lineage_engine.remix(request, dish, override)

    async def fuse(self, instruction: str, dish: Dish | None = None) -> VersionResult:
        return await self.lineage_engine.fuse(instruction, dish)

    def lineage(self, dish_id: str) -> list[Dish]:
        return self.state.lineage(dish_id)

    # History

    async def load_dish_from_history(self, dish_id: str) -> Dish | None:
        dish = next((d for d in self.state.history if d.id == dish_id), None)
        if dish is None:
            logger.info("No dish %s in history", dish_id)
            return None
        self.state.current = dish
        self.state.is_dish_final = False
        if dish.preferences:
            self.context.update_preferences_only(dish.preferences)
        if dish.recipe is None or not dish.recipe.is_complete:
            await self.pipeline.cook(dish.id, dish.title)
        return dish

    async def finalize_dish(self) -> Dish | None:
        dish = self.state.current
        if dish is None:
            return None
        self.state.commit(dish)
        self.state.is_dish_final = True
        await self.save_history()
        return dish

    async def update_recipe(self, changes: Mapping[str, Any]) -> Dish | None:
        dish = self.state.current
        if dish is None:
            return None
        if dish.recipe is None:
            dish.recipe = Recipe()
        dish.recipe.update(changes)
        if self.state.is_committed(dish.id):
            await self.save_history()
        return dish

    # Preferences and context

    def update_preferences(self, values: Mapping[str, Iterable[str]]) -> None:
        self.context.update_preferences(values)

    def update_preferences_only(self, values: Mapping[str, Iterable[str]]) -> None:
        self.context.update_preferences_only(values)

    def add_conversation_preference(self, type: ContextType, value: str) -> bool:
        return self.context.add_conversation_preference(type, value)

    def remove_conversation_preference(self, type: ContextType, value: str) -> None:
        self.context.remove_conversation_preference(type, value)

    def clear_preferences(self) -> None:
        self.context.update_preferences({c.value: [] for c in Category})
        self.state.is_dish_final = False

    def clear_conversation_context(self) -> None:
        self.context.clear()
        self.state.is_dish_final = False

    # Chat

    def add_chat_message(self, text: str, is_user: bool) -> ChatMessage:
        message = ChatMessage(text=text, is_user=is_user)
        self.messages.append(message)
        return message

    def clear_chat_messages(self) -> None:
        self.messages = []

    def chef_reply(self, text: str) -> ChatMessage:
        """Log the user's message and the chef's answer to it."""
        self.add_chat_message(text, True)
        return self.add_chat_message(chef.reply(text, self.preferences), False)

    def announce_version(self, result: VersionResult) -> None:
        self.add_chat_message(f"✨ {result.summary}", False)
        self.add_chat_message(
            f'Your dish has been updated to: "{result.dish.title}". '
            "You can now ask me to modify this new version!",
            False,
        )

    # Sharing

    def share_text(self) -> str | None:
        return None if self.state.current is None else share_text(self.state.current)

    def share_url(self) -> str | None:
        if self.state.current is None:
            return None
        return share_url(self.state.current, self.config.share_url)

    def share_markdown(self) -> str | None:
        return None if self.state.current is None else share_markdown(self.state.current)

    def share_html(self) -> str | None:
        return None if self.state.current is None else share_html(self.state.current)

    def open_shared(self, url: str) -> Dish | None:
        return parse_share_url(url)

    async def close(self) -> None:
        await self.pipeline.settle()
        await self.store.aclose()
