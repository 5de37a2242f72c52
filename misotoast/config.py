from enum import Enum

from pydantic_settings import BaseSettings


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class Config(BaseSettings):
    env: Env = Env.local
    log_level: str = "INFO"
    user_key: str | None = None

    core_model: str = "gpt-4-turbo-preview"
    image_model: str = "dall-e-3"
    image_size: str = "1024x1024"

    cache_url: str = "sqlite+aiosqlite:///misotoast.db"
    store_url: str = "http://localhost:3001/store/"
    reachability_url: str = "http://localhost:3001/"
    share_url: str = "https://misotoast.app/shared"

    # Seconds
    image_timeout: float = 30
    store_timeout: float = 10
    loading_guard: float = 10
    probe_timeout: float = 5

    enrich_recipe_on_create: bool = True
