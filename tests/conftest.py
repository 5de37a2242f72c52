import pytest

from misotoast.config import Config
from misotoast.kitchen import Kitchen
from misotoast.repository import DurableHistoryStore, HistoryPolicy

from tests.fakes import FakeCache, FakeProbe, FakeRemote, FakeServices


@pytest.fixture
def config() -> Config:
    return Config(
        image_timeout=1,
        store_timeout=0.2,
        loading_guard=1,
        enrich_recipe_on_create=True,
    )


@pytest.fixture
def llm() -> FakeServices:
    return FakeServices()


@pytest.fixture
def cache() -> FakeCache:
    return FakeCache()


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def probe() -> FakeProbe:
    return FakeProbe()


@pytest.fixture
def store(
    cache: FakeCache, remote: FakeRemote, probe: FakeProbe, config: Config
) -> DurableHistoryStore:
    return DurableHistoryStore(
        local=cache,
        remote=remote,
        reachable=probe,
        policy=HistoryPolicy.from_config(config),
    )


@pytest.fixture
def kitchen(llm: FakeServices, store: DurableHistoryStore, config: Config) -> Kitchen:
    return Kitchen(llm=llm, store=store, config=config)
