"""Durable dish history: a local cache and a remote per-user store.

`DurableHistoryStore` is the only place that decides which tier is read or
written and when. The tiers themselves are dumb get/set collaborators.
"""

import asyncio
import json
import logging
from typing import Any, Iterable, Protocol, Self, TypeAlias

from databases import Database
import httpx

from misotoast.config import Config
from misotoast.errors import NetworkUnavailable, StoreTimeout
from misotoast.models import Dish


logger = logging.getLogger(__name__)


HISTORY_KEY = "dishHistory"


CREATE_CACHE_TABLE = """
CREATE TABLE IF NOT EXISTS Cache (key VARCHAR(256) PRIMARY KEY, value TEXT)
"""


SET_VALUE = """
INSERT OR REPLACE INTO Cache(key, value) VALUES (:key, :value)
"""


GET_VALUE = "SELECT value FROM Cache WHERE key = :key"


Document: TypeAlias = dict[str, Any]


class LocalCache(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, blob: str) -> None: ...


class RemoteStore(Protocol):
    async def get(self, user_key: str) -> Document | None: ...

    async def put(self, user_key: str, document: Document, merge: bool) -> None: ...


class Reachability(Protocol):
    async def __call__(self) -> bool: ...


def to_document(history: Iterable[Dish]) -> Document:
    return {HISTORY_KEY: [dish.to_dict() for dish in history]}


def from_document(document: Document | None) -> list[Dish]:
    if not document:
        return []
    return [Dish.from_dict(d) for d in document.get(HISTORY_KEY) or []]


class SqliteCache:
    """Key/value cache in a single sqlite table."""

    def __init__(self, db: Database | None = None, *, config: Config | None = None) -> None:
        config = Config() if config is None else config
        self.db = Database(config.cache_url) if db is None else db
        self._ready = False

    async def _connect(self) -> None:
        if self._ready:
            return
        if not self.db.is_connected:
            await self.db.connect()
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            query=CREATE_CACHE_TABLE
        )
        self._ready = True

    async def get(self, key: str) -> str | None:
        await self._connect()
        result = await self.db.fetch_one(  # pyright: ignore[reportUnknownMemberType]
            GET_VALUE, values={"key": key}
        )
        if result is None:
            return None
        return result["value"]

    async def set(self, key: str, blob: str) -> None:
        await self._connect()
        await self.db.execute(  # pyright: ignore[reportUnknownMemberType]
            SET_VALUE, values={"key": key, "value": blob}
        )

    async def aclose(self) -> None:
        if self.db.is_connected:
            await self.db.disconnect()
        self._ready = False


class HttpDocumentStore:
    """Per-user JSON documents under `users/<key>`."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        config: Config | None = None,
    ) -> None:
        config = Config() if config is None else config
        self.client = (
            httpx.AsyncClient(base_url=config.store_url, timeout=config.store_timeout)
            if client is None
            else client
        )

    async def get(self, user_key: str) -> Document | None:
        try:
            resp = await self.client.get(f"users/{user_key}")
            if resp.status_code == httpx.codes.NOT_FOUND:
                return None
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise NetworkUnavailable(str(e)) from e
        return resp.json()

    async def put(self, user_key: str, document: Document, merge: bool = True) -> None:
        method = "PATCH" if merge else "PUT"
        try:
            resp = await self.client.request(method, f"users/{user_key}", json=document)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise NetworkUnavailable(str(e)) from e

    async def aclose(self) -> None:
        await self.client.aclose()


class HttpReachability:
    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        config: Config | None = None,
    ) -> None:
        config = Config() if config is None else config
        self.url = config.reachability_url
        self.client = (
            httpx.AsyncClient(timeout=config.probe_timeout) if client is None else client
        )

    async def __call__(self) -> bool:
        try:
            resp = await self.client.head(self.url)
        except httpx.HTTPError as e:
            logger.info("Network unreachable: %s", e)
            return False
        return resp.status_code < httpx.codes.INTERNAL_SERVER_ERROR

    async def aclose(self) -> None:
        await self.client.aclose()


class HistoryPolicy:
    """How the two tiers are sequenced.

    Writes always go to the local cache and go to the remote store only when
    the network is reachable. Reads try the remote store first and fall back
    to the local cache.
    """

    def __init__(
        self,
        *,
        write_remote: bool = True,
        read_remote: bool = True,
        merge: bool = True,
        remote_timeout: float = 10,
        loading_guard: float = 10,
        cache_key: str = HISTORY_KEY,
    ) -> None:
        self.write_remote = write_remote
        self.read_remote = read_remote
        self.merge = merge
        self.remote_timeout = remote_timeout
        self.loading_guard = loading_guard
        self.cache_key = cache_key

    @classmethod
    def from_config(cls, config: Config) -> Self:
        return cls(remote_timeout=config.store_timeout, loading_guard=config.loading_guard)


class DurableHistoryStore:
    def __init__(
        self,
        *,
        local: LocalCache,
        remote: RemoteStore | None = None,
        reachable: Reachability | None = None,
        policy: HistoryPolicy | None = None,
    ) -> None:
        self.local = local
        self.remote = remote
        self.reachable = reachable
        self.policy = HistoryPolicy() if policy is None else policy
        self.is_loading = False
        # Saves run one at a time, in call order.
        self._save_lock = asyncio.Lock()
        # Remote reads that outlived their timeout.
        self._late_reads: set[asyncio.Future[Document | None]] = set()

    def __repr__(self) -> str:
        return f"<DurableHistoryStore(local={self.local}, remote={self.remote})>"

    async def _is_reachable(self) -> bool:
        if self.reachable is None:
            return True
        try:
            return await self.reachable()
        except Exception as e:
            logger.warning("Reachability probe failed: %s", e)
            return False

    async def save(self, user_key: str | None, history: Iterable[Dish]) -> None:
        """Write `history` to both tiers. Never raises.

        The document is taken when `save` is called. A later call never
        lands before an earlier one.
        """
        document = to_document(history)
        async with self._save_lock:
            await self._write(user_key, document)

    async def _write(self, user_key: str | None, document: Document) -> None:
        try:
            await self.local.set(self.policy.cache_key, json.dumps(document))
        except Exception as e:
            logger.warning("Could not write history to the local cache: %s", e)

        if user_key is None or self.remote is None or not self.policy.write_remote:
            return
        if not await self._is_reachable():
            logger.info("Offline, history for %s saved locally only", user_key)
            return
        try:
            await self.remote.put(user_key, document, self.policy.merge)
        except Exception as e:
            # The next save retries.
            logger.warning("Could not write history for %s remotely: %s", user_key, e)

    def _forget_late_read(self, read: asyncio.Future[Document | None]) -> None:
        self._late_reads.discard(read)
        if not read.cancelled() and read.exception() is not None:
            logger.info("Late remote read failed: %s", read.exception())

    async def _load_remote(self, remote: RemoteStore, user_key: str) -> list[Dish]:
        read = asyncio.ensure_future(remote.get(user_key))
        done, _ = await asyncio.wait({read}, timeout=self.policy.remote_timeout)
        if not done:
            # Stop waiting, leave the request running.
            self._late_reads.add(read)
            read.add_done_callback(self._forget_late_read)
            raise StoreTimeout(f"No answer from the store after {self.policy.remote_timeout}s")
        return from_document(read.result())

    async def _load_local(self) -> list[Dish]:
        try:
            blob = await self.local.get(self.policy.cache_key)
            if not blob:
                return []
            return from_document(json.loads(blob))
        except Exception as e:
            logger.warning("Could not read history from the local cache: %s", e)
            return []

    def _release(self) -> None:
        if self.is_loading:
            logger.warning("History still loading after %ss, giving up", self.policy.loading_guard)
        self.is_loading = False

    async def load(self, user_key: str | None) -> list[Dish]:
        """The stored history, newest first. Settles to empty rather than failing."""
        self.is_loading = True
        guard = asyncio.get_running_loop().call_later(self.policy.loading_guard, self._release)
        try:
            if (
                user_key is not None
                and self.remote is not None
                and self.policy.read_remote
                and await self._is_reachable()
            ):
                try:
                    history = await self._load_remote(self.remote, user_key)
                    logger.info("Loaded %d dishes for %s", len(history), user_key)
                    return history
                except NetworkUnavailable as e:
                    logger.warning("Remote history unavailable, using local cache: %s", e)
                except Exception as e:
                    logger.warning("Unusable remote history, using local cache: %s", e)
            return await self._load_local()
        finally:
            guard.cancel()
            self.is_loading = False

    async def aclose(self) -> None:
        for read in list(self._late_reads):
            read.cancel()
        for tier in (self.local, self.remote, self.reachable):
            aclose = getattr(tier, "aclose", None)
            if aclose is not None:
                await aclose()
