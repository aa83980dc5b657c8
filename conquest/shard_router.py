import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Sequence, TypeVar

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from conquest.errors import ERR_SHARD_TIMEOUT, InfrastructureError
from conquest.load_secrets import (
    db_driver,
    db_name,
    max_overflow,
    operation_timeout,
    password,
    pool_size,
    port,
    shard_hosts,
    user,
)

T = TypeVar("T")


def build_shard_urls(hosts: Sequence[str] = shard_hosts) -> List[str]:
    """Build one database url per shard host, in shard order."""
    return [f"{db_driver}://{user}:{password}@{host}:{port}/{db_name}" for host in hosts]


class ShardRouter:
    """Maps a user id to exactly one shard.

    The url list is fixed at construction, so ``shard_index`` is a pure function
    of the id. Engines are created the first time a shard is used and kept for
    the process lifetime.
    """

    def __init__(
        self,
        urls: Sequence[str],
        pool_size: int = pool_size,
        max_overflow: int = max_overflow,
        operation_timeout: float = operation_timeout,
    ):
        if not urls:
            raise ValueError("at least one shard url is required")
        self.urls = tuple(urls)
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.operation_timeout = operation_timeout
        self._engines: Dict[int, AsyncEngine] = {}
        self._sessions: Dict[int, async_sessionmaker] = {}

    @property
    def shard_count(self) -> int:
        return len(self.urls)

    def shard_index(self, user_id: int) -> int:
        return user_id % len(self.urls)

    def _create_engine(self, url: str) -> AsyncEngine:
        if url.startswith("sqlite"):
            return create_async_engine(url, echo=False)
        return create_async_engine(
            url,
            pool_size=self.pool_size,
            max_overflow=self.max_overflow,
            pool_timeout=self.operation_timeout,
            pool_pre_ping=True,
        )

    def _session_for_index(self, index: int) -> async_sessionmaker:
        if index not in self._sessions:
            engine = self._create_engine(self.urls[index])
            self._engines[index] = engine
            self._sessions[index] = async_sessionmaker(
                autocommit=False,
                class_=AsyncSession,
                autoflush=True,
                expire_on_commit=False,
                bind=engine,
            )
            logging.info(f"Created engine for shard {index}")
        return self._sessions[index]

    def session_for(self, user_id: int) -> async_sessionmaker:
        return self._session_for_index(self.shard_index(user_id))

    def engine_for_index(self, index: int) -> AsyncEngine:
        self._session_for_index(index)
        return self._engines[index]

    def all_shards(self) -> List[async_sessionmaker]:
        """Every shard's session factory. Administrative fan-out only."""
        return [self._session_for_index(i) for i in range(len(self.urls))]

    async def _run(self, session_maker: async_sessionmaker, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        async with session_maker() as session:
            async with session.begin():
                return await work(session)

    async def run(self, user_id: int, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``work`` inside one transaction on the user's shard.

        Any exception (including a timeout or cancellation) rolls the whole
        transaction back before it propagates.
        """
        return await self.run_on(self.session_for(user_id), work)

    async def run_on(self, session_maker: async_sessionmaker, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(self._run(session_maker, work), timeout=self.operation_timeout)
        except asyncio.TimeoutError as e:
            logging.error(f"Shard operation timed out after {self.operation_timeout}s")
            raise InfrastructureError(ERR_SHARD_TIMEOUT) from e

    async def dispose(self) -> None:
        for index, engine in self._engines.items():
            await engine.dispose()
            logging.info(f"Disposed engine for shard {index}")
        self._engines.clear()
        self._sessions.clear()
