from dataclasses import dataclass
from datetime import tzinfo
from typing import Sequence
from zoneinfo import ZoneInfo

import numpy as np
from redis.asyncio import Redis

from conquest.id_generator import SnowflakeGenerator
from conquest.load_secrets import (
    game_timezone,
    operation_timeout,
    redis_host,
    redis_port,
    redis_timeout,
    snowflake_node_id,
)
from conquest.master_cache import MasterCache, MasterVersionStore
from conquest.registry import BanChecker, ViewerIDChecker
from conquest.services.game import GameService
from conquest.session_store import OneTimeTokenStore, SessionStore
from conquest.shard_router import ShardRouter, build_shard_urls


@dataclass
class GameContext:
    """Every long-lived object one process needs, wired together once."""

    router: ShardRouter
    redis: Redis
    master_cache: MasterCache
    session_store: SessionStore
    token_store: OneTimeTokenStore
    ban_checker: BanChecker
    viewer_checker: ViewerIDChecker
    service: GameService

    async def close(self) -> None:
        await self.router.dispose()
        await self.redis.aclose()


def build_context(
    redis: Redis,
    shard_urls: Sequence[str],
    node_id: int = snowflake_node_id,
    tz: tzinfo | None = None,
    rng: np.random.Generator | None = None,
    operation_timeout: float = operation_timeout,
) -> GameContext:
    """Wire a context from explicit collaborators

    Args:
        redis (Redis): Shared store, created with ``decode_responses=True``
        shard_urls (Sequence[str]): Database url per shard, in shard order
        node_id (int, optional): Snowflake node id of this process
        tz (tzinfo | None, optional): Calendar-day boundary for logins. Defaults to GAME_TIMEZONE.
        rng (np.random.Generator | None, optional): Gacha random source. Defaults to an unseeded generator.
        operation_timeout (float, optional): Bound on one shard transaction, in seconds
    """
    router = ShardRouter(shard_urls, operation_timeout=operation_timeout)
    master_cache = MasterCache(MasterVersionStore(redis))
    session_store = SessionStore(redis)
    token_store = OneTimeTokenStore(redis)
    ban_checker = BanChecker(router)
    viewer_checker = ViewerIDChecker(router)
    service = GameService(
        router=router,
        master_cache=master_cache,
        session_store=session_store,
        token_store=token_store,
        ban_checker=ban_checker,
        viewer_checker=viewer_checker,
        id_generator=SnowflakeGenerator(node_id),
        rng=rng if rng is not None else np.random.default_rng(),
        tz=tz if tz is not None else ZoneInfo(game_timezone),
    )
    return GameContext(
        router=router,
        redis=redis,
        master_cache=master_cache,
        session_store=session_store,
        token_store=token_store,
        ban_checker=ban_checker,
        viewer_checker=viewer_checker,
        service=service,
    )


def context_from_env() -> GameContext:
    redis = Redis(
        host=redis_host,
        port=redis_port,
        decode_responses=True,
        socket_timeout=redis_timeout,
        socket_connect_timeout=redis_timeout,
    )
    return build_context(redis, build_shard_urls())
