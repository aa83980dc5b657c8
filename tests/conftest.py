from datetime import timezone
from email.utils import formatdate

import numpy as np
import pytest
from fakeredis import FakeAsyncRedis, FakeServer

from conquest.context import build_context
from conquest.crud import UpdateData
from conquest.models.request_models import CreateUserRequest
from conquest.models.schemas import (
    Base,
    GachaItemMaster,
    GachaMaster,
    ItemMaster,
    LoginBonusMaster,
    LoginBonusRewardMaster,
    PresentAllMaster,
    VersionMaster,
)

MASTER_VERSION = "1"
# 2023-11-14T01:00:00Z
BASE_TIME = 1_699_923_600
DAY = 86400
FAR_FUTURE = 4_102_444_800

COIN_ITEM_ID = 1
STARTER_CARD_ID = 2
RARE_CARD_ID = 3
BIG_EXP_ID = 4
SMALL_EXP_ID = 5
TIMER_ID = 6
STANDARD_GACHA_ID = 1
EXPIRED_GACHA_ID = 2


def master_rows() -> list:
    """A fresh copy of the master data every shard carries."""
    return [
        ItemMaster(id=COIN_ITEM_ID, item_type=1, name="coin"),
        ItemMaster(
            id=STARTER_CARD_ID,
            item_type=2,
            name="starter hammer",
            amount_per_sec=10,
            max_level=5,
            max_amount_per_sec=50,
            base_exp_per_level=100,
        ),
        ItemMaster(
            id=RARE_CARD_ID,
            item_type=2,
            name="golden hammer",
            amount_per_sec=20,
            max_level=5,
            max_amount_per_sec=100,
            base_exp_per_level=100,
        ),
        ItemMaster(id=BIG_EXP_ID, item_type=3, name="big whetstone", gained_exp=50),
        ItemMaster(id=SMALL_EXP_ID, item_type=3, name="small whetstone", gained_exp=10),
        ItemMaster(id=TIMER_ID, item_type=4, name="hourglass", shortening_min=60),
        GachaMaster(id=STANDARD_GACHA_ID, name="standard", start_at=0, end_at=FAR_FUTURE, display_order=1, created_at=0),
        GachaMaster(id=EXPIRED_GACHA_ID, name="launch", start_at=0, end_at=100, display_order=2, created_at=0),
        GachaItemMaster(id=1, gacha_id=STANDARD_GACHA_ID, item_type=2, item_id=RARE_CARD_ID, amount=1, weight=10, created_at=0),
        GachaItemMaster(id=2, gacha_id=STANDARD_GACHA_ID, item_type=3, item_id=BIG_EXP_ID, amount=2, weight=30, created_at=0),
        GachaItemMaster(id=3, gacha_id=STANDARD_GACHA_ID, item_type=1, item_id=COIN_ITEM_ID, amount=500, weight=60, created_at=0),
        GachaItemMaster(id=4, gacha_id=EXPIRED_GACHA_ID, item_type=1, item_id=COIN_ITEM_ID, amount=10, weight=1, created_at=0),
        # looping three-day bonus
        LoginBonusMaster(id=1, start_at=0, end_at=FAR_FUTURE, column_count=3, looped=True, created_at=0),
        LoginBonusRewardMaster(id=1, login_bonus_id=1, reward_sequence=1, item_type=1, item_id=COIN_ITEM_ID, amount=100, created_at=0),
        LoginBonusRewardMaster(id=2, login_bonus_id=1, reward_sequence=2, item_type=3, item_id=BIG_EXP_ID, amount=3, created_at=0),
        LoginBonusRewardMaster(id=3, login_bonus_id=1, reward_sequence=3, item_type=4, item_id=TIMER_ID, amount=1, created_at=0),
        # one-shot welcome bonus
        LoginBonusMaster(id=2, start_at=0, end_at=FAR_FUTURE, column_count=1, looped=False, created_at=0),
        LoginBonusRewardMaster(id=4, login_bonus_id=2, reward_sequence=1, item_type=1, item_id=COIN_ITEM_ID, amount=1000, created_at=0),
        PresentAllMaster(
            id=1,
            registered_start_at=0,
            registered_end_at=FAR_FUTURE,
            item_type=1,
            item_id=COIN_ITEM_ID,
            amount=500,
            present_message="welcome",
            created_at=0,
        ),
        PresentAllMaster(
            id=2,
            registered_start_at=0,
            registered_end_at=100,
            item_type=1,
            item_id=COIN_ITEM_ID,
            amount=9999,
            present_message="launch campaign",
            created_at=0,
        ),
        VersionMaster(id=1, status=1, master_version=MASTER_VERSION),
    ]


def request_date(request_at: int) -> str:
    return formatdate(request_at, usegmt=True)


async def add_to_every_shard(context, make_rows) -> None:
    """Insert rows produced by ``make_rows()`` on every shard (master data is replicated)."""

    async def work(session):
        session.add_all(make_rows())

    for session_maker in context.router.all_shards():
        await context.router.run_on(session_maker, work)


async def bump_master_version(context, version: str) -> None:
    await context.master_cache.version_store.set_master_version(version)
    await context.service.current_master_version()


async def insert_rows(context, user_id: int, rows: list) -> None:
    async def work(session):
        session.add_all(rows)

    await context.router.run(user_id, work)


async def fetch_all(context, user_id: int, stmt) -> list:
    async def work(session):
        result = await session.execute(stmt)
        return list(result.scalars().all())

    return await context.router.run(user_id, work)


async def fetch_one(context, user_id: int, stmt):
    rows = await fetch_all(context, user_id, stmt)
    return rows[0] if rows else None


async def add_coin(context, user_id: int, amount: int) -> None:
    async def work(session):
        await UpdateData.add_coin(user_id, amount, session)

    await context.router.run(user_id, work)


@pytest.fixture
async def redis():
    client = FakeAsyncRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.flushall()
    await client.aclose()


@pytest.fixture
def shard_urls(tmp_path) -> list:
    return [f"sqlite+aiosqlite:///{tmp_path / f'shard{i}.db'}" for i in range(2)]


@pytest.fixture
async def context(redis, shard_urls):
    ctx = build_context(redis, shard_urls, node_id=7, tz=timezone.utc, rng=np.random.default_rng(2024))
    for index in range(ctx.router.shard_count):
        async with ctx.router.engine_for_index(index).begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    await add_to_every_shard(ctx, master_rows)
    await ctx.service.initialize()
    yield ctx
    await ctx.router.dispose()


@pytest.fixture
def service(context):
    return context.service


@pytest.fixture
async def new_user(service):
    """A freshly registered user, created at BASE_TIME with viewer ``viewer-1``."""
    return await service.create_user(CreateUserRequest(viewer_id="viewer-1", platform_type=1), BASE_TIME)


