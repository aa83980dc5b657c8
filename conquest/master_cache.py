import asyncio
import logging
from dataclasses import dataclass
from functools import cached_property
from typing import Dict, List, Tuple

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from conquest.crud import ReadMasterData
from conquest.errors import ERR_INVALID_MASTER_VERSION, ERR_MASTER_NOT_LOADED, DataIntegrityError, InfrastructureError
from conquest.models.schema_models import (
    GachaItemMasterSchema,
    GachaMasterSchema,
    ItemMasterSchema,
    LoginBonusMasterSchema,
    LoginBonusRewardMasterSchema,
    PresentAllMasterSchema,
)

MASTER_VERSION_KEY = "master_version"


class MasterVersionStore:
    """Authoritative master version, kept in the shared store."""

    def __init__(self, redis: Redis):
        self.redis = redis

    async def get_master_version(self) -> str | None:
        return await self.redis.get(MASTER_VERSION_KEY)

    async def set_master_version(self, master_version: str) -> None:
        await self.redis.set(MASTER_VERSION_KEY, master_version)


@dataclass(frozen=True)
class MasterSnapshot:
    """Every master table for one version.

    Never mutated after construction; a reload builds a new snapshot and swaps
    the reference. Indexes are computed on first use and memoized.
    """

    version: str
    items: Tuple[ItemMasterSchema, ...]
    gachas: Tuple[GachaMasterSchema, ...]
    gacha_items: Tuple[GachaItemMasterSchema, ...]
    login_bonuses: Tuple[LoginBonusMasterSchema, ...]
    login_bonus_rewards: Tuple[LoginBonusRewardMasterSchema, ...]
    present_alls: Tuple[PresentAllMasterSchema, ...]

    @cached_property
    def items_by_id(self) -> Dict[int, ItemMasterSchema]:
        return {item.id: item for item in self.items}

    @cached_property
    def gacha_items_by_gacha_id(self) -> Dict[int, Tuple[GachaItemMasterSchema, ...]]:
        grouped: Dict[int, List[GachaItemMasterSchema]] = {}
        for gacha_item in self.gacha_items:
            grouped.setdefault(gacha_item.gacha_id, []).append(gacha_item)
        return {gacha_id: tuple(entries) for gacha_id, entries in grouped.items()}

    @cached_property
    def login_bonus_rewards_by_step(self) -> Dict[Tuple[int, int], LoginBonusRewardMasterSchema]:
        return {(reward.login_bonus_id, reward.reward_sequence): reward for reward in self.login_bonus_rewards}


async def load_snapshot(master_version: str, session: AsyncSession) -> MasterSnapshot:
    tables = await ReadMasterData.read_all_masters(session)
    return MasterSnapshot(
        version=master_version,
        items=tuple(ItemMasterSchema.model_validate(row) for row in tables["item_masters"]),
        gachas=tuple(GachaMasterSchema.model_validate(row) for row in tables["gacha_masters"]),
        gacha_items=tuple(GachaItemMasterSchema.model_validate(row) for row in tables["gacha_item_masters"]),
        login_bonuses=tuple(LoginBonusMasterSchema.model_validate(row) for row in tables["login_bonus_masters"]),
        login_bonus_rewards=tuple(
            LoginBonusRewardMasterSchema.model_validate(row) for row in tables["login_bonus_reward_masters"]
        ),
        present_alls=tuple(PresentAllMasterSchema.model_validate(row) for row in tables["present_all_masters"]),
    )


class MasterCache:
    """Process-local cache of the master tables.

    The only validity rule: the snapshot version equals the authoritative
    version. ``current_version`` reloads everything before returning when
    they differ.
    """

    def __init__(self, version_store: MasterVersionStore):
        self.version_store = version_store
        self._snapshot: MasterSnapshot | None = None
        self._reload_lock = asyncio.Lock()

    @property
    def snapshot(self) -> MasterSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise InfrastructureError(ERR_MASTER_NOT_LOADED)
        return snapshot

    @property
    def loaded_version(self) -> str | None:
        snapshot = self._snapshot
        return snapshot.version if snapshot is not None else None

    async def current_version(self, session: AsyncSession) -> str:
        """Return the authoritative master version, reloading the cache if stale

        Args:
            session (AsyncSession): Shard session used to read master tables on reload

        Raises:
            DataIntegrityError: Neither the shared store nor the shard knows a version

        Returns:
            str: The authoritative master version
        """
        master_version = await self.version_store.get_master_version()
        if master_version is None:
            master_version = await ReadMasterData.read_active_master_version(session)
            if master_version is None:
                raise DataIntegrityError(ERR_INVALID_MASTER_VERSION)
        if self.loaded_version != master_version:
            await self.reload(master_version, session)
        return master_version

    async def reload(self, master_version: str, session: AsyncSession, force: bool = False) -> None:
        async with self._reload_lock:
            # another request may have finished the same reload while we waited
            if not force and self.loaded_version == master_version:
                return
            snapshot = await load_snapshot(master_version, session)
            self._snapshot = snapshot
            logging.info(f"Master data reloaded: version={master_version}")

    # ==== lookups =============================================================

    def item_by_id(self, item_id: int) -> ItemMasterSchema | None:
        return self.snapshot.items_by_id.get(item_id)

    def active_login_bonuses(self, as_of: int) -> List[LoginBonusMasterSchema]:
        return [bonus for bonus in self.snapshot.login_bonuses if bonus.start_at <= as_of <= bonus.end_at]

    def active_gachas(self, as_of: int) -> List[GachaMasterSchema]:
        return [gacha for gacha in self.snapshot.gachas if gacha.start_at <= as_of <= gacha.end_at]

    def gacha_by_id(self, gacha_id: int, as_of: int) -> GachaMasterSchema | None:
        for gacha in self.snapshot.gachas:
            if gacha.id == gacha_id and gacha.start_at <= as_of <= gacha.end_at:
                return gacha
        return None

    def gacha_prize_table(self, gacha_id: int) -> List[GachaItemMasterSchema]:
        return list(self.snapshot.gacha_items_by_gacha_id.get(gacha_id, ()))

    def active_global_presents(self, as_of: int) -> List[PresentAllMasterSchema]:
        return [
            present
            for present in self.snapshot.present_alls
            if present.registered_start_at <= as_of <= present.registered_end_at
        ]

    def login_bonus_reward_step(self, login_bonus_id: int, reward_sequence: int) -> LoginBonusRewardMasterSchema | None:
        return self.snapshot.login_bonus_rewards_by_step.get((login_bonus_id, reward_sequence))
