"""Reward granting inside an open shard transaction.

Nothing here commits; callers run these helpers through ``ShardRouter.run``
so a failure anywhere rolls back every grant of the operation.
"""

import logging
from typing import List, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from conquest.crud import CreateData, ReadData, UpdateData
from conquest.domain.game_rules import advance_login_bonus
from conquest.errors import (
    ERR_INVALID_ITEM_TYPE,
    ERR_ITEM_NOT_FOUND,
    ERR_LOGIN_BONUS_REWARD_NOT_FOUND,
    ERR_USER_NOT_FOUND,
    ClientError,
    DataIntegrityError,
    NotFoundError,
)
from conquest.id_generator import SnowflakeGenerator
from conquest.master_cache import MasterCache
from conquest.models.schema_models import (
    ItemType,
    UserCardSchema,
    UserItemSchema,
    UserLoginBonusSchema,
    UserPresentSchema,
    UserSchema,
)
from conquest.models.schemas import (
    UserCard,
    UserItem,
    UserLoginBonus,
    UserPresent,
    UserPresentAllReceivedHistory,
)


class RewardGranter:
    def __init__(self, master_cache: MasterCache, id_generator: SnowflakeGenerator):
        self.master_cache = master_cache
        self.id_generator = id_generator

    # ==== obtainItem ==========================================================

    async def obtain_item(
        self, user_id: int, item_id: int, item_type: int, obtain_amount: int, request_at: int, session: AsyncSession
    ) -> None:
        """Grant one reward, dispatching on the item type

        Raises:
            ClientError: Unknown item type
        """
        if item_type == ItemType.COIN:
            await self.obtain_coin(user_id, obtain_amount, session)
        elif item_type == ItemType.CARD:
            await self.obtain_cards(user_id, request_at, [item_id], session)
        elif item_type in (ItemType.EXP_MATERIAL, ItemType.STACKABLE_ITEM):
            await self.obtain_items(user_id, request_at, [(item_id, obtain_amount)], session)
        else:
            raise ClientError(ERR_INVALID_ITEM_TYPE)

    async def obtain_coin(self, user_id: int, obtain_amount: int, session: AsyncSession) -> None:
        if obtain_amount:
            await UpdateData.add_coin(user_id, obtain_amount, session)

    async def obtain_cards(
        self, user_id: int, request_at: int, item_ids: Sequence[int], session: AsyncSession
    ) -> List[UserCardSchema]:
        """Create one level-1 card per item id

        Raises:
            NotFoundError: An item id has no master row

        Returns:
            List[UserCardSchema]: The new cards
        """
        if not item_ids:
            return []
        items = {}
        for item_id in set(item_ids):
            item = self.master_cache.item_by_id(item_id)
            if item is None:
                raise NotFoundError(ERR_ITEM_NOT_FOUND)
            items[item_id] = item

        cards = [
            UserCard(
                id=self.id_generator.generate(),
                user_id=user_id,
                card_id=item_id,
                amount_per_sec=items[item_id].amount_per_sec or 0,
                level=1,
                total_exp=0,
                created_at=request_at,
                updated_at=request_at,
            )
            for item_id in item_ids
        ]
        await CreateData.add_rows(cards, session)
        return [UserCardSchema.model_validate(card) for card in cards]

    async def obtain_items(
        self, user_id: int, request_at: int, items: Sequence[Tuple[int, int]], session: AsyncSession
    ) -> List[UserItemSchema]:
        """Add stackable items, creating the per-item row on first receipt

        Args:
            items (Sequence[Tuple[int, int]]): (item_id, amount) pairs; ids may repeat

        Returns:
            List[UserItemSchema]: One row per distinct item id after the update
        """
        if not items:
            return []
        user_items = await ReadData.read_user_items_by_item_ids(user_id, (item_id for item_id, _ in items), session)

        new_rows = []
        for item_id, obtain_amount in items:
            user_item = user_items.get(item_id)
            if user_item is None:
                item = self.master_cache.item_by_id(item_id)
                if item is None:
                    raise NotFoundError(ERR_ITEM_NOT_FOUND)
                user_item = UserItem(
                    id=self.id_generator.generate(),
                    user_id=user_id,
                    item_type=item.item_type,
                    item_id=item.id,
                    amount=obtain_amount,
                    created_at=request_at,
                    updated_at=request_at,
                )
                user_items[item_id] = user_item
                new_rows.append(user_item)
            else:
                user_item.amount += obtain_amount
                user_item.updated_at = request_at

        await CreateData.add_rows(new_rows, session)
        return [UserItemSchema.model_validate(user_item) for user_item in user_items.values()]

    # ==== login process =======================================================

    async def login_process(
        self, user_id: int, request_at: int, session: AsyncSession
    ) -> Tuple[UserSchema, List[UserLoginBonusSchema], List[UserPresentSchema]]:
        """Grant today's login bonuses and pending global presents

        Raises:
            NotFoundError: The user does not exist

        Returns:
            Tuple[UserSchema, List[UserLoginBonusSchema], List[UserPresentSchema]]:
                The refreshed user, the advanced bonuses and the presents put in the mailbox
        """
        user = await ReadData.read_user(user_id, session, for_update=True)
        if user is None:
            raise NotFoundError(ERR_USER_NOT_FOUND)

        login_bonuses = await self.obtain_login_bonuses(user_id, request_at, session)
        presents = await self.obtain_presents(user_id, request_at, session)

        await UpdateData.touch_user_activity(user_id, request_at, session)
        user = await ReadData.read_user(user_id, session)
        return UserSchema.model_validate(user), login_bonuses, presents

    async def obtain_login_bonuses(self, user_id: int, request_at: int, session: AsyncSession) -> List[UserLoginBonusSchema]:
        sent_bonuses = []
        for bonus in self.master_cache.active_login_bonuses(request_at):
            progress = await ReadData.read_login_bonus_progress(user_id, bonus.id, session)
            if progress is None:
                progress = UserLoginBonus(
                    id=self.id_generator.generate(),
                    user_id=user_id,
                    login_bonus_id=bonus.id,
                    last_reward_sequence=0,
                    loop_count=1,
                    created_at=request_at,
                    updated_at=request_at,
                )
                session.add(progress)

            step = advance_login_bonus(progress.last_reward_sequence, progress.loop_count, bonus.column_count, bonus.looped)
            if step is None:
                continue
            progress.last_reward_sequence, progress.loop_count = step
            progress.updated_at = request_at

            reward = self.master_cache.login_bonus_reward_step(bonus.id, progress.last_reward_sequence)
            if reward is None:
                logging.error(
                    f"Login bonus {bonus.id} has no reward for sequence {progress.last_reward_sequence}"
                )
                raise DataIntegrityError(ERR_LOGIN_BONUS_REWARD_NOT_FOUND)

            await self.obtain_item(user_id, reward.item_id, reward.item_type, reward.amount, request_at, session)
            await session.flush()
            sent_bonuses.append(UserLoginBonusSchema.model_validate(progress))
        return sent_bonuses

    async def obtain_presents(self, user_id: int, request_at: int, session: AsyncSession) -> List[UserPresentSchema]:
        """Put every active global present the user has not received yet into the mailbox"""
        normal_presents = self.master_cache.active_global_presents(request_at)
        if not normal_presents:
            return []
        received_ids = await ReadData.read_received_present_all_ids(
            user_id, [present.id for present in normal_presents], session
        )

        presents = []
        histories = []
        for normal_present in normal_presents:
            if normal_present.id in received_ids:
                continue
            presents.append(
                UserPresent(
                    id=self.id_generator.generate(),
                    user_id=user_id,
                    sent_at=request_at,
                    item_type=normal_present.item_type,
                    item_id=normal_present.item_id,
                    amount=normal_present.amount,
                    present_message=normal_present.present_message,
                    created_at=request_at,
                    updated_at=request_at,
                )
            )
            histories.append(
                UserPresentAllReceivedHistory(
                    id=self.id_generator.generate(),
                    user_id=user_id,
                    present_all_id=normal_present.id,
                    received_at=request_at,
                    created_at=request_at,
                    updated_at=request_at,
                )
            )

        await CreateData.add_rows(presents + histories, session)
        return [UserPresentSchema.model_validate(present) for present in presents]
