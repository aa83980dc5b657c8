"""Row-level queries against one shard.

Every helper takes the caller's session and never commits: transaction
boundaries belong to the service layer (``ShardRouter.run``).
"""

from typing import Dict, Iterable, List, Set

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from conquest.models.schema_models import ItemType
from conquest.models.schemas import (
    GachaItemMaster,
    GachaMaster,
    ItemMaster,
    LoginBonusMaster,
    LoginBonusRewardMaster,
    PresentAllMaster,
    User,
    UserBan,
    UserCard,
    UserDeck,
    UserDevice,
    UserItem,
    UserLoginBonus,
    UserOneTimeToken,
    UserPresent,
    UserPresentAllReceivedHistory,
    VersionMaster,
)


class ReadData:
    @staticmethod
    async def read_user(user_id: int, session: AsyncSession, for_update: bool = False) -> User | None:
        """Read the user row, always refreshed from the database

        Args:
            user_id (int): To identify the user
            for_update (bool, optional): Lock the row until the transaction ends. Defaults to False.

        Returns:
            User | None: The user row, or None if the user does not exist
        """
        stmt = select(User).where(User.id == user_id).execution_options(populate_existing=True)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def read_user_device_exists(user_id: int, viewer_id: str, session: AsyncSession) -> bool:
        stmt = select(UserDevice.id).where(UserDevice.user_id == user_id, UserDevice.platform_id == viewer_id)
        result = await session.execute(stmt)
        return result.first() is not None

    @staticmethod
    async def read_user_ban_exists(user_id: int, session: AsyncSession) -> bool:
        stmt = select(UserBan.id).where(UserBan.user_id == user_id)
        result = await session.execute(stmt)
        return result.first() is not None

    @staticmethod
    async def read_login_bonus_progress(user_id: int, login_bonus_id: int, session: AsyncSession) -> UserLoginBonus | None:
        stmt = select(UserLoginBonus).where(
            UserLoginBonus.user_id == user_id, UserLoginBonus.login_bonus_id == login_bonus_id
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def read_received_present_all_ids(user_id: int, present_all_ids: List[int], session: AsyncSession) -> Set[int]:
        """Read which of the given global presents the user already received

        Args:
            user_id (int): To identify the user
            present_all_ids (List[int]): Candidate global present ids

        Returns:
            Set[int]: Subset of ``present_all_ids`` found in the received history
        """
        if not present_all_ids:
            return set()
        stmt = select(UserPresentAllReceivedHistory.present_all_id).where(
            UserPresentAllReceivedHistory.user_id == user_id,
            UserPresentAllReceivedHistory.present_all_id.in_(present_all_ids),
        )
        result = await session.execute(stmt)
        return set(result.scalars().all())

    @staticmethod
    async def read_user_items_by_item_ids(user_id: int, item_ids: Iterable[int], session: AsyncSession) -> Dict[int, UserItem]:
        item_ids = list(set(item_ids))
        if not item_ids:
            return {}
        stmt = (
            select(UserItem)
            .where(UserItem.user_id == user_id, UserItem.item_id.in_(item_ids))
            .with_for_update()
        )
        result = await session.execute(stmt)
        return {row.item_id: row for row in result.scalars().all()}

    @staticmethod
    async def read_user_items(user_id: int, session: AsyncSession) -> List[UserItem]:
        stmt = select(UserItem).where(UserItem.user_id == user_id).order_by(UserItem.id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def read_exp_material(user_id: int, user_item_id: int, session: AsyncSession) -> UserItem | None:
        """Read one experience material the user owns, locked for consumption"""
        stmt = (
            select(UserItem)
            .where(
                UserItem.id == user_item_id,
                UserItem.user_id == user_id,
                UserItem.item_type == int(ItemType.EXP_MATERIAL),
            )
            .with_for_update()
        )
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def read_user_cards(user_id: int, session: AsyncSession) -> List[UserCard]:
        stmt = select(UserCard).where(UserCard.user_id == user_id).order_by(UserCard.id)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def read_user_cards_by_ids(user_id: int, card_ids: List[int], session: AsyncSession) -> List[UserCard]:
        stmt = select(UserCard).where(UserCard.user_id == user_id, UserCard.id.in_(card_ids))
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def read_user_card(user_id: int, user_card_id: int, session: AsyncSession, for_update: bool = False) -> UserCard | None:
        stmt = select(UserCard).where(UserCard.id == user_card_id, UserCard.user_id == user_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def read_active_deck(user_id: int, session: AsyncSession) -> UserDeck | None:
        stmt = select(UserDeck).where(UserDeck.user_id == user_id, UserDeck.deleted_at.is_(None))
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def read_unreceived_presents(user_id: int, present_ids: List[int], session: AsyncSession) -> List[UserPresent]:
        """Read the given presents that are still in the user's mailbox, locked"""
        stmt = (
            select(UserPresent)
            .where(
                UserPresent.id.in_(present_ids),
                UserPresent.user_id == user_id,
                UserPresent.deleted_at.is_(None),
            )
            .order_by(UserPresent.id)
            .with_for_update()
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    @staticmethod
    async def read_present_page(user_id: int, offset: int, limit: int, session: AsyncSession) -> List[UserPresent]:
        stmt = (
            select(UserPresent)
            .where(UserPresent.user_id == user_id, UserPresent.deleted_at.is_(None))
            .order_by(UserPresent.created_at.desc(), UserPresent.id)
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())


class ReadMasterData:
    @staticmethod
    async def read_active_master_version(session: AsyncSession) -> str | None:
        stmt = select(VersionMaster.master_version).where(VersionMaster.status == 1)
        result = await session.execute(stmt)
        return result.scalars().first()

    @staticmethod
    async def read_all_masters(session: AsyncSession) -> dict:
        """Read every master table in the order the cache expects

        Returns:
            dict: table name -> list of ORM rows
        """
        statements = {
            "item_masters": select(ItemMaster).order_by(ItemMaster.id),
            "gacha_masters": select(GachaMaster).order_by(GachaMaster.display_order, GachaMaster.id),
            "gacha_item_masters": select(GachaItemMaster).order_by(GachaItemMaster.id),
            "login_bonus_masters": select(LoginBonusMaster).order_by(LoginBonusMaster.id),
            "login_bonus_reward_masters": select(LoginBonusRewardMaster).order_by(LoginBonusRewardMaster.id),
            "present_all_masters": select(PresentAllMaster).order_by(PresentAllMaster.id),
        }
        tables = {}
        for name, stmt in statements.items():
            result = await session.execute(stmt)
            tables[name] = list(result.scalars().all())
        return tables


class CreateData:
    @staticmethod
    async def add_rows(rows: Iterable, session: AsyncSession) -> None:
        """Stage new rows and flush them so constraint errors surface here"""
        session.add_all(list(rows))
        await session.flush()


class UpdateData:
    @staticmethod
    async def add_coin(user_id: int, amount: int, session: AsyncSession) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(coin=User.coin + amount)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)

    @staticmethod
    async def touch_user_activity(user_id: int, request_at: int, session: AsyncSession) -> None:
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(updated_at=request_at, last_activated_at=request_at)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)

    @staticmethod
    async def soft_delete_presents(present_ids: List[int], request_at: int, session: AsyncSession) -> None:
        stmt = (
            update(UserPresent)
            .where(UserPresent.id.in_(present_ids), UserPresent.deleted_at.is_(None))
            .values(deleted_at=request_at, updated_at=request_at)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)

    @staticmethod
    async def soft_delete_active_deck(user_id: int, request_at: int, session: AsyncSession) -> None:
        stmt = (
            update(UserDeck)
            .where(UserDeck.user_id == user_id, UserDeck.deleted_at.is_(None))
            .values(deleted_at=request_at, updated_at=request_at)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)

    @staticmethod
    async def soft_delete_user_tokens(user_id: int, token_type: int, request_at: int, session: AsyncSession) -> None:
        stmt = (
            update(UserOneTimeToken)
            .where(
                UserOneTimeToken.user_id == user_id,
                UserOneTimeToken.token_type == token_type,
                UserOneTimeToken.deleted_at.is_(None),
            )
            .values(deleted_at=request_at, updated_at=request_at)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)

    @staticmethod
    async def soft_delete_token(token: str, request_at: int, session: AsyncSession) -> None:
        stmt = (
            update(UserOneTimeToken)
            .where(UserOneTimeToken.token == token, UserOneTimeToken.deleted_at.is_(None))
            .values(deleted_at=request_at, updated_at=request_at)
            .execution_options(synchronize_session=False)
        )
        await session.execute(stmt)

    @staticmethod
    async def soft_delete_expired_tokens(now: int, session: AsyncSession) -> int:
        """Soft-delete every token audit row that expired before ``now``

        Returns:
            int: Number of rows marked
        """
        stmt = (
            update(UserOneTimeToken)
            .where(UserOneTimeToken.expired_at < now, UserOneTimeToken.deleted_at.is_(None))
            .values(deleted_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount
