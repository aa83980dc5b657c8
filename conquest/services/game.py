"""Game transaction engine.

Every public coroutine resolves the user's shard, validates the request against
the caches and stores, and then performs its writes in one ``ShardRouter.run``
transaction. Checks that do not need the transaction (token, device, master
lookups) run before it is opened.
"""

import logging
from datetime import tzinfo
from typing import Dict, List

import numpy as np
from sqlalchemy.ext.asyncio import AsyncSession

from conquest.crud import CreateData, ReadData, ReadMasterData, UpdateData
from conquest.domain.game_rules import (
    ALLOWED_DRAW_COUNTS,
    DECK_CARD_NUMBER,
    INITIAL_CARD_ID,
    PRESENT_COUNT_PER_PAGE,
    accrue_reward,
    aggregate_presents,
    apply_level_up,
    draw_prize_indexes,
    gacha_cost,
    is_complete_today_login,
)
from conquest.errors import (
    ERR_CARD_MAX_LEVEL,
    ERR_CARD_NOT_FOUND,
    ERR_DECK_NOT_FOUND,
    ERR_EMPTY_PRESENT_IDS,
    ERR_FORBIDDEN,
    ERR_GACHA_ITEM_NOT_FOUND,
    ERR_GACHA_NOT_FOUND,
    ERR_INVALID_CARD_IDS,
    ERR_INVALID_CARD_NUMBER,
    ERR_INVALID_CARDS_LENGTH,
    ERR_INVALID_DRAW_COUNT,
    ERR_INVALID_ITEM_TYPE,
    ERR_INVALID_MASTER_VERSION,
    ERR_INVALID_PAGE,
    ERR_INVALID_TOKEN,
    ERR_ITEM_NOT_ENOUGH,
    ERR_ITEM_NOT_FOUND,
    ERR_NOT_ENOUGH_COIN,
    ERR_UNAUTHORIZED,
    ERR_USER_DEVICE_NOT_FOUND,
    ERR_USER_NOT_FOUND,
    ClientError,
    ConflictError,
    DataIntegrityError,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    UnprocessableError,
)
from conquest.id_generator import SnowflakeGenerator
from conquest.master_cache import MasterCache
from conquest.models.request_models import (
    AddExpToCardRequest,
    AddExpToCardResponse,
    CreateUserRequest,
    CreateUserResponse,
    DrawGachaRequest,
    DrawGachaResponse,
    GachaDataModel,
    HomeResponse,
    ListGachaResponse,
    ListItemResponse,
    ListPresentResponse,
    LoginRequest,
    LoginResponse,
    ReceivePresentRequest,
    ReceivePresentResponse,
    RewardRequest,
    RewardResponse,
    UpdatedResourcesModel,
    UpdateDeckRequest,
    UpdateDeckResponse,
)
from conquest.models.schema_models import (
    ItemType,
    TokenType,
    UserCardSchema,
    UserDeckSchema,
    UserDeviceSchema,
    UserItemSchema,
    UserPresentSchema,
    UserSchema,
)
from conquest.models.schemas import Base, User, UserDeck, UserDevice, UserOneTimeToken, UserPresent
from conquest.registry import BanChecker, ViewerIDChecker
from conquest.services.rewards import RewardGranter
from conquest.session_store import OneTimeTokenStore, SessionStore, TokenStatus
from conquest.shard_router import ShardRouter

VALID_ITEM_TYPES = frozenset(int(item_type) for item_type in ItemType)


class GameService:
    def __init__(
        self,
        router: ShardRouter,
        master_cache: MasterCache,
        session_store: SessionStore,
        token_store: OneTimeTokenStore,
        ban_checker: BanChecker,
        viewer_checker: ViewerIDChecker,
        id_generator: SnowflakeGenerator,
        rng: np.random.Generator,
        tz: tzinfo,
    ):
        self.router = router
        self.master_cache = master_cache
        self.session_store = session_store
        self.token_store = token_store
        self.ban_checker = ban_checker
        self.viewer_checker = viewer_checker
        self.id_generator = id_generator
        self.rng = rng
        self.tz = tz
        self.rewards = RewardGranter(master_cache, id_generator)

    # ==========================================================================
    # ==== Request checks ======================================================
    # ==========================================================================

    async def current_master_version(self, user_id: int = 0) -> str:
        async def work(session: AsyncSession) -> str:
            return await self.master_cache.current_version(session)

        return await self.router.run(user_id, work)

    async def check_master_version(self, user_id: int, master_version: str | None) -> str:
        """Reject requests built against another master version

        Raises:
            UnprocessableError: ``master_version`` is missing or stale
        """
        current = await self.current_master_version(user_id)
        if master_version != current:
            raise UnprocessableError(ERR_INVALID_MASTER_VERSION)
        return current

    async def check_ban(self, user_id: int) -> None:
        if await self.ban_checker.is_banned(user_id):
            raise UnauthorizedError(ERR_UNAUTHORIZED)

    async def check_session(self, user_id: int, session_id: str | None) -> None:
        """Resolve the session and make sure it belongs to ``user_id``

        Raises:
            UnauthorizedError: No session id, or the session is unknown/expired
            ForbiddenError: The session belongs to another user
        """
        if not session_id:
            raise UnauthorizedError(ERR_UNAUTHORIZED)
        session_user_id = await self.session_store.get(session_id)
        if session_user_id is None:
            raise UnauthorizedError(ERR_UNAUTHORIZED)
        if session_user_id != user_id:
            raise ForbiddenError(ERR_FORBIDDEN)

    async def _check_viewer(self, user_id: int, viewer_id: str) -> None:
        if not await self.viewer_checker.check(user_id, viewer_id):
            raise ForbiddenError(ERR_USER_DEVICE_NOT_FOUND)

    async def _issue_token(self, user_id: int, token_type: TokenType, request_at: int) -> str:
        """Issue a one-time token and record it in the user's audit rows"""
        token = self.token_store.new_token()

        async def work(session: AsyncSession) -> None:
            await UpdateData.soft_delete_user_tokens(user_id, int(token_type), request_at, session)
            row = UserOneTimeToken(
                id=self.id_generator.generate(),
                user_id=user_id,
                token=token,
                token_type=int(token_type),
                created_at=request_at,
                updated_at=request_at,
                expired_at=request_at + self.token_store.ttl,
            )
            await CreateData.add_rows([row], session)

        await self.router.run(user_id, work)
        return await self.token_store.issue(user_id, token_type, request_at, token=token)

    async def _consume_token(self, user_id: int, token: str, token_type: TokenType, request_at: int) -> None:
        """Consume a one-time token, marking its audit row used or expired

        Raises:
            ClientError: The token is unknown, already used, of another type or expired
        """
        status = await self.token_store.consume(user_id, token, token_type, request_at)
        if status == TokenStatus.INVALID:
            raise ClientError(ERR_INVALID_TOKEN)

        async def work(session: AsyncSession) -> None:
            await UpdateData.soft_delete_token(token, request_at, session)

        await self.router.run(user_id, work)
        if status == TokenStatus.EXPIRED:
            logging.info(f"Expired one-time token presented by user {user_id}")
            raise ClientError(ERR_INVALID_TOKEN)

    # ==========================================================================
    # ==== Account =============================================================
    # ==========================================================================

    async def create_user(self, req: CreateUserRequest, request_at: int) -> CreateUserResponse:
        """Register a user with a device binding, starter cards and a deck

        The new user goes through the login process in the same transaction,
        so starter login bonuses and global presents are granted at once.
        """
        init_card = self.master_cache.item_by_id(INITIAL_CARD_ID)
        if init_card is None:
            raise NotFoundError(ERR_ITEM_NOT_FOUND)
        user_id = self.id_generator.generate()

        async def work(session: AsyncSession):
            user = User(
                id=user_id,
                coin=0,
                last_getreward_at=request_at,
                last_activated_at=request_at,
                registered_at=request_at,
                created_at=request_at,
                updated_at=request_at,
            )
            device = UserDevice(
                id=self.id_generator.generate(),
                user_id=user_id,
                platform_id=req.viewer_id,
                platform_type=req.platform_type,
                created_at=request_at,
                updated_at=request_at,
            )
            await CreateData.add_rows([user, device], session)

            cards = await self.rewards.obtain_cards(user_id, request_at, [init_card.id] * DECK_CARD_NUMBER, session)
            deck = UserDeck(
                id=self.id_generator.generate(),
                user_id=user_id,
                user_card_id_1=cards[0].id,
                user_card_id_2=cards[1].id,
                user_card_id_3=cards[2].id,
                created_at=request_at,
                updated_at=request_at,
            )
            await CreateData.add_rows([deck], session)

            user_schema, login_bonuses, presents = await self.rewards.login_process(user_id, request_at, session)
            return (
                user_schema,
                UserDeviceSchema.model_validate(device),
                cards,
                UserDeckSchema.model_validate(deck),
                login_bonuses,
                presents,
            )

        user, device, cards, deck, login_bonuses, presents = await self.router.run(user_id, work)
        session = await self.session_store.create(user_id)
        logging.info(f"Created user {user_id} on shard {self.router.shard_index(user_id)}")

        return CreateUserResponse(
            user_id=user_id,
            viewer_id=req.viewer_id,
            session_id=session.session_id,
            created_at=request_at,
            updated_resources=UpdatedResourcesModel(
                now=request_at,
                user=user,
                user_device=device,
                user_cards=cards,
                user_decks=[deck],
                user_login_bonuses=login_bonuses,
                user_presents=presents,
            ),
        )

    async def login(self, req: LoginRequest, request_at: int) -> LoginResponse:
        """Open a session and run the daily login process

        A second login on the same calendar day only refreshes the activity
        timestamp.

        Raises:
            NotFoundError: Unknown user
            ForbiddenError: The user is banned or the device is not bound to the user
        """
        user_id = req.user_id

        async def read_user(session: AsyncSession) -> bool:
            return await ReadData.read_user(user_id, session) is not None

        if not await self.router.run(user_id, read_user):
            raise NotFoundError(ERR_USER_NOT_FOUND)
        if await self.ban_checker.is_banned(user_id):
            raise ForbiddenError(ERR_FORBIDDEN)
        await self._check_viewer(user_id, req.viewer_id)

        async def work(session: AsyncSession) -> UpdatedResourcesModel:
            user = await ReadData.read_user(user_id, session, for_update=True)
            if user is None:
                raise NotFoundError(ERR_USER_NOT_FOUND)
            if is_complete_today_login(user.last_activated_at, request_at, self.tz):
                await UpdateData.touch_user_activity(user_id, request_at, session)
                user = await ReadData.read_user(user_id, session)
                return UpdatedResourcesModel(now=request_at, user=UserSchema.model_validate(user))

            user_schema, login_bonuses, presents = await self.rewards.login_process(user_id, request_at, session)
            return UpdatedResourcesModel(
                now=request_at,
                user=user_schema,
                user_login_bonuses=login_bonuses,
                user_presents=presents,
            )

        updated_resources = await self.router.run(user_id, work)
        session = await self.session_store.create(user_id)
        return LoginResponse(viewer_id=req.viewer_id, session_id=session.session_id, updated_resources=updated_resources)

    # ==========================================================================
    # ==== Gacha ===============================================================
    # ==========================================================================

    async def list_gacha(self, user_id: int, request_at: int) -> ListGachaResponse:
        gachas = self.master_cache.active_gachas(request_at)
        if not gachas:
            return ListGachaResponse(one_time_token="", gachas=[])

        gacha_data_list = []
        for gacha in gachas:
            prize_table = self.master_cache.gacha_prize_table(gacha.id)
            if not prize_table:
                raise NotFoundError(ERR_GACHA_ITEM_NOT_FOUND)
            gacha_data_list.append(GachaDataModel(gacha=gacha, gacha_item_list=prize_table))

        token = await self._issue_token(user_id, TokenType.GACHA, request_at)
        return ListGachaResponse(one_time_token=token, gachas=gacha_data_list)

    async def draw_gacha(
        self, user_id: int, gacha_id: int, draw_count: int, req: DrawGachaRequest, request_at: int
    ) -> DrawGachaResponse:
        """Draw ``draw_count`` prizes and put them into the mailbox

        The whole batch costs ``gacha_cost(draw_count)`` coins, deducted once
        in the same transaction that stores the prizes.

        Raises:
            ClientError: Bad draw count or token
            ForbiddenError: Device not bound to the user
            NotFoundError: Unknown or inactive gacha, or a gacha without prizes
            ConflictError: Not enough coin
        """
        if draw_count not in ALLOWED_DRAW_COUNTS:
            raise ClientError(ERR_INVALID_DRAW_COUNT)
        await self._consume_token(user_id, req.one_time_token, TokenType.GACHA, request_at)
        await self._check_viewer(user_id, req.viewer_id)

        gacha = self.master_cache.gacha_by_id(gacha_id, request_at)
        if gacha is None:
            raise NotFoundError(ERR_GACHA_NOT_FOUND)
        prize_table = self.master_cache.gacha_prize_table(gacha_id)
        if not prize_table:
            raise NotFoundError(ERR_GACHA_ITEM_NOT_FOUND)

        consumed_coin = gacha_cost(draw_count)
        prizes = [
            prize_table[i] for i in draw_prize_indexes([entry.weight for entry in prize_table], draw_count, self.rng)
        ]

        async def work(session: AsyncSession) -> List[UserPresentSchema]:
            user = await ReadData.read_user(user_id, session, for_update=True)
            if user is None:
                raise NotFoundError(ERR_USER_NOT_FOUND)
            if user.coin < consumed_coin:
                raise ConflictError(ERR_NOT_ENOUGH_COIN)

            presents = [
                UserPresent(
                    id=self.id_generator.generate(),
                    user_id=user_id,
                    sent_at=request_at,
                    item_type=prize.item_type,
                    item_id=prize.item_id,
                    amount=prize.amount,
                    present_message=f"Item granted by {gacha.name}",
                    created_at=request_at,
                    updated_at=request_at,
                )
                for prize in prizes
            ]
            await CreateData.add_rows(presents, session)
            await UpdateData.add_coin(user_id, -consumed_coin, session)
            return [UserPresentSchema.model_validate(present) for present in presents]

        presents = await self.router.run(user_id, work)
        return DrawGachaResponse(presents=presents)

    # ==========================================================================
    # ==== Presents ============================================================
    # ==========================================================================

    async def list_present(self, user_id: int, page: int, request_at: int) -> ListPresentResponse:
        if page < 1:
            raise ClientError(ERR_INVALID_PAGE)
        offset = PRESENT_COUNT_PER_PAGE * (page - 1)

        async def work(session: AsyncSession) -> List[UserPresentSchema]:
            rows = await ReadData.read_present_page(user_id, offset, PRESENT_COUNT_PER_PAGE + 1, session)
            return [UserPresentSchema.model_validate(row) for row in rows]

        presents = await self.router.run(user_id, work)
        is_next = len(presents) > PRESENT_COUNT_PER_PAGE
        return ListPresentResponse(presents=presents[:PRESENT_COUNT_PER_PAGE], is_next=is_next)

    async def receive_present(self, user_id: int, req: ReceivePresentRequest, request_at: int) -> ReceivePresentResponse:
        """Collect presents from the mailbox and grant their contents in one pass

        Ids that are unknown, belong to someone else or were already collected
        are ignored. Nothing left to collect is a success with no presents.
        """
        if not req.present_ids:
            raise UnprocessableError(ERR_EMPTY_PRESENT_IDS)
        await self._check_viewer(user_id, req.viewer_id)

        async def work(session: AsyncSession) -> UpdatedResourcesModel:
            rows = await ReadData.read_unreceived_presents(user_id, req.present_ids, session)
            if not rows:
                return UpdatedResourcesModel(now=request_at, user_presents=[])
            if any(row.item_type not in VALID_ITEM_TYPES for row in rows):
                raise ClientError(ERR_INVALID_ITEM_TYPE)

            presents = [
                UserPresentSchema.model_validate(row).model_copy(
                    update={"deleted_at": request_at, "updated_at": request_at}
                )
                for row in rows
            ]
            await UpdateData.soft_delete_presents([present.id for present in presents], request_at, session)

            coin, card_ids, stackables = aggregate_presents(presents)
            await self.rewards.obtain_coin(user_id, coin, session)
            cards = await self.rewards.obtain_cards(user_id, request_at, card_ids, session)
            items = await self.rewards.obtain_items(user_id, request_at, stackables, session)

            user = await ReadData.read_user(user_id, session)
            if user is None:
                raise NotFoundError(ERR_USER_NOT_FOUND)
            return UpdatedResourcesModel(
                now=request_at,
                user=UserSchema.model_validate(user),
                user_cards=cards or None,
                user_items=items or None,
                user_presents=presents,
            )

        updated_resources = await self.router.run(user_id, work)
        return ReceivePresentResponse(updated_resources=updated_resources)

    # ==========================================================================
    # ==== Items and cards =====================================================
    # ==========================================================================

    async def list_item(self, user_id: int, request_at: int) -> ListItemResponse:
        async def work(session: AsyncSession):
            user = await ReadData.read_user(user_id, session)
            if user is None:
                raise NotFoundError(ERR_USER_NOT_FOUND)
            items = await ReadData.read_user_items(user_id, session)
            cards = await ReadData.read_user_cards(user_id, session)
            return (
                UserSchema.model_validate(user),
                [UserItemSchema.model_validate(item) for item in items],
                [UserCardSchema.model_validate(card) for card in cards],
            )

        user, items, cards = await self.router.run(user_id, work)
        token = await self._issue_token(user_id, TokenType.CARD_EXP, request_at)
        return ListItemResponse(one_time_token=token, user=user, items=items, cards=cards)

    async def add_exp_to_card(
        self, user_id: int, card_id: int, req: AddExpToCardRequest, request_at: int
    ) -> AddExpToCardResponse:
        """Feed experience materials to a card and level it up

        Raises:
            NotFoundError: Unknown card, material or item master
            ClientError: Card already at max level, bad token, or not enough material
            ForbiddenError: Device not bound to the user
        """

        async def read_card(session: AsyncSession) -> UserCardSchema | None:
            card = await ReadData.read_user_card(user_id, card_id, session)
            return UserCardSchema.model_validate(card) if card is not None else None

        target = await self.router.run(user_id, read_card)
        if target is None:
            raise NotFoundError(ERR_CARD_NOT_FOUND)
        card_master = self.master_cache.item_by_id(target.card_id)
        if card_master is None:
            raise NotFoundError(ERR_ITEM_NOT_FOUND)
        if target.level >= card_master.max_level:
            raise ClientError(ERR_CARD_MAX_LEVEL)

        consumes: Dict[int, int] = {}
        for consume in req.items:
            consumes[consume.id] = consumes.get(consume.id, 0) + consume.amount

        await self._consume_token(user_id, req.one_time_token, TokenType.CARD_EXP, request_at)
        await self._check_viewer(user_id, req.viewer_id)

        async def work(session: AsyncSession) -> UpdatedResourcesModel:
            card = await ReadData.read_user_card(user_id, card_id, session, for_update=True)
            if card is None:
                raise NotFoundError(ERR_CARD_NOT_FOUND)
            if card.level >= card_master.max_level:
                raise ClientError(ERR_CARD_MAX_LEVEL)

            gained_exp = 0
            materials = []
            for user_item_id, consume_amount in consumes.items():
                material = await ReadData.read_exp_material(user_id, user_item_id, session)
                if material is None:
                    raise NotFoundError(ERR_ITEM_NOT_FOUND)
                if consume_amount > material.amount:
                    raise ClientError(ERR_ITEM_NOT_ENOUGH)
                material_master = self.master_cache.item_by_id(material.item_id)
                if material_master is None:
                    raise NotFoundError(ERR_ITEM_NOT_FOUND)
                gained_exp += (material_master.gained_exp or 0) * consume_amount
                materials.append((material, consume_amount))

            card.total_exp += gained_exp
            card.level, card.amount_per_sec = apply_level_up(
                card.level,
                card.total_exp,
                card.amount_per_sec,
                card_master.base_exp_per_level,
                card_master.amount_per_sec,
                card_master.max_amount_per_sec,
                card_master.max_level,
            )
            card.updated_at = request_at
            for material, consume_amount in materials:
                material.amount -= consume_amount
                material.updated_at = request_at
            await session.flush()

            return UpdatedResourcesModel(
                now=request_at,
                user_cards=[UserCardSchema.model_validate(card)],
                user_items=[UserItemSchema.model_validate(material) for material, _ in materials],
            )

        updated_resources = await self.router.run(user_id, work)
        return AddExpToCardResponse(updated_resources=updated_resources)

    async def update_deck(self, user_id: int, req: UpdateDeckRequest, request_at: int) -> UpdateDeckResponse:
        """Replace the active deck with three distinct cards the user owns"""
        if len(req.card_ids) != DECK_CARD_NUMBER:
            raise ClientError(ERR_INVALID_CARD_NUMBER)
        if len(set(req.card_ids)) != DECK_CARD_NUMBER:
            raise ClientError(ERR_INVALID_CARD_IDS)
        await self._check_viewer(user_id, req.viewer_id)

        async def work(session: AsyncSession) -> UserDeckSchema:
            # the user row lock serializes deck replacements
            user = await ReadData.read_user(user_id, session, for_update=True)
            if user is None:
                raise NotFoundError(ERR_USER_NOT_FOUND)
            cards = await ReadData.read_user_cards_by_ids(user_id, req.card_ids, session)
            if len(cards) != DECK_CARD_NUMBER:
                raise ClientError(ERR_INVALID_CARD_IDS)

            await UpdateData.soft_delete_active_deck(user_id, request_at, session)
            deck = UserDeck(
                id=self.id_generator.generate(),
                user_id=user_id,
                user_card_id_1=req.card_ids[0],
                user_card_id_2=req.card_ids[1],
                user_card_id_3=req.card_ids[2],
                created_at=request_at,
                updated_at=request_at,
            )
            await CreateData.add_rows([deck], session)
            return UserDeckSchema.model_validate(deck)

        deck = await self.router.run(user_id, work)
        return UpdateDeckResponse(updated_resources=UpdatedResourcesModel(now=request_at, user_decks=[deck]))

    # ==========================================================================
    # ==== Passive reward ======================================================
    # ==========================================================================

    async def reward(self, user_id: int, req: RewardRequest, request_at: int) -> RewardResponse:
        """Collect the coin the active deck produced since the last collection

        Raises:
            NotFoundError: Unknown user or no active deck
            ClientError: The deck does not reference three owned cards
        """
        await self._check_viewer(user_id, req.viewer_id)

        async def work(session: AsyncSession) -> UserSchema:
            user = await ReadData.read_user(user_id, session, for_update=True)
            if user is None:
                raise NotFoundError(ERR_USER_NOT_FOUND)
            deck = await ReadData.read_active_deck(user_id, session)
            if deck is None:
                raise NotFoundError(ERR_DECK_NOT_FOUND)
            cards = await ReadData.read_user_cards_by_ids(
                user_id, [deck.user_card_id_1, deck.user_card_id_2, deck.user_card_id_3], session
            )
            if len(cards) != DECK_CARD_NUMBER:
                raise ClientError(ERR_INVALID_CARDS_LENGTH)

            user.coin, user.last_getreward_at = accrue_reward(
                user.coin, user.last_getreward_at, request_at, [card.amount_per_sec for card in cards]
            )
            user.updated_at = request_at
            await session.flush()
            return UserSchema.model_validate(user)

        user = await self.router.run(user_id, work)
        return RewardResponse(updated_resources=UpdatedResourcesModel(now=request_at, user=user))

    async def home(self, user_id: int, request_at: int) -> HomeResponse:
        async def work(session: AsyncSession) -> HomeResponse:
            user = await ReadData.read_user(user_id, session)
            if user is None:
                raise NotFoundError(ERR_USER_NOT_FOUND)
            deck = await ReadData.read_active_deck(user_id, session)
            total_amount_per_sec = 0
            if deck is not None:
                cards = await ReadData.read_user_cards_by_ids(
                    user_id, [deck.user_card_id_1, deck.user_card_id_2, deck.user_card_id_3], session
                )
                total_amount_per_sec = sum(card.amount_per_sec for card in cards)
            return HomeResponse(
                now=request_at,
                user=UserSchema.model_validate(user),
                deck=UserDeckSchema.model_validate(deck) if deck is not None else None,
                total_amount_per_sec=total_amount_per_sec,
                past_time=max(0, request_at - user.last_getreward_at),
            )

        return await self.router.run(user_id, work)

    # ==========================================================================
    # ==== Administration ======================================================
    # ==========================================================================

    async def initialize(self) -> str:
        """Create the schema on every shard and publish the active master version

        Raises:
            DataIntegrityError: Shard 0 has no active master version row

        Returns:
            str: The published master version
        """
        for index in range(self.router.shard_count):
            engine = self.router.engine_for_index(index)
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logging.info(f"Initialized schema on shard {index}")

        shard_zero = self.router.all_shards()[0]

        async def work(session: AsyncSession) -> str:
            master_version = await ReadMasterData.read_active_master_version(session)
            if master_version is None:
                raise DataIntegrityError(ERR_INVALID_MASTER_VERSION)
            await self.master_cache.version_store.set_master_version(master_version)
            await self.master_cache.reload(master_version, session, force=True)
            return master_version

        return await self.router.run_on(shard_zero, work)

    async def sweep_expired_tokens(self, now: int) -> int:
        """Soft-delete expired one-time token audit rows on every shard"""

        async def work(session: AsyncSession) -> int:
            return await UpdateData.soft_delete_expired_tokens(now, session)

        swept = 0
        for session_maker in self.router.all_shards():
            swept += await self.router.run_on(session_maker, work)
        logging.info(f"Swept {swept} expired one-time tokens")
        return swept
