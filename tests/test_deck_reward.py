import pytest
from sqlalchemy import select, update

from conquest.crud import ReadData
from conquest.errors import ClientError, ForbiddenError, NotFoundError
from conquest.models.request_models import RewardRequest, UpdateDeckRequest
from conquest.models.schemas import User, UserCard, UserDeck, UserPresent
from tests.conftest import BASE_TIME, RARE_CARD_ID, fetch_all, fetch_one, insert_rows


async def give_rare_card(context, user_id, card_id=900):
    await insert_rows(
        context,
        user_id,
        [
            UserCard(
                id=card_id,
                user_id=user_id,
                card_id=RARE_CARD_ID,
                amount_per_sec=20,
                level=1,
                total_exp=0,
                created_at=BASE_TIME,
                updated_at=BASE_TIME,
            )
        ],
    )
    return card_id


async def test_update_deck_replaces_the_active_deck(context, service, new_user):
    user_id = new_user.user_id
    starter = [c.id for c in new_user.updated_resources.user_cards]
    rare = await give_rare_card(context, user_id)

    response = await service.update_deck(
        user_id, UpdateDeckRequest(viewer_id="viewer-1", card_ids=[rare, starter[0], starter[1]]), BASE_TIME + 60
    )
    deck = response.updated_resources.user_decks[0]
    assert (deck.user_card_id_1, deck.user_card_id_2, deck.user_card_id_3) == (rare, starter[0], starter[1])

    decks = await fetch_all(context, user_id, select(UserDeck).where(UserDeck.user_id == user_id))
    active = [d for d in decks if d.deleted_at is None]
    assert [d.id for d in active] == [deck.id]
    assert [d.deleted_at for d in decks if d.id != deck.id] == [BASE_TIME + 60]


@pytest.mark.parametrize(
    "card_ids, reason",
    [
        ([1, 2], "invalid number of cards"),
        ([1, 2, 3, 4], "invalid number of cards"),
    ],
)
async def test_deck_needs_exactly_three_cards(service, new_user, card_ids, reason):
    with pytest.raises(ClientError) as excinfo:
        await service.update_deck(new_user.user_id, UpdateDeckRequest(viewer_id="viewer-1", card_ids=card_ids), BASE_TIME)
    assert excinfo.value.reason == reason


async def test_deck_cards_must_be_distinct(service, new_user):
    starter = [c.id for c in new_user.updated_resources.user_cards]
    with pytest.raises(ClientError) as excinfo:
        await service.update_deck(
            new_user.user_id, UpdateDeckRequest(viewer_id="viewer-1", card_ids=[starter[0], starter[0], starter[1]]), BASE_TIME
        )
    assert excinfo.value.reason == "invalid card ids"


async def test_deck_cards_must_be_owned(context, service, new_user):
    user_id = new_user.user_id
    starter = [c.id for c in new_user.updated_resources.user_cards]
    with pytest.raises(ClientError) as excinfo:
        await service.update_deck(
            user_id, UpdateDeckRequest(viewer_id="viewer-1", card_ids=[starter[0], starter[1], 424242]), BASE_TIME
        )
    assert excinfo.value.reason == "invalid card ids"

    decks = await fetch_all(context, user_id, select(UserDeck).where(UserDeck.deleted_at.is_(None)))
    assert len(decks) == 1


async def test_update_deck_requires_the_bound_device(service, new_user):
    with pytest.raises(ForbiddenError):
        await service.update_deck(new_user.user_id, UpdateDeckRequest(viewer_id="x", card_ids=[1, 2, 3]), BASE_TIME)


async def test_reward_accrues_elapsed_time_times_deck_yield(context, service, new_user):
    user_id = new_user.user_id
    yields = dict(zip((c.id for c in new_user.updated_resources.user_cards), (2, 2, 1)))

    async def prepare(session):
        await session.execute(update(User).where(User.id == user_id).values(coin=1000))
        for card_id, amount in yields.items():
            await session.execute(update(UserCard).where(UserCard.id == card_id).values(amount_per_sec=amount))

    await context.router.run(user_id, prepare)

    response = await service.reward(user_id, RewardRequest(viewer_id="viewer-1"), BASE_TIME + 3600)
    user = response.updated_resources.user
    assert (user.coin, user.last_getreward_at) == (19000, BASE_TIME + 3600)

    stored = await fetch_one(context, user_id, select(User).where(User.id == user_id))
    assert stored.coin == 19000


async def test_reward_is_monotonic(service, new_user):
    user_id = new_user.user_id
    first = await service.reward(user_id, RewardRequest(viewer_id="viewer-1"), BASE_TIME + 100)
    assert first.updated_resources.user.coin == 1100 + 100 * 30

    earlier = await service.reward(user_id, RewardRequest(viewer_id="viewer-1"), BASE_TIME + 50)
    assert earlier.updated_resources.user.coin == first.updated_resources.user.coin
    assert earlier.updated_resources.user.last_getreward_at == BASE_TIME + 100


async def test_reward_without_deck_is_not_found(context, service, new_user):
    user_id = new_user.user_id

    async def drop_deck(session):
        await session.execute(update(UserDeck).where(UserDeck.user_id == user_id).values(deleted_at=BASE_TIME))

    await context.router.run(user_id, drop_deck)
    with pytest.raises(NotFoundError):
        await service.reward(user_id, RewardRequest(viewer_id="viewer-1"), BASE_TIME + 10)


async def test_home_summarizes_the_deck(service, new_user):
    response = await service.home(new_user.user_id, BASE_TIME + 40)
    assert response.now == BASE_TIME + 40
    assert response.total_amount_per_sec == 30
    assert response.past_time == 40
    assert response.deck.id == new_user.updated_resources.user_decks[0].id
    assert response.user.id == new_user.user_id


async def test_home_does_not_touch_the_mailbox(context, service, new_user):
    user_id = new_user.user_id
    await service.home(user_id, BASE_TIME + 40)
    presents = await fetch_all(context, user_id, select(UserPresent).where(UserPresent.deleted_at.is_(None)))
    assert len(presents) == 1


async def test_update_deck_locks_the_user_row(service, new_user, monkeypatch):
    user_id = new_user.user_id
    starter = [c.id for c in new_user.updated_resources.user_cards]
    read_user = ReadData.read_user
    locked = []

    async def recording_read_user(target_id, session, for_update=False):
        locked.append((target_id, for_update))
        return await read_user(target_id, session, for_update=for_update)

    monkeypatch.setattr(ReadData, "read_user", staticmethod(recording_read_user))
    await service.update_deck(user_id, UpdateDeckRequest(viewer_id="viewer-1", card_ids=starter[::-1]), BASE_TIME + 5)

    assert (user_id, True) in locked
