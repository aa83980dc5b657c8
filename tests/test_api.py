import pytest
from httpx import ASGITransport, AsyncClient

from conquest.main import create_app
from conquest.models.schemas import UserBan
from tests.conftest import BASE_TIME, DAY, MASTER_VERSION, STANDARD_GACHA_ID, insert_rows, request_date


@pytest.fixture
async def client(context):
    app = create_app(context)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


def headers(session_id=None, request_at=BASE_TIME, master_version=MASTER_VERSION):
    values = {"x-request-date": request_date(request_at), "x-master-version": master_version}
    if session_id is not None:
        values["x-session"] = session_id
    return values


@pytest.fixture
async def registered(client):
    response = await client.post("/user", json={"viewer_id": "api-viewer", "platform_type": 1}, headers=headers())
    assert response.status_code == 200
    return response.json()


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.text == "OK"


async def test_create_user(registered):
    assert registered["viewer_id"] == "api-viewer"
    assert registered["created_at"] == BASE_TIME
    resources = registered["updated_resources"]
    assert resources["now"] == BASE_TIME
    assert len(resources["user_cards"]) == 3
    # unchanged resources are omitted
    assert "user_items" not in resources


async def test_stale_master_version_is_unprocessable(client):
    response = await client.post(
        "/user", json={"viewer_id": "v", "platform_type": 1}, headers=headers(master_version="0")
    )
    assert response.status_code == 422
    assert response.json() == {"detail": "invalid master version"}


async def test_missing_master_version_is_unprocessable(client):
    response = await client.post("/user", json={"viewer_id": "v", "platform_type": 1})
    assert response.status_code == 422


@pytest.mark.parametrize(
    "body",
    [
        {"viewer_id": "", "platform_type": 1},
        {"viewer_id": "v", "platform_type": 4},
        {"platform_type": 1},
    ],
)
async def test_invalid_body_is_a_bad_request(client, body):
    response = await client.post("/user", json=body, headers=headers())
    assert response.status_code == 400
    assert response.json() == {"detail": "invalid request body"}


async def test_user_routes_require_a_session(client, registered):
    user_id = registered["user_id"]
    response = await client.get(f"/user/{user_id}/home", headers=headers())
    assert response.status_code == 401

    response = await client.get(f"/user/{user_id}/home", headers=headers(session_id="unknown::1"))
    assert response.status_code == 401


async def test_session_of_another_user_is_forbidden(client, registered):
    other = await client.post("/user", json={"viewer_id": "second", "platform_type": 2}, headers=headers())
    response = await client.get(
        f"/user/{registered['user_id']}/home", headers=headers(session_id=other.json()["session_id"])
    )
    assert response.status_code == 403


async def test_banned_user_is_unauthorized(context, client, registered):
    user_id = registered["user_id"]
    await insert_rows(context, user_id, [UserBan(id=1, user_id=user_id, created_at=BASE_TIME, updated_at=BASE_TIME)])
    response = await client.get(f"/user/{user_id}/home", headers=headers(session_id=registered["session_id"]))
    assert response.status_code == 401


async def test_home_uses_the_request_date_header(client, registered):
    response = await client.get(
        f"/user/{registered['user_id']}/home",
        headers=headers(session_id=registered["session_id"], request_at=BASE_TIME + 120),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["now"] == BASE_TIME + 120
    assert body["past_time"] == 120
    assert body["total_amount_per_sec"] == 30


async def test_login_then_gacha_then_presents(client, registered):
    user_id = registered["user_id"]
    login = await client.post(
        "/login", json={"viewer_id": "api-viewer", "user_id": user_id}, headers=headers(request_at=BASE_TIME + DAY)
    )
    assert login.status_code == 200
    session_id = login.json()["session_id"]
    auth = headers(session_id=session_id, request_at=BASE_TIME + DAY)

    listing = await client.get(f"/user/{user_id}/gacha/index", headers=auth)
    assert listing.status_code == 200
    token = listing.json()["one_time_token"]

    draw = await client.post(
        f"/user/{user_id}/gacha/draw/{STANDARD_GACHA_ID}/1",
        json={"viewer_id": "api-viewer", "one_time_token": token},
        headers=auth,
    )
    assert draw.status_code == 200
    assert len(draw.json()["presents"]) == 1

    reused = await client.post(
        f"/user/{user_id}/gacha/draw/{STANDARD_GACHA_ID}/1",
        json={"viewer_id": "api-viewer", "one_time_token": token},
        headers=auth,
    )
    assert reused.status_code == 400
    assert reused.json() == {"detail": "invalid token"}

    presents = await client.get(f"/user/{user_id}/present/index/1", headers=auth)
    assert presents.status_code == 200
    present_ids = [p["id"] for p in presents.json()["presents"]]
    assert len(present_ids) == 2

    received = await client.post(
        f"/user/{user_id}/present/receive",
        json={"viewer_id": "api-viewer", "present_ids": present_ids},
        headers=auth,
    )
    assert received.status_code == 200
    assert len(received.json()["updated_resources"]["user_presents"]) == 2


async def test_not_enough_coin_is_a_conflict(client, registered):
    user_id = registered["user_id"]
    auth = headers(session_id=registered["session_id"])
    token = (await client.get(f"/user/{user_id}/gacha/index", headers=auth)).json()["one_time_token"]
    response = await client.post(
        f"/user/{user_id}/gacha/draw/{STANDARD_GACHA_ID}/10",
        json={"viewer_id": "api-viewer", "one_time_token": token},
        headers=auth,
    )
    assert response.status_code == 409
    assert response.json() == {"detail": "not enough coin"}


async def test_empty_present_ids_are_unprocessable(client, registered):
    user_id = registered["user_id"]
    response = await client.post(
        f"/user/{user_id}/present/receive",
        json={"viewer_id": "api-viewer", "present_ids": []},
        headers=headers(session_id=registered["session_id"]),
    )
    assert response.status_code == 422
    assert response.json() == {"detail": "presentIds is empty"}


async def test_item_card_and_reward_routes(client, registered):
    user_id = registered["user_id"]
    auth = headers(session_id=registered["session_id"], request_at=BASE_TIME + 10)
    cards = [card["id"] for card in registered["updated_resources"]["user_cards"]]

    items = await client.get(f"/user/{user_id}/item", headers=auth)
    assert items.status_code == 200
    assert items.json()["items"] == []

    deck = await client.post(
        f"/user/{user_id}/card", json={"viewer_id": "api-viewer", "card_ids": list(reversed(cards))}, headers=auth
    )
    assert deck.status_code == 200
    assert deck.json()["updated_resources"]["user_decks"][0]["user_card_id_1"] == cards[2]

    reward = await client.post(f"/user/{user_id}/reward", json={"viewer_id": "api-viewer"}, headers=auth)
    assert reward.status_code == 200
    assert reward.json()["updated_resources"]["user"]["coin"] == 1100 + 10 * 30

    missing = await client.post(
        f"/user/{user_id}/card/addexp/{cards[0]}",
        json={"viewer_id": "api-viewer", "one_time_token": items.json()["one_time_token"], "items": [{"id": 1, "amount": 1}]},
        headers=auth,
    )
    assert missing.status_code == 404


async def test_initialize_reports_the_language(client):
    response = await client.post("/initialize")
    assert response.status_code == 200
    assert response.json() == {"language": "python"}
