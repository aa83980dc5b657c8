from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from conquest.models.request_models import (
    AddExpToCardRequest,
    AddExpToCardResponse,
    CreateUserRequest,
    CreateUserResponse,
    DrawGachaRequest,
    DrawGachaResponse,
    HomeResponse,
    InitializeResponse,
    ListGachaResponse,
    ListItemResponse,
    ListPresentResponse,
    LoginRequest,
    LoginResponse,
    ReceivePresentRequest,
    ReceivePresentResponse,
    RewardRequest,
    RewardResponse,
    UpdateDeckRequest,
    UpdateDeckResponse,
)
from conquest.routers.dependencies import check_api_request, check_user_request, get_request_at, get_service
from conquest.services.game import GameService

game_router = APIRouter()


class AccountAPI:
    @staticmethod
    @game_router.post(
        "/user",
        response_model=CreateUserResponse,
        response_model_exclude_none=True,
        dependencies=[Depends(check_api_request)],
    )
    async def create_user(
        req: CreateUserRequest,
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.create_user(req, request_at)

    @staticmethod
    @game_router.post(
        "/login",
        response_model=LoginResponse,
        response_model_exclude_none=True,
        dependencies=[Depends(check_api_request)],
    )
    async def login(
        req: LoginRequest,
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.login(req, request_at)

    @staticmethod
    @game_router.get("/user/{user_id}/home", response_model=HomeResponse, response_model_exclude_none=True)
    async def home(
        user_id: int = Depends(check_user_request),
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.home(user_id, request_at)

    @staticmethod
    @game_router.post("/user/{user_id}/reward", response_model=RewardResponse, response_model_exclude_none=True)
    async def reward(
        req: RewardRequest,
        user_id: int = Depends(check_user_request),
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.reward(user_id, req, request_at)


class GachaAPI:
    @staticmethod
    @game_router.get("/user/{user_id}/gacha/index", response_model=ListGachaResponse, response_model_exclude_none=True)
    async def list_gacha(
        user_id: int = Depends(check_user_request),
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.list_gacha(user_id, request_at)

    @staticmethod
    @game_router.post(
        "/user/{user_id}/gacha/draw/{gacha_id}/{n}",
        response_model=DrawGachaResponse,
        response_model_exclude_none=True,
    )
    async def draw_gacha(
        gacha_id: int,
        n: int,
        req: DrawGachaRequest,
        user_id: int = Depends(check_user_request),
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.draw_gacha(user_id, gacha_id, n, req, request_at)


class PresentAPI:
    @staticmethod
    @game_router.get(
        "/user/{user_id}/present/index/{n}",
        response_model=ListPresentResponse,
        response_model_exclude_none=True,
    )
    async def list_present(
        n: int,
        user_id: int = Depends(check_user_request),
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.list_present(user_id, n, request_at)

    @staticmethod
    @game_router.post(
        "/user/{user_id}/present/receive",
        response_model=ReceivePresentResponse,
        response_model_exclude_none=True,
    )
    async def receive_present(
        req: ReceivePresentRequest,
        user_id: int = Depends(check_user_request),
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.receive_present(user_id, req, request_at)


class CardAPI:
    @staticmethod
    @game_router.get("/user/{user_id}/item", response_model=ListItemResponse, response_model_exclude_none=True)
    async def list_item(
        user_id: int = Depends(check_user_request),
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.list_item(user_id, request_at)

    @staticmethod
    @game_router.post(
        "/user/{user_id}/card/addexp/{card_id}",
        response_model=AddExpToCardResponse,
        response_model_exclude_none=True,
    )
    async def add_exp_to_card(
        card_id: int,
        req: AddExpToCardRequest,
        user_id: int = Depends(check_user_request),
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.add_exp_to_card(user_id, card_id, req, request_at)

    @staticmethod
    @game_router.post("/user/{user_id}/card", response_model=UpdateDeckResponse, response_model_exclude_none=True)
    async def update_deck(
        req: UpdateDeckRequest,
        user_id: int = Depends(check_user_request),
        request_at: int = Depends(get_request_at),
        service: GameService = Depends(get_service),
    ):
        return await service.update_deck(user_id, req, request_at)


class AdminAPI:
    @staticmethod
    @game_router.post("/initialize", response_model=InitializeResponse)
    async def initialize(service: GameService = Depends(get_service)):
        """Create the schema on every shard and publish the active master version.
        Seeding the shards is done out of band before calling this.
        """
        await service.initialize()
        return InitializeResponse(language="python")

    @staticmethod
    @game_router.get("/health", response_class=PlainTextResponse)
    async def health():
        return "OK"
