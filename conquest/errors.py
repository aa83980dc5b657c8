from fastapi import status

ERR_INVALID_REQUEST_BODY = "invalid request body"
ERR_INVALID_MASTER_VERSION = "invalid master version"
ERR_INVALID_ITEM_TYPE = "invalid item type"
ERR_INVALID_TOKEN = "invalid token"
ERR_USER_NOT_FOUND = "not found user"
ERR_USER_DEVICE_NOT_FOUND = "not found user device"
ERR_ITEM_NOT_FOUND = "not found item"
ERR_LOGIN_BONUS_REWARD_NOT_FOUND = "not found login bonus reward"
ERR_GACHA_NOT_FOUND = "not found gacha"
ERR_GACHA_ITEM_NOT_FOUND = "not found gacha item"
ERR_CARD_NOT_FOUND = "not found card"
ERR_DECK_NOT_FOUND = "not found deck"
ERR_UNAUTHORIZED = "unauthorized user"
ERR_FORBIDDEN = "forbidden"
ERR_NOT_ENOUGH_COIN = "not enough coin"
ERR_ITEM_NOT_ENOUGH = "item not enough"
ERR_CARD_MAX_LEVEL = "target card is max level"
ERR_INVALID_CARD_NUMBER = "invalid number of cards"
ERR_INVALID_CARD_IDS = "invalid card ids"
ERR_INVALID_CARDS_LENGTH = "invalid cards length"
ERR_INVALID_DRAW_COUNT = "invalid draw gacha times"
ERR_EMPTY_PRESENT_IDS = "presentIds is empty"
ERR_INVALID_PAGE = "index number is more than 1"
ERR_MASTER_NOT_LOADED = "master data is not loaded"
ERR_SHARD_TIMEOUT = "shard operation timed out"
ERR_INTERNAL = "internal server error"


class GameError(Exception):
    """Base class of every error the game engine raises on purpose.

    ``reason`` is the stable machine-readable string returned to clients.
    """

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class ClientError(GameError):
    status_code = status.HTTP_400_BAD_REQUEST


class ConflictError(ClientError):
    status_code = status.HTTP_409_CONFLICT


class UnprocessableError(ClientError):
    status_code = 422


class NotFoundError(GameError):
    status_code = status.HTTP_404_NOT_FOUND


class UnauthorizedError(GameError):
    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenError(GameError):
    status_code = status.HTTP_403_FORBIDDEN


class DataIntegrityError(GameError):
    """A master row that must exist by construction is missing."""


class InfrastructureError(GameError):
    """Shard or shared-store failure, surfaced after rollback."""
