import logging
import time
from email.utils import parsedate_to_datetime

from fastapi import Depends, Header, Request

from conquest.context import GameContext
from conquest.services.game import GameService


def get_context(request: Request) -> GameContext:
    return request.app.state.context


def get_service(context: GameContext = Depends(get_context)) -> GameService:
    return context.service


def get_request_at(x_request_date: str | None = Header(default=None)) -> int:
    """Request time in unix seconds

    Taken from the RFC 1123 ``x-request-date`` header, falling back to the
    server clock when the header is absent or unparseable.
    """
    if x_request_date:
        try:
            return int(parsedate_to_datetime(x_request_date).timestamp())
        except (TypeError, ValueError):
            logging.debug(f"Unparseable x-request-date header: {x_request_date}")
    return int(time.time())


async def check_api_request(
    x_master_version: str | None = Header(default=None),
    service: GameService = Depends(get_service),
) -> None:
    """Master version check for routes without a user in the path"""
    await service.check_master_version(0, x_master_version)


async def check_user_request(
    user_id: int,
    x_master_version: str | None = Header(default=None),
    x_session: str | None = Header(default=None),
    service: GameService = Depends(get_service),
) -> int:
    """Master version, ban and session checks for ``/user/{user_id}/...``

    Returns:
        int: The checked user id
    """
    await service.check_master_version(user_id, x_master_version)
    await service.check_ban(user_id)
    await service.check_session(user_id, x_session)
    return user_id
