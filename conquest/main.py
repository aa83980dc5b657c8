import logging
import time
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from conquest.context import GameContext, context_from_env
from conquest.errors import ERR_INTERNAL, ERR_INVALID_REQUEST_BODY, GameError
from conquest.load_secrets import token_sweep_minutes
from conquest.routers import game

logging.basicConfig(level=logging.INFO)


async def sweep_expired_tokens(context: GameContext) -> None:
    await context.service.sweep_expired_tokens(int(time.time()))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the process context unless one was injected, and start the
    periodic sweep of expired one-time tokens.
    """
    context = getattr(app.state, "context", None)
    owns_context = context is None
    if owns_context:
        context = context_from_env()
        app.state.context = context
        logging.info(f"Serving {context.router.shard_count} shards")

    scheduler = AsyncIOScheduler()
    scheduler.add_job(sweep_expired_tokens, "interval", minutes=token_sweep_minutes, args=[context])
    scheduler.start()
    try:
        yield
    finally:
        scheduler.shutdown()
        if owns_context:
            await context.close()
        logging.info("Stop Server")


async def game_error_handler(request: Request, exc: GameError) -> JSONResponse:
    if exc.status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
        logging.error(f"{request.method} {request.url.path}: {exc.reason}")
    else:
        logging.info(f"{request.method} {request.url.path}: {exc.status_code} {exc.reason}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.reason})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logging.info(f"{request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": ERR_INVALID_REQUEST_BODY})


async def infrastructure_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logging.error(f"{request.method} {request.url.path}: {exc!r}")
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": ERR_INTERNAL})


def create_app(context: GameContext | None = None) -> FastAPI:
    app = FastAPI(lifespan=lifespan)
    if context is not None:
        app.state.context = context
    app.include_router(game.game_router)
    app.add_exception_handler(GameError, game_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(SQLAlchemyError, infrastructure_error_handler)
    app.add_exception_handler(RedisError, infrastructure_error_handler)
    return app


app = create_app()


# if __name__ == "__main__":
#     uvicorn.run(app, host="0.0.0.0", port=8080)
