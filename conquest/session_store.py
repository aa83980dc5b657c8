import json
import logging
from enum import Enum

from redis.asyncio import Redis
from redis.exceptions import WatchError
from uuid6 import uuid7

from conquest.domain.game_rules import ONE_TIME_TOKEN_TTL, SESSION_TTL
from conquest.models.schema_models import SessionSchema


class SessionStore:
    """Login sessions, kept only in the shared store.

    Creating a session never revokes the user's other sessions.
    """

    def __init__(self, redis: Redis, ttl: int = SESSION_TTL):
        self.redis = redis
        self.ttl = ttl

    @staticmethod
    def _key(session_id: str) -> str:
        return f"user_session_{session_id}"

    async def create(self, user_id: int) -> SessionSchema:
        session = SessionSchema(user_id=user_id, session_id=f"{uuid7()}::{user_id}")
        await self.put(session.session_id, user_id, self.ttl)
        return session

    async def put(self, session_id: str, user_id: int, ttl: int) -> None:
        payload = SessionSchema(user_id=user_id, session_id=session_id).model_dump_json()
        await self.redis.setex(self._key(session_id), ttl, payload)

    async def get(self, session_id: str) -> int | None:
        """Return the user id owning ``session_id``, or None if absent/expired"""
        payload = await self.redis.get(self._key(session_id))
        if payload is None:
            return None
        return SessionSchema.model_validate_json(payload).user_id


class TokenStatus(str, Enum):
    OK = "ok"
    EXPIRED = "expired"
    INVALID = "invalid"


class OneTimeTokenStore:
    """Single-use, typed, expiring tokens.

    One live token per (user, type): issuing replaces the previous one.
    """

    def __init__(self, redis: Redis, ttl: int = ONE_TIME_TOKEN_TTL):
        self.redis = redis
        self.ttl = ttl

    @staticmethod
    def _key(user_id: int, token_type: int) -> str:
        return f"one_time_token_{user_id}_{int(token_type)}"

    @staticmethod
    def new_token() -> str:
        return str(uuid7())

    async def issue(self, user_id: int, token_type: int, request_at: int, token: str | None = None, ttl: int | None = None) -> str:
        """Store a new token for the user, replacing any earlier one of this type

        Args:
            user_id (int): Owner of the token
            token_type (int): TokenType value
            request_at (int): Request time, the token expires at ``request_at + ttl``
            token (str | None, optional): Pre-generated token. Defaults to a new uuid7.
            ttl (int | None, optional): Lifetime in seconds. Defaults to the store ttl.

        Returns:
            str: The token
        """
        ttl = self.ttl if ttl is None else ttl
        token = token or self.new_token()
        payload = json.dumps({"token": token, "token_type": int(token_type), "expired_at": request_at + ttl})
        await self.redis.setex(self._key(user_id, token_type), ttl, payload)
        return token

    async def consume(self, user_id: int, token: str, token_type: int, now: int) -> TokenStatus:
        """Match-and-delete the token in one optimistic transaction

        A concurrent consume of the same token changes the watched key, so at
        most one caller sees OK.
        """
        key = self._key(user_id, token_type)
        async with self.redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                payload = await pipe.get(key)
                if payload is None:
                    await pipe.unwatch()
                    return TokenStatus.INVALID
                stored = json.loads(payload)
                if stored["token"] != token or stored["token_type"] != int(token_type):
                    await pipe.unwatch()
                    return TokenStatus.INVALID
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
            except WatchError:
                logging.info(f"One-time token for user {user_id} was used concurrently")
                return TokenStatus.INVALID

        if stored["expired_at"] < now:
            return TokenStatus.EXPIRED
        return TokenStatus.OK
