from typing import Set, Tuple

from conquest.crud import ReadData
from conquest.shard_router import ShardRouter


class BanChecker:
    """Remembers banned users for the life of the process.

    Only positive results are cached: a ban is never lifted in-process, while a
    user who is not banned yet may be banned later.
    """

    def __init__(self, router: ShardRouter):
        self.router = router
        self._banned: Set[int] = set()

    async def is_banned(self, user_id: int) -> bool:
        if user_id in self._banned:
            return True

        async def work(session):
            return await ReadData.read_user_ban_exists(user_id, session)

        if await self.router.run(user_id, work):
            self._banned.add(user_id)
            return True
        return False


class ViewerIDChecker:
    """Memoizes (user, viewer) device bindings that are known to exist."""

    def __init__(self, router: ShardRouter):
        self.router = router
        self._registered: Set[Tuple[int, str]] = set()

    async def check(self, user_id: int, viewer_id: str) -> bool:
        if (user_id, viewer_id) in self._registered:
            return True

        async def work(session):
            return await ReadData.read_user_device_exists(user_id, viewer_id, session)

        if await self.router.run(user_id, work):
            self._registered.add((user_id, viewer_id))
            return True
        return False
