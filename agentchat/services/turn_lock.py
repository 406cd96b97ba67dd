"""Per-session turn locks so only one AI turn runs per session at a time."""

import uuid
from typing import Protocol

import redis.asyncio as redis
import structlog

from agentchat.core.exceptions import TurnInProgressError

logger = structlog.get_logger()

TURN_LOCK_PREFIX = "turn_lock"


class TurnLock(Protocol):
    async def acquire(self, session_id: str) -> str: ...

    async def release(self, session_id: str, token: str) -> None: ...


class InMemoryTurnLock:
    """Process-local turn lock."""

    def __init__(self) -> None:
        self._owners: dict[str, str] = {}

    async def acquire(self, session_id: str) -> str:
        """Claim the session or raise TurnInProgressError."""
        if session_id in self._owners:
            raise TurnInProgressError(session_id)
        token = uuid.uuid4().hex
        self._owners[session_id] = token
        return token

    async def release(self, session_id: str, token: str) -> None:
        if self._owners.get(session_id) == token:
            del self._owners[session_id]

    def is_held(self, session_id: str) -> bool:
        return session_id in self._owners


class RedisTurnLock:
    """Turn lock shared across workers via Redis ``SET NX EX``."""

    def __init__(self, client: redis.Redis, ttl_seconds: int) -> None:  # type: ignore[type-arg]
        self._redis = client
        self._ttl = ttl_seconds

    @staticmethod
    def _key(session_id: str) -> str:
        return f"{TURN_LOCK_PREFIX}:{session_id}"

    async def acquire(self, session_id: str) -> str:
        """Claim the session or raise TurnInProgressError."""
        token = uuid.uuid4().hex
        acquired = await self._redis.set(
            self._key(session_id), token, nx=True, ex=self._ttl
        )
        if not acquired:
            raise TurnInProgressError(session_id)
        return token

    async def release(self, session_id: str, token: str) -> None:
        key = self._key(session_id)
        async with self._redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(key)
                if await pipe.get(key) != token:
                    await pipe.unwatch()
                    logger.warning(
                        "Turn lock expired before release", session_id=session_id
                    )
                    return
                pipe.multi()
                pipe.delete(key)
                await pipe.execute()
            except redis.WatchError:
                logger.warning("Turn lock changed during release", session_id=session_id)

    async def is_held(self, session_id: str) -> bool:
        return bool(await self._redis.exists(self._key(session_id)))
