import asyncio
import json

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import AbstractBackoff
from redis.exceptions import TimeoutError as RedisTimeoutError

from webmount.core.config import env
from webmount.core.logger import logger
from webmount.core.status import StatusObserver

# Negative retry count: the client never gives up reconnecting
RETRY_FOREVER = -1


class ReconnectBackoff(AbstractBackoff):
    """Waits the same delay before every reconnect attempt and reports it."""

    def __init__(self, delay: float, on_attempt=None):
        self.delay = delay
        self.on_attempt = on_attempt

    def compute(self, failures: int) -> float:
        logger.debug(f"Reconnecting to session store in {self.delay:g} second(s)")
        if self.on_attempt is not None:
            self.on_attempt(failures)
        return self.delay

    def __deepcopy__(self, memo):
        # The redis client deep-copies its retry policy; copies keep reporting
        # to the same callback
        return type(self)(self.delay, self.on_attempt)


class RedisSessionStore:
    """
    Session data kept in redis as JSON, one key per session id.

    The client keeps reconnecting with a fixed delay for as long as redis is
    down, but every command is bounded by SESSION_STORE_TIMEOUT_SECONDS and
    fails with a RedisError once it runs out, so a request never waits on an
    unreachable store.
    """

    name = "session"

    def __init__(
        self,
        settings=env,
        observer: StatusObserver | None = None,
        client: Redis | None = None,
    ):
        self.prefix = settings.SESSION_STORE_PREFIX
        self.ttl = settings.SESSION_TTL_SECONDS
        self.timeout = settings.SESSION_STORE_TIMEOUT_SECONDS
        self.observer = observer or StatusObserver()
        if client is None:
            backoff = ReconnectBackoff(
                settings.SESSION_STORE_RETRY_DELAY_SECONDS, self._on_reconnect
            )
            client = Redis(
                **settings.session_store_options,
                retry=Retry(backoff, RETRY_FOREVER),
                decode_responses=True,
            )
        self.client = client

    def _on_reconnect(self, attempt: int):
        self.observer.store_reconnect(self.name, attempt)

    def _key(self, session_id: str) -> str:
        return f"{self.prefix}{session_id}"

    async def _command(self, awaitable):
        try:
            return await asyncio.wait_for(awaitable, self.timeout)
        except asyncio.TimeoutError as e:
            raise RedisTimeoutError(
                f"Session store did not answer within {self.timeout:g} second(s)"
            ) from e

    async def get(self, session_id: str) -> dict | None:
        raw = await self._command(self.client.get(self._key(session_id)))
        if raw is None:
            return None
        return json.loads(raw)

    async def set(self, session_id: str, data: dict):
        await self._command(
            self.client.set(self._key(session_id), json.dumps(data), ex=self.ttl)
        )

    async def delete(self, session_id: str):
        await self._command(self.client.delete(self._key(session_id)))

    async def close(self):
        await self.client.aclose()
