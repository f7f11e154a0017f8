import asyncio
import errno
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

try:
    import redis.asyncio as redis
    from redis.asyncio.connection import SSLConnection
    from redis.asyncio.retry import Retry
    from redis.backoff import NoBackoff
    from redis.exceptions import ConnectionError as RedisConnectionError
    from redis.exceptions import TimeoutError as RedisTimeoutError
except Exception as e:
    raise ImportError(
        "redis.asyncio is required for infrastructure.redis. Install 'redis>=5.0.1'."
    ) from e

from config import Settings
from .exceptions import ReconnectAborted

logger = logging.getLogger(__name__)

# reconnect policy limits
MAX_ATTEMPTS = 10
MAX_RETRY_TIME_MS = 1000 * 60 * 60
BACKOFF_STEP_MS = 100
BACKOFF_CAP_MS = 3000

RETRY = "retry"
STOP = "stop"
FATAL = "fatal"

REFUSED_MESSAGE = "The server refused the connection"
EXHAUSTED_MESSAGE = "Retry time exhausted"


@dataclass(frozen=True)
class ReconnectDecision:
    action: str
    delay_ms: int = 0
    reason: str = ""


def is_connection_refused(error: Optional[BaseException]) -> bool:
    """True if `error`, or anything in its cause/context chain, is ECONNREFUSED."""
    seen = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        if isinstance(error, ConnectionRefusedError):
            return True
        if isinstance(error, OSError) and error.errno == errno.ECONNREFUSED:
            return True
        error = error.__cause__ or error.__context__
    return False


def reconnect_strategy(attempt: int, total_retry_time_ms: float, error: Optional[BaseException]) -> ReconnectDecision:
    """Decide what to do after a failed connection attempt.

    Checked in order: refused connection (fatal), total retry time over an
    hour (fatal), more than ten attempts (stop), otherwise wait
    ``min(attempt * 100, 3000)`` milliseconds.
    """
    if is_connection_refused(error):
        return ReconnectDecision(FATAL, reason=REFUSED_MESSAGE)
    if total_retry_time_ms > MAX_RETRY_TIME_MS:
        return ReconnectDecision(FATAL, reason=EXHAUSTED_MESSAGE)
    if attempt > MAX_ATTEMPTS:
        return ReconnectDecision(STOP)
    return ReconnectDecision(RETRY, delay_ms=min(attempt * BACKOFF_STEP_MS, BACKOFF_CAP_MS))


class ReconnectRetry(Retry):
    """redis-py retry driver backed by `reconnect_strategy`.

    Attempts are counted per failure episode. A fatal or stop decision halts
    the driver for good: every later call fails with `ReconnectAborted`
    without touching the network. Connections deep-copy their retry object,
    so copies return ``self`` to keep that state shared by the whole pool.
    """

    def __init__(
        self,
        strategy: Callable[[int, float, Optional[BaseException]], ReconnectDecision] = reconnect_strategy,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(
            NoBackoff(),
            MAX_ATTEMPTS,
            supported_errors=(RedisConnectionError, RedisTimeoutError, OSError),
        )
        self.strategy = strategy
        self.clock = clock
        self.sleep = sleep
        self.halted: Optional[ReconnectDecision] = None

    def __deepcopy__(self, memo):
        return self

    def _aborted(self) -> ReconnectAborted:
        return ReconnectAborted(self.halted.reason or "Redis connection is closed")

    async def call_with_retry(self, do, fail, is_retryable=None, with_failure_count=False):
        attempt = 0
        started = None
        while True:
            # another connection sharing this driver may have halted meanwhile
            if self.halted is not None:
                raise self._aborted()
            try:
                return await do()
            except ReconnectAborted:
                raise
            except self._supported_errors as error:
                if is_retryable is not None and not is_retryable(error):
                    raise
                attempt += 1
                if started is None:
                    started = self.clock()
                if with_failure_count:
                    await fail(error, attempt)
                else:
                    await fail(error)
                if self.halted is not None:
                    # an inner loop already decided; don't count its error again
                    raise

                elapsed_ms = (self.clock() - started) * 1000
                decision = self.strategy(attempt, elapsed_ms, error)
                if decision.action == FATAL:
                    self.halted = decision
                    logger.error("[REDIS] reconnect aborted after %d attempt(s): %s", attempt, decision.reason)
                    raise ReconnectAborted(decision.reason) from error
                if decision.action == STOP:
                    self.halted = ReconnectDecision(STOP, reason="Reconnect attempts exhausted")
                    logger.warning("[REDIS] giving up after %d attempt(s): %s", attempt, error)
                    raise error

                logger.debug("[REDIS] reconnect attempt %d in %dms (%s)", attempt, decision.delay_ms, error)
                if decision.delay_ms > 0:
                    await self.sleep(decision.delay_ms / 1000)


def reconnect_aborted(error: Optional[BaseException]) -> Optional[ReconnectAborted]:
    """Find the `ReconnectAborted` behind `error`.

    redis-py wraps whatever escapes a connect attempt in its own
    `ConnectionError`, so callers usually see ``ConnectionError(ReconnectAborted(...))``.
    """
    seen = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        if isinstance(error, ReconnectAborted):
            return error
        nested = next((arg for arg in error.args if isinstance(arg, BaseException)), None)
        error = nested or error.__cause__ or error.__context__
    return None


def build_redis_options(settings: Settings) -> Dict[str, Any]:
    """Keyword options passed to `redis.asyncio.from_url` for `settings`."""
    options: Dict[str, Any] = {
        "decode_responses": True,
        "retry": ReconnectRetry(),
        "retry_on_error": [RedisConnectionError, RedisTimeoutError, OSError],
    }

    if settings.redis_password:
        options["password"] = settings.redis_password

    if settings.tls_enabled:
        options["connection_class"] = SSLConnection
        options["ssl_ca_data"] = settings.redis_ca
        if settings.redis_certfile:
            options["ssl_certfile"] = settings.redis_certfile
        if settings.redis_keyfile:
            options["ssl_keyfile"] = settings.redis_keyfile

    return options


class RedisClient:
    """Async Redis handle with explicit lifecycle.

    Create one per process at startup and share it by reference:
        client = RedisClient.from_settings(settings)
        await client.init()
        r = client.get()
        await r.set("foo", "bar")
        await client.close()
    """

    def __init__(self, url: str, options: Optional[Dict[str, Any]] = None):
        self.url = url
        self.options = dict(options or {})
        self._client: Optional[redis.Redis] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisClient":
        return cls(settings.redis_url, build_redis_options(settings))

    @property
    def initialized(self) -> bool:
        return self._client is not None

    async def init(self, *, verify: bool = True) -> None:
        """Create the underlying client. With `verify`, ping the server once."""
        if self._client is not None:
            return
        self._client = redis.from_url(self.url, **self.options)
        logger.info("[REDIS] client created for %s", redact_url(self.url))
        if verify:
            await self._client.ping()

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        logger.info("[REDIS] client closed")

    def get(self) -> redis.Redis:
        """Return the underlying `redis.Redis` client. Raises if not initialized."""
        if self._client is None:
            raise RuntimeError("Redis client not initialized; call init() first")
        return self._client


def create_redis_client(settings: Settings) -> RedisClient:
    """Create (but do not init) a RedisClient configured from `settings`.

    Every call returns a new handle; the application keeps exactly one.
    """
    return RedisClient.from_settings(settings)


def redact_url(url: str) -> str:
    """Hide the password part of a redis URL for logging."""
    scheme, sep, rest = url.partition("://")
    if not sep or "@" not in rest:
        return url
    creds, _, host = rest.rpartition("@")
    user = creds.split(":", 1)[0]
    return f"{scheme}://{user}:***@{host}"
