import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from redis.exceptions import RedisError

from config import Settings, load_settings
from infrastructure import RedisClient, create_redis_client
from middleware import MiddlewareChain, default_handlers

logger = logging.getLogger(__name__)

HEALTH_PATH = "/health"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_redis(request: Request) -> RedisClient:
    """FastAPI dependency returning the app's shared Redis handle."""
    return request.app.state.redis


def create_app(settings: Optional[Settings] = None, redis_client: Optional[RedisClient] = None) -> FastAPI:
    """Build the FastAPI app with the middleware chain and a Redis handle.

    The handle is created once here and opened/closed with the app lifespan.
    """
    settings = settings or load_settings()
    client = redis_client or create_redis_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await client.init(verify=False)
        try:
            yield
        finally:
            await client.close()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.redis = client

    # health probes come from the platform over plain HTTP on the app domain
    app.add_middleware(MiddlewareChain, settings=settings, handlers=default_handlers(exclude=(HEALTH_PATH,)))

    @app.get(HEALTH_PATH, include_in_schema=False)
    async def health(redis: RedisClient = Depends(get_redis)):
        try:
            redis_ok = bool(await redis.get().ping())
        except (RedisError, RuntimeError) as e:
            logger.warning("health check: redis unavailable: %s", e)
            redis_ok = False
        return {"status": "ok", "redis": redis_ok}

    return app


settings = load_settings()
configure_logging(settings)
app = create_app(settings)
