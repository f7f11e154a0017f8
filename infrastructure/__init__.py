"""Infrastructure helpers (Redis, etc.)

Expose a small public surface for the Redis handle and its reconnect policy.
"""
from .exceptions import InfrastructureError, ReconnectAborted
from .redis import (
    RedisClient,
    ReconnectDecision,
    ReconnectRetry,
    build_redis_options,
    create_redis_client,
    reconnect_aborted,
    reconnect_strategy,
)

__all__ = [
    "InfrastructureError",
    "ReconnectAborted",
    "RedisClient",
    "ReconnectDecision",
    "ReconnectRetry",
    "build_redis_options",
    "create_redis_client",
    "reconnect_aborted",
    "reconnect_strategy",
]
