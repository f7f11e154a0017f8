"""
Exceptions raised by the infrastructure helpers.

Hierarchy:
- InfrastructureError (base)
  - ReconnectAborted (reconnect policy gave up for good)
"""
from redis.exceptions import ConnectionError as RedisConnectionError


class InfrastructureError(Exception):
    """Base exception for infrastructure errors."""
    retryable: bool = True


class ReconnectAborted(InfrastructureError, RedisConnectionError):
    """The reconnect policy stopped retrying; the client stays disconnected."""
    retryable = False
