"""Transports: the opaque signed-message channel between clients and hubs."""

from .base import (
    ACTION_EVENT,
    ACTION_FETCH_EVENTS,
    ACTION_INFO,
    Transport,
    TransportError,
)
from .local import LocalTransport
from .redis_transport import HubWorker, RedisTransport

__all__ = [
    'ACTION_EVENT',
    'ACTION_FETCH_EVENTS',
    'ACTION_INFO',
    'Transport',
    'TransportError',
    'LocalTransport',
    'HubWorker',
    'RedisTransport',
]
