"""
Redis-backed transport.

Each hub owns an inbox list. Clients LPUSH envelopes onto it; a single
HubWorker per hub BRPOPs them in order, so mutations stay serialized.
Requests carry a ``reply_to`` list the worker pushes the answer onto.
"""
import json
import logging
import threading
import time
from typing import Any, Dict, Optional

import redis
import redis.asyncio as aioredis

from ..protocol.signing import SignedMessage
from .base import Transport, TransportError

logger = logging.getLogger(__name__)

INBOX_KEY = 'velohub:hub:{}:inbox'
REPLY_KEY = 'velohub:reply:{}'


def inbox_key(hub_id: str) -> str:
    return INBOX_KEY.format(hub_id)


def reply_key(message_id: str) -> str:
    return REPLY_KEY.format(message_id)


def _connection_kwargs(redis_config: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'host': redis_config.get('host', 'localhost'),
        'port': int(redis_config.get('port', 6379)),
        'password': redis_config.get('password'),
        'db': int(redis_config.get('db', 0)),
        'decode_responses': True,
        'socket_connect_timeout': 5,
    }


class RedisTransport(Transport):
    """Client side over redis.asyncio; hub-side fan-out over a sync client."""

    def __init__(self, client: Optional[aioredis.Redis] = None,
                 sync_client: Optional[redis.Redis] = None,
                 request_timeout: int = 10):
        self.client = client
        self.sync_client = sync_client
        self.request_timeout = request_timeout

    @classmethod
    def from_config(cls, redis_config: Dict[str, Any], request_timeout: int = 10) -> 'RedisTransport':
        kwargs = _connection_kwargs(redis_config)
        return cls(
            client=aioredis.Redis(**kwargs),
            sync_client=redis.Redis(**kwargs, socket_timeout=5),
            request_timeout=request_timeout,
        )

    def _require_async(self) -> aioredis.Redis:
        if self.client is None:
            raise TransportError("RedisTransport has no async client")
        return self.client

    async def send(self, message: SignedMessage) -> str:
        client = self._require_async()
        try:
            await client.lpush(inbox_key(message.target), json.dumps(message.to_dict()))
        except redis.RedisError as e:
            raise TransportError(f"Publish to {message.target} failed: {e}") from e
        return message.id

    async def request(self, message: SignedMessage) -> str:
        client = self._require_async()
        message.reply_to = reply_key(message.id)
        try:
            await client.lpush(inbox_key(message.target), json.dumps(message.to_dict()))
            result = await client.brpop(message.reply_to, timeout=self.request_timeout)
        except redis.RedisError as e:
            raise TransportError(f"Request to {message.target} failed: {e}") from e

        if not result:
            raise TransportError(
                f"No reply from {message.target} within {self.request_timeout}s")
        try:
            reply = json.loads(result[1])
        except ValueError as e:
            raise TransportError(f"Malformed reply from {message.target}: {e}") from e
        if reply.get("error"):
            raise TransportError(f"{message.target}: {reply['error']}")
        return reply.get("data") or ""

    def deliver(self, message: SignedMessage) -> None:
        if self.sync_client is None:
            raise TransportError("RedisTransport has no sync client for delivery")
        try:
            self.sync_client.lpush(inbox_key(message.target), json.dumps(message.to_dict()))
        except redis.RedisError as e:
            raise TransportError(f"Delivery to {message.target} failed: {e}") from e

    async def close(self) -> None:
        if self.client is not None:
            await self.client.aclose()
        if self.sync_client is not None:
            self.sync_client.close()


class HubWorker:
    """Drains one hub's inbox on a daemon thread."""

    def __init__(self, hub: Any, client: redis.Redis,
                 poll_timeout: int = 1, reply_ttl: int = 60):
        self.hub = hub
        self.redis = client
        self.poll_timeout = poll_timeout
        self.reply_ttl = reply_ttl
        self._running = False
        self._thread: Optional[threading.Thread] = None

    def start(self):
        """Start consuming the inbox."""
        self._running = True
        self._thread = threading.Thread(target=self._poll, daemon=True,
                                        name=f"hub-{self.hub.hub_id}")
        self._thread.start()
        logger.info("Hub worker started for %s", self.hub.hub_id)

    def stop(self):
        """Stop after the in-flight message completes."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=self.poll_timeout + 2.0)
        logger.info("Hub worker stopped for %s", self.hub.hub_id)

    def process_one(self) -> bool:
        """Handle a single queued message. Returns False on an idle poll."""
        result = self.redis.brpop(inbox_key(self.hub.hub_id), timeout=self.poll_timeout)
        if not result:
            return False

        try:
            message = SignedMessage.from_dict(json.loads(result[1]))
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Discarding malformed envelope: %s", e)
            return True

        reply: Dict[str, Any]
        try:
            reply = {"data": self.hub.handle(message)}
        except Exception as e:
            logger.error("Handler error for %s %s: %s", message.action, message.id, e)
            reply = {"error": str(e)}

        if message.reply_to:
            pipe = self.redis.pipeline()
            pipe.lpush(message.reply_to, json.dumps(reply))
            pipe.expire(message.reply_to, self.reply_ttl)
            pipe.execute()
        return True

    def _poll(self):
        while self._running:
            try:
                self.process_one()
            except redis.RedisError as e:
                logger.error("Poll error: %s", e)
                time.sleep(1.0)
            except Exception as e:
                logger.exception("Worker error on %s: %s", self.hub.hub_id, e)
