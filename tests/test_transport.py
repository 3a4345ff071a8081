"""
Transport tests: in-process routing and the Redis inbox protocol.

Redis clients are mocked; no server is needed.
"""
import json
import time
from unittest.mock import AsyncMock, MagicMock

import pytest
import redis

from velohub.protocol.event import Kinds
from velohub.protocol.signing import SignedMessage
from velohub.transport.base import TransportError
from velohub.transport.local import LocalTransport
from velohub.transport.redis_transport import (
    HubWorker,
    RedisTransport,
    inbox_key,
    reply_key,
)

from conftest import HUB_ID, OWNER


def envelope(action="Event", **kwargs):
    defaults = dict(target=HUB_ID, action=action, sender=OWNER,
                    tags=[("Kind", Kinds.NOTE)], data="hi")
    defaults.update(kwargs)
    return SignedMessage(**defaults)


class TestLocalTransport:

    async def test_send_routes_to_hub(self, transport, hub):
        ack = await transport.send(envelope())
        assert ack
        assert len(hub.events) == 1

    async def test_request_returns_reply(self, transport, hub):
        reply = await transport.request(envelope("Info", tags=[], data=None))
        assert json.loads(reply)["User"] == OWNER

    async def test_request_wraps_handler_errors(self, transport, hub):
        with pytest.raises(TransportError, match="Register"):
            await transport.request(envelope("Register"))

    async def test_offline_and_unknown_targets(self, transport, hub):
        with pytest.raises(TransportError, match="No route"):
            await transport.send(envelope(target="elsewhere"))
        transport.offline.add(HUB_ID)
        with pytest.raises(TransportError, match="offline"):
            await transport.request(envelope("Info"))

    def test_deliver_records_inbox(self, transport, hub):
        transport.deliver(envelope(target="plain-wallet"))
        assert len(transport.inboxes["plain-wallet"]) == 1

    def test_deliver_to_offline_hub_is_only_recorded(self, transport, hub):
        transport.offline.add(HUB_ID)
        transport.deliver(envelope())
        assert len(transport.inboxes[HUB_ID]) == 1
        assert hub.events == ()

    def test_register_keeps_existing_transport(self, hub):
        other = LocalTransport()
        other.register(hub)
        assert hub.transport is not other
        other.unregister(HUB_ID)


class TestRedisTransport:

    @pytest.fixture
    def clients(self):
        return AsyncMock(), MagicMock()

    async def test_send_pushes_onto_inbox(self, clients):
        client, sync_client = clients
        message = envelope()
        ack = await RedisTransport(client, sync_client).send(message)

        assert ack == message.id
        key, payload = client.lpush.await_args.args
        assert key == inbox_key(HUB_ID)
        assert SignedMessage.from_dict(json.loads(payload)) == message

    async def test_request_waits_for_reply(self, clients):
        client, sync_client = clients
        client.brpop.return_value = ("reply-key", json.dumps({"data": "[]"}))
        message = envelope("FetchEvents")

        reply = await RedisTransport(client, sync_client, request_timeout=3).request(message)
        assert reply == "[]"
        assert message.reply_to == reply_key(message.id)
        client.brpop.assert_awaited_once_with(message.reply_to, timeout=3)

    @pytest.mark.parametrize("brpop_result,match", [
        (None, "No reply"),
        (("k", "not json"), "Malformed"),
        (("k", json.dumps({"error": "Unknown action: X"})), "Unknown action"),
    ])
    async def test_request_failures(self, clients, brpop_result, match):
        client, sync_client = clients
        client.brpop.return_value = brpop_result
        with pytest.raises(TransportError, match=match):
            await RedisTransport(client, sync_client).request(envelope("Info"))

    async def test_redis_errors_become_transport_errors(self, clients):
        client, sync_client = clients
        client.lpush.side_effect = redis.ConnectionError("refused")
        with pytest.raises(TransportError, match="refused"):
            await RedisTransport(client, sync_client).send(envelope())

    def test_deliver_uses_sync_client(self, clients):
        client, sync_client = clients
        RedisTransport(client, sync_client).deliver(envelope(target="follower"))
        key, _ = sync_client.lpush.call_args.args
        assert key == inbox_key("follower")

    def test_deliver_without_sync_client(self):
        with pytest.raises(TransportError):
            RedisTransport(AsyncMock(), None).deliver(envelope())

    async def test_close(self, clients):
        client, sync_client = clients
        await RedisTransport(client, sync_client).close()
        client.aclose.assert_awaited_once()
        sync_client.close.assert_called_once()


class TestHubWorker:

    @pytest.fixture
    def redis_client(self):
        client = MagicMock()
        client.pipeline.return_value = MagicMock()
        return client

    def queue(self, redis_client, message):
        redis_client.brpop.return_value = (inbox_key(HUB_ID), json.dumps(message.to_dict()))

    def test_idle_poll(self, hub, redis_client):
        redis_client.brpop.return_value = None
        assert HubWorker(hub, redis_client).process_one() is False

    def test_event_is_applied_without_reply(self, hub, redis_client):
        self.queue(redis_client, envelope())
        assert HubWorker(hub, redis_client).process_one() is True
        assert len(hub.events) == 1
        redis_client.pipeline.assert_not_called()

    def test_request_gets_reply(self, hub, redis_client):
        self.queue(redis_client, envelope("Info", reply_to="velohub:reply:abc"))
        HubWorker(hub, redis_client, reply_ttl=30).process_one()

        pipe = redis_client.pipeline.return_value
        key, payload = pipe.lpush.call_args.args
        assert key == "velohub:reply:abc"
        assert json.loads(json.loads(payload)["data"])["Spec"]["processId"] == HUB_ID
        pipe.expire.assert_called_once_with("velohub:reply:abc", 30)
        pipe.execute.assert_called_once()

    def test_handler_error_is_replied(self, hub, redis_client):
        self.queue(redis_client, envelope("Register", reply_to="velohub:reply:r"))
        HubWorker(hub, redis_client).process_one()

        _, payload = redis_client.pipeline.return_value.lpush.call_args.args
        assert "Unknown action" in json.loads(payload)["error"]

    def test_malformed_envelope_is_discarded(self, hub, redis_client):
        redis_client.brpop.return_value = (inbox_key(HUB_ID), "{not json")
        assert HubWorker(hub, redis_client).process_one() is True
        assert hub.events == ()

    def test_short_tag_is_discarded(self, hub, redis_client):
        raw = {"target": HUB_ID, "action": "Event", "sender": OWNER, "tags": [["Kind"]]}
        redis_client.brpop.return_value = (inbox_key(HUB_ID), json.dumps(raw))
        assert HubWorker(hub, redis_client).process_one() is True
        assert hub.events == ()

    def test_worker_keeps_draining_after_bad_input(self, hub, redis_client):
        short_tag = {"target": HUB_ID, "action": "Event", "sender": OWNER, "tags": [["Kind"]]}
        queued = [
            RuntimeError("unexpected"),
            (inbox_key(HUB_ID), json.dumps(short_tag)),
            (inbox_key(HUB_ID), json.dumps(envelope().to_dict())),
        ]

        def brpop(key, timeout):
            if queued:
                item = queued.pop(0)
                if isinstance(item, Exception):
                    raise item
                return item
            time.sleep(0.01)
            return None

        redis_client.brpop.side_effect = brpop
        worker = HubWorker(hub, redis_client, poll_timeout=0)
        worker.start()
        try:
            deadline = time.monotonic() + 2.0
            while not hub.events and time.monotonic() < deadline:
                time.sleep(0.01)
            assert worker._thread.is_alive()
        finally:
            worker.stop()
        assert [e.content for e in hub.events] == ["hi"]
