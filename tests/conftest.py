"""
Pytest configuration for velohub tests.
"""
import itertools
import json

import pytest

from velohub.protocol.clock import HubClock
from velohub.protocol.event import Event, Kinds
from velohub.protocol.hub import Hub
from velohub.protocol.signing import Wallet
from velohub.transport.local import LocalTransport

HUB_ID = "hub-main"
OWNER = "owner-wallet"


class StepClock(HubClock):
    """Deterministic clock: 1000, 1001, 1002, ..."""

    def __init__(self, hub_id: str, start: int = 1000):
        super().__init__(hub_id)
        self._counter = itertools.count(start)

    def tick(self) -> int:
        self.last = max(self.last, next(self._counter))
        return self.last


def make_event(event_id, author="alice", kind=Kinds.NOTE, timestamp=0, tags=(), **fields):
    return Event(id=event_id, from_=author, kind=kind, timestamp=timestamp,
                 tags=tuple(tags), **fields)


def participants(*identities):
    return json.dumps(list(identities))


@pytest.fixture
def transport():
    return LocalTransport()


@pytest.fixture
def hub(transport):
    ids = itertools.count(1)
    return transport.register(Hub(
        HUB_ID, OWNER,
        clock=StepClock(HUB_ID),
        id_factory=lambda: f"evt-{next(ids)}",
    ))


@pytest.fixture
def owner_wallet():
    return Wallet("owner-wallet", b"owner-secret")


@pytest.fixture
def sample_events():
    return [
        make_event("a", author="alice", kind="1", timestamp=10,
                   tags=[("Kind", "1"), ("category", "defi")], content="alpha"),
        make_event("b", author="bob", kind="1", timestamp=30,
                   tags=[("Kind", "1"), ("topic", "Swap Routing")], content="beta"),
        make_event("c", author="alice", kind="7", timestamp=20,
                   tags=[("Kind", "7")], content="+", e="b", p=participants("bob")),
        make_event("d", author="carol", kind="10", timestamp=40,
                   tags=[("Kind", "10"), ("category", "nft")], content="delta", p="dave"),
    ]
