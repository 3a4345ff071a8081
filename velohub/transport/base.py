"""Transport capability consumed by the hub and its clients."""
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..protocol.signing import SignedMessage

ACTION_EVENT = "Event"
ACTION_FETCH_EVENTS = "FetchEvents"
ACTION_INFO = "Info"


class TransportError(Exception):
    """The hub was unreachable, timed out or replied with garbage."""
    pass


class Transport(ABC):
    """
    Opaque signed-message channel.

    Clients use ``send`` to publish and ``request`` to query; the hub uses
    ``deliver`` for fan-out, which never blocks on acknowledgment.
    """

    @abstractmethod
    async def send(self, message: 'SignedMessage') -> str:
        """Publish; returns an acknowledgment id."""

    @abstractmethod
    async def request(self, message: 'SignedMessage') -> str:
        """Query; returns the reply's data payload."""

    @abstractmethod
    def deliver(self, message: 'SignedMessage') -> None:
        """Fire-and-forget delivery from a hub to one recipient."""
