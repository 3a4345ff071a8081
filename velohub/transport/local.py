"""In-process transport: hubs registered by id, messages handled inline."""
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from ..protocol.signing import SignedMessage
from .base import Transport, TransportError

logger = logging.getLogger(__name__)


class LocalTransport(Transport):
    """
    Routes messages to hubs living in the same process.

    Every delivered message is also recorded in ``inboxes`` so identities
    without a hub (plain wallets) can still be inspected.
    """

    def __init__(self):
        self._hubs: Dict[str, Any] = {}
        self.inboxes: Dict[str, List[SignedMessage]] = defaultdict(list)
        self.offline = set()

    def register(self, hub: Any) -> Any:
        """Attach a hub; it also gets this transport for its fan-out."""
        self._hubs[hub.hub_id] = hub
        if getattr(hub, "transport", None) is None:
            hub.transport = self
        return hub

    def unregister(self, hub_id: str) -> None:
        self._hubs.pop(hub_id, None)

    def _route(self, message: SignedMessage) -> Any:
        if message.target in self.offline:
            raise TransportError(f"Hub {message.target} is offline")
        hub = self._hubs.get(message.target)
        if hub is None:
            raise TransportError(f"No route to {message.target}")
        return hub

    async def send(self, message: SignedMessage) -> str:
        self._route(message).handle(message)
        return message.id

    async def request(self, message: SignedMessage) -> str:
        hub = self._route(message)
        try:
            reply = hub.handle(message)
        except Exception as e:
            raise TransportError(f"{message.target} failed {message.action}: {e}") from e
        return reply or ""

    def deliver(self, message: SignedMessage) -> None:
        self.inboxes[message.target].append(message)
        hub: Optional[Any] = self._hubs.get(message.target)
        if hub is not None and message.target not in self.offline:
            hub.handle(message)
