"""Per-hub acceptance clock."""
import time
from typing import Callable, Optional


class HubClock:
    """
    Issues acceptance timestamps that never go backwards for one hub.

    Wall-clock milliseconds are used when they move forward; otherwise the
    last issued value is repeated, so ties are possible but reversals are not.
    """

    def __init__(self, hub_id: str, last: int = 0,
                 source: Optional[Callable[[], float]] = None):
        self.hub_id = hub_id
        self.last = last
        self._source = source or time.time

    def tick(self) -> int:
        now = int(self._source() * 1000)
        self.last = max(self.last, now)
        return self.last

    def __repr__(self) -> str:
        return f"HubClock({self.hub_id}: {self.last})"
