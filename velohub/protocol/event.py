"""Event model, kind codes and wire translation."""
import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from ..schemas.validator import get_validator

logger = logging.getLogger(__name__)

Tag = Tuple[str, str]


class Kinds:
    """Well-known kind codes. The kind space is open-ended."""
    PROFILE_UPDATE = "0"
    NOTE = "1"
    FOLLOW = "3"
    REACTION = "7"
    MEMORY = "10"
    PROCESS_INTEGRATION = "11"


REPLY_MARKER = "reply"

# Wire name -> attribute. Both the publish path (lowercase) and the
# query-result path (capitalized) are accepted.
_FIELD_ALIASES = {
    "id": "id",
    "Id": "id",
    "from": "from_",
    "From": "from_",
    "kind": "kind",
    "Kind": "kind",
    "content": "content",
    "Content": "content",
    "timestamp": "timestamp",
    "Timestamp": "timestamp",
    "e": "e",
    "p": "p",
    "marker": "marker",
    "Marker": "marker",
    "originalId": "original_id",
    "original_id": "original_id",
    "Original-Id": "original_id",
}

_TAG_KEYS = ("tags", "Tags")


def get_tag(tags: Iterable[Sequence[str]], key: str) -> Optional[str]:
    """First value for a tag name, or None."""
    for tag in tags or ():
        if len(tag) >= 2 and tag[0] == key:
            return tag[1]
    return None


def decode_p(p: Optional[str]) -> List[str]:
    """Decode a JSON participant list; anything else decodes to []."""
    if not p:
        return []
    try:
        value = json.loads(p)
    except (TypeError, ValueError):
        logger.debug("Undecodable participant list: %r", p)
        return []
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def encode_p(identities: Iterable[str]) -> str:
    return json.dumps(list(identities))


def _normalize_tags(raw: Any) -> Tuple[Tag, ...]:
    if not raw:
        return ()
    tags = []
    for item in raw:
        if isinstance(item, dict):
            name, value = item.get("name"), item.get("value")
        else:
            name, value = item[0], item[1]
        if name is None:
            continue
        tags.append((str(name), "" if value is None else str(value)))
    return tuple(tags)


def _to_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _to_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    try:
        return int(str(value), 10)
    except ValueError:
        return 0


@dataclass(frozen=True)
class Event:
    """A stored hub record. Never mutated; re-stamping builds a new one."""
    id: str
    from_: str
    kind: str
    content: Optional[str] = None
    tags: Tuple[Tag, ...] = field(default_factory=tuple)
    timestamp: int = 0
    e: Optional[str] = None
    p: Optional[str] = None
    marker: Optional[str] = None
    original_id: Optional[str] = None

    @property
    def toggle_key(self) -> Tuple[str, str, Optional[str], Optional[str]]:
        return (self.from_, self.kind, self.e, self.p)

    @property
    def participants(self) -> List[str]:
        return decode_p(self.p)

    def field(self, key: str) -> Optional[Any]:
        """
        Look up an event field by wire name.

        Tags published with the event are its fields too, so a name that
        is not a well-known field resolves to the first tag with that name.
        Unknown names resolve to None and never match a filter.
        """
        attr = _FIELD_ALIASES.get(key)
        if attr is not None:
            return getattr(self, attr)
        return get_tag(self.tags, key)

    def restamp(self, hub_id: str, new_id: str, timestamp: int) -> 'Event':
        """Rewrite authorship to the hub; the inbound id moves to original_id."""
        return replace(self, from_=hub_id, original_id=self.id, id=new_id, timestamp=timestamp)

    def stamped(self, new_id: str, timestamp: int) -> 'Event':
        """Same author, hub-assigned id and acceptance time."""
        return replace(self, id=new_id, timestamp=timestamp)

    def to_dict(self) -> Dict[str, Any]:
        """Canonical lowercase form."""
        return {
            "id": self.id,
            "from": self.from_,
            "kind": self.kind,
            "content": self.content,
            "tags": [list(t) for t in self.tags],
            "timestamp": self.timestamp,
            "e": self.e,
            "p": self.p,
            "marker": self.marker,
            "original_id": self.original_id,
        }

    def to_wire(self) -> Dict[str, Any]:
        """Flattened query-result shape with capitalized well-known keys."""
        wire = {
            "Id": self.id,
            "From": self.from_,
            "Kind": self.kind,
            "Tags": [list(t) for t in self.tags],
            "Timestamp": self.timestamp,
        }
        optional = (
            ("Content", self.content),
            ("e", self.e),
            ("p", self.p),
            ("marker", self.marker),
            ("Original-Id", self.original_id),
        )
        for key, value in optional:
            if value is not None:
                wire[key] = value
        return wire

    @classmethod
    def from_wire(cls, data: Dict[str, Any], validate: bool = True) -> 'Event':
        """
        Build an Event from either wire casing.

        On the publish path well-known fields may arrive as tags
        (e.g. ``["Kind", "7"]``); top-level keys take precedence.
        """
        tags = ()
        for key in _TAG_KEYS:
            if key in data:
                tags = _normalize_tags(data[key])
                break

        values: Dict[str, Any] = {}
        for key, attr in _FIELD_ALIASES.items():
            if attr not in values and data.get(key) is not None:
                values[attr] = data[key]
        for name, value in tags:
            attr = _FIELD_ALIASES.get(name)
            if attr is not None and attr not in values:
                values[attr] = value

        p = values.get("p")
        if isinstance(p, (list, tuple)):
            p = encode_p(p)

        canonical = {
            "id": str(values.get("id", "")),
            "from": _to_str(values.get("from_")),
            "kind": _to_str(values.get("kind")),
            "content": values.get("content"),
            "tags": [list(t) for t in tags],
            "timestamp": _to_int(values.get("timestamp")),
            "e": values.get("e"),
            "p": p,
            "marker": values.get("marker"),
            "original_id": values.get("original_id"),
        }
        if validate:
            get_validator().check(canonical, 'event')

        return cls(
            id=canonical["id"],
            from_=canonical["from"],
            kind=canonical["kind"],
            content=canonical["content"],
            tags=tags,
            timestamp=canonical["timestamp"],
            e=canonical["e"],
            p=canonical["p"],
            marker=canonical["marker"],
            original_id=canonical["original_id"],
        )

    @classmethod
    def coerce(cls, value: Any) -> 'Event':
        """Accept an Event or a wire dict."""
        if isinstance(value, Event):
            return value
        return cls.from_wire(value, validate=False)
