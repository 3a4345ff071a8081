"""Caller identity and message signatures."""
import hashlib
import hmac
import json
import secrets
import uuid
from dataclasses import dataclass, asdict, field, replace
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class SignedMessage:
    """Envelope handed to a transport."""
    target: str
    action: str
    sender: str
    tags: List[Tuple[str, str]] = field(default_factory=list)
    data: Optional[str] = None
    reply_to: Optional[str] = None
    signature: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def body(self) -> bytes:
        """Canonical bytes covered by the signature."""
        payload = {
            "id": self.id,
            "target": self.target,
            "action": self.action,
            "sender": self.sender,
            "tags": [list(t) for t in self.tags],
            "data": self.data,
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["tags"] = [list(t) for t in self.tags]
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SignedMessage':
        return cls(
            target=data["target"],
            action=data["action"],
            sender=data["sender"],
            tags=_parse_tags(data.get("tags") or []),
            data=data.get("data"),
            reply_to=data.get("reply_to"),
            signature=data.get("signature"),
            id=data.get("id") or uuid.uuid4().hex,
        )


def _parse_tags(raw: Any) -> List[Tuple[str, str]]:
    """Decode wire tags; anything but [name, value] pairs is a ValueError."""
    tags = []
    for tag in raw:
        if not isinstance(tag, (list, tuple)) or len(tag) != 2:
            raise ValueError(f"Malformed tag: {tag!r}")
        tags.append((str(tag[0]), str(tag[1])))
    return tags


class Wallet:
    """
    Stable caller identity that signs envelopes.

    Signatures are HMAC-SHA256 over the canonical body. The hub trusts its
    transport, so verification is only done where a key is known.
    """

    def __init__(self, address: str, secret: bytes):
        self.address = address
        self._secret = secret

    @classmethod
    def generate(cls) -> 'Wallet':
        secret = secrets.token_bytes(32)
        address = hashlib.sha256(secret).hexdigest()[:43]
        return cls(address, secret)

    def sign(self, message: SignedMessage) -> SignedMessage:
        stamped = replace(message, sender=self.address)
        signature = hmac.new(self._secret, stamped.body(), hashlib.sha256).hexdigest()
        return replace(stamped, signature=signature)

    def verify(self, message: SignedMessage) -> bool:
        if message.sender != self.address or not message.signature:
            return False
        expected = hmac.new(self._secret, message.body(), hashlib.sha256).hexdigest()
        return hmac.compare_digest(expected, message.signature)

    def message(self, target: str, action: str,
                tags: Optional[List[Tuple[str, str]]] = None,
                data: Optional[str] = None) -> SignedMessage:
        return self.sign(SignedMessage(
            target=target,
            action=action,
            sender=self.address,
            tags=list(tags or []),
            data=data,
        ))
