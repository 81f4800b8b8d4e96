"""
Wire messages exchanged between players

Each message carries canonical crypto bytes, base64-encoded inside a JSON
object with sorted keys. Framing and transport are left to the caller.
"""
import json
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict

from mental_poker.errors import SerializationError
from mental_poker.service.crypto_ops import (
    DECK_SIZE,
    MaskedDeck,
    OwnershipProof,
    PublicKey,
    RevealShare,
    RevealShareProof,
    ShuffleProof,
    from_base64,
    to_base64,
)


def _field(data: Dict[str, Any], name: str) -> Any:
    try:
        return data[name]
    except KeyError:
        raise SerializationError(f"Message is missing field '{name}'") from None


def _index(data: Dict[str, Any], name: str = "from") -> int:
    value = _field(data, name)
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise SerializationError(f"Field '{name}' must be a non-negative integer")
    return value


def _decode(data: Dict[str, Any], name: str, decoder: Callable[[bytes], Any]) -> Any:
    value = _field(data, name)
    if not isinstance(value, str):
        raise SerializationError(f"Field '{name}' must be a base64 string")
    return decoder(from_base64(value))


def _check_type(data: Any, expected: str):
    if not isinstance(data, dict):
        raise SerializationError("Message must be a JSON object")
    if data.get("type") != expected:
        raise SerializationError(f"Expected a '{expected}' message, got {data.get('type')!r}")


class _JsonMessage:
    TYPE: ClassVar[str] = ""

    def to_dict(self, crypto) -> Dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_dict(cls, crypto, data: Dict[str, Any]):
        raise NotImplementedError

    def to_json(self, crypto) -> str:
        return json.dumps(self.to_dict(crypto), sort_keys=True, separators=(",", ":"))

    @classmethod
    def from_json(cls, crypto, text: str):
        try:
            data = json.loads(text)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Message is not valid JSON: {e}") from None
        return cls.from_dict(crypto, data)


@dataclass(frozen=True)
class PublishKey(_JsonMessage):
    """A player's public key and its ownership proof."""
    sender: int
    public_key: PublicKey
    proof: OwnershipProof

    TYPE: ClassVar[str] = "publish_key"

    def to_dict(self, crypto) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "from": self.sender,
            "pk": to_base64(crypto.encode_public_key(self.public_key)),
            "proof": to_base64(crypto.encode_ownership_proof(self.proof)),
        }

    @classmethod
    def from_dict(cls, crypto, data: Dict[str, Any]) -> "PublishKey":
        _check_type(data, cls.TYPE)
        return cls(
            sender=_index(data),
            public_key=_decode(data, "pk", crypto.decode_public_key),
            proof=_decode(data, "proof", crypto.decode_ownership_proof),
        )


@dataclass(frozen=True)
class Shuffle(_JsonMessage):
    """A shuffled deck and the proof that it extends the canonical deck."""
    sender: int
    deck: MaskedDeck
    proof: ShuffleProof

    TYPE: ClassVar[str] = "shuffle"

    def to_dict(self, crypto) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "from": self.sender,
            "deck": to_base64(crypto.encode_deck(self.deck)),
            "proof": to_base64(crypto.encode_shuffle_proof(self.proof)),
        }

    @classmethod
    def from_dict(cls, crypto, data: Dict[str, Any]) -> "Shuffle":
        _check_type(data, cls.TYPE)
        return cls(
            sender=_index(data),
            deck=_decode(data, "deck", crypto.decode_deck),
            proof=_decode(data, "proof", crypto.decode_shuffle_proof),
        )


@dataclass(frozen=True)
class RevealToken(_JsonMessage):
    """One player's reveal share for the card at a deck position."""
    sender: int
    card_index: int
    share: RevealShare
    proof: RevealShareProof

    TYPE: ClassVar[str] = "reveal_token"

    def to_dict(self, crypto) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "from": self.sender,
            "card_index": self.card_index,
            "share": to_base64(crypto.encode_reveal_share(self.share)),
            "proof": to_base64(crypto.encode_reveal_share_proof(self.proof)),
        }

    @classmethod
    def from_dict(cls, crypto, data: Dict[str, Any]) -> "RevealToken":
        _check_type(data, cls.TYPE)
        card_index = _index(data, "card_index")
        if card_index >= DECK_SIZE:
            raise SerializationError(f"Card index {card_index} is outside the deck")
        return cls(
            sender=_index(data),
            card_index=card_index,
            share=_decode(data, "share", crypto.decode_reveal_share),
            proof=_decode(data, "proof", crypto.decode_reveal_share_proof),
        )
