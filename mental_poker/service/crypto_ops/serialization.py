import base64
import binascii
import hashlib
from typing import List

from mental_poker.errors import SerializationError

from .context import GroupContext, DECK_SIZE, POINT_SIZE, SCALAR_SIZE
from .types import (
    PublicKey,
    OwnershipProof,
    MaskedCard,
    MaskedDeck,
    ShuffleRound,
    ShuffleProof,
    RevealShare,
    RevealShareProof,
)

# ============================================================================
# Canonical Serialization
# ============================================================================

CARD_SIZE = 2 * POINT_SIZE
DECK_BYTES = DECK_SIZE * CARD_SIZE
DIGEST_SIZE = 32
ROUND_SIZE = DECK_BYTES + DECK_SIZE + DECK_SIZE * SCALAR_SIZE


def encode_scalar(gc: GroupContext, value: int) -> bytes:
    if not 0 <= value < gc.order:
        raise SerializationError("Scalar out of range")
    return value.to_bytes(SCALAR_SIZE, "big")


def decode_scalar(gc: GroupContext, data: bytes) -> int:
    if len(data) != SCALAR_SIZE:
        raise SerializationError(f"Scalar must be {SCALAR_SIZE} bytes, got {len(data)}")
    value = int.from_bytes(data, "big")
    if value >= gc.order:
        raise SerializationError("Scalar is not reduced modulo the group order")
    return value


def _split(data: bytes, size: int) -> List[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


# Keys ------------------------------------------------------------------------

def serialize_public_key(gc: GroupContext, public_key: PublicKey) -> bytes:
    return gc.encode_point(public_key.point)


def deserialize_public_key(gc: GroupContext, data: bytes) -> PublicKey:
    return PublicKey(gc.decode_point(data))


def serialize_ownership_proof(gc: GroupContext, proof: OwnershipProof) -> bytes:
    return encode_scalar(gc, proof.challenge) + encode_scalar(gc, proof.response)


def deserialize_ownership_proof(gc: GroupContext, data: bytes) -> OwnershipProof:
    if len(data) != 2 * SCALAR_SIZE:
        raise SerializationError("Ownership proof must be 64 bytes")
    return OwnershipProof(
        decode_scalar(gc, data[:SCALAR_SIZE]),
        decode_scalar(gc, data[SCALAR_SIZE:]),
    )


# Cards & Decks ---------------------------------------------------------------

def serialize_masked_card(gc: GroupContext, card: MaskedCard) -> bytes:
    return gc.encode_point(card.c1) + gc.encode_point(card.c2)


def deserialize_masked_card(gc: GroupContext, data: bytes) -> MaskedCard:
    if len(data) != CARD_SIZE:
        raise SerializationError(f"Masked card must be {CARD_SIZE} bytes, got {len(data)}")
    return MaskedCard(
        gc.decode_point(data[:POINT_SIZE]),
        gc.decode_point(data[POINT_SIZE:]),
    )


def serialize_deck(gc: GroupContext, deck: MaskedDeck) -> bytes:
    if len(deck) != DECK_SIZE:
        raise SerializationError(f"Deck must hold {DECK_SIZE} cards, got {len(deck)}")
    return b"".join(serialize_masked_card(gc, card) for card in deck)


def deserialize_deck(gc: GroupContext, data: bytes) -> MaskedDeck:
    if len(data) != DECK_BYTES:
        raise SerializationError(f"Deck must be {DECK_BYTES} bytes, got {len(data)}")
    return MaskedDeck(tuple(
        deserialize_masked_card(gc, chunk) for chunk in _split(data, CARD_SIZE)
    ))


def deck_digest(gc: GroupContext, deck: MaskedDeck) -> bytes:
    """SHA-256 over the canonical deck encoding; identifies a chain link."""
    return hashlib.sha256(serialize_deck(gc, deck)).digest()


# Shuffle Proofs --------------------------------------------------------------

def _serialize_round(gc: GroupContext, rnd: ShuffleRound) -> bytes:
    if len(rnd.permutation) != DECK_SIZE or len(rnd.scalars) != DECK_SIZE:
        raise SerializationError("Shuffle round response has the wrong length")
    return (
        serialize_deck(gc, rnd.shadow)
        + bytes(rnd.permutation)
        + b"".join(encode_scalar(gc, s) for s in rnd.scalars)
    )


def _deserialize_round(gc: GroupContext, data: bytes) -> ShuffleRound:
    shadow = deserialize_deck(gc, data[:DECK_BYTES])
    permutation = tuple(data[DECK_BYTES:DECK_BYTES + DECK_SIZE])
    if sorted(permutation) != list(range(DECK_SIZE)):
        raise SerializationError("Shuffle round permutation is not a permutation")
    scalars = tuple(
        decode_scalar(gc, chunk)
        for chunk in _split(data[DECK_BYTES + DECK_SIZE:], SCALAR_SIZE)
    )
    return ShuffleRound(shadow, permutation, scalars)


def serialize_shuffle_proof(gc: GroupContext, proof: ShuffleProof) -> bytes:
    """
    Layout: previous digest | deck digest | round count (u16) | rounds.
    """
    if len(proof.previous_digest) != DIGEST_SIZE or len(proof.deck_digest) != DIGEST_SIZE:
        raise SerializationError("Shuffle proof digests must be 32 bytes")
    header = proof.previous_digest + proof.deck_digest + len(proof.rounds).to_bytes(2, "big")
    return header + b"".join(_serialize_round(gc, rnd) for rnd in proof.rounds)


def deserialize_shuffle_proof(gc: GroupContext, data: bytes) -> ShuffleProof:
    header_size = 2 * DIGEST_SIZE + 2
    if len(data) < header_size:
        raise SerializationError("Shuffle proof is truncated")
    count = int.from_bytes(data[2 * DIGEST_SIZE:header_size], "big")
    if count == 0 or len(data) != header_size + count * ROUND_SIZE:
        raise SerializationError("Shuffle proof length does not match its round count")
    rounds = tuple(
        _deserialize_round(gc, chunk) for chunk in _split(data[header_size:], ROUND_SIZE)
    )
    return ShuffleProof(data[:DIGEST_SIZE], data[DIGEST_SIZE:2 * DIGEST_SIZE], rounds)


# Reveal Shares ---------------------------------------------------------------

def serialize_reveal_share(gc: GroupContext, share: RevealShare) -> bytes:
    return gc.encode_point(share.point)


def deserialize_reveal_share(gc: GroupContext, data: bytes) -> RevealShare:
    return RevealShare(gc.decode_point(data))


def serialize_reveal_share_proof(gc: GroupContext, proof: RevealShareProof) -> bytes:
    return encode_scalar(gc, proof.challenge) + encode_scalar(gc, proof.response)


def deserialize_reveal_share_proof(gc: GroupContext, data: bytes) -> RevealShareProof:
    if len(data) != 2 * SCALAR_SIZE:
        raise SerializationError("Reveal share proof must be 64 bytes")
    return RevealShareProof(
        decode_scalar(gc, data[:SCALAR_SIZE]),
        decode_scalar(gc, data[SCALAR_SIZE:]),
    )


# Base64 ----------------------------------------------------------------------

def to_base64(data: bytes) -> str:
    """Encode wire bytes for JSON transport."""
    return base64.b64encode(data).decode("utf-8")


def from_base64(b64_str: str) -> bytes:
    """Strict base64 decode; malformed input raises SerializationError."""
    if not isinstance(b64_str, str):
        raise SerializationError("Expected a base64 string")
    try:
        return base64.b64decode(b64_str.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as e:
        raise SerializationError(f"Invalid base64: {e}") from e
