"""
Crypto value types - keys, masked cards, decks, proofs and reveal shares

Verified* classes can only be built by the verification functions in this
package; constructing one directly raises TypeError.
"""
from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

from mental_poker.errors import ProtocolViolation


_VERIFICATION_WITNESS = object()


class _Verified:
    """Base for values that passed proof verification."""

    __slots__ = ()

    def __init__(self, witness):
        if witness is not _VERIFICATION_WITNESS:
            raise TypeError(
                f"{type(self).__name__} is only produced by proof verification"
            )


# ============================================================================
# Keys
# ============================================================================

class SecretKey:
    """
    A player's secret scalar.

    Exclusive resource: cannot be copied, pickled or printed, and is dropped
    by clear() when the hand ends.
    """

    __slots__ = ("_scalar",)

    def __init__(self, scalar: int):
        self._scalar: Optional[int] = scalar

    @property
    def scalar(self) -> int:
        if self._scalar is None:
            raise ProtocolViolation("Secret key was cleared")
        return self._scalar

    @property
    def cleared(self) -> bool:
        return self._scalar is None

    def clear(self):
        self._scalar = None

    def __repr__(self) -> str:
        state = "cleared" if self._scalar is None else "redacted"
        return f"SecretKey(<{state}>)"

    __str__ = __repr__

    def __copy__(self):
        raise TypeError("SecretKey cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("SecretKey cannot be copied")

    def __reduce__(self):
        raise TypeError("SecretKey cannot be serialized")


@dataclass(frozen=True, eq=False)
class PublicKey:
    point: object

    def __eq__(self, other):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.point == other.point


@dataclass(frozen=True)
class OwnershipProof:
    """Schnorr proof of knowledge of the secret key (challenge, response)."""
    challenge: int
    response: int


class VerifiedPublicKey(_Verified):
    __slots__ = ("public_key",)

    def __init__(self, public_key: PublicKey, witness=None):
        super().__init__(witness)
        self.public_key = public_key

    @property
    def point(self):
        return self.public_key.point

    def __eq__(self, other):
        if not isinstance(other, VerifiedPublicKey):
            return NotImplemented
        return self.public_key == other.public_key

    def __repr__(self) -> str:
        return f"VerifiedPublicKey({self.public_key.point.to_bytes('compressed').hex()[:16]}...)"


@dataclass(frozen=True, eq=False)
class AggregatePublicKey:
    """Sum of every verified public key of the player set."""
    point: object

    def __eq__(self, other):
        if not isinstance(other, AggregatePublicKey):
            return NotImplemented
        return self.point == other.point


# ============================================================================
# Cards & Decks
# ============================================================================

@dataclass(frozen=True, eq=False)
class MaskedCard:
    """ElGamal ciphertext (c1, c2) = (r*G, M + r*APK)."""
    c1: object
    c2: object

    def __eq__(self, other):
        if not isinstance(other, MaskedCard):
            return NotImplemented
        return self.c1 == other.c1 and self.c2 == other.c2


@dataclass(frozen=True, eq=False)
class MaskedDeck:
    """A deck as produced by a shuffle, not yet trusted."""
    cards: Tuple[MaskedCard, ...]

    def __len__(self) -> int:
        return len(self.cards)

    def __getitem__(self, position: int) -> MaskedCard:
        return self.cards[position]

    def __iter__(self) -> Iterator[MaskedCard]:
        return iter(self.cards)

    def __eq__(self, other):
        if not isinstance(other, MaskedDeck):
            return NotImplemented
        return len(self.cards) == len(other.cards) and all(
            a == b for a, b in zip(self.cards, other.cards)
        )


class VerifiedDeck(_Verified):
    """A deck whose shuffle proof checked out; the only canonical kind."""

    __slots__ = ("deck", "digest")

    def __init__(self, deck: MaskedDeck, digest: bytes, witness=None):
        super().__init__(witness)
        self.deck = deck
        self.digest = digest

    def __len__(self) -> int:
        return len(self.deck)

    def __getitem__(self, position: int) -> MaskedCard:
        return self.deck[position]

    def __iter__(self) -> Iterator[MaskedCard]:
        return iter(self.deck)

    def __repr__(self) -> str:
        return f"VerifiedDeck(digest={self.digest.hex()[:16]}...)"


@dataclass(frozen=True)
class ShuffleRound:
    """
    One cut-and-choose round.

    The response opens either input -> shadow or shadow -> output depending
    on the Fiat-Shamir challenge bit for the round.
    """
    shadow: MaskedDeck
    permutation: Tuple[int, ...]
    scalars: Tuple[int, ...]


@dataclass(frozen=True)
class ShuffleProof:
    previous_digest: bytes
    deck_digest: bytes
    rounds: Tuple[ShuffleRound, ...]


# ============================================================================
# Reveal Shares
# ============================================================================

@dataclass(frozen=True, eq=False)
class RevealShare:
    """One player's partial decryption x_i * c1 of a card."""
    point: object

    def __eq__(self, other):
        if not isinstance(other, RevealShare):
            return NotImplemented
        return self.point == other.point


@dataclass(frozen=True)
class RevealShareProof:
    """Chaum-Pedersen proof that log_G(pk) == log_c1(share)."""
    challenge: int
    response: int


class VerifiedRevealShare(_Verified):
    __slots__ = ("player_id", "share", "card")

    def __init__(self, player_id: int, share: RevealShare, card: MaskedCard, witness=None):
        super().__init__(witness)
        self.player_id = player_id
        self.share = share
        self.card = card

    def __repr__(self) -> str:
        return f"VerifiedRevealShare(player_id={self.player_id})"


@dataclass(frozen=True, eq=False)
class AggregateRevealToken:
    """x * c1 for the aggregate secret x; enough to unmask one card."""
    point: object
    card: MaskedCard
