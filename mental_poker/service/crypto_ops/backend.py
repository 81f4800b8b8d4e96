"""
ShuffleCrypto - the cryptographic capability set used by the protocol layer

The protocol layer only depends on the ShuffleCrypto protocol below.
CurveShuffleCrypto is the shipped implementation (facade over the modules
in this package).
"""
from typing import Protocol, Sequence, Tuple

from .context import GroupContext, create_group_context
from .key_generation import keygen, verify_ownership, aggregate_public_key
from .shuffle import open_deck, shuffle_with_proof, verify_shuffle_proof
from .threshold_decryption import (
    reveal_share,
    verify_reveal_share,
    aggregate_reveal_token,
    recover_card,
)
from . import serialization as wire
from .types import (
    SecretKey,
    PublicKey,
    OwnershipProof,
    VerifiedPublicKey,
    AggregatePublicKey,
    MaskedCard,
    MaskedDeck,
    VerifiedDeck,
    ShuffleProof,
    RevealShare,
    RevealShareProof,
    VerifiedRevealShare,
    AggregateRevealToken,
)


class ShuffleCrypto(Protocol):
    """Capabilities the orchestration layer needs from a backend."""

    def keygen(self, rng, context: bytes) -> Tuple[SecretKey, PublicKey, OwnershipProof]: ...

    def verify_ownership(self, pk: PublicKey, proof: OwnershipProof,
                         context: bytes) -> VerifiedPublicKey: ...

    def initial_shuffle(self, rng, apk: AggregatePublicKey,
                        context: bytes) -> Tuple[MaskedDeck, ShuffleProof]: ...

    def verify_initial_shuffle(self, apk: AggregatePublicKey, deck: MaskedDeck,
                               proof: ShuffleProof, context: bytes) -> VerifiedDeck: ...

    def shuffle(self, rng, apk: AggregatePublicKey, prev: VerifiedDeck,
                context: bytes) -> Tuple[MaskedDeck, ShuffleProof]: ...

    def verify_shuffle(self, apk: AggregatePublicKey, prev: VerifiedDeck, deck: MaskedDeck,
                       proof: ShuffleProof, context: bytes) -> VerifiedDeck: ...

    def reveal_share(self, rng, sk: SecretKey, pk: PublicKey, card: MaskedCard,
                     context: bytes) -> Tuple[RevealShare, RevealShareProof]: ...

    def verify_reveal_share(self, player_id: int, verified_pk: VerifiedPublicKey,
                            share: RevealShare, proof: RevealShareProof,
                            card: MaskedCard, context: bytes) -> VerifiedRevealShare: ...

    def aggregate_public_key(self, verified_pks: Sequence[VerifiedPublicKey]) -> AggregatePublicKey: ...

    def aggregate_reveal_token(self, verified_shares: Sequence[VerifiedRevealShare]) -> AggregateRevealToken: ...

    def recover_card(self, token: AggregateRevealToken, card: MaskedCard) -> int: ...

    # Canonical wire encoding; decoders raise SerializationError

    def encode_public_key(self, pk: PublicKey) -> bytes: ...
    def decode_public_key(self, data: bytes) -> PublicKey: ...
    def encode_ownership_proof(self, proof: OwnershipProof) -> bytes: ...
    def decode_ownership_proof(self, data: bytes) -> OwnershipProof: ...
    def encode_card(self, card: MaskedCard) -> bytes: ...
    def decode_card(self, data: bytes) -> MaskedCard: ...
    def encode_deck(self, deck: MaskedDeck) -> bytes: ...
    def decode_deck(self, data: bytes) -> MaskedDeck: ...
    def encode_shuffle_proof(self, proof: ShuffleProof) -> bytes: ...
    def decode_shuffle_proof(self, data: bytes) -> ShuffleProof: ...
    def encode_reveal_share(self, share: RevealShare) -> bytes: ...
    def decode_reveal_share(self, data: bytes) -> RevealShare: ...
    def encode_reveal_share_proof(self, proof: RevealShareProof) -> bytes: ...
    def decode_reveal_share_proof(self, data: bytes) -> RevealShareProof: ...


class CurveShuffleCrypto:
    """
    Elliptic-curve ElGamal backend.

    Facade pattern - delegates to key_generation, shuffle,
    threshold_decryption and serialization.
    """

    def __init__(self, curve_name: str = "SECP256k1", shuffle_proof_rounds: int = 128):
        self.gc: GroupContext = create_group_context(curve_name)
        self.shuffle_proof_rounds = shuffle_proof_rounds

    # Keys -------------------------------------------------------------------

    def keygen(self, rng, context: bytes):
        return keygen(self.gc, rng, context)

    def verify_ownership(self, pk, proof, context: bytes):
        return verify_ownership(self.gc, pk, proof, context)

    def aggregate_public_key(self, verified_pks):
        return aggregate_public_key(self.gc, verified_pks)

    # Shuffles ---------------------------------------------------------------

    def initial_shuffle(self, rng, apk, context: bytes):
        return shuffle_with_proof(
            self.gc, rng, apk, open_deck(self.gc, apk), context, self.shuffle_proof_rounds
        )

    def verify_initial_shuffle(self, apk, deck, proof, context: bytes):
        return verify_shuffle_proof(
            self.gc, apk, open_deck(self.gc, apk), deck, proof, context,
            self.shuffle_proof_rounds,
        )

    def shuffle(self, rng, apk, prev, context: bytes):
        if not isinstance(prev, VerifiedDeck):
            raise TypeError("Only a verified deck can be shuffled")
        return shuffle_with_proof(self.gc, rng, apk, prev.deck, context, self.shuffle_proof_rounds)

    def verify_shuffle(self, apk, prev, deck, proof, context: bytes):
        if not isinstance(prev, VerifiedDeck):
            raise TypeError("Shuffles verify only against a verified deck")
        return verify_shuffle_proof(
            self.gc, apk, prev.deck, deck, proof, context, self.shuffle_proof_rounds
        )

    # Reveals ----------------------------------------------------------------

    def reveal_share(self, rng, sk, pk, card, context: bytes):
        return reveal_share(self.gc, rng, sk, pk, card, context)

    def verify_reveal_share(self, player_id, verified_pk, share, proof, card, context: bytes):
        return verify_reveal_share(self.gc, player_id, verified_pk, share, proof, card, context)

    def aggregate_reveal_token(self, verified_shares):
        return aggregate_reveal_token(self.gc, verified_shares)

    def recover_card(self, token, card):
        return recover_card(self.gc, token, card)

    # Wire encoding ----------------------------------------------------------

    def encode_public_key(self, pk: PublicKey) -> bytes:
        return wire.serialize_public_key(self.gc, pk)

    def decode_public_key(self, data: bytes) -> PublicKey:
        return wire.deserialize_public_key(self.gc, data)

    def encode_ownership_proof(self, proof: OwnershipProof) -> bytes:
        return wire.serialize_ownership_proof(self.gc, proof)

    def decode_ownership_proof(self, data: bytes) -> OwnershipProof:
        return wire.deserialize_ownership_proof(self.gc, data)

    def encode_card(self, card: MaskedCard) -> bytes:
        return wire.serialize_masked_card(self.gc, card)

    def decode_card(self, data: bytes) -> MaskedCard:
        return wire.deserialize_masked_card(self.gc, data)

    def encode_deck(self, deck: MaskedDeck) -> bytes:
        return wire.serialize_deck(self.gc, deck)

    def decode_deck(self, data: bytes) -> MaskedDeck:
        return wire.deserialize_deck(self.gc, data)

    def encode_shuffle_proof(self, proof: ShuffleProof) -> bytes:
        return wire.serialize_shuffle_proof(self.gc, proof)

    def decode_shuffle_proof(self, data: bytes) -> ShuffleProof:
        return wire.deserialize_shuffle_proof(self.gc, data)

    def encode_reveal_share(self, share: RevealShare) -> bytes:
        return wire.serialize_reveal_share(self.gc, share)

    def decode_reveal_share(self, data: bytes) -> RevealShare:
        return wire.deserialize_reveal_share(self.gc, data)

    def encode_reveal_share_proof(self, proof: RevealShareProof) -> bytes:
        return wire.serialize_reveal_share_proof(self.gc, proof)

    def decode_reveal_share_proof(self, data: bytes) -> RevealShareProof:
        return wire.deserialize_reveal_share_proof(self.gc, data)
