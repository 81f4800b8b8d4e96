from typing import Sequence, Tuple

from mental_poker.errors import ProofInvalid, CardNotFound, SerializationError

from .context import GroupContext
from .proofs import challenge_scalar, DOMAIN_REVEAL
from .types import (
    _VERIFICATION_WITNESS,
    SecretKey,
    PublicKey,
    VerifiedPublicKey,
    MaskedCard,
    RevealShare,
    RevealShareProof,
    VerifiedRevealShare,
    AggregateRevealToken,
)

# ============================================================================
# Threshold Decryption (N-of-N)
# ============================================================================


def _reveal_transcript(gc: GroupContext, pk_point, card: MaskedCard, share_point,
                       commit_g, commit_c1):
    return [
        gc.encode_point(pk_point),
        gc.encode_point(card.c1),
        gc.encode_point(card.c2),
        gc.encode_point(share_point),
        gc.encode_point(commit_g),
        gc.encode_point(commit_c1),
    ]


def reveal_share(gc: GroupContext, rng, secret_key: SecretKey, public_key: PublicKey,
                 card: MaskedCard, context: bytes) -> Tuple[RevealShare, RevealShareProof]:
    """
    One player's partial decryption of a card.

    Args:
        gc: Group context
        rng: CSPRNG for this call only
        secret_key: Player's own secret key
        public_key: Matching public key
        card: Masked card to open
        context: Session context

    Returns:
        (share x_i * c1, Chaum-Pedersen proof of equal discrete logs)
    """
    x = secret_key.scalar
    share_point = card.c1 * x

    k = gc.random_scalar(rng)
    commit_g = gc.generator * k
    commit_c1 = card.c1 * k
    c = challenge_scalar(
        gc, DOMAIN_REVEAL, context,
        _reveal_transcript(gc, public_key.point, card, share_point, commit_g, commit_c1),
    )
    s = (k + c * x) % gc.order
    return RevealShare(share_point), RevealShareProof(c, s)


def verify_reveal_share(gc: GroupContext, player_id: int, verified_pk: VerifiedPublicKey,
                        share: RevealShare, proof: RevealShareProof, card: MaskedCard,
                        context: bytes) -> VerifiedRevealShare:
    """
    Check a reveal share against the player's verified key.

    Raises:
        ProofInvalid: share was not derived from the key behind verified_pk
    """
    if not isinstance(verified_pk, VerifiedPublicKey):
        raise TypeError("Reveal shares verify only against a verified public key")
    if not (0 <= proof.challenge < gc.order and 0 <= proof.response < gc.order):
        raise ProofInvalid("Reveal share proof scalars out of range")

    neg_c = (-proof.challenge) % gc.order
    commit_g = gc.generator * proof.response + verified_pk.point * neg_c
    commit_c1 = card.c1 * proof.response + share.point * neg_c
    try:
        expected = challenge_scalar(
            gc, DOMAIN_REVEAL, context,
            _reveal_transcript(gc, verified_pk.point, card, share.point, commit_g, commit_c1),
        )
    except SerializationError as e:
        raise ProofInvalid(f"Reveal share proof is degenerate: {e}") from e

    if expected != proof.challenge:
        raise ProofInvalid(f"Reveal share from player {player_id} failed verification")
    return VerifiedRevealShare(player_id, share, card, _VERIFICATION_WITNESS)


def aggregate_reveal_token(gc: GroupContext, verified_shares: Sequence[VerifiedRevealShare]) -> AggregateRevealToken:
    """
    Sum verified shares for one card.

    Completeness (one share per player) is checked by the caller, which
    knows the player set.
    """
    shares = list(verified_shares)
    if not shares:
        raise ValueError("Cannot aggregate an empty share set")
    card = shares[0].card
    total = None
    for share in shares:
        if not isinstance(share, VerifiedRevealShare):
            raise TypeError("Only verified reveal shares can be aggregated")
        if share.card != card:
            raise ValueError("Reveal shares belong to different cards")
        total = share.share.point if total is None else total + share.share.point
    return AggregateRevealToken(total, card)


def recover_card(gc: GroupContext, token: AggregateRevealToken, card: MaskedCard) -> int:
    """
    Unmask a card: M = c2 - x*c1, then look M up in the card table.

    Raises:
        CardNotFound: token does not belong to this card or M is not a card
    """
    if token.card != card:
        raise CardNotFound("Reveal token was aggregated for a different card")
    plaintext = card.c2 + token.point * (gc.order - 1)
    index = gc.card_index(plaintext)
    if index < 0:
        raise CardNotFound("Unmasked point is not one of the 52 cards")
    return index
