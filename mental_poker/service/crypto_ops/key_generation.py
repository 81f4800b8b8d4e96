from typing import Tuple

from mental_poker.errors import ProofInvalid, SerializationError

from .context import GroupContext
from .proofs import challenge_scalar, DOMAIN_OWNERSHIP
from .types import (
    _VERIFICATION_WITNESS,
    SecretKey,
    PublicKey,
    OwnershipProof,
    VerifiedPublicKey,
    AggregatePublicKey,
)

# ============================================================================
# Key Generation & Ownership Proofs
# ============================================================================


def keygen(gc: GroupContext, rng, context: bytes) -> Tuple[SecretKey, PublicKey, OwnershipProof]:
    """
    Generate a player key pair with a Schnorr proof of ownership.

    Args:
        gc: Group context
        rng: CSPRNG for this call only
        context: Session context bound into the proof

    Returns:
        (secret key, public key, ownership proof)
    """
    x = gc.random_scalar(rng)
    pk_point = gc.generator * x

    k = gc.random_scalar(rng)
    commitment = gc.generator * k
    c = challenge_scalar(
        gc, DOMAIN_OWNERSHIP, context,
        [gc.encode_point(pk_point), gc.encode_point(commitment)],
    )
    s = (k + c * x) % gc.order

    return SecretKey(x), PublicKey(pk_point), OwnershipProof(c, s)


def verify_ownership(gc: GroupContext, public_key: PublicKey, proof: OwnershipProof,
                     context: bytes) -> VerifiedPublicKey:
    """
    Check an ownership proof.

    Recomputes R = s*G - c*pk and requires the challenge to match.

    Raises:
        ProofInvalid: proof does not show knowledge of the secret key
    """
    if not (0 <= proof.challenge < gc.order and 0 <= proof.response < gc.order):
        raise ProofInvalid("Ownership proof scalars out of range")

    commitment = gc.generator * proof.response + public_key.point * ((-proof.challenge) % gc.order)
    try:
        expected = challenge_scalar(
            gc, DOMAIN_OWNERSHIP, context,
            [gc.encode_point(public_key.point), gc.encode_point(commitment)],
        )
    except SerializationError as e:
        raise ProofInvalid(f"Ownership proof is degenerate: {e}") from e

    if expected != proof.challenge:
        raise ProofInvalid("Ownership proof does not match public key")
    return VerifiedPublicKey(public_key, _VERIFICATION_WITNESS)


def aggregate_public_key(gc: GroupContext, verified_keys) -> AggregatePublicKey:
    """
    Combine verified keys by point addition.

    Addition is commutative for this backend; callers still pass keys in
    player-id order.
    """
    keys = list(verified_keys)
    if not keys:
        raise ValueError("Cannot aggregate an empty key set")
    for key in keys:
        if not isinstance(key, VerifiedPublicKey):
            raise TypeError("Only verified public keys can be aggregated")

    total = keys[0].point
    for key in keys[1:]:
        total = total + key.point

    # Precomputed multiplication tables; the aggregate key masks every card
    return AggregatePublicKey(gc.decode_point(gc.encode_point(total), precompute=True))
