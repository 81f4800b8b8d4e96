from typing import Sequence

from mental_poker.service.crypto_ops import AggregatePublicKey, VerifiedPublicKey


def combine(crypto, verified_keys: Sequence[VerifiedPublicKey]) -> AggregatePublicKey:
    """
    Combine the verified keys of the whole player set into one group key.

    Pure and deterministic. Keys must be passed in player-id order; whether
    the backend's combination is order-independent is its own property.

    Args:
        crypto: ShuffleCrypto backend
        verified_keys: One verified key per player

    Returns:
        AggregatePublicKey
    """
    keys = list(verified_keys)
    if not keys:
        raise ValueError("Cannot combine an empty key set")
    for key in keys:
        if not isinstance(key, VerifiedPublicKey):
            raise TypeError("Only verified public keys can be combined")
    return crypto.aggregate_public_key(keys)
