"""
Player Model

A seat in the hand together with its key material.
"""
import secrets
from typing import Optional, Tuple

from mental_poker.service.crypto_ops import (
    SecretKey,
    PublicKey,
    OwnershipProof,
    VerifiedPublicKey,
    MaskedCard,
    RevealShare,
    RevealShareProof,
)


class PlayerIdentity:
    """
    Represents one player in the hand.

    SECRET KEY CUSTODY: the secret key is held here and never handed out.
    Operations that need it (reveal shares) run as methods on this object.
    """
    def __init__(self, player_id: int, secret_key: SecretKey, public_key: PublicKey,
                 ownership_proof: OwnershipProof):
        self.player_id = player_id
        self.__secret_key = secret_key
        self.public_key = public_key
        self.ownership_proof = ownership_proof

        # Set once another party has checked the ownership proof
        self.verified_public_key: Optional[VerifiedPublicKey] = None

    @property
    def has_secret(self) -> bool:
        return not self.__secret_key.cleared

    def produce_reveal_share(self, crypto, card: MaskedCard,
                             context: bytes) -> Tuple[RevealShare, RevealShareProof]:
        """Partial decryption of `card` with this player's own key."""
        return crypto.reveal_share(
            secrets.SystemRandom(), self.__secret_key, self.public_key, card, context
        )

    def clear_secret(self):
        """Drop the secret key; called when the hand is finished."""
        self.__secret_key.clear()

    def __copy__(self):
        raise TypeError("PlayerIdentity owns a secret key and cannot be copied")

    def __deepcopy__(self, memo):
        raise TypeError("PlayerIdentity owns a secret key and cannot be copied")

    def __reduce__(self):
        raise TypeError("PlayerIdentity owns a secret key and cannot be serialized")

    def __repr__(self) -> str:
        verified = self.verified_public_key is not None
        return f"PlayerIdentity(player_id={self.player_id}, verified={verified})"
