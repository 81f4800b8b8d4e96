import logging
import secrets
from typing import Dict, List, Tuple

from mental_poker.errors import ProtocolViolation
from mental_poker.model import PlayerIdentity
from mental_poker.service.crypto_ops import (
    SecretKey,
    PublicKey,
    OwnershipProof,
    VerifiedPublicKey,
)

logger = logging.getLogger(__name__)


class KeyRegistry:
    """Per-session key generation and ownership-proof verification"""

    def __init__(self, crypto, context: bytes, player_count: int):
        self.crypto = crypto
        self.context = context
        self.player_count = player_count
        self._verified: Dict[int, VerifiedPublicKey] = {}

    def generate_identity(self, player_id: int) -> Tuple[SecretKey, PublicKey, OwnershipProof]:
        """Fresh key pair for one player, bound to this session's context."""
        self._check_player(player_id)
        return self.crypto.keygen(secrets.SystemRandom(), self.context)

    def create_identity(self, player_id: int) -> PlayerIdentity:
        """Generate keys and wrap them in a PlayerIdentity that keeps the secret."""
        sk, pk, proof = self.generate_identity(player_id)
        return PlayerIdentity(player_id, sk, pk, proof)

    def verify_identity(self, public_key: PublicKey, proof: OwnershipProof) -> VerifiedPublicKey:
        """
        Check an ownership proof under this session's context.

        Raises:
            ProofInvalid: proof does not establish knowledge of the secret key
        """
        return self.crypto.verify_ownership(public_key, proof, self.context)

    def register(self, player_id: int, public_key: PublicKey, proof: OwnershipProof) -> VerifiedPublicKey:
        """Verify a published key and record it for the player."""
        self._check_player(player_id)
        if player_id in self._verified:
            raise ProtocolViolation(f"Player {player_id} already published a key")
        verified = self.verify_identity(public_key, proof)
        self._verified[player_id] = verified
        logger.info(f"[Keys] Player {player_id} ownership proof verified")
        return verified

    def verified_key(self, player_id: int) -> VerifiedPublicKey:
        try:
            return self._verified[player_id]
        except KeyError:
            raise ProtocolViolation(f"Player {player_id} has no verified key") from None

    def verified_keys(self) -> List[VerifiedPublicKey]:
        """Verified keys ordered by player id."""
        return [self._verified[pid] for pid in sorted(self._verified)]

    @property
    def is_complete(self) -> bool:
        return len(self._verified) == self.player_count

    def _check_player(self, player_id: int):
        if not 0 <= player_id < self.player_count:
            raise ProtocolViolation(f"Unknown player {player_id}")
