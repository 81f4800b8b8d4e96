"""
Crypto Operations Service - ShuffleCrypto backend for the protocol layer

Structure:
- backend.py: ShuffleCrypto protocol + CurveShuffleCrypto (Facade)
- context.py: Curve parameters and plaintext card table
- key_generation.py: Key pairs, ownership proofs, key aggregation
- shuffle.py: Remasking and cut-and-choose shuffle proofs
- threshold_decryption.py: Reveal shares, aggregation, card recovery
- serialization.py: Canonical wire bytes
"""

from .backend import ShuffleCrypto, CurveShuffleCrypto
from .context import DECK_SIZE, GroupContext, create_group_context
from .types import (
    SecretKey,
    PublicKey,
    OwnershipProof,
    VerifiedPublicKey,
    AggregatePublicKey,
    MaskedCard,
    MaskedDeck,
    VerifiedDeck,
    ShuffleRound,
    ShuffleProof,
    RevealShare,
    RevealShareProof,
    VerifiedRevealShare,
    AggregateRevealToken,
)
from .serialization import to_base64, from_base64

__all__ = [
    'ShuffleCrypto',
    'CurveShuffleCrypto',
    'DECK_SIZE',
    'GroupContext',
    'create_group_context',
    'SecretKey',
    'PublicKey',
    'OwnershipProof',
    'VerifiedPublicKey',
    'AggregatePublicKey',
    'MaskedCard',
    'MaskedDeck',
    'VerifiedDeck',
    'ShuffleRound',
    'ShuffleProof',
    'RevealShare',
    'RevealShareProof',
    'VerifiedRevealShare',
    'AggregateRevealToken',
    'to_base64',
    'from_base64',
]
