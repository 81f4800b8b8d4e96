"""
Mental poker - dealer-free shuffling, dealing and revealing of a 52-card deck
"""

from .config import SessionConfig
from .errors import (
    MentalPokerError,
    ProofInvalid,
    MismatchedPrevious,
    MissingParticipant,
    CardNotFound,
    SerializationError,
    ProtocolViolation,
)
from .session import GameState, HandPhase, new_session

__all__ = [
    'SessionConfig',
    'MentalPokerError',
    'ProofInvalid',
    'MismatchedPrevious',
    'MissingParticipant',
    'CardNotFound',
    'SerializationError',
    'ProtocolViolation',
    'GameState',
    'HandPhase',
    'new_session',
]
