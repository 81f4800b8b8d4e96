"""
Configuration for Mental Poker sessions and peers
"""
from dataclasses import dataclass, replace
from typing import Dict, Any
import os


def _env_int(name: str, default: int) -> int:
    """Read an integer override from the environment."""
    value = os.getenv(name)
    if not value:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if not value:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


# Cryptography Configuration
CRYPTO_CONFIG: Dict[str, Any] = {
    # Curve used for card masking and all proofs
    "curve": os.getenv("MENTAL_POKER_CURVE", "SECP256k1"),

    # Cut-and-choose rounds per shuffle proof. The proof is non-interactive, so a
    # cheating shuffler can grind the challenge offline in about 2^rounds hashes
    "shuffle_proof_rounds": _env_int("MENTAL_POKER_SHUFFLE_ROUNDS", 128),

    # Sessions refuse to verify with fewer rounds than this
    "min_shuffle_proof_rounds": _env_int("MENTAL_POKER_MIN_SHUFFLE_ROUNDS", 80),
}


# Protocol Configuration
PROTOCOL_CONFIG: Dict[str, Any] = {
    "deck_size": 52,
    "player_count": 2,
    "hole_cards_per_player": 2,
    "community_cards": 5,

    # Player who performs the initial shuffle of every hand
    "initial_shuffler": 0,
}


# Network Configuration
NETWORK_CONFIG: Dict[str, Any] = {
    "peer_host": os.getenv("MENTAL_POKER_HOST", "127.0.0.1"),
    "peer_port": _env_int("MENTAL_POKER_PORT", 9000),

    "connection_timeout": 10,

    # Upper bound on waiting for every reveal share of one card (seconds)
    "reveal_timeout": _env_float("MENTAL_POKER_REVEAL_TIMEOUT", 10.0),
}


# Logging Configuration
LOG_CONFIG: Dict[str, Any] = {
    "level": os.getenv("MENTAL_POKER_LOG_LEVEL", "INFO"),
    "log_dir": os.getenv("MENTAL_POKER_LOG_DIR", "logs"),
}


@dataclass(frozen=True)
class SessionConfig:
    """
    Settings for one hand.

    Built from the module defaults and passed explicitly to every session;
    nothing reads the dictionaries above after construction.
    """
    curve: str = CRYPTO_CONFIG["curve"]
    shuffle_proof_rounds: int = CRYPTO_CONFIG["shuffle_proof_rounds"]
    min_shuffle_proof_rounds: int = CRYPTO_CONFIG["min_shuffle_proof_rounds"]
    player_count: int = PROTOCOL_CONFIG["player_count"]
    initial_shuffler: int = PROTOCOL_CONFIG["initial_shuffler"]
    reveal_timeout: float = NETWORK_CONFIG["reveal_timeout"]

    def __post_init__(self):
        if self.player_count < 2:
            raise ValueError("A hand needs at least 2 players")
        needed = (self.player_count * PROTOCOL_CONFIG["hole_cards_per_player"]
                  + PROTOCOL_CONFIG["community_cards"])
        if needed > PROTOCOL_CONFIG["deck_size"]:
            raise ValueError(
                f"{self.player_count} players need {needed} cards, "
                f"deck has {PROTOCOL_CONFIG['deck_size']}"
            )
        if not 0 <= self.initial_shuffler < self.player_count:
            raise ValueError(f"Unknown initial shuffler {self.initial_shuffler}")
        if self.min_shuffle_proof_rounds < 1:
            raise ValueError("Shuffle proofs need at least one round")
        if self.shuffle_proof_rounds < self.min_shuffle_proof_rounds:
            raise ValueError(
                f"{self.shuffle_proof_rounds} shuffle proof rounds is below the "
                f"minimum of {self.min_shuffle_proof_rounds}"
            )

    @classmethod
    def from_defaults(cls, **overrides) -> "SessionConfig":
        """Build a config from the module defaults with keyword overrides."""
        return replace(cls(), **overrides)
