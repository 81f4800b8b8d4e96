"""
Pytest configuration and shared fixtures.

Shuffle proofs run with a handful of rounds, and the round floor is lowered
to match, so the pure-python curve arithmetic stays fast; soundness is not
what these tests measure.
"""
import os

import pytest

from mental_poker.config import SessionConfig
from mental_poker.logging_config import setup_logging
from mental_poker.service.crypto_ops import CurveShuffleCrypto
from mental_poker.service.protocol import DeckPipeline, KeyRegistry, combine
from mental_poker.session import new_session

TEST_ROUNDS = 4
CONTEXT = b"test-session"


def pytest_configure(config):
    """Configure pytest settings."""
    setup_logging(os.environ.get("LOG_LEVEL", "WARNING"))


@pytest.fixture(scope="session")
def context() -> bytes:
    return CONTEXT


@pytest.fixture(scope="session")
def config() -> SessionConfig:
    return SessionConfig.from_defaults(
        shuffle_proof_rounds=TEST_ROUNDS, min_shuffle_proof_rounds=TEST_ROUNDS, reveal_timeout=5.0
    )


@pytest.fixture(scope="session")
def crypto(config) -> CurveShuffleCrypto:
    return CurveShuffleCrypto(config.curve, config.shuffle_proof_rounds)


@pytest.fixture(scope="session")
def players(crypto, config):
    """Two locally held identities with verified keys, shared across tests."""
    registry = KeyRegistry(crypto, CONTEXT, config.player_count)
    identities = [registry.create_identity(pid) for pid in range(config.player_count)]
    for identity in identities:
        identity.verified_public_key = registry.register(
            identity.player_id, identity.public_key, identity.ownership_proof
        )
    return identities


@pytest.fixture(scope="session")
def aggregate_key(crypto, players):
    return combine(crypto, [p.verified_public_key for p in players])


@pytest.fixture
def pipeline(crypto, aggregate_key) -> DeckPipeline:
    return DeckPipeline(crypto, aggregate_key, CONTEXT)


@pytest.fixture(scope="session")
def verified_deck(crypto, aggregate_key):
    """One verified initial shuffle for tests that only read a deck."""
    p = DeckPipeline(crypto, aggregate_key, CONTEXT)
    deck, proof = p.initial_shuffle()
    return p.verify_initial(deck, proof)


@pytest.fixture
def session(config):
    """A fresh hand set up with both players hosted locally."""
    return new_session(CONTEXT, config)
