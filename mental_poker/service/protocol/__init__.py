"""
Protocol Service - orchestration of one hand over a ShuffleCrypto backend

Structure:
- key_registry.py: Key generation and ownership-proof verification
- aggregate_key.py: Group key from the verified keys
- deck_pipeline.py: Verified chain of shuffles
- deal_engine.py: Deck positions for hole and community slots
- reveal_coordinator.py: N-of-N reveal share collection and card recovery
- messages.py: PublishKey / Shuffle / RevealToken wire messages
- network_client.py: Client for a player served by a peer endpoint (httpx)
"""

from .key_registry import KeyRegistry
from .aggregate_key import combine
from .deck_pipeline import DeckPipeline
from .deal_engine import DealEngine, CommunityAssignment
from .reveal_coordinator import RevealCoordinator, ShareSource, LocalShareSource
from .messages import PublishKey, Shuffle, RevealToken
from .network_client import PeerShareSource

__all__ = [
    'KeyRegistry',
    'combine',
    'DeckPipeline',
    'DealEngine',
    'CommunityAssignment',
    'RevealCoordinator',
    'ShareSource',
    'LocalShareSource',
    'PublishKey',
    'Shuffle',
    'RevealToken',
    'PeerShareSource',
]
