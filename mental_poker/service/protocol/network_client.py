"""
Network Client - talking to a player served by a remote peer endpoint

The host uses one PeerShareSource per remote player to run key exchange,
relay shuffles, deal, and collect reveal shares by deck position.
"""
import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from mental_poker.config import NETWORK_CONFIG
from mental_poker.errors import ProtocolViolation
from mental_poker.service.crypto_ops import MaskedCard, RevealShare, RevealShareProof

from .messages import PublishKey, RevealToken, Shuffle

logger = logging.getLogger(__name__)


class PeerShareSource:
    """Share source and control client for one remote player"""

    def __init__(self, address: str, player_id: int, crypto, timeout: float = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.address = address.rstrip("/")
        self.player_id = player_id
        self.crypto = crypto
        self.timeout = timeout or NETWORK_CONFIG["connection_timeout"]
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        try:
            async with self._client() as client:
                response = await client.post(f"{self.address}{path}", json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            logger.warning(f"[Network] {path} request to player {self.player_id} failed: {e}")
            raise

    # ========================================================================
    # Hand Setup
    # ========================================================================

    async def fetch_public_key(self) -> PublishKey:
        """Fetch the peer's published key; the caller still has to verify it."""
        async with self._client() as client:
            response = await client.get(f"{self.address}/public_key")
            response.raise_for_status()
            message = PublishKey.from_dict(self.crypto, response.json())
        if message.sender != self.player_id:
            raise ProtocolViolation(
                f"Peer at {self.address} published a key for player {message.sender}, "
                f"expected {self.player_id}"
            )
        return message

    async def send_key(self, message: PublishKey):
        await self._post("/keys", message.to_dict(self.crypto))

    async def send_shuffle(self, message: Shuffle):
        await self._post("/shuffle", message.to_dict(self.crypto))

    async def take_shuffle_turn(self) -> Shuffle:
        """Ask the peer to shuffle the canonical deck; returns its Shuffle message."""
        message = Shuffle.from_dict(self.crypto, await self._post("/shuffle_turn", {}))
        if message.sender != self.player_id:
            raise ProtocolViolation(f"Shuffle turn answered by player {message.sender}")
        return message

    async def deal(self) -> Dict[str, Any]:
        return await self._post("/deal", {})

    async def finish(self):
        await self._post("/finish", {})

    # ========================================================================
    # Reveal
    # ========================================================================

    async def reveal_share(self, card: MaskedCard,
                           position: int) -> Tuple[RevealShare, RevealShareProof]:
        """
        Ask the peer for its share of the card at `position`.

        The peer reads the card from its own canonical deck; the share is
        verified against `card` by the caller.
        """
        data = await self._post("/reveal_share", {"position": position})
        token = RevealToken.from_dict(self.crypto, data)
        if token.sender != self.player_id:
            raise ProtocolViolation(
                f"Peer at {self.address} answered as player {token.sender}, expected {self.player_id}"
            )
        if token.card_index != position:
            raise ProtocolViolation(
                f"Reveal share is for position {token.card_index}, asked for {position}"
            )
        return token.share, token.proof
