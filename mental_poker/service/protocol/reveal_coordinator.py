"""
Reveal Coordinator - N-of-N card opening

Every player contributes a reveal share for a card together with a proof
that it was computed with their own key. A card opens only once every
player's share has been verified and combined.
"""
import asyncio
import logging
from typing import Dict, Iterable, Mapping, Protocol, Tuple

from mental_poker.errors import MissingParticipant, ProtocolViolation
from mental_poker.model import PlayerIdentity
from mental_poker.service.crypto_ops import (
    AggregateRevealToken,
    MaskedCard,
    RevealShare,
    RevealShareProof,
    VerifiedPublicKey,
    VerifiedRevealShare,
)

logger = logging.getLogger(__name__)


class ShareSource(Protocol):
    """
    Anything that can hand over one player's reveal share for a card.

    `position` is the card's place in the canonical deck; remote players
    look the card up themselves and only answer for dealt positions.
    """
    player_id: int

    async def reveal_share(self, card: MaskedCard,
                           position: int) -> Tuple[RevealShare, RevealShareProof]: ...


class LocalShareSource:
    """Share source backed by a PlayerIdentity held in this process."""

    def __init__(self, identity: PlayerIdentity, crypto, context: bytes):
        self.player_id = identity.player_id
        self._identity = identity
        self._crypto = crypto
        self._context = context

    async def reveal_share(self, card: MaskedCard,
                           position: int) -> Tuple[RevealShare, RevealShareProof]:
        # Curve arithmetic is CPU bound
        return await asyncio.to_thread(
            self._identity.produce_reveal_share, self._crypto, card, self._context
        )


class RevealCoordinator:
    """Collects, verifies and combines reveal shares for single cards"""

    def __init__(self, crypto, context: bytes, verified_keys: Mapping[int, VerifiedPublicKey]):
        self.crypto = crypto
        self.context = context
        self.verified_keys: Dict[int, VerifiedPublicKey] = dict(verified_keys)

    @property
    def player_ids(self) -> Tuple[int, ...]:
        return tuple(sorted(self.verified_keys))

    # ========================================================================
    # Single Steps
    # ========================================================================

    def produce_reveal_share(self, identity: PlayerIdentity,
                             card: MaskedCard) -> Tuple[RevealShare, RevealShareProof]:
        return identity.produce_reveal_share(self.crypto, card, self.context)

    def verify_reveal_share(self, player_id: int, share: RevealShare,
                            proof: RevealShareProof, card: MaskedCard) -> VerifiedRevealShare:
        """
        Check one player's share against their verified key and the card.

        Raises:
            ProofInvalid: the share was not produced with the player's key
            ProtocolViolation: the player is not part of the hand
        """
        if player_id not in self.verified_keys:
            raise ProtocolViolation(f"Player {player_id} is not part of this hand")
        return self.crypto.verify_reveal_share(
            player_id, self.verified_keys[player_id], share, proof, card, self.context
        )

    def aggregate(self, card: MaskedCard,
                  shares: Mapping[int, VerifiedRevealShare]) -> AggregateRevealToken:
        """
        Combine the verified shares of every player for one card.

        Raises:
            MissingParticipant: a player's share is absent
        """
        missing = [pid for pid in self.player_ids if pid not in shares]
        if missing:
            raise MissingParticipant(missing)
        ordered = []
        for pid in self.player_ids:
            share = shares[pid]
            if not isinstance(share, VerifiedRevealShare):
                raise TypeError("Only verified reveal shares can be aggregated")
            if share.player_id != pid:
                raise ProtocolViolation(f"Share filed under player {pid} belongs to player {share.player_id}")
            if share.card != card:
                raise ProtocolViolation("Reveal share was verified against a different card")
            ordered.append(share)
        return self.crypto.aggregate_reveal_token(ordered)

    def recover(self, token: AggregateRevealToken, card: MaskedCard) -> int:
        """
        Unmask the card.

        Raises:
            CardNotFound: the unmasked point is not one of the 52 card points
        """
        return self.crypto.recover_card(token, card)

    # ========================================================================
    # Full Opening
    # ========================================================================

    def open(self, card: MaskedCard, identities: Iterable[PlayerIdentity]) -> int:
        """Open a card with every player's identity available locally."""
        verified: Dict[int, VerifiedRevealShare] = {}
        for identity in identities:
            share, proof = self.produce_reveal_share(identity, card)
            verified[identity.player_id] = self.verify_reveal_share(
                identity.player_id, share, proof, card
            )
        token = self.aggregate(card, verified)
        return self.recover(token, card)

    async def open_async(self, card: MaskedCard, position: int,
                         sources: Iterable[ShareSource], timeout: float) -> int:
        """
        Collect every player's share for the card at deck `position`
        concurrently and open it.

        Shares still outstanding after `timeout` seconds are treated as
        absent; nothing is retried.

        Raises:
            MissingParticipant: some player did not deliver in time
            ProofInvalid: a delivered share failed verification
        """
        tasks = {
            asyncio.create_task(source.reveal_share(card, position)): source.player_id
            for source in sources
        }
        if not tasks:
            raise MissingParticipant(self.player_ids)

        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        verified: Dict[int, VerifiedRevealShare] = {}
        for task in done:
            player_id = tasks[task]
            error = task.exception()
            if error is not None:
                logger.warning(f"[Reveal] Player {player_id} failed to deliver a share: {error}")
                continue
            share, proof = task.result()
            verified[player_id] = self.verify_reveal_share(player_id, share, proof, card)

        missing = [pid for pid in self.player_ids if pid not in verified]
        if missing:
            logger.warning(f"[Reveal] Missing shares from players {missing}")
            raise MissingParticipant(missing)

        token = self.aggregate(card, verified)
        return self.recover(token, card)
