"""
Game State - one hand of mental poker

GameState is the aggregate root the host talks to. It owns the key registry,
the shuffle pipeline, the deal and the reveal coordinator, and advances the
hand phase only when the underlying verification succeeds.
"""
import logging
import threading
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union

from mental_poker.config import SessionConfig
from mental_poker.errors import ProtocolViolation
from mental_poker.hand_logger import HandLogger
from mental_poker.model import PlayerIdentity
from mental_poker.service.crypto_ops import (
    AggregatePublicKey,
    CurveShuffleCrypto,
    VerifiedDeck,
    VerifiedRevealShare,
)
from mental_poker.service.protocol import (
    CommunityAssignment,
    DealEngine,
    DeckPipeline,
    KeyRegistry,
    LocalShareSource,
    PeerShareSource,
    PublishKey,
    RevealCoordinator,
    RevealToken,
    ShareSource,
    Shuffle,
    combine,
)

logger = logging.getLogger(__name__)


class HandPhase(str, Enum):
    CREATED = "created"
    KEYS_PUBLISHED = "keys_published"
    INITIAL_SHUFFLE_VERIFIED = "initial_shuffle_verified"
    ADDITIONAL_SHUFFLE_VERIFIED = "additional_shuffle_verified"
    DEALT = "dealt"
    CARD_REVEALED = "card_revealed"
    FINISHED = "finished"


def new_session(context: Union[str, bytes], config: Optional[SessionConfig] = None,
                crypto=None, hand_logger: Optional[HandLogger] = None,
                setup: bool = True) -> "GameState":
    """
    Create a hand.

    With `setup` every player is hosted locally: keys are generated and
    published, and the initial shuffler's shuffle is verified. Without it the
    hand starts in CREATED and the host drives key exchange itself.

    Args:
        context: Session context bound into every proof
        config: Session settings; defaults to SessionConfig.from_defaults()
        crypto: ShuffleCrypto backend; defaults to CurveShuffleCrypto
        hand_logger: Optional plaintext hand record
        setup: Run local key exchange and the initial shuffle

    Returns:
        GameState
    """
    config = config or SessionConfig.from_defaults()
    if crypto is None:
        crypto = CurveShuffleCrypto(config.curve, config.shuffle_proof_rounds)
    if isinstance(context, str):
        context = context.encode("utf-8")

    state = GameState(context, config, crypto, hand_logger)
    if setup:
        for player_id in range(config.player_count):
            state.accept_key(state.add_local_player(player_id))
        state.shuffle_by(config.initial_shuffler)
    return state


class GameState:
    """
    Aggregate root for one hand.

    All mutating operations run under one re-entrant writer lock. Canonical
    state only changes after a verification succeeds.
    """

    def __init__(self, context: bytes, config: SessionConfig, crypto,
                 hand_logger: Optional[HandLogger] = None):
        self.context = context
        self.config = config
        self.crypto = crypto
        self.hand_logger = hand_logger
        self.phase = HandPhase.CREATED

        self.registry = KeyRegistry(crypto, context, config.player_count)
        self.identities: Dict[int, PlayerIdentity] = {}
        self.remote_sources: Dict[int, ShareSource] = {}
        self.aggregate_key: Optional[AggregatePublicKey] = None
        self.pipeline: Optional[DeckPipeline] = None
        self.reveal: Optional[RevealCoordinator] = None
        self.deal = DealEngine(config.player_count)

        # deck position -> card identity, and shares received ahead of opening
        self.opened: Dict[int, int] = {}
        self._pending: Dict[int, Dict[int, VerifiedRevealShare]] = {}
        # bumped whenever the deal is discarded
        self._deal_generation = 0
        self._lock = threading.RLock()

    @property
    def canonical_deck(self) -> Optional[VerifiedDeck]:
        return self.pipeline.canonical if self.pipeline else None

    @property
    def hole_assignment(self) -> Dict[int, Tuple[int, ...]]:
        return dict(self.deal.hole)

    @property
    def community_assignment(self) -> Optional[CommunityAssignment]:
        return self.deal.community

    # ========================================================================
    # Key Exchange
    # ========================================================================

    def add_local_player(self, player_id: int) -> PublishKey:
        """Generate keys for a player hosted here; returns the message to publish."""
        with self._lock:
            self._require_phase(HandPhase.CREATED)
            if player_id in self.identities:
                raise ProtocolViolation(f"Player {player_id} is already hosted here")
            self.identities[player_id] = self.registry.create_identity(player_id)
            return self.publish_key(player_id)

    def publish_key(self, player_id: int) -> PublishKey:
        """The key message of a locally hosted player."""
        with self._lock:
            self._check_not_finished()
            identity = self._local_identity(player_id)
            return PublishKey(player_id, identity.public_key, identity.ownership_proof)

    def add_remote_source(self, source: ShareSource):
        """Register where a remote player's reveal shares come from."""
        with self._lock:
            self._check_not_finished()
            self.remote_sources[source.player_id] = source

    def accept_key(self, message: PublishKey):
        """
        Verify and record a published key.

        Once every player's key is in, the group key is formed and the hand
        moves to KEYS_PUBLISHED.

        Raises:
            ProofInvalid: the ownership proof fails; nothing is recorded
        """
        with self._lock:
            self._require_phase(HandPhase.CREATED)
            verified = self.registry.register(message.sender, message.public_key, message.proof)
            identity = self.identities.get(message.sender)
            if identity is not None:
                identity.verified_public_key = verified

            if self.registry.is_complete:
                keys = self.registry.verified_keys()
                self.aggregate_key = combine(self.crypto, keys)
                self.pipeline = DeckPipeline(self.crypto, self.aggregate_key, self.context)
                self.reveal = RevealCoordinator(self.crypto, self.context, {
                    pid: self.registry.verified_key(pid) for pid in range(self.config.player_count)
                })
                self.phase = HandPhase.KEYS_PUBLISHED
                logger.info(f"[Session] All {len(keys)} keys verified; group key formed")

    # ========================================================================
    # Shuffling
    # ========================================================================

    def shuffle_by(self, player_id: int) -> Shuffle:
        """
        Shuffle the canonical deck (or the open deck, for the initial shuffle)
        on behalf of `player_id` and verify the result.

        Returns:
            Shuffle message for the other players
        """
        with self._lock:
            self._check_can_shuffle(player_id)
            if self.pipeline.canonical is None:
                deck, proof = self.pipeline.initial_shuffle()
            else:
                deck, proof = self.pipeline.subsequent_shuffle(self.pipeline.canonical)
            message = Shuffle(player_id, deck, proof)
            self.accept_shuffle(message)
            return message

    def accept_shuffle(self, message: Shuffle) -> VerifiedDeck:
        """
        Verify a shuffle and adopt it as the canonical deck.

        A shuffle after dealing clears the deal.

        Raises:
            ProofInvalid: the shuffle proof fails; the round must be restarted
            MismatchedPrevious: the shuffle does not extend the canonical deck
        """
        with self._lock:
            self._check_can_shuffle(message.sender)
            if self.pipeline.canonical is None:
                verified = self.pipeline.verify_initial(message.deck, message.proof)
                self.phase = HandPhase.INITIAL_SHUFFLE_VERIFIED
            else:
                verified = self.pipeline.verify_shuffle(
                    self.pipeline.canonical, message.deck, message.proof
                )
                self.phase = HandPhase.ADDITIONAL_SHUFFLE_VERIFIED

            if self.deal.is_dealt:
                logger.info("[Session] Deck reshuffled; previous deal cleared")
            self._discard_deal()
            if self.hand_logger:
                self.hand_logger.log_shuffle(message.sender, self.pipeline.shuffle_count)
            return verified

    def restart_shuffle_round(self):
        """Discard the shuffle chain and start again from the open deck."""
        with self._lock:
            self._check_not_finished()
            if self.phase == HandPhase.CREATED:
                raise ProtocolViolation("Keys have not been published yet")
            if self.opened:
                raise ProtocolViolation("Cannot restart shuffling after a card was revealed")
            self.pipeline.restart()
            self._discard_deal()
            self.phase = HandPhase.KEYS_PUBLISHED

    def _check_can_shuffle(self, player_id: int):
        self._check_not_finished()
        if self.phase == HandPhase.CREATED:
            raise ProtocolViolation("Cannot shuffle before every key is published")
        if self.phase == HandPhase.CARD_REVEALED:
            raise ProtocolViolation("Cannot shuffle after a card was revealed")
        if not 0 <= player_id < self.config.player_count:
            raise ProtocolViolation(f"Unknown player {player_id}")
        if self.pipeline.canonical is None and player_id != self.config.initial_shuffler:
            raise ProtocolViolation(
                f"Initial shuffle belongs to player {self.config.initial_shuffler}, not {player_id}"
            )

    def _discard_deal(self):
        self.deal.reset()
        self._pending.clear()
        self._deal_generation += 1

    # ========================================================================
    # Dealing
    # ========================================================================

    def deal_hole(self) -> Dict[int, Tuple[int, ...]]:
        """Assign two deck positions per player; repeated calls give the same result."""
        with self._lock:
            self._check_not_finished()
            hole = self.deal.deal_hole(self._deck_to_deal())
            self._mark_dealt()
            return hole

    def deal_community(self) -> CommunityAssignment:
        with self._lock:
            self._check_not_finished()
            community = self.deal.deal_community(self._deck_to_deal())
            self._mark_dealt()
            return community

    def _deck_to_deal(self) -> Optional[VerifiedDeck]:
        if self.pipeline is not None and self.pipeline.halted:
            raise ProtocolViolation("Shuffle chain halted; restart the shuffle round before dealing")
        return self.canonical_deck

    def _mark_dealt(self):
        if self.phase != HandPhase.CARD_REVEALED:
            self.phase = HandPhase.DEALT

    # ========================================================================
    # Revealing
    # ========================================================================

    def reveal_token_for(self, player_id: int, position: int) -> RevealToken:
        """
        A locally hosted player's reveal share for the card at `position`.

        Raises:
            ProtocolViolation: the position has not been dealt
        """
        with self._lock:
            self._require_dealt()
            self._check_dealt_position(position)
            identity = self._local_identity(player_id)
            card = self.canonical_deck[position]
            share, proof = self.reveal.produce_reveal_share(identity, card)
            return RevealToken(player_id, position, share, proof)

    def accept_reveal_token(self, message: RevealToken) -> VerifiedRevealShare:
        """
        Verify a remote player's share and hold it until the card is opened.

        Raises:
            ProofInvalid: the share is forged; only this card is affected
        """
        with self._lock:
            self._require_dealt()
            self._check_dealt_position(message.card_index)
            card = self.canonical_deck[message.card_index]
            verified = self.reveal.verify_reveal_share(
                message.sender, message.share, message.proof, card
            )
            self._pending.setdefault(message.card_index, {})[message.sender] = verified
            return verified

    def open_hole_for(self, player_id: int) -> Tuple[int, ...]:
        """Open a player's two hole cards."""
        with self._lock:
            self._require_dealt()
            positions = self.deal.hole_positions(player_id)
            cards = tuple(self._open(position) for position in positions)
            if self.hand_logger:
                self.hand_logger.log_hole_cards(player_id, positions, cards)
            return cards

    def open_community(self) -> Tuple[int, ...]:
        """Open the board in flop, turn, river order."""
        with self._lock:
            self._require_dealt()
            positions = self.deal.community_positions()
            cards = tuple(self._open(position) for position in positions)
            if self.hand_logger:
                self.hand_logger.log_community(positions, cards)
            return cards

    async def open_card_async(self, position: int, sources: Optional[List[ShareSource]] = None,
                              timeout: Optional[float] = None) -> int:
        """
        Open one dealt card, collecting shares from every source concurrently.

        By default shares come from the locally hosted players and the
        registered remote sources.

        Raises:
            MissingParticipant: a share did not arrive within `timeout`
            ProtocolViolation: the deck was reshuffled or the deal discarded
                while shares were outstanding
        """
        with self._lock:
            self._require_dealt()
            self._check_dealt_position(position)
            if position in self.opened:
                return self.opened[position]
            deck, generation = self.canonical_deck, self._deal_generation
            card = deck[position]
            if sources is None:
                sources = [
                    LocalShareSource(identity, self.crypto, self.context)
                    for identity in self.identities.values()
                ] + list(self.remote_sources.values())
            reveal = self.reveal
        if timeout is None:
            timeout = self.config.reveal_timeout

        value = await reveal.open_async(card, position, sources, timeout)
        with self._lock:
            if self.canonical_deck is not deck or self._deal_generation != generation:
                raise ProtocolViolation(
                    f"Deck changed while shares for position {position} were outstanding"
                )
            self._record_opened(position, value)
        return value

    def _open(self, position: int) -> int:
        if position in self.opened:
            return self.opened[position]
        card = self.canonical_deck[position]
        shares = dict(self._pending.get(position, {}))
        for player_id, identity in self.identities.items():
            if player_id not in shares:
                share, proof = self.reveal.produce_reveal_share(identity, card)
                shares[player_id] = self.reveal.verify_reveal_share(player_id, share, proof, card)
        token = self.reveal.aggregate(card, shares)
        value = self.reveal.recover(token, card)
        self._record_opened(position, value)
        return value

    def _record_opened(self, position: int, value: int):
        self._check_not_finished()
        self.opened[position] = value
        self._pending.pop(position, None)
        self.phase = HandPhase.CARD_REVEALED
        logger.info(f"[Session] Position {position} opened")

    def _check_dealt_position(self, position: int):
        dealt = [p for positions in self.deal.hole.values() for p in positions]
        if self.deal.community is not None:
            dealt.extend(self.deal.community.positions)
        if position not in dealt:
            raise ProtocolViolation(f"Deck position {position} has not been dealt")

    # ========================================================================
    # Remote Players
    # ========================================================================

    async def connect_peers(self, peers: List[PeerShareSource]):
        """
        Run key exchange with players served by peer endpoints.

        Every local key is sent to every peer, and every peer's key is relayed
        to the other peers, so each table member forms the same group key.
        The peers are then registered as share sources for this hand.

        Raises:
            ProofInvalid: a peer's ownership proof fails
        """
        local_keys = [self.publish_key(player_id) for player_id in sorted(self.identities)]
        remote_keys = [await peer.fetch_public_key() for peer in peers]
        for message in remote_keys:
            self.accept_key(message)

        for peer in peers:
            for message in local_keys + remote_keys:
                if message.sender != peer.player_id:
                    await peer.send_key(message)
            self.add_remote_source(peer)
        logger.info(f"[Session] Connected {len(peers)} remote player(s)")

    async def shuffle_with_peers(self) -> VerifiedDeck:
        """
        One shuffle per player, starting with the initial shuffler.

        Local players shuffle here; remote players take their turn on their
        own endpoint. Each shuffle is verified here and relayed to every peer
        other than its author.
        """
        peers = self._remote_peers()
        shuffler = self.config.initial_shuffler
        order = [shuffler] + [pid for pid in range(self.config.player_count) if pid != shuffler]
        for player_id in order:
            if player_id in self.identities:
                message = self.shuffle_by(player_id)
            else:
                message = await peers[player_id].take_shuffle_turn()
                self.accept_shuffle(message)
            for peer_id, peer in peers.items():
                if peer_id != player_id:
                    await peer.send_shuffle(message)
        return self.canonical_deck

    async def deal_with_peers(self) -> Tuple[Dict[int, Tuple[int, ...]], CommunityAssignment]:
        """
        Deal here and on every peer; the peers must arrive at the same positions.

        Raises:
            ProtocolViolation: a peer dealt differently
        """
        hole = self.deal_hole()
        community = self.deal_community()
        expected = {
            "hole": {str(pid): list(positions) for pid, positions in hole.items()},
            "community": list(community.positions),
        }
        for player_id, peer in self._remote_peers().items():
            if await peer.deal() != expected:
                raise ProtocolViolation(f"Player {player_id} dealt different positions")
        return hole, community

    def _remote_peers(self) -> Dict[int, PeerShareSource]:
        with self._lock:
            self._check_not_finished()
            peers = {pid: source for pid, source in self.remote_sources.items()
                     if isinstance(source, PeerShareSource)}
        missing = [pid for pid in range(self.config.player_count)
                   if pid not in self.identities and pid not in peers]
        if missing:
            raise ProtocolViolation(f"No local identity or peer for player(s) {missing}")
        return peers

    # ========================================================================
    # Teardown
    # ========================================================================

    def finish(self):
        """End the hand and drop every locally held secret key."""
        with self._lock:
            self._check_not_finished()
            for identity in self.identities.values():
                identity.clear_secret()
            self._pending.clear()
            self.phase = HandPhase.FINISHED
            if self.hand_logger:
                self.hand_logger.log_hand_end(self.opened)
            logger.info("[Session] Hand finished; local secrets cleared")

    # ========================================================================
    # Guards
    # ========================================================================

    def _local_identity(self, player_id: int) -> PlayerIdentity:
        try:
            return self.identities[player_id]
        except KeyError:
            raise ProtocolViolation(f"Player {player_id} is not hosted here") from None

    def _require_phase(self, phase: HandPhase):
        self._check_not_finished()
        if self.phase != phase:
            raise ProtocolViolation(f"Expected phase {phase.value}, hand is in {self.phase.value}")

    def _require_dealt(self):
        self._check_not_finished()
        if self.phase not in (HandPhase.DEALT, HandPhase.CARD_REVEALED):
            raise ProtocolViolation("Cards have not been dealt")

    def _check_not_finished(self):
        if self.phase == HandPhase.FINISHED:
            raise ProtocolViolation("Hand is finished")
