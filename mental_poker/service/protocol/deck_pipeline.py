"""
Deck Pipeline - the verified chain of shuffles for one hand

Shuffle i consumes the verified output of shuffle i-1. Only verified decks
become canonical, and any verification failure halts the chain until the
shuffle round is restarted.
"""
import logging
import secrets
import threading
from contextlib import contextmanager
from typing import Optional, Tuple

from mental_poker.errors import (
    MentalPokerError,
    MismatchedPrevious,
    ProtocolViolation,
)
from mental_poker.service.crypto_ops import (
    AggregatePublicKey,
    MaskedDeck,
    ShuffleProof,
    VerifiedDeck,
)

logger = logging.getLogger(__name__)


class DeckPipeline:
    """Produces and verifies the shuffle chain over a masked deck"""

    def __init__(self, crypto, aggregate_key: AggregatePublicKey, context: bytes):
        self.crypto = crypto
        self.aggregate_key = aggregate_key
        self.context = context
        self.canonical: Optional[VerifiedDeck] = None
        self.shuffle_count = 0
        self.halted = False
        self._verifying = threading.Lock()

    # ========================================================================
    # Initial Shuffle
    # ========================================================================

    def initial_shuffle(self) -> Tuple[MaskedDeck, ShuffleProof]:
        """Shuffle the open deck; performed once per round by the initial shuffler."""
        self._check_running()
        if self.canonical is not None:
            raise ProtocolViolation("Initial shuffle already verified for this round")
        return self.crypto.initial_shuffle(secrets.SystemRandom(), self.aggregate_key, self.context)

    def verify_initial(self, deck: MaskedDeck, proof: ShuffleProof) -> VerifiedDeck:
        """
        Verify the initial shuffle and adopt it as canonical.

        Raises:
            ProofInvalid: proof does not check out; the pipeline halts
        """
        self._check_running()
        if self.canonical is not None:
            raise ProtocolViolation("Initial shuffle already verified for this round")
        with self._verification_slot():
            verified = self._guarded(
                self.crypto.verify_initial_shuffle, self.aggregate_key, deck, proof, self.context
            )
            self._adopt(verified)
        logger.info("[Pipeline] Initial shuffle verified")
        return verified

    # ========================================================================
    # Subsequent Shuffles
    # ========================================================================

    def subsequent_shuffle(self, prev: VerifiedDeck) -> Tuple[MaskedDeck, ShuffleProof]:
        """Shuffle the current canonical deck."""
        self._check_running()
        self._check_extends_canonical(prev)
        return self.crypto.shuffle(secrets.SystemRandom(), self.aggregate_key, prev, self.context)

    def verify_shuffle(self, prev: VerifiedDeck, deck: MaskedDeck, proof: ShuffleProof) -> VerifiedDeck:
        """
        Verify a shuffle of `prev` and adopt the result as canonical.

        Raises:
            MismatchedPrevious: prev, or the deck the proof was built on, is
                not the canonical deck
            ProofInvalid: the shuffle proof fails
        """
        self._check_running()
        with self._verification_slot():
            try:
                self._check_extends_canonical(prev)
                if proof.previous_digest != self.canonical.digest:
                    raise MismatchedPrevious("Shuffle proof was built on a stale deck")
            except MismatchedPrevious as e:
                self._halt(e)
                raise
            verified = self._guarded(
                self.crypto.verify_shuffle, self.aggregate_key, prev, deck, proof, self.context
            )
            self._adopt(verified)
        logger.info(f"[Pipeline] Shuffle #{self.shuffle_count} verified")
        return verified

    # ========================================================================
    # Round Control
    # ========================================================================

    def restart(self):
        """Start a new shuffle round from the open deck."""
        with self._verification_slot():
            self.canonical = None
            self.shuffle_count = 0
            self.halted = False
        logger.info("[Pipeline] Shuffle round restarted")

    def _check_running(self):
        if self.halted:
            raise ProtocolViolation("Shuffle chain halted after a failed verification; restart the round")

    def _check_extends_canonical(self, prev: VerifiedDeck):
        if not isinstance(prev, VerifiedDeck):
            raise TypeError("Shuffles extend only a verified deck")
        if self.canonical is None:
            raise ProtocolViolation("No verified deck yet; run the initial shuffle first")
        if prev is not self.canonical and prev.digest != self.canonical.digest:
            raise MismatchedPrevious("Shuffle extends a deck that is not canonical")

    @contextmanager
    def _verification_slot(self):
        # One outstanding shuffle at a time
        if not self._verifying.acquire(blocking=False):
            raise ProtocolViolation("Another shuffle is awaiting verification")
        try:
            yield
        finally:
            self._verifying.release()

    def _guarded(self, verify, *args):
        try:
            return verify(*args)
        except MentalPokerError as e:
            self._halt(e)
            raise

    def _halt(self, error: MentalPokerError):
        self.halted = True
        logger.warning(f"[Pipeline] Verification failed ({error.code}); canonical deck unchanged")

    def _adopt(self, verified: VerifiedDeck):
        self.canonical = verified
        self.shuffle_count += 1

