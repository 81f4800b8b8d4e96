"""
Shuffle chain: verification, chaining rules, tampering and halting.
"""
import secrets
from dataclasses import replace

import pytest

from mental_poker.errors import (
    MismatchedPrevious,
    ProofInvalid,
    ProtocolViolation,
    SerializationError,
)
from mental_poker.service.crypto_ops import DECK_SIZE, MaskedDeck, VerifiedDeck
from mental_poker.service.protocol import DeckPipeline, RevealCoordinator


def _flip_byte(data: bytes, index: int) -> bytes:
    out = bytearray(data)
    out[index] ^= 0x01
    return bytes(out)


def _initial(pipeline: DeckPipeline) -> VerifiedDeck:
    deck, proof = pipeline.initial_shuffle()
    return pipeline.verify_initial(deck, proof)


class TestShuffleChain:

    def test_initial_shuffle_verifies(self, pipeline):
        verified = _initial(pipeline)

        assert isinstance(verified, VerifiedDeck)
        assert len(verified) == DECK_SIZE
        assert pipeline.canonical is verified
        assert pipeline.shuffle_count == 1

    def test_chain_extends_only_canonical_deck(self, pipeline):
        d0 = _initial(pipeline)
        deck, proof = pipeline.subsequent_shuffle(d0)
        d1 = pipeline.verify_shuffle(d0, deck, proof)

        assert pipeline.canonical is d1
        assert d1.digest != d0.digest
        assert pipeline.shuffle_count == 2

    def test_stale_previous_deck_is_mismatched(self, pipeline):
        d0 = _initial(pipeline)
        deck, proof = pipeline.subsequent_shuffle(d0)
        d1 = pipeline.verify_shuffle(d0, deck, proof)

        # A shuffle built on d0 arriving after d1 is canonical
        stale_deck, stale_proof = pipeline.crypto.shuffle(
            secrets.SystemRandom(), pipeline.aggregate_key, d0, pipeline.context
        )
        with pytest.raises(MismatchedPrevious):
            pipeline.verify_shuffle(d0, stale_deck, stale_proof)
        assert pipeline.canonical is d1

    def test_proof_built_on_stale_deck_is_mismatched(self, pipeline):
        d0 = _initial(pipeline)
        deck, proof = pipeline.subsequent_shuffle(d0)
        d1 = pipeline.verify_shuffle(d0, deck, proof)

        stale_deck, stale_proof = pipeline.crypto.shuffle(
            secrets.SystemRandom(), pipeline.aggregate_key, d0, pipeline.context
        )
        # Claims to extend the canonical deck, but the proof says otherwise
        with pytest.raises(MismatchedPrevious):
            pipeline.verify_shuffle(d1, stale_deck, stale_proof)
        assert pipeline.canonical is d1

    def test_substituted_previous_deck_is_mismatched(self, crypto, aggregate_key, context, pipeline):
        _initial(pipeline)
        other = DeckPipeline(crypto, aggregate_key, context)
        foreign = _initial(other)
        deck, proof = other.subsequent_shuffle(foreign)

        with pytest.raises(MismatchedPrevious):
            pipeline.verify_shuffle(foreign, deck, proof)

    def test_shuffle_requires_verified_deck(self, pipeline):
        d0 = _initial(pipeline)
        with pytest.raises(TypeError):
            pipeline.subsequent_shuffle(d0.deck)

    def test_verified_deck_cannot_be_built_directly(self, verified_deck):
        with pytest.raises(TypeError):
            VerifiedDeck(verified_deck.deck, verified_deck.digest)

    def test_second_initial_shuffle_is_a_violation(self, pipeline):
        _initial(pipeline)
        with pytest.raises(ProtocolViolation):
            pipeline.initial_shuffle()


class TestTampering:

    def test_flipped_deck_byte_never_verifies(self, crypto, aggregate_key, context, verified_deck):
        deck, proof = crypto.shuffle(secrets.SystemRandom(), aggregate_key, verified_deck, context)
        deck_bytes = crypto.encode_deck(deck)

        for index in (0, 1, 32, 33, 66 * 10 + 5, len(deck_bytes) - 1):
            tampered = _flip_byte(deck_bytes, index)
            with pytest.raises((SerializationError, ProofInvalid)):
                crypto.verify_shuffle(aggregate_key, verified_deck, crypto.decode_deck(tampered), proof, context)

    def test_flipped_proof_byte_never_verifies(self, crypto, aggregate_key, context, verified_deck):
        deck, proof = crypto.shuffle(secrets.SystemRandom(), aggregate_key, verified_deck, context)
        proof_bytes = crypto.encode_shuffle_proof(proof)

        # deck digest, round count, first shadow deck, its permutation, its scalars
        round_start = 64 + 2
        for index in (32, 63, 64, 65, round_start + 7, round_start + 3432 + 3,
                      round_start + 3432 + 52 + 10, len(proof_bytes) - 1):
            tampered = _flip_byte(proof_bytes, index)
            with pytest.raises((SerializationError, ProofInvalid)):
                crypto.verify_shuffle(aggregate_key, verified_deck, deck, crypto.decode_shuffle_proof(tampered), context)

    def test_pipeline_keeps_canonical_deck_on_tamper(self, crypto, pipeline):
        prev = _initial(pipeline)
        deck, proof = pipeline.subsequent_shuffle(prev)
        tampered = _flip_byte(crypto.encode_deck(deck), len(crypto.encode_deck(deck)) - 1)

        with pytest.raises((SerializationError, ProofInvalid)):
            pipeline.verify_shuffle(prev, crypto.decode_deck(tampered), proof)
        assert pipeline.canonical is prev

    def test_swapped_cards_fail_verification(self, pipeline):
        prev = _initial(pipeline)
        deck, proof = pipeline.subsequent_shuffle(prev)
        cards = list(deck.cards)
        cards[0], cards[1] = cards[1], cards[0]

        with pytest.raises(ProofInvalid):
            pipeline.verify_shuffle(prev, MaskedDeck(tuple(cards)), proof)
        assert pipeline.canonical is prev

    def test_truncated_proof_fails_verification(self, pipeline):
        prev = _initial(pipeline)
        deck, proof = pipeline.subsequent_shuffle(prev)
        short = replace(proof, rounds=proof.rounds[:1])

        with pytest.raises(ProofInvalid):
            pipeline.verify_shuffle(prev, deck, short)

    def test_deck_from_wrong_key_is_rejected(self, crypto, context, players, pipeline):
        # The open deck under a single player's key differs from the group one
        lone = DeckPipeline(crypto, crypto.aggregate_public_key([players[0].verified_public_key]), context)
        deck, proof = lone.initial_shuffle()

        with pytest.raises(MismatchedPrevious):
            pipeline.verify_initial(deck, proof)


class TestHalting:

    def test_failure_halts_until_restart(self, pipeline):
        prev = _initial(pipeline)
        deck, proof = pipeline.subsequent_shuffle(prev)
        cards = list(deck.cards)
        cards[0], cards[1] = cards[1], cards[0]

        with pytest.raises(ProofInvalid):
            pipeline.verify_shuffle(prev, MaskedDeck(tuple(cards)), proof)

        assert pipeline.halted
        with pytest.raises(ProtocolViolation):
            pipeline.subsequent_shuffle(prev)
        with pytest.raises(ProtocolViolation):
            pipeline.verify_shuffle(prev, deck, proof)

        pipeline.restart()
        assert pipeline.canonical is None
        assert not pipeline.halted
        assert isinstance(_initial(pipeline), VerifiedDeck)

    def test_concurrent_verification_is_a_violation(self, pipeline):
        prev = _initial(pipeline)
        deck, proof = pipeline.subsequent_shuffle(prev)

        pipeline._verifying.acquire()
        try:
            with pytest.raises(ProtocolViolation):
                pipeline.verify_shuffle(prev, deck, proof)
        finally:
            pipeline._verifying.release()
        assert pipeline.canonical is prev
        assert pipeline.verify_shuffle(prev, deck, proof) is pipeline.canonical


class TestRoundTrip:

    def test_full_deck_opens_to_a_permutation(self, crypto, context, players, pipeline):
        d0 = _initial(pipeline)
        deck, proof = pipeline.subsequent_shuffle(d0)
        d1 = pipeline.verify_shuffle(d0, deck, proof)

        coordinator = RevealCoordinator(
            crypto, context, {p.player_id: p.verified_public_key for p in players}
        )
        opened = [coordinator.open(card, players) for card in d1]

        assert sorted(opened) == list(range(DECK_SIZE))
