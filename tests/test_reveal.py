"""
Reveal shares: verification, aggregation, recovery and missing participants.
"""
import asyncio

import pytest

from mental_poker.errors import CardNotFound, MissingParticipant, ProofInvalid, ProtocolViolation
from mental_poker.service.crypto_ops import RevealShare, VerifiedRevealShare
from mental_poker.service.protocol import LocalShareSource, RevealCoordinator


@pytest.fixture
def coordinator(crypto, context, players):
    return RevealCoordinator(crypto, context, {p.player_id: p.verified_public_key for p in players})


def _verified_shares(coordinator, players, card):
    shares = {}
    for player in players:
        share, proof = coordinator.produce_reveal_share(player, card)
        shares[player.player_id] = coordinator.verify_reveal_share(player.player_id, share, proof, card)
    return shares


class SlowSource:
    """Share source that never answers in time."""

    def __init__(self, player_id: int):
        self.player_id = player_id

    async def reveal_share(self, card, position):
        await asyncio.sleep(60)


class FailingSource:

    def __init__(self, player_id: int):
        self.player_id = player_id

    async def reveal_share(self, card, position):
        raise ConnectionError("peer unreachable")


class TestOpen:

    def test_open_recovers_a_card(self, coordinator, players, verified_deck):
        card = coordinator.open(verified_deck[0], players)
        assert 0 <= card < 52

    def test_steps_match_open(self, coordinator, players, verified_deck):
        card = verified_deck[3]
        token = coordinator.aggregate(card, _verified_shares(coordinator, players, card))

        assert coordinator.recover(token, card) == coordinator.open(card, players)

    def test_token_for_another_card_is_rejected(self, coordinator, players, verified_deck):
        card_a, card_b = verified_deck[0], verified_deck[1]
        token = coordinator.aggregate(card_a, _verified_shares(coordinator, players, card_a))

        with pytest.raises(CardNotFound):
            coordinator.recover(token, card_b)

    def test_verified_share_cannot_be_built_directly(self, verified_deck, players):
        share = RevealShare(players[0].public_key.point)
        with pytest.raises(TypeError):
            VerifiedRevealShare(0, share, verified_deck[0])


class TestForgedShares:

    def test_forged_share_fails_only_that_card(self, coordinator, players, verified_deck):
        card, other = verified_deck[5], verified_deck[6]
        share, proof = coordinator.produce_reveal_share(players[1], card)
        forged = RevealShare(share.point + share.point)

        with pytest.raises(ProofInvalid):
            coordinator.verify_reveal_share(1, forged, proof, card)

        assert 0 <= coordinator.open(other, players) < 52
        assert 0 <= coordinator.open(card, players) < 52

    def test_share_replayed_for_another_card_fails(self, coordinator, players, verified_deck):
        card, other = verified_deck[7], verified_deck[8]
        share, proof = coordinator.produce_reveal_share(players[0], card)

        with pytest.raises(ProofInvalid):
            coordinator.verify_reveal_share(0, share, proof, other)

    def test_share_claimed_by_wrong_player_fails(self, coordinator, players, verified_deck):
        card = verified_deck[9]
        share, proof = coordinator.produce_reveal_share(players[0], card)

        with pytest.raises(ProofInvalid):
            coordinator.verify_reveal_share(1, share, proof, card)

    def test_share_from_outsider_is_a_violation(self, coordinator, players, verified_deck):
        card = verified_deck[9]
        share, proof = coordinator.produce_reveal_share(players[0], card)

        with pytest.raises(ProtocolViolation):
            coordinator.verify_reveal_share(5, share, proof, card)


class TestMissingParticipant:

    def test_withheld_share_is_missing(self, coordinator, players, verified_deck):
        card = verified_deck[10]
        shares = _verified_shares(coordinator, players[:1], card)

        with pytest.raises(MissingParticipant) as exc:
            coordinator.aggregate(card, shares)
        assert exc.value.missing == (1,)

    def test_open_with_one_identity_is_missing(self, coordinator, players, verified_deck):
        with pytest.raises(MissingParticipant):
            coordinator.open(verified_deck[11], players[1:])

    def test_share_for_another_card_is_not_aggregated(self, coordinator, players, verified_deck):
        card, other = verified_deck[12], verified_deck[13]
        shares = _verified_shares(coordinator, players[:1], card)
        shares.update(_verified_shares(coordinator, players[1:], other))

        with pytest.raises(ProtocolViolation):
            coordinator.aggregate(card, shares)


class TestOpenAsync:

    @pytest.mark.asyncio
    async def test_open_async_matches_open(self, coordinator, crypto, context, players, verified_deck):
        card = verified_deck[14]
        sources = [LocalShareSource(p, crypto, context) for p in players]

        value = await coordinator.open_async(card, 14, sources, timeout=5.0)

        assert value == coordinator.open(card, players)

    @pytest.mark.asyncio
    async def test_open_async_times_out_as_missing(self, coordinator, crypto, context, players, verified_deck):
        sources = [LocalShareSource(players[0], crypto, context), SlowSource(1)]

        with pytest.raises(MissingParticipant) as exc:
            await coordinator.open_async(verified_deck[15], 15, sources, timeout=0.5)
        assert exc.value.missing == (1,)

    @pytest.mark.asyncio
    async def test_failed_source_is_missing(self, coordinator, crypto, context, players, verified_deck):
        sources = [FailingSource(0), LocalShareSource(players[1], crypto, context)]

        with pytest.raises(MissingParticipant) as exc:
            await coordinator.open_async(verified_deck[16], 16, sources, timeout=5.0)
        assert exc.value.missing == (0,)

    @pytest.mark.asyncio
    async def test_no_sources_is_missing_everyone(self, coordinator, verified_deck):
        with pytest.raises(MissingParticipant) as exc:
            await coordinator.open_async(verified_deck[17], 17, [], timeout=0.1)
        assert exc.value.missing == (0, 1)
