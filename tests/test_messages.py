import json
import secrets

import pytest

from mental_poker.errors import ProofInvalid, SerializationError
from mental_poker.service.protocol import KeyRegistry, PublishKey, RevealToken, Shuffle


@pytest.fixture(scope="module")
def shuffle_message(crypto, aggregate_key, context, verified_deck):
    deck, proof = crypto.shuffle(secrets.SystemRandom(), aggregate_key, verified_deck, context)
    return Shuffle(1, deck, proof)


class TestPublishKey:

    def test_json_round_trip_still_verifies(self, crypto, context, players):
        message = PublishKey(0, players[0].public_key, players[0].ownership_proof)

        decoded = PublishKey.from_json(crypto, message.to_json(crypto))

        assert decoded.sender == 0
        assert decoded.public_key == message.public_key
        assert decoded.proof == message.proof
        KeyRegistry(crypto, context, 2).verify_identity(decoded.public_key, decoded.proof)

    def test_dict_uses_wire_field_names(self, crypto, players):
        data = PublishKey(0, players[0].public_key, players[0].ownership_proof).to_dict(crypto)
        assert set(data) == {"type", "from", "pk", "proof"}

    def test_json_is_deterministic(self, crypto, players):
        message = PublishKey(0, players[0].public_key, players[0].ownership_proof)
        text = message.to_json(crypto)

        assert text == message.to_json(crypto)
        assert list(json.loads(text)) == sorted(json.loads(text))

    def test_tampered_key_is_caught(self, crypto, context, players):
        data = PublishKey(0, players[0].public_key, players[0].ownership_proof).to_dict(crypto)
        other = PublishKey(1, players[1].public_key, players[1].ownership_proof).to_dict(crypto)
        data["pk"] = other["pk"]

        decoded = PublishKey.from_dict(crypto, data)
        with pytest.raises(ProofInvalid):
            KeyRegistry(crypto, context, 2).verify_identity(decoded.public_key, decoded.proof)


class TestShuffleMessage:

    def test_json_round_trip_still_verifies(self, crypto, aggregate_key, context, verified_deck, shuffle_message):
        decoded = Shuffle.from_json(crypto, shuffle_message.to_json(crypto))

        assert decoded.deck == shuffle_message.deck
        verified = crypto.verify_shuffle(aggregate_key, verified_deck, decoded.deck, decoded.proof, context)
        assert verified.digest == shuffle_message.proof.deck_digest


class TestRevealToken:

    def test_json_round_trip(self, crypto, context, players, verified_deck):
        share, proof = players[1].produce_reveal_share(crypto, verified_deck[4], context)
        message = RevealToken(1, 4, share, proof)

        decoded = RevealToken.from_json(crypto, message.to_json(crypto))

        assert decoded == message

    def test_card_index_outside_deck(self, crypto, context, players, verified_deck):
        share, proof = players[1].produce_reveal_share(crypto, verified_deck[4], context)
        data = RevealToken(1, 4, share, proof).to_dict(crypto)
        data["card_index"] = 52

        with pytest.raises(SerializationError):
            RevealToken.from_dict(crypto, data)


class TestMalformed:

    def test_invalid_json(self, crypto):
        with pytest.raises(SerializationError):
            PublishKey.from_json(crypto, "{not json")

    def test_wrong_message_type(self, crypto, players):
        data = PublishKey(0, players[0].public_key, players[0].ownership_proof).to_dict(crypto)
        with pytest.raises(SerializationError):
            Shuffle.from_dict(crypto, data)

    def test_missing_field(self, crypto, players):
        data = PublishKey(0, players[0].public_key, players[0].ownership_proof).to_dict(crypto)
        del data["proof"]
        with pytest.raises(SerializationError):
            PublishKey.from_dict(crypto, data)

    @pytest.mark.parametrize("value", ["not base64!", "AAAA", 17, None])
    def test_bad_key_encoding(self, crypto, players, value):
        data = PublishKey(0, players[0].public_key, players[0].ownership_proof).to_dict(crypto)
        data["pk"] = value
        with pytest.raises(SerializationError):
            PublishKey.from_dict(crypto, data)

    @pytest.mark.parametrize("sender", [-1, "0", True, 1.5])
    def test_bad_sender(self, crypto, players, sender):
        data = PublishKey(0, players[0].public_key, players[0].ownership_proof).to_dict(crypto)
        data["from"] = sender
        with pytest.raises(SerializationError):
            PublishKey.from_dict(crypto, data)

    def test_truncated_deck(self, crypto, shuffle_message):
        data = shuffle_message.to_dict(crypto)
        data["deck"] = data["deck"][:-8]
        with pytest.raises(SerializationError):
            Shuffle.from_dict(crypto, data)

    def test_not_an_object(self, crypto):
        with pytest.raises(SerializationError):
            PublishKey.from_json(crypto, "[1, 2, 3]")
