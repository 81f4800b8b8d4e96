"""
Peer endpoint backed by a GameState, and the host driving it over httpx.
"""
import httpx
import pytest
from fastapi.testclient import TestClient

from mental_poker import HandPhase, new_session
from mental_poker.errors import MissingParticipant, ProtocolViolation
from mental_poker.http_server import create_app
from mental_poker.main import host_hand
from mental_poker.service.crypto_ops import to_base64
from mental_poker.service.protocol import KeyRegistry, PeerShareSource, PublishKey

UNDEALT = 40


@pytest.fixture
def table(config, crypto, context):
    """Host with player 0; player 1 served by its own endpoint, keys not yet exchanged."""
    host = new_session(context, config, crypto=crypto, setup=False)
    host.accept_key(host.add_local_player(0))

    served = new_session(context, config, crypto=crypto, setup=False)
    served.accept_key(served.add_local_player(1))
    app = create_app(served, 1)
    peer = PeerShareSource("http://peer", 1, crypto, transport=httpx.ASGITransport(app=app))
    return host, served, app, peer


@pytest.fixture
async def dealt(table):
    host, _, _, peer = table
    await host.connect_peers([peer])
    await host.shuffle_with_peers()
    await host.deal_with_peers()
    return table


async def _post(app, path, payload):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://peer") as client:
        return await client.post(path, json=payload)


class TestEndpoints:

    def test_health(self, table):
        _, _, app, _ = table
        with TestClient(app) as client:
            response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {
            "status": "ok", "player_id": 1, "phase": "created", "has_secret": True,
        }

    def test_public_key_verifies(self, crypto, context, table):
        _, served, app, _ = table
        with TestClient(app) as client:
            data = client.get("/public_key").json()

        message = PublishKey.from_dict(crypto, data)
        assert message.sender == 1
        assert message.public_key == served.identities[1].public_key
        KeyRegistry(crypto, context, 2).register(1, message.public_key, message.proof)

    def test_forged_key_is_rejected(self, crypto, context, table):
        _, served, app, _ = table
        registry = KeyRegistry(crypto, context, 2)
        honest, other = registry.create_identity(0), registry.create_identity(0)
        forged = PublishKey(0, honest.public_key, other.ownership_proof)

        with TestClient(app) as client:
            response = client.post("/keys", json=forged.to_dict(crypto))

        assert response.status_code == 422
        assert response.json()["detail"]["code"] == "proof_invalid"
        assert served.phase == HandPhase.CREATED

    def test_shuffle_turn_before_keys_is_refused(self, table):
        _, _, app, _ = table
        with TestClient(app) as client:
            response = client.post("/shuffle_turn")
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "protocol_violation"

    def test_reveal_share_before_deal_is_refused(self, table):
        _, _, app, _ = table
        with TestClient(app) as client:
            response = client.post("/reveal_share", json={"position": 0})
        assert response.status_code == 409


class TestRemoteHand:

    @pytest.mark.asyncio
    async def test_full_hand_with_a_served_player(self, table):
        host, served, _, peer = table

        opened = await host_hand(host, [peer])

        cards = [c for values in opened.values() for c in values]
        assert len(cards) == 9 and len(set(cards)) == 9
        assert served.phase == HandPhase.FINISHED
        assert not served.identities[1].has_secret

    @pytest.mark.asyncio
    async def test_both_sides_agree_on_the_deck(self, dealt):
        host, served, _, _ = dealt
        assert host.canonical_deck.digest == served.canonical_deck.digest
        assert served.hole_assignment == host.hole_assignment

    @pytest.mark.asyncio
    async def test_registered_peer_opens_a_dealt_card(self, dealt):
        host, served, _, _ = dealt
        position = host.hole_assignment[1][0]

        value = await host.open_card_async(position)

        card = host.canonical_deck[position]
        shares = {}
        for token in (host.reveal_token_for(0, position), served.reveal_token_for(1, position)):
            shares[token.sender] = host.reveal.verify_reveal_share(token.sender, token.share, token.proof, card)
        assert host.reveal.recover(host.reveal.aggregate(card, shares), card) == value
        assert host.opened[position] == value

    @pytest.mark.asyncio
    async def test_undealt_position_is_refused(self, dealt):
        host, _, app, _ = dealt

        response = await _post(app, "/reveal_share", {"position": UNDEALT})

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "protocol_violation"
        with pytest.raises(ProtocolViolation):
            host.reveal_token_for(0, UNDEALT)

    @pytest.mark.asyncio
    async def test_posted_ciphertext_is_not_decrypted(self, crypto, dealt):
        host, _, app, _ = dealt
        card = host.canonical_deck[UNDEALT]

        response = await _post(app, "/reveal_share", {"card": to_base64(crypto.encode_card(card))})

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "serialization_error"

    @pytest.mark.asyncio
    async def test_peer_answering_as_someone_else_is_missing(self, crypto, dealt):
        host, _, app, _ = dealt
        impostor = PeerShareSource("http://peer", 0, crypto, transport=httpx.ASGITransport(app=app))

        with pytest.raises(MissingParticipant):
            await host.open_card_async(host.hole_assignment[0][0], sources=[impostor], timeout=5.0)

    @pytest.mark.asyncio
    async def test_fetch_public_key_checks_the_sender(self, crypto, table):
        _, served, app, _ = table
        wrong = PeerShareSource("http://peer", 0, crypto, transport=httpx.ASGITransport(app=app))

        with pytest.raises(ProtocolViolation):
            await wrong.fetch_public_key()
