"""
HTTP Server for a remote player - key exchange, shuffle and reveal endpoints

The endpoint is backed by the served player's own GameState. Keys and
shuffles posted by the host are verified there before they are adopted, and
reveal shares are only produced for dealt positions of the canonical deck.
"""
import logging
from typing import Any, Dict

from fastapi import FastAPI, HTTPException

from mental_poker.errors import MentalPokerError, ProtocolViolation, SerializationError
from mental_poker.service.protocol import PublishKey, Shuffle
from mental_poker.session import GameState

logger = logging.getLogger(__name__)


def _status_for(error: MentalPokerError) -> int:
    if isinstance(error, SerializationError):
        return 400
    if isinstance(error, ProtocolViolation):
        return 409
    return 422


def _refuse(error: MentalPokerError, action: str) -> HTTPException:
    logger.warning(f"[HTTP] {action} refused ({error.code}): {error.message}")
    return HTTPException(status_code=_status_for(error),
                         detail={"code": error.code, "message": error.message})


def _position(request: Dict[str, Any]) -> int:
    position = request.get("position")
    if isinstance(position, bool) or not isinstance(position, int):
        raise SerializationError("Field 'position' must be an integer deck position")
    return position


def create_app(state: GameState, player_id: int) -> FastAPI:
    """
    Build the peer endpoint for one player hosted in `state`.

    The secret key stays inside the player's identity; the endpoint hands
    out public key material, shuffles and reveal shares with their proofs.
    """
    app = FastAPI(title=f"Mental Poker Peer {player_id}")
    app.state.game = state
    app.state.player_id = player_id
    crypto = state.crypto

    @app.get("/health")
    def health():
        identity = state.identities.get(player_id)
        return {
            "status": "ok",
            "player_id": player_id,
            "phase": state.phase.value,
            "has_secret": identity is not None and identity.has_secret,
        }

    @app.get("/public_key")
    def public_key():
        try:
            return state.publish_key(player_id).to_dict(crypto)
        except MentalPokerError as e:
            raise _refuse(e, "Public key")

    @app.post("/keys")
    def keys(request: dict):
        """Another player's published key, relayed by the host."""
        try:
            state.accept_key(PublishKey.from_dict(crypto, request))
        except MentalPokerError as e:
            raise _refuse(e, "Key")
        return {"phase": state.phase.value}

    @app.post("/shuffle")
    def shuffle(request: dict):
        try:
            state.accept_shuffle(Shuffle.from_dict(crypto, request))
        except MentalPokerError as e:
            raise _refuse(e, "Shuffle")
        return {"phase": state.phase.value}

    @app.post("/shuffle_turn")
    def shuffle_turn():
        """Shuffle the canonical deck as this player."""
        try:
            message = state.shuffle_by(player_id)
        except MentalPokerError as e:
            raise _refuse(e, "Shuffle turn")
        logger.info(f"[HTTP] Player {player_id} shuffled the deck")
        return message.to_dict(crypto)

    @app.post("/deal")
    def deal():
        try:
            hole = state.deal_hole()
            community = state.deal_community()
        except MentalPokerError as e:
            raise _refuse(e, "Deal")
        return {
            "hole": {str(pid): list(positions) for pid, positions in hole.items()},
            "community": list(community.positions),
        }

    @app.post("/reveal_share")
    def reveal_share(request: dict):
        """
        This player's reveal share for the card at a dealt deck position.
        """
        try:
            token = state.reveal_token_for(player_id, _position(request))
        except MentalPokerError as e:
            raise _refuse(e, "Reveal share")
        logger.info(f"[HTTP] Player {player_id} produced a reveal share for position {token.card_index}")
        return token.to_dict(crypto)

    @app.post("/finish")
    def finish():
        try:
            state.finish()
        except MentalPokerError as e:
            raise _refuse(e, "Finish")
        return {"phase": state.phase.value}

    return app
