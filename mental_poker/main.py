"""
Command line entry point

    mental-poker simulate   run a full hand locally and print timings and cards
    mental-poker serve      run a peer endpoint for one player
    mental-poker host       run a hand with players served by peer endpoints

A served player waits in CREATED until a host connects: the host sends it
every other player's key, relays shuffles, asks it for its own shuffle turn,
has it deal, and then collects its reveal shares by deck position.
"""
import argparse
import asyncio
import logging
import sys
import time
from typing import Callable, Dict, List, Optional, Tuple

import httpx
import uvicorn
from rich.console import Console
from rich.table import Table
from rich.text import Text

from mental_poker.config import NETWORK_CONFIG, SessionConfig
from mental_poker.errors import MentalPokerError
from mental_poker.hand_logger import HandLogger, card_label
from mental_poker.http_server import create_app
from mental_poker.logging_config import setup_logging
from mental_poker.service.crypto_ops import CurveShuffleCrypto
from mental_poker.service.protocol import PeerShareSource
from mental_poker.session import GameState, HandPhase, new_session

logger = logging.getLogger(__name__)
console = Console()


def _config_from_args(args) -> SessionConfig:
    overrides = {"player_count": args.players}
    if args.rounds:
        overrides["shuffle_proof_rounds"] = args.rounds
    if args.min_rounds:
        overrides["min_shuffle_proof_rounds"] = args.min_rounds
    return SessionConfig.from_defaults(**overrides)


# ============================================================================
# simulate
# ============================================================================

def simulate_hand(config: SessionConfig, context: str,
                  hand_logger: Optional[HandLogger] = None) -> Tuple[List[Tuple[str, float]], dict]:
    """
    Play one hand with every player hosted locally.

    Returns:
        (per-step timings in milliseconds, opened cards by slot name)
    """
    timings: List[Tuple[str, float]] = []

    def timed(label: str, step: Callable):
        start = time.perf_counter()
        result = step()
        timings.append((label, (time.perf_counter() - start) * 1000))
        return result

    state = timed("setup (keys + initial shuffle)",
                  lambda: new_session(context, config, hand_logger=hand_logger))
    for player_id in range(1, config.player_count):
        timed(f"shuffle by player {player_id}", lambda pid=player_id: state.shuffle_by(pid))
    timed("deal hole", state.deal_hole)
    timed("deal community", state.deal_community)

    opened = {}
    for player_id in range(config.player_count):
        opened[f"player {player_id}"] = timed(
            f"open hole for player {player_id}", lambda pid=player_id: state.open_hole_for(pid)
        )
    opened["board"] = timed("open community", state.open_community)
    state.finish()
    return timings, opened


def _render_timings(timings):
    table = Table(title="Hand timings")
    table.add_column("Step")
    table.add_column("ms", justify="right")
    for label, ms in timings:
        table.add_row(label, f"{ms:.1f}")
    table.add_row(Text("total", style="bold"), Text(f"{sum(ms for _, ms in timings):.1f}", style="bold"))
    console.print(table)


def _render_cards(opened):
    cards = Table(title="Opened cards")
    cards.add_column("Slot")
    cards.add_column("Cards")
    for slot, values in opened.items():
        cards.add_row(slot, " ".join(card_label(v) for v in values))
    console.print(cards)


def cmd_simulate(args) -> int:
    config = _config_from_args(args)
    hand_logger = HandLogger(args.context) if args.log_hand else None
    timings, opened = simulate_hand(config, args.context, hand_logger)
    _render_timings(timings)
    _render_cards(opened)
    return 0


# ============================================================================
# serve
# ============================================================================

def serve_state(config: SessionConfig, context: str, player_id: int) -> GameState:
    """A hand holding only `player_id`, waiting for the host's key exchange."""
    state = new_session(context, config, setup=False)
    state.accept_key(state.add_local_player(player_id))
    return state


def cmd_serve(args) -> int:
    config = _config_from_args(args)
    state = serve_state(config, args.context, args.player_id)

    app = create_app(state, args.player_id)
    logger.info(f"[Serve] Player {args.player_id} listening on {args.host}:{args.port}")
    try:
        uvicorn.run(app, host=args.host, port=args.port, log_level="warning")
    finally:
        if state.phase != HandPhase.FINISHED:
            state.finish()
    return 0


# ============================================================================
# host
# ============================================================================

async def host_hand(state: GameState, peers: List[PeerShareSource]) -> Dict[str, Tuple[int, ...]]:
    """
    Play one hand from `state` with the remote players behind `peers`.

    Every player without a peer must already be hosted in `state` with its
    key accepted.

    Returns:
        opened cards by slot name
    """
    await state.connect_peers(peers)
    await state.shuffle_with_peers()
    hole, community = await state.deal_with_peers()

    opened = {}
    for player_id, positions in sorted(hole.items()):
        opened[f"player {player_id}"] = tuple(
            [await state.open_card_async(position) for position in positions]
        )
    opened["board"] = tuple([await state.open_card_async(position) for position in community.positions])

    state.finish()
    for peer in peers:
        await peer.finish()
    return opened


def _peer_address(text: str) -> Tuple[int, str]:
    player_id, sep, address = text.partition("=")
    if not sep or not player_id.strip().isdigit() or not address:
        raise argparse.ArgumentTypeError(f"expected ID=URL, got {text!r}")
    return int(player_id), address


def cmd_host(args) -> int:
    config = _config_from_args(args)
    crypto = CurveShuffleCrypto(config.curve, config.shuffle_proof_rounds)
    addresses = dict(args.peer)

    state = new_session(args.context, config, crypto=crypto, setup=False)
    for player_id in range(config.player_count):
        if player_id not in addresses:
            state.accept_key(state.add_local_player(player_id))
    peers = [PeerShareSource(address, pid, crypto) for pid, address in sorted(addresses.items())]

    _render_cards(asyncio.run(host_hand(state, peers)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mental-poker", description="Mental poker over a masked deck")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    sub = parser.add_subparsers(dest="command", required=True)

    def hand_options(command, context_default=None):
        if context_default is None:
            command.add_argument("--context", required=True)
        else:
            command.add_argument("--context", default=context_default)
        command.add_argument("--players", type=int, default=2)
        command.add_argument("--rounds", type=int, default=None, help="Shuffle proof rounds")
        command.add_argument("--min-rounds", type=int, default=None,
                             help="Fewest shuffle proof rounds to accept")

    sim = sub.add_parser("simulate", help="Run a full hand locally")
    hand_options(sim, "simulate-session")
    sim.add_argument("--log-hand", action="store_true", help="Write logs/hand.log")
    sim.set_defaults(func=cmd_simulate)

    serve = sub.add_parser("serve", help="Serve one player until a host runs the hand")
    hand_options(serve)
    serve.add_argument("--player-id", type=int, required=True)
    serve.add_argument("--host", default=NETWORK_CONFIG["peer_host"])
    serve.add_argument("--port", type=int, default=NETWORK_CONFIG["peer_port"])
    serve.set_defaults(func=cmd_serve)

    host = sub.add_parser("host", help="Run a hand with remote players")
    hand_options(host)
    host.add_argument("--peer", type=_peer_address, action="append", required=True,
                      metavar="ID=URL", help="Remote player and its endpoint")
    host.set_defaults(func=cmd_host)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    try:
        return args.func(args)
    except MentalPokerError as e:
        console.print(f"[bold red]{e.code}[/bold red]: {e.message}")
        return 2
    except ValueError as e:
        console.print(f"[bold red]invalid configuration[/bold red]: {e}")
        return 1
    except httpx.HTTPError as e:
        console.print(f"[bold red]peer request failed[/bold red]: {e}")
        return 3


if __name__ == "__main__":
    sys.exit(main())
