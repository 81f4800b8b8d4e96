import argparse

import pytest

from mental_poker.config import SessionConfig
from mental_poker.hand_logger import card_label
from mental_poker.main import _peer_address, build_parser, main, simulate_hand


def test_simulate_hand_opens_distinct_cards():
    config = SessionConfig.from_defaults(shuffle_proof_rounds=2, min_shuffle_proof_rounds=2)

    timings, opened = simulate_hand(config, "cli-session")

    cards = [c for values in opened.values() for c in values]
    assert len(cards) == 9 and len(set(cards)) == 9
    assert [label for label, _ in timings][0].startswith("setup")
    assert all(ms >= 0 for _, ms in timings)


def test_simulate_command_exits_cleanly(capsys):
    assert main(["--log-level", "WARNING", "simulate", "--rounds", "2", "--min-rounds", "2"]) == 0
    out = capsys.readouterr().out
    assert "Hand timings" in out
    assert "Opened cards" in out


def test_invalid_player_count_exits_non_zero():
    assert main(["--log-level", "WARNING", "simulate", "--players", "30", "--rounds", "1"]) == 1


def test_weak_shuffle_proofs_are_refused():
    assert main(["--log-level", "WARNING", "simulate", "--rounds", "24"]) == 1


def test_serve_requires_context_and_player():
    parser = build_parser()
    args = parser.parse_args(["serve", "--player-id", "1", "--context", "abc", "--port", "9100"])
    assert args.player_id == 1 and args.port == 9100


def test_host_takes_peer_addresses():
    args = build_parser().parse_args(
        ["host", "--context", "abc", "--peer", "1=http://127.0.0.1:9001", "--peer", "2=http://10.0.0.2:9000"]
    )
    assert dict(args.peer) == {1: "http://127.0.0.1:9001", 2: "http://10.0.0.2:9000"}


@pytest.mark.parametrize("text", ["http://peer", "x=http://peer", "1="])
def test_malformed_peer_address(text):
    with pytest.raises(argparse.ArgumentTypeError):
        _peer_address(text)


def test_card_labels():
    assert card_label(0) == "2c"
    assert card_label(51) == "As"
    assert len({card_label(i) for i in range(52)}) == 52
