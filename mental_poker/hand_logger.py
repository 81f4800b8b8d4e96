"""
Hand Logger - Records opened cards of a hand to file
Only logs plaintext results after a reveal, never masked cards or key material
"""
import os
from datetime import datetime
from typing import Dict, Sequence

from mental_poker.config import LOG_CONFIG

RANKS = "23456789TJQKA"
SUITS = "cdhs"


def card_label(card: int) -> str:
    """Default display mapping, rank-major: 0 -> 2c, 51 -> As."""
    return f"{RANKS[card // 4]}{SUITS[card % 4]}"


class HandLogger:
    """Logs revealed hand events to file"""

    def __init__(self, hand_id: str, log_dir: str = None):
        self.hand_id = hand_id
        self.log_dir = log_dir or LOG_CONFIG["log_dir"]
        self.log_file = os.path.join(self.log_dir, "hand.log")

        os.makedirs(self.log_dir, exist_ok=True)

        with open(self.log_file, 'w', encoding='utf-8') as f:
            f.write("=== Mental Poker Hand Log ===\n")
            f.write(f"Hand ID: {hand_id}\n")
            f.write(f"Started: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            f.write("=" * 50 + "\n\n")

    def log(self, message: str):
        """Write a log message with timestamp"""
        timestamp = datetime.now().strftime('%H:%M:%S')
        with open(self.log_file, 'a', encoding='utf-8') as f:
            f.write(f"[{timestamp}] {message}\n")

    def log_section(self, title: str):
        with open(self.log_file, 'a', encoding='utf-8') as f:
            f.write("\n" + "=" * 50 + "\n")
            f.write(f"{title}\n")
            f.write("=" * 50 + "\n")

    def log_shuffle(self, player_id: int, shuffle_number: int):
        self.log(f"Shuffle #{shuffle_number} by player {player_id} verified")

    def log_hole_cards(self, player_id: int, positions: Sequence[int], cards: Sequence[int]):
        """Log a player's opened hole cards"""
        self.log_section(f"Player {player_id} - Hole Cards")
        for position, card in zip(positions, cards):
            self.log(f"  Position {position}: {card_label(card)} ({card})")

    def log_community(self, positions: Sequence[int], cards: Sequence[int]):
        """Log the opened board in flop/turn/river order"""
        self.log_section("Community Cards")
        names = ["Flop", "Flop", "Flop", "Turn", "River"]
        for name, position, card in zip(names, positions, cards):
            self.log(f"  {name:<5} position {position}: {card_label(card)} ({card})")

    def log_hand_end(self, opened: Dict[int, int]):
        """Log hand end state"""
        self.log_section("Hand Finished")
        self.log(f"Cards opened: {len(opened)}")
        self.log(f"Ended: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
