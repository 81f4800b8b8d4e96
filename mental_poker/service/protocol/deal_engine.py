from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from mental_poker.config import PROTOCOL_CONFIG
from mental_poker.errors import ProtocolViolation
from mental_poker.service.crypto_ops import VerifiedDeck

HOLE_CARDS = PROTOCOL_CONFIG["hole_cards_per_player"]
COMMUNITY_CARDS = PROTOCOL_CONFIG["community_cards"]


@dataclass(frozen=True)
class CommunityAssignment:
    """Deck positions of the board, in dealing order."""
    flop: Tuple[int, int, int]
    turn: int
    river: int

    @property
    def positions(self) -> Tuple[int, ...]:
        return self.flop + (self.turn, self.river)


class DealEngine:
    """
    Assigns deck positions to hole and community slots.

    Assignment depends only on deck position, so which card a slot holds is
    fixed at deal time whatever order cards are later opened in.
    """

    def __init__(self, player_count: int):
        self.player_count = player_count
        self.hole: Dict[int, Tuple[int, ...]] = {}
        self.community: Optional[CommunityAssignment] = None

    def deal_hole(self, deck: Optional[VerifiedDeck]) -> Dict[int, Tuple[int, ...]]:
        """
        Round-robin the first HOLE_CARDS * player_count positions.

        Position = round * player_count + player_id. Any earlier assignment
        is cleared first.
        """
        self._require_verified(deck)
        self.hole = {}
        slots: Dict[int, list] = {pid: [] for pid in range(self.player_count)}
        for rnd in range(HOLE_CARDS):
            for pid in range(self.player_count):
                slots[pid].append(rnd * self.player_count + pid)
        self.hole = {pid: tuple(positions) for pid, positions in slots.items()}
        return dict(self.hole)

    def deal_community(self, deck: Optional[VerifiedDeck]) -> CommunityAssignment:
        """The next five positions after the hole cards: flop, turn, river."""
        self._require_verified(deck)
        start = HOLE_CARDS * self.player_count
        p = list(range(start, start + COMMUNITY_CARDS))
        self.community = CommunityAssignment(flop=(p[0], p[1], p[2]), turn=p[3], river=p[4])
        return self.community

    def hole_positions(self, player_id: int) -> Tuple[int, ...]:
        if player_id not in self.hole:
            raise ProtocolViolation(f"No hole cards dealt to player {player_id}")
        return self.hole[player_id]

    def community_positions(self) -> Tuple[int, ...]:
        if self.community is None:
            raise ProtocolViolation("Community cards have not been dealt")
        return self.community.positions

    def reset(self):
        self.hole = {}
        self.community = None

    @property
    def is_dealt(self) -> bool:
        return bool(self.hole) or self.community is not None

    @staticmethod
    def _require_verified(deck):
        if deck is None:
            raise ProtocolViolation("Cannot deal before a shuffle has been verified")
        if not isinstance(deck, VerifiedDeck):
            raise TypeError("Cards are dealt only from a verified deck")
