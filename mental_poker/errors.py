"""
Domain exceptions for the mental poker protocol.

Every verification failure surfaces as one of these; none is retried
internally.
"""
from typing import Iterable, Tuple


class MentalPokerError(Exception):
    """Base exception for protocol errors."""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(message)


class ProofInvalid(MentalPokerError):
    """An ownership, shuffle, or reveal-share proof failed verification."""

    def __init__(self, message: str) -> None:
        super().__init__("proof_invalid", message)


class MismatchedPrevious(MentalPokerError):
    """A shuffle extends a deck that is not the current canonical one."""

    def __init__(self, message: str) -> None:
        super().__init__("mismatched_previous", message)


class MissingParticipant(MentalPokerError):
    """Reveal aggregation ended before every player's share arrived."""

    def __init__(self, missing: Iterable[int], message: str = "") -> None:
        self.missing: Tuple[int, ...] = tuple(sorted(missing))
        super().__init__(
            "missing_participant",
            message or f"No reveal share from player(s) {list(self.missing)}",
        )


class CardNotFound(MentalPokerError):
    """An aggregate token did not recover a valid card index."""

    def __init__(self, message: str) -> None:
        super().__init__("card_not_found", message)


class SerializationError(MentalPokerError):
    """Wire bytes are malformed or not in canonical form."""

    def __init__(self, message: str) -> None:
        super().__init__("serialization_error", message)


class ProtocolViolation(MentalPokerError):
    """An operation was attempted out of protocol order."""

    def __init__(self, message: str) -> None:
        super().__init__("protocol_violation", message)
