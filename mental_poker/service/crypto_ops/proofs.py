import hashlib
from typing import Iterable, List

from .context import GroupContext

# ============================================================================
# Fiat-Shamir Challenges
# ============================================================================

DOMAIN_OWNERSHIP = b"mental-poker/ownership/v1"
DOMAIN_REVEAL = b"mental-poker/reveal/v1"
DOMAIN_SHUFFLE = b"mental-poker/shuffle/v1"


def _absorb(h, part: bytes):
    # Length-prefixed so field boundaries are unambiguous
    h.update(len(part).to_bytes(4, "big"))
    h.update(part)


def challenge_scalar(gc: GroupContext, domain: bytes, context: bytes, parts: Iterable[bytes]) -> int:
    """
    Hash a transcript to a scalar.

    Args:
        gc: Group context
        domain: Proof-type separator
        context: Session context; binds the proof to one session
        parts: Encoded transcript elements

    Returns:
        Challenge in [0, order)
    """
    h = hashlib.sha512()
    _absorb(h, domain)
    _absorb(h, gc.name.encode("ascii"))
    _absorb(h, bytes(context))
    for part in parts:
        _absorb(h, part)
    return int.from_bytes(h.digest(), "big") % gc.order


def challenge_bits(domain: bytes, context: bytes, parts: Iterable[bytes], count: int) -> List[int]:
    """Expand a transcript hash into `count` challenge bits."""
    h = hashlib.sha256()
    _absorb(h, domain)
    _absorb(h, bytes(context))
    for part in parts:
        _absorb(h, part)
    seed = h.digest()

    bits: List[int] = []
    counter = 0
    while len(bits) < count:
        block = hashlib.sha256(seed + counter.to_bytes(4, "big")).digest()
        for byte in block:
            for shift in range(8):
                bits.append((byte >> shift) & 1)
        counter += 1
    return bits[:count]
