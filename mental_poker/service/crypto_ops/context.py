from dataclasses import dataclass, field
from typing import Dict, List

from ecdsa.curves import SECP256k1, NIST256p
from ecdsa.ellipticcurve import PointJacobi, INFINITY
from ecdsa.errors import MalformedPointError
from ecdsa.numbertheory import Error as NumberTheoryError

from mental_poker.errors import SerializationError


# ============================================================================
# Group Context & Parameters
# ============================================================================

DECK_SIZE = 52
POINT_SIZE = 33
SCALAR_SIZE = 32

# Curves with cofactor 1, so every decodable point is in the prime-order group
SUPPORTED_CURVES = {
    "SECP256k1": SECP256k1,
    "NIST256p": NIST256p,
}


@dataclass
class GroupContext:
    """
    Curve parameters plus the plaintext card table.

    Card i (0..51) is the point (i + 1) * G.
    """
    name: str
    curve: object
    generator: PointJacobi
    order: int
    card_points: List[PointJacobi] = field(default_factory=list)
    card_lookup: Dict[bytes, int] = field(default_factory=dict)

    def encode_point(self, point) -> bytes:
        """SEC1 compressed encoding (33 bytes)."""
        if point == INFINITY:
            raise SerializationError("Point at infinity has no wire encoding")
        return point.to_bytes("compressed")

    def decode_point(self, data: bytes, precompute: bool = False) -> PointJacobi:
        """
        Decode a compressed point, rejecting anything not canonical.

        Args:
            data: 33 encoded bytes
            precompute: Mark the point for multiplication tables (used for
                the aggregate key, which is multiplied once per card)

        Returns:
            Point on the curve
        """
        if len(data) != POINT_SIZE:
            raise SerializationError(f"Point must be {POINT_SIZE} bytes, got {len(data)}")
        try:
            point = PointJacobi.from_bytes(
                self.curve,
                bytes(data),
                valid_encodings=("compressed",),
                order=self.order,
                generator=precompute,
            )
        except (MalformedPointError, NumberTheoryError, ValueError) as e:
            raise SerializationError(f"Invalid curve point: {e}") from e
        if point == INFINITY or point.to_bytes("compressed") != bytes(data):
            raise SerializationError("Non-canonical point encoding")
        return point

    def random_scalar(self, rng) -> int:
        """Uniform non-zero scalar from a caller-supplied CSPRNG."""
        return rng.randrange(1, self.order)

    def card_index(self, point) -> int:
        """Plaintext card index for a point, or -1."""
        if point == INFINITY:
            return -1
        return self.card_lookup.get(point.to_bytes("compressed"), -1)


def create_group_context(curve_name: str = "SECP256k1") -> GroupContext:
    """
    Create the group context used by one session.

    Args:
        curve_name: Key of SUPPORTED_CURVES

    Returns:
        GroupContext with the 52 plaintext card points precomputed
    """
    try:
        curve_def = SUPPORTED_CURVES[curve_name]
    except KeyError:
        raise ValueError(f"Unsupported curve {curve_name!r}") from None

    ctx = GroupContext(
        name=curve_name,
        curve=curve_def.curve,
        generator=curve_def.generator,
        order=curve_def.order,
    )
    for index in range(DECK_SIZE):
        point = ctx.generator * (index + 1)
        ctx.card_points.append(point)
        ctx.card_lookup[point.to_bytes("compressed")] = index
    return ctx
