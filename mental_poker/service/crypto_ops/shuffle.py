from typing import List, Sequence, Tuple

from mental_poker.errors import ProofInvalid, MismatchedPrevious, SerializationError

from .context import GroupContext, DECK_SIZE
from .proofs import challenge_bits, DOMAIN_SHUFFLE
from .serialization import serialize_deck, deck_digest
from .types import (
    _VERIFICATION_WITNESS,
    AggregatePublicKey,
    MaskedCard,
    MaskedDeck,
    VerifiedDeck,
    ShuffleRound,
    ShuffleProof,
)

# ============================================================================
# Masking & Verifiable Shuffle
# ============================================================================


def remask(gc: GroupContext, apk: AggregatePublicKey, card: MaskedCard, r: int) -> MaskedCard:
    """
    Re-randomize a ciphertext without changing the card under it.

    (c1, c2) -> (c1 + r*G, c2 + r*APK)
    """
    return MaskedCard(card.c1 + gc.generator * r, card.c2 + apk.point * r)


def open_deck(gc: GroupContext, apk: AggregatePublicKey) -> MaskedDeck:
    """
    The publicly known starting deck: card i masked with randomness 1.

    Every player can rebuild it, so the initial shuffle is checked against
    it exactly like any later shuffle.
    """
    return MaskedDeck(tuple(
        MaskedCard(gc.generator, gc.card_points[i] + apk.point)
        for i in range(DECK_SIZE)
    ))


def _random_permutation(rng, size: int) -> List[int]:
    perm = list(range(size))
    rng.shuffle(perm)
    return perm


def _round_bits(gc: GroupContext, apk: AggregatePublicKey, context: bytes,
                previous_digest: bytes, next_digest: bytes,
                shadows: Sequence[MaskedDeck]) -> List[int]:
    parts = [gc.encode_point(apk.point), previous_digest, next_digest]
    parts.extend(serialize_deck(gc, shadow) for shadow in shadows)
    return challenge_bits(DOMAIN_SHUFFLE, context, parts, len(shadows))


def shuffle_with_proof(gc: GroupContext, rng, apk: AggregatePublicKey, source: MaskedDeck,
                       context: bytes, rounds: int) -> Tuple[MaskedDeck, ShuffleProof]:
    """
    Permute and remask a deck, proving it with cut-and-choose.

    For each round the prover commits to a shadow shuffle of the source deck.
    A challenge bit of 0 opens source -> shadow; 1 opens shadow -> output.
    Answering both for one round would reveal the permutation, so each round
    opens only one side.

    Args:
        gc: Group context
        rng: CSPRNG for this call only
        apk: Aggregate public key
        source: Deck being shuffled
        context: Session context
        rounds: Number of cut-and-choose rounds

    Returns:
        (shuffled deck, shuffle proof)
    """
    n = DECK_SIZE
    perm = _random_permutation(rng, n)
    blinds = [gc.random_scalar(rng) for _ in range(n)]
    output = MaskedDeck(tuple(
        remask(gc, apk, source[perm[j]], blinds[j]) for j in range(n)
    ))

    shadows = []
    for _ in range(rounds):
        shadow_perm = _random_permutation(rng, n)
        shadow_blinds = [gc.random_scalar(rng) for _ in range(n)]
        shadow = MaskedDeck(tuple(
            remask(gc, apk, source[shadow_perm[i]], shadow_blinds[i]) for i in range(n)
        ))
        shadows.append((shadow, shadow_perm, shadow_blinds))

    previous_digest = deck_digest(gc, source)
    next_digest = deck_digest(gc, output)
    bits = _round_bits(gc, apk, context, previous_digest, next_digest, [s[0] for s in shadows])

    proof_rounds = []
    for (shadow, shadow_perm, shadow_blinds), bit in zip(shadows, bits):
        if bit == 0:
            proof_rounds.append(ShuffleRound(shadow, tuple(shadow_perm), tuple(shadow_blinds)))
            continue
        inverse = [0] * n
        for i, source_pos in enumerate(shadow_perm):
            inverse[source_pos] = i
        sigma = [inverse[perm[j]] for j in range(n)]
        deltas = [(blinds[j] - shadow_blinds[sigma[j]]) % gc.order for j in range(n)]
        proof_rounds.append(ShuffleRound(shadow, tuple(sigma), tuple(deltas)))

    return output, ShuffleProof(previous_digest, next_digest, tuple(proof_rounds))


def verify_shuffle_proof(gc: GroupContext, apk: AggregatePublicKey, source: MaskedDeck,
                         target: MaskedDeck, proof: ShuffleProof, context: bytes,
                         min_rounds: int) -> VerifiedDeck:
    """
    Check that `target` is a permutation + remask of `source`.

    Raises:
        MismatchedPrevious: the proof was made for a different source deck
        ProofInvalid: any round fails, or the proof is too short
    """
    if len(target) != DECK_SIZE:
        raise ProofInvalid(f"Shuffled deck has {len(target)} cards, expected {DECK_SIZE}")
    if len(proof.rounds) < min_rounds:
        raise ProofInvalid(
            f"Shuffle proof has {len(proof.rounds)} rounds, at least {min_rounds} required"
        )
    if proof.previous_digest != deck_digest(gc, source):
        raise MismatchedPrevious("Shuffle proof extends a different deck")

    try:
        target_digest = deck_digest(gc, target)
        bits = _round_bits(
            gc, apk, context, proof.previous_digest, proof.deck_digest,
            [rnd.shadow for rnd in proof.rounds],
        )
    except SerializationError as e:
        raise ProofInvalid(f"Shuffle transcript cannot be encoded: {e}") from e
    if target_digest != proof.deck_digest:
        raise ProofInvalid("Shuffle proof was made for a different output deck")

    n = DECK_SIZE
    for index, (rnd, bit) in enumerate(zip(proof.rounds, bits)):
        if sorted(rnd.permutation) != list(range(n)) or len(rnd.scalars) != n:
            raise ProofInvalid(f"Shuffle round {index} has a malformed response")
        if len(rnd.shadow) != n:
            raise ProofInvalid(f"Shuffle round {index} shadow deck has the wrong size")
        for j in range(n):
            if bit == 0:
                ok = rnd.shadow[j] == remask(gc, apk, source[rnd.permutation[j]], rnd.scalars[j])
            else:
                ok = target[j] == remask(gc, apk, rnd.shadow[rnd.permutation[j]], rnd.scalars[j])
            if not ok:
                raise ProofInvalid(f"Shuffle round {index} does not open at position {j}")

    return VerifiedDeck(target, target_digest, _VERIFICATION_WITNESS)
