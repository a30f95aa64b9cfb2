"""
Deterministic seeded shuffling.

Used for two orderings:
- session question order, seeded by ``create_seed(user_id, started_at_ms)`` so
  a session's order is fixed when it is created and never re-randomized;
- per-question choice order, seeded by ``create_question_seed(user_id,
  question_id)`` so a user always sees a question's choices in the same order
  across sessions, while different users see different orders.

The PRNG is Mulberry32 and the seed hash is the classic ``h * 31 + c`` string
hash over UTF-16 code units, both in 32-bit arithmetic. Neither is
cryptographic. Results are identical across processes and platforms.
"""
from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")

_UINT32_MASK = 0xFFFFFFFF
_UINT32_RANGE = 4_294_967_296
_MULBERRY32_INCREMENT = 0x6D2B79F5


def _imul(a: int, b: int) -> int:
    """Low 32 bits of a 32-bit integer product, as an unsigned value."""
    return (a * b) & _UINT32_MASK


def mulberry32(seed: int) -> Callable[[], float]:
    """
    Build a Mulberry32 generator returning floats in [0, 1).

    All intermediate values are kept as unsigned 32-bit integers; the bit
    patterns match the signed 32-bit reference formulation exactly.
    """
    state = seed & _UINT32_MASK

    def random() -> float:
        nonlocal state
        state = (state + _MULBERRY32_INCREMENT) & _UINT32_MASK
        t = _imul(state ^ (state >> 15), 1 | state)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _UINT32_MASK) ^ t
        return ((t ^ (t >> 14)) & _UINT32_MASK) / _UINT32_RANGE

    return random


def shuffle_with_seed(items: Sequence[T], seed: int) -> List[T]:
    """
    Fisher-Yates shuffle driven by a seeded PRNG (pure function).

    The input is never mutated. The same items and seed always produce the
    same order. Callers are responsible for passing items in a canonical order
    (see ``stable_choice_order``), since the output depends on input order.

    Args:
        items: Items to permute
        seed: Integer seed, interpreted modulo 2**32

    Returns:
        A new list containing a permutation of ``items``
    """
    result = list(items)

    if len(result) <= 1:
        return result

    random = mulberry32(seed)

    for i in range(len(result) - 1, 0, -1):
        j = int(random() * (i + 1))
        result[i], result[j] = result[j], result[i]

    return result


def _hash_string(value: str) -> int:
    """32-bit ``h = h * 31 + unit`` hash over UTF-16 code units, returned signed."""
    encoded = value.encode("utf-16-le")
    h = 0
    for offset in range(0, len(encoded), 2):
        unit = encoded[offset] | (encoded[offset + 1] << 8)
        h = (h * 31 + unit) & _UINT32_MASK
    return h - _UINT32_RANGE if h >= 0x80000000 else h


def create_seed(user_id: str, timestamp_ms: int) -> int:
    """
    Session-level seed from the owning user and the session start time.

    Args:
        user_id: Owning user id
        timestamp_ms: Session start, milliseconds since the Unix epoch

    Returns:
        Non-negative integer seed
    """
    return abs(_hash_string(f"{user_id}:{int(timestamp_ms)}"))


def create_question_seed(user_id: str, question_id: str) -> int:
    """
    Per-(user, question) seed for choice ordering.

    Stable for a user across sessions, different between users.
    """
    return abs(_hash_string(f"{user_id}:{question_id}"))
