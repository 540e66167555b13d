"""
Deterministic randomness for MindSplit.

All randomness is drawn from an explicit SeededRandom instance that callers
pass around. Identifiers are content hashes, never random values.
"""

import hashlib
from typing import List, Sequence, TypeVar

from .exceptions import ValidationError

T = TypeVar('T')

_MASK32 = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    """32-bit integer multiply, wrapping like C unsigned arithmetic."""
    return (a * b) & _MASK32


class SeededRandom:
    """
    mulberry32 pseudo-random generator.

    Args:
        seed: Integer seed; only the low 32 bits are used.
    """

    def __init__(self, seed: int = 42):
        self.seed = seed
        self._state = seed & _MASK32

    def next(self) -> float:
        """Return the next float in [0, 1)."""
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Fisher-Yates shuffle into a new list; the input is left untouched."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = int(self.next() * (i + 1))
            result[i], result[j] = result[j], result[i]
        return result

    def pick(self, items: Sequence[T]) -> T:
        """Pick one element uniformly."""
        if not items:
            raise ValidationError("Cannot pick from an empty sequence")
        return items[int(self.next() * len(items))]

    def __repr__(self) -> str:
        return f"SeededRandom(seed={self.seed})"


def deterministic_id(content: str, prefix: str = 'chunk') -> str:
    """
    Build an identifier from a SHA256 hash of the content.

    Args:
        content: Text to hash
        prefix: Category tag, e.g. 'chunk' or 'session'

    Returns:
        '<prefix>_<first 12 hex chars of sha256(content)>'
    """
    digest = hashlib.sha256(content.encode('utf-8')).hexdigest()[:12]
    return f"{prefix}_{digest}"
