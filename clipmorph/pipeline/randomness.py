"""
Injectable random source for plan compilation.

Randomized filters (crop, hue, color mix, watermark placement, echo) are
deliberate content variation: two compiles of the same params differ.
The source is injected so tests can pin a seed and get identical plans.

Design rules:
- The compiler never touches the global `random` module state
- One SharedRandom may be used from many threads at once
- Production default draws from the OS entropy pool (SystemRandom)
"""

import random
import threading
from typing import Optional, Protocol, Sequence, TypeVar

T = TypeVar("T")


class RandomSource(Protocol):
    """
    The draws the compiler needs.

    random.Random satisfies this protocol directly.
    """

    def randrange(self, start: int, stop: int) -> int:
        """Integer in [start, stop)."""
        ...

    def random(self) -> float:
        """Float in [0.0, 1.0)."""
        ...

    def choice(self, seq: Sequence[T]) -> T:
        ...


class SharedRandom:
    """
    Lock-guarded wrapper around a random.Random instance.

    Args:
        seed: Fixed seed for reproducible plans. Ignored when `generator`
            is given.
        generator: Underlying generator (e.g. random.SystemRandom()).
    """

    def __init__(self, seed: Optional[int] = None, generator: Optional[random.Random] = None):
        self._generator = generator if generator is not None else random.Random(seed)
        self._lock = threading.Lock()

    def randrange(self, start: int, stop: int) -> int:
        with self._lock:
            return self._generator.randrange(start, stop)

    def random(self) -> float:
        with self._lock:
            return self._generator.random()

    def choice(self, seq: Sequence[T]) -> T:
        with self._lock:
            return self._generator.choice(seq)


# Global entropy source
_default_random: Optional[SharedRandom] = None
_default_random_lock = threading.Lock()


def get_default_random() -> SharedRandom:
    """
    Get the process-wide random source.

    Backed by SystemRandom; created on first access.
    """
    global _default_random
    with _default_random_lock:
        if _default_random is None:
            _default_random = SharedRandom(generator=random.SystemRandom())
        return _default_random
