"""Single-value TTL cache with an injectable clock.

The period resolver keeps its current period here:

    cache = SimpleCache(ttl=60, clock=lambda: resolver.now().timestamp())

    hit, period = cache.get()
    if not hit:
        period = await load_period()
        cache.set(period)

Expiry is measured on the owner's clock, so a simulated clock in tests
ages entries too. An entry stamped later than the clock's current reading
is treated as stale. No locking here; the owner serializes refreshes.
"""

import time
from typing import Callable


class SimpleCache:
    """Holds one value for `ttl` seconds. A ttl of 0 never hits."""

    __slots__ = ("ttl", "data", "stored_at", "_clock")

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self.data = None
        self.stored_at: float | None = None
        self._clock = clock

    def get(self) -> tuple[bool, object]:
        """Return (hit, data)."""
        age = self.age
        if age is None or not 0 <= age < self.ttl:
            return False, None
        return True, self.data

    def set(self, data: object) -> None:
        self.data = data
        self.stored_at = self._clock()

    def invalidate(self) -> None:
        self.data = None
        self.stored_at = None

    @property
    def age(self) -> float | None:
        """Seconds since the value was stored, or None when empty."""
        if self.stored_at is None:
            return None
        return self._clock() - self.stored_at
