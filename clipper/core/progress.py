"""Progress composition and delivery.

A job is split into sequential phases, each owning a fixed slice of the
overall 0-1 range. Each phase clamps its raw value before mapping it onto
its slice, so as long as phases are contiguous and run in order the
composed signal never goes backwards.
"""

import asyncio
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

ProgressCallback = Callable[[float], None]

# Tolerance for float sums like 0.75 + 0.20
_EPSILON = 1e-9


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp ``value`` into ``[low, high]``."""
    if value < low:
        return low
    if value > high:
        return high
    return value


@dataclass(frozen=True)
class ProgressPhase:
    """A slice ``[base, base + weight]`` of the overall progress range."""

    base: float
    weight: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.base < 1.0:
            raise ValueError(f"phase base must be in [0, 1): {self.base}")
        if not 0.0 < self.weight <= 1.0:
            raise ValueError(f"phase weight must be in (0, 1]: {self.weight}")
        if self.base + self.weight > 1.0 + _EPSILON:
            raise ValueError(f"phase exceeds the progress range: {self.base} + {self.weight}")

    @property
    def end(self) -> float:
        return self.base + self.weight

    def compose(self, raw: float) -> float:
        """Map a raw sub-progress value onto this phase's slice."""
        # Rounded so the last phase of a full job lands on exactly 1.0
        return clamp(round(self.base + clamp(raw) * self.weight, 9))

    def wrap(self, sink: Optional[ProgressCallback]) -> ProgressCallback:
        """Return a callback that reports raw values through this phase into ``sink``."""

        def report(raw: float) -> None:
            if sink is not None:
                sink(self.compose(raw))

        return report


FULL_PHASE = ProgressPhase(0.0, 1.0)

# Split download: video 0-75%, audio 75-95%, mux 95-100%
SPLIT_PHASES = ((0.0, 0.75), (0.75, 0.20), (0.95, 0.05))


def compose_phases(
    sink: Optional[ProgressCallback],
    phases: Sequence[Tuple[float, float]],
) -> List[ProgressCallback]:
    """Build one callback per ``(base, weight)`` phase, all reporting into ``sink``.

    Raises:
        ValueError: If phases overlap, leave gaps, or exceed the 0-1 range.
    """
    built = [ProgressPhase(base, weight) for base, weight in phases]
    for previous, current in zip(built, built[1:]):
        if abs(previous.end - current.base) > _EPSILON:
            raise ValueError(
                f"phases must be contiguous: {previous.end} is followed by {current.base}"
            )
    return [phase.wrap(sink) for phase in built]


class ProgressChannel:
    """Coalescing single-producer progress channel.

    ``push`` never blocks: only the most recent undelivered value is kept,
    and values lower than what the consumer has already seen are dropped.
    Consumers drain with ``async for value in channel`` until ``close``.
    Must be used from a single event loop.
    """

    def __init__(self) -> None:
        self._pending: Optional[float] = None
        self._last: Optional[float] = None
        self._closed = False
        self._ready = asyncio.Event()

    @property
    def last(self) -> Optional[float]:
        """The last value handed to the consumer."""
        return self._last

    def push(self, value: float) -> None:
        if self._closed:
            return
        value = clamp(value)
        floor = self._pending if self._pending is not None else self._last
        if floor is not None and value < floor:
            return
        self._pending = value
        self._ready.set()

    def close(self) -> None:
        self._closed = True
        self._ready.set()

    def __aiter__(self) -> "ProgressChannel":
        return self

    async def __anext__(self) -> float:
        while True:
            if self._pending is not None:
                value = self._pending
                self._pending = None
                self._last = value
                return value
            if self._closed:
                raise StopAsyncIteration
            self._ready.clear()
            await self._ready.wait()
