"""Ground-truth confidence from on-site accelerometer sampling.

A calm, still device placement means the station's fixed readings can be
trusted; sustained movement lowers the trust score.
"""

from __future__ import annotations

from collections import deque
from typing import Iterable, Iterator

from slidewatch.core.models import GeoPoint, GroundSample
from slidewatch.core.scoring import clamp, round_half_up

DEFAULT_BUFFER_SIZE = 300

# Trust lost per unit of average combined-axis magnitude.
MAGNITUDE_PENALTY = 40.0


def estimate_trust(samples: Iterable[GroundSample]) -> int | None:
    """Return a 0-100 trust score, or None when there are no samples yet."""
    count = 0
    total = 0.0
    for sample in samples:
        total += sample.magnitude
        count += 1
    if count == 0:
        return None
    avg_magnitude = total / count
    return round_half_up(clamp(100 - avg_magnitude * MAGNITUDE_PENALTY, 0, 100))


class GroundSampleBuffer:
    """Fixed-capacity buffer keeping only the most recent samples."""

    def __init__(self, capacity: int = DEFAULT_BUFFER_SIZE) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._samples: deque[GroundSample] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._samples.maxlen or 0

    def append(self, sample: GroundSample) -> None:
        self._samples.append(sample)

    def clear(self) -> None:
        self._samples.clear()

    def trust_score(self) -> int | None:
        return estimate_trust(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[GroundSample]:
        return iter(self._samples)


class TrackLog:
    """GPS points logged during a field check. Unbounded for the session's life."""

    def __init__(self) -> None:
        self._points: list[GeoPoint] = []

    def append(self, point: GeoPoint) -> None:
        self._points.append(point)

    def clear(self) -> None:
        self._points.clear()

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[GeoPoint]:
        return iter(self._points)
