"""
igconvert.physics.tof

Time-of-flight reconstruction along a single track.

Every vertex gets a time from the radial distance travelled since the
previous vertex:

    d_i = |r_i|
    t_i = (d_i - d_{i-1}) / c + t_{i-1},    d_{-1} = t_{-1} = 0

so the first hit on a track sits at |r_0| / c. Vertices are consumed in
the order they are given (the geometry traversal order) and are never
re-sorted; a vertex closer to the origin than its predecessor gets an
earlier time than it.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence
import math

import numpy as np

from .hits import Hit

SPEED_OF_LIGHT_M_PER_NS = 0.299792458


@dataclass(frozen=True, slots=True)
class TofAccumulator:
    """State carried from one vertex to the next within one track."""
    prior_distance: float = 0.0
    prior_time: float = 0.0

    def advance(self, x: float, y: float, z: float, c: float) -> tuple[float, "TofAccumulator"]:
        distance = math.sqrt(x * x + y * y + z * z)
        time = (distance - self.prior_distance) / c + self.prior_time
        return time, TofAccumulator(distance, time)


def reconstruct_hits(
    vertices: Iterable[Sequence[float]],
    c: float = SPEED_OF_LIGHT_M_PER_NS,
) -> Iterator[Hit]:
    """
    Turn one track's vertices (traversal order) into hits.

    A fresh accumulator is used per call, so calling this once per track
    keeps tracks independent. `vertices` may be a lazy single-pass sequence.
    """
    if c <= 0:
        raise ValueError(f"propagation speed must be positive, got {c}")
    acc = TofAccumulator()
    for v in vertices:
        x, y, z = float(v[0]), float(v[1]), float(v[2])
        t, acc = acc.advance(x, y, z, c)
        yield Hit(r=np.array([x, y, z], dtype=np.float64), t_ns=t)
