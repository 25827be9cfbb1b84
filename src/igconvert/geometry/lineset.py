from __future__ import annotations
from dataclasses import dataclass
from typing import Iterator
import numpy as np

@dataclass
class LineSet:
    """
    Vertices plus a list of line segments (index pairs) between them.

    Traversal walks the segments in list order; a segment that starts where
    the previous one ended continues the same strip, otherwise a new strip
    starts and its first vertex is emitted too.
    """
    vertices: np.ndarray  # (n, 3)
    segments: np.ndarray  # (m, 2) int

    @classmethod
    def from_polyline(cls, points) -> "LineSet":
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        n = pts.shape[0]
        if n < 2:
            segs = np.zeros((0, 2), dtype=np.int64)
        else:
            idx = np.arange(n - 1, dtype=np.int64)
            segs = np.stack([idx, idx + 1], axis=1)
        return cls(pts, segs)

    def __post_init__(self):
        self.vertices = np.asarray(self.vertices, dtype=np.float64).reshape(-1, 3)
        self.segments = np.asarray(self.segments, dtype=np.int64).reshape(-1, 2)
        n = self.vertices.shape[0]
        if self.segments.size and (self.segments.min() < 0 or self.segments.max() >= n):
            raise ValueError(f"Segment index out of range for {n} vertices")

    def iter_vertices(self) -> Iterator[np.ndarray]:
        """Yield (3,) vertices in traversal order."""
        if self.segments.shape[0] == 0:
            # a lone point is still a vertex of the set
            for v in self.vertices:
                yield v
            return
        prev_end = None
        for a, b in self.segments:
            if a != prev_end:
                yield self.vertices[a]
            yield self.vertices[b]
            prev_end = b
