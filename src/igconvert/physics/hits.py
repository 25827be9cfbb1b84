from __future__ import annotations
from dataclasses import dataclass
import numpy as np

@dataclass(slots=True)
class Hit:
    """
    Point on a track with a reconstructed arrival time.

    r: position (3,), in the length unit handed to the reconstructor [m for tof mode]
    t_ns: time [ns], relative to the track origin
    """
    r: np.ndarray  # shape (3,), dtype float
    t_ns: float

    @property
    def x(self) -> float:
        return float(self.r[0])

    @property
    def y(self) -> float:
        return float(self.r[1])

    @property
    def z(self) -> float:
        return float(self.r[2])
