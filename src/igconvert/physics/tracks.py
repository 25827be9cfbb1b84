# src/igconvert/physics/tracks.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional
import math

import numpy as np

@dataclass(slots=True)
class Track:
    """
    One selected track: momentum plus its slice of the flattened polyline.

    points: (n, 3) float array in input order (already unit-scaled)
    pt: transverse momentum as written by the producer (sign carries charge)
    """
    index: int
    pt: float
    points: np.ndarray
    id: Optional[int] = None
    phi0: Optional[float] = None
    cot_theta: Optional[float] = None

    def __len__(self) -> int:
        return int(self.points.shape[0])

    @property
    def charge(self) -> int:
        if self.pt > 0:
            return 1
        if self.pt < 0:
            return -1
        return 0

    @property
    def phi(self) -> float:
        return 0.0 if self.phi0 is None else float(self.phi0)

    @property
    def eta(self) -> float:
        # eta = -ln tan(theta/2) = asinh(cot theta)
        return 0.0 if self.cot_theta is None else math.asinh(self.cot_theta)
