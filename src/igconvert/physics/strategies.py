from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Iterable, Iterator, Sequence, Tuple

from .tof import SPEED_OF_LIGHT_M_PER_NS, reconstruct_hits
from .tracks import Track

# JiveXML polylines are in cm; time-of-flight uses m to match c in m/ns.
CM_TO_M = 0.01

# --- Interfaces -------------------------------------------------------------

@dataclass(frozen=True)
class Schema:
    """Collection/association names and property defaults one strategy writes."""
    track_collection: str
    track_properties: Tuple[Tuple[str, Any], ...]
    item_collection: str
    item_properties: Tuple[Tuple[str, Any], ...]
    association: str


class ReconstructionStrategy:
    """Base protocol: describe the output schema and turn a track into item rows."""
    name: str
    length_scale: float = 1.0
    schema: Schema

    def track_values(self, track: Track) -> Sequence[Any]:
        raise NotImplementedError

    def item_values(self, vertices: Iterable[Sequence[float]]) -> Iterator[Sequence[Any]]:
        raise NotImplementedError

# --- Implementations --------------------------------------------------------

class PointStrategy(ReconstructionStrategy):
    """Positions only: every vertex becomes a Points_V1 item."""
    name = "points"
    length_scale = 1.0
    schema = Schema(
        track_collection="ATLASTracks_V1",
        track_properties=(("pt", 0.0), ("charge", 0), ("phi", 0.0), ("eta", 0.0)),
        item_collection="Points_V1",
        item_properties=(("pos", (0.0, 0.0, 0.0)),),
        association="ATLASTrackPoints_V1",
    )

    def track_values(self, track):
        return (track.pt, track.charge, track.phi, track.eta)

    def item_values(self, vertices):
        for v in vertices:
            yield ((float(v[0]), float(v[1]), float(v[2])),)


class TimeOfFlightStrategy(ReconstructionStrategy):
    """Hits with a time reconstructed from cumulative distance / c."""
    name = "tof"
    length_scale = CM_TO_M
    schema = Schema(
        track_collection="ATLASTracks_V2",
        track_properties=(("id", 0), ("pt", 0.0)),
        item_collection="Hits_V1",
        item_properties=(("time", 0.0), ("x", 0.0), ("y", 0.0), ("z", 0.0)),
        association="ATLASTrackHits_V1",
    )

    def __init__(self, c_m_per_ns: float = SPEED_OF_LIGHT_M_PER_NS):
        if c_m_per_ns <= 0:
            raise ValueError(f"c_m_per_ns must be positive, got {c_m_per_ns}")
        self.c = float(c_m_per_ns)

    def track_values(self, track):
        # tracks without an explicit id are numbered by input position
        return (track.id if track.id is not None else track.index, track.pt)

    def item_values(self, vertices):
        for h in reconstruct_hits(vertices, self.c):
            yield (h.t_ns, h.x, h.y, h.z)

# --- Factory ----------------------------------------------------------------

def make_strategy(cfg) -> ReconstructionStrategy:
    """Build the strategy named by cfg.run.mode."""
    mode = cfg.run.mode
    if mode == "points":
        return PointStrategy()
    elif mode == "tof":
        return TimeOfFlightStrategy(cfg.tof.c_m_per_ns)
    else:
        raise ValueError(f"Unknown mode {mode!r}")
