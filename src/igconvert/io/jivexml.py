"""
igconvert.io.jivexml

Reader for JiveXML event documents: event header attributes on the root
element and flattened track arrays inside <Track storeGateKey="..."> elements.

Design goals
------------
- Keep XML concerns here; physics modules only see numpy arrays and Track objects.
- Check the parallel-array invariants once, up front, before anything is
  written to a store:
    len(pt) == len(numPolyline)
    sum(numPolyline) == len(polylineX) == len(polylineY) == len(polylineZ)
- Report bad tokens with the field and the track they belong to.

Input (example)
---------------
<Event runNumber="12" eventNumber="34" dateTime="2010-03-30 13:05:06 CEST">
  <Track count="2" storeGateKey="ExtendedTracks">
    <pt> 1.5 -2.25 </pt>
    <numPolyline> 3 2 </numPolyline>
    <polylineX> 0 3 3 1 2 </polylineX>
    <polylineY> 0 0 4 1 2 </polylineY>
    <polylineZ> 0 0 0 1 2 </polylineZ>
  </Track>
</Event>
"""
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional
import math
import xml.etree.ElementTree as ET

import numpy as np

from igconvert.errors import InputUnreadable, MalformedInput, ParseError
from igconvert.io.ig_store import INT64_MAX, INT64_MIN
from igconvert.physics.tracks import Track

# ---------------------------------------------------------------------------
# Field maps
# ---------------------------------------------------------------------------

_FLOAT_FIELDS = ("pt", "polylineX", "polylineY", "polylineZ", "phi0", "cotTheta")
_INT_FIELDS = ("numPolyline", "id")
_COORD_FIELDS = ("polylineX", "polylineY", "polylineZ")
# per-track optional arrays: empty or len(pt)
_OPTIONAL_FIELDS = ("phi0", "cotTheta", "id")


@dataclass
class EventHeader:
    run: int
    event: int
    time: str = ""
    localtime: str = ""
    ls: int = 0
    orbit: int = 0
    bx: int = 0
    experiment: str = "ATLAS"
    mc: bool = False


@dataclass
class TrackArrays:
    """Flattened per-collection arrays; coordinates already unit-scaled."""
    pt: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    numPolyline: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))
    polylineX: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    polylineY: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    polylineZ: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    phi0: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    cotTheta: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.float64))
    id: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=np.int64))

    @property
    def n_tracks(self) -> int:
        return int(self.pt.shape[0])

    @property
    def n_points(self) -> int:
        return int(self.polylineX.shape[0])

    def validate(self) -> None:
        """Raise MalformedInput if the parallel arrays disagree."""
        n_pt, n_num = len(self.pt), len(self.numPolyline)
        if n_pt != n_num:
            raise MalformedInput(
                f"Track arrays disagree: len(pt)={n_pt} but len(numPolyline)={n_num}"
            )
        nx, ny, nz = len(self.polylineX), len(self.polylineY), len(self.polylineZ)
        if not (nx == ny == nz):
            raise MalformedInput(
                f"Polyline arrays disagree: len(polylineX)={nx}, "
                f"len(polylineY)={ny}, len(polylineZ)={nz}"
            )
        if n_num and int(self.numPolyline.min()) < 0:
            bad = int(np.argmax(self.numPolyline < 0))
            raise MalformedInput(
                f"numPolyline[{bad}]={int(self.numPolyline[bad])} is negative"
            )
        total = int(self.numPolyline.sum())
        if total != nx:
            raise MalformedInput(
                f"sum(numPolyline)={total} does not match {nx} polyline points"
            )
        for name in _OPTIONAL_FIELDS:
            n = len(getattr(self, name))
            if n and n != n_pt:
                raise MalformedInput(f"len({name})={n} but there are {n_pt} tracks")

    def iter_tracks(self) -> Iterator[Track]:
        """Yield Track objects in input order, each with its polyline slice."""
        self.validate()
        pts = np.stack([self.polylineX, self.polylineY, self.polylineZ], axis=1)
        pl = 0
        for i in range(self.n_tracks):
            ple = pl + int(self.numPolyline[i])
            yield Track(
                index=i,
                pt=float(self.pt[i]),
                points=pts[pl:ple],
                id=int(self.id[i]) if len(self.id) else None,
                phi0=float(self.phi0[i]) if len(self.phi0) else None,
                cot_theta=float(self.cotTheta[i]) if len(self.cotTheta) else None,
            )
            pl = ple


# ---------------------------------------------------------------------------
# Document / header
# ---------------------------------------------------------------------------

def read_document(path: str | Path) -> ET.Element:
    """Parse the XML file and return its root element."""
    p = Path(path)
    if not p.is_file():
        raise InputUnreadable(f"Input file not found: {p}")
    try:
        return ET.parse(p).getroot()
    except ET.ParseError as exc:
        raise InputUnreadable(f"Error during parsing of {p}: {exc}") from exc
    except OSError as exc:
        raise InputUnreadable(f"Cannot read {p}: {exc}") from exc


def _int_attr(root: ET.Element, name: str, *, required: bool) -> int:
    raw = root.get(name)
    if raw is None:
        if required:
            raise MalformedInput(f"Root element <{root.tag}> has no {name} attribute")
        return 0
    try:
        value = int(raw.strip())
    except ValueError:
        raise ParseError(name, raw) from None
    if not INT64_MIN <= value <= INT64_MAX:
        raise ParseError(name, raw)
    return value


def read_event_header(
    root: ET.Element,
    *,
    experiment: str = "ATLAS",
    mc: bool = False,
) -> EventHeader:
    return EventHeader(
        run=_int_attr(root, "runNumber", required=True),
        event=_int_attr(root, "eventNumber", required=True),
        time=root.get("dateTime", ""),
        localtime=root.get("localTime", ""),
        ls=_int_attr(root, "lumiBlock", required=False),
        orbit=_int_attr(root, "orbit", required=False),
        bx=_int_attr(root, "bunchCrossing", required=False),
        experiment=experiment,
        mc=mc,
    )


# ---------------------------------------------------------------------------
# Track arrays
# ---------------------------------------------------------------------------

def _track_of_point(num_polyline: List[str], pos: int) -> Optional[int]:
    """Best-effort track index for flat polyline position `pos`."""
    try:
        counts = np.array([int(t) for t in num_polyline], dtype=np.int64)
    except (ValueError, OverflowError):
        return None
    ends = np.cumsum(counts)
    i = int(np.searchsorted(ends, pos, side="right"))
    return i if i < len(counts) else None


def _parse_tokens(name: str, tokens: List[str], num_polyline: List[str]) -> np.ndarray:
    conv = float if name in _FLOAT_FIELDS else int
    out = np.empty(len(tokens), dtype=np.float64 if conv is float else np.int64)
    for k, tok in enumerate(tokens):
        try:
            value = conv(tok)
            # nan/inf parse as floats but are not coordinates or momenta
            if conv is float and not math.isfinite(value):
                raise ValueError(tok)
            out[k] = value
        except (ValueError, OverflowError):
            track = _track_of_point(num_polyline, k) if name in _COORD_FIELDS else k
            raise ParseError(name, tok, track) from None
    return out


def extract_track_arrays(
    root: ET.Element,
    *,
    key: str = "ExtendedTracks",
    tag: str = "Track",
    length_scale: float = 1.0,
) -> TrackArrays:
    """
    Collect the arrays of every <tag storeGateKey=key> element (exact match).

    Tokens of all matching elements are appended in document order. No
    matching element gives empty arrays. `length_scale` multiplies the
    polyline coordinates only.
    """
    tokens: Dict[str, List[str]] = {n: [] for n in _FLOAT_FIELDS + _INT_FIELDS}
    for coll in root.iter(tag):
        if coll.get("storeGateKey") != key:
            continue
        for child in coll:
            if child.tag in tokens:
                tokens[child.tag].extend((child.text or "").split())

    arrays = {
        name: _parse_tokens(name, toks, tokens["numPolyline"])
        for name, toks in tokens.items()
    }
    for name in _COORD_FIELDS:
        arrays[name] = arrays[name] * float(length_scale)
    return TrackArrays(**arrays)
