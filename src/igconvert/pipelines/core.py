from __future__ import annotations

from pathlib import Path
from typing import Iterable, Literal, Optional
import typer

import numpy as np

from igconvert.config.load import load_config
from igconvert.config.schemas import Config
from igconvert.errors import ConversionError, TypeMismatch
from igconvert.geometry.lineset import LineSet
from igconvert.io.h5_store import write_h5
from igconvert.io.ig_store import IgStore
from igconvert.io.ig_writer import write_ig
from igconvert.io.jivexml import (
    EventHeader,
    TrackArrays,
    extract_track_arrays,
    read_document,
    read_event_header,
)
from igconvert.physics.strategies import ReconstructionStrategy, make_strategy
from igconvert.physics.tracks import Track

EVENT_COLLECTION = "Event_V3"

_H5_SUFFIXES = (".h5", ".hdf5")


def _track_vertices(track: Track, traversal: Literal["array", "lineset"]) -> Iterable[np.ndarray]:
    """
    Vertex order fed to the reconstructor.

    "array" walks the polyline slice as stored; "lineset" walks the segment
    list of the track's LineSet, which is then the only source of order.
    """
    if traversal == "lineset":
        return LineSet.from_polyline(track.points).iter_vertices()
    return iter(track.points)


def _fill_event(store: IgStore, header: EventHeader) -> None:
    event = store.collection(EVENT_COLLECTION)
    EXP = event.add_property("experiment", "")
    RUN = event.add_property("run", 0)
    EVENT = event.add_property("event", 0)
    LS = event.add_property("ls", 0)
    ORBIT = event.add_property("orbit", 0)
    BX = event.add_property("bx", 0)
    TIME = event.add_property("time", "")
    LOCALTIME = event.add_property("localtime", "")
    MC = event.add_property("mc", 0)

    e = event.create()
    e[EXP] = header.experiment
    e[RUN] = header.run
    e[EVENT] = header.event
    e[LS] = header.ls
    e[ORBIT] = header.orbit
    e[BX] = header.bx
    e[TIME] = header.time
    e[LOCALTIME] = header.localtime
    e[MC] = int(header.mc)


def build_store(
    header: EventHeader,
    arrays: TrackArrays,
    strategy: ReconstructionStrategy,
    *,
    traversal: Literal["array", "lineset"] = "array",
    diagnostics_level: int = 0,
) -> IgStore:
    """
    Populate a fresh store: one Event item, then per track a Track item
    followed by its Point/Hit items, each associated right after creation.

    The arrays are validated before anything is created. The returned store
    is frozen.
    """
    arrays.validate()
    verbose = diagnostics_level >= 2

    store = IgStore()
    _fill_event(store, header)

    schema = strategy.schema
    tracks = store.collection(schema.track_collection)
    track_props = [tracks.add_property(n, d) for n, d in schema.track_properties]
    items = store.collection(schema.item_collection)
    item_props = [items.add_property(n, d) for n, d in schema.item_properties]
    links = store.associations(schema.association)

    for track in arrays.iter_tracks():
        n_items = 0
        try:
            t = tracks.create()
            for prop, value in zip(track_props, strategy.track_values(track)):
                t[prop] = value

            for values in strategy.item_values(_track_vertices(track, traversal)):
                it = items.create()
                for prop, value in zip(item_props, values):
                    it[prop] = value
                links.associate(t, it)
                n_items += 1
        except TypeMismatch as exc:
            raise TypeMismatch(
                exc.collection, exc.prop, exc.expected, exc.value, track_index=track.index
            ) from exc

        if verbose:
            print(f"[store] Track {track.index}: pt={track.pt} items={n_items}")

    if diagnostics_level >= 1:
        print(f"[store] {len(tracks)} tracks, {len(items)} {schema.item_collection} items, "
              f"{len(links)} associations")
    return store.freeze()


def write_store(store: IgStore, path: str | Path, header: EventHeader) -> Path:
    """Serialize once; format follows the output suffix."""
    out = Path(path)
    if out.suffix.lower() in _H5_SUFFIXES:
        return write_h5(store, out, attrs={"run": header.run, "event": header.event})
    return write_ig(store, out, run=header.run, event=header.event)


def run_pipeline(
    input_path: str,
    output_path: str,
    *,
    cfg: Optional[Config] = None,
    mode: Optional[str] = None,
    traversal: Optional[str] = None,
    diagnostics_level: Optional[int] = None,
) -> Path:
    """
    Convert one JiveXML document into one ig/HDF5 output file.

    Keyword overrides replace the corresponding [run] fields when not None.
    Any ConversionError propagates before the output file is touched.
    """
    # overrides go on a copy; the caller's Config is left as passed
    cfg = cfg.model_copy(deep=True) if cfg is not None else Config()

    # ---- apply CLI overrides on top of TOML ----
    if mode is not None:
        cfg.run.mode = mode
    if traversal is not None:
        cfg.run.traversal = traversal
    if diagnostics_level is not None:
        cfg.run.diagnostics_level = diagnostics_level
    cfg = Config.model_validate(cfg.model_dump())

    diag_level = cfg.run.diagnostics_level
    strategy = make_strategy(cfg)

    if diag_level >= 1:
        print(f"[run] mode={strategy.name} traversal={cfg.run.traversal}")
        print(f"[run] input={input_path} -> output={output_path}")

    root = read_document(input_path)
    header = read_event_header(root, experiment=cfg.event.experiment, mc=cfg.event.mc)
    arrays = extract_track_arrays(
        root,
        key=cfg.extract.track_key,
        tag=cfg.extract.track_tag,
        length_scale=strategy.length_scale,
    )
    if diag_level >= 1:
        print(f"[extract] Run {header.run} Event {header.event}: "
              f"{arrays.n_tracks} tracks, {arrays.n_points} polyline points "
              f"from {cfg.extract.track_tag}[{cfg.extract.track_key}]")

    store = build_store(
        header,
        arrays,
        strategy,
        traversal=cfg.run.traversal,
        diagnostics_level=diag_level,
    )

    out_path = write_store(store, output_path, header)
    if diag_level >= 1:
        print(f"[pipeline] Wrote {out_path}")
    return out_path


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

app = typer.Typer(help="Convert JiveXML tracks into an ig event store")


@app.command()
def main(
    input_path: str = typer.Argument(..., help="Input JiveXML file"),
    output_path: str = typer.Argument(..., help="Output file (.ig archive, .h5, or plain ig text)"),
    cfg_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to TOML config file",
    ),
    mode: Optional[str] = typer.Option(
        None,
        "--mode",
        help="Override [run].mode: 'points' or 'tof'",
    ),
    traversal: Optional[str] = typer.Option(
        None,
        "--traversal",
        help="Override [run].traversal: 'array' or 'lineset'",
    ),
    diagnostics_level: Optional[int] = typer.Option(
        None,
        "--diagnostics",
        "-d",
        help="Override [run].diagnostics_level (0, 1, 2)",
    ),
):
    """
    Convert INPUT_PATH to OUTPUT_PATH.
    """
    try:
        cfg = load_config(cfg_path)
        out_path = run_pipeline(
            input_path,
            output_path,
            cfg=cfg,
            mode=mode,
            traversal=traversal,
            diagnostics_level=diagnostics_level,
        )
    except (ConversionError, ValueError, OSError) as exc:
        typer.echo(f"[error] {type(exc).__name__}: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo(str(out_path))


if __name__ == "__main__":
    app()
