import json
import math
import zipfile

import numpy as np
import pytest

from igconvert.config.schemas import Config
from igconvert.errors import MalformedInput, ParseError, TypeMismatch
from igconvert.io.ig_writer import dumps_ig, loads_ig
from igconvert.io.jivexml import EventHeader, TrackArrays, extract_track_arrays, read_document
from igconvert.physics.strategies import CM_TO_M, PointStrategy, TimeOfFlightStrategy, make_strategy
from igconvert.physics.tof import SPEED_OF_LIGHT_M_PER_NS as C
from igconvert.pipelines.core import EVENT_COLLECTION, build_store, run_pipeline

HEADER = EventHeader(run=1, event=2, time="t")


def _arrays(num, xs, ys, zs, pt=None) -> TrackArrays:
    return TrackArrays(
        pt=np.asarray(pt if pt is not None else [1.0] * len(num), dtype=float),
        numPolyline=np.asarray(num, dtype=np.int64),
        polylineX=np.asarray(xs, dtype=float),
        polylineY=np.asarray(ys, dtype=float),
        polylineZ=np.asarray(zs, dtype=float),
    )


def _hits_by_track(store, strategy):
    s = strategy.schema
    links = store.associations(s.association)
    return [links.targets_of(t) for t in store.collection(s.track_collection)]


def test_tof_scenario_end_to_end(scenario_xml, tmp_path):
    out = run_pipeline(str(scenario_xml), str(tmp_path / "out.json"), diagnostics_level=0)
    store = loads_ig(out.read_text())
    tracks = store.collection("ATLASTracks_V2")
    hits = store.collection("Hits_V1")
    assert len(tracks) == 1 and len(hits) == 3
    assert len(store.associations("ATLASTrackHits_V1")) == 3

    T = hits.property("time")
    X, Y = hits.property("x"), hits.property("y")
    got = store.associations("ATLASTrackHits_V1").targets_of(next(iter(tracks)))
    assert [h.index for h in got] == [0, 1, 2]
    assert [h[T] for h in got][0] == 0.0
    assert math.isclose(got[1][T], 3 / C)
    assert math.isclose(got[2][T], 5 / C)
    assert [(h[X], h[Y]) for h in got] == pytest.approx([(0, 0), (3, 0), (3, 4)])

    ev = store.collection(EVENT_COLLECTION)
    row = next(ev.rows())
    assert row == ("ATLAS", 152166, 316199, 7, 0, 0, "2010-03-30 13:05:06 CEST", "", 0)


def test_points_mode_keeps_raw_coordinates(scenario_xml):
    cfg = Config(run={"mode": "points", "diagnostics_level": 0})
    strategy = make_strategy(cfg)
    arrays = extract_track_arrays(read_document(scenario_xml), length_scale=strategy.length_scale)
    store = build_store(HEADER, arrays, strategy)
    pos = store.collection("Points_V1").property("pos")
    [points] = _hits_by_track(store, strategy)
    assert [p[pos] for p in points] == [(0.0, 0.0, 0.0), (300.0, 0.0, 0.0), (300.0, 400.0, 0.0)]
    t = next(iter(store.collection("ATLASTracks_V1")))
    assert next(store.collection("ATLASTracks_V1").rows()) == (2.5, 1, 0.0, 0.0)
    assert t.index == 0


@pytest.mark.parametrize("traversal", ["array", "lineset"])
def test_cardinality_order_and_reset(traversal):
    num = [2, 0, 3]
    xs = [1, 2, 0, 0, 0]
    ys = [0, 0, 1, 5, 2]
    zs = [0, 0, 0, 0, 0]
    strategy = TimeOfFlightStrategy()
    store = build_store(HEADER, _arrays(num, xs, ys, zs), strategy, traversal=traversal)
    per_track = _hits_by_track(store, strategy)
    assert [len(h) for h in per_track] == num

    hits = store.collection("Hits_V1")
    T, Y = hits.property("time"), hits.property("y")
    # association order mirrors polyline order, including the backwards step 5 -> 2
    assert [h[Y] for h in per_track[2]] == [1.0, 5.0, 2.0]
    times = [h[T] for h in per_track[2]]
    assert times[2] < times[1]
    # every track restarts from the origin
    assert math.isclose(per_track[0][0][T], 1 / C)
    assert math.isclose(per_track[2][0][T], 1 / C)

    ids = [r[0] for r in store.collection("ATLASTracks_V2").rows()]
    assert ids == [0, 1, 2]


def test_mismatch_fails_before_any_item():
    arrays = _arrays([2], [1, 2], [1], [1, 2])
    with pytest.raises(MalformedInput):
        build_store(HEADER, arrays, TimeOfFlightStrategy())


def test_no_selected_collection(write_xml, tmp_path):
    src = write_xml('<Event runNumber="3" eventNumber="4" dateTime="x">'
                    '<Track storeGateKey="Other"><pt>1</pt><numPolyline>1</numPolyline>'
                    '<polylineX>1</polylineX><polylineY>1</polylineY><polylineZ>1</polylineZ>'
                    '</Track></Event>')
    out = run_pipeline(str(src), str(tmp_path / "out.ig"), diagnostics_level=0)
    with zipfile.ZipFile(out) as zf:
        doc = json.loads(zf.read("Events/Run_3/Event_4"))
    assert doc["Collections"][EVENT_COLLECTION] == [["ATLAS", 3, 4, 0, 0, 0, "x", "", 0]]
    assert doc["Collections"]["ATLASTracks_V2"] == []
    assert doc["Collections"]["Hits_V1"] == []
    assert doc["Associations"]["ATLASTrackHits_V1"] == []


def test_h5_output_and_unit_scale(scenario_xml, tmp_path):
    import h5py

    out = run_pipeline(str(scenario_xml), str(tmp_path / "out.h5"), diagnostics_level=0)
    with h5py.File(out, "r") as f:
        np.testing.assert_allclose(f["/collections/Hits_V1/y"][...], [0, 0, 400 * CM_TO_M])
        assert f["/associations/ATLASTrackHits_V1"].shape == (3, 2, 2)


def test_malformed_document_writes_nothing(write_xml, tmp_path):
    src = write_xml('<Event runNumber="3" eventNumber="4">'
                    '<Track storeGateKey="ExtendedTracks"><pt>1 2</pt><numPolyline>1</numPolyline>'
                    '</Track></Event>')
    out = tmp_path / "out.ig"
    with pytest.raises(MalformedInput):
        run_pipeline(str(src), str(out), diagnostics_level=0)
    assert not out.exists()


def test_diagnostics_output(scenario_xml, tmp_path, capsys):
    run_pipeline(str(scenario_xml), str(tmp_path / "o.json"), mode="points", diagnostics_level=2)
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "[run] mode=points traversal=array"
    assert any(ln.startswith("[store] Track 0:") for ln in lines)
    assert "[store] 1 tracks, 3 Points_V1 items, 3 associations" in lines


def test_store_is_frozen_and_reserializes(scenario_xml):
    strategy = PointStrategy()
    arrays = extract_track_arrays(read_document(scenario_xml))
    store = build_store(HEADER, arrays, strategy)
    assert store.frozen
    text = dumps_ig(store)
    assert dumps_ig(loads_ig(text)) == text


def test_type_mismatch_names_track():
    # second track overflows the distance, giving an infinite time
    arrays = _arrays([2, 2], [0, 1, 0, 1e200], [0, 0, 0, 0], [0, 0, 0, 0])
    with pytest.raises(TypeMismatch) as info:
        build_store(HEADER, arrays, TimeOfFlightStrategy())
    assert info.value.track_index == 1
    assert (info.value.collection, info.value.prop) == ("Hits_V1", "time")
    assert "track 1" in str(info.value)


def test_oversized_run_number_writes_no_h5(write_xml, tmp_path):
    src = write_xml('<Event runNumber="99999999999999999999" eventNumber="4" dateTime="x"></Event>')
    out = tmp_path / "out.h5"
    with pytest.raises(ParseError, match="runNumber"):
        run_pipeline(str(src), str(out), diagnostics_level=0)
    assert not out.exists()


def test_overrides_leave_caller_config_untouched(scenario_xml, tmp_path):
    cfg = Config()
    with pytest.raises(ValueError):
        run_pipeline(str(scenario_xml), str(tmp_path / "o.json"), cfg=cfg, mode="banana")
    assert cfg.run.mode == "tof"

    run_pipeline(str(scenario_xml), str(tmp_path / "o.json"), cfg=cfg,
                 mode="points", diagnostics_level=0)
    assert cfg.run.mode == "tof"
    assert cfg.run.diagnostics_level == Config().run.diagnostics_level
