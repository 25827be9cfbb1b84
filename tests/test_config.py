import pytest
from pydantic import ValidationError

from igconvert.config.load import load_config
from igconvert.config.schemas import Config
from igconvert.physics.strategies import PointStrategy, TimeOfFlightStrategy, make_strategy


def test_defaults():
    cfg = load_config(None)
    assert cfg.run.mode == "tof"
    assert cfg.run.traversal == "array"
    assert cfg.extract.track_key == "ExtendedTracks"
    assert cfg.tof.c_m_per_ns == 0.299792458
    assert isinstance(make_strategy(cfg), TimeOfFlightStrategy)


def test_load_toml(tmp_path):
    p = tmp_path / "c.toml"
    p.write_text('[run]\nmode = "points"\ntraversal = "lineset"\n\n[extract]\ntrack_key = "Tracks"\n')
    cfg = load_config(p)
    assert cfg.run.traversal == "lineset"
    assert cfg.extract.track_key == "Tracks"
    assert isinstance(make_strategy(cfg), PointStrategy)


@pytest.mark.parametrize(
    "data",
    [
        {"run": {"diagnostics_level": 3}},
        {"run": {"mode": "hits"}},
        {"tof": {"c_m_per_ns": 0.0}},
    ],
)
def test_invalid(data):
    with pytest.raises(ValidationError):
        Config(**data)
