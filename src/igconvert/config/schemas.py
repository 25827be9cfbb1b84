from __future__ import annotations
from pydantic import BaseModel, Field, field_validator
from typing import Literal

class RunCfg(BaseModel):
    """
    Global run controls.

    TOML:

    [run]
    mode = "tof"          # "points" | "tof"
    traversal = "array"   # "array" | "lineset"
    diagnostics_level = 1
    """

    # Which reconstruction strategy fills the store
    mode: Literal["points", "tof"] = "tof"

    # Source of vertex order fed to the reconstructor
    traversal: Literal["array", "lineset"] = "array"

    # Diagnostics
    diagnostics_level: int = 1  # 0=off, 1=minimal, 2=verbose

    @field_validator("diagnostics_level")
    def _diag_range(cls, v: int) -> int:
        if v not in (0, 1, 2):
            raise ValueError("diagnostics_level must be 0, 1, or 2")
        return v

class ExtractCfg(BaseModel):
    """
    Which track collection of the JiveXML document is converted.

    Only <Track storeGateKey="..."> elements whose key matches exactly are read.
    """

    track_tag: str = "Track"
    track_key: str = "ExtendedTracks"

class EventCfg(BaseModel):
    experiment: str = "ATLAS"
    mc: bool = False

class TofCfg(BaseModel):
    c_m_per_ns: float = 0.299792458

    @field_validator("c_m_per_ns")
    def _positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("c_m_per_ns must be positive")
        return v


class Config(BaseModel):
    """
    Top-level TOML configuration. Every section is optional.
    """

    run: RunCfg = Field(default_factory=RunCfg)
    extract: ExtractCfg = Field(default_factory=ExtractCfg)
    event: EventCfg = Field(default_factory=EventCfg)
    tof: TofCfg = Field(default_factory=TofCfg)
