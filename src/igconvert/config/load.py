from __future__ import annotations
from .schemas import Config
from pathlib import Path
from typing import Optional
import tomllib

def load_config(path: Optional[str | Path] = None) -> Config:
    """Read a TOML config; no path means all defaults."""
    if path is None:
        return Config()
    p = Path(path)
    data = tomllib.loads(p.read_text())
    return Config(**data)
