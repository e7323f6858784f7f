from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from gms.grid import GRID_SIZE
from gms.score import DENSITY_MATCHES, DENSITY_MODES


DEFAULT_CONFIG_PATH = "config/params.yaml"


def load_yaml(path: Optional[str]) -> Dict[str, Any]:
    """Read a YAML file; a missing path yields an empty dict (all defaults)."""
    if not path or not Path(path).exists():
        return {}
    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


@dataclass
class GMSParams:
    """
    Filter parameters.

    Attributes:
        grid_size: cells per image side (N).
        threshold_factor: multiplies sqrt(density); lower accepts more.
        density: background density estimate, "matches" | "occupied".
    """
    grid_size: int = GRID_SIZE
    threshold_factor: float = 0.15
    density: str = DENSITY_MATCHES

    def __post_init__(self) -> None:
        self.grid_size = int(self.grid_size)
        self.threshold_factor = float(self.threshold_factor)
        self.density = str(self.density).lower()
        if self.grid_size <= 0:
            raise ValueError("grid_size must be > 0")
        if self.threshold_factor < 0:
            raise ValueError("threshold_factor must be >= 0")
        if self.density not in DENSITY_MODES:
            raise ValueError(f"Unsupported density mode: {self.density}")

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "GMSParams":
        d = d or {}
        return cls(
            grid_size=d.get("grid_size", GRID_SIZE),
            threshold_factor=d.get("threshold_factor", 0.15),
            density=d.get("density", DENSITY_MATCHES),
        )

    @classmethod
    def from_yaml(cls, path: str) -> "GMSParams":
        """
        Load the `gms:` section of config/params.yaml:
            gms:
              grid_size: 10
              threshold_factor: 0.15
              density: matches
        """
        return cls.from_dict(load_yaml(path).get("gms"))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
