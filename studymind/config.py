"""Configuration for StudyMind layouts, viewports and maps."""

import json
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional, Type, TypeVar

LAYOUT_HIERARCHICAL = "hierarchical"
LAYOUT_RADIAL = "radial"
LAYOUT_MODES = (LAYOUT_HIERARCHICAL, LAYOUT_RADIAL)

_T = TypeVar("_T")


def _from_json(cls: Type[_T], data: Optional[str]) -> _T:
    if not data:
        return cls()
    try:
        d = json.loads(data)
        # Filter to only known fields to handle schema evolution
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in d.items() if k in known})
    except (json.JSONDecodeError, TypeError, AttributeError):
        return cls()


@dataclass
class LayoutConfig:
    """Sizing and spacing used by both layout strategies."""
    node_width: float = 150
    base_height: float = 50
    line_height: float = 16
    vertical_padding: float = 24
    text_inset: float = 20
    glyph_width: float = 8
    row_spacing: float = 120
    min_horizontal_gap: float = 40
    radial_root_radius: float = 200
    radial_level_radius: float = 160
    radial_sweep_shrink: float = 0.8

    @property
    def wrap_width(self) -> float:
        return self.node_width - self.text_inset

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: Optional[str]) -> "LayoutConfig":
        return _from_json(cls, data)


@dataclass
class ViewportConfig:
    """Zoom limits and steps for the pan/zoom transform."""
    min_zoom: float = 0.1
    max_zoom: float = 2.0
    wheel_factor: float = 1.1
    button_factor: float = 1.2
    fit_padding: float = 100
    visible_margin: float = 100

    def clamp(self, zoom: float) -> float:
        return max(self.min_zoom, min(self.max_zoom, zoom))

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: Optional[str]) -> "ViewportConfig":
        return _from_json(cls, data)


@dataclass
class MapSettings:
    """Settings stored alongside a specific map."""
    layout_mode: str = LAYOUT_HIERARCHICAL
    deep_focus: bool = False
    show_grid: bool = True

    def __post_init__(self):
        if self.layout_mode not in LAYOUT_MODES:
            self.layout_mode = LAYOUT_HIERARCHICAL

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: Optional[str]) -> "MapSettings":
        return _from_json(cls, data)


def get_data_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get("STUDYMIND_DATA_DIR")
    if override:
        data_dir = Path(override)
    else:
        data_dir = Path.home() / ".local" / "share" / "studymind"
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "exports").mkdir(exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """Get the database file path."""
    return get_data_dir() / "studymind.db"


def get_export_dir() -> Path:
    """Get the default export directory."""
    export_dir = get_data_dir() / "exports"
    export_dir.mkdir(exist_ok=True)
    return export_dir
