"""Sweep configuration.

A :class:`SweepConfig` collects the knobs shared by the aperture and
beam-envelope sweeps.  It can be built in code or loaded from a YAML
document::

    thickness_scale: 1.0
    segment_break: type
    per_run: true
    colors:
      QUADRUPOLE: "#d62728"
      DRIFT: [0.6, 0.6, 0.6]
    beam:
      num_sigmas: 3
      emittance: 2.5e-9
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from beamsweep.errors import ConfigError
from beamsweep.io.tables import EnvelopeColumns, SurveyColumns

Color = Tuple[float, float, float, float]

SEGMENT_BREAK_MODES = ("type", "none")
DEFAULT_COLOR: Color = (0.7, 0.7, 0.7, 1.0)


def parse_color(value: Any) -> Color:
    """Convert ``#rrggbb``, ``#rrggbbaa`` or a 3/4 element sequence to RGBA floats."""
    if isinstance(value, str):
        text = value.strip().lstrip("#")
        if len(text) not in (6, 8):
            raise ConfigError(f"bad color {value!r}")
        try:
            parts = [int(text[i:i + 2], 16) / 255.0 for i in range(0, len(text), 2)]
        except ValueError as exc:
            raise ConfigError(f"bad color {value!r}") from exc
    elif isinstance(value, (list, tuple)) and len(value) in (3, 4):
        try:
            parts = [float(v) for v in value]
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"bad color {value!r}") from exc
    else:
        raise ConfigError(f"bad color {value!r}")
    if len(parts) == 3:
        parts.append(1.0)
    if any(p < 0.0 or p > 1.0 for p in parts):
        raise ConfigError(f"color components must be in [0, 1]: {value!r}")
    return tuple(parts)  # type: ignore[return-value]


def _vec3(value: Any, name: str) -> Tuple[float, float, float]:
    try:
        vec = tuple(float(v) for v in value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be three numbers") from exc
    if len(vec) != 3:
        raise ConfigError(f"{name} must be three numbers")
    if math.sqrt(sum(v * v for v in vec)) <= 0.0:
        raise ConfigError(f"{name} must not be the zero vector")
    return vec  # type: ignore[return-value]


@dataclass(frozen=True)
class BeamConfig:
    """Constants of the beam-envelope ellipse.

    ``sigma = sigma_scale * num_sigmas * sqrt(emittance * variance) + |offset|``
    """
    num_sigmas: float = 3.0
    sigma_scale: float = 1.0
    emittance: float = 1.0


@dataclass(frozen=True)
class ApertureColumnsConfig:
    x_column: int = 3
    y_column: int = 4


@dataclass(frozen=True)
class SweepConfig:
    thickness_scale: float = 1.0
    ellipse_resolution: int = 32
    segment_break: str = "type"
    per_run: bool = False
    orient_sections: bool = True
    world_up: Tuple[float, float, float] = (0.0, 1.0, 0.0)
    world_right: Tuple[float, float, float] = (1.0, 0.0, 0.0)
    default_tangent: Tuple[float, float, float] = (0.0, 0.0, 1.0)
    merge_tolerance: float = 1e-9
    reorder_faces: bool = False
    colors: Dict[str, Color] = field(default_factory=dict)
    default_color: Color = DEFAULT_COLOR
    delimiter: str = ","
    beam: BeamConfig = field(default_factory=BeamConfig)
    survey: SurveyColumns = field(default_factory=SurveyColumns)
    aperture: ApertureColumnsConfig = field(default_factory=ApertureColumnsConfig)
    envelope: EnvelopeColumns = field(default_factory=EnvelopeColumns)

    def __post_init__(self):
        if self.thickness_scale <= 0.0:
            raise ConfigError(f"thickness_scale must be positive, got {self.thickness_scale}")
        if self.ellipse_resolution < 3:
            raise ConfigError(f"ellipse_resolution must be 3 or greater, got {self.ellipse_resolution}")
        if self.segment_break not in SEGMENT_BREAK_MODES:
            raise ConfigError(f"segment_break must be one of {SEGMENT_BREAK_MODES}, got {self.segment_break!r}")
        if self.merge_tolerance <= 0.0:
            raise ConfigError("merge_tolerance must be positive")
        up = _vec3(self.world_up, "world_up")
        right = _vec3(self.world_right, "world_right")
        _vec3(self.default_tangent, "default_tangent")
        cos = sum(a * b for a, b in zip(up, right)) / (
            math.sqrt(sum(a * a for a in up)) * math.sqrt(sum(b * b for b in right)))
        if abs(cos) > 0.1:
            raise ConfigError("world_up and world_right must be close to orthogonal")
        if self.beam.num_sigmas <= 0.0 or self.beam.emittance < 0.0:
            raise ConfigError("beam.num_sigmas must be positive and beam.emittance non-negative")

    def color_for(self, tag: Optional[str]) -> Color:
        """Flat colour of a run tagged ``tag``."""
        if tag is not None and tag in self.colors:
            return self.colors[tag]
        return self.default_color

    def with_overrides(self, **changes) -> "SweepConfig":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SweepConfig":
        """Build a configuration from a plain mapping (e.g. parsed YAML).

        Unknown keys raise :class:`ConfigError`.
        """
        data = dict(data or {})
        nested = {
            "beam": BeamConfig,
            "survey": SurveyColumns,
            "aperture": ApertureColumnsConfig,
            "envelope": EnvelopeColumns,
        }
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"unknown configuration keys: {', '.join(unknown)}")

        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key in nested:
                kwargs[key] = _build_section(nested[key], value, key)
            elif key == "colors":
                if not isinstance(value, dict):
                    raise ConfigError("colors must be a mapping of type tag to color")
                kwargs[key] = {str(tag): parse_color(c) for tag, c in value.items()}
            elif key == "default_color":
                kwargs[key] = parse_color(value)
            elif key in ("world_up", "world_right", "default_tangent"):
                kwargs[key] = _vec3(value, key)
            else:
                kwargs[key] = value
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise ConfigError(str(exc)) from exc

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if hasattr(value, "__dataclass_fields__"):
                out[f.name] = {sf.name: getattr(value, sf.name) for sf in fields(value)}
            elif isinstance(value, tuple):
                out[f.name] = list(value)
            elif isinstance(value, dict):
                out[f.name] = {k: list(v) for k, v in value.items()}
            else:
                out[f.name] = value
        return out


def _build_section(cls, value: Any, name: str):
    if value is None:
        return cls()
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(value) - known)
    if unknown:
        raise ConfigError(f"unknown keys in {name}: {', '.join(unknown)}")
    try:
        return cls(**value)
    except TypeError as exc:
        raise ConfigError(f"{name}: {exc}") from exc


def load_config(path: Optional[Union[str, Path]]) -> SweepConfig:
    """Load a YAML configuration file; ``None`` gives the defaults."""
    if path is None:
        return SweepConfig()
    import yaml

    config_path = Path(path)
    try:
        with config_path.open("r", encoding="utf-8") as fp:
            data = yaml.safe_load(fp) or {}
    except OSError as exc:
        raise ConfigError(f"cannot read configuration {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path}: top level must be a mapping")
    return SweepConfig.from_dict(data)


def save_config(config: SweepConfig, path: Union[str, Path]) -> None:
    import yaml

    with Path(path).open("w", encoding="utf-8") as fp:
        yaml.safe_dump(config.to_dict(), fp, sort_keys=False)


__all__ = [
    "Color",
    "DEFAULT_COLOR",
    "SEGMENT_BREAK_MODES",
    "BeamConfig",
    "ApertureColumnsConfig",
    "SweepConfig",
    "parse_color",
    "load_config",
    "save_config",
]
