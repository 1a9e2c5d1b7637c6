"""
Pipeline configuration.

Every tunable of the live pipeline lives here so nothing is compiled in.
Overrides are nested dicts (or a JSON file of them) keyed by section:

    {"estimator": {"octave_ratio": 0.9}, "stabilizer": {"release_frames": 10}}
"""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Optional, Tuple, Union

from .errors import InvalidConfig

logger = logging.getLogger(__name__)


@dataclass
class EstimatorConfig:
    window_size: int = 2048        # ~46 ms at 44.1 kHz
    silence_rms: float = 0.003
    min_clarity: float = 0.5
    octave_ratio: float = 0.85     # k: first peak >= k * highest peak wins


@dataclass
class StabilizerConfig:
    # Piano range A0..C8 with a little headroom
    min_frequency: float = 27.5
    max_frequency: float = 4200.0
    base_min_clarity: float = 0.5
    # (above_hz, min_clarity): high strings decay fast and read less clear
    clarity_bands: Tuple[Tuple[float, float], ...] = ((1000.0, 0.4), (2000.0, 0.3))
    consistency_frames: int = 2
    release_frames: int = 15       # ~250 ms at 60 Hz


@dataclass
class RecorderConfig:
    default_duration_ms: int = 500
    duplicate_window_ms: int = 300


@dataclass
class CaptureConfig:
    sample_rate: int = 44100
    device: Optional[Union[int, str]] = None
    tick_hz: float = 60.0


@dataclass
class PipelineConfig:
    estimator: EstimatorConfig = field(default_factory=EstimatorConfig)
    stabilizer: StabilizerConfig = field(default_factory=StabilizerConfig)
    recorder: RecorderConfig = field(default_factory=RecorderConfig)
    capture: CaptureConfig = field(default_factory=CaptureConfig)

    def validate(self) -> "PipelineConfig":
        validate_estimator(self.estimator)
        validate_stabilizer(self.stabilizer)
        validate_recorder(self.recorder)
        validate_capture(self.capture)
        return self


def _require(cond: bool, msg: str) -> None:
    if not cond:
        raise InvalidConfig(msg)


def _whole(x: Any) -> bool:
    return isinstance(x, int) and not isinstance(x, bool)


def _real(x: Any) -> bool:
    return isinstance(x, (int, float)) and not isinstance(x, bool) and math.isfinite(x)


def _unit(x: Any) -> bool:
    return _real(x) and 0.0 <= x <= 1.0


def validate_estimator(c: EstimatorConfig) -> None:
    _require(_whole(c.window_size) and c.window_size >= 8,
             f"estimator.window_size must be an integer >= 8, got {c.window_size!r}")
    _require(_real(c.silence_rms) and c.silence_rms >= 0.0, "estimator.silence_rms must be >= 0")
    _require(_unit(c.min_clarity), "estimator.min_clarity must be in [0, 1]")
    _require(_real(c.octave_ratio) and 0.0 < c.octave_ratio <= 1.0,
             "estimator.octave_ratio must be in (0, 1]")


def validate_stabilizer(c: StabilizerConfig) -> None:
    _require(_real(c.min_frequency) and c.min_frequency > 0.0, "stabilizer.min_frequency must be > 0")
    _require(_real(c.max_frequency) and c.max_frequency > c.min_frequency,
             "stabilizer.max_frequency must exceed min_frequency")
    _require(_unit(c.base_min_clarity), "stabilizer.base_min_clarity must be in [0, 1]")
    for band in c.clarity_bands:
        _require(len(band) == 2, f"stabilizer.clarity_bands entries are (hz, clarity), got {band!r}")
        hz, clarity = band
        _require(_real(hz) and hz > 0.0 and _unit(clarity), f"invalid clarity band {band!r}")
    # Zero thresholds are allowed: they mean "promote/release immediately".
    _require(_whole(c.consistency_frames) and c.consistency_frames >= 0,
             f"stabilizer.consistency_frames must be an integer >= 0, got {c.consistency_frames!r}")
    _require(_whole(c.release_frames) and c.release_frames >= 0,
             f"stabilizer.release_frames must be an integer >= 0, got {c.release_frames!r}")


def validate_recorder(c: RecorderConfig) -> None:
    # Notes carry whole milliseconds
    _require(_whole(c.default_duration_ms) and c.default_duration_ms >= 1,
             f"recorder.default_duration_ms must be an integer >= 1, got {c.default_duration_ms!r}")
    _require(_whole(c.duplicate_window_ms) and c.duplicate_window_ms >= 0,
             f"recorder.duplicate_window_ms must be an integer >= 0, got {c.duplicate_window_ms!r}")


def validate_capture(c: CaptureConfig) -> None:
    _require(_whole(c.sample_rate) and c.sample_rate > 0,
             f"capture.sample_rate must be a positive integer, got {c.sample_rate!r}")
    _require(_real(c.tick_hz) and c.tick_hz > 0.0, "capture.tick_hz must be > 0")


_SECTIONS = {
    "estimator": EstimatorConfig,
    "stabilizer": StabilizerConfig,
    "recorder": RecorderConfig,
    "capture": CaptureConfig,
}

_INT_KEYS = {
    ("estimator", "window_size"),
    ("stabilizer", "consistency_frames"),
    ("stabilizer", "release_frames"),
    ("recorder", "default_duration_ms"),
    ("recorder", "duplicate_window_ms"),
    ("capture", "sample_rate"),
}


def _coerce(section: str, key: str, value: Any) -> Any:
    # JSON has no tuples
    if section == "stabilizer" and key == "clarity_bands":
        return tuple((float(hz), float(c)) for hz, c in value)
    # 500.0 is fine, 0.5 and "2048" are left for validation to reject
    if (section, key) in _INT_KEYS and isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def _apply_section(name: str, current: Any, overrides: Dict[str, Any]) -> Any:
    allowed = {f.name for f in fields(current)}
    unknown = set(overrides) - allowed
    if unknown:
        logger.warning("Config unknown keys in %s: %s", name, sorted(unknown))
    known = {k: _coerce(name, k, v) for k, v in overrides.items() if k in allowed}
    return replace(current, **known)


def load_config(source: Union[None, str, os.PathLike, Dict[str, Any]] = None) -> PipelineConfig:
    """Build a validated PipelineConfig from defaults plus optional overrides."""
    if source is None:
        overrides: Dict[str, Any] = {}
    elif isinstance(source, dict):
        overrides = source
    else:
        with open(source, "r", encoding="utf-8") as f:
            overrides = json.load(f)
        if not isinstance(overrides, dict):
            raise InvalidConfig(f"Config file {source} must contain a JSON object")

    cfg = PipelineConfig()
    for section, values in overrides.items():
        if section not in _SECTIONS:
            logger.warning("Config unknown section: %s", section)
            continue
        if not isinstance(values, dict):
            raise InvalidConfig(f"Config section {section} must be an object")
        setattr(cfg, section, _apply_section(section, getattr(cfg, section), values))

    return cfg.validate()


DEFAULT_CONFIG = PipelineConfig()
