"""
Configuration for the SignVision engine.

Tracker tunables live in TrackerConfig, glue-level settings in
SessionConfig. Both can be loaded from a YAML settings file:

    tracker:
      match_iou_threshold: 0.3
      max_missed_frames: 3
    session:
      processing_interval_ms: 1000
      enable_voice: true
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from loguru import logger


DEFAULT_SETTINGS_PATH = Path(__file__).resolve().parents[2] / "config" / "settings.yaml"


@dataclass
class TrackerConfig:
    """
    Tunables for association, smoothing, lifecycle and announcements.

    Attributes:
        match_iou_threshold: IoU above which a detection may claim an object
        center_dist_fallback: Center distance below which a detection may
            claim an object even without overlap
        min_confidence_to_create: Detections below this are ignored entirely
        lock_threshold: Consecutive matches before the label locks
        max_missed_frames: Consecutive misses tolerated before eviction
        max_age_ms: Time since last match tolerated before eviction
        base_smoothing_alpha: EMA weight for a stationary object
        alpha_max: Upper bound on the adaptive EMA weight
        announcement_cap: Max labels per lock announcement
    """
    match_iou_threshold: float = 0.3
    center_dist_fallback: float = 0.1
    min_confidence_to_create: float = 0.4
    lock_threshold: int = 2
    max_missed_frames: int = 3
    max_age_ms: float = 5000.0
    base_smoothing_alpha: float = 0.3
    alpha_max: float = 0.8
    announcement_cap: int = 3

    def __post_init__(self):
        if not 0.0 <= self.match_iou_threshold <= 1.0:
            raise ValueError(f"match_iou_threshold must be in [0, 1], got {self.match_iou_threshold}")
        if self.center_dist_fallback < 0:
            raise ValueError(f"center_dist_fallback must be >= 0, got {self.center_dist_fallback}")
        if not 0.0 <= self.min_confidence_to_create <= 1.0:
            raise ValueError(
                f"min_confidence_to_create must be in [0, 1], got {self.min_confidence_to_create}"
            )
        if self.lock_threshold < 1:
            raise ValueError(f"lock_threshold must be >= 1, got {self.lock_threshold}")
        if self.max_missed_frames < 0:
            raise ValueError(f"max_missed_frames must be >= 0, got {self.max_missed_frames}")
        if self.max_age_ms <= 0:
            raise ValueError(f"max_age_ms must be > 0, got {self.max_age_ms}")
        if not 0.0 < self.base_smoothing_alpha <= self.alpha_max <= 1.0:
            raise ValueError(
                "smoothing requires 0 < base_smoothing_alpha <= alpha_max <= 1, "
                f"got {self.base_smoothing_alpha} / {self.alpha_max}"
            )
        if self.announcement_cap < 1:
            raise ValueError(f"announcement_cap must be >= 1, got {self.announcement_cap}")


@dataclass
class SessionConfig:
    """Settings for the detection session wrapped around the tracker."""
    processing_interval_ms: float = 1000.0  # Min time between processed frames
    enable_voice: bool = True
    fall_threshold: float = 15.0            # Acceleration magnitude, m/s^2
    fall_cooldown_ms: float = 3000.0
    pause_on_fall: bool = True


@dataclass
class Settings:
    """Everything loaded from a settings file."""
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    session: SessionConfig = field(default_factory=SessionConfig)


def _section(cls, raw: Optional[Dict[str, Any]]):
    """Build a config dataclass from a YAML section, ignoring unknown keys."""
    raw = raw or {}
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        logger.warning(f"Ignoring unknown {cls.__name__} keys: {', '.join(unknown)}")
    return cls(**{k: v for k, v in raw.items() if k in known})


def settings_from_dict(data: Optional[Dict[str, Any]]) -> Settings:
    """Build Settings from an already-parsed mapping."""
    data = data or {}
    return Settings(
        tracker=_section(TrackerConfig, data.get('tracker', {})),
        session=_section(SessionConfig, data.get('session', {})),
    )


def load_settings(config_path: Optional[Union[str, Path]] = None) -> Settings:
    """
    Load settings from a YAML file.

    Args:
        config_path: Path to the YAML file. Falls back to the bundled
            config/settings.yaml, then to built-in defaults.

    Returns:
        Settings with tracker and session sections
    """
    candidates = [Path(config_path)] if config_path else [DEFAULT_SETTINGS_PATH]

    for path in candidates:
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}
            logger.info(f"Loaded settings from {path}")
            return settings_from_dict(data)

    if config_path:
        logger.warning(f"Settings file not found: {config_path}, using defaults")
    return Settings()
