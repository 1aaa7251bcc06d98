"""
Fall Detector.

Watches device acceleration for spikes that suggest the user fell or
dropped the phone. The session pauses detection when this fires so
that stale announcements are not spoken into an emergency.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Optional

from loguru import logger


@dataclass(frozen=True)
class FallEvent:
    """A suspected fall."""
    magnitude: float
    timestamp_ms: float


@dataclass(frozen=True)
class MotionSample:
    """Latest acceleration reading."""
    magnitude: float
    timestamp_ms: float


class FallDetector:
    """
    Threshold detector on acceleration magnitude.

    A cooldown keeps one physical fall from reporting once per sensor
    sample.
    """

    def __init__(
        self,
        threshold: float = 15.0,
        cooldown_ms: float = 3000.0,
    ):
        """
        Args:
            threshold: Magnitude (m/s^2, gravity excluded) above which a
                sample counts as a fall
            cooldown_ms: Minimum time between two reported falls
        """
        self.threshold = threshold
        self.cooldown_ms = cooldown_ms

        self._last_sample: Optional[MotionSample] = None
        self._last_fall_ms: Optional[float] = None

    def update(self, ax: float, ay: float, az: float, timestamp_ms: float) -> Optional[FallEvent]:
        """
        Feed one acceleration sample.

        Returns:
            FallEvent if this sample indicates a new fall, else None
        """
        components = (ax, ay, az)
        if not all(isinstance(c, (int, float)) and math.isfinite(c) for c in components):
            return None

        magnitude = math.sqrt(ax ** 2 + ay ** 2 + az ** 2)
        self._last_sample = MotionSample(magnitude=magnitude, timestamp_ms=timestamp_ms)

        if magnitude <= self.threshold:
            return None

        if self._last_fall_ms is not None and timestamp_ms - self._last_fall_ms < self.cooldown_ms:
            return None

        self._last_fall_ms = timestamp_ms
        logger.warning(f"Possible fall detected! Magnitude: {magnitude:.1f}")
        return FallEvent(magnitude=magnitude, timestamp_ms=timestamp_ms)

    @property
    def last_sample(self) -> Optional[MotionSample]:
        return self._last_sample

    def reset(self):
        self._last_sample = None
        self._last_fall_ms = None
