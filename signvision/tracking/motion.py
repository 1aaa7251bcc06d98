"""
Motion prediction and adaptive smoothing for tracked boxes.

Box vector: [x, y, w, h]
Velocity:   [dx, dy, dw, dh] per update cycle, exponentially decayed
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from signvision.core.config import TrackerConfig
from signvision.core.contracts import BoundingBox, TrackedObject


CameraMotion = Tuple[float, float]


def sanitize_camera_motion(camera_motion: Optional[CameraMotion]) -> CameraMotion:
    """Missing or unusable camera motion counts as no motion."""
    if camera_motion is None:
        return (0.0, 0.0)
    try:
        dx, dy = (float(v) for v in camera_motion)
    except (TypeError, ValueError):
        return (0.0, 0.0)
    if not (np.isfinite(dx) and np.isfinite(dy)):
        return (0.0, 0.0)
    return (dx, dy)


class MotionPredictor:
    """
    Constant-velocity predictor with camera-pan compensation.

    Position advances by the full velocity, size by half of it so that a
    few frames of growth cannot inflate a coasting box without bound.
    Camera motion is subtracted from position only.
    """

    VELOCITY_DECAY = 0.7
    SIZE_RATE_DAMPING = 0.5

    def __init__(self, config: TrackerConfig):
        self.config = config

    def predict(self, obj: TrackedObject, camera_motion: CameraMotion = (0.0, 0.0)) -> BoundingBox:
        """
        Compute this cycle's predicted box for an object.

        Args:
            obj: Tracked object (not modified)
            camera_motion: Camera pan (dx, dy) since the previous cycle

        Returns:
            Predicted bounding box
        """
        if obj.missed_frames > self.config.max_missed_frames or not obj.has_velocity:
            return obj.smoothed_bbox

        box = obj.smoothed_bbox.as_array()
        step = np.array([
            obj.velocity[0] - camera_motion[0],
            obj.velocity[1] - camera_motion[1],
            obj.velocity[2] * self.SIZE_RATE_DAMPING,
            obj.velocity[3] * self.SIZE_RATE_DAMPING,
        ])
        return BoundingBox.from_array(box + step)

    def update_velocity(
        self,
        velocity: NDArray[np.float64],
        previous: BoundingBox,
        observed: BoundingBox,
        cycles: int = 1,
    ) -> NDArray[np.float64]:
        """
        Blend the latest per-cycle displacement into the velocity estimate.

        Args:
            velocity: Current estimate
            previous: Last observed box
            observed: Newly observed box
            cycles: Cycles elapsed since ``previous`` was observed; the
                displacement is spread evenly over them
        """
        delta = (observed.as_array() - previous.as_array()) / max(cycles, 1)
        return self.VELOCITY_DECAY * velocity + (1.0 - self.VELOCITY_DECAY) * delta


class Smoother:
    """
    Exponential moving average over displayed geometry.

    The blend weight grows with speed: fast objects follow the raw
    detections closely, still objects are held steady.
    """

    SPEED_GAIN = 2.0

    def __init__(self, config: TrackerConfig):
        self.config = config

    def alpha(self, velocity: NDArray[np.float64]) -> float:
        speed = float(np.hypot(velocity[0], velocity[1]))
        return min(self.config.base_smoothing_alpha + self.SPEED_GAIN * speed, self.config.alpha_max)

    def smooth(
        self,
        smoothed: BoundingBox,
        raw: BoundingBox,
        velocity: NDArray[np.float64],
    ) -> BoundingBox:
        a = self.alpha(velocity)
        blended = (1.0 - a) * smoothed.as_array() + a * raw.as_array()
        return BoundingBox.from_array(blended)
