"""
Core data contracts for the SignVision tracking engine.

All components must adhere to these contracts for:
- Normalized geometry (every coordinate is a fraction of the frame)
- Deterministic behavior
- Stable identities across frames
"""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np
from numpy.typing import NDArray


# ============================================================
# ENUMERATIONS
# ============================================================

class ColorHint(Enum):
    """Overlay colour suggested by the vision service."""
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    BLUE = "blue"
    ORANGE = "orange"

    @property
    def hex(self) -> str:
        return _COLOR_HEX[self]

    @classmethod
    def parse(cls, value: Any) -> ColorHint:
        """Parse a colour name, falling back to yellow like the overlay does."""
        if isinstance(value, ColorHint):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.YELLOW


_COLOR_HEX = {
    ColorHint.RED: "#f44336",
    ColorHint.YELLOW: "#ffeb3b",
    ColorHint.GREEN: "#4caf50",
    ColorHint.BLUE: "#2196f3",
    ColorHint.ORANGE: "#ff9800",
}


def _is_finite_number(value: Any) -> bool:
    """Real, finite and not a bool; strings never count."""
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


# ============================================================
# ERRORS
# ============================================================

class MalformedDetectionError(ValueError):
    """A single detection record cannot be used (bad bbox, empty label...)."""


# ============================================================
# CORE DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box (x, y, w, h), normalized to frame dimensions."""
    x: float
    y: float
    w: float
    h: float

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.w / 2.0, self.y + self.h / 2.0)

    @property
    def area(self) -> float:
        if self.is_degenerate:
            return 0.0
        return self.w * self.h

    @property
    def is_finite(self) -> bool:
        return all(_is_finite_number(v) for v in (self.x, self.y, self.w, self.h))

    @property
    def is_degenerate(self) -> bool:
        """Zero or negative size, or any non-finite component."""
        return not self.is_finite or self.w <= 0 or self.h <= 0

    def iou(self, other: BoundingBox) -> float:
        """Calculate Intersection over Union with another box."""
        if self.is_degenerate or other.is_degenerate:
            return 0.0

        x_left = max(self.x, other.x)
        y_top = max(self.y, other.y)
        x_right = min(self.x + self.w, other.x + other.w)
        y_bottom = min(self.y + self.h, other.y + other.h)

        if x_right <= x_left or y_bottom <= y_top:
            return 0.0

        intersection = (x_right - x_left) * (y_bottom - y_top)
        union = self.area + other.area - intersection

        return intersection / union if union > 0 else 0.0

    def center_distance(self, other: BoundingBox) -> float:
        """Euclidean distance between box centers."""
        cx, cy = self.center
        ox, oy = other.center
        return math.hypot(cx - ox, cy - oy)

    def as_array(self) -> NDArray[np.float64]:
        return np.array([self.x, self.y, self.w, self.h], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: NDArray[np.float64]) -> BoundingBox:
        return cls(x=float(arr[0]), y=float(arr[1]), w=float(arr[2]), h=float(arr[3]))

    def as_tuple(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.w, self.h)


@dataclass
class Detection:
    """
    A single detection from the vision service.

    Carries no identity: the same physical sign gets a fresh,
    unrelated Detection every frame.
    """
    label: str
    bbox: BoundingBox
    confidence: float
    color_hint: ColorHint = ColorHint.YELLOW

    def is_well_formed(self) -> bool:
        """Non-empty label, finite bbox and confidence."""
        if not isinstance(self.label, str) or not self.label.strip():
            return False
        if not isinstance(self.bbox, BoundingBox) or not self.bbox.is_finite:
            return False
        return _is_finite_number(self.confidence)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> Detection:
        """
        Build a detection from one vision-service record.

        Accepts ``bbox`` as ``[x, y, w, h]`` or ``{"x":..,"y":..,"w":..,"h":..}``.

        Raises:
            MalformedDetectionError: if the record cannot be used
        """
        if not isinstance(payload, Mapping):
            raise MalformedDetectionError(f"record is not an object: {payload!r}")

        label = payload.get("label")
        if not isinstance(label, str) or not label.strip():
            raise MalformedDetectionError("empty or missing label")

        bbox = _parse_bbox(payload.get("bbox"))

        try:
            confidence = float(payload.get("confidence"))
        except (TypeError, ValueError):
            raise MalformedDetectionError(
                f"invalid confidence: {payload.get('confidence')!r}"
            ) from None
        if not math.isfinite(confidence):
            raise MalformedDetectionError("confidence is not finite")

        return cls(
            label=label,
            bbox=bbox,
            confidence=confidence,
            color_hint=ColorHint.parse(payload.get("color")),
        )


def _parse_bbox(raw: Any) -> BoundingBox:
    if isinstance(raw, Mapping):
        values = [raw.get(k) for k in ("x", "y", "w", "h")]
    elif isinstance(raw, (list, tuple)):
        values = list(raw)
    else:
        raise MalformedDetectionError(f"missing bbox: {raw!r}")

    if len(values) != 4:
        raise MalformedDetectionError(f"bbox needs 4 components, got {len(values)}")

    try:
        floats = [float(v) for v in values]
    except (TypeError, ValueError):
        raise MalformedDetectionError(f"non-numeric bbox: {raw!r}") from None

    bbox = BoundingBox(*floats)
    if not bbox.is_finite:
        raise MalformedDetectionError(f"non-finite bbox: {raw!r}")
    return bbox


@dataclass
class TrackedObject:
    """
    A persistent tracked sign or signal.

    Owned exclusively by the tracker's ObjectTable. Once ``label_locked``
    is set the label never changes again.
    """
    object_id: int
    label: str
    raw_bbox: BoundingBox
    smoothed_bbox: BoundingBox
    predicted_bbox: BoundingBox
    confidence: float
    color_hint: ColorHint = ColorHint.YELLOW

    # Motion estimate (dx, dy, dw, dh) per cycle
    velocity: NDArray[np.float64] = field(default_factory=lambda: np.zeros(4))
    velocity_samples: int = 0

    # Lifecycle bookkeeping
    created_at: float = 0.0
    last_seen_at: float = 0.0
    missed_frames: int = 0
    consistent_detections: int = 1
    label_locked: bool = False
    announced: bool = False

    @property
    def has_velocity(self) -> bool:
        return self.velocity_samples > 0

    @property
    def is_coasting(self) -> bool:
        return self.missed_frames > 0

    def snapshot(self) -> TrackSnapshot:
        return TrackSnapshot(
            object_id=self.object_id,
            label=self.label,
            bbox=self.smoothed_bbox,
            color_hint=self.color_hint,
            confidence=self.confidence,
            is_predicted=self.is_coasting,
        )


@dataclass(frozen=True)
class TrackSnapshot:
    """Render-ready view of one tracked object for a single cycle."""
    object_id: int
    label: str
    bbox: BoundingBox
    color_hint: ColorHint
    confidence: float
    is_predicted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.object_id,
            "label": self.label,
            "bbox": list(self.bbox.as_tuple()),
            "color": self.color_hint.value,
            "confidence": self.confidence,
            "is_predicted": self.is_predicted,
        }


@dataclass(frozen=True)
class LockAnnouncement:
    """One combined notification for objects that just became locked."""
    labels: Tuple[str, ...]
    object_ids: Tuple[int, ...]
    timestamp_ms: float


@dataclass
class Assignment:
    """
    Outcome of matching one frame's detections against the table.

    Indices refer to positions in the detection list passed to the matcher.
    """
    matches: Dict[int, int] = field(default_factory=dict)  # detection index -> object id
    unmatched: List[int] = field(default_factory=list)     # eligible for creation
    rejected: List[int] = field(default_factory=list)      # below confidence floor

    @property
    def matched_object_ids(self) -> List[int]:
        return list(self.matches.values())


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass
class TrackingResult:
    """Result from one tracker update cycle."""
    tracks: List[TrackSnapshot]
    announcement: Optional[LockAnnouncement] = None
    new_object_ids: List[int] = field(default_factory=list)
    evicted_object_ids: List[int] = field(default_factory=list)
    dropped_detections: int = 0

    success: bool = True
    error_message: Optional[str] = None
