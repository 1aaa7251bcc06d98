"""
Sign Tracker with Persistent Identity.

Guarantees:
- Stable identity while an object keeps being redetected or coasts
- A locked label never changes
- Each object is announced at most once
- A bad record or a failing listener never aborts a cycle
"""

from __future__ import annotations

from typing import Callable, List, Optional, Sequence

from loguru import logger

from signvision.core.config import TrackerConfig
from signvision.core.contracts import (
    Detection,
    TrackedObject,
    TrackingResult,
    TrackSnapshot,
)
from .announcement_gate import AnnouncementGate
from .association import associate
from .label_normalizer import LabelNormalizer
from .lifecycle import LifecycleManager, ObjectTable
from .motion import CameraMotion, MotionPredictor, Smoother, sanitize_camera_motion


LockedCallback = Callable[[List[str]], None]
EvictedCallback = Callable[[int], None]


class SignTracker:
    """
    Turns per-frame detections into persistent, smoothed tracks.

    One ``update`` call runs a full cycle: predict, associate, update
    matched, age unmatched, create, evict, announce. Not thread-safe and
    not reentrant; the caller owns throttling.

    Usage:
        tracker = SignTracker(on_objects_locked=speak)
        result = tracker.update(detections, now_ms, camera_motion=(0.01, 0.0))
        for track in result.tracks:
            draw(track)
    """

    def __init__(
        self,
        config: Optional[TrackerConfig] = None,
        normalizer: Optional[LabelNormalizer] = None,
        on_objects_locked: Optional[LockedCallback] = None,
        on_object_evicted: Optional[EvictedCallback] = None,
    ):
        """
        Initialize sign tracker.

        Args:
            config: Tracker tunables (defaults if None)
            normalizer: Label normalizer (default alias table if None)
            on_objects_locked: Called with the labels of newly locked objects
            on_object_evicted: Called with the id of each evicted object
        """
        self.config = config or TrackerConfig()
        self.normalizer = normalizer or LabelNormalizer()
        self.on_objects_locked = on_objects_locked
        self.on_object_evicted = on_object_evicted

        self._table = ObjectTable()
        self._predictor = MotionPredictor(self.config)
        self._smoother = Smoother(self.config)
        self._lifecycle = LifecycleManager(
            self._table, self.config, self.normalizer, self._predictor, self._smoother,
        )
        self._gate = AnnouncementGate(cap=self.config.announcement_cap)

        self._in_update = False
        self._cycle: int = 0

    def update(
        self,
        detections: Sequence[Detection],
        now: float,
        camera_motion: Optional[CameraMotion] = None,
    ) -> TrackingResult:
        """
        Run one tracking cycle.

        Args:
            detections: Detections from the current frame, in service order
            now: Monotonic timestamp in milliseconds
            camera_motion: Camera pan (dx, dy) since the previous cycle,
                normalized to frame size; None means no estimate

        Returns:
            TrackingResult with the render list and any announcement
        """
        if self._in_update:
            logger.error("SignTracker.update called re-entrantly; ignoring nested call")
            return TrackingResult(
                tracks=self.tracks(),
                success=False,
                error_message="re-entrant update",
            )

        self._in_update = True
        try:
            return self._run_cycle(detections, now, sanitize_camera_motion(camera_motion))
        finally:
            self._in_update = False

    def _run_cycle(
        self,
        detections: Sequence[Detection],
        now: float,
        camera_motion: CameraMotion,
    ) -> TrackingResult:
        self._cycle += 1

        valid = [d for d in detections if isinstance(d, Detection) and d.is_well_formed()]
        dropped = len(detections) - len(valid)
        if dropped:
            logger.warning(f"Dropped {dropped} malformed detection(s) in cycle {self._cycle}")

        # Predict new positions for existing tracks
        for obj in self._table:
            obj.predicted_bbox = self._predictor.predict(obj, camera_motion)

        objects = list(self._table)
        assignment = associate(valid, objects, self.config, self.normalizer)

        # Update matched tracks
        for det_idx, object_id in assignment.matches.items():
            self._lifecycle.apply_match(self._table[object_id], valid[det_idx], now)

        matched_ids = set(assignment.matches.values())
        for obj in objects:
            if obj.object_id not in matched_ids:
                self._lifecycle.apply_miss(obj)

        # Create new tracks for unmatched detections
        new_ids = [
            self._lifecycle.create(valid[det_idx], now).object_id
            for det_idx in assignment.unmatched
        ]

        evicted_ids = self._lifecycle.evict_stale(now)
        announcement = self._gate.collect(self._table, now)

        self._notify(announcement, evicted_ids)

        return TrackingResult(
            tracks=self.tracks(),
            announcement=announcement,
            new_object_ids=new_ids,
            evicted_object_ids=evicted_ids,
            dropped_detections=dropped,
        )

    def _notify(self, announcement, evicted_ids: List[int]):
        if announcement is not None:
            logger.info(f"Objects locked: {', '.join(announcement.labels)}")
            if self.on_objects_locked is not None:
                try:
                    self.on_objects_locked(list(announcement.labels))
                except Exception:
                    logger.exception("on_objects_locked listener failed")

        if self.on_object_evicted is not None:
            for object_id in evicted_ids:
                try:
                    self.on_object_evicted(object_id)
                except Exception:
                    logger.exception(f"on_object_evicted listener failed for {object_id}")

    def tracks(self) -> List[TrackSnapshot]:
        """Render list for every currently held object, in table order."""
        return [obj.snapshot() for obj in self._table]

    def get_object(self, object_id: int) -> Optional[TrackedObject]:
        """Get the live state of an object by id."""
        return self._table.get(object_id)

    def get_objects_by_label(self, label: str) -> List[TrackSnapshot]:
        """Get all held objects whose canonical label matches ``label``."""
        canonical = self.normalizer.normalize(label)
        return [obj.snapshot() for obj in self._table if obj.label == canonical]

    def reset(self):
        """Drop all tracks. Ids already handed out are not reused."""
        self._table.clear()
        self._cycle = 0
        logger.info("Sign tracker reset")

    @property
    def active_track_count(self) -> int:
        """Number of currently held tracks."""
        return len(self._table)

    @property
    def cycle_count(self) -> int:
        return self._cycle
