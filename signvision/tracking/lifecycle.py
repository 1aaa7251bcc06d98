"""
Track lifecycle: creation, label locking, aging and eviction.

State per object:
    Pending (consistent_detections < lock_threshold) -> Locked
    Active (missed_frames == 0) <-> Coasting (missed_frames > 0)
    terminal: Evicted (removed from the table, id retired)
"""

from __future__ import annotations

from typing import Dict, Iterator, List, Optional

import numpy as np
from loguru import logger

from signvision.core.config import TrackerConfig
from signvision.core.contracts import Detection, TrackedObject
from .label_normalizer import LabelNormalizer
from .motion import MotionPredictor, Smoother


class ObjectTable:
    """
    Owned arena of tracked objects, indexed by stable integer id.

    Iteration follows creation order. Ids come from a counter that only
    moves forward, so an evicted id is never handed out again.
    """

    def __init__(self):
        self._objects: Dict[int, TrackedObject] = {}
        self._next_id: int = 1

    def allocate_id(self) -> int:
        object_id = self._next_id
        self._next_id += 1
        return object_id

    def insert(self, obj: TrackedObject):
        if obj.object_id in self._objects:
            raise KeyError(f"Object id already in table: {obj.object_id}")
        self._objects[obj.object_id] = obj

    def remove(self, object_id: int) -> TrackedObject:
        return self._objects.pop(object_id)

    def get(self, object_id: int) -> Optional[TrackedObject]:
        return self._objects.get(object_id)

    def __getitem__(self, object_id: int) -> TrackedObject:
        return self._objects[object_id]

    def __contains__(self, object_id: int) -> bool:
        return object_id in self._objects

    def __iter__(self) -> Iterator[TrackedObject]:
        return iter(list(self._objects.values()))

    def __len__(self) -> int:
        return len(self._objects)

    def clear(self):
        """Drop all objects. The id counter keeps counting."""
        self._objects.clear()


class LifecycleManager:
    """
    Creates, updates and evicts tracked objects in an ObjectTable.

    Guarantees:
    - A locked label is never rewritten
    - Eviction is unconditional and irreversible
    """

    LOCKED_CONFIDENCE_DECAY = 0.9

    def __init__(
        self,
        table: ObjectTable,
        config: TrackerConfig,
        normalizer: LabelNormalizer,
        predictor: MotionPredictor,
        smoother: Smoother,
    ):
        self.table = table
        self.config = config
        self.normalizer = normalizer
        self.predictor = predictor
        self.smoother = smoother

    def create(self, detection: Detection, now: float) -> TrackedObject:
        """
        Start tracking an unmatched detection.

        Geometry is taken from the detection as-is, so a new object shows
        up without smoothing lag.
        """
        obj = TrackedObject(
            object_id=self.table.allocate_id(),
            label=self.normalizer.normalize(detection.label),
            raw_bbox=detection.bbox,
            smoothed_bbox=detection.bbox,
            predicted_bbox=detection.bbox,
            confidence=detection.confidence,
            color_hint=detection.color_hint,
            velocity=np.zeros(4),
            created_at=now,
            last_seen_at=now,
            missed_frames=0,
            consistent_detections=1,
        )
        self.table.insert(obj)
        logger.debug(f"New track created: {obj.object_id} '{obj.label}' ({detection.confidence:.2f})")

        self._maybe_lock(obj)
        return obj

    def apply_match(self, obj: TrackedObject, detection: Detection, now: float):
        """Fold a matched detection into an object's state."""
        previous = obj.raw_bbox
        # raw_bbox is stale by one cycle per miss
        elapsed = obj.missed_frames + 1

        obj.velocity = self.predictor.update_velocity(
            obj.velocity, previous, detection.bbox, cycles=elapsed,
        )
        obj.velocity_samples += 1
        obj.raw_bbox = detection.bbox
        obj.smoothed_bbox = self.smoother.smooth(obj.smoothed_bbox, detection.bbox, obj.velocity)

        obj.missed_frames = 0
        obj.last_seen_at = now
        obj.color_hint = detection.color_hint

        if obj.label_locked:
            obj.confidence = (
                self.LOCKED_CONFIDENCE_DECAY * obj.confidence
                + (1.0 - self.LOCKED_CONFIDENCE_DECAY) * detection.confidence
            )
            return

        obj.label = self.normalizer.normalize(detection.label)
        obj.confidence = detection.confidence
        obj.consistent_detections += 1
        self._maybe_lock(obj)

    def apply_miss(self, obj: TrackedObject):
        """Age an unmatched object; it coasts on its predicted box."""
        obj.missed_frames += 1
        obj.smoothed_bbox = obj.predicted_bbox
        logger.debug(f"Track {obj.object_id} coasting ({obj.missed_frames} missed)")

    def is_stale(self, obj: TrackedObject, now: float) -> bool:
        return (
            obj.missed_frames > self.config.max_missed_frames
            or now - obj.last_seen_at > self.config.max_age_ms
        )

    def evict_stale(self, now: float) -> List[int]:
        """
        Remove every stale object from the table.

        Returns:
            Evicted ids in table order
        """
        evicted = []
        for obj in self.table:
            if self.is_stale(obj, now):
                self.table.remove(obj.object_id)
                evicted.append(obj.object_id)
                logger.debug(
                    f"Track evicted: {obj.object_id} '{obj.label}' "
                    f"(missed {obj.missed_frames}, last seen {now - obj.last_seen_at:.0f}ms ago)"
                )
        return evicted

    def _maybe_lock(self, obj: TrackedObject):
        if not obj.label_locked and obj.consistent_detections >= self.config.lock_threshold:
            obj.label_locked = True
            logger.debug(f"Track {obj.object_id} locked as '{obj.label}'")
