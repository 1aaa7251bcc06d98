"""
Detection-to-track association.

Greedy, per-detection matching in input order:
- Only objects with an equivalent canonical label are candidates
- Overlap is measured against both the predicted and the smoothed box
- A center-distance fallback rescues matches for tiny or degenerate boxes

Greedy is not globally optimal: an earlier, worse-fitting detection can
claim an object that a later detection fits better. This order
dependence is kept on purpose for behavioural compatibility.
"""

from __future__ import annotations

from typing import List, Sequence

import numpy as np
from numpy.typing import NDArray

from signvision.core.config import TrackerConfig
from signvision.core.contracts import Assignment, BoundingBox, Detection, TrackedObject
from .label_normalizer import LabelNormalizer


IOU_WEIGHT = 0.7
PROXIMITY_WEIGHT = 0.3


def iou(a: BoundingBox, b: BoundingBox) -> float:
    """Intersection over Union of two (x, y, w, h) boxes; 0 for degenerate boxes."""
    return a.iou(b)


def batch_iou(box: BoundingBox, others: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    IoU of one box against an (N, 4) array of (x, y, w, h) boxes.

    Degenerate boxes on either side score 0.
    """
    if others.size == 0:
        return np.zeros(0)
    if box.is_degenerate:
        return np.zeros(len(others))

    x1 = np.maximum(box.x, others[:, 0])
    y1 = np.maximum(box.y, others[:, 1])
    x2 = np.minimum(box.x + box.w, others[:, 0] + others[:, 2])
    y2 = np.minimum(box.y + box.h, others[:, 1] + others[:, 3])

    intersection = np.clip(x2 - x1, 0.0, None) * np.clip(y2 - y1, 0.0, None)

    valid = (others[:, 2] > 0) & (others[:, 3] > 0) & np.all(np.isfinite(others), axis=1)
    other_area = np.where(valid, others[:, 2] * others[:, 3], 0.0)
    union = box.area + other_area - intersection

    result = np.zeros(len(others))
    ok = valid & (union > 0)
    result[ok] = intersection[ok] / union[ok]
    return result


def match_score(overlap: float, center_dist: float) -> float:
    """Combined score: mostly overlap, partly proximity."""
    return IOU_WEIGHT * overlap + PROXIMITY_WEIGHT * (1.0 / (1.0 + center_dist))


def associate(
    detections: Sequence[Detection],
    objects: Sequence[TrackedObject],
    config: TrackerConfig,
    normalizer: LabelNormalizer,
) -> Assignment:
    """
    Match this frame's detections against tracked objects.

    Pure: neither detections nor objects are modified. Objects must
    already carry this cycle's ``predicted_bbox``.

    Args:
        detections: Current frame's well-formed detections, in input order
        objects: Tracked objects in table order
        config: Matching thresholds
        normalizer: Label normalizer used to compare labels

    Returns:
        Assignment of detection indices to object ids
    """
    assignment = Assignment()
    claimed = set()

    predicted = np.array([o.predicted_bbox.as_array() for o in objects]).reshape(-1, 4)
    smoothed = np.array([o.smoothed_bbox.as_array() for o in objects]).reshape(-1, 4)
    predicted_centers = predicted[:, :2] + predicted[:, 2:] / 2.0
    smoothed_centers = smoothed[:, :2] + smoothed[:, 2:] / 2.0

    for det_idx, detection in enumerate(detections):
        if detection.confidence < config.min_confidence_to_create:
            assignment.rejected.append(det_idx)
            continue

        canonical = normalizer.normalize(detection.label)
        candidates: List[int] = [
            i for i, obj in enumerate(objects)
            if obj.object_id not in claimed and obj.label == canonical
        ]

        best_idx = None
        best_score = -np.inf

        if candidates:
            idx = np.array(candidates)
            overlaps = np.maximum(
                batch_iou(detection.bbox, predicted[idx]),
                batch_iou(detection.bbox, smoothed[idx]),
            )
            det_cx, det_cy = detection.bbox.center
            dists = np.minimum(
                np.hypot(predicted_centers[idx, 0] - det_cx, predicted_centers[idx, 1] - det_cy),
                np.hypot(smoothed_centers[idx, 0] - det_cx, smoothed_centers[idx, 1] - det_cy),
            )

            for k, obj_idx in enumerate(candidates):
                overlap = float(overlaps[k])
                dist = float(dists[k])
                if not (overlap > config.match_iou_threshold or dist < config.center_dist_fallback):
                    continue
                score = match_score(overlap, dist)
                # strict '>' keeps the earliest (lowest id) object on ties
                if score > best_score:
                    best_score = score
                    best_idx = obj_idx

        if best_idx is None:
            assignment.unmatched.append(det_idx)
        else:
            object_id = objects[best_idx].object_id
            assignment.matches[det_idx] = object_id
            claimed.add(object_id)

    return assignment
