"""
Core data contracts and configuration for the SignVision engine.

Per-cycle execution order (NEVER REORDER):
1. Parse vision-service response into detections
2. Predict positions of existing tracks
3. Associate detections with predictions
4. Update matched tracks (velocity, smoothing, lifecycle)
5. Create tracks for unmatched detections
6. Evict stale tracks
7. Announce newly locked tracks
"""

from .contracts import (
    Assignment,
    BoundingBox,
    ColorHint,
    Detection,
    LockAnnouncement,
    MalformedDetectionError,
    TrackedObject,
    TrackingResult,
    TrackSnapshot,
)
from .config import SessionConfig, Settings, TrackerConfig, load_settings
