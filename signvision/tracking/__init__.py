"""
Sign Tracking Module.

Responsibilities:
- Canonical labels from noisy vision-service labels
- Persistent object ID assignment
- Velocity prediction and adaptive smoothing
- Label locking and one-shot announcements
"""

from .announcement_gate import AnnouncementGate
from .association import associate, iou
from .label_normalizer import LabelNormalizer, labels_equivalent, normalize
from .lifecycle import LifecycleManager, ObjectTable
from .motion import MotionPredictor, Smoother
from .object_tracker import SignTracker
