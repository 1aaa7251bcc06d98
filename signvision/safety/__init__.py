"""
Safety Module.

Responsibilities:
- Fall detection from device acceleration
"""

from .fall_detector import FallDetector, FallEvent
