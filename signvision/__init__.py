"""
SignVision - Stable sign and signal tracking for assistive navigation.

Turns the noisy, identity-less detections of a remote vision service
into persistent tracked objects for overlay rendering, and triggers
exactly one spoken announcement per real-world sign.

Top Priorities (strict order):
1. One announcement per physical object, never repeated
2. Deterministic, explainable behavior
3. Temporal stability (no flicker, no label churn, no jitter)
4. Graceful degradation on bad or missing input
"""

__version__ = "0.1.0"
__author__ = "SignVision Team"
