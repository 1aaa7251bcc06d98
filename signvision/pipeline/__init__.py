"""
Pipeline Module.

Runs the tracker inside a live detection session.
"""

from .session import DetectionSession, SessionOutput
