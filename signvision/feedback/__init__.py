"""
Feedback Module.

Responsibilities:
- Spoken phrasing for locked signs
- Priority ordering of safety-critical announcements
"""

from .messages import compose_utterance, feedback_message, is_priority
