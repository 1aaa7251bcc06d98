"""
Spoken feedback phrasing.

Turns canonical labels from a lock announcement into the sentence handed
to the speech collaborator. Safety-critical signs are spoken first.
"""

from __future__ import annotations

from typing import Dict, Sequence, Tuple


# Keyed by canonical label; checked in order against the label text.
FEEDBACK_MESSAGES: Tuple[Tuple[str, str], ...] = (
    ("stop sign", "Stop sign detected ahead. Stop."),
    ("do not walk", "Do not walk signal. Stay on curb."),
    ("crosswalk", "Crosswalk detected. Proceed with caution."),
    ("walk signal", "Walk signal. Safe to cross."),
    ("hazard", "Hazard detected. Caution advised."),
    ("red light", "Red light. Stop."),
    ("yellow light", "Yellow light. Prepare to stop."),
    ("green light", "Green light."),
    ("speed limit", "Speed limit sign detected."),
)

PRIORITY_KEYWORDS = ("stop", "no walk", "do not walk", "hazard", "danger")


def feedback_message(label: str) -> str:
    """Human-friendly sentence for one label."""
    text = label.lower().replace("_", " ")
    for key, message in FEEDBACK_MESSAGES:
        if key in text:
            return message
    return f"{text.capitalize()} detected."


def is_priority(label: str) -> bool:
    """True for labels that warrant speaking before anything else."""
    text = label.lower().replace("_", " ")
    return any(keyword in text for keyword in PRIORITY_KEYWORDS)


def compose_utterance(labels: Sequence[str]) -> str:
    """
    One utterance for a lock announcement.

    Priority labels come first; otherwise announcement order is kept.
    Repeated messages are spoken once.
    """
    ordered = [l for l in labels if is_priority(l)] + [l for l in labels if not is_priority(l)]

    seen: Dict[str, None] = {}
    for label in ordered:
        seen.setdefault(feedback_message(label), None)
    return " ".join(seen)
