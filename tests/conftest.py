"""Shared fixtures for SignVision tests."""
import pytest

from signvision.core.config import TrackerConfig
from signvision.core.contracts import BoundingBox, ColorHint, Detection
from signvision.tracking.object_tracker import SignTracker


def make_detection(label="stop_sign", bbox=(0.4, 0.4, 0.1, 0.1), confidence=0.9, color=ColorHint.RED):
    return Detection(label=label, bbox=BoundingBox(*bbox), confidence=confidence, color_hint=color)


@pytest.fixture
def config():
    return TrackerConfig()


@pytest.fixture
def tracker(config):
    return SignTracker(config=config)


@pytest.fixture
def detection():
    return make_detection
