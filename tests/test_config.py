"""Tests for settings loading."""
import pytest

from signvision.core.config import (
    SessionConfig,
    Settings,
    TrackerConfig,
    load_settings,
    settings_from_dict,
)


class TestTrackerConfig:

    def test_defaults(self):
        config = TrackerConfig()
        assert config.match_iou_threshold == 0.3
        assert config.center_dist_fallback == 0.1
        assert config.min_confidence_to_create == 0.4
        assert config.lock_threshold == 2
        assert config.max_missed_frames == 3
        assert config.max_age_ms == 5000.0
        assert config.base_smoothing_alpha == 0.3
        assert config.alpha_max == 0.8
        assert config.announcement_cap == 3

    @pytest.mark.parametrize("overrides", [
        {"match_iou_threshold": 1.5},
        {"center_dist_fallback": -0.1},
        {"min_confidence_to_create": -0.2},
        {"lock_threshold": 0},
        {"max_missed_frames": -1},
        {"max_age_ms": 0},
        {"base_smoothing_alpha": 0.0},
        {"base_smoothing_alpha": 0.9, "alpha_max": 0.8},
        {"announcement_cap": 0},
    ])
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            TrackerConfig(**overrides)


class TestLoadSettings:

    def test_from_dict(self):
        settings = settings_from_dict({
            "tracker": {"lock_threshold": 3, "bogus": 1},
            "session": {"enable_voice": False},
        })
        assert settings.tracker.lock_threshold == 3
        assert settings.tracker.max_missed_frames == 3
        assert settings.session.enable_voice is False

    def test_empty(self):
        assert settings_from_dict(None) == Settings()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "tracker:\n"
            "  max_missed_frames: 5\n"
            "  alpha_max: 0.9\n"
            "session:\n"
            "  processing_interval_ms: 500\n"
        )
        settings = load_settings(path)
        assert settings.tracker.max_missed_frames == 5
        assert settings.tracker.alpha_max == 0.9
        assert settings.session.processing_interval_ms == 500
        assert settings.session.fall_threshold == SessionConfig().fall_threshold

    def test_empty_yaml_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_settings(path) == Settings()

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_settings(tmp_path / "nope.yaml") == Settings()

    def test_bundled_settings(self):
        settings = load_settings()
        assert settings.tracker == TrackerConfig()

    def test_invalid_yaml_values(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("tracker:\n  lock_threshold: 0\n")
        with pytest.raises(ValueError):
            load_settings(path)
