"""End-to-end tracking cycles: scenarios and invariants."""
import pytest

from signvision.core.config import TrackerConfig
from signvision.core.contracts import BoundingBox, Detection
from signvision.tracking.object_tracker import SignTracker


STEP_MS = 100.0


def _run(tracker, frames, camera_motion=None):
    """Feed a list of per-frame detection lists; return the results."""
    return [
        tracker.update(dets, now=i * STEP_MS, camera_motion=camera_motion)
        for i, dets in enumerate(frames)
    ]


class TestScenarios:

    def test_creation_and_lock(self, detection):
        locked_calls = []
        tracker = SignTracker(on_objects_locked=locked_calls.append)

        first = tracker.update([detection("stop_sign")], now=0.0)
        assert len(first.tracks) == 1
        assert first.announcement is None
        assert not tracker.get_object(first.tracks[0].object_id).label_locked

        second = tracker.update([detection("stop_sign")], now=STEP_MS)
        assert len(second.tracks) == 1
        obj = tracker.get_object(second.tracks[0].object_id)
        assert obj.label_locked
        assert second.announcement.labels == ("stop sign ahead",)
        assert locked_calls == [["stop sign ahead"]]

        third = tracker.update([detection("stop_sign")], now=2 * STEP_MS)
        assert third.announcement is None
        assert locked_calls == [["stop sign ahead"]]

    def test_coasting_then_eviction(self, detection):
        config = TrackerConfig(max_missed_frames=3)
        tracker = SignTracker(config=config)
        results = _run(tracker, [[detection()], [detection()]] + [[]] * 5)
        object_id = results[0].tracks[0].object_id

        for result in results[2:5]:
            assert [t.object_id for t in result.tracks] == [object_id]
            assert result.tracks[0].is_predicted

        assert results[5].tracks == []
        assert results[5].evicted_object_ids == [object_id]
        assert results[6].tracks == []

        again = tracker.update([detection()], now=10 * STEP_MS)
        assert [t.object_id for t in again.tracks] != [object_id]
        assert again.new_object_ids and again.new_object_ids[0] > object_id

    def test_label_noise_does_not_split_objects(self, detection):
        tracker = SignTracker()
        labels = ["stop", "stop_sign", "stop", "stop_sign", "stop"]
        results = _run(tracker, [[detection(label)] for label in labels])

        ids = {t.object_id for r in results for t in r.tracks}
        assert len(ids) == 1
        assert results[1].announcement is not None
        assert tracker.get_object(ids.pop()).label_locked

    def test_low_confidence_never_creates(self, detection):
        tracker = SignTracker()
        results = _run(tracker, [[detection(confidence=0.1)]] * 10)
        assert all(r.tracks == [] for r in results)
        assert tracker.active_track_count == 0


class TestInvariants:

    def _noisy_frames(self, detection):
        return [
            [detection("stop", (0.40, 0.40, 0.1, 0.1)), detection("walk", (0.1, 0.1, 0.05, 0.1), 0.7)],
            [detection("stop_sign", (0.41, 0.40, 0.1, 0.1))],
            [detection("STOP", (0.42, 0.41, 0.1, 0.1)), detection("no_walk", (0.7, 0.2, 0.05, 0.1))],
            [],
            [detection("stop", (0.44, 0.41, 0.1, 0.1)), detection("no walk", (0.7, 0.2, 0.05, 0.1))],
            [detection("hazard", (0.44, 0.41, 0.1, 0.1), 0.2)],
            [],
            [],
            [],
            [],
            [detection("stop", (0.40, 0.40, 0.1, 0.1))],
        ]

    def test_determinism(self, detection):
        frames = self._noisy_frames(detection)
        a = _run(SignTracker(), frames, camera_motion=(0.005, 0.0))
        b = _run(SignTracker(), frames, camera_motion=(0.005, 0.0))

        assert [[t.to_dict() for t in r.tracks] for r in a] == [[t.to_dict() for t in r.tracks] for r in b]
        assert [r.announcement for r in a] == [r.announcement for r in b]

    def test_lock_monotonic_and_single_announcement(self, detection):
        tracker = SignTracker()
        locked_labels = {}
        announced = []

        for i, frame in enumerate(self._noisy_frames(detection)):
            result = tracker.update(frame, now=i * STEP_MS)
            if result.announcement is not None:
                announced.extend(result.announcement.object_ids)
            for track in result.tracks:
                obj = tracker.get_object(track.object_id)
                if obj.label_locked:
                    locked_labels.setdefault(obj.object_id, obj.label)
                    assert obj.label == locked_labels[obj.object_id]

        assert len(announced) == len(set(announced))
        assert set(announced) == set(locked_labels)

    def test_evicted_ids_never_reappear(self, detection):
        tracker = SignTracker()
        evicted = set()
        for i, frame in enumerate(self._noisy_frames(detection)):
            result = tracker.update(frame, now=i * STEP_MS)
            assert not evicted & {t.object_id for t in result.tracks}
            evicted.update(result.evicted_object_ids)
        assert evicted

    def test_independent_instances(self, detection):
        a, b = SignTracker(), SignTracker()
        a.update([detection()], now=0.0)
        assert b.active_track_count == 0
        assert b.update([detection()], now=0.0).tracks[0].object_id == 1


class TestTrackerBehaviour:

    def test_empty_frame_ages_objects(self, tracker, detection):
        tracker.update([detection()], now=0.0)
        result = tracker.update([], now=STEP_MS)
        assert result.tracks[0].is_predicted
        assert tracker.get_object(result.tracks[0].object_id).missed_frames == 1

    def test_age_eviction(self, detection):
        tracker = SignTracker(config=TrackerConfig(max_age_ms=1000, max_missed_frames=10))
        tracker.update([detection()], now=0.0)
        result = tracker.update([], now=1500.0)
        assert result.tracks == []
        assert len(result.evicted_object_ids) == 1

    def test_malformed_detections_dropped(self, tracker, detection):
        bad = [
            Detection(label="", bbox=BoundingBox(0.1, 0.1, 0.1, 0.1), confidence=0.9),
            Detection(label="stop", bbox=BoundingBox(float("nan"), 0.1, 0.1, 0.1), confidence=0.9),
            Detection(label="stop", bbox=BoundingBox(0.1, 0.1, 0.1, 0.1), confidence=float("nan")),
            "not a detection",
        ]
        result = tracker.update(bad + [detection()], now=0.0)
        assert result.dropped_detections == 4
        assert result.success
        assert len(result.tracks) == 1

    def test_non_numeric_fields_dropped(self, tracker, detection):
        bad = [
            Detection(label="stop", bbox=BoundingBox(0.1, 0.1, 0.1, 0.1), confidence="0.9"),
            Detection(label="stop", bbox=BoundingBox("0.1", 0.1, 0.1, 0.1), confidence=0.9),
            Detection(label="stop", bbox=BoundingBox(0.1, None, 0.1, 0.1), confidence=0.9),
            Detection(label="stop", bbox=BoundingBox(0.1, 0.1, 0.1, 0.1), confidence=True),
        ]
        result = tracker.update(bad + [detection()], now=0.0)
        assert result.success
        assert result.dropped_detections == 4
        assert [t.label for t in result.tracks] == ["stop sign ahead"]

    def test_degenerate_box_matches_by_center(self, tracker, detection):
        first = tracker.update([detection(bbox=(0.4, 0.4, 0.1, 0.1))], now=0.0)
        second = tracker.update([detection(bbox=(0.45, 0.45, 0.0, 0.0))], now=STEP_MS)
        assert [t.object_id for t in second.tracks] == [first.tracks[0].object_id]
        assert not second.tracks[0].is_predicted

    def test_camera_motion_shifts_prediction(self, tracker, detection):
        tracker.update([detection(bbox=(0.40, 0.4, 0.1, 0.1))], now=0.0)
        tracker.update([detection(bbox=(0.42, 0.4, 0.1, 0.1))], now=STEP_MS)
        result = tracker.update([], now=2 * STEP_MS, camera_motion=(0.05, 0.0))

        # velocity dx = 0.3 * 0.02; smoothing alpha = 0.3 + 2 * 0.006
        smoothed_x = 0.40 + 0.312 * 0.02
        track = result.tracks[0]
        assert track.is_predicted
        assert track.bbox.x == pytest.approx(smoothed_x + 0.006 - 0.05)
        assert track.bbox.y == pytest.approx(0.4)
        assert track.bbox.w == pytest.approx(0.1)

    def test_invalid_camera_motion_ignored(self, tracker, detection):
        tracker.update([detection(bbox=(0.40, 0.4, 0.1, 0.1))], now=0.0)
        tracker.update([detection(bbox=(0.42, 0.4, 0.1, 0.1))], now=STEP_MS)
        a = tracker.update([], now=2 * STEP_MS, camera_motion=(float("nan"), 0.0))
        assert a.success
        assert a.tracks[0].bbox.x == pytest.approx(0.40 + 0.312 * 0.02 + 0.006)

    def test_announcement_cap_across_cycles(self, detection):
        tracker = SignTracker()
        frame = [detection(bbox=(x, 0.1, 0.05, 0.05)) for x in (0.0, 0.2, 0.4, 0.6, 0.8)]
        results = _run(tracker, [frame, frame, frame])

        assert results[0].announcement is None
        assert len(results[1].announcement.labels) == 3
        assert len(results[2].announcement.labels) == 2
        assert set(results[1].announcement.object_ids).isdisjoint(results[2].announcement.object_ids)

    def test_output_fields(self, tracker, detection):
        result = tracker.update([detection("stop_sign", confidence=0.8)], now=0.0)
        track = result.tracks[0]
        assert track.label == "stop sign ahead"
        assert track.bbox == BoundingBox(0.4, 0.4, 0.1, 0.1)
        assert track.color_hint.value == "red"
        assert track.confidence == pytest.approx(0.8)
        assert track.is_predicted is False

    def test_get_objects_by_label(self, tracker, detection):
        tracker.update([detection("stop"), detection("walk", (0.1, 0.1, 0.1, 0.1))], now=0.0)
        assert [t.label for t in tracker.get_objects_by_label("stop_sign")] == ["stop sign ahead"]

    def test_reset_keeps_id_counter(self, tracker, detection):
        first = tracker.update([detection()], now=0.0).tracks[0].object_id
        tracker.reset()
        assert tracker.active_track_count == 0
        assert tracker.update([detection()], now=STEP_MS).tracks[0].object_id == first + 1


class TestListeners:

    def test_failing_listener_does_not_abort_cycle(self, detection):
        def boom(labels):
            raise RuntimeError("speaker unavailable")

        tracker = SignTracker(on_objects_locked=boom, on_object_evicted=lambda i: 1 / 0)
        tracker.update([detection()], now=0.0)
        result = tracker.update([detection()], now=STEP_MS)
        assert result.success
        assert result.announcement is not None
        assert tracker.get_object(result.tracks[0].object_id).announced

    def test_eviction_listener(self, detection):
        evicted = []
        tracker = SignTracker(config=TrackerConfig(max_missed_frames=0), on_object_evicted=evicted.append)
        object_id = tracker.update([detection()], now=0.0).tracks[0].object_id
        tracker.update([], now=STEP_MS)
        assert evicted == [object_id]

    def test_reentrant_update_rejected(self, detection):
        nested = []
        tracker = SignTracker()

        def relock(labels):
            nested.append(tracker.update([], now=999.0))

        tracker.on_objects_locked = relock
        tracker.update([detection()], now=0.0)
        outer = tracker.update([detection()], now=STEP_MS)

        assert outer.success
        assert len(nested) == 1
        assert not nested[0].success
        assert tracker.cycle_count == 2
