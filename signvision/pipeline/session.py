"""
Detection Session.

Glue between the outside world and the tracker:

1. Throttle frames to the processing interval
2. Parse the vision-service reply
3. Run one tracker cycle
4. Phrase lock announcements for speech
5. Pause on a suspected fall

Camera capture, network upload, drawing and speech output stay with the
caller; the session only decides and reports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from loguru import logger

from signvision.capture.vision_response import parse_response
from signvision.core.config import SessionConfig, TrackerConfig
from signvision.core.contracts import LockAnnouncement, TrackSnapshot
from signvision.feedback.messages import compose_utterance
from signvision.safety.fall_detector import FallDetector, FallEvent
from signvision.tracking.motion import CameraMotion
from signvision.tracking.object_tracker import SignTracker


AnnouncementListener = Callable[[LockAnnouncement, Optional[str]], None]
FallListener = Callable[[FallEvent], None]


@dataclass
class SessionOutput:
    """Everything the caller needs after one processed frame."""
    tracks: List[TrackSnapshot] = field(default_factory=list)
    announcement: Optional[LockAnnouncement] = None
    utterance: Optional[str] = None
    dropped_detections: int = 0
    processed: bool = True
    processing_time_ms: Optional[float] = None

    success: bool = True
    error_message: Optional[str] = None


class DetectionSession:
    """
    Runs the tracker for a live detection session.

    Usage:
        session = DetectionSession(on_announcement=speak)
        session.start()
        if session.is_due(now_ms):
            session.mark_frame_sent(now_ms)
            output = session.handle_response(reply_json, now_ms, camera_motion)
    """

    def __init__(
        self,
        tracker_config: Optional[TrackerConfig] = None,
        session_config: Optional[SessionConfig] = None,
        on_announcement: Optional[AnnouncementListener] = None,
        on_fall: Optional[FallListener] = None,
    ):
        """
        Initialize detection session.

        Args:
            tracker_config: Tracker tunables
            session_config: Throttling, voice and fall settings
            on_announcement: Called with each announcement and its utterance
                (utterance is None when voice is disabled)
            on_fall: Called when a fall is detected
        """
        self.config = session_config or SessionConfig()
        self.tracker = SignTracker(config=tracker_config)
        self.fall_detector = FallDetector(
            threshold=self.config.fall_threshold,
            cooldown_ms=self.config.fall_cooldown_ms,
        )

        self._listeners: List[AnnouncementListener] = []
        if on_announcement is not None:
            self._listeners.append(on_announcement)
        self._fall_listeners: List[FallListener] = []
        if on_fall is not None:
            self._fall_listeners.append(on_fall)

        self._is_running = False
        self._is_paused = False
        self._last_frame_ms: Optional[float] = None
        self._frames_processed = 0

    # ------------------------------------------------------------
    # State
    # ------------------------------------------------------------

    def start(self):
        """Start (or restart) processing."""
        self._is_running = True
        self._is_paused = False
        logger.info("Detection started")

    def stop(self):
        self._is_running = False
        logger.info("Detection stopped")

    def pause(self):
        if self._is_running and not self._is_paused:
            self._is_paused = True
            logger.info("Detection paused")

    def resume(self):
        if self._is_running and self._is_paused:
            self._is_paused = False
            logger.info("Detection resumed")

    def toggle_pause(self):
        if self._is_paused:
            self.resume()
        else:
            self.pause()

    @property
    def is_running(self) -> bool:
        return self._is_running

    @property
    def is_paused(self) -> bool:
        return self._is_paused

    @property
    def is_active(self) -> bool:
        return self._is_running and not self._is_paused

    @property
    def frames_processed(self) -> int:
        return self._frames_processed

    # ------------------------------------------------------------
    # Frame flow
    # ------------------------------------------------------------

    def is_due(self, now_ms: float) -> bool:
        """Whether a new frame should be captured and sent now."""
        if not self.is_active:
            return False
        if self._last_frame_ms is None:
            return True
        return now_ms - self._last_frame_ms >= self.config.processing_interval_ms

    def mark_frame_sent(self, now_ms: float):
        self._last_frame_ms = now_ms

    def handle_response(
        self,
        payload: Union[str, bytes, dict, None],
        now_ms: float,
        camera_motion: Optional[CameraMotion] = None,
    ) -> SessionOutput:
        """
        Process one vision-service reply.

        Replies arriving while paused or stopped are discarded; the
        tracker is left untouched so nothing ages during a pause.

        Args:
            payload: Reply JSON (text or decoded)
            now_ms: Monotonic timestamp of the frame, milliseconds
            camera_motion: Camera pan since the previous frame

        Returns:
            SessionOutput for rendering and speech
        """
        if not self.is_active:
            logger.debug("Ignoring vision response while inactive")
            return SessionOutput(tracks=self.tracker.tracks(), processed=False)

        response = parse_response(payload)
        result = self.tracker.update(response.detections, now_ms, camera_motion)
        self._frames_processed += 1

        utterance = None
        if result.announcement is not None:
            if self.config.enable_voice:
                utterance = compose_utterance(result.announcement.labels)
            self._dispatch_announcement(result.announcement, utterance)

        error_message = response.error_message or result.error_message
        return SessionOutput(
            tracks=result.tracks,
            announcement=result.announcement,
            utterance=utterance,
            dropped_detections=response.dropped + result.dropped_detections,
            processing_time_ms=response.processing_time_ms,
            success=response.success and result.success,
            error_message=error_message,
        )

    def handle_device_motion(
        self,
        ax: float,
        ay: float,
        az: float,
        now_ms: float,
    ) -> Optional[FallEvent]:
        """Feed an acceleration sample; pauses detection on a fall."""
        event = self.fall_detector.update(ax, ay, az, now_ms)
        if event is None:
            return None

        if self.config.pause_on_fall and self.is_active:
            self.pause()
            logger.warning("Fall detected! Paused for safety.")

        for listener in self._fall_listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Fall listener failed")
        return event

    def add_announcement_listener(self, listener: AnnouncementListener):
        self._listeners.append(listener)

    def add_fall_listener(self, listener: FallListener):
        self._fall_listeners.append(listener)

    def _dispatch_announcement(self, announcement: LockAnnouncement, utterance: Optional[str]):
        if utterance:
            logger.info(f"Announcing: {utterance}")
        for listener in self._listeners:
            try:
                listener(announcement, utterance)
            except Exception:
                logger.exception("Announcement listener failed")

    def reset(self):
        """Forget all tracks and timing; keeps running state."""
        self.tracker.reset()
        self.fall_detector.reset()
        self._last_frame_ms = None
        self._frames_processed = 0
        logger.info("Detection session reset")
