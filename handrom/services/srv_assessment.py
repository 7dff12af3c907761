"""
Assessment Service for HANDROM.

Wraps a SessionTracker in the countdown -> fixed-duration capture ->
stop -> finalize lifecycle. Frames are pushed by the external tracker;
a wall-clock deadline timer stops the session even if frames stop
arriving.
"""

import logging
import threading
import time
import uuid
from typing import Any, Callable, Dict, Optional

from handrom.assessment.core.data_types import FrameMeasurement, LandmarkFrame
from handrom.assessment.core.tracker import (
    SessionPhase, SessionResult, SessionTracker, TrackerConfig
)
from handrom.assessment.modules.scoring import (
    interpret_deviation, interpret_wrist, score_kapandji, score_tam
)
from handrom.assessment.utils.logger import LogCategory, SessionLogger, create_session_logger
from handrom.core.config import settings
from handrom.helpers.enums import AssessmentKind, Finger, Handedness
from handrom.schemas.sche_landmark import parse_frame
from handrom.schemas.sche_session_result import SessionRecord

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


def thread_timer(interval: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(interval, callback)
    timer.daemon = True
    return timer


def score_session(result: SessionResult) -> Dict[str, Any]:
    """Run the scorers that apply to a finalized result, keyed by assessment."""
    kind = result.kind
    scores: Dict[str, Any] = {}
    rom = {f: v for f, v in result.finger_rom().items() if f is not Finger.THUMB}
    if kind in (None, AssessmentKind.TAM) and rom:
        scores[AssessmentKind.TAM.value] = score_tam(rom)
    if kind in (None, AssessmentKind.KAPANDJI):
        scores[AssessmentKind.KAPANDJI.value] = score_kapandji(result.kapandji_checkpoint)
    if kind in (None, AssessmentKind.WRIST_FLEXION):
        scores[AssessmentKind.WRIST_FLEXION.value] = interpret_wrist(result.wrist_angles)
    if kind in (None, AssessmentKind.WRIST_DEVIATION):
        scores[AssessmentKind.WRIST_DEVIATION.value] = interpret_deviation(result.deviation_angles)
    return scores


class AssessmentSession:
    """
    One live recording session.

    Example:
        >>> session = AssessmentSession(kind=AssessmentKind.TAM)
        >>> session.start_countdown(Handedness.RIGHT)
        >>> # tracker thread
        >>> session.push_frame(frame)
        >>> # after the deadline or an explicit stop()
        >>> result = session.get_session_result()
    """

    def __init__(
        self,
        kind: Optional[AssessmentKind] = None,
        session_id: Optional[str] = None,
        config: Optional[TrackerConfig] = None,
        countdown_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory: TimerFactory = thread_timer,
        session_logger: Optional[SessionLogger] = None,
    ):
        self.session_id = session_id or str(uuid.uuid4())
        self._config = config or TrackerConfig.from_settings(kind=kind)
        self._countdown_seconds = settings.COUNTDOWN_SECONDS if countdown_seconds is None else countdown_seconds
        self._clock = clock
        self._timer_factory = timer_factory
        self._session_logger = session_logger or create_session_logger(self.session_id)
        self._tracker = SessionTracker(config=self._config, session_logger=self._session_logger)

        self._timer_lock = threading.RLock()
        self._countdown_timer = None
        self._deadline_timer = None

    @property
    def tracker(self) -> SessionTracker:
        return self._tracker

    @property
    def phase(self) -> SessionPhase:
        return self._tracker.phase

    @property
    def kind(self) -> Optional[AssessmentKind]:
        return self._config.kind

    @property
    def session_logger(self) -> SessionLogger:
        return self._session_logger

    def set_on_complete(self, callback: Callable[[SessionResult], None]) -> None:
        self._tracker.set_on_complete(callback)

    # ==================== Control ====================

    def start_countdown(self, detected_handedness: Handedness = Handedness.UNKNOWN) -> SessionPhase:
        """
        Lock handedness and schedule the start of recording.

        Args:
            detected_handedness: Side currently reported by the tracker

        Returns:
            Phase after the call
        """
        phase = self._tracker.start_countdown(detected_handedness)
        if phase is SessionPhase.COUNTDOWN:
            with self._timer_lock:
                if self._countdown_timer is None:
                    self._countdown_timer = self._timer_factory(self._countdown_seconds, self._on_countdown_elapsed)
                    self._countdown_timer.start()
            logger.info(f"[SESSION {self.session_id}] Countdown {self._countdown_seconds}s, "
                        f"hand locked to {self._tracker.locked_handedness.value}")
        return phase

    def _on_countdown_elapsed(self) -> None:
        with self._timer_lock:
            self._countdown_timer = None
        started_at = self._clock()
        if self._tracker.begin_recording(started_at=started_at) is not SessionPhase.RECORDING:
            return

        with self._timer_lock:
            # a stop or reset may have landed since begin_recording
            state = self._tracker.state
            if state.phase is not SessionPhase.RECORDING or state.started_at != started_at:
                return
            self._deadline_timer = self._timer_factory(self._config.session_duration, self._on_deadline)
            self._deadline_timer.start()
        logger.info(f"[SESSION {self.session_id}] Recording for {self._config.session_duration}s")

    def _on_deadline(self) -> None:
        logger.info(f"[SESSION {self.session_id}] Session duration reached, stopping")
        self.stop()

    def _cancel_timers(self) -> None:
        """Caller holds _timer_lock."""
        for timer in (self._countdown_timer, self._deadline_timer):
            if timer is not None:
                timer.cancel()
        self._countdown_timer = None
        self._deadline_timer = None

    def stop(self) -> Optional[SessionResult]:
        """Stop and finalize. Idempotent; returns the result once available."""
        with self._timer_lock:
            self._cancel_timers()
            result = self._tracker.stop()
        if result is not None:
            logger.info(f"[SESSION {self.session_id}] Finalized: {result.captured_frame_count}/"
                        f"{result.frames_expected} frames, {result.interpolated_frame_count} interpolated")
        return result

    def reset(self) -> None:
        """Discard everything recorded so far (retake)."""
        with self._timer_lock:
            self._cancel_timers()
            self._tracker.reset()
        logger.info(f"[SESSION {self.session_id}] Reset")

    # ==================== Frames ====================

    def push_frame(self, frame: LandmarkFrame) -> Optional[FrameMeasurement]:
        """
        Feed a tracker frame. Ignored outside the recording window.

        The wall-clock deadline is also checked here so a late timer
        callback cannot let extra frames in.
        """
        state = self._tracker.state
        if state.phase is SessionPhase.RECORDING and state.started_at is not None:
            if self._clock() - state.started_at > self._config.session_duration:
                self.stop()
                return None
        return self._tracker.push_frame(frame)

    def push_payload(self, payload: Dict[str, Any]) -> Optional[FrameMeasurement]:
        """Validate a JSON-compatible frame and feed it."""
        return self.push_frame(parse_frame(payload))

    # ==================== Results ====================

    def get_session_result(self) -> Optional[SessionResult]:
        return self._tracker.result

    def get_session_record(
        self,
        dash_score: Optional[float] = None,
        quick_dash_score: Optional[float] = None,
    ) -> Optional[SessionRecord]:
        result = self.get_session_result()
        if result is None:
            return None
        return SessionRecord.from_result(result, dash_score=dash_score, quick_dash_score=quick_dash_score)

    def score_result(self) -> Dict[str, Any]:
        """
        Clinical scores for the finalized session, keyed by assessment.

        A session without a kind is scored for everything it measured.
        """
        result = self.get_session_result()
        if result is None:
            return {}

        scores = score_session(result)
        for name, score in scores.items():
            self._session_logger.info(LogCategory.SCORE, f"{name} scored", {"score": repr(score)})
        return scores


class AssessmentService:
    """
    Registry of live sessions. Every session owns its own tracker.
    """

    def __init__(self, timer_factory: TimerFactory = thread_timer, clock: Callable[[], float] = time.monotonic):
        self.active_sessions: Dict[str, AssessmentSession] = {}
        self._timer_factory = timer_factory
        self._clock = clock
        self._lock = threading.Lock()

    def create_session(self, kind: Optional[AssessmentKind] = None, **kwargs) -> AssessmentSession:
        session = AssessmentSession(kind=kind, clock=self._clock, timer_factory=self._timer_factory, **kwargs)
        with self._lock:
            self.active_sessions[session.session_id] = session
        logger.info(f"[SERVICE] Session {session.session_id} created ({kind.value if kind else 'ALL'})")
        return session

    def get_session(self, session_id: str) -> Optional[AssessmentSession]:
        return self.active_sessions.get(session_id)

    def close_session(self, session_id: str, save_log: bool = False) -> Optional[SessionResult]:
        """Stop a session, drop it from the registry and return its result."""
        with self._lock:
            session = self.active_sessions.pop(session_id, None)
        if session is None:
            logger.warning(f"[SERVICE] Unknown session {session_id}")
            return None

        result = session.stop()
        if save_log:
            path = session.session_logger.save_session_log()
            logger.info(f"[SERVICE] Session log written to {path}")
        return result
