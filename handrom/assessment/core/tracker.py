"""
Session Tracker Module for HANDROM.

Finite state machine for one timed recording session.

    IDLE ──► COUNTDOWN ──► RECORDING ──► FINALIZING ──► COMPLETE

The state is an immutable SessionState snapshot. Transitions are pure
functions returning a new snapshot, so a session can be replayed frame
by frame without any timer or UI. SessionTracker wraps them for a live
session and serializes transitions with a lock, since frames arrive on
the capture thread while the hard stop fires on a timer thread.

Frame handling while RECORDING:
    - good frame: measure, raise running maxima, remember as last good
    - unusable frame after a good one: replay the last measurement,
      flagged as interpolated (subject to the gap-fill policy)
    - unusable frame before any good one: dropped

In wrist sessions a frame whose elbow is missing or barely visible is
unusable too.

Author: HANDROM Team
Version: 1.0.0
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, Mapping, Optional, Tuple

from handrom.core.config import Settings, settings as default_settings
from handrom.helpers.enums import AssessmentKind, Finger, GapFillStrategy, Handedness
from handrom.helpers.exception_handler import InvalidStateTransition

from .data_types import (
    DeviationAngles, FrameMeasurement, JointAngles, LandmarkFrame, WristAngles
)
from .kinematics import calculate_all_fingers
from .wrist import calculate_wrist_deviation, calculate_wrist_flexion
from .opposition import detect_checkpoint
from ..utils.logger import LogCategory

logger = logging.getLogger(__name__)

ALL_FINGERS = (Finger.THUMB, Finger.INDEX, Finger.MIDDLE, Finger.RING, Finger.PINKY)


class SessionPhase(Enum):
    """Phases of a recording session."""
    IDLE = "idle"                  # Waiting for an explicit start
    COUNTDOWN = "countdown"        # Handedness locked, lead time running
    RECORDING = "recording"        # Frames are measured
    FINALIZING = "finalizing"      # Stopped, result being frozen
    COMPLETE = "complete"          # Result available


@dataclass(frozen=True)
class GapFillPolicy:
    """
    How unusable frames are bridged.

    Attributes:
        strategy: HOLD_LAST replays the last good measurement, NONE drops.
        max_gap_seconds: Longest gap since the last good frame that is
            bridged. None means unlimited.
    """
    strategy: GapFillStrategy = GapFillStrategy.HOLD_LAST
    max_gap_seconds: Optional[float] = None

    def allows(self, gap: float) -> bool:
        if self.strategy is GapFillStrategy.NONE:
            return False
        return self.max_gap_seconds is None or gap <= self.max_gap_seconds


@dataclass(frozen=True)
class TrackerConfig:
    """Settings snapshot a session runs with."""
    session_duration: float
    target_fps: int
    min_confidence: float
    capture_rate_threshold: float
    default_handedness: Handedness
    kind: Optional[AssessmentKind] = None
    gap_fill: GapFillPolicy = GapFillPolicy()
    kapandji_thresholds: Optional[Dict[int, float]] = None
    strict: bool = False

    @property
    def frames_expected(self) -> int:
        return int(round(self.session_duration * self.target_fps))

    @classmethod
    def from_settings(
        cls,
        settings: Settings = default_settings,
        kind: Optional[AssessmentKind] = None,
        gap_fill: Optional[GapFillPolicy] = None,
        **overrides,
    ) -> 'TrackerConfig':
        if gap_fill is None:
            max_gap = settings.MAX_GAP_SECONDS or None
            gap_fill = GapFillPolicy(max_gap_seconds=max_gap)
        values = dict(
            session_duration=settings.SESSION_DURATION_SECONDS,
            target_fps=settings.TARGET_FPS,
            min_confidence=settings.MIN_HAND_CONFIDENCE,
            capture_rate_threshold=settings.CAPTURE_RATE_THRESHOLD,
            default_handedness=Handedness(settings.DEFAULT_HANDEDNESS),
            kind=kind,
            gap_fill=gap_fill,
            strict=settings.STRICT_TRANSITIONS,
        )
        values.update(overrides)
        return cls(**values)


@dataclass(frozen=True)
class SessionResult:
    """
    Frozen outcome of a session.

    Attributes:
        joint_angles: Maximum joint angles per finger.
        wrist_angles: Maximum flexion and extension.
        deviation_angles: Maximum radial and ulnar deviation.
        kapandji_checkpoint: Highest opposition level reached.
        quality_warning: Set when the capture rate is below threshold.
        captured_frame_count: Good plus interpolated frames.
        interpolated_frame_count: Frames replayed from a good frame.
        dropped_frame_count: Unusable frames that could not be bridged.
        frames_expected: Nominal frame count for the session.
        capture_rate: captured / expected.
        locked_handedness: Side measured for the whole session.
        kind: Assessment the session was recorded for, None for all.
        measurements: Per-frame measurements in arrival order.
    """
    joint_angles: Mapping[Finger, JointAngles]
    wrist_angles: WristAngles
    deviation_angles: DeviationAngles
    kapandji_checkpoint: int
    quality_warning: Optional[str]
    captured_frame_count: int
    interpolated_frame_count: int
    dropped_frame_count: int
    frames_expected: int
    capture_rate: float
    locked_handedness: Handedness
    kind: Optional[AssessmentKind] = None
    measurements: Tuple[FrameMeasurement, ...] = ()

    def finger_rom(self) -> Dict[Finger, float]:
        """Maximum TAM per finger, the input of TAM scoring."""
        return {f: a.total_active_rom for f, a in self.joint_angles.items()}


@dataclass(frozen=True)
class SessionState:
    """Snapshot of a session. Never mutated; transitions return a new one."""
    phase: SessionPhase = SessionPhase.IDLE
    locked_handedness: Handedness = Handedness.UNKNOWN
    max_joint_angles: Mapping[Finger, JointAngles] = field(default_factory=dict)
    max_wrist_angles: WristAngles = WristAngles()
    max_deviation: DeviationAngles = DeviationAngles()
    max_kapandji_checkpoint: int = 0
    frames_expected: int = 0
    frames_captured: int = 0
    interpolated_count: int = 0
    dropped_count: int = 0
    last_good_frame: Optional[LandmarkFrame] = None
    last_measurement: Optional[FrameMeasurement] = None
    measurements: Tuple[FrameMeasurement, ...] = ()
    quality_warning: Optional[str] = None
    started_at: Optional[float] = None
    result: Optional[SessionResult] = None

    @property
    def capture_rate(self) -> float:
        if self.frames_expected <= 0:
            return 0.0
        return self.frames_captured / self.frames_expected


def _invalid(state: SessionState, action: str, config: TrackerConfig) -> SessionState:
    message = f"{action} ignored in phase {state.phase.value}"
    if config.strict:
        raise InvalidStateTransition(message)
    logger.debug(message)
    return state


# ==================== Transitions ====================

def start_countdown(
    state: SessionState,
    detected_handedness: Handedness,
    config: TrackerConfig,
) -> SessionState:
    """
    IDLE -> COUNTDOWN. Locks the side to measure for the whole session.

    Args:
        state: Current snapshot
        detected_handedness: Side the tracker reports right now
        config: Session configuration

    Returns:
        New snapshot
    """
    if state.phase is not SessionPhase.IDLE:
        return _invalid(state, "start_countdown", config)

    locked = detected_handedness
    if locked not in (Handedness.LEFT, Handedness.RIGHT):
        locked = config.default_handedness
        logger.info(f"Handedness undetermined, defaulting to {locked.value}")

    return replace(
        state,
        phase=SessionPhase.COUNTDOWN,
        locked_handedness=locked,
        frames_expected=config.frames_expected,
    )


def begin_recording(
    state: SessionState,
    config: TrackerConfig,
    started_at: Optional[float] = None,
) -> SessionState:
    """COUNTDOWN -> RECORDING. Maxima and counters start from zero."""
    if state.phase is not SessionPhase.COUNTDOWN:
        return _invalid(state, "begin_recording", config)

    return SessionState(
        phase=SessionPhase.RECORDING,
        locked_handedness=state.locked_handedness,
        frames_expected=config.frames_expected,
        started_at=started_at,
    )


def is_good_frame(frame: LandmarkFrame, config: TrackerConfig) -> bool:
    return frame.has_hand() and frame.confidence >= config.min_confidence


def measure_frame(
    frame: LandmarkFrame,
    handedness: Handedness,
    config: TrackerConfig,
) -> FrameMeasurement:
    """
    Run the calculators relevant to the session's assessment kind.

    A session without a kind runs every calculator.
    """
    kind = config.kind
    fingers = {}
    wrist = None
    deviation = None
    checkpoint = 0

    if kind in (None, AssessmentKind.TAM):
        fingers = calculate_all_fingers(frame, ALL_FINGERS)
    if kind in (None, AssessmentKind.KAPANDJI):
        checkpoint = detect_checkpoint(frame, config.kapandji_thresholds)
    if kind in (None, AssessmentKind.WRIST_FLEXION):
        wrist = calculate_wrist_flexion(frame, handedness)
    if kind in (None, AssessmentKind.WRIST_DEVIATION):
        deviation = calculate_wrist_deviation(frame, handedness)

    return FrameMeasurement(
        timestamp=frame.timestamp,
        fingers=fingers,
        wrist=wrist,
        deviation=deviation,
        kapandji_checkpoint=checkpoint,
    )


def _has_required_channel(measurement: FrameMeasurement, config: TrackerConfig) -> bool:
    """Wrist sessions need the wrist channel; a frame without it is unusable."""
    if config.kind is AssessmentKind.WRIST_FLEXION:
        return measurement.wrist is not None
    if config.kind is AssessmentKind.WRIST_DEVIATION:
        return measurement.deviation is not None
    return True


def _raise_maxima(state: SessionState, measurement: FrameMeasurement) -> dict:
    joints = dict(state.max_joint_angles)
    for finger, angles in measurement.fingers.items():
        joints[finger] = joints.get(finger, JointAngles()).maximum(angles)

    wrist = state.max_wrist_angles
    if measurement.wrist is not None:
        wrist = wrist.maximum(measurement.wrist)

    deviation = state.max_deviation
    if measurement.deviation is not None:
        deviation = deviation.maximum(measurement.deviation)

    return dict(
        max_joint_angles=joints,
        max_wrist_angles=wrist,
        max_deviation=deviation,
        max_kapandji_checkpoint=max(state.max_kapandji_checkpoint, measurement.kapandji_checkpoint),
    )


def advance(state: SessionState, frame: LandmarkFrame, config: TrackerConfig) -> SessionState:
    """
    Apply one frame to a recording session.

    Frames outside RECORDING or outside [0, session_duration] leave the
    state unchanged.

    Args:
        state: Current snapshot
        frame: Incoming tracker frame
        config: Session configuration

    Returns:
        New snapshot
    """
    if state.phase is not SessionPhase.RECORDING:
        if state.phase is SessionPhase.IDLE:
            return _invalid(state, "push_frame", config)
        return state

    if not 0.0 <= frame.timestamp <= config.session_duration:
        logger.debug(f"Frame at t={frame.timestamp:.3f} outside recording window")
        return state

    measurement = None
    if is_good_frame(frame, config):
        measurement = measure_frame(frame, state.locked_handedness, config)
        if not _has_required_channel(measurement, config):
            logger.debug(f"Frame at t={frame.timestamp:.3f} has no usable elbow, treated as missing")
            measurement = None

    if measurement is not None:
        # Surplus frames from a tracker running above nominal fps still raise maxima
        measured = state.frames_captured - state.interpolated_count
        captured = state.frames_captured + (1 if measured < state.frames_expected else 0)
        return replace(
            state,
            frames_captured=captured,
            last_good_frame=frame,
            last_measurement=measurement,
            measurements=state.measurements + (measurement,),
            **_raise_maxima(state, measurement),
        )

    if state.last_measurement is not None:
        gap = frame.timestamp - state.last_good_frame.timestamp
        if config.gap_fill.allows(gap):
            measurement = state.last_measurement.replay(frame.timestamp)
            return replace(
                state,
                frames_captured=state.frames_captured + 1,
                interpolated_count=state.interpolated_count + 1,
                measurements=state.measurements + (measurement,),
            )
        logger.debug(f"Gap of {gap:.3f}s exceeds gap-fill policy, frame dropped")

    return replace(state, dropped_count=state.dropped_count + 1)


def stop(state: SessionState, config: TrackerConfig) -> SessionState:
    """COUNTDOWN/RECORDING -> FINALIZING. A no-op once stopped."""
    if state.phase in (SessionPhase.FINALIZING, SessionPhase.COMPLETE):
        return state
    if state.phase is SessionPhase.IDLE:
        return _invalid(state, "stop", config)
    return replace(state, phase=SessionPhase.FINALIZING)


def finalize(state: SessionState, config: TrackerConfig) -> SessionState:
    """
    FINALIZING -> COMPLETE. Freezes maxima and capture metrics.

    The result is attached to the returned snapshot. Calling this on a
    COMPLETE snapshot returns it unchanged.
    """
    if state.phase is SessionPhase.COMPLETE:
        return state
    if state.phase is not SessionPhase.FINALIZING:
        return _invalid(state, "finalize", config)

    rate = state.capture_rate
    warning = None
    if rate < config.capture_rate_threshold:
        warning = (
            f"Only {state.frames_captured}/{state.frames_expected} "
            f"frames captured ({rate * 100:.1f}%)"
        )
        logger.warning(warning)

    result = SessionResult(
        joint_angles=dict(state.max_joint_angles),
        wrist_angles=state.max_wrist_angles,
        deviation_angles=state.max_deviation,
        kapandji_checkpoint=state.max_kapandji_checkpoint,
        quality_warning=warning,
        captured_frame_count=state.frames_captured,
        interpolated_frame_count=state.interpolated_count,
        dropped_frame_count=state.dropped_count,
        frames_expected=state.frames_expected,
        capture_rate=rate,
        locked_handedness=state.locked_handedness,
        kind=config.kind,
        measurements=state.measurements,
    )
    return replace(state, phase=SessionPhase.COMPLETE, quality_warning=warning, result=result)


# ==================== Live tracker ====================

class SessionTracker:
    """
    Owns the state of one live session.

    Each session needs its own tracker; nothing is shared between
    instances.

    Example:
        >>> tracker = SessionTracker(kind=AssessmentKind.TAM)
        >>> tracker.start_countdown(Handedness.RIGHT)
        >>> tracker.begin_recording()
        >>> for frame in frames:
        ...     tracker.push_frame(frame)
        >>> result = tracker.stop()
    """

    def __init__(
        self,
        kind: Optional[AssessmentKind] = None,
        config: Optional[TrackerConfig] = None,
        session_logger=None,
    ):
        self._config = config or TrackerConfig.from_settings(kind=kind)
        self._state = SessionState()
        self._lock = threading.Lock()
        self._session_logger = session_logger

        # Callbacks
        self._on_complete: Optional[Callable[[SessionResult], None]] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def config(self) -> TrackerConfig:
        return self._config

    @property
    def phase(self) -> SessionPhase:
        return self._state.phase

    @property
    def locked_handedness(self) -> Handedness:
        return self._state.locked_handedness

    @property
    def result(self) -> Optional[SessionResult]:
        return self._state.result

    def set_on_complete(self, callback: Callable[[SessionResult], None]) -> None:
        self._on_complete = callback

    def _event(self, category: LogCategory, message: str, data: Optional[dict] = None, warning: bool = False) -> None:
        if self._session_logger is None:
            return
        if warning:
            self._session_logger.warning(category, message, data)
        else:
            self._session_logger.info(category, message, data)

    def start_countdown(self, detected_handedness: Handedness = Handedness.UNKNOWN) -> SessionPhase:
        with self._lock:
            before = self._state.phase
            self._state = start_countdown(self._state, detected_handedness, self._config)
            if before is not self._state.phase:
                self._event(LogCategory.SESSION, "Countdown started", {"handedness": self._state.locked_handedness.value})
            return self._state.phase

    def begin_recording(self, started_at: Optional[float] = None) -> SessionPhase:
        with self._lock:
            before = self._state.phase
            self._state = begin_recording(self._state, self._config, started_at)
            if before is not self._state.phase:
                self._event(LogCategory.SESSION, "Recording started", {"frames_expected": self._state.frames_expected})
            return self._state.phase

    def push_frame(self, frame: LandmarkFrame) -> Optional[FrameMeasurement]:
        """
        Feed one frame.

        Returns:
            The measurement recorded for this frame (possibly interpolated),
            or None when the frame was ignored or dropped.
        """
        with self._lock:
            before = self._state
            self._state = advance(before, frame, self._config)
            if self._state is before or len(self._state.measurements) == len(before.measurements):
                return None
            measurement = self._state.measurements[-1]

        if measurement.interpolated:
            self._event(LogCategory.INTERPOLATION, f"Frame at t={frame.timestamp:.3f} interpolated",
                        {"source_timestamp": measurement.source_timestamp})
        return measurement

    def stop(self) -> Optional[SessionResult]:
        """
        Stop and finalize. Safe to call repeatedly and from a timer thread.

        Returns:
            The session result, or None when the session never started.
        """
        with self._lock:
            if self._state.phase is SessionPhase.COMPLETE:
                return self._state.result
            stopped = stop(self._state, self._config)
            if stopped.phase is not SessionPhase.FINALIZING:
                self._state = stopped
                return None
            self._state = finalize(stopped, self._config)
            result = self._state.result

        self._event(LogCategory.CAPTURE, "Session finalized", {
            "captured": result.captured_frame_count,
            "interpolated": result.interpolated_frame_count,
            "expected": result.frames_expected,
        })
        if result.quality_warning:
            self._event(LogCategory.QUALITY, result.quality_warning, {"capture_rate": result.capture_rate}, warning=True)
        if self._on_complete:
            self._on_complete(result)
        return result

    def reset(self) -> None:
        """Discard the session and return to IDLE (retake)."""
        with self._lock:
            self._state = SessionState()
        self._event(LogCategory.SESSION, "Session reset")
