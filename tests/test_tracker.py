import math
import random
from dataclasses import replace

import pytest

from handrom.assessment.core.data_types import WristAngles
from handrom.assessment.core.tracker import (
    GapFillPolicy, SessionPhase, SessionState, SessionTracker, advance, begin_recording,
    finalize, start_countdown, stop
)
from handrom.assessment.utils.logger import LogCategory, SessionLogger
from handrom.helpers.enums import AssessmentKind, Finger, GapFillStrategy, Handedness
from handrom.helpers.exception_handler import InvalidStateTransition

from conftest import make_frame


def recording(config, handedness=Handedness.RIGHT):
    state = start_countdown(SessionState(), handedness, config)
    return begin_recording(state, config)


def test_phase_sequence(short_config):
    state = SessionState()
    assert state.phase is SessionPhase.IDLE
    state = start_countdown(state, Handedness.RIGHT, short_config)
    assert state.phase is SessionPhase.COUNTDOWN
    state = begin_recording(state, short_config)
    assert state.phase is SessionPhase.RECORDING
    assert state.frames_expected == 10
    state = stop(state, short_config)
    assert state.phase is SessionPhase.FINALIZING
    state = finalize(state, short_config)
    assert state.phase is SessionPhase.COMPLETE
    assert state.result is not None


def test_unknown_handedness_falls_back_to_default(short_config):
    state = start_countdown(SessionState(), Handedness.UNKNOWN, short_config)
    assert state.locked_handedness is Handedness.LEFT


def test_handedness_lock_survives_frame_fluctuation(short_config):
    state = recording(short_config, Handedness.RIGHT)
    for i in range(6):
        side = Handedness.LEFT if i % 2 else Handedness.UNKNOWN
        state = advance(state, make_frame(timestamp=i * 0.1, handedness=side), short_config)
    assert state.locked_handedness is Handedness.RIGHT

    state = start_countdown(state, Handedness.LEFT, short_config)
    assert state.locked_handedness is Handedness.RIGHT


def test_wrist_measured_on_locked_side(short_config):
    config = replace(short_config, kind=AssessmentKind.WRIST_FLEXION)
    state = recording(config, Handedness.RIGHT)
    # frame claims LEFT, but the session measures the locked RIGHT side
    frame = make_frame(timestamp=0.1, rotation=30.0, handedness=Handedness.LEFT)
    frame = replace(frame, pose_landmarks=make_frame(handedness=Handedness.RIGHT).pose_landmarks)
    state = advance(state, frame, config)
    assert state.max_wrist_angles.flexion_angle == pytest.approx(30.0, abs=1e-3)


def test_running_maxima_never_decrease(short_config):
    rng = random.Random(7)
    config = replace(short_config, session_duration=3.0)
    state = recording(config)
    previous = {}
    previous_wrist = 0.0
    for i in range(30):
        flex = tuple(rng.uniform(0, 90) for _ in range(3))
        frame = make_frame(
            timestamp=i * 0.1,
            flexion={Finger.INDEX: flex},
            rotation=rng.uniform(-40, 40),
            confidence=rng.choice([0.95, 0.95, 0.2]),
        )
        state = advance(state, frame, config)
        for finger, angles in state.max_joint_angles.items():
            before = previous.get(finger)
            if before is not None:
                assert angles.mcp_angle >= before.mcp_angle
                assert angles.pip_angle >= before.pip_angle
                assert angles.dip_angle >= before.dip_angle
                assert angles.total_active_rom >= before.total_active_rom
            for value in (angles.mcp_angle, angles.pip_angle, angles.dip_angle):
                assert 0.0 <= value <= 180.0 and not math.isnan(value)
        previous = dict(state.max_joint_angles)
        assert state.max_wrist_angles.flexion_angle >= previous_wrist
        previous_wrist = state.max_wrist_angles.flexion_angle


def test_maxima_reset_when_recording_starts(short_config):
    state = start_countdown(SessionState(), Handedness.RIGHT, short_config)
    state = replace(state, frames_captured=5, max_kapandji_checkpoint=7)
    state = begin_recording(state, short_config)
    assert state.frames_captured == 0
    assert state.max_kapandji_checkpoint == 0
    assert state.locked_handedness is Handedness.RIGHT


def test_interpolation_replays_last_good_frame(short_config):
    state = recording(short_config)
    good = make_frame(timestamp=0.1, flexion={Finger.INDEX: (40.0, 50.0, 30.0)})
    state = advance(state, good, short_config)
    maxima = state.max_joint_angles[Finger.INDEX]

    bad = make_frame(timestamp=0.2, confidence=0.1)
    state = advance(state, bad, short_config)

    assert state.frames_captured == 2
    assert state.interpolated_count == 1
    assert state.max_joint_angles[Finger.INDEX] == maxima
    replayed = state.measurements[-1]
    assert replayed.interpolated is True
    assert replayed.timestamp == pytest.approx(0.2)
    assert replayed.source_timestamp == pytest.approx(0.1)
    assert replayed.fingers[Finger.INDEX] == state.measurements[0].fingers[Finger.INDEX]


def test_missing_hand_counts_as_unusable(short_config):
    state = recording(short_config)
    state = advance(state, make_frame(timestamp=0.1), short_config)
    state = advance(state, make_frame(timestamp=0.2, with_hand=False), short_config)
    assert state.interpolated_count == 1


def test_unusable_frame_before_any_good_frame_is_dropped(short_config):
    state = recording(short_config)
    state = advance(state, make_frame(timestamp=0.1, confidence=0.1), short_config)
    assert state.frames_captured == 0
    assert state.interpolated_count == 0
    assert state.dropped_count == 1
    assert state.measurements == ()


def test_gap_fill_policy_limits_interpolation(short_config):
    config = replace(short_config, gap_fill=GapFillPolicy(max_gap_seconds=0.15))
    state = recording(config)
    state = advance(state, make_frame(timestamp=0.1), config)
    state = advance(state, make_frame(timestamp=0.2, confidence=0.0), config)
    state = advance(state, make_frame(timestamp=0.5, confidence=0.0), config)
    assert state.interpolated_count == 1
    assert state.dropped_count == 1


def test_gap_fill_disabled(short_config):
    config = replace(short_config, gap_fill=GapFillPolicy(strategy=GapFillStrategy.NONE))
    state = recording(config)
    state = advance(state, make_frame(timestamp=0.1), config)
    state = advance(state, make_frame(timestamp=0.2, confidence=0.0), config)
    assert state.interpolated_count == 0
    assert state.dropped_count == 1


def test_frames_outside_window_ignored(short_config):
    state = recording(short_config)
    after = advance(state, make_frame(timestamp=1.5), short_config)
    before = advance(state, make_frame(timestamp=-0.1), short_config)
    assert after is state
    assert before is state


def test_frames_ignored_outside_recording(short_config):
    state = start_countdown(SessionState(), Handedness.RIGHT, short_config)
    assert advance(state, make_frame(timestamp=0.1), short_config) is state
    idle = SessionState()
    assert advance(idle, make_frame(timestamp=0.1), short_config) is idle


def test_capture_count_never_exceeds_expected_plus_interpolated(short_config):
    state = recording(short_config)
    for i in range(15):
        state = advance(state, make_frame(timestamp=i * 0.06), short_config)
    assert state.frames_captured <= state.frames_expected + state.interpolated_count
    assert state.frames_captured == 10


def test_zero_frame_session_warns(short_config):
    state = stop(recording(short_config), short_config)
    state = finalize(state, short_config)
    result = state.result
    assert result.captured_frame_count == 0
    assert result.capture_rate == 0.0
    assert result.quality_warning == "Only 0/10 frames captured (0.0%)"


def test_low_capture_rate_warning_text(short_config):
    state = recording(short_config)
    for i in range(7):
        state = advance(state, make_frame(timestamp=i * 0.1), short_config)
    state = finalize(stop(state, short_config), short_config)
    assert state.result.quality_warning == "Only 7/10 frames captured (70.0%)"


def test_full_capture_has_no_warning(short_config):
    state = recording(short_config)
    for i in range(8):
        state = advance(state, make_frame(timestamp=i * 0.1), short_config)
    state = finalize(stop(state, short_config), short_config)
    assert state.result.capture_rate == pytest.approx(0.8)
    assert state.result.quality_warning is None


def test_stop_is_idempotent(short_config):
    state = finalize(stop(recording(short_config), short_config), short_config)
    assert stop(state, short_config) is state
    assert finalize(state, short_config) is state


def test_invalid_transitions_are_noops(short_config):
    idle = SessionState()
    assert stop(idle, short_config) is idle
    assert begin_recording(idle, short_config) is idle
    assert finalize(idle, short_config) is idle


def test_strict_mode_raises(short_config):
    config = replace(short_config, strict=True)
    with pytest.raises(InvalidStateTransition):
        advance(SessionState(), make_frame(), config)
    with pytest.raises(InvalidStateTransition):
        stop(SessionState(), config)


def test_kind_limits_calculators(short_config):
    config = replace(short_config, kind=AssessmentKind.TAM)
    state = recording(config)
    state = advance(state, make_frame(timestamp=0.1, rotation=30.0), config)
    measurement = state.measurements[-1]
    assert set(measurement.fingers) == set(Finger)
    assert measurement.wrist is None
    assert measurement.deviation is None


def test_kapandji_session_keeps_highest_level(short_config):
    from handrom.assessment.core.opposition import target_positions

    config = replace(short_config, kind=AssessmentKind.KAPANDJI)
    base = make_frame()
    state = recording(config)
    for i, level in enumerate([2, 6, 3]):
        frame = make_frame(timestamp=i * 0.1, overrides={4: target_positions(base)[level - 1]})
        state = advance(state, frame, config)
    assert state.max_kapandji_checkpoint == 6


def test_wrist_session_without_elbow_captures_nothing(short_config):
    config = replace(short_config, kind=AssessmentKind.WRIST_FLEXION)
    state = recording(config)
    for i in range(10):
        state = advance(state, make_frame(timestamp=i * 0.1, rotation=30.0, elbow_visibility=0.1), config)
    state = finalize(stop(state, config), config)
    result = state.result
    assert result.captured_frame_count == 0
    assert result.dropped_frame_count == 10
    assert result.quality_warning == "Only 0/10 frames captured (0.0%)"
    assert result.wrist_angles == WristAngles()


def test_occluded_elbow_replays_last_wrist_measurement(short_config):
    config = replace(short_config, kind=AssessmentKind.WRIST_FLEXION)
    state = recording(config)
    state = advance(state, make_frame(timestamp=0.1, rotation=30.0), config)
    state = advance(state, make_frame(timestamp=0.2, rotation=30.0, elbow_visibility=0.1), config)

    replayed = state.measurements[-1]
    assert replayed.interpolated is True
    assert replayed.wrist.flexion_angle == pytest.approx(30.0, abs=1e-3)
    assert state.last_measurement.wrist is not None
    assert state.interpolated_count == 1


def test_deviation_session_treats_missing_pose_as_unusable(short_config):
    config = replace(short_config, kind=AssessmentKind.WRIST_DEVIATION)
    state = recording(config)
    state = advance(state, make_frame(timestamp=0.1, rotation=25.0), config)
    state = advance(state, make_frame(timestamp=0.2, with_pose=False), config)
    assert state.measurements[-1].interpolated is True
    assert state.max_deviation.ulnar_deviation == pytest.approx(25.0, abs=1e-3)


def test_interpolation_leaves_wrist_maxima_unchanged(short_config):
    config = replace(short_config, kind=AssessmentKind.WRIST_FLEXION)
    state = recording(config)
    state = advance(state, make_frame(timestamp=0.1, rotation=20.0), config)
    before = state.max_wrist_angles
    assert before.flexion_angle == pytest.approx(20.0, abs=1e-3)

    state = advance(state, make_frame(timestamp=0.2, rotation=40.0, confidence=0.1), config)
    assert state.interpolated_count == 1
    assert state.max_wrist_angles == before
    assert state.measurements[-1].wrist == state.measurements[0].wrist


def test_interpolation_leaves_deviation_maxima_unchanged(short_config):
    config = replace(short_config, kind=AssessmentKind.WRIST_DEVIATION)
    state = recording(config)
    state = advance(state, make_frame(timestamp=0.1, rotation=-15.0), config)
    before = state.max_deviation
    assert before.radial_deviation == pytest.approx(15.0, abs=1e-3)

    state = advance(state, make_frame(timestamp=0.2, rotation=-35.0, with_hand=False), config)
    assert state.interpolated_count == 1
    assert state.max_deviation == before
    assert state.measurements[-1].deviation == state.measurements[0].deviation


class TestSessionTracker:
    def test_live_session(self, short_config):
        tracker = SessionTracker(config=short_config)
        assert tracker.push_frame(make_frame()) is None

        tracker.start_countdown(Handedness.RIGHT)
        assert tracker.phase is SessionPhase.COUNTDOWN
        tracker.begin_recording()

        measured = tracker.push_frame(make_frame(timestamp=0.1, flexion={Finger.RING: (20.0, 20.0, 20.0)}))
        assert measured is not None and not measured.interpolated
        replayed = tracker.push_frame(make_frame(timestamp=0.2, confidence=0.0))
        assert replayed.interpolated

        result = tracker.stop()
        assert tracker.phase is SessionPhase.COMPLETE
        assert result.captured_frame_count == 2
        assert result.interpolated_frame_count == 1
        assert result.joint_angles[Finger.RING].total_active_rom == pytest.approx(60.0, abs=1e-2)
        assert tracker.stop() is result

    def test_stop_before_start_returns_none(self, short_config):
        tracker = SessionTracker(config=short_config)
        assert tracker.stop() is None
        assert tracker.phase is SessionPhase.IDLE

    def test_on_complete_callback_and_reset(self, short_config):
        received = []
        tracker = SessionTracker(config=short_config)
        tracker.set_on_complete(received.append)
        tracker.start_countdown(Handedness.LEFT)
        tracker.begin_recording()
        result = tracker.stop()
        tracker.stop()
        assert received == [result]

        tracker.reset()
        assert tracker.phase is SessionPhase.IDLE
        assert tracker.result is None

    def test_events_written_to_session_logger(self, short_config, tmp_path):
        session_logger = SessionLogger("t1", log_dir=str(tmp_path))
        tracker = SessionTracker(config=short_config, session_logger=session_logger)
        tracker.start_countdown(Handedness.RIGHT)
        tracker.begin_recording()
        tracker.push_frame(make_frame(timestamp=0.1))
        tracker.push_frame(make_frame(timestamp=0.2, confidence=0.0))
        tracker.stop()

        assert len(session_logger.filter(LogCategory.INTERPOLATION)) == 1
        quality = session_logger.filter(LogCategory.QUALITY)
        assert quality and quality[0].message.startswith("Only 2/10")
