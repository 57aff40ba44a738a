"""Tests for the shared repetition state machine across exercise profiles."""

import pytest

from pt_service.models import (
    EXERCISE_PROFILES,
    ExerciseState,
    ExerciseType,
    JointType,
    Landmark,
    RepStateMachine,
)

UP_ANGLE = 170.0
DOWN_ANGLE = 70.0


def _machine(exercise_type, debounce=3):
    return RepStateMachine(EXERCISE_PROFILES[exercise_type], debounce_frames=debounce, min_visibility=0.5)


def _pushup_reps(hold, builder, reps, frames=5):
    sequence = hold(builder, UP_ANGLE, frames)
    for _ in range(reps):
        sequence += hold(builder, DOWN_ANGLE, frames)
        sequence += hold(builder, UP_ANGLE, frames)
    return sequence


# ============================================================================
# Push-ups
# ============================================================================

def test_starts_idle():
    machine = _machine(ExerciseType.PUSHUP)
    assert machine.state == ExerciseState.IDLE
    assert machine.rep_count == 0
    assert machine.form_score == 100


def test_waits_for_ready_position(pushup_frame):
    machine = _machine(ExerciseType.PUSHUP)
    result = machine.update(pushup_frame(DOWN_ANGLE))
    assert result.state == ExerciseState.IDLE
    assert result.feedback == "Get into the up position with arms extended"

    result = machine.update(pushup_frame(UP_ANGLE))
    assert result.state == ExerciseState.STARTING


def test_full_cycle_counts_one_rep(pushup_frame, feed, hold):
    machine = _machine(ExerciseType.PUSHUP)
    results = feed(machine, _pushup_reps(hold, pushup_frame, 1))

    assert results[-1].rep_count == 1
    assert results[-1].state == ExerciseState.UP
    assert results[-1].confidence == pytest.approx(1.0)
    assert results[-1].form_score == 100
    # Never counted on the way down
    assert all(r.rep_count == 0 for r in results[:10])


def test_rep_counted_once_per_cycle(pushup_frame, feed, hold):
    machine = _machine(ExerciseType.PUSHUP)
    results = feed(machine, _pushup_reps(hold, pushup_frame, 4))

    counts = [r.rep_count for r in results]
    assert counts[-1] == 4
    assert counts == sorted(counts)
    assert all(b - a in (0, 1) for a, b in zip(counts, counts[1:]))


def test_sub_debounce_flicker_is_ignored(pushup_frame, feed, hold):
    machine = _machine(ExerciseType.PUSHUP)
    frames = hold(pushup_frame, UP_ANGLE, 5) + hold(pushup_frame, DOWN_ANGLE, 2) + hold(pushup_frame, UP_ANGLE, 5)
    results = feed(machine, frames)

    assert results[-1].rep_count == 0
    assert all(r.state != ExerciseState.DOWN for r in results)


def test_transition_zone_does_not_change_state(pushup_frame, feed, hold):
    machine = _machine(ExerciseType.PUSHUP)
    feed(machine, hold(pushup_frame, UP_ANGLE, 5))
    results = feed(machine, hold(pushup_frame, 125.0, 10))

    assert all(r.state == ExerciseState.UP for r in results)
    assert results[-1].rep_count == 0


def test_shallow_rep_gets_depth_feedback(pushup_frame, feed, hold):
    machine = _machine(ExerciseType.PUSHUP)
    frames = hold(pushup_frame, UP_ANGLE, 5) + hold(pushup_frame, 88.0, 5) + hold(pushup_frame, UP_ANGLE, 5)
    results = feed(machine, frames)

    rep_frame = next(r for r in results if r.rep_count == 1)
    assert rep_frame.feedback == "Go deeper (elbow angle: 88°)"
    assert results[-1].form_score < 100


def test_debounce_of_one_reacts_immediately(pushup_frame, feed):
    machine = _machine(ExerciseType.PUSHUP, debounce=1)
    results = feed(machine, [pushup_frame(a) for a in (UP_ANGLE, UP_ANGLE, DOWN_ANGLE, UP_ANGLE)])
    assert [r.rep_count for r in results] == [0, 0, 0, 1]


def test_reset_zeroes_counters(pushup_frame, feed, hold):
    machine = _machine(ExerciseType.PUSHUP)
    feed(machine, _pushup_reps(hold, pushup_frame, 2))
    assert machine.rep_count == 2

    machine.reset()
    assert machine.rep_count == 0
    assert machine.state == ExerciseState.IDLE
    assert machine.form_score == 100


# ============================================================================
# Invalid poses
# ============================================================================

def test_visibility_drop_invalidates_and_recovers(pushup_frame, feed, hold):
    machine = _machine(ExerciseType.PUSHUP)
    feed(machine, hold(pushup_frame, UP_ANGLE, 5) + hold(pushup_frame, DOWN_ANGLE, 5))
    assert machine.state == ExerciseState.DOWN

    lost = machine.update(pushup_frame(DOWN_ANGLE, visibility=0.0))
    assert lost.state == ExerciseState.INVALID
    assert lost.confidence == 0.0
    assert lost.feedback.startswith("Cannot see clearly: left shoulder, right shoulder")

    recovered = machine.update(pushup_frame(UP_ANGLE))
    assert recovered.state == ExerciseState.STARTING

    # The interrupted cycle never counts
    results = feed(machine, hold(pushup_frame, UP_ANGLE, 5))
    assert results[-1].state == ExerciseState.UP
    assert results[-1].rep_count == 0

    # A fresh cycle after recovery does
    results = feed(machine, hold(pushup_frame, DOWN_ANGLE, 5) + hold(pushup_frame, UP_ANGLE, 5))
    assert results[-1].rep_count == 1


def test_single_hidden_joint_invalidates(pushup_frame, feed, hold):
    machine = _machine(ExerciseType.PUSHUP)
    feed(machine, hold(pushup_frame, UP_ANGLE, 5))
    result = machine.update(pushup_frame(UP_ANGLE, hidden=(JointType.RIGHT_WRIST,)))
    assert result.state == ExerciseState.INVALID
    assert result.feedback == "Cannot see clearly: right wrist"
    assert not machine.is_valid_pose(pushup_frame(UP_ANGLE, hidden=(JointType.RIGHT_WRIST,)))
    assert machine.is_valid_pose(pushup_frame(UP_ANGLE))


def test_short_frame_asks_to_get_in_frame(pushup_frame):
    machine = _machine(ExerciseType.PUSHUP)
    result = machine.update(pushup_frame(UP_ANGLE).landmarks[:20])
    assert result.state == ExerciseState.INVALID
    assert result.feedback == "Position yourself fully in frame"


@pytest.mark.parametrize("visibility", [float("nan"), float("inf"), float("-inf")])
def test_non_finite_visibility_is_not_visible(pushup_frame, feed, hold, visibility):
    machine = _machine(ExerciseType.PUSHUP)
    feed(machine, hold(pushup_frame, UP_ANGLE, 5))

    result = machine.update(pushup_frame(UP_ANGLE, visibility=visibility))
    assert result.state == ExerciseState.INVALID
    assert result.confidence == 0.0
    assert result.feedback.startswith("Cannot see clearly")
    assert not machine.is_valid_pose(pushup_frame(UP_ANGLE, visibility=visibility))


def test_wrong_orientation_invalidates(pullup_frame):
    # Upright hang is not a plank
    machine = _machine(ExerciseType.PUSHUP)
    result = machine.update(pullup_frame(UP_ANGLE))
    assert result.state == ExerciseState.INVALID
    assert result.feedback == "Turn sideways to the camera in a plank position"


@pytest.mark.parametrize("frame", [
    None,
    [],
    "garbage",
    12345,
    [Landmark(x=0.5, y=0.5)] * 10,
    [Landmark(x=float("nan"), y=float("nan"))] * 33,
])
def test_malformed_input_never_raises(frame):
    machine = _machine(ExerciseType.PUSHUP)
    result = machine.update(frame)
    assert result.state == ExerciseState.INVALID
    assert result.confidence == 0.0
    assert result.rep_count == 0


def test_bare_landmark_list_is_accepted(pushup_frame):
    machine = _machine(ExerciseType.PUSHUP)
    result = machine.update(list(pushup_frame(UP_ANGLE).landmarks))
    assert result.state == ExerciseState.STARTING


# ============================================================================
# Sit-ups and pull-ups
# ============================================================================

def test_situp_cycle(situp_frame, feed, hold):
    machine = _machine(ExerciseType.SITUP)
    frames = hold(situp_frame, 150.0, 5)
    for _ in range(3):
        frames += hold(situp_frame, 60.0, 5) + hold(situp_frame, 150.0, 5)
    results = feed(machine, frames)

    assert results[-1].rep_count == 3
    assert results[-1].state == ExerciseState.DOWN
    assert results[-1].form_score == 100


def test_situp_waits_lying_down(situp_frame):
    machine = _machine(ExerciseType.SITUP)
    result = machine.update(situp_frame(60.0))
    assert result.state == ExerciseState.IDLE
    assert result.feedback == "Lie back with shoulder blades on the ground"


def test_situp_arms_must_be_crossed(situp_frame, feed, hold):
    machine = _machine(ExerciseType.SITUP)
    results = feed(machine, hold(situp_frame, 150.0, 5, arms_crossed=False))
    assert results[-1].feedback == "Arms should be crossed over chest"
    assert results[-1].form_score < 100


def test_pullup_cycle(pullup_frame, feed, hold):
    machine = _machine(ExerciseType.PULLUP)
    frames = hold(pullup_frame, UP_ANGLE, 5)
    for _ in range(2):
        frames += hold(pullup_frame, DOWN_ANGLE, 5) + hold(pullup_frame, UP_ANGLE, 5)
    results = feed(machine, frames)

    assert results[-1].rep_count == 2
    assert results[-1].state == ExerciseState.DOWN


def test_pullup_chin_below_bar(pullup_frame, feed, hold):
    machine = _machine(ExerciseType.PULLUP)
    frames = hold(pullup_frame, UP_ANGLE, 5) + hold(pullup_frame, DOWN_ANGLE, 5, chin_over_bar=False)
    results = feed(machine, frames)
    assert results[-1].state == ExerciseState.UP
    assert "Pull higher - chin above bar" in results[-1].feedback


def test_pullup_kipping(pullup_frame, feed, hold):
    machine = _machine(ExerciseType.PULLUP)
    feed(machine, hold(pullup_frame, UP_ANGLE, 5))
    result = machine.update(pullup_frame(UP_ANGLE, hip_shift=0.15))
    assert result.feedback == "Excessive hip movement detected"
