"""Shared fixtures: synthetic 33-point poses with a controllable primary angle.

Coordinates are normalized image space (y grows downward). Each builder
places the torso so it passes the exercise's orientation and posture checks,
then bends the tracked joint to the requested angle.
"""

import math
from typing import Dict, List, Optional, Tuple

import pytest

from pt_service.models import JointType, Landmark, PoseFrame

LIMB = 0.15
Point = Tuple[float, float]


def _build(points: Dict[JointType, Point], visibility: float = 1.0,
           hidden: Tuple[JointType, ...] = ()) -> PoseFrame:
    landmarks: List[Landmark] = []
    for joint in JointType:
        x, y = points.get(joint, (0.5, 0.5))
        vis = 0.0 if joint in hidden else visibility
        landmarks.append(Landmark(x=x, y=y, z=0.0, visibility=vis))
    return PoseFrame(landmarks=landmarks)


def make_pushup_frame(elbow_angle: float, visibility: float = 1.0,
                      hidden: Tuple[JointType, ...] = ()) -> PoseFrame:
    """Side-on plank: horizontal torso, straight legs, arms under the shoulders."""
    shoulder = (0.3, 0.5)
    elbow = (0.3, 0.5 + LIMB)
    theta = math.radians(elbow_angle)
    wrist = (elbow[0] + LIMB * math.sin(theta), elbow[1] - LIMB * math.cos(theta))
    hip = (0.6, 0.5)
    knee = (0.8, 0.5)
    ankle = (0.95, 0.5)

    points = {JointType.NOSE: (0.2, 0.48)}
    for left, right, pos in (
        (JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER, shoulder),
        (JointType.LEFT_ELBOW, JointType.RIGHT_ELBOW, elbow),
        (JointType.LEFT_WRIST, JointType.RIGHT_WRIST, wrist),
        (JointType.LEFT_HIP, JointType.RIGHT_HIP, hip),
        (JointType.LEFT_KNEE, JointType.RIGHT_KNEE, knee),
        (JointType.LEFT_ANKLE, JointType.RIGHT_ANKLE, ankle),
    ):
        points[left] = pos
        points[right] = pos
    return _build(points, visibility, hidden)


def make_situp_frame(hip_angle: float, visibility: float = 1.0,
                     arms_crossed: bool = True) -> PoseFrame:
    """Bent-knee sit-up seen from the side; the shoulders swing around the hip."""
    hip = (0.5, 0.7)
    knee_dir = math.radians(-45.0)
    knee = (hip[0] + 0.2 * math.cos(knee_dir), hip[1] + 0.2 * math.sin(knee_dir))
    shoulder_dir = knee_dir - math.radians(hip_angle)
    shoulder = (hip[0] + 0.3 * math.cos(shoulder_dir), hip[1] + 0.3 * math.sin(shoulder_dir))

    if arms_crossed:
        wrist = shoulder
    else:
        wrist = (shoulder[0] - 0.3, shoulder[1] + 0.2)

    points = {JointType.NOSE: (shoulder[0] - 0.05, shoulder[1] - 0.05)}
    for left, right, pos in (
        (JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER, shoulder),
        (JointType.LEFT_WRIST, JointType.RIGHT_WRIST, wrist),
        (JointType.LEFT_HIP, JointType.RIGHT_HIP, hip),
        (JointType.LEFT_KNEE, JointType.RIGHT_KNEE, knee),
    ):
        points[left] = pos
        points[right] = pos
    return _build(points, visibility)


def make_pullup_frame(elbow_angle: float, visibility: float = 1.0,
                      chin_over_bar: Optional[bool] = None, hip_shift: float = 0.0) -> PoseFrame:
    """Front-on hang: upright torso, upper arms overhead, forearms opening outward."""
    if chin_over_bar is None:
        chin_over_bar = elbow_angle <= 90.0
    theta = math.radians(elbow_angle)

    points = {}
    wrist_ys = []
    for side, shoulder_j, elbow_j, wrist_j, hip_j, shoulder_x in (
        (-1, JointType.LEFT_SHOULDER, JointType.LEFT_ELBOW, JointType.LEFT_WRIST, JointType.LEFT_HIP, 0.4),
        (1, JointType.RIGHT_SHOULDER, JointType.RIGHT_ELBOW, JointType.RIGHT_WRIST, JointType.RIGHT_HIP, 0.6),
    ):
        shoulder = (shoulder_x, 0.5)
        elbow = (shoulder_x, 0.5 - LIMB)
        wrist = (elbow[0] + side * LIMB * math.sin(theta), elbow[1] + LIMB * math.cos(theta))
        points[shoulder_j] = shoulder
        points[elbow_j] = elbow
        points[wrist_j] = wrist
        points[hip_j] = (shoulder_x + 0.05 * -side + hip_shift, 0.9)
        wrist_ys.append(wrist[1])

    bar_y = sum(wrist_ys) / 2
    nose_y = bar_y - 0.1 if chin_over_bar else 0.38
    points[JointType.NOSE] = (0.5 + hip_shift, nose_y)
    return _build(points, visibility)


def _feed(analyzer, frames):
    """Push frames through an analyzer or state machine; return every result."""
    step = analyzer.analyze if hasattr(analyzer, "analyze") else analyzer.update
    return [step(frame) for frame in frames]


def _hold(builder, angle: float, count: int, **kwargs) -> List[PoseFrame]:
    return [builder(angle, **kwargs) for _ in range(count)]


@pytest.fixture
def pushup_frame():
    return make_pushup_frame


@pytest.fixture
def situp_frame():
    return make_situp_frame


@pytest.fixture
def pullup_frame():
    return make_pullup_frame


@pytest.fixture
def feed():
    return _feed


@pytest.fixture
def hold():
    return _hold
