"""
PT GRADER - Pose Analyzer

Rule-based repetition counting and form scoring for push-ups, sit-ups and
pull-ups. Consumes MediaPipe-style pose landmarks (33 points per frame with
per-point visibility) and emits one AnalysisResult per frame.

Pose estimation itself happens upstream; this module only reads landmarks.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from core.config import settings
from .scoring import ExerciseType, calculate_grade, get_rating, round_half_up

logger = logging.getLogger(__name__)


NUM_LANDMARKS = 33
ANGLE_EPSILON = 1e-6

# Form scoring
PENALTY_PER_DEGREE = 1.5
MAX_DEPTH_PENALTY = 40.0


# ═══════════════════════════════════════════════════════════════════════════════
# ENUMS AND DATA CLASSES
# ═══════════════════════════════════════════════════════════════════════════════

class JointType(Enum):
    """Body joint indices of the 33-point full-body pose topology."""
    NOSE = 0
    LEFT_EYE_INNER = 1
    LEFT_EYE = 2
    LEFT_EYE_OUTER = 3
    RIGHT_EYE_INNER = 4
    RIGHT_EYE = 5
    RIGHT_EYE_OUTER = 6
    LEFT_EAR = 7
    RIGHT_EAR = 8
    MOUTH_LEFT = 9
    MOUTH_RIGHT = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_PINKY = 17
    RIGHT_PINKY = 18
    LEFT_INDEX = 19
    RIGHT_INDEX = 20
    LEFT_THUMB = 21
    RIGHT_THUMB = 22
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


class ExerciseState(str, Enum):
    """Where the subject is in the repetition cycle."""
    IDLE = "idle"
    STARTING = "starting"
    DOWN = "down"
    UP = "up"
    FINISHED = "finished"
    INVALID = "invalid"


@dataclass(frozen=True)
class Landmark:
    """A single pose landmark in normalized image space with visibility."""
    x: float
    y: float
    z: float = 0.0
    visibility: float = 1.0

    def to_numpy(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass
class PoseFrame:
    """Ordered landmarks for one camera frame, indexed by JointType."""
    landmarks: List[Landmark]
    timestamp: float = 0.0

    @property
    def is_complete(self) -> bool:
        return len(self.landmarks) >= NUM_LANDMARKS

    def get(self, joint: JointType) -> Optional[Landmark]:
        """Landmark for a joint, or None if the frame is too short."""
        if joint.value < len(self.landmarks):
            return self.landmarks[joint.value]
        return None

    @classmethod
    def from_dicts(cls, points: Sequence[Dict[str, Any]], timestamp: float = 0.0) -> "PoseFrame":
        """
        Build a frame from JSON-style landmark dicts.

        Raises ValueError if the points are not a list or a point is missing
        coordinates.
        """
        if not isinstance(points, (list, tuple)):
            raise ValueError(f"Landmarks must be a list, got {type(points).__name__}")
        try:
            timestamp = float(timestamp)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Malformed timestamp: {e}") from e

        landmarks = []
        for idx, point in enumerate(points):
            try:
                landmarks.append(Landmark(
                    x=float(point["x"]),
                    y=float(point["y"]),
                    z=float(point.get("z", 0.0)),
                    visibility=float(point.get("visibility", 0.0)),
                ))
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                raise ValueError(f"Malformed landmark at index {idx}: {e}") from e
        return cls(landmarks=landmarks, timestamp=timestamp)


@dataclass(frozen=True)
class AnalysisResult:
    """Per-frame output of an exercise analyzer."""
    rep_count: int
    feedback: Optional[str]
    state: ExerciseState
    confidence: float = 0.0
    form_score: int = 100

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "rep_count": self.rep_count,
            "feedback": self.feedback,
            "state": self.state.value,
            "confidence": round(self.confidence, 3),
            "form_score": self.form_score,
        }


FrameInput = Union[PoseFrame, Sequence[Landmark], None]


def coerce_frame(frame: FrameInput) -> Optional[PoseFrame]:
    """Accept a PoseFrame or a bare landmark list; None if it is not usable."""
    if frame is None:
        return None
    if isinstance(frame, PoseFrame):
        landmarks = frame.landmarks
    else:
        try:
            landmarks = list(frame)
        except TypeError:
            return None
    if not all(isinstance(lm, Landmark) for lm in landmarks):
        return None
    if isinstance(frame, PoseFrame):
        return frame
    return PoseFrame(landmarks=landmarks)


# ═══════════════════════════════════════════════════════════════════════════════
# JOINT ANGLE CALCULATIONS
# ═══════════════════════════════════════════════════════════════════════════════

def is_visible(landmark: Optional[Landmark], min_visibility: float) -> bool:
    """Present, with a finite visibility at or above the threshold."""
    if landmark is None or not np.isfinite(landmark.visibility):
        return False
    return landmark.visibility >= min_visibility


def joint_label(joint: JointType) -> str:
    return joint.name.lower().replace("_", " ")


def calculate_angle(
    p1: Optional[Landmark],
    vertex: Optional[Landmark],
    p3: Optional[Landmark],
    min_visibility: float = 0.5,
) -> Optional[float]:
    """
    Calculate the angle at `vertex` formed by p1-vertex-p3.

    Args:
        p1, vertex, p3: Landmarks; `vertex` is the joint where the angle opens
        min_visibility: Visibility every point needs for the angle to be valid

    Returns:
        Angle in degrees (0-180), or None when any point is missing or not
        visible enough. Degenerate (zero-length) limbs give 0.
    """
    points = (p1, vertex, p3)
    if not all(is_visible(p, min_visibility) for p in points):
        return None

    v1 = p1.to_numpy() - vertex.to_numpy()
    v2 = p3.to_numpy() - vertex.to_numpy()
    if not (np.isfinite(v1).all() and np.isfinite(v2).all()):
        return None

    norm1 = np.linalg.norm(v1)
    norm2 = np.linalg.norm(v2)
    if norm1 < ANGLE_EPSILON or norm2 < ANGLE_EPSILON:
        return 0.0

    cosine_angle = np.clip(np.dot(v1, v2) / (norm1 * norm2), -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine_angle)))


def _midpoint(a: Landmark, b: Landmark) -> np.ndarray:
    return (a.to_numpy() + b.to_numpy()) / 2


def _planar_distance(a: Landmark, b: Landmark) -> float:
    return float(np.hypot(a.x - b.x, a.y - b.y))


def torso_tilt(frame: PoseFrame) -> Optional[float]:
    """
    Angle of the hip-to-shoulder line from image vertical, in degrees.

    0 is upright, 90 is horizontal (lying or plank), 180 is upside down.
    None if the torso joints are missing or collapse to a point.
    """
    joints = [frame.get(j) for j in (JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
                                     JointType.LEFT_HIP, JointType.RIGHT_HIP)]
    if any(j is None for j in joints):
        return None
    left_shoulder, right_shoulder, left_hip, right_hip = joints

    trunk_vec = _midpoint(left_shoulder, right_shoulder) - _midpoint(left_hip, right_hip)
    trunk_vec = trunk_vec[:2]
    norm = np.linalg.norm(trunk_vec)
    if not np.isfinite(norm) or norm < ANGLE_EPSILON:
        return None

    # Image y grows downward, so "up" is -y
    vertical = np.array([0.0, -1.0])
    cosine = np.clip(np.dot(trunk_vec, vertical) / norm, -1.0, 1.0)
    return float(np.degrees(np.arccos(cosine)))


# ═══════════════════════════════════════════════════════════════════════════════
# EXERCISE PROFILES
# ═══════════════════════════════════════════════════════════════════════════════

PostureCheck = Callable[[PoseFrame, ExerciseState, Dict[str, float], float], Tuple[List[str], float]]

# Posture tolerances, in normalized image units unless noted
PUSHUP_SHOULDER_LEVEL_TOLERANCE = 0.15
PUSHUP_BODY_LINE_MIN_ANGLE = 160.0  # degrees, shoulder-hip-knee
SITUP_ARMS_CROSSED_DISTANCE = 0.15
PULLUP_KIPPING_THRESHOLD = 0.10
PULLUP_CHIN_OVER_BAR_MARGIN = 0.05


@dataclass(frozen=True)
class ExerciseProfile:
    """
    Everything exercise-specific the shared state machine needs.

    The primary angle is the mean of `angle_joints` (one triple per body side).
    A primary angle at or above `high_threshold` puts the subject in
    `extended_state`; at or below `low_threshold` in the opposite state.
    Reps are counted on the return to `rest_state`.
    """
    exercise_type: ExerciseType
    key_joints: Tuple[JointType, ...]
    angle_joints: Tuple[Tuple[JointType, JointType, JointType], ...]
    extended_state: ExerciseState
    rest_state: ExerciseState
    high_threshold: float
    low_threshold: float
    high_ideal: float
    low_ideal: float
    torso_tilt_range: Tuple[float, float]
    ready_feedback: str
    orientation_feedback: str
    shallow_rep_feedback: str
    posture_check: PostureCheck

    @property
    def flexed_state(self) -> ExerciseState:
        return ExerciseState.UP if self.extended_state == ExerciseState.DOWN else ExerciseState.DOWN

    @property
    def work_state(self) -> ExerciseState:
        return ExerciseState.UP if self.rest_state == ExerciseState.DOWN else ExerciseState.DOWN

    def classify(self, angle: float) -> Optional[ExerciseState]:
        """Phase implied by a primary angle; None inside the transition zone."""
        if angle >= self.high_threshold:
            return self.extended_state
        if angle <= self.low_threshold:
            return self.flexed_state
        return None

    def endpoint_deviation(self, angle: float, state: ExerciseState) -> float:
        """Degrees short of the ideal endpoint for `state`."""
        if state == self.extended_state:
            return max(0.0, self.high_ideal - angle)
        return max(0.0, angle - self.low_ideal)

    def reached_ideal(self, extreme: float) -> bool:
        if self.work_state == self.flexed_state:
            return extreme <= self.low_ideal
        return extreme >= self.high_ideal


def _check_pushup_posture(frame: PoseFrame, state: ExerciseState,
                          memory: Dict[str, float], min_visibility: float) -> Tuple[List[str], float]:
    issues: List[str] = []
    penalty = 0.0

    left_shoulder = frame.get(JointType.LEFT_SHOULDER)
    right_shoulder = frame.get(JointType.RIGHT_SHOULDER)
    shoulder_offset = abs(left_shoulder.y - right_shoulder.y)
    if shoulder_offset > PUSHUP_SHOULDER_LEVEL_TOLERANCE:
        issues.append("Keep shoulders level")
        penalty += min(30.0, shoulder_offset * 200)

    # Body line: shoulder-hip-knee should stay close to straight
    body_angles = [
        calculate_angle(frame.get(shoulder), frame.get(hip), frame.get(knee), min_visibility)
        for shoulder, hip, knee in (
            (JointType.LEFT_SHOULDER, JointType.LEFT_HIP, JointType.LEFT_KNEE),
            (JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP, JointType.RIGHT_KNEE),
        )
    ]
    body_angles = [a for a in body_angles if a is not None]
    if body_angles:
        body_angle = float(np.mean(body_angles))
        if body_angle < PUSHUP_BODY_LINE_MIN_ANGLE:
            issues.append("Keep your body in a straight line")
            penalty += min(30.0, PUSHUP_BODY_LINE_MIN_ANGLE - body_angle)

    return issues, penalty


def _check_situp_posture(frame: PoseFrame, state: ExerciseState,
                         memory: Dict[str, float], min_visibility: float) -> Tuple[List[str], float]:
    left_wrist = frame.get(JointType.LEFT_WRIST)
    right_wrist = frame.get(JointType.RIGHT_WRIST)
    if not (is_visible(left_wrist, min_visibility) and is_visible(right_wrist, min_visibility)):
        return [], 0.0

    # Hands on opposite shoulders
    left_to_right = _planar_distance(left_wrist, frame.get(JointType.RIGHT_SHOULDER))
    right_to_left = _planar_distance(right_wrist, frame.get(JointType.LEFT_SHOULDER))
    if min(left_to_right, right_to_left) > SITUP_ARMS_CROSSED_DISTANCE:
        return ["Arms should be crossed over chest"], 20.0
    return [], 0.0


def _check_pullup_posture(frame: PoseFrame, state: ExerciseState,
                          memory: Dict[str, float], min_visibility: float) -> Tuple[List[str], float]:
    issues: List[str] = []
    penalty = 0.0

    left_hip = frame.get(JointType.LEFT_HIP)
    right_hip = frame.get(JointType.RIGHT_HIP)
    hip_x = (left_hip.x + right_hip.x) / 2
    reference_x = memory.setdefault("reference_hip_x", hip_x)
    swing = abs(hip_x - reference_x)
    if swing > PULLUP_KIPPING_THRESHOLD:
        issues.append("Excessive hip movement detected")
        penalty += min(30.0, swing * 200)

    if state == ExerciseState.UP:
        nose = frame.get(JointType.NOSE)
        bar_y = (frame.get(JointType.LEFT_WRIST).y + frame.get(JointType.RIGHT_WRIST).y) / 2
        if nose.y > bar_y - PULLUP_CHIN_OVER_BAR_MARGIN:
            issues.append("Pull higher - chin above bar")
            penalty += 20.0

    return issues, penalty


_ARMS = (
    (JointType.LEFT_SHOULDER, JointType.LEFT_ELBOW, JointType.LEFT_WRIST),
    (JointType.RIGHT_SHOULDER, JointType.RIGHT_ELBOW, JointType.RIGHT_WRIST),
)
_TRUNK = (
    (JointType.LEFT_SHOULDER, JointType.LEFT_HIP, JointType.LEFT_KNEE),
    (JointType.RIGHT_SHOULDER, JointType.RIGHT_HIP, JointType.RIGHT_KNEE),
)

EXERCISE_PROFILES: Dict[ExerciseType, ExerciseProfile] = {
    ExerciseType.PUSHUP: ExerciseProfile(
        exercise_type=ExerciseType.PUSHUP,
        key_joints=(
            JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
            JointType.LEFT_ELBOW, JointType.RIGHT_ELBOW,
            JointType.LEFT_WRIST, JointType.RIGHT_WRIST,
            JointType.LEFT_HIP, JointType.RIGHT_HIP,
        ),
        angle_joints=_ARMS,
        extended_state=ExerciseState.UP,
        rest_state=ExerciseState.UP,
        high_threshold=160.0,
        low_threshold=90.0,
        high_ideal=170.0,
        low_ideal=80.0,
        torso_tilt_range=(45.0, 135.0),
        ready_feedback="Get into the up position with arms extended",
        orientation_feedback="Turn sideways to the camera in a plank position",
        shallow_rep_feedback="Go deeper (elbow angle: {angle:.0f}°)",
        posture_check=_check_pushup_posture,
    ),
    ExerciseType.SITUP: ExerciseProfile(
        exercise_type=ExerciseType.SITUP,
        key_joints=(
            JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
            JointType.LEFT_HIP, JointType.RIGHT_HIP,
            JointType.LEFT_KNEE, JointType.RIGHT_KNEE,
        ),
        angle_joints=_TRUNK,
        extended_state=ExerciseState.DOWN,
        rest_state=ExerciseState.DOWN,
        high_threshold=130.0,
        low_threshold=90.0,
        high_ideal=150.0,
        low_ideal=70.0,
        torso_tilt_range=(0.0, 180.0),
        ready_feedback="Lie back with shoulder blades on the ground",
        orientation_feedback="Move into frame",
        shallow_rep_feedback="Sit up higher (hip angle: {angle:.0f}°)",
        posture_check=_check_situp_posture,
    ),
    ExerciseType.PULLUP: ExerciseProfile(
        exercise_type=ExerciseType.PULLUP,
        key_joints=(
            JointType.NOSE,
            JointType.LEFT_SHOULDER, JointType.RIGHT_SHOULDER,
            JointType.LEFT_ELBOW, JointType.RIGHT_ELBOW,
            JointType.LEFT_WRIST, JointType.RIGHT_WRIST,
            JointType.LEFT_HIP, JointType.RIGHT_HIP,
        ),
        angle_joints=_ARMS,
        extended_state=ExerciseState.DOWN,
        rest_state=ExerciseState.DOWN,
        high_threshold=160.0,
        low_threshold=90.0,
        high_ideal=170.0,
        low_ideal=80.0,
        torso_tilt_range=(0.0, 45.0),
        ready_feedback="Hang with arms fully extended",
        orientation_feedback="Hang straight below the bar",
        shallow_rep_feedback="Pull up higher (elbow angle: {angle:.0f}°)",
        posture_check=_check_pullup_posture,
    ),
}


# ═══════════════════════════════════════════════════════════════════════════════
# REPETITION STATE MACHINE
# ═══════════════════════════════════════════════════════════════════════════════

class RepStateMachine:
    """
    Shared per-frame driver for every exercise profile.

    UP/DOWN changes only happen after `debounce_frames` consecutive frames
    agree on the new phase. A rep counts on the return to the rest state, and
    only when the cycle left the rest state while tracking was uninterrupted.
    """

    def __init__(
        self,
        profile: ExerciseProfile,
        debounce_frames: Optional[int] = None,
        min_visibility: Optional[float] = None,
    ):
        self.profile = profile
        if debounce_frames is None:
            debounce_frames = settings.DEBOUNCE_FRAMES
        self.debounce_frames = max(1, int(debounce_frames))
        self.min_visibility = settings.MIN_VISIBILITY if min_visibility is None else min_visibility
        self.reset()

    def reset(self):
        """Zero all counters and return to IDLE."""
        self.state = ExerciseState.IDLE
        self.rep_count = 0
        self._quality_total = 0.0
        self._quality_samples = 0
        self._clear_tracking()

    def _clear_tracking(self):
        self._pending_phase: Optional[ExerciseState] = None
        self._pending_frames = 0
        self._cycle_armed = False
        self._cycle_extreme: Optional[float] = None
        self._memory: Dict[str, float] = {}

    def finish(self):
        self.state = ExerciseState.FINISHED

    @property
    def form_score(self) -> int:
        """Mean of every endpoint quality sample so far."""
        if not self._quality_samples:
            return 100
        return round_half_up(self._quality_total / self._quality_samples)

    # ─── Pose checks ───────────────────────────────────────────────────────────

    def missing_joints(self, frame: Optional[PoseFrame]) -> List[JointType]:
        """Key joints that are absent or below the visibility threshold."""
        if frame is None or not frame.is_complete:
            return list(self.profile.key_joints)
        return [
            joint for joint in self.profile.key_joints
            if not is_visible(frame.get(joint), self.min_visibility)
        ]

    def is_valid_pose(self, frame: FrameInput) -> bool:
        return not self.missing_joints(coerce_frame(frame))

    def primary_angle(self, frame: PoseFrame) -> Optional[float]:
        angles = [
            calculate_angle(frame.get(a), frame.get(b), frame.get(c), self.min_visibility)
            for a, b, c in self.profile.angle_joints
        ]
        if any(angle is None for angle in angles):
            return None
        return float(np.mean(angles))

    def confidence(self, frame: PoseFrame) -> float:
        visibilities = [frame.get(joint).visibility for joint in self.profile.key_joints]
        return float(np.clip(np.mean(visibilities), 0.0, 1.0))

    # ─── Frame processing ──────────────────────────────────────────────────────

    def update(self, frame: FrameInput) -> AnalysisResult:
        """Process one frame and return the analysis for it."""
        if self.state == ExerciseState.FINISHED:
            return self._result("Exercise complete", 0.0)

        pose = coerce_frame(frame)
        if pose is None or not pose.is_complete:
            return self._invalidate("Position yourself fully in frame")
        missing = self.missing_joints(pose)
        if missing:
            return self._invalidate("Cannot see clearly: " + ", ".join(joint_label(j) for j in missing))

        tilt = torso_tilt(pose)
        low_tilt, high_tilt = self.profile.torso_tilt_range
        if tilt is None or not low_tilt <= tilt <= high_tilt:
            return self._invalidate(self.profile.orientation_feedback)

        angle = self.primary_angle(pose)
        if angle is None:
            return self._invalidate("Cannot calculate joint angle")

        confidence = self.confidence(pose)
        phase = self.profile.classify(angle)

        if self.state == ExerciseState.IDLE:
            if phase != self.profile.rest_state:
                return self._result(self.profile.ready_feedback, confidence)
            self._enter_starting()
        elif self.state == ExerciseState.INVALID:
            self._enter_starting()

        self._track_extreme(angle)
        feedback = self._advance(phase)

        issues, posture_penalty = self.profile.posture_check(
            pose, self.state, self._memory, self.min_visibility
        )
        feedback.extend(issues)

        if phase is not None and phase == self.state:
            self._record_quality(angle, posture_penalty)

        return self._result(". ".join(feedback) if feedback else None, confidence)

    def _enter_starting(self):
        logger.debug(f"{self.profile.exercise_type.value}: {self.state.value} -> starting")
        self.state = ExerciseState.STARTING
        self._clear_tracking()

    def _track_extreme(self, angle: float):
        if self._cycle_extreme is None:
            self._cycle_extreme = angle
        elif self.profile.work_state == self.profile.flexed_state:
            self._cycle_extreme = min(self._cycle_extreme, angle)
        else:
            self._cycle_extreme = max(self._cycle_extreme, angle)

    def _advance(self, phase: Optional[ExerciseState]) -> List[str]:
        """Debounce the per-frame phase and apply a confirmed transition."""
        if phase is None:
            self._pending_phase = None
            self._pending_frames = 0
            return []

        if phase == self._pending_phase:
            self._pending_frames += 1
        else:
            self._pending_phase = phase
            self._pending_frames = 1

        if phase == self.state or self._pending_frames < self.debounce_frames:
            return []

        previous = self.state
        self.state = phase
        logger.debug(f"{self.profile.exercise_type.value}: {previous.value} -> {phase.value}")

        feedback: List[str] = []
        if phase == self.profile.work_state:
            self._cycle_armed = previous == self.profile.rest_state
        else:
            if previous == self.profile.work_state and self._cycle_armed:
                self.rep_count += 1
                logger.debug(f"{self.profile.exercise_type.value}: rep {self.rep_count}")
                extreme = self._cycle_extreme
                if extreme is not None and not self.profile.reached_ideal(extreme):
                    feedback.append(self.profile.shallow_rep_feedback.format(angle=extreme))
            self._cycle_armed = False
            self._cycle_extreme = None
        return feedback

    def _record_quality(self, angle: float, posture_penalty: float):
        deviation = self.profile.endpoint_deviation(angle, self.state)
        depth_penalty = min(MAX_DEPTH_PENALTY, deviation * PENALTY_PER_DEGREE)
        sample = float(np.clip(100.0 - depth_penalty - posture_penalty, 0.0, 100.0))
        self._quality_total += sample
        self._quality_samples += 1

    def _invalidate(self, reason: str) -> AnalysisResult:
        if self.state != ExerciseState.INVALID:
            logger.debug(f"{self.profile.exercise_type.value}: {self.state.value} -> invalid ({reason})")
        self.state = ExerciseState.INVALID
        self._clear_tracking()
        return self._result(reason, 0.0)

    def _result(self, feedback: Optional[str], confidence: float) -> AnalysisResult:
        return AnalysisResult(
            rep_count=self.rep_count,
            feedback=feedback,
            state=self.state,
            confidence=confidence,
            form_score=self.form_score,
        )


# ═══════════════════════════════════════════════════════════════════════════════
# EXERCISE ANALYZER
# ═══════════════════════════════════════════════════════════════════════════════

class ExerciseAnalyzer:
    """
    Lifecycle wrapper around one exercise's state machine.

    Frames are only analyzed between start() and stop(); anything else gets
    an INVALID result with zero confidence instead of an error. One instance
    per workout attempt, fed one frame at a time.
    """

    def __init__(
        self,
        exercise_type: Union[ExerciseType, str],
        debounce_frames: Optional[int] = None,
        min_visibility: Optional[float] = None,
    ):
        ex_type = ExerciseType(exercise_type)
        if ex_type not in EXERCISE_PROFILES:
            raise ValueError(f"'{ex_type.value}' is not analyzed from pose data")

        self.exercise_type = ex_type
        self.machine = RepStateMachine(
            EXERCISE_PROFILES[ex_type],
            debounce_frames=debounce_frames,
            min_visibility=min_visibility,
        )
        self._started = False
        self._stopped = False

    @property
    def is_active(self) -> bool:
        return self._started and not self._stopped

    @property
    def state(self) -> ExerciseState:
        return self.machine.state

    @property
    def rep_count(self) -> int:
        return self.machine.rep_count

    @property
    def form_score(self) -> int:
        return self.machine.form_score

    def start(self):
        """Reset counters and begin accepting frames."""
        self.machine.reset()
        self._started = True
        self._stopped = False
        logger.info(f"{self.exercise_type.value} analyzer started")

    def stop(self):
        """Mark the set finished; frames are ignored until start() or reset()."""
        self._stopped = True
        self.machine.finish()
        logger.info(f"{self.exercise_type.value} analyzer stopped at {self.rep_count} reps")

    def reset(self):
        """Zero counters without changing whether the analyzer was started."""
        self.machine.reset()
        self._stopped = False

    def analyze(self, frame: FrameInput) -> AnalysisResult:
        """Analyze one frame of landmarks."""
        if not self._started:
            return self._reject("Analyzer not started")
        if self._stopped:
            return self._reject("Analyzer stopped")
        return self.machine.update(frame)

    def is_valid_pose(self, frame: FrameInput) -> bool:
        """True when every key joint for this exercise is present and visible."""
        return self.machine.is_valid_pose(frame)

    def final_grade(self) -> int:
        return calculate_grade(self.exercise_type, self.rep_count)

    def rating(self) -> str:
        return get_rating(self.final_grade())

    def _reject(self, reason: str) -> AnalysisResult:
        logger.debug(f"{self.exercise_type.value}: frame ignored ({reason})")
        return AnalysisResult(
            rep_count=self.rep_count,
            feedback=reason,
            state=ExerciseState.INVALID,
            confidence=0.0,
            form_score=self.form_score,
        )
