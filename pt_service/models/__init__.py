"""
PT GRADER Models

Pose-based repetition analysis, score curves and session aggregation.
"""

from .pose_analyzer import (
    AnalysisResult,
    EXERCISE_PROFILES,
    ExerciseAnalyzer,
    ExerciseProfile,
    ExerciseState,
    JointType,
    Landmark,
    PoseFrame,
    RepStateMachine,
    calculate_angle,
    torso_tilt,
)

from .scoring import (
    ExerciseType,
    calculate_grade,
    calculate_pullup_grade,
    calculate_pushup_grade,
    calculate_run_grade,
    calculate_situp_grade,
    format_run_time,
    get_rating,
    get_scale,
    parse_run_time,
)

from .exercise_session import (
    ExerciseSession,
    ExerciseSessionHandler,
    SessionLimitError,
    SessionNotFoundError,
    SessionState,
    SetRecord,
    WorkoutSession,
    overall_score,
)

__all__ = [
    # Pose Analyzer
    "AnalysisResult",
    "EXERCISE_PROFILES",
    "ExerciseAnalyzer",
    "ExerciseProfile",
    "ExerciseState",
    "JointType",
    "Landmark",
    "PoseFrame",
    "RepStateMachine",
    "calculate_angle",
    "torso_tilt",
    # Scoring
    "ExerciseType",
    "calculate_grade",
    "calculate_pullup_grade",
    "calculate_pushup_grade",
    "calculate_run_grade",
    "calculate_situp_grade",
    "format_run_time",
    "get_rating",
    "get_scale",
    "parse_run_time",
    # Exercise Session
    "ExerciseSession",
    "ExerciseSessionHandler",
    "SessionLimitError",
    "SessionNotFoundError",
    "SessionState",
    "SetRecord",
    "WorkoutSession",
    "overall_score",
]
