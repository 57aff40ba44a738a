"""
PT GRADER - Score Curves

Closed-form scoring scales that turn a raw performance metric (reps or
elapsed seconds) into a 0-100 grade, plus the rating bands shown to users.
"""

import math
from enum import Enum
from typing import Dict, Union


class ExerciseType(str, Enum):
    """Graded exercise events."""
    PUSHUP = "pushup"
    SITUP = "situp"
    PULLUP = "pullup"
    RUN = "run"


# ═══════════════════════════════════════════════════════════════════════════════
# SCALE BREAKPOINTS
# ═══════════════════════════════════════════════════════════════════════════════

PUSHUP_MAX_REPS = 60

SITUP_MIN_REPS = 15
SITUP_MAX_REPS = 78

PULLUP_MAX_REPS = 20

RUN_MAX_SCORE_SECONDS = 780   # 13:00
RUN_MIN_SCORE_SECONDS = 1260  # 21:00

# Lower bound of each rating band, highest first
RATING_BANDS = (
    (90, "Excellent"),
    (75, "Good"),
    (60, "Satisfactory"),
    (40, "Marginal"),
    (0, "Poor"),
)


def round_half_up(value: float) -> int:
    """Round to the nearest int; exact halves go up."""
    return int(math.floor(value + 0.5))


# ═══════════════════════════════════════════════════════════════════════════════
# GRADE CURVES
# ═══════════════════════════════════════════════════════════════════════════════

def calculate_pushup_grade(reps: int) -> int:
    """Push-ups: 60 reps scores 100, linear down to 0 reps."""
    if reps >= PUSHUP_MAX_REPS:
        return 100
    if reps <= 0:
        return 0
    return round_half_up(reps * 100 / PUSHUP_MAX_REPS)


def calculate_situp_grade(reps: int) -> int:
    """Sit-ups: 78 reps scores 100, linear down to 0 at 15 reps."""
    if reps >= SITUP_MAX_REPS:
        return 100
    if reps <= SITUP_MIN_REPS:
        return 0
    return round_half_up((reps - SITUP_MIN_REPS) * 100 / (SITUP_MAX_REPS - SITUP_MIN_REPS))


def calculate_pullup_grade(reps: int) -> int:
    """Pull-ups: 20 reps scores 100, linear down to 0 reps."""
    if reps >= PULLUP_MAX_REPS:
        return 100
    if reps <= 0:
        return 0
    return round_half_up(reps * 100 / PULLUP_MAX_REPS)


def calculate_run_grade(time_seconds: float) -> int:
    """
    Two-mile run: 13:00 or faster scores 100, 21:00 or slower scores 0.

    Args:
        time_seconds: Elapsed run time in seconds

    Returns:
        Grade in [0, 100]
    """
    if time_seconds <= RUN_MAX_SCORE_SECONDS:
        return 100
    if time_seconds >= RUN_MIN_SCORE_SECONDS:
        return 0
    span = RUN_MIN_SCORE_SECONDS - RUN_MAX_SCORE_SECONDS
    grade = round_half_up(100 - (time_seconds - RUN_MAX_SCORE_SECONDS) * 100 / span)
    return max(0, grade)


GRADE_FUNCTIONS = {
    ExerciseType.PUSHUP: calculate_pushup_grade,
    ExerciseType.SITUP: calculate_situp_grade,
    ExerciseType.PULLUP: calculate_pullup_grade,
    ExerciseType.RUN: calculate_run_grade,
}


def calculate_grade(exercise_type: Union[ExerciseType, str], value: float) -> int:
    """
    Grade a raw metric for any exercise type.

    `value` is a rep count for push-ups, sit-ups and pull-ups and elapsed
    seconds for the run. Raises ValueError for an unknown exercise type.
    """
    return GRADE_FUNCTIONS[ExerciseType(exercise_type)](value)


def get_rating(grade: int) -> str:
    """Map a grade to its rating label."""
    for lower_bound, label in RATING_BANDS:
        if grade >= lower_bound:
            return label
    return "Poor"


def get_scale(exercise_type: Union[ExerciseType, str]) -> Dict[str, Union[int, str]]:
    """Describe the breakpoints of an exercise's grading scale."""
    ex_type = ExerciseType(exercise_type)
    if ex_type == ExerciseType.PUSHUP:
        return {"metric": "reps", "zero_at": 0, "max_at": PUSHUP_MAX_REPS}
    if ex_type == ExerciseType.SITUP:
        return {"metric": "reps", "zero_at": SITUP_MIN_REPS, "max_at": SITUP_MAX_REPS}
    if ex_type == ExerciseType.PULLUP:
        return {"metric": "reps", "zero_at": 0, "max_at": PULLUP_MAX_REPS}
    return {"metric": "seconds", "zero_at": RUN_MIN_SCORE_SECONDS, "max_at": RUN_MAX_SCORE_SECONDS}


# ═══════════════════════════════════════════════════════════════════════════════
# RUN TIME HELPERS
# ═══════════════════════════════════════════════════════════════════════════════

def format_run_time(seconds: float) -> str:
    """Format elapsed seconds as mm:ss."""
    total = max(0, int(round(seconds)))
    minutes, secs = divmod(total, 60)
    return f"{minutes:02d}:{secs:02d}"


def parse_run_time(value: Union[str, int, float]) -> float:
    """
    Parse a run time given as seconds or an "mm:ss" string.

    Raises ValueError on malformed input.
    """
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"Run time cannot be negative: {value}")
        return float(value)

    text = value.strip()
    if ":" not in text:
        return parse_run_time(float(text))

    minutes_text, _, seconds_text = text.partition(":")
    minutes = int(minutes_text)
    seconds = float(seconds_text)
    if minutes < 0 or not 0 <= seconds < 60:
        raise ValueError(f"Invalid run time: {value!r}")
    return minutes * 60 + seconds
