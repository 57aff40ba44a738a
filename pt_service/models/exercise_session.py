"""
PT GRADER - Exercise Session Handler

Combines per-exercise grades into an overall fitness score and manages the
live analyzer sessions driven by the API.
"""

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Any, Union
from datetime import datetime, timezone
from enum import Enum
import logging
import time
import uuid

from core.config import settings
from .pose_analyzer import (
    AnalysisResult,
    ExerciseAnalyzer,
    FrameInput,
)
from .scoring import ExerciseType, calculate_grade, get_rating, format_run_time, round_half_up

logger = logging.getLogger(__name__)


def overall_score(grades: Mapping[Union[ExerciseType, str], Optional[int]]) -> int:
    """
    Mean of the grades that are present, rounded to an int.

    Exercise types that are missing (or mapped to None) are left out of the
    average entirely rather than counted as zero. No grades gives 0.
    """
    present = [grade for grade in grades.values() if grade is not None]
    if not present:
        return 0
    return round_half_up(sum(present) / len(present))


# ═══════════════════════════════════════════════════════════════════════════════
# WORKOUT SUMMARY
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass
class SetRecord:
    """A completed, graded set of one exercise."""
    exercise_type: ExerciseType
    value: float  # reps, or seconds for the run
    grade: int
    rating: str
    form_score: Optional[int] = None
    completed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "exercise_type": self.exercise_type.value,
            "value": self.value,
            "grade": self.grade,
            "rating": self.rating,
            "form_score": self.form_score,
            "completed_at": self.completed_at,
        }
        if self.exercise_type == ExerciseType.RUN:
            data["time"] = format_run_time(self.value)
        return data


@dataclass
class WorkoutSession:
    """Graded sets for one user's assessment; the latest set per exercise counts."""
    user_id: str
    sets: Dict[ExerciseType, SetRecord] = field(default_factory=dict)

    def record_set(
        self,
        exercise_type: Union[ExerciseType, str],
        value: float,
        form_score: Optional[int] = None,
    ) -> SetRecord:
        """Grade a raw metric and keep it as the result for that exercise."""
        ex_type = ExerciseType(exercise_type)
        grade = calculate_grade(ex_type, value)
        record = SetRecord(
            exercise_type=ex_type,
            value=value,
            grade=grade,
            rating=get_rating(grade),
            form_score=form_score,
        )
        self.sets[ex_type] = record
        return record

    @property
    def grades(self) -> Dict[ExerciseType, int]:
        return {ex_type: record.grade for ex_type, record in self.sets.items()}

    @property
    def overall_score(self) -> int:
        return overall_score(self.grades)

    def to_dict(self) -> Dict[str, Any]:
        score = self.overall_score
        return {
            "user_id": self.user_id,
            "overall_score": score,
            "overall_rating": get_rating(score),
            "exercises": {ex_type.value: record.to_dict() for ex_type, record in self.sets.items()},
        }


# ═══════════════════════════════════════════════════════════════════════════════
# LIVE ANALYZER SESSIONS
# ═══════════════════════════════════════════════════════════════════════════════

class SessionState(str, Enum):
    """Lifecycle of an analyzer session."""
    ACTIVE = "active"
    COMPLETED = "completed"


class SessionNotFoundError(KeyError):
    """Raised when a session id is unknown."""


class SessionLimitError(RuntimeError):
    """Raised when too many analyzer sessions are open."""


@dataclass
class ExerciseSession:
    """One camera session analyzing a single exercise."""
    session_id: str
    user_id: str
    exercise_type: ExerciseType
    analyzer: ExerciseAnalyzer
    state: SessionState = SessionState.ACTIVE
    frames_processed: int = 0
    start_time: float = field(default_factory=time.time)
    last_activity: float = field(default_factory=time.time)
    end_time: Optional[float] = None
    last_result: Optional[AnalysisResult] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "session_id": self.session_id,
            "user_id": self.user_id,
            "exercise_type": self.exercise_type.value,
            "state": self.state.value,
            "analyzer_state": self.analyzer.state.value,
            "rep_count": self.analyzer.rep_count,
            "form_score": self.analyzer.form_score,
            "frames_processed": self.frames_processed,
            "duration_seconds": round((self.end_time or time.time()) - self.start_time, 1),
            "last_result": self.last_result.to_dict() if self.last_result else None,
        }


class ExerciseSessionHandler:
    """
    Owns the analyzer sessions opened through the API.

    Every session gets its own ExerciseAnalyzer; nothing is shared between
    sessions. Completed sets are folded into the user's WorkoutSession.
    """

    def __init__(
        self,
        max_sessions: Optional[int] = None,
        debounce_frames: Optional[int] = None,
        retention_seconds: Optional[float] = None,
    ):
        self.max_sessions = settings.MAX_ACTIVE_SESSIONS if max_sessions is None else max_sessions
        self.retention_seconds = (
            settings.SESSION_RETENTION_SECONDS if retention_seconds is None else retention_seconds
        )
        self.debounce_frames = debounce_frames
        self.active_sessions: Dict[str, ExerciseSession] = {}
        self.workouts: Dict[str, WorkoutSession] = {}

    def create_session(self, user_id: str, exercise_type: Union[ExerciseType, str]) -> ExerciseSession:
        """
        Create and start an analyzer session.

        Raises ValueError for exercises that are not analyzed from pose data
        and SessionLimitError when the handler is full.
        """
        self.purge_expired()
        self._check_capacity()

        analyzer = ExerciseAnalyzer(exercise_type, debounce_frames=self.debounce_frames)
        analyzer.start()

        session = ExerciseSession(
            session_id=str(uuid.uuid4())[:8],
            user_id=user_id,
            exercise_type=analyzer.exercise_type,
            analyzer=analyzer,
        )
        self.active_sessions[session.session_id] = session
        logger.info(f"Session {session.session_id} created: {session.exercise_type.value} for {user_id}")
        return session

    def get_session(self, session_id: str) -> ExerciseSession:
        session = self.active_sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def process_frame(self, session_id: str, frame: FrameInput) -> AnalysisResult:
        """Run one frame through the session's analyzer."""
        session = self.get_session(session_id)
        result = session.analyzer.analyze(frame)
        session.frames_processed += 1
        session.last_activity = time.time()
        session.last_result = result
        return result

    def reset_session(self, session_id: str) -> ExerciseSession:
        """Zero the session's counters; a completed session counts against the limit again."""
        session = self.get_session(session_id)
        if session.state == SessionState.COMPLETED:
            self._check_capacity()
        session.analyzer.reset()
        session.state = SessionState.ACTIVE
        session.end_time = None
        session.last_activity = time.time()
        return session

    def complete_session(self, session_id: str) -> Dict[str, Any]:
        """
        Stop the analyzer, grade the set and record it on the user's workout.

        Returns the session summary with grade, rating and overall score.
        """
        session = self.get_session(session_id)
        session.analyzer.stop()
        session.state = SessionState.COMPLETED
        session.end_time = time.time()

        workout = self.get_workout(session.user_id)
        record = workout.record_set(
            session.exercise_type,
            session.analyzer.rep_count,
            form_score=session.analyzer.form_score,
        )
        logger.info(
            f"Session {session_id} completed: {record.value:g} reps, grade {record.grade} ({record.rating})"
        )

        summary = {
            "status": "completed",
            "session": session.to_dict(),
            "grade": record.grade,
            "rating": record.rating,
            "workout": workout.to_dict(),
        }

        self.purge_expired()
        return summary

    def get_workout(self, user_id: str) -> WorkoutSession:
        if user_id not in self.workouts:
            self.workouts[user_id] = WorkoutSession(user_id=user_id)
        return self.workouts[user_id]

    def record_run(self, user_id: str, time_seconds: float) -> SetRecord:
        """Record a timed two-mile run on the user's workout."""
        return self.get_workout(user_id).record_set(ExerciseType.RUN, time_seconds)

    def cleanup_session(self, session_id: str):
        """Remove session from active sessions."""
        self.active_sessions.pop(session_id, None)

    def purge_expired(self, now: Optional[float] = None) -> int:
        """
        Drop sessions completed, or left idle, longer than the retention window.

        Returns the number of sessions removed.
        """
        now = time.time() if now is None else now
        expired = [
            session_id for session_id, session in self.active_sessions.items()
            if now - (session.end_time if session.state == SessionState.COMPLETED else session.last_activity)
            >= self.retention_seconds
        ]
        for session_id in expired:
            self.cleanup_session(session_id)
        if expired:
            logger.info(f"Purged {len(expired)} expired sessions")
        return len(expired)

    def _check_capacity(self):
        open_sessions = sum(1 for s in self.active_sessions.values() if s.state == SessionState.ACTIVE)
        if open_sessions >= self.max_sessions:
            raise SessionLimitError(f"Too many active sessions (max {self.max_sessions})")
