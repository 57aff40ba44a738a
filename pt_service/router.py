"""
PT GRADER Router

Endpoints for grading PT test events and for live repetition analysis.
Clients run pose estimation on-device and send 33 landmarks per frame.
"""

import json
import logging
from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from shared.utils import handle_exceptions, success_response
from .models import (
    EXERCISE_PROFILES,
    ExerciseSessionHandler,
    ExerciseType,
    Landmark,
    PoseFrame,
    SessionLimitError,
    SessionNotFoundError,
    calculate_grade,
    format_run_time,
    get_rating,
    get_scale,
    overall_score,
    parse_run_time,
)

logger = logging.getLogger(__name__)

router = APIRouter()


_session_handler: Optional[ExerciseSessionHandler] = None


def get_session_handler() -> ExerciseSessionHandler:
    """Get or create the session handler shared by the API."""
    global _session_handler
    if _session_handler is None:
        _session_handler = ExerciseSessionHandler()
    return _session_handler


# ============= Pydantic Models =============

class LandmarkModel(BaseModel):
    x: float = Field(..., allow_inf_nan=False)
    y: float = Field(..., allow_inf_nan=False)
    z: float = Field(0.0, allow_inf_nan=False)
    visibility: float = Field(0.0, allow_inf_nan=False)


class FrameRequest(BaseModel):
    landmarks: List[LandmarkModel]
    timestamp: float = Field(0.0, allow_inf_nan=False)

    def to_frame(self) -> PoseFrame:
        return PoseFrame(
            landmarks=[Landmark(x=lm.x, y=lm.y, z=lm.z, visibility=lm.visibility) for lm in self.landmarks],
            timestamp=self.timestamp,
        )


class GradeRequest(BaseModel):
    exercise_type: str
    value: Union[float, str] = Field(..., description="Reps, or run time in seconds or mm:ss")


class OverallScoreRequest(BaseModel):
    grades: Dict[str, Optional[int]]


class StartSessionRequest(BaseModel):
    user_id: str
    exercise_type: str


class RunResultRequest(BaseModel):
    user_id: str
    time: Union[float, str] = Field(..., description="Run time in seconds or mm:ss")


def _parse_exercise_type(value: str) -> ExerciseType:
    try:
        return ExerciseType(value.lower().strip())
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid exercise type. Valid types: {[e.value for e in ExerciseType]}"
        )


def _parse_metric(ex_type: ExerciseType, value: Union[float, str]) -> float:
    if ex_type == ExerciseType.RUN:
        return parse_run_time(value)
    return float(value)


# ============= REST Endpoints =============

@router.get("/exercises")
async def get_exercises():
    """List gradable exercises and their scoring scales."""
    return {
        "exercises": [
            {
                "exercise_type": ex_type.value,
                "pose_tracked": ex_type in EXERCISE_PROFILES,
                "scale": get_scale(ex_type),
            }
            for ex_type in ExerciseType
        ],
        "total": len(ExerciseType),
    }


@router.post("/grade")
@handle_exceptions
async def grade_exercise(request: GradeRequest):
    """Grade a raw metric (reps or run time)."""
    ex_type = _parse_exercise_type(request.exercise_type)
    metric = _parse_metric(ex_type, request.value)
    grade = calculate_grade(ex_type, metric)

    response = {
        "exercise_type": ex_type.value,
        "value": metric,
        "grade": grade,
        "rating": get_rating(grade),
    }
    if ex_type == ExerciseType.RUN:
        response["time"] = format_run_time(metric)
    return response


@router.post("/overall-score")
async def get_overall_score(request: OverallScoreRequest):
    """Average the grades of the exercises that were completed."""
    grades = {}
    for name, grade in request.grades.items():
        ex_type = _parse_exercise_type(name)
        if grade is not None and not 0 <= grade <= 100:
            raise HTTPException(status_code=400, detail=f"Grade for {name} must be between 0 and 100")
        grades[ex_type] = grade

    score = overall_score(grades)
    return {"overall_score": score, "rating": get_rating(score)}


@router.post("/session/start")
async def start_session(
    request: StartSessionRequest,
    handler: ExerciseSessionHandler = Depends(get_session_handler),
):
    """
    Start a live analysis session for push-ups, sit-ups or pull-ups.

    Returns a session ID for the frame endpoint and WebSocket stream.
    """
    ex_type = _parse_exercise_type(request.exercise_type)
    if ex_type not in EXERCISE_PROFILES:
        raise HTTPException(status_code=400, detail=f"'{ex_type.value}' is not tracked from pose data")

    try:
        session = handler.create_session(request.user_id, ex_type)
    except SessionLimitError as e:
        raise HTTPException(status_code=429, detail=str(e))

    return {
        "status": "created",
        "session_id": session.session_id,
        "user_id": request.user_id,
        "exercise_type": ex_type.value,
        "websocket_url": f"/api/pt/ws/session/{session.session_id}",
    }


@router.post("/session/{session_id}/frame")
async def analyze_frame(
    session_id: str,
    request: FrameRequest,
    handler: ExerciseSessionHandler = Depends(get_session_handler),
):
    """Analyze one frame of landmarks."""
    try:
        result = handler.process_frame(session_id, request.to_frame())
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    return result.to_dict()


@router.get("/session/{session_id}")
async def get_session_status(
    session_id: str,
    handler: ExerciseSessionHandler = Depends(get_session_handler),
):
    """Get current session status."""
    try:
        return handler.get_session(session_id).to_dict()
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.post("/session/{session_id}/reset")
async def reset_session(
    session_id: str,
    handler: ExerciseSessionHandler = Depends(get_session_handler),
):
    """Zero the rep counter and resume analysis."""
    try:
        session = handler.reset_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")
    except SessionLimitError as e:
        raise HTTPException(status_code=429, detail=str(e))
    return success_response(session.to_dict(), message="Session reset")


@router.post("/session/{session_id}/stop")
async def stop_session(
    session_id: str,
    handler: ExerciseSessionHandler = Depends(get_session_handler),
):
    """Finish the set and get its grade."""
    try:
        return handler.complete_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found")


@router.post("/run")
@handle_exceptions
async def record_run(
    request: RunResultRequest,
    handler: ExerciseSessionHandler = Depends(get_session_handler),
):
    """Record a two-mile run time on the user's workout."""
    record = handler.record_run(request.user_id, parse_run_time(request.time))
    return record.to_dict()


@router.get("/workout/{user_id}")
async def get_workout(
    user_id: str,
    handler: ExerciseSessionHandler = Depends(get_session_handler),
):
    """Per-exercise grades and the overall score for a user."""
    return handler.get_workout(user_id).to_dict()


# ============= WebSocket Endpoints =============

@router.websocket("/ws/session/{session_id}")
async def session_stream(
    websocket: WebSocket,
    session_id: str,
    handler: ExerciseSessionHandler = Depends(get_session_handler),
):
    """
    Real-time repetition analysis.

    Each message is {"landmarks": [...], "timestamp": ...}; each reply is one
    analysis result. Frames are processed strictly in arrival order.
    """
    await websocket.accept()

    try:
        session = handler.get_session(session_id)
    except SessionNotFoundError:
        await websocket.send_json({"type": "ERROR", "message": f"Session {session_id} not found"})
        await websocket.close()
        return

    await websocket.send_json({
        "type": "SESSION_STARTED",
        "session_id": session_id,
        "exercise_type": session.exercise_type.value,
    })

    try:
        while True:
            try:
                message = json.loads(await websocket.receive_text())
            except json.JSONDecodeError as e:
                await websocket.send_json({"type": "ERROR", "message": f"Invalid JSON: {e}"})
                continue

            if not isinstance(message, dict):
                await websocket.send_json({"type": "ERROR", "message": "Message must be a JSON object"})
                continue

            if message.get("type") == "STOP":
                try:
                    summary = handler.complete_session(session_id)
                except SessionNotFoundError:
                    await websocket.send_json({"type": "ERROR", "message": f"Session {session_id} expired"})
                    break
                await websocket.send_json({"type": "SESSION_COMPLETED", **summary})
                break

            try:
                frame = PoseFrame.from_dicts(message.get("landmarks") or [], message.get("timestamp", 0.0))
            except ValueError as e:
                await websocket.send_json({"type": "ERROR", "message": str(e)})
                continue

            try:
                result = handler.process_frame(session_id, frame)
            except SessionNotFoundError:
                await websocket.send_json({"type": "ERROR", "message": f"Session {session_id} expired"})
                break
            await websocket.send_json({"type": "FRAME_RESULT", **result.to_dict()})

    except WebSocketDisconnect:
        logger.info(f"Session {session_id} disconnected")
