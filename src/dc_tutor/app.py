from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, Form, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .auth import (
    InvalidCredentialsError,
    authenticate_user,
    clear_session_cookie,
    create_user_session,
    get_current_user,
    revoke_session,
    set_session_cookie,
    SESSION_COOKIE_NAME,
)
from .bkt import mastery_percent
from .feedback import generate_feedback, suggest_next_action
from .models import DIFFICULTIES, Problem
from .problems import (
    InvalidAnswerError,
    featured_problems,
    get_problem,
    grade_answer,
    load_problems,
    problems_by_difficulty,
    skill_for_step,
)
from .progress import ProgressStore, get_store

APP_TITLE = "Divide & Conquer Tutor"
LOG_LEVEL = os.environ.get("DC_TUTOR_LOG_LEVEL", "INFO")
GUEST_LEARNER_ID = "guest"

logger = logging.getLogger(__name__)


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    problems = load_problems()
    logger.info("loaded %d problems", len(problems))
    yield


app = FastAPI(title=APP_TITLE, lifespan=lifespan)


class AnswerPayload(BaseModel):
    answer: Any = None


def _store_for(request: Request) -> ProgressStore:
    user = get_current_user(request)
    return get_store(user.id if user else GUEST_LEARNER_ID)


def _problem_or_404(problem_id: str) -> Problem:
    problem = get_problem(problem_id)
    if problem is None:
        raise HTTPException(status_code=404, detail="Problem not found")
    return problem


def _summary(problem: Problem) -> dict[str, Any]:
    return {
        "id": problem.id,
        "title": problem.title,
        "difficulty": problem.difficulty,
        "category": problem.category,
        "estimated_time": problem.estimated_time,
        "featured": problem.featured,
    }


@app.get("/")
async def index() -> dict[str, Any]:
    return {
        "title": APP_TITLE,
        "problem_count": len(load_problems()),
        "featured": [_summary(p) for p in featured_problems()],
    }


@app.get("/problems")
async def list_problems(difficulty: str | None = None) -> list[dict[str, Any]]:
    if difficulty is not None and difficulty.lower() not in DIFFICULTIES:
        raise HTTPException(status_code=400, detail=f"Unknown difficulty '{difficulty}'")
    level = difficulty.lower() if difficulty else None
    return [_summary(p) for p in problems_by_difficulty(level)]  # type: ignore[arg-type]


@app.get("/problems/{problem_id}")
async def problem_detail(problem_id: str) -> dict[str, Any]:
    return asdict(_problem_or_404(problem_id))


@app.post("/login")
async def login(request: Request, email: str = Form(...), password: str = Form(...)) -> JSONResponse:
    try:
        user = authenticate_user(email, password)
    except InvalidCredentialsError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    token = create_user_session(user)
    response = JSONResponse(asdict(user))
    set_session_cookie(request, response, token)
    logger.info("user %s logged in", user.id)
    return response


@app.post("/logout")
async def logout(request: Request) -> JSONResponse:
    revoke_session(request.cookies.get(SESSION_COOKIE_NAME))
    response = JSONResponse({"ok": True})
    clear_session_cookie(response)
    return response


@app.get("/me")
async def me(request: Request) -> dict[str, Any]:
    user = get_current_user(request)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
    return asdict(user)


@app.post("/problems/{problem_id}/steps/{step_id}/answer")
async def submit_answer(request: Request, problem_id: str, step_id: str, payload: AnswerPayload) -> dict[str, Any]:
    problem = _problem_or_404(problem_id)
    step = problem.step(step_id)
    if step is None:
        raise HTTPException(status_code=404, detail="Step not found")

    try:
        grade = grade_answer(problem, step, payload.answer)
    except InvalidAnswerError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    store = _store_for(request)
    estimate = store.record_attempt(problem.id, step.id, grade.correct)

    skill = skill_for_step(step.id)
    feedback = generate_feedback(
        skill or step.id,
        step.question_type,
        step.data,
        payload.answer,
        grade.correct,
        grade.partial_results,
    )
    details = feedback.details + [d for d in grade.details if d not in feedback.details]
    body: dict[str, Any] = {
        "correct": grade.correct,
        "partial_results": grade.partial_results,
        "message": feedback.message,
        "details": details,
        "skill": skill,
        "knowledge_estimate": estimate,
        "mastery_percent": mastery_percent(estimate) if estimate is not None else None,
    }
    if skill is not None and estimate is not None:
        body["suggestion"] = suggest_next_action(store.skill_history(skill), estimate)
    return body


@app.get("/progress")
async def progress(request: Request) -> dict[str, Any]:
    store = _store_for(request)
    return {
        "learner_id": store.learner_id,
        "completed": list(store.completed),
        "in_progress": list(store.in_progress),
        "completion_rate": store.completion_rate(),
        "overall_accuracy": store.overall_accuracy(),
        "skill_mastery": store.skill_mastery(),
        "knowledge_estimates": dict(store.knowledge_estimates),
    }


@app.get("/recommendations")
async def recommendations(request: Request) -> dict[str, Any]:
    store = _store_for(request)
    return {"problems": store.recommended_problems()}


@app.get("/problems/{problem_id}/steps/{step_id}/prediction")
async def prediction(request: Request, problem_id: str, step_id: str) -> dict[str, Any]:
    problem = _problem_or_404(problem_id)
    if problem.step(step_id) is None:
        raise HTTPException(status_code=404, detail="Step not found")
    result = _store_for(request).predict_next_attempt(problem.id, step_id)
    body = asdict(result)
    body["knowledge_percent"] = mastery_percent(result.knowledge_estimate)
    return body


def main() -> None:
    import uvicorn

    uvicorn.run("dc_tutor.app:app", host="127.0.0.1", port=8000, reload=True)


if __name__ == "__main__":
    main()
