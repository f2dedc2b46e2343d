"""
api/routes.py — FastAPI 엔드포인트

호출자 식별은 상위 인증 계층이 넣어 주는 X-Student-Id 헤더를 그대로 신뢰한다.
"""

import asyncio

from fastapi import APIRouter, Header, HTTPException, Query, Request, Response
from pydantic import BaseModel

from attempt_engine.models.attempt_model import Attempt, SubmittedResponse
from attempt_engine.services.attempt_service import AttemptService
from attempt_engine.services.errors import (
    AttemptAlreadyFinalized, AttemptEngineError, AttemptExpired, AttemptLimitReached,
    AttemptNotFinalized, AttemptNotFound, DuplicateActiveAttempt, QuestionNotFound,
    TemplateNotFound, TemplateNotOpen, UnsupportedExportFormat,
)
from attempt_engine.services.scoring_service import summarize_sections
from attempt_engine.services.snapshot_builder import public_sections

router = APIRouter()

# ── Pydantic request bodies ──────────────────────────────────────────────────

class StartAttemptBody(BaseModel):
    template_id: str


class SubmitAttemptBody(BaseModel):
    responses: list[SubmittedResponse] = []


# ── 헬퍼 ─────────────────────────────────────────────────────────────────────

_HTTP_STATUS = (
    (TemplateNotFound, 404),
    (QuestionNotFound, 404),
    (AttemptNotFound, 404),
    (DuplicateActiveAttempt, 409),
    (AttemptAlreadyFinalized, 409),
    (AttemptNotFinalized, 409),
    (AttemptExpired, 410),
    (TemplateNotOpen, 403),
    (AttemptLimitReached, 429),
    (UnsupportedExportFormat, 400),
)


def _to_http(err: AttemptEngineError) -> HTTPException:
    for cls, status_code in _HTTP_STATUS:
        if isinstance(err, cls):
            return HTTPException(status_code=status_code, detail=str(err))
    return HTTPException(status_code=500, detail=str(err))


def _service(request: Request) -> AttemptService:
    return request.app.state.attempts


def _attempt_to_dict(attempt: Attempt) -> dict:
    d = {
        "attempt_id": attempt.id,
        "template_id": attempt.template_id,
        "attempt_no": attempt.attempt_no,
        "status": attempt.status.value,
        "started_at": attempt.started_at.isoformat(),
        "expires_at": attempt.expires_at.isoformat(),
        "duration": attempt.duration_minutes(),
        "max_score": attempt.max_score,
    }
    if attempt.is_finalized:
        d.update({
            "score": attempt.score,
            "percentage": attempt.percentage,
            "dropped_count": attempt.dropped_count,
            "submitted_at": attempt.submitted_at.isoformat() if attempt.submitted_at else None,
            "section_scores": summarize_sections(attempt),
        })
    return d


# ── 엔드포인트 ───────────────────────────────────────────────────────────────

@router.get("/api/health")
async def health():
    return {"ok": True}


@router.post("/api/attempts", status_code=201)
async def start_attempt(
    body: StartAttemptBody,
    request: Request,
    student_id: str = Header(..., alias="X-Student-Id"),
):
    svc = _service(request)
    try:
        result = await asyncio.to_thread(svc.start_attempt, body.template_id, student_id)
    except AttemptEngineError as e:
        raise _to_http(e)

    d = _attempt_to_dict(result.attempt)
    d.update({"resumed": result.resumed, "sections": public_sections(result.attempt)})
    return d


@router.get("/api/attempts")
async def list_attempts(request: Request, student_id: str = Header(..., alias="X-Student-Id")):
    attempts = await asyncio.to_thread(_service(request).list_attempts, student_id)
    return {"attempts": [_attempt_to_dict(a) for a in attempts]}


@router.get("/api/stats")
async def student_stats(request: Request, student_id: str = Header(..., alias="X-Student-Id")):
    return await asyncio.to_thread(_service(request).student_stats, student_id)


@router.get("/api/attempts/{attempt_id}")
async def get_attempt(
    attempt_id: str,
    request: Request,
    student_id: str = Header(..., alias="X-Student-Id"),
):
    try:
        attempt = await asyncio.to_thread(_service(request).get_attempt, attempt_id, student_id)
    except AttemptEngineError as e:
        raise _to_http(e)

    d = _attempt_to_dict(attempt)
    if not attempt.is_finalized:
        d["sections"] = public_sections(attempt)
    return d


@router.post("/api/attempts/{attempt_id}/submit")
async def submit_attempt(
    attempt_id: str,
    body: SubmitAttemptBody,
    request: Request,
    student_id: str = Header(..., alias="X-Student-Id"),
):
    svc = _service(request)
    try:
        result = await asyncio.to_thread(svc.submit_attempt, attempt_id, student_id, body.responses)
    except AttemptEngineError as e:
        raise _to_http(e)

    return {
        "attempt_id": result.attempt_id,
        "status": result.status.value,
        "score": result.score,
        "max_score": result.max_score,
        "percentage": result.percentage,
        "dropped_count": result.dropped_count,
        "correct_count": result.correct_count,
        "incorrect_count": result.incorrect_count,
        "unanswered_count": result.unanswered_count,
    }


@router.get("/api/attempts/{attempt_id}/review")
async def get_review(
    attempt_id: str,
    request: Request,
    include_empty: bool = Query(False),
    student_id: str = Header(..., alias="X-Student-Id"),
):
    try:
        review = await asyncio.to_thread(
            _service(request).get_review, attempt_id, student_id, include_empty
        )
    except AttemptEngineError as e:
        raise _to_http(e)
    return review.model_dump(mode="json")


@router.get("/api/attempts/{attempt_id}/export")
async def export_review(
    attempt_id: str,
    request: Request,
    format: str = Query("pdf"),
    student_id: str = Header(..., alias="X-Student-Id"),
):
    try:
        data, media_type, filename = await asyncio.to_thread(
            _service(request).export_review, attempt_id, student_id, format
        )
    except AttemptEngineError as e:
        raise _to_http(e)

    return Response(
        content=data,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
