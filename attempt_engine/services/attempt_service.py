"""
services/attempt_service.py

응시 수명 주기 관리.

상태 전이:
    in_progress --submit-->                         submitted
    in_progress --마감 경과 (다음 접근 시 감지)-->    expired
submitted / expired 는 종료 상태이며 이후 어떤 변경도 받지 않는다.

만료 정책: 만료된 응시는 "전 문항 미응답" 으로 채점해 종료한다 (score = 0).
마감 이후 도착한 답안은 채점하지 않고 AttemptExpired 로 거절한다.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from attempt_engine.models.attempt_model import Attempt, AttemptStatus, SubmittedResponse
from attempt_engine.models.review_model import AttemptReview
from attempt_engine.services.catalog import Catalog
from attempt_engine.services.errors import (
    AttemptAlreadyFinalized, AttemptExpired, AttemptLimitReached, AttemptNotFinalized,
    AttemptNotFound, DuplicateActiveAttempt, TemplateNotFound, TemplateNotOpen,
)
from attempt_engine.services.export_service import export_review
from attempt_engine.services.reconciler import reconcile
from attempt_engine.services.review_service import build_review
from attempt_engine.services.scoring_service import calculate_percentage, score_attempt, score_unanswered
from attempt_engine.services.snapshot_builder import build_snapshot, new_attempt
from attempt_engine.storage.attempt_store import AttemptStore

logger = logging.getLogger(__name__)

POLICY_RESUME = "resume"
POLICY_REJECT = "reject"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class StartResult:
    attempt: Attempt
    resumed: bool = False


@dataclass
class SubmitResult:
    attempt_id: str
    status: AttemptStatus
    score: float
    max_score: float
    percentage: float
    dropped_count: int
    correct_count: int
    incorrect_count: int
    unanswered_count: int


class AttemptService:
    """
    응시 시작 / 조회 / 제출 / 리뷰의 진입점.

    상태는 전부 store(DB) 에 있고, 이 객체는 협력자(catalog, store, clock, rng)만 들고 있다.
    """

    def __init__(
        self,
        catalog: Catalog,
        store: AttemptStore,
        active_policy: str = POLICY_RESUME,
        clock: Callable[[], datetime] = utcnow,
        rng_factory: Callable[[], random.Random] = random.SystemRandom,
    ):
        if active_policy not in (POLICY_RESUME, POLICY_REJECT):
            raise ValueError(f"알 수 없는 진행 중 응시 정책입니다: {active_policy}")
        self.catalog = catalog
        self.store = store
        self.active_policy = active_policy
        self.clock = clock
        self.rng_factory = rng_factory

    # ── 시작 ─────────────────────────────────────────────────────────────────

    def start_attempt(self, template_id: str, student_id: str) -> StartResult:
        """
        Raises:
            TemplateNotFound:       템플릿이 없거나 비활성.
            TemplateNotOpen:        live 모드 응시 가능 시간 밖.
            DuplicateActiveAttempt: 진행 중 응시가 있고 정책이 reject.
            AttemptLimitReached:    최대 응시 횟수 도달.
            QuestionNotFound:       템플릿이 참조하는 문제가 없음.
        """
        now = self.clock()
        template = self.catalog.get_template(template_id)
        if template is None or not template.is_active:
            raise TemplateNotFound(template_id)

        if template.mode == "live":
            if template.start_at and now < template.start_at:
                raise TemplateNotOpen(template_id, "not started")
            if template.end_at and now > template.end_at:
                raise TemplateNotOpen(template_id, "ended")

        existing = self._active_attempt(student_id, template_id, now)
        if existing is not None:
            return self._apply_active_policy(existing)

        used = self.store.count_attempts(student_id, template_id)
        if used >= template.max_attempts:
            raise AttemptLimitReached(template_id, template.max_attempts)

        questions = self.catalog.get_questions(template.question_refs())
        sections = build_snapshot(template, questions, self.rng_factory())
        attempt = new_attempt(template, student_id, used + 1, now, sections)

        try:
            self.store.insert(attempt)
        except DuplicateActiveAttempt:
            # 동시 시작 경쟁에서 진 경우: 이긴 쪽 응시에 정책 적용
            winner = self.store.find_active(student_id, template_id)
            if winner is None:
                raise
            return self._apply_active_policy(winner)

        logger.info(
            f"응시 시작: attempt={attempt.id}, student={student_id}, template={template_id}, "
            f"no={attempt.attempt_no}, 문항 {len(attempt.instances())}개"
        )
        return StartResult(attempt=attempt)

    def _active_attempt(self, student_id: str, template_id: str, now: datetime) -> Optional[Attempt]:
        existing = self.store.find_active(student_id, template_id)
        if existing is not None and existing.is_past_deadline(now):
            self._expire(existing)
            return None
        return existing

    def _apply_active_policy(self, existing: Attempt) -> StartResult:
        if self.active_policy == POLICY_REJECT:
            raise DuplicateActiveAttempt(existing.student_id, existing.template_id, existing.id)
        logger.info(f"진행 중 응시 재개: attempt={existing.id}")
        return StartResult(attempt=existing, resumed=True)

    # ── 조회 ─────────────────────────────────────────────────────────────────

    def get_attempt(self, attempt_id: str, student_id: str) -> Attempt:
        """본인 응시만 반환. 마감이 지난 진행 중 응시는 여기서 만료 처리된다."""
        attempt = self.store.get(attempt_id)
        if attempt is None or attempt.student_id != student_id:
            raise AttemptNotFound(attempt_id)
        if attempt.status == AttemptStatus.IN_PROGRESS and attempt.is_past_deadline(self.clock()):
            self._expire(attempt)
            attempt = self.store.get(attempt_id)
        return attempt

    def list_attempts(self, student_id: str) -> List[Attempt]:
        now = self.clock()
        attempts = self.store.list_for_student(student_id)
        result = []
        for a in attempts:
            if a.status == AttemptStatus.IN_PROGRESS and a.is_past_deadline(now):
                self._expire(a)
                a = self.store.get(a.id)
            result.append(a)
        return result

    def student_stats(self, student_id: str) -> Dict[str, object]:
        """종료된 응시 기준 통계. 평균은 총점 합 / 만점 합."""
        finalized = [a for a in self.list_attempts(student_id) if a.is_finalized]
        if not finalized:
            return {"total": 0, "average_percentage": 0.0, "best_percentage": 0.0}
        total_score = sum(a.score or 0 for a in finalized)
        total_max = sum(a.max_score for a in finalized)
        return {
            "total": len(finalized),
            "average_percentage": calculate_percentage(total_score, total_max),
            "best_percentage": max(a.percentage or 0.0 for a in finalized),
        }

    # ── 제출 ─────────────────────────────────────────────────────────────────

    def submit_attempt(
        self,
        attempt_id: str,
        student_id: str,
        responses: Sequence[SubmittedResponse],
    ) -> SubmitResult:
        """
        Raises:
            AttemptNotFound:         없는 응시이거나 본인 응시가 아님.
            AttemptAlreadyFinalized: 이미 submitted / expired (재채점하지 않음).
            AttemptExpired:          마감 경과. 응시는 expired 로 종료된다.
        """
        attempt = self.store.get(attempt_id)
        if attempt is None or attempt.student_id != student_id:
            raise AttemptNotFound(attempt_id)
        if attempt.is_finalized:
            raise AttemptAlreadyFinalized(attempt_id, attempt.status.value)

        now = self.clock()
        if attempt.is_past_deadline(now):
            self._expire(attempt)
            raise AttemptExpired(attempt_id)

        matched = reconcile(attempt.sections, responses)
        result = score_attempt(attempt.sections, matched.matched, attempt.rules)

        won = self.store.finalize(
            attempt_id,
            AttemptStatus.SUBMITTED,
            result.responses,
            score=result.total_score,
            max_score=result.max_score,
            percentage=result.percentage,
            dropped_count=matched.dropped_count,
            submitted_at=now,
        )
        if not won:
            latest = self.store.get(attempt_id)
            raise AttemptAlreadyFinalized(attempt_id, latest.status.value if latest else "unknown")

        logger.info(
            f"응시 제출: attempt={attempt_id}, 점수 {result.total_score}/{result.max_score} "
            f"({result.percentage}%), 버린 답안 {matched.dropped_count}건"
        )
        return SubmitResult(
            attempt_id=attempt_id,
            status=AttemptStatus.SUBMITTED,
            score=result.total_score,
            max_score=result.max_score,
            percentage=result.percentage,
            dropped_count=matched.dropped_count,
            correct_count=result.correct_count,
            incorrect_count=result.incorrect_count,
            unanswered_count=result.unanswered_count,
        )

    def _expire(self, attempt: Attempt) -> None:
        result = score_unanswered(attempt.sections, attempt.rules)
        won = self.store.finalize(
            attempt.id,
            AttemptStatus.EXPIRED,
            result.responses,
            score=result.total_score,
            max_score=result.max_score,
            percentage=result.percentage,
            dropped_count=0,
            submitted_at=attempt.expires_at,
        )
        if won:
            logger.warning(f"응시 만료 처리: attempt={attempt.id}, 마감 {attempt.expires_at.isoformat()}")

    # ── 리뷰 ─────────────────────────────────────────────────────────────────

    def get_review(self, attempt_id: str, student_id: str, include_empty_sections: bool = False) -> AttemptReview:
        attempt = self.get_attempt(attempt_id, student_id)
        if not attempt.is_finalized:
            raise AttemptNotFinalized(attempt_id)
        return build_review(attempt, include_empty_sections=include_empty_sections)

    def export_review(self, attempt_id: str, student_id: str, fmt: str) -> Tuple[bytes, str, str]:
        """(bytes, media_type, filename). 내보내기는 빈 섹션까지 포함한 전체 리뷰 기준."""
        review = self.get_review(attempt_id, student_id, include_empty_sections=True)
        return export_review(review, fmt)
