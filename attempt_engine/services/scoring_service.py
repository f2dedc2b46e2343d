"""
services/scoring_service.py

채점 및 결과 분석 비즈니스 로직.
순수 Python 함수로 구성. 같은 (스냅샷, 매칭 결과, 규칙) 이면 항상 같은 결과.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from attempt_engine.models.attempt_model import (
    Attempt, FrozenSection, QuestionInstance, ResponseStatus, ScoredResponse,
    ScoringRules, SubmittedResponse,
)


@dataclass
class ScoreResult:
    responses: List[ScoredResponse] = field(default_factory=list)
    total_score: float = 0
    max_score: float = 0
    percentage: float = 0.0
    correct_count: int = 0
    incorrect_count: int = 0
    unanswered_count: int = 0


def calculate_percentage(score: float, max_score: float) -> float:
    """
    100점 만점 환산 (소수점 둘째 자리 반올림).
    max_score 가 0 이면 0.0. 감점 때문에 음수가 나올 수 있다.
    """
    if max_score <= 0:
        return 0.0
    return round(score / max_score * 100, 2)


def resolve_penalty(instance: QuestionInstance, rules: ScoringRules) -> float:
    """오답 감점: 문제별 값이 있으면 그것, 없으면 템플릿 기본값. 감점 미적용이면 0."""
    if not rules.negative_marking:
        return 0.0
    if instance.negative_marks is not None:
        return instance.negative_marks
    return rules.default_negative_marks


def is_correct_selection(instance: QuestionInstance, selected: Sequence[str]) -> bool:
    """
    정답 판정: 선택한 보기 집합 == 정답 보기 집합 (부분 점수 없음).
    단일/복수 선택 모두 동일한 규칙.
    """
    correct = {str(i) for i in instance.correct_options}
    return set(selected) == correct


def score_instance(
    instance: QuestionInstance,
    response: Optional[SubmittedResponse],
    matched_by: Optional[str],
    rules: ScoringRules,
) -> ScoredResponse:
    """문제 인스턴스 1개 채점. response 가 없거나 선택이 비어 있으면 미응답."""
    selected = [s for s in (response.selected if response else []) if s != ""]

    if not selected:
        status, earned = ResponseStatus.UNANSWERED, 0.0
    elif is_correct_selection(instance, selected):
        status, earned = ResponseStatus.CORRECT, instance.marks
    else:
        penalty = resolve_penalty(instance, rules)
        status, earned = ResponseStatus.INCORRECT, (-penalty if penalty else 0.0)

    extra = {}
    if response is not None:
        extra = {
            "time_spent": response.time_spent,
            "flagged": response.flagged,
            "review": response.review,
            "attempts": response.attempts,
            "confidence": response.confidence,
            "visited_at": response.visited_at,
        }

    return ScoredResponse(
        instance_key=instance.instance_key,
        question_ref=instance.question_ref,
        section_index=instance.section_index,
        question_index=instance.question_index,
        selected=selected,
        earned_marks=earned,
        status=status,
        matched_by=matched_by,
        **extra,
    )


def score_attempt(
    sections: Sequence[FrozenSection],
    matched: Mapping[str, Tuple[SubmittedResponse, str]],
    rules: ScoringRules,
) -> ScoreResult:
    """
    고정 스냅샷 전체를 순서대로 채점한다.

    Args:
        sections: Attempt.sections.
        matched:  reconcile() 결과. {instance_key: (답안, 매칭 경로)}
        rules:    Attempt.rules (시작 시점에 고정된 감점 규칙).

    Returns:
        ScoreResult. responses 는 고정 순서, 미응답 포함 인스턴스 수와 같은 길이.
    """
    result = ScoreResult()
    for section in sections:
        for inst in section.questions:
            result.max_score += inst.marks
            response, matched_by = matched.get(inst.instance_key, (None, None))
            scored = score_instance(inst, response, matched_by, rules)
            result.responses.append(scored)
            result.total_score += scored.earned_marks

            if scored.status == ResponseStatus.CORRECT:
                result.correct_count += 1
            elif scored.status == ResponseStatus.INCORRECT:
                result.incorrect_count += 1
            else:
                result.unanswered_count += 1

    result.percentage = calculate_percentage(result.total_score, result.max_score)
    return result


def score_unanswered(sections: Sequence[FrozenSection], rules: ScoringRules) -> ScoreResult:
    """만료된 응시용: 모든 문제 미응답으로 채점."""
    return score_attempt(sections, {}, rules)


def summarize_sections(attempt: Attempt) -> List[Dict[str, object]]:
    """
    섹션별 점수를 계산하여 반환한다 (고정 순서).

    Returns:
        [{"section_index": int, "title": str, "total": int, "correct": int,
          "incorrect": int, "unanswered": int, "score": float,
          "max_score": float, "time_spent": float}, ...]
    """
    responses = {r.instance_key: r for r in attempt.responses}
    buckets: Dict[int, Dict[str, float]] = defaultdict(
        lambda: {"total": 0, "correct": 0, "incorrect": 0, "unanswered": 0,
                 "score": 0.0, "max_score": 0.0, "time_spent": 0.0}
    )

    for s_idx, section in enumerate(attempt.sections):
        b = buckets[s_idx]
        for inst in section.questions:
            b["total"] += 1
            b["max_score"] += inst.marks
            r = responses.get(inst.instance_key)
            if r is None or r.status == ResponseStatus.UNANSWERED:
                b["unanswered"] += 1
            elif r.status == ResponseStatus.CORRECT:
                b["correct"] += 1
            else:
                b["incorrect"] += 1
            if r is not None:
                b["score"] += r.earned_marks
                b["time_spent"] += r.time_spent

    return [
        {"section_index": s_idx, "title": attempt.sections[s_idx].title, **buckets[s_idx]}
        for s_idx in range(len(attempt.sections))
    ]
