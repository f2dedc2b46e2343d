"""
services/review_service.py

제출된 답안을 고정 스냅샷 위에 다시 얹어 리뷰 구조를 만든다.
순서는 항상 응시 시점의 (무작위화된) 고정 순서를 따른다.
"""

from typing import Dict, List

from attempt_engine.models.attempt_model import Attempt, ResponseStatus, ScoredResponse
from attempt_engine.models.review_model import AttemptReview, QuestionReview, SectionReview


def build_review(attempt: Attempt, include_empty_sections: bool = False) -> AttemptReview:
    """
    Args:
        attempt:                종료(submitted / expired)된 Attempt.
        include_empty_sections: False 이면 매칭된 답안이 하나도 없는 섹션은 기본 화면에서 뺀다.
                                (데이터는 Attempt 에 그대로 남아 있음)

    Returns:
        AttemptReview. 섹션/문항 순서 = Attempt.sections 순서.
    """
    responses: Dict[str, ScoredResponse] = {r.instance_key: r for r in attempt.responses}

    sections: List[SectionReview] = []
    for s_idx, section in enumerate(attempt.sections):
        questions: List[QuestionReview] = []
        for inst in section.questions:
            r = responses.get(inst.instance_key)
            questions.append(QuestionReview(
                instance_key=inst.instance_key,
                question_ref=inst.question_ref,
                question_index=inst.question_index,
                text=inst.text,
                type=inst.type,
                options=list(inst.options),
                correct_options=list(inst.correct_options),
                explanation=inst.explanation,
                marks=inst.marks,
                selected=list(r.selected) if r else [],
                earned_marks=r.earned_marks if r else 0,
                status=r.status if r else ResponseStatus.UNANSWERED,
                matched=bool(r and r.matched_by),
                time_spent=r.time_spent if r else 0,
                flagged=r.flagged if r else False,
                review=r.review if r else False,
            ))

        if not include_empty_sections and not any(q.matched for q in questions):
            continue

        sections.append(SectionReview(
            section_index=s_idx,
            title=section.title,
            questions=questions,
            correct=sum(1 for q in questions if q.status == ResponseStatus.CORRECT),
            incorrect=sum(1 for q in questions if q.status == ResponseStatus.INCORRECT),
            unanswered=sum(1 for q in questions if q.status == ResponseStatus.UNANSWERED),
            score=sum(q.earned_marks for q in questions),
            max_score=sum(q.marks for q in questions),
        ))

    return AttemptReview(
        attempt_id=attempt.id,
        template_id=attempt.template_id,
        student_id=attempt.student_id,
        attempt_no=attempt.attempt_no,
        status=attempt.status,
        score=attempt.score,
        max_score=attempt.max_score,
        percentage=attempt.percentage,
        dropped_count=attempt.dropped_count,
        submitted_at=attempt.submitted_at,
        sections=sections,
    )
