"""
services/snapshot_builder.py

템플릿 + 무작위화 결과 → 응시 전용 고정 스냅샷.
여기서 정해진 순서와 instance_key 가 이후 모든 연산의 기준이 된다.
"""

import random
import uuid
from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Tuple

from attempt_engine.models.attempt_model import (
    Attempt, AttemptStatus, FrozenSection, QuestionInstance, ScoringRules, make_instance_key,
)
from attempt_engine.models.template_model import QuestionContent, TestTemplate
from attempt_engine.services.errors import QuestionNotFound
from attempt_engine.services.randomizer import randomize_sections


def build_snapshot(
    template: TestTemplate,
    questions_by_ref: Mapping[str, QuestionContent],
    rng: Optional[random.Random] = None,
) -> Tuple[FrozenSection, ...]:
    """
    무작위화된 순서대로 문제 내용을 풀어 넣고 instance_key 를 부여한다.

    Raises:
        QuestionNotFound: 템플릿이 참조하는 문제가 문제은행에 없을 때.
    """
    planned = randomize_sections(template.sections, template.randomize_section_order, rng)

    frozen: List[FrozenSection] = []
    for s_idx, plan in enumerate(planned):
        instances: List[QuestionInstance] = []
        for q_idx, tq in enumerate(plan.questions):
            content = questions_by_ref.get(tq.question_ref)
            if content is None:
                raise QuestionNotFound(tq.question_ref)

            key = make_instance_key(tq.question_ref, s_idx, q_idx)

            instances.append(QuestionInstance(
                question_ref=tq.question_ref,
                section_index=s_idx,
                question_index=q_idx,
                instance_key=key,
                marks=tq.marks,
                negative_marks=content.negative_marks,
                text=content.text,
                type=content.type,
                options=tuple(opt.text for opt in content.options),
                correct_options=tuple(content.correct_options),
                explanation=content.explanation,
            ))
        frozen.append(FrozenSection(
            title=plan.section.title,
            source_order=plan.section.order,
            questions=tuple(instances),
        ))
    return tuple(frozen)


def new_attempt(
    template: TestTemplate,
    student_id: str,
    attempt_no: int,
    now: datetime,
    sections: Tuple[FrozenSection, ...],
) -> Attempt:
    """in_progress 상태의 새 Attempt. max_score 는 스냅샷 배점 합으로 미리 채운다."""
    return Attempt(
        id=uuid.uuid4().hex,
        student_id=student_id,
        template_id=template.id,
        attempt_no=attempt_no,
        status=AttemptStatus.IN_PROGRESS,
        started_at=now,
        expires_at=now + timedelta(minutes=template.duration),
        sections=sections,
        rules=ScoringRules(
            negative_marking=template.negative_marking,
            default_negative_marks=template.default_negative_marks,
        ),
        max_score=sum(q.marks for s in sections for q in s.questions),
    )


def public_sections(attempt: Attempt) -> List[Dict[str, object]]:
    """응시 화면용 섹션. 정답/해설은 포함하지 않는다."""
    return [
        {
            "section_index": s_idx,
            "title": section.title,
            "questions": [
                {
                    "instance_key": q.instance_key,
                    "question_ref": q.question_ref,
                    "question_index": q.question_index,
                    "text": q.text,
                    "type": q.type,
                    "options": list(q.options),
                    "marks": q.marks,
                }
                for q in section.questions
            ],
        }
        for s_idx, section in enumerate(attempt.sections)
    ]
