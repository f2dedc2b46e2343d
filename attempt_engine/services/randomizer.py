"""
services/randomizer.py

섹션 순서 / 섹션 내 문항 순서 무작위화.
순수 함수. 입력을 변경하지 않고, 결과를 저장하지도 않는다.
결과 순서의 유일한 기록은 Attempt 스냅샷이다.
"""

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence, TypeVar

from attempt_engine.models.template_model import TemplateQuestion, TemplateSection

T = TypeVar("T")


@dataclass(frozen=True)
class PlannedSection:
    """무작위화가 끝난 섹션 1개 (문항은 제시 순서)."""
    section: TemplateSection
    questions: List[TemplateQuestion]


def _permute(items: Sequence[T], rng: random.Random) -> List[T]:
    result = list(items)
    if len(result) <= 1:
        return result
    rng.shuffle(result)
    return result


def authored_order(sections: Sequence[TemplateSection]) -> List[TemplateSection]:
    """작성 순서: order 오름차순 (동률이면 원래 위치 유지)."""
    return sorted(sections, key=lambda s: s.order)


def randomize_sections(
    sections: Sequence[TemplateSection],
    randomize_section_order: bool,
    rng: Optional[random.Random] = None,
) -> List[PlannedSection]:
    """
    템플릿 섹션을 제시 순서로 배열한다.

    Args:
        sections:                템플릿 섹션 리스트.
        randomize_section_order: True 이면 섹션 순서를 균등 무작위 순열로 섞는다.
        rng:                     난수원. 기본값은 SystemRandom (템플릿 ID 로 재현 불가).

    Returns:
        PlannedSection 리스트. 섹션별 문항 순열은 서로 독립이다.
    """
    rng = rng or random.SystemRandom()

    ordered = authored_order(sections)
    if randomize_section_order:
        ordered = _permute(ordered, rng)

    planned: List[PlannedSection] = []
    for section in ordered:
        questions = list(section.questions)
        if section.randomize_question_order:
            questions = _permute(questions, rng)
        planned.append(PlannedSection(section=section, questions=questions))
    return planned
