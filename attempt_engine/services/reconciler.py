"""
services/reconciler.py

제출 답안 ↔ 고정 스냅샷 매칭.

1차: instance_key 정확 매칭 (위치가 키에 들어 있으므로 순서가 섞여도 모호하지 않음).
2차: instance_key 가 없는 레거시 답안은 question_ref 로, 고정 순서상 아직 매칭되지 않은
     첫 번째 인스턴스에 붙인다. 같은 문제가 두 번 나오면 최선 추정일 뿐 보장은 아니다.
매칭 실패 항목은 버리고 개수만 보고한다 (나머지 채점을 막지 않음).
"""

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from attempt_engine.models.attempt_model import FrozenSection, QuestionInstance, SubmittedResponse

logger = logging.getLogger(__name__)

MATCHED_BY_KEY = "instance_key"
MATCHED_BY_REF = "question_ref"


@dataclass
class ReconcileResult:
    # instance_key -> (답안, 매칭 경로)
    matched: Dict[str, Tuple[SubmittedResponse, str]] = field(default_factory=dict)
    dropped_count: int = 0
    legacy_matched: int = 0


def reconcile(
    sections: Sequence[FrozenSection],
    submitted: Sequence[SubmittedResponse],
) -> ReconcileResult:
    """
    Args:
        sections:  Attempt.sections (고정 순서).
        submitted: 클라이언트 답안 리스트.

    Returns:
        ReconcileResult. matched 에 없는 인스턴스는 미응답으로 간주한다.
    """
    by_key: Dict[str, QuestionInstance] = {}
    by_ref: Dict[str, List[QuestionInstance]] = defaultdict(list)
    for section in sections:
        for inst in section.questions:
            by_key[inst.instance_key] = inst
            by_ref[inst.question_ref].append(inst)

    result = ReconcileResult()
    legacy: List[SubmittedResponse] = []

    for resp in submitted:
        if not resp.instance_key:
            legacy.append(resp)
            continue
        if resp.instance_key not in by_key:
            logger.warning(f"매칭되지 않는 instance_key - 버림: {resp.instance_key}")
            result.dropped_count += 1
            continue
        if resp.instance_key in result.matched:
            logger.warning(f"중복 instance_key - 첫 답안 유지: {resp.instance_key}")
            result.dropped_count += 1
            continue
        result.matched[resp.instance_key] = (resp, MATCHED_BY_KEY)

    for resp in legacy:
        candidates = by_ref.get(resp.question_ref or "", [])
        target = next((inst for inst in candidates if inst.instance_key not in result.matched), None)
        if target is None:
            logger.warning(f"매칭되지 않는 레거시 답안 - 버림: question_ref={resp.question_ref}")
            result.dropped_count += 1
            continue
        result.matched[target.instance_key] = (resp, MATCHED_BY_REF)
        result.legacy_matched += 1

    if result.legacy_matched:
        logger.info(f"레거시(question_ref) 매칭 {result.legacy_matched}건")
    return result
