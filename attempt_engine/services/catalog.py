"""
services/catalog.py

문제은행 / 시험 템플릿 읽기 모델 (외부 협력자 경계).

원본 문서의 문제 참조는 "ID 문자열" 이거나 "채워진 객체({'_id': ...})" 일 수 있다.
이 경계에서 둘 다 question_ref 문자열 하나로 정규화한 뒤에만 엔진 안으로 넘긴다.
"""

import json
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from pydantic import ValidationError

from attempt_engine.models.template_model import QuestionContent, TestTemplate
from attempt_engine.services.errors import QuestionNotFound

logger = logging.getLogger(__name__)


class Catalog(Protocol):
    def get_template(self, template_id: str) -> Optional[TestTemplate]: ...

    def get_questions(self, refs: Iterable[str]) -> Dict[str, QuestionContent]: ...


# ── 경계 정규화 ──────────────────────────────────────────────────────────────

def normalize_question_ref(raw: Any) -> str:
    """문자열 ID 또는 채워진 객체 → 문제 ID 문자열."""
    if isinstance(raw, Mapping):
        for key in ("_id", "id", "question_ref"):
            if raw.get(key):
                return str(raw[key])
        raise ValueError(f"문제 참조에 ID가 없습니다: {raw!r}")
    if raw is None or str(raw).strip() == "":
        raise ValueError("문제 참조가 비어 있습니다.")
    return str(raw).strip()


def normalize_template(raw: Mapping[str, Any]) -> TestTemplate:
    """원본 템플릿 문서 → TestTemplate. camelCase 키도 받아준다."""
    sections = []
    for sec in raw.get("sections", []):
        questions = []
        for item in sec.get("questions", []):
            if isinstance(item, Mapping):
                ref_source = item.get("question") or item.get("question_ref") or item
                marks = item.get("marks", 1)
            else:
                ref_source, marks = item, 1
            questions.append({"question_ref": normalize_question_ref(ref_source), "marks": marks})
        sections.append({
            "title": sec.get("title", ""),
            "order": sec.get("order", 0),
            "randomize_question_order": sec.get(
                "randomize_question_order",
                sec.get("randomizeQuestionOrderInSection", sec.get("randomizeQuestionOrder", False)),
            ),
            "questions": questions,
        })

    return TestTemplate(
        id=str(raw.get("id") or raw.get("_id") or ""),
        title=raw.get("title", ""),
        sections=sections,
        randomize_section_order=raw.get("randomize_section_order", raw.get("randomizeSectionOrder", False)),
        duration=raw.get("duration", 0),
        negative_marking=raw.get("negative_marking", raw.get("negativeMarking", False)),
        default_negative_marks=raw.get("default_negative_marks", raw.get("defaultNegativeMarks", 0)),
        mode=raw.get("mode", "practice"),
        is_active=raw.get("is_active", raw.get("isActive", True)),
        max_attempts=raw.get("max_attempts", raw.get("maxAttempts", 1)),
        start_at=raw.get("start_at", raw.get("startAt")),
        end_at=raw.get("end_at", raw.get("endAt")),
    )


def normalize_question(raw: Mapping[str, Any]) -> QuestionContent:
    """원본 문제 문서 → QuestionContent."""
    options = []
    for opt in raw.get("options", []):
        if isinstance(opt, Mapping):
            options.append({"text": opt.get("text", ""), "is_correct": opt.get("is_correct", opt.get("isCorrect", False))})
        else:
            options.append({"text": str(opt), "is_correct": False})
    return QuestionContent(
        id=normalize_question_ref(raw),
        text=raw.get("text") or raw.get("questionText") or "",
        type=raw.get("type", "single"),
        options=options,
        correct_options=raw.get("correct_options", raw.get("correctOptions")) or [],
        negative_marks=raw.get("negative_marks", raw.get("negativeMarks")),
        explanation=raw.get("explanation", ""),
    )


# ── 인메모리 카탈로그 ────────────────────────────────────────────────────────

class InMemoryCatalog:
    """정규화된 템플릿/문제를 ID로 조회하는 읽기 전용 카탈로그."""

    def __init__(self, templates: Iterable[TestTemplate] = (), questions: Iterable[QuestionContent] = ()):
        self._templates: Dict[str, TestTemplate] = {t.id: t for t in templates}
        self._questions: Dict[str, QuestionContent] = {q.id: q for q in questions}

    def get_template(self, template_id: str) -> Optional[TestTemplate]:
        return self._templates.get(template_id)

    def get_questions(self, refs: Iterable[str]) -> Dict[str, QuestionContent]:
        found: Dict[str, QuestionContent] = {}
        for ref in refs:
            q = self._questions.get(ref)
            if q is None:
                raise QuestionNotFound(ref)
            found[ref] = q
        return found

    @classmethod
    def from_documents(cls, documents: Mapping[str, Any]) -> "InMemoryCatalog":
        """{"templates": [...], "questions": [...]} 형태의 원본 문서에서 생성."""
        templates: List[TestTemplate] = []
        questions: List[QuestionContent] = []
        for raw in documents.get("questions", []):
            try:
                questions.append(normalize_question(raw))
            except (ValidationError, ValueError) as e:
                logger.error(f"문제 문서 검증 실패 - 건너뜀: {e}")
        for raw in documents.get("templates", []):
            try:
                templates.append(normalize_template(raw))
            except (ValidationError, ValueError) as e:
                logger.error(f"템플릿 문서 검증 실패 - 건너뜀: {e}")
        logger.info(f"카탈로그 로드: 템플릿 {len(templates)}개, 문제 {len(questions)}개")
        return cls(templates, questions)

    @classmethod
    def from_json_file(cls, path: str) -> "InMemoryCatalog":
        with open(path, encoding="utf-8") as f:
            return cls.from_documents(json.load(f))
