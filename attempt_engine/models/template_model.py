"""
models/template_model.py

외부 협력자(문제은행 / 시험 템플릿)가 제공하는 읽기 전용 모델.
Pydantic v2 적용: 엔진 내부로 들어오기 전에 검증과 정규화를 끝낸다.
"""

from datetime import datetime, timezone
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class QuestionOption(BaseModel):
    text: str = Field(..., description="보기 내용")
    is_correct: bool = Field(False, description="정답 보기 여부")


class QuestionContent(BaseModel):
    """
    문제은행의 문제 1건.
    correct_options가 비어 있으면 options[*].is_correct에서 도출한다.
    """
    id: str = Field(..., min_length=1, description="문제 ID (불투명 식별자)")
    text: str = Field(..., min_length=1, description="발문")
    type: str = Field("single", description="single | multiple")
    options: List[QuestionOption] = Field(..., description="보기 리스트")
    correct_options: List[int] = Field(default_factory=list, description="정답 보기 인덱스")
    negative_marks: Optional[float] = Field(
        None,
        ge=0,
        description="문제별 감점 (없으면 템플릿 기본 감점 사용)"
    )
    explanation: str = Field("", description="해설")

    @field_validator('options')
    @classmethod
    def validate_options_length(cls, v: List[QuestionOption]) -> List[QuestionOption]:
        if len(v) < 2:
            raise ValueError("보기(options)는 최소 2개 이상의 항목이 필요합니다.")
        return v

    @field_validator('type')
    @classmethod
    def validate_type(cls, v: str) -> str:
        if v not in ("single", "multiple"):
            raise ValueError(f"지원하지 않는 문제 유형입니다: {v}")
        return v

    @model_validator(mode='after')
    def resolve_correct_options(self) -> 'QuestionContent':
        if not self.correct_options:
            self.correct_options = [i for i, opt in enumerate(self.options) if opt.is_correct]
        if not self.correct_options:
            raise ValueError(f"문제 {self.id}: 정답 보기가 지정되지 않았습니다.")
        for idx in self.correct_options:
            if not 0 <= idx < len(self.options):
                raise ValueError(f"문제 {self.id}: 정답 인덱스 {idx}가 보기 범위를 벗어났습니다.")
        self.correct_options = sorted(set(self.correct_options))
        return self


class TemplateQuestion(BaseModel):
    question_ref: str = Field(..., min_length=1, description="문제 ID")
    marks: float = Field(1, ge=0, description="배점")


class TemplateSection(BaseModel):
    title: str = Field(..., min_length=1)
    order: int = Field(0, description="작성 순서 (오름차순)")
    randomize_question_order: bool = False
    questions: List[TemplateQuestion] = Field(default_factory=list)


class TestTemplate(BaseModel):
    """
    작성된 시험 정의 (무작위화 이전 원본).

    Attributes:
        duration:               제한 시간 (분).
        negative_marking:       오답 감점 적용 여부.
        default_negative_marks: 문제별 감점이 없을 때 사용하는 기본 감점.
        mode:                   practice | live. live는 start_at~end_at 사이에만 응시 가능.
        max_attempts:           학생별 최대 응시 횟수.
    """
    __test__ = False  # pytest 수집 대상 아님

    id: str = Field(..., min_length=1)
    title: str = ""
    sections: List[TemplateSection] = Field(default_factory=list)
    randomize_section_order: bool = False
    duration: int = Field(..., gt=0, description="제한 시간 (분)")
    negative_marking: bool = False
    default_negative_marks: float = Field(0, ge=0)
    mode: str = "practice"
    is_active: bool = True
    max_attempts: int = Field(1, ge=1)
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None

    @field_validator('mode')
    @classmethod
    def validate_mode(cls, v: str) -> str:
        v = v.lower()
        if v not in ("practice", "live"):
            raise ValueError(f"지원하지 않는 시험 모드입니다: {v}")
        return v

    @field_validator('start_at', 'end_at')
    @classmethod
    def assume_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        # 시간대 없는 값은 UTC로 본다 (저장소 변환과 동일한 규칙)
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    def question_refs(self) -> List[str]:
        """템플릿에 등장하는 문제 ID 목록 (중복 제거, 등장 순서 유지)."""
        seen = {}
        for section in self.sections:
            for q in section.questions:
                seen.setdefault(q.question_ref, None)
        return list(seen)
