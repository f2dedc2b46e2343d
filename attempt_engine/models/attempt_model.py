"""
models/attempt_model.py

응시(Attempt) 스냅샷과 답안 모델.

- QuestionInstance / FrozenSection 은 불변(frozen)이며 시작 시점에 고정된 순서가 유일한 기준.
- Attempt.sections 는 필드 단위 frozen 이라 재할당 자체가 불가능하다.
- SubmittedResponse 는 클라이언트 payload, ScoredResponse 는 채점 후 저장되는 결과.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class AttemptStatus(str, Enum):
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    EXPIRED = "expired"


class ResponseStatus(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    UNANSWERED = "unanswered"


def make_instance_key(question_ref: str, section_index: int, question_index: int) -> str:
    """응시 내 문제 인스턴스 식별자: <문제ID>_<섹션인덱스>_<문항인덱스>."""
    return f"{question_ref}_{section_index}_{question_index}"


class QuestionInstance(BaseModel):
    model_config = ConfigDict(frozen=True)

    question_ref: str
    section_index: int = Field(..., ge=0, description="고정 시점의 섹션 위치")
    question_index: int = Field(..., ge=0, description="고정 시점의 섹션 내 문항 위치")
    instance_key: str
    marks: float = Field(..., ge=0)
    negative_marks: Optional[float] = None
    text: str
    type: str = "single"
    options: Tuple[str, ...]
    correct_options: Tuple[int, ...]
    explanation: str = ""


class FrozenSection(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str
    source_order: int = 0
    questions: Tuple[QuestionInstance, ...] = ()


class ScoringRules(BaseModel):
    """시작 시점에 템플릿에서 복사해 두는 채점 규칙."""
    model_config = ConfigDict(frozen=True)

    negative_marking: bool = False
    default_negative_marks: float = Field(0, ge=0)


class SubmittedResponse(BaseModel):
    """
    클라이언트가 제출하는 답안 1건.

    instance_key 가 있으면 그것만으로 매칭한다.
    없으면 question_ref(레거시) 로 최선 매칭한다.
    """
    instance_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("instance_key", "questionInstanceKey"),
    )
    question_ref: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("question_ref", "question"),
    )
    selected: List[str] = Field(default_factory=list, description="선택한 보기 인덱스 (문자열)")
    time_spent: float = Field(0, ge=0, validation_alias=AliasChoices("time_spent", "timeSpent"))
    flagged: bool = False
    review: bool = False
    attempts: int = Field(1, ge=0)
    confidence: Optional[int] = None
    visited_at: Optional[datetime] = Field(
        None,
        validation_alias=AliasChoices("visited_at", "visitedAt"),
    )

    @field_validator('selected', mode='before')
    @classmethod
    def coerce_selected(cls, v):
        if v is None:
            return []
        return [str(item).strip() for item in v]


class ScoredResponse(BaseModel):
    instance_key: str
    question_ref: str
    section_index: int
    question_index: int
    selected: List[str] = Field(default_factory=list)
    time_spent: float = 0
    flagged: bool = False
    review: bool = False
    attempts: int = 0
    confidence: Optional[int] = None
    visited_at: Optional[datetime] = None
    earned_marks: float = 0
    status: ResponseStatus = ResponseStatus.UNANSWERED
    matched_by: Optional[str] = Field(None, description="instance_key | question_ref | None")


class Attempt(BaseModel):
    """
    학생 1명의 응시 1회.

    sections 는 생성 시 한 번만 기록된다. responses/score 는 종료 전이(제출·만료) 때만 채워진다.
    score 는 감점 때문에 음수가 될 수 있고, max_score 는 항상 0 이상이다.
    """
    id: str
    student_id: str
    template_id: str
    attempt_no: int = Field(1, ge=1)
    status: AttemptStatus = AttemptStatus.IN_PROGRESS
    started_at: datetime
    expires_at: datetime
    sections: Tuple[FrozenSection, ...] = Field(..., frozen=True)
    rules: ScoringRules = Field(default_factory=ScoringRules, frozen=True)
    responses: List[ScoredResponse] = Field(default_factory=list)
    score: Optional[float] = None
    max_score: float = 0
    percentage: Optional[float] = None
    dropped_count: int = 0
    submitted_at: Optional[datetime] = None

    @property
    def is_finalized(self) -> bool:
        return self.status != AttemptStatus.IN_PROGRESS

    def is_past_deadline(self, now: datetime) -> bool:
        return now > self.expires_at

    def instances(self) -> List[QuestionInstance]:
        """고정된 순서대로 모든 문제 인스턴스."""
        return [q for section in self.sections for q in section.questions]

    def duration_minutes(self) -> int:
        return int((self.expires_at - self.started_at).total_seconds() // 60)
