"""
models/review_model.py

제출 후 리뷰 화면 / 내보내기용 조인 결과 모델.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from attempt_engine.models.attempt_model import AttemptStatus, ResponseStatus


class QuestionReview(BaseModel):
    instance_key: str
    question_ref: str
    question_index: int
    text: str
    type: str
    options: List[str]
    correct_options: List[int]
    explanation: str = ""
    marks: float
    selected: List[str] = Field(default_factory=list)
    earned_marks: float = 0
    status: ResponseStatus = ResponseStatus.UNANSWERED
    matched: bool = False
    time_spent: float = 0
    flagged: bool = False
    review: bool = False


class SectionReview(BaseModel):
    section_index: int
    title: str
    questions: List[QuestionReview]
    correct: int = 0
    incorrect: int = 0
    unanswered: int = 0
    score: float = 0
    max_score: float = 0


class AttemptReview(BaseModel):
    attempt_id: str
    template_id: str
    student_id: str
    attempt_no: int
    status: AttemptStatus
    score: Optional[float]
    max_score: float
    percentage: Optional[float]
    dropped_count: int = 0
    submitted_at: Optional[datetime] = None
    sections: List[SectionReview]

    def total_earned(self) -> float:
        return sum(q.earned_marks for s in self.sections for q in s.questions)
