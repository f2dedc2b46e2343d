"""
tests/factories.py — 테스트용 문제/템플릿/시계 생성 헬퍼
"""

from datetime import datetime, timedelta, timezone

from attempt_engine.models.template_model import QuestionContent, TestTemplate

T0 = datetime(2025, 5, 27, 10, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, minutes: float) -> None:
        self.now = self.now + timedelta(minutes=minutes)


def make_question(qid: str, correct=(0,), n_options: int = 4, qtype: str = "single",
                  negative_marks=None) -> QuestionContent:
    return QuestionContent(
        id=qid,
        text=f"Question {qid}",
        type=qtype,
        options=[{"text": f"Option {i} of {qid}", "is_correct": i in correct} for i in range(n_options)],
        negative_marks=negative_marks,
        explanation=f"Because of {qid}",
    )


def make_template(template_id: str, sections, **kwargs) -> TestTemplate:
    """
    sections: [(title, [(question_ref, marks), ...], randomize_question_order), ...]
    """
    data = {
        "id": template_id,
        "title": f"Template {template_id}",
        "duration": 60,
        "sections": [
            {
                "title": title,
                "order": order,
                "randomize_question_order": randomize,
                "questions": [{"question_ref": ref, "marks": marks} for ref, marks in questions],
            }
            for order, (title, questions, randomize) in enumerate(sections, start=1)
        ],
    }
    data.update(kwargs)
    return TestTemplate(**data)


def randomized_template(template_id: str = "tpl-rand", **kwargs) -> TestTemplate:
    """2 섹션 × 3 문항, 섹션 순서와 섹션 내 순서 모두 무작위."""
    defaults = {
        "randomize_section_order": True,
        "negative_marking": True,
        "default_negative_marks": 1,
        "max_attempts": 3,
    }
    defaults.update(kwargs)
    return make_template(
        template_id,
        [
            ("Section A", [("q1", 4), ("q2", 4), ("q3", 4)], True),
            ("Section B", [("q4", 4), ("q5", 4), ("q6", 4)], True),
        ],
        **defaults,
    )


def duplicate_ref_template(template_id: str = "tpl-dup") -> TestTemplate:
    """같은 문제 q1 이 한 섹션에 두 번 들어간 템플릿 (무작위화 없음)."""
    return make_template(
        template_id,
        [
            ("Section A", [("q1", 4), ("q2", 2), ("q1", 4)], False),
            ("Section B", [("q3", 1)], False),
        ],
        max_attempts=3,
    )


def all_questions():
    return [make_question(f"q{i}") for i in range(1, 7)]
