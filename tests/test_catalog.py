import json
import random
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from factories import T0, FakeClock
from attempt_engine.models.template_model import QuestionContent
from attempt_engine.services.attempt_service import AttemptService
from attempt_engine.services.catalog import (
    InMemoryCatalog, normalize_question, normalize_question_ref, normalize_template,
)
from attempt_engine.services.errors import QuestionNotFound, TemplateNotOpen

RAW_QUESTION = {
    "_id": "507f1f77bcf86cd799439011",
    "questionText": "2 + 2 = ?",
    "type": "single",
    "options": [
        {"text": "3", "isCorrect": False},
        {"text": "4", "isCorrect": True},
    ],
    "negativeMarks": 0.5,
}

RAW_TEMPLATE = {
    "_id": "series-1",
    "title": "Mock 1",
    "duration": 30,
    "negativeMarking": True,
    "defaultNegativeMarks": 1,
    "randomizeSectionOrder": True,
    "maxAttempts": 2,
    "sections": [
        {
            "title": "Math",
            "order": 1,
            "randomizeQuestionOrderInSection": True,
            "questions": [
                {"question": "507f1f77bcf86cd799439011", "marks": 4},
                {"question": {"_id": "507f1f77bcf86cd799439011", "questionText": "2 + 2 = ?"}, "marks": 2},
            ],
        }
    ],
}


def test_question_ref_accepts_string_or_populated_object():
    assert normalize_question_ref("abc") == "abc"
    assert normalize_question_ref(" abc ") == "abc"
    assert normalize_question_ref({"_id": "abc", "text": "..."}) == "abc"
    assert normalize_question_ref({"id": 12}) == "12"
    with pytest.raises(ValueError):
        normalize_question_ref({"text": "no id"})
    with pytest.raises(ValueError):
        normalize_question_ref("")


def test_normalize_template_from_camel_case_document():
    template = normalize_template(RAW_TEMPLATE)

    assert template.id == "series-1"
    assert template.negative_marking is True
    assert template.default_negative_marks == 1
    assert template.randomize_section_order is True
    assert template.max_attempts == 2
    section = template.sections[0]
    assert section.randomize_question_order is True
    assert [q.question_ref for q in section.questions] == ["507f1f77bcf86cd799439011"] * 2
    assert [q.marks for q in section.questions] == [4, 2]
    assert template.question_refs() == ["507f1f77bcf86cd799439011"]


def test_normalize_question_derives_correct_options():
    q = normalize_question(RAW_QUESTION)
    assert q.id == "507f1f77bcf86cd799439011"
    assert q.text == "2 + 2 = ?"
    assert q.correct_options == [1]
    assert q.negative_marks == 0.5


def test_question_validation():
    with pytest.raises(ValidationError):
        QuestionContent(id="x", text="t", options=[{"text": "only"}], correct_options=[0])
    with pytest.raises(ValidationError):
        QuestionContent(id="x", text="t", options=[{"text": "a"}, {"text": "b"}])
    with pytest.raises(ValidationError):
        QuestionContent(id="x", text="t", options=[{"text": "a"}, {"text": "b"}], correct_options=[5])
    with pytest.raises(ValidationError):
        QuestionContent(id="x", text="t", type="matrix", options=[{"text": "a"}, {"text": "b"}], correct_options=[0])


def test_catalog_from_json_file_skips_invalid_documents(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps({
        "questions": [RAW_QUESTION, {"_id": "broken", "questionText": "x", "options": []}],
        "templates": [RAW_TEMPLATE, {"_id": "bad", "duration": 0}],
    }), encoding="utf-8")

    catalog = InMemoryCatalog.from_json_file(str(path))
    assert catalog.get_template("series-1") is not None
    assert catalog.get_template("bad") is None
    assert set(catalog.get_questions(["507f1f77bcf86cd799439011"])) == {"507f1f77bcf86cd799439011"}
    with pytest.raises(QuestionNotFound):
        catalog.get_questions(["broken"])


def test_naive_live_window_is_treated_as_utc():
    template = normalize_template({
        **RAW_TEMPLATE,
        "mode": "live",
        "startAt": "2025-05-27T09:00:00",
        "endAt": "2025-05-27T12:00:00",
    })
    assert template.start_at == datetime(2025, 5, 27, 9, tzinfo=timezone.utc)
    assert template.end_at.tzinfo is not None


@pytest.mark.parametrize("offset_minutes, opens", [(-120, False), (0, True), (180, False)])
def test_live_template_with_naive_window_from_documents(store, offset_minutes, opens):
    catalog = InMemoryCatalog.from_documents({
        "questions": [RAW_QUESTION],
        "templates": [{
            **RAW_TEMPLATE,
            "mode": "live",
            "startAt": "2025-05-27T09:00:00",
            "endAt": "2025-05-27T12:00:00",
        }],
    })
    clock = FakeClock(T0 + timedelta(minutes=offset_minutes))
    service = AttemptService(catalog, store, clock=clock, rng_factory=lambda: random.Random(0))

    if opens:
        assert service.start_attempt("series-1", "s1").attempt.started_at == clock.now
    else:
        with pytest.raises(TemplateNotOpen):
            service.start_attempt("series-1", "s1")
