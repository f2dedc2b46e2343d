"""
services/export_service.py

리뷰 결과 내보내기 (CSV / PDF).
Public API:
  - export_review(review, fmt) -> (bytes, media_type, filename)
  - export_csv(review) -> bytes
  - export_pdf(review) -> bytes      : PyMuPDF 로 직접 그린 문서

build_review() 결과만 입력으로 받는다. 순서는 리뷰의 고정 순서를 그대로 따른다.
"""

import csv
import io
import logging
import textwrap
from typing import List, Tuple

import fitz  # PyMuPDF

from config import (
    PDF_CJK_FONT, PDF_FONT_NAME, PDF_FONT_SIZE, PDF_LATIN_FONT, PDF_PAGE_HEIGHT, PDF_PAGE_WIDTH,
)
from attempt_engine.models.review_model import AttemptReview
from attempt_engine.services.errors import UnsupportedExportFormat

logger = logging.getLogger(__name__)

CSV_HEADER = [
    "section_index", "section_title", "question_index", "instance_key", "question_ref",
    "question_text", "selected", "correct_options", "status", "marks", "earned_marks",
    "time_spent", "flagged",
]

_MARGIN = 48
_LINE_GAP = 1.45


def export_review(review: AttemptReview, fmt: str) -> Tuple[bytes, str, str]:
    fmt = (fmt or "").lower()
    if fmt == "csv":
        return export_csv(review), "text/csv; charset=utf-8", f"review_{review.attempt_id}.csv"
    if fmt == "pdf":
        return export_pdf(review), "application/pdf", f"review_{review.attempt_id}.pdf"
    raise UnsupportedExportFormat(fmt)


# ── CSV ──────────────────────────────────────────────────────────────────────

def export_csv(review: AttemptReview) -> bytes:
    """문항 1개 = 1행. 엑셀 호환을 위해 UTF-8 BOM 포함."""
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(CSV_HEADER)
    for section in review.sections:
        for q in section.questions:
            writer.writerow([
                section.section_index,
                section.title,
                q.question_index,
                q.instance_key,
                q.question_ref,
                q.text,
                "|".join(q.selected),
                "|".join(str(i) for i in q.correct_options),
                q.status.value,
                q.marks,
                q.earned_marks,
                q.time_spent,
                int(q.flagged),
            ])
    return ("\ufeff" + buf.getvalue()).encode("utf-8")


# ── PDF ──────────────────────────────────────────────────────────────────────

def font_for(text: str) -> str:
    """PDF_FONT_NAME 이 지정되면 그대로, 아니면 Latin-1 밖 문자가 있을 때 CJK 내장 폰트."""
    if PDF_FONT_NAME:
        return PDF_FONT_NAME
    if any(ord(ch) > 0xFF for ch in text):
        return PDF_CJK_FONT
    return PDF_LATIN_FONT


class _PdfWriter:
    """줄 단위로 내려쓰다가 페이지가 차면 새 페이지를 여는 단순 레이아웃."""

    def __init__(self, doc: "fitz.Document"):
        self.doc = doc
        self.page = None
        self.y = 0.0
        self.wrap_chars = max(20, int((PDF_PAGE_WIDTH - 2 * _MARGIN) / (PDF_FONT_SIZE * 0.5)))

    def _new_page(self) -> None:
        self.page = self.doc.new_page(width=PDF_PAGE_WIDTH, height=PDF_PAGE_HEIGHT)
        self.y = _MARGIN

    def line(self, text: str, size: float = PDF_FONT_SIZE, indent: int = 0) -> None:
        chunks: List[str] = textwrap.wrap(text, width=self.wrap_chars - indent // 4) or [""]
        for chunk in chunks:
            if self.page is None or self.y + size * _LINE_GAP > PDF_PAGE_HEIGHT - _MARGIN:
                self._new_page()
            self.y += size * _LINE_GAP
            self.page.insert_text(
                fitz.Point(_MARGIN + indent, self.y),
                chunk,
                fontsize=size,
                fontname=font_for(chunk),
            )

    def gap(self) -> None:
        self.y += PDF_FONT_SIZE


def export_pdf(review: AttemptReview) -> bytes:
    doc = fitz.open()
    try:
        doc.set_metadata({"title": f"Attempt review {review.attempt_id}"})
        w = _PdfWriter(doc)

        score = "-" if review.score is None else f"{review.score:g}"
        pct = "-" if review.percentage is None else f"{review.percentage:g}%"
        w.line(f"Attempt {review.attempt_id} (#{review.attempt_no})", size=PDF_FONT_SIZE + 4)
        w.line(f"Template: {review.template_id}   Status: {review.status.value}")
        w.line(f"Score: {score} / {review.max_score:g}   Percentage: {pct}")
        w.gap()

        for section in review.sections:
            w.line(
                f"[{section.section_index + 1}] {section.title}  "
                f"({section.score:g} / {section.max_score:g})",
                size=PDF_FONT_SIZE + 2,
            )
            for q in section.questions:
                w.line(f"Q{q.question_index + 1}. {q.text}", indent=8)
                for o_idx, opt in enumerate(q.options):
                    marks = []
                    if o_idx in q.correct_options:
                        marks.append("correct")
                    if str(o_idx) in q.selected:
                        marks.append("selected")
                    suffix = f"  <{', '.join(marks)}>" if marks else ""
                    w.line(f"({o_idx}) {opt}{suffix}", indent=24)
                w.line(f"=> {q.status.value}, {q.earned_marks:g} / {q.marks:g}", indent=8)
                if q.explanation:
                    w.line(f"Explanation: {q.explanation}", indent=8)
            w.gap()

        data = doc.tobytes()
        logger.info(f"리뷰 PDF 생성 완료: {review.attempt_id} ({doc.page_count}페이지, {len(data)//1024}KB)")
        return data
    finally:
        doc.close()
