"""
storage/attempt_store.py

Attempt 영속화 (SQLAlchemy).

동시성 보장은 프로세스 락이 아니라 DB 제약으로 한다 (서버 인스턴스가 여러 개일 수 있음).
  - (student_id, template_id) WHERE status = 'in_progress' 부분 유니크 인덱스 → 진행 중 응시 최대 1개
  - (student_id, template_id, attempt_no) 유니크 → 회차 번호 중복 불가
  - 종료 전이는 status = 'in_progress' 조건부 UPDATE 한 번 (compare-and-set)
sections 컬럼은 INSERT 때만 기록하고 이후 UPDATE 대상에 절대 포함하지 않는다.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import (
    JSON, Column, DateTime, Float, Index, Integer, String, UniqueConstraint,
    create_engine, func, select, text, update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from attempt_engine.models.attempt_model import Attempt, AttemptStatus, ScoredResponse
from attempt_engine.services.errors import DuplicateActiveAttempt

logger = logging.getLogger(__name__)

Base = declarative_base()

_IN_PROGRESS = AttemptStatus.IN_PROGRESS.value


class AttemptRow(Base):
    __tablename__ = "attempts"

    id = Column(String(36), primary_key=True)
    student_id = Column(String(64), nullable=False)
    template_id = Column(String(64), nullable=False)
    attempt_no = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=_IN_PROGRESS)
    started_at = Column(DateTime, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    submitted_at = Column(DateTime, nullable=True)
    sections = Column(JSON, nullable=False)
    rules = Column(JSON, nullable=False)
    responses = Column(JSON, nullable=False, default=list)
    score = Column(Float, nullable=True)
    max_score = Column(Float, nullable=False, default=0)
    percentage = Column(Float, nullable=True)
    dropped_count = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint("student_id", "template_id", "attempt_no", name="uq_attempts_attempt_no"),
        Index(
            "uq_attempts_one_active",
            "student_id", "template_id",
            unique=True,
            sqlite_where=text("status = 'in_progress'"),
            postgresql_where=text("status = 'in_progress'"),
        ),
        Index("ix_attempts_student_id", "student_id"),
    )


# ── 변환 헬퍼 ────────────────────────────────────────────────────────────────
# DB 에는 naive UTC 로 저장하고, 읽을 때 UTC tzinfo 를 붙인다.

def _to_db(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _from_db(dt: Optional[datetime]) -> Optional[datetime]:
    if dt is None:
        return None
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


def _row_to_attempt(row: AttemptRow) -> Attempt:
    return Attempt.model_validate({
        "id": row.id,
        "student_id": row.student_id,
        "template_id": row.template_id,
        "attempt_no": row.attempt_no,
        "status": row.status,
        "started_at": _from_db(row.started_at),
        "expires_at": _from_db(row.expires_at),
        "submitted_at": _from_db(row.submitted_at),
        "sections": row.sections,
        "rules": row.rules,
        "responses": row.responses or [],
        "score": row.score,
        "max_score": row.max_score,
        "percentage": row.percentage,
        "dropped_count": row.dropped_count,
    })


def make_engine(database_url: str) -> Engine:
    """SQLite 메모리 DB 는 스레드 간 같은 연결을 공유해야 하므로 StaticPool 사용."""
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


class AttemptStore:
    def __init__(self, engine: Engine):
        self.engine = engine
        self._Session = sessionmaker(bind=engine, expire_on_commit=False)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    # ── 조회 ─────────────────────────────────────────────────────────────────

    def get(self, attempt_id: str) -> Optional[Attempt]:
        with self._Session() as session:
            row = session.get(AttemptRow, attempt_id)
            return _row_to_attempt(row) if row is not None else None

    def find_active(self, student_id: str, template_id: str) -> Optional[Attempt]:
        with self._Session() as session:
            row = session.execute(
                select(AttemptRow).where(
                    AttemptRow.student_id == student_id,
                    AttemptRow.template_id == template_id,
                    AttemptRow.status == _IN_PROGRESS,
                )
            ).scalar_one_or_none()
            return _row_to_attempt(row) if row is not None else None

    def count_attempts(self, student_id: str, template_id: str) -> int:
        with self._Session() as session:
            return session.execute(
                select(func.count()).select_from(AttemptRow).where(
                    AttemptRow.student_id == student_id,
                    AttemptRow.template_id == template_id,
                )
            ).scalar_one()

    def list_for_student(self, student_id: str) -> List[Attempt]:
        with self._Session() as session:
            rows = session.execute(
                select(AttemptRow)
                .where(AttemptRow.student_id == student_id)
                .order_by(AttemptRow.started_at.desc(), AttemptRow.attempt_no.desc())
            ).scalars().all()
            return [_row_to_attempt(r) for r in rows]

    # ── 쓰기 ─────────────────────────────────────────────────────────────────

    def insert(self, attempt: Attempt) -> Attempt:
        """
        새 응시를 한 번만 기록한다.

        Raises:
            DuplicateActiveAttempt: 유니크 제약 위반 (동시 시작 경쟁에서 진 경우 포함).
        """
        data = attempt.model_dump(mode="json")
        row = AttemptRow(
            id=attempt.id,
            student_id=attempt.student_id,
            template_id=attempt.template_id,
            attempt_no=attempt.attempt_no,
            status=attempt.status.value,
            started_at=_to_db(attempt.started_at),
            expires_at=_to_db(attempt.expires_at),
            sections=data["sections"],
            rules=data["rules"],
            responses=[],
            max_score=attempt.max_score,
            dropped_count=0,
        )
        with self._Session() as session:
            session.add(row)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                logger.warning(
                    f"응시 생성 유니크 제약 위반: student={attempt.student_id}, template={attempt.template_id}"
                )
                raise DuplicateActiveAttempt(attempt.student_id, attempt.template_id)
        return attempt

    def finalize(
        self,
        attempt_id: str,
        status: AttemptStatus,
        responses: List[ScoredResponse],
        score: Optional[float],
        max_score: float,
        percentage: Optional[float],
        dropped_count: int,
        submitted_at: datetime,
    ) -> bool:
        """
        in_progress → status 조건부 전이. 이미 다른 요청이 종료시켰으면 False.
        """
        with self._Session() as session:
            result = session.execute(
                update(AttemptRow)
                .where(AttemptRow.id == attempt_id, AttemptRow.status == _IN_PROGRESS)
                .values(
                    status=status.value,
                    responses=[r.model_dump(mode="json") for r in responses],
                    score=score,
                    max_score=max_score,
                    percentage=percentage,
                    dropped_count=dropped_count,
                    submitted_at=_to_db(submitted_at),
                )
            )
            session.commit()
            return result.rowcount == 1
