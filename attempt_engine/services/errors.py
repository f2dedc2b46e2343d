"""
services/errors.py

응시 엔진 도메인 예외.
서비스 계층은 이 예외만 던지고, HTTP 상태 코드 변환은 api/routes.py 에서 한다.
"""

from typing import Optional


class AttemptEngineError(Exception):
    """모든 도메인 예외의 기반 클래스."""


class TemplateNotFound(AttemptEngineError):
    def __init__(self, template_id: str):
        super().__init__(f"시험 템플릿을 찾을 수 없습니다: {template_id}")
        self.template_id = template_id


class QuestionNotFound(AttemptEngineError):
    def __init__(self, question_ref: str):
        super().__init__(f"문제를 찾을 수 없습니다: {question_ref}")
        self.question_ref = question_ref


class TemplateNotOpen(AttemptEngineError):
    def __init__(self, template_id: str, reason: str):
        super().__init__(f"응시 가능한 시간이 아닙니다 ({reason}): {template_id}")
        self.template_id = template_id
        self.reason = reason


class DuplicateActiveAttempt(AttemptEngineError):
    def __init__(self, student_id: str, template_id: str, attempt_id: Optional[str] = None):
        super().__init__(
            f"이미 진행 중인 응시가 있습니다 (student={student_id}, template={template_id}, attempt={attempt_id})"
        )
        self.student_id = student_id
        self.template_id = template_id
        self.attempt_id = attempt_id


class AttemptLimitReached(AttemptEngineError):
    def __init__(self, template_id: str, max_attempts: int):
        super().__init__(f"최대 응시 횟수({max_attempts}회)를 초과했습니다: {template_id}")
        self.template_id = template_id
        self.max_attempts = max_attempts


class AttemptNotFound(AttemptEngineError):
    def __init__(self, attempt_id: str):
        super().__init__(f"응시 기록을 찾을 수 없습니다: {attempt_id}")
        self.attempt_id = attempt_id


class AttemptAlreadyFinalized(AttemptEngineError):
    def __init__(self, attempt_id: str, status: str):
        super().__init__(f"이미 종료된 응시입니다 (status={status}): {attempt_id}")
        self.attempt_id = attempt_id
        self.status = status


class AttemptExpired(AttemptEngineError):
    def __init__(self, attempt_id: str):
        super().__init__(f"제한 시간이 지나 제출할 수 없습니다: {attempt_id}")
        self.attempt_id = attempt_id


class AttemptNotFinalized(AttemptEngineError):
    def __init__(self, attempt_id: str):
        super().__init__(f"시험이 아직 제출되지 않았습니다: {attempt_id}")
        self.attempt_id = attempt_id


class UnsupportedExportFormat(AttemptEngineError):
    def __init__(self, fmt: str):
        super().__init__(f"지원하지 않는 내보내기 형식입니다: {fmt} (csv | pdf)")
        self.format = fmt
