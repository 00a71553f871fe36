"""
SCRIPTCUT 예외 계층

- ValidationError: 요청 필드 누락 / 단계 선행조건 미충족 (어댑터 호출 전)
- NotFoundError: 프로젝트 / 슬롯 / 작업 ID 없음
- AdapterContractViolation: LLM 등 외부 어댑터 응답 형식 위반 (단계 전체 중단)
- AdapterJobFailure: 외부 작업이 실패를 보고 (항목 단위)
- TransientNetworkFailure: 네트워크/타임아웃 (자동 재시도 없음)
- MissingCredentialsError: 필수 API 키 누락 (프로세스 시작 거부)
"""

from typing import List, Optional


class ScriptcutError(Exception):
    """Base class for every error raised by the pipeline."""

    status_code = 500

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ScriptcutError):
    status_code = 400


class NotFoundError(ScriptcutError):
    status_code = 404


class AdapterContractViolation(ScriptcutError):
    """The adapter answered, but not in the shape we asked for."""

    status_code = 502


class AdapterJobFailure(ScriptcutError):
    status_code = 422


class TransientNetworkFailure(ScriptcutError):
    status_code = 503


class MissingCredentialsError(ScriptcutError, ValueError):

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(
            f"Missing required environment variables: {', '.join(self.missing)}"
        )
