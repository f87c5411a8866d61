"""
Error definitions for certificate studio.

규칙:
- 조용한 실패 금지 → CertificateError로 명시적 실패
- 검증 에러는 변경/업로드 이전에 발생
- I/O 에러는 원인(cause)을 보존해서 재발생
"""

from typing import Any


class CertificateError(Exception):
    """
    템플릿 편집/생성 과정의 도메인 에러.

    - 이미지 검증 실패 (크기, MIME, 해상도)
    - 배치 설정 범위 초과
    - 인증서 생성 실패 (fail-fast)
    - 스토리지 업로드 실패

    Usage:
        raise CertificateError("IMAGE_TOO_LARGE", size=size, max_size=max_size)
    """

    def __init__(self, code: str, message: str | None = None, **context: Any) -> None:
        self.code = code
        self.message = message or ""
        self.context = context
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
        head = f"[{self.code}] {self.message}".rstrip()
        return f"{head} ({ctx_str})" if ctx_str else head

    def to_dict(self) -> dict[str, Any]:
        """로그/JSON 직렬화용."""
        return {
            "code": self.code,
            "message": self.message,
            **self.context,
        }


# =============================================================================
# Error Codes
# =============================================================================

class ErrorCodes:
    """에러 코드 상수."""

    # === Document model ===
    INVALID_ELEMENT = "INVALID_ELEMENT"
    INVALID_ELEMENT_TYPE = "INVALID_ELEMENT_TYPE"
    INVALID_ORIENTATION = "INVALID_ORIENTATION"
    INVALID_ROTATION = "INVALID_ROTATION"
    INVALID_PROPERTIES = "INVALID_PROPERTIES"
    DESIGN_SCHEMA_UNSUPPORTED = "DESIGN_SCHEMA_UNSUPPORTED"
    ELEMENT_NOT_FOUND = "ELEMENT_NOT_FOUND"
    CAPABILITY_NOT_SUPPORTED = "CAPABILITY_NOT_SUPPORTED"
    UNKNOWN_SHAPE = "UNKNOWN_SHAPE"
    UNKNOWN_FIELD = "UNKNOWN_FIELD"

    # === Images / Storage ===
    IMAGE_TOO_LARGE = "IMAGE_TOO_LARGE"
    IMAGE_TYPE_NOT_ALLOWED = "IMAGE_TYPE_NOT_ALLOWED"
    IMAGE_DIMENSIONS_EXCEEDED = "IMAGE_DIMENSIONS_EXCEEDED"
    IMAGE_UNREADABLE = "IMAGE_UNREADABLE"
    UPLOAD_FAILED = "UPLOAD_FAILED"

    # === Autosave ===
    SAVE_FAILED = "SAVE_FAILED"

    # === Recipients ===
    RECIPIENTS_UNREADABLE = "RECIPIENTS_UNREADABLE"
    RECIPIENTS_INVALID = "RECIPIENTS_INVALID"

    # === Generation ===
    INVALID_OUTPUT_FORMAT = "INVALID_OUTPUT_FORMAT"
    INVALID_BATCH_SIZE = "INVALID_BATCH_SIZE"
    INVALID_QUALITY = "INVALID_QUALITY"
    GENERATION_FAILED = "GENERATION_FAILED"
    RENDER_FAILED = "RENDER_FAILED"
    TEMPLATE_NOT_FOUND = "TEMPLATE_NOT_FOUND"
