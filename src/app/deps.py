"""
Route 공용 의존성: 현재 사용자 + 에러 → HTTP 변환.

인증은 앞단 게이트웨이가 처리하고 헤더로 전달:
- X-User-Id: 사용자 ID (필수)
- X-User-Role: user | admin | super_admin (기본 user)
"""

from dataclasses import dataclass

from fastapi import Header, HTTPException

from src.core.ids import is_safe_id
from src.domain.constants import ADMIN_ROLES, ROLES
from src.domain.errors import CertificateError, ErrorCodes
from src.templates.manager import TemplateError


@dataclass(frozen=True)
class CurrentUser:
    """요청 사용자."""
    id: str
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def get_current_user(
    x_user_id: str | None = Header(None),
    x_user_role: str = Header("user"),
) -> CurrentUser:
    """헤더 → CurrentUser (없거나 잘못되면 401/403)."""
    if not x_user_id:
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHENTICATED", "message": "X-User-Id header is required"},
        )
    if not is_safe_id(x_user_id):
        raise HTTPException(
            status_code=401,
            detail={"code": "UNAUTHENTICATED", "message": "Invalid user id"},
        )
    if x_user_role not in ROLES:
        raise HTTPException(
            status_code=403,
            detail={"code": "INVALID_ROLE", "message": f"Unknown role '{x_user_role}'"},
        )
    return CurrentUser(id=x_user_id, role=x_user_role)


# =============================================================================
# Error → HTTP
# =============================================================================

NOT_FOUND_CODES = frozenset({
    "TEMPLATE_NOT_FOUND",
    "RUN_NOT_FOUND",
    ErrorCodes.ELEMENT_NOT_FOUND,
})
FORBIDDEN_CODES = frozenset({"TEMPLATE_FORBIDDEN"})
CONFLICT_CODES = frozenset({"SOURCE_IMMUTABLE", "TEMPLATE_LOCK_TIMEOUT"})
SERVER_ERROR_CODES = frozenset({
    ErrorCodes.GENERATION_FAILED,
    ErrorCodes.RENDER_FAILED,
    ErrorCodes.SAVE_FAILED,
})
UPSTREAM_ERROR_CODES = frozenset({ErrorCodes.UPLOAD_FAILED})


def status_for(code: str) -> int:
    """에러 코드 → HTTP status (기본 400 검증 에러)."""
    if code in NOT_FOUND_CODES:
        return 404
    if code in FORBIDDEN_CODES:
        return 403
    if code in CONFLICT_CODES:
        return 409
    if code in SERVER_ERROR_CODES:
        return 500
    if code in UPSTREAM_ERROR_CODES:
        return 502
    return 400


def http_error(e: CertificateError | TemplateError) -> HTTPException:
    """
    도메인 에러 → HTTPException.

    Usage:
        except (CertificateError, TemplateError) as e:
            raise http_error(e) from e
    """
    detail = e.to_dict() if isinstance(e, CertificateError) else {
        "code": e.code,
        "message": e.message,
        **e.context,
    }
    return HTTPException(status_code=status_for(e.code), detail=detail)
