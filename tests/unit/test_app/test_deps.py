"""
test_deps.py - Route 공용 의존성 테스트

검증:
- 헤더 → CurrentUser (401/403)
- 에러 코드 → HTTP status
"""

import pytest
from fastapi import HTTPException

from src.app.deps import CurrentUser, get_current_user, http_error, status_for
from src.domain.errors import CertificateError, ErrorCodes
from src.templates.manager import TemplateError


class TestGetCurrentUser:
    """X-User-Id / X-User-Role."""

    async def test_valid(self):
        user = await get_current_user("user-1", "admin")

        assert user == CurrentUser(id="user-1", role="admin")
        assert user.is_admin

    async def test_default_role_not_admin(self):
        user = await get_current_user("user-1", "user")

        assert not user.is_admin

    @pytest.mark.parametrize("user_id", [None, "", "../etc", "a/b"])
    async def test_missing_or_unsafe_id(self, user_id):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(user_id, "user")

        assert exc_info.value.status_code == 401

    async def test_unknown_role(self):
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user("user-1", "root")

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["code"] == "INVALID_ROLE"


class TestStatusMapping:
    """에러 코드 → status."""

    @pytest.mark.parametrize(
        "code,status",
        [
            ("TEMPLATE_NOT_FOUND", 404),
            (ErrorCodes.ELEMENT_NOT_FOUND, 404),
            ("TEMPLATE_FORBIDDEN", 403),
            ("SOURCE_IMMUTABLE", 409),
            ("TEMPLATE_LOCK_TIMEOUT", 409),
            (ErrorCodes.GENERATION_FAILED, 500),
            (ErrorCodes.SAVE_FAILED, 500),
            (ErrorCodes.UPLOAD_FAILED, 502),
            (ErrorCodes.IMAGE_TOO_LARGE, 400),
            (ErrorCodes.RECIPIENTS_INVALID, 400),
        ],
    )
    def test_status_for(self, code, status):
        assert status_for(code) == status

    def test_http_error_certificate(self):
        error = CertificateError(ErrorCodes.GENERATION_FAILED, "boom", index=7, recipient="Ada")

        exc = http_error(error)

        assert exc.status_code == 500
        assert exc.detail == {
            "code": "GENERATION_FAILED",
            "message": "boom",
            "index": 7,
            "recipient": "Ada",
        }

    def test_http_error_template(self):
        exc = http_error(TemplateError("TEMPLATE_NOT_FOUND", "missing", template_id="t1"))

        assert exc.status_code == 404
        assert exc.detail["template_id"] == "t1"
