"""
test_ids.py - ID 생성 테스트

DoD:
- template_id / element_id: uuid4, 매 호출 고유
- run_id 포맷: RUN-{timestamp}-{8 hex}
- is_safe_id: 경로 조작 문자 거절
"""

import re
import uuid

import pytest

from src.core.ids import (
    generate_element_id,
    generate_run_id,
    generate_template_id,
    is_safe_id,
)


class TestGenerateIds:
    """uuid 기반 ID."""

    def test_template_id_is_uuid4(self):
        value = generate_template_id()

        assert uuid.UUID(value).version == 4

    def test_element_ids_unique(self):
        ids = {generate_element_id() for _ in range(100)}

        assert len(ids) == 100

    def test_generated_ids_are_safe(self):
        """생성된 ID는 그대로 파일명으로 사용 가능."""
        assert is_safe_id(generate_template_id())
        assert is_safe_id(generate_run_id())


class TestGenerateRunId:
    """generate_run_id 함수 테스트."""

    def test_format(self):
        run_id = generate_run_id()

        assert re.fullmatch(r"RUN-\d{14}-[0-9a-f]{8}", run_id)

    def test_unique(self):
        assert generate_run_id() != generate_run_id()


class TestIsSafeId:
    """경로 안전 ID 검사."""

    @pytest.mark.parametrize("value", ["user-1", "abc_DEF", "RUN-20240101000000-deadbeef"])
    def test_accepts(self, value):
        assert is_safe_id(value)

    @pytest.mark.parametrize("value", ["", "../etc", "a/b", "-leading", "with space", "x" * 65, None])
    def test_rejects(self, value):
        assert not is_safe_id(value)
