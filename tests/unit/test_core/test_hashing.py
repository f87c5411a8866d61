"""
test_hashing.py - 해시 계산 테스트

DoD:
- 저장 대상 필드(name, description, is_public, design_data)만 해시에 반영
- updated_at 등 서버 관리 필드 변경은 해시 불변
- 키 순서 무관
"""

from src.core.hashing import (
    compute_template_hash,
    persisted_snapshot,
)


class TestComputeTemplateHash:
    """compute_template_hash 함수 테스트."""

    def test_same_content_same_hash(self, sample_template):
        record = sample_template.to_dict()

        assert compute_template_hash(record) == compute_template_hash(dict(record))

    def test_server_fields_ignored(self, sample_template):
        """updated_at/created_at 변경 → 해시 동일."""
        record = sample_template.to_dict()
        touched = dict(record, updated_at="2030-01-01T00:00:00+00:00", created_at="x")

        assert compute_template_hash(record) == compute_template_hash(touched)

    def test_design_change_changes_hash(self, sample_template):
        before = compute_template_hash(sample_template.to_dict())
        sample_template.elements[0].position.x += 1

        assert compute_template_hash(sample_template.to_dict()) != before

    def test_name_change_changes_hash(self, sample_template):
        before = compute_template_hash(sample_template.to_dict())
        sample_template.name = "Renamed"

        assert compute_template_hash(sample_template.to_dict()) != before

    def test_key_order_independence(self):
        a = {"name": "n", "description": "", "is_public": False, "design_data": {"b": 1, "a": 2}}
        b = {"design_data": {"a": 2, "b": 1}, "is_public": False, "description": "", "name": "n"}

        assert compute_template_hash(a) == compute_template_hash(b)

    def test_returns_sha256_hex(self, sample_template):
        value = compute_template_hash(sample_template.to_dict())

        assert len(value) == 64
        int(value, 16)

    def test_snapshot_fields(self, sample_template):
        snapshot = persisted_snapshot(sample_template.to_dict())

        assert set(snapshot) == {"name", "description", "is_public", "design_data"}
