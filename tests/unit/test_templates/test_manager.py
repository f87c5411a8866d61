"""
test_manager.py - 템플릿 저장소 테스트

검증:
- CRUD: create/get/save/update_details/duplicate/delete
- 접근 제어: 소유자, 공개 템플릿, admin
- 목록: 페이지네이션 + 정렬
- source/ 불변: 덮어쓰기 시 에러, chmod 0o444
- 예전 design_data 읽기 시 마이그레이션
"""

import json
import os
import stat
from pathlib import Path

import pytest

from src.domain.constants import DESIGN_SCHEMA_VERSION
from src.domain.schemas import element_from_dict
from src.templates.manager import (
    TEMPLATE_NAME_MAX_LENGTH,
    TemplateError,
    TemplateStore,
    validate_template_name,
)

# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def templates_root(tmp_path: Path) -> Path:
    """테스트용 templates/ 루트."""
    return tmp_path / "templates"


@pytest.fixture
def store(templates_root: Path) -> TemplateStore:
    """TemplateStore 인스턴스."""
    return TemplateStore(templates_root)


@pytest.fixture
def created(store: TemplateStore):
    """user-1 소유 템플릿."""
    return store.create(user_id="user-1", name="Course Certificate", description="테스트용")


# =============================================================================
# validate_template_name 테스트
# =============================================================================

class TestValidateTemplateName:
    """템플릿 이름 검증."""

    def test_strips(self):
        assert validate_template_name("  Award  ") == "Award"

    def test_empty(self):
        with pytest.raises(TemplateError) as exc_info:
            validate_template_name("   ")

        assert exc_info.value.code == "INVALID_TEMPLATE_NAME"

    def test_too_long(self):
        with pytest.raises(TemplateError) as exc_info:
            validate_template_name("x" * (TEMPLATE_NAME_MAX_LENGTH + 1))

        assert exc_info.value.code == "INVALID_TEMPLATE_NAME"


# =============================================================================
# Create / Read
# =============================================================================

class TestCreateAndGet:
    """생성/조회 테스트."""

    def test_create_writes_record(self, store, created, templates_root):
        path = templates_root / created.id / "template.json"
        record = json.loads(path.read_text(encoding="utf-8"))

        assert record["name"] == "Course Certificate"
        assert record["user_id"] == "user-1"
        assert record["design_data"]["schema_version"] == DESIGN_SCHEMA_VERSION
        assert record["created_at"] == record["updated_at"]
        assert record["is_public"] is False

    def test_get_owner(self, store, created):
        assert store.get(created.id, "user-1").name == "Course Certificate"

    def test_get_missing(self, store):
        with pytest.raises(TemplateError) as exc_info:
            store.get("missing", "user-1")

        assert exc_info.value.code == "TEMPLATE_NOT_FOUND"

    def test_unsafe_id_is_not_found(self, store):
        with pytest.raises(TemplateError) as exc_info:
            store.get("../etc", "user-1")

        assert exc_info.value.code == "TEMPLATE_NOT_FOUND"

    def test_private_forbidden_to_others(self, store, created):
        with pytest.raises(TemplateError) as exc_info:
            store.get(created.id, "user-2")

        assert exc_info.value.code == "TEMPLATE_FORBIDDEN"

    def test_public_readable_by_others(self, store):
        template = store.create(user_id="user-1", name="Shared", is_public=True)

        assert store.get(template.id, "user-2").name == "Shared"

    def test_admin_reads_any(self, store, created):
        assert store.get(created.id, "admin-1", is_admin=True).id == created.id

    def test_invalid_design_rejected(self, store):
        with pytest.raises(TemplateError) as exc_info:
            store.create(
                user_id="user-1",
                name="Broken",
                design_data={"schema_version": 99, "elements": []},
            )

        assert exc_info.value.code == "INVALID_DESIGN"

    def test_legacy_record_migrated_on_read(self, store, templates_root):
        """schema_version 없는 레코드 + dynamic 요소 → 현재 스키마."""
        legacy_dir = templates_root / "legacy-1"
        legacy_dir.mkdir(parents=True)
        (legacy_dir / "template.json").write_text(
            json.dumps({
                "id": "legacy-1",
                "user_id": "user-1",
                "name": "Old",
                "design_data": {
                    "elements": [{"id": "d", "type": "dynamic", "content": "{{name}}"}],
                    "settings": {"width": 1000, "height": 700, "orientation": "landscape"},
                },
            }),
            encoding="utf-8",
        )

        template = store.get("legacy-1", "user-1")

        assert template.elements[0].type == "placeholder"
        assert template.properties.size.unit == "px"


# =============================================================================
# List
# =============================================================================

class TestListTemplates:
    """목록 조회 테스트."""

    def test_only_own_templates(self, store):
        store.create(user_id="user-1", name="A")
        store.create(user_id="user-2", name="B")

        page = store.list_templates("user-1")

        assert [t.name for t in page.items] == ["A"]
        assert page.total == 1

    def test_include_all(self, store):
        store.create(user_id="user-1", name="A")
        store.create(user_id="user-2", name="B")

        assert store.list_templates("admin", include_all=True).total == 2

    def test_pagination_and_name_order(self, store):
        for name in ["delta", "Alpha", "charlie", "bravo", "echo"]:
            store.create(user_id="user-1", name=name)

        first = store.list_templates("user-1", page=1, limit=2, order_by="name", order_dir="asc")
        last = store.list_templates("user-1", page=3, limit=2, order_by="name", order_dir="asc")

        assert [t.name for t in first.items] == ["Alpha", "bravo"]
        assert [t.name for t in last.items] == ["echo"]
        assert first.pages == 3
        assert first.to_dict()["total"] == 5

    @pytest.mark.parametrize(
        "kwargs",
        [{"page": 0}, {"limit": 0}, {"limit": 101}, {"order_by": "owner"}, {"order_dir": "up"}],
    )
    def test_invalid_pagination(self, store, kwargs):
        with pytest.raises(TemplateError) as exc_info:
            store.list_templates("user-1", **kwargs)

        assert exc_info.value.code == "INVALID_PAGINATION"

    def test_unreadable_record_skipped(self, store, templates_root):
        store.create(user_id="user-1", name="Good")
        broken = templates_root / "broken"
        broken.mkdir()
        (broken / "template.json").write_text("{not json", encoding="utf-8")

        assert store.list_templates("user-1").total == 1


# =============================================================================
# Update
# =============================================================================

class TestSave:
    """통째 저장 테스트."""

    def test_save_overwrites_design(self, store, created):
        created.elements.append(element_from_dict({"id": "t1", "type": "text", "content": "Hi"}))

        saved = store.save(created, "user-1")

        assert store.get(created.id, "user-1").elements[0].content == "Hi"
        assert saved.updated_at >= created.created_at

    def test_save_keeps_server_fields(self, store, created):
        tampered = created.copy()
        tampered.user_id = "user-2"
        tampered.created_at = "1999-01-01"

        saved = store.save(tampered, "user-1")

        assert saved.user_id == "user-1"
        assert saved.created_at == created.created_at

    def test_save_by_other_user_forbidden(self, store, created):
        with pytest.raises(TemplateError) as exc_info:
            store.save(created, "user-2")

        assert exc_info.value.code == "TEMPLATE_FORBIDDEN"

    def test_public_template_not_writable_by_others(self, store):
        template = store.create(user_id="user-1", name="Shared", is_public=True)

        with pytest.raises(TemplateError) as exc_info:
            store.update_details(template.id, "user-2", name="Hijacked")

        assert exc_info.value.code == "TEMPLATE_FORBIDDEN"

    def test_update_details(self, store, created):
        updated = store.update_details(created.id, "user-1", name="Renamed", is_public=True)

        assert updated.name == "Renamed"
        assert updated.is_public
        assert updated.description == "테스트용"

    def test_duplicate(self, store, created):
        copy = store.duplicate(created.id, "user-1")

        assert copy.id != created.id
        assert copy.name == "Course Certificate (Copy)"
        assert not copy.is_public

    def test_duplicate_public_by_other_user(self, store):
        template = store.create(user_id="user-1", name="Shared", is_public=True)

        copy = store.duplicate(template.id, "user-2")

        assert copy.user_id == "user-2"


# =============================================================================
# Source immutability
# =============================================================================

class TestSaveSource:
    """source/ 불변 가드 테스트."""

    def test_saves_read_only(self, store, created):
        path = store.save_source(created.id, "user-1", b"PK docx", "award.docx")

        assert path.read_bytes() == b"PK docx"
        if os.name != "nt":
            assert not path.stat().st_mode & stat.S_IWUSR
        assert store.source_path(store.get(created.id, "user-1")) == path

    def test_overwrite_rejected(self, store, created):
        store.save_source(created.id, "user-1", b"PK one", "award.docx")

        with pytest.raises(TemplateError) as exc_info:
            store.save_source(created.id, "user-1", b"PK two", "other.docx")

        assert exc_info.value.code == "SOURCE_IMMUTABLE"

    def test_non_docx_rejected(self, store, created):
        with pytest.raises(TemplateError) as exc_info:
            store.save_source(created.id, "user-1", b"%PDF", "award.pdf")

        assert exc_info.value.code == "INVALID_SOURCE"

    def test_path_stripped_from_filename(self, store, created):
        path = store.save_source(created.id, "user-1", b"PK", "../../evil.docx")

        assert path.name == "evil.docx"
        assert path.parent.name == "source"


# =============================================================================
# Delete
# =============================================================================

class TestDelete:
    """삭제 테스트."""

    def test_delete_removes_dir_with_source(self, store, created, templates_root):
        store.save_source(created.id, "user-1", b"PK", "award.docx")

        store.delete(created.id, "user-1")

        assert not (templates_root / created.id).exists()

    def test_delete_by_other_forbidden(self, store, created):
        with pytest.raises(TemplateError) as exc_info:
            store.delete(created.id, "user-2")

        assert exc_info.value.code == "TEMPLATE_FORBIDDEN"

    def test_admin_delete(self, store, created):
        store.delete(created.id, "admin-1", is_admin=True)

        with pytest.raises(TemplateError):
            store.get(created.id, "user-1")
