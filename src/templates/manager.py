"""
템플릿 저장소: CRUD + 페이지네이션 + source/ 불변 가드.

핵심 규칙:
- templates/<template_id>/template.json 에 레코드 통째로 저장 (덮어쓰기)
- 소유자 1명, 공개 템플릿은 타인도 조회 가능 (수정 불가)
- admin/super_admin 은 전체 조회/수정 가능
- source/ 불변: 업로드된 DOCX 원본 덮어쓰기 시 에러 (chmod 0o444)
- 템플릿별 FileLock 으로 동시 수정 보호
"""

import json
import logging
import shutil
from collections.abc import Generator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock, Timeout

from src.core.atomic import atomic_write_bytes, atomic_write_json
from src.core.ids import generate_template_id, is_safe_id
from src.domain.errors import CertificateError
from src.domain.schemas import Template, migrate_design_data

logger = logging.getLogger(__name__)

# =============================================================================
# Exceptions
# =============================================================================

class TemplateError(Exception):
    """템플릿 저장소 에러."""

    def __init__(self, code: str, message: str, **context: Any) -> None:
        self.code = code
        self.message = message
        self.context = context
        super().__init__(f"[{code}] {message}")


# =============================================================================
# Constants
# =============================================================================

TEMPLATE_FILENAME = "template.json"
TEMPLATE_NAME_MAX_LENGTH = 200
ORDER_BY_FIELDS = ("created_at", "updated_at", "name")
ORDER_DIRECTIONS = ("asc", "desc")
PAGE_LIMIT_MAX = 100
SOURCE_EXTENSIONS = (".docx",)


def validate_template_name(name: str) -> str:
    """
    템플릿 이름 검증 (strip 후 1~200자).

    Raises:
        TemplateError: INVALID_TEMPLATE_NAME
    """
    cleaned = (name or "").strip()
    if not cleaned:
        raise TemplateError("INVALID_TEMPLATE_NAME", "Template name cannot be empty")
    if len(cleaned) > TEMPLATE_NAME_MAX_LENGTH:
        raise TemplateError(
            "INVALID_TEMPLATE_NAME",
            f"Template name exceeds {TEMPLATE_NAME_MAX_LENGTH} characters",
            length=len(cleaned),
        )
    return cleaned


# =============================================================================
# Data Classes
# =============================================================================

@dataclass
class TemplatePage:
    """목록 조회 결과 1페이지."""
    items: list[Template]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return (self.total + self.limit - 1) // self.limit if self.limit else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "items": [t.to_dict() for t in self.items],
            "total": self.total,
            "page": self.page,
            "limit": self.limit,
            "pages": self.pages,
        }


# =============================================================================
# Template Store
# =============================================================================

class TemplateStore:
    """
    템플릿 저장소.

    구조:
    templates/<template_id>/
    ├── template.json    # 레코드 (design_data 포함)
    └── source/          # 업로드 원본 DOCX (불변)
    """

    # 락 timeout (초)
    LOCK_TIMEOUT = 10.0

    def __init__(self, templates_root: Path):
        """
        Args:
            templates_root: templates/ 루트 경로
        """
        self.templates_root = templates_root
        self._locks_dir = templates_root / ".locks"

    @contextmanager
    def _template_lock(self, template_id: str) -> Generator[None, None, None]:
        """
        템플릿별 락 획득.

        Raises:
            TemplateError: TEMPLATE_LOCK_TIMEOUT
        """
        self._locks_dir.mkdir(parents=True, exist_ok=True)
        lock = FileLock(self._locks_dir / f"{template_id}.lock", timeout=self.LOCK_TIMEOUT)

        try:
            lock.acquire()
        except Timeout as e:
            raise TemplateError(
                "TEMPLATE_LOCK_TIMEOUT",
                f"Failed to acquire lock for template '{template_id}'",
                template_id=template_id,
                timeout=self.LOCK_TIMEOUT,
            ) from e
        try:
            yield
        finally:
            lock.release()

    # =========================================================================
    # Create
    # =========================================================================

    def create(
        self,
        user_id: str,
        name: str,
        description: str = "",
        design_data: dict[str, Any] | None = None,
        is_public: bool = False,
    ) -> Template:
        """
        새 템플릿 생성.

        Raises:
            TemplateError: INVALID_TEMPLATE_NAME, INVALID_DESIGN
        """
        name = validate_template_name(name)
        now = datetime.now(UTC).isoformat()
        record = {
            "id": generate_template_id(),
            "user_id": user_id,
            "name": name,
            "description": description or "",
            "design_data": design_data,
            "is_public": is_public,
            "created_at": now,
            "updated_at": now,
        }
        template = self._parse(record)

        with self._template_lock(template.id):
            self._write(template)

        logger.info(f"Template created: {template.id} (user={user_id})")
        return template

    # =========================================================================
    # Read
    # =========================================================================

    def get(self, template_id: str, user_id: str, is_admin: bool = False) -> Template:
        """
        템플릿 조회 (소유자, 공개 템플릿, admin).

        Raises:
            TemplateError: TEMPLATE_NOT_FOUND, TEMPLATE_FORBIDDEN
        """
        template = self._read(template_id)
        if template.user_id != user_id and not template.is_public and not is_admin:
            raise TemplateError(
                "TEMPLATE_FORBIDDEN",
                f"Template '{template_id}' is not accessible",
                template_id=template_id,
            )
        return template

    def list_templates(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 10,
        order_by: str = "created_at",
        order_dir: str = "desc",
        include_all: bool = False,
    ) -> TemplatePage:
        """
        템플릿 목록 (페이지네이션).

        Args:
            user_id: 조회 사용자
            page: 1부터 시작
            limit: 1~100
            order_by: created_at, updated_at, name
            order_dir: asc, desc
            include_all: True면 전체 사용자 (admin 전용)

        Raises:
            TemplateError: INVALID_PAGINATION
        """
        if page < 1 or not 1 <= limit <= PAGE_LIMIT_MAX:
            raise TemplateError(
                "INVALID_PAGINATION",
                f"page must be >= 1 and limit between 1 and {PAGE_LIMIT_MAX}",
                page=page,
                limit=limit,
            )
        if order_by not in ORDER_BY_FIELDS or order_dir not in ORDER_DIRECTIONS:
            raise TemplateError(
                "INVALID_PAGINATION",
                f"order_by must be one of {ORDER_BY_FIELDS}, order_dir one of {ORDER_DIRECTIONS}",
                order_by=order_by,
                order_dir=order_dir,
            )

        templates = [
            t for t in self._scan()
            if include_all or t.user_id == user_id
        ]
        templates.sort(
            key=lambda t: getattr(t, order_by).lower() if order_by == "name" else getattr(t, order_by),
            reverse=order_dir == "desc",
        )

        start = (page - 1) * limit
        return TemplatePage(
            items=templates[start:start + limit],
            total=len(templates),
            page=page,
            limit=limit,
        )

    def source_path(self, template: Template) -> Path | None:
        """업로드된 DOCX 원본 경로 (없으면 None)."""
        if not template.source_file:
            return None
        path = self._template_dir(template.id) / "source" / template.source_file
        return path if path.exists() else None

    # =========================================================================
    # Update
    # =========================================================================

    def save(self, template: Template, user_id: str, is_admin: bool = False) -> Template:
        """
        템플릿 통째로 저장 (autosave 경로).

        updated_at은 서버 시각으로 갱신, 저장된 레코드를 반환.

        Raises:
            TemplateError: TEMPLATE_NOT_FOUND, TEMPLATE_FORBIDDEN
        """
        with self._template_lock(template.id):
            existing = self._read(template.id)
            self._check_owner(existing, user_id, is_admin)

            saved = template.copy()
            saved.user_id = existing.user_id
            saved.created_at = existing.created_at
            saved.source_file = existing.source_file
            saved.name = validate_template_name(saved.name)
            saved.updated_at = datetime.now(UTC).isoformat()
            self._write(saved)

        logger.debug(f"Template saved: {saved.id}")
        return saved

    def update_details(
        self,
        template_id: str,
        user_id: str,
        is_admin: bool = False,
        name: str | None = None,
        description: str | None = None,
        is_public: bool | None = None,
    ) -> Template:
        """이름/설명/공개 여부만 변경."""
        with self._template_lock(template_id):
            template = self._read(template_id)
            self._check_owner(template, user_id, is_admin)

            if name is not None:
                template.name = validate_template_name(name)
            if description is not None:
                template.description = description
            if is_public is not None:
                template.is_public = is_public
            template.updated_at = datetime.now(UTC).isoformat()
            self._write(template)
            return template

    def duplicate(self, template_id: str, user_id: str, is_admin: bool = False) -> Template:
        """
        템플릿 복제 (이름 "<name> (Copy)", 소유자 = 요청자, 비공개).

        source/ 원본은 복사하지 않음.
        """
        original = self.get(template_id, user_id, is_admin)
        return self.create(
            user_id=user_id,
            name=f"{original.name} (Copy)",
            description=original.description,
            design_data=original.design_data(),
            is_public=False,
        )

    # =========================================================================
    # Source Management (불변 가드)
    # =========================================================================

    def save_source(
        self,
        template_id: str,
        user_id: str,
        file_bytes: bytes,
        filename: str,
        is_admin: bool = False,
    ) -> Path:
        """
        source/ 에 DOCX 원본 저장.

        - 이미 원본이 있으면 에러
        - 저장 후 chmod 0o444 (읽기 전용)

        Raises:
            TemplateError: TEMPLATE_NOT_FOUND, TEMPLATE_FORBIDDEN,
                           SOURCE_IMMUTABLE, INVALID_SOURCE
        """
        safe_name = Path(filename or "").name
        if not safe_name.lower().endswith(SOURCE_EXTENSIONS):
            raise TemplateError(
                "INVALID_SOURCE",
                f"Source must be one of {SOURCE_EXTENSIONS}",
                filename=filename,
            )

        with self._template_lock(template_id):
            template = self._read(template_id)
            self._check_owner(template, user_id, is_admin)

            source_dir = self._template_dir(template_id) / "source"
            if template.source_file or (source_dir / safe_name).exists():
                raise TemplateError(
                    "SOURCE_IMMUTABLE",
                    "Template source already exists. Cannot overwrite.",
                    template_id=template_id,
                    filename=template.source_file or safe_name,
                )

            target = source_dir / safe_name
            atomic_write_bytes(target, file_bytes)
            try:
                target.chmod(0o444)  # r--r--r--
            except OSError:
                logger.warning(f"Could not mark source read-only: {target}")

            template.source_file = safe_name
            template.updated_at = datetime.now(UTC).isoformat()
            self._write(template)

        logger.info(f"Template source saved: {template_id}/{safe_name}")
        return target

    # =========================================================================
    # Delete
    # =========================================================================

    def delete(self, template_id: str, user_id: str, is_admin: bool = False) -> None:
        """
        템플릿 삭제.

        Raises:
            TemplateError: TEMPLATE_NOT_FOUND, TEMPLATE_FORBIDDEN
        """
        with self._template_lock(template_id):
            template = self._read(template_id)
            self._check_owner(template, user_id, is_admin)

            template_dir = self._template_dir(template_id)
            source_dir = template_dir / "source"
            if source_dir.exists():
                for f in source_dir.iterdir():
                    try:
                        f.chmod(0o644)
                    except OSError:
                        pass

            shutil.rmtree(template_dir)

        logger.info(f"Template deleted: {template_id} (user={user_id})")

    # =========================================================================
    # Internal Helpers
    # =========================================================================

    def _template_dir(self, template_id: str) -> Path:
        if not is_safe_id(template_id):
            raise TemplateError(
                "TEMPLATE_NOT_FOUND",
                f"Template '{template_id}' not found",
                template_id=template_id,
            )
        return self.templates_root / template_id

    def _read(self, template_id: str) -> Template:
        path = self._template_dir(template_id) / TEMPLATE_FILENAME
        if not path.exists():
            raise TemplateError(
                "TEMPLATE_NOT_FOUND",
                f"Template '{template_id}' not found",
                template_id=template_id,
            )
        return self._parse(json.loads(path.read_text(encoding="utf-8")))

    def _write(self, template: Template) -> Path:
        path = self._template_dir(template.id) / TEMPLATE_FILENAME
        atomic_write_json(path, template.to_dict())
        return path

    def _scan(self) -> list[Template]:
        if not self.templates_root.exists():
            return []

        results = []
        for template_dir in self.templates_root.iterdir():
            if not template_dir.is_dir() or template_dir.name.startswith("."):
                continue
            path = template_dir / TEMPLATE_FILENAME
            if not path.exists():
                continue
            try:
                results.append(self._parse(json.loads(path.read_text(encoding="utf-8"))))
            except (json.JSONDecodeError, KeyError, TemplateError) as e:
                logger.warning(f"Skipping unreadable template {template_dir.name}: {e}")
        return results

    def _parse(self, record: dict[str, Any]) -> Template:
        """레코드 → Template (design_data 마이그레이션 포함)."""
        try:
            record = dict(record)
            record["design_data"] = migrate_design_data(record.get("design_data"))
            return Template.from_dict(record)
        except CertificateError as e:
            raise TemplateError(
                "INVALID_DESIGN",
                e.message or str(e),
                template_id=record.get("id"),
                cause=e.code,
            ) from e
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise TemplateError(
                "INVALID_DESIGN",
                f"Malformed template record: {e}",
                template_id=record.get("id") if isinstance(record, dict) else None,
            ) from e

    @staticmethod
    def _check_owner(template: Template, user_id: str, is_admin: bool) -> None:
        if template.user_id != user_id and not is_admin:
            raise TemplateError(
                "TEMPLATE_FORBIDDEN",
                f"Template '{template.id}' belongs to another user",
                template_id=template.id,
            )
