"""
Placeholder 토큰 + 필드 카탈로그.

토큰 규칙:
- "{{field.path}}" 형식, path는 [A-Za-z0-9_.]만 허용
- 편집 입력값은 허용 문자 외 제거 후 {{ }}로 감쌈
- 값이 없는 토큰은 "[field.path]"로 렌더 (누락 표시)

카탈로그:
- fields.yaml 에서 로드 (name, display_name, field_type, category, ...)
- 피커 UI는 category별 그룹 사용
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import TOKEN_PATTERN, RecipientRow

FIELD_PATH_DISALLOWED = re.compile(r"[^a-zA-Z0-9_.]")

FIELD_TYPES = ("text", "date", "number", "select", "email", "url")
FIELD_CATEGORIES = (
    "personal",
    "organization",
    "academic",
    "professional",
    "achievement",
    "other",
)


# =============================================================================
# Tokens
# =============================================================================

def sanitize_field_path(value: str) -> str:
    """편집 입력 → 필드 경로 (허용 문자 외 제거)."""
    return FIELD_PATH_DISALLOWED.sub("", value or "")


def make_token(field_path: str) -> str:
    """필드 경로 → "{{field.path}}"."""
    return f"{{{{{sanitize_field_path(field_path)}}}}}"


def strip_token(content: str) -> str:
    """
    토큰 문자열 → 편집용 경로.

    "{{recipient.name}}" → "recipient.name"
    """
    match = TOKEN_PATTERN.fullmatch(content.strip()) if content else None
    if match:
        return match.group(1)
    return content.replace("{{", "").replace("}}", "") if content else ""


def extract_field_paths(content: str) -> list[str]:
    """content 내 모든 토큰 경로 (등장 순서, 중복 제거)."""
    seen: list[str] = []
    for path in TOKEN_PATTERN.findall(content or ""):
        if path not in seen:
            seen.append(path)
    return seen


def resolve_field(row: RecipientRow, field_path: str) -> str | None:
    """
    수신자 행에서 필드 값 조회.

    순서:
    1. 정확히 일치하는 키
    2. 대소문자 무시 일치
    3. 마지막 경로 조각 (recipient.name → name), 대소문자 무시

    Returns:
        값, 없으면 None
    """
    if field_path in row:
        return row[field_path]

    lowered = {str(k).lower(): v for k, v in row.items()}
    if field_path.lower() in lowered:
        return lowered[field_path.lower()]

    leaf = field_path.rsplit(".", 1)[-1].lower()
    return lowered.get(leaf)


def render_tokens(content: str, row: RecipientRow) -> str:
    """content 내 토큰을 수신자 값으로 치환 (누락 → [path])."""

    def _replace(match: re.Match[str]) -> str:
        path = match.group(1)
        value = resolve_field(row, path)
        if value is None or value == "":
            return f"[{path}]"
        return str(value)

    return TOKEN_PATTERN.sub(_replace, content or "")


# =============================================================================
# Field Catalog
# =============================================================================

@dataclass
class FieldDefinition:
    """카탈로그 필드 1개."""
    name: str
    display_name: str
    field_type: str = "text"
    category: str = "other"
    is_required: bool = False
    description: str = ""
    validation_rules: dict[str, Any] = field(default_factory=dict)

    @property
    def token(self) -> str:
        return make_token(self.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "display_name": self.display_name,
            "field_type": self.field_type,
            "category": self.category,
            "is_required": self.is_required,
            "description": self.description,
            "validation_rules": dict(self.validation_rules),
            "token": self.token,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldDefinition":
        field_type = data.get("field_type", "text")
        category = data.get("category", "other")
        if field_type not in FIELD_TYPES:
            raise ValueError(f"Unknown field_type '{field_type}' for {data.get('name')}")
        if category not in FIELD_CATEGORIES:
            raise ValueError(f"Unknown category '{category}' for {data.get('name')}")
        return cls(
            name=sanitize_field_path(data["name"]),
            display_name=data.get("display_name", data["name"]),
            field_type=field_type,
            category=category,
            is_required=bool(data.get("is_required", False)),
            description=data.get("description", ""),
            validation_rules=data.get("validation_rules") or {},
        )


class FieldCatalog:
    """
    필드 카탈로그.

    fields.yaml 구조:
        fields:
          - name: recipient.name
            display_name: Recipient Name
            field_type: text
            category: personal
            is_required: true
            validation_rules: {min_length: 1, max_length: 100}
    """

    def __init__(self, fields: list[FieldDefinition]):
        self._fields = {f.name: f for f in fields}

    @classmethod
    def load(cls, path: Path) -> "FieldCatalog":
        """fields.yaml 로드 (파일 없으면 빈 카탈로그)."""
        if not path.exists():
            return cls([])
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls([FieldDefinition.from_dict(item) for item in data.get("fields", [])])

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    def __len__(self) -> int:
        return len(self._fields)

    @property
    def fields(self) -> list[FieldDefinition]:
        return list(self._fields.values())

    def get(self, name: str) -> FieldDefinition:
        """
        Raises:
            CertificateError: UNKNOWN_FIELD
        """
        if name not in self._fields:
            raise CertificateError(
                ErrorCodes.UNKNOWN_FIELD,
                f"Field '{name}' is not in the catalog",
                field=name,
            )
        return self._fields[name]

    def required(self) -> list[FieldDefinition]:
        return [f for f in self._fields.values() if f.is_required]

    def grouped(self) -> dict[str, list[dict[str, Any]]]:
        """카테고리별 그룹 (카테고리 순서 고정, 빈 그룹 제외)."""
        groups: dict[str, list[dict[str, Any]]] = {}
        for category in FIELD_CATEGORIES:
            items = [f.to_dict() for f in self._fields.values() if f.category == category]
            if items:
                groups[category] = items
        return groups
