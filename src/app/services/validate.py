"""
Validation Service: fields.yaml 기반 수신자 행 검증.

규칙:
- 카탈로그에 있는 필드 중 템플릿이 사용하는 필드만 검사
- is_required 필드가 비어 있으면 missing_required
- validation_rules (min_length, max_length, pattern, min, max, options) 위반은 invalid_values
- field_type (email, url, date, number) 형식 검사
- 카탈로그에 없는 토큰은 경고만 (렌더 시 [path]로 표시됨)
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from src.domain.schemas import RecipientRow, Template
from src.templates.placeholders import (
    FieldCatalog,
    FieldDefinition,
    extract_field_paths,
    resolve_field,
)

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
URL_PATTERN = re.compile(r"^https?://\S+$", re.IGNORECASE)


# =============================================================================
# Validation Result
# =============================================================================

@dataclass
class ValidationResult:
    """검증 결과."""
    valid: bool
    rows: int = 0

    # 문제 목록
    missing_required: list[dict[str, Any]] = field(default_factory=list)
    invalid_values: list[dict[str, Any]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "rows": self.rows,
            "missing_required": list(self.missing_required),
            "invalid_values": list(self.invalid_values),
            "warnings": list(self.warnings),
        }


# =============================================================================
# Value checks
# =============================================================================

def _parse_number(value: str) -> Decimal:
    try:
        number = Decimal(value.strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid number: {value}") from e
    if number.is_nan() or number.is_infinite():
        raise ValueError(f"NaN/Inf not allowed: {value}")
    return number


def check_value(definition: FieldDefinition, value: str) -> str | None:
    """
    값 1개 검사.

    Returns:
        에러 메시지, 통과하면 None
    """
    rules = definition.validation_rules
    field_type = definition.field_type

    if field_type == "email" and not EMAIL_PATTERN.match(value):
        return "Invalid email address"
    if field_type == "url" and not URL_PATTERN.match(value):
        return "Invalid URL"
    if field_type == "date":
        try:
            date.fromisoformat(value.strip())
        except ValueError:
            return "Invalid date (expected YYYY-MM-DD)"

    if field_type == "number" or "min" in rules or "max" in rules:
        try:
            number = _parse_number(value)
        except ValueError as e:
            return str(e)
        if "min" in rules and number < Decimal(str(rules["min"])):
            return f"Value must be at least {rules['min']}"
        if "max" in rules and number > Decimal(str(rules["max"])):
            return f"Value must be at most {rules['max']}"

    if "min_length" in rules and len(value) < int(rules["min_length"]):
        return f"Must be at least {rules['min_length']} characters"
    if "max_length" in rules and len(value) > int(rules["max_length"]):
        return f"Must be at most {rules['max_length']} characters"
    if "pattern" in rules and not re.fullmatch(rules["pattern"], value):
        return "Does not match the required format"
    if rules.get("options") and value not in rules["options"]:
        return f"Must be one of: {', '.join(map(str, rules['options']))}"

    return None


def template_field_paths(template: Template) -> list[str]:
    """템플릿 요소(text/placeholder)가 참조하는 필드 경로 (등장 순서)."""
    paths: list[str] = []
    for element in template.elements:
        if element.type not in ("text", "placeholder"):
            continue
        for path in extract_field_paths(element.content):
            if path not in paths:
                paths.append(path)
    return paths


# =============================================================================
# Validation Service
# =============================================================================

class ValidationService:
    """
    수신자 검증 서비스.

    Usage:
        service = ValidationService(catalog)
        result = service.validate(rows, field_paths=template_field_paths(template))
    """

    def __init__(self, catalog: FieldCatalog):
        self.catalog = catalog

    def validate(
        self,
        rows: list[RecipientRow],
        field_paths: list[str] | None = None,
    ) -> ValidationResult:
        """
        수신자 행 검증.

        Args:
            rows: 수신자 행 (매핑 적용 후)
            field_paths: 검사할 필드 경로 (None이면 카탈로그 전체)

        Returns:
            ValidationResult
        """
        result = ValidationResult(valid=True, rows=len(rows))

        if field_paths is None:
            definitions = self.catalog.fields
        else:
            definitions = []
            for path in field_paths:
                if path in self.catalog:
                    definitions.append(self.catalog.get(path))
                else:
                    result.warnings.append(f"Field '{path}' is not in the catalog")

        for index, row in enumerate(rows, start=1):
            for definition in definitions:
                value = resolve_field(row, definition.name)
                if value is None or str(value).strip() == "":
                    if definition.is_required:
                        result.missing_required.append({
                            "row": index,
                            "field": definition.name,
                        })
                        result.valid = False
                    continue

                error = check_value(definition, str(value))
                if error:
                    result.invalid_values.append({
                        "row": index,
                        "field": definition.name,
                        "value": value,
                        "error": error,
                    })
                    result.valid = False

        if not result.valid:
            logger.info(
                f"Recipient validation failed: {len(result.missing_required)} missing, "
                f"{len(result.invalid_values)} invalid"
            )
        return result
