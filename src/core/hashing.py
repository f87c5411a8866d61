"""
해시 계산: template 저장 스냅샷

규칙:
- 저장 대상 필드만 포함 (name, description, is_public, design_data)
- updated_at 등 서버 관리 필드는 제외 → 내용 동일하면 해시 동일
- 정렬된 키로 직렬화
- SHA-256
"""

import hashlib
import json
from typing import Any

# autosave 비교 대상 필드
PERSISTED_FIELDS = ("name", "description", "is_public", "design_data")


def persisted_snapshot(record: dict[str, Any]) -> dict[str, Any]:
    """템플릿 레코드에서 저장 대상 필드만 추출."""
    return {key: record.get(key) for key in PERSISTED_FIELDS}


def compute_template_hash(record: dict[str, Any]) -> str:
    """
    템플릿 내용 해시 (변경 감지용).

    Args:
        record: Template.to_dict() 결과

    Returns:
        SHA-256 해시 문자열
    """
    serialized = json.dumps(
        persisted_snapshot(record),
        sort_keys=True,
        ensure_ascii=False,
    )
    return hashlib.sha256(serialized.encode()).hexdigest()
