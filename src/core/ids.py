"""
ID 생성: template_id, element_id, run_id

규칙:
- template_id / element_id: uuid4 문자열 (불투명, 파일명 안전)
- run_id: 타임스탬프 + uuid 앞 8자리 (정렬 가능)
"""

import re
import uuid
from datetime import UTC, datetime

# 파일명으로 쓸 수 있는 ID만 허용 (경로 조작 방지)
SAFE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")


def generate_template_id() -> str:
    """새 템플릿 ID (uuid4)."""
    return str(uuid.uuid4())


def generate_element_id() -> str:
    """새 요소 ID (uuid4)."""
    return str(uuid.uuid4())


def generate_run_id() -> str:
    """
    Run ID 생성.

    포맷: RUN-{timestamp}-{uuid[:8]}

    Returns:
        run_id 문자열
    """
    now = datetime.now(UTC)
    timestamp = now.strftime("%Y%m%d%H%M%S")
    unique = uuid.uuid4().hex[:8]

    return f"RUN-{timestamp}-{unique}"


def is_safe_id(value: str) -> bool:
    """파일 경로에 그대로 써도 되는 ID인지 확인."""
    return bool(SAFE_ID_PATTERN.match(value or ""))
