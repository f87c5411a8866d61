"""
E2E 테스트용 API 클라이언트 설정.

설정 항목:
- 저장 경로 (templates/files/logs)는 tmp_path 아래
- autosave 지연은 짧게 (0.05초)
- 나머지 섹션 (generation, images, logging)은 default.yaml 그대로
- 인증 헤더: X-User-Id / X-User-Role
"""

from collections.abc import Generator
from pathlib import Path
from typing import Any

import pytest
import yaml
from fastapi.testclient import TestClient

from src.app.main import create_app

PROJECT_ROOT = Path(__file__).parent.parent.parent

USER_HEADERS = {"X-User-Id": "user-1", "X-User-Role": "user"}
OTHER_HEADERS = {"X-User-Id": "user-2", "X-User-Role": "user"}
ADMIN_HEADERS = {"X-User-Id": "admin-1", "X-User-Role": "admin"}


# =============================================================================
# Config / App
# =============================================================================

@pytest.fixture
def app_config(tmp_path: Path) -> dict[str, Any]:
    """tmp_path 기반 설정."""
    with open(PROJECT_ROOT / "default.yaml", encoding="utf-8") as f:
        config = yaml.safe_load(f)

    config["app"] = {"fields_path": str(PROJECT_ROOT / "fields.yaml")}
    config["storage"] = {
        "templates_root": str(tmp_path / "templates"),
        "files_root": str(tmp_path / "files"),
        "logs_root": str(tmp_path / "logs"),
    }
    config["autosave"] = {"delay_seconds": 0.05, "max_retries": 0, "retry_delay_seconds": 0.01}
    return config


@pytest.fixture
def client(app_config: dict[str, Any]) -> Generator[TestClient, None, None]:
    """lifespan이 실행된 TestClient."""
    app = create_app(app_config)
    with TestClient(app) as test_client:
        yield test_client


# =============================================================================
# Helpers
# =============================================================================

SAMPLE_DESIGN = {
    "elements": [
        {
            "id": "title",
            "type": "text",
            "content": "Certificate of Completion",
            "position": {"x": 100, "y": 80},
            "style": {"fontSize": "32px"},
        },
        {
            "id": "name",
            "type": "placeholder",
            "content": "{{recipient.name}}",
            "position": {"x": 100, "y": 200},
            "style": {"fontSize": "24px"},
        },
        {
            "id": "course",
            "type": "placeholder",
            "content": "for completing {{course.name}}",
            "position": {"x": 100, "y": 260},
        },
    ],
}


@pytest.fixture
def create_template(client: TestClient):
    """템플릿 생성 헬퍼 → 응답 JSON."""

    def _create(
        name: str = "Completion",
        design_data: dict[str, Any] | None = None,
        headers: dict[str, str] = USER_HEADERS,
        **extra: Any,
    ) -> dict[str, Any]:
        body = {"name": name, "design_data": design_data, **extra}
        response = client.post("/api/templates", json=body, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create


@pytest.fixture
def sample_template_record(create_template) -> dict[str, Any]:
    """SAMPLE_DESIGN 템플릿."""
    return create_template(design_data=SAMPLE_DESIGN)
