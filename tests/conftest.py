"""
Pytest fixtures for the certificate studio tests.

테스트 구성:
- 경로/설정 fixture
- 템플릿/요소 샘플
- 이미지 바이트 생성 (Pillow)
"""

import io
from pathlib import Path

import pytest
import yaml
from PIL import Image

from src.domain.schemas import Template, element_from_dict
from src.templates.placeholders import FieldCatalog

# =============================================================================
# Path Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """프로젝트 루트 경로."""
    return Path(__file__).parent.parent


@pytest.fixture
def default_config_path(project_root: Path) -> Path:
    """default.yaml 경로."""
    return project_root / "default.yaml"


@pytest.fixture
def default_config(default_config_path: Path) -> dict:
    """기본 설정 로드."""
    with open(default_config_path, encoding="utf-8") as f:
        return yaml.safe_load(f)


@pytest.fixture
def field_catalog(project_root: Path) -> FieldCatalog:
    """프로젝트 fields.yaml 카탈로그."""
    return FieldCatalog.load(project_root / "fields.yaml")


# =============================================================================
# Template Fixtures
# =============================================================================

def make_template(elements: list[dict] | None = None, **overrides) -> Template:
    """테스트용 Template 생성."""
    template = Template(
        id=overrides.pop("id", "tpl-1"),
        user_id=overrides.pop("user_id", "user-1"),
        name=overrides.pop("name", "Sample Certificate"),
        elements=[element_from_dict(e) for e in (elements or [])],
    )
    for key, value in overrides.items():
        setattr(template, key, value)
    return template


@pytest.fixture
def empty_template() -> Template:
    """요소 없는 템플릿."""
    return make_template()


@pytest.fixture
def sample_template() -> Template:
    """텍스트 + placeholder + 도형 템플릿."""
    return make_template([
        {
            "id": "title",
            "type": "text",
            "content": "Certificate of Completion",
            "position": {"x": 100, "y": 80},
            "style": {"fontSize": "32px", "fontWeight": "bold", "textAlign": "center"},
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
            "style": {"fontSize": "16px"},
        },
        {
            "id": "frame",
            "type": "shape",
            "content": "M 0 0 H 100 V 50 H 0 Z",
            "position": {"x": 20, "y": 20},
            "style": {"width": "700px", "height": "500px", "color": "#c0a040"},
        },
    ])


@pytest.fixture
def recipient_rows() -> list[dict[str, str]]:
    """수신자 3명."""
    return [
        {"recipient.name": "Ada Lovelace", "course.name": "Analytical Engines"},
        {"recipient.name": "Alan Turing", "course.name": "Computability"},
        {"recipient.name": "Grace Hopper", "course.name": "Compilers"},
    ]


# =============================================================================
# Image Fixtures
# =============================================================================

def make_image_bytes(
    width: int = 100,
    height: int = 80,
    fmt: str = "PNG",
    color: tuple[int, int, int] = (200, 40, 40),
) -> bytes:
    """Pillow로 단색 이미지 생성."""
    img = Image.new("RGB", (width, height), color)
    buffer = io.BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_image_bytes()


@pytest.fixture
def jpeg_bytes() -> bytes:
    return make_image_bytes(fmt="JPEG")


@pytest.fixture
def template_factory():
    """make_template 팩토리."""
    return make_template


@pytest.fixture
def image_factory():
    """make_image_bytes 팩토리."""
    return make_image_bytes
