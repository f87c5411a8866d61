"""
Domain Constants: 편집기/생성 파이프라인 전역 상수.

기본값은 default.yaml에서 오버라이드 가능.
"""

# =============================================================================
# Element Types
# =============================================================================

ELEMENT_TYPE_TEXT = "text"
ELEMENT_TYPE_IMAGE = "image"
ELEMENT_TYPE_SHAPE = "shape"
ELEMENT_TYPE_PLACEHOLDER = "placeholder"

# 예전 design_data에 남아있는 태그 → 현재 태그
LEGACY_ELEMENT_TYPES = {
    "dynamic": ELEMENT_TYPE_PLACEHOLDER,
}

# =============================================================================
# Shape Catalog (SVG path)
# =============================================================================

SHAPE_CATALOG = {
    "rectangle": "M 0 0 H 100 V 50 H 0 Z",
    "circle": "M 50 0 A 25 25 0 1 0 50 50 A 25 25 0 1 0 50 0",
    "line": "M 0 25 H 100",
}

DEFAULT_PLACEHOLDER_TOKEN = "{{recipient.name}}"

# =============================================================================
# Page Geometry
# =============================================================================
# 캔버스 좌표는 CSS 픽셀 (96 px/in)

PX_PER_INCH = 96.0
MM_PER_INCH = 25.4
POINTS_PER_INCH = 72.0
EMU_PER_PX = 9525

PAGE_UNITS = ("mm", "in", "px")
ORIENTATIONS = ("portrait", "landscape")

PAGE_PRESETS = {
    "Letter": {"width": 8.5, "height": 11, "unit": "in"},
    "A4": {"width": 210, "height": 297, "unit": "mm"},
    "A5": {"width": 148, "height": 210, "unit": "mm"},
}

# =============================================================================
# Editor Defaults
# =============================================================================

DEFAULT_VIEWPORT = (800, 600)
NEW_ELEMENT_OFFSET = 100  # 뷰포트 중앙에서 좌상단으로

DEFAULT_GRID_SIZE = 20
ZOOM_MIN = 0.5
ZOOM_MAX = 2.0
ZOOM_STEP = 0.1
MIN_ELEMENT_SIZE_PX = 10

AUTOSAVE_DELAY_SECONDS = 2.0
AUTOSAVE_MAX_RETRIES = 2

# design_data 스키마 버전 (1 = 버전 필드 없는 초기 포맷)
DESIGN_SCHEMA_VERSION = 2

# =============================================================================
# Generation
# =============================================================================

OUTPUT_FORMATS = ("pdf", "docx", "pptx")
OUTPUT_FORMAT_ALIASES = {"ppt": "pptx"}

DEFAULT_BATCH_SIZE = 10
BATCH_SIZE_MIN = 1
BATCH_SIZE_MAX = 100

DEFAULT_DPI = 300
DPI_MIN = 72
DPI_MAX = 600
DEFAULT_IMAGE_QUALITY = 0.92
FONT_QUALITIES = ("normal", "high")

FALLBACK_TITLE = "Certificate of Achievement"
CERTIFICATE_FILENAME_PREFIX = "certificate"

# =============================================================================
# Images
# =============================================================================

IMAGE_MAX_SIZE_BYTES = 5 * 1024 * 1024
IMAGE_ALLOWED_TYPES = ("image/jpeg", "image/png", "image/webp")
IMAGE_MAX_WIDTH = 2000
IMAGE_MAX_HEIGHT = 2000
IMAGE_COMPRESSION_QUALITY = 0.8

# =============================================================================
# Roles
# =============================================================================

ROLES = ("user", "admin", "super_admin")
ADMIN_ROLES = ("admin", "super_admin")

# =============================================================================
# MIME Types
# =============================================================================

MIME_TYPES = {
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".pdf": "application/pdf",
    ".csv": "text/csv",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".json": "application/json",
    ".zip": "application/zip",
}


def get_mime_type(filename: str) -> str:
    """
    파일명에서 MIME 타입 추출.

    Args:
        filename: 파일명 (확장자 포함)

    Returns:
        MIME 타입 문자열 (알 수 없으면 octet-stream)
    """
    import os

    ext = os.path.splitext(filename)[1].lower()
    return MIME_TYPES.get(ext, "application/octet-stream")
