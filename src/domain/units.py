"""
단위 변환: 페이지 크기, CSS 길이, 회전.

캔버스 좌표는 CSS 픽셀 (96 px/in) 기준.
"""

import math
import re

from src.domain.constants import MM_PER_INCH, POINTS_PER_INCH, PX_PER_INCH
from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import Element, PlaceholderElement, Properties, TextElement

# "12px", "12.5pt", "1.2em", "30"
CSS_LENGTH_PATTERN = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*(px|pt|em|rem)?\s*$")
ROTATE_PATTERN = re.compile(r"rotate\(\s*(-?\d+(?:\.\d+)?)\s*deg\s*\)")

BASE_FONT_SIZE_PX = 16.0

# 크기 없는 요소의 기본 박스 (px)
DEFAULT_BOX = {
    "image": (200.0, 200.0),
    "shape": (100.0, 50.0),
}


def to_px(value: float, unit: str) -> float:
    """페이지 단위 → px."""
    if unit == "mm":
        return value / MM_PER_INCH * PX_PER_INCH
    if unit == "in":
        return value * PX_PER_INCH
    return float(value)


def px_to_points(value: float) -> float:
    return value / PX_PER_INCH * POINTS_PER_INCH


def page_size_px(properties: Properties) -> tuple[float, float]:
    """페이지 크기 (px)."""
    size = properties.size
    return to_px(size.width, size.unit), to_px(size.height, size.unit)


def parse_css_length(value: str | None, default: float) -> float:
    """
    CSS 길이 문자열 → px.

    해석 불가 값은 default 반환.
    """
    if value is None:
        return default
    match = CSS_LENGTH_PATTERN.match(str(value))
    if not match:
        return default
    number = float(match.group(1))
    unit = match.group(2) or "px"
    if unit == "pt":
        return number / POINTS_PER_INCH * PX_PER_INCH
    if unit in ("em", "rem"):
        return number * BASE_FONT_SIZE_PX
    return number


def format_px(value: float) -> str:
    """px 값 → "120px" (정수면 소수점 없음)."""
    rounded = round(value, 2)
    if rounded == int(rounded):
        return f"{int(rounded)}px"
    return f"{rounded}px"


def parse_rotation(transform: str | None) -> float:
    """transform 문자열에서 회전 각도 추출 (없으면 0)."""
    if not transform:
        return 0.0
    match = ROTATE_PATTERN.search(transform)
    return float(match.group(1)) if match else 0.0


def format_rotation(degrees: float) -> str:
    """
    각도 → "rotate(45deg)" ([0, 360) 정규화, 소수 2자리).

    Raises:
        CertificateError: INVALID_ROTATION (inf, nan)
    """
    if not math.isfinite(degrees):
        raise CertificateError(
            ErrorCodes.INVALID_ROTATION,
            f"Rotation must be a finite number of degrees, got {degrees}",
            degrees=str(degrees),
        )
    # 반올림 후 다시 정규화 (-0.001 → 0)
    normalized = round(degrees % 360, 2) % 360
    if normalized == int(normalized):
        return f"rotate({int(normalized)}deg)"
    return f"rotate({normalized}deg)"


def font_size_px(element: Element) -> float:
    return parse_css_length(element.style.get("fontSize"), BASE_FONT_SIZE_PX)


def element_box(element: Element) -> tuple[float, float, float, float]:
    """
    요소 박스 (x, y, width, height) px.

    텍스트 계열은 width/height 없으면 글자 수 기준 추정.
    """
    if isinstance(element, PlaceholderElement) and element.is_static_image:
        default_w, default_h = DEFAULT_BOX["image"]
    elif isinstance(element, (TextElement, PlaceholderElement)):
        size = font_size_px(element)
        text = element.content or " "
        default_w = max(len(text) * size * 0.6, size)
        default_h = size * 1.2
    else:
        default_w, default_h = DEFAULT_BOX.get(element.type, (100.0, 100.0))

    width = parse_css_length(element.style.get("width"), default_w)
    height = parse_css_length(element.style.get("height"), default_h)
    return element.position.x, element.position.y, width, height
