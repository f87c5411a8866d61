"""
렌더 공통: 템플릿 요소 → 출력 항목(RenderItem) 투영.

규칙:
- 포맷별 렌더러는 RenderItem 리스트만 보고 그림 (요소 타입 분기는 여기서 1번)
- placeholder 토큰은 수신자 값으로 치환, 누락은 "[field.path]"
- 요소가 하나도 없으면 기본 레이아웃 (제목 + 수신자 이름)
- 이미지 로드 실패는 경고 후 해당 항목만 생략
"""

import io
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar

from PIL import Image, UnidentifiedImageError

from src.domain.constants import FALLBACK_TITLE, PX_PER_INCH
from src.domain.schemas import (
    ImageElement,
    PlaceholderElement,
    QualitySettings,
    RecipientRow,
    ShapeElement,
    Template,
    TextElement,
)
from src.domain.units import (
    element_box,
    font_size_px,
    page_size_px,
    parse_rotation,
    to_px,
)
from src.templates.placeholders import render_tokens, resolve_field

logger = logging.getLogger(__name__)

# URL → 이미지 바이트 (없으면 None)
ImageLoader = Callable[[str], bytes | None]

NAME_FIELD = "recipient.name"

NAMED_COLORS = {
    "black": (0, 0, 0),
    "white": (255, 255, 255),
    "red": (255, 0, 0),
    "green": (0, 128, 0),
    "blue": (0, 0, 255),
    "gray": (128, 128, 128),
    "grey": (128, 128, 128),
    "gold": (255, 215, 0),
    "navy": (0, 0, 128),
}
HEX_COLOR = re.compile(r"^#([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
RGB_COLOR = re.compile(r"^rgba?\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)")


# =============================================================================
# Helpers
# =============================================================================

def parse_color(value: str | None, default: tuple[int, int, int] = (0, 0, 0)) -> tuple[int, int, int]:
    """CSS 색상 → (r, g, b). 해석 불가면 default."""
    if not value:
        return default
    value = value.strip()
    if value.lower() in NAMED_COLORS:
        return NAMED_COLORS[value.lower()]

    match = HEX_COLOR.match(value)
    if match:
        digits = match.group(1)
        if len(digits) == 3:
            digits = "".join(c * 2 for c in digits)
        return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)

    match = RGB_COLOR.match(value)
    if match:
        return tuple(min(255, int(match.group(i))) for i in (1, 2, 3))  # type: ignore[return-value]

    return default


def recipient_name(row: RecipientRow) -> str:
    """수신자 이름 (recipient.name → name → 첫 번째 값)."""
    name = resolve_field(row, NAME_FIELD)
    if name:
        return name
    for value in row.values():
        if value:
            return str(value)
    return ""


def prepare_image(
    data: bytes,
    width_px: float,
    height_px: float,
    quality: QualitySettings,
) -> bytes:
    """
    출력 DPI에 맞게 이미지 축소 + 재인코딩.

    목표 해상도보다 작으면 원본 유지. 투명도 있으면 PNG, 아니면 JPEG.

    Raises:
        UnidentifiedImageError, OSError: 읽을 수 없는 이미지
    """
    with Image.open(io.BytesIO(data)) as img:
        target_w = max(1, round(width_px / PX_PER_INCH * quality.dpi))
        target_h = max(1, round(height_px / PX_PER_INCH * quality.dpi))
        if img.width <= target_w and img.height <= target_h:
            return data

        img.thumbnail((target_w, target_h))
        out = io.BytesIO()
        if img.mode in ("RGBA", "LA", "P"):
            img.save(out, format="PNG", optimize=True)
        else:
            img.convert("RGB").save(
                out,
                format="JPEG",
                quality=round(quality.image_quality * 100),
            )
        return out.getvalue()


# =============================================================================
# Render Items
# =============================================================================

@dataclass
class RenderItem:
    """출력 1항목 (px 좌표, 좌상단 기준)."""
    kind: str  # text, image, shape
    x: float
    y: float
    width: float
    height: float
    rotation: float = 0.0
    text: str = ""
    font_size: float = 16.0
    font_family: str = "Arial"
    bold: bool = False
    italic: bool = False
    align: str = "left"
    color: tuple[int, int, int] = (0, 0, 0)
    fill: tuple[int, int, int] | None = None
    image: bytes | None = None
    shape: str = "rectangle"  # rectangle, circle, line


@dataclass
class PageLayout:
    """페이지 1장 (배경 + 항목)."""
    width: float  # px
    height: float  # px
    background_color: tuple[int, int, int] = (255, 255, 255)
    background_image: bytes | None = None
    items: list[RenderItem] = field(default_factory=list)
    title: str = ""


def _text_item(element: TextElement | PlaceholderElement, text: str) -> RenderItem:
    x, y, w, h = element_box(element)
    style = element.style
    weight = style.get("fontWeight", "normal")
    return RenderItem(
        kind="text",
        x=x,
        y=y,
        width=w,
        height=h,
        rotation=parse_rotation(style.get("transform")),
        text=text,
        font_size=font_size_px(element),
        font_family=style.get("fontFamily", "Arial"),
        bold=weight == "bold" or (weight.isdigit() and int(weight) >= 600),
        italic=style.get("fontStyle") == "italic",
        align=style.get("textAlign", "left"),
        color=parse_color(style.get("color")),
    )


def _load_image(url: str, image_loader: ImageLoader | None) -> bytes | None:
    if not url or image_loader is None:
        return None
    try:
        data = image_loader(url)
    except OSError as e:
        logger.warning(f"Image could not be loaded, skipping: {url} ({e})")
        return None
    if data is None:
        logger.warning(f"Image not available, skipping: {url}")
    return data


def build_layout(
    template: Template,
    row: RecipientRow,
    image_loader: ImageLoader | None = None,
) -> PageLayout:
    """템플릿 + 수신자 행 → PageLayout."""
    width, height = page_size_px(template.properties)
    name = recipient_name(row)
    layout = PageLayout(width=width, height=height, title=f"Certificate - {name}")

    background = template.properties.background
    if background.type == "color":
        layout.background_color = parse_color(background.value, (255, 255, 255))
    else:
        layout.background_image = _load_image(background.value, image_loader)

    for element in template.elements:
        if isinstance(element, PlaceholderElement) and element.is_static_image:
            item = _image_item(element, image_loader)
        elif isinstance(element, (PlaceholderElement, TextElement)):
            item = _text_item(element, render_tokens(element.content, row))
        elif isinstance(element, ImageElement):
            item = _image_item(element, image_loader)
        elif isinstance(element, ShapeElement):
            x, y, w, h = element_box(element)
            item = RenderItem(
                kind="shape",
                x=x,
                y=y,
                width=w,
                height=h,
                rotation=parse_rotation(element.style.get("transform")),
                color=parse_color(element.style.get("color")),
                fill=(
                    parse_color(element.style["backgroundColor"])
                    if element.style.get("backgroundColor")
                    else None
                ),
                shape=element.shape_name or "rectangle",
            )
        else:
            item = None

        if item is not None:
            layout.items.append(item)

    if not template.elements:
        layout.items = fallback_items(width, height, name)

    return layout


def _image_item(
    element: ImageElement | PlaceholderElement,
    image_loader: ImageLoader | None,
) -> RenderItem | None:
    data = _load_image(element.content, image_loader)
    if data is None:
        return None
    x, y, w, h = element_box(element)
    return RenderItem(
        kind="image",
        x=x,
        y=y,
        width=w,
        height=h,
        rotation=parse_rotation(element.style.get("transform")),
        image=data,
    )


def fallback_items(width: float, height: float, name: str) -> list[RenderItem]:
    """빈 템플릿용 기본 레이아웃: 제목 + 수신자 이름 (가운데 정렬)."""
    margin = to_px(20, "mm")
    return [
        RenderItem(
            kind="text",
            x=margin,
            y=height * 0.3,
            width=width - margin * 2,
            height=48,
            text=FALLBACK_TITLE,
            font_size=36,
            bold=True,
            align="center",
        ),
        RenderItem(
            kind="text",
            x=margin,
            y=height * 0.5,
            width=width - margin * 2,
            height=36,
            text=name,
            font_size=28,
            align="center",
        ),
    ]


# =============================================================================
# Renderer Interface
# =============================================================================

class CertificateRenderer(ABC):
    """
    포맷별 렌더러 공통 인터페이스.

    Usage:
        renderer = PdfRenderer(quality, image_loader)
        data = renderer.render(template, row)
    """

    extension: ClassVar[str] = ""
    media_type: ClassVar[str] = "application/octet-stream"

    def __init__(
        self,
        quality: QualitySettings | None = None,
        image_loader: ImageLoader | None = None,
    ):
        self.quality = quality or QualitySettings()
        self.image_loader = image_loader

    def layout(self, template: Template, row: RecipientRow) -> PageLayout:
        return build_layout(template, row, self.image_loader)

    def prepared_image(self, item: RenderItem) -> bytes | None:
        """DPI 기준으로 줄인 이미지 (읽을 수 없으면 None)."""
        if item.image is None:
            return None
        try:
            return prepare_image(item.image, item.width, item.height, self.quality)
        except (UnidentifiedImageError, OSError) as e:
            logger.warning(f"Unreadable image skipped: {e}")
            return None

    @abstractmethod
    def render(
        self,
        template: Template,
        row: RecipientRow,
        source_path: Path | None = None,
    ) -> bytes:
        """
        인증서 1장 렌더.

        Raises:
            CertificateError: RENDER_FAILED
        """
