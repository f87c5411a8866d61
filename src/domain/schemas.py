"""
Data schemas for certificate templates and generation.

규칙:
- Element는 type 태그 기반 tagged union (text, image, shape, placeholder)
- design_data = {"schema_version", "elements", "properties"} 그대로 직렬화
- schema_version 없는 예전 포맷은 migrate_design_data()로만 읽음
"""

import copy
import math
import re
from dataclasses import dataclass, field
from typing import Any, ClassVar

from src.domain.constants import (
    BATCH_SIZE_MAX,
    BATCH_SIZE_MIN,
    DEFAULT_BATCH_SIZE,
    DEFAULT_DPI,
    DEFAULT_IMAGE_QUALITY,
    DESIGN_SCHEMA_VERSION,
    DPI_MAX,
    DPI_MIN,
    ELEMENT_TYPE_IMAGE,
    ELEMENT_TYPE_PLACEHOLDER,
    ELEMENT_TYPE_SHAPE,
    ELEMENT_TYPE_TEXT,
    FONT_QUALITIES,
    LEGACY_ELEMENT_TYPES,
    ORIENTATIONS,
    OUTPUT_FORMAT_ALIASES,
    OUTPUT_FORMATS,
    PAGE_UNITS,
    SHAPE_CATALOG,
)
from src.domain.errors import CertificateError, ErrorCodes

# {{field.path}} 토큰
TOKEN_PATTERN = re.compile(r"\{\{\s*([A-Za-z0-9_.]+)\s*\}\}")

# 업로드된 이미지 참조 (placeholder가 정적 이미지를 담는 경우)
IMAGE_REFERENCE_PREFIXES = ("http://", "https://", "/files/")

# =============================================================================
# Geometry
# =============================================================================

@dataclass
class Position:
    """캔버스 좌표 (px, 줌 미적용)."""
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Position":
        data = data or {}
        return cls(x=float(data.get("x", 0) or 0), y=float(data.get("y", 0) or 0))


# =============================================================================
# Elements
# =============================================================================

@dataclass
class Element:
    """
    템플릿 요소 공통 필드.

    style은 열린 맵 (width, height, color, fontSize, fontFamily, transform 등).
    capability 플래그는 interaction 레이어에서 공통 drag/resize/rotate/edit
    동작을 켜고 끄는 데 사용.
    """
    id: str
    content: str = ""
    position: Position = field(default_factory=Position)
    style: dict[str, str] = field(default_factory=dict)

    type: ClassVar[str] = ""
    resizable: ClassVar[bool] = True
    rotatable: ClassVar[bool] = True
    editable: ClassVar[bool] = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "content": self.content,
            "position": self.position.to_dict(),
            "style": dict(self.style),
        }


@dataclass
class TextElement(Element):
    """자유 텍스트."""
    type: ClassVar[str] = ELEMENT_TYPE_TEXT
    editable: ClassVar[bool] = True


@dataclass
class ImageElement(Element):
    """이미지 (content = 공개 URL)."""
    type: ClassVar[str] = ELEMENT_TYPE_IMAGE

    @property
    def is_empty(self) -> bool:
        return not self.content


@dataclass
class ShapeElement(Element):
    """벡터 도형 (content = SVG path)."""
    type: ClassVar[str] = ELEMENT_TYPE_SHAPE

    @property
    def shape_name(self) -> str | None:
        """카탈로그 이름 (rectangle/circle/line), 카탈로그 밖 path면 None."""
        for name, path in SHAPE_CATALOG.items():
            if path == self.content:
                return name
        return None


@dataclass
class PlaceholderElement(Element):
    """
    데이터 placeholder.

    content는 "{{field.path}}" 토큰 문자열.
    이미지 업로드 시 URL이 그대로 들어가며, 이 경우 정적 이미지로 취급.
    """
    type: ClassVar[str] = ELEMENT_TYPE_PLACEHOLDER
    editable: ClassVar[bool] = True

    @property
    def is_static_image(self) -> bool:
        return self.content.startswith(IMAGE_REFERENCE_PREFIXES)

    @property
    def field_paths(self) -> list[str]:
        if self.is_static_image:
            return []
        return TOKEN_PATTERN.findall(self.content)


ELEMENT_TYPES: dict[str, type[Element]] = {
    cls.type: cls
    for cls in (TextElement, ImageElement, ShapeElement, PlaceholderElement)
}


def resolve_element_type(type_tag: str) -> type[Element]:
    """
    type 태그 → Element 클래스.

    Raises:
        CertificateError: INVALID_ELEMENT_TYPE
    """
    tag = LEGACY_ELEMENT_TYPES.get(type_tag, type_tag)
    if tag not in ELEMENT_TYPES:
        raise CertificateError(
            ErrorCodes.INVALID_ELEMENT_TYPE,
            f"Unknown element type: {type_tag}",
            type=type_tag,
            allowed=sorted(ELEMENT_TYPES),
        )
    return ELEMENT_TYPES[tag]


def normalize_style(style: dict[str, Any] | None) -> dict[str, str]:
    """style 맵 정규화 (None 값 제거, 모두 문자열)."""
    if not style:
        return {}
    return {str(k): str(v) for k, v in style.items() if v is not None}


def element_from_dict(data: dict[str, Any]) -> Element:
    """
    dict → Element (type 태그로 분기).

    Raises:
        CertificateError: INVALID_ELEMENT (dict 아님, id 없음, 좌표/style 형식 오류),
                          INVALID_ELEMENT_TYPE
    """
    if not isinstance(data, dict):
        raise CertificateError(
            ErrorCodes.INVALID_ELEMENT,
            "Element must be an object",
            received=type(data).__name__,
        )
    element_id = data.get("id")
    if element_id is None or str(element_id).strip() == "":
        raise CertificateError(
            ErrorCodes.INVALID_ELEMENT,
            "Element id is required",
            type=data.get("type"),
        )
    element_cls = resolve_element_type(str(data.get("type", "")))
    position = data.get("position")
    style = data.get("style")
    if (position is not None and not isinstance(position, dict)) or (
        style is not None and not isinstance(style, dict)
    ):
        raise CertificateError(
            ErrorCodes.INVALID_ELEMENT,
            "Element position and style must be objects",
            element_id=str(element_id),
        )
    try:
        parsed_position = Position.from_dict(position)
    except (TypeError, ValueError) as e:
        raise CertificateError(
            ErrorCodes.INVALID_ELEMENT,
            f"Invalid element position: {e}",
            element_id=str(element_id),
        ) from e
    return element_cls(
        id=str(element_id),
        content=str(data.get("content") or ""),
        position=parsed_position,
        style=normalize_style(style),
    )


# =============================================================================
# Page Properties
# =============================================================================

@dataclass
class PageSize:
    width: float
    height: float
    unit: str = "mm"

    def to_dict(self) -> dict[str, Any]:
        return {"width": self.width, "height": self.height, "unit": self.unit}


@dataclass
class Background:
    type: str = "color"  # color, image
    value: str = "#ffffff"

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "value": self.value}


@dataclass
class Spacing:
    """margin/padding 박스 (변마다 독립)."""
    top: float = 0
    right: float = 0
    bottom: float = 0
    left: float = 0
    unit: str = "mm"

    def to_dict(self) -> dict[str, Any]:
        return {
            "top": self.top,
            "right": self.right,
            "bottom": self.bottom,
            "left": self.left,
            "unit": self.unit,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None, default_unit: str = "mm") -> "Spacing":
        data = data or {}
        unit = data.get("unit", default_unit)
        _check_unit(unit)
        return cls(
            top=float(data.get("top", 0) or 0),
            right=float(data.get("right", 0) or 0),
            bottom=float(data.get("bottom", 0) or 0),
            left=float(data.get("left", 0) or 0),
            unit=unit,
        )


@dataclass
class Properties:
    """
    페이지 속성.

    불변식: orientation 전환 시 width/height 교환 (with_orientation).
    그 외 일관성은 호출자 책임 (update_properties는 통째로 교체).
    """
    size: PageSize = field(default_factory=lambda: PageSize(210, 297, "mm"))
    orientation: str = "portrait"
    background: Background = field(default_factory=Background)
    margins: Spacing = field(default_factory=Spacing)
    padding: Spacing = field(default_factory=Spacing)

    def with_orientation(self, orientation: str) -> "Properties":
        """orientation 변경본 반환 (실제로 바뀔 때만 width/height 교환)."""
        _check_orientation(orientation)
        updated = copy.deepcopy(self)
        if orientation != self.orientation:
            updated.size = PageSize(
                width=self.size.height,
                height=self.size.width,
                unit=self.size.unit,
            )
        updated.orientation = orientation
        return updated

    def to_dict(self) -> dict[str, Any]:
        return {
            "size": self.size.to_dict(),
            "orientation": self.orientation,
            "background": self.background.to_dict(),
            "margins": self.margins.to_dict(),
            "padding": self.padding.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Properties":
        """
        dict → Properties.

        Raises:
            CertificateError: INVALID_PROPERTIES, INVALID_ORIENTATION
        """
        if not data:
            return cls()

        size_data = data.get("size") or {}
        try:
            size = PageSize(
                width=float(size_data.get("width", 210)),
                height=float(size_data.get("height", 297)),
                unit=size_data.get("unit", "mm"),
            )
        except (TypeError, ValueError) as e:
            raise CertificateError(
                ErrorCodes.INVALID_PROPERTIES,
                "Page size must be numeric",
                size=size_data,
            ) from e
        _check_unit(size.unit)
        if size.width <= 0 or size.height <= 0:
            raise CertificateError(
                ErrorCodes.INVALID_PROPERTIES,
                "Page size must be positive",
                size=size.to_dict(),
            )

        orientation = data.get("orientation", "portrait")
        _check_orientation(orientation)

        bg_data = data.get("background") or {}
        background = Background(
            type=bg_data.get("type", "color"),
            value=bg_data.get("value", "#ffffff"),
        )
        if background.type not in ("color", "image"):
            raise CertificateError(
                ErrorCodes.INVALID_PROPERTIES,
                "Background type must be 'color' or 'image'",
                background=background.to_dict(),
            )

        margins = Spacing.from_dict(data.get("margins"), default_unit=size.unit)
        padding = Spacing.from_dict(data.get("padding"), default_unit=margins.unit)

        return cls(
            size=size,
            orientation=orientation,
            background=background,
            margins=margins,
            padding=padding,
        )


def _check_unit(unit: str) -> None:
    if unit not in PAGE_UNITS:
        raise CertificateError(
            ErrorCodes.INVALID_PROPERTIES,
            f"Unsupported unit: {unit}",
            unit=unit,
            allowed=list(PAGE_UNITS),
        )


def _check_orientation(orientation: str) -> None:
    if orientation not in ORIENTATIONS:
        raise CertificateError(
            ErrorCodes.INVALID_ORIENTATION,
            f"Orientation must be one of {ORIENTATIONS}",
            orientation=orientation,
        )


# =============================================================================
# design_data 마이그레이션
# =============================================================================

def migrate_design_data(data: dict[str, Any] | None) -> dict[str, Any]:
    """
    저장된 design_data를 현재 스키마로 변환.

    v1 (schema_version 없음):
    - properties 누락 → 기본값
    - padding 누락 → margins 단위의 0 박스
    - legacy settings(width/height/orientation) → properties
    - "dynamic" 요소 → "placeholder"

    Raises:
        CertificateError: DESIGN_SCHEMA_UNSUPPORTED
    """
    if not data:
        return {
            "schema_version": DESIGN_SCHEMA_VERSION,
            "elements": [],
            "properties": Properties().to_dict(),
        }

    version = data.get("schema_version", 1)
    if version == DESIGN_SCHEMA_VERSION:
        return data
    if version != 1:
        raise CertificateError(
            ErrorCodes.DESIGN_SCHEMA_UNSUPPORTED,
            f"design_data schema_version {version} is not supported",
            schema_version=version,
            supported=DESIGN_SCHEMA_VERSION,
        )

    migrated = copy.deepcopy(data)
    properties = migrated.get("properties")
    settings = migrated.pop("settings", None)

    if not properties:
        properties = Properties().to_dict()
        if settings:
            properties["size"] = {
                "width": settings.get("width", 800),
                "height": settings.get("height", 600),
                "unit": "px",
            }
            properties["orientation"] = settings.get("orientation", "portrait")

    if not properties.get("padding"):
        margins = properties.get("margins") or {}
        properties["padding"] = {
            "top": 0,
            "right": 0,
            "bottom": 0,
            "left": 0,
            "unit": margins.get("unit", "mm"),
        }

    elements = []
    for element in migrated.get("elements") or []:
        if not isinstance(element, dict):
            raise CertificateError(
                ErrorCodes.INVALID_ELEMENT,
                "Element must be an object",
                received=type(element).__name__,
            )
        element = dict(element)
        element["type"] = LEGACY_ELEMENT_TYPES.get(element.get("type"), element.get("type"))
        elements.append(element)

    migrated["elements"] = elements
    migrated["properties"] = properties
    migrated["schema_version"] = DESIGN_SCHEMA_VERSION
    return migrated


# =============================================================================
# Template
# =============================================================================

@dataclass
class Template:
    """
    인증서 템플릿.

    소유자 1명 (user_id). 저장 시 통째로 덮어씀.
    source_file: 업로드된 DOCX 원본 (docxtpl 렌더용, 선택)
    """
    id: str
    user_id: str
    name: str
    description: str = ""
    elements: list[Element] = field(default_factory=list)
    properties: Properties = field(default_factory=Properties)
    is_public: bool = False
    created_at: str = ""
    updated_at: str = ""
    source_file: str | None = None

    def get_element(self, element_id: str) -> Element | None:
        for element in self.elements:
            if element.id == element_id:
                return element
        return None

    def design_data(self) -> dict[str, Any]:
        return {
            "schema_version": DESIGN_SCHEMA_VERSION,
            "elements": [e.to_dict() for e in self.elements],
            "properties": self.properties.to_dict(),
        }

    def to_dict(self) -> dict[str, Any]:
        """JSON 직렬화용 (저장 레코드 형태)."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "design_data": self.design_data(),
            "is_public": self.is_public,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "source_file": self.source_file,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Template":
        design = migrate_design_data(data.get("design_data"))
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            name=data.get("name", ""),
            description=data.get("description") or "",
            elements=[element_from_dict(e) for e in design.get("elements", [])],
            properties=Properties.from_dict(design.get("properties")),
            is_public=bool(data.get("is_public", False)),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
            source_file=data.get("source_file"),
        )

    def copy(self) -> "Template":
        return Template.from_dict(copy.deepcopy(self.to_dict()))


# =============================================================================
# Generation Schemas
# =============================================================================

# 업로드된 표 데이터의 한 행
RecipientRow = dict[str, str]


def normalize_output_format(value: str) -> str:
    """
    출력 포맷 정규화 ("ppt" → "pptx").

    Raises:
        CertificateError: INVALID_OUTPUT_FORMAT
    """
    fmt = str(value).strip().lower()
    fmt = OUTPUT_FORMAT_ALIASES.get(fmt, fmt)
    if fmt not in OUTPUT_FORMATS:
        raise CertificateError(
            ErrorCodes.INVALID_OUTPUT_FORMAT,
            f"Unsupported format: {value}",
            format=value,
            allowed=list(OUTPUT_FORMATS),
        )
    return fmt


@dataclass
class QualitySettings:
    dpi: int = DEFAULT_DPI
    image_quality: float = DEFAULT_IMAGE_QUALITY
    font_quality: str = "normal"

    def validate(self) -> None:
        """
        Raises:
            CertificateError: INVALID_QUALITY
        """
        if not DPI_MIN <= self.dpi <= DPI_MAX:
            raise CertificateError(
                ErrorCodes.INVALID_QUALITY,
                f"dpi must be between {DPI_MIN} and {DPI_MAX}",
                dpi=self.dpi,
            )
        if not 0 < self.image_quality <= 1:
            raise CertificateError(
                ErrorCodes.INVALID_QUALITY,
                "image_quality must be in (0, 1]",
                image_quality=self.image_quality,
            )
        if self.font_quality not in FONT_QUALITIES:
            raise CertificateError(
                ErrorCodes.INVALID_QUALITY,
                f"font_quality must be one of {FONT_QUALITIES}",
                font_quality=self.font_quality,
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "dpi": self.dpi,
            "image_quality": self.image_quality,
            "font_quality": self.font_quality,
        }


@dataclass
class GenerationSettings:
    """생성 설정 (포맷, 배치 크기, 품질)."""
    output_format: str = "pdf"
    batch_size: int = DEFAULT_BATCH_SIZE
    quality: QualitySettings = field(default_factory=QualitySettings)

    def validate(self) -> "GenerationSettings":
        """
        설정 검증 후 self 반환 (포맷 별칭 정규화 포함).

        Raises:
            CertificateError: INVALID_OUTPUT_FORMAT, INVALID_BATCH_SIZE, INVALID_QUALITY
        """
        self.output_format = normalize_output_format(self.output_format)
        if not BATCH_SIZE_MIN <= self.batch_size <= BATCH_SIZE_MAX:
            raise CertificateError(
                ErrorCodes.INVALID_BATCH_SIZE,
                f"batch_size must be between {BATCH_SIZE_MIN} and {BATCH_SIZE_MAX}",
                batch_size=self.batch_size,
            )
        self.quality.validate()
        return self

    def to_dict(self) -> dict[str, Any]:
        return {
            "output_format": self.output_format,
            "batch_size": self.batch_size,
            "quality": self.quality.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "GenerationSettings":
        data = data or {}
        quality = data.get("quality") or {}
        try:
            settings = cls(
                output_format=data.get("output_format", data.get("format", "pdf")),
                batch_size=int(data.get("batch_size", DEFAULT_BATCH_SIZE)),
                quality=QualitySettings(
                    dpi=int(quality.get("dpi", DEFAULT_DPI)),
                    image_quality=float(quality.get("image_quality", DEFAULT_IMAGE_QUALITY)),
                    font_quality=quality.get("font_quality", "normal"),
                ),
            )
        except (TypeError, ValueError) as e:
            raise CertificateError(
                ErrorCodes.INVALID_QUALITY,
                "Generation settings must be numeric where required",
                error=str(e),
            ) from e
        return settings.validate()


@dataclass
class GenerationProgress:
    """진행률 콜백 payload."""
    current: int
    total: int
    status: str

    @property
    def percentage(self) -> int:
        """round-half-up(current / total * 100)."""
        if self.total <= 0:
            return 0
        return math.floor(self.current / self.total * 100 + 0.5)

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "total": self.total,
            "status": self.status,
            "percentage": self.percentage,
        }


# =============================================================================
# Run Log Schemas
# =============================================================================

@dataclass
class CertificateEntry:
    """생성된 인증서 1건."""
    index: int
    recipient_name: str
    filename: str
    size: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "recipient_name": self.recipient_name,
            "filename": self.filename,
            "size": self.size,
        }


@dataclass
class GenerationRunLog:
    """
    생성 실행 로그.

    성공/실패와 무관하게 실행마다 1개 저장 (재개 불가, 감사용).
    """
    run_id: str
    template_id: str
    user_id: str
    started_at: str  # ISO 8601
    output_format: str = "pdf"
    settings: dict[str, Any] = field(default_factory=dict)
    finished_at: str | None = None
    result: str = "pending"  # pending, success, failed

    total: int = 0
    generated: int = 0
    certificates: list[CertificateEntry] = field(default_factory=list)

    error_code: str | None = None
    error_context: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "template_id": self.template_id,
            "user_id": self.user_id,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "output_format": self.output_format,
            "settings": self.settings,
            "result": self.result,
            "total": self.total,
            "generated": self.generated,
            "certificates": [c.to_dict() for c in self.certificates],
            "error_code": self.error_code,
            "error_context": self.error_context,
        }
