"""
요소 상호작용: 드래그, 리사이즈, 회전, 인라인 편집.

타입별 분기 없이 capability 플래그(resizable, rotatable, editable)로 동작 결정.
모든 변경은 TemplateDocument를 통해서만 → autosave 트리거 일원화.
"""

import logging
from dataclasses import dataclass, field

from src.domain.constants import MIN_ELEMENT_SIZE_PX, SHAPE_CATALOG
from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import (
    Element,
    PlaceholderElement,
    Position,
    ShapeElement,
)
from src.domain.units import element_box, format_px, format_rotation, parse_rotation
from src.templates.canvas import CanvasState
from src.templates.document import TemplateDocument
from src.templates.placeholders import (
    FieldCatalog,
    make_token,
    sanitize_field_path,
    strip_token,
)

logger = logging.getLogger(__name__)


@dataclass
class DragState:
    """진행 중인 드래그."""
    element_ids: list[str]
    origin: tuple[float, float]  # 화면 좌표
    start_positions: dict[str, Position] = field(default_factory=dict)


class TransformController:
    """
    편집 세션의 포인터 상호작용 처리.

    Usage:
        controller = TransformController(document, canvas, catalog)
        controller.begin_drag(element_id, (100, 100))
        controller.drag((140, 120))
        controller.end_drag()
    """

    def __init__(
        self,
        document: TemplateDocument,
        canvas: CanvasState,
        field_catalog: FieldCatalog | None = None,
    ):
        self.document = document
        self.canvas = canvas
        self.field_catalog = field_catalog or FieldCatalog([])
        self.editing_id: str | None = None
        self._drag: DragState | None = None

    # =========================================================================
    # Drag
    # =========================================================================

    def begin_drag(self, element_id: str, pointer: tuple[float, float]) -> bool:
        """
        드래그 시작.

        잡은 요소가 선택에 포함돼 있으면 선택 전체를 이동, 아니면 그 요소만 선택 후 이동.
        편집 중인 요소는 드래그 불가.

        Returns:
            드래그 시작 여부
        """
        element = self._require(element_id)
        if self.editing_id == element.id:
            return False

        if element.id not in self.canvas.selected_ids:
            self.canvas.select(element.id)

        start_positions = {}
        for selected_id in self.canvas.selected_ids:
            selected = self.document.get_element(selected_id)
            if selected is not None:
                start_positions[selected_id] = Position(selected.position.x, selected.position.y)

        self._drag = DragState(
            element_ids=list(start_positions),
            origin=pointer,
            start_positions=start_positions,
        )
        return True

    def drag(self, pointer: tuple[float, float]) -> None:
        """포인터 이동량 / zoom 만큼 이동."""
        if self._drag is None:
            return
        dx = (pointer[0] - self._drag.origin[0]) / self.canvas.zoom
        dy = (pointer[1] - self._drag.origin[1]) / self.canvas.zoom
        for element_id, start in self._drag.start_positions.items():
            self.document.update_element(
                element_id,
                {"position": {"x": start.x + dx, "y": start.y + dy}},
            )

    def end_drag(self) -> None:
        """드래그 종료 (그리드 스냅 활성 시 위치 스냅)."""
        if self._drag is None:
            return
        if self.canvas.snap_to_grid:
            for element_id in self._drag.element_ids:
                element = self.document.get_element(element_id)
                if element is None:
                    continue
                self.document.update_element(
                    element_id,
                    {
                        "position": {
                            "x": self.canvas.snap(element.position.x),
                            "y": self.canvas.snap(element.position.y),
                        }
                    },
                )
        self._drag = None

    @property
    def is_dragging(self) -> bool:
        return self._drag is not None

    # =========================================================================
    # Resize / Rotate
    # =========================================================================

    def resize(self, element_id: str, dx: float, dy: float) -> Element:
        """
        우하단 핸들 리사이즈 (화면 이동량 기준).

        Raises:
            CertificateError: ELEMENT_NOT_FOUND, CAPABILITY_NOT_SUPPORTED
        """
        element = self._require(element_id)
        self._check_capability(element, "resizable")

        _, _, width, height = element_box(element)
        new_width = max(MIN_ELEMENT_SIZE_PX, width + dx / self.canvas.zoom)
        new_height = max(MIN_ELEMENT_SIZE_PX, height + dy / self.canvas.zoom)

        self.document.update_element(
            element.id,
            {"style": {"width": format_px(new_width), "height": format_px(new_height)}},
        )
        return element

    def rotate(self, element_id: str, degrees: float) -> Element:
        """
        절대 각도로 회전 ([0, 360) 정규화).

        Raises:
            CertificateError: ELEMENT_NOT_FOUND, CAPABILITY_NOT_SUPPORTED, INVALID_ROTATION
        """
        element = self._require(element_id)
        self._check_capability(element, "rotatable")
        self.document.update_element(
            element.id,
            {"style": {"transform": format_rotation(degrees)}},
        )
        return element

    def rotate_by(self, element_id: str, delta: float) -> Element:
        element = self._require(element_id)
        return self.rotate(element_id, parse_rotation(element.style.get("transform")) + delta)

    # =========================================================================
    # Inline Edit
    # =========================================================================

    def begin_edit(self, element_id: str) -> str:
        """
        편집 모드 진입.

        Returns:
            편집 입력 초기값 (placeholder는 {{ }} 제거한 경로)

        Raises:
            CertificateError: ELEMENT_NOT_FOUND, CAPABILITY_NOT_SUPPORTED
        """
        element = self._require(element_id)
        self._check_capability(element, "editable")
        if isinstance(element, PlaceholderElement) and element.is_static_image:
            raise CertificateError(
                ErrorCodes.CAPABILITY_NOT_SUPPORTED,
                "Image placeholders cannot be edited as text",
                element_id=element.id,
            )

        self.editing_id = element.id
        if isinstance(element, PlaceholderElement):
            return strip_token(element.content)
        return element.content

    def commit_edit(self, value: str, element_id: str | None = None) -> Element:
        """
        편집 확정.

        text: 그대로 저장
        placeholder: [A-Za-z0-9_.] 외 제거 후 {{ }}로 감쌈

        Raises:
            CertificateError: ELEMENT_NOT_FOUND
        """
        target_id = element_id or self.editing_id
        if target_id is None:
            raise CertificateError(
                ErrorCodes.ELEMENT_NOT_FOUND,
                "No element is being edited",
            )
        element = self._require(target_id)

        if isinstance(element, PlaceholderElement):
            content = make_token(sanitize_field_path(value))
        else:
            content = value

        self.editing_id = None
        self.document.update_element(element.id, {"content": content})
        return element

    def cancel_edit(self) -> None:
        self.editing_id = None

    # =========================================================================
    # Shape / Field pickers
    # =========================================================================

    def set_shape(self, element_id: str, shape_name: str) -> Element:
        """
        도형 종류 변경 (rectangle, circle, line).

        Raises:
            CertificateError: ELEMENT_NOT_FOUND, CAPABILITY_NOT_SUPPORTED, UNKNOWN_SHAPE
        """
        element = self._require(element_id)
        if not isinstance(element, ShapeElement):
            raise CertificateError(
                ErrorCodes.CAPABILITY_NOT_SUPPORTED,
                "Only shape elements have a shape",
                element_id=element.id,
                type=element.type,
            )
        if shape_name not in SHAPE_CATALOG:
            raise CertificateError(
                ErrorCodes.UNKNOWN_SHAPE,
                f"Unknown shape: {shape_name}",
                shape=shape_name,
                allowed=list(SHAPE_CATALOG),
            )
        self.document.update_element(element.id, {"content": SHAPE_CATALOG[shape_name]})
        return element

    def choose_field(self, element_id: str, field_name: str) -> Element:
        """
        카탈로그 필드를 placeholder에 지정.

        Raises:
            CertificateError: ELEMENT_NOT_FOUND, CAPABILITY_NOT_SUPPORTED, UNKNOWN_FIELD
        """
        element = self._require(element_id)
        if not isinstance(element, PlaceholderElement):
            raise CertificateError(
                ErrorCodes.CAPABILITY_NOT_SUPPORTED,
                "Only placeholder elements can be bound to a field",
                element_id=element.id,
                type=element.type,
            )
        definition = self.field_catalog.get(field_name)
        self.document.update_element(element.id, {"content": definition.token})
        return element

    # =========================================================================
    # Internal
    # =========================================================================

    def _require(self, element_id: str) -> Element:
        element = self.document.get_element(element_id)
        if element is None:
            raise CertificateError(
                ErrorCodes.ELEMENT_NOT_FOUND,
                f"Element '{element_id}' not found",
                element_id=element_id,
            )
        return element

    def _check_capability(self, element: Element, capability: str) -> None:
        if not getattr(element, capability):
            raise CertificateError(
                ErrorCodes.CAPABILITY_NOT_SUPPORTED,
                f"{element.type} elements are not {capability}",
                element_id=element.id,
                capability=capability,
            )
