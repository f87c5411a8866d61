"""
템플릿 문서 모델: 요소 리스트 + 페이지 속성 변경 계약.

규칙:
- 모든 유효 변경은 updated_at 갱신 + change listener 호출 (autosave 트리거)
- update/delete 대상 id가 없으면 조용히 무시 (listener 호출 없음)
- properties는 통째로 교체, orientation 전환만 width/height 교환
- 단일 스레드 (이벤트 루프) 전용, undo/redo 없음
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from src.core.ids import generate_element_id
from src.domain.constants import (
    DEFAULT_PLACEHOLDER_TOKEN,
    DEFAULT_VIEWPORT,
    ELEMENT_TYPE_IMAGE,
    ELEMENT_TYPE_PLACEHOLDER,
    ELEMENT_TYPE_SHAPE,
    ELEMENT_TYPE_TEXT,
    NEW_ELEMENT_OFFSET,
    SHAPE_CATALOG,
)
from src.domain.schemas import (
    Element,
    Position,
    Properties,
    Template,
    resolve_element_type,
)

logger = logging.getLogger(__name__)

ChangeListener = Callable[[Template], None]

TEXT_DEFAULT_STYLE = {
    "fontSize": "16px",
    "fontFamily": "Arial",
    "color": "#000000",
}

DEFAULT_CONTENT = {
    ELEMENT_TYPE_TEXT: "",
    ELEMENT_TYPE_IMAGE: "",
    ELEMENT_TYPE_SHAPE: SHAPE_CATALOG["rectangle"],
    ELEMENT_TYPE_PLACEHOLDER: DEFAULT_PLACEHOLDER_TOKEN,
}

DEFAULT_STYLES = {
    ELEMENT_TYPE_TEXT: TEXT_DEFAULT_STYLE,
    ELEMENT_TYPE_IMAGE: {"width": "200px", "height": "200px"},
    ELEMENT_TYPE_SHAPE: {"width": "100px", "height": "50px", "color": "#000000"},
    ELEMENT_TYPE_PLACEHOLDER: TEXT_DEFAULT_STYLE,
}


def default_position(viewport: tuple[float, float] | None = None) -> Position:
    """뷰포트 중앙에서 (-100, -100) 오프셋. 기본 800x600 → (300, 200)."""
    width, height = viewport or DEFAULT_VIEWPORT
    return Position(
        x=width / 2 - NEW_ELEMENT_OFFSET,
        y=height / 2 - NEW_ELEMENT_OFFSET,
    )


def create_element(
    element_type: str,
    position: Position | None = None,
    element_id: str | None = None,
) -> Element:
    """
    타입 기본값으로 새 요소 생성.

    Raises:
        CertificateError: INVALID_ELEMENT_TYPE
    """
    element_cls = resolve_element_type(element_type)
    return element_cls(
        id=element_id or generate_element_id(),
        content=DEFAULT_CONTENT[element_cls.type],
        position=position or default_position(),
        style=dict(DEFAULT_STYLES[element_cls.type]),
    )


class TemplateDocument:
    """
    편집 중인 템플릿 1개.

    Usage:
        doc = TemplateDocument(template, on_change=autosave.schedule)
        element = doc.add_element("text")
        doc.update_element(element.id, {"content": "Hello"})
    """

    def __init__(
        self,
        template: Template,
        on_change: ChangeListener | None = None,
    ):
        self.template = template
        self._listeners: list[ChangeListener] = []
        if on_change is not None:
            self._listeners.append(on_change)

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def elements(self) -> list[Element]:
        return self.template.elements

    @property
    def properties(self) -> Properties:
        return self.template.properties

    def get_element(self, element_id: str) -> Element | None:
        return self.template.get_element(element_id)

    def add_listener(self, listener: ChangeListener) -> None:
        self._listeners.append(listener)

    # =========================================================================
    # Mutations
    # =========================================================================

    def add_element(
        self,
        element_type: str,
        viewport: tuple[float, float] | None = None,
    ) -> Element:
        """새 요소를 끝에 추가."""
        element = create_element(element_type, position=default_position(viewport))
        self.template.elements.append(element)
        logger.debug(f"Element added: {element.type} {element.id}")
        self._changed()
        return element

    def update_element(self, element_id: str, changes: dict[str, Any]) -> Element | None:
        """
        요소 부분 병합.

        - content: 교체
        - position: 축별 병합 ({"x": 10}만 보내도 됨)
        - style: 키별 병합, 값이 None이면 키 삭제

        Returns:
            변경된 요소, 대상 id가 없으면 None
        """
        element = self.get_element(element_id)
        if element is None:
            return None

        if "content" in changes and changes["content"] is not None:
            element.content = str(changes["content"])

        position = changes.get("position")
        if position:
            if position.get("x") is not None:
                element.position.x = float(position["x"])
            if position.get("y") is not None:
                element.position.y = float(position["y"])

        style = changes.get("style")
        if style:
            for key, value in style.items():
                if value is None:
                    element.style.pop(key, None)
                else:
                    element.style[key] = str(value)

        self._changed()
        return element

    def delete_element(self, element_id: str) -> bool:
        """요소 삭제 (없으면 False, 멱등)."""
        before = len(self.template.elements)
        self.template.elements = [e for e in self.template.elements if e.id != element_id]
        if len(self.template.elements) == before:
            return False
        self._changed()
        return True

    def update_properties(self, properties: Properties) -> None:
        """페이지 속성 통째로 교체."""
        self.template.properties = properties
        self._changed()

    def set_orientation(self, orientation: str) -> None:
        """orientation 변경 (실제로 바뀌면 width/height 교환)."""
        self.template.properties = self.template.properties.with_orientation(orientation)
        self._changed()

    def toggle_orientation(self) -> None:
        current = self.template.properties.orientation
        self.set_orientation("landscape" if current == "portrait" else "portrait")

    def update_details(
        self,
        name: str | None = None,
        description: str | None = None,
        is_public: bool | None = None,
    ) -> None:
        """이름/설명/공개 여부 변경."""
        if name is not None:
            self.template.name = name
        if description is not None:
            self.template.description = description
        if is_public is not None:
            self.template.is_public = is_public
        self._changed()

    # =========================================================================
    # Internal
    # =========================================================================

    def _changed(self) -> None:
        self.template.updated_at = datetime.now(UTC).isoformat()
        for listener in self._listeners:
            listener(self.template)
