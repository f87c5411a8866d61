"""
캔버스 상태: 줌, 그리드, 정렬 가이드, 선택.

좌표:
- 요소 좌표는 줌 미적용 캔버스 px
- 화면(screen) 좌표는 줌 적용 → 캔버스 좌표 = screen / zoom
"""

import math
from dataclasses import dataclass, field
from typing import Any

from src.domain.constants import DEFAULT_GRID_SIZE, ZOOM_MAX, ZOOM_MIN, ZOOM_STEP
from src.domain.schemas import Element
from src.domain.units import element_box


@dataclass
class Guide:
    """정렬 가이드 (x축 = 세로선, y축 = 가로선)."""
    axis: str  # x, y
    position: float

    def to_dict(self) -> dict[str, Any]:
        return {"axis": self.axis, "position": self.position}


def snap_value(value: float, grid_size: float) -> float:
    """가장 가까운 그리드 배수 (반올림, .5는 올림)."""
    if grid_size <= 0:
        return value
    return math.floor(value / grid_size + 0.5) * grid_size


def _intersects(
    box: tuple[float, float, float, float],
    rect: tuple[float, float, float, float],
) -> bool:
    x, y, w, h = box
    left, top, right, bottom = rect
    return x <= right and x + w >= left and y <= bottom and y + h >= top


@dataclass
class CanvasState:
    """편집 세션 1개의 캔버스 UI 상태."""
    zoom: float = 1.0
    show_grid: bool = False
    snap_to_grid: bool = False
    grid_size: int = DEFAULT_GRID_SIZE
    guides: list[Guide] = field(default_factory=list)
    selected_ids: list[str] = field(default_factory=list)

    # =========================================================================
    # Zoom
    # =========================================================================

    def set_zoom(self, zoom: float) -> float:
        """0.5 ~ 2.0 으로 clamp."""
        self.zoom = round(min(ZOOM_MAX, max(ZOOM_MIN, zoom)), 2)
        return self.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self.zoom + ZOOM_STEP)

    def zoom_out(self) -> float:
        return self.set_zoom(self.zoom - ZOOM_STEP)

    def to_canvas(self, screen_x: float, screen_y: float) -> tuple[float, float]:
        return screen_x / self.zoom, screen_y / self.zoom

    # =========================================================================
    # Grid / Guides
    # =========================================================================

    def toggle_grid(self) -> bool:
        self.show_grid = not self.show_grid
        return self.show_grid

    def snap(self, value: float) -> float:
        return snap_value(value, self.grid_size)

    def add_guide(self, axis: str, position: float) -> Guide:
        if axis not in ("x", "y"):
            raise ValueError(f"Guide axis must be 'x' or 'y': {axis}")
        guide = Guide(axis=axis, position=position)
        self.guides.append(guide)
        return guide

    def remove_guide(self, index: int) -> None:
        if 0 <= index < len(self.guides):
            del self.guides[index]

    # =========================================================================
    # Selection
    # =========================================================================

    def select(self, element_id: str, additive: bool = False) -> list[str]:
        """
        클릭 선택.

        additive=False: 교체
        additive=True (shift): 토글
        """
        if not additive:
            self.selected_ids = [element_id]
        elif element_id in self.selected_ids:
            self.selected_ids.remove(element_id)
        else:
            self.selected_ids.append(element_id)
        return list(self.selected_ids)

    def select_box(
        self,
        screen_rect: tuple[float, float, float, float],
        elements: list[Element],
        additive: bool = False,
    ) -> list[str]:
        """
        드래그 박스 선택.

        Args:
            screen_rect: (x1, y1, x2, y2) 화면 좌표, 방향 무관
            elements: 후보 요소
            additive: shift 누른 상태면 기존 선택에 추가
        """
        x1, y1 = self.to_canvas(screen_rect[0], screen_rect[1])
        x2, y2 = self.to_canvas(screen_rect[2], screen_rect[3])
        rect = (min(x1, x2), min(y1, y2), max(x1, x2), max(y1, y2))

        hits = [e.id for e in elements if _intersects(element_box(e), rect)]
        if additive:
            for element_id in hits:
                if element_id not in self.selected_ids:
                    self.selected_ids.append(element_id)
        else:
            self.selected_ids = hits
        return list(self.selected_ids)

    def clear_selection(self) -> None:
        self.selected_ids = []

    def prune(self, existing_ids: set[str]) -> None:
        """삭제된 요소를 선택에서 제거."""
        self.selected_ids = [i for i in self.selected_ids if i in existing_ids]

    def to_dict(self) -> dict[str, Any]:
        return {
            "zoom": self.zoom,
            "show_grid": self.show_grid,
            "snap_to_grid": self.snap_to_grid,
            "grid_size": self.grid_size,
            "guides": [g.to_dict() for g in self.guides],
            "selected_ids": list(self.selected_ids),
        }
