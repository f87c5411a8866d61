"""
test_interaction.py - 드래그/리사이즈/회전/인라인 편집 테스트
"""

import pytest

from src.domain.errors import CertificateError, ErrorCodes
from src.templates.canvas import CanvasState
from src.templates.document import TemplateDocument
from src.templates.interaction import TransformController


@pytest.fixture
def controller(sample_template, field_catalog):
    document = TemplateDocument(sample_template)
    return TransformController(document, CanvasState(), field_catalog)


def _element(controller, element_id):
    return controller.document.get_element(element_id)


# =============================================================================
# Drag
# =============================================================================


class TestDrag:
    """드래그 이동."""

    def test_drag_moves_by_pointer_delta(self, controller):
        controller.begin_drag("title", (0, 0))
        controller.drag((33, 17))
        controller.end_drag()

        element = _element(controller, "title")
        assert (element.position.x, element.position.y) == (133, 97)
        assert not controller.is_dragging

    def test_drag_respects_zoom(self, controller):
        controller.canvas.set_zoom(2.0)
        controller.begin_drag("title", (0, 0))
        controller.drag((40, 20))

        element = _element(controller, "title")
        assert (element.position.x, element.position.y) == (120, 90)

    def test_drag_end_snaps_to_grid(self, controller):
        """그리드 20, x=133 → 140."""
        controller.canvas.snap_to_grid = True
        controller.begin_drag("title", (0, 0))
        controller.drag((33, 17))
        controller.end_drag()

        element = _element(controller, "title")
        assert (element.position.x, element.position.y) == (140, 100)

    def test_drag_moves_whole_selection(self, controller):
        controller.canvas.select("title")
        controller.canvas.select("name", additive=True)

        controller.begin_drag("name", (0, 0))
        controller.drag((10, 10))
        controller.end_drag()

        assert _element(controller, "title").position.x == 110
        assert _element(controller, "name").position.x == 110
        assert _element(controller, "course").position.x == 100

    def test_grabbing_unselected_element_selects_it(self, controller):
        controller.canvas.select("title")

        controller.begin_drag("course", (0, 0))

        assert controller.canvas.selected_ids == ["course"]

    def test_editing_element_not_draggable(self, controller):
        controller.begin_edit("title")

        assert controller.begin_drag("title", (0, 0)) is False

    def test_missing_element(self, controller):
        with pytest.raises(CertificateError) as exc_info:
            controller.begin_drag("missing", (0, 0))

        assert exc_info.value.code == ErrorCodes.ELEMENT_NOT_FOUND


# =============================================================================
# Resize / Rotate
# =============================================================================


class TestResizeRotate:
    """리사이즈/회전."""

    def test_resize_shape(self, controller):
        """도형도 리사이즈 가능."""
        element = controller.resize("frame", 50, -100)

        assert element.style["width"] == "750px"
        assert element.style["height"] == "400px"

    def test_resize_respects_zoom(self, controller):
        controller.canvas.set_zoom(2.0)

        element = controller.resize("frame", 100, 100)

        assert element.style["width"] == "750px"

    def test_resize_minimum(self, controller):
        element = controller.resize("frame", -5000, -5000)

        assert element.style["width"] == "10px"
        assert element.style["height"] == "10px"

    def test_rotate_absolute_and_relative(self, controller):
        controller.rotate("title", 45)
        assert _element(controller, "title").style["transform"] == "rotate(45deg)"

        controller.rotate_by("title", 330)
        assert _element(controller, "title").style["transform"] == "rotate(15deg)"


# =============================================================================
# Inline Edit
# =============================================================================


class TestInlineEdit:
    """인라인 편집."""

    def test_text_edit(self, controller):
        assert controller.begin_edit("title") == "Certificate of Completion"
        assert controller.editing_id == "title"

        controller.commit_edit("Certificate of Excellence")

        assert _element(controller, "title").content == "Certificate of Excellence"
        assert controller.editing_id is None

    def test_placeholder_edit_strips_and_wraps_token(self, controller):
        assert controller.begin_edit("name") == "recipient.name"

        controller.commit_edit("issuer name!")

        assert _element(controller, "name").content == "{{issuername}}"

    def test_shape_not_editable(self, controller):
        with pytest.raises(CertificateError) as exc_info:
            controller.begin_edit("frame")

        assert exc_info.value.code == ErrorCodes.CAPABILITY_NOT_SUPPORTED

    def test_commit_without_edit(self, controller):
        with pytest.raises(CertificateError) as exc_info:
            controller.commit_edit("x")

        assert exc_info.value.code == ErrorCodes.ELEMENT_NOT_FOUND

    def test_cancel_keeps_content(self, controller):
        controller.begin_edit("title")
        controller.cancel_edit()

        assert controller.editing_id is None
        assert _element(controller, "title").content == "Certificate of Completion"

    def test_static_image_placeholder_not_text_editable(self, controller):
        controller.document.update_element("name", {"content": "/files/user-1/templates/a.png"})

        with pytest.raises(CertificateError) as exc_info:
            controller.begin_edit("name")

        assert exc_info.value.code == ErrorCodes.CAPABILITY_NOT_SUPPORTED


# =============================================================================
# Pickers
# =============================================================================


class TestPickers:
    """도형/필드 선택."""

    def test_set_shape(self, controller):
        element = controller.set_shape("frame", "circle")

        assert element.shape_name == "circle"

    def test_set_shape_unknown(self, controller):
        with pytest.raises(CertificateError) as exc_info:
            controller.set_shape("frame", "hexagon")

        assert exc_info.value.code == ErrorCodes.UNKNOWN_SHAPE

    def test_set_shape_on_text(self, controller):
        with pytest.raises(CertificateError) as exc_info:
            controller.set_shape("title", "circle")

        assert exc_info.value.code == ErrorCodes.CAPABILITY_NOT_SUPPORTED

    def test_choose_field(self, controller):
        element = controller.choose_field("course", "course.grade")

        assert element.content == "{{course.grade}}"

    def test_choose_unknown_field(self, controller):
        with pytest.raises(CertificateError) as exc_info:
            controller.choose_field("course", "no.such.field")

        assert exc_info.value.code == ErrorCodes.UNKNOWN_FIELD

    def test_choose_field_on_text(self, controller):
        with pytest.raises(CertificateError) as exc_info:
            controller.choose_field("title", "recipient.name")

        assert exc_info.value.code == ErrorCodes.CAPABILITY_NOT_SUPPORTED
