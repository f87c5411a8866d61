"""
test_document.py - 템플릿 문서 모델 테스트

DoD:
- add/delete 순서: 추가 순서 유지, 삭제는 재정렬 없음
- 없는 id update → no-op (listener 호출 없음)
- orientation 두 번 전환 → 원래 width/height
- 유효 변경마다 updated_at 갱신 + listener 호출
"""

import random

import pytest

from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import PlaceholderElement, Properties, ShapeElement, TextElement
from src.templates.document import TemplateDocument, create_element, default_position


class TestDefaults:
    """새 요소 기본값."""

    def test_default_position_center_offset(self):
        """800x600 뷰포트 → (300, 200)."""
        position = default_position()

        assert (position.x, position.y) == (300, 200)

    def test_default_position_custom_viewport(self):
        position = default_position((1200, 900))

        assert (position.x, position.y) == (500, 350)

    def test_type_defaults(self):
        text = create_element("text")
        shape = create_element("shape")
        placeholder = create_element("placeholder")

        assert isinstance(text, TextElement)
        assert text.style["fontSize"] == "16px"
        assert isinstance(shape, ShapeElement)
        assert shape.shape_name == "rectangle"
        assert isinstance(placeholder, PlaceholderElement)
        assert placeholder.content == "{{recipient.name}}"

    def test_unknown_type(self):
        with pytest.raises(CertificateError) as exc_info:
            create_element("video")

        assert exc_info.value.code == ErrorCodes.INVALID_ELEMENT_TYPE


class TestElementList:
    """요소 추가/삭제 순서."""

    def test_add_delete_sequence_keeps_insertion_order(self, empty_template):
        """무작위 add/delete 시퀀스 → 추가 순서에서 삭제분만 빠짐."""
        document = TemplateDocument(empty_template)
        rng = random.Random(7)
        expected: list[str] = []

        for _ in range(60):
            if expected and rng.random() < 0.4:
                victim = rng.choice(expected)
                assert document.delete_element(victim)
                expected.remove(victim)
            else:
                element = document.add_element(rng.choice(["text", "image", "shape", "placeholder"]))
                expected.append(element.id)

        assert [e.id for e in document.elements] == expected

    def test_delete_missing_is_idempotent(self, sample_template):
        calls = []
        document = TemplateDocument(sample_template, on_change=calls.append)

        assert document.delete_element("frame")
        assert not document.delete_element("frame")
        assert len(calls) == 1


class TestUpdateElement:
    """요소 부분 병합."""

    def test_missing_id_is_noop(self, sample_template):
        calls = []
        document = TemplateDocument(sample_template, on_change=calls.append)
        before = [e.to_dict() for e in document.elements]
        updated_at = sample_template.updated_at

        result = document.update_element("missing", {"content": "x"})

        assert result is None
        assert [e.to_dict() for e in document.elements] == before
        assert calls == []
        assert sample_template.updated_at == updated_at

    def test_position_merged_per_axis(self, sample_template):
        document = TemplateDocument(sample_template)

        element = document.update_element("title", {"position": {"x": 10}})

        assert (element.position.x, element.position.y) == (10, 80)

    def test_style_merge_and_delete(self, sample_template):
        document = TemplateDocument(sample_template)

        element = document.update_element(
            "title", {"style": {"color": "#ff0000", "fontWeight": None}}
        )

        assert element.style["color"] == "#ff0000"
        assert "fontWeight" not in element.style
        assert element.style["fontSize"] == "32px"

    def test_change_notifies_and_touches(self, sample_template):
        calls = []
        document = TemplateDocument(sample_template, on_change=calls.append)

        document.update_element("name", {"content": "{{course.name}}"})

        assert calls == [sample_template]
        assert sample_template.updated_at


class TestProperties:
    """페이지 속성 변경."""

    def test_orientation_toggle_round_trip(self, empty_template):
        document = TemplateDocument(empty_template)
        original = (document.properties.size.width, document.properties.size.height)

        document.toggle_orientation()
        assert document.properties.orientation == "landscape"
        assert (document.properties.size.width, document.properties.size.height) == original[::-1]

        document.toggle_orientation()
        assert (document.properties.size.width, document.properties.size.height) == original

    def test_update_properties_replaces_wholesale(self, empty_template):
        calls = []
        document = TemplateDocument(empty_template, on_change=calls.append)
        new_props = Properties.from_dict({
            "size": {"width": 8.5, "height": 11, "unit": "in"},
            "margins": {"top": 1, "right": 0.5, "bottom": 1, "left": 0.5, "unit": "in"},
        })

        document.update_properties(new_props)

        assert document.properties.size.unit == "in"
        assert document.properties.margins.right == 0.5
        assert len(calls) == 1

    def test_update_details(self, empty_template):
        document = TemplateDocument(empty_template)

        document.update_details(name="Renamed", is_public=True)

        assert empty_template.name == "Renamed"
        assert empty_template.is_public
        assert empty_template.description == ""
