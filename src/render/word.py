"""
Word (DOCX) 렌더러.

두 가지 경로:
- 업로드된 DOCX 원본이 있으면 docxtpl 렌더 ({{ recipient.name }} 등 Jinja2 변수)
- 없으면 python-docx로 요소 레이아웃을 위→아래 순서 문단으로 투영

DOCX는 자유 배치 도형이 없으므로 shape 요소는 생략.
"""

import io
import logging
from pathlib import Path
from typing import Any

from docx import Document
from docx.enum.section import WD_ORIENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.shared import Emu, Inches, Pt, RGBColor
from docxtpl import DocxTemplate

from src.domain.constants import EMU_PER_PX, POINTS_PER_INCH, PX_PER_INCH
from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import RecipientRow, Template
from src.domain.units import to_px
from src.render.base import CertificateRenderer, PageLayout, RenderItem, recipient_name

logger = logging.getLogger(__name__)

ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}


def build_context(row: RecipientRow) -> dict[str, Any]:
    """
    docxtpl 컨텍스트 구성.

    평면 키 그대로 + 점 경로는 중첩 dict로 ("recipient.name" → {"recipient": {"name": ...}}).
    중첩 경로와 같은 이름의 평면 키가 있으면 평면 키 우선.
    """
    context: dict[str, Any] = {}
    for key, value in row.items():
        parts = str(key).split(".")
        if len(parts) == 1:
            continue
        node = context
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    for key, value in row.items():
        if "." not in str(key):
            context[str(key)] = value

    # 카탈로그 기본 이름 경로 보장
    context.setdefault("recipient", {})
    if isinstance(context["recipient"], dict):
        context["recipient"].setdefault("name", recipient_name(row))
    return context


class DocxRenderer(CertificateRenderer):
    """
    Word 인증서 렌더러.

    Usage:
        renderer = DocxRenderer(quality, image_loader)
        docx_bytes = renderer.render(template, row, source_path)
    """

    extension = "docx"
    media_type = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

    def render(
        self,
        template: Template,
        row: RecipientRow,
        source_path: Path | None = None,
    ) -> bytes:
        try:
            if source_path is not None:
                return self._render_source(source_path, row)
            return self._render_layout(template, row)
        except CertificateError:
            raise
        except Exception as e:
            raise CertificateError(
                ErrorCodes.RENDER_FAILED,
                f"DOCX rendering failed: {e}",
                format=self.extension,
                template_id=template.id,
            ) from e

    # =========================================================================
    # docxtpl (업로드 원본)
    # =========================================================================

    def _render_source(self, source_path: Path, row: RecipientRow) -> bytes:
        if not source_path.exists():
            raise CertificateError(
                ErrorCodes.TEMPLATE_NOT_FOUND,
                "Template source file is missing",
                path=str(source_path),
            )
        doc = DocxTemplate(str(source_path))
        doc.render(build_context(row))
        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    # =========================================================================
    # python-docx (요소 레이아웃)
    # =========================================================================

    def _render_layout(self, template: Template, row: RecipientRow) -> bytes:
        layout = self.layout(template, row)
        props = template.properties

        doc = Document()
        section = doc.sections[0]
        section.orientation = (
            WD_ORIENT.LANDSCAPE if props.orientation == "landscape" else WD_ORIENT.PORTRAIT
        )
        section.page_width = Emu(round(layout.width * EMU_PER_PX))
        section.page_height = Emu(round(layout.height * EMU_PER_PX))

        margins = props.margins
        section.top_margin = Emu(round(to_px(margins.top, margins.unit) * EMU_PER_PX))
        section.right_margin = Emu(round(to_px(margins.right, margins.unit) * EMU_PER_PX))
        section.bottom_margin = Emu(round(to_px(margins.bottom, margins.unit) * EMU_PER_PX))
        section.left_margin = Emu(round(to_px(margins.left, margins.unit) * EMU_PER_PX))

        doc.core_properties.title = layout.title
        doc.core_properties.author = "Certificate Generator"

        for item in sorted(layout.items, key=lambda i: (i.y, i.x)):
            if item.kind == "text":
                self._add_text(doc, item)
            elif item.kind == "image":
                self._add_image(doc, item, layout)
            else:
                logger.debug(f"DOCX output has no free shapes, skipped {item.shape}")

        buffer = io.BytesIO()
        doc.save(buffer)
        return buffer.getvalue()

    def _add_text(self, doc: Any, item: RenderItem) -> None:
        paragraph = doc.add_paragraph()
        paragraph.alignment = ALIGNMENTS.get(item.align, WD_ALIGN_PARAGRAPH.LEFT)
        run = paragraph.add_run(item.text)
        run.font.size = Pt(item.font_size / PX_PER_INCH * POINTS_PER_INCH)
        run.font.name = item.font_family.split(",")[0].strip().strip("'\"")
        run.font.bold = item.bold
        run.font.italic = item.italic
        run.font.color.rgb = RGBColor(*item.color)

    def _add_image(self, doc: Any, item: RenderItem, layout: PageLayout) -> None:
        data = self.prepared_image(item)
        if data is None:
            return
        width = min(item.width, layout.width)
        paragraph = doc.add_paragraph()
        paragraph.alignment = ALIGNMENTS.get(item.align, WD_ALIGN_PARAGRAPH.LEFT)
        paragraph.add_run().add_picture(io.BytesIO(data), width=Inches(width / PX_PER_INCH))
