"""
PowerPoint (PPTX) 렌더러: python-pptx 기반.

- 슬라이드 1장 = 인증서 1장, 슬라이드 크기 = 페이지 크기
- 항목은 절대 위치 (EMU = px * 9525), 회전 그대로 적용
"""

import io
import logging
from pathlib import Path

from pptx import Presentation
from pptx.dml.color import RGBColor
from pptx.enum.shapes import MSO_CONNECTOR, MSO_SHAPE
from pptx.enum.text import PP_ALIGN
from pptx.util import Emu, Pt

from src.domain.constants import EMU_PER_PX, POINTS_PER_INCH, PX_PER_INCH
from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import RecipientRow, Template
from src.render.base import CertificateRenderer, PageLayout, RenderItem

logger = logging.getLogger(__name__)

BLANK_LAYOUT_INDEX = 6

ALIGNMENTS = {
    "left": PP_ALIGN.LEFT,
    "center": PP_ALIGN.CENTER,
    "right": PP_ALIGN.RIGHT,
    "justify": PP_ALIGN.JUSTIFY,
}


def px_to_emu(value: float) -> Emu:
    return Emu(round(value * EMU_PER_PX))


class PptxRenderer(CertificateRenderer):
    """
    PPTX 인증서 렌더러.

    Usage:
        renderer = PptxRenderer(quality, image_loader)
        pptx_bytes = renderer.render(template, row)
    """

    extension = "pptx"
    media_type = "application/vnd.openxmlformats-officedocument.presentationml.presentation"

    def render(
        self,
        template: Template,
        row: RecipientRow,
        source_path: Path | None = None,
    ) -> bytes:
        try:
            return self._build(self.layout(template, row))
        except CertificateError:
            raise
        except Exception as e:
            raise CertificateError(
                ErrorCodes.RENDER_FAILED,
                f"PPTX rendering failed: {e}",
                format=self.extension,
                template_id=template.id,
            ) from e

    def _build(self, layout: PageLayout) -> bytes:
        prs = Presentation()
        prs.slide_width = px_to_emu(layout.width)
        prs.slide_height = px_to_emu(layout.height)
        prs.core_properties.title = layout.title
        prs.core_properties.author = "Certificate Generator"

        slide = prs.slides.add_slide(prs.slide_layouts[BLANK_LAYOUT_INDEX])

        fill = slide.background.fill
        fill.solid()
        fill.fore_color.rgb = RGBColor(*layout.background_color)
        if layout.background_image:
            self._add_image(
                slide,
                RenderItem(
                    kind="image", x=0, y=0, width=layout.width, height=layout.height,
                    image=layout.background_image,
                ),
            )

        for item in layout.items:
            if item.kind == "text":
                self._add_text(slide, item)
            elif item.kind == "image":
                self._add_image(slide, item)
            elif item.kind == "shape":
                self._add_shape(slide, item)

        buffer = io.BytesIO()
        prs.save(buffer)
        return buffer.getvalue()

    # =========================================================================
    # Items
    # =========================================================================

    def _add_text(self, slide, item: RenderItem) -> None:
        box = slide.shapes.add_textbox(
            px_to_emu(item.x),
            px_to_emu(item.y),
            px_to_emu(item.width),
            px_to_emu(item.height),
        )
        box.rotation = item.rotation
        frame = box.text_frame
        frame.word_wrap = True
        paragraph = frame.paragraphs[0]
        paragraph.alignment = ALIGNMENTS.get(item.align, PP_ALIGN.LEFT)
        run = paragraph.add_run()
        run.text = item.text
        font = run.font
        font.size = Pt(item.font_size / PX_PER_INCH * POINTS_PER_INCH)
        font.name = item.font_family.split(",")[0].strip().strip("'\"")
        font.bold = item.bold
        font.italic = item.italic
        font.color.rgb = RGBColor(*item.color)

    def _add_image(self, slide, item: RenderItem) -> None:
        data = self.prepared_image(item)
        if data is None:
            return
        picture = slide.shapes.add_picture(
            io.BytesIO(data),
            px_to_emu(item.x),
            px_to_emu(item.y),
            width=px_to_emu(item.width),
            height=px_to_emu(item.height),
        )
        picture.rotation = item.rotation

    def _add_shape(self, slide, item: RenderItem) -> None:
        if item.shape == "line":
            mid_y = item.y + item.height / 2
            connector = slide.shapes.add_connector(
                MSO_CONNECTOR.STRAIGHT,
                px_to_emu(item.x),
                px_to_emu(mid_y),
                px_to_emu(item.x + item.width),
                px_to_emu(mid_y),
            )
            connector.line.color.rgb = RGBColor(*item.color)
            return

        shape_type = MSO_SHAPE.OVAL if item.shape == "circle" else MSO_SHAPE.RECTANGLE
        shape = slide.shapes.add_shape(
            shape_type,
            px_to_emu(item.x),
            px_to_emu(item.y),
            px_to_emu(item.width),
            px_to_emu(item.height),
        )
        shape.rotation = item.rotation
        if item.fill is not None:
            shape.fill.solid()
            shape.fill.fore_color.rgb = RGBColor(*item.fill)
        else:
            shape.fill.background()
        shape.line.color.rgb = RGBColor(*item.color)
