"""
PDF 렌더러: reportlab canvas 기반.

- 캔버스 px → PDF pt (0.75), y축 반전 (PDF 원점 = 좌하단)
- 메타데이터: title "Certificate - <name>", creator "Certificate Generator"
- 텍스트 baseline = 박스 상단 + 글자 크기
"""

import io
import logging
from pathlib import Path

from reportlab.lib.utils import ImageReader
from reportlab.pdfgen import canvas

from src.domain.constants import POINTS_PER_INCH, PX_PER_INCH
from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import RecipientRow, Template
from src.render.base import CertificateRenderer, PageLayout, RenderItem

logger = logging.getLogger(__name__)

PT_PER_PX = POINTS_PER_INCH / PX_PER_INCH
PDF_CREATOR = "Certificate Generator"

# CSS font-family → reportlab 기본 14 폰트
FONT_FAMILIES = {
    "times": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "serif": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "georgia": ("Times-Roman", "Times-Bold", "Times-Italic", "Times-BoldItalic"),
    "courier": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
    "monospace": ("Courier", "Courier-Bold", "Courier-Oblique", "Courier-BoldOblique"),
}
DEFAULT_FONTS = ("Helvetica", "Helvetica-Bold", "Helvetica-Oblique", "Helvetica-BoldOblique")


def pdf_font(family: str, bold: bool, italic: bool) -> str:
    """CSS font-family → reportlab 폰트 이름."""
    key = family.split(",")[0].strip().strip("'\"").lower()
    fonts = DEFAULT_FONTS
    for prefix, candidates in FONT_FAMILIES.items():
        if key.startswith(prefix):
            fonts = candidates
            break
    return fonts[(1 if bold else 0) + (2 if italic else 0)]


class PdfRenderer(CertificateRenderer):
    """
    PDF 인증서 렌더러.

    Usage:
        renderer = PdfRenderer(quality, image_loader)
        pdf_bytes = renderer.render(template, row)
    """

    extension = "pdf"
    media_type = "application/pdf"

    def render(
        self,
        template: Template,
        row: RecipientRow,
        source_path: Path | None = None,
    ) -> bytes:
        try:
            layout = self.layout(template, row)
            return self._draw(layout)
        except CertificateError:
            raise
        except Exception as e:
            raise CertificateError(
                ErrorCodes.RENDER_FAILED,
                f"PDF rendering failed: {e}",
                format=self.extension,
                template_id=template.id,
            ) from e

    def _draw(self, layout: PageLayout) -> bytes:
        page_w = layout.width * PT_PER_PX
        page_h = layout.height * PT_PER_PX

        buffer = io.BytesIO()
        c = canvas.Canvas(buffer, pagesize=(page_w, page_h))
        c.setTitle(layout.title)
        c.setCreator(PDF_CREATOR)
        c.setAuthor(PDF_CREATOR)

        # 배경
        r, g, b = layout.background_color
        c.setFillColorRGB(r / 255, g / 255, b / 255)
        c.rect(0, 0, page_w, page_h, fill=1, stroke=0)
        if layout.background_image:
            background = RenderItem(
                kind="image", x=0, y=0, width=layout.width, height=layout.height,
                image=layout.background_image,
            )
            self._draw_image(c, background, page_h)

        for item in layout.items:
            if item.kind == "text":
                self._draw_text(c, item, page_h)
            elif item.kind == "image":
                self._draw_image(c, item, page_h)
            elif item.kind == "shape":
                self._draw_shape(c, item, page_h)

        c.showPage()
        c.save()
        return buffer.getvalue()

    # =========================================================================
    # Items
    # =========================================================================

    def _begin_item(self, c: canvas.Canvas, item: RenderItem, page_h: float) -> tuple[float, float]:
        """
        항목 중심으로 좌표계 이동 (+회전).

        Returns:
            (w, h) pt, 원점 = 박스 좌하단
        """
        w = item.width * PT_PER_PX
        h = item.height * PT_PER_PX
        left = item.x * PT_PER_PX
        bottom = page_h - (item.y * PT_PER_PX) - h

        c.saveState()
        c.translate(left + w / 2, bottom + h / 2)
        if item.rotation:
            # CSS는 시계방향, PDF는 반시계방향
            c.rotate(-item.rotation)
        c.translate(-w / 2, -h / 2)
        return w, h

    def _draw_text(self, c: canvas.Canvas, item: RenderItem, page_h: float) -> None:
        w, h = self._begin_item(c, item, page_h)
        size = item.font_size * PT_PER_PX
        r, g, b = item.color
        c.setFillColorRGB(r / 255, g / 255, b / 255)
        c.setFont(pdf_font(item.font_family, item.bold, item.italic), size)

        baseline = h - size
        if item.align == "center":
            c.drawCentredString(w / 2, baseline, item.text)
        elif item.align == "right":
            c.drawRightString(w, baseline, item.text)
        else:
            c.drawString(0, baseline, item.text)
        c.restoreState()

    def _draw_image(self, c: canvas.Canvas, item: RenderItem, page_h: float) -> None:
        data = self.prepared_image(item)
        if data is None:
            return
        w, h = self._begin_item(c, item, page_h)
        c.drawImage(
            ImageReader(io.BytesIO(data)),
            0,
            0,
            width=w,
            height=h,
            preserveAspectRatio=True,
            mask="auto",
        )
        c.restoreState()

    def _draw_shape(self, c: canvas.Canvas, item: RenderItem, page_h: float) -> None:
        w, h = self._begin_item(c, item, page_h)
        r, g, b = item.color
        c.setStrokeColorRGB(r / 255, g / 255, b / 255)
        c.setLineWidth(1)
        fill = 0
        if item.fill is not None:
            fr, fg, fb = item.fill
            c.setFillColorRGB(fr / 255, fg / 255, fb / 255)
            fill = 1

        if item.shape == "circle":
            c.ellipse(0, 0, w, h, stroke=1, fill=fill)
        elif item.shape == "line":
            c.line(0, h / 2, w, h / 2)
        else:
            c.rect(0, 0, w, h, stroke=1, fill=fill)
        c.restoreState()
