"""
Render layer: 인증서 출력 생성.

역할:
- 템플릿 + 수신자 행 → 최종 파일 바이트
- reportlab (PDF), docxtpl/python-docx (Word), python-pptx (PowerPoint)
"""

from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import QualitySettings, normalize_output_format

from .base import CertificateRenderer, ImageLoader, build_layout
from .pdf import PdfRenderer
from .slides import PptxRenderer
from .word import DocxRenderer

RENDERERS: dict[str, type[CertificateRenderer]] = {
    PdfRenderer.extension: PdfRenderer,
    DocxRenderer.extension: DocxRenderer,
    PptxRenderer.extension: PptxRenderer,
}


def get_renderer(
    output_format: str,
    quality: QualitySettings | None = None,
    image_loader: ImageLoader | None = None,
) -> CertificateRenderer:
    """
    포맷 → 렌더러 인스턴스.

    Raises:
        CertificateError: INVALID_OUTPUT_FORMAT
    """
    fmt = normalize_output_format(output_format)
    if fmt not in RENDERERS:
        raise CertificateError(
            ErrorCodes.INVALID_OUTPUT_FORMAT,
            f"No renderer for {fmt}",
            format=fmt,
        )
    return RENDERERS[fmt](quality, image_loader)


__all__ = [
    "CertificateRenderer",
    "PdfRenderer",
    "DocxRenderer",
    "PptxRenderer",
    "RENDERERS",
    "build_layout",
    "get_renderer",
]
