"""
Image Service: 요소 이미지 업로드 (검증 → 재압축 → 저장 → URL 반영).

규칙:
- 검증(크기, MIME, 해상도)은 업로드 전에, 실패 시 요소 변경 없음
- 저장소 실패 시 요소를 빈 content로 되돌림, 재시도 없음
- 재압축 품질 기본 0.8 (JPEG/WebP), PNG는 optimize만
"""

import io
import logging
import time
from dataclasses import dataclass
from typing import Any

from PIL import Image, UnidentifiedImageError

from src.app.services.storage import ObjectStorage
from src.domain.constants import (
    IMAGE_ALLOWED_TYPES,
    IMAGE_COMPRESSION_QUALITY,
    IMAGE_MAX_HEIGHT,
    IMAGE_MAX_SIZE_BYTES,
    IMAGE_MAX_WIDTH,
)
from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import Element, ImageElement, PlaceholderElement
from src.templates.document import TemplateDocument

logger = logging.getLogger(__name__)

# MIME → (Pillow 포맷, 확장자)
IMAGE_FORMATS = {
    "image/jpeg": ("JPEG", "jpg"),
    "image/png": ("PNG", "png"),
    "image/webp": ("WEBP", "webp"),
}


@dataclass
class ImageUploadConfig:
    max_size_bytes: int = IMAGE_MAX_SIZE_BYTES
    allowed_types: tuple[str, ...] = IMAGE_ALLOWED_TYPES
    max_width: int = IMAGE_MAX_WIDTH
    max_height: int = IMAGE_MAX_HEIGHT
    compression_quality: float = IMAGE_COMPRESSION_QUALITY

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "ImageUploadConfig":
        images = config.get("images", {})
        allowed_types = []
        for mime in images.get("allowed_types", IMAGE_ALLOWED_TYPES):
            if mime in IMAGE_FORMATS:
                allowed_types.append(mime)
            else:
                logger.warning(f"Ignoring unsupported image type in config: {mime}")
        return cls(
            max_size_bytes=int(images.get("max_size_mb", 5) * 1024 * 1024),
            allowed_types=tuple(allowed_types),
            max_width=images.get("max_width", IMAGE_MAX_WIDTH),
            max_height=images.get("max_height", IMAGE_MAX_HEIGHT),
            compression_quality=images.get("compression_quality", IMAGE_COMPRESSION_QUALITY),
        )


def validate_and_optimize_image(
    data: bytes,
    content_type: str,
    config: ImageUploadConfig | None = None,
) -> bytes:
    """
    이미지 검증 + 재압축.

    Returns:
        재압축된 이미지 바이트 (같은 포맷)

    Raises:
        CertificateError: IMAGE_TOO_LARGE, IMAGE_TYPE_NOT_ALLOWED,
                          IMAGE_DIMENSIONS_EXCEEDED, IMAGE_UNREADABLE
    """
    config = config or ImageUploadConfig()

    if len(data) > config.max_size_bytes:
        max_mb = config.max_size_bytes / 1024 / 1024
        raise CertificateError(
            ErrorCodes.IMAGE_TOO_LARGE,
            f"File size exceeds maximum allowed size of {max_mb:g}MB",
            size=len(data),
            max_size=config.max_size_bytes,
        )

    if content_type not in config.allowed_types or content_type not in IMAGE_FORMATS:
        raise CertificateError(
            ErrorCodes.IMAGE_TYPE_NOT_ALLOWED,
            f"File type {content_type} is not allowed. "
            f"Allowed types: {', '.join(config.allowed_types)}",
            content_type=content_type,
        )

    try:
        with Image.open(io.BytesIO(data)) as img:
            # 헤더의 해상도로 먼저 검사, 픽셀 디코딩은 통과 후에만
            width, height = img.size

            if width > config.max_width:
                raise CertificateError(
                    ErrorCodes.IMAGE_DIMENSIONS_EXCEEDED,
                    f"Image width ({width}px) exceeds maximum allowed width ({config.max_width}px)",
                    width=width,
                    max_width=config.max_width,
                )
            if height > config.max_height:
                raise CertificateError(
                    ErrorCodes.IMAGE_DIMENSIONS_EXCEEDED,
                    f"Image height ({height}px) exceeds maximum allowed height ({config.max_height}px)",
                    height=height,
                    max_height=config.max_height,
                )

            img.load()

            if config.compression_quality >= 1:
                return data

            pil_format, _ = IMAGE_FORMATS[content_type]
            out = io.BytesIO()
            if pil_format == "PNG":
                img.save(out, format="PNG", optimize=True)
            else:
                source = img.convert("RGB") if pil_format == "JPEG" else img
                source.save(
                    out,
                    format=pil_format,
                    quality=round(config.compression_quality * 100),
                )
            return out.getvalue()

    except CertificateError:
        raise
    except Image.DecompressionBombError as e:
        raise CertificateError(
            ErrorCodes.IMAGE_DIMENSIONS_EXCEEDED,
            "Image dimensions exceed the decompression limit",
            content_type=content_type,
            error=str(e),
        ) from e
    except (UnidentifiedImageError, OSError, KeyError) as e:
        raise CertificateError(
            ErrorCodes.IMAGE_UNREADABLE,
            "Failed to process image",
            content_type=content_type,
            error=str(e),
        ) from e


class ImageService:
    """
    요소 이미지 업로드.

    Usage:
        service = ImageService(storage, config)
        url = service.upload_element_image(document, element_id, user_id, data, "image/png")
    """

    def __init__(self, storage: ObjectStorage, config: ImageUploadConfig | None = None):
        self.storage = storage
        self.config = config or ImageUploadConfig()

    def upload_element_image(
        self,
        document: TemplateDocument,
        element_id: str,
        user_id: str,
        data: bytes,
        content_type: str,
    ) -> str:
        """
        이미지/placeholder 요소에 이미지 업로드.

        Returns:
            공개 URL (요소 content에 반영됨)

        Raises:
            CertificateError: ELEMENT_NOT_FOUND, CAPABILITY_NOT_SUPPORTED,
                              IMAGE_* (검증), UPLOAD_FAILED (요소는 빈 content로 복귀)
        """
        element = document.get_element(element_id)
        if element is None:
            raise CertificateError(
                ErrorCodes.ELEMENT_NOT_FOUND,
                f"Element '{element_id}' not found",
                element_id=element_id,
            )
        self._check_target(element)

        optimized = validate_and_optimize_image(data, content_type, self.config)

        _, extension = IMAGE_FORMATS[content_type]
        path = f"templates/{element.id}-{int(time.time() * 1000)}.{extension}"
        try:
            url = self.storage.upload(user_id, path, optimized, content_type)
        except CertificateError:
            document.update_element(element.id, {"content": ""})
            raise

        document.update_element(
            element.id,
            {
                "content": url,
                "style": {
                    "width": element.style.get("width", "200px"),
                    "height": element.style.get("height", "200px"),
                    "objectFit": "contain",
                },
            },
        )
        logger.info(f"Image uploaded for element {element.id}: {url}")
        return url

    @staticmethod
    def _check_target(element: Element) -> None:
        if not isinstance(element, (ImageElement, PlaceholderElement)):
            raise CertificateError(
                ErrorCodes.CAPABILITY_NOT_SUPPORTED,
                f"{element.type} elements cannot hold images",
                element_id=element.id,
            )
