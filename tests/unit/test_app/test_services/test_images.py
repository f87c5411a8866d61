"""
test_images.py - 이미지 업로드 서비스 테스트

검증:
- 크기 초과 → IMAGE_TOO_LARGE ("... maximum allowed size of 5MB"), 업로드 없음
- MIME/해상도 검증은 업로드 전
- 저장소 실패 → 요소 content 비움, UPLOAD_FAILED 재발생
"""

import io
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from PIL import Image

from src.app.services.images import ImageService, ImageUploadConfig, validate_and_optimize_image
from src.app.services.storage import ObjectStorage
from src.domain.errors import CertificateError, ErrorCodes
from src.templates.document import TemplateDocument


@pytest.fixture
def image_document(template_factory) -> TemplateDocument:
    return TemplateDocument(template_factory([
        {"id": "logo", "type": "image", "content": "", "style": {"width": "120px", "height": "60px"}},
        {"id": "slot", "type": "placeholder", "content": "{{recipient.name}}"},
        {"id": "label", "type": "text", "content": "Hello"},
    ]))


# =============================================================================
# validate_and_optimize_image
# =============================================================================

class TestValidateImage:
    """검증 + 재압축."""

    def test_oversize_rejected_with_message(self):
        data = b"\x00" * (5 * 1024 * 1024 + 1)

        with pytest.raises(CertificateError) as exc_info:
            validate_and_optimize_image(data, "image/png")

        assert exc_info.value.code == ErrorCodes.IMAGE_TOO_LARGE
        assert exc_info.value.message == "File size exceeds maximum allowed size of 5MB"

    def test_type_not_allowed(self, png_bytes):
        with pytest.raises(CertificateError) as exc_info:
            validate_and_optimize_image(png_bytes, "image/gif")

        assert exc_info.value.code == ErrorCodes.IMAGE_TYPE_NOT_ALLOWED

    def test_width_exceeded(self, image_factory):
        data = image_factory(2001, 10)

        with pytest.raises(CertificateError) as exc_info:
            validate_and_optimize_image(data, "image/png")

        assert exc_info.value.code == ErrorCodes.IMAGE_DIMENSIONS_EXCEEDED
        assert exc_info.value.context["width"] == 2001

    def test_height_exceeded_with_custom_limit(self, image_factory):
        config = ImageUploadConfig(max_height=50)

        with pytest.raises(CertificateError) as exc_info:
            validate_and_optimize_image(image_factory(10, 51), "image/png", config)

        assert exc_info.value.code == ErrorCodes.IMAGE_DIMENSIONS_EXCEEDED

    def test_dimensions_checked_before_decoding(self, image_factory):
        """픽셀 데이터가 잘려도 헤더 해상도 초과가 먼저 보고됨."""
        data = image_factory(2001, 10)
        truncated = data[: data.index(b"IDAT") + 8]

        with pytest.raises(CertificateError) as exc_info:
            validate_and_optimize_image(truncated, "image/png")

        assert exc_info.value.code == ErrorCodes.IMAGE_DIMENSIONS_EXCEEDED

    def test_decompression_bomb(self, image_factory, monkeypatch):
        monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

        with pytest.raises(CertificateError) as exc_info:
            validate_and_optimize_image(image_factory(20, 20), "image/png")

        assert exc_info.value.code == ErrorCodes.IMAGE_DIMENSIONS_EXCEEDED

    def test_unreadable(self):
        with pytest.raises(CertificateError) as exc_info:
            validate_and_optimize_image(b"not an image", "image/jpeg")

        assert exc_info.value.code == ErrorCodes.IMAGE_UNREADABLE

    def test_jpeg_recompressed_same_format(self, image_factory):
        data = image_factory(300, 200, fmt="JPEG")

        result = validate_and_optimize_image(data, "image/jpeg")

        with Image.open(io.BytesIO(result)) as img:
            assert img.format == "JPEG"
            assert img.size == (300, 200)

    def test_config_from_yaml_section(self, default_config):
        config = ImageUploadConfig.from_config(default_config)

        assert config.max_size_bytes == 5 * 1024 * 1024
        assert "image/webp" in config.allowed_types
        assert config.compression_quality == 0.8

    def test_config_drops_unsupported_types(self):
        config = ImageUploadConfig.from_config(
            {"images": {"allowed_types": ["image/png", "image/gif"]}}
        )

        assert config.allowed_types == ("image/png",)

    def test_allowed_but_unencodable_type(self, image_factory):
        config = ImageUploadConfig(allowed_types=("image/gif",))

        with pytest.raises(CertificateError) as exc_info:
            validate_and_optimize_image(image_factory(fmt="GIF"), "image/gif", config)

        assert exc_info.value.code == ErrorCodes.IMAGE_TYPE_NOT_ALLOWED


# =============================================================================
# ImageService
# =============================================================================

class TestImageService:
    """요소 이미지 업로드."""

    def test_upload_sets_content(self, image_document, png_bytes, tmp_path: Path):
        storage = ObjectStorage(tmp_path / "files")
        service = ImageService(storage)

        url = service.upload_element_image(image_document, "logo", "user-1", png_bytes, "image/png")

        element = image_document.get_element("logo")
        assert url.startswith("/files/user-1/templates/logo-")
        assert url.endswith(".png")
        assert element.content == url
        assert element.style["width"] == "120px"
        assert element.style["objectFit"] == "contain"
        assert storage.read(url) is not None

    def test_placeholder_becomes_static_image(self, image_document, png_bytes, tmp_path: Path):
        service = ImageService(ObjectStorage(tmp_path / "files"))

        service.upload_element_image(image_document, "slot", "user-1", png_bytes, "image/png")

        assert image_document.get_element("slot").is_static_image

    def test_oversize_performs_no_upload(self, image_document):
        """검증 실패 → 저장소 호출 없음, 요소 불변."""
        storage = MagicMock()
        service = ImageService(storage)
        changes = []
        image_document.add_listener(changes.append)

        with pytest.raises(CertificateError) as exc_info:
            service.upload_element_image(
                image_document, "logo", "user-1", b"\x00" * (5 * 1024 * 1024 + 1), "image/png"
            )

        assert exc_info.value.code == ErrorCodes.IMAGE_TOO_LARGE
        storage.upload.assert_not_called()
        assert changes == []

    def test_storage_failure_clears_content(self, image_document, png_bytes):
        storage = MagicMock()
        storage.upload.side_effect = CertificateError(ErrorCodes.UPLOAD_FAILED, "disk full")
        image_document.update_element("logo", {"content": "/files/user-1/old.png"})
        service = ImageService(storage)

        with pytest.raises(CertificateError) as exc_info:
            service.upload_element_image(image_document, "logo", "user-1", png_bytes, "image/png")

        assert exc_info.value.code == ErrorCodes.UPLOAD_FAILED
        assert image_document.get_element("logo").content == ""
        assert storage.upload.call_count == 1

    def test_text_element_rejected(self, image_document, png_bytes):
        service = ImageService(MagicMock())

        with pytest.raises(CertificateError) as exc_info:
            service.upload_element_image(image_document, "label", "user-1", png_bytes, "image/png")

        assert exc_info.value.code == ErrorCodes.CAPABILITY_NOT_SUPPORTED

    def test_missing_element(self, image_document, png_bytes):
        service = ImageService(MagicMock())

        with pytest.raises(CertificateError) as exc_info:
            service.upload_element_image(image_document, "nope", "user-1", png_bytes, "image/png")

        assert exc_info.value.code == ErrorCodes.ELEMENT_NOT_FOUND
