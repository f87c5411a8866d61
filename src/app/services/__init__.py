"""
Application Services.

역할:
- storage: 업로드 파일 저장 + 공개 URL
- images: 요소 이미지 검증/재압축/업로드
- recipients: CSV/XLSX → 수신자 행 + 필드 매핑
- validate: fields.yaml 규칙으로 수신자 행 검증
"""

from .images import ImageService, ImageUploadConfig, validate_and_optimize_image
from .recipients import (
    RecipientTable,
    apply_mapping,
    parse_recipients,
    suggest_mapping,
)
from .storage import ObjectStorage
from .validate import ValidationResult, ValidationService, template_field_paths

__all__ = [
    "ObjectStorage",
    "ImageService",
    "ImageUploadConfig",
    "validate_and_optimize_image",
    "RecipientTable",
    "parse_recipients",
    "suggest_mapping",
    "apply_mapping",
    "ValidationService",
    "ValidationResult",
    "template_field_paths",
]
