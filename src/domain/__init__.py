"""Domain layer: errors, constants and schemas."""

from .errors import CertificateError, ErrorCodes
from .schemas import (
    Element,
    GenerationProgress,
    GenerationRunLog,
    GenerationSettings,
    ImageElement,
    PlaceholderElement,
    Position,
    Properties,
    QualitySettings,
    ShapeElement,
    Template,
    TextElement,
)

__all__ = [
    "CertificateError",
    "ErrorCodes",
    "Element",
    "TextElement",
    "ImageElement",
    "ShapeElement",
    "PlaceholderElement",
    "Position",
    "Properties",
    "Template",
    "GenerationSettings",
    "QualitySettings",
    "GenerationProgress",
    "GenerationRunLog",
]
