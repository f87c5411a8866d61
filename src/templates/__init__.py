"""
Templates layer: 템플릿 문서 모델 + 편집 모듈.

역할:
- 저장소 CRUD (manager.py)
- 문서 변경 계약 (document.py)
- 드래그/리사이즈/회전/편집 (interaction.py)
- 줌/그리드/선택 (canvas.py)
- placeholder 토큰 + 필드 카탈로그 (placeholders.py)
- 편집 세션 + autosave 연결 (session.py)

주의: 폴더 구분
- src/templates/ → 코드 (이 모듈)
- templates/ (루트) → 데이터 저장소
"""

from .canvas import CanvasState
from .document import TemplateDocument, create_element
from .interaction import TransformController
from .manager import TemplateError, TemplatePage, TemplateStore
from .placeholders import FieldCatalog, FieldDefinition

__all__ = [
    "TemplateStore",
    "TemplateError",
    "TemplatePage",
    "TemplateDocument",
    "create_element",
    "TransformController",
    "CanvasState",
    "FieldCatalog",
    "FieldDefinition",
]
