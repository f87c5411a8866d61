"""
FastAPI Routes.

API 라우트 (REST): fields, templates (CRUD + 편집 세션), recipients, generate
"""

from . import fields, generate, recipients, templates

__all__ = ["fields", "generate", "recipients", "templates"]
