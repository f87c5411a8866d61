"""
Fields Routes: placeholder 피커용 필드 카탈로그.

- GET /api/fields → 카테고리별 그룹
"""

from typing import Any

from fastapi import APIRouter, Request

api_router = APIRouter()  # API endpoints


@api_router.get("")
async def list_fields(request: Request) -> dict[str, Any]:
    """필드 카탈로그 (카테고리별 그룹 + 필수 필드 목록)."""
    catalog = request.app.state.field_catalog
    return {
        "groups": catalog.grouped(),
        "required": [f.name for f in catalog.required()],
        "count": len(catalog),
    }
