"""
Recipients Routes: 수신자 파일 업로드.

- POST /api/recipients/parse → headers, rows, 매핑 제안, 검증 결과
"""

import asyncio
from typing import Any

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from src.app.deps import CurrentUser, get_current_user, http_error
from src.app.services.recipients import apply_mapping, parse_recipients, suggest_mapping
from src.app.services.validate import template_field_paths
from src.domain.errors import CertificateError
from src.templates.manager import TemplateError

api_router = APIRouter()  # API endpoints


@api_router.post("/parse")
async def parse_recipient_file(
    request: Request,
    file: UploadFile = File(...),
    template_id: str | None = Form(None),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """
    CSV/XLSX 파싱 + 필드 매핑 제안.

    template_id가 있으면 그 템플릿이 쓰는 필드 기준, 없으면 카탈로그 전체 필드 기준.
    """
    data = await file.read()
    state = request.app.state
    try:
        table = await asyncio.to_thread(parse_recipients, data, file.filename or "")

        field_paths: list[str] | None = None
        if template_id:
            template = await asyncio.to_thread(
                state.store.get, template_id, user.id, user.is_admin
            )
            field_paths = template_field_paths(template)
    except (CertificateError, TemplateError) as e:
        raise http_error(e) from e

    field_names = field_paths if field_paths is not None else [f.name for f in state.field_catalog.fields]
    mapping = suggest_mapping(table.headers, field_names)
    validation = state.validation.validate(apply_mapping(table.rows, mapping), field_paths)

    return {
        **table.to_dict(),
        "fields": field_names,
        "mapping": mapping,
        "validation": validation.to_dict(),
    }
