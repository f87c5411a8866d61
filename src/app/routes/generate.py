"""
Generate Routes: 인증서 일괄 생성.

- POST /api/generate → 템플릿 + 수신자 행 + 설정 → ZIP
- GET /api/generate/runs → 사용자 run log 목록
- GET /api/generate/runs/{run_id} → run log 상세

규칙:
- 수신자 검증 실패는 생성 전에 400
- 생성은 워커 스레드 (asyncio.to_thread), 취소 없음
- Run Log: 항상 저장 (성공/실패 모두, run_generation의 finally)
"""

import asyncio
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel, Field

from src.app.deps import CurrentUser, get_current_user, http_error
from src.app.services.recipients import apply_mapping
from src.app.services.validate import template_field_paths
from src.core.generation import CertificateGenerator, bundle_zip, run_generation
from src.core.logging import list_run_logs, load_run_log
from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import GenerationProgress, GenerationSettings
from src.templates.manager import TemplateError

logger = logging.getLogger(__name__)

# Routers
api_router = APIRouter()  # API endpoints


class GenerateRequest(BaseModel):
    template_id: str
    rows: list[dict[str, Any]]
    mapping: dict[str, str] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)


def _default_settings(config: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """default.yaml generation 섹션 + 요청 설정 병합."""
    base = dict(config.get("generation", {}))
    quality = dict(base.get("quality", {}))
    quality.update(overrides.get("quality") or {})
    merged = {**base, **{k: v for k, v in overrides.items() if k != "quality"}}
    merged["quality"] = quality
    return merged


# =============================================================================
# API Routes
# =============================================================================

@api_router.post("")
async def generate_certificates(
    request: Request,
    body: GenerateRequest,
    user: CurrentUser = Depends(get_current_user),
) -> Response:
    """
    인증서 일괄 생성 → ZIP 다운로드.

    열린 편집 세션이 있으면 먼저 flush해서 최신 상태로 생성.

    Returns:
        application/zip (X-Run-Id, X-Certificate-Count 헤더)
    """
    state = request.app.state

    session = state.sessions.get(body.template_id, user.id)
    if session is not None:
        await session.autosave.flush()

    try:
        settings = GenerationSettings.from_dict(_default_settings(state.config, body.settings))
        template = await asyncio.to_thread(
            state.store.get, body.template_id, user.id, user.is_admin
        )
        rows = apply_mapping(
            [{str(k): "" if v is None else str(v) for k, v in row.items()} for row in body.rows],
            body.mapping,
        )
    except (CertificateError, TemplateError) as e:
        raise http_error(e) from e

    validation = state.validation.validate(rows, template_field_paths(template))
    if not validation.valid:
        raise HTTPException(
            status_code=400,
            detail={
                "code": ErrorCodes.RECIPIENTS_INVALID,
                "message": "Recipient data failed validation",
                **validation.to_dict(),
            },
        )

    def _progress(progress: GenerationProgress) -> None:
        logger.debug(f"{progress.status} ({progress.percentage}%)")

    try:
        generator = CertificateGenerator(
            settings,
            image_loader=state.storage.read,
            source_path=state.store.source_path(template),
        )
        certificates, run_log = await asyncio.to_thread(
            run_generation,
            generator,
            template,
            rows,
            user.id,
            state.logs_dir,
            _progress,
        )
    except CertificateError as e:
        raise http_error(e) from e

    archive = bundle_zip(certificates)
    filename = f"certificates_{template.id}.zip"
    return Response(
        content=archive,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{filename}"',
            "X-Run-Id": run_log.run_id,
            "X-Certificate-Count": str(len(certificates)),
        },
    )


@api_router.get("/runs")
async def list_runs(
    request: Request,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """사용자 run log 목록 (최신순, 요약)."""
    runs = []
    for log_path in list_run_logs(request.app.state.logs_dir, user.id):
        try:
            data = json.loads(log_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Skipping unreadable run log {log_path.name}: {e}")
            continue
        runs.append({
            "run_id": data.get("run_id"),
            "template_id": data.get("template_id"),
            "output_format": data.get("output_format"),
            "result": data.get("result"),
            "total": data.get("total"),
            "generated": data.get("generated"),
            "started_at": data.get("started_at"),
            "finished_at": data.get("finished_at"),
        })
    return {"runs": runs, "count": len(runs)}


@api_router.get("/runs/{run_id}")
async def get_run(
    request: Request,
    run_id: str,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    """run log 상세."""
    data = load_run_log(request.app.state.logs_dir, user.id, run_id)
    if data is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "RUN_NOT_FOUND", "message": f"Run '{run_id}' not found"},
        )
    return data
