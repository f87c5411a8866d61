"""
FastAPI 애플리케이션 진입점.

실행:
- 개발: uv run uvicorn src.app.main:app --reload
- 프로덕션: uv run uvicorn src.app.main:app
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import yaml
from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles

# Routes
from src.app.routes import fields, generate, recipients, templates
from src.app.services.images import ImageService, ImageUploadConfig
from src.app.services.storage import ObjectStorage
from src.app.services.validate import ValidationService
from src.domain.constants import AUTOSAVE_DELAY_SECONDS, AUTOSAVE_MAX_RETRIES
from src.templates.manager import TemplateStore
from src.templates.placeholders import FieldCatalog
from src.templates.session import SessionRegistry

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent.parent

# =============================================================================
# Configuration
# =============================================================================


def load_config(config_path: Path | None = None) -> dict:
    """설정 파일 로드."""
    if config_path is None:
        # 프로젝트 루트의 default.yaml
        config_path = PROJECT_ROOT / "default.yaml"

    if not config_path.exists():
        return {}

    with open(config_path, encoding="utf-8") as f:
        data: dict[Any, Any] = yaml.safe_load(f) or {}
        return data


def resolve_path(value: str | None, default: str) -> Path:
    """설정 경로 → 절대 경로 (상대 경로는 프로젝트 루트 기준)."""
    path = Path(value or default)
    return path if path.is_absolute() else PROJECT_ROOT / path


def configure_logging(config: dict[str, Any]) -> None:
    """logging 섹션 적용 (level, format)."""
    section = config.get("logging", {})
    logging.basicConfig(
        level=getattr(logging, str(section.get("level", "INFO")).upper(), logging.INFO),
        format=section.get("format", "%(asctime)s %(levelname)s [%(name)s] %(message)s"),
    )


# =============================================================================
# Lifespan
# =============================================================================


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    애플리케이션 생명주기 관리.

    시작 시: 설정 로드, 저장소/카탈로그/세션 레지스트리 초기화
    종료 시: 열린 편집 세션 flush
    """
    # Startup
    config = getattr(app.state, "config", None) or load_config()
    app.state.config = config
    configure_logging(config)

    storage_cfg = config.get("storage", {})
    autosave_cfg = config.get("autosave", {})
    editor_cfg = config.get("editor", {})

    app.state.templates_root = resolve_path(storage_cfg.get("templates_root"), "templates")
    app.state.files_root = resolve_path(storage_cfg.get("files_root"), "files")
    app.state.logs_dir = resolve_path(storage_cfg.get("logs_root"), "logs")
    app.state.files_root.mkdir(parents=True, exist_ok=True)

    app.state.store = TemplateStore(app.state.templates_root)
    app.state.field_catalog = FieldCatalog.load(
        resolve_path(config.get("app", {}).get("fields_path"), "fields.yaml")
    )
    app.state.validation = ValidationService(app.state.field_catalog)
    app.state.storage = ObjectStorage(app.state.files_root)
    app.state.images = ImageService(app.state.storage, ImageUploadConfig.from_config(config))
    app.state.sessions = SessionRegistry(
        app.state.store,
        app.state.field_catalog,
        autosave_delay=autosave_cfg.get("delay_seconds", AUTOSAVE_DELAY_SECONDS),
        max_retries=autosave_cfg.get("max_retries", AUTOSAVE_MAX_RETRIES),
        retry_delay=autosave_cfg.get("retry_delay_seconds", 0.5),
        grid_size=editor_cfg.get("grid_size"),
    )
    logger.info(
        f"Certificate studio started (templates={app.state.templates_root}, "
        f"fields={len(app.state.field_catalog)})"
    )

    yield

    # Shutdown
    await app.state.sessions.close_all()
    logger.info("Certificate studio stopped")


# =============================================================================
# App Instance
# =============================================================================


def create_app(config: dict[str, Any] | None = None) -> FastAPI:
    """
    앱 생성.

    Args:
        config: 설정 dict (None이면 lifespan에서 default.yaml 로드, 테스트용 주입)
    """
    application = FastAPI(
        title="Certificate Studio",
        description="인증서 템플릿 편집 + 수신자 일괄 생성",
        version="0.1.0",
        lifespan=lifespan,
    )
    if config is not None:
        application.state.config = config

    # 업로드 파일 공개 URL (/files/<user_id>/<path>)
    files_dir = resolve_path((config or load_config()).get("storage", {}).get("files_root"), "files")
    files_dir.mkdir(parents=True, exist_ok=True)
    application.mount("/files", StaticFiles(directory=files_dir), name="files")

    # API 라우트
    application.include_router(fields.api_router, prefix="/api/fields", tags=["Fields API"])
    application.include_router(
        templates.api_router, prefix="/api/templates", tags=["Templates API"]
    )
    application.include_router(
        recipients.api_router, prefix="/api/recipients", tags=["Recipients API"]
    )
    application.include_router(generate.api_router, prefix="/api/generate", tags=["Generate API"])

    @application.get("/health")
    async def health() -> dict[str, str]:
        """헬스 체크."""
        return {"status": "ok"}

    return application


app = create_app()


# =============================================================================
# CLI Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.app.main:app",
        host="127.0.0.1",
        port=8000,
        reload=True,
    )
