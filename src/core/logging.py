"""
Run logging: 인증서 생성 실행 로그

규칙:
- 실행마다 run log 1개 (성공/실패 모두)
- 실패 시 error_code + error_context 필수
- logs/<user_id>/run_<run_id>.json 원자적 저장
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from src.core.atomic import atomic_write_json
from src.core.ids import generate_run_id, is_safe_id
from src.domain.schemas import CertificateEntry, GenerationRunLog

logger = logging.getLogger(__name__)

# =============================================================================
# Run Log Management
# =============================================================================


def create_run_log(
    template_id: str,
    user_id: str,
    output_format: str,
    settings: dict[str, Any],
    total: int,
) -> GenerationRunLog:
    """
    새 GenerationRunLog 생성.

    Args:
        template_id: 템플릿 ID
        user_id: 실행 사용자
        output_format: pdf, docx, pptx
        settings: GenerationSettings.to_dict()
        total: 수신자 수

    Returns:
        초기화된 GenerationRunLog
    """
    return GenerationRunLog(
        run_id=generate_run_id(),
        template_id=template_id,
        user_id=user_id,
        started_at=datetime.now(UTC).isoformat(),
        output_format=output_format,
        settings=settings,
        total=total,
        result="pending",
    )


def record_certificate(
    run_log: GenerationRunLog,
    index: int,
    recipient_name: str,
    filename: str,
    size: int,
) -> None:
    """생성된 인증서 1건 기록."""
    run_log.certificates.append(
        CertificateEntry(
            index=index,
            recipient_name=recipient_name,
            filename=filename,
            size=size,
        )
    )
    run_log.generated = len(run_log.certificates)


def complete_run_log(
    run_log: GenerationRunLog,
    success: bool,
    error_code: str | None = None,
    error_context: dict[str, Any] | None = None,
) -> None:
    """
    GenerationRunLog 완료 처리.

    실패 시 부분 결과는 남기지 않음 (certificates 비움).

    Args:
        run_log: GenerationRunLog 인스턴스
        success: 성공 여부
        error_code: 에러 코드 (실패 시)
        error_context: 에러 컨텍스트 (실패 시)
    """
    run_log.finished_at = datetime.now(UTC).isoformat()
    run_log.result = "success" if success else "failed"

    if not success:
        run_log.certificates = []
        run_log.generated = 0
        run_log.error_code = error_code
        run_log.error_context = error_context


def save_run_log(run_log: GenerationRunLog, logs_dir: Path) -> Path:
    """
    GenerationRunLog를 파일로 저장.

    Args:
        run_log: GenerationRunLog 인스턴스
        logs_dir: logs/ 루트 경로

    Returns:
        저장된 파일 경로
    """
    user_dir = logs_dir / run_log.user_id
    user_dir.mkdir(parents=True, exist_ok=True)
    log_path = user_dir / f"run_{run_log.run_id}.json"
    atomic_write_json(log_path, run_log.to_dict())
    logger.info(f"Run log saved: {log_path} (result={run_log.result})")
    return log_path


def load_run_log(logs_dir: Path, user_id: str, run_id: str) -> dict[str, Any] | None:
    """
    사용자의 run log 로드.

    Returns:
        run log dict, 없으면 None
    """
    if not (is_safe_id(user_id) and is_safe_id(run_id)):
        return None

    log_path = logs_dir / user_id / f"run_{run_id}.json"
    if not log_path.exists():
        return None

    data: dict[str, Any] = json.loads(log_path.read_text(encoding="utf-8"))
    return data


def list_run_logs(logs_dir: Path, user_id: str) -> list[Path]:
    """
    사용자의 run log 파일 목록.

    Returns:
        로그 파일 경로 목록 (최신순)
    """
    user_dir = logs_dir / user_id
    if not is_safe_id(user_id) or not user_dir.exists():
        return []

    logs = list(user_dir.glob("run_*.json"))
    logs.sort(key=lambda p: p.stat().st_mtime, reverse=True)
    return logs
