"""
원자적 파일 쓰기: template.json, run log, 업로드 파일.

파일시스템 안정성 (best-effort):
- 중간 상태 없음: temp → rename
- fsync로 가능한 환경에서 내구성 강화 (파일 + 디렉토리)
- fsync 실패 시 경고 남기고 계속 진행
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


def _fsync_dir(dir_path: Path) -> None:
    """
    디렉토리 fsync (가능한 환경에서).

    Args:
        dir_path: fsync할 디렉토리 경로
    """
    try:
        dir_fd = os.open(str(dir_path), os.O_RDONLY | os.O_DIRECTORY)
        try:
            os.fsync(dir_fd)
        finally:
            os.close(dir_fd)
    except (OSError, AttributeError) as e:
        logger.warning(
            f"Directory fsync failed for {dir_path}: {e}. "
            f"Rename durability may not be guaranteed."
        )


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    원자적 바이너리 쓰기.

    실패 시 temp 파일 삭제, 기존 파일은 그대로 유지.

    Args:
        path: 저장할 파일 경로
        data: 파일 내용
    """
    dir_path = path.parent
    dir_path.mkdir(parents=True, exist_ok=True)

    temp_path = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="wb",
            dir=dir_path,
            suffix=".tmp",
            delete=False,
        ) as f:
            temp_path = Path(f.name)
            f.write(data)
            f.flush()
            try:
                os.fsync(f.fileno())
            except OSError as e:
                logger.warning(
                    f"File fsync failed for {path}: {e}. "
                    f"Data may not be durable on power loss."
                )

        os.replace(temp_path, path)
        _fsync_dir(dir_path)

    except Exception:
        if temp_path and temp_path.exists():
            try:
                temp_path.unlink()
            except OSError:
                pass
        raise


def atomic_write_json(path: Path, data: dict[str, Any]) -> None:
    """
    원자적 JSON 쓰기 (indent=2, ensure_ascii=False).

    Args:
        path: 저장할 파일 경로
        data: JSON 직렬화할 데이터
    """
    payload = json.dumps(data, indent=2, ensure_ascii=False)
    atomic_write_bytes(path, payload.encode("utf-8"))
