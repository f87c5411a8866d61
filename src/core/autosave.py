"""
Autosave 컨트롤러: debounce 저장 + 동일성 체크 + 재시도.

규칙:
- 로컬 상태가 화면 기준 (optimistic), 서버 응답 대기 없이 편집 계속
- 변경마다 타이머 취소 후 재예약 (기본 2초)
- 마지막 저장 스냅샷과 해시가 같으면 쓰기 생략
- 쓰기는 동시에 최대 1개, 진행 중 들어온 변경은 끝난 뒤 이어서 저장
- 실패: 지수 백오프 재시도 후에도 실패하면 dirty + last_error 유지
  로컬 상태 롤백 없음, 다음 변경 또는 flush 때 다시 저장
- 종료(aclose): 타이머 취소 후 대기 중인 변경 flush
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import Any

from src.core.hashing import compute_template_hash
from src.domain.constants import AUTOSAVE_DELAY_SECONDS, AUTOSAVE_MAX_RETRIES
from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import Template
from src.utils.retry import retry_with_exponential_backoff

logger = logging.getLogger(__name__)

SaveFunc = Callable[[Template], Awaitable[Template]]
SavedCallback = Callable[[Template], None]

# 코드가 있는 에러 중 재시도할 것 (lock 경합 등), 나머지는 입력 오류
RETRYABLE_CODES = frozenset({"TEMPLATE_LOCK_TIMEOUT", ErrorCodes.SAVE_FAILED})


def is_retryable(error: Exception) -> bool:
    """코드 없는 에러(OSError 등)와 RETRYABLE_CODES만 재시도."""
    code = getattr(error, "code", None)
    return code is None or code in RETRYABLE_CODES


class AutosaveController:
    """
    템플릿 1개에 대한 debounce 저장기.

    Usage:
        autosave = AutosaveController(save_func, template)
        document.add_listener(autosave.schedule)
        ...
        await autosave.aclose()
    """

    def __init__(
        self,
        save_func: SaveFunc,
        initial: Template,
        delay: float = AUTOSAVE_DELAY_SECONDS,
        max_retries: int = AUTOSAVE_MAX_RETRIES,
        retry_delay: float = 0.5,
        on_saved: SavedCallback | None = None,
    ):
        self._save_func = save_func
        self.delay = delay
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.on_saved = on_saved

        self.template_id = initial.id
        self._persisted_hash = compute_template_hash(initial.to_dict())
        self._pending: Template | None = None
        self._generation = 0
        self._timer: asyncio.TimerHandle | None = None
        self._write_task: asyncio.Task[None] | None = None
        self._closed = False

        self.dirty = False
        self.last_error: CertificateError | None = None
        self.write_count = 0
        self.last_saved_at: str | None = None

    # =========================================================================
    # Scheduling
    # =========================================================================

    def schedule(self, template: Template) -> None:
        """
        변경 알림 (document listener).

        이벤트 루프 안에서 동기 호출. 스냅샷을 떠두고 타이머 재예약.
        """
        if self._closed:
            logger.warning(f"Autosave closed, change ignored: {self.template_id}")
            return

        self._pending = template.copy()
        self._generation += 1
        self.dirty = True

        if self._timer is not None:
            self._timer.cancel()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.delay, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        self._ensure_writer()

    def _ensure_writer(self) -> asyncio.Task[None] | None:
        """쓰기 태스크가 없으면 시작 (진행 중이면 그 태스크가 pending까지 처리)."""
        if self._write_task is not None and not self._write_task.done():
            return self._write_task
        if self._pending is None:
            return None
        self._write_task = asyncio.get_running_loop().create_task(self._write_pending())
        return self._write_task

    # =========================================================================
    # Writing
    # =========================================================================

    async def _write_pending(self) -> None:
        while self._pending is not None:
            snapshot = self._pending
            generation = self._generation
            self._pending = None

            if compute_template_hash(snapshot.to_dict()) == self._persisted_hash:
                logger.debug(f"Autosave skipped (unchanged): {self.template_id}")
                self.last_error = None
                self.dirty = self._pending is not None
                continue

            try:
                saved = await retry_with_exponential_backoff(
                    lambda: self._save_func(snapshot),
                    max_retries=self.max_retries,
                    initial_delay=self.retry_delay,
                    retry_if=is_retryable,
                    label=f"autosave {self.template_id}",
                )
            except Exception as e:
                self.last_error = CertificateError(
                    ErrorCodes.SAVE_FAILED,
                    str(e),
                    template_id=self.template_id,
                    cause=getattr(e, "code", None),
                )
                self.dirty = True
                if self._pending is None:
                    self._pending = snapshot
                logger.error(
                    f"Autosave failed for {self.template_id}, keeping local state: {e}"
                )
                return

            self._persisted_hash = compute_template_hash(saved.to_dict())
            self.write_count += 1
            self.last_error = None
            self.last_saved_at = datetime.now(UTC).isoformat()
            self.dirty = self._pending is not None
            logger.info(f"Autosaved template {self.template_id} (write #{self.write_count})")

            # 저장 중 새 편집이 없을 때만 서버 레코드 채택
            if self.on_saved is not None and generation == self._generation:
                self.on_saved(saved)

    async def flush(self) -> bool:
        """
        타이머 무시하고 즉시 저장.

        Returns:
            저장 후 dirty가 아니면 True
        """
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

        # 진행 중인 쓰기 완료 대기 후 남은 pending 처리
        while True:
            task = self._ensure_writer()
            if task is None:
                break
            await task
            if self.last_error is not None and self._pending is not None:
                break

        return not self.dirty

    async def aclose(self) -> bool:
        """종료: 대기 중인 변경 flush 후 닫음."""
        result = await self.flush()
        self._closed = True
        return result

    def discard(self) -> None:
        """저장 없이 닫음 (템플릿 삭제 시)."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._write_task is not None and not self._write_task.done():
            self._write_task.cancel()
        self._pending = None
        self.dirty = False
        self._closed = True

    # =========================================================================
    # Status
    # =========================================================================

    @property
    def state(self) -> str:
        if self._write_task is not None and not self._write_task.done():
            return "saving"
        if self._timer is not None:
            return "pending"
        if self.last_error is not None:
            return "error"
        if self.dirty:
            return "pending"
        return "saved"

    def status(self) -> dict[str, Any]:
        return {
            "state": self.state,
            "dirty": self.dirty,
            "write_count": self.write_count,
            "last_saved_at": self.last_saved_at,
            "last_error": self.last_error.to_dict() if self.last_error else None,
        }
