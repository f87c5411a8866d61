"""
재시도 로직 유틸리티.

autosave 저장 실패 시 지수 백오프 재시도에 사용.
검증 에러(CertificateError 중 입력 오류)는 재시도 대상이 아님 → exceptions, retry_if로 제한.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def retry_with_exponential_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 2,
    initial_delay: float = 0.5,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
    label: str = "operation",
) -> T:
    """
    지수 백오프를 사용한 재시도.

    Args:
        func: 재시도할 비동기 함수 (인자 없음)
        max_retries: 최대 재시도 횟수 (총 시도 = max_retries + 1)
        initial_delay: 초기 대기 시간(초)
        max_delay: 최대 대기 시간(초)
        exponential_base: 지수 백오프 기수
        exceptions: 재시도할 예외 타입들
        retry_if: False를 반환하면 남은 시도 없이 즉시 재발생
        label: 로그용 이름

    Returns:
        func의 반환값

    Raises:
        마지막 시도에서 발생한 예외
    """
    delay = initial_delay
    attempts = max_retries + 1

    for attempt in range(attempts):
        try:
            result = await func()
            if attempt > 0:
                logger.info(f"{label}: retry succeeded on attempt {attempt + 1}/{attempts}")
            return result

        except exceptions as e:
            if retry_if is not None and not retry_if(e):
                logger.error(f"{label}: non-retryable error: {e}")
                raise

            if attempt == max_retries:
                logger.error(f"{label}: all {attempts} attempts failed. Last error: {e}")
                raise

            logger.warning(
                f"{label}: attempt {attempt + 1}/{attempts} failed: {e}. "
                f"Retrying in {delay:.1f}s..."
            )
            await asyncio.sleep(delay)
            delay = min(delay * exponential_base, max_delay)

    msg = "Unexpected retry logic error"
    raise RuntimeError(msg)
