"""
인증서 일괄 생성 파이프라인.

규칙:
- 수신자 행을 batch_size 단위로 나누고, 배치 안에서는 순차 생성
- 인증서 1장 끝날 때마다 progress 콜백 {current, total, status}
- fail-fast: 첫 실패에서 중단, 부분 결과 반환 없음 (GENERATION_FAILED + index)
- 결과는 입력 순서 그대로
- Run Log: 성공/실패 모두 저장
"""

import io
import logging
import re
import zipfile
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from src.core.logging import (
    complete_run_log,
    create_run_log,
    record_certificate,
    save_run_log,
)
from src.domain.constants import CERTIFICATE_FILENAME_PREFIX
from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import (
    GenerationProgress,
    GenerationRunLog,
    GenerationSettings,
    RecipientRow,
    Template,
)
from src.render import CertificateRenderer, ImageLoader, get_renderer
from src.render.base import recipient_name

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[GenerationProgress], None]

UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|]')


# =============================================================================
# Helpers
# =============================================================================

def partition(rows: list[RecipientRow], batch_size: int) -> list[list[RecipientRow]]:
    """행을 batch_size 단위로 분할 (마지막 배치는 나머지)."""
    if batch_size < 1:
        raise CertificateError(
            ErrorCodes.INVALID_BATCH_SIZE,
            "batch_size must be positive",
            batch_size=batch_size,
        )
    return [rows[i:i + batch_size] for i in range(0, len(rows), batch_size)]


def certificate_filename(name: str, extension: str, index: int) -> str:
    """
    다운로드 파일명: certificate_<이름, 공백 → _>.<ext>

    이름이 없으면 순번 사용.
    """
    stem = re.sub(r"\s+", "_", name.strip())
    stem = UNSAFE_FILENAME_CHARS.sub("", stem)
    if not stem:
        stem = str(index)
    return f"{CERTIFICATE_FILENAME_PREFIX}_{stem}.{extension}"


def dedupe_filenames(filenames: list[str]) -> list[str]:
    """중복 파일명에 _2, _3 ... 접미사."""
    seen: dict[str, int] = {}
    result = []
    for filename in filenames:
        count = seen.get(filename, 0) + 1
        seen[filename] = count
        if count == 1:
            result.append(filename)
        else:
            stem, _, ext = filename.rpartition(".")
            result.append(f"{stem}_{count}.{ext}")
    return result


@dataclass
class GeneratedCertificate:
    """생성된 인증서 1장."""
    index: int  # 1부터
    recipient_name: str
    filename: str
    data: bytes
    media_type: str

    @property
    def size(self) -> int:
        return len(self.data)


def bundle_zip(certificates: list[GeneratedCertificate]) -> bytes:
    """인증서 목록 → ZIP (파일명 그대로, 입력 순서)."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for certificate in certificates:
            zf.writestr(certificate.filename, certificate.data)
    return buffer.getvalue()


# =============================================================================
# Generator
# =============================================================================

class CertificateGenerator:
    """
    인증서 일괄 생성기.

    Usage:
        generator = CertificateGenerator(settings, image_loader=storage.read)
        certificates = generator.generate(template, rows, on_progress=print)
    """

    def __init__(
        self,
        settings: GenerationSettings | None = None,
        renderer: CertificateRenderer | None = None,
        image_loader: ImageLoader | None = None,
        source_path: Path | None = None,
    ):
        """
        Args:
            settings: 생성 설정 (검증됨)
            renderer: 포맷 렌더러 (None이면 settings.output_format으로 선택)
            image_loader: 이미지 URL → 바이트
            source_path: 템플릿 DOCX 원본 (docxtpl 렌더용)

        Raises:
            CertificateError: INVALID_OUTPUT_FORMAT, INVALID_BATCH_SIZE, INVALID_QUALITY
        """
        self.settings = (settings or GenerationSettings()).validate()
        self.renderer = renderer or get_renderer(
            self.settings.output_format,
            self.settings.quality,
            image_loader,
        )
        self.source_path = source_path

    def generate(
        self,
        template: Template,
        rows: list[RecipientRow],
        on_progress: ProgressCallback | None = None,
    ) -> list[GeneratedCertificate]:
        """
        인증서 일괄 생성.

        Returns:
            입력 순서와 같은 GeneratedCertificate 목록

        Raises:
            CertificateError: RECIPIENTS_INVALID (빈 목록), GENERATION_FAILED
        """
        if not rows:
            raise CertificateError(
                ErrorCodes.RECIPIENTS_INVALID,
                "No recipients to generate certificates for",
            )

        total = len(rows)
        batches = partition(rows, self.settings.batch_size)
        extension = self.renderer.extension
        logger.info(
            f"Generating {total} {extension} certificates for template {template.id} "
            f"in {len(batches)} batches"
        )

        results: list[GeneratedCertificate] = []
        current = 0
        for batch_number, batch in enumerate(batches, start=1):
            logger.debug(f"Batch {batch_number}/{len(batches)} ({len(batch)} rows)")
            for row in batch:
                current += 1
                name = recipient_name(row)
                try:
                    data = self.renderer.render(template, row, self.source_path)
                except Exception as e:
                    logger.error(f"Certificate {current} of {total} failed: {e}")
                    raise CertificateError(
                        ErrorCodes.GENERATION_FAILED,
                        f"Failed to generate certificate {current} of {total}",
                        index=current,
                        recipient=name,
                        cause=getattr(e, "code", type(e).__name__),
                        error=str(e),
                    ) from e

                results.append(
                    GeneratedCertificate(
                        index=current,
                        recipient_name=name,
                        filename=certificate_filename(name, extension, current),
                        data=data,
                        media_type=self.renderer.media_type,
                    )
                )
                if on_progress is not None:
                    on_progress(
                        GenerationProgress(
                            current=current,
                            total=total,
                            status=f"Generating certificate {current} of {total}",
                        )
                    )

        for certificate, filename in zip(
            results, dedupe_filenames([c.filename for c in results]), strict=True
        ):
            certificate.filename = filename
        return results


# =============================================================================
# Run with Run Log
# =============================================================================

def run_generation(
    generator: CertificateGenerator,
    template: Template,
    rows: list[RecipientRow],
    user_id: str,
    logs_dir: Path,
    on_progress: ProgressCallback | None = None,
) -> tuple[list[GeneratedCertificate], GenerationRunLog]:
    """
    생성 실행 + Run Log 저장 (finally에서 보장).

    Raises:
        CertificateError: generate()와 동일 (run log 저장 후 재발생)
    """
    run_log = create_run_log(
        template_id=template.id,
        user_id=user_id,
        output_format=generator.renderer.extension,
        settings=generator.settings.to_dict(),
        total=len(rows),
    )

    success = False
    error_code: str | None = None
    error_context: dict[str, Any] | None = None
    certificates: list[GeneratedCertificate] = []
    try:
        certificates = generator.generate(template, rows, on_progress)
        for certificate in certificates:
            record_certificate(
                run_log,
                index=certificate.index,
                recipient_name=certificate.recipient_name,
                filename=certificate.filename,
                size=certificate.size,
            )
        success = True
    except CertificateError as e:
        error_code = e.code
        error_context = e.to_dict()
        raise
    finally:
        complete_run_log(run_log, success, error_code, error_context)
        save_run_log(run_log, logs_dir)

    return certificates, run_log
