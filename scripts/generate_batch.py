#!/usr/bin/env python3
"""
generate_batch.py - 템플릿 JSON + 수신자 CSV/XLSX → 인증서 일괄 생성

동작:
1. 템플릿 JSON 로드 (template.json 레코드 또는 design_data만 있는 파일)
2. 수신자 파일 파싱 + 필드 매핑 (자동 제안 + --map 으로 덮어쓰기)
3. 일괄 생성 (fail-fast), run log 저장
4. 출력: 디렉터리면 파일별 저장, .zip 이면 ZIP 하나

사용법:
    # 기본 (PDF, 디렉터리 출력)
    uv run python scripts/generate_batch.py --template templates/<id>/template.json \\
        --recipients recipients.csv --output out/

    # PPTX ZIP, 매핑 지정
    uv run python scripts/generate_batch.py --template t.json --recipients r.xlsx \\
        --output certificates.zip --format pptx --map recipient.name="Full Name"
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from src.app.services.recipients import apply_mapping, parse_recipients, suggest_mapping
from src.app.services.storage import ObjectStorage
from src.app.services.validate import template_field_paths
from src.core.atomic import atomic_write_bytes
from src.core.generation import CertificateGenerator, bundle_zip, run_generation
from src.domain.errors import CertificateError
from src.domain.schemas import GenerationProgress, GenerationSettings, Template

# 로깅 설정
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def load_template(path: Path) -> Template:
    """
    템플릿 JSON 로드.

    지원 형식:
    1. 저장소 레코드: {"id", "user_id", "name", "design_data", ...}
    2. design_data만: {"elements": [...], "properties": {...}}
    """
    with open(path, encoding="utf-8") as f:
        data: dict[str, Any] = json.load(f)

    if "design_data" not in data:
        data = {"design_data": data}
    record = {"id": path.stem, "user_id": "cli", "name": path.stem, **data}
    return Template.from_dict(record)


def parse_map_args(values: list[str]) -> dict[str, str]:
    """--map field=Header 목록 → dict."""
    mapping = {}
    for value in values:
        field_name, sep, header = value.partition("=")
        if not sep or not field_name.strip():
            raise ValueError(f"--map must be field=Header: {value}")
        mapping[field_name.strip()] = header.strip()
    return mapping


def write_outputs(certificates: list, output: Path) -> list[Path]:
    """출력 경로가 .zip이면 ZIP 1개, 아니면 디렉터리에 파일별 저장."""
    if output.suffix.lower() == ".zip":
        atomic_write_bytes(output, bundle_zip(certificates))
        return [output]

    output.mkdir(parents=True, exist_ok=True)
    written = []
    for certificate in certificates:
        target = output / certificate.filename
        atomic_write_bytes(target, certificate.data)
        written.append(target)
    return written


def main() -> int:
    parser = argparse.ArgumentParser(
        description="템플릿 + 수신자 파일로 인증서 일괄 생성",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--template", type=str, required=True, help="템플릿 JSON 경로")
    parser.add_argument("--recipients", type=str, required=True, help="수신자 CSV/XLSX 경로")
    parser.add_argument(
        "--output",
        type=str,
        default="certificates",
        help="출력 디렉터리 또는 .zip 경로 (기본: certificates)",
    )
    parser.add_argument(
        "--format",
        type=str,
        default="pdf",
        help="출력 형식: pdf, docx, pptx (ppt = pptx)",
    )
    parser.add_argument("--batch-size", type=int, default=10, help="배치 크기 1~100 (기본: 10)")
    parser.add_argument("--dpi", type=int, default=300, help="이미지 DPI 72~600 (기본: 300)")
    parser.add_argument(
        "--image-quality",
        type=float,
        default=0.92,
        help="이미지 품질 0~1 (기본: 0.92)",
    )
    parser.add_argument(
        "--source",
        type=str,
        default=None,
        help="DOCX 원본 (docx 형식일 때 docxtpl 렌더)",
    )
    parser.add_argument(
        "--files-root",
        type=str,
        default="files",
        help="업로드 이미지 루트 (/files/... URL 해석, 기본: files)",
    )
    parser.add_argument(
        "--logs-dir",
        type=str,
        default="logs",
        help="run log 디렉터리 (기본: logs)",
    )
    parser.add_argument(
        "--map",
        action="append",
        default=[],
        metavar="FIELD=HEADER",
        help="필드 매핑 (여러 번 지정 가능)",
    )

    args = parser.parse_args()

    template_path = Path(args.template)
    recipients_path = Path(args.recipients)
    if not template_path.exists():
        logger.error(f"템플릿 없음: {template_path}")
        return 1
    if not recipients_path.exists():
        logger.error(f"수신자 파일 없음: {recipients_path}")
        return 1

    try:
        template = load_template(template_path)
        table = parse_recipients(recipients_path.read_bytes(), recipients_path.name)

        field_names = template_field_paths(template)
        mapping = suggest_mapping(table.headers, field_names)
        mapping.update(parse_map_args(args.map))
        rows = apply_mapping(table.rows, mapping)
        logger.info(f"필드 매핑: {mapping or '(없음)'}")

        settings = GenerationSettings.from_dict({
            "output_format": args.format,
            "batch_size": args.batch_size,
            "quality": {"dpi": args.dpi, "image_quality": args.image_quality},
        })
        storage = ObjectStorage(Path(args.files_root))
        generator = CertificateGenerator(
            settings,
            image_loader=storage.read,
            source_path=Path(args.source) if args.source else None,
        )

        def _progress(progress: GenerationProgress) -> None:
            logger.info(f"{progress.status} ({progress.percentage}%)")

        certificates, run_log = run_generation(
            generator,
            template,
            rows,
            template.user_id,
            Path(args.logs_dir),
            _progress,
        )
    except (CertificateError, ValueError, json.JSONDecodeError) as e:
        logger.error(f"생성 실패: {e}")
        return 1

    written = write_outputs(certificates, Path(args.output))

    logger.info("=" * 50)
    logger.info("생성 결과:")
    logger.info(f"  run_id: {run_log.run_id}")
    logger.info(f"  인증서: {len(certificates)}개 ({settings.output_format})")
    logger.info(f"  출력: {written[0] if len(written) == 1 else Path(args.output)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
