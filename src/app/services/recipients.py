"""
Recipient Service: CSV/XLSX → 헤더 + 행, 필드 매핑.

규칙:
- 첫 행 = 헤더, 빈 줄 생략
- 셀 값은 모두 문자열 (None → "")
- 매핑 제안: 필드 경로 전체 또는 마지막 조각이 헤더에 포함되면 매칭 (대소문자 무시)
"""

import csv
import io
import logging
from dataclasses import dataclass, field
from typing import Any

from openpyxl import load_workbook

from src.domain.errors import CertificateError, ErrorCodes
from src.domain.schemas import RecipientRow

logger = logging.getLogger(__name__)

CSV_EXTENSIONS = (".csv",)
XLSX_EXTENSIONS = (".xlsx", ".xlsm")
MAX_RECIPIENTS = 10_000


@dataclass
class RecipientTable:
    """파싱된 수신자 표."""
    headers: list[str]
    rows: list[RecipientRow] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": list(self.headers),
            "rows": [dict(r) for r in self.rows],
            "count": len(self.rows),
        }


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value).strip()


def _build_table(raw_rows: list[list[str]]) -> RecipientTable:
    rows = [r for r in raw_rows if any(cell.strip() for cell in r)]
    if not rows:
        raise CertificateError(
            ErrorCodes.RECIPIENTS_INVALID,
            "Recipient file has no header row",
        )

    headers = [h.strip() for h in rows[0]]
    if not any(headers):
        raise CertificateError(ErrorCodes.RECIPIENTS_INVALID, "Header row is empty")
    duplicates = sorted({h for h in headers if h and headers.count(h) > 1})
    if duplicates:
        raise CertificateError(
            ErrorCodes.RECIPIENTS_INVALID,
            "Header row contains duplicate columns",
            duplicates=duplicates,
        )
    if len(rows) - 1 > MAX_RECIPIENTS:
        raise CertificateError(
            ErrorCodes.RECIPIENTS_INVALID,
            f"Too many recipients (max {MAX_RECIPIENTS})",
            count=len(rows) - 1,
        )

    table = RecipientTable(headers=headers)
    for raw in rows[1:]:
        record = {}
        for index, header in enumerate(headers):
            if not header:
                continue
            record[header] = raw[index].strip() if index < len(raw) else ""
        table.rows.append(record)
    return table


def parse_csv(data: bytes) -> RecipientTable:
    """
    CSV 파싱 (UTF-8, BOM 허용).

    Raises:
        CertificateError: RECIPIENTS_UNREADABLE, RECIPIENTS_INVALID
    """
    try:
        text = data.decode("utf-8-sig")
        raw_rows = list(csv.reader(io.StringIO(text)))
    except (UnicodeDecodeError, csv.Error) as e:
        raise CertificateError(
            ErrorCodes.RECIPIENTS_UNREADABLE,
            "Could not read CSV file",
            error=str(e),
        ) from e
    return _build_table(raw_rows)


def parse_xlsx(data: bytes) -> RecipientTable:
    """
    XLSX 파싱 (첫 번째 시트).

    Raises:
        CertificateError: RECIPIENTS_UNREADABLE, RECIPIENTS_INVALID
    """
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as e:
        raise CertificateError(
            ErrorCodes.RECIPIENTS_UNREADABLE,
            "Could not read XLSX file",
            error=str(e),
        ) from e

    try:
        ws = wb.worksheets[0]
        raw_rows = [[_cell_text(v) for v in row] for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()
    return _build_table(raw_rows)


def parse_recipients(data: bytes, filename: str) -> RecipientTable:
    """
    확장자로 파서 선택.

    Raises:
        CertificateError: RECIPIENTS_UNREADABLE (지원하지 않는 형식 포함)
    """
    lowered = (filename or "").lower()
    if lowered.endswith(CSV_EXTENSIONS):
        table = parse_csv(data)
    elif lowered.endswith(XLSX_EXTENSIONS):
        table = parse_xlsx(data)
    else:
        raise CertificateError(
            ErrorCodes.RECIPIENTS_UNREADABLE,
            "Recipient file must be .csv or .xlsx",
            filename=filename,
        )
    logger.info(f"Parsed {len(table.rows)} recipients from {filename}")
    return table


# =============================================================================
# Field Mapping
# =============================================================================

def suggest_mapping(headers: list[str], field_names: list[str]) -> dict[str, str]:
    """
    필드 → 헤더 매핑 제안.

    순서: 경로 전체 일치 → 헤더가 마지막 경로 조각을 포함 (대소문자 무시).
    """
    mapping: dict[str, str] = {}
    for name in field_names:
        lowered = name.lower()
        leaf = lowered.rsplit(".", 1)[-1]
        match = next((h for h in headers if h.lower() == lowered), None)
        if match is None:
            match = next((h for h in headers if leaf and leaf in h.lower()), None)
        if match is not None:
            mapping[name] = match
    return mapping


def apply_mapping(rows: list[RecipientRow], mapping: dict[str, str]) -> list[RecipientRow]:
    """
    매핑 적용: 원래 열 + 필드 경로 키 추가.

    Raises:
        CertificateError: RECIPIENTS_INVALID (매핑된 열이 없음)
    """
    if not mapping:
        return [dict(r) for r in rows]

    headers = set(rows[0]) if rows else set()
    missing = sorted(h for h in mapping.values() if rows and h not in headers)
    if missing:
        raise CertificateError(
            ErrorCodes.RECIPIENTS_INVALID,
            "Mapped columns are not present in the data",
            columns=missing,
        )

    mapped = []
    for row in rows:
        record = dict(row)
        for field_name, header in mapping.items():
            record[field_name] = row.get(header, "")
        mapped.append(record)
    return mapped
