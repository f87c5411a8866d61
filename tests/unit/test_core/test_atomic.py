"""
test_atomic.py - 원자적 쓰기 테스트
"""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from src.core.atomic import atomic_write_bytes, atomic_write_json


class TestAtomicWrite:
    """atomic_write_bytes / atomic_write_json."""

    def test_writes_and_creates_parent(self, tmp_path: Path):
        path = tmp_path / "nested" / "dir" / "template.json"

        atomic_write_json(path, {"name": "증명서"})

        assert json.loads(path.read_text(encoding="utf-8")) == {"name": "증명서"}

    def test_overwrites(self, tmp_path: Path):
        path = tmp_path / "a.bin"
        atomic_write_bytes(path, b"one")
        atomic_write_bytes(path, b"two")

        assert path.read_bytes() == b"two"

    def test_failure_keeps_original_and_no_temp(self, tmp_path: Path):
        """rename 실패 → 기존 파일 유지, temp 삭제."""
        path = tmp_path / "a.bin"
        atomic_write_bytes(path, b"original")

        with patch("src.core.atomic.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(OSError):
                atomic_write_bytes(path, b"new")

        assert path.read_bytes() == b"original"
        assert list(tmp_path.glob("*.tmp")) == []
