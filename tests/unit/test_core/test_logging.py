"""
test_logging.py - run log 테스트

DoD:
- 실행마다 run log 1개 (logs/<user_id>/run_<run_id>.json)
- 실패 시 error_code/error_context 기록, 부분 결과 제거
- 안전하지 않은 ID로 로드 시 None
"""

import json
import os
from pathlib import Path

from src.core.logging import (
    complete_run_log,
    create_run_log,
    list_run_logs,
    load_run_log,
    record_certificate,
    save_run_log,
)


def _new_log(total: int = 3):
    return create_run_log(
        template_id="tpl-1",
        user_id="user-1",
        output_format="pdf",
        settings={"batch_size": 10},
        total=total,
    )


class TestCreateRunLog:
    """create_run_log 함수 테스트."""

    def test_initial_state(self):
        run_log = _new_log()

        assert run_log.run_id.startswith("RUN-")
        assert run_log.result == "pending"
        assert run_log.total == 3
        assert run_log.generated == 0
        assert run_log.started_at
        assert run_log.finished_at is None


class TestCompleteRunLog:
    """complete_run_log 함수 테스트."""

    def test_success_keeps_certificates(self):
        run_log = _new_log()
        record_certificate(run_log, 0, "Ada", "certificate_Ada.pdf", 100)
        record_certificate(run_log, 1, "Alan", "certificate_Alan.pdf", 120)

        complete_run_log(run_log, success=True)

        assert run_log.result == "success"
        assert run_log.generated == 2
        assert run_log.finished_at is not None

    def test_failure_clears_partial_results(self):
        run_log = _new_log()
        record_certificate(run_log, 0, "Ada", "certificate_Ada.pdf", 100)

        complete_run_log(
            run_log,
            success=False,
            error_code="GENERATION_FAILED",
            error_context={"index": 1},
        )

        assert run_log.result == "failed"
        assert run_log.certificates == []
        assert run_log.generated == 0
        assert run_log.error_code == "GENERATION_FAILED"
        assert run_log.error_context == {"index": 1}


class TestSaveLoadRunLog:
    """save/load 왕복."""

    def test_save_path_per_user(self, tmp_path: Path):
        run_log = _new_log()

        path = save_run_log(run_log, tmp_path)

        assert path == tmp_path / "user-1" / f"run_{run_log.run_id}.json"
        assert json.loads(path.read_text(encoding="utf-8"))["template_id"] == "tpl-1"

    def test_load(self, tmp_path: Path):
        run_log = _new_log()
        record_certificate(run_log, 0, "Ada", "certificate_Ada.pdf", 100)
        complete_run_log(run_log, success=True)
        save_run_log(run_log, tmp_path)

        loaded = load_run_log(tmp_path, "user-1", run_log.run_id)

        assert loaded["result"] == "success"
        assert loaded["certificates"][0]["recipient_name"] == "Ada"

    def test_load_missing(self, tmp_path: Path):
        assert load_run_log(tmp_path, "user-1", "RUN-missing") is None

    def test_load_rejects_unsafe_ids(self, tmp_path: Path):
        assert load_run_log(tmp_path, "../user-1", "RUN-x") is None
        assert load_run_log(tmp_path, "user-1", "../../secret") is None

    def test_other_user_cannot_see(self, tmp_path: Path):
        run_log = _new_log()
        save_run_log(run_log, tmp_path)

        assert load_run_log(tmp_path, "user-2", run_log.run_id) is None


class TestListRunLogs:
    """list_run_logs 함수 테스트."""

    def test_empty_for_unknown_user(self, tmp_path: Path):
        assert list_run_logs(tmp_path, "nobody") == []

    def test_sorted_by_mtime_descending(self, tmp_path: Path):
        older = save_run_log(_new_log(), tmp_path)
        newer = save_run_log(_new_log(), tmp_path)
        os.utime(older, (1_000_000, 1_000_000))
        os.utime(newer, (2_000_000, 2_000_000))

        assert list_run_logs(tmp_path, "user-1") == [newer, older]

    def test_ignores_non_run_files(self, tmp_path: Path):
        save_run_log(_new_log(), tmp_path)
        (tmp_path / "user-1" / "notes.json").write_text("{}", encoding="utf-8")

        assert len(list_run_logs(tmp_path, "user-1")) == 1
