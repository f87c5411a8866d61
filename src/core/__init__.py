"""
Core layer: 저장/생성 안전 핵심 모듈.

역할:
- 원자적 쓰기, ID, 해시, run log
- autosave (debounce 저장), generation (일괄 생성)
"""

from .atomic import atomic_write_bytes, atomic_write_json
from .hashing import compute_template_hash
from .ids import generate_element_id, generate_run_id, generate_template_id
from .logging import complete_run_log, create_run_log, save_run_log

__all__ = [
    # atomic
    "atomic_write_json",
    "atomic_write_bytes",
    # ids
    "generate_template_id",
    "generate_element_id",
    "generate_run_id",
    # hashing
    "compute_template_hash",
    # logging
    "create_run_log",
    "complete_run_log",
    "save_run_log",
]
