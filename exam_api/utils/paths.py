"""Path utilities for exam payloads."""
from pathlib import Path

from exam_api.config import DATA_DIR


def exam_dir(exam_id: str) -> Path:
    """Get directory for exam."""
    return DATA_DIR / exam_id


def exam_payload_path(exam_id: str) -> Path:
    """Get path to exam payload JSON."""
    return exam_dir(exam_id) / "exam.json"
