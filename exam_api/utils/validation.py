"""Validation utilities."""
from pathlib import Path

from exam_api.errors import NotFoundError, ValidationError
from exam_api.utils.paths import exam_payload_path


def validate_id(name: str, value: str) -> str:
    """Validate ID string (no path traversal)."""
    if not isinstance(value, str):
        raise ValidationError(f"{name} is required")
    cleaned = value.strip()
    if not cleaned:
        raise ValidationError(f"{name} is required")
    if Path(cleaned).name != cleaned or "/" in cleaned or "\\" in cleaned:
        raise ValidationError(f"Invalid {name}")
    return cleaned


def validate_exam_exists(exam_id: str) -> None:
    """Validate that exam exists."""
    if not exam_payload_path(exam_id).exists():
        raise NotFoundError("Exam not found")
