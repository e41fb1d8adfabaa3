"""Utility modules."""
from exam_api.utils.json_utils import (
    json_dump,
    json_load,
    json_load_or,
    read_json_file,
    write_json_file,
)
from exam_api.utils.paths import exam_dir, exam_payload_path
from exam_api.utils.time_utils import as_utc, elapsed_seconds, utc_now
from exam_api.utils.validation import validate_exam_exists, validate_id

__all__ = [
    "json_dump",
    "json_load",
    "json_load_or",
    "read_json_file",
    "write_json_file",
    "exam_dir",
    "exam_payload_path",
    "as_utc",
    "elapsed_seconds",
    "utc_now",
    "validate_exam_exists",
    "validate_id",
]
