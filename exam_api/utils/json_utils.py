"""JSON helpers for exam files and JSON-in-Text columns."""
import json
import os
from pathlib import Path
from typing import Any


def json_dump(payload: object, pretty: bool = True) -> str:
    """Serialize to JSON keeping non-ASCII (Hindi) text readable."""
    if pretty:
        return json.dumps(payload, ensure_ascii=False, indent=2)
    return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))


def json_load(data: str) -> Any:
    """Deserialize JSON string to object."""
    return json.loads(data)


def json_load_or(raw: str | None, default: Any) -> Any:
    """Decode a stored column value; empty or unreadable values give default."""
    if not raw:
        return default
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return default


def read_json_file(path: Path, default: object) -> object:
    """Read and parse JSON file, return default if not exists."""
    if not path.exists():
        return default
    return json_load(path.read_text(encoding="utf-8"))


def write_json_file(path: Path, payload: object) -> None:
    """Write object as JSON file; readers never see a half-written exam."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    tmp_path.write_text(json_dump(payload), encoding="utf-8")
    os.replace(tmp_path, path)
