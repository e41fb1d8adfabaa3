from datetime import datetime, timezone
from pathlib import Path

import pytest

from exam_api.errors import NotFoundError, ValidationError
from exam_api.services import exam_service
from exam_api.utils import json_utils, paths, time_utils, validation

from conftest import exam_payload


def test_validate_id_blocks_traversal() -> None:
    assert validation.validate_id("examId", "  mock-1 ") == "mock-1"
    with pytest.raises(ValidationError):
        validation.validate_id("examId", "../secret")
    with pytest.raises(ValidationError):
        validation.validate_id("examId", "")


def test_validate_exam_exists(data_dir: Path, exam) -> None:
    validation.validate_exam_exists("mock-1")
    with pytest.raises(NotFoundError):
        validation.validate_exam_exists("other")


def test_json_round_trip(tmp_path: Path) -> None:
    payload = {"message": "नमस्ते", "count": 2}
    dumped = json_utils.json_dump(payload)
    assert "नमस्ते" in dumped
    assert json_utils.json_load(dumped) == payload

    path = tmp_path / "payload.json"
    json_utils.write_json_file(path, payload)
    assert json_utils.read_json_file(path, {}) == payload
    assert json_utils.read_json_file(tmp_path / "missing.json", {"fallback": True}) == {"fallback": True}


def test_time_utils() -> None:
    now = time_utils.utc_now()
    assert now.tzinfo is not None

    naive = datetime(2026, 1, 1, 12, 0, 0)
    assert time_utils.as_utc(naive).tzinfo == timezone.utc

    start = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert time_utils.elapsed_seconds(start, datetime(2026, 1, 1, 12, 0, 59, 900000)) == 59
    assert time_utils.elapsed_seconds(start, datetime(2026, 1, 1, 11, 0, 0)) == 0


def test_json_load_or_tolerates_bad_columns() -> None:
    assert json_utils.json_load_or(None, []) == []
    assert json_utils.json_load_or("{broken", {}) == {}
    assert json_utils.json_load_or(json_utils.json_dump(["a"], pretty=False), []) == ["a"]


def test_exam_payload_is_stored_under_data_dir(data_dir: Path, exam) -> None:
    assert paths.exam_payload_path("mock-1") == data_dir / "mock-1" / "exam.json"
    loaded = exam_service.load_exam("mock-1")
    assert loaded.total_questions == 5
    assert loaded.marks_for(loaded.sections[1], loaded.sections[1].questions[0]) == (1, 0.25)


def test_invalid_exam_payload_is_rejected() -> None:
    payload = exam_payload()
    payload["sections"][0]["questions"][0]["correctAnswers"] = ["z"]
    with pytest.raises(ValidationError) as excinfo:
        exam_service.parse_exam_payload(payload)
    assert "sections.0.questions.0" in excinfo.value.detail

    duplicate = exam_payload()
    duplicate["sections"][1]["questions"][0]["id"] = "q1"
    with pytest.raises(ValidationError):
        exam_service.parse_exam_payload(duplicate)


def test_single_question_needs_one_answer() -> None:
    payload = exam_payload()
    payload["sections"][0]["questions"][0]["correctAnswers"] = ["a", "b"]
    with pytest.raises(ValidationError):
        exam_service.parse_exam_payload(payload)


def test_localized_falls_back_to_english() -> None:
    assert exam_service.localized("Hello", "नमस्ते", "hi") == "नमस्ते"
    assert exam_service.localized("Hello", None, "hi") == "Hello"
    assert exam_service.localized("Hello", "नमस्ते", "en") == "Hello"
