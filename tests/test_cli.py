import json
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

import cli
from exam_api import database
from exam_api.errors import ValidationError
from exam_api.models.db.enrollment import Enrollment
from exam_api.models.db.user import User
from exam_api.services.auth_service import verify_token
from exam_api.services.exam_service import load_exam

from conftest import exam_payload


@pytest.fixture
def cli_db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'cli.db'}",
        connect_args={"check_same_thread": False},
    )
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    monkeypatch.setattr(database, "engine", engine)
    monkeypatch.setattr(database, "SessionLocal", factory)
    yield factory
    engine.dispose()


def test_import_exam(data_dir, tmp_path, capsys) -> None:
    source = tmp_path / "upload.json"
    source.write_text(json.dumps(exam_payload()), encoding="utf-8")

    cli.main(["import-exam", str(source)])

    assert "Imported exam mock-1 (5 questions)" in capsys.readouterr().out
    assert load_exam("mock-1").total_questions == 5


def test_import_exam_rejects_invalid_payload(data_dir, tmp_path) -> None:
    source = tmp_path / "broken.json"
    source.write_text(json.dumps(exam_payload(sections=[])), encoding="utf-8")

    with pytest.raises(ValidationError):
        cli.main(["import-exam", str(source)])
    assert not (data_dir / "mock-1").exists()


def test_grant_enrollment_creates_user_and_enrollment(cli_db, capsys) -> None:
    cli.main(["grant-enrollment", "--user", "asha", "--series", "series-a", "--days", "30"])
    cli.main(["grant-enrollment", "--user", "asha", "--series", "series-a"])

    assert "Granted asha access to series-a" in capsys.readouterr().out
    with cli_db() as db:
        user = db.execute(select(User).where(User.username == "asha")).scalar_one()
        enrollments = db.execute(
            select(Enrollment).where(Enrollment.user_id == user.id)
        ).scalars().all()
    assert len(enrollments) == 1
    assert enrollments[0].is_active
    assert enrollments[0].valid_until is None


def test_issue_token_and_refresh_rankings(cli_db, capsys) -> None:
    cli.main(["issue-token", "--user", "asha", "--minutes", "5"])
    token = capsys.readouterr().out.strip()

    with cli_db() as db:
        user = db.execute(select(User).where(User.username == "asha")).scalar_one()
    assert verify_token(token)["sub"] == str(user.id)

    cli.main(["refresh-rankings"])
    assert capsys.readouterr().out == ""
