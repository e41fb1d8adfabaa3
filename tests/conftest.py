from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import exam_api.models.db  # noqa: F401
from exam_api.database import Base
from exam_api.models.db.enrollment import Enrollment
from exam_api.models.db.user import User
from exam_api.models.exams import ExamDefinition
from exam_api.services.exam_service import save_exam_payload
from exam_api.utils import paths

START = datetime(2026, 3, 1, 9, 0, 0, tzinfo=timezone.utc)


def exam_payload(**overrides: object) -> dict[str, object]:
    """Two sections, five questions, 60 minutes."""
    payload: dict[str, object] = {
        "id": "mock-1",
        "title": "Mock Test 1",
        "titleHi": "मॉक टेस्ट 1",
        "testSeriesId": "series-a",
        "duration": 60,
        "defaultPositiveMarks": 2,
        "defaultNegativeMarks": 0.5,
        "passingPercentage": 40,
        "sections": [
            {
                "id": "quant",
                "title": "Quantitative",
                "order": 1,
                "questions": [
                    {
                        "id": "q1",
                        "question": "2 + 2 = ?",
                        "questionHi": "2 + 2 = ?",
                        "options": [
                            {"id": "a", "text": "3"},
                            {"id": "b", "text": "4", "textHi": "चार"},
                            {"id": "c", "text": "5"},
                            {"id": "d", "text": "22"},
                        ],
                        "correctAnswers": ["b"],
                        "explanation": "Basic addition",
                    },
                    {
                        "id": "q2",
                        "questionType": "multiple",
                        "question": "Pick the primes",
                        "options": [
                            {"id": "a", "text": "2"},
                            {"id": "b", "text": "4"},
                            {"id": "c", "text": "5"},
                            {"id": "d", "text": "9"},
                        ],
                        "correctAnswers": ["a", "c"],
                    },
                    {
                        "id": "q3",
                        "question": "10 / 2 = ?",
                        "options": [
                            {"id": "a", "text": "2"},
                            {"id": "b", "text": "5"},
                        ],
                        "correctAnswers": ["b"],
                        "positiveMarks": 4,
                        "negativeMarks": 1,
                    },
                ],
            },
            {
                "id": "verbal",
                "title": "Verbal",
                "order": 2,
                "positiveMarks": 1,
                "negativeMarks": 0.25,
                "questions": [
                    {
                        "id": "q4",
                        "questionType": "comprehension",
                        "subType": "single",
                        "passage": {"title": "Rivers", "text": "The Ganga rises in the Himalaya."},
                        "question": "Where does the Ganga rise?",
                        "options": [
                            {"id": "a", "text": "Himalaya"},
                            {"id": "b", "text": "Deccan"},
                        ],
                        "correctAnswers": ["a"],
                    },
                    {
                        "id": "q5",
                        "question": "Antonym of 'hot'",
                        "options": [
                            {"id": "a", "text": "cold"},
                            {"id": "b", "text": "warm"},
                        ],
                        "correctAnswers": ["a"],
                    },
                ],
            },
        ],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    exams_dir = tmp_path / "exams"
    exams_dir.mkdir()
    monkeypatch.setattr(paths, "DATA_DIR", exams_dir)
    return exams_dir


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def exam(data_dir: Path) -> ExamDefinition:
    definition = ExamDefinition.model_validate(exam_payload())
    save_exam_payload(definition)
    return definition


@pytest.fixture
def make_user(db):
    def _make(username: str = "student", enrolled_in: str | None = "series-a") -> User:
        user = User(username=username, display_name=username.title())
        db.add(user)
        db.commit()
        if enrolled_in:
            db.add(Enrollment(user_id=user.id, test_series_id=enrolled_in))
            db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def user(make_user) -> User:
    return make_user()
