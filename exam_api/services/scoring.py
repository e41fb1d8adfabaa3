"""Scoring primitives: per-question credit and attempt aggregation.

Everything here is pure. Callers hand in frozen question keys and the
selected option ids; nothing is read from or written to the database.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

from exam_api.models.exams import MultipleCorrectPolicy, QuestionType, ScoringType


@dataclass(frozen=True)
class QuestionKey:
    """Frozen scoring data of one question."""

    question_id: str
    section_id: str
    question_type: QuestionType
    scoring_type: ScoringType
    option_ids: tuple[str, ...]
    correct_answers: frozenset[str]
    positive_marks: float
    negative_marks: float


@dataclass(frozen=True)
class Credit:
    """Result of scoring one answer."""

    marks: float
    is_correct: bool = False
    is_partially_correct: bool = False
    attempted: bool = True

    @property
    def outcome(self) -> str:
        if not self.attempted:
            return "skipped"
        if self.is_correct:
            return "correct"
        if self.is_partially_correct:
            return "partial"
        return "wrong"


UNATTEMPTED = Credit(marks=0.0, attempted=False)


def round_marks(value: float) -> float:
    """Round to 2 decimals; normalizes -0.0."""
    return round(value, 2) + 0.0


def _credit(key: QuestionKey, selected: frozenset[str], marks: float) -> Credit:
    marks = round_marks(marks)
    exact = selected == key.correct_answers
    return Credit(
        marks=marks,
        is_correct=exact,
        is_partially_correct=not exact and marks > 0,
    )


def _all_or_none(key: QuestionKey, selected: frozenset[str]) -> float:
    return key.positive_marks if selected == key.correct_answers else 0.0


def _partial(key: QuestionKey, selected: frozenset[str]) -> float:
    hits = len(selected & key.correct_answers)
    misses = len(selected - key.correct_answers)
    marks = key.positive_marks * hits / len(key.correct_answers)
    if key.option_ids:
        marks -= key.negative_marks * misses / len(key.option_ids)
    return max(0.0, marks)


def _proportional(key: QuestionKey, selected: frozenset[str]) -> float:
    hits = len(selected & key.correct_answers)
    misses = len(selected - key.correct_answers)
    marks = key.positive_marks * hits / len(key.correct_answers) - key.negative_marks * misses
    return max(0.0, marks)


MULTIPLE_POLICIES: dict[MultipleCorrectPolicy, Callable[[QuestionKey, frozenset[str]], float]] = {
    MultipleCorrectPolicy.ALL_OR_NONE: _all_or_none,
    MultipleCorrectPolicy.PARTIAL: _partial,
    MultipleCorrectPolicy.PROPORTIONAL: _proportional,
}


def score_single(
    key: QuestionKey, selected: frozenset[str], policy: MultipleCorrectPolicy
) -> Credit:
    """Exact match earns positive marks, anything else costs negative marks."""
    if selected == key.correct_answers:
        return _credit(key, selected, key.positive_marks)
    return _credit(key, selected, -key.negative_marks)


def score_multiple(
    key: QuestionKey, selected: frozenset[str], policy: MultipleCorrectPolicy
) -> Credit:
    """Multiple-correct credit under the exam's policy."""
    return _credit(key, selected, MULTIPLE_POLICIES[policy](key, selected))


def score_comprehension(
    key: QuestionKey, selected: frozenset[str], policy: MultipleCorrectPolicy
) -> Credit:
    """The passage is context only; score by the declared sub-type."""
    if key.scoring_type == ScoringType.MULTIPLE:
        return score_multiple(key, selected, policy)
    return score_single(key, selected, policy)


SCORERS: dict[
    QuestionType,
    Callable[[QuestionKey, frozenset[str], MultipleCorrectPolicy], Credit],
] = {
    QuestionType.SINGLE: score_single,
    QuestionType.MULTIPLE: score_multiple,
    QuestionType.COMPREHENSION: score_comprehension,
}


def score_question(
    key: QuestionKey,
    selected: Iterable[str],
    policy: MultipleCorrectPolicy = MultipleCorrectPolicy.ALL_OR_NONE,
) -> Credit:
    """Score one answer. An empty selection is unattempted and earns 0."""
    chosen = frozenset(selected)
    if not chosen:
        return UNATTEMPTED
    return SCORERS[key.question_type](key, chosen, policy)


def percentage_of(score: float, max_score: float) -> float:
    """Score as a percentage of max, clamped to [0, 100]."""
    if max_score <= 0:
        return 0.0
    return round_marks(min(100.0, max(0.0, score / max_score * 100)))


def grade_for(percentage: float) -> str:
    if percentage >= 90:
        return "S"
    if percentage >= 75:
        return "A"
    if percentage >= 60:
        return "B"
    if percentage >= 40:
        return "C"
    return "F"


@dataclass
class SectionTally:
    """Counts and marks of one section, built from scratch at finalize."""

    section_id: str
    section_title: str
    attempted: int = 0
    correct: int = 0
    wrong: int = 0
    partially_correct: int = 0
    skipped: int = 0
    marks_obtained: float = 0.0
    max_marks: float = 0.0

    def add(self, key: QuestionKey, credit: Credit) -> None:
        self.max_marks += key.positive_marks
        if not credit.attempted:
            self.skipped += 1
            return
        self.attempted += 1
        self.marks_obtained += credit.marks
        if credit.is_correct:
            self.correct += 1
        elif credit.is_partially_correct:
            self.partially_correct += 1
        else:
            self.wrong += 1

    @property
    def percentage(self) -> float:
        return percentage_of(self.marks_obtained, self.max_marks)

    def to_dict(self) -> dict[str, object]:
        return {
            "sectionId": self.section_id,
            "sectionTitle": self.section_title,
            "attempted": self.attempted,
            "correct": self.correct,
            "wrong": self.wrong,
            "partiallyCorrect": self.partially_correct,
            "skipped": self.skipped,
            "marksObtained": round_marks(self.marks_obtained),
            "maxMarks": round_marks(self.max_marks),
            "percentage": self.percentage,
        }


@dataclass
class AttemptScore:
    """Aggregated result of a whole attempt."""

    credits: dict[str, Credit] = field(default_factory=dict)
    sections: list[SectionTally] = field(default_factory=list)
    score: float = 0.0
    max_score: float = 0.0
    percentage: float = 0.0
    grade: str = "F"
    passed: bool = False

    def _total(self, name: str) -> int:
        return sum(getattr(section, name) for section in self.sections)

    @property
    def attempted(self) -> int:
        return self._total("attempted")

    @property
    def correct(self) -> int:
        return self._total("correct")

    @property
    def wrong(self) -> int:
        return self._total("wrong")

    @property
    def partially_correct(self) -> int:
        return self._total("partially_correct")

    @property
    def skipped(self) -> int:
        return self._total("skipped")

    @property
    def total_questions(self) -> int:
        return len(self.credits)


def score_attempt(
    answers: Iterable[tuple[QuestionKey, Iterable[str]]],
    sections: Iterable[tuple[str, str]],
    policy: MultipleCorrectPolicy,
    passing_percentage: float,
) -> AttemptScore:
    """Score every answer and rebuild section and overall totals wholesale.

    ``sections`` gives (id, title) pairs in display order; answers whose
    section is not listed get a section of their own at the end.
    """
    tallies: dict[str, SectionTally] = {
        section_id: SectionTally(section_id, title) for section_id, title in sections
    }
    result = AttemptScore()

    for key, selected in answers:
        credit = score_question(key, selected, policy)
        result.credits[key.question_id] = credit
        tally = tallies.get(key.section_id)
        if tally is None:
            tally = tallies[key.section_id] = SectionTally(key.section_id, key.section_id)
        tally.add(key, credit)

    result.sections = list(tallies.values())
    result.score = round_marks(sum(credit.marks for credit in result.credits.values()))
    result.max_score = round_marks(sum(section.max_marks for section in result.sections))
    result.percentage = percentage_of(result.score, result.max_score)
    result.grade = grade_for(result.percentage)
    result.passed = result.percentage >= passing_percentage
    return result
