"""
Screening Scoring Engine: per-question marking, subject breakdown, grading and pass status.
Pure functions over in-memory questions and answers. Persistence belongs to the caller.
"""
import logging
import math
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from dotenv import load_dotenv

from engine import (
    FALLBACK_GRADE,
    GRADING_SYSTEM,
    PASS_RULE,
    PASS_THRESHOLD_PERCENT,
    STATUS_FAILED,
    STATUS_PASSED,
)

logger = logging.getLogger(__name__)

# Per-question outcomes
OUTCOME_CORRECT = "correct"
OUTCOME_WRONG = "wrong"
OUTCOME_UNANSWERED = "unanswered"

# Pass rules
PASS_RULE_FIXED = "fixed_percentage"  # percentage >= pass_threshold_percent
PASS_RULE_SCREENING = "screening_pass_marks"  # total_score >= screening pass mark
PASS_RULES = (PASS_RULE_FIXED, PASS_RULE_SCREENING)


def row_value(row: Dict, *keys, default=None):
    """First present, non-None value among keys (rows come in snake_case or camelCase)."""
    for key in keys:
        value = row.get(key)
        if value is not None:
            return value
    return default


def _to_decimal(value) -> Decimal:
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        logger.warning(f"Non-numeric value {value!r} treated as 0")
        return Decimal(0)
    return number if number.is_finite() else Decimal(0)


def _as_number(value: Decimal):
    """Decimal -> int when integral, float otherwise."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def _percent(part: Decimal, whole: Decimal) -> float:
    if whole == 0:
        return 0.0
    return float(part / whole * 100)


def _is_blank(value) -> bool:
    return value is None or str(value).strip() == ""


def _normalise(value) -> str:
    """Case-insensitive answer key: uppercase, no locale rules."""
    return "" if value is None else str(value).upper()


# ============= Models =============

@dataclass(frozen=True)
class Subject:
    id: str
    name: str = ""
    code: str = ""

    @classmethod
    def from_row(cls, row: Optional[Dict]) -> "Subject":
        row = row or {}
        return cls(
            id=str(row.get("id") or ""),
            name=row.get("name") or "",
            code=row.get("code") or "",
        )


UNASSIGNED_SUBJECT = Subject(id="")


@dataclass(frozen=True)
class Question:
    """A test question. Immutable while a test is in progress."""

    id: str
    text: str
    options: Tuple[str, ...]
    correct_answer: str
    marks: float
    subject: Subject

    @classmethod
    def from_row(cls, row: Dict) -> "Question":
        """
        Build from a persistence row.

        Expected keys: id, question/text, options, correct_answer/correctAnswer,
        marks, and either an embedded subject dict or subject_id.
        """
        subject_row = row.get("subject")
        if not isinstance(subject_row, dict):
            subject_row = {"id": row_value(row, "subject_id", "subjectId", default="")}
        return cls(
            id=str(row.get("id")),
            text=row_value(row, "question", "text", default=""),
            options=tuple(row.get("options") or ()),
            correct_answer=row_value(row, "correct_answer", "correctAnswer", default=""),
            marks=row_value(row, "marks", default=0),
            subject=Subject.from_row(subject_row),
        )


@dataclass(frozen=True)
class Answer:
    """A candidate's submitted answer. selected_answer may be None or blank."""

    question_id: str
    selected_answer: Optional[str] = None
    time_spent: Optional[float] = None

    @classmethod
    def from_row(cls, row: Dict) -> "Answer":
        return cls(
            question_id=str(row_value(row, "question_id", "questionId", default="")),
            selected_answer=row_value(row, "selected_answer", "selectedAnswer"),
            time_spent=row_value(row, "time_spent", "timeTaken", "time_spent_sec"),
        )


@dataclass(frozen=True)
class Submission:
    candidate_id: str
    answers: Tuple[Answer, ...]
    questions: Tuple[Question, ...]
    time_taken: Optional[float] = None
    policy: Optional["ScoringPolicy"] = None

    @classmethod
    def from_row(cls, row: Dict) -> "Submission":
        return cls(
            candidate_id=str(row_value(row, "candidate_id", "candidateId", default="")),
            answers=tuple(_coerce_answers(row.get("answers"))),
            questions=tuple(_coerce_questions(row.get("questions"))),
            time_taken=row_value(row, "time_taken", "timeTaken"),
        )


@dataclass(frozen=True)
class QuestionOutcome:
    question_id: str
    subject_id: str
    status: str
    marks_awarded: float
    selected_answer: Optional[str] = None
    time_spent: Optional[float] = None

    @property
    def is_correct(self) -> bool:
        return self.status == OUTCOME_CORRECT

    def to_dict(self) -> Dict:
        return {
            "question_id": self.question_id,
            "subject_id": self.subject_id,
            "status": self.status,
            "is_correct": self.is_correct,
            "marks_awarded": self.marks_awarded,
            "selected_answer": self.selected_answer,
            "time_spent": self.time_spent,
        }


@dataclass(frozen=True)
class SubjectScore:
    subject_id: str
    subject_name: str
    subject_code: str
    total_questions: int
    correct_answers: int
    score: float
    percentage: float

    def to_dict(self) -> Dict:
        return {
            "subject_id": self.subject_id,
            "subject_name": self.subject_name,
            "subject_code": self.subject_code,
            "total_questions": self.total_questions,
            "correct_answers": self.correct_answers,
            "score": self.score,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class ScoreResult:
    """Derived once per submission; never updated in place. A retake produces a new result."""

    candidate_id: str
    total_score: float
    max_score: float
    percentage: float
    correct_answers: int
    wrong_answers: int
    unanswered_questions: int
    time_taken: float
    subject_breakdown: Tuple[SubjectScore, ...]
    grade: str
    status: str

    @property
    def passed(self) -> bool:
        return self.status == STATUS_PASSED

    def to_dict(self) -> Dict:
        return {
            "candidate_id": self.candidate_id,
            "total_score": self.total_score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "correct_answers": self.correct_answers,
            "wrong_answers": self.wrong_answers,
            "unanswered_questions": self.unanswered_questions,
            "time_taken": self.time_taken,
            "subject_breakdown": [s.to_dict() for s in self.subject_breakdown],
            "grade": self.grade,
            "status": self.status,
        }


# ============= Grading policy =============

@dataclass(frozen=True)
class GradeBand:
    grade: str
    min_percent: float
    max_percent: float
    description: str = ""


DEFAULT_GRADE_BANDS: Tuple[GradeBand, ...] = tuple(GradeBand(*row) for row in GRADING_SYSTEM)


def validate_grade_bands(bands: Sequence[GradeBand]) -> None:
    """
    Bands must be ordered highest first, must not overlap, and must jointly cover 0-100
    (adjacent whole-percent boundaries such as 79/80 count as contiguous).

    Raises:
        ValueError: on an empty, unordered, overlapping or non-covering table
    """
    if not bands:
        raise ValueError("Grade band table is empty")
    for band in bands:
        if band.min_percent > band.max_percent:
            raise ValueError(f"Band {band.grade}: min {band.min_percent} > max {band.max_percent}")
    for higher, lower in zip(bands, bands[1:]):
        if lower.max_percent >= higher.min_percent:
            raise ValueError(f"Bands {higher.grade} and {lower.grade} overlap or are out of order")
        if higher.min_percent - lower.max_percent > 1:
            raise ValueError(f"Gap between bands {lower.grade} and {higher.grade}")
    if bands[0].max_percent < 100 or bands[-1].min_percent > 0:
        raise ValueError("Grade bands must cover 0-100")


@dataclass(frozen=True)
class ScoringPolicy:
    """
    Grading and pass/fail configuration handed to compute_score.

    pass_rule selects how status is decided:
        fixed_percentage      -> percentage >= pass_threshold_percent (40 by default)
        screening_pass_marks  -> total_score >= pass_marks (the screening's configured pass mark)
    """

    grade_bands: Tuple[GradeBand, ...] = DEFAULT_GRADE_BANDS
    pass_threshold_percent: float = PASS_THRESHOLD_PERCENT
    pass_rule: str = PASS_RULE
    pass_marks: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "grade_bands", tuple(self.grade_bands))
        validate_grade_bands(self.grade_bands)
        if self.pass_rule not in PASS_RULES:
            raise ValueError(f"Unknown pass rule {self.pass_rule!r}, expected one of {PASS_RULES}")
        if self.pass_rule == PASS_RULE_SCREENING and self.pass_marks is None:
            raise ValueError("The screening pass-mark rule needs pass_marks")

    def is_passed(self, percentage: float, total_score) -> bool:
        if self.pass_rule == PASS_RULE_SCREENING:
            return _to_decimal(total_score) >= _to_decimal(self.pass_marks)
        return percentage >= self.pass_threshold_percent

    def for_screening(self, screening: Dict, pass_rule: Optional[str] = None) -> "ScoringPolicy":
        """
        Copy of this policy carrying a screening's configured pass mark.

        Args:
            screening: screening row (pass_marks/passMarks key)
            pass_rule: rule to apply; defaults to this policy's rule
        """
        pass_marks = row_value(screening or {}, "pass_marks", "passMarks")
        return replace(self, pass_marks=pass_marks, pass_rule=pass_rule or self.pass_rule)


DEFAULT_POLICY = ScoringPolicy()


def policy_from_env() -> ScoringPolicy:
    """Default policy with the pass threshold from SCORING_PASS_THRESHOLD."""
    load_dotenv()
    threshold = os.getenv("SCORING_PASS_THRESHOLD")
    if not threshold:
        return DEFAULT_POLICY
    return replace(DEFAULT_POLICY, pass_threshold_percent=float(threshold))


def pass_rule_from_env() -> str:
    """Pass rule named by SCORING_PASS_RULE (fixed_percentage if unset)."""
    load_dotenv()
    return os.getenv("SCORING_PASS_RULE") or PASS_RULE


def determine_grade(percentage, bands: Sequence[GradeBand] = DEFAULT_GRADE_BANDS) -> str:
    """
    Letter grade for a percentage. First band (highest first) whose floor is reached wins,
    so fractional values between whole-percent bands fall to the lower band (79.5 -> B).
    Out-of-range or non-numeric input gets the fallback grade.
    """
    try:
        value = float(percentage)
    except (TypeError, ValueError):
        return FALLBACK_GRADE
    if math.isnan(value) or not bands[-1].min_percent <= value <= bands[0].max_percent:
        return FALLBACK_GRADE
    for band in bands:
        if value >= band.min_percent:
            return band.grade
    return FALLBACK_GRADE


def grade_description(grade: str, bands: Sequence[GradeBand] = DEFAULT_GRADE_BANDS) -> str:
    for band in bands:
        if band.grade == grade:
            return band.description
    return "Unknown"


# ============= Scoring =============

def _coerce_answers(answers: Optional[Iterable]) -> List[Answer]:
    return [a if isinstance(a, Answer) else Answer.from_row(a) for a in (answers or [])]


def _coerce_questions(questions: Optional[Iterable]) -> List[Question]:
    return [q if isinstance(q, Question) else Question.from_row(q) for q in (questions or [])]


def _subject_of(question: Question) -> Subject:
    return question.subject or UNASSIGNED_SUBJECT


def grade_answers(answers: Iterable, questions: Iterable) -> List[QuestionOutcome]:
    """
    Classify every question as correct, wrong or unanswered.

    The first answer per question_id counts. Answers for questions outside the set are ignored.
    Returns one outcome per question, in question order.
    """
    answers = _coerce_answers(answers)
    questions = _coerce_questions(questions)

    by_question: Dict[str, Answer] = {}
    for answer in answers:
        by_question.setdefault(str(answer.question_id), answer)

    known = {str(q.id) for q in questions}
    stray = [qid for qid in by_question if qid not in known]
    if stray:
        logger.warning(f"Ignoring {len(stray)} answer(s) for questions outside the test")

    outcomes = []
    for question in questions:
        answer = by_question.get(str(question.id))
        selected = answer.selected_answer if answer else None
        time_spent = answer.time_spent if answer else None

        if _is_blank(selected):
            status = OUTCOME_UNANSWERED
            awarded = Decimal(0)
        elif _normalise(selected) == _normalise(question.correct_answer):
            status = OUTCOME_CORRECT
            awarded = _to_decimal(question.marks)
        else:
            status = OUTCOME_WRONG
            awarded = Decimal(0)

        outcomes.append(QuestionOutcome(
            question_id=str(question.id),
            subject_id=_subject_of(question).id,
            status=status,
            marks_awarded=_as_number(awarded),
            selected_answer=selected,
            time_spent=time_spent,
        ))
        logger.debug(f"Q={question.id} selected={selected!r} -> {status}")

    return outcomes


def compute_score(
    candidate_id: str,
    answers: Iterable,
    questions: Iterable,
    time_taken: Optional[float] = None,
    policy: Optional[ScoringPolicy] = None,
    outcomes: Optional[Sequence[QuestionOutcome]] = None,
) -> ScoreResult:
    """
    Score one candidate's submission.

    Args:
        candidate_id: candidate the result belongs to
        answers: Answer objects or answer rows, any order
        questions: the authoritative question set (Question objects or rows), any order
        time_taken: total seconds; when None, the sum of per-answer time_spent
        policy: grade bands and pass rule (DEFAULT_POLICY if None)
        outcomes: grade_answers(answers, questions) when the caller already has it

    Returns:
        ScoreResult. Never raises on partial input: missing answers are unanswered,
        an empty question set scores 0% / F / FAILED.
    """
    policy = policy or DEFAULT_POLICY
    questions = _coerce_questions(questions)
    if outcomes is None:
        outcomes = grade_answers(answers, questions)
    elif len(outcomes) != len(questions):
        raise ValueError(f"Expected {len(questions)} outcomes, got {len(outcomes)}")

    total_score = Decimal(0)
    max_score = Decimal(0)
    counts = {OUTCOME_CORRECT: 0, OUTCOME_WRONG: 0, OUTCOME_UNANSWERED: 0}
    time_spent_total = Decimal(0)

    # subject id -> running aggregate, in order of first appearance
    groups: Dict[str, Dict] = {}
    for question, outcome in zip(questions, outcomes):
        subject = _subject_of(question)
        marks = _to_decimal(question.marks)
        group = groups.get(subject.id)
        if group is None:
            group = groups[subject.id] = {
                "subject": subject,
                "questions": 0,
                "correct": 0,
                "score": Decimal(0),
                "max": Decimal(0),
            }

        group["questions"] += 1
        group["max"] += marks
        max_score += marks
        counts[outcome.status] += 1
        time_spent_total += _to_decimal(outcome.time_spent)

        if outcome.is_correct:
            group["correct"] += 1
            group["score"] += marks
            total_score += marks

    subject_breakdown = tuple(
        SubjectScore(
            subject_id=group["subject"].id,
            subject_name=group["subject"].name,
            subject_code=group["subject"].code,
            total_questions=group["questions"],
            correct_answers=group["correct"],
            score=_as_number(group["score"]),
            percentage=_percent(group["score"], group["max"]),
        )
        for group in groups.values()
    )
    # Reported total is the sum of the reported subject scores, in breakdown order
    reported_total = sum(s.score for s in subject_breakdown)

    percentage = _percent(total_score, max_score)
    grade = determine_grade(percentage, policy.grade_bands)
    status = STATUS_PASSED if policy.is_passed(percentage, total_score) else STATUS_FAILED

    result = ScoreResult(
        candidate_id=str(candidate_id),
        total_score=reported_total,
        max_score=_as_number(max_score),
        percentage=percentage,
        correct_answers=counts[OUTCOME_CORRECT],
        wrong_answers=counts[OUTCOME_WRONG],
        unanswered_questions=counts[OUTCOME_UNANSWERED],
        time_taken=time_taken if time_taken is not None else _as_number(time_spent_total),
        subject_breakdown=subject_breakdown,
        grade=grade,
        status=status,
    )

    logger.info(
        f"Scored candidate {result.candidate_id}: {result.total_score}/{result.max_score} "
        f"({percentage:.2f}%), grade={grade}, status={status}"
    )
    return result


def batch_compute(
    submissions: Iterable,
    policy: Optional[ScoringPolicy] = None,
    max_workers: Optional[int] = None,
) -> List[ScoreResult]:
    """
    Score each submission independently. Output order matches input order.

    A submission's own policy (if set) overrides the shared one. With max_workers > 1
    the submissions are scored on a thread pool; results are the same either way.
    """
    submissions = [s if isinstance(s, Submission) else Submission.from_row(s) for s in submissions]

    def _score(submission: Submission) -> ScoreResult:
        return compute_score(
            submission.candidate_id,
            submission.answers,
            submission.questions,
            submission.time_taken,
            submission.policy or policy,
        )

    if max_workers and max_workers > 1 and len(submissions) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            results = list(pool.map(_score, submissions))
    else:
        results = [_score(s) for s in submissions]

    logger.info(f"Batch scored {len(results)} submission(s)")
    return results
