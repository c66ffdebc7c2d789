"""
Scoring service: looks up a candidate's question set, runs the engine and hands the
result to the database. Batch scoring collects per-candidate errors instead of stopping.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from src.database import DatabaseClient
from src.engine import (
    ScoreResult,
    ScoringPolicy,
    compute_score,
    grade_answers,
    pass_rule_from_env,
    policy_from_env,
    row_value,
)
from src.errors import (
    AlreadyWrittenError,
    CandidateNotFoundError,
    NoQuestionsError,
    PersistenceError,
    ScoringError,
)
from src.reports import build_candidate_report, calculate_screening_statistics

logger = logging.getLogger(__name__)


@dataclass
class BatchOutcome:
    results: List[Dict] = field(default_factory=list)  # {candidate_id, result}
    errors: List[Dict] = field(default_factory=list)  # {candidate_id, error}

    @property
    def summary(self) -> Dict:
        return {
            "total": len(self.results) + len(self.errors),
            "successful": len(self.results),
            "failed": len(self.errors),
        }

    def to_dict(self) -> Dict:
        return {
            "summary": self.summary,
            "results": [
                {"candidate_id": r["candidate_id"], "result": r["result"].to_dict()}
                for r in self.results
            ],
            "errors": self.errors,
        }


class ScoringService:
    """Caller-side workflow around the scoring engine."""

    def __init__(
        self,
        db: DatabaseClient,
        policy: Optional[ScoringPolicy] = None,
        pass_rule: Optional[str] = None,
    ):
        self.db = db
        self.policy = policy or policy_from_env()
        self.pass_rule = pass_rule or pass_rule_from_env()

    def _policy_for(self, screening_id: str) -> ScoringPolicy:
        """Base policy with the screening's pass mark attached."""
        screening = self.db.get_screening(screening_id) or {}
        try:
            return self.policy.for_screening(screening, self.pass_rule)
        except ValueError as e:
            raise ScoringError(f"Screening {screening_id}: {e}") from e

    def score_candidate(
        self,
        candidate_id: str,
        answers: Iterable,
        time_taken: Optional[float] = None,
        scored_by: Optional[str] = None,
        allow_retake: bool = False,
    ) -> ScoreResult:
        """
        Score and persist one candidate's test submission.

        Args:
            allow_retake: score a candidate who has already written, replacing the stored score

        Raises:
            CandidateNotFoundError: unknown candidate
            AlreadyWrittenError: the candidate has already written and allow_retake is False
            NoQuestionsError: the candidate's screening has no questions
            PersistenceError: the candidate record could not be updated
        """
        candidate = self.db.get_candidate(candidate_id)
        if not candidate:
            raise CandidateNotFoundError(candidate_id)
        if row_value(candidate, "has_written", "hasWritten", default=False) and not allow_retake:
            raise AlreadyWrittenError(candidate_id)

        screening_id = row_value(candidate, "screening_id", "screeningId")
        questions = self.db.get_screening_questions(screening_id)
        if not questions:
            raise NoQuestionsError(screening_id)

        answers = list(answers or [])
        policy = self._policy_for(screening_id)
        outcomes = grade_answers(answers, questions)
        result = compute_score(candidate_id, answers, questions, time_taken, policy, outcomes=outcomes)

        if not self.db.save_test_score(candidate_id, result, scored_by):
            raise PersistenceError(f"Could not save score for candidate {candidate_id}")
        if not self.db.save_question_outcomes(candidate_id, outcomes, scored_by):
            logger.warning(f"Per-question outcomes for candidate {candidate_id} were not recorded")

        return result

    def batch_score(
        self,
        submissions: Iterable[Dict],
        scored_by: Optional[str] = None,
        allow_retake: bool = False,
    ) -> BatchOutcome:
        """
        Score many submissions ({candidate_id, answers, time_taken}).
        Each candidate is looked up, scored and saved on its own. Candidates who have
        already written are reported as errors unless allow_retake is set.
        """
        outcome = BatchOutcome()
        for submission in submissions:
            candidate_id = row_value(submission, "candidate_id", "candidateId")
            try:
                result = self.score_candidate(
                    candidate_id,
                    submission.get("answers") or [],
                    row_value(submission, "time_taken", "timeTaken"),
                    scored_by,
                    allow_retake,
                )
            except ScoringError as e:
                logger.error(f"Failed to score candidate {candidate_id}: {e}")
                outcome.errors.append({"candidate_id": candidate_id, "error": str(e)})
                continue
            outcome.results.append({"candidate_id": candidate_id, "result": result})

        logger.info(
            f"Batch scoring completed: {outcome.summary['successful']}/{outcome.summary['total']} scored"
        )
        return outcome

    def screening_statistics(self, screening_id: str) -> Dict:
        return calculate_screening_statistics(self.db.get_screening_candidates(screening_id))

    def candidate_report(self, candidate_id: str) -> Dict:
        row = self.db.get_candidate_report_row(candidate_id)
        if not row:
            raise CandidateNotFoundError(candidate_id)
        return build_candidate_report(row, self.policy.grade_bands)
