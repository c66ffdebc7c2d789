"""
Database operations for the screening scorer.
Handles Supabase reads of candidates, screenings and questions, and score write-back.
"""
import logging
from datetime import datetime
from typing import List, Dict, Optional

from supabase import Client

from db import (
    CANDIDATES_TABLE,
    QUESTIONS_TABLE,
    SCREENINGS_TABLE,
    TEST_SCORES_TABLE,
    get_supabase,
)
from src.engine import Question, QuestionOutcome, ScoreResult

logger = logging.getLogger(__name__)

QUESTION_SELECT = "*, subject:subjects(id, name, code)"
CANDIDATE_STATS_SELECT = "*, program:programs(name, department:departments(name))"
CANDIDATE_REPORT_SELECT = (
    "*, screening:screenings(name, total_marks, pass_marks), "
    "program:programs(name, code, department:departments(name)), "
    "test_scores(marks, created_at)"
)


class DatabaseClient:
    """Wrapper around Supabase client with screening-specific operations."""

    def __init__(self, client: Optional[Client] = None):
        self.client: Client = client or get_supabase()

    # ============= Candidates =============

    def get_candidate(self, candidate_id: str) -> Optional[Dict]:
        """Fetch a candidate row (includes screening_id, program_id, score fields)."""
        try:
            response = (
                self.client.table(CANDIDATES_TABLE)
                .select("*")
                .eq("id", str(candidate_id))
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error fetching candidate {candidate_id}: {e}")
            return None

    def get_screening_candidates(self, screening_id: str) -> List[Dict]:
        """Candidates of a screening with their program and department names embedded."""
        try:
            response = (
                self.client.table(CANDIDATES_TABLE)
                .select(CANDIDATE_STATS_SELECT)
                .eq("screening_id", str(screening_id))
                .execute()
            )
            return response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching candidates for screening {screening_id}: {e}")
            return []

    def get_candidate_report_row(self, candidate_id: str) -> Optional[Dict]:
        """Candidate with screening, program/department and test scores embedded."""
        try:
            response = (
                self.client.table(CANDIDATES_TABLE)
                .select(CANDIDATE_REPORT_SELECT)
                .eq("id", str(candidate_id))
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error fetching report data for candidate {candidate_id}: {e}")
            return None

    # ============= Screenings & questions =============

    def get_screening(self, screening_id: str) -> Optional[Dict]:
        try:
            response = (
                self.client.table(SCREENINGS_TABLE)
                .select("*")
                .eq("id", str(screening_id))
                .limit(1)
                .execute()
            )
            return response.data[0] if response.data else None
        except Exception as e:
            logger.error(f"Error fetching screening {screening_id}: {e}")
            return None

    def get_screening_questions(self, screening_id: str) -> List[Question]:
        """
        Fetch the question set of a screening.

        Returns:
            Questions with their subject (id, name, code); empty list on failure
        """
        try:
            response = (
                self.client.table(QUESTIONS_TABLE)
                .select(QUESTION_SELECT)
                .eq("screening_id", str(screening_id))
                .execute()
            )
            rows = response.data if response.data else []
        except Exception as e:
            logger.error(f"Error fetching questions for screening {screening_id}: {e}")
            return []
        return [Question.from_row(row) for row in rows]

    # ============= Scores =============

    def save_test_score(
        self,
        candidate_id: str,
        result: ScoreResult,
        scored_by: Optional[str] = None
    ) -> bool:
        """
        Write a computed score onto the candidate record.
        Single update of total_score, percentage, status and has_written.

        Returns:
            True if successful
        """
        update_data = {
            "total_score": result.total_score,
            "percentage": result.percentage,
            "status": result.status,
            "has_written": True,
        }
        try:
            self.client.table(CANDIDATES_TABLE).update(update_data).eq("id", str(candidate_id)).execute()
            logger.debug(f"Saved score for candidate {candidate_id} (scored_by={scored_by})")
            return True
        except Exception as e:
            logger.error(f"Error saving score for candidate {candidate_id}: {e}")
            return False

    def save_question_outcomes(
        self,
        candidate_id: str,
        outcomes: List[QuestionOutcome],
        scored_by: Optional[str] = None
    ) -> bool:
        """Record one test_scores row per question outcome."""
        if not outcomes:
            return True
        now = datetime.utcnow().isoformat()
        rows = [
            {
                "candidate_id": str(candidate_id),
                "question_id": outcome.question_id,
                "selected_answer": outcome.selected_answer,
                "is_correct": outcome.is_correct,
                "marks": outcome.marks_awarded,
                "time_spent": outcome.time_spent,
                "scored_by": scored_by,
                "created_at": now,
            }
            for outcome in outcomes
        ]
        try:
            self.client.table(TEST_SCORES_TABLE).insert(rows).execute()
            return True
        except Exception as e:
            logger.error(f"Error saving question outcomes for candidate {candidate_id}: {e}")
            return False


# Singleton instance
_db_client: Optional[DatabaseClient] = None


def get_database() -> DatabaseClient:
    """Get or create database client singleton."""
    global _db_client
    if _db_client is None:
        _db_client = DatabaseClient()
    return _db_client
