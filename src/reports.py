"""
Screening statistics and candidate performance reports.
Folds over candidate rows that already carry persisted score fields.
"""
import logging
from typing import Dict, List, Optional, Sequence

from engine import FALLBACK_GRADE, STATUS_FAILED, STATUS_PASSED
from src.engine import DEFAULT_GRADE_BANDS, GradeBand, row_value, determine_grade, grade_description
from src.errors import CandidateNotFoundError

logger = logging.getLogger(__name__)


def _score_of(candidate: Dict) -> Optional[float]:
    return row_value(candidate, "total_score", "totalScore")


def _has_written(candidate: Dict) -> bool:
    return bool(row_value(candidate, "has_written", "hasWritten", default=False))


def calculate_screening_statistics(candidates: List[Dict]) -> Dict:
    """
    Aggregate scored candidates of one screening.

    Args:
        candidates: candidate rows with status, total_score, has_written, program_id
            and an embedded program {name, department: {name}}

    Returns:
        Totals, average score, pass rate and per-program breakdown
    """
    total = len(candidates)
    written = sum(1 for c in candidates if _has_written(c))
    passed = sum(1 for c in candidates if c.get("status") == STATUS_PASSED)
    failed = sum(1 for c in candidates if c.get("status") == STATUS_FAILED)

    # Average over written candidates, counting only those with a stored score
    score_sum = sum(float(_score_of(c)) for c in candidates if _score_of(c) is not None)
    average_score = score_sum / written if written > 0 else 0
    pass_rate = (passed / written * 100) if written > 0 else 0

    program_stats: Dict[str, Dict] = {}
    for candidate in candidates:
        program_id = str(row_value(candidate, "program_id", "programId", default=""))
        program = candidate.get("program") or {}
        stats = program_stats.get(program_id)
        if stats is None:
            stats = program_stats[program_id] = {
                "program_id": program_id,
                "program_name": program.get("name", ""),
                "department_name": (program.get("department") or {}).get("name", ""),
                "total": 0,
                "passed": 0,
                "_scores": [],
            }
        stats["total"] += 1
        if candidate.get("status") == STATUS_PASSED:
            stats["passed"] += 1
        if _score_of(candidate) is not None:
            stats["_scores"].append(float(_score_of(candidate)))

    breakdown = []
    for stats in program_stats.values():
        scores = stats.pop("_scores")
        stats["average_score"] = sum(scores) / len(scores) if scores else 0
        breakdown.append(stats)

    logger.info(f"Statistics: {total} candidates, {written} written, {passed} passed")

    return {
        "total_candidates": total,
        "written_candidates": written,
        "passed_candidates": passed,
        "failed_candidates": failed,
        "average_score": round(average_score, 2),
        "pass_rate": round(pass_rate, 2),
        "program_stats": breakdown,
    }


def build_candidate_report(
    candidate: Optional[Dict],
    bands: Sequence[GradeBand] = DEFAULT_GRADE_BANDS,
) -> Dict:
    """
    Performance report for one candidate. The grade is re-derived from the stored
    percentage rather than recomputing the score.

    Raises:
        CandidateNotFoundError: when no candidate row was found
    """
    if not candidate:
        raise CandidateNotFoundError(None)

    screening = candidate.get("screening") or {}
    program = candidate.get("program") or {}
    percentage = candidate.get("percentage")
    grade = determine_grade(percentage, bands) if percentage else FALLBACK_GRADE

    return {
        "candidate": {
            "id": candidate.get("id"),
            "first_name": row_value(candidate, "first_name", "firstName"),
            "last_name": row_value(candidate, "last_name", "lastName"),
            "email": candidate.get("email"),
            "registration_number": row_value(candidate, "registration_number", "registrationNumber"),
            "phone": candidate.get("phone"),
        },
        "screening": {
            "name": screening.get("name"),
            "total_marks": row_value(screening, "total_marks", "totalMarks"),
            "pass_marks": row_value(screening, "pass_marks", "passMarks"),
        },
        "program": {
            "name": program.get("name"),
            "code": program.get("code"),
            "department": (program.get("department") or {}).get("name"),
        },
        "performance": {
            "total_score": _score_of(candidate),
            "percentage": percentage,
            "grade": grade,
            "grade_description": grade_description(grade, bands),
            "status": candidate.get("status"),
            "has_written": _has_written(candidate),
        },
        "test_scores": [
            {"marks": s.get("marks"), "created_at": row_value(s, "created_at", "createdAt")}
            for s in row_value(candidate, "test_scores", "testScores", default=[])
        ],
    }
