"""
Score a JSON file of test submissions and print the results.
Each entry: {candidate_id, answers: [{question_id, selected_answer, time_spent}], questions, time_taken}.

Run: python score_submissions.py submissions.json
      python score_submissions.py submissions.json --persist          # look up questions, save scores
      python score_submissions.py submissions.json --workers 4
      python score_submissions.py --stats SCREENING_ID                # screening statistics only
"""
import argparse
import json
import logging
import sys
from pathlib import Path

path = Path(__file__).resolve().parent
if str(path) not in sys.path:
    sys.path.insert(0, str(path))

from dotenv import load_dotenv
load_dotenv()

from src.engine import PASS_RULE_FIXED, PASS_RULES, batch_compute, policy_from_env

logger = logging.getLogger(__name__)


def print_result(result: dict):
    print(f"  Candidate {result['candidate_id']}")
    print(f"    Score: {result['total_score']}/{result['max_score']}  ({result['percentage']:.2f}%)")
    print(f"    Correct: {result['correct_answers']}  Wrong: {result['wrong_answers']}  Unanswered: {result['unanswered_questions']}")
    print(f"    Grade: {result['grade']}  Status: {result['status']}  Time: {result['time_taken']}s")
    for subject in result["subject_breakdown"]:
        label = subject["subject_code"] or subject["subject_name"] or subject["subject_id"]
        print(f"      {label:<12} {subject['correct_answers']}/{subject['total_questions']}  score={subject['score']}  ({subject['percentage']:.1f}%)")


def print_statistics(stats: dict):
    print()
    print("=" * 60)
    print("SCREENING STATISTICS")
    print("=" * 60)
    print(f"  Candidates: {stats['total_candidates']}  Written: {stats['written_candidates']}")
    print(f"  Passed: {stats['passed_candidates']}  Failed: {stats['failed_candidates']}")
    print(f"  Average score: {stats['average_score']}  Pass rate: {stats['pass_rate']}%")
    print("\n--- By program ---")
    for program in stats["program_stats"]:
        print(f"  {program['program_name']!r} ({program['department_name']}): {program['passed']}/{program['total']} passed, avg {program['average_score']:.2f}")
    print()


def main():
    parser = argparse.ArgumentParser(description="Score screening test submissions.")
    parser.add_argument("file", nargs="?", help="JSON file with a list of submissions")
    parser.add_argument("--persist", action="store_true", help="Load questions from the DB and save scores")
    parser.add_argument("--pass-rule", choices=PASS_RULES, default=None, help=f"Pass rule (default from SCORING_PASS_RULE, else {PASS_RULE_FIXED})")
    parser.add_argument("--workers", type=int, default=None, help="Score offline submissions on N threads (not with --persist)")
    parser.add_argument("--retake", action="store_true", help="With --persist, rescore candidates who have already written")
    parser.add_argument("--stats", metavar="SCREENING_ID", default=None, help="Print statistics for a screening")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(message)s")

    if not args.file and not args.stats:
        parser.error("give a submissions file and/or --stats SCREENING_ID")
    if args.persist and args.workers:
        parser.error("--workers applies to offline scoring only; --persist scores candidates one at a time")
    if args.retake and not args.persist:
        parser.error("--retake requires --persist")

    service = None
    if args.persist or args.stats:
        from src.database import DatabaseClient
        from src.scoring_service import ScoringService
        service = ScoringService(DatabaseClient(), pass_rule=args.pass_rule)

    if args.file:
        submissions = json.loads(Path(args.file).read_text(encoding="utf-8"))
        if not isinstance(submissions, list):
            print("Submissions file must contain a JSON list")
            sys.exit(1)

        print()
        print("=" * 60)
        print(f"SCORING {len(submissions)} SUBMISSION(S)")
        print("=" * 60)

        if service is not None and args.persist:
            outcome = service.batch_score(submissions, scored_by="cli", allow_retake=args.retake)
            for entry in outcome.results:
                print_result(entry["result"].to_dict())
            for error in outcome.errors:
                print(f"  Candidate {error['candidate_id']}: ERROR {error['error']}")
            summary = outcome.summary
            print(f"\n  Total: {summary['total']}  Scored: {summary['successful']}  Failed: {summary['failed']}")
        else:
            if args.pass_rule and args.pass_rule != PASS_RULE_FIXED:
                print("Offline scoring has no screening pass marks; use --persist for the screening rule")
                sys.exit(1)
            for result in batch_compute(submissions, policy_from_env(), max_workers=args.workers):
                print_result(result.to_dict())
        print()

    if args.stats:
        print_statistics(service.screening_statistics(args.stats))


if __name__ == "__main__":
    main()
