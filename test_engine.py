"""
Scoring engine tests: marking, subject breakdown, grade bands, pass rules, batch scoring.
Run: pytest test_engine.py
"""
import pytest

from src.engine import (
    DEFAULT_POLICY,
    OUTCOME_CORRECT,
    OUTCOME_UNANSWERED,
    OUTCOME_WRONG,
    PASS_RULE_SCREENING,
    Answer,
    GradeBand,
    Question,
    ScoringPolicy,
    Subject,
    Submission,
    batch_compute,
    compute_score,
    determine_grade,
    grade_answers,
    grade_description,
)

CS = Subject(id="s-cs", name="Computer Science", code="CS")
MTH = Subject(id="s-mth", name="Mathematics", code="MTH")


def make_question(qid, correct="A", marks=5, subject=CS):
    return Question(
        id=qid,
        text=f"Question {qid}",
        options=("A", "B", "C", "D"),
        correct_answer=correct,
        marks=marks,
        subject=subject,
    )


def check_invariants(result, questions):
    assert result.correct_answers + result.wrong_answers + result.unanswered_questions == len(questions)
    assert sum(s.score for s in result.subject_breakdown) == result.total_score
    assert sum(s.total_questions for s in result.subject_breakdown) == len(questions)


def test_two_correct_one_blank():
    questions = [make_question("q1", "A"), make_question("q2", "B"), make_question("q3", "C")]
    answers = [Answer("q1", "A"), Answer("q2", "B"), Answer("q3", "")]

    result = compute_score("cand-1", answers, questions, 600)

    assert result.total_score == 10
    assert result.max_score == 15
    assert result.percentage == pytest.approx(66.67, abs=0.01)
    assert result.correct_answers == 2
    assert result.wrong_answers == 0
    assert result.unanswered_questions == 1
    assert result.grade == "C"
    assert result.status == "PASSED"
    assert result.time_taken == 600
    check_invariants(result, questions)


def test_all_wrong_across_two_subjects():
    questions = [
        make_question("q1", "A", subject=CS),
        make_question("q2", "A", subject=CS),
        make_question("q3", "A", subject=MTH),
        make_question("q4", "A", subject=MTH),
    ]
    answers = [Answer(q.id, "D") for q in questions]

    result = compute_score("cand-2", answers, questions, 0)

    assert result.total_score == 0
    assert result.percentage == 0
    assert result.grade == "F"
    assert result.status == "FAILED"
    assert result.wrong_answers == 4
    assert [s.subject_code for s in result.subject_breakdown] == ["CS", "MTH"]
    for subject in result.subject_breakdown:
        assert subject.total_questions == 2
        assert subject.correct_answers == 0
        assert subject.percentage == 0
    check_invariants(result, questions)


def test_empty_question_set():
    result = compute_score("cand-3", [], [], 0)

    assert result.max_score == 0
    assert result.percentage == 0
    assert result.grade == "F"
    assert result.status == "FAILED"
    assert result.subject_breakdown == ()


def test_answer_matching_ignores_letter_case():
    questions = [make_question("q1", "B")]
    result = compute_score("cand-4", [Answer("q1", "b")], questions, 0)

    assert result.correct_answers == 1
    assert result.total_score == 5


def test_missing_and_none_answers_are_unanswered():
    questions = [make_question("q1"), make_question("q2"), make_question("q3")]
    answers = [Answer("q2", None), Answer("q3", "   ")]

    result = compute_score("cand-5", answers, questions)

    assert result.unanswered_questions == 3
    assert result.percentage == 0


def test_answers_for_unknown_questions_are_ignored():
    questions = [make_question("q1", "A")]
    answers = [Answer("q1", "A"), Answer("q-other", "A")]

    result = compute_score("cand-6", answers, questions)

    assert result.correct_answers == 1
    assert result.total_score == 5
    check_invariants(result, questions)


def test_first_answer_per_question_counts():
    questions = [make_question("q1", "A")]
    answers = [Answer("q1", "C"), Answer("q1", "A")]

    result = compute_score("cand-7", answers, questions)

    assert result.wrong_answers == 1
    assert result.correct_answers == 0


def test_subject_percentage_uses_subject_marks():
    questions = [
        make_question("q1", "A", marks=2, subject=CS),
        make_question("q2", "A", marks=8, subject=MTH),
        make_question("q3", "A", marks=2, subject=MTH),
    ]
    answers = [Answer("q1", "A"), Answer("q2", "A"), Answer("q3", "B")]

    result = compute_score("cand-8", answers, questions)

    cs, mth = result.subject_breakdown
    assert cs.percentage == 100
    assert mth.score == 8
    assert mth.percentage == pytest.approx(80.0)
    assert result.total_score == 10
    assert result.max_score == 12
    check_invariants(result, questions)


def test_zero_mark_subject_has_zero_percentage():
    questions = [make_question("q1", "A", marks=0, subject=MTH), make_question("q2", "A", marks=5)]
    result = compute_score("cand-9", [Answer("q1", "A"), Answer("q2", "A")], questions)

    mth = next(s for s in result.subject_breakdown if s.subject_code == "MTH")
    assert mth.correct_answers == 1
    assert mth.percentage == 0
    assert result.percentage == 100


def test_fractional_marks_sum_exactly():
    questions = [make_question(f"q{i}", "A", marks=0.1) for i in range(3)]
    result = compute_score("cand-10", [Answer(q.id, "A") for q in questions], questions)

    assert result.total_score == pytest.approx(0.3)
    assert result.percentage == 100
    check_invariants(result, questions)


def test_fractional_marks_across_subjects_match_total():
    questions = [make_question("q1", "A", marks=0.1, subject=CS), make_question("q2", "A", marks=0.2, subject=MTH)]
    result = compute_score("cand-10b", [Answer("q1", "A"), Answer("q2", "A")], questions)

    cs, mth = result.subject_breakdown
    assert cs.score == 0.1
    assert mth.score == 0.2
    assert result.total_score == cs.score + mth.score
    assert result.percentage == 100
    check_invariants(result, questions)


def test_precomputed_outcomes_give_same_result():
    questions = [make_question("q1", "A"), make_question("q2", "B", subject=MTH)]
    answers = [Answer("q1", "A", time_spent=20), Answer("q2", "C", time_spent=10)]
    outcomes = grade_answers(answers, questions)

    assert compute_score("cand-10c", answers, questions, outcomes=outcomes) == compute_score("cand-10c", answers, questions)
    with pytest.raises(ValueError):
        compute_score("cand-10c", answers, questions, outcomes=outcomes[:1])


def test_time_taken_falls_back_to_answer_times():
    questions = [make_question("q1"), make_question("q2")]
    answers = [Answer("q1", "A", time_spent=30), Answer("q2", "", time_spent=15)]

    assert compute_score("cand-11", answers, questions).time_taken == 45
    assert compute_score("cand-11", answers, questions, 120).time_taken == 120


def test_rows_are_accepted_as_input():
    questions = [
        {
            "id": "q1",
            "question": "2 + 2?",
            "options": ["3", "4"],
            "correctAnswer": "B",
            "marks": 4,
            "subject": {"id": "s-mth", "name": "Mathematics", "code": "MTH"},
        }
    ]
    answers = [{"questionId": "q1", "selectedAnswer": "b", "timeTaken": 12}]

    result = compute_score("cand-12", answers, questions)

    assert result.total_score == 4
    assert result.time_taken == 12
    assert result.subject_breakdown[0].subject_name == "Mathematics"


def test_malformed_marks_do_not_raise():
    questions = [make_question("q1", "A", marks="n/a"), make_question("q2", "A", marks=None)]
    result = compute_score("cand-13", [Answer("q1", "A")], questions)

    assert result.max_score == 0
    assert result.percentage == 0
    assert result.grade == "F"


def test_compute_score_is_deterministic():
    questions = [make_question("q1", "A"), make_question("q2", "B", subject=MTH), make_question("q3", "C")]
    answers = [Answer("q3", "c"), Answer("q1", "D")]

    first = compute_score("cand-14", answers, questions, 90)
    second = compute_score("cand-14", answers, questions, 90)

    assert first == second
    assert first.to_dict() == second.to_dict()


def test_grade_answers_classifies_in_question_order():
    questions = [make_question("q1", "A"), make_question("q2", "B"), make_question("q3", "C")]
    outcomes = grade_answers([Answer("q3", "C"), Answer("q1", "B")], questions)

    assert [o.question_id for o in outcomes] == ["q1", "q2", "q3"]
    assert [o.status for o in outcomes] == [OUTCOME_WRONG, OUTCOME_UNANSWERED, OUTCOME_CORRECT]
    assert [o.marks_awarded for o in outcomes] == [0, 0, 5]


@pytest.mark.parametrize("percentage,grade", [
    (100, "A"), (80, "A"), (79.5, "B"), (79, "B"), (70, "B"), (69, "C"), (60, "C"),
    (59.99, "D"), (50, "D"), (49, "E"), (40, "E"), (39.9, "F"), (0, "F"),
])
def test_determine_grade_bands(percentage, grade):
    assert determine_grade(percentage) == grade


@pytest.mark.parametrize("percentage", [-1, 100.5, float("nan"), None, "abc"])
def test_determine_grade_out_of_range_falls_back(percentage):
    assert determine_grade(percentage) == "F"


def test_determine_grade_covers_whole_range():
    for tenth in range(0, 1001):
        assert determine_grade(tenth / 10) in {"A", "B", "C", "D", "E", "F"}


def test_grade_description():
    assert grade_description("A") == "Excellent"
    assert grade_description("E") == "Pass"
    assert grade_description("Z") == "Unknown"


@pytest.mark.parametrize("percentage", [39.99, 40, 40.01])
def test_status_follows_fixed_threshold(percentage):
    expected = percentage >= 40
    assert DEFAULT_POLICY.is_passed(percentage, 0) is expected


def test_screening_pass_rule_uses_raw_pass_marks():
    questions = [make_question(f"q{i}", "A", marks=10) for i in range(10)]
    answers = [Answer(f"q{i}", "A") for i in range(3)]  # 30 / 100

    fixed = compute_score("cand-15", answers, questions)
    screening = DEFAULT_POLICY.for_screening({"passMarks": 25}, PASS_RULE_SCREENING)
    by_marks = compute_score("cand-15", answers, questions, policy=screening)

    assert fixed.status == "FAILED"
    assert by_marks.status == "PASSED"
    assert by_marks.grade == fixed.grade == "F"


def test_screening_pass_rule_requires_pass_marks():
    with pytest.raises(ValueError):
        ScoringPolicy(pass_rule=PASS_RULE_SCREENING)
    with pytest.raises(ValueError):
        DEFAULT_POLICY.for_screening({}, PASS_RULE_SCREENING)


def test_unknown_pass_rule_rejected():
    with pytest.raises(ValueError):
        ScoringPolicy(pass_rule="curve")


def test_custom_bands_and_threshold():
    bands = (
        GradeBand("PASS", 50, 100, "Pass"),
        GradeBand("FAIL", 0, 49, "Fail"),
    )
    policy = ScoringPolicy(grade_bands=bands, pass_threshold_percent=50)
    questions = [make_question("q1", "A"), make_question("q2", "A")]

    result = compute_score("cand-16", [Answer("q1", "A")], questions, policy=policy)

    assert result.percentage == 50
    assert result.grade == "PASS"
    assert result.status == "PASSED"


@pytest.mark.parametrize("bands", [
    (),
    (GradeBand("A", 50, 100), GradeBand("B", 0, 60)),   # overlap
    (GradeBand("A", 60, 100), GradeBand("B", 0, 40)),   # gap
    (GradeBand("A", 50, 90), GradeBand("B", 0, 49)),    # does not reach 100
    (GradeBand("B", 0, 49), GradeBand("A", 50, 100)),   # wrong order
])
def test_invalid_band_tables_rejected(bands):
    with pytest.raises(ValueError):
        ScoringPolicy(grade_bands=bands)


def test_batch_compute_keeps_order_and_isolation():
    questions = [make_question("q1", "A"), make_question("q2", "B")]
    submissions = [
        Submission("c1", (Answer("q1", "A"), Answer("q2", "B")), tuple(questions), 10),
        Submission("c2", (), tuple(questions), 20),
        Submission("c3", (Answer("q1", "A"),), tuple(questions), 30),
    ]

    results = batch_compute(submissions)

    assert [r.candidate_id for r in results] == ["c1", "c2", "c3"]
    assert [r.total_score for r in results] == [10, 0, 5]
    assert results[0] == compute_score("c1", submissions[0].answers, questions, 10)


def test_batch_compute_with_workers_matches_sequential():
    questions = tuple(make_question(f"q{i}", "A", subject=CS if i % 2 else MTH) for i in range(8))
    submissions = [
        {"candidate_id": f"c{n}", "answers": [{"question_id": f"q{i}", "selected_answer": "A"} for i in range(n)],
         "questions": list(questions), "time_taken": n}
        for n in range(8)
    ]

    assert batch_compute(submissions, max_workers=4) == batch_compute(submissions)


def test_batch_submission_policy_overrides_shared():
    questions = (make_question("q1", "A", marks=10), make_question("q2", "A", marks=90))
    lenient = DEFAULT_POLICY.for_screening({"pass_marks": 5}, PASS_RULE_SCREENING)
    submissions = [
        Submission("c1", (Answer("q1", "A"),), questions),
        Submission("c2", (Answer("q1", "A"),), questions, policy=lenient),
    ]

    first, second = batch_compute(submissions)

    assert first.status == "FAILED"
    assert second.status == "PASSED"
    assert first.percentage == second.percentage == 10
