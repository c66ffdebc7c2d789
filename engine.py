"""Grading defaults: band table, pass threshold, pass rule. No scoring logic."""
# Bands are whole percentages, highest first; first match wins.
# Pass: percentage >= 40 unless a screening pass mark is selected as the rule.

GRADING_SYSTEM = (
    ("A", 80, 100, "Excellent"),
    ("B", 70, 79, "Very Good"),
    ("C", 60, 69, "Good"),
    ("D", 50, 59, "Fair"),
    ("E", 40, 49, "Pass"),
    ("F", 0, 39, "Fail"),
)
FALLBACK_GRADE = "F"

PASS_THRESHOLD_PERCENT = 40.0
PASS_RULE = "fixed_percentage"

STATUS_PASSED = "PASSED"
STATUS_FAILED = "FAILED"
