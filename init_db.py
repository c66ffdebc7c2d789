"""Print the Supabase schema the screening scorer reads and writes."""
import os

from dotenv import load_dotenv

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")

# SQL schema
SCHEMA_SQL = """
-- Departments and programs
CREATE TABLE IF NOT EXISTS departments (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(120) NOT NULL UNIQUE
);

CREATE TABLE IF NOT EXISTS programs (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    department_id UUID NOT NULL REFERENCES departments(id) ON DELETE CASCADE,
    name VARCHAR(120) NOT NULL,
    code VARCHAR(20) NOT NULL UNIQUE
);

-- Screening test events (pass_marks is in raw marks)
CREATE TABLE IF NOT EXISTS screenings (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(120) NOT NULL,
    total_marks DECIMAL(6,2) DEFAULT 100,
    pass_marks DECIMAL(6,2) DEFAULT 40,
    start_date TIMESTAMPTZ,
    end_date TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS subjects (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name VARCHAR(120) NOT NULL,
    code VARCHAR(20) NOT NULL UNIQUE
);

-- Question bank, one set per screening
CREATE TABLE IF NOT EXISTS questions (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    screening_id UUID NOT NULL REFERENCES screenings(id) ON DELETE CASCADE,
    subject_id UUID NOT NULL REFERENCES subjects(id),
    question TEXT NOT NULL,
    options JSONB NOT NULL,
    correct_answer VARCHAR(20) NOT NULL,
    marks DECIMAL(5,2) DEFAULT 1
);

CREATE TABLE IF NOT EXISTS candidates (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    screening_id UUID NOT NULL REFERENCES screenings(id),
    program_id UUID NOT NULL REFERENCES programs(id),
    first_name VARCHAR(80),
    last_name VARCHAR(80),
    email VARCHAR(160) UNIQUE,
    phone VARCHAR(30),
    registration_number VARCHAR(40) UNIQUE,
    utme_score INT,
    total_score DECIMAL(6,2),
    percentage DECIMAL(6,2),
    status VARCHAR(20) DEFAULT 'PENDING',
    has_written BOOLEAN DEFAULT FALSE
);

-- Per-question outcomes
CREATE TABLE IF NOT EXISTS test_scores (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    candidate_id UUID NOT NULL REFERENCES candidates(id) ON DELETE CASCADE,
    question_id UUID NOT NULL REFERENCES questions(id),
    selected_answer VARCHAR(20),
    is_correct BOOLEAN,
    marks DECIMAL(5,2),
    time_spent INT,
    scored_by VARCHAR(80),
    created_at TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_questions_screening_id ON questions(screening_id);
CREATE INDEX IF NOT EXISTS idx_candidates_screening_id ON candidates(screening_id);
CREATE INDEX IF NOT EXISTS idx_test_scores_candidate_id ON test_scores(candidate_id);
"""


def main():
    print("Screening scorer schema")
    print(f"URL: {SUPABASE_URL}")
    statements = [s.strip() for s in SCHEMA_SQL.split(";") if s.strip()]
    for i, stmt in enumerate(statements, 1):
        first = next(line for line in stmt.splitlines() if not line.startswith("--"))
        print(f"  {i:2d}. {first[:60]}...")
    print("\nThe Supabase client cannot run DDL. Paste this into the Supabase SQL Editor:")
    print(SCHEMA_SQL)


if __name__ == "__main__":
    main()
