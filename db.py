"""Supabase client factory and table names."""
import os
from typing import Optional

from dotenv import load_dotenv
from supabase import create_client, Client

load_dotenv()

CANDIDATES_TABLE = "candidates"
SCREENINGS_TABLE = "screenings"
QUESTIONS_TABLE = "questions"
SUBJECTS_TABLE = "subjects"
TEST_SCORES_TABLE = "test_scores"
PROGRAMS_TABLE = "programs"
DEPARTMENTS_TABLE = "departments"

_client: Optional[Client] = None


def _env_client() -> Client:
    url = os.environ.get("SUPABASE_URL")
    key = os.environ.get("SUPABASE_KEY")
    if not url or not key:
        raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set")
    return create_client(url, key)


def get_supabase() -> Client:
    """Shared client for the process."""
    global _client
    if _client is None:
        _client = _env_client()
    return _client
