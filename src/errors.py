"""Caller-side scoring failures. The engine itself never raises these."""


class ScoringError(Exception):
    """Base class for failures around a scoring request."""


class CandidateNotFoundError(ScoringError):
    def __init__(self, candidate_id):
        super().__init__(f"Candidate {candidate_id} not found")
        self.candidate_id = candidate_id


class NoQuestionsError(ScoringError):
    def __init__(self, screening_id):
        super().__init__(f"No questions found for screening {screening_id}")
        self.screening_id = screening_id


class PersistenceError(ScoringError):
    """The candidate record could not be updated with a computed score."""


class AlreadyWrittenError(ScoringError):
    def __init__(self, candidate_id):
        super().__init__(f"Candidate {candidate_id} has already taken this test")
        self.candidate_id = candidate_id
