"""
Error Taxonomy Module

Every failure the approval engine can report. Each error carries a stable
``code`` so API layers and callers can branch on it without string matching.
"""

from typing import Optional


class ApprovalError(Exception):
    """Base class for all approval engine errors"""

    code = "approval_error"

    def __init__(self, message: str, transaction_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.transaction_id = transaction_id

    def to_dict(self):
        return {"error": self.code, "message": self.message}


class NotFoundError(ApprovalError, LookupError):
    """Referenced transaction does not exist"""

    code = "not_found"

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} not found", transaction_id)


class DuplicateIdError(ApprovalError):
    """A transaction with the same id already exists"""

    code = "duplicate_id"

    def __init__(self, transaction_id: str):
        super().__init__(f"Transaction {transaction_id} already exists", transaction_id)


class AlreadyTerminalError(ApprovalError):
    """Vote submitted after the transaction reached approved or rejected"""

    code = "already_terminal"

    def __init__(self, transaction_id: str, status: str):
        super().__init__(
            f"Transaction {transaction_id} is already {status}", transaction_id
        )
        self.status = status


class DuplicateVoteError(ApprovalError):
    """Voter already voted and re-voting is disabled for the transaction"""

    code = "duplicate_vote"

    def __init__(self, transaction_id: str, voter_id: str):
        super().__init__(
            f"Voter {voter_id} has already voted on transaction {transaction_id}",
            transaction_id
        )
        self.voter_id = voter_id


class IneligibleVoterError(ApprovalError):
    """Voter is not one of the transaction's eligible approvers"""

    code = "ineligible_voter"

    def __init__(self, transaction_id: str, voter_id: str):
        super().__init__(
            f"Voter {voter_id} is not an eligible approver for transaction {transaction_id}",
            transaction_id
        )
        self.voter_id = voter_id


class VersionConflictError(ApprovalError):
    """Stored version advanced between read and write"""

    code = "version_conflict"

    def __init__(self, transaction_id: str, expected_version: int, actual_version: int):
        super().__init__(
            f"Transaction {transaction_id} version conflict: "
            f"expected {expected_version}, found {actual_version}",
            transaction_id
        )
        self.expected_version = expected_version
        self.actual_version = actual_version


class ContentionError(ApprovalError):
    """Vote could not be committed within the retry budget; retry later"""

    code = "contention"

    def __init__(self, transaction_id: str, attempts: int, reason: str = "retries exhausted"):
        super().__init__(
            f"Vote on transaction {transaction_id} not committed after "
            f"{attempts} attempt(s): {reason}",
            transaction_id
        )
        self.attempts = attempts
