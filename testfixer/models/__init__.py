from .test_failure import AnalyzedFailure, FailureRecord, FailureType
from .fix_result import FixProposal, FixResult
from .pr_data import CreatedPR, FileChange, PRData

__all__ = [
    "AnalyzedFailure",
    "FailureRecord",
    "FailureType",
    "FixProposal",
    "FixResult",
    "CreatedPR",
    "FileChange",
    "PRData",
]
