"""
Failure Models
==============
Pydantic models for one failing test, before and after classification.

FailureRecord:
    Created once per failing test when CI results are fetched. Frozen — no
    component mutates it after creation, so records can be shared freely
    across the pipeline without copying.

AnalyzedFailure:
    FailureRecord plus the classifier's verdict (failure_type, confidence)
    and an affected-code excerpt. Also frozen.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FailureType(str, Enum):
    """Closed set of root-cause categories, used to route to a fix strategy."""
    SNAPSHOT = "snapshot"
    ASSERTION = "assertion"
    MOCK = "mock"
    TYPE_ERROR = "type_error"
    PROPERTY_CHANGE = "property_change"
    UNKNOWN = "unknown"


class FailureRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    test_name: str
    test_file: str
    error_message: str
    stack_trace: str = ""
    job_id: str = ""
    build_number: int = 0
    commit_sha: str = ""
    branch: Optional[str] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    runner: str = "jest"


class AnalyzedFailure(FailureRecord):
    failure_type: FailureType
    confidence: float  # 0.0–1.0
    affected_code: str = ""

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return max(0.0, min(1.0, v))
