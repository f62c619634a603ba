"""
Fix Result Models
=================
Pydantic models tracking the outcome of fix attempts.

FixResult fields:
    original_code       — test file content the strategy started from
    fixed_code          — proposed replacement content
    file_path           — repo-relative path of the test file
    strategy            — name of the strategy (or "none") that produced it
    explanation         — human-readable explanation shown to reviewers
    confidence          — 0.0–1.0, clamped on construction
    success             — True if the fix is proposed for publishing
    validation_errors   — why the attempt failed (required when success=False)
    ai_model            — generative model used, if any
    tokens_used         — tokens consumed by the generative model, if any

Invariants (enforced by the model validator):
    success=True   → fixed_code is non-empty
    success=False  → at least one validation error

FixProposal fields:
    build_number / commit_sha / branch — taken from the first failure of the batch
    fixes                — one FixResult per input failure, input order
    total_confidence     — mean confidence over successful fixes only (0 if none)
    estimated_time_saved — minutes, fixed heuristic per successful fix
"""
from typing import List, Optional

from pydantic import BaseModel, field_validator, model_validator


class FixResult(BaseModel):
    original_code: str = ""
    fixed_code: str = ""
    file_path: str = ""
    strategy: str
    explanation: str = ""
    confidence: float = 0.0
    success: bool = False
    validation_errors: List[str] = []

    # --- Generative model metadata ---
    ai_model: Optional[str] = None
    tokens_used: Optional[int] = None

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return max(0.0, min(1.0, v))

    @model_validator(mode="after")
    def check_outcome(self) -> "FixResult":
        if self.success and not self.fixed_code:
            raise ValueError("successful FixResult requires non-empty fixed_code")
        if not self.success and not self.validation_errors:
            raise ValueError("failed FixResult requires at least one validation error")
        return self

    @classmethod
    def failure(
        cls,
        file_path: str,
        strategy: str,
        explanation: str,
        errors: List[str],
        original_code: str = "",
        confidence: float = 0.0,
    ) -> "FixResult":
        """Build a failed result; ``errors`` must not be empty."""
        return cls(
            original_code=original_code,
            fixed_code="",
            file_path=file_path,
            strategy=strategy,
            explanation=explanation,
            confidence=confidence,
            success=False,
            validation_errors=errors,
        )


class FixProposal(BaseModel):
    build_number: int = 0
    commit_sha: str = ""
    branch: Optional[str] = None
    fixes: List[FixResult] = []
    total_confidence: float = 0.0
    estimated_time_saved: int = 0  # minutes

    @property
    def successful_fixes(self) -> List[FixResult]:
        return [f for f in self.fixes if f.success]

    @property
    def failed_fixes(self) -> List[FixResult]:
        return [f for f in self.fixes if not f.success]
