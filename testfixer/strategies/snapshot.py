"""
Snapshot Fix Strategy
=====================
Snapshot mismatches are fixed by regenerating the stored snapshot with the
test runner's own update mechanism (``jest -u``), not by editing the test.

This strategy therefore never changes file content: fixed_code equals
original_code. Its value is confirming the classification and producing the
reviewer-facing explanation.
"""
from typing import Optional

from testfixer.core.constants import STRATEGY_SNAPSHOT
from testfixer.models.fix_result import FixResult
from testfixer.models.test_failure import AnalyzedFailure, FailureType
from testfixer.strategies.base import FixStrategy
from testfixer.utils.rejection_reasons import EMPTY_FILE_CONTENT

SNAPSHOT_CONFIDENCE = 0.95


class SnapshotFixStrategy(FixStrategy):
    name = STRATEGY_SNAPSHOT

    def can_handle(self, failure: AnalyzedFailure) -> bool:
        return failure.failure_type == FailureType.SNAPSHOT

    async def generate_fix(
        self,
        failure: AnalyzedFailure,
        file_content: str,
        code_diff: Optional[str] = None,
    ) -> FixResult:
        # A successful result must carry content; with nothing fetched there
        # is nothing to confirm the snapshot against.
        if not file_content:
            return FixResult.failure(
                file_path=failure.test_file,
                strategy=self.name,
                explanation="Snapshot mismatch detected, but the test file could not be read.",
                errors=[EMPTY_FILE_CONTENT],
                confidence=SNAPSHOT_CONFIDENCE,
            )

        return FixResult(
            original_code=file_content,
            fixed_code=file_content,
            file_path=failure.test_file,
            strategy=self.name,
            explanation=self._explain(code_diff),
            confidence=SNAPSHOT_CONFIDENCE,
            success=True,
        )

    @staticmethod
    def _explain(code_diff: Optional[str]) -> str:
        parts = ["Snapshot mismatch detected."]
        if code_diff:
            parts.append("The UI or component output has changed due to recent code modifications.")
        parts.append(
            "The snapshot will be regenerated by the test runner's update mechanism "
            "(jest -u) to match the current output."
        )
        parts.append("Please review the snapshot diff to ensure the changes are intentional.")
        return " ".join(parts)
