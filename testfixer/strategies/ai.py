"""
AI Fix Strategy
===============
Universal fallback: delegates the fix to the generative backend. Registered
for MOCK, PROPERTY_CHANGE, TYPE_ERROR and UNKNOWN failures.

Confidence is always discounted relative to the classifier's own score,
min(failure.confidence * 0.8, 0.75), because unverified generated code is
less trustworthy than the classification that triggered it.
"""
import logging
from typing import Optional

from testfixer.core.constants import STRATEGY_AI
from testfixer.llm.client import FixModel
from testfixer.models.fix_result import FixResult
from testfixer.models.test_failure import AnalyzedFailure, FailureType
from testfixer.strategies.base import FixStrategy, model_name
from testfixer.utils.rejection_reasons import AI_NOT_CONFIGURED, EMPTY_AI_FIX

logger = logging.getLogger(__name__)

CONFIDENCE_DISCOUNT = 0.8
MAX_CONFIDENCE = 0.75

_EXPLANATIONS: dict[FailureType, str] = {
    FailureType.MOCK: "Updated mock to match new implementation",
    FailureType.PROPERTY_CHANGE: "Fixed property/method name changes",
    FailureType.TYPE_ERROR: "Corrected TypeScript type definitions",
    FailureType.UNKNOWN: "Applied AI-suggested fix based on error analysis",
}


class AIFixStrategy(FixStrategy):
    name = STRATEGY_AI

    def __init__(self, ai_client: Optional[FixModel] = None) -> None:
        self.ai_client = ai_client

    def can_handle(self, failure: AnalyzedFailure) -> bool:
        return True

    async def generate_fix(
        self,
        failure: AnalyzedFailure,
        file_content: str,
        code_diff: Optional[str] = None,
    ) -> FixResult:
        if self.ai_client is None:
            return self._failed(failure, AI_NOT_CONFIGURED)

        # The backend is untrusted: reading its answer can fail as well as the call
        try:
            response = await self.ai_client.generate_test_fix(
                file_content, failure.error_message, failure.stack_trace, code_diff
            )
            if not response.fixed_code.strip():
                return self._failed(failure, EMPTY_AI_FIX)

            return FixResult(
                original_code=file_content,
                fixed_code=response.fixed_code,
                file_path=failure.test_file,
                strategy=self.name,
                explanation=self._explain(failure, response.explanation),
                confidence=self.calculate_confidence(failure),
                success=True,
                ai_model=model_name(self.ai_client),
                tokens_used=response.tokens_used,
            )
        except Exception as e:
            logger.error("AI fix failed for %s: %s", failure.test_name, e)
            return self._failed(failure, f"AI fix failed: {e}")

    @staticmethod
    def calculate_confidence(failure: AnalyzedFailure) -> float:
        return min(failure.confidence * CONFIDENCE_DISCOUNT, MAX_CONFIDENCE)

    @staticmethod
    def _explain(failure: AnalyzedFailure, model_explanation: str) -> str:
        summary = _EXPLANATIONS.get(failure.failure_type, "Applied automated fix")
        if model_explanation:
            return f"{summary}. {model_explanation}"
        return summary

    def _failed(self, failure: AnalyzedFailure, error: str) -> FixResult:
        return FixResult.failure(
            file_path=failure.test_file,
            strategy=self.name,
            explanation=error,
            errors=[error],
        )
