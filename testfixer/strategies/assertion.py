"""
Assertion Fix Strategy
======================
Updates a test's expected literal when the code under test now produces a
different value.

Steps:
    1. Parse the runner message for an expected/received pair using an
       ordered list of patterns (first match wins)
    2. Replace every quoted occurrence of the expected literal with the
       received one, keeping the quote character (', " or `)
    3. If the substitution changed the file → success, confidence 0.85
    4. Otherwise (unparseable message, literal not found) → ask the
       generative backend, reported as "assertion-ai" at confidence 0.7
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from testfixer.core.constants import STRATEGY_ASSERTION, STRATEGY_ASSERTION_AI
from testfixer.llm.client import FixModel
from testfixer.models.fix_result import FixResult
from testfixer.models.test_failure import AnalyzedFailure, FailureType
from testfixer.strategies.base import FixStrategy, model_name
from testfixer.utils.rejection_reasons import (
    AI_NOT_CONFIGURED,
    ASSERTION_NOT_FOUND,
    EMPTY_AI_FIX,
    UNPARSEABLE_ASSERTION,
)

logger = logging.getLogger(__name__)

SUBSTITUTION_CONFIDENCE = 0.85
AI_FALLBACK_CONFIDENCE = 0.7

_QUOTES = "'\"`"

# Order matters: the first pattern that matches wins.
_ASSERTION_PATTERNS: list[re.Pattern] = [
    re.compile(r"expected[:\s]+['\"]?([^'\"]+)['\"]?.*received[:\s]+['\"]?([^'\"]+)['\"]?", re.I),
    re.compile(r"expected[:\s]+['\"]?([^'\"]+)['\"]?.*but got[:\s]+['\"]?([^'\"]+)['\"]?", re.I),
    re.compile(r"Expected:\s*([^\n]+)\s*Received:\s*([^\n]+)", re.I),
]


@dataclass(frozen=True)
class AssertionValues:
    expected: str
    received: str


def _unquote(value: str) -> str:
    value = value.strip().rstrip(",").strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in _QUOTES:
        return value[1:-1]
    return value


def parse_assertion_error(error_message: str) -> Optional[AssertionValues]:
    """Extract the expected/received literals from a runner message, or None."""
    for pattern in _ASSERTION_PATTERNS:
        match = pattern.search(error_message)
        if match:
            expected = _unquote(match.group(1))
            received = _unquote(match.group(2))
            if expected:
                return AssertionValues(expected=expected, received=received)
    return None


def replace_quoted_literal(code: str, expected: str, received: str) -> str:
    """Replace every 'expected' / "expected" / `expected` with received, same quotes."""
    pattern = re.compile(r"([" + re.escape(_QUOTES) + r"])" + re.escape(expected) + r"\1")
    return pattern.sub(lambda m: f"{m.group(1)}{received}{m.group(1)}", code)


class AssertionFixStrategy(FixStrategy):
    name = STRATEGY_ASSERTION

    def __init__(self, ai_client: Optional[FixModel] = None) -> None:
        self.ai_client = ai_client

    def can_handle(self, failure: AnalyzedFailure) -> bool:
        return failure.failure_type == FailureType.ASSERTION

    async def generate_fix(
        self,
        failure: AnalyzedFailure,
        file_content: str,
        code_diff: Optional[str] = None,
    ) -> FixResult:
        values = parse_assertion_error(failure.error_message)

        if values is None:
            reason = UNPARSEABLE_ASSERTION
        else:
            fixed = replace_quoted_literal(file_content, values.expected, values.received)
            if fixed != file_content:
                return FixResult(
                    original_code=file_content,
                    fixed_code=fixed,
                    file_path=failure.test_file,
                    strategy=self.name,
                    explanation=(
                        f'Updated assertion: expected "{values.received}" '
                        f'instead of "{values.expected}"'
                    ),
                    confidence=SUBSTITUTION_CONFIDENCE,
                    success=True,
                )
            reason = ASSERTION_NOT_FOUND

        logger.info(
            "Text substitution not possible for %s (%s), falling back to AI",
            failure.test_name, reason,
        )
        return await self._ai_fallback(failure, file_content, code_diff, reason)

    async def _ai_fallback(
        self,
        failure: AnalyzedFailure,
        file_content: str,
        code_diff: Optional[str],
        reason: str,
    ) -> FixResult:
        if self.ai_client is None:
            return FixResult.failure(
                file_path=failure.test_file,
                strategy=self.name,
                explanation="Could not update assertion automatically",
                errors=[reason, AI_NOT_CONFIGURED],
                original_code=file_content,
            )

        try:
            response = await self.ai_client.generate_test_fix(
                file_content, failure.error_message, failure.stack_trace, code_diff
            )
            if not response.fixed_code.strip():
                return FixResult.failure(
                    file_path=failure.test_file,
                    strategy=STRATEGY_ASSERTION_AI,
                    explanation="AI fallback for assertion fix returned no code",
                    errors=[EMPTY_AI_FIX],
                    original_code=file_content,
                )

            return FixResult(
                original_code=file_content,
                fixed_code=response.fixed_code,
                file_path=failure.test_file,
                strategy=STRATEGY_ASSERTION_AI,
                explanation=response.explanation,
                confidence=AI_FALLBACK_CONFIDENCE,
                success=True,
                ai_model=model_name(self.ai_client),
                tokens_used=response.tokens_used,
            )
        except Exception as e:
            logger.error("AI fallback failed for %s: %s", failure.test_name, e)
            return FixResult.failure(
                file_path=failure.test_file,
                strategy=STRATEGY_ASSERTION_AI,
                explanation="AI fallback for assertion fix failed",
                errors=[f"AI fallback failed: {e}"],
                original_code=file_content,
            )
