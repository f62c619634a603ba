"""
Fix Generator
=============
Routes each AnalyzedFailure to a repair strategy and aggregates the results
of one build into a FixProposal.

Strategy Registry:
    - One strategy per FailureType; the enumeration is closed, so every
      category either has a registered strategy or falls into the explicit
      "no handler" arm of the dispatcher
    - Registering a category again replaces the previous strategy (no
      error), which allows reconfiguration at runtime

Dispatch Gates (evaluated in this order, each short-circuits):
    1. No strategy for the category → failed FixResult, "No strategy found"
    2. Classifier confidence below threshold → failed FixResult,
       "Low confidence" — the strategy is never invoked
    3. Otherwise the strategy's FixResult is returned unmodified

Aggregation:
    - Failures are processed sequentially, in input order; fixes[i]
      always corresponds to failures[i]
    - Missing file content is treated as an empty string
    - total_confidence is the mean over successful fixes only (0 if none)
    - estimated_time_saved is a fixed 15 minutes per successful fix

The FixGenerator does NOT:
    - Fetch files or diffs (that's the orchestrator's job)
    - Publish anything (that's pr_creator + GitHubClient)
"""
import logging
from typing import Dict, Iterable, List, Mapping, Optional, Union

from testfixer.core.constants import (
    DEFAULT_CONFIDENCE_THRESHOLD,
    MINUTES_SAVED_PER_FIX,
    STRATEGY_NONE,
)
from testfixer.llm.client import FixModel
from testfixer.models.fix_result import FixProposal, FixResult
from testfixer.models.test_failure import AnalyzedFailure, FailureType
from testfixer.strategies import (
    AIFixStrategy,
    AssertionFixStrategy,
    FixStrategy,
    SnapshotFixStrategy,
)
from testfixer.utils.rejection_reasons import LOW_CONFIDENCE, NO_STRATEGY

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Strategy Registry
# ---------------------------------------------------------------------------
class StrategyRegistry:
    """Mapping from FailureType to the strategy that repairs it."""

    def __init__(self) -> None:
        self._strategies: Dict[FailureType, FixStrategy] = {}

    def register(self, failure_type: Union[FailureType, str], strategy: FixStrategy) -> None:
        """Install ``strategy`` for a category. The last registration wins."""
        key = FailureType(failure_type)
        previous = self._strategies.get(key)
        if previous is not None:
            logger.debug("Replacing %r for %s with %r", previous, key.value, strategy)
        self._strategies[key] = strategy

    def lookup(self, failure_type: FailureType) -> Optional[FixStrategy]:
        return self._strategies.get(failure_type)

    def unhandled(self) -> List[FailureType]:
        """Categories that would hit the "no handler" arm when dispatched."""
        return [t for t in FailureType if t not in self._strategies]

    def __contains__(self, failure_type: object) -> bool:
        return failure_type in self._strategies

    def __len__(self) -> int:
        return len(self._strategies)


def build_default_registry(ai_client: Optional[FixModel] = None) -> StrategyRegistry:
    """Snapshot and assertion get dedicated strategies; everything else goes to the AI."""
    registry = StrategyRegistry()
    registry.register(FailureType.SNAPSHOT, SnapshotFixStrategy())
    registry.register(FailureType.ASSERTION, AssertionFixStrategy(ai_client))

    ai_strategy = AIFixStrategy(ai_client)
    for failure_type in (
        FailureType.MOCK,
        FailureType.PROPERTY_CHANGE,
        FailureType.TYPE_ERROR,
        FailureType.UNKNOWN,
    ):
        registry.register(failure_type, ai_strategy)
    return registry


# ---------------------------------------------------------------------------
# Fix Generator
# ---------------------------------------------------------------------------
class FixGenerator:
    """
    Dispatches failures to strategies and builds proposals.

    Parameters
    ----------
    confidence_threshold : float
        Minimum classifier confidence to attempt an automatic fix (default: 0.5).
    registry : StrategyRegistry or None
        Strategy mapping (an empty registry is created if not provided).
    """

    def __init__(
        self,
        confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
        registry: Optional[StrategyRegistry] = None,
    ) -> None:
        self.confidence_threshold = confidence_threshold
        self.registry = registry if registry is not None else StrategyRegistry()

    def register_strategy(self, failure_type: Union[FailureType, str], strategy: FixStrategy) -> None:
        self.registry.register(failure_type, strategy)

    # -------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------
    async def generate_fix(
        self,
        failure: AnalyzedFailure,
        test_file_content: str,
        code_diff: Optional[str] = None,
    ) -> FixResult:
        """
        Generate a fix for a single analyzed failure.

        Parameters
        ----------
        failure : AnalyzedFailure
            The classified failure.
        test_file_content : str
            Full content of the failing test file ("" if unavailable).
        code_diff : str or None
            Diff of the commit under test, passed through to the strategy.

        Returns
        -------
        FixResult
            Always a well-formed result; policy rejections have success=False.
        """
        strategy = self.registry.lookup(failure.failure_type)

        # --- Gate 1: no handler ---
        if strategy is None:
            logger.info("No strategy registered for %s", failure.failure_type.value)
            return FixResult.failure(
                file_path=failure.test_file,
                strategy=STRATEGY_NONE,
                explanation=f"No strategy available for {failure.failure_type.value}",
                errors=[NO_STRATEGY],
            )

        # --- Gate 2: confidence threshold ---
        if failure.confidence < self.confidence_threshold:
            logger.info(
                "Skipping %s: confidence %.2f below threshold %.2f",
                failure.test_name, failure.confidence, self.confidence_threshold,
            )
            return FixResult.failure(
                file_path=failure.test_file,
                strategy=strategy.name,
                explanation="Confidence too low for automatic fix",
                errors=[LOW_CONFIDENCE],
                confidence=failure.confidence,
            )

        return await strategy.generate_fix(failure, test_file_content, code_diff)

    # -------------------------------------------------------------------
    # Aggregation
    # -------------------------------------------------------------------
    async def generate_proposal(
        self,
        failures: Iterable[AnalyzedFailure],
        test_file_contents: Mapping[str, str],
        code_diff: Optional[str] = None,
    ) -> FixProposal:
        """Dispatch every failure in order and summarise the batch."""
        failures = list(failures)
        fixes: List[FixResult] = []

        for failure in failures:
            content = test_file_contents.get(failure.test_file, "")
            fixes.append(await self.generate_fix(failure, content, code_diff))

        total_confidence, time_saved = summarize_fixes(fixes)
        first = failures[0] if failures else None

        logger.info(
            "Proposal: %d/%d fixes succeeded, mean confidence %.2f",
            sum(1 for f in fixes if f.success), len(fixes), total_confidence,
        )
        return FixProposal(
            build_number=first.build_number if first else 0,
            commit_sha=first.commit_sha if first else "",
            branch=first.branch if first else None,
            fixes=fixes,
            total_confidence=total_confidence,
            estimated_time_saved=time_saved,
        )


def summarize_fixes(fixes: List[FixResult]) -> tuple[float, int]:
    """Return (mean confidence of successful fixes, minutes saved)."""
    successful = [f for f in fixes if f.success]
    if not successful:
        return 0.0, 0
    mean = sum(f.confidence for f in successful) / len(successful)
    return mean, len(successful) * MINUTES_SAVED_PER_FIX
