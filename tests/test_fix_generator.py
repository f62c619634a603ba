"""
Fix Generator Tests
===================
Registry, dispatch gates and proposal aggregation. Strategies are stubbed
so the tests pin down dispatcher behaviour only.
"""
import asyncio
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from testfixer.agents.fix_generator import (
    FixGenerator,
    StrategyRegistry,
    build_default_registry,
    summarize_fixes,
)
from testfixer.models import AnalyzedFailure, FailureType, FixResult
from testfixer.strategies import AIFixStrategy, AssertionFixStrategy, FixStrategy, SnapshotFixStrategy
from testfixer.utils.rejection_reasons import LOW_CONFIDENCE, NO_STRATEGY


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
class StubStrategy(FixStrategy):
    """Returns a canned result and records what it was called with."""

    name = "stub"

    def __init__(self, result: Optional[FixResult] = None) -> None:
        self.result = result or FixResult(
            strategy=self.name, fixed_code="fixed", success=True, confidence=0.8
        )
        self.calls = []

    def can_handle(self, failure: AnalyzedFailure) -> bool:
        return True

    async def generate_fix(self, failure, file_content, code_diff=None) -> FixResult:
        self.calls.append((failure, file_content, code_diff))
        return self.result


def _make_failure(
    failure_type: FailureType = FailureType.MOCK,
    confidence: float = 0.8,
    test_file: str = "src/a.test.ts",
    build_number: int = 101,
    commit_sha: str = "deadbeefcafe",
    branch: Optional[str] = "feature/login",
) -> AnalyzedFailure:
    return AnalyzedFailure(
        test_name="a",
        test_file=test_file,
        error_message="boom",
        build_number=build_number,
        commit_sha=commit_sha,
        branch=branch,
        failure_type=failure_type,
        confidence=confidence,
    )


def _run(coro):
    return asyncio.run(coro)


# ===========================================================================
# 1. Registry
# ===========================================================================
class TestStrategyRegistry:

    def test_last_registration_wins(self):
        registry = StrategyRegistry()
        first, second = StubStrategy(), StubStrategy()
        registry.register(FailureType.MOCK, first)
        registry.register(FailureType.MOCK, second)
        assert registry.lookup(FailureType.MOCK) is second
        assert len(registry) == 1

    def test_register_by_value(self):
        registry = StrategyRegistry()
        registry.register("snapshot", StubStrategy())
        assert FailureType.SNAPSHOT in registry

    def test_register_unknown_category_rejected(self):
        with pytest.raises(ValueError):
            StrategyRegistry().register("flaky", StubStrategy())

    def test_unhandled(self):
        registry = StrategyRegistry()
        registry.register(FailureType.SNAPSHOT, StubStrategy())
        assert FailureType.SNAPSHOT not in registry.unhandled()
        assert len(registry.unhandled()) == len(FailureType) - 1

    def test_default_wiring(self):
        registry = build_default_registry(MagicMock())
        assert isinstance(registry.lookup(FailureType.SNAPSHOT), SnapshotFixStrategy)
        assert isinstance(registry.lookup(FailureType.ASSERTION), AssertionFixStrategy)
        for t in (FailureType.MOCK, FailureType.PROPERTY_CHANGE, FailureType.TYPE_ERROR, FailureType.UNKNOWN):
            assert isinstance(registry.lookup(t), AIFixStrategy)
        assert registry.unhandled() == []


# ===========================================================================
# 2. Dispatch gates
# ===========================================================================
class TestDispatch:

    def test_no_strategy(self):
        result = _run(FixGenerator().generate_fix(_make_failure(FailureType.MOCK), "content"))
        assert result.success is False
        assert result.strategy == "none"
        assert result.explanation == "No strategy available for mock"
        assert result.validation_errors == [NO_STRATEGY]

    def test_no_strategy_checked_before_confidence(self):
        # Unregistered AND low confidence → the no-strategy gate answers
        result = _run(FixGenerator().generate_fix(_make_failure(confidence=0.1), "content"))
        assert result.validation_errors == [NO_STRATEGY]

    def test_low_confidence_never_invokes_strategy(self):
        stub = StubStrategy()
        gen = FixGenerator()
        gen.register_strategy(FailureType.UNKNOWN, stub)
        result = _run(gen.generate_fix(_make_failure(FailureType.UNKNOWN, confidence=0.3), "content"))
        assert result.success is False
        assert result.explanation == "Confidence too low for automatic fix"
        assert result.validation_errors == [LOW_CONFIDENCE]
        assert result.strategy == "stub"
        assert stub.calls == []

    def test_threshold_is_inclusive(self):
        stub = StubStrategy()
        gen = FixGenerator(confidence_threshold=0.5)
        gen.register_strategy(FailureType.MOCK, stub)
        result = _run(gen.generate_fix(_make_failure(confidence=0.5), "content"))
        assert result.success is True
        assert len(stub.calls) == 1

    def test_custom_threshold(self):
        gen = FixGenerator(confidence_threshold=0.9)
        gen.register_strategy(FailureType.MOCK, StubStrategy())
        result = _run(gen.generate_fix(_make_failure(confidence=0.8), "content"))
        assert result.validation_errors == [LOW_CONFIDENCE]

    def test_strategy_result_returned_unmodified(self):
        stub = StubStrategy()
        gen = FixGenerator()
        gen.register_strategy(FailureType.MOCK, stub)
        result = _run(gen.generate_fix(_make_failure(), "content", "diff"))
        assert result is stub.result
        assert stub.calls[0][1:] == ("content", "diff")


# ===========================================================================
# 3. Proposal aggregation
# ===========================================================================
class TestGenerateProposal:

    def test_mean_excludes_failures(self):
        gen = FixGenerator()
        gen.register_strategy(FailureType.MOCK, StubStrategy())
        failures = [_make_failure(FailureType.MOCK), _make_failure(FailureType.SNAPSHOT)]

        proposal = _run(gen.generate_proposal(failures, {"src/a.test.ts": "content"}))

        assert len(proposal.fixes) == 2
        assert proposal.fixes[0].success is True
        assert proposal.fixes[1].success is False
        assert proposal.total_confidence == pytest.approx(0.8)
        assert proposal.estimated_time_saved == 15

    def test_metadata_from_first_failure(self):
        gen = FixGenerator()
        proposal = _run(gen.generate_proposal([_make_failure(), _make_failure(build_number=7)], {}))
        assert proposal.build_number == 101
        assert proposal.commit_sha == "deadbeefcafe"
        assert proposal.branch == "feature/login"

    def test_empty_batch(self):
        proposal = _run(FixGenerator().generate_proposal([], {}))
        assert proposal.fixes == []
        assert proposal.build_number == 0
        assert proposal.commit_sha == ""
        assert proposal.branch is None
        assert proposal.total_confidence == 0.0
        assert proposal.estimated_time_saved == 0

    def test_missing_content_passed_as_empty(self):
        stub = StubStrategy()
        gen = FixGenerator()
        gen.register_strategy(FailureType.MOCK, stub)
        _run(gen.generate_proposal([_make_failure(test_file="missing.test.ts")], {}, "diff"))
        assert stub.calls[0][1] == ""
        assert stub.calls[0][2] == "diff"

    def test_order_preserved(self):
        gen = FixGenerator()
        gen.register_strategy(FailureType.MOCK, StubStrategy())
        failures = [
            _make_failure(FailureType.SNAPSHOT, test_file="one.test.ts"),
            _make_failure(FailureType.MOCK, test_file="two.test.ts"),
            _make_failure(FailureType.UNKNOWN, test_file="three.test.ts"),
        ]
        proposal = _run(gen.generate_proposal(failures, {}))
        assert [f.file_path for f in proposal.fixes] == ["one.test.ts", "", "three.test.ts"]
        assert [f.success for f in proposal.fixes] == [False, True, False]

    def test_default_registry_end_to_end(self):
        ai = MagicMock()
        ai.model = "gpt-4"
        ai.generate_test_fix = AsyncMock(side_effect=RuntimeError("down"))
        gen = FixGenerator(registry=build_default_registry(ai))
        failures = [
            _make_failure(FailureType.SNAPSHOT, confidence=0.9, test_file="snap.test.ts"),
            _make_failure(FailureType.MOCK, confidence=0.8, test_file="mock.test.ts"),
        ]
        proposal = _run(gen.generate_proposal(failures, {"snap.test.ts": "x", "mock.test.ts": "y"}))
        assert [f.strategy for f in proposal.fixes] == ["snapshot", "ai-powered"]
        assert proposal.total_confidence == pytest.approx(0.95)
        assert proposal.estimated_time_saved == 15


class TestSummarizeFixes:

    def test_no_successes(self):
        assert summarize_fixes([FixResult.failure("a", "none", "x", ["e"])]) == (0.0, 0)

    def test_mean(self):
        fixes = [
            FixResult(strategy="s", fixed_code="x", success=True, confidence=0.95),
            FixResult(strategy="s", fixed_code="x", success=True, confidence=0.85),
        ]
        mean, minutes = summarize_fixes(fixes)
        assert mean == pytest.approx(0.9)
        assert minutes == 30
