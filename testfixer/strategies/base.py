"""
Fix Strategy Interface
======================
Every repair strategy handles one (or, for the AI fallback, any) failure
category and turns an AnalyzedFailure plus the test file's content into a
FixResult.

Contract:
    - generate_fix NEVER raises; failures come back as FixResult(success=False)
      carrying the underlying message as a validation error
    - Strategies keep no state between failures; the same inputs give the
      same result unless the generative backend itself is non-deterministic
    - generate_fix is a coroutine because AI-backed strategies suspend on
      network I/O; deterministic strategies simply never await
"""
from abc import ABC, abstractmethod
from typing import Any, Optional

from testfixer.models.fix_result import FixResult
from testfixer.models.test_failure import AnalyzedFailure


class FixStrategy(ABC):
    """Base class for repair strategies."""

    name: str = ""

    @abstractmethod
    def can_handle(self, failure: AnalyzedFailure) -> bool:
        """Return True if this strategy is meant for the failure's category."""

    @abstractmethod
    async def generate_fix(
        self,
        failure: AnalyzedFailure,
        file_content: str,
        code_diff: Optional[str] = None,
    ) -> FixResult:
        """Produce a FixResult for one failure. Must not raise."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r}>"


def model_name(ai_client: Any) -> Optional[str]:
    """Best-effort model name of an injected generative backend."""
    name = getattr(ai_client, "model", None)
    return name if isinstance(name, str) and name else None
