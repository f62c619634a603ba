"""
Classification
==============
Maps a failing test's error text to one FailureType and a confidence score.

Allowed Failure Types:
    SNAPSHOT, PROPERTY_CHANGE, TYPE_ERROR, ASSERTION, MOCK, UNKNOWN

Classification Strategy:
    1. ORDERED RULE TABLE — keyword groups checked against the lower-cased
       error message + stack trace; the first rule that matches wins
    2. UNKNOWN is the terminal catch-all
    3. NEVER I/O, NEVER LLM — classification is a pure function of the text

Rule order is load-bearing: error messages often contain overlapping
keywords. TYPE_ERROR and PROPERTY_CHANGE each appear twice, once as a narrow
check ahead of ASSERTION and once as a broad heuristic after it.

Confidence is deterministic: UNKNOWN 0.3, SNAPSHOT 0.9, everything else
0.7 plus 0.1 for a stack trace and 0.1 for a detailed (>50 char) message.
"""
import logging
from typing import Iterable, List

from testfixer.models.test_failure import AnalyzedFailure, FailureRecord, FailureType

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Confidence Constants
# ---------------------------------------------------------------------------
CONF_UNKNOWN = 0.3
CONF_SNAPSHOT = 0.9
CONF_BASE = 0.7
CONF_BONUS = 0.1
DETAILED_MESSAGE_LENGTH = 50


# ---------------------------------------------------------------------------
# Ordered Rule Table
# ---------------------------------------------------------------------------
# Each entry: (failure_type, keyword groups). A rule matches when every group
# has at least one keyword present in the combined text.
_RULES: list[tuple[FailureType, tuple[tuple[str, ...], ...]]] = [
    (FailureType.SNAPSHOT,        (("snapshot",), ("mismatch", "does not match"))),
    (FailureType.PROPERTY_CHANGE, (("is not a function",),)),
    (FailureType.TYPE_ERROR,      (("type error:", "typeerror:"),)),
    (FailureType.ASSERTION,       (("expected",), ("received", "but got"))),
    (FailureType.TYPE_ERROR,      (("typeerror", "cannot read propert", "undefined is not",
                                    "null is not", "is not defined"),)),
    (FailureType.PROPERTY_CHANGE, (("undefined", "null"),
                                   ("property", "properties", "field", "attribute"))),
    (FailureType.MOCK,            (("mock", "spy", "jest.fn", "tohavebeencalled", "stub"),)),
]


def _matches(text: str, groups: tuple[tuple[str, ...], ...]) -> bool:
    return all(any(keyword in text for keyword in group) for group in groups)


def detect_failure_type(error_message: str, stack_trace: str = "") -> FailureType:
    """
    Detect the failure category from error message and stack trace.

    Parameters
    ----------
    error_message : str
        The assertion / exception message reported by the test runner.
    stack_trace : str
        Stack trace lines, possibly empty.

    Returns
    -------
    FailureType
        The first matching category in rule order, else UNKNOWN.
    """
    combined = f"{error_message} {stack_trace}".lower()
    for failure_type, groups in _RULES:
        if _matches(combined, groups):
            return failure_type
    return FailureType.UNKNOWN


def calculate_confidence(failure: FailureRecord, failure_type: FailureType) -> float:
    """Score how likely an automatic fix is to be right for this category."""
    if failure_type == FailureType.UNKNOWN:
        return CONF_UNKNOWN
    if failure_type == FailureType.SNAPSHOT:
        return CONF_SNAPSHOT

    confidence = CONF_BASE
    if failure.stack_trace:
        confidence += CONF_BONUS
    if len(failure.error_message) > DETAILED_MESSAGE_LENGTH:
        confidence += CONF_BONUS
    # Rounded so repeated bonuses do not drift (0.7 + 0.1 + 0.1 == 0.9)
    return round(min(confidence, 1.0), 2)


def extract_affected_code(failure: FailureRecord) -> str:
    # Locating the failing expression needs the source file, which is
    # fetched later by the orchestrator; the stack trace stands in for now.
    return failure.stack_trace


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def classify(failure: FailureRecord) -> AnalyzedFailure:
    """Classify one failure. Never raises; worst case is UNKNOWN at 0.3."""
    failure_type = detect_failure_type(failure.error_message, failure.stack_trace)
    confidence = calculate_confidence(failure, failure_type)
    logger.debug(
        "Classified %s as %s (confidence %.2f)",
        failure.test_name, failure_type.value, confidence,
    )
    return AnalyzedFailure(
        **failure.model_dump(),
        failure_type=failure_type,
        confidence=confidence,
        affected_code=extract_affected_code(failure),
    )


def classify_many(failures: Iterable[FailureRecord]) -> List[AnalyzedFailure]:
    """Classify a batch. Items are independent; output order matches input order."""
    return [classify(f) for f in failures]
