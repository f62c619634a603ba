"""
Rejection Reasons
=================
Standardised validation-error strings carried by failed FixResults.

Dispatch-policy rejections (NO_STRATEGY, LOW_CONFIDENCE) are expected
outcomes and are messaged differently by the UI than strategy failures, so
they must stay distinct.
"""


# ---------------------------------------------------------------------------
# Dispatch policy
# ---------------------------------------------------------------------------
NO_STRATEGY = "No strategy found"
LOW_CONFIDENCE = "Low confidence"

# ---------------------------------------------------------------------------
# Strategy failures
# ---------------------------------------------------------------------------
UNPARSEABLE_ASSERTION = "Unable to parse assertion"
ASSERTION_NOT_FOUND = "Expected value not found in test file"
AI_NOT_CONFIGURED = "AI client not configured"
EMPTY_AI_FIX = "AI returned an empty fix"
EMPTY_FILE_CONTENT = "No test file content available"
FILE_UNAVAILABLE = "Test file could not be fetched"

DISPATCH_REASONS = frozenset({NO_STRATEGY, LOW_CONFIDENCE})


def is_policy_rejection(validation_errors: list[str]) -> bool:
    """
    True when a failed FixResult was rejected by dispatch policy rather than
    by a strategy that actually ran.
    """
    return any(err in DISPATCH_REASONS for err in validation_errors)
