"""
Constants
Centralised storage for failure categories' fixed scores, strategy names and PR rules.
"""
MINUTES_SAVED_PER_FIX = 15
DEFAULT_CONFIDENCE_THRESHOLD = 0.5

STRATEGY_NONE = "none"
STRATEGY_SNAPSHOT = "snapshot"
STRATEGY_ASSERTION = "assertion"
STRATEGY_ASSERTION_AI = "assertion-ai"
STRATEGY_AI = "ai-powered"

BRANCH_PREFIX = "testfixer"
DEFAULT_BASE_BRANCH = "main"
PR_LABELS = ["automated-fix", "tests"]
COMMIT_PREFIX = "[testfixer] Fix:"

UNKNOWN_TEST_FILE = "Unknown"
