"""
LLM Prompts
===========
Centralised store for the test-fixing system and user prompts.

Prompt Design Rules:
    - The model receives the complete test file and returns the complete
      corrected file, never a fragment
    - Recent code changes (commit diff) are included when available, since
      most test breakages follow a change in the code under test
    - Output format is fixed: a FIXED_CODE fenced block followed by an
      EXPLANATION section, parsed by llm.client.parse_fix_response
"""
from typing import Optional


# ---------------------------------------------------------------------------
# System Prompt
# ---------------------------------------------------------------------------
SYSTEM_PROMPT = (
    "You are an expert at fixing JavaScript and TypeScript test failures.\n"
    "Your task is to analyze test failures and provide corrected code.\n"
    "Always return valid, working code that will pass the tests.\n"
    "Focus on:\n"
    "- Snapshot updates\n"
    "- Assertion value corrections\n"
    "- Mock adjustments\n"
    "- Property name changes\n"
    "- Type fixes"
)


# ---------------------------------------------------------------------------
# User Prompt Builder
# ---------------------------------------------------------------------------
def build_fix_prompt(
    test_file: str,
    error_message: str,
    stack_trace: str,
    code_diff: Optional[str] = None,
) -> str:
    """
    Build the user prompt sent to the model.

    Parameters
    ----------
    test_file : str
        Full content of the failing test file.
    error_message : str
        Failure message reported by the test runner.
    stack_trace : str
        Stack trace lines, possibly empty.
    code_diff : str or None
        Diff of the commit that broke the test, if it could be fetched.

    Returns
    -------
    str
        Formatted user prompt string.
    """
    parts: list[str] = ["## Test Failure Analysis"]
    parts.append(f"**Error Message:**\n{error_message}")
    parts.append(f"**Stack Trace:**\n{stack_trace}")

    if code_diff:
        parts.append(f"**Recent Code Changes:**\n```diff\n{code_diff}\n```")

    parts.append(f"**Current Test File:**\n```typescript\n{test_file}\n```")
    parts.append(
        "Please provide:\n"
        "1. The corrected test file code (complete file)\n"
        "2. A brief explanation of what was fixed\n"
        "\n"
        "Format your response as:\n"
        "FIXED_CODE:\n```typescript\n[code here]\n```\n"
        "\n"
        "EXPLANATION:\n[explanation here]"
    )
    return "\n\n".join(parts)
