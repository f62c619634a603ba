"""
Failure Parser
==============
Converts raw Jest output, as surfaced by the CI provider, into the pieces a
FailureRecord needs.

Pipeline:
    1. Split output into lines
    2. "FAIL <file>" line       → test file (normalised, repo-relative)
    3. First "●" line           → test name
    4. "at ..." frames, ".ts:" / ".js:" references and "  12 |" source
       excerpt lines            → stack trace

Contract:
    - DETERMINISTIC: same output → same ParsedTestInfo, always.
    - Jest is the only supported report shape.
    - Tolerant: missing pieces come back as None, never raises.
"""
import re
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from testfixer.core.constants import UNKNOWN_TEST_FILE
from testfixer.models.test_failure import FailureRecord

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------
_FAIL_LINE_RE = re.compile(r"FAIL\s+(\S+\.(?:spec|test)\.[jt]sx?)")
_SOURCE_EXCERPT_RE = re.compile(r"^\s*>?\s*\d+\s+\|")
_TEST_NAME_MARKER = "●"


@dataclass(frozen=True)
class ParsedTestInfo:
    """Pieces of a failing test recovered from runner output."""
    test_file: Optional[str] = None
    test_name: Optional[str] = None
    stack_trace: Optional[str] = None


def normalize_path(raw_path: str) -> str:
    """Strip quotes, convert backslashes, and drop leading ./ or / from a path."""
    path = raw_path.strip().strip("'\"").replace("\\", "/")
    if path.startswith("./"):
        path = path[2:]
    return path.lstrip("/")


def _is_stack_line(line: str) -> bool:
    trimmed = line.strip()
    return (
        trimmed.startswith("at ")
        or ".ts:" in trimmed
        or ".js:" in trimmed
        or bool(_SOURCE_EXCERPT_RE.match(line))
    )


def parse_test_info(error_output: str) -> ParsedTestInfo:
    """
    Extract test file, test name and stack trace from Jest console output.

    Parameters
    ----------
    error_output : str
        Raw output of the failed test step.

    Returns
    -------
    ParsedTestInfo
        Each field is None when the output does not contain it.
    """
    if not error_output:
        return ParsedTestInfo()

    lines = error_output.splitlines()
    test_file: Optional[str] = None
    test_name: Optional[str] = None

    for line in lines:
        if line.strip().startswith("FAIL"):
            match = _FAIL_LINE_RE.search(line)
            if match:
                test_file = normalize_path(match.group(1))
                break

    for line in lines:
        if _TEST_NAME_MARKER in line:
            test_name = line.replace(_TEST_NAME_MARKER, "").strip() or None
            break

    stack_lines = [line for line in lines if _is_stack_line(line)]
    stack_trace = "\n".join(stack_lines) if stack_lines else None

    return ParsedTestInfo(test_file=test_file, test_name=test_name, stack_trace=stack_trace)


def build_failure_record(
    error_output: str,
    job: dict[str, Any],
    commit_sha: str = "",
    branch: Optional[str] = None,
) -> FailureRecord:
    """Combine parsed runner output with CI job metadata into a FailureRecord."""
    info = parse_test_info(error_output)

    started_at = job.get("started_at")
    try:
        timestamp = datetime.fromisoformat(started_at.replace("Z", "+00:00")) if started_at else None
    except (AttributeError, ValueError):
        timestamp = None

    job_number = job.get("job_number", 0)
    try:
        build_number = int(job_number)
    except (TypeError, ValueError):
        build_number = 0

    return FailureRecord(
        test_name=info.test_name or job.get("name") or "Unknown Test",
        test_file=info.test_file or UNKNOWN_TEST_FILE,
        error_message=error_output or "No error message available",
        stack_trace=info.stack_trace or "",
        job_id=str(job.get("id", "")),
        build_number=build_number,
        commit_sha=commit_sha,
        branch=branch or None,
        timestamp=timestamp or datetime.now(timezone.utc),
    )


def parse_test_results(
    items: list[dict[str, Any]],
    job_id: str = "",
    build_number: int = 0,
    commit_sha: str = "",
) -> list[FailureRecord]:
    """
    Map CI test-metadata items to FailureRecords, keeping only failures.

    CircleCI reports one item per test case with ``result`` of
    "success" / "failure" / "skipped".
    """
    records: list[FailureRecord] = []
    for item in items:
        if item.get("result") != "failure":
            continue
        run_time = item.get("run_time")
        records.append(FailureRecord(
            test_name=item.get("name") or "Unknown Test",
            test_file=normalize_path(item.get("file") or item.get("classname") or UNKNOWN_TEST_FILE),
            error_message=item.get("message") or "",
            stack_trace=f"Runtime: {run_time}ms" if run_time else "",
            job_id=job_id,
            build_number=build_number,
            commit_sha=commit_sha,
        ))
    logger.debug("Parsed %d failing tests from %d results", len(records), len(items))
    return records
