"""
Unit Tests — Failure Parser
===========================
Jest console output and CircleCI test metadata → FailureRecord.
"""
from datetime import datetime, timezone

from testfixer.core.constants import UNKNOWN_TEST_FILE
from testfixer.parser.failure_parser import (
    ParsedTestInfo,
    build_failure_record,
    normalize_path,
    parse_test_info,
    parse_test_results,
)


SAMPLE_JEST_OUTPUT = """\
 FAIL ./src/components/__tests__/UserCard.test.tsx
  ● UserCard › renders the user name

    expect(received).toBe(expected) // Object.is equality

    Expected: "John"
    Received: "Jane"

      10 |   render(<UserCard user={user} />);
    > 11 |   expect(screen.getByRole('heading').textContent).toBe("John");
         |                                                   ^

      at Object.<anonymous> (src/components/__tests__/UserCard.test.tsx:11:51)

Tests:       1 failed, 4 passed, 5 total
"""


# ===========================================================================
# 1. Paths
# ===========================================================================
class TestNormalizePath:

    def test_strips_dot_slash(self):
        assert normalize_path("./src/a.test.ts") == "src/a.test.ts"

    def test_backslashes(self):
        assert normalize_path("src\\a.test.ts") == "src/a.test.ts"

    def test_quotes_and_leading_slash(self):
        assert normalize_path("'/src/a.test.ts'") == "src/a.test.ts"


# ===========================================================================
# 2. Jest output
# ===========================================================================
class TestParseTestInfo:

    def test_full_output(self):
        info = parse_test_info(SAMPLE_JEST_OUTPUT)
        assert info.test_file == "src/components/__tests__/UserCard.test.tsx"
        assert info.test_name == "UserCard › renders the user name"
        assert "at Object.<anonymous>" in info.stack_trace
        assert "11 |" in info.stack_trace
        assert "Tests:" not in info.stack_trace

    def test_empty_output(self):
        assert parse_test_info("") == ParsedTestInfo()

    def test_no_fail_line(self):
        info = parse_test_info("something broke\nat foo (bar.js:1:1)")
        assert info.test_file is None
        assert info.test_name is None
        assert info.stack_trace == "at foo (bar.js:1:1)"

    def test_alternate_suffix(self):
        info = parse_test_info("FAIL src/api.spec.js")
        assert info.test_file == "src/api.spec.js"

    def test_deterministic(self):
        assert parse_test_info(SAMPLE_JEST_OUTPUT) == parse_test_info(SAMPLE_JEST_OUTPUT)


# ===========================================================================
# 3. Record building
# ===========================================================================
class TestBuildFailureRecord:

    def test_uses_job_metadata(self):
        job = {"id": "job-1", "job_number": 42, "name": "test", "started_at": "2024-03-01T10:00:00Z"}
        record = build_failure_record(SAMPLE_JEST_OUTPUT, job, commit_sha="abc123", branch="feature/x")
        assert record.test_file == "src/components/__tests__/UserCard.test.tsx"
        assert record.job_id == "job-1"
        assert record.build_number == 42
        assert record.commit_sha == "abc123"
        assert record.branch == "feature/x"
        assert record.timestamp == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)
        assert record.error_message == SAMPLE_JEST_OUTPUT

    def test_defaults_for_unparseable_output(self):
        record = build_failure_record("", {"job_number": "n/a"})
        assert record.test_name == "Unknown Test"
        assert record.test_file == UNKNOWN_TEST_FILE
        assert record.error_message == "No error message available"
        assert record.build_number == 0

    def test_job_name_used_when_no_test_name(self):
        record = build_failure_record("boom", {"name": "unit-tests"})
        assert record.test_name == "unit-tests"


class TestParseTestResults:

    def test_keeps_only_failures(self):
        items = [
            {"name": "adds", "file": "./src/math.test.ts", "result": "success"},
            {"name": "subtracts", "file": "./src/math.test.ts", "result": "failure",
             "message": "expected 1 received 2", "run_time": 12},
            {"name": "skipped", "result": "skipped"},
        ]
        records = parse_test_results(items, job_id="j", build_number=7, commit_sha="sha")
        assert len(records) == 1
        assert records[0].test_name == "subtracts"
        assert records[0].test_file == "src/math.test.ts"
        assert records[0].stack_trace == "Runtime: 12ms"
        assert records[0].build_number == 7

    def test_classname_fallback(self):
        records = parse_test_results([{"name": "x", "classname": "src/x.test.js", "result": "failure"}])
        assert records[0].test_file == "src/x.test.js"
        assert records[0].stack_trace == ""
