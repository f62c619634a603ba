"""
CircleCI Client
===============
Fetches failing test output for a pipeline from the CircleCI API.

Flow (get_failed_test_output):
    1. v2  GET /pipeline/{id}/workflow            → workflows
    2. v2  GET /workflow/{id}/job                 → jobs, keep status == "failed"
    3. v1.1 GET /project/{slug}/{job}             → commit sha + branch (first job only)
    4. v1.1 GET /project/{slug}/{job}             → "Run tests" step → failed action
    5. GET action.output_url                      → raw Jest output
    6. parser.failure_parser.build_failure_record → FailureRecord

Fault Tolerance:
    - Errors in steps 1–2 raise CollaboratorError (nothing can be fetched)
    - A failure for one job (steps 4–5) is logged and that job is skipped
    - Missing sha/branch (step 3) is logged; records carry empty values
"""
import logging
from typing import Any, Optional

import httpx

from testfixer.core.config import HTTP_TIMEOUT_SECONDS
from testfixer.core.errors import CollaboratorError
from testfixer.models.test_failure import FailureRecord
from testfixer.parser.failure_parser import build_failure_record, parse_test_results

logger = logging.getLogger(__name__)

_SERVICE = "CircleCI"


class CircleCIClient:
    """
    Async client for the CircleCI v2 / v1.1 APIs.

    Parameters
    ----------
    api_token : str
        Personal API token, sent as the Circle-Token header.
    test_step_name : str
        Name of the job step whose output holds the test report.
    transport : httpx.AsyncBaseTransport or None
        Custom transport (tests use httpx.MockTransport).
    """

    def __init__(
        self,
        api_token: str,
        base_url: str = "https://circleci.com/api/v2",
        v1_base_url: str = "https://circleci.com/api/v1.1",
        test_step_name: str = "Run tests",
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_token = api_token
        self.base_url = base_url.rstrip("/")
        self.v1_base_url = v1_base_url.rstrip("/")
        self.test_step_name = test_step_name
        self.timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers={
                    "Circle-Token": self.api_token,
                    "Content-Type": "application/json",
                },
            )
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def _fetch(self, url: str) -> Any:
        http = await self._get_http()
        try:
            resp = await http.get(url)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise CollaboratorError(_SERVICE, f"{status} {e.response.reason_phrase}", status) from e
        except httpx.HTTPError as e:
            raise CollaboratorError(_SERVICE, str(e) or type(e).__name__) from e
        return resp.json()

    # -------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------
    async def get_workflow_jobs(self, workflow_id: str) -> list[dict[str, Any]]:
        response = await self._fetch(f"{self.base_url}/workflow/{workflow_id}/job")
        return response.get("items", []) or []

    async def get_failed_jobs(self, pipeline_id: str) -> list[dict[str, Any]]:
        """Every failed job across all workflows of a pipeline."""
        workflows = await self._fetch(f"{self.base_url}/pipeline/{pipeline_id}/workflow")
        failed: list[dict[str, Any]] = []
        for workflow in workflows.get("items", []) or []:
            jobs = await self.get_workflow_jobs(workflow["id"])
            failed.extend(job for job in jobs if job.get("status") == "failed")
        logger.info("Pipeline %s has %d failed job(s)", pipeline_id, len(failed))
        return failed

    async def get_test_results(self, job_number: int, project_slug: str) -> list[FailureRecord]:
        """Failing tests from the structured test-metadata endpoint."""
        response = await self._fetch(f"{self.base_url}/project/{project_slug}/{job_number}/tests")
        return parse_test_results(response.get("items", []) or [], build_number=job_number)

    async def get_pipeline_error_messages(self, project_slug: str, job_number: Any) -> str:
        """Raw output of the failed action of the job's test step."""
        job = await self._fetch(f"{self.v1_base_url}/project/{project_slug}/{job_number}")

        test_step = next(
            (s for s in job.get("steps", []) if s.get("name") == self.test_step_name),
            None,
        )
        if test_step is None:
            raise CollaboratorError(_SERVICE, f'No "{self.test_step_name}" step found in job {job_number}')

        failed_action = next(
            (a for a in test_step.get("actions", []) if a.get("status") == "failed"),
            None,
        )
        if failed_action is None:
            raise CollaboratorError(_SERVICE, f"No failed actions found in test step of job {job_number}")

        output = await self._fetch(failed_action["output_url"])

        # Output is a list of {"message": ...} chunks
        if isinstance(output, list):
            return "\n".join(
                item.get("message", "") for item in output
                if isinstance(item, dict) and item.get("message")
            )
        if isinstance(output, str):
            return output
        if isinstance(output, dict) and "message" in output:
            return str(output["message"])
        return "Unable to parse error output"

    async def _get_commit_info(self, job: dict[str, Any]) -> tuple[str, Optional[str]]:
        try:
            details = await self._fetch(
                f"{self.v1_base_url}/project/{job['project_slug']}/{job['job_number']}"
            )
        except (CollaboratorError, KeyError) as e:
            logger.error("Failed to get commit SHA and branch: %s", e)
            return "", None
        return details.get("vcs_revision", "") or "", details.get("branch") or None

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def get_failed_test_output(self, pipeline_id: str) -> list[FailureRecord]:
        """
        Build one FailureRecord per failed job of the pipeline.

        Raises
        ------
        CollaboratorError
            When the pipeline's workflows or jobs cannot be listed.
        """
        failed_jobs = await self.get_failed_jobs(pipeline_id)
        if not failed_jobs:
            return []

        # All jobs of a pipeline share one commit
        commit_sha, branch = await self._get_commit_info(failed_jobs[0])

        records: list[FailureRecord] = []
        for job in failed_jobs:
            job_number = job.get("job_number")
            try:
                output = await self.get_pipeline_error_messages(job.get("project_slug", ""), job_number)
            except CollaboratorError as e:
                logger.error("Failed to get error messages for job %s: %s", job_number, e)
                continue
            records.append(build_failure_record(output, job, commit_sha=commit_sha, branch=branch))
        return records

    async def fetch_failures(self, pipeline_id: str) -> list[FailureRecord]:
        return await self.get_failed_test_output(pipeline_id)
