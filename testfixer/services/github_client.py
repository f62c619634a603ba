"""
GitHub Client
=============
Reads test files and commit diffs, and publishes PRData as a pull request.

Publishing (create_pull_request):
    1. Resolve the base branch head commit
    2. Create the fix branch from it
    3. Commit each FileChange to the fix branch (existing blob sha is looked
       up so updates do not fail with 409/422)
    4. Open the pull request, then add labels
"""
import base64
import logging
from typing import Any, List, Optional

import httpx

from testfixer.core.config import HTTP_TIMEOUT_SECONDS
from testfixer.core.errors import CollaboratorError
from testfixer.models.pr_data import CreatedPR, PRData

logger = logging.getLogger(__name__)

_SERVICE = "GitHub"
_DIFF_MEDIA_TYPE = "application/vnd.github.v3.diff"


class GitHubClient:
    """Async client for the GitHub REST API."""

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        timeout: float = HTTP_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def _get_http(self) -> httpx.AsyncClient:
        if self._http is None or self._http.is_closed:
            headers = {
                "Accept": "application/vnd.github.v3+json",
                "User-Agent": "testfixer",
            }
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._http = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
                headers=headers,
            )
        return self._http

    async def close(self) -> None:
        if self._http and not self._http.is_closed:
            await self._http.aclose()
            self._http = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        accept: Optional[str] = None,
        params: Optional[dict[str, str]] = None,
        json: Optional[dict[str, Any]] = None,
    ) -> httpx.Response:
        http = await self._get_http()
        headers = {"Accept": accept} if accept else None
        try:
            resp = await http.request(
                method, f"{self.base_url}{path}", headers=headers, params=params, json=json
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise CollaboratorError(_SERVICE, f"{status} {e.response.text}", status) from e
        except httpx.HTTPError as e:
            raise CollaboratorError(_SERVICE, str(e) or type(e).__name__) from e
        return resp

    # -------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------
    async def get_file_content(self, owner: str, repo: str, path: str, ref: Optional[str] = None) -> str:
        """Decoded UTF-8 content of a file, optionally at a given commit/branch."""
        params = {"ref": ref} if ref else None
        resp = await self._request("GET", f"/repos/{owner}/{repo}/contents/{path}", params=params)
        data = resp.json()
        encoded = data.get("content") if isinstance(data, dict) else None
        if not encoded:
            raise CollaboratorError(_SERVICE, f"Could not fetch content for {path}")
        return base64.b64decode(encoded).decode("utf-8")

    async def get_commit_diff(self, owner: str, repo: str, commit_sha: str) -> str:
        resp = await self._request(
            "GET", f"/repos/{owner}/{repo}/commits/{commit_sha}", accept=_DIFF_MEDIA_TYPE
        )
        return resp.text

    async def get_latest_commit(self, owner: str, repo: str, branch: str) -> dict[str, Any]:
        resp = await self._request("GET", f"/repos/{owner}/{repo}/commits/{branch}")
        return resp.json()

    async def get_file_sha(self, owner: str, repo: str, path: str, ref: str) -> Optional[str]:
        """Blob sha of a file on ``ref``, or None if it does not exist there."""
        try:
            resp = await self._request(
                "GET", f"/repos/{owner}/{repo}/contents/{path}", params={"ref": ref}
            )
        except CollaboratorError as e:
            if e.status_code == 404:
                return None
            raise
        data = resp.json()
        return data.get("sha") if isinstance(data, dict) else None

    # -------------------------------------------------------------------
    # Write access
    # -------------------------------------------------------------------
    async def create_branch(self, owner: str, repo: str, branch_name: str, from_sha: str) -> None:
        await self._request(
            "POST",
            f"/repos/{owner}/{repo}/git/refs",
            json={"ref": f"refs/heads/{branch_name}", "sha": from_sha},
        )
        logger.info("Created branch %s at %s", branch_name, from_sha[:7])

    async def create_or_update_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        branch: str,
        sha: Optional[str] = None,
    ) -> None:
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
            "branch": branch,
        }
        if sha:
            body["sha"] = sha
        await self._request("PUT", f"/repos/{owner}/{repo}/contents/{path}", json=body)

    async def add_labels(self, owner: str, repo: str, pr_number: int, labels: List[str]) -> None:
        await self._request(
            "POST", f"/repos/{owner}/{repo}/issues/{pr_number}/labels", json={"labels": labels}
        )

    async def create_pull_request(self, pr_data: PRData) -> CreatedPR:
        """Create the branch, commit every change, and open the pull request."""
        owner, repo = pr_data.owner, pr_data.repo

        latest = await self.get_latest_commit(owner, repo, pr_data.base_branch)
        await self.create_branch(owner, repo, pr_data.branch_name, latest["sha"])

        for change in pr_data.changes:
            sha = await self.get_file_sha(owner, repo, change.path, pr_data.branch_name)
            await self.create_or_update_file(
                owner, repo, change.path, change.content,
                pr_data.commit_message, pr_data.branch_name, sha=sha,
            )

        resp = await self._request(
            "POST",
            f"/repos/{owner}/{repo}/pulls",
            json={
                "title": pr_data.title,
                "body": pr_data.description,
                "head": pr_data.branch_name,
                "base": pr_data.base_branch,
            },
        )
        pr = resp.json()

        if pr_data.labels:
            await self.add_labels(owner, repo, pr["number"], pr_data.labels)

        logger.info("Opened pull request #%d: %s", pr["number"], pr["html_url"])
        return CreatedPR(
            url=pr["html_url"],
            number=pr["number"],
            branch_name=pr_data.branch_name,
            files_changed=len(pr_data.changes),
        )
