"""
GitHub Client Tests
===================
Request shapes and error mapping against an httpx.MockTransport.
"""
import asyncio
import base64
import json

import httpx
import pytest

from testfixer.core.errors import CollaboratorError
from testfixer.models import CreatedPR, FileChange, PRData
from testfixer.services.github_client import GitHubClient


def _run(coro):
    return asyncio.run(coro)


def _b64(text: str) -> str:
    return base64.b64encode(text.encode("utf-8")).decode("ascii")


def _client(handler) -> GitHubClient:
    return GitHubClient(token="ghp_test", transport=httpx.MockTransport(handler))


# ===========================================================================
# 1. Read access
# ===========================================================================
class TestReadAccess:

    def test_get_file_content_decodes_and_passes_ref(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["ref"] = request.url.params.get("ref")
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"content": _b64("it('works')"), "sha": "blob1"})

        content = _run(_client(handler).get_file_content("acme", "web", "src/a.test.ts", "abc123"))
        assert content == "it('works')"
        assert seen == {
            "path": "/repos/acme/web/contents/src/a.test.ts",
            "ref": "abc123",
            "auth": "Bearer ghp_test",
        }

    def test_get_file_content_without_content(self):
        handler = lambda request: httpx.Response(200, json={"type": "dir"})
        with pytest.raises(CollaboratorError):
            _run(_client(handler).get_file_content("acme", "web", "src"))

    def test_not_found(self):
        handler = lambda request: httpx.Response(404, text="Not Found")
        with pytest.raises(CollaboratorError) as exc_info:
            _run(_client(handler).get_file_content("acme", "web", "missing.ts"))
        assert exc_info.value.status_code == 404

    def test_get_commit_diff_uses_diff_media_type(self):
        seen = {}

        def handler(request):
            seen["accept"] = request.headers["Accept"]
            return httpx.Response(200, text="diff --git a/x b/x")

        diff = _run(_client(handler).get_commit_diff("acme", "web", "abc123"))
        assert diff == "diff --git a/x b/x"
        assert seen["accept"] == "application/vnd.github.v3.diff"

    def test_get_file_sha_missing_file(self):
        handler = lambda request: httpx.Response(404, text="Not Found")
        assert _run(_client(handler).get_file_sha("acme", "web", "new.ts", "b")) is None

    def test_get_file_sha_other_errors_propagate(self):
        handler = lambda request: httpx.Response(500, text="boom")
        with pytest.raises(CollaboratorError):
            _run(_client(handler).get_file_sha("acme", "web", "a.ts", "b"))


# ===========================================================================
# 2. Publishing
# ===========================================================================
class TestCreatePullRequest:

    def test_full_flow(self):
        calls = []

        def handler(request):
            body = json.loads(request.content) if request.content else None
            calls.append((request.method, request.url.path, body))
            path = request.url.path
            if request.method == "GET" and path == "/repos/acme/web/commits/main":
                return httpx.Response(200, json={"sha": "base-sha"})
            if request.method == "POST" and path.endswith("/git/refs"):
                return httpx.Response(201, json={})
            if request.method == "GET" and path.endswith("/contents/src/a.test.ts"):
                return httpx.Response(200, json={"sha": "old-blob"})
            if request.method == "GET" and path.endswith("/contents/src/new.test.ts"):
                return httpx.Response(404, text="Not Found")
            if request.method == "PUT":
                return httpx.Response(200, json={})
            if request.method == "POST" and path.endswith("/pulls"):
                return httpx.Response(201, json={"number": 17, "html_url": "https://github.com/acme/web/pull/17"})
            if request.method == "POST" and path.endswith("/labels"):
                return httpx.Response(200, json=[])
            return httpx.Response(500, text=f"unexpected {request.method} {path}")

        pr_data = PRData(
            owner="acme",
            repo="web",
            base_branch="main",
            title="Fix 2 failing tests from build #5",
            description="body",
            branch_name="testfixer/build-5-abc1234",
            changes=[
                FileChange(path="src/a.test.ts", content="fixed a"),
                FileChange(path="src/new.test.ts", content="fixed b", operation="create"),
            ],
            commit_message="[testfixer] Fix: 2 test file(s) from build #5",
            labels=["automated-fix"],
        )

        created = _run(_client(handler).create_pull_request(pr_data))

        assert created == CreatedPR(
            url="https://github.com/acme/web/pull/17",
            number=17,
            branch_name="testfixer/build-5-abc1234",
            files_changed=2,
        )

        ref_call = next(c for c in calls if c[1].endswith("/git/refs"))
        assert ref_call[2] == {"ref": "refs/heads/testfixer/build-5-abc1234", "sha": "base-sha"}

        puts = [c for c in calls if c[0] == "PUT"]
        assert puts[0][2]["sha"] == "old-blob"
        assert base64.b64decode(puts[0][2]["content"]).decode() == "fixed a"
        assert "sha" not in puts[1][2]
        assert all(p[2]["branch"] == "testfixer/build-5-abc1234" for p in puts)

        pull_call = next(c for c in calls if c[1].endswith("/pulls"))
        assert pull_call[2]["head"] == "testfixer/build-5-abc1234"
        assert pull_call[2]["base"] == "main"

        label_call = next(c for c in calls if c[1].endswith("/labels"))
        assert label_call[1] == "/repos/acme/web/issues/17/labels"
        assert label_call[2] == {"labels": ["automated-fix"]}

    def test_branch_creation_failure_propagates(self):
        def handler(request):
            if request.method == "GET":
                return httpx.Response(200, json={"sha": "base-sha"})
            return httpx.Response(422, text="Reference already exists")

        pr_data = PRData(
            owner="acme", repo="web", title="t", description="d",
            branch_name="b", commit_message="m",
        )
        with pytest.raises(CollaboratorError) as exc_info:
            _run(_client(handler).create_pull_request(pr_data))
        assert exc_info.value.status_code == 422
