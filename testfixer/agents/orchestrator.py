"""
Orchestrator Agent
==================
The only component that talks to the outside world. Drives the
Fetch → Classify → Gather Context → Dispatch → Aggregate → Publish pipeline
for one CI pipeline.

Collaborators:
    - CircleCIClient   — failing test output (test-result source)
    - GitHubClient     — test file contents, commit diff, pull requests
    - OpenAIClient     — generative backend for AI-backed strategies
                         (omitted when no API key is configured; those
                         strategies then report "AI client not configured")

Fault Tolerance:
    - The initial failure fetch and PR creation propagate CollaboratorError:
      nothing useful can happen without them
    - An empty failure list raises NoFailuresFoundError, distinct from a
      transport error
    - A test file that cannot be fetched gets a placeholder content string;
      the batch continues, but any fix for that file is rejected afterwards
      so the placeholder is never published over the real file
    - A diff that cannot be fetched is simply omitted from strategy context

Ordering:
    Failures are processed one at a time in fetch order; the proposal's
    fixes line up positionally with the classified failures.
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from testfixer.agents.fix_generator import FixGenerator, build_default_registry, summarize_fixes
from testfixer.agents.pr_creator import PRCreator
from testfixer.core.config import FixerConfig
from testfixer.core.constants import DEFAULT_BASE_BRANCH, UNKNOWN_TEST_FILE
from testfixer.core.errors import NoFailuresFoundError, NothingToPublishError
from testfixer.llm.client import FixModel, OpenAIClient
from testfixer.models.fix_result import FixProposal, FixResult
from testfixer.models.pr_data import CreatedPR
from testfixer.models.test_failure import AnalyzedFailure, FailureRecord
from testfixer.parser.classification import classify_many
from testfixer.services.circleci_client import CircleCIClient
from testfixer.services.github_client import GitHubClient
from testfixer.utils.rejection_reasons import FILE_UNAVAILABLE

logger = logging.getLogger(__name__)

_PLACEHOLDER = "// Unable to fetch file content: {error}"


@dataclass
class FixContext:
    """Everything the strategies need beyond the failure itself."""
    test_files: Dict[str, str] = field(default_factory=dict)
    code_diff: Optional[str] = None
    # Paths whose test_files entry is a placeholder, not the real content
    unavailable_files: Set[str] = field(default_factory=set)


class Orchestrator:
    """
    Coordinates the full test-fixing workflow. Primary entry point for the
    web API and any other caller.

    Parameters
    ----------
    config : FixerConfig or None
        Tokens, repository and threshold (read from the environment if not provided).
    ci_client, github_client, ai_client : optional
        Collaborators; created from ``config`` when not injected.
    generator : FixGenerator or None
        Dispatcher/aggregator; by default wired with the standard strategies.
    """

    def __init__(
        self,
        config: Optional[FixerConfig] = None,
        ci_client: Optional[CircleCIClient] = None,
        github_client: Optional[GitHubClient] = None,
        ai_client: Optional[FixModel] = None,
        generator: Optional[FixGenerator] = None,
        pr_creator: Optional[PRCreator] = None,
    ) -> None:
        self.config = config or FixerConfig.from_env()
        self.ci_client = ci_client or CircleCIClient(api_token=self.config.circleci_token)
        self.github = github_client or GitHubClient(token=self.config.github_token)

        if ai_client is None and self.config.openai_api_key:
            ai_client = OpenAIClient(
                api_key=self.config.openai_api_key,
                model=self.config.openai_model,
                base_url=self.config.openai_base_url,
            )
        elif ai_client is None:
            logger.warning("OPENAI_API_KEY not set, AI-backed fixes are disabled")
        self.ai_client = ai_client

        self.generator = generator or FixGenerator(
            confidence_threshold=self.config.fix_confidence_threshold,
            registry=build_default_registry(self.ai_client),
        )
        self.pr_creator = pr_creator or PRCreator()

    # -------------------------------------------------------------------
    # Pipeline steps
    # -------------------------------------------------------------------
    async def fetch_test_failures(self, pipeline_id: str) -> List[FailureRecord]:
        """Step 1: failing tests for a pipeline. Transport errors propagate."""
        failures = await self.ci_client.fetch_failures(pipeline_id)
        logger.info("Fetched %d failing test(s) for pipeline %s", len(failures), pipeline_id)
        return failures

    def analyze_failures(self, failures: List[FailureRecord]) -> List[AnalyzedFailure]:
        """Step 2: classify each failure."""
        return classify_many(failures)

    async def gather_context(self, failures: List[AnalyzedFailure]) -> FixContext:
        """Step 3: fetch every distinct test file and the commit diff."""
        context = FixContext()
        commit_sha = failures[0].commit_sha if failures else ""
        owner, repo = self.config.github_owner, self.config.github_repo

        unique_files = list(dict.fromkeys(
            f.test_file for f in failures if f.test_file and f.test_file != UNKNOWN_TEST_FILE
        ))
        if not unique_files:
            logger.warning("No valid test files found in failures. Cannot fetch file contents.")
            return context

        for path in unique_files:
            try:
                context.test_files[path] = await self.github.get_file_content(
                    owner, repo, path, commit_sha or None
                )
            except Exception as e:
                logger.error("Failed to fetch %s: %s", path, e)
                context.test_files[path] = _PLACEHOLDER.format(error=e)
                context.unavailable_files.add(path)

        if commit_sha:
            try:
                context.code_diff = await self.github.get_commit_diff(owner, repo, commit_sha)
            except Exception as e:
                logger.error("Failed to fetch commit diff: %s", e)
        else:
            logger.warning("No commit SHA available - skipping diff fetch")

        return context

    async def generate_fixes(self, failures: List[AnalyzedFailure]) -> FixProposal:
        """Steps 3–5: gather context, dispatch and aggregate."""
        context = await self.gather_context(failures)
        proposal = await self.generator.generate_proposal(failures, context.test_files, context.code_diff)
        if context.unavailable_files:
            proposal = self._reject_unavailable(proposal, context.unavailable_files)
        return proposal

    @staticmethod
    def _reject_unavailable(proposal: FixProposal, unavailable: Set[str]) -> FixProposal:
        """Fail every successful fix built on placeholder content and re-summarise."""
        fixes = []
        for fix in proposal.fixes:
            if fix.success and fix.file_path in unavailable:
                logger.warning("Dropping %s fix for %s: file content was never fetched", fix.strategy, fix.file_path)
                fix = FixResult.failure(
                    file_path=fix.file_path,
                    strategy=fix.strategy,
                    explanation="Fix discarded because the test file could not be fetched",
                    errors=[FILE_UNAVAILABLE],
                )
            fixes.append(fix)
        total_confidence, time_saved = summarize_fixes(fixes)
        return proposal.model_copy(update={
            "fixes": fixes,
            "total_confidence": total_confidence,
            "estimated_time_saved": time_saved,
        })

    async def create_pr(self, proposal: FixProposal) -> CreatedPR:
        """
        Step 6: publish an accepted proposal, targeting the branch that failed.

        Raises
        ------
        NothingToPublishError
            When no fix changes any file; no GitHub call is made.
        """
        pr_data = self.pr_creator.prepare_pr_data(
            proposal,
            self.config.github_owner,
            self.config.github_repo,
            proposal.branch or DEFAULT_BASE_BRANCH,
        )
        if not pr_data.changes:
            raise NothingToPublishError(proposal.build_number)
        return await self.github.create_pull_request(pr_data)

    # -------------------------------------------------------------------
    # End to end
    # -------------------------------------------------------------------
    async def build_proposal(self, pipeline_id: str) -> FixProposal:
        """Fetch, classify and fix without publishing."""
        failures = await self.fetch_test_failures(pipeline_id)
        if not failures:
            raise NoFailuresFoundError(pipeline_id)
        return await self.generate_fixes(self.analyze_failures(failures))

    async def fix_failures_and_create_pr(self, pipeline_id: str) -> CreatedPR:
        proposal = await self.build_proposal(pipeline_id)
        return await self.create_pr(proposal)

    async def close(self) -> None:
        """Close every collaborator's HTTP client."""
        for client in (self.ci_client, self.github, self.ai_client):
            close = getattr(client, "close", None)
            if close is not None:
                await close()
