"""
PR Creator
==========
Turns an accepted FixProposal into the patch set the repository host needs
to open a pull request.

Rules:
    - One FileChange per successful FixResult that changes its file, in
      proposal order; snapshot fixes leave content as is and produce none
    - Failed fixes never produce a FileChange; they are listed in the
      description so reviewers see what was skipped and why
    - Branch names are deterministic: testfixer/build-<number>-<sha7>

PRCreator never talks to the network; GitHubClient.create_pull_request
publishes the PRData it returns.
"""
import logging
import re
from typing import List, Optional

from testfixer.core.constants import BRANCH_PREFIX, COMMIT_PREFIX, PR_LABELS
from testfixer.models.fix_result import FixProposal, FixResult
from testfixer.models.pr_data import FileChange, PRData
from testfixer.utils.rejection_reasons import is_policy_rejection

logger = logging.getLogger(__name__)


class PRCreator:
    """Builds PRData from a FixProposal."""

    def __init__(self, labels: Optional[List[str]] = None) -> None:
        self.labels = list(labels) if labels is not None else list(PR_LABELS)

    def prepare_pr_data(
        self,
        proposal: FixProposal,
        owner: str,
        repo: str,
        base_branch: str = "main",
    ) -> PRData:
        changes = self.build_changes(proposal)
        if not changes:
            logger.warning("Proposal for build %d has no successful fixes", proposal.build_number)

        return PRData(
            owner=owner,
            repo=repo,
            base_branch=base_branch,
            title=self._title(proposal, len(proposal.successful_fixes)),
            description=self._description(proposal),
            branch_name=self.generate_branch_name(proposal),
            changes=changes,
            commit_message=self._commit_message(proposal, len(changes)),
            labels=self.labels,
        )

    @staticmethod
    def build_changes(proposal: FixProposal) -> List[FileChange]:
        return [
            FileChange(path=fix.file_path, content=fix.fixed_code, operation="update")
            for fix in proposal.fixes
            if fix.success and fix.fixed_code != fix.original_code
        ]

    @staticmethod
    def generate_branch_name(proposal: FixProposal) -> str:
        sha = re.sub(r"[^0-9a-zA-Z]", "", proposal.commit_sha)[:7] or "unknown"
        return f"{BRANCH_PREFIX}/build-{proposal.build_number}-{sha}"

    @staticmethod
    def _title(proposal: FixProposal, count: int) -> str:
        noun = "test" if count == 1 else "tests"
        return f"Fix {count} failing {noun} from build #{proposal.build_number}"

    @staticmethod
    def _commit_message(proposal: FixProposal, count: int) -> str:
        return f"{COMMIT_PREFIX} {count} test file(s) from build #{proposal.build_number}"

    @staticmethod
    def _describe_fix(fix: FixResult) -> str:
        line = f"- `{fix.file_path}` — **{fix.strategy}** ({fix.confidence:.0%}): {fix.explanation}"
        if fix.ai_model:
            line += f" _(model: {fix.ai_model})_"
        return line

    def _description(self, proposal: FixProposal) -> str:
        successful = proposal.successful_fixes
        failed = proposal.failed_fixes

        lines = [
            "## Automated test fixes",
            "",
            f"Build: #{proposal.build_number}",
            f"Commit: `{proposal.commit_sha or 'unknown'}`",
        ]
        if proposal.branch:
            lines.append(f"Branch: `{proposal.branch}`")
        lines += [
            f"Average confidence: {proposal.total_confidence:.0%}",
            f"Estimated time saved: {proposal.estimated_time_saved} minutes",
            "",
            f"### Applied fixes ({len(successful)})",
        ]
        lines += [self._describe_fix(f) for f in successful] or ["_None_"]

        if failed:
            lines += ["", f"### Skipped ({len(failed)})"]
            for fix in failed:
                errors = ", ".join(fix.validation_errors)
                status = "not attempted" if is_policy_rejection(fix.validation_errors) else "failed"
                lines.append(f"- `{fix.file_path}` — {status}: {fix.explanation} ({errors})")

        lines += ["", "Please review every change before merging."]
        return "\n".join(lines)
