"""
Errors
======
Exceptions that may leave the orchestrator layer.

Everything inside the classification/repair core reports problems inline on
a FixResult. Only collaborator failures that stop the pipeline from making
any progress surface as exceptions.
"""
from typing import Optional


class FixerError(Exception):
    """Base class for every error raised by testfixer."""


class CollaboratorError(FixerError):
    """An external service (CircleCI, GitHub, OpenAI) call could not be completed."""

    def __init__(self, service: str, message: str, status_code: Optional[int] = None) -> None:
        self.service = service
        self.status_code = status_code
        super().__init__(f"{service} API error: {message}")


class NoFailuresFoundError(FixerError):
    """The test-result source answered, but reported no failing tests."""

    def __init__(self, pipeline_id: str) -> None:
        self.pipeline_id = pipeline_id
        super().__init__(f"No test failures found for pipeline {pipeline_id}")


class NothingToPublishError(FixerError):
    """A proposal produced no file changes, so there is no pull request to open."""

    def __init__(self, build_number: int) -> None:
        self.build_number = build_number
        super().__init__(f"Proposal for build #{build_number} has no file changes to publish")
