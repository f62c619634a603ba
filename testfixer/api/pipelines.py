"""
Pipeline Endpoints
==================
Thin HTTP layer over the Orchestrator.

    GET  /pipelines/{pipeline_id}/failures  — fetched + classified failures
    GET  /pipelines/{pipeline_id}/analysis  — per-category counts
    POST /pipelines/{pipeline_id}/proposal  — build a proposal, do not publish
    POST /pull-requests                     — publish a previously built proposal
    POST /pipelines/{pipeline_id}/fix       — fetch, fix and open a PR

NoFailuresFoundError → 404, NothingToPublishError → 422, CollaboratorError → 502.
"""
import logging
from collections import Counter
from typing import AsyncIterator, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from testfixer.agents.orchestrator import Orchestrator
from testfixer.core.errors import CollaboratorError, NoFailuresFoundError, NothingToPublishError
from testfixer.models import AnalyzedFailure, CreatedPR, FixProposal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Pipelines"])


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------
class AnalysisSummary(BaseModel):
    pipeline_id: str
    total_failures: int
    by_type: Dict[str, int]
    failures: List[AnalyzedFailure]


# ---------------------------------------------------------------------------
# Dependency
# ---------------------------------------------------------------------------
async def get_orchestrator() -> AsyncIterator[Orchestrator]:
    """One orchestrator per request; its HTTP clients are closed afterwards."""
    orchestrator = Orchestrator()
    try:
        yield orchestrator
    finally:
        await orchestrator.close()


def _to_http_error(e: Exception) -> HTTPException:
    if isinstance(e, NoFailuresFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, NothingToPublishError):
        return HTTPException(status_code=422, detail=str(e))
    logger.error("Collaborator failure: %s", e)
    return HTTPException(status_code=502, detail=str(e))


async def _analyzed(orchestrator: Orchestrator, pipeline_id: str) -> List[AnalyzedFailure]:
    failures = await orchestrator.fetch_test_failures(pipeline_id)
    if not failures:
        raise NoFailuresFoundError(pipeline_id)
    return orchestrator.analyze_failures(failures)


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@router.get("/pipelines/{pipeline_id}/failures", response_model=List[AnalyzedFailure])
async def get_failures(pipeline_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        return await _analyzed(orchestrator, pipeline_id)
    except (NoFailuresFoundError, CollaboratorError) as e:
        raise _to_http_error(e)


@router.get("/pipelines/{pipeline_id}/analysis", response_model=AnalysisSummary)
async def get_analysis(pipeline_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        analyzed = await _analyzed(orchestrator, pipeline_id)
    except (NoFailuresFoundError, CollaboratorError) as e:
        raise _to_http_error(e)

    counts = Counter(f.failure_type.value for f in analyzed)
    return AnalysisSummary(
        pipeline_id=pipeline_id,
        total_failures=len(analyzed),
        by_type=dict(counts),
        failures=analyzed,
    )


@router.post("/pipelines/{pipeline_id}/proposal", response_model=FixProposal)
async def build_proposal(pipeline_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        return await orchestrator.build_proposal(pipeline_id)
    except (NoFailuresFoundError, CollaboratorError) as e:
        raise _to_http_error(e)


@router.post("/pull-requests", response_model=CreatedPR)
async def create_pull_request(proposal: FixProposal, orchestrator: Orchestrator = Depends(get_orchestrator)):
    try:
        return await orchestrator.create_pr(proposal)
    except (NothingToPublishError, CollaboratorError) as e:
        raise _to_http_error(e)


@router.post("/pipelines/{pipeline_id}/fix", response_model=CreatedPR)
async def fix_pipeline(pipeline_id: str, orchestrator: Orchestrator = Depends(get_orchestrator)):
    logger.info("Fixing failures for pipeline %s", pipeline_id)
    try:
        return await orchestrator.fix_failures_and_create_pr(pipeline_id)
    except (NoFailuresFoundError, NothingToPublishError, CollaboratorError) as e:
        raise _to_http_error(e)
