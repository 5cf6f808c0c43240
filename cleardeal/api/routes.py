"""Job and application routes.

The caller is identified by the ``X-Wallet-Address`` header. Engine errors
propagate to the exception handlers registered in ``app.py``.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Query, Request, status

from cleardeal.identity import normalize_address, require_caller
from cleardeal.marketplace import Marketplace

from .schemas import (
    ApplicationListResponse,
    ApplicationResponse,
    ApplyRequest,
    ErrorResponse,
    JobCreate,
    JobListResponse,
    JobResponse,
    SelectRequest,
    StatusResponse,
    SubmissionCreate,
    SummaryResponse,
)

logger = logging.getLogger(__name__)

ERROR_RESPONSES = {
    status.HTTP_403_FORBIDDEN: {"model": ErrorResponse, "description": "Caller may not do this"},
    status.HTTP_404_NOT_FOUND: {"model": ErrorResponse, "description": "Unknown job or application"},
    status.HTTP_409_CONFLICT: {"model": ErrorResponse, "description": "Not allowed in the current state"},
    status.HTTP_502_BAD_GATEWAY: {"model": ErrorResponse, "description": "Settlement did not confirm"},
}

router = APIRouter(prefix="/jobs", tags=["jobs"], responses=ERROR_RESPONSES)
summary_router = APIRouter(tags=["dashboard"], responses=ERROR_RESPONSES)


def get_marketplace(request: Request) -> Marketplace:
    return request.app.state.marketplace


def get_caller(
    x_wallet_address: Annotated[str | None, Header()] = None,
) -> str | None:
    """Connected wallet address, or None when the header is missing."""
    return normalize_address(x_wallet_address) or None


MarketplaceDep = Annotated[Marketplace, Depends(get_marketplace)]
Caller = Annotated[str | None, Depends(get_caller)]


# =============================================================================
# Jobs
# =============================================================================


@router.post("", response_model=JobResponse, status_code=status.HTTP_201_CREATED)
async def create_job(body: JobCreate, caller: Caller, market: MarketplaceDep):
    """Post a job. The caller becomes its client."""
    logger.info(f"POST /jobs | client={caller} | title={body.title[:50]}")
    job = market.jobs.create_job(caller, body.title, body.description, body.bounty)
    return JobResponse.from_job(job)


@router.get("", response_model=JobListResponse)
async def list_jobs(
    market: MarketplaceDep,
    client: str | None = Query(None, description="Only jobs posted by this address"),
    open_only: bool = Query(False, description="Only jobs accepting applications"),
):
    jobs = market.jobs.list_jobs(client=client, open_only=open_only)
    return JobListResponse(jobs=[JobResponse.from_job(j) for j in jobs], total=len(jobs))


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, market: MarketplaceDep):
    return JobResponse.from_job(market.jobs.get_job(job_id))


# =============================================================================
# Applications
# =============================================================================


@router.post(
    "/{job_id}/applications",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def apply_to_job(
    job_id: str,
    caller: Caller,
    market: MarketplaceDep,
    body: ApplyRequest | None = None,
):
    """Pay the application fee and apply. Responds once the fee has settled."""
    logger.info(f"POST /jobs/{job_id}/applications | freelancer={caller}")
    bounty = body.bounty if body is not None else None
    application = await market.applications.apply(job_id, caller, bounty=bounty)
    return ApplicationResponse.from_application(application)


@router.get("/{job_id}/applications", response_model=ApplicationListResponse)
async def list_applications(job_id: str, caller: Caller, market: MarketplaceDep):
    """The client sees every application; a freelancer only their own."""
    applications = market.applications.visible_applications(job_id, caller)
    return ApplicationListResponse(
        applications=[ApplicationResponse.from_application(a) for a in applications],
        total=len(applications),
    )


@router.post("/{job_id}/select", response_model=ApplicationResponse)
async def select_freelancer(
    job_id: str, body: SelectRequest, caller: Caller, market: MarketplaceDep
):
    logger.info(f"POST /jobs/{job_id}/select | client={caller} | freelancer={body.freelancer}")
    application = market.applications.select(job_id, body.freelancer, caller)
    return ApplicationResponse.from_application(application)


@router.post("/{job_id}/submission", response_model=ApplicationResponse)
async def submit_work(
    job_id: str, body: SubmissionCreate, caller: Caller, market: MarketplaceDep
):
    logger.info(f"POST /jobs/{job_id}/submission | freelancer={caller} | type={body.type}")
    application = market.applications.submit_work(job_id, caller, body.model_dump())
    return ApplicationResponse.from_application(application)


@router.post("/{job_id}/approve", response_model=ApplicationResponse)
async def approve_work(job_id: str, caller: Caller, market: MarketplaceDep):
    """Approve submitted work. Responds once the bounty has been released."""
    logger.info(f"POST /jobs/{job_id}/approve | client={caller}")
    application = await market.applications.approve_work(job_id, caller)
    return ApplicationResponse.from_application(application)


@router.post("/{job_id}/reject", response_model=ApplicationResponse)
async def reject_work(job_id: str, caller: Caller, market: MarketplaceDep):
    logger.info(f"POST /jobs/{job_id}/reject | client={caller}")
    application = market.applications.reject_work(job_id, caller)
    return ApplicationResponse.from_application(application)


@router.get("/{job_id}/status", response_model=StatusResponse)
async def freelancer_status(job_id: str, caller: Caller, market: MarketplaceDep):
    """The caller's status on this job, as a freelancer."""
    freelancer = require_caller(caller)
    resolved = market.applications.status_for(job_id, freelancer)
    return StatusResponse.build(job_id, freelancer, resolved)


# =============================================================================
# Dashboard
# =============================================================================


@summary_router.get("/summary", response_model=SummaryResponse)
async def dashboard_summary(caller: Caller, market: MarketplaceDep):
    address = require_caller(caller)
    return SummaryResponse.build(
        address,
        market.jobs.client_summary(address),
        market.applications.freelancer_summary(address),
    )
