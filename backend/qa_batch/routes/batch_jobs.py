"""QA batch jobs API - submit, poll, list and cancel batch assessment jobs."""
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from qa_batch.schemas.batch_job import BatchJobConfig, BatchJobResponse, BatchJobStatusResponse
from qa_batch.services.batch.errors import NotFoundError, ValidationError
from qa_batch.services.batch.manager import BatchJobManager

router = APIRouter(prefix="/api/v2/qa/{account_id}/batch-jobs", tags=["qa-batch"])


def get_manager(request: Request) -> BatchJobManager:
    """FastAPI dependency returning the process-wide manager."""
    return request.app.state.batch_manager


@router.post("", response_model=BatchJobResponse, status_code=201)
async def create_batch_job(
    account_id: str,
    body: BatchJobConfig,
    x_user_name: Optional[str] = Header(None),
    manager: BatchJobManager = Depends(get_manager),
):
    """Submit a new batch assessment job."""
    try:
        return await manager.create(account_id, body, x_user_name or "unknown")
    except ValidationError as e:
        raise HTTPException(400, str(e))


@router.get("", response_model=list[BatchJobStatusResponse])
async def list_batch_jobs(
    account_id: str,
    limit: int = Query(20, ge=1, le=100),
    manager: BatchJobManager = Depends(get_manager),
):
    """List recent batch jobs for the account."""
    return await manager.list(account_id, limit)


@router.get("/{job_id}", response_model=BatchJobStatusResponse)
async def get_batch_job(
    account_id: str,
    job_id: str,
    manager: BatchJobManager = Depends(get_manager),
):
    """Get batch job status and progress."""
    try:
        return await manager.get_status(account_id, job_id)
    except NotFoundError:
        raise HTTPException(404, "Batch job not found")


@router.delete("/{job_id}")
async def cancel_batch_job(
    account_id: str,
    job_id: str,
    manager: BatchJobManager = Depends(get_manager),
):
    """Cancel a running batch job."""
    try:
        await manager.cancel(account_id, job_id)
    except NotFoundError:
        raise HTTPException(404, "Batch job not found")
    return {"success": True}
