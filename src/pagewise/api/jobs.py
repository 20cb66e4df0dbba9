from fastapi import APIRouter, Depends, File, Form, Header, HTTPException, Request, UploadFile, status
from fastapi.responses import PlainTextResponse, StreamingResponse
from pagewise.export import render_job_report
from pagewise.schemas import Job, JobKind, JobSubmission
from pagewise.service import PipelineService
from pagewise.config import settings
from pagewise.utils.errors import ContentCacheFull, JobInProgress, JobNotFound, UploadTooLarge
from typing import List, Optional
import asyncio
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["jobs"])


def get_service(request: Request) -> PipelineService:
    return request.app.state.service


def _not_found(job_id: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Job {job_id} not found")


@router.post("", response_model=Job, status_code=status.HTTP_202_ACCEPTED)
async def submit_job(
    file: UploadFile = File(...),
    kind: JobKind = Form(...),
    model: Optional[str] = Form(None),
    rules_text: Optional[str] = Form(None),
    recommend_journals: bool = Form(False),
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: PipelineService = Depends(get_service),
):
    """
    Upload a document and queue an analysis job
    Jobs run one at a time in submission order
    """
    data = await file.read()
    submission = JobSubmission(
        owner_id=owner_id,
        kind=kind,
        source_name=file.filename or "upload",
        model=model,
        rules_text=rules_text,
        recommend_journals=recommend_journals,
    )

    try:
        job = await service.submit(submission, data, content_type=file.content_type)
    except ContentCacheFull as e:
        logger.warning(f"[jobs] Upload rejected: {e}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except UploadTooLarge as e:
        logger.warning(f"[jobs] Upload rejected: {e}")
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail=str(e))

    logger.info(f"[jobs] Queued job: {job.id}")
    return job


@router.get("", response_model=List[Job])
async def list_jobs(
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: PipelineService = Depends(get_service),
):
    return await service.list_jobs(owner_id)


@router.get("/{job_id}", response_model=Job)
async def get_job(
    job_id: str,
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: PipelineService = Depends(get_service),
):
    """Get job status, progress, logs and result"""
    try:
        return await service.get_job(owner_id, job_id)
    except JobNotFound:
        raise _not_found(job_id)


@router.get("/{job_id}/report", response_class=PlainTextResponse)
async def download_report(
    job_id: str,
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: PipelineService = Depends(get_service),
):
    """Download the process log and findings as plain text"""
    try:
        job = await service.get_job(owner_id, job_id)
    except JobNotFound:
        raise _not_found(job_id)

    report = render_job_report(job)
    filename = f"{job.source_name.rsplit('.', 1)[0]}_log.txt"
    return PlainTextResponse(
        report,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{job_id}/progress")
async def stream_job_progress(
    job_id: str,
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: PipelineService = Depends(get_service),
):
    """
    Stream job snapshots via SSE until the job is completed or failed.

    Jobs that are no longer live (finished, or left over from an earlier
    run) get their stored snapshot and the stream closes.
    """
    try:
        job = await service.get_job(owner_id, job_id)
    except JobNotFound:
        raise _not_found(job_id)

    if job_id not in service.state:
        async def stored_snapshot():
            yield _event(job)

        return StreamingResponse(stored_snapshot(), media_type="text/event-stream")

    updates: asyncio.Queue = asyncio.Queue()
    unsubscribe = service.subscribe(job_id, updates.put_nowait)
    poll_seconds = settings.PROGRESS_POLL_SECONDS

    async def event_generator():
        try:
            snapshot = job
            yield _event(snapshot)
            while not snapshot.status.is_terminal:
                try:
                    snapshot = await asyncio.wait_for(updates.get(), timeout=poll_seconds)
                except asyncio.TimeoutError:
                    if job_id in service.state:
                        continue
                    logger.info(f"[jobs] Job {job_id} was removed, closing progress stream")
                    break
                yield _event(snapshot)
        finally:
            unsubscribe()

    return StreamingResponse(event_generator(), media_type="text/event-stream")


def _event(job: Job) -> str:
    return f"data: {job.model_dump_json()}\n\n"


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_job(
    job_id: str,
    owner_id: str = Header(..., alias="X-Owner-Id"),
    service: PipelineService = Depends(get_service),
):
    """Delete a queued or finished job"""
    try:
        await service.delete_job(owner_id, job_id)
    except JobNotFound:
        raise _not_found(job_id)
    except JobInProgress as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

    logger.info(f"[jobs] Deleted job: {job_id}")
