from fastapi import APIRouter, BackgroundTasks, Depends, Query
from fastapi.responses import Response
from typing import Optional
import logging

from services.mix_pipeline import MixPipeline
from services.tts_models import MixRequest, TTSJobRequest, TTSJobResponse
from services.tts_service import SpeechSynthesizer, run_tts_job

from ..config import settings
from ..dependencies import get_job_store, get_pipeline, get_synthesizer
from ..errors import JobNotFound, ValidationError
from ..jobs import JobStore

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/combine-audio")
async def combine_audio(
    req: MixRequest,
    pipeline: MixPipeline = Depends(get_pipeline),
):
    """
    Mix synthesized affirmation speech over a backing track.

    Returns the MP3 as an attachment. Failures are rendered by the app's
    exception handlers as ``{"error": ..., "details": ...}``.
    """
    mixed = await pipeline.mix(req)
    return Response(
        content=mixed,
        media_type="audio/mpeg",
        headers={"Content-Disposition": f'attachment; filename="{settings.OUTPUT_FILENAME}"'},
    )


@router.get("/tts-status")
def tts_status(
    job_id: Optional[str] = Query(None, alias="jobId"),
    jobs: JobStore = Depends(get_job_store),
):
    if not job_id:
        raise ValidationError("Job ID is required", fields=["jobId"])
    return {"status": jobs.get_status(job_id)}


@router.post("/tts", response_model=TTSJobResponse, response_model_exclude_none=True)
async def create_tts_job(
    req: TTSJobRequest,
    background_tasks: BackgroundTasks,
    jobs: JobStore = Depends(get_job_store),
    synthesizer: SpeechSynthesizer = Depends(get_synthesizer),
):
    """Queue speech synthesis; poll /tts-status or /tts-jobs/{job_id} for the outcome."""
    job = jobs.create(req.text, req.voice)
    background_tasks.add_task(run_tts_job, jobs, synthesizer, job.job_id, req.text, req.voice)
    logger.info("Queued TTS job %s (%d chars)", job.job_id, len(req.text))
    return TTSJobResponse(job_id=job.job_id, status=job.status)


@router.get("/tts-jobs/{job_id}", response_model=TTSJobResponse)
def get_tts_job(job_id: str, jobs: JobStore = Depends(get_job_store)):
    job = jobs.get(job_id)
    if job is None:
        raise JobNotFound(f"No TTS job with id {job_id}")
    return TTSJobResponse(
        job_id=job.job_id,
        status=job.status,
        text=job.text,
        voice=job.voice,
        audio_url=job.audio_url,
        error=job.error,
    )
