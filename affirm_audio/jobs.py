import logging
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .errors import JobNotFound, MixError
from .models import TTSJob

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class JobStore:
    """Persistence for background TTS jobs.

    Each call opens its own session, so the store can be shared between the
    request handlers and the background tasks they schedule.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def create(self, text: str, voice: Optional[str] = None) -> TTSJob:
        job = TTSJob(job_id=uuid.uuid4().hex, status=STATUS_PENDING, text=text, voice=voice)
        with self.session_factory() as db:
            db.add(job)
            db.commit()
            db.refresh(job)
            db.expunge(job)
        logger.info("Created TTS job %s", job.job_id)
        return job

    def get(self, job_id: str) -> Optional[TTSJob]:
        try:
            with self.session_factory() as db:
                job = db.get(TTSJob, job_id)
                if job is not None:
                    db.expunge(job)
                return job
        except SQLAlchemyError as e:
            logger.error("Failed to load TTS job %s: %s", job_id, e)
            raise MixError(f"Failed to load job {job_id}") from e

    def get_status(self, job_id: str) -> str:
        job = self.get(job_id)
        if job is None:
            raise JobNotFound(f"No TTS job with id {job_id}")
        return job.status

    def _update(self, job_id: str, **fields) -> None:
        with self.session_factory() as db:
            job = db.get(TTSJob, job_id)
            if job is None:
                raise JobNotFound(f"No TTS job with id {job_id}")
            for key, value in fields.items():
                setattr(job, key, value)
            job.updated_at = datetime.utcnow()
            db.commit()

    def mark_processing(self, job_id: str) -> None:
        self._update(job_id, status=STATUS_PROCESSING)

    def mark_completed(self, job_id: str, audio_url: str) -> None:
        self._update(job_id, status=STATUS_COMPLETED, audio_url=audio_url, error=None)
        logger.info("TTS job %s completed", job_id)

    def mark_failed(self, job_id: str, error: str) -> None:
        self._update(job_id, status=STATUS_FAILED, error=error)
