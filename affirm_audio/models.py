from sqlalchemy import Column, String, Text, DateTime, Index
from sqlalchemy.orm import declarative_base
from datetime import datetime

Base = declarative_base()


class TTSJob(Base):
    __tablename__ = "tts_jobs"

    job_id = Column(String, primary_key=True, index=True)
    status = Column(String, default="pending")  # pending, processing, completed, failed
    text = Column(Text)
    voice = Column(String, nullable=True)
    audio_url = Column(Text, nullable=True)  # comma-joined storage refs once completed
    error = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_tts_jobs_status", "status"),
    )
