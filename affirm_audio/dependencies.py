"""Process-wide service singletons, exposed as FastAPI dependencies.

Tests replace any of these through ``app.dependency_overrides``.
"""
from functools import lru_cache
from pathlib import Path

import httpx

from clients.storage_client import StorageClient
from services.ffmpeg_engine import FFmpegEngine
from services.media_fetcher import MediaFetcher
from services.mix_pipeline import MixPipeline
from services.tts_models import ElevenLabsTTSConfig, OpenAITTSConfig
from services.tts_service import (
    ElevenLabsSpeechProvider,
    OpenAISpeechProvider,
    SpeechProvider,
    SpeechSynthesizer,
)

from .config import settings
from .database import SessionLocal
from .jobs import JobStore


@lru_cache
def get_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.FETCH_TIMEOUT_SECONDS)


@lru_cache
def get_storage_client() -> StorageClient:
    return StorageClient(
        base_url=settings.STORAGE_API_URL,
        api_key=settings.STORAGE_API_KEY,
        client=get_http_client(),
    )


@lru_cache
def get_speech_provider() -> SpeechProvider:
    if settings.TTS_PROVIDER == "elevenlabs":
        return ElevenLabsSpeechProvider(config=ElevenLabsTTSConfig(), api_key=settings.ELEVENLABS_API_KEY)
    return OpenAISpeechProvider(
        config=OpenAITTSConfig(model=settings.TTS_MODEL, voice=settings.TTS_VOICE),
        api_key=settings.OPENAI_API_KEY,
    )


@lru_cache
def get_synthesizer() -> SpeechSynthesizer:
    return SpeechSynthesizer(
        provider=get_speech_provider(),
        storage=get_storage_client(),
        max_chars=settings.TTS_MAX_CHARS,
        collection_id=settings.STORAGE_COLLECTION,
    )


@lru_cache
def get_engine() -> FFmpegEngine:
    return FFmpegEngine(binary=settings.FFMPEG_PATH, timeout=settings.ENGINE_TIMEOUT_SECONDS)


@lru_cache
def get_pipeline() -> MixPipeline:
    temp_dir = Path(settings.TEMP_DIR)
    return MixPipeline(
        synthesizer=get_synthesizer(),
        fetcher=MediaFetcher(get_http_client(), temp_dir),
        engine=get_engine(),
        temp_dir=temp_dir,
        no_track_sentinel=settings.NO_TRACK_SENTINEL,
        safety_floor_seconds=settings.SPEECH_SAFETY_FLOOR_SECONDS,
        max_speech_chars=settings.SPEECH_MAX_CHARS,
    )


@lru_cache
def get_job_store() -> JobStore:
    return JobStore(SessionLocal)
