import logging
import time
from typing import List, Optional

import httpx
from openai import AsyncOpenAI, OpenAIError

from affirm_audio.errors import SynthesisError
from clients.storage_client import StorageClient
from services.tts_models import ElevenLabsTTSConfig, OpenAITTSConfig, SynthesizedArtifact
# ElevenLabs is imported lazily inside the provider to avoid a hard dependency at import time

logger = logging.getLogger(__name__)

# --- Text Chunking Helper ---

def split_text(text: str, limit: int) -> List[str]:
    """Split text into contiguous slices of at most ``limit`` characters.

    Slices do not overlap and keep their order, so ``"".join(result) == text``.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")
    return [text[i:i + limit] for i in range(0, len(text), limit)]


# --- Providers ---

class SpeechProvider:
    """Turns one chunk of text into encoded audio bytes."""

    name = "base"

    async def synthesize_chunk(self, text: str, voice: Optional[str] = None) -> bytes:
        raise NotImplementedError


class OpenAISpeechProvider(SpeechProvider):
    name = "openai"

    def __init__(self, config: OpenAITTSConfig | None = None, api_key: Optional[str] = None,
                 client: Optional[AsyncOpenAI] = None):
        self.config = config or OpenAITTSConfig()
        self.api_key = api_key
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        # Built on first use so requests that never synthesize do not need credentials
        if self._client is None:
            try:
                self._client = AsyncOpenAI(api_key=self.api_key)
            except OpenAIError as e:
                raise SynthesisError(f"OpenAI TTS is not configured: {e}") from e
        return self._client

    async def synthesize_chunk(self, text: str, voice: Optional[str] = None) -> bytes:
        config = self.config.model_copy(update={"voice": voice}) if voice else self.config
        client = self._get_client()
        try:
            response = await client.audio.speech.create(
                model=config.model,
                voice=config.voice,
                input=text,
                speed=config.speed,
                response_format=config.output_format,
            )
            return await response.aread()
        except OpenAIError as e:
            raise SynthesisError(f"OpenAI TTS request failed: {e}") from e


class ElevenLabsSpeechProvider(SpeechProvider):
    name = "elevenlabs"

    def __init__(self, config: ElevenLabsTTSConfig | None = None, api_key: Optional[str] = None):
        self.config = config or ElevenLabsTTSConfig()
        self.api_key = api_key
        self._client = None

    def _get_client(self):
        if self._client is None:
            # Lazy import avoids ModuleNotFoundError during app startup
            try:
                from elevenlabs.client import AsyncElevenLabs
            except ModuleNotFoundError as e:
                raise SynthesisError("ElevenLabs support requires the 'elevenlabs' package. Install it with 'pip install elevenlabs'.") from e
            self._client = AsyncElevenLabs(api_key=self.api_key)
        return self._client

    async def synthesize_chunk(self, text: str, voice: Optional[str] = None) -> bytes:
        client = self._get_client()
        audio_stream = client.text_to_speech.convert(
            text=text,
            voice_id=voice or self.config.voice_id,
            model_id=self.config.model_id,
            voice_settings={"stability": self.config.stability, "similarity_boost": self.config.clarity},
        )
        audio_bytes = b""
        try:
            async for chunk in audio_stream:
                audio_bytes += chunk
        except Exception as e:
            raise SynthesisError(f"ElevenLabs TTS request failed: {e}") from e
        return audio_bytes


# --- Synthesis Adapter ---

class SpeechSynthesizer:
    """Synthesizes arbitrarily long text and persists every chunk to storage."""

    def __init__(
        self,
        provider: SpeechProvider,
        storage: StorageClient,
        max_chars: int = 3000,
        collection_id: Optional[str] = None,
    ):
        self.provider = provider
        self.storage = storage
        self.max_chars = max_chars
        self.collection_id = collection_id

    async def synthesize(self, text: str, voice: Optional[str] = None) -> SynthesizedArtifact:
        """
        Generate audio for ``text`` chunk by chunk and upload each chunk.

        Returns the ordered storage references. Uploads of earlier chunks are
        kept when a later chunk fails.
        """
        chunks = split_text(text, self.max_chars)
        if not chunks:
            raise SynthesisError("Cannot synthesize empty text")
        if len(chunks) > 1:
            logger.info("%s TTS: text too long, processing in %d chunks", self.provider.name, len(chunks))

        batch = time.time_ns()
        audio_urls: List[str] = []
        for i, chunk in enumerate(chunks):
            audio = await self.provider.synthesize_chunk(chunk, voice=voice)
            if not audio:
                raise SynthesisError(f"Failed to generate audio with {self.provider.name} (chunk {i + 1}/{len(chunks)})")

            file_name = f"tts_{batch}_{i}.mp3"
            try:
                saved = await self.storage.save(
                    data=audio,
                    original_filename=file_name,
                    context="tts-generation",
                    collection_id=self.collection_id,
                )
            except (httpx.HTTPError, ValueError) as e:
                raise SynthesisError(f"Failed to store synthesized audio {file_name}: {e}") from e

            audio_urls.append(saved["file_url"])
            logger.info("%s TTS: generated chunk %d/%d -> %s", self.provider.name, i + 1, len(chunks), saved["file_url"])

        return SynthesizedArtifact(refs=audio_urls)


async def run_tts_job(job_store, synthesizer: SpeechSynthesizer, job_id: str, text: str,
                      voice: Optional[str] = None) -> None:
    """Background task body for POST /api/tts: synthesize and record the outcome.

    Any failure ends the job as ``failed``; a job never stays ``processing``.
    """
    try:
        job_store.mark_processing(job_id)
        artifact = await synthesizer.synthesize(text, voice=voice)
        job_store.mark_completed(job_id, artifact.ref)
    except SynthesisError as e:
        logger.error("TTS job %s failed: %s", job_id, e)
        job_store.mark_failed(job_id, str(e))
    except Exception as e:
        logger.exception("TTS job %s crashed", job_id)
        job_store.mark_failed(job_id, f"{type(e).__name__}: {e}")
