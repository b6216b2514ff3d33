import asyncio
import logging
import math
import time
from pathlib import Path
from typing import Dict, List, Optional

from affirm_audio.errors import ValidationError
from affirm_audio.tempfiles import TempArtifacts
from services.ffmpeg_engine import FFmpegEngine
from services.media_fetcher import MediaFetcher
from services.mix_planner import MAX_SPEED, MIN_SPEED, plan_mix
from services.tts_models import MixRequest, SynthesizedArtifact
from services.tts_service import SpeechSynthesizer

logger = logging.getLogger(__name__)


def validate_mix_request(req: MixRequest) -> None:
    """Check the request invariants, reporting every offending field at once."""
    problems: Dict[str, str] = {}

    if not req.text or not req.text.strip():
        problems["text"] = "must be a non-empty string"
    if not req.selected_backing_track or not req.selected_backing_track.strip():
        problems["selectedBackingTrack"] = "must be a non-empty string"

    numbers = {
        "ttsVolume": req.tts_volume,
        "backingTrackVolume": req.backing_track_volume,
        "trackDuration": req.track_duration,
        "ttsSpeed": req.tts_speed,
        "ttsDuration": req.tts_duration,
    }
    for name, value in numbers.items():
        if not math.isfinite(value):
            problems[name] = "must be a finite number"
        elif value < 0:
            problems[name] = "must not be negative"

    if "ttsSpeed" not in problems and not MIN_SPEED <= req.tts_speed <= MAX_SPEED:
        problems["ttsSpeed"] = f"TTS speed must be between {MIN_SPEED}x and {MAX_SPEED}x."
    if ("ttsDuration" not in problems and "trackDuration" not in problems
            and req.tts_duration > req.track_duration):
        problems["ttsDuration"] = "TTS duration cannot exceed track duration."

    if problems:
        details = "; ".join(f"{name}: {reason}" for name, reason in problems.items())
        raise ValidationError(details, fields=list(problems))


class MixPipeline:
    """
    Produces the mixed affirmation track for one request.

    Steps: validate, plan, obtain speech audio, fetch speech and backing
    files (or generate silence), run ffmpeg, read the result. Every temp
    artifact allocated on the way is removed before ``mix`` returns or raises.
    """

    def __init__(
        self,
        synthesizer: SpeechSynthesizer,
        fetcher: MediaFetcher,
        engine: FFmpegEngine,
        temp_dir: Path,
        no_track_sentinel: str = "present",
        safety_floor_seconds: float = 900.0,
        max_speech_chars: int = 300000,
        voice: Optional[str] = None,
    ):
        self.synthesizer = synthesizer
        self.fetcher = fetcher
        self.engine = engine
        self.temp_dir = Path(temp_dir)
        self.no_track_sentinel = no_track_sentinel
        self.safety_floor_seconds = safety_floor_seconds
        self.max_speech_chars = max_speech_chars
        self.voice = voice

    async def mix(self, req: MixRequest) -> bytes:
        validate_mix_request(req)
        logger.info(
            "Received parameters: backing=%s ttsVolume=%s backingTrackVolume=%s trackDuration=%s ttsSpeed=%s ttsDuration=%s",
            _describe_ref(req.selected_backing_track), req.tts_volume, req.backing_track_volume,
            req.track_duration, req.tts_speed, req.tts_duration,
        )
        plan = plan_mix(req)
        self._check_speech_length(req)
        await self.engine.ensure_available()

        t0 = time.time()
        with TempArtifacts(self.temp_dir) as artifacts:
            speech_path = await self._resolve_speech(req, artifacts)
            backing_path = await self._resolve_backing(req, artifacts)

            output_path = artifacts.allocate("combined")
            logger.info("Mixing audio: loops=%d tempo=%s", plan.loop_count, plan.tempo_steps)
            await self.engine.mix(speech_path, backing_path, plan, output_path)

            mixed = await asyncio.to_thread(output_path.read_bytes)
        logger.info("Audio mixed in %dms, size=%d bytes", int((time.time() - t0) * 1000), len(mixed))
        return mixed

    def _repeats(self, req: MixRequest) -> int:
        return math.ceil(self.safety_floor_seconds / req.tts_duration)

    def _check_speech_length(self, req: MixRequest) -> None:
        if req.text.startswith("data:audio"):
            return
        total = len(req.text) * self._repeats(req)
        if total > self.max_speech_chars:
            raise ValidationError(
                f"ttsDuration: text repeated to cover {self.safety_floor_seconds:g}s would be {total} characters "
                f"(limit {self.max_speech_chars}); increase ttsDuration or shorten the text",
                fields=["ttsDuration"],
            )

    async def _resolve_speech(self, req: MixRequest, artifacts: TempArtifacts) -> Path:
        if req.text.startswith("data:audio"):
            logger.info("TTS audio already provided, skipping generation")
            artifact = SynthesizedArtifact.from_ref(req.text)
        else:
            repeats = self._repeats(req)
            logger.info("Generating TTS audio (text repeated %d times)", repeats)
            artifact = await self.synthesizer.synthesize(req.text * repeats, voice=self.voice)

        paths: List[Path] = []
        for ref in artifact.refs:
            paths.append(artifacts.track(await self.fetcher.fetch(ref, "tts")))
        if len(paths) == 1:
            return paths[0]

        logger.info("Joining %d synthesized segments", len(paths))
        list_path = artifacts.allocate("tts_concat", ".txt")
        joined_path = artifacts.allocate("tts_joined")
        return await self.engine.concat(paths, list_path, joined_path)

    async def _resolve_backing(self, req: MixRequest, artifacts: TempArtifacts) -> Path:
        if req.selected_backing_track == self.no_track_sentinel:
            logger.info("No backing track selected, generating %ss of silence", req.track_duration)
            silence_path = artifacts.allocate("silence")
            return await self.engine.make_silence(req.track_duration, silence_path)
        return artifacts.track(await self.fetcher.fetch(req.selected_backing_track, "backing"))


def _describe_ref(ref: str) -> str:
    # data URIs can be megabytes long; log only their header
    if ref.startswith("data:"):
        return ref.split(",", 1)[0] + ",..."
    return ref
