from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal

# --- Pydantic Models for TTS Configuration ---
# Kept separate from tts_service to prevent circular imports

class OpenAITTSConfig(BaseModel):
    model: str = Field("tts-1", description="The model to use, e.g., 'tts-1' or 'tts-1-hd'")
    voice: Literal["alloy", "echo", "fable", "onyx", "nova", "shimmer"] = Field("nova", description="The voice to use for the audio")
    speed: float = Field(1.0, ge=0.25, le=4.0, description="The speaking rate, from 0.25 to 4.0")
    output_format: Literal["mp3", "opus", "aac", "flac"] = Field("mp3", description="The output format for the audio")

class ElevenLabsTTSConfig(BaseModel):
    model_id: str = Field("eleven_multilingual_v2", description="The model to use, e.g., 'eleven_multilingual_v2'")
    voice_id: str = Field("JBFqnCBsd6RMkjVDRZzb", description="The ID of the voice to use")
    stability: float = Field(0.5, ge=0.0, le=1.0, description="Voice stability, from 0.0 to 1.0")
    clarity: float = Field(0.75, ge=0.0, le=1.0, description="Voice clarity/similarity, from 0.0 to 1.0")


class SynthesizedArtifact(BaseModel):
    """Ordered storage references for one synthesized text.

    ``ref`` is the comma-joined form handed around as a single string; callers
    that need the individual segments use ``refs``.
    """
    model_config = ConfigDict(frozen=True)

    refs: List[str]

    @property
    def ref(self) -> str:
        return ",".join(self.refs)

    @classmethod
    def from_ref(cls, ref: str) -> "SynthesizedArtifact":
        # data: URIs contain a comma of their own and are always a single segment
        if ref.startswith("data:"):
            return cls(refs=[ref])
        return cls(refs=[r for r in ref.split(",") if r])


# --- Request Models ---

class MixRequest(BaseModel):
    """Body of POST /api/combine-audio.

    Range checks live in the pipeline so that every offending field can be
    reported at once; this model only enforces presence and types. Strict
    mode rejects numeric strings and booleans (ints are still accepted).
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, strict=True)

    text: str
    selected_backing_track: str = Field(alias="selectedBackingTrack")
    tts_volume: float = Field(alias="ttsVolume")
    backing_track_volume: float = Field(alias="backingTrackVolume")
    track_duration: float = Field(alias="trackDuration")
    tts_speed: float = Field(alias="ttsSpeed")
    tts_duration: float = Field(alias="ttsDuration")


class TTSJobRequest(BaseModel):
    text: str = Field(..., min_length=1)
    voice: Literal["alloy", "echo", "fable", "onyx", "nova", "shimmer"] | None = None


class TTSJobResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(serialization_alias="jobId")
    status: str
    text: str | None = None
    voice: str | None = None
    audio_url: str | None = Field(None, serialization_alias="audioUrl")
    error: str | None = None
