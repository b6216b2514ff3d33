import os
import tempfile

# Settings are read at import time; keep the app off the working directory's database
os.environ.setdefault(
    "AFFIRM_DATABASE_URL",
    f"sqlite:///{os.path.join(tempfile.mkdtemp(prefix='affirm_tests_'), 'app.db')}",
)

from pathlib import Path
from typing import List, Optional

import pytest

from affirm_audio.database import make_session_factory
from affirm_audio.jobs import JobStore
from services.mix_planner import MixPlan
from services.tts_models import MixRequest, SynthesizedArtifact


def make_request(**overrides) -> MixRequest:
    body = {
        "text": "I am calm. ",
        "selectedBackingTrack": "https://cdn.example.com/rain.mp3",
        "ttsVolume": 1.0,
        "backingTrackVolume": 0.5,
        "trackDuration": 600,
        "ttsSpeed": 1.0,
        "ttsDuration": 30,
    }
    body.update(overrides)
    return MixRequest.model_validate(body)


class FakeSynthesizer:
    def __init__(self, refs: Optional[List[str]] = None, error: Optional[Exception] = None):
        self.refs = refs or ["https://storage.example.com/tts_1_0.mp3"]
        self.error = error
        self.calls = []

    async def synthesize(self, text, voice=None):
        self.calls.append(text)
        if self.error:
            raise self.error
        return SynthesizedArtifact(refs=self.refs)


class FakeFetcher:
    """Writes a small placeholder file per reference, like the real fetcher."""

    def __init__(self, temp_dir: Path, fail_on: Optional[str] = None, error: Optional[Exception] = None):
        self.temp_dir = Path(temp_dir)
        self.fail_on = fail_on
        self.error = error
        self.calls = []

    async def fetch(self, ref, prefix):
        self.calls.append((ref, prefix))
        if self.fail_on is not None and prefix == self.fail_on:
            raise self.error
        path = self.temp_dir / f"{prefix}_{len(self.calls)}.mp3"
        path.write_bytes(b"ID3" + prefix.encode())
        return path


class FakeEngine:
    def __init__(self, mix_error: Optional[Exception] = None, probe_error: Optional[Exception] = None,
                 output: bytes = b"MIXED-MP3"):
        self.mix_error = mix_error
        self.probe_error = probe_error
        self.output = output
        self.probes = 0
        self.silences = []
        self.concats = []
        self.mixes = []

    async def ensure_available(self):
        self.probes += 1
        if self.probe_error:
            raise self.probe_error

    async def make_silence(self, duration_seconds, output_path):
        self.silences.append(duration_seconds)
        Path(output_path).write_bytes(b"SILENCE")
        return output_path

    async def concat(self, paths, list_path, output_path):
        self.concats.append(list(paths))
        Path(list_path).write_text("\n".join(f"file '{p}'" for p in paths))
        Path(output_path).write_bytes(b"JOINED")
        return output_path

    async def mix(self, speech_path, backing_path, plan: MixPlan, output_path):
        self.mixes.append((Path(speech_path), Path(backing_path), plan))
        if self.mix_error:
            raise self.mix_error
        Path(output_path).write_bytes(self.output)
        return output_path


@pytest.fixture
def job_store(tmp_path):
    return JobStore(make_session_factory(f"sqlite:///{tmp_path / 'jobs.db'}"))
