import asyncio
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Sequence

from affirm_audio.errors import EngineError, EngineTimeout, EngineUnavailable
from services.mix_planner import MixPlan, OUTPUT_SAMPLE_RATE, build_filter_graph, format_number

logger = logging.getLogger(__name__)

SILENCE_SAMPLE_RATE = 44100
OUTPUT_BITRATE = "192k"


# --- Command builders ---

def silence_args(duration_seconds: float, output_path: Path) -> List[str]:
    return [
        "-y", "-f", "lavfi", "-i", f"anullsrc=r={SILENCE_SAMPLE_RATE}:cl=stereo",
        "-t", format_number(duration_seconds), "-q:a", "9", "-acodec", "libmp3lame",
        str(output_path),
    ]


def concat_args(list_path: Path, output_path: Path) -> List[str]:
    return [
        "-y", "-f", "concat", "-safe", "0",
        "-i", str(list_path),
        "-c:a", "libmp3lame", "-q:a", "2", str(output_path),
    ]


def mix_args(speech_path: Path, backing_path: Path, plan: MixPlan, output_path: Path) -> List[str]:
    return [
        "-y",
        "-i", str(speech_path),
        "-stream_loop", "-1",
        "-i", str(backing_path),
        "-filter_complex", build_filter_graph(plan),
        "-map", "[out]",
        "-ar", str(OUTPUT_SAMPLE_RATE),
        "-acodec", "libmp3lame",
        "-b:a", OUTPUT_BITRATE,
        str(output_path),
    ]


class FFmpegEngine:
    """Runs ffmpeg as a child process; one process per call.

    Calls block a worker thread until ffmpeg exits (or the timeout kills it),
    so the awaiting coroutine resumes only after the process has terminated.
    """

    def __init__(self, binary: str = "ffmpeg", timeout: Optional[float] = 300.0):
        self.binary = binary
        self.timeout = timeout
        self._available = False

    def _run(self, args: Sequence[str], timeout: Optional[float]) -> subprocess.CompletedProcess:
        cmd = [self.binary, *args]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except (FileNotFoundError, PermissionError) as e:
            raise EngineUnavailable(f"Cannot execute ffmpeg at '{self.binary}': {e}") from e
        except subprocess.TimeoutExpired as e:
            raise EngineTimeout(f"ffmpeg did not finish within {timeout}s") from e

        if result.returncode != 0:
            stderr = result.stderr or ""
            logger.error("FFMPEG ERROR (exit %s): %s", result.returncode, stderr[-2000:])
            raise EngineError(
                f"ffmpeg exited with code {result.returncode}: {stderr[-400:].strip()}",
                returncode=result.returncode,
                stderr=stderr,
            )
        return result

    async def run(self, args: Sequence[str], timeout: Optional[float] = None) -> subprocess.CompletedProcess:
        """Invoke ffmpeg with ``args`` and wait for it to exit."""
        return await asyncio.to_thread(self._run, list(args), timeout if timeout is not None else self.timeout)

    async def ensure_available(self) -> None:
        """Probe ``ffmpeg -version`` once; raises EngineUnavailable if it cannot run."""
        if self._available:
            return
        try:
            result = await self.run(["-version"], timeout=30)
        except EngineUnavailable:
            raise
        except EngineError as e:
            raise EngineUnavailable(f"ffmpeg probe failed: {e.details}") from e
        first_line = (result.stdout or "").splitlines()[:1]
        logger.info("FFmpeg version: %s", first_line[0] if first_line else "unknown")
        self._available = True

    async def make_silence(self, duration_seconds: float, output_path: Path) -> Path:
        """Write a stereo silent MP3 of ``duration_seconds`` to ``output_path``."""
        await self.run(silence_args(duration_seconds, output_path))
        return output_path

    async def concat(self, paths: Sequence[Path], list_path: Path, output_path: Path) -> Path:
        """Concatenate audio files in order using the concat demuxer."""
        with open(list_path, "w") as f:
            for path in paths:
                f.write(f"file '{Path(path).resolve()}'\n")
        await self.run(concat_args(list_path, output_path))
        return output_path

    async def mix(self, speech_path: Path, backing_path: Path, plan: MixPlan, output_path: Path) -> Path:
        await self.run(mix_args(speech_path, backing_path, plan, output_path))
        return output_path
