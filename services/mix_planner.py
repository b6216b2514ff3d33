"""
Mix planning: derives the ffmpeg processing parameters for one mix.

Everything here is pure. ``plan_mix`` turns a ``MixRequest`` into a frozen
``MixPlan``; ``build_filter_graph`` renders that plan as the ``-filter_complex``
description consumed by the engine. Input 0 is the speech file, input 1 the
backing track (looped indefinitely by the engine via ``-stream_loop -1``).
"""
import math
from dataclasses import dataclass
from typing import Tuple

from affirm_audio.errors import PlanError
from services.tts_models import MixRequest

MIN_SPEED = 0.5
MAX_SPEED = 4.0

# ffmpeg's atempo accepts one factor in [0.5, 2.0] per filter instance
ATEMPO_MIN = 0.5
ATEMPO_MAX = 2.0

OUTPUT_SAMPLE_RATE = 48000


@dataclass(frozen=True)
class MixPlan:
    tempo_steps: Tuple[float, ...]
    speech_gain_db: float
    backing_gain_db: float
    speech_weight: float
    backing_weight: float
    loop_count: int
    loop_size_samples: int
    trim_end_seconds: float
    sample_rate: int = OUTPUT_SAMPLE_RATE


def linear_to_db(gain: float) -> float:
    """20·log10(gain); a gain of 0 is -inf dB (silence)."""
    if gain == 0:
        return -math.inf
    return 20 * math.log10(gain)


def tempo_chain(factor: float) -> Tuple[float, ...]:
    """Break a speed factor into atempo steps that multiply back to it.

    Each step lies within [ATEMPO_MIN, ATEMPO_MAX], e.g. 3.0 -> (2.0, 1.5).
    """
    if not math.isfinite(factor) or factor <= 0:
        raise PlanError(f"Invalid tempo factor: {factor}")
    steps = []
    remaining = float(factor)
    while remaining > ATEMPO_MAX:
        steps.append(ATEMPO_MAX)
        remaining /= ATEMPO_MAX
    while remaining < ATEMPO_MIN:
        steps.append(ATEMPO_MIN)
        remaining /= ATEMPO_MIN
    steps.append(remaining)
    return tuple(steps)


def plan_mix(req: MixRequest) -> MixPlan:
    numbers = {
        "ttsVolume": req.tts_volume,
        "backingTrackVolume": req.backing_track_volume,
        "trackDuration": req.track_duration,
        "ttsSpeed": req.tts_speed,
        "ttsDuration": req.tts_duration,
    }
    for name, value in numbers.items():
        if not math.isfinite(value):
            raise PlanError(f"{name} must be a finite number, got {value}")
    if req.tts_volume < 0 or req.backing_track_volume < 0:
        raise PlanError("Gains must be non-negative")
    if req.tts_duration <= 0:
        raise PlanError(f"ttsDuration must be positive, got {req.tts_duration}")
    if req.track_duration <= 0:
        raise PlanError(f"trackDuration must be positive, got {req.track_duration}")
    if not MIN_SPEED <= req.tts_speed <= MAX_SPEED:
        raise PlanError(f"ttsSpeed must be between {MIN_SPEED}x and {MAX_SPEED}x, got {req.tts_speed}")

    adjusted_duration = req.tts_duration / req.tts_speed
    loop_count = math.ceil(req.track_duration / adjusted_duration)

    return MixPlan(
        tempo_steps=tempo_chain(req.tts_speed),
        speech_gain_db=linear_to_db(req.tts_volume),
        backing_gain_db=linear_to_db(req.backing_track_volume),
        speech_weight=req.tts_volume,
        backing_weight=req.backing_track_volume,
        loop_count=max(1, loop_count),
        loop_size_samples=math.floor(adjusted_duration * OUTPUT_SAMPLE_RATE),
        trim_end_seconds=req.track_duration,
    )


# --- Filter graph rendering ---

def format_number(value: float) -> str:
    """Render a finite float without exponent notation or trailing zeros."""
    if not math.isfinite(value):
        raise PlanError(f"Refusing to embed non-finite value {value} in filter graph")
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return "0" if text in ("", "-0") else text


def _volume(gain_db: float) -> str:
    if gain_db == -math.inf:
        return "volume=0"
    return f"volume={format_number(gain_db)}dB"


def build_filter_graph(plan: MixPlan) -> str:
    tempo = ",".join(f"atempo={format_number(step)}" for step in plan.tempo_steps)
    speech = (
        f"[0:a]{tempo},{_volume(plan.speech_gain_db)},"
        f"aresample={plan.sample_rate},"
        f"aloop=loop={plan.loop_count}:size={plan.loop_size_samples}[a]"
    )
    backing = f"[1:a]{_volume(plan.backing_gain_db)}[b]"
    mix = (
        f"[a][b]amix=inputs=2:duration=longest:"
        f"weights={format_number(plan.speech_weight)} {format_number(plan.backing_weight)},"
        f"asetpts=PTS-STARTPTS,atrim=0:{format_number(plan.trim_end_seconds)}[out]"
    )
    return ";".join([speech, backing, mix])
