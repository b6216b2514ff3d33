import base64

import pytest

from affirm_audio.errors import EngineError, EngineUnavailable, FetchError, PlanError, ValidationError
from services.mix_pipeline import MixPipeline, validate_mix_request

from conftest import FakeEngine, FakeFetcher, FakeSynthesizer, make_request


@pytest.fixture
def work_dir(tmp_path):
    path = tmp_path / "work"
    path.mkdir()
    return path


def make_pipeline(work_dir, synthesizer=None, fetcher=None, engine=None):
    synthesizer = synthesizer or FakeSynthesizer()
    fetcher = fetcher or FakeFetcher(work_dir)
    engine = engine or FakeEngine()
    pipeline = MixPipeline(synthesizer, fetcher, engine, work_dir, no_track_sentinel="present")
    return pipeline, synthesizer, fetcher, engine


async def test_mix_returns_engine_output_and_cleans_up(work_dir):
    pipeline, synthesizer, fetcher, engine = make_pipeline(work_dir)

    mixed = await pipeline.mix(make_request())

    assert mixed == b"MIXED-MP3"
    assert fetcher.calls == [
        ("https://storage.example.com/tts_1_0.mp3", "tts"),
        ("https://cdn.example.com/rain.mp3", "backing"),
    ]
    speech, backing, plan = engine.mixes[0]
    assert speech.name.startswith("tts_")
    assert backing.name.startswith("backing_")
    assert plan.loop_count == 20
    assert list(work_dir.iterdir()) == []


async def test_text_is_repeated_to_cover_safety_floor(work_dir):
    pipeline, synthesizer, _, _ = make_pipeline(work_dir)

    await pipeline.mix(make_request(text="I am calm. ", ttsDuration=30))

    assert synthesizer.calls == ["I am calm. " * 30]


async def test_repetition_rounds_up(work_dir):
    pipeline, synthesizer, _, _ = make_pipeline(work_dir)

    await pipeline.mix(make_request(text="x", ttsDuration=120, trackDuration=600))

    assert synthesizer.calls == ["x" * 8]


async def test_sentinel_backing_generates_silence(work_dir):
    pipeline, _, fetcher, engine = make_pipeline(work_dir)

    await pipeline.mix(make_request(selectedBackingTrack="present", trackDuration=300))

    assert engine.silences == [300]
    assert [prefix for _, prefix in fetcher.calls] == ["tts"]
    _, backing, _ = engine.mixes[0]
    assert backing.name.startswith("silence_")
    assert list(work_dir.iterdir()) == []


async def test_precomputed_speech_skips_synthesis(work_dir):
    pipeline, synthesizer, fetcher, _ = make_pipeline(work_dir)
    speech = "data:audio/mpeg;base64," + base64.b64encode(b"speech").decode()

    await pipeline.mix(make_request(text=speech))

    assert synthesizer.calls == []
    assert fetcher.calls[0] == (speech, "tts")


async def test_multiple_segments_are_joined(work_dir):
    synthesizer = FakeSynthesizer(refs=["https://s/tts_0.mp3", "https://s/tts_1.mp3"])
    pipeline, _, fetcher, engine = make_pipeline(work_dir, synthesizer=synthesizer)

    await pipeline.mix(make_request())

    assert [ref for ref, _ in fetcher.calls[:2]] == ["https://s/tts_0.mp3", "https://s/tts_1.mp3"]
    assert len(engine.concats) == 1 and len(engine.concats[0]) == 2
    speech, _, _ = engine.mixes[0]
    assert speech.name.startswith("tts_joined_")
    assert list(work_dir.iterdir()) == []


async def test_speed_out_of_range_fails_before_any_work(work_dir):
    pipeline, synthesizer, fetcher, engine = make_pipeline(work_dir)

    with pytest.raises(ValidationError) as exc_info:
        await pipeline.mix(make_request(ttsSpeed=5.0))

    assert exc_info.value.fields == ["ttsSpeed"]
    assert synthesizer.calls == [] and fetcher.calls == []
    assert engine.probes == 0


async def test_speech_longer_than_track_is_rejected(work_dir):
    pipeline, synthesizer, _, _ = make_pipeline(work_dir)

    with pytest.raises(ValidationError) as exc_info:
        await pipeline.mix(make_request(ttsDuration=700, trackDuration=600))

    assert exc_info.value.fields == ["ttsDuration"]
    assert synthesizer.calls == []


async def test_zero_speech_duration_is_a_plan_error(work_dir):
    pipeline, synthesizer, _, engine = make_pipeline(work_dir)

    with pytest.raises(PlanError):
        await pipeline.mix(make_request(ttsDuration=0))

    assert synthesizer.calls == []
    assert engine.probes == 0


async def test_unavailable_engine_stops_before_synthesis(work_dir):
    engine = FakeEngine(probe_error=EngineUnavailable("ffmpeg missing"))
    pipeline, synthesizer, _, _ = make_pipeline(work_dir, engine=engine)

    with pytest.raises(EngineUnavailable):
        await pipeline.mix(make_request())

    assert synthesizer.calls == []


async def test_engine_failure_still_cleans_up(work_dir):
    engine = FakeEngine(mix_error=EngineError("ffmpeg exited with code 1", returncode=1))
    pipeline, _, fetcher, _ = make_pipeline(work_dir, engine=engine)

    with pytest.raises(EngineError):
        await pipeline.mix(make_request())

    assert len(fetcher.calls) == 2
    assert list(work_dir.iterdir()) == []


async def test_backing_fetch_failure_removes_speech_file(work_dir):
    fetcher = FakeFetcher(work_dir, fail_on="backing", error=FetchError("Failed to fetch backing audio. Status: 404", status=404))
    pipeline, _, _, engine = make_pipeline(work_dir, fetcher=fetcher)

    with pytest.raises(FetchError) as exc_info:
        await pipeline.mix(make_request())

    assert exc_info.value.status == 404
    assert engine.mixes == []
    assert list(work_dir.iterdir()) == []


def test_validation_reports_every_bad_field():
    req = make_request(text="  ", ttsVolume=-0.5, ttsSpeed=float("inf"))

    with pytest.raises(ValidationError) as exc_info:
        validate_mix_request(req)

    assert set(exc_info.value.fields) == {"text", "ttsVolume", "ttsSpeed"}


def test_validation_accepts_boundary_speeds():
    validate_mix_request(make_request(ttsSpeed=0.5))
    validate_mix_request(make_request(ttsSpeed=4.0))


async def test_tiny_speech_duration_exceeds_text_limit(work_dir):
    pipeline, synthesizer, fetcher, engine = make_pipeline(work_dir)

    with pytest.raises(ValidationError) as exc_info:
        await pipeline.mix(make_request(text="I am calm. ", ttsDuration=0.001))

    assert exc_info.value.fields == ["ttsDuration"]
    assert synthesizer.calls == [] and fetcher.calls == []
    assert engine.probes == 0


async def test_text_limit_is_configurable(work_dir):
    synthesizer = FakeSynthesizer()
    pipeline = MixPipeline(synthesizer, FakeFetcher(work_dir), FakeEngine(), work_dir, max_speech_chars=100)

    with pytest.raises(ValidationError):
        await pipeline.mix(make_request(text="1234", ttsDuration=30))  # 4 chars x 30 repeats

    await pipeline.mix(make_request(text="123", ttsDuration=30))
    assert synthesizer.calls == ["123" * 30]


async def test_precomputed_speech_ignores_text_limit(work_dir):
    synthesizer = FakeSynthesizer()
    pipeline = MixPipeline(synthesizer, FakeFetcher(work_dir), FakeEngine(), work_dir, max_speech_chars=10)
    speech = "data:audio/mpeg;base64," + base64.b64encode(b"speech" * 50).decode()

    assert await pipeline.mix(make_request(text=speech)) == b"MIXED-MP3"
    assert synthesizer.calls == []
