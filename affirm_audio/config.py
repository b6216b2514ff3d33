import os
import tempfile
from pathlib import Path
from dotenv import load_dotenv
from typing import Optional

# Load .env robustly (try project root and CWD)
_ROOT = Path(__file__).resolve().parent.parent
_candidates = [
    _ROOT / ".env",
    Path.cwd() / ".env",
]
for p in _candidates:
    if p.exists():
        load_dotenv(p, override=False)

class Settings:
    # Database (TTS job records)
    DATABASE_URL: str = os.getenv("AFFIRM_DATABASE_URL", "sqlite:///./affirm_audio.db")

    # Speech synthesis
    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    ELEVENLABS_API_KEY: Optional[str] = os.getenv("ELEVENLABS_API_KEY")
    TTS_PROVIDER: str = os.getenv("TTS_PROVIDER", "openai")
    TTS_MODEL: str = os.getenv("TTS_MODEL", "tts-1")
    TTS_VOICE: str = os.getenv("TTS_VOICE", "nova")
    TTS_MAX_CHARS: int = int(os.getenv("TTS_MAX_CHARS", "3000"))

    # Object storage (storage-api service)
    STORAGE_API_URL: str = os.getenv("STORAGE_API_URL", "http://localhost:8002")
    STORAGE_API_KEY: Optional[str] = os.getenv("STORAGE_API_KEY")
    STORAGE_COLLECTION: str = os.getenv("STORAGE_COLLECTION", "affirmation_tts")

    # Media engine
    FFMPEG_PATH: str = os.getenv("FFMPEG_PATH", "ffmpeg")
    ENGINE_TIMEOUT_SECONDS: float = float(os.getenv("ENGINE_TIMEOUT_SECONDS", "300"))
    FETCH_TIMEOUT_SECONDS: float = float(os.getenv("FETCH_TIMEOUT_SECONDS", "60"))
    TEMP_DIR: str = os.getenv("AFFIRM_TEMP_DIR", tempfile.gettempdir())

    # Mixing
    SPEECH_SAFETY_FLOOR_SECONDS: float = float(os.getenv("SPEECH_SAFETY_FLOOR_SECONDS", "900"))  # 15 min
    SPEECH_MAX_CHARS: int = int(os.getenv("SPEECH_MAX_CHARS", "300000"))  # 100 chunks at 3000 chars
    NO_TRACK_SENTINEL: str = os.getenv("NO_TRACK_SENTINEL", "present")
    OUTPUT_FILENAME: str = "combined_affirmation_audio.mp3"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

settings = Settings()
