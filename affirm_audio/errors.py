"""Error taxonomy for the mixing pipeline.

Every failure that leaves the pipeline is a ``MixError``. The HTTP layer maps
``status_code`` and ``error`` onto the response envelope; ``details`` is the
human-readable message.
"""
from typing import List, Optional


class MixError(Exception):
    status_code: int = 500
    error: str = "Internal Server Error"

    def __init__(self, details: str):
        super().__init__(details)
        self.details = details


class ValidationError(MixError):
    """Malformed or out-of-range request parameters (user-correctable)."""
    status_code = 400
    error = "Invalid or missing audio parameters."

    def __init__(self, details: str, fields: Optional[List[str]] = None):
        super().__init__(details)
        self.fields = fields or []


class PlanError(MixError):
    """Degenerate numeric inputs to the mix planner."""


class SynthesisError(MixError):
    """Speech provider or storage-write failure."""


class FetchError(MixError):
    """Network or decode failure while retrieving an audio reference."""

    def __init__(self, details: str, status: Optional[int] = None):
        super().__init__(details)
        self.status = status


class EngineError(MixError):
    """ffmpeg exited non-zero or could not be executed."""

    def __init__(self, details: str, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(details)
        self.returncode = returncode
        self.stderr = stderr


class EngineUnavailable(EngineError):
    error = "FFmpeg not available"


class EngineTimeout(EngineError):
    pass


class JobNotFound(MixError):
    status_code = 404
    error = "Job not found"
