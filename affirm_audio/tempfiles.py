import logging
import time
import uuid
from pathlib import Path
from typing import List

logger = logging.getLogger(__name__)


def unique_temp_path(temp_dir: Path, prefix: str, suffix: str = ".mp3") -> Path:
    """Build a collision-free path: semantic prefix + time token + short uuid."""
    return Path(temp_dir) / f"{prefix}_{time.time_ns()}_{uuid.uuid4().hex[:8]}{suffix}"


class TempArtifacts:
    """Tracks the temporary files of one request and removes them on exit.

    Used as a context manager; removal failures are logged and swallowed so
    that the error which ended the request is the one the caller sees.
    """

    def __init__(self, temp_dir: Path):
        self.temp_dir = Path(temp_dir)
        self.paths: List[Path] = []

    def allocate(self, prefix: str, suffix: str = ".mp3") -> Path:
        path = unique_temp_path(self.temp_dir, prefix, suffix)
        self.paths.append(path)
        return path

    def track(self, path: Path) -> Path:
        self.paths.append(Path(path))
        return Path(path)

    def cleanup(self) -> None:
        for path in self.paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("Failed to remove temp artifact %s: %s", path, e)
        self.paths.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.cleanup()
        return False
