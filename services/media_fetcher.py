import asyncio
import base64
import binascii
import logging
from pathlib import Path

import httpx

from affirm_audio.errors import FetchError
from affirm_audio.tempfiles import unique_temp_path

logger = logging.getLogger(__name__)


def decode_data_uri(ref: str) -> bytes:
    """Decode the base64 payload of a ``data:<mime>;base64,<payload>`` URI.

    Line breaks and missing ``=`` padding are tolerated, as MIME encoders and
    browsers produce both.
    """
    _, sep, payload = ref.partition(",")
    if not sep:
        raise FetchError("Malformed data URI: missing ',' separator")
    payload = "".join(payload.split())
    payload += "=" * (-len(payload) % 4)
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FetchError(f"Malformed data URI: {e}") from e


def _write_file(path: Path, data: bytes) -> None:
    try:
        path.write_bytes(data)
    except OSError:
        path.unlink(missing_ok=True)
        raise


class MediaFetcher:
    """Resolves an audio reference (data URI or URL) into a local temp file."""

    def __init__(self, client: httpx.AsyncClient, temp_dir: Path):
        self.client = client
        self.temp_dir = Path(temp_dir)

    async def fetch(self, ref: str, prefix: str) -> Path:
        """
        Write the audio behind ``ref`` to ``<temp_dir>/<prefix>_<token>.mp3``.

        The caller owns the returned file and must delete it.
        """
        if ref.startswith("data:"):
            data = decode_data_uri(ref)
        else:
            data = await self._download(ref, prefix)

        temp_path = unique_temp_path(self.temp_dir, prefix)
        try:
            await asyncio.to_thread(_write_file, temp_path, data)
        except OSError as e:
            raise FetchError(f"Failed to write {prefix} audio to {temp_path}: {e}") from e
        logger.info("Downloaded %s audio to %s (%d bytes)", prefix, temp_path, len(data))
        return temp_path

    async def _download(self, url: str, prefix: str) -> bytes:
        try:
            response = await self.client.get(url, follow_redirects=True)
        except httpx.HTTPError as e:
            raise FetchError(f"Failed to download {prefix} audio: {e}") from e
        if not response.is_success:
            raise FetchError(
                f"Failed to fetch {prefix} audio. Status: {response.status_code}",
                status=response.status_code,
            )
        return response.content
