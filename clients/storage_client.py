"""HTTP client for storage-api service."""
import httpx
from typing import Optional, Dict, Any


class StorageClient:
    """Client for communicating with storage-api service."""

    def __init__(
        self,
        base_url: str = "http://localhost:8002",
        api_key: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> Dict[str, str]:
        return {"X-API-KEY": self.api_key} if self.api_key else {}

    async def save(
        self,
        data: bytes,
        original_filename: str,
        context: Optional[str] = None,
        collection_id: Optional[str] = None,
        is_public: bool = True,
        mime_type: str = "audio/mpeg",
    ) -> Dict[str, Any]:
        """Upload a file to storage-api and return the stored object record.

        The record carries at least ``object_key`` and ``file_url``. Raises
        ``httpx.HTTPError`` on transport failures and non-2xx responses.
        """
        form = {"is_public": "true" if is_public else "false"}
        if context:
            form["context"] = context
        if collection_id:
            form["collection_id"] = collection_id

        response = await self.client.post(
            f"{self.base_url}/storage/upload",
            files={"file": (original_filename, data, mime_type)},
            data=form,
            headers=self._headers(),
        )
        response.raise_for_status()
        saved = response.json()
        if not saved.get("file_url"):
            raise ValueError(f"storage-api returned no file_url for {original_filename}")
        return saved

    async def aclose(self) -> None:
        await self.client.aclose()
