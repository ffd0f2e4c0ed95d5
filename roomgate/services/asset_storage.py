import logging
from pathlib import Path
from typing import Optional

import httpx

from ..core.exceptions import AssetUploadFailedException

logger = logging.getLogger(__name__)


class AssetStorage:
    """
    HTTP client for the asset storage service holding cover images.

    The service accepts ``POST /assets`` (multipart ``file``) answering
    ``{"url": ..., "public_id": ...}`` and ``DELETE /assets/{public_id}``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        public_base_url: Optional[str] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.public_base_url = public_base_url

    def _headers(self) -> dict:
        if self.api_key:
            return {"Authorization": f"Bearer {self.api_key}"}
        return {}

    async def upload(self, local_path: str) -> dict:
        """
        Upload a local file.

        Returns:
            Dict with the public ``url`` and the storage ``public_id``

        Raises:
            AssetUploadFailedException: If the storage rejects the file or is unreachable
        """
        path = Path(local_path)
        try:
            async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
                with path.open("rb") as fh:
                    response = await client.post(
                        "/assets",
                        files={"file": (path.name, fh)},
                        headers=self._headers(),
                    )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, OSError, ValueError) as e:
            raise AssetUploadFailedException() from e

        if not body.get("url"):
            raise AssetUploadFailedException()
        return {"url": body["url"], "public_id": body.get("public_id")}

    async def delete(self, asset_id: str) -> bool:
        """
        Delete an asset. Returns False if the storage did not delete it.

        Raises:
            httpx.HTTPError: On transport failures
        """
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout) as client:
            response = await client.delete(f"/assets/{asset_id}", headers=self._headers())
        return response.status_code in (200, 202, 204)

    def asset_id_from_url(self, url: Optional[str]) -> Optional[str]:
        """
        Public id of an asset we host, derived from its URL; None for foreign
        URLs such as the default cover image.
        """
        if not url or not self.public_base_url or not url.startswith(self.public_base_url):
            return None
        name = url.rstrip("/").rsplit("/", 1)[-1]
        return name.split(".", 1)[0] or None
