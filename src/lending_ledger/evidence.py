"""Evidence image upload and discrepancy notification collaborators."""

from datetime import UTC, datetime
from typing import Any, Protocol

import httpx
import structlog

from lending_ledger.config import get_settings
from lending_ledger.errors import UpstreamError
from lending_ledger.models import Discrepancy

logger = structlog.get_logger(__name__)


class EvidenceUploader(Protocol):
    """Stores a base64 image and returns its public URL."""

    async def upload(self, base64_image: str, filename: str) -> str: ...


class DiscrepancyNotifier(Protocol):
    """Delivers a discrepancy report to operators (chat bot, email, ...)."""

    async def report(self, discrepancy: Discrepancy) -> None: ...


class HttpEvidenceUploader:
    """Uploads to an object-storage endpoint accepting base64 payloads."""

    def __init__(
        self,
        upload_url: str | None = None,
        folder: str | None = None,
        timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        settings = get_settings()
        url = upload_url or settings.evidence_upload_url
        if not url:
            raise ValueError("EVIDENCE_UPLOAD_URL is not configured")
        self.upload_url = url
        self.folder = folder or settings.evidence_folder
        self._timeout = timeout if timeout is not None else settings.ledger_timeout
        self._client = client

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self._timeout))
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def upload(self, base64_image: str, filename: str) -> str:
        """Upload the image and return its secure URL.

        Raises:
            UpstreamError: If the endpoint is unreachable, rejects the upload
                or answers without a URL.
        """
        client = await self._get_client()
        payload: dict[str, Any] = {
            "file": base64_image,
            "folder": self.folder,
            "public_id": filename,
            "resource_type": "image",
        }
        try:
            response = await client.post(self.upload_url, json=payload)
        except httpx.RequestError as e:
            raise UpstreamError(f"Evidence upload failed: {e}") from e

        if response.status_code >= 400:
            raise UpstreamError(
                f"Evidence upload rejected: {response.status_code}",
                status_code=response.status_code,
                details=response.text[:500] if response.text else None,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise UpstreamError("Evidence upload returned invalid JSON") from e

        url = data.get("secure_url") or data.get("url") if isinstance(data, dict) else None
        if not url:
            raise UpstreamError("Evidence upload returned no URL", details=data)

        logger.info("evidence_uploaded", filename=filename, url=url)
        return str(url)


def evidence_filename(now: datetime | None = None) -> str:
    """Unique object name for a discrepancy screenshot."""
    moment = now or datetime.now(UTC)
    return f"discrepancy-{int(moment.timestamp() * 1000)}"
