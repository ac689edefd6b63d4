"""HTTP client for the report API, including the status event stream."""

import json
import logging
import re
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional, Tuple

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)

_FILENAME_RE = re.compile(r'filename="?([^";]+)"?')


class TransportError(Exception):
    """The status stream could not be opened or broke before a terminal frame."""


class ReportApiError(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class ReportApiConfig(BaseModel):
    base_url: str = "http://localhost:3000/api"
    generate_endpoint: str = "/generate-report"
    status_endpoint: str = "/report-status/{job_id}"
    download_endpoint: str = "/download-report/{job_id}"
    cancel_endpoint: str = "/report/{job_id}"
    timeout: float = 10.0


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.reason_phrase


class ReportApiClient:
    """Thin async wrapper over the report endpoints."""

    def __init__(self, config: Optional[ReportApiConfig] = None, client: Optional[httpx.AsyncClient] = None):
        self.config = config or ReportApiConfig()
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout)

    def url(self, path: str) -> str:
        return f"{self.config.base_url.rstrip('/')}{path}"

    def status_url(self, job_id: str) -> str:
        return self.url(self.config.status_endpoint.format(job_id=job_id))

    def download_url(self, job_id: str) -> str:
        return self.url(self.config.download_endpoint.format(job_id=job_id))

    async def generate(self, name: str, simulate_failure: bool = False) -> str:
        payload: Dict[str, Any] = {"name": name}
        if simulate_failure:
            payload["simulateFailure"] = True
        response = await self._client.post(self.url(self.config.generate_endpoint), json=payload)
        if response.status_code != 200:
            raise ReportApiError(response.status_code, _error_message(response))
        return response.json()["jobId"]

    async def stream_status(self, job_id: str) -> AsyncIterator[Dict[str, Any]]:
        """Yield decoded ``data:`` frames until the server closes the stream.

        Any transport problem surfaces as TransportError.
        """
        timeout = httpx.Timeout(self.config.timeout, read=None)
        try:
            async with self._client.stream("GET", self.status_url(job_id), timeout=timeout) as response:
                if response.status_code != 200:
                    raise TransportError(f"Status stream returned HTTP {response.status_code}")
                data_lines = []
                async for line in response.aiter_lines():
                    if line.startswith("data:"):
                        data_lines.append(line[5:].strip())
                    elif not line and data_lines:
                        yield _decode_frame(data_lines)
                        data_lines = []
                if data_lines:
                    yield _decode_frame(data_lines)
        except httpx.HTTPError as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

    async def download(self, job_id: str) -> Tuple[str, bytes]:
        response = await self._client.get(self.download_url(job_id))
        if response.status_code != 200:
            raise ReportApiError(response.status_code, _error_message(response))
        disposition = response.headers.get("content-disposition", "")
        match = _FILENAME_RE.search(disposition)
        filename = match.group(1) if match else f"{job_id}.csv"
        return filename, response.content

    async def save_download(self, job_id: str, directory: Path) -> Path:
        filename, content = await self.download(job_id)
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / Path(filename).name
        target.write_bytes(content)
        logger.info("Saved report %s to %s", job_id, target)
        return target

    async def cancel(self, job_id: str) -> None:
        response = await self._client.delete(self.url(self.config.cancel_endpoint.format(job_id=job_id)))
        if response.status_code not in (200, 404):
            raise ReportApiError(response.status_code, _error_message(response))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def _decode_frame(data_lines) -> Dict[str, Any]:
    try:
        frame = json.loads("\n".join(data_lines))
    except ValueError as exc:
        raise TransportError(f"Malformed status frame: {exc}") from exc
    if not isinstance(frame, dict):
        raise TransportError("Malformed status frame: expected an object")
    return frame
