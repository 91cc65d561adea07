"""SOC data export client."""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from app.core.config import SocSettings

from .exceptions import (
    InvalidResponseFormatError,
    SourceTimeoutError,
    SourceUnavailableError,
)

logger = logging.getLogger(__name__)


class SocClient:
    """
    Client for the SOC ``exportadados`` endpoint.

    Every export is a single GET carrying its parameters as URL-encoded JSON
    in ``parametro``. The answer is a Latin-1 encoded JSON array of flat
    objects. Requests are never retried here; a failed fetch fails the job.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 120.0,
        encoding: str = "latin-1",
        output_format: str = "json",
        excerpt_length: int = 1000,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize SOC client.

        Args:
            base_url: Export endpoint URL
            timeout: Hard limit for the whole request in seconds
            encoding: Character set of the response body
            output_format: Value forced into ``tipoSaida``
            excerpt_length: Characters of raw payload kept on parse errors
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.encoding = encoding
        self.output_format = output_format
        self.excerpt_length = excerpt_length

        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        settings: SocSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "SocClient":
        return cls(
            base_url=settings.url,
            timeout=settings.timeout,
            encoding=settings.encoding,
            output_format=settings.output_format,
            excerpt_length=settings.excerpt_length,
            transport=transport,
        )

    async def __aenter__(self) -> "SocClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()

    def build_params(self, parameters: Dict[str, Any]) -> Dict[str, Any]:
        """Request parameters with the output format forced."""
        params = {
            key: value
            for key, value in parameters.items()
            if value is not None and value != ""
        }
        params["tipoSaida"] = self.output_format
        return params

    def build_url(self, parameters: Dict[str, Any]) -> str:
        """Full export URL for the given credential and filter parameters."""
        payload = json.dumps(
            self.build_params(parameters), ensure_ascii=False, separators=(",", ":")
        )
        return f"{self.base_url}?parametro={quote(payload, safe='')}"

    async def fetch_records(self, parameters: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Fetch the complete record set of one export.

        Args:
            parameters: Credential and filter fields of the export

        Returns:
            List of raw SOC records

        Raises:
            SourceTimeoutError: No answer within the timeout
            SourceUnavailableError: Transport failure or non-2xx status
            InvalidResponseFormatError: Body is not a JSON array of objects
        """
        url = self.build_url(parameters)
        logger.info(f"Requesting SOC export from {self.base_url}")

        try:
            response = await asyncio.wait_for(self._client.get(url), self.timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise SourceTimeoutError(
                f"SOC did not answer within {self.timeout:g} seconds"
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailableError(f"SOC request failed: {e}") from e

        if not response.is_success:
            raise SourceUnavailableError(
                f"API request failed with status: {response.status_code}",
                status_code=response.status_code,
            )

        text = response.content.decode(self.encoding, errors="replace")
        logger.debug(f"SOC answered with {len(text)} characters")
        return self.parse_payload(text)

    def parse_payload(self, text: str) -> List[Dict[str, Any]]:
        """Parse a decoded SOC body into a list of records."""
        excerpt = text[: self.excerpt_length]
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidResponseFormatError(
                f"SOC response is not valid JSON ({e.msg})", raw_excerpt=excerpt
            ) from e

        if not isinstance(data, list):
            raise InvalidResponseFormatError(
                "SOC response is not a list of records", raw_excerpt=excerpt
            )
        if not all(isinstance(item, dict) for item in data):
            raise InvalidResponseFormatError(
                "SOC response contains entries that are not records",
                raw_excerpt=excerpt,
            )

        logger.info(f"SOC export returned {len(data)} records")
        return data
