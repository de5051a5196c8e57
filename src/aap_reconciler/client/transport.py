"""HTTP transport to the controller REST API.

Thin wrapper over ``httpx.AsyncClient`` that adds auth, the API prefix and a
fixed per-call timeout, and turns every failure into a ControllerError.
"""
import json
import logging
from typing import Any, Optional

import httpx

from ..config.settings import ControllerConfig
from ..errors import classify_response, classify_transport_exception
from ..utils.logging_config import timed_section

logger = logging.getLogger(__name__)


class ControllerTransport:
    """Authenticated JSON-over-HTTP access to one controller.

    Usage:
        async with ControllerTransport(config) as transport:
            raw = await transport.execute("GET", "/organizations/1/")
    """

    def __init__(
        self,
        config: ControllerConfig,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the transport.

        Args:
            config: Controller connection settings
            http_transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.config = config
        self._http_transport = http_transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def target(self) -> str:
        """Label used in timing logs."""
        return self.config.host

    def _build_client(self) -> httpx.AsyncClient:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        auth = None
        if self.config.token:
            headers["Authorization"] = f"Bearer {self.config.token}"
        elif self.config.username and self.config.password:
            auth = httpx.BasicAuth(self.config.username, self.config.password)

        return httpx.AsyncClient(
            base_url=self.config.base_url,
            headers=headers,
            auth=auth,
            verify=not self.config.insecure,
            timeout=httpx.Timeout(self.config.timeout),
            transport=self._http_transport,
        )

    async def open(self) -> httpx.AsyncClient:
        """Create the underlying HTTP client if needed and return it."""
        if self._http is None:
            self._http = self._build_client()
            logger.debug(
                f"Opened HTTP session to {self.config.base_url} "
                f"(auth={self.config.auth_mode}, verify_tls={not self.config.insecure})"
            )
        return self._http

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None
            logger.debug(f"Closed HTTP session to {self.config.base_url}")

    async def execute(
        self,
        method: str,
        path: str,
        body: Optional[dict[str, Any]] = None,
    ) -> bytes:
        """
        Issue one request and return the raw response body.

        Args:
            method: HTTP method
            path: Path below the API prefix, e.g. "/organizations/1/"
            body: JSON object to send, or None for no body

        Returns:
            Raw response bytes for any 2xx/3xx status

        Raises:
            TransportError: Connection failure or timeout
            NotFound: 404
            RemoteError: Any other 4xx/5xx, with the verbatim body
        """
        http = await self.open()

        content = json.dumps(body).encode("utf-8") if body is not None else None

        async with timed_section("http", self.target, method=method, path=path):
            try:
                response = await http.request(method, path, content=content)
            except Exception as e:
                raise classify_transport_exception(method, path, e) from e

        logger.debug(f"{method} {path} -> {response.status_code}")

        error = classify_response(method, path, response.status_code, response.text)
        if error is not None:
            logger.debug(f"Request failed: {error}")
            raise error

        return response.content

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
        return False
