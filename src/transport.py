"""
HTTP transport for the Cloud SQL Admin API.
"""

import logging
from typing import Callable, Dict, Optional, TypeVar

import requests

from errors import DecodeError, HTTPStatusError, TransportError

T = TypeVar("T")


class HttpExecutor:
    """Sends prepared requests and decodes their JSON responses."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout_s: int = 60,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the executor.

        Args:
            session: requests session to send through (a new one by default)
            timeout_s: Per-request timeout in seconds
            logger: Logger to use instead of the module logger
        """
        self.session = session or requests.Session()
        self.timeout_s = timeout_s
        self.logger = logger or logging.getLogger(__name__)

    def execute(
        self, request: requests.PreparedRequest, decode: Callable[[Dict], T]
    ) -> T:
        """
        Send a request and decode the response body.

        No retries are attempted; retry policy belongs to the caller.

        Args:
            request: Prepared request (see RequestRenderer.render)
            decode: Callable mapping the parsed JSON dict to the target record

        Returns:
            Whatever ``decode`` returns

        Raises:
            TransportError: On connection failures and timeouts
            HTTPStatusError: If the response status is not 2xx
            DecodeError: If the body is not JSON or does not fit the target
        """
        try:
            resp = self.session.send(request, timeout=self.timeout_s)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{request.method} request failed: {e}") from e

        self.logger.debug(f"{request.method} -> {resp.status_code}")

        if not 200 <= resp.status_code < 300:
            raise HTTPStatusError(
                resp.status_code, _error_message(resp), url=_safe_url(request.url)
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise DecodeError(f"Response is not valid JSON: {resp.text[:200]}") from e

        if not isinstance(data, dict):
            raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")

        try:
            return decode(data)
        except (KeyError, TypeError, ValueError) as e:
            raise DecodeError(f"Response does not match expected shape: {e}") from e


def _error_message(resp: requests.Response) -> str:
    try:
        error_data = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(error_data, dict):
        error = error_data.get("error")
        if isinstance(error, dict):
            return error.get("message", "")
        if isinstance(error, str):
            return error_data.get("error_description", error)
    return resp.text[:200]


def _safe_url(url: Optional[str]) -> Optional[str]:
    if url and "access_token=" in url:
        return url.split("?")[0]
    return url
