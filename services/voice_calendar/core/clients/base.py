"""
Base API client for external calendar provider integrations.

Provides common functionality for HTTP requests, error handling and
authentication headers across provider APIs. Clients either borrow the
service's shared ``httpx.AsyncClient`` or open their own inside
``async with``.
"""

import json
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx

from services.common.http_errors import ErrorCode, ProviderError
from services.common.logging_config import get_logger, request_id_var

logger = get_logger(__name__)


class BaseAPIClient(ABC):
    """
    Base API client class for provider-specific clients.

    Features:
    - Bearer token authentication headers
    - Request ID propagation
    - Provider error parsing into ``ProviderError``
    """

    provider_name = "unknown"

    def __init__(
        self,
        access_token: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 30.0,
    ):
        """
        Initialize the base API client.

        Args:
            access_token: OAuth access token for the provider
            http_client: Shared client to reuse; one is created on enter otherwise
            timeout_seconds: Timeout for a client created by this instance
        """
        self.access_token = access_token
        self.http_client = http_client
        self.timeout_seconds = timeout_seconds
        self._owns_client = http_client is None
        self._session_id = str(uuid.uuid4())[:8]

    async def __aenter__(self) -> "BaseAPIClient":
        if self.http_client is None:
            self.http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds)
            )
            self._owns_client = True
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._owns_client and self.http_client:
            await self.http_client.aclose()
            self.http_client = None

    @abstractmethod
    def _get_default_headers(self) -> Dict[str, str]:
        """Get default headers for API requests. Must be implemented by subclasses."""

    @abstractmethod
    def _get_base_url(self) -> str:
        """Get base URL for the provider API. Must be implemented by subclasses."""

    def _parse_error(self, response_text: str, status_code: int) -> tuple[str, ErrorCode]:
        """Map an error response to (message, code). Subclasses refine this."""
        return f"HTTP {status_code}", ErrorCode.PROVIDER_ERROR

    def _request_id(self) -> str:
        context_request_id = request_id_var.get()
        if context_request_id and context_request_id != "uninitialized":
            return context_request_id
        return f"{self._session_id}-{uuid.uuid4().hex[:8]}"

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json_data: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> httpx.Response:
        """
        Make an HTTP request with logging and error handling.

        Raises:
            ProviderError: For timeouts, transport failures and non-2xx responses
        """
        if not self.http_client:
            raise RuntimeError("HTTP client not initialized. Use async context manager.")

        url = f"{self._get_base_url()}{endpoint}"
        request_headers = self._get_default_headers()
        if headers:
            request_headers.update(headers)
        request_id = self._request_id()
        request_headers["X-Request-ID"] = request_id

        start_time = time.time()
        try:
            logger.debug(f"Making {method.upper()} request to {endpoint} | Request-ID: {request_id}")
            response = await self.http_client.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                headers=request_headers,
            )
            response_time_ms = int((time.time() - start_time) * 1000)
            logger.debug(
                f"Response: {response.status_code} | Endpoint: {endpoint} | "
                f"Time: {response_time_ms}ms | Request-ID: {request_id}"
            )
            response.raise_for_status()
            return response

        except httpx.TimeoutException as e:
            response_time_ms = int((time.time() - start_time) * 1000)
            logger.error(
                f"Timeout error after {response_time_ms}ms | Endpoint: {endpoint} | "
                f"Request-ID: {request_id} | Provider: {self.provider_name}"
            )
            raise ProviderError(
                message=f"Request timeout after {response_time_ms}ms",
                provider=self.provider_name,
                details={"endpoint": endpoint, "method": method.upper(), "request_id": request_id},
            ) from e

        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            message, code = self._parse_error(e.response.text, status_code)
            logger.error(
                f"HTTP error: {message} | Endpoint: {endpoint} | "
                f"Request-ID: {request_id} | Provider: {self.provider_name}"
            )

            retry_after = None
            if status_code == 429:
                retry_after_header = e.response.headers.get("Retry-After")
                if retry_after_header and retry_after_header.isdigit():
                    retry_after = int(retry_after_header)

            raise ProviderError(
                message=message,
                provider=self.provider_name,
                code=code,
                response_body=e.response.text,
                retry_after=retry_after,
                provider_status=status_code,
                details={"endpoint": endpoint, "method": method.upper(), "request_id": request_id},
            ) from e

        except httpx.RequestError as e:
            logger.error(
                f"Request error: {e} | Endpoint: {endpoint} | "
                f"Request-ID: {request_id} | Provider: {self.provider_name}"
            )
            raise ProviderError(
                message=f"Request failed: {type(e).__name__}",
                provider=self.provider_name,
                details={
                    "endpoint": endpoint,
                    "method": method.upper(),
                    "request_id": request_id,
                    "error_type": type(e).__name__,
                },
            ) from e

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """Make a GET request"""
        return await self._make_request("GET", endpoint, params=params)

    async def post(
        self,
        endpoint: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Make a POST request"""
        return await self._make_request("POST", endpoint, params=params, json_data=json_data)


def load_json_error(response_text: str) -> tuple[str, str]:
    """Extract ``(reason, message)`` from a JSON API error body, or empty strings."""
    try:
        error_data = json.loads(response_text)
    except (json.JSONDecodeError, TypeError):
        return "", ""
    if not isinstance(error_data, dict):
        return "", ""

    error = error_data.get("error", {})
    if isinstance(error, dict):
        reason = ""
        errors = error.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            reason = str(errors[0].get("reason", ""))
        return reason or str(error.get("status", "")), str(error.get("message", ""))
    # Some endpoints return error as a string
    return str(error), str(error_data.get("error_description", ""))
