"""
Core HTTP client for the Skill Management API.

Handles the region base URL, the access token, request/response and error
handling. Responses are normalized before they are handed back.
"""

import http.client
import json
import urllib.error
import urllib.parse
import urllib.request
from typing import Any

from smapi_cli.core.normalize import normalize
from smapi_cli.core.types import RawResponse
from smapi_cli.logging_config import get_logger

logger = get_logger(__name__)

# Configuration
BASE_URLS = {
    "NA": "https://api.amazonalexa.com",
    "EU": "https://api.eu.amazonalexa.com",
    "FE": "https://api.fe.amazonalexa.com",
}
DEFAULT_REGION = "NA"
TOKEN_URL = "https://api.amazon.com/auth/o2/token"

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class CLIError(Exception):
    """Base error class for CLI errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result: dict[str, Any] = {"error": self.message}
        if self.details:
            result["details"] = self.details
        return result


class APIError(CLIError):
    """API error with status code, status text and response payload."""

    def __init__(
        self,
        message: str,
        status: int = 0,
        status_text: str = "",
        data: Any = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.status = status
        self.status_text = status_text
        self.data = data

    @property
    def is_rate_limited(self) -> bool:
        return self.status == 429

    def summary(self) -> dict[str, Any]:
        """The error shape shared by every operation."""
        return {"status": self.status, "statusText": self.status_text, "data": self.data}

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for JSON output."""
        result = super().to_dict()
        if self.status:
            result["status"] = self.status
            result["statusText"] = self.status_text
        if self.data is not None:
            result["data"] = self.data
        return result


class ValidationError(CLIError):
    """Validation error for local configuration/input issues (not API errors)."""


def resolve_base_url(region: str | None) -> str:
    """Map a region code to its base URL, falling back to the primary region."""
    return BASE_URLS[region if region in BASE_URLS else DEFAULT_REGION]


def _error_message(data: Any, fallback: str) -> str:
    # Handle both {"message": "..."} and {"error": "..."} / {"error": {"message": "..."}}
    if isinstance(data, dict):
        if isinstance(data.get("message"), str):
            return data["message"]
        error_field = data.get("error")
        if isinstance(error_field, str):
            return error_field
        if isinstance(error_field, dict) and isinstance(error_field.get("message"), str):
            return error_field["message"]
    return fallback


def _decode_body(raw: bytes) -> Any:
    text = raw.decode("utf-8", errors="replace") if raw else ""
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class APIClient:
    """
    Low-level HTTP client for the Skill Management API.

    Handles:
    - Region base URL and default JSON headers
    - The access token, owned by this instance and sent with every request
    - HTTP methods (HEAD, GET, POST, PUT, DELETE)
    - Error handling and response normalization
    """

    def __init__(
        self,
        region: str | None = None,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the API client.

        Args:
            region: Region code (NA, EU or FE); anything else selects NA
            access_token: Access token to use until the next refresh
            base_url: Explicit base URL, overriding the region table
            timeout: Request timeout in seconds (None keeps the library default)

        """
        self.base_url = resolve_base_url(region)
        self.access_token: str | None = None
        self.timeout = timeout
        if access_token is not None:
            self.set_token(access_token)
        if base_url is not None:
            self.set_base_url(base_url)

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_token(self, token: str) -> None:
        """Use the given access token for all subsequent requests."""
        if not isinstance(token, str) or not token:
            raise ValidationError("Invalid token specified!")
        self.access_token = token

    def set_base_url(self, url: str) -> None:
        """Send all subsequent requests to the given base URL."""
        if not isinstance(url, str) or not url:
            raise ValidationError("Invalid base url specified!")
        self.base_url = url.rstrip("/")

    def _build_url(self, path: str) -> str:
        """Build full URL from path."""
        if path.startswith("http"):
            return path
        return f"{self.base_url}{path}"

    def _headers(self, authorize: bool = True) -> dict[str, str]:
        headers = dict(DEFAULT_HEADERS)
        if authorize and self.access_token:
            headers["Authorization"] = self.access_token
        return headers

    def _make_request(
        self,
        method: str,
        path: str,
        data: Any = None,
        authorize: bool = True,
    ) -> RawResponse:
        """
        Make an HTTP request to the API.

        Args:
            method: HTTP method (HEAD, GET, POST, PUT, DELETE)
            path: API path (e.g., /v1/skills/{id}/status) or absolute URL
            data: JSON request body for POST/PUT
            authorize: Send the access token

        Returns:
            RawResponse with status, headers and decoded body

        Raises:
            APIError: On any non-2xx outcome or connection failure

        """
        url = self._build_url(path)
        body = json.dumps(data).encode("utf-8") if data is not None else None

        logger.debug("smapi_request", method=method, url=url)
        try:
            req = urllib.request.Request(url, data=body, headers=self._headers(authorize), method=method)
            if self.timeout is None:
                response_cm = urllib.request.urlopen(req)
            else:
                response_cm = urllib.request.urlopen(req, timeout=self.timeout)
            with response_cm as response:
                return RawResponse(
                    status=response.status,
                    headers={k.lower(): v for k, v in response.headers.items()},
                    body=_decode_body(response.read()),
                )

        except urllib.error.HTTPError as e:
            error_data = _decode_body(e.read())
            status_text = e.reason if isinstance(e.reason, str) else str(e.reason)
            logger.debug("smapi_request_failed", method=method, url=url, status=e.code)
            raise APIError(
                _error_message(error_data, str(e)),
                status=e.code,
                status_text=status_text,
                data=error_data,
            ) from e

        except urllib.error.URLError as e:
            raise APIError(f"Connection error: {e.reason}", status_text="Connection error") from e

        except TimeoutError as e:
            raise APIError(f"Request timed out after {self.timeout} seconds", status_text="Timeout") from e

        except (http.client.HTTPException, OSError) as e:
            # Dropped connections and truncated reads
            raise APIError(f"Connection error: {e!r}", status_text="Connection error") from e

    # =========================================================================
    # HTTP Methods
    # =========================================================================

    def head(self, path: str) -> dict[str, Any]:
        """Make a HEAD request."""
        return normalize("HEAD", self._make_request("HEAD", path))

    def get(self, path: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Make a GET request."""
        if params:
            # Filter out None values and URL-encode
            filtered_params = {k: v for k, v in params.items() if v is not None}
            if filtered_params:
                query_string = urllib.parse.urlencode(filtered_params, doseq=True)
                separator = "&" if "?" in path else "?"
                path = f"{path}{separator}{query_string}"
        return normalize("GET", self._make_request("GET", path))

    def post(self, path: str, data: Any = None) -> dict[str, Any]:
        """Make a POST request."""
        return normalize("POST", self._make_request("POST", path, data if data is not None else {}))

    def put(self, path: str, data: Any = None) -> dict[str, Any]:
        """Make a PUT request."""
        return normalize("PUT", self._make_request("PUT", path, data if data is not None else {}))

    def delete(self, path: str) -> dict[str, Any]:
        """Make a DELETE request."""
        return normalize("DELETE", self._make_request("DELETE", path))

    def request(
        self,
        method: str,
        path: str,
        data: Any = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Dispatch to the HTTP method helper for ``method``."""
        method = method.upper()
        if method == "HEAD":
            return self.head(path)
        if method == "GET":
            return self.get(path, params)
        if method == "POST":
            return self.post(path, data)
        if method == "PUT":
            return self.put(path, data)
        if method == "DELETE":
            return self.delete(path)
        raise ValidationError(f"Unsupported HTTP method: {method}")

    # =========================================================================
    # Token Management
    # =========================================================================

    def refresh_token(self, refresh_token: str, client_id: str, client_secret: str) -> dict[str, Any]:
        """
        Exchange a refresh token for an access token.

        The returned access token replaces the current one for every later
        request made by this client.

        Returns:
            The raw token payload (access_token, refresh_token, expires_in, ...)

        """
        response = self._make_request(
            "POST",
            TOKEN_URL,
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": client_id,
                "client_secret": client_secret,
            },
            authorize=False,
        )
        payload = response.body if isinstance(response.body, dict) else {}
        if not payload.get("access_token"):
            raise APIError(
                "Token response did not include an access_token",
                status=response.status,
                data=response.body,
            )
        self.set_token(payload["access_token"])
        logger.info("access_token_refreshed", expires_in=payload.get("expires_in"))
        return payload
