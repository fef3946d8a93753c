"""
Response normalization.

Every successful response is shaped by HTTP method:

- HEAD, PUT: ``{"location", "etag"}`` from the headers, never the body
- GET, DELETE: the decoded body as-is (``{}`` when empty)
- POST: ``{"location", "etag"}`` merged with the JSON object body
"""

from typing import Any

from smapi_cli.core.types import RawResponse


def header_fields(response: RawResponse) -> dict[str, Any]:
    """Extract location and etag headers (absent headers map to None)."""
    return {
        "location": response.header("location"),
        "etag": response.header("etag"),
    }


def normalize(method: str, response: RawResponse) -> Any:
    """Shape a successful response according to the HTTP method that produced it."""
    method = method.upper()
    if method in ("HEAD", "PUT"):
        return header_fields(response)
    if method == "POST":
        result = header_fields(response)
        if isinstance(response.body, dict):
            result.update(response.body)
        return result
    # GET / DELETE
    if response.body is None:
        return {}
    return response.body
