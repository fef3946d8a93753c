"""
Core layer - Versioned routes, HTTP client and polling.

This layer provides:
- Low-level HTTP client with token handling, error handling and
  response normalization
- Per-version route tables and status rules
- Fixed-interval polling and retry loops
"""

from smapi_cli.core.client import BASE_URLS, APIClient, APIError, CLIError, ValidationError
from smapi_cli.core.polling import (
    BUILD_POLL_POLICY,
    RATE_LIMIT_POLICY,
    WITHDRAWAL_POLICY,
    RetryPolicy,
    poll_until,
    retry_call,
)
from smapi_cli.core.types import PollOutcome, PollState, PollTarget, RawResponse
from smapi_cli.core.versions import ApiVersion, Route, VersionProfile, get_profile, resolve_version

__all__ = [
    "BASE_URLS",
    "BUILD_POLL_POLICY",
    "RATE_LIMIT_POLICY",
    "WITHDRAWAL_POLICY",
    "APIClient",
    "APIError",
    "ApiVersion",
    "CLIError",
    "PollOutcome",
    "PollState",
    "PollTarget",
    "RawResponse",
    "RetryPolicy",
    "Route",
    "ValidationError",
    "VersionProfile",
    "get_profile",
    "poll_until",
    "resolve_version",
    "retry_call",
]
