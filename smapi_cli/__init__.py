"""
SMAPI CLI - Three-layer client for the Skill Management API.

Layers:
- core: Versioned routes, HTTP client and polling
- sdk: High-level SMAPIClient with operation groups
- cli: Opinionated command-line interface
"""

from smapi_cli.sdk import SMAPIClient, create_client

__version__ = "0.1.0"
__all__ = ["SMAPIClient", "create_client"]
