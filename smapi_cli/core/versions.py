"""
Versioned request shapes for the Skill Management API.

Each supported API version has a ``VersionProfile``: the route of every
logical operation plus the status rules used when polling. The two profiles
sit side by side in ``PROFILES`` so that both versions can be audited
together; callers look the profile up once and never branch on the version.

Legacy positional remap
-----------------------
The legacy API has no ``stage``. Each route declares its own positional
parameter layout, and ``Route.bind`` binds positional arguments to that
layout. A legacy call ``update(skill_id, locale, interaction_model)`` thus
fills the slots the current API calls ``(skill_id, stage, locale)`` with the
legacy meaning, without any per-operation special casing.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from smapi_cli.core.client import ValidationError
from smapi_cli.core.types import PollTarget
from smapi_cli.logging_config import get_logger

logger = get_logger(__name__)


class ApiVersion(str, Enum):
    """Supported API versions, oldest first."""

    V0 = "v0"
    V1 = "v1"


SUPPORTED_VERSIONS = tuple(ApiVersion)
DEFAULT_VERSION = SUPPORTED_VERSIONS[-1]


def resolve_version(version: "str | ApiVersion | None") -> ApiVersion:
    """Return the requested version, or the newest one if unknown/missing."""
    try:
        return ApiVersion(version)
    except ValueError:
        if version is not None:
            logger.warning("unsupported_api_version", requested=version, using=DEFAULT_VERSION.value)
        return DEFAULT_VERSION


# =============================================================================
# Routes
# =============================================================================


def _render(template: Any, values: Mapping[str, Any]) -> Any:
    """Fill a body/query template whose leaves are parameter names."""
    if isinstance(template, dict):
        rendered = {}
        for key, leaf in template.items():
            value = _render(leaf, values)
            if value is not None:
                rendered[key] = value
        return rendered
    return values.get(template)


@dataclass(frozen=True)
class Route:
    """How one logical operation maps onto HTTP for one API version."""

    method: str
    path: str
    params: tuple[str, ...]
    optional: frozenset[str] = frozenset()
    body: dict[str, Any] | None = None
    # Either a template (query key -> parameter name) or the name of a
    # parameter whose mapping is forwarded as the query string.
    query: dict[str, str] | str | None = None

    def bind(self, operation: str, args: tuple[Any, ...], kwargs: Mapping[str, Any]) -> dict[str, Any]:
        """Bind call arguments to this route's parameter layout."""
        if len(args) > len(self.params):
            raise ValidationError(
                f"{operation} takes at most {len(self.params)} arguments ({len(args)} given)",
                details={"parameters": list(self.params)},
            )
        values = dict(zip(self.params, args))
        for name, value in kwargs.items():
            if name not in self.params:
                if value is None:
                    continue
                raise ValidationError(
                    f"{operation} does not accept '{name}' for this API version",
                    details={"parameters": list(self.params)},
                )
            if name in values:
                raise ValidationError(f"{operation} got multiple values for '{name}'")
            values[name] = value

        missing = [p for p in self.params if values.get(p) is None and p not in self.optional]
        if missing:
            raise ValidationError(
                f"{operation} is missing required arguments: {', '.join(missing)}",
                details={"parameters": list(self.params)},
            )
        return values

    def url(self, values: Mapping[str, Any]) -> str:
        return self.path.format(**values)

    def request_body(self, values: Mapping[str, Any]) -> Any:
        if self.body is None:
            return None
        return _render(self.body, values)

    def query_params(self, values: Mapping[str, Any]) -> dict[str, Any] | None:
        if self.query is None:
            return None
        if isinstance(self.query, str):
            return dict(values.get(self.query) or {})
        return _render(self.query, values)


# =============================================================================
# Version Profiles
# =============================================================================


@dataclass(frozen=True)
class StatusRule:
    """Where a status lives in a response and which values are terminal."""

    path: tuple[str | int, ...]
    ready: frozenset[str]
    failed: frozenset[str] = frozenset()

    def target(self, name: str, **fields: str) -> PollTarget:
        path = tuple(seg.format(**fields) if isinstance(seg, str) else seg for seg in self.path)
        return PollTarget(name=name, status_path=path, ready=self.ready, failed=self.failed)


@dataclass(frozen=True)
class VersionProfile:
    version: ApiVersion
    routes: Mapping[str, Route]
    skill_build: StatusRule
    model_build: StatusRule
    # None where the version offers no usable certification status
    certification: StatusRule | None = None
    tasks: StatusRule = field(
        default=StatusRule(("status",), frozenset({"SUCCESSFUL"}), frozenset({"FAILED"}))
    )

    def route(self, operation: str) -> Route:
        try:
            return self.routes[operation]
        except KeyError:
            raise ValidationError(
                f"Operation '{operation}' is not available in API {self.version.value}"
            ) from None

    def skill_build_target(self) -> PollTarget:
        return self.skill_build.target("skill build")

    def model_build_target(self, locale: str) -> PollTarget:
        return self.model_build.target("interaction model build", locale=locale)

    def certification_target(self, expected: str = "CERTIFICATION") -> PollTarget:
        if self.certification is None:
            raise ValidationError(
                f"Certification status is not available in API {self.version.value}",
                details={"supported_versions": [p.version.value for p in PROFILES.values() if p.certification]},
            )
        return PollTarget(
            name="certification",
            status_path=self.certification.path,
            ready=frozenset({expected}),
            failed=self.certification.failed,
        )

    def validation_target(self) -> PollTarget:
        return self.tasks.target("validation")

    def simulation_target(self) -> PollTarget:
        return self.tasks.target("simulation")


# Routes whose shape does not depend on the API version.
_SHARED_ROUTES = {
    "account_linking.delete": Route(
        "DELETE", "/v1/skills/{skill_id}/stages/{stage}/accountLinkingClient", ("skill_id", "stage")
    ),
    "skill_enablement.enable": Route(
        "PUT", "/v1/skills/{skill_id}/stages/{stage}/enablement", ("skill_id", "stage")
    ),
    "skill_enablement.status": Route(
        "GET", "/v1/skills/{skill_id}/stages/{stage}/enablement", ("skill_id", "stage")
    ),
    "skill_enablement.disable": Route(
        "DELETE", "/v1/skills/{skill_id}/stages/{stage}/enablement", ("skill_id", "stage")
    ),
    "skill_certification.status": Route(
        "GET", "/v1/skills", ("vendor_id", "skill_id"), query={"vendorId": "vendor_id", "skillId": "skill_id"}
    ),
    "skill_testing.validate": Route(
        "POST",
        "/v1/skills/{skill_id}/stages/{stage}/validations",
        ("skill_id", "stage", "locales"),
        body={"locales": "locales"},
    ),
    "skill_testing.validation_status": Route(
        "GET",
        "/v1/skills/{skill_id}/stages/{stage}/validations/{validation_id}",
        ("skill_id", "stage", "validation_id"),
    ),
    "intent_requests.list": Route(
        "GET",
        "/v1/skills/{skill_id}/history/intentRequests",
        ("skill_id", "filters"),
        optional=frozenset({"filters"}),
        query="filters",
    ),
}


def _versioned_routes(v: str) -> dict[str, Route]:
    """Routes whose shape is identical across versions apart from the prefix."""
    return {
        "vendors.list": Route("GET", f"/{v}/vendors", ()),
        "skills.status": Route("GET", f"/{v}/skills/{{skill_id}}/status", ("skill_id",)),
        "skills.list": Route(
            "GET",
            f"/{v}/skills",
            ("vendor_id", "max_results", "next_token"),
            optional=frozenset({"max_results", "next_token"}),
            query={"vendorId": "vendor_id", "maxResults": "max_results", "nextToken": "next_token"},
        ),
        "skills.delete": Route("DELETE", f"/{v}/skills/{{skill_id}}", ("skill_id",)),
        "skill_certification.submit": Route("POST", f"/{v}/skills/{{skill_id}}/submit", ("skill_id",)),
        "skill_certification.withdraw": Route(
            "POST",
            f"/{v}/skills/{{skill_id}}/withdraw",
            ("skill_id", "reason", "message"),
            optional=frozenset({"message"}),
            body={"reason": "reason", "message": "message"},
        ),
        "skill_testing.invoke": Route(
            "POST",
            f"/{v}/skills/{{skill_id}}/invocations",
            ("skill_id", "endpoint_region", "skill_request"),
            body={"endpointRegion": "endpoint_region", "skillRequest": "skill_request"},
        ),
        "skill_testing.simulate": Route(
            "POST",
            f"/{v}/skills/{{skill_id}}/simulations",
            ("skill_id", "content", "locale"),
            body={"input": {"content": "content"}, "device": {"locale": "locale"}},
        ),
        "skill_testing.simulation_status": Route(
            "GET", f"/{v}/skills/{{skill_id}}/simulations/{{request_id}}", ("skill_id", "request_id")
        ),
    }


_V0_MODEL = "/v0/skills/{skill_id}/interactionModel/locales/{locale}"
_V1_MODEL = "/v1/skills/{skill_id}/stages/{stage}/interactionModel/locales/{locale}"

_V0_ROUTES = {
    **_SHARED_ROUTES,
    **_versioned_routes("v0"),
    "skills.get_manifest": Route("GET", "/v0/skills/{skill_id}", ("skill_id",)),
    "skills.create": Route(
        "POST", "/v0/skills", ("vendor_id", "manifest"), body={"vendorId": "vendor_id", "skillManifest": "manifest"}
    ),
    "skills.update": Route("PUT", "/v0/skills/{skill_id}", ("skill_id", "manifest"), body={"skillManifest": "manifest"}),
    "interaction_model.get": Route("GET", _V0_MODEL, ("skill_id", "locale")),
    "interaction_model.get_etag": Route("HEAD", _V0_MODEL, ("skill_id", "locale")),
    "interaction_model.update": Route(
        "POST",
        _V0_MODEL,
        ("skill_id", "locale", "interaction_model"),
        body={"interactionModel": "interaction_model"},
    ),
    "interaction_model.get_status": Route("GET", f"{_V0_MODEL}/status", ("skill_id", "locale")),
    "account_linking.update": Route(
        "PUT",
        "/v0/skills/{skill_id}/accountLinkingClient",
        ("skill_id", "account_linking_request"),
        body={"accountLinkingRequest": "account_linking_request"},
    ),
    "account_linking.read_info": Route("GET", "/v0/skills/{skill_id}/accountLinkingClient", ("skill_id",)),
}

_V1_ROUTES = {
    **_SHARED_ROUTES,
    **_versioned_routes("v1"),
    "skills.get_manifest": Route("GET", "/v1/skills/{skill_id}/stages/{stage}/manifest", ("skill_id", "stage")),
    "skills.create": Route(
        "POST", "/v1/skills", ("vendor_id", "manifest"), body={"vendorId": "vendor_id", "manifest": "manifest"}
    ),
    "skills.update": Route(
        "PUT",
        "/v1/skills/{skill_id}/stages/{stage}/manifest",
        ("skill_id", "stage", "manifest"),
        body={"manifest": "manifest"},
    ),
    "interaction_model.get": Route("GET", _V1_MODEL, ("skill_id", "stage", "locale")),
    "interaction_model.get_etag": Route("HEAD", _V1_MODEL, ("skill_id", "stage", "locale")),
    "interaction_model.update": Route(
        "PUT",
        _V1_MODEL,
        ("skill_id", "stage", "locale", "interaction_model"),
        body={"interactionModel": "interaction_model"},
    ),
    # The locale is not part of the URL; the status is keyed by locale in the body.
    "interaction_model.get_status": Route(
        "GET", "/v1/skills/{skill_id}/status?resource=interactionModel", ("skill_id", "locale")
    ),
    "account_linking.update": Route(
        "PUT",
        "/v1/skills/{skill_id}/stages/{stage}/accountLinkingClient",
        ("skill_id", "stage", "account_linking_request"),
        body={"accountLinkingRequest": "account_linking_request"},
    ),
    "account_linking.read_info": Route(
        "GET", "/v1/skills/{skill_id}/stages/{stage}/accountLinkingClient", ("skill_id", "stage")
    ),
}

PROFILES: dict[ApiVersion, VersionProfile] = {
    ApiVersion.V0: VersionProfile(
        version=ApiVersion.V0,
        routes=_V0_ROUTES,
        skill_build=StatusRule(("manifest", "lastModified", "status"), frozenset({"SUCCESSFUL"}), frozenset({"FAILED"})),
        model_build=StatusRule(("status",), frozenset({"SUCCESS"}), frozenset({"FAILURE"})),
        # The location returned by a legacy submit is not usable for status checks.
        certification=None,
    ),
    ApiVersion.V1: VersionProfile(
        version=ApiVersion.V1,
        routes=_V1_ROUTES,
        skill_build=StatusRule(
            ("manifest", "lastUpdateRequest", "status"), frozenset({"SUCCEEDED"}), frozenset({"FAILED"})
        ),
        model_build=StatusRule(
            ("interactionModel", "{locale}", "lastUpdateRequest", "status"),
            frozenset({"SUCCEEDED"}),
            frozenset({"FAILED"}),
        ),
        certification=StatusRule(("skills", 0, "publicationStatus"), frozenset({"CERTIFICATION"})),
    ),
}


def get_profile(version: "str | ApiVersion | None") -> VersionProfile:
    """Look up the profile for a version (newest when unknown/missing)."""
    return PROFILES[resolve_version(version)]
