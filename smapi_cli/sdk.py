"""
SMAPI SDK - High-level client with nice ergonomics.

This layer exposes every logical Skill Management API operation in
namespaced groups. Each call resolves its route through the client's
version profile, goes through the core APIClient and returns the
normalized result. Built on top of the core layer.
"""

import builtins
from collections.abc import Mapping
from typing import Any

from smapi_cli.core.client import BASE_URLS, APIClient
from smapi_cli.core.polling import (
    BUILD_POLL_POLICY,
    RATE_LIMIT_POLICY,
    WITHDRAWAL_POLICY,
    RetryPolicy,
    poll_until,
    retry_call,
)
from smapi_cli.core.types import PollOutcome
from smapi_cli.core.versions import ApiVersion, VersionProfile, get_profile


class SMAPIClient:
    """
    High-level Skill Management API client.

    The API version is fixed per instance. Operations whose legacy form has
    no ``stage`` take positional arguments in the layout of the active
    version (see ``smapi_cli.core.versions``).

    Example:
        client = SMAPIClient(version="v1")
        client.tokens.refresh(refresh_token, client_id, client_secret)

        vendor_id = client.vendors.list()["vendors"][0]["id"]
        skill_id = client.skills.create(vendor_id, manifest)["skillId"]
        outcome = client.skills.wait_until_ready(skill_id)
        client.skills.delete(skill_id)

    """

    BASE_URLS = BASE_URLS

    def __init__(
        self,
        version: str | ApiVersion | None = None,
        region: str | None = None,
        access_token: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the SMAPI client.

        Args:
            version: API version ("v0" or "v1"); unknown/missing selects the newest
            region: Region code (NA, EU, FE); unknown/missing selects NA
            access_token: Access token, if one is already available
            base_url: Base URL override
            timeout: Request timeout in seconds

        """
        self.profile: VersionProfile = get_profile(version)
        self._client = APIClient(
            region=region,
            access_token=access_token,
            base_url=base_url,
            timeout=timeout,
        )

        # Sub-clients for different domains
        self.tokens = TokenOperations(self._client, self.profile)
        self.vendors = VendorOperations(self._client, self.profile)
        self.skills = SkillOperations(self._client, self.profile)
        self.interaction_model = InteractionModelOperations(self._client, self.profile)
        self.account_linking = AccountLinkingOperations(self._client, self.profile)
        self.skill_enablement = SkillEnablementOperations(self._client, self.profile)
        self.skill_certification = SkillCertificationOperations(self._client, self.profile)
        self.skill_testing = SkillTestingOperations(self._client, self.profile)
        self.intent_requests = IntentRequestOperations(self._client, self.profile)
        self.custom = CustomOperations(self._client, self.profile)

    @property
    def version(self) -> ApiVersion:
        """The API version this client speaks."""
        return self.profile.version

    @property
    def base_url(self) -> str:
        return self._client.base_url

    @property
    def access_token(self) -> str | None:
        return self._client.access_token

    def set_token(self, token: str) -> None:
        """Use ``token`` for every later request of this client."""
        self._client.set_token(token)

    def set_base_url(self, url: str) -> None:
        """Send every later request of this client to ``url``."""
        self._client.set_base_url(url)


def create_client(
    version: str | ApiVersion | None = None,
    region: str | None = None,
    **kwargs: Any,
) -> SMAPIClient:
    """Create an SMAPIClient for a version and region."""
    return SMAPIClient(version=version, region=region, **kwargs)


class _Operations:
    """Shared plumbing for the operation groups."""

    def __init__(self, client: APIClient, profile: VersionProfile):
        self._client = client
        self._profile = profile

    def _call(self, operation: str, *args: Any, **kwargs: Any) -> Any:
        route = self._profile.route(operation)
        values = route.bind(operation, args, kwargs)
        return self._client.request(
            route.method,
            route.url(values),
            data=route.request_body(values),
            params=route.query_params(values),
        )


# =============================================================================
# Token Operations
# =============================================================================


class TokenOperations(_Operations):
    """Access token management."""

    def refresh(self, refresh_token: str, client_id: str, client_secret: str) -> dict[str, Any]:
        """
        Refresh the access token.

        On success the new access token is used for every later request of
        this client.

        Returns:
            The raw token payload (access_token, refresh_token, expires_in, ...)

        """
        return self._client.refresh_token(refresh_token, client_id, client_secret)


# =============================================================================
# Vendor Operations
# =============================================================================


class VendorOperations(_Operations):
    def list(self) -> dict[str, Any]:
        """List the vendors of the authenticated account."""
        return self._call("vendors.list")


# =============================================================================
# Skill Operations
# =============================================================================


class SkillOperations(_Operations):
    """Skill manifest lifecycle."""

    def get_manifest(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        """
        Get a skill manifest.

        v1: get_manifest(skill_id, stage)
        v0: get_manifest(skill_id)
        """
        return self._call("skills.get_manifest", *args, **kwargs)

    def create(self, vendor_id: str, manifest: dict[str, Any]) -> dict[str, Any]:
        """
        Create a skill.

        Returns:
            ``skillId`` plus the ``location`` and ``etag`` headers

        """
        return self._call("skills.create", vendor_id, manifest)

    def update(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        """
        Update a skill manifest.

        v1: update(skill_id, stage, manifest)
        v0: update(skill_id, manifest)

        Returns:
            ``location`` and ``etag``

        """
        return self._call("skills.update", *args, **kwargs)

    def status(self, skill_id: str) -> dict[str, Any]:
        """Get the build status of a skill."""
        return self._call("skills.status", skill_id)

    def list(
        self,
        vendor_id: str,
        max_results: int | None = None,
        next_token: str | None = None,
    ) -> dict[str, Any]:
        """List the skills of a vendor, one page at a time."""
        return self._call("skills.list", vendor_id, max_results, next_token)

    def delete(self, skill_id: str) -> Any:
        """Delete a skill. Returns an empty result."""
        return self._call("skills.delete", skill_id)

    def wait_until_ready(
        self,
        skill_id: str,
        policy: RetryPolicy = BUILD_POLL_POLICY,
        rate_limit: RetryPolicy = RATE_LIMIT_POLICY,
    ) -> PollOutcome:
        """
        Poll the skill status until the last change finished building.

        Returns:
            PollOutcome; READY once the version's success status is reached

        """
        return poll_until(
            lambda: self.status(skill_id),
            self._profile.skill_build_target(),
            policy=policy,
            rate_limit=rate_limit,
        )


# =============================================================================
# Interaction Model Operations
# =============================================================================


class InteractionModelOperations(_Operations):
    """Interaction model per locale."""

    def get(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        """
        Get the interaction model for a locale.

        v1: get(skill_id, stage, locale)
        v0: get(skill_id, locale)
        """
        return self._call("interaction_model.get", *args, **kwargs)

    def get_etag(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        """
        Get the interaction model etag (HEAD request, no body).

        v1: get_etag(skill_id, stage, locale)
        v0: get_etag(skill_id, locale)
        """
        return self._call("interaction_model.get_etag", *args, **kwargs)

    def update(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        """
        Update the interaction model for a locale.

        v1: update(skill_id, stage, locale, interaction_model)
        v0: update(skill_id, locale, interaction_model)

        Returns:
            ``location`` and ``etag``

        """
        return self._call("interaction_model.update", *args, **kwargs)

    def get_status(self, skill_id: str, locale: str) -> dict[str, Any]:
        """Get the build status of the interaction model."""
        return self._call("interaction_model.get_status", skill_id, locale)

    def wait_until_built(
        self,
        skill_id: str,
        locale: str,
        policy: RetryPolicy = BUILD_POLL_POLICY,
        rate_limit: RetryPolicy = RATE_LIMIT_POLICY,
    ) -> PollOutcome:
        """Poll the model status until the build for ``locale`` finished."""
        return poll_until(
            lambda: self.get_status(skill_id, locale),
            self._profile.model_build_target(locale),
            policy=policy,
            rate_limit=rate_limit,
        )


# =============================================================================
# Account Linking Operations
# =============================================================================


class AccountLinkingOperations(_Operations):
    def update(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        """
        Create or update the account linking configuration.

        v1: update(skill_id, stage, account_linking_request)
        v0: update(skill_id, account_linking_request)
        """
        return self._call("account_linking.update", *args, **kwargs)

    def read_info(self, *args: Any, **kwargs: Any) -> dict[str, Any]:
        """
        Read the account linking configuration.

        v1: read_info(skill_id, stage)
        v0: read_info(skill_id)
        """
        return self._call("account_linking.read_info", *args, **kwargs)

    def delete(self, skill_id: str, stage: str) -> Any:
        """Delete the account linking configuration of a stage."""
        return self._call("account_linking.delete", skill_id, stage)


# =============================================================================
# Skill Enablement Operations
# =============================================================================


class SkillEnablementOperations(_Operations):
    def enable(self, skill_id: str, stage: str) -> dict[str, Any]:
        return self._call("skill_enablement.enable", skill_id, stage)

    def status(self, skill_id: str, stage: str) -> Any:
        return self._call("skill_enablement.status", skill_id, stage)

    def disable(self, skill_id: str, stage: str) -> Any:
        return self._call("skill_enablement.disable", skill_id, stage)


# =============================================================================
# Skill Certification Operations
# =============================================================================


class SkillCertificationOperations(_Operations):
    """Certification submission, status and withdrawal."""

    def submit(self, skill_id: str) -> dict[str, Any]:
        """Submit a skill for certification."""
        return self._call("skill_certification.submit", skill_id)

    def status(self, vendor_id: str, skill_id: str) -> dict[str, Any]:
        """List the skill's stages with their publication status."""
        return self._call("skill_certification.status", vendor_id, skill_id)

    def withdraw(self, skill_id: str, reason: str, message: str | None = None) -> dict[str, Any]:
        """Withdraw a skill from certification."""
        return self._call("skill_certification.withdraw", skill_id, reason, message)

    def wait_for_status(
        self,
        vendor_id: str,
        skill_id: str,
        expected: str = "CERTIFICATION",
        policy: RetryPolicy = BUILD_POLL_POLICY,
        rate_limit: RetryPolicy = RATE_LIMIT_POLICY,
    ) -> PollOutcome:
        """
        Poll the publication status until it equals ``expected``.

        Only available in v1.

        Raises:
            ValidationError: Under v0, where certification status is not available

        """
        target = self._profile.certification_target(expected)
        return poll_until(
            lambda: self.status(vendor_id, skill_id),
            target,
            policy=policy,
            rate_limit=rate_limit,
        )

    def withdraw_and_wait(
        self,
        skill_id: str,
        reason: str,
        message: str | None = None,
        policy: RetryPolicy = WITHDRAWAL_POLICY,
    ) -> PollOutcome:
        """
        Withdraw from certification, retrying until the withdrawal is accepted.

        A skill cannot be withdrawn until certification has picked it up,
        so failed attempts are retried with a long interval.
        """
        return retry_call(lambda: self.withdraw(skill_id, reason, message), policy, name="certification withdrawal")


# =============================================================================
# Skill Testing Operations
# =============================================================================


class SkillTestingOperations(_Operations):
    """Validation, invocation and simulation."""

    def validate(self, skill_id: str, stage: str, locales: builtins.list[str]) -> dict[str, Any]:
        """
        Start a validation run.

        Returns:
            Body with the validation ``id`` plus ``location``/``etag``

        """
        return self._call("skill_testing.validate", skill_id, stage, locales)

    def validation_status(self, skill_id: str, stage: str, validation_id: str) -> dict[str, Any]:
        return self._call("skill_testing.validation_status", skill_id, stage, validation_id)

    def invoke(self, skill_id: str, endpoint_region: str, skill_request: dict[str, Any]) -> dict[str, Any]:
        """Invoke the skill endpoint with a raw request envelope."""
        return self._call("skill_testing.invoke", skill_id, endpoint_region, skill_request)

    def simulate(self, skill_id: str, content: str, locale: str) -> dict[str, Any]:
        """Simulate an utterance against the skill."""
        return self._call("skill_testing.simulate", skill_id, content, locale)

    def simulation_status(self, skill_id: str, request_id: str) -> dict[str, Any]:
        return self._call("skill_testing.simulation_status", skill_id, request_id)

    def wait_for_validation(
        self,
        skill_id: str,
        stage: str,
        validation_id: str,
        policy: RetryPolicy = BUILD_POLL_POLICY,
        rate_limit: RetryPolicy = RATE_LIMIT_POLICY,
    ) -> PollOutcome:
        return poll_until(
            lambda: self.validation_status(skill_id, stage, validation_id),
            self._profile.validation_target(),
            policy=policy,
            rate_limit=rate_limit,
        )

    def wait_for_simulation(
        self,
        skill_id: str,
        request_id: str,
        policy: RetryPolicy = BUILD_POLL_POLICY,
        rate_limit: RetryPolicy = RATE_LIMIT_POLICY,
    ) -> PollOutcome:
        return poll_until(
            lambda: self.simulation_status(skill_id, request_id),
            self._profile.simulation_target(),
            policy=policy,
            rate_limit=rate_limit,
        )


# =============================================================================
# Intent Request History
# =============================================================================


class IntentRequestOperations(_Operations):
    def list(self, params: Mapping[str, Any]) -> dict[str, Any]:
        """
        List the intent request history of a skill.

        Args:
            params: ``skillId`` (or ``skill_id``) plus any query filters,
                e.g. ``{"skillId": ..., "locale": "en-US", "maxResults": 10}``

        """
        filters = dict(params)
        skill_id = filters.pop("skillId", None)
        if "skill_id" in filters:
            skill_id = filters.pop("skill_id")
        return self._call("intent_requests.list", skill_id, filters)


# =============================================================================
# Custom Operations
# =============================================================================


class CustomOperations(_Operations):
    """Raw access to any path, with the same normalization as named operations."""

    def head(self, path: str) -> dict[str, Any]:
        return self._client.head(path)

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self._client.get(path, params)

    def post(self, path: str, data: Any = None) -> dict[str, Any]:
        return self._client.post(path, data)

    def put(self, path: str, data: Any = None) -> dict[str, Any]:
        return self._client.put(path, data)

    def delete(self, path: str) -> Any:
        return self._client.delete(path)
