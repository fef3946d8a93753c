"""Unit tests for the transport adapter and response normalization."""

import http.client
import urllib.error

import pytest

from smapi_cli.core.client import BASE_URLS, TOKEN_URL, APIClient, APIError, ValidationError, resolve_base_url
from smapi_cli.core.normalize import normalize
from smapi_cli.core.types import RawResponse
from smapi_cli.sdk import SMAPIClient

# =============================================================================
# Configuration
# =============================================================================


class TestRegions:
    def test_default_region_is_na(self):
        assert APIClient().base_url == "https://api.amazonalexa.com"

    @pytest.mark.parametrize("region", ["NA", "EU", "FE"])
    def test_known_regions(self, region):
        assert APIClient(region=region).base_url == BASE_URLS[region]

    @pytest.mark.parametrize("region", ["XX", "eu", "", None])
    def test_unknown_region_falls_back_to_na(self, region):
        assert resolve_base_url(region) == BASE_URLS["NA"]

    def test_base_url_override(self, transport):
        client = APIClient(base_url="http://localhost:8080/")
        client.get("/v1/vendors")
        assert transport.last.url == "http://localhost:8080/v1/vendors"


class TestConfigurationErrors:
    @pytest.mark.parametrize("token", ["", None, 42])
    def test_invalid_token_rejected(self, token):
        with pytest.raises(ValidationError):
            APIClient().set_token(token)

    @pytest.mark.parametrize("url", ["", None, ["http://x"]])
    def test_invalid_base_url_rejected(self, url):
        with pytest.raises(ValidationError):
            APIClient().set_base_url(url)

    def test_invalid_token_at_construction(self):
        with pytest.raises(ValidationError):
            APIClient(access_token="")


# =============================================================================
# Headers and credential
# =============================================================================


class TestHeaders:
    def test_default_json_headers(self, transport):
        APIClient().get("/v1/vendors")
        headers = transport.last.headers
        assert headers["content-type"] == "application/json"
        assert headers["accept"] == "application/json"
        assert "authorization" not in headers

    def test_token_sent_after_set(self, transport):
        client = APIClient()
        client.set_token("Atza|first")
        client.get("/v1/vendors")
        assert transport.last.headers["authorization"] == "Atza|first"

        client.set_token("Atza|second")
        client.get("/v1/vendors")
        assert transport.last.headers["authorization"] == "Atza|second"

    def test_token_is_per_instance(self, transport):
        first = APIClient(access_token="Atza|one")
        second = APIClient()
        second.get("/v1/vendors")
        assert "authorization" not in transport.last.headers
        first.get("/v1/vendors")
        assert transport.last.headers["authorization"] == "Atza|one"


# =============================================================================
# Response normalization through the verbs
# =============================================================================


class TestVerbs:
    def test_head_never_merges_body(self, transport):
        transport.reply(body={"unexpected": True}, headers={"ETag": "abc", "Location": "/v1/x"})
        result = APIClient().head("/v1/x")
        assert result == {"location": "/v1/x", "etag": "abc"}

    def test_head_missing_headers_are_none(self, transport):
        transport.reply()
        assert APIClient().head("/v1/x") == {"location": None, "etag": None}

    def test_put_returns_headers_only(self, transport):
        transport.reply(status=202, body={"ignored": 1}, headers={"Location": "/v1/skills/s/status", "ETag": "e1"})
        result = APIClient().put("/v1/skills/s/stages/development/manifest", {"manifest": {}})
        assert result == {"location": "/v1/skills/s/status", "etag": "e1"}
        assert transport.last.method == "PUT"
        assert transport.last.body == {"manifest": {}}

    def test_put_without_data_sends_empty_object(self, transport):
        APIClient().put("/v1/skills/s/stages/development/enablement")
        assert transport.last.body == {}

    def test_post_merges_body_over_headers(self, transport):
        transport.reply(status=202, body={"skillId": "amzn1.ask.skill.1", "etag": "from-body"}, headers={"Location": "/loc", "ETag": "from-header"})
        result = APIClient().post("/v1/skills", {"vendorId": "V"})
        assert result == {"location": "/loc", "etag": "from-body", "skillId": "amzn1.ask.skill.1"}

    def test_post_without_body_keeps_header_fields(self, transport):
        transport.reply(status=202, headers={"Location": "/v1/skills/s/status"})
        assert APIClient().post("/v1/skills/s/submit") == {"location": "/v1/skills/s/status", "etag": None}
        assert transport.last.body == {}

    def test_get_returns_body(self, transport):
        transport.reply(body={"vendors": [{"id": "V1"}]}, headers={"ETag": "ignored"})
        assert APIClient().get("/v1/vendors") == {"vendors": [{"id": "V1"}]}

    def test_get_empty_body(self, transport):
        transport.reply(status=204)
        assert APIClient().get("/v1/skills/s/stages/development/enablement") == {}

    def test_delete_empty_body(self, transport):
        transport.reply(status=204)
        assert APIClient().delete("/v1/skills/s") == {}
        assert transport.last.method == "DELETE"
        assert transport.last.body is None

    def test_get_query_drops_none(self, transport):
        APIClient().get("/v1/skills", {"vendorId": "V", "maxResults": 10, "nextToken": None})
        assert transport.last.url == "https://api.amazonalexa.com/v1/skills?vendorId=V&maxResults=10"

    def test_get_query_appends_to_existing_query(self, transport):
        APIClient().get("/v1/skills/s/status?resource=interactionModel", {"locale": "en-US"})
        assert transport.last.url.endswith("/v1/skills/s/status?resource=interactionModel&locale=en-US")

    def test_request_dispatches_by_method(self, transport):
        transport.reply(headers={"ETag": "x"})
        assert APIClient().request("head", "/v1/x") == {"location": None, "etag": "x"}
        assert transport.last.method == "HEAD"

    def test_request_rejects_unknown_method(self):
        with pytest.raises(ValidationError):
            APIClient().request("PATCH", "/v1/x")


# =============================================================================
# Errors
# =============================================================================


class TestErrors:
    def test_http_error_becomes_api_error(self, transport):
        transport.fail(404, {"message": "Skill not found"}, reason="Not Found")
        with pytest.raises(APIError) as exc_info:
            APIClient().get("/v1/skills/missing/status")
        error = exc_info.value
        assert error.status == 404
        assert error.status_text == "Not Found"
        assert error.data == {"message": "Skill not found"}
        assert error.message == "Skill not found"
        assert error.summary() == {"status": 404, "statusText": "Not Found", "data": {"message": "Skill not found"}}

    def test_rate_limit_flag(self, transport):
        transport.fail(429, {"message": "Rate exceeded"}, reason="Too Many Requests")
        with pytest.raises(APIError) as exc_info:
            APIClient().get("/v1/vendors")
        assert exc_info.value.is_rate_limited

    def test_non_json_error_body(self, transport):
        transport.fail(502, b"<html>bad gateway</html>", reason="Bad Gateway")
        with pytest.raises(APIError) as exc_info:
            APIClient().get("/v1/vendors")
        assert exc_info.value.status == 502
        assert exc_info.value.data == "<html>bad gateway</html>"

    def test_connection_error(self, transport):
        transport.raise_error(urllib.error.URLError("name resolution failed"))
        with pytest.raises(APIError) as exc_info:
            APIClient().get("/v1/vendors")
        assert exc_info.value.status == 0
        assert "name resolution failed" in exc_info.value.message

    @pytest.mark.parametrize(
        "failure",
        [
            http.client.RemoteDisconnected("Remote end closed connection without response"),
            http.client.IncompleteRead(b"{\"vend", 20),
            ConnectionResetError("connection reset by peer"),
        ],
    )
    def test_dropped_connection(self, transport, failure):
        transport.raise_error(failure)
        with pytest.raises(APIError) as exc_info:
            APIClient().get("/v1/vendors")
        assert exc_info.value.status == 0
        assert exc_info.value.status_text == "Connection error"

    def test_dropped_connection_during_poll(self, transport, sleeps):
        transport.raise_error(http.client.RemoteDisconnected("closed"))
        outcome = SMAPIClient().skills.wait_until_ready("S")
        assert outcome.is_failed
        assert outcome.error.status == 0

    def test_invalid_utf8_success_body(self, transport):
        transport.reply(body=b"\xff\xfe\xfa")
        assert APIClient().get("/v1/vendors") == "\ufffd" * 3

    def test_invalid_utf8_error_body(self, transport):
        transport.fail(500, b"\xff\xfe\xfa", reason="Internal Server Error")
        with pytest.raises(APIError) as exc_info:
            APIClient().get("/v1/vendors")
        assert exc_info.value.status == 500
        assert exc_info.value.data == "\ufffd" * 3

    def test_to_dict(self):
        error = APIError("Forbidden", status=403, status_text="Forbidden", data={"message": "Forbidden"})
        assert error.to_dict() == {
            "error": "Forbidden",
            "status": 403,
            "statusText": "Forbidden",
            "data": {"message": "Forbidden"},
        }


# =============================================================================
# Token refresh
# =============================================================================


class TestTokenRefresh:
    def test_refresh_stores_token(self, transport):
        payload = {"access_token": "Atza|new", "refresh_token": "Atzr|r", "token_type": "bearer", "expires_in": 3600}
        transport.reply(body=payload)
        client = APIClient(region="EU")

        result = client.refresh_token("Atzr|r", "client-id", "client-secret")

        assert result == payload
        sent = transport.last
        assert sent.url == TOKEN_URL
        assert sent.method == "POST"
        assert "authorization" not in sent.headers
        assert sent.body == {
            "grant_type": "refresh_token",
            "refresh_token": "Atzr|r",
            "client_id": "client-id",
            "client_secret": "client-secret",
        }

        client.get("/v1/vendors")
        assert transport.last.headers["authorization"] == "Atza|new"
        assert transport.last.url.startswith(BASE_URLS["EU"])

    def test_refresh_overwrites_previous_token(self, transport):
        transport.reply(body={"access_token": "Atza|fresh"})
        client = APIClient(access_token="Atza|stale")
        client.refresh_token("r", "c", "s")
        assert client.access_token == "Atza|fresh"

    def test_refresh_without_access_token(self, transport):
        transport.reply(body={"error": "invalid_grant"})
        client = APIClient(access_token="Atza|kept")
        with pytest.raises(APIError):
            client.refresh_token("r", "c", "s")
        assert client.access_token == "Atza|kept"

    def test_refresh_failure(self, transport):
        transport.fail(400, {"error": "invalid_grant", "error_description": "bad"}, reason="Bad Request")
        with pytest.raises(APIError) as exc_info:
            APIClient().refresh_token("r", "c", "s")
        assert exc_info.value.message == "invalid_grant"


# =============================================================================
# normalize()
# =============================================================================


class TestNormalize:
    def test_header_lookup_is_case_insensitive(self):
        response = RawResponse(status=200, headers={"etag": "x", "location": "/l"})
        assert normalize("put", response) == {"location": "/l", "etag": "x"}

    def test_post_with_list_body_is_not_merged(self):
        response = RawResponse(status=200, headers={}, body=[1, 2])
        assert normalize("POST", response) == {"location": None, "etag": None}

    def test_get_returns_non_dict_body_unchanged(self):
        assert normalize("GET", RawResponse(status=200, body=[1, 2])) == [1, 2]
