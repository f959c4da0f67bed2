"""
Tests for the credential provider: token acquisition, expiry and caching.

Run with: pytest tests/test_credential_service.py -v
"""
import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest

from src.exceptions import CredentialError, UpstreamTimeoutError
from src.services import CredentialService, GraphConfig
from src.services.credential_service import decode_token_claims, scope_to_resource

from conftest import make_token

GRAPH_SCOPE = "https://graph.microsoft.com/.default"


class TestAcquireToken:
    """Client credentials grant against the tenant token endpoint."""

    @pytest.mark.asyncio
    async def test_returns_non_empty_token(self, credential_service, fake_graph):
        credential = await credential_service.acquire_token(GRAPH_SCOPE)

        assert credential.token, "Token should not be empty"
        assert credential.scope == GRAPH_SCOPE
        assert len(fake_graph.requests_to("oauth2")) == 1

    @pytest.mark.asyncio
    async def test_posts_client_credentials_form(self, credential_service, fake_graph):
        await credential_service.acquire_token(GRAPH_SCOPE)

        request = fake_graph.requests_to("oauth2")[0]
        assert request.method == "POST"
        assert str(request.url) == "https://login.microsoftonline.com/contoso-tenant/oauth2/v2.0/token"
        form = dict(httpx.QueryParams(request.content.decode()))
        assert form["grant_type"] == "client_credentials"
        assert form["client_id"] == "contoso-client"
        assert form["client_secret"] == "contoso-secret"
        assert form["scope"] == GRAPH_SCOPE

    @pytest.mark.asyncio
    async def test_expiry_comes_from_exp_claim(self, credential_service, fake_graph):
        token = make_token(expires_in=1200)
        fake_graph.token_factory = lambda: {"access_token": token, "expires_in": 3599}

        credential = await credential_service.acquire_token(GRAPH_SCOPE)

        exp = decode_token_claims(token)["exp"]
        assert credential.expires_at == datetime.fromtimestamp(exp, tz=timezone.utc)
        assert credential.claims["roles"] == ["Calls.AccessMedia.All", "CallRecords.Read.All"]

    @pytest.mark.asyncio
    async def test_opaque_token_falls_back_to_expires_in(self, credential_service, fake_graph):
        fake_graph.token_factory = lambda: {"access_token": "opaque-token", "expires_in": 600}

        before = datetime.now(timezone.utc)
        credential = await credential_service.acquire_token(GRAPH_SCOPE)

        assert credential.claims == {}
        assert before + timedelta(seconds=590) <= credential.expires_at <= before + timedelta(seconds=610)

    @pytest.mark.asyncio
    async def test_error_status_raises_credential_error(self, credential_service, fake_graph):
        fake_graph.token_status = 401

        with pytest.raises(CredentialError) as exc_info:
            await credential_service.acquire_token(GRAPH_SCOPE)

        assert exc_info.value.details["upstream_status"] == 401

    @pytest.mark.asyncio
    async def test_missing_access_token_raises_credential_error(self, credential_service, fake_graph):
        fake_graph.token_factory = lambda: {"token_type": "Bearer"}

        with pytest.raises(CredentialError):
            await credential_service.acquire_token(GRAPH_SCOPE)

    @pytest.mark.asyncio
    async def test_unreachable_endpoint_raises_credential_error(self, credential_service, fake_graph):
        fake_graph.raise_for["oauth2"] = httpx.ConnectError("connection refused")

        with pytest.raises(CredentialError):
            await credential_service.acquire_token(GRAPH_SCOPE)

    @pytest.mark.asyncio
    async def test_timeout_raises_upstream_timeout(self, credential_service, fake_graph):
        fake_graph.raise_for["oauth2"] = httpx.ReadTimeout("timed out")

        with pytest.raises(UpstreamTimeoutError):
            await credential_service.acquire_token(GRAPH_SCOPE)

    @pytest.mark.asyncio
    async def test_already_expired_token_is_rejected(self, credential_service, fake_graph):
        fake_graph.token_factory = lambda: {"access_token": make_token(expires_in=-30)}

        with pytest.raises(CredentialError):
            await credential_service.acquire_token(GRAPH_SCOPE)


class TestManagedIdentity:
    """Managed identity requests when no client secret is configured."""

    @pytest.mark.asyncio
    async def test_uses_imds_with_user_assigned_client_id(self, fake_graph):
        config = GraphConfig(managed_identity_client_id="mi-client-id")
        service = CredentialService(config, transport=fake_graph.transport)

        await service.acquire_token(GRAPH_SCOPE)

        request = fake_graph.requests_to("oauth2")[0]
        assert request.method == "GET"
        assert request.url.host == "169.254.169.254"
        assert request.headers["Metadata"] == "true"
        assert request.url.params["resource"] == "https://graph.microsoft.com"
        assert request.url.params["client_id"] == "mi-client-id"
        assert request.url.params["api-version"] == "2018-02-01"

    @pytest.mark.asyncio
    async def test_uses_app_service_identity_endpoint(self, fake_graph):
        config = GraphConfig(
            identity_endpoint="http://localhost:42356/msi/oauth2/token",
            identity_header="identity-header-secret",
        )
        service = CredentialService(config, transport=fake_graph.transport)
        fake_graph.token_factory = lambda: {"access_token": "opaque", "expires_on": "4102444800"}

        credential = await service.acquire_token(GRAPH_SCOPE)

        request = fake_graph.requests_to("oauth2")[0]
        assert request.headers["X-IDENTITY-HEADER"] == "identity-header-secret"
        assert request.url.params["api-version"] == "2019-08-01"
        assert credential.expires_at == datetime(2100, 1, 1, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_identity_endpoint_without_header_is_misconfigured(self, fake_graph):
        config = GraphConfig(identity_endpoint="http://localhost:42356/msi/oauth2/token")
        service = CredentialService(config, transport=fake_graph.transport)

        with pytest.raises(CredentialError):
            await service.acquire_token(GRAPH_SCOPE)
        assert fake_graph.requests == [], "No request should be sent with a broken configuration"

    def test_scope_to_resource(self):
        assert scope_to_resource(GRAPH_SCOPE) == "https://graph.microsoft.com"
        assert scope_to_resource("api://custom") == "api://custom"


class TestTokenCache:
    """Tokens are reused per scope until shortly before expiry."""

    @pytest.mark.asyncio
    async def test_cached_token_is_reused(self, credential_service, fake_graph):
        first = await credential_service.acquire_token(GRAPH_SCOPE)
        second = await credential_service.acquire_token(GRAPH_SCOPE)

        assert first.token == second.token
        assert len(fake_graph.requests_to("oauth2")) == 1

    @pytest.mark.asyncio
    async def test_token_near_expiry_is_refreshed(self, credential_service, fake_graph):
        fake_graph.token_factory = lambda: {"access_token": make_token(expires_in=30)}
        first = await credential_service.acquire_token(GRAPH_SCOPE)

        fake_graph.token_factory = lambda: {"access_token": make_token(expires_in=3600)}
        second = await credential_service.acquire_token(GRAPH_SCOPE)

        assert first.token != second.token, "A token inside the expiry buffer must not be reused"
        assert len(fake_graph.requests_to("oauth2")) == 2

    @pytest.mark.asyncio
    async def test_scopes_are_cached_separately(self, credential_service, fake_graph):
        await credential_service.acquire_token(GRAPH_SCOPE)
        await credential_service.acquire_token("https://api.botframework.com/.default")

        assert len(fake_graph.requests_to("oauth2")) == 2

    @pytest.mark.asyncio
    async def test_concurrent_refreshes_share_one_request(self, credential_service, fake_graph):
        fake_graph.token_delay = 0.05

        credentials = await asyncio.gather(
            *(credential_service.acquire_token(GRAPH_SCOPE) for _ in range(5))
        )

        assert len({c.token for c in credentials}) == 1
        assert len(fake_graph.requests_to("oauth2")) == 1

    @pytest.mark.asyncio
    async def test_invalidate_forces_new_request(self, credential_service, fake_graph):
        await credential_service.acquire_token(GRAPH_SCOPE)
        credential_service.invalidate(GRAPH_SCOPE)
        await credential_service.acquire_token(GRAPH_SCOPE)

        assert len(fake_graph.requests_to("oauth2")) == 2

    @pytest.mark.asyncio
    async def test_cache_disabled_requests_every_time(self, graph_config, fake_graph):
        graph_config.token_cache_enabled = False
        service = CredentialService(graph_config, transport=fake_graph.transport)

        await service.acquire_token(GRAPH_SCOPE)
        await service.acquire_token(GRAPH_SCOPE)

        assert len(fake_graph.requests_to("oauth2")) == 2

    @pytest.mark.asyncio
    async def test_failed_refresh_is_not_cached(self, credential_service, fake_graph):
        fake_graph.token_status = 500
        with pytest.raises(CredentialError):
            await credential_service.acquire_token(GRAPH_SCOPE)

        fake_graph.token_status = 200
        credential = await credential_service.acquire_token(GRAPH_SCOPE)

        assert credential.token


class TestUnexpectedTokenResponses:
    """Odd identity responses surface as CredentialError or fall back cleanly."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [["not", "a", "dict"], "just a string", 42])
    async def test_non_object_body_raises_credential_error(self, credential_service, fake_graph, body):
        fake_graph.token_factory = lambda: body

        with pytest.raises(CredentialError):
            await credential_service.acquire_token(GRAPH_SCOPE)

    @pytest.mark.asyncio
    async def test_non_string_access_token_raises_credential_error(self, credential_service, fake_graph):
        fake_graph.token_factory = lambda: {"access_token": 12345}

        with pytest.raises(CredentialError):
            await credential_service.acquire_token(GRAPH_SCOPE)

    @pytest.mark.asyncio
    async def test_non_numeric_exp_claim_falls_back_to_expires_in(self, credential_service, fake_graph):
        fake_graph.token_factory = lambda: {"access_token": make_token(exp="soon"), "expires_in": 900}

        before = datetime.now(timezone.utc)
        credential = await credential_service.acquire_token(GRAPH_SCOPE)

        assert before + timedelta(seconds=890) <= credential.expires_at <= before + timedelta(seconds=910)
