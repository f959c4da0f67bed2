"""
Pytest fixtures for the call media intercept tests.

Outbound HTTP (identity, Graph, transcription) is served by an in-process
fake behind httpx.MockTransport; inbound HTTP goes through ASGITransport.
"""
import asyncio
import itertools
import json
import time
from typing import Callable, Optional

import httpx
import jwt
import pytest
import pytest_asyncio

from app import app
from src.dependencies import (
    get_credential_service,
    get_dispatcher,
    get_notification_service,
    get_subscription_service,
)
from src.services import (
    CallMediaService,
    CredentialService,
    GraphConfig,
    NotificationService,
    SpeechService,
    SubscriptionRegistry,
    SubscriptionService,
    TaskDispatcher,
)

CLIENT_STATE = "test-client-state"
TRANSCRIPTION_URL = "https://speech.test/transcribe"
SIGNING_KEY = "test-signing-key-that-is-long-enough-for-hs256"

_token_ids = itertools.count(1)


def make_token(expires_in: int = 3600, **claims) -> str:
    """Build a JWT shaped like a Graph app-only token."""
    payload = {
        "aud": "https://graph.microsoft.com",
        "appid": "00000000-0000-0000-0000-000000000001",
        "roles": ["Calls.AccessMedia.All", "CallRecords.Read.All"],
        "exp": int(time.time()) + expires_in,
        "jti": f"token-{next(_token_ids)}",
    }
    payload.update(claims)
    return jwt.encode(payload, SIGNING_KEY, algorithm="HS256")


class FakeGraph:
    """Routes outbound requests to canned responses and records them."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.token_factory: Callable[[], dict] = lambda: {
            "access_token": make_token(),
            "token_type": "Bearer",
            "expires_in": 3599,
        }
        self.token_status = 200
        self.token_delay = 0.0
        self.subscription_status = 201
        self.subscription_body: Optional[dict] = None
        self.media_status = 200
        self.media_body: object = {"mediaStreams": [{"type": "audio", "direction": "sendReceive"}]}
        self.media_gate: Optional[asyncio.Event] = None
        self.transcription_status = 200
        self.transcription_body: dict = {"text": "hello from the call"}
        self.raise_for: dict[str, Exception] = {}

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if fragment in str(r.url)]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)

        for fragment, exc in self.raise_for.items():
            if fragment in url:
                raise exc

        if "oauth2" in url:
            if self.token_delay:
                await asyncio.sleep(self.token_delay)
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"error": "invalid_client"})
            return httpx.Response(200, json=self.token_factory())

        if url.endswith("/subscriptions") and request.method == "POST":
            if self.subscription_status >= 300:
                return httpx.Response(
                    self.subscription_status,
                    json={"error": {"code": "ValidationError", "message": "Subscription validation request failed."}},
                )
            sent = json.loads(request.content)
            body = self.subscription_body or {
                "id": "7f105c7d-2dc5-4530-97cd-4e7ae6534c07",
                "resource": sent["resource"],
                "changeType": sent["changeType"],
                "notificationUrl": sent["notificationUrl"],
                "expirationDateTime": sent["expirationDateTime"],
                "clientState": sent["clientState"],
            }
            return httpx.Response(self.subscription_status, json=body)

        if "/communications/calls/" in url:
            if self.media_gate is not None:
                await self.media_gate.wait()
            if isinstance(self.media_body, (dict, list)):
                return httpx.Response(self.media_status, json=self.media_body)
            return httpx.Response(self.media_status, text=str(self.media_body))

        if url.startswith(TRANSCRIPTION_URL):
            return httpx.Response(self.transcription_status, json=self.transcription_body)

        return httpx.Response(404, text=f"no route for {url}")


@pytest.fixture
def fake_graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def graph_config() -> GraphConfig:
    return GraphConfig(
        tenant_id="contoso-tenant",
        client_id="contoso-client",
        client_secret="contoso-secret",
        notification_url="https://intercept.example.com/api/notifications",
        client_state=CLIENT_STATE,
        transcription_endpoint=TRANSCRIPTION_URL,
        http_timeout=2.0,
    )


@pytest.fixture
def credential_service(graph_config: GraphConfig, fake_graph: FakeGraph) -> CredentialService:
    return CredentialService(graph_config, transport=fake_graph.transport)


@pytest.fixture
def registry() -> SubscriptionRegistry:
    return SubscriptionRegistry()


@pytest.fixture
def subscription_service(credential_service, registry, graph_config, fake_graph) -> SubscriptionService:
    return SubscriptionService(
        credential_service,
        registry=registry,
        config=graph_config,
        transport=fake_graph.transport,
    )


@pytest.fixture
def speech_service(graph_config: GraphConfig, fake_graph: FakeGraph) -> SpeechService:
    return SpeechService(graph_config, transport=fake_graph.transport)


@pytest.fixture
def call_media_service(credential_service, speech_service, graph_config, fake_graph) -> CallMediaService:
    return CallMediaService(
        credential_service,
        speech_service,
        config=graph_config,
        transport=fake_graph.transport,
    )


@pytest.fixture
def notification_service(call_media_service, registry, graph_config) -> NotificationService:
    return NotificationService(call_media_service, registry, config=graph_config)


@pytest.fixture
def dispatcher() -> TaskDispatcher:
    return TaskDispatcher()


@pytest_asyncio.fixture
async def client(
    credential_service,
    subscription_service,
    notification_service,
    dispatcher,
):
    """Async HTTP client wired to the app with faked outbound services."""
    app.dependency_overrides[get_credential_service] = lambda: credential_service
    app.dependency_overrides[get_subscription_service] = lambda: subscription_service
    app.dependency_overrides[get_notification_service] = lambda: notification_service
    app.dependency_overrides[get_dispatcher] = lambda: dispatcher

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client

    await dispatcher.shutdown(timeout=5.0)
    app.dependency_overrides.clear()
