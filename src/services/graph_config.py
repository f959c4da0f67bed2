"""
Microsoft Graph / identity configuration shared by the call-intercept services.
"""
import os
import logging
from dataclasses import dataclass

from src.config import (
    DEFAULT_GRAPH_BASE_URL,
    DEFAULT_GRAPH_SCOPE,
    MAX_SUBSCRIPTION_EXPIRATION_HOURS,
    env_bool,
)

logger = logging.getLogger(__name__)


@dataclass
class GraphConfig:
    """Graph, identity and transcription configuration from environment variables."""
    tenant_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    managed_identity_client_id: str = ""
    identity_endpoint: str = ""
    identity_header: str = ""
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    scope: str = DEFAULT_GRAPH_SCOPE
    notification_url: str = ""
    client_state: str = ""
    subscription_expiration_hours: int = MAX_SUBSCRIPTION_EXPIRATION_HOURS
    require_client_state: bool = True
    token_cache_enabled: bool = True
    http_timeout: float = 10.0
    transcription_endpoint: str = ""
    transcription_api_key: str = ""
    transcription_language: str = "en-US"

    @classmethod
    def from_env(cls) -> "GraphConfig":
        """Load configuration from environment variables."""
        config = cls(
            tenant_id=os.environ.get("AZURE_TENANT_ID", ""),
            client_id=os.environ.get("AZURE_CLIENT_ID", ""),
            client_secret=os.environ.get("AZURE_CLIENT_SECRET", ""),
            managed_identity_client_id=os.environ.get("USER_ASSIGNED_CLIENT_ID", ""),
            identity_endpoint=os.environ.get("IDENTITY_ENDPOINT", ""),
            identity_header=os.environ.get("IDENTITY_HEADER", ""),
            graph_base_url=os.environ.get("GRAPH_BASE_URL", DEFAULT_GRAPH_BASE_URL),
            scope=os.environ.get("GRAPH_SCOPE", DEFAULT_GRAPH_SCOPE),
            notification_url=os.environ.get("NOTIFICATION_URL", ""),
            client_state=os.environ.get("SUBSCRIPTION_CLIENT_STATE", ""),
            subscription_expiration_hours=int(
                os.environ.get("SUBSCRIPTION_EXPIRATION_HOURS", str(MAX_SUBSCRIPTION_EXPIRATION_HOURS))
            ),
            require_client_state=env_bool("REQUIRE_CLIENT_STATE", True),
            token_cache_enabled=env_bool("TOKEN_CACHE_ENABLED", True),
            http_timeout=float(os.environ.get("HTTP_TIMEOUT_SECONDS", "10")),
            transcription_endpoint=os.environ.get("TRANSCRIPTION_ENDPOINT", ""),
            transcription_api_key=os.environ.get("TRANSCRIPTION_API_KEY", ""),
            transcription_language=os.environ.get("TRANSCRIPTION_LANGUAGE", "en-US"),
        )

        if not config.uses_client_secret and not config.managed_identity_client_id:
            logger.warning(
                "Identity configuration incomplete. Set AZURE_TENANT_ID, AZURE_CLIENT_ID, "
                "AZURE_CLIENT_SECRET or USER_ASSIGNED_CLIENT_ID"
            )
        if not config.notification_url:
            logger.warning("NOTIFICATION_URL not set; subscriptions cannot be created")

        return config

    @property
    def uses_client_secret(self) -> bool:
        """True when the app registration (client credentials) grant is configured."""
        return bool(self.tenant_id and self.client_id and self.client_secret)

    @property
    def graph_url(self) -> str:
        return self.graph_base_url.rstrip("/")
