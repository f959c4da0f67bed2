"""
Credential Provider.

Obtains bearer tokens for the service identity, either through the app
registration (client credentials grant) or through a managed identity.
Tokens are cached per scope until shortly before they expire; concurrent
refreshes for the same scope share a single outbound request.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import httpx
import jwt
from jwt.exceptions import PyJWTError

from src.config import (
    AAD_TOKEN_URL_TEMPLATE,
    DEFAULT_TOKEN_LIFETIME_SECONDS,
    IMDS_TOKEN_URL,
    TOKEN_EXPIRY_BUFFER_SECONDS,
)
from src.exceptions import CredentialError, UpstreamTimeoutError
from src.models import Credential
from src.services.graph_config import GraphConfig

logger = logging.getLogger(__name__)

# Managed identity endpoints take a resource, not a v2 scope
DEFAULT_SCOPE_SUFFIX = "/.default"


def decode_token_claims(token: str) -> Dict[str, Any]:
    """Read a JWT's claims without verifying it. Opaque tokens yield {}."""
    try:
        return jwt.decode(token, options={"verify_signature": False})
    except PyJWTError:
        return {}


def scope_to_resource(scope: str) -> str:
    if scope.endswith(DEFAULT_SCOPE_SUFFIX):
        return scope[: -len(DEFAULT_SCOPE_SUFFIX)]
    return scope


class CredentialService:
    """
    Acquires and caches bearer credentials for outbound Graph calls.

    Supports:
    - Client credentials grant (AZURE_TENANT_ID / AZURE_CLIENT_ID / AZURE_CLIENT_SECRET)
    - Managed identity (App Service IDENTITY_ENDPOINT, or Azure IMDS)
    """

    def __init__(
        self,
        config: Optional[GraphConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or GraphConfig.from_env()
        self._transport = transport
        self._cache: Dict[str, Credential] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def acquire_token(self, scope: Optional[str] = None) -> Credential:
        """
        Get a bearer credential for `scope`.

        Returns a cached credential while it is still valid (with a 60s
        buffer). Raises CredentialError when no token can be issued and
        UpstreamTimeoutError when the identity endpoint does not answer in time.
        """
        scope = scope or self.config.scope

        if not self.config.token_cache_enabled:
            return await self._request_token(scope)

        cached = self._cached(scope)
        if cached:
            return cached

        lock = self._locks.setdefault(scope, asyncio.Lock())
        async with lock:
            # Another waiter may have refreshed while we were queued
            cached = self._cached(scope)
            if cached:
                return cached

            credential = await self._request_token(scope)
            self._cache[scope] = credential
            return credential

    def invalidate(self, scope: Optional[str] = None) -> None:
        """Drop the cached credential for `scope`, or all of them."""
        if scope is None:
            self._cache.clear()
        else:
            self._cache.pop(scope, None)

    def _cached(self, scope: str) -> Optional[Credential]:
        credential = self._cache.get(scope)
        if credential and not credential.is_expired(TOKEN_EXPIRY_BUFFER_SECONDS):
            return credential
        return None

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=self.config.http_timeout)

    def _build_request(self, scope: str) -> Dict[str, Any]:
        config = self.config

        if config.uses_client_secret:
            return {
                "method": "POST",
                "url": AAD_TOKEN_URL_TEMPLATE.format(tenant_id=config.tenant_id),
                "data": {
                    "grant_type": "client_credentials",
                    "client_id": config.client_id,
                    "client_secret": config.client_secret,
                    "scope": scope,
                },
            }

        if config.client_secret and not (config.tenant_id and config.client_id):
            raise CredentialError(
                "Client secret configured without AZURE_TENANT_ID and AZURE_CLIENT_ID"
            )

        params = {"resource": scope_to_resource(scope)}
        if config.managed_identity_client_id:
            params["client_id"] = config.managed_identity_client_id

        if config.identity_endpoint:
            if not config.identity_header:
                raise CredentialError("IDENTITY_ENDPOINT is set but IDENTITY_HEADER is missing")
            params["api-version"] = "2019-08-01"
            return {
                "method": "GET",
                "url": config.identity_endpoint,
                "params": params,
                "headers": {"X-IDENTITY-HEADER": config.identity_header},
            }

        params["api-version"] = "2018-02-01"
        return {
            "method": "GET",
            "url": IMDS_TOKEN_URL,
            "params": params,
            "headers": {"Metadata": "true"},
        }

    async def _request_token(self, scope: str) -> Credential:
        request = self._build_request(scope)
        url = request["url"]

        try:
            async with self._client() as client:
                response = await client.request(**request)
        except httpx.TimeoutException as e:
            logger.error(f"Timed out requesting token from {url}: {e}")
            raise UpstreamTimeoutError("identity endpoint", self.config.http_timeout)
        except httpx.HTTPError as e:
            logger.error(f"Identity endpoint unreachable ({url}): {e}")
            raise CredentialError(f"Identity endpoint unreachable: {e}")

        if response.status_code != 200:
            logger.error(f"Failed to get access token: {response.status_code} - {response.text}")
            raise CredentialError(
                f"Failed to acquire access token ({response.status_code})",
                {"upstream_status": response.status_code, "upstream_body": response.text},
            )

        try:
            data = response.json()
        except ValueError:
            raise CredentialError("Identity endpoint returned a non-JSON body")

        if not isinstance(data, dict):
            raise CredentialError("Identity endpoint returned an unexpected JSON body")

        token = data.get("access_token")
        if not token or not isinstance(token, str):
            raise CredentialError("Failed to acquire access token: empty token in response")

        claims = decode_token_claims(token)
        credential = Credential(
            token=token,
            expires_at=self._expiry(claims, data),
            scope=scope,
            claims=claims,
        )

        if credential.is_expired():
            raise CredentialError("Identity endpoint issued an already expired token")

        logger.info(f"Obtained access token for {scope} (expires {credential.expires_at.isoformat()})")
        if claims:
            logger.debug(
                f"Token claims: aud={claims.get('aud')}, appid={claims.get('appid') or claims.get('azp')}, "
                f"roles={claims.get('roles')}, exp={claims.get('exp')}"
            )
        return credential

    @staticmethod
    def _expiry(claims: Dict[str, Any], data: Dict[str, Any]) -> datetime:
        """Expiry from the `exp` claim, else `expires_on` / `expires_in` from the response."""
        exp = claims.get("exp")
        if exp:
            try:
                return datetime.fromtimestamp(int(exp), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError, OSError):
                logger.warning(f"Unparseable exp claim in token: {exp}")

        expires_on = data.get("expires_on")
        if expires_on:
            try:
                return datetime.fromtimestamp(int(expires_on), tz=timezone.utc)
            except (TypeError, ValueError, OverflowError, OSError):
                logger.warning(f"Unparseable expires_on in token response: {expires_on}")

        try:
            expires_in = int(data.get("expires_in", DEFAULT_TOKEN_LIFETIME_SECONDS))
        except (TypeError, ValueError):
            expires_in = DEFAULT_TOKEN_LIFETIME_SECONDS
        return datetime.now(timezone.utc) + timedelta(seconds=expires_in)
