"""
Identity diagnostics endpoints.
"""
import logging

from fastapi import APIRouter, Depends

from src.dependencies import get_credential_service
from src.services import CredentialService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Identity"])


@router.get("/test")
async def test_auth(credential_service: CredentialService = Depends(get_credential_service)):
    """
    Verify a Graph token can be acquired.

    Returns token metadata only, never the token. Failures are rendered by
    the CallInterceptException handler.
    """
    credential = await credential_service.acquire_token()
    return {
        "success": True,
        "scope": credential.scope,
        "token_length": len(credential.token),
        "expires_at": credential.expires_at.isoformat(),
        "roles": credential.claims.get("roles", []),
    }


@router.get("/config")
async def get_config(credential_service: CredentialService = Depends(get_credential_service)):
    """
    Check identity configuration status (doesn't expose secrets).
    """
    config = credential_service.config

    return {
        "mode": "client_credentials" if config.uses_client_secret else "managed_identity",
        "tenant_id_configured": bool(config.tenant_id),
        "client_id_preview": config.client_id[:8] + "..." if config.client_id else None,
        "client_secret_configured": bool(config.client_secret),
        "managed_identity_client_id_preview": (
            config.managed_identity_client_id[:8] + "..." if config.managed_identity_client_id else None
        ),
        "notification_url": config.notification_url or None,
        "require_client_state": config.require_client_state,
        "token_cache_enabled": config.token_cache_enabled,
    }
