"""
Configuration module for the Call Media Intercept backend.
Centralizes environment variables, logging setup, and constants.
"""
import os
import logging
from dotenv import load_dotenv

# Load .env file for local development
load_dotenv()


def env_bool(name: str, default: bool) -> bool:
    """Read a boolean flag from the environment ("1", "true", "yes", "on")."""
    value = os.environ.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# ============================================================================
# Environment Configuration
# ============================================================================

# Environment identifier (production, staging, development, etc.)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "production")

PORT = int(os.environ.get("PORT", "3000"))

# Application Insights; telemetry is off when empty
APPINSIGHTS_CONNECTION_STRING = os.environ.get("APPINSIGHTS_CONNECTION_STRING", "")

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# ============================================================================
# Application Constants
# ============================================================================

DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_GRAPH_SCOPE = "https://graph.microsoft.com/.default"

# Resource class watched by the change notification subscription
SUBSCRIPTION_RESOURCE = "/communications/callRecords"
SUBSCRIPTION_CHANGE_TYPE = "created,updated"

# Graph refuses callRecords subscriptions longer than this
MAX_SUBSCRIPTION_EXPIRATION_HOURS = 24

# Graph limit on clientState length
MAX_CLIENT_STATE_LENGTH = 128

# Cached tokens are refreshed this many seconds before they expire
TOKEN_EXPIRY_BUFFER_SECONDS = 60

# Used when neither the token claims nor the identity response carry an expiry
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600

# Identity endpoints
AAD_TOKEN_URL_TEMPLATE = "https://login.microsoftonline.com/{tenant_id}/oauth2/v2.0/token"
IMDS_TOKEN_URL = "http://169.254.169.254/metadata/identity/oauth2/token"
