"""
Azure Monitor (Application Insights) telemetry.

Enabled when APPINSIGHTS_CONNECTION_STRING is set; exports traces, metrics
and logs through OpenTelemetry.
"""
import logging
from typing import Optional

from azure.monitor.opentelemetry import configure_azure_monitor

logger = logging.getLogger(__name__)

_configured = False


def configure_telemetry(connection_string: Optional[str]) -> bool:
    """Configure Azure Monitor once per process. Returns True when telemetry is active."""
    global _configured
    if _configured:
        return True

    if not connection_string:
        logger.warning("No connection string provided for Azure Monitor exporter (APPINSIGHTS_CONNECTION_STRING)")
        return False

    configure_azure_monitor(connection_string=connection_string)
    _configured = True
    logger.info("Azure Monitor telemetry enabled")
    return True
