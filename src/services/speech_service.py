"""
Speech-to-text collaborator.

Sends an audio stream descriptor to the configured transcription endpoint
and returns the recognised text. Recognition itself happens elsewhere.
"""
import logging
from typing import Optional

import httpx

from src.exceptions import TranscriptionError, UpstreamTimeoutError
from src.models import MediaStream, Transcript
from src.services.graph_config import GraphConfig

logger = logging.getLogger(__name__)


class SpeechService:
    """Client for the external transcription endpoint."""

    def __init__(
        self,
        config: Optional[GraphConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config or GraphConfig.from_env()
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.config.transcription_endpoint)

    async def transcribe(self, call_id: str, stream: MediaStream) -> Transcript:
        """Convert the call's audio stream to text."""
        if not self.is_configured:
            raise TranscriptionError("Transcription endpoint not configured (TRANSCRIPTION_ENDPOINT)")

        headers = {"Content-Type": "application/json"}
        if self.config.transcription_api_key:
            headers["Ocp-Apim-Subscription-Key"] = self.config.transcription_api_key

        payload = {
            "callId": call_id,
            "language": self.config.transcription_language,
            "stream": stream.model_dump(),
        }

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.config.http_timeout) as client:
                response = await client.post(
                    self.config.transcription_endpoint,
                    json=payload,
                    headers=headers,
                )
        except httpx.TimeoutException:
            raise UpstreamTimeoutError("transcription endpoint", self.config.http_timeout)
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Transcription endpoint unreachable: {e}")

        if not response.is_success:
            logger.error(f"Transcription failed: {response.status_code} - {response.text}")
            raise TranscriptionError(
                f"Transcription failed: {response.reason_phrase or response.status_code}",
                upstream_status=response.status_code,
                upstream_reason=response.reason_phrase,
                upstream_body=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            raise TranscriptionError("Transcription endpoint returned a non-JSON body")

        # Accept both our own shape and the Azure Speech REST shape
        text = data.get("text") or data.get("DisplayText") or ""
        return Transcript(
            call_id=call_id,
            text=text,
            language=data.get("language") or self.config.transcription_language,
            stream=stream.model_dump(),
        )
