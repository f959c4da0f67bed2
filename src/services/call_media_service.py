"""
Call Media Orchestrator.

Given a call id from a change notification, fetches the call's media
streams from Graph and hands the first audio stream to the speech service.
"""
import logging
from typing import Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from src.exceptions import CallInterceptException, MediaFetchError, UpstreamTimeoutError
from src.models import CallMediaDescriptor, Transcript
from src.services.credential_service import CredentialService
from src.services.graph_config import GraphConfig
from src.services.speech_service import SpeechService

logger = logging.getLogger(__name__)


class CallMediaService:
    """Retrieves call media and forwards audio for transcription."""

    def __init__(
        self,
        credential_service: CredentialService,
        speech_service: SpeechService,
        config: Optional[GraphConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.credential_service = credential_service
        self.speech_service = speech_service
        self.config = config or credential_service.config
        self._transport = transport

    def media_url(self, call_id: str) -> str:
        return f"{self.config.graph_url}/communications/calls/{quote(call_id, safe='')}/media"

    async def fetch_call_media(self, call_id: str) -> CallMediaDescriptor:
        """
        Fetch the media descriptor for a call.

        Raises:
            CredentialError: no token could be acquired
            MediaFetchError: Graph answered with an error or an unusable body
            UpstreamTimeoutError: Graph did not answer in time
        """
        credential = await self.credential_service.acquire_token(self.config.scope)
        url = self.media_url(call_id)

        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self.config.http_timeout) as client:
                response = await client.get(
                    url,
                    headers={
                        **credential.authorization_header(),
                        "Content-Type": "application/json",
                    },
                )
        except httpx.TimeoutException:
            raise UpstreamTimeoutError(f"call media endpoint for {call_id}", self.config.http_timeout)
        except httpx.HTTPError as e:
            raise MediaFetchError(f"Failed to get call media for {call_id}: {e}")

        if not response.is_success:
            if response.status_code == 401:
                # Token rejected upstream; the next call fetches a fresh one
                self.credential_service.invalidate(self.config.scope)
            logger.error(f"Failed to get call media: {response.status_code} {response.reason_phrase}")
            logger.error(f"Response Body: {response.text}")
            raise MediaFetchError(
                f"Failed to get call media: {response.reason_phrase or response.status_code}",
                upstream_status=response.status_code,
                upstream_reason=response.reason_phrase,
                upstream_body=response.text,
            )

        try:
            descriptor = CallMediaDescriptor.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise MediaFetchError(
                f"Unusable call media body for {call_id}: {e}",
                upstream_status=response.status_code,
                upstream_body=response.text,
            )

        logger.info(f"Call media for {call_id}: {len(descriptor.media_streams)} stream(s)")
        return descriptor

    async def intercept_call_media(self, call_id: str) -> Optional[Transcript]:
        """
        Fetch a call's media and transcribe its audio stream.

        Runs detached from the notification request, so every failure ends
        here: it is logged and None is returned. The speech service is called
        at most once, and only when an audio stream exists.
        """
        try:
            descriptor = await self.fetch_call_media(call_id)

            audio_stream = descriptor.first_audio_stream()
            if audio_stream is None:
                logger.info(f"No audio stream for call {call_id}")
                return None

            transcript = await self.speech_service.transcribe(call_id, audio_stream)
            logger.info(f"Transcript for call {call_id}: {transcript.text}")
            return transcript

        except CallInterceptException as e:
            logger.error(f"Error intercepting call media for {call_id}: {e.message}")
        except Exception as e:
            logger.error(f"Unexpected error intercepting call media for {call_id}: {e}", exc_info=True)
        return None
