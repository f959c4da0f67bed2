"""
Call media models.
"""
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

AUDIO_STREAM_TYPE = "audio"


class MediaStream(BaseModel):
    """A media stream of an active call (audio, video, videoBasedScreenSharing ...)."""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _type_as_text(cls, value: Any) -> Any:
        return None if value is None else str(value)

    @property
    def is_audio(self) -> bool:
        return self.type == AUDIO_STREAM_TYPE


class CallMediaDescriptor(BaseModel):
    """Media streams available for a call."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    media_streams: list[MediaStream] = Field(default_factory=list, alias="mediaStreams")

    @field_validator("media_streams", mode="before")
    @classmethod
    def _streams_as_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            # Entries that are not objects cannot describe a stream
            return [item for item in value if isinstance(item, (dict, MediaStream))]
        return value

    def first_audio_stream(self) -> Optional[MediaStream]:
        for stream in self.media_streams:
            if stream.is_audio:
                return stream
        return None


class Transcript(BaseModel):
    """Text produced from a call's audio stream."""
    call_id: str
    text: str
    language: Optional[str] = None
    stream: Optional[dict] = None
