"""Torrent request/response schemas."""
from enum import Enum
from typing import Optional
from datetime import datetime
from pydantic import Field, field_validator, model_validator
from app.schemas.base import CamelModel, CamelORMModel


class Feature(str, Enum):
    HDR = "HDR"
    HDR10 = "HDR10"
    HDR10_PLUS = "HDR10+"
    DOLBY_VISION = "DV"
    COMMENTARY = "Commentary"
    REMUX = "Remux"
    THREE_D = "3D"
    CUE = "Cue"
    OCR = "OCR"


def split_comma_separated(value) -> list:
    """'a, b,,c' -> ['a', 'b', 'c']. Lists pass through untouched."""
    if value is None:
        return []
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    return value


class UploadedTorrentForm(CamelModel):
    """Release metadata sent alongside the .torrent file."""
    edition_group_id: int
    release_name: str = Field(min_length=1, max_length=500)
    release_group: Optional[str] = None
    description: Optional[str] = None
    uploaded_as_anonymous: bool = False
    mediainfo: str = ""
    duration: Optional[int] = None
    audio_codec: Optional[str] = None
    audio_bitrate: Optional[int] = None
    audio_bitrate_sampling: Optional[str] = None
    audio_channels: Optional[str] = None
    video_codec: Optional[str] = None
    video_resolution: Optional[str] = None
    container: str = ""
    features: list[Feature] = []
    subtitle_languages: list[str] = []
    languages: list[str] = []

    @field_validator('features', 'subtitle_languages', 'languages', mode='before')
    @classmethod
    def split_lists(cls, v):
        return split_comma_separated(v)


class TorrentToDelete(CamelModel):
    id: int
    reason: str = Field(min_length=1)
    displayed_reason: Optional[str] = None


class TorrentResponse(CamelORMModel):
    id: int
    edition_group_id: int
    created_by_id: Optional[int] = None
    release_name: str
    release_group: Optional[str] = None
    description: Optional[str] = None
    uploaded_as_anonymous: bool
    mediainfo: str = ""
    trumpable: str = ""
    staff_checked: bool
    duration: Optional[int] = None
    audio_codec: Optional[str] = None
    audio_bitrate: Optional[int] = None
    audio_bitrate_sampling: Optional[str] = None
    audio_channels: Optional[str] = None
    video_codec: Optional[str] = None
    video_resolution: Optional[str] = None
    container: str = ""
    features: list[str] = []
    subtitle_languages: list[str] = []
    languages: list[str] = []
    file_list: dict
    file_amount_per_type: dict
    size: int
    info_hash: str
    seeders: int
    leechers: int
    completed: int
    snatched: int
    created_at: datetime
    updated_at: datetime

    @field_validator('info_hash', mode='before')
    @classmethod
    def hex_info_hash(cls, v):
        return v.hex() if isinstance(v, (bytes, bytearray, memoryview)) else v

    @model_validator(mode="after")
    def hide_anonymous_uploader(self):
        """Anonymous uploads never expose who created them."""
        if self.uploaded_as_anonymous:
            self.created_by_id = None
        return self
