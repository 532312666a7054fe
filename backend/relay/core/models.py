"""Transient request models passed from the router to the moment service."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field, ValidationInfo, field_validator

from relay.core.logging import log

DEFAULT_COLOR_TOP = "#000000"
DEFAULT_COLOR_BOTTOM = "#000000"
DEFAULT_TEXT_COLOR = "#FFFFFF"
DEFAULT_OVERLAY_TYPE = "default"


class OverlayOptions(BaseModel):
    """Caption styling and optional music metadata for a moment."""

    caption: str | None = Field(default=None, description="Caption text shown on the moment")
    color_top: str = Field(default=DEFAULT_COLOR_TOP, description="Caption background gradient start")
    color_bottom: str = Field(default=DEFAULT_COLOR_BOTTOM, description="Caption background gradient end")
    text_color: str = Field(default=DEFAULT_TEXT_COLOR, description="Caption text colour")
    overlay_type: str = Field(default=DEFAULT_OVERLAY_TYPE, description="Caption style")
    music_track: dict[str, Any] | None = Field(default=None, description="Track metadata for a music caption")

    @field_validator("caption", mode="before")
    @classmethod
    def blank_caption_is_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("color_top", "color_bottom", "text_color", "overlay_type", mode="before")
    @classmethod
    def empty_means_default(cls, v: Any, info: ValidationInfo) -> Any:
        """Form fields arrive as empty strings when the client leaves them unset."""
        if v is None or v == "":
            return cls.model_fields[info.field_name].default
        return v

    @field_validator("music_track", mode="before")
    @classmethod
    def parse_music_track(cls, v: Any) -> Any:
        """Accept the JSON string sent in multipart forms; unparsable input is dropped."""
        if v is None or v == "":
            return None
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except ValueError as e:
                log.warning(f"MUSIC_TRACK_PARSE_FAILED error={e}")
                return None
        if not isinstance(v, dict):
            log.warning(f"MUSIC_TRACK_IGNORED type={type(v).__name__}")
            return None
        return v


@dataclass(frozen=True)
class UploadedMedia:
    """A file spooled to the upload directory for the duration of one request."""

    path: str
    filename: str
    mime_type: str
    size: int


@dataclass(frozen=True)
class VideoPostResult:
    """Download URLs of a published video moment."""

    video_url: str
    thumbnail_url: str
