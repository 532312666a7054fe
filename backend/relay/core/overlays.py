"""Builders for the overlay and analytics blocks of a Locket moment.

Field names and protobuf ``@type`` wrappers mirror the iOS client verbatim;
the upstream rejects moments whose overlays deviate from this shape.
"""

from __future__ import annotations

import hashlib
from typing import Any

from relay.core.models import DEFAULT_OVERLAY_TYPE, OverlayOptions

INT64_TYPE = "type.googleapis.com/google.protobuf.Int64Value"

# Caption style the iOS client uses when the user picks no colours
STANDARD_STYLE = "standard"
STANDARD_TEXT_COLOR = "#FFFFFFE6"
CAPTION_MAX_LINES = 4

# Experiment flags reported by the iOS client alongside a video moment
EXPERIMENT_FLAGS = {
    "flag_4": "43",
    "flag_10": "505",
    "flag_23": "400",
    "flag_22": "1203",
    "flag_19": "52",
    "flag_18": "1203",
    "flag_16": "303",
    "flag_15": "501",
    "flag_14": "500",
    "flag_25": "23",
}


def int64(value: int | str) -> dict[str, str]:
    """Wrap a number the way the upstream's JSON-encoded protobufs expect."""
    return {"@type": INT64_TYPE, "value": str(value)}


def md5_hex(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


def build_caption_overlay(options: OverlayOptions) -> dict[str, Any] | None:
    """Caption overlay for the moment, or None when there is no caption.

    ``overlay_type="default"`` maps to the standard blurred caption; any other
    type renders on a gradient of ``color_top`` -> ``color_bottom``.
    """
    if not options.caption:
        return None

    if options.overlay_type == DEFAULT_OVERLAY_TYPE:
        style = STANDARD_STYLE
        text_color = STANDARD_TEXT_COLOR
        colors: list[str] = []
    else:
        style = options.overlay_type
        text_color = options.text_color
        colors = [options.color_top, options.color_bottom]

    return {
        "data": {
            "text": options.caption,
            "text_color": text_color,
            "type": style,
            "max_lines": int64(CAPTION_MAX_LINES),
            "background": {
                "material_blur": "ultra_thin",
                "colors": colors,
            },
        },
        "alt_text": options.caption,
        "overlay_id": f"caption:{style}",
        "overlay_type": "caption",
    }


def build_music_overlay(options: OverlayOptions) -> dict[str, Any] | None:
    """Music caption for the moment, or None when no track was attached."""
    track = options.music_track
    if not track:
        return None

    title = track.get("title") or track.get("song_title") or ""
    artist = track.get("artist") or ""
    text = f"{title} - {artist}" if title and artist else (title or artist)

    data: dict[str, Any] = {
        "text": text,
        "text_color": options.text_color,
        "type": "music",
        "max_lines": int64(1),
        "background": {
            "material_blur": "ultra_thin",
            "colors": [options.color_top, options.color_bottom],
        },
        "payload": {
            "song_title": title,
            "artist": artist,
            "isrc": track.get("isrc", ""),
            "preview_url": track.get("preview_url", ""),
            "spotify_url": track.get("spotify_url", ""),
            "apple_music_url": track.get("apple_music_url", ""),
        },
    }

    artwork = track.get("image") or track.get("artwork_url")
    if artwork:
        data["icon"] = {"type": "image", "data": artwork, "source": "url"}

    return {
        "data": data,
        "alt_text": text,
        "overlay_id": "caption:music",
        "overlay_type": "caption",
    }


def build_overlays(options: OverlayOptions) -> list[dict[str, Any]]:
    """All overlays for a moment.

    A moment carries a single caption slot: an attached track takes it over
    and the plain caption text stays in the moment's ``caption`` field.
    """
    music = build_music_overlay(options)
    if music:
        return [music]
    caption = build_caption_overlay(options)
    return [caption] if caption else []


def build_analytics_stub() -> dict[str, Any]:
    """Analytics block the iOS client attaches to every video moment."""
    return {
        "experiments": {name: int64(value) for name, value in EXPERIMENT_FLAGS.items()},
        "amplitude": {
            "device_id": "BF5D1FD7-9E4D-4F8B-AB68-B89ED20398A6",
            "session_id": int64("1722437166613"),
        },
        "google_analytics": {
            "app_instance_id": "5BDC04DA16FF4B0C9CA14FFB9C502900",
        },
        "platform": "ios",
    }
