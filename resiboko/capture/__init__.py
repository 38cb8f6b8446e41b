"""Capture adapters for uploads, camera snapshots and voice recordings."""

from resiboko.capture.adapters import (
    CAMERA_ERROR_MESSAGE,
    MICROPHONE_ERROR_MESSAGE,
    SUPPORTED_AUDIO_TYPES,
    DeviceSession,
    blob_from_audio_bytes,
    blob_from_image_bytes,
    normalize_audio_mime,
)

__all__ = [
    "CAMERA_ERROR_MESSAGE",
    "MICROPHONE_ERROR_MESSAGE",
    "SUPPORTED_AUDIO_TYPES",
    "DeviceSession",
    "blob_from_audio_bytes",
    "blob_from_image_bytes",
    "normalize_audio_mime",
]
