"""
Capture Adapters

Turns raw bytes from a file upload, a camera snapshot or a microphone
recording into a CapturedBlob that the AI client can consume.

DESIGN DECISION: Check locally before spending an AI request.
- Images are opened and verified with Pillow (real image, supported
  format, within the size limit)
- Audio is accepted by MIME type only; an empty recording is refused

Device handles (camera, microphone) are scoped by DeviceSession:
acquire once, release on every exit path, release is idempotent.
"""

from io import BytesIO
from typing import Any, Callable, Optional

from PIL import Image

from resiboko.audit import get_logger
from resiboko.config import AppSettings, get_settings
from resiboko.errors import CaptureError
from resiboko.models.receipt import CapturedBlob, CaptureSource


logger = get_logger(__name__)

CAMERA_ERROR_MESSAGE = (
    "Could not access the camera. Please ensure permissions are granted and try again."
)
MICROPHONE_ERROR_MESSAGE = (
    "Microphone access was denied. Please enable it in your browser settings."
)

# Pillow format name -> (MIME type, extensions it satisfies)
IMAGE_FORMATS = {
    "JPEG": ("image/jpeg", {"jpg", "jpeg"}),
    "MPO": ("image/jpeg", {"jpg", "jpeg"}),
    "PNG": ("image/png", {"png"}),
    "WEBP": ("image/webp", {"webp"}),
}

SUPPORTED_AUDIO_TYPES = frozenset({
    "audio/wav",
    "audio/webm",
    "audio/ogg",
    "audio/mpeg",
    "audio/mp4",
})

_AUDIO_ALIASES = {
    "audio/x-wav": "audio/wav",
    "audio/wave": "audio/wav",
    "audio/mp3": "audio/mpeg",
    "audio/x-m4a": "audio/mp4",
    "audio/m4a": "audio/mp4",
}


def blob_from_image_bytes(
    data: bytes,
    source: CaptureSource = CaptureSource.UPLOAD,
    filename: Optional[str] = None,
    settings: Optional[AppSettings] = None,
) -> CapturedBlob:
    """
    Verify an image and wrap it.

    The MIME type comes from what Pillow detects, not from the
    browser-supplied content type or the file extension.

    Raises:
        CaptureError: empty, too large, unreadable or unsupported image
    """
    settings = settings or get_settings().app

    if not data:
        raise CaptureError("The image is empty. Please try again.")

    if len(data) > settings.max_upload_size_bytes:
        raise CaptureError(
            f"The image is too large (max {settings.max_upload_size_mb} MB)."
        )

    try:
        with Image.open(BytesIO(data)) as img:
            image_format = img.format
            img.verify()
    except Exception as e:
        raise CaptureError("The file could not be read as an image.") from e

    mime_type, extensions = IMAGE_FORMATS.get(image_format, (None, set()))
    if mime_type is None or not extensions & set(settings.supported_formats_list):
        raise CaptureError(
            f"Unsupported image format: {image_format or 'unknown'}. "
            f"Supported formats: {', '.join(settings.supported_formats_list)}."
        )

    return CapturedBlob(data=data, mime_type=mime_type, source=source, filename=filename)


def normalize_audio_mime(mime_type: Optional[str]) -> str:
    """'audio/webm;codecs=opus' -> 'audio/webm'"""
    base = (mime_type or "").split(";")[0].strip().lower()
    return _AUDIO_ALIASES.get(base, base)


def blob_from_audio_bytes(
    data: bytes,
    mime_type: Optional[str],
    filename: Optional[str] = None,
) -> CapturedBlob:
    """
    Wrap a microphone recording.

    Raises:
        CaptureError: unsupported type or empty recording
    """
    normalized = normalize_audio_mime(mime_type)
    if normalized not in SUPPORTED_AUDIO_TYPES:
        raise CaptureError(f"Unsupported audio format: {mime_type or 'unknown'}.")
    if not data:
        raise CaptureError("The recording is empty. Please try again.")

    return CapturedBlob(
        data=data,
        mime_type=normalized,
        source=CaptureSource.MICROPHONE,
        filename=filename,
    )


class DeviceSession:
    """
    Scoped camera / microphone handle.

    Usage:
        with DeviceSession(CaptureSource.CAMERA, acquire, release) as handle:
            ...

    `release` runs exactly once whether the block exits normally or
    with an error; calling close() again afterwards does nothing.
    A failed acquire is reported as CaptureError with the device's
    user-facing message.
    """

    _ERROR_MESSAGES = {
        CaptureSource.CAMERA: CAMERA_ERROR_MESSAGE,
        CaptureSource.MICROPHONE: MICROPHONE_ERROR_MESSAGE,
    }

    def __init__(
        self,
        kind: CaptureSource,
        acquire: Callable[[], Any],
        release: Callable[[Any], None],
    ):
        if kind not in self._ERROR_MESSAGES:
            raise ValueError(f"{kind.value} is not a device")
        self.kind = kind
        self._acquire = acquire
        self._release = release
        self._handle: Any = None
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def error_message(self) -> str:
        return self._ERROR_MESSAGES[self.kind]

    def open(self) -> Any:
        if self._open:
            return self._handle
        try:
            self._handle = self._acquire()
        except Exception as e:
            logger.warning("device_acquire_failed", device=self.kind.value, error=str(e))
            raise CaptureError(self.error_message) from e
        self._open = True
        return self._handle

    def close(self) -> None:
        if not self._open:
            return
        self._open = False
        handle, self._handle = self._handle, None
        self._release(handle)

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
