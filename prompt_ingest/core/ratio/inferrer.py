"""
Best-effort detection of an image's aspect ratio bucket.

Detection never fails a row: any error while loading or decoding, and any
timeout, resolves to the default bucket.
"""

import asyncio
import io
import time

from PIL import Image

from prompt_ingest.core.constants import DEFAULT_IMAGE_RATIO
from prompt_ingest.observability.logger import get_logger
from prompt_ingest.observability.metrics import (
    increment_counter,
    observe_histogram,
    ratio_detection_duration_seconds,
    ratio_detections_total,
)

from .buckets import bucket_for_dimensions
from .loader import HttpImageLoader, ImageLoader

logger = get_logger(__name__)

# EXIF orientations that rotate the image by 90 or 270 degrees
_TRANSPOSED_ORIENTATIONS = {5, 6, 7, 8}
_EXIF_ORIENTATION = 0x0112

DEFAULT_TIMEOUT_SECONDS = 10.0


def read_dimensions(data: bytes) -> tuple[int, int]:
    """
    Read the displayed width and height of an encoded image.

    Only the header is parsed. EXIF rotation is honoured so that a portrait
    photo stored sideways reports portrait dimensions.

    Raises:
        OSError: If Pillow cannot identify the image
    """
    with Image.open(io.BytesIO(data)) as image:
        width, height = image.size
        try:
            orientation = image.getexif().get(_EXIF_ORIENTATION)
        except (OSError, ValueError, SyntaxError):
            orientation = None
    if orientation in _TRANSPOSED_ORIENTATIONS:
        width, height = height, width
    return width, height


class RatioInferrer:
    """
    Resolve an image reference (URL or raw bytes) to a ratio bucket.

    Usage:
        inferrer = RatioInferrer(timeout=5.0)
        ratio = await inferrer.infer("https://cdn.example.com/cat.png")
    """

    def __init__(self, loader: ImageLoader | None = None, timeout: float = DEFAULT_TIMEOUT_SECONDS):
        """
        Args:
            loader: Image loader for URL references (defaults to HttpImageLoader)
            timeout: Upper bound in seconds for load plus decode
        """
        self.loader = loader or HttpImageLoader()
        self.timeout = timeout

    async def _detect(self, source: str | bytes) -> str:
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        elif isinstance(source, str) and source.strip():
            data = await self.loader.load(source.strip())
        else:
            raise ValueError("no image reference")

        width, height = read_dimensions(data)
        return bucket_for_dimensions(width, height)

    async def infer(self, source: str | bytes) -> str:
        """
        Detect the ratio bucket of an image.

        Args:
            source: Image URL or encoded image bytes

        Returns:
            The nearest ratio bucket, or the default bucket on any failure
        """
        started = time.monotonic()
        try:
            ratio = await asyncio.wait_for(self._detect(source), timeout=self.timeout)
            outcome = "detected"
        except asyncio.TimeoutError:
            logger.warning(
                "Ratio detection timed out, using default",
                extra={"timeout_seconds": self.timeout, "default_ratio": DEFAULT_IMAGE_RATIO},
            )
            ratio, outcome = DEFAULT_IMAGE_RATIO, "timeout"
        except Exception as e:  # noqa: BLE001
            logger.info(
                "Ratio detection failed, using default",
                extra={
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "default_ratio": DEFAULT_IMAGE_RATIO,
                },
            )
            ratio, outcome = DEFAULT_IMAGE_RATIO, "fallback"

        increment_counter(ratio_detections_total, outcome=outcome)
        observe_histogram(ratio_detection_duration_seconds, time.monotonic() - started)
        return ratio

    async def aclose(self) -> None:
        """Release the loader's resources, if it holds any."""
        close = getattr(self.loader, "aclose", None)
        if close is not None:
            await close()
