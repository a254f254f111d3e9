"""
Reference frame capture: grab the frame at t=0 from the uploaded video.

Uses OpenCV to decode and Pillow to encode a lossless PNG at the video's
native size. Decoding runs in a worker thread and the whole capture is
bounded by a timeout so a stuck decoder cannot leave the session in
"processing" forever.
"""

import asyncio
import logging
from io import BytesIO

import cv2
from PIL import Image

from ..config import EXTRACTION_TIMEOUT
from .errors import ExtractionFailed
from .models import AspectRatio, MediaReference

logger = logging.getLogger(__name__)


def _read_first_frame(path: str):
    cap = cv2.VideoCapture(path)
    try:
        if not cap.isOpened():
            raise ExtractionFailed(f"Could not open video: {path}")
        cap.set(cv2.CAP_PROP_POS_FRAMES, 0)
        ok, frame = cap.read()
    finally:
        cap.release()

    if not ok or frame is None or frame.size == 0:
        raise ExtractionFailed("Could not read the first frame of the video")
    return frame


def _encode_png(frame) -> MediaReference:
    rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    img = Image.fromarray(rgb)
    buf = BytesIO()
    img.save(buf, format="PNG")
    width, height = img.size
    return MediaReference(mime_type="image/png", data=buf.getvalue(), width=width, height=height)


def capture_reference(path: str) -> MediaReference:
    """Blocking capture of frame 0 as a PNG MediaReference."""
    frame = _read_first_frame(path)
    return _encode_png(frame)


def aspect_ratio_for(reference: MediaReference) -> AspectRatio:
    """Portrait frames map to 9:16, everything else to 16:9."""
    if reference.height > reference.width:
        return AspectRatio.PORTRAIT
    return AspectRatio.LANDSCAPE


class MediaExtractor:
    def __init__(self, timeout: float = EXTRACTION_TIMEOUT):
        self.timeout = timeout

    async def extract(self, path: str) -> MediaReference:
        """
        Capture the reference frame of the video at `path`.

        Raises:
            ExtractionFailed: unreadable source, empty frame, or timeout.
        """
        try:
            reference = await asyncio.wait_for(
                asyncio.to_thread(capture_reference, path),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise ExtractionFailed(f"Frame extraction timed out after {self.timeout:.0f}s")
        except ExtractionFailed:
            raise
        except Exception as e:
            raise ExtractionFailed(f"Frame extraction failed: {e}") from e

        logger.info(f"Reference frame captured: {reference.width}x{reference.height} ({len(reference.data)} bytes)")
        return reference
