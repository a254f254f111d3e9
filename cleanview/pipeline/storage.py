"""
Local media storage for uploads and generated results.

Files live under one directory per store:
  {root}/source_{media_id}{ext}
  {root}/result_{media_id}.mp4

Whoever asks for a file owns it until they call `release()`; nothing is
cleaned up by garbage collection.
"""

import os
import uuid
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Optional, Union

from ..config import MEDIA_DIR
from .models import AspectRatio, ResultHandle, SourceVideo

logger = logging.getLogger(__name__)


class ResultStore:
    def __init__(self, root: Optional[str] = MEDIA_DIR):
        if root:
            Path(root).mkdir(parents=True, exist_ok=True)
            self.root = Path(root)
            self._owns_root = False
        else:
            self.root = Path(tempfile.mkdtemp(prefix="cleanview_"))
            self._owns_root = True
        self._live: set[str] = set()

    def _path(self, prefix: str, media_id: str, suffix: str) -> Path:
        return self.root / f"{prefix}_{media_id}{suffix}"

    def _write(self, path: Path, data: bytes):
        path.write_bytes(data)
        self._live.add(str(path))

    def save_source(
        self,
        data: bytes,
        filename: str,
        content_type: str = "video/mp4",
        aspect_ratio: Optional[AspectRatio] = None,
    ) -> SourceVideo:
        """Persist an uploaded video so the extractor can open it by path."""
        media_id = uuid.uuid4().hex
        suffix = Path(filename).suffix or ".mp4"
        path = self._path("source", media_id, suffix)
        self._write(path, data)
        logger.info(f"Stored source {filename} ({len(data)} bytes) at {path}")
        return SourceVideo(
            media_id=media_id,
            path=str(path),
            filename=filename,
            content_type=content_type,
            aspect_ratio=aspect_ratio,
        )

    def save_result(
        self, data: bytes, source_uri: Optional[str] = None, content_type: str = "video/mp4"
    ) -> ResultHandle:
        """Persist fetched result bytes and hand back a playable handle."""
        media_id = uuid.uuid4().hex
        path = self._path("result", media_id, ".mp4")
        self._write(path, data)
        logger.info(f"Stored result ({len(data)} bytes) at {path}")
        return ResultHandle(
            media_id=media_id,
            path=str(path),
            content_type=content_type,
            size_bytes=len(data),
            source_uri=source_uri,
        )

    def release(self, media: Optional[Union[SourceVideo, ResultHandle]]):
        """Delete the file behind a handle. Releasing twice is harmless."""
        if media is None:
            return
        self._live.discard(media.path)
        try:
            os.remove(media.path)
            logger.info(f"Released {media.path}")
        except FileNotFoundError:
            pass

    def live_paths(self) -> list[str]:
        return sorted(self._live)

    def close(self):
        """Delete every file still held, and the temp dir if we made it."""
        for path in list(self._live):
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
        self._live.clear()
        if self._owns_root:
            shutil.rmtree(self.root, ignore_errors=True)
