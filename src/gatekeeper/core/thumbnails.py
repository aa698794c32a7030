from __future__ import annotations

import asyncio
import io
import logging
import os
import tempfile

import cv2
import numpy as np
from PIL import Image

from gatekeeper.types import Thumbnail, VideoClip

logger = logging.getLogger(__name__)


def seek_position(duration_sec: float, *, seek_sec: float = 1.0, seek_ratio: float = 0.3) -> float:
    if duration_sec <= 0:
        return 0.0
    return min(seek_sec, duration_sec * seek_ratio)


def extract_thumbnail(
    video: bytes,
    mime_type: str,
    *,
    width: int = 320,
    quality: int = 85,
    seek_sec: float = 1.0,
    seek_ratio: float = 0.3,
) -> bytes | None:
    """Return a JPEG still from the clip, or None when no frame can be decoded."""
    if not video:
        return None

    suffix = ".mp4" if "mp4" in mime_type else ".webm"
    fd, path = tempfile.mkstemp(prefix="gatekeeper-clip-", suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(video)
        frame = _grab_frame(path, seek_sec=seek_sec, seek_ratio=seek_ratio)
        if frame is None:
            logger.warning("No decodable frame in %s clip", mime_type)
            return None
        return encode_jpeg(frame, width=width, quality=quality)
    except Exception as exc:
        logger.warning("Thumbnail extraction failed: %s", exc)
        return None
    finally:
        try:
            os.unlink(path)
        except OSError:
            pass


def _grab_frame(path: str, *, seek_sec: float, seek_ratio: float) -> np.ndarray | None:
    capture = cv2.VideoCapture(path)
    try:
        if not capture.isOpened():
            return None

        fps = capture.get(cv2.CAP_PROP_FPS) or 0.0
        frame_count = capture.get(cv2.CAP_PROP_FRAME_COUNT) or 0.0
        duration = frame_count / fps if fps > 0 else 0.0
        capture.set(cv2.CAP_PROP_POS_MSEC, seek_position(duration, seek_sec=seek_sec, seek_ratio=seek_ratio) * 1000)

        ok, frame = capture.read()
        if not ok or frame is None:
            # Some containers refuse to seek; fall back to the first frame.
            capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
            ok, frame = capture.read()
        return frame if ok else None
    finally:
        capture.release()


def encode_jpeg(frame: np.ndarray, *, width: int = 320, quality: int = 85) -> bytes:
    height_px, width_px = frame.shape[:2]
    if width_px <= 0 or height_px <= 0:
        raise ValueError("frame has no pixels")

    rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
    image = Image.fromarray(rgb)
    target_height = max(1, round(height_px * width / width_px))
    image = image.resize((width, target_height), Image.Resampling.LANCZOS)

    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


class ThumbnailExtractor:
    """Async adapter used by the capture session; decoding runs on a worker thread."""

    def __init__(self, *, width: int = 320, quality: int = 85, seek_sec: float = 1.0, seek_ratio: float = 0.3):
        self.width = width
        self.quality = quality
        self.seek_sec = seek_sec
        self.seek_ratio = seek_ratio

    async def __call__(self, clip: VideoClip) -> Thumbnail | None:
        data = await asyncio.to_thread(
            extract_thumbnail,
            clip.data,
            clip.mime_type,
            width=self.width,
            quality=self.quality,
            seek_sec=self.seek_sec,
            seek_ratio=self.seek_ratio,
        )
        return Thumbnail(data=data) if data else None
