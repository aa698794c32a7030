from __future__ import annotations

import asyncio
import logging
import os
import tempfile
import threading
from pathlib import Path

import cv2

from gatekeeper.core.capture import MediaConstraints, MediaStream, MediaTrack
from gatekeeper.errors import CapturePermissionError

logger = logging.getLogger(__name__)

FOURCC_BY_MIME = {
    "video/mp4;codecs=h264": ("avc1", ".mp4"),
    "video/webm;codecs=vp9": ("VP90", ".webm"),
    "video/webm": ("VP80", ".webm"),
}


class OpenCVVideoTrack:
    kind = "video"

    def __init__(self, capture: cv2.VideoCapture):
        self.capture = capture
        self.ready_state = "live"
        self._lock = threading.Lock()

    def read(self):
        with self._lock:
            if self.ready_state == "ended":
                return False, None
            return self.capture.read()

    def stop(self) -> None:
        with self._lock:
            if self.ready_state == "ended":
                return
            self.capture.release()
            self.ready_state = "ended"


class OpenCVStream:
    def __init__(self, track: OpenCVVideoTrack, width: int, height: int):
        self.track = track
        self.width = width
        self.height = height

    def get_tracks(self) -> list[MediaTrack]:
        return [self.track]


class OpenCVRecorder:
    """Writes camera frames to a temporary container on a worker thread."""

    def __init__(self, stream: OpenCVStream, mime_type: str, fps: float):
        self.stream = stream
        self.mime_type = mime_type
        self.fps = fps
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._path: Path | None = None
        self._error: Exception | None = None

    def start(self) -> None:
        fourcc, suffix = FOURCC_BY_MIME.get(self.mime_type, FOURCC_BY_MIME["video/webm"])
        fd, path = tempfile.mkstemp(prefix="gatekeeper-recording-", suffix=suffix)
        os.close(fd)
        self._path = Path(path)
        writer = cv2.VideoWriter(
            path,
            cv2.VideoWriter_fourcc(*fourcc),
            self.fps,
            (self.stream.width, self.stream.height),
        )
        if not writer.isOpened():
            self._path.unlink(missing_ok=True)
            raise RuntimeError(f"no encoder available for {self.mime_type}")

        self._thread = threading.Thread(target=self._record, args=(writer,), daemon=True)
        self._thread.start()

    def _record(self, writer: cv2.VideoWriter) -> None:
        size = (self.stream.width, self.stream.height)
        try:
            while not self._stop_event.is_set():
                ok, frame = self.stream.track.read()
                if not ok or frame is None:
                    break
                if (frame.shape[1], frame.shape[0]) != size:
                    frame = cv2.resize(frame, size)
                writer.write(frame)
        except Exception as exc:
            self._error = exc
        finally:
            writer.release()

    async def stop(self) -> bytes:
        self._stop_event.set()
        if self._thread is not None:
            await asyncio.to_thread(self._thread.join)
        path, self._path = self._path, None
        if path is None:
            return b""
        try:
            if self._error is not None:
                logger.warning("Recording thread failed: %s", self._error)
            return path.read_bytes() if path.exists() else b""
        finally:
            path.unlink(missing_ok=True)


class OpenCVMediaDevices:
    """Webcam access through OpenCV. OpenCV exposes no microphone, so clips are silent."""

    def __init__(self, *, camera_index: int = 0, fps: float = 24.0):
        self.camera_index = camera_index
        self.fps = fps
        self._supported: dict[str, bool] = {}

    async def get_user_media(self, constraints: MediaConstraints) -> MediaStream:
        capture = await asyncio.to_thread(cv2.VideoCapture, self.camera_index)
        if not capture.isOpened():
            capture.release()
            raise CapturePermissionError()

        capture.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.height)
        width = int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)) or constraints.width
        height = int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)) or constraints.height
        if constraints.audio:
            logger.info("Audio capture requested but not available through OpenCV")
        return OpenCVStream(OpenCVVideoTrack(capture), width, height)

    def is_type_supported(self, mime_type: str) -> bool:
        if mime_type not in self._supported:
            self._supported[mime_type] = _probe_encoder(mime_type)
        return self._supported[mime_type]

    def create_recorder(self, stream: MediaStream, mime_type: str) -> OpenCVRecorder:
        if not isinstance(stream, OpenCVStream):
            raise TypeError("OpenCVMediaDevices can only record its own streams")
        return OpenCVRecorder(stream, mime_type, self.fps)


def _probe_encoder(mime_type: str) -> bool:
    codec = FOURCC_BY_MIME.get(mime_type)
    if codec is None:
        return False
    fourcc, suffix = codec
    fd, path = tempfile.mkstemp(prefix="gatekeeper-probe-", suffix=suffix)
    os.close(fd)
    writer = cv2.VideoWriter(path, cv2.VideoWriter_fourcc(*fourcc), 24.0, (64, 48))
    try:
        return bool(writer.isOpened())
    finally:
        writer.release()
        Path(path).unlink(missing_ok=True)
