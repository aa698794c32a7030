from __future__ import annotations

import asyncio
import logging
import tempfile
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from gatekeeper.errors import CapturePermissionError, InvalidTransition
from gatekeeper.types import MAX_VIDEO_SECONDS, Thumbnail, VideoClip, intro_video_duration

logger = logging.getLogger(__name__)

CaptureState = Literal["idle", "recording", "stopped", "ready"]

MIME_PREFERENCES = (
    "video/mp4;codecs=h264",
    "video/webm;codecs=vp9",
    "video/webm",
)


@dataclass(slots=True)
class MediaConstraints:
    width: int = 1280
    height: int = 720
    facing_mode: str = "user"
    audio: bool = True


class MediaTrack(Protocol):
    kind: str
    ready_state: str

    def stop(self) -> None: ...


class MediaStream(Protocol):
    def get_tracks(self) -> list[MediaTrack]: ...


class MediaRecorder(Protocol):
    mime_type: str

    def start(self) -> None: ...

    async def stop(self) -> bytes: ...


class MediaDevices(Protocol):
    async def get_user_media(self, constraints: MediaConstraints) -> MediaStream: ...

    def is_type_supported(self, mime_type: str) -> bool: ...

    def create_recorder(self, stream: MediaStream, mime_type: str) -> MediaRecorder: ...


ThumbnailExtractor = Callable[[VideoClip], Awaitable[Thumbnail | None]]


def negotiate_mime_type(devices: MediaDevices) -> str:
    for mime_type in MIME_PREFERENCES:
        if devices.is_type_supported(mime_type):
            return mime_type
    return MIME_PREFERENCES[-1]


def release_stream(stream: MediaStream | None) -> None:
    if stream is None:
        return
    for track in stream.get_tracks():
        if track.ready_state != "ended":
            track.stop()


class CaptureSession:
    """Records one bounded video pitch and derives its thumbnail.

    Transitions: idle -> recording -> stopped -> ready, and ready -> idle on
    retake. The camera stream and the preview file are released on stop,
    retake and close, and releasing twice is a no-op.
    """

    def __init__(
        self,
        devices: MediaDevices,
        *,
        max_seconds: int = MAX_VIDEO_SECONDS,
        tick_sec: float = 1.0,
        constraints: MediaConstraints | None = None,
        thumbnail_extractor: ThumbnailExtractor | None = None,
    ):
        self.devices = devices
        self.max_seconds = max_seconds
        self.tick_sec = tick_sec
        self.constraints = constraints or MediaConstraints()
        self.thumbnail_extractor = thumbnail_extractor

        self.state: CaptureState = "idle"
        self.time_left = max_seconds
        self.error = ""
        self.mime_type = ""
        self.clip: VideoClip | None = None
        self.thumbnail: Thumbnail | None = None
        self.preview_path: Path | None = None

        self._stream: MediaStream | None = None
        self._recorder: MediaRecorder | None = None
        self._countdown: asyncio.Task[None] | None = None
        self._stopping: asyncio.Task[VideoClip | None] | None = None

    @property
    def stream(self) -> MediaStream | None:
        return self._stream

    async def __aenter__(self) -> CaptureSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start_recording(self) -> None:
        if self.state != "idle":
            raise InvalidTransition(f"cannot start recording from state '{self.state}'")

        self.error = ""
        try:
            stream = await self.devices.get_user_media(self.constraints)
        except CapturePermissionError as exc:
            logger.warning("Camera access denied: %s", exc)
            self.error = str(exc)
            raise
        except Exception as exc:
            logger.warning("Camera unavailable: %s", exc)
            self.error = CapturePermissionError().args[0]
            raise CapturePermissionError() from exc

        self._stream = stream
        try:
            self.mime_type = negotiate_mime_type(self.devices)
            recorder = self.devices.create_recorder(stream, self.mime_type)
            recorder.start()
        except BaseException:
            self._release_stream()
            raise

        self._recorder = recorder
        self.time_left = self.max_seconds
        self.state = "recording"
        self._countdown = asyncio.create_task(self._run_countdown())
        logger.info("Recording started mime_type=%s", self.mime_type)

    async def stop_recording(self) -> VideoClip | None:
        if self._stopping is None:
            if self.state != "recording":
                return self.clip
            self._stopping = asyncio.create_task(self._finish_recording())
        # Shielded so that the countdown being cancelled mid-stop cannot abort finalization.
        return await asyncio.shield(self._stopping)

    async def retake(self) -> None:
        if self.state == "recording":
            raise InvalidTransition("stop the recording before retaking")
        await self._wait_for_stop()

        self.clip = None
        self.thumbnail = None
        self._revoke_preview()
        self.time_left = self.max_seconds
        self.state = "idle"

    async def close(self) -> None:
        self._cancel_countdown()
        await self._wait_for_stop()
        recorder, self._recorder = self._recorder, None
        if recorder is not None and self.state == "recording":
            try:
                await recorder.stop()
            except Exception:
                logger.warning("Recorder did not stop cleanly during teardown", exc_info=True)
        self._release_stream()
        self._revoke_preview()
        self.clip = None
        self.thumbnail = None
        self.state = "idle"

    async def _run_countdown(self) -> None:
        while self.time_left > 0:
            await asyncio.sleep(self.tick_sec)
            self.time_left -= 1
        await self.stop_recording()

    async def _wait_for_stop(self) -> None:
        stopping = self._stopping
        if stopping is None:
            return
        try:
            await asyncio.shield(stopping)
        except Exception:
            logger.warning("Pending stop failed", exc_info=True)

    async def _finish_recording(self) -> VideoClip | None:
        try:
            return await self._finalize_clip()
        except BaseException:
            self.state = "idle"
            self.time_left = self.max_seconds
            raise
        finally:
            self._stopping = None

    async def _finalize_clip(self) -> VideoClip | None:
        self._cancel_countdown()
        recorder, self._recorder = self._recorder, None
        self.state = "stopped"
        try:
            data = await recorder.stop() if recorder is not None else b""
        finally:
            self._release_stream()

        if not data:
            logger.warning("Recorder produced an empty clip")
            self.state = "idle"
            self.time_left = self.max_seconds
            return None

        self.clip = VideoClip(
            data=data,
            mime_type=self.mime_type,
            duration_seconds=intro_video_duration(self.time_left, self.max_seconds),
        )
        self.preview_path = _write_preview(data, self.mime_type)
        self.thumbnail = await self._extract_thumbnail(self.clip)
        self.state = "ready"
        logger.info(
            "Recording finished duration=%ss bytes=%s thumbnail=%s",
            self.clip.duration_seconds,
            len(data),
            self.thumbnail is not None,
        )
        return self.clip

    async def _extract_thumbnail(self, clip: VideoClip) -> Thumbnail | None:
        if self.thumbnail_extractor is None:
            return None
        try:
            return await self.thumbnail_extractor(clip)
        except Exception:
            logger.warning("Thumbnail extraction failed; continuing without thumbnail", exc_info=True)
            return None

    def _cancel_countdown(self) -> None:
        task, self._countdown = self._countdown, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    def _release_stream(self) -> None:
        stream, self._stream = self._stream, None
        release_stream(stream)

    def _revoke_preview(self) -> None:
        path, self.preview_path = self.preview_path, None
        if path is not None:
            path.unlink(missing_ok=True)


def _write_preview(data: bytes, mime_type: str) -> Path:
    suffix = ".mp4" if "mp4" in mime_type else ".webm"
    with tempfile.NamedTemporaryFile(prefix="gatekeeper-preview-", suffix=suffix, delete=False) as handle:
        handle.write(data)
    return Path(handle.name)
