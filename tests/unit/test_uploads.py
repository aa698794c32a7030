from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

from fakes import RecordingAssetStore
from gatekeeper.core.uploads import AssetUploadCoordinator, video_extension
from gatekeeper.errors import UploadError
from gatekeeper.types import ResumeFile, Thumbnail, VideoClip

RESUME = ResumeFile(filename="cv.pdf", content_type="application/pdf", data=b"%PDF-1.4 body")
CLIP = VideoClip(data=b"video-bytes", mime_type="video/webm;codecs=vp9", duration_seconds=6)
THUMB = Thumbnail(data=b"jpeg-bytes")


def _coordinator(tmp_path: Path, **kwargs) -> tuple[AssetUploadCoordinator, RecordingAssetStore]:
    store = RecordingAssetStore(tmp_path, base_url="http://assets.local", chunk_size=5, **kwargs)
    return AssetUploadCoordinator(store), store


def test_video_extension_follows_container() -> None:
    assert video_extension("video/mp4;codecs=h264") == "mp4"
    assert video_extension("video/webm;codecs=vp9") == "webm"
    assert video_extension("video/webm") == "webm"


def test_resume_upload_uses_candidate_path_and_reports_progress(tmp_path: Path) -> None:
    coordinator, _ = _coordinator(tmp_path)
    progress: list[float] = []

    url = asyncio.run(coordinator.upload_resume("acme", "c1", RESUME, on_progress=progress.append))

    assert url == "http://assets.local/acme/candidates/c1/resume_cv.pdf"
    assert progress[-1] == 100.0
    assert progress == sorted(progress)
    assert len(progress) == 3


def test_resume_failure_is_fatal(tmp_path: Path) -> None:
    coordinator, _ = _coordinator(tmp_path, fail_on={"resume_"})
    with pytest.raises(UploadError) as excinfo:
        asyncio.run(coordinator.upload_resume("acme", "c1", RESUME, on_progress=lambda value: None))
    assert excinfo.value.asset == "resume"


def test_video_failure_is_fatal(tmp_path: Path) -> None:
    coordinator, _ = _coordinator(tmp_path, fail_on={"intro_video"})
    with pytest.raises(UploadError) as excinfo:
        asyncio.run(coordinator.upload_media("acme", "c1", CLIP, THUMB))
    assert excinfo.value.asset == "video"


def test_media_upload_writes_video_then_thumbnail(tmp_path: Path) -> None:
    coordinator, store = _coordinator(tmp_path)

    urls = asyncio.run(coordinator.upload_media("acme", "c1", CLIP, THUMB))

    assert urls.video_url == "http://assets.local/acme/candidates/c1/intro_video.webm"
    assert urls.thumbnail_url == "http://assets.local/acme/candidates/c1/thumbnail.jpg"
    assert store.events == ["upload:intro_video.webm", "upload:thumbnail.jpg"]


def test_thumbnail_failure_is_swallowed(tmp_path: Path) -> None:
    coordinator, _ = _coordinator(tmp_path, fail_on={"thumbnail"})

    urls = asyncio.run(coordinator.upload_media("acme", "c1", CLIP, THUMB))

    assert urls.video_url.endswith("intro_video.webm")
    assert urls.thumbnail_url == ""


def test_no_video_means_no_media_uploads(tmp_path: Path) -> None:
    coordinator, store = _coordinator(tmp_path)

    urls = asyncio.run(coordinator.upload_media("acme", "c1", None, THUMB))

    assert urls.video_url == ""
    assert urls.thumbnail_url == ""
    assert store.events == []
