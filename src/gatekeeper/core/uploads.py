from __future__ import annotations

import logging
from dataclasses import dataclass

from gatekeeper.errors import UploadError
from gatekeeper.interfaces import AssetStore, ProgressCallback
from gatekeeper.types import ResumeFile, Thumbnail, VideoClip

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class MediaUrls:
    video_url: str = ""
    thumbnail_url: str = ""


def video_extension(mime_type: str) -> str:
    return "mp4" if "mp4" in mime_type else "webm"


def candidate_prefix(org_id: str, candidate_id: str) -> str:
    return f"{org_id}/candidates/{candidate_id}"


class AssetUploadCoordinator:
    def __init__(self, store: AssetStore):
        self.store = store

    async def upload_resume(
        self,
        org_id: str,
        candidate_id: str,
        resume: ResumeFile,
        on_progress: ProgressCallback,
    ) -> str:
        path = f"{candidate_prefix(org_id, candidate_id)}/resume_{resume.filename}"
        try:
            return await self.store.upload_with_progress(
                path,
                resume.data,
                content_type=resume.content_type,
                on_progress=on_progress,
            )
        except Exception as exc:
            logger.error("Resume upload failed candidate_id=%s: %s", candidate_id, exc)
            raise UploadError("resume", str(exc)) from exc

    async def upload_video(self, org_id: str, candidate_id: str, clip: VideoClip | None) -> str:
        if clip is None or not clip.data:
            return ""
        path = f"{candidate_prefix(org_id, candidate_id)}/intro_video.{video_extension(clip.mime_type)}"
        try:
            return await self.store.upload(path, clip.data, content_type=clip.mime_type)
        except Exception as exc:
            logger.error("Video upload failed candidate_id=%s: %s", candidate_id, exc)
            raise UploadError("video", str(exc)) from exc

    async def upload_thumbnail(self, org_id: str, candidate_id: str, thumbnail: Thumbnail | None) -> str:
        if thumbnail is None or not thumbnail.data:
            return ""
        path = f"{candidate_prefix(org_id, candidate_id)}/thumbnail.jpg"
        try:
            return await self.store.upload(path, thumbnail.data, content_type=thumbnail.content_type)
        except Exception as exc:
            logger.warning("Thumbnail upload failed candidate_id=%s: %s", candidate_id, exc)
            return ""

    async def upload_media(
        self,
        org_id: str,
        candidate_id: str,
        clip: VideoClip | None,
        thumbnail: Thumbnail | None,
    ) -> MediaUrls:
        video_url = await self.upload_video(org_id, candidate_id, clip)
        thumbnail_url = await self.upload_thumbnail(org_id, candidate_id, thumbnail) if video_url else ""
        return MediaUrls(video_url=video_url, thumbnail_url=thumbnail_url)
