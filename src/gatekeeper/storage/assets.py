from __future__ import annotations

import asyncio
import logging
from pathlib import Path, PurePosixPath
from typing import BinaryIO
from urllib.parse import quote, unquote

from gatekeeper.config import Settings, get_settings
from gatekeeper.interfaces import ProgressCallback

logger = logging.getLogger(__name__)


class LocalAssetStore:
    """Filesystem-backed binary store whose URLs are served under ``asset_base_url``."""

    def __init__(
        self,
        root: Path | None = None,
        *,
        base_url: str | None = None,
        chunk_size: int | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.root = Path(root or settings.asset_dir).expanduser().resolve()
        self.base_url = (base_url if base_url is not None else settings.asset_base_url).rstrip("/")
        self.chunk_size = max(1, chunk_size or settings.upload_chunk_size)

    async def upload(self, path: str, data: bytes, *, content_type: str) -> str:
        target = self._resolve(path)
        await asyncio.to_thread(self._write_all, target, data)
        logger.info("Stored asset path=%s bytes=%s content_type=%s", path, len(data), content_type)
        return self.url_for(path)

    async def upload_with_progress(
        self,
        path: str,
        data: bytes,
        *,
        content_type: str,
        on_progress: ProgressCallback,
    ) -> str:
        target = self._resolve(path)
        total = len(data)
        partial = target.with_name(target.name + ".part")

        handle = await asyncio.to_thread(self._open_partial, partial)
        try:
            with handle:
                if total == 0:
                    on_progress(100.0)
                transferred = 0
                while transferred < total:
                    chunk = data[transferred : transferred + self.chunk_size]
                    await asyncio.to_thread(handle.write, chunk)
                    transferred += len(chunk)
                    on_progress(transferred / total * 100)
            await asyncio.to_thread(partial.replace, target)
        except BaseException:
            partial.unlink(missing_ok=True)
            raise

        logger.info("Stored asset path=%s bytes=%s content_type=%s", path, total, content_type)
        return self.url_for(path)

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{quote(_clean_path(path))}"

    def path_for_url(self, url: str) -> Path | None:
        prefix = f"{self.base_url}/"
        if not url.startswith(prefix):
            return None
        return self._resolve(unquote(url[len(prefix) :]))

    def read(self, url_or_path: str) -> bytes:
        target = self.path_for_url(url_or_path) or self._resolve(url_or_path)
        return target.read_bytes()

    def _resolve(self, path: str) -> Path:
        target = (self.root / _clean_path(path)).resolve()
        if not target.is_relative_to(self.root):
            raise ValueError(f"asset path escapes store root: {path}")
        return target

    @staticmethod
    def _open_partial(partial: Path) -> BinaryIO:
        partial.parent.mkdir(parents=True, exist_ok=True)
        return partial.open("wb")

    @staticmethod
    def _write_all(target: Path, data: bytes) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)


def _clean_path(path: str) -> str:
    parts = [part for part in PurePosixPath(path.replace("\\", "/")).parts if part not in {"", "/", "."}]
    if not parts or ".." in parts:
        raise ValueError(f"invalid asset path: {path!r}")
    return "/".join(parts)
