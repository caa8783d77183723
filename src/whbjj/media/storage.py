"""Local storage for uploaded videos and thumbnails.

Files land under ``<upload_dir>/<kind>/`` keyed ``{epoch_ms}-{basename}`` and
are served by the static mount at ``upload_url_prefix``.
"""

from __future__ import annotations

import time
from pathlib import Path, PureWindowsPath

import structlog
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request

logger = structlog.get_logger()

MEDIA_KINDS = ("videos", "thumbnails")


def storage_key(filename: str | None, now_ms: int | None = None) -> str:
    """Build ``{epoch_ms}-{basename}``, dropping any client-supplied directories."""
    # PureWindowsPath splits on both "/" and "\\".
    basename = PureWindowsPath(filename or "").name.strip() or "upload"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{now_ms}-{basename}"


class MediaStorage:
    """Writes uploads below a root directory and maps them to public URLs."""

    def __init__(self, root: str | Path, url_prefix: str = "/uploads") -> None:
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def url_for(self, kind: str, key: str) -> str:
        return f"{self.url_prefix}/{kind}/{key}"

    def _write(self, kind: str, key: str, data: bytes) -> Path:
        directory = self.root / kind
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / key
        path.write_bytes(data)
        return path

    async def save(self, kind: str, filename: str | None, data: bytes) -> tuple[str, str]:
        """
        Store an upload.

        Returns:
            Tuple of (key, public URL).

        Raises:
            ValueError: If ``kind`` is not a known media kind.
        """
        if kind not in MEDIA_KINDS:
            msg = f"Unknown media kind: {kind}"
            raise ValueError(msg)
        key = storage_key(filename)
        path = await run_in_threadpool(self._write, kind, key, data)
        logger.info("media_saved", kind=kind, key=key, size=len(data), path=str(path))
        return key, self.url_for(kind, key)


def get_storage(request: Request) -> MediaStorage:
    """FastAPI dependency: the app's media storage."""
    return request.app.state.storage
