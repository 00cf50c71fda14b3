# File: webdl/storage.py
"""webdl.storage: persistence of downloads under a destination directory.

Files are written to a uniquely named ``*.webdl.tmp`` sibling first and moved
into place once complete, so an interrupted run never leaves a partial file
under its final name.
"""

from __future__ import annotations

import asyncio
import base64
import os
import secrets
import time
from pathlib import Path
from typing import Callable, Optional, Union

import click
from aiohttp import StreamReader

from webdl.crawler.models import PageRef
from webdl.errors import UnsafePathError
from webdl.logger import logger
from webdl.templating import TemplateRenderer

__all__ = ["DownloadStore", "TMP_SUFFIX"]

TMP_SUFFIX = ".webdl.tmp"
_CHUNK_SIZE = 64 * 1024
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def _base36(n: int) -> str:
    out = ""
    while True:
        n, r = divmod(n, 36)
        out = _DIGITS[r] + out
        if n == 0:
            return out


class DownloadStore:
    """Decides where downloads go, whether they are needed, and writes them."""

    def __init__(
        self,
        directory: Union[str, Path],
        renderer: TemplateRenderer,
        *,
        dry_run: bool = False,
        echo: Optional[Callable[[str], None]] = None,
    ) -> None:
        self.directory = Path(directory)
        self.renderer = renderer
        self.dry_run = dry_run
        self.echo = echo or click.echo

    def destination(self, ref: PageRef) -> Path:
        """Render the download template for *ref*; the result must stay inside the directory."""
        relative = self.renderer.download_path(ref)
        root = self.directory.resolve()
        dest = (root / relative).resolve()
        if dest == root or root not in dest.parents:
            raise UnsafePathError(f"download path {relative!r} for {ref.url} escapes {self.directory}")
        return dest

    def should_download(self, ref: PageRef) -> bool:
        try:
            dest = self.destination(ref)
        except UnsafePathError as exc:
            if self.dry_run:
                logger.warning("%s", exc)
                return False
            # save() raises it again, failing only this download
            return True
        if dest.exists():
            logger.debug("Skipping %s: %s exists", ref.url, dest)
            return False
        if self.dry_run:
            self.echo(f"Page: {ref.referer}\nDownload: {ref.url}\nDest: {dest}")
            return False
        return True

    def _tmp_path(self, dest: Path) -> Path:
        stamp = _base36(time.time_ns())
        rnd = base64.urlsafe_b64encode(secrets.token_bytes(24)).decode("ascii").rstrip("=")
        return dest.with_name(f"{dest.name}.{stamp}-{rnd}{TMP_SUFFIX}")

    async def save(self, ref: PageRef, stream: StreamReader) -> Path:
        dest = self.destination(ref)
        dest.parent.mkdir(parents=True, exist_ok=True, mode=0o750)
        tmp = self._tmp_path(dest)
        try:
            with tmp.open("wb") as fh:
                async for chunk in stream.iter_chunked(_CHUNK_SIZE):
                    await asyncio.to_thread(fh.write, chunk)
            os.replace(tmp, dest)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Saved %s -> %s", ref.url, dest)
        return dest

    def cleanup(self) -> int:
        """Remove leftover temporary files; return how many were removed."""
        if not self.directory.is_dir():
            return 0
        removed = 0
        for path in self.directory.rglob(f"*{TMP_SUFFIX}"):
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
        if removed:
            logger.info("Removed %d temporary file(s) from %s", removed, self.directory)
        return removed
