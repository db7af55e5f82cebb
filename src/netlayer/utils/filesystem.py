"""Local file-system collaborator.

Every operation runs in a worker thread so disk I/O never blocks the event
loop.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import tempfile
from collections.abc import Sequence
from pathlib import Path

logger = logging.getLogger(__name__)


class LocalFileSystem:
    """``FileSystem`` backed by the local disk."""

    async def write(self, data: bytes, path: Path) -> None:
        """Write ``data`` to ``path`` atomically, replacing any existing content.

        The bytes go to a temporary sibling first, which is then renamed over
        ``path``; readers never observe a partially written file.
        """

        def _write() -> None:
            with tempfile.NamedTemporaryFile(dir=path.parent, prefix=f".{path.name}.", delete=False) as handle:
                _ = handle.write(data)
            try:
                os.replace(handle.name, path)
            except OSError:
                Path(handle.name).unlink(missing_ok=True)
                raise

        await asyncio.to_thread(_write)

    async def append(self, data: bytes, path: Path) -> None:
        """Append ``data`` to ``path``, creating the file if needed."""

        def _append() -> None:
            with path.open("ab") as handle:
                _ = handle.write(data)

        await asyncio.to_thread(_append)

    async def read(self, path: Path) -> bytes:
        return await asyncio.to_thread(path.read_bytes)

    async def create_directory(self, path: Path) -> None:
        """Create ``path`` and missing parents; existing directories are fine."""
        await asyncio.to_thread(path.mkdir, parents=True, exist_ok=True)

    async def move_item(self, source: Path, destination: Path) -> None:
        _ = await asyncio.to_thread(shutil.move, source, destination)

    async def remove_item(self, path: Path) -> None:
        """Remove a file or a whole directory tree."""

        def _remove() -> None:
            if path.is_dir():
                shutil.rmtree(path)
            else:
                path.unlink()

        await asyncio.to_thread(_remove)

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(path.exists)

    async def list_directory(self, path: Path) -> Sequence[Path]:
        return await asyncio.to_thread(lambda: sorted(path.iterdir()))

    async def size(self, path: Path) -> int:
        return (await asyncio.to_thread(path.stat)).st_size
