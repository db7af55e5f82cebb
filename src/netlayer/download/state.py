"""Download progress state and resume data."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from netlayer.types.models import TaskState


@dataclass(slots=True, frozen=True)
class ResumableData:
    """What is needed to continue an interrupted download.

    Attributes:
        url: URL the partial content was fetched from
        partial_path: File holding the bytes received so far
        offset: Number of bytes in ``partial_path``
        etag: Entity tag of the partial content, sent as ``If-Range``
    """

    url: str
    partial_path: Path
    offset: int
    etag: str | None = None

    @property
    def range_header(self) -> str:
        return f"bytes={self.offset}-"


@dataclass(slots=True, frozen=True)
class DownloadState:
    """Snapshot of a download task.

    ``total_bytes`` is None until the server announces a length.
    ``downloaded_file_path`` is set once the file has been moved to its
    destination. ``resumable_data`` is set when a transfer stopped early.
    """

    downloaded_bytes: int = 0
    total_bytes: int | None = None
    task_state: TaskState = TaskState.CREATED
    error: Exception | None = None
    downloaded_file_path: Path | None = None
    resumable_data: ResumableData | None = None

    @property
    def fraction_completed(self) -> float:
        if not self.total_bytes:
            return 0.0
        return min(self.downloaded_bytes / self.total_bytes, 1.0)

    @property
    def is_terminal(self) -> bool:
        return self.task_state.is_terminal
