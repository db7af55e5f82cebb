"""Downloads: task handles, progress state and the download manager."""

from netlayer.download.manager import DownloadAPIManager, destination_file_name
from netlayer.download.state import DownloadState, ResumableData
from netlayer.download.task import DownloadTask

__all__ = [
    "DownloadAPIManager",
    "DownloadState",
    "DownloadTask",
    "ResumableData",
    "destination_file_name",
]
