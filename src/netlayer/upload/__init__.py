"""Uploads: multipart encoding, task handles and the upload manager."""

from netlayer.upload.manager import UploadAPIManager
from netlayer.upload.multipart import (
    BodyPart,
    DataStreamReadFailed,
    DataStreamWriteFailed,
    EncodingError,
    FileAlreadyExists,
    InvalidFileName,
    InvalidFileURL,
    MissingFileSize,
    MultipartFormData,
    MultipartFormDataEncoder,
)
from netlayer.upload.task import (
    DataUpload,
    DataUploadable,
    FileUpload,
    FileUploadable,
    MultipartUpload,
    Uploadable,
    UploadState,
    UploadTask,
    UploadType,
)

__all__ = [
    "BodyPart",
    "DataStreamReadFailed",
    "DataStreamWriteFailed",
    "DataUpload",
    "DataUploadable",
    "EncodingError",
    "FileAlreadyExists",
    "FileUpload",
    "FileUploadable",
    "InvalidFileName",
    "InvalidFileURL",
    "MissingFileSize",
    "MultipartFormData",
    "MultipartFormDataEncoder",
    "MultipartUpload",
    "UploadAPIManager",
    "UploadState",
    "UploadTask",
    "UploadType",
    "Uploadable",
]
