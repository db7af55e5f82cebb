"""Multipart form-data composition and encoding.

Parts are written between ``--<boundary>`` lines, each preceded by its
``Content-Disposition`` (and optional ``Content-Type``) header and followed
by CRLF; the document ends with ``--<boundary>--``. Part contents are read
through a bounded buffer, so file-backed parts of any size can be encoded to
disk without loading them into memory.
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Final

from netlayer.core.errors import NetworkingError

logger = logging.getLogger(__name__)

CRLF: Final[bytes] = b"\r\n"
DEFAULT_BUFFER_SIZE: Final[int] = 1024
DEFAULT_MIME_TYPE: Final[str] = "application/octet-stream"


class EncodingError(NetworkingError):
    """Base exception for multipart composition and encoding failures."""

    retryable: ClassVar[bool] = False


class InvalidFileURL(EncodingError):
    """Raised when a path does not point to a regular file."""

    def __init__(self, path: Path) -> None:
        """Initialize InvalidFileURL.

        Args:
            path: Offending path
        """
        super().__init__(f"Not a regular file: {path}", {"path": str(path)})
        self.path: Path = path


class InvalidFileName(EncodingError):
    """Raised when a file part has no usable file name or extension."""

    def __init__(self, path: Path) -> None:
        """Initialize InvalidFileName.

        Args:
            path: Offending path
        """
        super().__init__(f"Invalid file name for {path}", {"path": str(path)})
        self.path: Path = path


class MissingFileSize(EncodingError):
    """Raised when the size of a file part cannot be determined."""

    def __init__(self, path: Path) -> None:
        """Initialize MissingFileSize.

        Args:
            path: Offending path
        """
        super().__init__(f"Cannot determine size of {path}", {"path": str(path)})
        self.path: Path = path


class DataStreamReadFailed(EncodingError):
    """Raised when reading part content fails midway."""

    def __init__(self, reason: str) -> None:
        """Initialize DataStreamReadFailed.

        Args:
            reason: Underlying I/O failure
        """
        super().__init__(f"Failed to read part data: {reason}")


class DataStreamWriteFailed(EncodingError):
    """Raised when writing the encoded document fails."""

    def __init__(self, path: Path, reason: str) -> None:
        """Initialize DataStreamWriteFailed.

        Args:
            path: Destination being written
            reason: Underlying I/O failure
        """
        super().__init__(f"Failed to write {path}: {reason}", {"path": str(path)})
        self.path: Path = path


class FileAlreadyExists(EncodingError):
    """Raised when the encoding destination already exists."""

    def __init__(self, path: Path) -> None:
        """Initialize FileAlreadyExists.

        Args:
            path: Existing destination
        """
        super().__init__(f"File already exists: {path}", {"path": str(path)})
        self.path: Path = path


def guess_mime_type(path: Path) -> str:
    """Guess a MIME type from a file name, defaulting to octet-stream."""
    return mimetypes.guess_type(path.name)[0] or DEFAULT_MIME_TYPE


@dataclass(slots=True, frozen=True)
class BodyPart:
    """One named part of a form, backed by bytes or by a file."""

    name: str
    size: int
    file_name: str | None = None
    mime_type: str | None = None
    data: bytes | None = None
    path: Path | None = None

    def content_headers(self) -> dict[str, str]:
        disposition = f'form-data; name="{self.name}"'
        if self.file_name is not None:
            disposition += f'; filename="{self.file_name}"'
        headers = {"Content-Disposition": disposition}
        if self.mime_type is not None:
            headers["Content-Type"] = self.mime_type
        return headers

    def chunks(self, buffer_size: int) -> Iterator[bytes]:
        """Yield the part content in slices of at most ``buffer_size`` bytes.

        Raises:
            DataStreamReadFailed: If the backing file cannot be read
        """
        if self.data is not None:
            for start in range(0, len(self.data), buffer_size):
                yield self.data[start : start + buffer_size]
            return
        if self.path is None:
            return
        try:
            with self.path.open("rb") as handle:
                while chunk := handle.read(buffer_size):
                    yield chunk
        except OSError as exc:
            raise DataStreamReadFailed(str(exc)) from exc


class MultipartFormData:
    """Ordered collection of form parts sharing one boundary."""

    def __init__(self, boundary: str | None = None) -> None:
        """Initialize MultipartFormData.

        Args:
            boundary: Boundary token (a random one by default)
        """
        self.boundary: str = boundary or f"netlayer.boundary.{uuid.uuid4().hex}"
        self._parts: list[BodyPart] = []

    @property
    def body_parts(self) -> tuple[BodyPart, ...]:
        return tuple(self._parts)

    @property
    def size(self) -> int:
        """Total size of the part contents, excluding boundaries and headers."""
        return sum(part.size for part in self._parts)

    @property
    def content_type(self) -> str:
        """Value of the ``Content-Type`` header for the encoded document."""
        return f"multipart/form-data; boundary={self.boundary}"

    def append(
        self,
        data: bytes,
        name: str,
        file_name: str | None = None,
        mime_type: str | None = None,
    ) -> None:
        """Add an in-memory part."""
        self._parts.append(
            BodyPart(name=name, size=len(data), file_name=file_name, mime_type=mime_type, data=data)
        )

    def append_file(
        self,
        path: Path,
        name: str,
        file_name: str | None = None,
        mime_type: str | None = None,
    ) -> None:
        """Add a part streamed from a file.

        Args:
            path: File to attach
            name: Form field name
            file_name: Name announced to the server (the file's name by default)
            mime_type: Content type (guessed from the file name by default)

        Raises:
            InvalidFileName: If no file name is available or the file has no extension
            InvalidFileURL: If ``path`` is not a regular file
            MissingFileSize: If the file size cannot be read
        """
        file_name = file_name or path.name
        if not file_name or not path.suffix:
            raise InvalidFileName(path)
        if not path.is_file():
            raise InvalidFileURL(path)
        try:
            size = path.stat().st_size
        except OSError as exc:
            raise MissingFileSize(path) from exc
        self._parts.append(
            BodyPart(
                name=name,
                size=size,
                file_name=file_name,
                mime_type=mime_type or guess_mime_type(path),
                path=path,
            )
        )


class MultipartFormDataEncoder:
    """Serializes ``MultipartFormData`` to bytes or to a file."""

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        """Initialize MultipartFormDataEncoder.

        Args:
            buffer_size: Maximum bytes read from a part at a time
        """
        self.buffer_size: int = buffer_size

    def iter_encode(self, form: MultipartFormData) -> Iterator[bytes]:
        """Yield the encoded document piece by piece."""
        boundary = form.boundary.encode()
        for part in form.body_parts:
            yield b"--" + boundary + CRLF
            headers = sorted(part.content_headers().items())
            yield CRLF.join(f"{name}: {value}".encode() for name, value in headers)
            yield CRLF + CRLF
            yield from part.chunks(self.buffer_size)
            yield CRLF
        yield b"--" + boundary + b"--" + CRLF

    def encode(self, form: MultipartFormData) -> bytes:
        """Encode the whole document in memory.

        Raises:
            DataStreamReadFailed: If a file-backed part cannot be read
        """
        return b"".join(self.iter_encode(form))

    def encode_to_file(self, form: MultipartFormData, path: Path) -> None:
        """Stream the encoded document into a new file.

        Args:
            form: Form to encode
            path: Destination; must not exist yet

        Raises:
            FileAlreadyExists: If ``path`` already exists
            DataStreamWriteFailed: If the destination cannot be written
            DataStreamReadFailed: If a file-backed part cannot be read
        """
        try:
            handle = path.open("xb")
        except FileExistsError as exc:
            raise FileAlreadyExists(path) from exc
        except OSError as exc:
            raise DataStreamWriteFailed(path, str(exc)) from exc

        try:
            with handle:
                for chunk in self.iter_encode(form):
                    _ = handle.write(chunk)
        except OSError as exc:
            path.unlink(missing_ok=True)
            raise DataStreamWriteFailed(path, str(exc)) from exc
        except EncodingError:
            path.unlink(missing_ok=True)
            raise
        logger.debug("Encoded %d form parts to %s", len(form.body_parts), path)
