"""
Upload-related domain models.
"""

import asyncio
import io
import os
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Self

_CHUNK_SIZE = 64 * 1024

UploadBody = bytes | Path | BinaryIO


def split_remote_dir(remote_dir: str) -> tuple[str, ...]:
    """
    Split a remote directory string into path segments.

    Leading and trailing slashes are ignored.

    Args:
        remote_dir: Remote directory such as "tmp" or "a/b/c".

    Returns:
        Directory segments, e.g. ("a", "b", "c").

    Raises:
        ValueError: If the directory is empty or contains an empty segment.
    """
    stripped = remote_dir.strip("/")
    if not stripped:
        msg = "remote dir must be defined"
        raise ValueError(msg)
    segments = tuple(stripped.split("/"))
    if any(segment == "" for segment in segments):
        msg = f"remote dir contains an empty segment: {remote_dir!r}"
        raise ValueError(msg)
    return segments


@dataclass(frozen=True, kw_only=True)
class UploadTarget:
    """
    A single resource upload.

    The body is replayable: every call to `open_content` yields the same
    bytes, which is what allows a request to be resent after reauthentication.
    Non-seekable streams are buffered in memory when the target is created.

    Attributes:
        remote_directory_path: Directory segments under the uploads root.
        remote_file_name: Name of the uploaded resource.
        content_type: Content-Type header sent with the upload.
        body: Raw bytes, a path to a local file, or a binary stream.
    """

    remote_directory_path: tuple[str, ...]
    remote_file_name: str
    content_type: str
    body: UploadBody = field(repr=False)
    _stream_start: int = field(default=0, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "remote_directory_path", tuple(self.remote_directory_path))
        if not self.remote_directory_path:
            msg = "remote dir must be defined"
            raise ValueError(msg)
        for segment in self.remote_directory_path:
            if not segment or "/" in segment:
                msg = f"Invalid remote directory segment: {segment!r}"
                raise ValueError(msg)
        if not self.remote_file_name or "/" in self.remote_file_name:
            msg = "remote file name must be defined and must not contain '/'"
            raise ValueError(msg)
        if not self.content_type:
            msg = "content type must be defined"
            raise ValueError(msg)

        if isinstance(self.body, bytes | bytearray):
            object.__setattr__(self, "body", bytes(self.body))
        elif isinstance(self.body, Path):
            if not self.body.is_file():
                msg = f"File for upload={self.body.absolute()} must exist!"
                raise ValueError(msg)
        elif isinstance(self.body, io.IOBase) or hasattr(self.body, "read"):
            if getattr(self.body, "seekable", lambda: False)():
                object.__setattr__(self, "_stream_start", self.body.tell())
            else:
                object.__setattr__(self, "body", self.body.read())
        else:
            msg = f"Unsupported upload body type: {type(self.body).__name__}"
            raise TypeError(msg)

    @classmethod
    def from_file(
        cls, path: Path | str, remote_dir: str, remote_file_name: str, content_type: str
    ) -> Self:
        return cls(
            remote_directory_path=split_remote_dir(remote_dir),
            remote_file_name=remote_file_name,
            content_type=content_type,
            body=Path(path),
        )

    @classmethod
    def from_stream(
        cls, stream: BinaryIO, remote_dir: str, remote_file_name: str, content_type: str
    ) -> Self:
        return cls(
            remote_directory_path=split_remote_dir(remote_dir),
            remote_file_name=remote_file_name,
            content_type=content_type,
            body=stream,
        )

    @classmethod
    def from_bytes(
        cls, data: bytes, remote_dir: str, remote_file_name: str, content_type: str
    ) -> Self:
        return cls(
            remote_directory_path=split_remote_dir(remote_dir),
            remote_file_name=remote_file_name,
            content_type=content_type,
            body=data,
        )

    def open_content(self) -> tuple[bytes | AsyncIterator[bytes], int]:
        """
        Produce a fresh request body for one send attempt.

        Returns:
            Tuple of (content, content length).
        """
        if isinstance(self.body, bytes):
            return self.body, len(self.body)
        if isinstance(self.body, Path):
            return _iter_file(self.body), self.body.stat().st_size

        stream = self.body
        end = stream.seek(0, os.SEEK_END)
        stream.seek(self._stream_start)
        return _iter_stream(stream, self._stream_start), end - self._stream_start


async def _iter_file(path: Path) -> AsyncIterator[bytes]:
    with path.open("rb") as f:
        while chunk := await asyncio.to_thread(f.read, _CHUNK_SIZE):
            yield chunk


async def _iter_stream(stream: BinaryIO, start: int) -> AsyncIterator[bytes]:
    stream.seek(start)
    while chunk := await asyncio.to_thread(stream.read, _CHUNK_SIZE):
        yield chunk
