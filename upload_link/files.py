"""
File values and file extraction for upload_link.

This module defines the :class:`UploadFile` marker used to tag values for
upload, and :func:`extract_files`, which walks an operation's variables and
collects every file-like leaf together with its path.
"""

from __future__ import annotations

import asyncio
import io
import mimetypes
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, AsyncGenerator, Callable, List, Mapping, Optional, Sequence, Set, Tuple, Union

import aiofiles
from pydantic import BaseModel, ConfigDict, Field, model_validator

PathElement = Union[str, int]
FilePath = Tuple[PathElement, ...]

DEFAULT_CONTENT_TYPE = "application/octet-stream"
DEFAULT_CHUNK_SIZE = 64 * 1024

# Read offset of a seekable stream, or the buffered content of one that is not
StreamOrigin = Union[int, bytes, None]


class UploadFile(BaseModel):
    """
    A file to upload as part of a GraphQL operation.

    Exactly one content source must be given.

    Examples:
        ```python
        avatar = UploadFile(path="avatar.png")
        notes = UploadFile(content=b"hello", filename="notes.txt")
        with open("report.pdf", "rb") as fh:
            report = UploadFile(file=fh, content_type="application/pdf")
        ```
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    content: Optional[bytes] = Field(default=None, description="In-memory file content")
    path: Optional[Path] = Field(default=None, description="File path, streamed on send")
    file: Optional[Any] = Field(default=None, description="Binary file object")
    filename: Optional[str] = Field(default=None, description="Custom filename")
    content_type: Optional[str] = Field(default=None, description="Content type")
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=1, description="Streaming chunk size")

    @model_validator(mode="after")
    def _check_single_source(self) -> "UploadFile":
        sources = [s for s in (self.content, self.path, self.file) if s is not None]
        if len(sources) != 1:
            raise ValueError("UploadFile requires exactly one of content, path or file")
        return self

    @property
    def name(self) -> str:
        """Filename sent with the file part."""
        if self.filename:
            return self.filename
        if self.path is not None:
            return self.path.name
        file_name = getattr(self.file, "name", None)
        if isinstance(file_name, str) and file_name:
            return os.path.basename(file_name)
        return "blob"

    @property
    def mime_type(self) -> str:
        """Content type sent with the file part."""
        return (
            self.content_type
            or mimetypes.guess_type(self.name)[0]
            or DEFAULT_CONTENT_TYPE
        )

    def form_value(self, origin: StreamOrigin = None) -> Any:
        """
        Value handed to the multipart encoder.

        Args:
            origin: For file objects, the offset to read from or the content
                already buffered from a non-seekable stream
        """
        if self.content is not None:
            return self.content
        if self.file is not None:
            if isinstance(origin, bytes):
                return origin
            return stream_chunks(self.file, origin, self.chunk_size)
        return self._file_sender()

    async def _file_sender(self) -> AsyncGenerator[bytes, None]:
        """Stream the file from disk in chunks."""
        async with aiofiles.open(self.path, "rb") as f:
            while True:
                chunk = await f.read(self.chunk_size)
                if not chunk:
                    break
                yield chunk


def is_seekable(stream: Any) -> bool:
    """Whether a stream supports ``tell`` and ``seek``."""
    seekable = getattr(stream, "seekable", None)
    if not callable(seekable):
        return False
    try:
        return bool(seekable())
    except (OSError, ValueError):
        return False


async def stream_chunks(
    stream: Any,
    offset: Optional[int] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> AsyncGenerator[bytes, None]:
    """
    Stream a binary file object in chunks.

    Reading starts at ``offset`` and the stream is moved back there once the
    chunks are consumed, so the same stream can be sent again. Blocking reads
    run in the default executor.
    """
    loop = asyncio.get_running_loop()
    if offset is not None:
        stream.seek(offset)
    try:
        while True:
            chunk = await loop.run_in_executor(None, stream.read, chunk_size)
            if not chunk:
                break
            yield bytes(chunk)
    finally:
        if offset is not None and not getattr(stream, "closed", False):
            stream.seek(offset)


def is_extractable_file(value: Any) -> bool:
    """Default predicate deciding whether a value is a file to upload."""
    if isinstance(value, UploadFile):
        return True
    return isinstance(value, io.IOBase) and not isinstance(value, io.TextIOBase)


@dataclass(frozen=True)
class ExtractedFile:
    """A file found in a value tree and where it was found."""

    path: FilePath
    file: Any


@dataclass
class ExtractedFiles:
    """Result of :func:`extract_files`."""

    clone: Any
    files: List[ExtractedFile] = field(default_factory=list)


def extract_files(
    value: Any,
    path: Sequence[PathElement] = (),
    is_file: Callable[[Any], bool] = is_extractable_file,
) -> ExtractedFiles:
    """
    Collect file values from an arbitrarily nested value.

    Mappings, lists and tuples are copied into ``clone`` with every file leaf
    replaced by ``None``; the input itself is left untouched. Files are
    reported in depth-first order with paths prefixed by ``path``.

    Args:
        value: Value tree to search (usually operation variables)
        path: Path prefix for every reported file
        is_file: Predicate recognising file values

    Returns:
        ExtractedFiles with the file-free clone and the found files
    """
    files: List[ExtractedFile] = []
    active: Set[int] = set()

    def recurse(node: Any, node_path: FilePath) -> Any:
        if is_file(node):
            files.append(ExtractedFile(path=node_path, file=node))
            return None

        if not isinstance(node, (Mapping, list, tuple)):
            return node

        node_id = id(node)
        if node_id in active:
            # circular; the serializer rejects it later
            return node

        active.add(node_id)
        try:
            if isinstance(node, Mapping):
                return {key: recurse(item, node_path + (key,)) for key, item in node.items()}
            return [recurse(item, node_path + (index,)) for index, item in enumerate(node)]
        finally:
            active.discard(node_id)

    clone = recurse(value, tuple(path))
    return ExtractedFiles(clone=clone, files=files)


def path_to_string(path: Sequence[PathElement]) -> str:
    """Render a file path the way the multipart ``map`` field expects it."""
    return ".".join(str(element) for element in path)
