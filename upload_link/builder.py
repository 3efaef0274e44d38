"""
Request body construction.

The :class:`RequestBuilder` turns an :class:`~upload_link.models.Operation`
and its resolved options into a :class:`PreparedRequest`. Operations whose
variables hold files are encoded following the GraphQL multipart request
convention: an ``operations`` field with file leaves set to ``null``, a
``map`` field pointing each indexed file part at its paths, and one part per
file.
"""

from __future__ import annotations

import json
import logging
import mimetypes
import os
import weakref
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Optional, Sequence, Tuple, Union

import aiohttp
from graphql.language import Node, print_ast
from multidict import CIMultiDict

from .exceptions import QueryPrintError, SerializationError
from .files import (
    DEFAULT_CONTENT_TYPE,
    ExtractedFile,
    StreamOrigin,
    UploadFile,
    extract_files,
    is_extractable_file,
    is_seekable,
    path_to_string,
    stream_chunks,
)
from .models import Operation
from .options import EffectiveOptions, EncodingPolicy, merge_headers

logger = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"


def print_query(query: Union[Node, str]) -> str:
    """
    Print an operation document to its text form.

    Strings are taken to be printed already and are returned unchanged.

    Raises:
        QueryPrintError: If the document cannot be printed
    """
    if isinstance(query, str):
        return query
    if not isinstance(query, Node):
        raise QueryPrintError(f"Cannot print query of type {type(query).__name__}")
    try:
        return print_ast(query)
    except Exception as e:
        raise QueryPrintError(f"Unable to print query: {e}", parse_error=e) from e


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def _file_stream(file: Any) -> Optional[Any]:
    """Return the caller-owned stream behind a file value, if any."""
    if isinstance(file, UploadFile):
        return file.file
    return file if callable(getattr(file, "read", None)) else None


def _file_part(file: Any, origin: StreamOrigin = None) -> Tuple[Any, str, str]:
    """Return (value, filename, content type) for a file part."""
    if isinstance(file, UploadFile):
        return file.form_value(origin), file.name, file.mime_type

    file_name = getattr(file, "name", None)
    filename = os.path.basename(file_name) if isinstance(file_name, str) and file_name else "blob"
    content_type = mimetypes.guess_type(filename)[0] or DEFAULT_CONTENT_TYPE
    if _file_stream(file) is None:
        return file, filename, content_type
    # never hand the caller's stream to aiohttp, which may close it after sending
    value = origin if isinstance(origin, bytes) else stream_chunks(file, origin)
    return value, filename, content_type


@dataclass(frozen=True)
class JSONBody:
    """Request body for operations without files."""

    operations: str
    content_type: ClassVar[str] = JSON_CONTENT_TYPE

    def to_payload(self) -> bytes:
        return self.operations.encode("utf-8")


@dataclass(frozen=True)
class MultipartBody:
    """Request body following the GraphQL multipart request convention."""

    operations: str
    map: Dict[str, List[str]]
    parts: List[Tuple[str, Any]]
    origins: Dict[str, StreamOrigin] = field(default_factory=dict)

    @property
    def map_json(self) -> str:
        return _dumps(self.map)

    def to_payload(self) -> aiohttp.FormData:
        """
        Build the multipart form.

        The returned form sets its own ``multipart/form-data`` content type,
        boundary included, when it is sent. A new form is built on every call
        and file streams are read from their recorded origin, so the body can
        be sent more than once.
        """
        form = aiohttp.FormData()
        form.add_field("operations", self.operations, content_type=JSON_CONTENT_TYPE)
        form.add_field("map", self.map_json, content_type=JSON_CONTENT_TYPE)
        for field_name, file in self.parts:
            value, filename, content_type = _file_part(file, self.origins.get(field_name))
            form.add_field(field_name, value, filename=filename, content_type=content_type)
        return form


WireBody = Union[JSONBody, MultipartBody]


@dataclass(frozen=True)
class PreparedRequest:
    """Encoded body plus the headers to send with it."""

    body: WireBody
    headers: Dict[str, str]

    @property
    def is_multipart(self) -> bool:
        return isinstance(self.body, MultipartBody)


class RequestBuilder:
    """
    Build wire bodies for operations.

    Examples:
        ```python
        builder = RequestBuilder()
        prepared = builder.build(operation, resolve_options(LinkOptions()))
        if prepared.is_multipart:
            print(prepared.body.map)
        ```
    """

    def __init__(
        self,
        encoding: EncodingPolicy = EncodingPolicy.AUTO,
        printer: Callable[[Any], str] = print_query,
        is_file: Callable[[Any], bool] = is_extractable_file,
    ) -> None:
        """
        Initialize request builder.

        Args:
            encoding: Body encoding policy
            printer: Turns the operation query into text
            is_file: Predicate recognising file values in variables
        """
        self.encoding = EncodingPolicy(encoding)
        self.printer = printer
        self.is_file = is_file
        # where each caller-owned stream was first read from
        self._origins: "weakref.WeakKeyDictionary[Any, StreamOrigin]" = weakref.WeakKeyDictionary()

    def build(self, operation: Operation, options: EffectiveOptions) -> PreparedRequest:
        """
        Encode an operation.

        Raises:
            QueryPrintError: If the query cannot be printed
            SerializationError: If the payload cannot be serialized
        """
        printed = self._print(operation.query)

        try:
            extracted = extract_files(operation.variables or {}, path=("variables",), is_file=self.is_file)
            record = self._operations_record(operation, printed, extracted.clone, options)
            operations = _dumps(record)
        except (TypeError, ValueError, RecursionError) as e:
            raise SerializationError(
                f"Network request failed. Payload is not serializable: {e}",
                parse_error=e,
            ) from e

        if extracted.files or self.encoding is EncodingPolicy.MULTIPART:
            return self._multipart(operations, extracted.files, options.headers)

        headers = options.headers
        if "content-type" not in CIMultiDict(headers):
            headers = merge_headers(headers, {"content-type": JSON_CONTENT_TYPE})
        return PreparedRequest(body=JSONBody(operations=operations), headers=headers)

    def _print(self, query: Any) -> str:
        try:
            return self.printer(query)
        except QueryPrintError:
            raise
        except Exception as e:
            raise QueryPrintError(f"Unable to print query: {e}", parse_error=e) from e

    @staticmethod
    def _operations_record(
        operation: Operation,
        printed: str,
        variables: Any,
        options: EffectiveOptions,
    ) -> Dict[str, Any]:
        record: Dict[str, Any] = {}
        if options.include_query:
            record["query"] = printed
        if operation.operation_name:
            record["operationName"] = operation.operation_name
        if operation.variables:
            record["variables"] = variables
        if operation.extensions and options.include_extensions:
            record["extensions"] = operation.extensions
        return record

    def _stream_origin(self, stream: Any) -> StreamOrigin:
        """
        Return the origin a stream is read from on every send.

        Seekable streams are read from the offset they had when first seen.
        Other streams can only be read once, so their content is buffered.

        Raises:
            SerializationError: If the stream cannot be read
        """
        try:
            origin = self._origins.get(stream)
        except TypeError:
            origin = None
        if origin is not None:
            return origin

        try:
            origin = stream.tell() if is_seekable(stream) else bytes(stream.read())
        except (OSError, ValueError) as e:
            raise SerializationError(f"Unable to read upload file: {e}", parse_error=e) from e

        try:
            self._origins[stream] = origin
        except TypeError:
            logger.debug("Stream %r cannot be tracked between sends", stream)
        return origin

    def _multipart(
        self,
        operations: str,
        files: Sequence[ExtractedFile],
        headers: Dict[str, str],
    ) -> PreparedRequest:
        # one map entry per distinct file object, in first-seen order
        grouped: Dict[int, Tuple[Any, List[str]]] = {}
        for extracted in files:
            entry = grouped.setdefault(id(extracted.file), (extracted.file, []))
            entry[1].append(path_to_string(extracted.path))

        file_map: Dict[str, List[str]] = {}
        parts: List[Tuple[str, Any]] = []
        origins: Dict[str, StreamOrigin] = {}
        for index, (file, paths) in enumerate(grouped.values()):
            key = str(index)
            file_map[key] = paths
            parts.append((key, file))
            stream = _file_stream(file)
            if stream is not None:
                origins[key] = self._stream_origin(stream)

        if "content-type" in CIMultiDict(headers):
            logger.warning("Dropping explicit content-type header for multipart request")
            headers = {name: value for name, value in headers.items() if name.lower() != "content-type"}

        return PreparedRequest(
            body=MultipartBody(operations=operations, map=file_map, parts=parts, origins=origins),
            headers=headers,
        )
