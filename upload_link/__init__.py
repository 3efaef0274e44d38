"""
upload_link - GraphQL HTTP transport with multipart file uploads.

The link sends one GraphQL operation per request. Operations whose variables
contain files are sent as ``multipart/form-data`` following the GraphQL
multipart request convention; all others are sent as JSON.

Examples:
    ```python
    from graphql import parse
    from upload_link import Operation, UploadFile, create_upload_link

    link = create_upload_link(uri="https://api.example.com/graphql")
    operation = Operation(
        query=parse("mutation ($file: Upload!) { upload(file: $file) { id } }"),
        variables={"file": UploadFile(path="avatar.png")},
    )
    result = await link.execute(operation)
    ```
"""

from .builder import JSONBody, MultipartBody, PreparedRequest, RequestBuilder, print_query
from .cancellation import AbortController, AbortSignal
from .exceptions import (
    AbortError,
    ConstructionError,
    FetchError,
    NetworkError,
    OptionsError,
    ParseError,
    QueryPrintError,
    ResponseError,
    SerializationError,
    ServerDataError,
    UploadLinkError,
)
from .files import ExtractedFile, ExtractedFiles, UploadFile, extract_files, is_extractable_file
from .link import UploadLink, create_upload_link
from .models import Operation
from .observable import Observable, Subscription
from .options import (
    ContextOptions,
    Credentials,
    EffectiveOptions,
    EncodingPolicy,
    LinkOptions,
    merge_headers,
    resolve_options,
)
from .response import parse_and_check_response
from .transport import AiohttpFetch, BufferedResponse, Fetch, FetchResponse

__version__ = "1.0.0"

__all__ = [
    # Link
    "UploadLink",
    "create_upload_link",
    "Operation",
    "Observable",
    "Subscription",
    # Files
    "UploadFile",
    "ExtractedFile",
    "ExtractedFiles",
    "extract_files",
    "is_extractable_file",
    # Options
    "LinkOptions",
    "ContextOptions",
    "EffectiveOptions",
    "Credentials",
    "EncodingPolicy",
    "merge_headers",
    "resolve_options",
    # Request building
    "RequestBuilder",
    "PreparedRequest",
    "JSONBody",
    "MultipartBody",
    "print_query",
    # Transport
    "Fetch",
    "FetchResponse",
    "AiohttpFetch",
    "BufferedResponse",
    "AbortController",
    "AbortSignal",
    "parse_and_check_response",
    # Exceptions
    "UploadLinkError",
    "ConstructionError",
    "OptionsError",
    "SerializationError",
    "QueryPrintError",
    "FetchError",
    "AbortError",
    "ResponseError",
    "ParseError",
    "NetworkError",
    "ServerDataError",
]
