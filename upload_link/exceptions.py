"""
Exception hierarchy for upload_link.

Every error raised by the link derives from :class:`UploadLinkError`. Errors
that were produced after a response arrived derive from
:class:`ResponseError` and keep the raw response, the status code, the body
text and (when it parsed) the decoded body so callers can inspect them.
"""

from __future__ import annotations

from typing import Any, Optional


class UploadLinkError(Exception):
    """
    Base exception for all upload link operations.

    Attributes:
        message: Human-readable error message
        details: Additional error details as keyword arguments
    """

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = kwargs


class ConstructionError(UploadLinkError):
    """
    Raised when a link cannot be built.

    This happens synchronously at setup time, typically because no fetch
    capability could be resolved. It is never retried.
    """

    pass


class OptionsError(UploadLinkError):
    """
    Raised when options found in an operation context are invalid.

    Attributes:
        validation_error: The underlying validation failure
    """

    def __init__(
        self,
        message: str,
        validation_error: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.validation_error = validation_error


class SerializationError(UploadLinkError):
    """
    Raised when the request payload cannot be serialized.

    No network call is made when this is raised.

    Attributes:
        parse_error: The underlying exception raised by the encoder
    """

    def __init__(
        self,
        message: str,
        parse_error: Optional[BaseException] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.parse_error = parse_error


class QueryPrintError(SerializationError):
    """Raised when the operation document cannot be printed to text."""

    pass


class FetchError(UploadLinkError):
    """
    Raised when the fetch capability fails before a response is available.

    Covers connection failures, DNS errors and timeouts.
    """

    def __init__(self, message: str, url: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, **kwargs)
        self.url = url


class AbortError(UploadLinkError):
    """
    Raised by a fetch capability when its request was aborted.

    The link treats this as a caller-initiated outcome and never forwards it
    to observers.
    """

    def __init__(self, message: str = "The operation was aborted", **kwargs: Any) -> None:
        super().__init__(message, **kwargs)


class ResponseError(UploadLinkError):
    """
    Base class for errors classified from a received response.

    Attributes:
        response: The raw response object returned by the fetch capability
        status_code: HTTP status code of the response
        body_text: Raw response body text
        result: Decoded response body, ``None`` when it was not valid JSON
    """

    def __init__(
        self,
        message: str,
        response: Any = None,
        status_code: Optional[int] = None,
        body_text: Optional[str] = None,
        result: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.response = response
        self.status_code = status_code
        self.body_text = body_text
        self.result = result


class ParseError(ResponseError):
    """Raised when a successful response body is not valid JSON."""

    pass


class NetworkError(ResponseError):
    """Raised when the response status code is 300 or above."""

    pass


class ServerDataError(ResponseError):
    """
    Raised when a successful response has neither ``data`` nor ``errors``.

    Attributes:
        operation_name: Name of the operation the response belongs to
    """

    def __init__(
        self,
        message: str,
        operation_name: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.operation_name = operation_name
