"""
Option models and the option resolver.

Options come from three places, merged lowest to highest precedence:

1. :class:`LinkOptions`, fixed when the link is created;
2. the operation context, read through :class:`ContextOptions`;
3. header overrides passed with a single request.

:func:`resolve_options` combines them into one frozen
:class:`EffectiveOptions` per request.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from multidict import CIMultiDict
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .cancellation import AbortController, AbortSignal
from .exceptions import OptionsError

logger = logging.getLogger(__name__)

DEFAULT_URI = "/graphql"
DEFAULT_METHOD = "POST"
BASE_HEADERS: Dict[str, str] = {"accept": "*/*"}

# Set by the dispatcher itself; never taken from fetch options.
RESERVED_FETCH_OPTIONS = frozenset({"headers", "data", "body", "signal", "credentials"})


class Credentials(str, Enum):
    """Credential inclusion modes."""

    OMIT = "omit"
    SAME_ORIGIN = "same-origin"
    INCLUDE = "include"


class EncodingPolicy(str, Enum):
    """How request bodies are encoded."""

    AUTO = "auto"
    MULTIPART = "multipart"


class LinkOptions(BaseModel):
    """Construction-time configuration for an upload link."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True, extra="forbid")

    # Endpoint
    uri: str = Field(default=DEFAULT_URI, description="GraphQL endpoint")

    # Capabilities
    fetch: Optional[Any] = Field(default=None, exclude=True, description="Injected fetch capability")
    use_default_fetch: bool = Field(default=True, description="Fall back to the aiohttp fetch")
    abort_controller: Optional[Any] = Field(
        default=AbortController,
        exclude=True,
        description="Factory for cancellation controllers, None disables signals",
    )

    # Request defaults
    credentials: Optional[Credentials] = Field(default=None, description="Credentials mode")
    headers: Dict[str, str] = Field(default_factory=dict, description="Default headers")
    fetch_options: Dict[str, Any] = Field(default_factory=dict, description="Extra fetch arguments")
    include_extensions: bool = Field(default=False, description="Send operation extensions")
    include_query: bool = Field(default=True, description="Send the printed query")
    encoding: EncodingPolicy = Field(default=EncodingPolicy.AUTO, description="Body encoding policy")
    timeout: float = Field(default=30.0, gt=0, description="Default fetch timeout in seconds")


class HttpOverrides(BaseModel):
    """Per-operation toggles read from the ``http`` context entry."""

    model_config = ConfigDict(extra="ignore")

    include_query: Optional[bool] = None
    include_extensions: Optional[bool] = None


class ContextOptions(BaseModel):
    """Typed view of the overrides found in an operation context."""

    model_config = ConfigDict(extra="ignore")

    uri: Optional[str] = None
    credentials: Optional[Credentials] = None
    headers: Dict[str, Any] = Field(default_factory=dict)
    fetch_options: Dict[str, Any] = Field(default_factory=dict)
    http: HttpOverrides = Field(default_factory=HttpOverrides)

    @classmethod
    def from_context(cls, context: Optional[Mapping[str, Any]]) -> "ContextOptions":
        """Build overrides from a context mapping, ignoring unrelated keys."""
        if not context:
            return cls()
        data = {key: value for key, value in context.items() if value is not None}
        return cls.model_validate(data)


class EffectiveOptions(BaseModel):
    """Fully merged options used to dispatch one request."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    uri: str
    method: str = DEFAULT_METHOD
    headers: Dict[str, str] = Field(default_factory=dict)
    credentials: Optional[Credentials] = None
    include_extensions: bool = False
    include_query: bool = True
    fetch_options: Dict[str, Any] = Field(default_factory=dict)
    signal: Optional[AbortSignal] = None


def merge_headers(*sources: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """
    Merge header mappings case-insensitively.

    Later sources replace earlier values for the same header name, and the
    later spelling of the name is kept. A ``None`` value removes the header.
    """
    merged: CIMultiDict[str] = CIMultiDict()
    for source in sources:
        if not source:
            continue
        for name, value in source.items():
            merged.popall(name, None)
            if value is not None:
                merged.add(name, str(value))
    return {str(name): value for name, value in merged.items()}


def resolve_options(
    link: LinkOptions,
    context: Union[ContextOptions, Mapping[str, Any], None] = None,
    headers: Optional[Mapping[str, Any]] = None,
    signal: Optional[AbortSignal] = None,
) -> EffectiveOptions:
    """
    Resolve the effective options for one request.

    Args:
        link: Link-level defaults
        context: Operation context or already parsed overrides
        headers: Per-request header overrides, applied last
        signal: Cancellation signal for this request

    Returns:
        EffectiveOptions for the request

    Raises:
        OptionsError: If the context holds invalid option values
    """
    if isinstance(context, ContextOptions):
        overrides = context
    else:
        try:
            overrides = ContextOptions.from_context(context)
        except ValidationError as e:
            raise OptionsError(f"Invalid options in operation context: {e}", validation_error=e) from e

    fetch_options = {**link.fetch_options, **overrides.fetch_options}
    for key in RESERVED_FETCH_OPTIONS.intersection(fetch_options):
        logger.debug("Ignoring reserved fetch option %r", key)
        del fetch_options[key]
    method = str(fetch_options.pop("method", DEFAULT_METHOD)).upper()

    http = overrides.http
    include_query = link.include_query if http.include_query is None else http.include_query

    return EffectiveOptions(
        uri=overrides.uri or link.uri or DEFAULT_URI,
        method=method,
        headers=merge_headers(BASE_HEADERS, link.headers, overrides.headers, headers),
        credentials=overrides.credentials or link.credentials,
        include_extensions=link.include_extensions or bool(http.include_extensions),
        include_query=include_query,
        fetch_options=fetch_options,
        signal=signal,
    )
