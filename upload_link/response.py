"""
Response classification.

Turns a fetch response into the decoded GraphQL body or one of the
:class:`~upload_link.exceptions.ResponseError` subclasses.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from .exceptions import NetworkError, ParseError, ServerDataError
from .models import Operation
from .transport import FetchResponse

logger = logging.getLogger(__name__)

_UNPARSED = object()


async def parse_and_check_response(operation: Operation, response: FetchResponse) -> Dict[str, Any]:
    """
    Read and classify a response.

    The status check runs before the envelope check: a status of 300 or
    above is a NetworkError even when the body is a valid GraphQL result or
    not JSON at all.

    Returns:
        The decoded response body

    Raises:
        NetworkError: Status code of 300 or above
        ParseError: Successful status but the body is not JSON
        ServerDataError: Body has neither ``data`` nor ``errors``
    """
    body_text = await response.text()
    status = response.status

    parse_exc = None
    try:
        result: Any = json.loads(body_text)
    except ValueError as e:
        result = _UNPARSED
        parse_exc = e

    if status >= 300:
        raise NetworkError(
            f"Response not successful: Received status code {status}",
            response=response,
            status_code=status,
            body_text=body_text,
            result=None if result is _UNPARSED else result,
        )

    if result is _UNPARSED:
        raise ParseError(
            f"Unable to parse response body: {parse_exc}",
            response=response,
            status_code=status,
            body_text=body_text,
        ) from parse_exc

    if not isinstance(result, dict) or ("data" not in result and "errors" not in result):
        raise ServerDataError(
            f"Server response was missing for query '{operation.operation_name}'.",
            operation_name=operation.operation_name,
            response=response,
            status_code=status,
            body_text=body_text,
            result=result,
        )

    if isinstance(result.get("errors"), list) and result["errors"]:
        logger.debug("Operation %r returned %d error(s)", operation.operation_name, len(result["errors"]))
    return result
