"""
Terminating GraphQL link with file upload support.

The link resolves its fetch and cancellation capabilities once, when it is
created. Each request then runs as its own asyncio task: options are
resolved, the body is built, the request is dispatched and the response is
classified. The outcome is pushed to the subscriber exactly once.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Set

from pydantic import ValidationError

from .builder import RequestBuilder
from .cancellation import AbortController
from .exceptions import AbortError, ConstructionError
from .models import Operation
from .observable import Observable, SubscriptionObserver
from .options import LinkOptions, resolve_options
from .response import parse_and_check_response
from .transport import AiohttpFetch, Fetch, dispatch

logger = logging.getLogger(__name__)

NO_FETCH_MESSAGE = (
    "No fetch capability is available: no fetch was passed and the default "
    "aiohttp fetch is disabled (use_default_fetch=False). To fix this, pass a "
    "fetch for your environment, for example:\n"
    "    from upload_link import AiohttpFetch, create_upload_link\n"
    "    link = create_upload_link(uri='/graphql', fetch=AiohttpFetch(session))"
)


class UploadLink:
    """
    GraphQL link sending operations over HTTP, with multipart file uploads.

    Examples:
        ```python
        link = create_upload_link(uri="https://api.example.com/graphql")

        operation = Operation(
            query=parse("mutation ($file: Upload!) { upload(file: $file) { id } }"),
            variables={"file": UploadFile(path="avatar.png")},
        )
        result = await link.execute(operation)
        ```
    """

    def __init__(self, options: Optional[LinkOptions] = None, builder: Optional[RequestBuilder] = None) -> None:
        """
        Initialize upload link.

        Args:
            options: Link-level defaults
            builder: Request builder, defaults to one using ``options.encoding``

        Raises:
            ConstructionError: If no usable fetch capability is configured
        """
        self.options = options or LinkOptions()
        self._fetch = self._resolve_fetch(self.options)
        self._abort_controller = self._resolve_abort_controller(self.options)
        self.builder = builder or RequestBuilder(encoding=self.options.encoding)
        self._tasks: Set[asyncio.Task] = set()

    @staticmethod
    def _resolve_fetch(options: LinkOptions) -> Fetch:
        if options.fetch is not None:
            if not callable(options.fetch):
                raise ConstructionError(
                    f"fetch must be an async callable, got {type(options.fetch).__name__}"
                )
            return options.fetch
        if not options.use_default_fetch:
            raise ConstructionError(NO_FETCH_MESSAGE)
        return AiohttpFetch(timeout=options.timeout)

    @staticmethod
    def _resolve_abort_controller(options: LinkOptions) -> Optional[Callable[[], AbortController]]:
        factory = options.abort_controller
        if factory is not None and not callable(factory):
            raise ConstructionError(
                f"abort_controller must be a controller factory or None, got {type(factory).__name__}"
            )
        return factory

    def request(self, operation: Operation, headers: Optional[Mapping[str, Any]] = None) -> Observable:
        """
        Create an observable for one request.

        Nothing is sent until the observable is subscribed. Unsubscribing
        before the outcome is delivered aborts the request; no result or error
        is delivered afterwards.

        Args:
            operation: Operation to send
            headers: Header overrides applied after link and context headers
        """

        def subscriber(observer: SubscriptionObserver) -> Callable[[], None]:
            loop = asyncio.get_running_loop()
            controller = self._abort_controller() if self._abort_controller is not None else None
            task = loop.create_task(self._run(operation, observer, controller, headers))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

            def cleanup() -> None:
                if controller is not None:
                    controller.abort()
                if not task.done():
                    task.cancel()

            return cleanup

        return Observable(subscriber)

    async def execute(self, operation: Operation, headers: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        """
        Send an operation and wait for its result.

        Cancelling the awaiting task cancels the request.

        Returns:
            Decoded GraphQL response body

        Raises:
            UploadLinkError: Any classified request error
        """
        future: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_next(result: Dict[str, Any]) -> None:
            if not future.done():
                future.set_result(result)

        def on_error(error: BaseException) -> None:
            if not future.done():
                future.set_exception(error)

        subscription = self.request(operation, headers=headers).subscribe(on_next=on_next, on_error=on_error)
        try:
            return await future
        finally:
            subscription.unsubscribe()

    async def _run(
        self,
        operation: Operation,
        observer: SubscriptionObserver,
        controller: Optional[AbortController],
        headers: Optional[Mapping[str, Any]],
    ) -> None:
        signal = controller.signal if controller is not None else None
        try:
            options = resolve_options(self.options, operation.get_context(), headers=headers, signal=signal)
            prepared = self.builder.build(operation, options)
            response = await dispatch(self._fetch, prepared, options, operation)
            result = await parse_and_check_response(operation, response)
        except AbortError as e:
            if signal is not None and signal.aborted:
                logger.debug("Request for operation %r was aborted", operation.operation_name)
                return
            observer.error(e)
            return
        except Exception as e:
            observer.error(e)
            return

        observer.next(result)
        observer.complete()


def create_upload_link(options: Optional[LinkOptions] = None, **kwargs: Any) -> UploadLink:
    """
    Create an upload link.

    Args:
        options: Link options; keyword arguments override its fields
        **kwargs: LinkOptions fields

    Raises:
        ConstructionError: If the options are invalid or no fetch is available
    """
    try:
        if options is None:
            options = LinkOptions(**kwargs)
        elif kwargs:
            options = LinkOptions(**{**options.model_dump(), "fetch": options.fetch,
                                     "abort_controller": options.abort_controller, **kwargs})
    except ValidationError as e:
        raise ConstructionError(f"Invalid link options: {e}") from e
    return UploadLink(options)
