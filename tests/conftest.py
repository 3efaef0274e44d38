"""
Shared test fixtures and configuration for the upload_link test suite.
"""

import asyncio
import io
import json
from typing import Any, Dict, List, Optional

import pytest
from graphql import parse

from upload_link import BufferedResponse, LinkOptions, Operation, UploadFile, UploadLink

TEST_URI = "http://test.local/graphql"

UPLOAD_MUTATION = """
mutation UploadAvatar($file: Upload!) {
  uploadAvatar(file: $file) {
    id
  }
}
"""

USER_QUERY = """
query GetUser($id: ID!) {
  user(id: $id) {
    name
  }
}
"""


def json_response(body: Any, status: int = 200) -> BufferedResponse:
    """Build a buffered response with a JSON body."""
    return BufferedResponse(status=status, body=json.dumps(body).encode("utf-8"), url=TEST_URI)


class RecordingFetch:
    """Fetch capability double that records every call."""

    def __init__(self, response: Optional[BufferedResponse] = None) -> None:
        self.response = response or json_response({"data": {"ok": True}})
        self.calls: List[Dict[str, Any]] = []

    async def __call__(self, url: str, **kwargs: Any) -> BufferedResponse:
        self.calls.append({"url": url, **kwargs})
        return self.response

    @property
    def last_call(self) -> Dict[str, Any]:
        return self.calls[-1]


class OneShotStream(io.RawIOBase):
    """Readable binary stream that cannot seek, like a pipe."""

    def __init__(self, data: bytes) -> None:
        self._data = data
        self._pos = 0

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        chunk = self._data[self._pos:self._pos + len(buffer)]
        buffer[:len(chunk)] = chunk
        self._pos += len(chunk)
        return len(chunk)


class _BodyCollector:
    """Minimal stream writer collecting written bytes."""

    def __init__(self) -> None:
        self.chunks: List[bytes] = []

    async def write(self, chunk: bytes) -> None:
        self.chunks.append(bytes(chunk))


async def render_body(data: Any) -> bytes:
    """Render a request body the way aiohttp writes it to the wire."""
    if isinstance(data, (bytes, bytearray)):
        return bytes(data)
    collector = _BodyCollector()
    await data().write(collector)
    return b"".join(collector.chunks)


class SerializingFetch(RecordingFetch):
    """Fetch double that writes out every body it is given."""

    def __init__(self, response: Optional[BufferedResponse] = None) -> None:
        super().__init__(response)
        self.bodies: List[bytes] = []

    async def __call__(self, url: str, **kwargs: Any) -> BufferedResponse:
        self.bodies.append(await render_body(kwargs["data"]))
        return await super().__call__(url, **kwargs)


class HangingFetch:
    """Fetch double that never answers on its own and honours abort signals."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.signal = None

    async def __call__(self, url: str, **kwargs: Any) -> BufferedResponse:
        from upload_link import AbortError

        self.signal = kwargs.get("signal")
        waiter = asyncio.get_running_loop().create_future()
        if self.signal is not None:
            self.signal.add_listener(
                lambda: waiter.done() or waiter.set_exception(AbortError())
            )
        self.started.set()
        return await waiter


class EventRecorder:
    """Observer recording the signals it receives."""

    def __init__(self) -> None:
        self.events: List[tuple] = []

    def next(self, value: Any) -> None:
        self.events.append(("next", value))

    def error(self, error: BaseException) -> None:
        self.events.append(("error", error))

    def complete(self) -> None:
        self.events.append(("complete", None))


@pytest.fixture
def recording_fetch() -> RecordingFetch:
    """Fetch double answering with a successful GraphQL result."""
    return RecordingFetch()


@pytest.fixture
def link(recording_fetch: RecordingFetch) -> UploadLink:
    """Upload link using the recording fetch."""
    return UploadLink(LinkOptions(uri=TEST_URI, fetch=recording_fetch))


@pytest.fixture
def user_operation() -> Operation:
    """Operation without files."""
    return Operation(query=parse(USER_QUERY), variables={"id": "123"}, operation_name="GetUser")


@pytest.fixture
def upload_file() -> UploadFile:
    """In-memory upload file."""
    return UploadFile(content=b"\x89PNG\r\n\x1a\n", filename="avatar.png")


@pytest.fixture
def upload_operation(upload_file: UploadFile) -> Operation:
    """Operation carrying one file."""
    return Operation(
        query=parse(UPLOAD_MUTATION),
        variables={"file": upload_file},
        operation_name="UploadAvatar",
    )


@pytest.fixture
def recorder() -> EventRecorder:
    """Observer recording delivered signals."""
    return EventRecorder()
