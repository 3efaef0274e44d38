"""
Tests for upload files and file extraction.
"""

import copy
import io

import pytest
from pydantic import ValidationError

from upload_link import UploadFile, extract_files, is_extractable_file
from upload_link.files import is_seekable, path_to_string, stream_chunks

from conftest import OneShotStream


class TestUploadFile:
    """Test the UploadFile marker."""

    def test_requires_exactly_one_source(self):
        """Test that an upload file needs a single content source."""
        with pytest.raises(ValidationError):
            UploadFile()

        with pytest.raises(ValidationError):
            UploadFile(content=b"data", path="data.bin")

    def test_name_and_type_from_path(self, tmp_path):
        """Test filename and content type resolution for path files."""
        target = tmp_path / "report.pdf"
        target.write_bytes(b"%PDF-1.4")

        upload = UploadFile(path=target)

        assert upload.name == "report.pdf"
        assert upload.mime_type == "application/pdf"

    def test_explicit_filename_and_content_type(self):
        """Test explicit metadata overrides guesses."""
        upload = UploadFile(content=b"a,b", filename="rows.txt", content_type="text/csv")

        assert upload.name == "rows.txt"
        assert upload.mime_type == "text/csv"

    def test_defaults_for_anonymous_content(self):
        """Test fallbacks when nothing hints at a name or type."""
        upload = UploadFile(content=b"\x00\x01")

        assert upload.name == "blob"
        assert upload.mime_type == "application/octet-stream"

    def test_name_from_file_object(self, tmp_path):
        """Test filename taken from an open file object."""
        target = tmp_path / "notes.txt"
        target.write_bytes(b"hello")

        with open(target, "rb") as fh:
            upload = UploadFile(file=fh)
            assert upload.name == "notes.txt"
            assert upload.mime_type == "text/plain"

    @pytest.mark.asyncio
    async def test_path_is_streamed_in_chunks(self, tmp_path):
        """Test that path files are streamed from disk."""
        target = tmp_path / "blob.bin"
        target.write_bytes(b"abcdefghij")

        upload = UploadFile(path=target, chunk_size=4)
        chunks = [chunk async for chunk in upload.form_value()]

        assert chunks == [b"abcd", b"efgh", b"ij"]

    @pytest.mark.asyncio
    async def test_file_object_read_from_origin(self):
        """Test file objects are streamed from the given offset."""
        stream = io.BytesIO(b"skip:payload")
        upload = UploadFile(file=stream, chunk_size=4)

        chunks = [chunk async for chunk in upload.form_value(5)]

        assert b"".join(chunks) == b"payload"
        assert stream.tell() == 5

    def test_buffered_origin(self):
        """Test buffered content is used as is."""
        upload = UploadFile(file=OneShotStream(b"drained"))

        assert upload.form_value(b"buffered") == b"buffered"


class TestStreamChunks:
    """Test chunked reading of caller-owned streams."""

    @pytest.mark.asyncio
    async def test_position_restored(self):
        """Test the stream is moved back so it can be read again."""
        stream = io.BytesIO(b"0123456789")

        first = [chunk async for chunk in stream_chunks(stream, 0, chunk_size=3)]
        second = [chunk async for chunk in stream_chunks(stream, 0, chunk_size=3)]

        assert first == second == [b"012", b"345", b"678", b"9"]
        assert stream.tell() == 0

    def test_is_seekable(self):
        """Test seekability detection."""
        assert is_seekable(io.BytesIO(b""))
        assert not is_seekable(OneShotStream(b""))
        assert not is_seekable(b"bytes")


class TestIsExtractableFile:
    """Test default file detection."""

    def test_detects_upload_files_and_binary_streams(self):
        """Test recognised file values."""
        assert is_extractable_file(UploadFile(content=b"x"))
        assert is_extractable_file(io.BytesIO(b"x"))

    def test_ignores_plain_values(self):
        """Test values that are not files."""
        assert not is_extractable_file(b"raw bytes")
        assert not is_extractable_file("text")
        assert not is_extractable_file(io.StringIO("text"))
        assert not is_extractable_file({"file": None})


class TestExtractFiles:
    """Test file extraction from nested values."""

    def test_no_files(self):
        """Test extraction from a value without files."""
        variables = {"id": "1", "tags": ["a", "b"], "meta": {"n": 1}}

        extracted = extract_files(variables)

        assert extracted.files == []
        assert extracted.clone == variables
        assert extracted.clone is not variables

    def test_nested_files(self):
        """Test files found at any depth, including inside lists."""
        first = UploadFile(content=b"1")
        second = io.BytesIO(b"2")
        variables = {
            "input": {
                "title": "docs",
                "attachments": [first, {"file": second, "label": "b"}],
            }
        }
        original = copy.copy(variables["input"]["attachments"])

        extracted = extract_files(variables, path=("variables",))

        assert [(f.path, f.file) for f in extracted.files] == [
            (("variables", "input", "attachments", 0), first),
            (("variables", "input", "attachments", 1, "file"), second),
        ]
        assert extracted.clone == {
            "input": {
                "title": "docs",
                "attachments": [None, {"file": None, "label": "b"}],
            }
        }
        # input untouched
        assert variables["input"]["attachments"] == original
        assert variables["input"]["attachments"][1]["file"] is second

    def test_tuples_become_lists(self):
        """Test sequences are cloned as lists."""
        upload = UploadFile(content=b"x")

        extracted = extract_files({"files": (upload, "keep")})

        assert extracted.clone == {"files": [None, "keep"]}
        assert extracted.files[0].path == ("files", 0)

    def test_top_level_file(self):
        """Test a file passed as the whole value."""
        upload = UploadFile(content=b"x")

        extracted = extract_files(upload)

        assert extracted.clone is None
        assert extracted.files[0].path == ()

    def test_custom_predicate(self):
        """Test a caller supplied detection predicate."""
        extracted = extract_files({"raw": b"bytes"}, is_file=lambda v: isinstance(v, bytes))

        assert extracted.clone == {"raw": None}
        assert extracted.files[0].file == b"bytes"

    def test_circular_reference_left_in_place(self):
        """Test that circular containers do not recurse forever."""
        node = {"name": "loop"}
        node["self"] = node

        extracted = extract_files({"node": node})

        assert extracted.files == []
        assert extracted.clone["node"]["self"] is node


class TestPathToString:
    """Test map path rendering."""

    def test_dotted_paths(self):
        """Test paths render as dotted object paths."""
        assert path_to_string(("variables", "files", 0)) == "variables.files.0"
        assert path_to_string(("variables",)) == "variables"
