from __future__ import annotations

import hashlib
import io
from pathlib import Path

import pytest

from fedkeeper.exceptions import FileOperationError
from fedkeeper.utils.checksum import sha256_file, sha256_stream, sha256_text


@pytest.mark.unit
class TestSha256:
    """Tests for the SHA-256 helpers."""

    def test_file_digest(self, tmp_path: Path) -> None:
        path = tmp_path / "manual-packages.txt"
        path.write_text("git\ndocker-ce\nnodejs\n", encoding="utf-8")

        digest = sha256_file(path)

        assert digest == hashlib.sha256(b"git\ndocker-ce\nnodejs\n").hexdigest()
        assert len(digest) == 64
        assert sha256_file(path) == digest

    def test_different_content_differs(self, tmp_path: Path) -> None:
        first = tmp_path / "a.txt"
        second = tmp_path / "b.txt"
        first.write_text("git\ndocker-ce\nnodejs\n", encoding="utf-8")
        second.write_text("gcc\npython3\n", encoding="utf-8")

        assert sha256_file(first) != sha256_file(second)

    def test_small_chunks_give_same_digest(self) -> None:
        data = b"x" * 10000
        assert sha256_stream(io.BytesIO(data), chunk_size=7) == hashlib.sha256(data).hexdigest()

    def test_text_digest(self) -> None:
        assert sha256_text("") == hashlib.sha256(b"").hexdigest()
        assert sha256_text("vim|9.0\n") == hashlib.sha256(b"vim|9.0\n").hexdigest()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileOperationError) as exc_info:
            sha256_file(tmp_path / "absent.txt")
        assert exc_info.value.operation == "checksum"
