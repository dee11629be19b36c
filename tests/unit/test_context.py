"""Tests for cancellation contexts and archive digests."""

from __future__ import annotations

import hashlib
import io

import pytest

from helm_oss.context import Context
from helm_oss.exceptions import OperationCancelledError
from helm_oss.provenance import HashingReader, digest, digest_bytes, digest_file


class TestContext:
    def test_background_never_expires(self):
        ctx = Context.background()

        ctx.check()
        assert not ctx.done
        assert ctx.remaining() is None

    def test_cancel(self):
        ctx = Context(timeout=60)
        ctx.cancel()

        assert ctx.cancelled
        assert ctx.done
        with pytest.raises(OperationCancelledError, match="operation cancelled"):
            ctx.check()

    def test_deadline(self):
        ctx = Context(timeout=0)

        assert ctx.expired
        assert ctx.remaining() == 0.0
        with pytest.raises(OperationCancelledError) as exc_info:
            ctx.check()
        assert exc_info.value.context == {"reason": "deadline"}

    def test_remaining_counts_down(self):
        ctx = Context(timeout=60)

        assert 0 < ctx.remaining() <= 60


class TestDigests:
    DATA = b"chart archive bytes" * 10000

    def test_digest_helpers_agree(self, tmp_path):
        expected = hashlib.sha256(self.DATA).hexdigest()
        path = tmp_path / "app-1.0.0.tgz"
        path.write_bytes(self.DATA)

        assert digest_bytes(self.DATA) == expected
        assert digest(io.BytesIO(self.DATA)) == expected
        assert digest_file(str(path)) == expected

    def test_hashing_reader_covers_drained_remainder(self):
        reader = HashingReader(io.BytesIO(self.DATA))

        assert reader.read(100) == self.DATA[:100]
        reader.drain()

        assert reader.hexdigest() == hashlib.sha256(self.DATA).hexdigest()

    def test_hashing_reader_read_all(self):
        reader = HashingReader(io.BytesIO(b"abc"))

        assert reader.read() == b"abc"
        assert reader.hexdigest() == hashlib.sha256(b"abc").hexdigest()
