"""Tests for ByteBufferPool."""

from __future__ import annotations

import logging

import pytest

from gnucore.storage.buffers import ByteBufferPool
from gnucore.utils.exceptions import ValidationError

pytestmark = [pytest.mark.unit, pytest.mark.storage]


class TestByteBufferPool:
    """Buffer leasing, reuse and zeroing."""

    def test_size_classes_are_powers_of_two(self):
        pool = ByteBufferPool(min_buffer_bytes=1024)
        assert pool.size_class(0) == 1024
        assert pool.size_class(1024) == 1024
        assert pool.size_class(1025) == 2048
        assert pool.size_class(5000) == 8192

    def test_acquire_returns_at_least_requested(self):
        pool = ByteBufferPool()
        buf = pool.acquire(3000)
        assert len(buf) >= 3000
        assert pool.outstanding_bytes() == len(buf)
        assert pool.size_bytes() == 0

    def test_release_makes_buffer_idle_and_reusable(self):
        pool = ByteBufferPool()
        buf = pool.acquire(1000)
        assert pool.release(buf) is True
        assert pool.size_bytes() == 1024
        assert pool.outstanding_bytes() == 0

        again = pool.acquire(1000)
        assert again is buf
        assert pool.size_bytes() == 0
        stats = pool.get_stats()
        assert stats.cache_hits == 1
        assert stats.cache_misses == 1

    def test_sensitive_buffer_zeroed_on_release(self):
        pool = ByteBufferPool()
        buf = pool.acquire(16, sensitive=True)
        buf[:4] = b"key!"
        pool.release(buf)
        assert bytes(buf) == bytes(len(buf))

    def test_content_buffer_not_zeroed(self):
        pool = ByteBufferPool(zero_io_buffers=True)
        buf = pool.acquire(16, sensitive=False)
        buf[:4] = b"data"
        pool.release(buf)
        assert bytes(buf[:4]) == b"data"

    def test_io_buffers_follow_pool_policy(self):
        pool = ByteBufferPool(zero_io_buffers=True)
        buf = pool.acquire(16)
        buf[:4] = b"data"
        pool.release(buf)
        assert bytes(buf[:4]) == bytes(4)

    def test_idle_cap_drops_extra_buffers(self):
        pool = ByteBufferPool(min_buffer_bytes=1024, max_idle_bytes=1024)
        first = pool.acquire(1024)
        second = pool.acquire(1024)
        pool.release(first)
        pool.release(second)
        assert pool.size_bytes() == 1024
        assert pool.get_stats().dropped == 1

    def test_unknown_and_double_release_are_noops(self, caplog):
        pool = ByteBufferPool()
        buf = pool.acquire(10)
        pool.release(buf)

        with caplog.at_level(logging.WARNING, logger="gnucore"):
            assert pool.release(buf) is False
            assert pool.release(bytearray(10)) is False

        assert pool.get_stats().unknown_releases == 2
        assert pool.size_bytes() == 1024
        assert "not leased from this pool" in caplog.text

    @pytest.mark.parametrize("resize", ["extend", "trim"])
    def test_resized_buffer_is_dropped_with_leased_size(self, resize):
        """Accounting uses the size handed out, not the returned length."""
        pool = ByteBufferPool()
        buf = pool.acquire(1000)
        if resize == "extend":
            buf.extend(b"x" * 100)
        else:
            del buf[512:]

        assert pool.release(buf) is True

        assert pool.outstanding_bytes() == 0
        assert pool.size_bytes() == 0
        stats = pool.get_stats()
        assert stats.resized_releases == 1
        assert stats.dropped == 1
        assert stats.current_outstanding == 0

        again = pool.acquire(1000)
        assert again is not buf
        assert len(again) == 1024

    def test_resized_sensitive_buffer_still_zeroed(self):
        pool = ByteBufferPool()
        buf = pool.acquire(16, sensitive=True)
        buf.extend(b"secret")
        pool.release(buf)
        assert bytes(buf) == bytes(len(buf))

    def test_peak_outstanding(self):
        pool = ByteBufferPool()
        bufs = [pool.acquire(10) for _ in range(3)]
        for b in bufs:
            pool.release(b)
        stats = pool.get_stats()
        assert stats.peak_outstanding == 3
        assert stats.current_outstanding == 0

    def test_invalid_arguments(self):
        with pytest.raises(ValidationError):
            ByteBufferPool(min_buffer_bytes=0)
        with pytest.raises(ValidationError):
            ByteBufferPool().acquire(-1)
