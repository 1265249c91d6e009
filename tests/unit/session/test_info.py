"""Tests for the SessionSnapshot diagnostics facade."""

from __future__ import annotations

import pytest

from gnucore.models import ConnectionRole, Direction, SessionReport
from gnucore.nat.reachability import ReachabilityProbe
from gnucore.peer.registry import ConnectionRegistry
from gnucore.session.demand import TransferDemandTracker
from gnucore.session.info import SessionInfo, SessionSnapshot
from gnucore.session.types import BufferPoolProtocol
from gnucore.storage.buffers import ByteBufferPool
from gnucore.storage.cache import ContentResponseCache, CreationCache, DiskIOCache

pytestmark = [pytest.mark.unit, pytest.mark.session]


@pytest.fixture
def parts():
    return {
        "registry": ConnectionRegistry(),
        "demand": TransferDemandTracker(),
        "reachability": ReachabilityProbe(port=6346),
        "disk_cache": DiskIOCache(capacity_bytes=1000),
        "creation_cache": CreationCache(max_entries=4),
        "content_responses": ContentResponseCache(max_entries=4),
        "buffer_pool": ByteBufferPool(),
    }


@pytest.fixture
def snapshot(parts):
    return SessionSnapshot(**parts, uptime=lambda: 12.5)


class TestSessionSnapshot:
    def test_implements_protocol(self, snapshot):
        assert isinstance(snapshot, SessionInfo)

    def test_fresh_session_reads_zero(self, snapshot):
        assert snapshot.pending_timeouts() == 0
        assert snapshot.ultrapeer_to_leaf_connections() == 0
        assert snapshot.disk_controller_queue_size() == 0
        assert snapshot.is_guess_capable() is False
        assert snapshot.port() == 6346
        assert snapshot.current_uptime() == 12.5

    def test_reads_each_component(self, parts, snapshot):
        registry = parts["registry"]
        registry.on_connected(ConnectionRole.ULTRAPEER_TO_LEAF, Direction.INBOUND)
        registry.on_connected(ConnectionRole.ULTRAPEER_TO_LEAF, Direction.OUTBOUND)
        registry.on_connected(ConnectionRole.LEAF_TO_ULTRAPEER, Direction.OUTBOUND)
        registry.on_connected(ConnectionRole.ULTRAPEER_TO_ULTRAPEER, Direction.INBOUND)
        registry.on_connected(ConnectionRole.LEGACY_UNROUTED, Direction.INBOUND)
        registry.socket_waiting()

        demand = parts["demand"]
        demand.download_waiting()
        demand.downloader_started()
        demand.downloader_started()
        demand.timeout_scheduled()

        disk = parts["disk_cache"]
        verifying = disk.reserve("a", 300)
        disk.begin_verify(verifying)
        committed = disk.reserve("b", 200)
        disk.commit(committed)
        disk.reserve("c", 100)

        parts["creation_cache"].reserve("seg", 10)
        parts["content_responses"].reserve("urn:sha1:X", 0)
        parts["content_responses"].reserve("urn:sha1:Y", 0)
        parts["buffer_pool"].release(parts["buffer_pool"].acquire(100))

        reach = parts["reachability"]
        reach.on_udp_datagram("203.0.113.1")
        reach.on_incoming_accepted("203.0.113.2")

        assert snapshot.ultrapeer_to_leaf_connections() == 2
        assert snapshot.leaf_to_ultrapeer_connections() == 1
        assert snapshot.ultrapeer_to_ultrapeer_connections() == 1
        assert snapshot.old_connections() == 1
        assert snapshot.waiting_sockets() == 1
        assert snapshot.waiting_downloads() == 1
        assert snapshot.individual_downloaders() == 2
        assert snapshot.pending_timeouts() == 1
        assert snapshot.disk_controller_byte_cache_size() == 600
        assert snapshot.disk_controller_verifying_cache_size() == 300
        assert snapshot.disk_controller_queue_size() == 2
        assert snapshot.creation_cache_size() == 1
        assert snapshot.content_responses_size() == 2
        assert snapshot.byte_buffer_cache_size() == 1024
        assert snapshot.is_guess_capable() is True
        assert snapshot.accepted_incoming_connection() is True
        assert snapshot.can_receive_solicited() is False


class TestSessionReport:
    def test_report_has_every_field(self, parts, snapshot):
        parts["demand"].download_waiting()
        report = snapshot.report()

        assert isinstance(report, SessionReport)
        assert report.current_uptime == 12.5
        assert report.port == 6346
        assert report.waiting_downloads == 1
        assert set(report.model_dump()) == set(SessionReport.model_fields)

    def test_report_serializes(self, snapshot):
        data = snapshot.report().model_dump(mode="json")
        assert data["is_guess_capable"] is False
        assert list(data)[:2] == ["current_uptime", "port"]

    def test_every_report_field_is_a_session_info_accessor(self):
        for name in SessionReport.model_fields:
            assert callable(getattr(SessionInfo, name))


class FixedBufferPool:
    """Any buffer pool satisfying the protocol can back the snapshot."""

    def acquire(self, size: int, sensitive: bool | None = None) -> bytearray:
        return bytearray(size)

    def release(self, buffer: bytearray) -> bool:
        return True

    def size_bytes(self) -> int:
        return 4096


def test_snapshot_accepts_protocol_buffer_pool(parts):
    pool = FixedBufferPool()
    assert isinstance(pool, BufferPoolProtocol)

    parts["buffer_pool"] = pool
    snapshot = SessionSnapshot(**parts, uptime=lambda: 0.0)
    assert snapshot.byte_buffer_cache_size() == 4096
