"""Session components satisfy the collaborator-facing protocols."""

from __future__ import annotations

import pytest

from gnucore.session.core import SessionCore
from gnucore.session.types import (
    BufferPoolProtocol,
    CacheProtocol,
    DemandSinkProtocol,
    HandshakeSinkProtocol,
    NetworkIOProtocol,
    RoleSignalProtocol,
)

pytestmark = [pytest.mark.unit, pytest.mark.session]


def test_components_match_protocols(config, fake_clock):
    core = SessionCore(config, clock=fake_clock)

    assert isinstance(core.registry, HandshakeSinkProtocol)
    assert isinstance(core.topology, RoleSignalProtocol)
    assert isinstance(core.demand, DemandSinkProtocol)
    assert isinstance(core.reachability, NetworkIOProtocol)
    assert isinstance(core.buffer_pool, BufferPoolProtocol)
    for cache in (core.disk_cache, core.creation_cache, core.content_responses):
        assert isinstance(cache, CacheProtocol)


def test_registry_is_not_a_cache(config):
    core = SessionCore(config)
    assert not isinstance(core.registry, CacheProtocol)
