"""Leave engine cache-bust tests."""

from __future__ import annotations

import logging
import uuid

from hris.leave.cache import LeaveEngineCache


class TestLeaveEngineCache:

    def test_version_increments(self):
        cache = LeaveEngineCache()
        assert cache.version == 0
        assert cache.invalidate() == 1
        assert cache.invalidate(uuid.uuid4()) == 2
        assert cache.version == 2

    def test_version_for_employee(self):
        cache = LeaveEngineCache()
        a, b = uuid.uuid4(), uuid.uuid4()
        cache.invalidate(a)
        assert cache.version_for(a) == 1
        assert cache.version_for(b) == 0

        cache.invalidate()
        assert cache.version_for(a) == 2
        assert cache.version_for(b) == 2

    def test_subscribe_and_unsubscribe(self):
        cache = LeaveEngineCache()
        seen = []
        unsubscribe = cache.subscribe(lambda v, emp: seen.append((v, emp)))
        emp_id = uuid.uuid4()

        cache.invalidate(emp_id)
        unsubscribe()
        cache.invalidate()

        assert seen == [(1, emp_id)]
        unsubscribe()

    def test_broken_listener_does_not_block_others(self, caplog):
        cache = LeaveEngineCache()
        seen = []

        def broken(version, employee_id):
            raise RuntimeError("view gone")

        cache.subscribe(broken)
        cache.subscribe(lambda v, emp: seen.append(v))

        with caplog.at_level(logging.ERROR, logger="hris.leave.cache"):
            cache.invalidate()

        assert seen == [1]
        assert "listener" in caplog.text

    def test_reset(self):
        cache = LeaveEngineCache()
        cache.subscribe(lambda v, emp: None)
        cache.invalidate()
        cache.reset()
        assert cache.version == 0
        assert cache.version_for(uuid.uuid4()) == 0
