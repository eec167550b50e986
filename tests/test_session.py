"""Tests for latest-wins recomputation sessions."""

import threading

from popgravity.errors import Superseded
from popgravity.session import QuerySession


def test_new_ticket_cancels_previous():
    s = QuerySession()
    first = s.begin()
    second = s.begin()
    assert first.cancel.is_set()
    assert not second.cancel.is_set()
    assert not s.is_current(first)
    assert s.is_current(second)


def test_only_current_ticket_publishes():
    s = QuerySession()
    first = s.begin()
    second = s.begin()
    assert s.publish(first, "old") is False
    assert s.latest is None
    assert s.publish(second, "new") is True
    assert s.latest == "new"


def test_run_returns_result():
    s = QuerySession()
    assert s.run(lambda cancel: 42) == 42
    assert s.latest == 42


def test_run_swallows_supersession():
    def work(cancel):
        raise Superseded("gone")

    assert QuerySession().run(work) is None


def test_superseded_run_is_discarded():
    s = QuerySession()
    started = threading.Event()
    out = {}

    def slow(cancel):
        started.set()
        cancel.wait(timeout=5)
        if cancel.is_set():
            raise Superseded("newer request")
        return "slow"

    t = threading.Thread(target=lambda: out.setdefault("slow", s.run(slow)))
    t.start()
    started.wait(timeout=5)
    fast = s.run(lambda cancel: "fast")
    t.join(timeout=5)

    assert fast == "fast"
    assert out["slow"] is None
    assert s.latest == "fast"


def test_late_result_without_check_is_dropped():
    s = QuerySession()
    started = threading.Event()
    release = threading.Event()
    out = {}

    def ignores_cancel(cancel):
        started.set()
        release.wait(timeout=5)
        return "stale"

    t = threading.Thread(target=lambda: out.setdefault("stale", s.run(ignores_cancel)))
    t.start()
    started.wait(timeout=5)
    s.run(lambda cancel: "fresh")
    release.set()
    t.join(timeout=5)

    assert out["stale"] is None
    assert s.latest == "fresh"
