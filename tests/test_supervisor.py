"""Tests for the lazily loaded panel supervisor."""
import asyncio
import json
from types import SimpleNamespace

import pytest

from conceptviz.supervisor import FALLBACK_MESSAGE, PanelMount, PanelSupervisor, lazy_import


class FlakyLoader:

    def __init__(self, failures):
        self.calls = 0
        self.failures = failures
        self.panel = SimpleNamespace(render=lambda x: x * 2, broken=lambda: 1 / 0)

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise ImportError("chunk failed to load")
        return self.panel


@pytest.fixture
def sleeps():
    recorded = []

    async def fake_sleep(seconds):
        recorded.append(seconds)
    fake_sleep.recorded = recorded
    return fake_sleep


class TestMount:

    def test_first_try(self, sleeps):
        loader = FlakyLoader(failures=0)
        sup = PanelSupervisor(loader, sleep=sleeps)
        mount = asyncio.run(sup.mount())
        assert mount.ok and mount.panel is loader.panel
        assert sleeps.recorded == []

    def test_retry_once_after_delay(self, sleeps):
        loader = FlakyLoader(failures=1)
        sup = PanelSupervisor(loader, retry_delay=1.5, sleep=sleeps)
        mount = asyncio.run(sup.mount())
        assert mount.ok
        assert loader.calls == 2
        assert sleeps.recorded == [1.5]

    def test_second_failure_falls_back(self, sleeps):
        loader = FlakyLoader(failures=5)
        sup = PanelSupervisor(loader, sleep=sleeps)
        mount = asyncio.run(sup.mount())
        assert not mount.ok
        assert mount.error == FALLBACK_MESSAGE
        assert loader.calls == 2

    def test_failure_is_not_cached(self, sleeps):
        loader = FlakyLoader(failures=2)
        sup = PanelSupervisor(loader, sleep=sleeps)
        assert not asyncio.run(sup.mount()).ok
        assert asyncio.run(sup.mount()).ok
        assert loader.calls == 3

    def test_success_is_cached(self, sleeps):
        loader = FlakyLoader(failures=0)
        sup = PanelSupervisor(loader, sleep=sleeps)
        asyncio.run(sup.mount())
        asyncio.run(sup.mount())
        assert loader.calls == 1
        assert sup.current.panel is loader.panel

    def test_current_before_mount_is_fallback(self):
        sup = PanelSupervisor(FlakyLoader(failures=0))
        assert not sup.current.ok


class TestRender:

    def test_render_ok(self):
        sup = PanelSupervisor(FlakyLoader(failures=0))
        mount = PanelMount(panel=SimpleNamespace(render=lambda x: x + 1))
        assert sup.render(mount, "render", 1) == (2, None)

    def test_render_error_falls_back(self):
        loader = FlakyLoader(failures=0)
        sup = PanelSupervisor(loader)
        result, error = sup.render(PanelMount(panel=loader.panel), "broken")
        assert result is None
        assert error == FALLBACK_MESSAGE

    def test_render_on_failed_mount(self):
        sup = PanelSupervisor(FlakyLoader(failures=0))
        assert sup.render(PanelMount(error="gone"), "render", 1) == (None, "gone")


class TestLazyImport:

    def test_imports_module(self):
        assert lazy_import("json")() is json

    def test_missing_module_falls_back(self, sleeps):
        sup = PanelSupervisor(lazy_import("conceptviz.no_such_panel"), sleep=sleeps)
        mount = asyncio.run(sup.mount())
        assert not mount.ok
        assert sleeps.recorded == [1.5]
