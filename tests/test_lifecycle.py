from __future__ import annotations

import pytest

from tableau_report.host import TAB_SWITCH
from tableau_report.lifecycle import Active, Unmounted, WidgetLifecycle


class _Sheet:
    def __init__(self, url: str) -> None:
        self.url = url

    def get_url(self) -> str:
        return self.url


class _Workbook:
    def __init__(self, sheet) -> None:
        self.sheet = sheet

    def get_active_sheet(self):
        return self.sheet


class _Handle:
    def __init__(self, locator: str, options: dict) -> None:
        self.locator = locator
        self.options = options
        self.dispose_calls = 0
        self.listeners: dict[str, list] = {}
        self.workbook = _Workbook(_Sheet(locator + "/Sheet1"))

    def dispose(self) -> None:
        self.dispose_calls += 1

    def add_event_listener(self, name: str, callback) -> None:
        self.listeners.setdefault(name, []).append(callback)

    def set_frame_size(self, width: int, height: int) -> None:
        pass

    def get_workbook(self):
        return self.workbook

    def become_interactive(self) -> None:
        self.options["onFirstInteractive"]()

    def switch_tab(self, url: str) -> None:
        self.workbook.sheet = _Sheet(url)
        for callback in self.listeners.get(TAB_SWITCH, []):
            callback({"name": TAB_SWITCH})


class _Host:
    def __init__(self) -> None:
        self.constructed: list[_Handle] = []
        self.containers: list[object] = []

    def construct(self, container, locator, options):
        self.containers.append(container)
        handle = _Handle(locator, dict(options))
        self.constructed.append(handle)
        return handle


def test_first_reinit_constructs_without_dispose() -> None:
    host = _Host()
    container = object()
    lifecycle = WidgetLifecycle(host, container)

    state = lifecycle.reinit("https://t/views/a", {"width": 100})

    assert isinstance(state, Active)
    assert state.generation == 1
    assert host.containers == [container]
    assert host.constructed[0].dispose_calls == 0
    assert host.constructed[0].options["width"] == 100
    assert callable(host.constructed[0].options["onFirstInteractive"])


def test_reinit_disposes_previous_handle_exactly_once() -> None:
    host = _Host()
    lifecycle = WidgetLifecycle(host, object())

    lifecycle.reinit("https://t/views/a", {})
    lifecycle.reinit("https://t/views/b", {})
    lifecycle.reinit("https://t/views/c", {})

    first, second, third = host.constructed
    assert first.dispose_calls == 1
    assert second.dispose_calls == 1
    assert third.dispose_calls == 0
    assert lifecycle.handle is third
    assert lifecycle.generation == 3


def test_teardown_disposes_once_and_is_safe_to_repeat() -> None:
    host = _Host()
    lifecycle = WidgetLifecycle(host, object())
    lifecycle.reinit("https://t/views/a", {})

    lifecycle.teardown()
    lifecycle.teardown()

    assert host.constructed[0].dispose_calls == 1
    assert lifecycle.state == Unmounted(1)
    assert lifecycle.handle is None


def test_failing_dispose_leaves_lifecycle_unmounted() -> None:
    host = _Host()
    lifecycle = WidgetLifecycle(host, object())
    lifecycle.reinit("https://t/views/a", {})

    def boom() -> None:
        raise RuntimeError("dispose failed")

    host.constructed[0].dispose = boom

    with pytest.raises(RuntimeError, match="dispose failed"):
        lifecycle.reinit("https://t/views/b", {})

    assert isinstance(lifecycle.state, Unmounted)
    assert len(host.constructed) == 1


def test_readiness_publishes_handle_and_registers_tab_listener() -> None:
    host = _Host()
    ready = []
    lifecycle = WidgetLifecycle(host, object(), on_ready=ready.append)
    lifecycle.reinit("https://t/views/a", {})
    handle = host.constructed[0]

    assert lifecycle.ready_handle is None
    handle.become_interactive()

    assert lifecycle.ready_handle is handle
    assert len(handle.listeners[TAB_SWITCH]) == 1
    assert ready[0].handle is handle
    assert ready[0].generation == 1
    assert ready[0].is_current


def test_tab_switch_forwards_active_sheet_url() -> None:
    host = _Host()
    switched: list[tuple[int, str]] = []
    lifecycle = WidgetLifecycle(
        host,
        object(),
        on_tab_switch=lambda context, url: switched.append((context.generation, url)),
    )
    lifecycle.reinit("https://t/views/a", {})
    handle = host.constructed[0]
    handle.become_interactive()

    handle.switch_tab("https://t/views/a/Sheet2")

    assert switched == [(1, "https://t/views/a/Sheet2")]


def test_stale_readiness_and_tab_events_are_ignored() -> None:
    host = _Host()
    ready = []
    switched = []
    lifecycle = WidgetLifecycle(
        host,
        object(),
        on_ready=ready.append,
        on_tab_switch=lambda context, url: switched.append(url),
    )
    lifecycle.reinit("https://t/views/a", {})
    old = host.constructed[0]
    old.become_interactive()
    lifecycle.reinit("https://t/views/b", {})

    old.become_interactive()
    old.switch_tab("https://t/views/a/Sheet9")

    assert len(ready) == 1
    assert switched == []
    assert lifecycle.ready_handle is None
    assert not ready[0].is_current
