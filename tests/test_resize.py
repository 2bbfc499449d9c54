from __future__ import annotations

import pytest

from tableau_report.resize import fit_behavior_for, frame_size, resize_viz


class _Sheet:
    def __init__(self, sheet_type: str) -> None:
        self.sheet_type = sheet_type
        self.size_requests: list[dict] = []

    def get_sheet_type(self) -> str:
        return self.sheet_type

    def change_size_async(self, config):
        self.size_requests.append(config)
        return "pending-fit"


class _Workbook:
    def __init__(self, sheet) -> None:
        self.sheet = sheet

    def get_active_sheet(self):
        return self.sheet


class _Handle:
    def __init__(self, sheet=None, events=None) -> None:
        self.workbook = _Workbook(sheet)
        self.frames: list[tuple[int, int]] = []
        self.events = events if events is not None else []

    def get_workbook(self):
        return self.workbook

    def set_frame_size(self, width: int, height: int) -> None:
        self.events.append("frame")
        self.frames.append((width, height))


@pytest.mark.parametrize(
    ("sheet_type", "behavior"),
    [("dashboard", "EXACTLY"), ("story", "EXACTLY"), ("worksheet", "AUTOMATIC")],
)
def test_sheet_type_selects_fit_behavior(sheet_type: str, behavior: str) -> None:
    sheet = _Sheet(sheet_type)
    handle = _Handle(sheet)

    pending = resize_viz(handle, 800, 600)

    assert pending == "pending-fit"
    assert sheet.size_requests == [
        {"behavior": behavior, "maxSize": {"height": 600, "width": 800}}
    ]
    assert handle.frames == [(800, 600)]


def test_no_active_sheet_resizes_frame_directly() -> None:
    handle = _Handle(sheet=None)

    assert resize_viz(handle, "640px", 480.9) is None
    assert handle.frames == [(640, 480)]


def test_unknown_sheet_type_does_nothing() -> None:
    sheet = _Sheet("unknown")
    handle = _Handle(sheet)

    assert resize_viz(handle, 800, 600) is None
    assert sheet.size_requests == []
    assert handle.frames == []


def test_frame_resize_is_issued_without_waiting_for_fit() -> None:
    events: list[str] = []

    class _RecordingSheet(_Sheet):
        def change_size_async(self, config):
            events.append("fit")
            return super().change_size_async(config)

    handle = _Handle(_RecordingSheet("dashboard"), events=events)

    resize_viz(handle, 800, 600)

    assert events == ["fit", "frame"]


def test_fit_behavior_lookup() -> None:
    assert fit_behavior_for("dashboard") == "EXACTLY"
    assert fit_behavior_for("worksheet") == "AUTOMATIC"
    assert fit_behavior_for("") is None


def test_frame_size_parsing() -> None:
    assert frame_size("800px", " 600") == (800, 600)
    assert frame_size(799.9, 10) == (799, 10)
    assert frame_size("auto", 10) is None
    assert frame_size(True, 10) is None
    assert frame_size(float("nan"), 10) is None


@pytest.mark.parametrize(("width", "height"), [(None, 600), (800, None), (None, None)])
def test_incomplete_dimensions_skip_resize(width, height) -> None:
    sheet = _Sheet("dashboard")
    handle = _Handle(sheet)

    assert resize_viz(handle, width, height) is None
    assert sheet.size_requests == []
    assert handle.frames == []


def test_non_numeric_dimension_keeps_frame_but_requests_fit() -> None:
    sheet = _Sheet("worksheet")
    handle = _Handle(sheet)

    assert resize_viz(handle, "auto", 600) == "pending-fit"
    assert sheet.size_requests == [
        {"behavior": "AUTOMATIC", "maxSize": {"height": 600, "width": "auto"}}
    ]
    assert handle.frames == []

    bare = _Handle(sheet=None)
    assert resize_viz(bare, "auto", 600) is None
    assert bare.frames == []
