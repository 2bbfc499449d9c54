"""Interface of the host visualization library.

The reconciler never talks to a concrete rendering engine. It drives any
object graph that satisfies the protocols below; :mod:`tableau_report.TableauViz`
provides the notebook implementation and the test-suite provides in-memory
fakes.

Asynchronous operations return awaitables (normally :class:`asyncio.Future`)
that resolve when the host reports completion and raise when it rejects.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Literal, Optional, Protocol, runtime_checkable

__all__ = [
    "DASHBOARD",
    "FILTER_UPDATE_MODES",
    "FIRST_INTERACTIVE",
    "FitBehavior",
    "HostLibrary",
    "STORY",
    "Sheet",
    "TAB_SWITCH",
    "VizHandle",
    "WORKSHEET",
    "Workbook",
]

DASHBOARD = "dashboard"
STORY = "story"
WORKSHEET = "worksheet"

FIRST_INTERACTIVE = "firstinteractive"
TAB_SWITCH = "tabswitch"

FILTER_UPDATE_MODES = ("ALL", "REPLACE", "ADD", "REMOVE")

FitBehavior = Literal["EXACTLY", "AUTOMATIC"]


@runtime_checkable
class Sheet(Protocol):
    """A single worksheet, dashboard or story inside a workbook."""

    def get_sheet_type(self) -> str: ...

    def get_url(self) -> str: ...

    def change_size_async(self, config: Mapping[str, Any]) -> Awaitable[Any]: ...

    def apply_filter_async(
        self, field_name: str, values: Any, update_type: str
    ) -> Awaitable[Any]: ...


@runtime_checkable
class Workbook(Protocol):
    def get_active_sheet(self) -> Optional[Sheet]: ...

    def change_parameter_value_async(self, name: str, value: Any) -> Awaitable[Any]: ...


@runtime_checkable
class VizHandle(Protocol):
    """A live widget instance.

    ``dispose`` is not assumed idempotent; callers release a handle at most once.
    """

    def dispose(self) -> None: ...

    def add_event_listener(self, event_name: str, callback: Callable[..., Any]) -> None: ...

    def set_frame_size(self, width: int, height: int) -> None: ...

    def get_workbook(self) -> Workbook: ...


@runtime_checkable
class HostLibrary(Protocol):
    """Factory for widget handles.

    ``options`` carries initial filters, parameters and display options, plus
    an ``onFirstInteractive`` callable invoked once when the widget is ready.
    """

    def construct(self, container: Any, locator: str, options: Mapping[str, Any]) -> VizHandle: ...
