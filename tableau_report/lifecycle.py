"""Ownership of the single live widget handle.

The lifecycle is a two-state machine::

    Unmounted(generation) --reinit--> Active(handle, generation + 1)
    Active(handle, g)     --reinit--> Active(new_handle, g + 1)   (old handle disposed)
    Active(handle, g)     --teardown--> Unmounted(g)

Every transition out of ``Active`` disposes the handle exactly once. The
generation counter increases with each construction; callbacks and batches
that captured an older generation can tell they refer to a replaced widget.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from .host import TAB_SWITCH, HostLibrary, VizHandle

__all__ = [
    "Active",
    "LifecycleState",
    "ReadyContext",
    "Unmounted",
    "WidgetLifecycle",
    "WidgetLifecycleError",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


class WidgetLifecycleError(RuntimeError):
    """Raised when the widget is used outside of its live span."""


@dataclass(frozen=True)
class Unmounted:
    generation: int = 0


@dataclass(frozen=True)
class Active:
    handle: VizHandle
    generation: int


LifecycleState = Union[Unmounted, Active]


@dataclass(frozen=True)
class ReadyContext:
    """Explicit context handed to readiness and tab-switch callbacks."""

    lifecycle: "WidgetLifecycle"
    handle: VizHandle
    generation: int

    @property
    def is_current(self) -> bool:
        """Return True while this context still names the live widget."""
        state = self.lifecycle.state
        return isinstance(state, Active) and state.generation == self.generation


class _FirstInteractive:
    """Readiness callback bound to one construction."""

    def __init__(self, lifecycle: "WidgetLifecycle", generation: int) -> None:
        self.lifecycle = lifecycle
        self.generation = generation

    def __call__(self, *_event: Any) -> None:
        self.lifecycle._handle_first_interactive(self.generation)


class _TabSwitchForwarder:
    def __init__(self, context: ReadyContext) -> None:
        self.context = context

    def __call__(self, *_event: Any) -> None:
        self.context.lifecycle._handle_tab_switch(self.context)


class WidgetLifecycle:
    """Construct, publish and dispose widget handles.

    Parameters
    ----------
    host : HostLibrary
        Factory used to construct handles.
    container : Any
        Rendering surface passed to every construction.
    on_ready : callable, optional
        ``on_ready(context)`` called when the current widget becomes interactive.
    on_tab_switch : callable, optional
        ``on_tab_switch(context, url)`` called with the active sheet's URL on
        every tab switch of the current widget.
    """

    def __init__(
        self,
        host: HostLibrary,
        container: Any,
        *,
        on_ready: Optional[Callable[[ReadyContext], Any]] = None,
        on_tab_switch: Optional[Callable[[ReadyContext, str], Any]] = None,
    ) -> None:
        self._host = host
        self._container = container
        self._on_ready = on_ready
        self._on_tab_switch = on_tab_switch
        self._state: LifecycleState = Unmounted()
        self._ready: Optional[ReadyContext] = None

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def generation(self) -> int:
        return self._state.generation

    @property
    def handle(self) -> Optional[VizHandle]:
        """Return the live handle, ready or not."""
        return self._state.handle if isinstance(self._state, Active) else None

    @property
    def ready_handle(self) -> Optional[VizHandle]:
        """Return the live handle once it has reported first interactivity."""
        if self._ready is not None and self._ready.is_current:
            return self._ready.handle
        return None

    def require_handle(self) -> VizHandle:
        handle = self.handle
        if handle is None:
            raise WidgetLifecycleError("No live widget; the report is not mounted.")
        return handle

    def reinit(self, locator: str, options: Mapping[str, Any]) -> Active:
        """Dispose the live handle (if any) and construct a replacement.

        ``options`` is forwarded with an added ``onFirstInteractive`` callback.
        Construction errors propagate; the lifecycle is then ``Unmounted``.
        """
        self.teardown()
        generation = self._state.generation + 1
        merged = dict(options)
        merged["onFirstInteractive"] = _FirstInteractive(self, generation)
        handle = self._host.construct(self._container, locator, merged)
        self._state = Active(handle, generation)
        logger.info("constructed widget generation %d for %s", generation, locator)
        return self._state

    def teardown(self) -> None:
        """Dispose the live handle, if any. Safe to call when unmounted."""
        state = self._state
        if not isinstance(state, Active):
            return
        # Leave Active before disposing so a failing dispose is never retried.
        self._state = Unmounted(state.generation)
        self._ready = None
        logger.info("disposing widget generation %d", state.generation)
        state.handle.dispose()

    def _handle_first_interactive(self, generation: int) -> None:
        state = self._state
        if not isinstance(state, Active) or state.generation != generation:
            logger.debug("ignoring readiness of replaced widget generation %d", generation)
            return
        context = ReadyContext(self, state.handle, generation)
        state.handle.add_event_listener(TAB_SWITCH, _TabSwitchForwarder(context))
        self._ready = context
        logger.debug("widget generation %d is interactive", generation)
        if self._on_ready is not None:
            self._on_ready(context)

    def _handle_tab_switch(self, context: ReadyContext) -> None:
        if not context.is_current:
            return
        sheet = context.handle.get_workbook().get_active_sheet()
        if sheet is None:
            return
        url = sheet.get_url()
        logger.debug("tab switched to %s", url)
        if self._on_tab_switch is not None:
            self._on_tab_switch(context, url)
