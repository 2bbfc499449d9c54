"""
TableauReport.py — Reconcile a declarative report description with a live viz

A Tableau viz is an imperative, asynchronous, stateful object: it is built once
from a URL, then mutated through async calls (apply a filter, change a
parameter, change the sheet size). Notebook code, on the other hand, wants to
say *what* the report should show and have the widget follow. ``TableauReport``
bridges the two.

Usage
-----

    from tableau_report import DesiredState, TableauReport, TableauVizHost

    host = TableauVizHost()
    report = TableauReport(host)
    report.mount(DesiredState("https://tableau.example.com/views/Sales/Overview",
                              filters={"Region": ["West", "East"]},
                              display={"width": 900, "height": 600}))
    report                      # displays the widget

    # later, from a callback or a cell:
    cycle = report.update(report.desired.replace(filters={"Region": ["West"]}))
    await cycle.settled()

Routing
-------

Each :meth:`TableauReport.update` compares the new state with the previous one
and routes:

- locator changed: dispose the viz and build a new one with the new filters,
  parameters and display options as construction options. Filter and
  parameter diffing is skipped for this update.
- filters changed (order-insensitive): issue one ``apply_filter_async`` per
  changed key, unless a batch is still loading.
- parameters changed (strict): issue one ``change_parameter_value_async`` per
  changed key, unless a batch is still loading.
- width/height changed: resize, independently of the above. Skipped while
  either dimension is unset.
- credential changed: tracked after everything above, so a construction in
  the same update still uses the previous credential state. The next
  construction may embed the new credential.

Updates dropped because a batch was loading are not queued or retried.

Settlement is best-effort. When a batch settles, the applied snapshot for its
domain becomes the full desired mapping even if some operations were rejected;
:class:`~tableau_report.diff_applier.BatchResult` reports which ones failed.
A batch that settles after the viz was replaced leaves the snapshot alone.

Logging
-------

This module uses the standard ``logging`` module with a ``NullHandler``;
enable ``logging.getLogger("tableau_report").setLevel(logging.DEBUG)`` to see
every routing decision.
"""

from __future__ import annotations

import asyncio
import dataclasses
import inspect
import logging
from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Optional

from IPython.display import display

from .diff_applier import FILTERS, PARAMETERS, BatchResult, DiffApplier
from .equality import is_value_sequence, mapping_changed
from .host import HostLibrary, VizHandle
from .lifecycle import ReadyContext, WidgetLifecycle, WidgetLifecycleError
from .report_options import DesiredState, ReportConfig
from .resize import resize_viz
from .token_guard import TokenGuard

__all__ = ["ReconcileCycle", "ReportSnapshot", "TableauReport"]

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass(frozen=True)
class ReportSnapshot:
    """Read-only view of the reconciler's bookkeeping."""

    applied_filters: Mapping[str, Any]
    applied_parameters: Mapping[str, Any]
    loading: bool
    token_consumed: bool
    handle: Optional[VizHandle]
    generation: int


@dataclass(frozen=True)
class ReconcileCycle:
    """What one desired-state delivery changed and what it started.

    ``filter_batch`` / ``parameter_batch`` are tasks resolving to
    :class:`BatchResult`; ``dropped`` lists domains skipped while loading.
    """

    locator_changed: bool = False
    filters_changed: bool = False
    parameters_changed: bool = False
    dimensions_changed: bool = False
    credential_changed: bool = False
    reinitialized: bool = False
    filter_batch: Optional["asyncio.Task[BatchResult]"] = None
    parameter_batch: Optional["asyncio.Task[BatchResult]"] = None
    resize: Optional[Awaitable[Any]] = None
    dropped: tuple[str, ...] = ()

    async def settled(self) -> tuple[BatchResult, ...]:
        """Wait for the batches started by this cycle."""
        tasks = [task for task in (self.filter_batch, self.parameter_batch) if task is not None]
        if not tasks:
            return ()
        return tuple(await asyncio.gather(*tasks))


class TableauReport:
    """Keep one embedded viz in sync with a stream of :class:`DesiredState`.

    Parameters
    ----------
    host : HostLibrary
        Builds viz handles. A :class:`~tableau_report.TableauViz.TableauVizHost`
        in notebooks.
    container : Any, optional
        Rendering surface handed to ``host.construct``. Defaults to ``host``,
        which is correct for ``TableauVizHost`` (the widget renders into itself).
    config : ReportConfig, optional
        Filter update mode and credential tokenizer.
    loop : asyncio.AbstractEventLoop, optional
        Loop used for batch settlement. Defaults to the running loop at the
        time a batch is issued.

    Notes
    -----
    A report manages a single mount/unmount lifetime; all calls are expected
    from the thread running the event loop.
    """

    def __init__(
        self,
        host: HostLibrary,
        *,
        container: Any = None,
        config: ReportConfig = ReportConfig(),
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self._host = host
        self._container = host if container is None else container
        self._config = config
        self._loop = loop
        self._lifecycle = WidgetLifecycle(
            host,
            self._container,
            on_ready=self._on_ready,
            on_tab_switch=self._forward_tab_switch,
        )
        self._token_guard = TokenGuard(tokenizer=config.tokenizer)
        self._desired: Optional[DesiredState] = None
        self._applied: dict[str, dict[str, Any]] = {FILTERS.domain: {}, PARAMETERS.domain: {}}
        self._loading = False
        self._phase = "new"  # "new" | "mounted" | "unmounted"

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def desired(self) -> Optional[DesiredState]:
        """Return the most recently delivered desired state."""
        return self._desired

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def lifecycle(self) -> WidgetLifecycle:
        return self._lifecycle

    @property
    def is_mounted(self) -> bool:
        return self._phase == "mounted"

    def snapshot(self) -> ReportSnapshot:
        """Return a detached snapshot of the applied state."""
        return ReportSnapshot(
            applied_filters=MappingProxyType(dict(self._applied[FILTERS.domain])),
            applied_parameters=MappingProxyType(dict(self._applied[PARAMETERS.domain])),
            loading=self._loading,
            token_consumed=self._token_guard.consumed,
            handle=self._lifecycle.ready_handle,
            generation=self._lifecycle.generation,
        )

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    def mount(self, desired: DesiredState) -> ReconcileCycle:
        """Build the first viz for *desired*."""
        if self._phase != "new":
            raise WidgetLifecycleError(f"Cannot mount a report that is {self._phase}.")
        self._desired = desired
        self._phase = "mounted"
        self._token_guard.on_credential_changed(desired.credential)
        self._reinit(desired, desired.credential)
        return ReconcileCycle(locator_changed=True, reinitialized=True)

    def unmount(self) -> None:
        """Dispose the viz. The report cannot be mounted again."""
        if self._phase != "mounted":
            return
        self._phase = "unmounted"
        self._lifecycle.teardown()

    def update(self, desired: DesiredState) -> ReconcileCycle:
        """Reconcile the viz with *desired*.

        Batches are scheduled on the event loop; await
        :meth:`ReconcileCycle.settled` to observe their results. If the cycle
        raises, *desired* is not recorded, so delivering it again retries the
        whole cycle.
        """
        previous = self._desired
        if self._phase != "mounted" or previous is None:
            raise WidgetLifecycleError(f"Cannot update a report that is {self._phase}.")

        locator_changed = desired.locator != previous.locator
        filters_changed = mapping_changed(previous.filters, desired.filters, FILTERS.compare)
        parameters_changed = mapping_changed(
            previous.parameters, desired.parameters, PARAMETERS.compare
        )
        dimensions_changed = desired.display.dimensions != previous.display.dimensions
        credential_changed = desired.credential != previous.credential
        was_loading = self._loading

        loop = None
        diffing = (filters_changed or parameters_changed) and not (locator_changed or was_loading)
        if dimensions_changed or diffing:
            # Resolved before any side effect.
            loop = self._event_loop()

        # Callbacks fired from here on must see the new state.
        self._desired = desired
        filter_batch = parameter_batch = None
        dropped: list[str] = []
        try:
            resize = None
            if dimensions_changed:
                logger.debug("reconcile: dimensions changed -> resize %s", desired.display.dimensions)
                resize = self._resize(desired, loop)

            if locator_changed:
                logger.debug("reconcile: locator changed -> reinit")
                # Built with the credential tracked before this update.
                self._reinit(desired, self._token_guard.credential)
            else:
                if filters_changed:
                    if was_loading:
                        dropped.append(FILTERS.domain)
                    else:
                        filter_batch = self._start_batch(
                            FILTERS, desired.filters, self._apply_filter, loop
                        )
                if parameters_changed:
                    if was_loading:
                        dropped.append(PARAMETERS.domain)
                    else:
                        parameter_batch = self._start_batch(
                            PARAMETERS, desired.parameters, self._apply_parameter, loop
                        )
                if dropped:
                    logger.debug("reconcile: loading, dropped %s", dropped)
        except Exception:
            self._desired = previous
            raise

        if credential_changed:
            self._token_guard.on_credential_changed(desired.credential)

        return ReconcileCycle(
            locator_changed=locator_changed,
            filters_changed=filters_changed,
            parameters_changed=parameters_changed,
            dimensions_changed=dimensions_changed,
            credential_changed=credential_changed,
            reinitialized=locator_changed,
            filter_batch=filter_batch,
            parameter_batch=parameter_batch,
            resize=resize,
            dropped=tuple(dropped),
        )

    # ------------------------------------------------------------------
    # Routing targets
    # ------------------------------------------------------------------

    def _reinit(self, desired: DesiredState, credential: Optional[str]) -> None:
        locator = self._token_guard.build_locator(desired.locator, credential)
        self._lifecycle.reinit(locator, desired.initial_options())
        # The new viz was constructed with these values.
        self._applied = {
            FILTERS.domain: dict(desired.filters),
            PARAMETERS.domain: dict(desired.parameters),
        }

    def _resize(
        self, desired: DesiredState, loop: asyncio.AbstractEventLoop
    ) -> Optional[Awaitable[Any]]:
        handle = self._lifecycle.handle
        if handle is None:
            return None
        pending = resize_viz(handle, desired.display.width, desired.display.height)
        if pending is None or not inspect.isawaitable(pending):
            return pending
        future = asyncio.ensure_future(pending, loop=loop)
        future.add_done_callback(_log_resize_failure)
        return future

    def _start_batch(
        self,
        applier: DiffApplier,
        desired: Mapping[str, Any],
        apply_op: Any,
        loop: asyncio.AbstractEventLoop,
    ) -> "asyncio.Task[BatchResult]":
        generation = self._lifecycle.generation
        pending = applier.issue(desired, self._applied[applier.domain], apply_op)
        if applier.tracks_loading:
            self._loading = True
        return loop.create_task(self._settle(applier, pending, generation))

    async def _settle(self, applier: DiffApplier, pending: Any, generation: int) -> BatchResult:
        try:
            result = await pending.settle()
        finally:
            if applier.tracks_loading:
                self._loading = False
        if generation != self._lifecycle.generation:
            logger.debug(
                "%s batch from generation %d settled after replacement; ignored",
                applier.domain,
                generation,
            )
            return dataclasses.replace(result, stale=True)
        self._applied[applier.domain] = dict(result.desired)
        if result.failed:
            logger.debug("%s batch settled with failures: %s", applier.domain, result.failed)
        return result

    def _apply_filter(self, key: str, value: Any) -> Awaitable[Any]:
        sheet = self._lifecycle.require_handle().get_workbook().get_active_sheet()
        if sheet is None:
            raise WidgetLifecycleError(f"No active sheet to filter on {key!r}")
        values = list(value) if is_value_sequence(value) else value
        return sheet.apply_filter_async(key, values, self._config.filter_update_mode)

    def _apply_parameter(self, key: str, value: Any) -> Awaitable[Any]:
        workbook = self._lifecycle.require_handle().get_workbook()
        return workbook.change_parameter_value_async(key, value)

    # ------------------------------------------------------------------
    # Lifecycle callbacks
    # ------------------------------------------------------------------

    def _on_ready(self, context: ReadyContext) -> None:
        logger.debug("report ready (generation %d)", context.generation)

    def _forward_tab_switch(self, context: ReadyContext, url: str) -> None:
        desired = self._desired
        if desired is None or desired.on_active_pane_changed is None:
            return
        desired.on_active_pane_changed(url)

    def _event_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError as exc:
            raise RuntimeError(
                "TableauReport.update() needs a running asyncio event loop "
                "(or pass loop= to TableauReport)."
            ) from exc

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    @property
    def widget(self) -> Any:
        """The rendering surface to embed in a layout."""
        return self._container

    def _ipython_display_(self, **kwargs: Any) -> None:
        """Render the container in IPython."""
        display(self._container)


def _log_resize_failure(future: "asyncio.Future[Any]") -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.debug("resize request failed: %s", exc)
