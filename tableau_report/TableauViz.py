"""
TableauViz.py — Tableau JavaScript API host for Jupyter via anywidget

``TableauVizHost`` is an ``anywidget.AnyWidget`` that renders Tableau vizzes
inside its own DOM node and exposes them to Python through the
:class:`~tableau_report.host.HostLibrary` protocol, so it can be handed
directly to :class:`~tableau_report.TableauReport.TableauReport`.

Message protocol
----------------

Python -> frontend (``widget.send``):

- ``{"type": "construct", "viz": id, "url": str, "options": dict}``
- ``{"type": "call", "viz": id, "id": int | None, "target": "viz" | "workbook" | "sheet",
  "method": str, "args": list}``. ``id`` is ``None`` for fire-and-forget calls.
- ``{"type": "dispose", "viz": id}``

Frontend -> Python (``model.send``):

- ``{"type": "ready"}`` when a view renders, ``{"type": "detached"}`` when it goes away
- ``{"type": "result", "id": int, "ok": bool, "error": str | None}``
- ``{"type": "event", "viz": id, "name": "firstinteractive" | "tabswitch" | "error",
  "sheet": {"type", "url", "name"} | None, "error": str | None}``

The frontend listens per model in ``initialize`` and hands messages to the
views currently rendered. A viz built before the widget is displayed waits in
Python; ``construct`` is sent for every live viz whenever a view reports
``ready``. While no view is attached, calls fail at once with
:class:`VizCallError`, and pending calls fail when the last view detaches.

The active sheet is mirrored on the Python side from event payloads, so
``get_workbook().get_active_sheet()`` answers synchronously.

Notes
-----
- Awaitables returned by the ``*_async`` methods are ``asyncio.Future``
  objects bound to the running loop, which in a notebook is the kernel loop.
- ``set_frame_size`` also sets the widget layout height so the output cell
  follows the frame.
- Displaying the same host in several output cells creates several frontend
  views, each building its own viz. Display it once.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any, Optional

import anywidget
import ipywidgets as W
import traitlets

from .host import FIRST_INTERACTIVE

__all__ = ["RemoteSheet", "RemoteViz", "RemoteWorkbook", "TableauVizHost", "VizCallError"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

DEFAULT_API_SRC = "https://public.tableau.com/javascripts/api/tableau-2.min.js"


class VizCallError(RuntimeError):
    """A call on a remote viz was rejected or could not be delivered."""


class RemoteSheet:
    """Python mirror of the active sheet reported by the frontend."""

    def __init__(self, viz: "RemoteViz", *, sheet_type: str, url: str, name: str = "") -> None:
        self._viz = viz
        self.sheet_type = sheet_type
        self.url = url
        self.name = name

    def __repr__(self) -> str:
        return f"RemoteSheet(type={self.sheet_type!r}, url={self.url!r})"

    def get_sheet_type(self) -> str:
        return self.sheet_type

    def get_url(self) -> str:
        return self.url

    def change_size_async(self, config: Mapping[str, Any]) -> "asyncio.Future[Any]":
        return self._viz._call("sheet", "changeSizeAsync", [dict(config)])

    def apply_filter_async(
        self, field_name: str, values: Any, update_type: str
    ) -> "asyncio.Future[Any]":
        return self._viz._call("sheet", "applyFilterAsync", [field_name, values, update_type])


class RemoteWorkbook:
    def __init__(self, viz: "RemoteViz") -> None:
        self._viz = viz

    def get_active_sheet(self) -> Optional[RemoteSheet]:
        return self._viz._active_sheet

    def change_parameter_value_async(self, name: str, value: Any) -> "asyncio.Future[Any]":
        return self._viz._call("workbook", "changeParameterValueAsync", [name, value])


class RemoteViz:
    """Handle for one viz living in the frontend of a :class:`TableauVizHost`."""

    def __init__(
        self,
        host: "TableauVizHost",
        viz_id: str,
        *,
        locator: str = "",
        options: Optional[Mapping[str, Any]] = None,
        on_first_interactive: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._host = host
        self.viz_id = viz_id
        self.locator = locator
        # Plain construction options, kept to rebuild the viz in a new view.
        self.options: dict[str, Any] = dict(options or {})
        self._on_first_interactive = on_first_interactive
        self._listeners: dict[str, list[Callable[..., Any]]] = {}
        self._active_sheet: Optional[RemoteSheet] = None
        self.interactive = False
        self.disposed = False

    def __repr__(self) -> str:
        return f"RemoteViz({self.viz_id!r}, interactive={self.interactive}, disposed={self.disposed})"

    def dispose(self) -> None:
        if self.disposed:
            raise VizCallError(f"viz {self.viz_id} was already disposed")
        self.disposed = True
        self._host._release(self)

    def add_event_listener(self, event_name: str, callback: Callable[..., Any]) -> None:
        self._listeners.setdefault(event_name, []).append(callback)

    def set_frame_size(self, width: int, height: int) -> None:
        width, height = int(width), int(height)
        self.options.update(width=f"{width}px", height=f"{height}px")
        self._call("viz", "setFrameSize", [width, height], reply=False)
        if not self.disposed:
            self._host.layout.height = f"{height}px"

    def get_workbook(self) -> RemoteWorkbook:
        return RemoteWorkbook(self)

    def _call(self, target: str, method: str, args: list[Any], *, reply: bool = True) -> Any:
        if self.disposed:
            return _failed_call(reply, f"viz {self.viz_id} is disposed")
        return self._host._send_call(self, target, method, args, reply=reply)

    def _handle_event(self, name: str, payload: Mapping[str, Any]) -> None:
        sheet = payload.get("sheet")
        if sheet:
            self._active_sheet = RemoteSheet(
                self,
                sheet_type=str(sheet.get("type", "")),
                url=str(sheet.get("url", "")),
                name=str(sheet.get("name", "")),
            )
        if name == FIRST_INTERACTIVE:
            # A viz rebuilt in a new view reports readiness again.
            first = not self.interactive
            self.interactive = True
            if first and self._on_first_interactive is not None:
                self._on_first_interactive()
        for callback in list(self._listeners.get(name, ())):
            callback(payload)


def _failed_call(reply: bool, message: str) -> Optional["asyncio.Future[Any]"]:
    if not reply:
        return None
    future = asyncio.get_running_loop().create_future()
    future.set_exception(VizCallError(message))
    return future


class TableauVizHost(anywidget.AnyWidget):
    """
    Notebook host for Tableau vizzes.

    Traitlets (synced to frontend)
    ------------------------------

    api_src:
        URL of the Tableau JavaScript API (v2) script. Loaded once per page,
        unless ``window.tableau`` already provides ``Viz``.

    debug_js:
        If True, enables console logging from the frontend.
    """

    api_src = traitlets.Unicode(DEFAULT_API_SRC).tag(sync=True)
    debug_js = traitlets.Bool(False).tag(sync=True)

    _esm = r"""
    const apiLoads = new Map();

    function safeLog(enabled, ...args) {
      if (enabled) console.log("[TableauVizHost]", ...args);
    }

    function loadApi(src) {
      if (window.tableau && window.tableau.Viz) return Promise.resolve(window.tableau);
      if (!apiLoads.has(src)) {
        apiLoads.set(src, new Promise((resolve, reject) => {
          const script = document.createElement("script");
          script.src = src;
          script.onload = () => resolve(window.tableau);
          script.onerror = () => {
            apiLoads.delete(src);
            reject(new Error(`failed to load ${src}`));
          };
          document.head.appendChild(script);
        }));
      }
      return apiLoads.get(src);
    }

    function sheetInfo(viz) {
      try {
        const sheet = viz.getWorkbook().getActiveSheet();
        if (!sheet) return null;
        return { type: sheet.getSheetType(), url: sheet.getUrl(), name: sheet.getName() };
      } catch (e) {
        return null;
      }
    }

    function translateArgs(tableau, method, args) {
      if (method === "applyFilterAsync" && args.length > 2) {
        const mode = String(args[2]).toUpperCase();
        args[2] = (tableau.FilterUpdateType && tableau.FilterUpdateType[mode]) || mode.toLowerCase();
      }
      if (method === "changeSizeAsync" && args[0] && args[0].behavior) {
        const b = String(args[0].behavior).toUpperCase();
        args[0].behavior = (tableau.SheetSizeBehavior && tableau.SheetSizeBehavior[b]) || b.toLowerCase();
      }
      return args;
    }

    const viewsByModel = new WeakMap();

    function viewsOf(model) {
      let views = viewsByModel.get(model);
      if (!views) {
        views = new Set();
        viewsByModel.set(model, views);
      }
      return views;
    }

    export default {
      initialize({ model }) {
        const views = viewsOf(model);
        const onMsg = (msg) => {
          if (!msg || !msg.type) return;
          if (views.size === 0) {
            // Constructs are replayed when a view sends "ready".
            if (msg.type === "call" && msg.id !== null && msg.id !== undefined) {
              model.send({ type: "result", id: msg.id, ok: false, error: "no view attached" });
            }
            return;
          }
          for (const view of views) view(msg);
        };
        model.on("msg:custom", onMsg);
        return () => {
          try { model.off("msg:custom", onMsg); } catch (e) {}
        };
      },

      render({ model, el }) {
        const vizzes = new Map();
        const debug = () => !!model.get("debug_js");

        function emit(vizId, name, viz, error) {
          model.send({ type: "event", viz: vizId, name, sheet: viz ? sheetInfo(viz) : null, error: error || null });
        }

        function construct(msg) {
          if (vizzes.has(msg.viz)) return;
          const holder = document.createElement("div");
          el.appendChild(holder);
          const entry = loadApi(model.get("api_src")).then((tableau) => {
            let viz = null;
            const options = Object.assign({}, msg.options || {}, {
              onFirstInteractive: () => {
                viz.addEventListener(tableau.TableauEventName.TAB_SWITCH, () => emit(msg.viz, "tabswitch", viz));
                emit(msg.viz, "firstinteractive", viz);
              },
            });
            viz = new tableau.Viz(holder, msg.url, options);
            safeLog(debug(), "constructed", msg.viz, msg.url);
            return { tableau, viz, holder };
          });
          entry.catch((e) => emit(msg.viz, "error", null, String(e)));
          vizzes.set(msg.viz, entry);
        }

        async function call(msg) {
          const reply = (ok, error) => {
            if (msg.id !== null && msg.id !== undefined) {
              model.send({ type: "result", id: msg.id, ok, error: error || null });
            }
          };
          const pending = vizzes.get(msg.viz);
          if (!pending) return reply(false, `unknown viz ${msg.viz}`);
          try {
            const { tableau, viz } = await pending;
            let target = viz;
            if (msg.target === "workbook") target = viz.getWorkbook();
            if (msg.target === "sheet") target = viz.getWorkbook().getActiveSheet();
            if (!target) return reply(false, `no ${msg.target} available`);
            await target[msg.method](...translateArgs(tableau, msg.method, msg.args || []));
            reply(true);
          } catch (e) {
            safeLog(debug(), "call failed", msg.method, e);
            reply(false, String(e && e.message ? e.message : e));
          }
        }

        async function dispose(msg) {
          const pending = vizzes.get(msg.viz);
          vizzes.delete(msg.viz);
          if (!pending) return;
          try {
            const { viz, holder } = await pending;
            viz.dispose();
            holder.remove();
          } catch (e) {
            safeLog(debug(), "dispose failed", e);
          }
        }

        const handle = (msg) => {
          if (msg.type === "construct") construct(msg);
          else if (msg.type === "call") call(msg);
          else if (msg.type === "dispose") dispose(msg);
        };
        const views = viewsOf(model);
        views.add(handle);
        model.send({ type: "ready" });

        return () => {
          views.delete(handle);
          for (const vizId of Array.from(vizzes.keys())) {
            try { dispose({ viz: vizId }); } catch (e) {}
          }
          try { model.send({ type: "detached" }); } catch (e) {}
        };
      }
    };
    """

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("layout", W.Layout(width="100%", min_width="0", overflow="hidden"))
        super().__init__(**kwargs)
        self._request_ids = itertools.count(1)
        self._pending: dict[int, tuple[RemoteViz, asyncio.Future]] = {}
        self._vizzes: dict[str, RemoteViz] = {}
        self._views = 0
        self.on_msg(self._handle_frontend_msg)

    @property
    def views_attached(self) -> int:
        """Number of frontend views that reported ``ready`` and are still alive."""
        return self._views

    def construct(self, container: Any, locator: str, options: Mapping[str, Any]) -> RemoteViz:
        """Build a viz for *locator* in this widget's DOM node.

        The viz is built as soon as a frontend view is attached; until then it
        waits and is sent with the view's ``ready`` message.
        """
        if container is not self:
            raise ValueError("TableauVizHost renders into itself; pass the host as container.")
        plain = {key: value for key, value in options.items() if not callable(value)}
        viz = RemoteViz(
            self,
            uuid.uuid4().hex,
            locator=locator,
            options=plain,
            on_first_interactive=options.get("onFirstInteractive"),
        )
        self._vizzes[viz.viz_id] = viz
        if self._views:
            self._send_construct(viz)
        else:
            logger.debug("viz %s waits for a frontend view", viz.viz_id)
        return viz

    def _send_construct(self, viz: RemoteViz) -> None:
        self.send(
            {"type": "construct", "viz": viz.viz_id, "url": viz.locator, "options": dict(viz.options)}
        )

    def _send_call(
        self, viz: RemoteViz, target: str, method: str, args: list[Any], *, reply: bool
    ) -> Optional["asyncio.Future[Any]"]:
        if not self._views:
            return _failed_call(reply, "no frontend view attached; display the widget first")
        request_id = None
        future = None
        if reply:
            future = asyncio.get_running_loop().create_future()
            request_id = next(self._request_ids)
            self._pending[request_id] = (viz, future)
        self.send(
            {
                "type": "call",
                "viz": viz.viz_id,
                "id": request_id,
                "target": target,
                "method": method,
                "args": args,
            }
        )
        return future

    def _release(self, viz: RemoteViz) -> None:
        self._vizzes.pop(viz.viz_id, None)
        if self._views:
            self.send({"type": "dispose", "viz": viz.viz_id})
        self._fail_pending(f"viz {viz.viz_id} was disposed", owner=viz)

    def _fail_pending(self, message: str, *, owner: Optional[RemoteViz] = None) -> None:
        for request_id, (viz, future) in list(self._pending.items()):
            if owner is not None and viz is not owner:
                continue
            del self._pending[request_id]
            if not future.done():
                future.set_exception(VizCallError(message))

    def _handle_frontend_msg(self, _widget: Any, content: Mapping[str, Any], _buffers: Any) -> None:
        kind = content.get("type")
        if kind == "result":
            entry = self._pending.pop(content.get("id"), None)
            if entry is None:
                return
            _viz, future = entry
            if future.done():
                return
            if content.get("ok"):
                future.set_result(None)
            else:
                future.set_exception(VizCallError(content.get("error") or "call rejected"))
        elif kind == "ready":
            self._views += 1
            logger.debug(
                "frontend view attached (%d live); replaying %d viz(es)", self._views, len(self._vizzes)
            )
            for viz in list(self._vizzes.values()):
                self._send_construct(viz)
        elif kind == "detached":
            self._views = max(0, self._views - 1)
            if not self._views:
                self._fail_pending("frontend view detached")
        elif kind == "event":
            viz = self._vizzes.get(content.get("viz"))
            if viz is None:
                logger.debug("event %r for unknown viz %r", content.get("name"), content.get("viz"))
                return
            name = str(content.get("name", ""))
            if name == "error":
                logger.error("viz %s failed to load: %s", viz.viz_id, content.get("error"))
                return
            try:
                viz._handle_event(name, content)
            except Exception:
                logger.exception("viz event handler for %r failed", name)
