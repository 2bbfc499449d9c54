"""Frame resizing driven by the active sheet type."""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Awaitable
from typing import Any, Optional

from .host import DASHBOARD, STORY, WORKSHEET, FitBehavior, VizHandle

__all__ = ["FIT_BEHAVIORS", "fit_behavior_for", "frame_size", "resize_viz"]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

FIT_BEHAVIORS: dict[str, FitBehavior] = {
    DASHBOARD: "EXACTLY",
    STORY: "EXACTLY",
    WORKSHEET: "AUTOMATIC",
}

_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def fit_behavior_for(sheet_type: str) -> Optional[FitBehavior]:
    """Return the fit behavior for *sheet_type*, or None when undefined."""
    return FIT_BEHAVIORS.get(sheet_type)


def _to_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        # Accepts CSS-like values such as "800px".
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return None


def frame_size(width: Any, height: Any) -> Optional[tuple[int, int]]:
    """Integer frame size for ``set_frame_size``, or None if not numeric.

    >>> frame_size("800px", 600.7)
    (800, 600)
    >>> frame_size("auto", 600) is None
    True
    """
    size = (_to_int(width), _to_int(height))
    if None in size:
        return None
    return size


def resize_viz(handle: VizHandle, width: Any, height: Any) -> Optional[Awaitable[Any]]:
    """Resize the widget frame according to its active sheet.

    With no active sheet the frame is resized directly. Dashboards and stories
    request an ``EXACTLY`` fit, worksheets an ``AUTOMATIC`` fit, each bounded by
    ``(width, height)``; the frame resize is issued right after the fit request
    without waiting for it. Other sheet types are left alone.

    Nothing is resized while either dimension is unset. A dimension that does
    not parse as an integer (``"auto"``) still goes into the fit request, but
    the frame keeps its current size.

    Returns
    -------
    Awaitable or None
        The pending fit request, when one was issued.
    """
    if width is None or height is None:
        logger.debug("resize skipped; frame size %r x %r is incomplete", width, height)
        return None

    size = frame_size(width, height)
    if size is None:
        logger.debug("frame size %r x %r is not numeric; frame left as is", width, height)

    sheet = handle.get_workbook().get_active_sheet()
    if sheet is None:
        if size is not None:
            handle.set_frame_size(*size)
        return None

    sheet_type = sheet.get_sheet_type()
    behavior = fit_behavior_for(sheet_type)
    if behavior is None:
        logger.debug("no resize behavior for sheet type %r", sheet_type)
        return None

    pending = sheet.change_size_async(
        {"behavior": behavior, "maxSize": {"height": height, "width": width}}
    )
    if size is not None:
        handle.set_frame_size(*size)
    return pending
