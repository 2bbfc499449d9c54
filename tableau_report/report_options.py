"""Value types describing what the embedded report should look like.

``DesiredState`` is delivered to :class:`~tableau_report.TableauReport.TableauReport`
on every update; ``ReportConfig`` holds the knobs fixed for a report's lifetime.
All three types are frozen and copy their mapping inputs, so a state handed to
the reconciler cannot be mutated behind its back.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Optional, Union

from .host import FILTER_UPDATE_MODES
from .locator import trusted_ticket_locator

__all__ = ["DesiredState", "DisplayOptions", "ReportConfig"]

Dimension = Union[int, float, str, None]


def _frozen_mapping(values: Optional[Mapping[str, Any]], *, name: str) -> Mapping[str, Any]:
    if values is None:
        return MappingProxyType({})
    if not isinstance(values, Mapping):
        raise TypeError(f"{name} must be a mapping, got {type(values).__name__}")
    return MappingProxyType({str(key): deepcopy(value) for key, value in values.items()})


@dataclass(frozen=True)
class DisplayOptions:
    """Frame dimensions plus pass-through construction options.

    Parameters
    ----------
    width, height : int, float, str or None
        Frame dimensions. Strings such as ``"800px"`` are accepted; they are
        coerced to integers only when the frame is resized.
    extra : Mapping[str, Any]
        Other construction options forwarded verbatim (``hideTabs``,
        ``hideToolbar``, ``device``, ...).
    """

    width: Dimension = None
    height: Dimension = None
    extra: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "extra", _frozen_mapping(self.extra, name="extra"))
        for key in ("width", "height"):
            if key in self.extra:
                raise ValueError(f"{key!r} must be passed as a field, not inside extra")

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]]) -> "DisplayOptions":
        """Build from a flat mapping; ``width``/``height`` are lifted out."""
        remaining = dict(options or {})
        width = remaining.pop("width", None)
        height = remaining.pop("height", None)
        return cls(width=width, height=height, extra=remaining)

    @property
    def dimensions(self) -> tuple[Dimension, Dimension]:
        return self.width, self.height

    def as_options(self) -> dict[str, Any]:
        """Return the flat option dict used at construction time."""
        options = dict(self.extra)
        if self.width is not None:
            options["width"] = self.width
        if self.height is not None:
            options["height"] = self.height
        return options


@dataclass(frozen=True)
class DesiredState:
    """Declarative description of the embedded report.

    Parameters
    ----------
    locator : str
        URL of the view to embed.
    filters : Mapping[str, Any], optional
        Field name to a value or a list of values.
    parameters : Mapping[str, Any], optional
        Parameter name to a scalar value.
    display : DisplayOptions or Mapping, optional
        Frame dimensions and pass-through options. Plain mappings are converted
        with :meth:`DisplayOptions.from_mapping`.
    credential : str or None, optional
        One-time access ticket.
    on_active_pane_changed : callable, optional
        ``callback(url)`` invoked when the user switches tabs. Ignored for
        equality.
    """

    locator: str
    filters: Mapping[str, Any] = field(default_factory=dict)
    parameters: Mapping[str, Any] = field(default_factory=dict)
    display: DisplayOptions = field(default_factory=DisplayOptions)
    credential: Optional[str] = None
    on_active_pane_changed: Optional[Callable[[str], Any]] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not isinstance(self.locator, str):
            raise TypeError(f"locator must be a string, got {type(self.locator).__name__}")
        if self.credential is not None and not isinstance(self.credential, str):
            raise TypeError("credential must be a string or None")
        object.__setattr__(self, "filters", _frozen_mapping(self.filters, name="filters"))
        object.__setattr__(self, "parameters", _frozen_mapping(self.parameters, name="parameters"))
        if not isinstance(self.display, DisplayOptions):
            object.__setattr__(self, "display", DisplayOptions.from_mapping(self.display))

    def initial_options(self) -> dict[str, Any]:
        """Construction options: filters, then parameters, then display options."""
        return {**self.filters, **self.parameters, **self.display.as_options()}

    def replace(self, **changes: Any) -> "DesiredState":
        """Return a copy with *changes* applied."""
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class ReportConfig:
    """Settings fixed for the lifetime of a report.

    Parameters
    ----------
    filter_update_mode : {"REPLACE", "ADD", "REMOVE", "ALL"}
        Update mode passed with every filter operation.
    tokenizer : callable
        ``tokenizer(locator, credential) -> str`` used for the one-time
        credential-embedded locator.
    """

    filter_update_mode: str = "REPLACE"
    tokenizer: Callable[[str, str], str] = trusted_ticket_locator

    def __post_init__(self) -> None:
        mode = str(self.filter_update_mode).upper()
        if mode not in FILTER_UPDATE_MODES:
            raise ValueError(f"filter_update_mode must be one of {set(FILTER_UPDATE_MODES)}")
        object.__setattr__(self, "filter_update_mode", mode)
        if not callable(self.tokenizer):
            raise TypeError("tokenizer must be callable")
