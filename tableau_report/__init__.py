"""Top-level public API for the ``tableau_report`` package.

Embed a Tableau view in a notebook and drive it declaratively:

>>> from tableau_report import DesiredState, TableauReport, TableauVizHost  # doctest: +SKIP
>>> report = TableauReport(TableauVizHost())  # doctest: +SKIP
>>> report.mount(DesiredState(url, filters={"Region": ["West"]}))  # doctest: +SKIP

The reconciliation building blocks (equality policies, the token guard, the
diff applier, the lifecycle state machine and the resize controller) are
exported too, for hosts other than the bundled notebook widget.
"""

from .diff_applier import ApplyOutcome, BatchResult, DiffApplier, compute_and_apply, plan_batch
from .equality import mapping_changed, scalars_equal, values_equal
from .host import HostLibrary, Sheet, VizHandle, Workbook
from .lifecycle import Active, ReadyContext, Unmounted, WidgetLifecycle, WidgetLifecycleError
from .locator import base_locator, trusted_ticket_locator
from .report_options import DesiredState, DisplayOptions, ReportConfig
from .resize import fit_behavior_for, frame_size, resize_viz
from .TableauReport import ReconcileCycle, ReportSnapshot, TableauReport
from .TableauViz import TableauVizHost, VizCallError
from .token_guard import TokenGuard

__all__ = [
    "Active",
    "ApplyOutcome",
    "BatchResult",
    "DesiredState",
    "DiffApplier",
    "DisplayOptions",
    "HostLibrary",
    "ReadyContext",
    "ReconcileCycle",
    "ReportConfig",
    "ReportSnapshot",
    "Sheet",
    "TableauReport",
    "TableauVizHost",
    "TokenGuard",
    "Unmounted",
    "VizCallError",
    "VizHandle",
    "WidgetLifecycle",
    "WidgetLifecycleError",
    "Workbook",
    "base_locator",
    "compute_and_apply",
    "fit_behavior_for",
    "frame_size",
    "mapping_changed",
    "plan_batch",
    "resize_viz",
    "scalars_equal",
    "trusted_ticket_locator",
    "values_equal",
]

__version__ = "0.1.0"
