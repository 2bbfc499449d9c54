"""Minimal incremental application of filter and parameter mappings.

A batch compares a desired mapping against the mapping last recorded as
applied, issues one host operation per new or changed key, and then waits for
every operation to reach a terminal state (an all-settled join). Individual
failures never fail the batch; they are reported per key in
:class:`BatchResult` so callers can observe them while the default policy stays
best-effort.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal, Optional

from .equality import Comparator, scalars_equal, values_equal

__all__ = [
    "ApplyOutcome",
    "BatchResult",
    "DiffApplier",
    "FILTERS",
    "PARAMETERS",
    "PendingBatch",
    "compute_and_apply",
    "plan_batch",
]

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

Domain = Literal["filters", "parameters"]
ApplyOp = Callable[[str, Any], Awaitable[Any]]


@dataclass(frozen=True)
class ApplyOutcome:
    """Terminal state of one per-key operation."""

    key: str
    value: Any
    ok: bool
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class BatchResult:
    """Aggregated outcome of one batch.

    Parameters
    ----------
    domain : {"filters", "parameters"}
        Diff target the batch was issued for.
    desired : Mapping[str, Any]
        The full desired mapping the batch was diffed against.
    outcomes : tuple[ApplyOutcome, ...]
        One entry per scheduled operation, in issue order.
    stale : bool
        True when the widget was replaced before the batch settled.
    """

    domain: str
    desired: Mapping[str, Any]
    outcomes: tuple[ApplyOutcome, ...] = ()
    stale: bool = False

    @property
    def scheduled(self) -> tuple[str, ...]:
        return tuple(outcome.key for outcome in self.outcomes)

    @property
    def succeeded(self) -> tuple[str, ...]:
        return tuple(outcome.key for outcome in self.outcomes if outcome.ok)

    @property
    def failed(self) -> tuple[str, ...]:
        return tuple(outcome.key for outcome in self.outcomes if not outcome.ok)

    @property
    def all_ok(self) -> bool:
        return all(outcome.ok for outcome in self.outcomes)


def plan_batch(
    desired: Mapping[str, Any],
    applied: Mapping[str, Any],
    compare: Comparator = values_equal,
) -> dict[str, Any]:
    """Return the subset of *desired* that needs an operation.

    A key is scheduled when it is absent from *applied* or when
    ``compare(applied[key], desired[key])`` is false. Keys present only in
    *applied* are not scheduled.
    """
    return {
        key: value
        for key, value in desired.items()
        if key not in applied or not compare(applied[key], value)
    }


@dataclass
class PendingBatch:
    """Operations already issued against the widget, not yet settled."""

    domain: str
    desired: Mapping[str, Any]
    keys: list[str] = field(default_factory=list)
    values: list[Any] = field(default_factory=list)
    awaitables: list[Any] = field(default_factory=list)

    async def settle(self) -> BatchResult:
        """Wait for every operation, ignoring which ones failed."""
        results = await asyncio.gather(*self.awaitables, return_exceptions=True)
        outcomes = []
        for key, value, result in zip(self.keys, self.values, results):
            if isinstance(result, BaseException):
                outcomes.append(ApplyOutcome(key, value, ok=False, error=result))
            else:
                outcomes.append(ApplyOutcome(key, value, ok=True))
        return BatchResult(self.domain, self.desired, tuple(outcomes))


async def _rejected(exc: BaseException) -> Any:
    raise exc


class DiffApplier:
    """Diff-and-apply policy for a single domain.

    Parameters
    ----------
    domain : {"filters", "parameters"}
        Diff target name, used for results and logging.
    compare : callable
        Per-value comparator used to decide whether a key changed.
    tracks_loading : bool
        Whether batches of this domain hold the reconciler's loading flag
        while outstanding. Filters do; parameters do not.
    """

    def __init__(self, domain: Domain, *, compare: Comparator, tracks_loading: bool) -> None:
        self.domain = domain
        self.compare = compare
        self.tracks_loading = bool(tracks_loading)

    def __repr__(self) -> str:
        return f"DiffApplier(domain={self.domain!r}, tracks_loading={self.tracks_loading})"

    def issue(
        self,
        desired: Mapping[str, Any],
        applied: Mapping[str, Any],
        apply_op: ApplyOp,
    ) -> PendingBatch:
        """Issue operations for every changed key and return the pending batch.

        An ``apply_op`` that raises synchronously is recorded as a rejected
        operation rather than aborting the batch.
        """
        snapshot = MappingProxyType(dict(desired))
        pending = PendingBatch(self.domain, snapshot)
        for key, value in plan_batch(desired, applied, self.compare).items():
            try:
                awaitable = apply_op(key, value)
            except Exception as exc:
                logger.debug("%s: issuing %r failed: %s", self.domain, key, exc)
                awaitable = _rejected(exc)
            pending.keys.append(key)
            pending.values.append(value)
            pending.awaitables.append(awaitable)
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("%s: issued %d operation(s): %s", self.domain, len(pending.keys), pending.keys)
        return pending


FILTERS = DiffApplier("filters", compare=values_equal, tracks_loading=True)
PARAMETERS = DiffApplier("parameters", compare=scalars_equal, tracks_loading=False)


async def compute_and_apply(
    desired: Mapping[str, Any],
    applied: Mapping[str, Any],
    apply_op: ApplyOp,
    *,
    applier: DiffApplier = FILTERS,
) -> BatchResult:
    """Issue a batch with *applier* and wait for it to settle."""
    return await applier.issue(desired, applied, apply_op).settle()
