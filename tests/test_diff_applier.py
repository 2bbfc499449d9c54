from __future__ import annotations

import asyncio

from tableau_report.diff_applier import (
    FILTERS,
    PARAMETERS,
    BatchResult,
    compute_and_apply,
    plan_batch,
)
from tableau_report.equality import scalars_equal


class _Recorder:
    """apply_op fake: resolves immediately, rejecting keys listed in ``fail``."""

    def __init__(self, fail: tuple[str, ...] = ()) -> None:
        self.calls: list[tuple[str, object]] = []
        self.fail = set(fail)

    async def __call__(self, key: str, value: object) -> str:
        self.calls.append((key, value))
        await asyncio.sleep(0)
        if key in self.fail:
            raise RuntimeError(f"rejected {key}")
        return key


def test_plan_schedules_new_and_changed_keys_only() -> None:
    planned = plan_batch(
        {"region": [2, 1], "year": [2021], "segment": "Consumer"},
        {"region": [1, 2], "year": [2020]},
    )

    assert planned == {"year": [2021], "segment": "Consumer"}


def test_plan_ignores_keys_removed_from_desired() -> None:
    assert plan_batch({}, {"region": ["West"]}) == {}


def test_parameter_plan_uses_strict_equality() -> None:
    assert plan_batch({"x": 5}, {"x": 5}, scalars_equal) == {}
    assert plan_batch({"x": 6}, {"x": 5}, scalars_equal) == {"x": 6}


def test_batch_reports_per_key_outcomes_and_keeps_full_desired_map() -> None:
    recorder = _Recorder(fail=("year",))
    desired = {"region": ["West"], "year": [2021], "segment": "Consumer"}
    applied = {"segment": "Consumer"}

    result = asyncio.run(compute_and_apply(desired, applied, recorder))

    assert isinstance(result, BatchResult)
    assert result.domain == "filters"
    assert dict(result.desired) == desired
    assert result.scheduled == ("region", "year")
    assert result.succeeded == ("region",)
    assert result.failed == ("year",)
    assert result.all_ok is False
    assert isinstance(result.outcomes[1].error, RuntimeError)
    assert [key for key, _ in recorder.calls] == ["region", "year"]


def test_synchronous_apply_failure_is_absorbed() -> None:
    def apply_op(key: str, value: object):
        raise LookupError(key)

    result = asyncio.run(
        compute_and_apply({"x": 1}, {}, apply_op, applier=PARAMETERS)
    )

    assert result.failed == ("x",)
    assert isinstance(result.outcomes[0].error, LookupError)


def test_batch_with_nothing_to_do_settles_empty() -> None:
    recorder = _Recorder()

    result = asyncio.run(compute_and_apply({"region": [1]}, {"region": [1]}, recorder))

    assert result.outcomes == ()
    assert result.all_ok is True
    assert recorder.calls == []


def test_all_settled_waits_for_slow_operations() -> None:
    order: list[str] = []

    async def apply_op(key: str, value: object) -> None:
        await asyncio.sleep(0.01 if key == "slow" else 0)
        order.append(key)
        if key == "fast":
            raise RuntimeError("fast failure")

    result = asyncio.run(compute_and_apply({"slow": 1, "fast": 2}, {}, apply_op))

    assert sorted(order) == ["fast", "slow"]
    assert result.succeeded == ("slow",)
    assert result.failed == ("fast",)


def test_domain_policies() -> None:
    assert FILTERS.tracks_loading is True
    assert PARAMETERS.tracks_loading is False
    assert FILTERS.compare([1, 2], [2, 1]) is True
