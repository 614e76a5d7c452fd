from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from .forward import forward_time
from .io import (
    dump_meta_json,
    make_results_dir,
    print_validity_summary,
    write_run_json,
    write_validity_json,
)
from .rootfind import (
    RetryContext,
    SolverFailure,
    SolverOptions,
    SolverResult,
    solve_area_from_time,
)
from .selector import ModelSelection, forward_verdict, select_model
from .state import FlowState, ForwardResult, Model, RestrictionGeometry, Verdict
from .validity import evaluate_validity_flags

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeReport:
    state: FlowState
    selection: ModelSelection
    verdict: Verdict
    result: ForwardResult
    validity_flags: dict

    @property
    def time(self) -> float:
        return self.result.time

    def to_dict(self) -> dict:
        return {
            "inputs": self.state.to_dict(),
            "selection": self.selection.to_dict(),
            "verdict": self.verdict.value,
            "result": self.result.to_dict(),
            "validity_flags": self.validity_flags,
        }


def compute_time_from_diameter(
    state: FlowState, diameter: float, model: Model | str | None = None
) -> TimeReport:
    """Forward mode: transfer time for a restriction of the given diameter.

    With verdict BOTH the orifice time is reported.
    """
    state.validate()
    geometry = RestrictionGeometry.from_diameter(diameter)
    selection = select_model(state, candidate_diameter=diameter, override=model)
    verdict = forward_verdict(state, diameter, selection)
    chosen = Model.ORIFICE if verdict is Verdict.BOTH else selection.model
    result = forward_time(state, geometry, chosen)
    flags = evaluate_validity_flags(state, diameter, result.reynolds, chosen)
    logger.info("forward %s: D=%.6e m -> t=%.6g s (%s)", chosen.value, diameter,
                result.time, verdict.value)
    return TimeReport(state, selection, verdict, result, flags)


def compute_diameter_from_time(
    state: FlowState,
    target_time: float,
    model: Model | str | None = None,
    options: SolverOptions | None = None,
    retries: int = 0,
    retry: RetryContext | None = None,
) -> SolverResult | SolverFailure:
    """Inverse mode with optional caller-side retries.

    Each retry re-invokes the solver with `retry.next(failure)`, doubling the
    expansion factor and chaining the failed search into the diagnostic.
    Invalid input is never retried.
    """
    retry = retry or RetryContext()
    out = solve_area_from_time(state, target_time, model=model, options=options, retry=retry)
    while not out.ok and retries > 0 and out.field is None:
        retry = retry.next(out)
        retries -= 1
        logger.info("retry %d with expansion factor %.3g after: %s",
                    retry.attempt, retry.expansion_factor, out.kind.reason)
        out = solve_area_from_time(state, target_time, model=model, options=options, retry=retry)
    return out


def export_report(
    outdir: Path, stem: str, report, state: FlowState, run_params: dict
) -> None:
    dump_meta_json(outdir, f"{stem}.json", report.to_dict())
    flags: dict = {}
    if isinstance(report, TimeReport):
        flags = report.validity_flags
    elif isinstance(report, SolverResult) and report.forward is not None:
        fwd = report.forward
        flags = evaluate_validity_flags(state, fwd.diameter, fwd.reynolds, fwd.model)
    write_validity_json(outdir, stem, flags)
    print_validity_summary(flags)
    write_run_json(outdir, params=run_params, solver_settings=_solver_settings(report))


def _solver_settings(report) -> dict:
    if isinstance(report, TimeReport):
        return {"mode": "forward", "model": report.result.model.value}
    return {"mode": "inverse", **report.diagnostic.retry}


def make_case_output_dir(case_name: str) -> Path:
    return make_results_dir(case_name)