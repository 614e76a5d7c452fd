"""Structured solve reports.

A `Diagnostic` is built for every inverse solve, successful or not, so that a
caller can always reproduce the search: the SI inputs, the model and why it
was chosen, the bracket and its forward times, counters, the choking state and
a log-spaced sample of t(A) across the final bracket.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Callable

import numpy as np

from .orifice import critical_pressure_ratio, initial_pressure_ratio, transition_pressure
from .state import FlowState, ForwardResult, Model

N_SAMPLES = 5


@dataclass(frozen=True)
class Diagnostic:
    inputs: dict
    model: str
    rationale: str
    target_time: float | None
    achieved_time: float | None
    reason: str
    residual: float | None = None
    residual_tol: float | None = None
    bracket: dict | None = None
    initial_bracket: dict | None = None
    expansions: int = 0
    iterations: int = 0
    choking: dict = field(default_factory=dict)
    retry: dict = field(default_factory=dict)
    history: tuple[dict, ...] = ()
    samples: tuple[tuple[float, float], ...] = ()
    monotonic: bool | None = None
    warnings: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return self.reason == "ok"

    def to_dict(self) -> dict:
        return {
            "inputs": dict(self.inputs),
            "model": self.model,
            "rationale": self.rationale,
            "target_time_s": self.target_time,
            "achieved_time_s": self.achieved_time,
            "reason": self.reason,
            "residual": self.residual,
            "residual_tol": self.residual_tol,
            "bracket": self.bracket,
            "initial_bracket": self.initial_bracket,
            "expansions": self.expansions,
            "iterations": self.iterations,
            "choking": dict(self.choking),
            "retry": dict(self.retry),
            "history": [dict(h) for h in self.history],
            "samples": [{"A_m2": a, "t_s": t} for a, t in self.samples],
            "monotonic": self.monotonic,
            "warnings": list(self.warnings),
        }

    def summary_lines(self) -> list[str]:
        lines = [
            f"reason: {self.reason}",
            f"model: {self.model} ({self.rationale})",
            f"target: {_fmt(self.target_time)} s, achieved: {_fmt(self.achieved_time)} s",
        ]
        if self.residual is not None:
            lines.append(f"residual: {self.residual:.3e} (tol {_fmt(self.residual_tol)})")
        if self.bracket:
            b = self.bracket
            lines.append(
                f"bracket: A=[{b['A_lo']:.3e}, {b['A_hi']:.3e}] m2, "
                f"t=[{_fmt(b['t_lo'])}, {_fmt(b['t_hi'])}] s"
            )
        lines.append(f"expansions: {self.expansions}, iterations: {self.iterations}")
        if self.choking:
            c = self.choking
            lines.append(
                f"choking: r={c['r']:.4f}, r*={c['r_crit']:.4f}, choked={c['choked']}"
            )
            if "choked_time_s" in c:
                lines.append(
                    f"at solution: choked {_fmt(c['choked_time_s'])} s, "
                    f"subsonic {_fmt(c['subsonic_time_s'])} s"
                )
        if self.monotonic is False:
            lines.append("t(A) samples are not strictly decreasing")
        for h in self.history:
            lines.append(f"retry {h['attempt']}: {h['reason']}")
        return lines


def _fmt(val) -> str:
    if val is None:
        return "-"
    return f"{val:.6g}"


def input_snapshot(state: FlowState, validated: bool = True) -> dict:
    """SI inputs; derived values only once the state has passed validation."""
    if not validated:
        snap = asdict(state)
        for key, val in snap.items():
            if isinstance(val, Enum):
                snap[key] = val.value
        return snap
    snap = state.to_dict()
    snap["stop_pressure"] = state.stop_pressure
    return snap


def choking_state(state: FlowState, model: Model) -> dict:
    """Critical ratio, starting pressure ratio and whether the start is choked."""
    gamma = state.gas.gamma
    r_crit = critical_pressure_ratio(gamma)
    r = initial_pressure_ratio(state)
    choked = model is Model.ORIFICE and r <= r_crit
    return {
        "r_crit": r_crit,
        "r": r,
        "choked": bool(choked),
        "P_transition_Pa": transition_pressure(state) if model is Model.ORIFICE else None,
    }


def solution_choking(forward: ForwardResult) -> dict:
    """How the solved time splits between the choked and subsonic phases."""
    if forward.model is not Model.ORIFICE:
        return {}
    t_choked = forward.phase_times.get("choked", 0.0)
    t_sub = forward.phase_times.get("subsonic", 0.0)
    total = t_choked + t_sub
    return {
        "choked_time_s": t_choked,
        "subsonic_time_s": t_sub,
        "choked_fraction": t_choked / total if total > 0.0 else 0.0,
    }


def sample_time_curve(
    time_fn: Callable[[float], float], a_lo: float, a_hi: float, n: int = N_SAMPLES
) -> tuple[tuple[tuple[float, float], ...], bool]:
    """Evaluate t(A) at `n` log-spaced areas and check that it strictly decreases."""
    if not (a_lo > 0.0 and a_hi > a_lo):
        return (), True
    areas = np.geomspace(a_lo, a_hi, n)
    samples = tuple((float(a), float(time_fn(float(a)))) for a in areas)
    times = [t for _, t in samples if not math.isnan(t)]
    monotonic = len(times) == len(samples) and all(
        t0 > t1 for t0, t1 in zip(times[:-1], times[1:])
    )
    return samples, monotonic


def build_diagnostic(
    state: FlowState,
    model: Model,
    rationale: str,
    target_time: float | None,
    reason: str,
    *,
    achieved_time: float | None = None,
    residual: float | None = None,
    residual_tol: float | None = None,
    bracket=None,
    initial_bracket=None,
    expansions: int = 0,
    iterations: int = 0,
    retry=None,
    time_fn: Callable[[float], float] | None = None,
    warnings: tuple[str, ...] = (),
    forward: ForwardResult | None = None,
    validated: bool = True,
) -> Diagnostic:
    samples: tuple = ()
    monotonic = None
    if time_fn is not None and bracket is not None:
        samples, monotonic = sample_time_curve(time_fn, bracket.a_lo, bracket.a_hi)
    choking: dict = {}
    if validated:
        choking = choking_state(state, model)
        if forward is not None:
            choking.update(solution_choking(forward))
    return Diagnostic(
        inputs=input_snapshot(state, validated),
        model=model.value,
        rationale=rationale,
        target_time=target_time,
        achieved_time=achieved_time,
        reason=reason,
        residual=residual,
        residual_tol=residual_tol,
        bracket=bracket.to_dict() if bracket is not None else None,
        initial_bracket=initial_bracket.to_dict() if initial_bracket is not None else None,
        expansions=expansions,
        iterations=iterations,
        choking=choking,
        retry=(
            {"attempt": retry.attempt, "expansion_factor": retry.expansion_factor}
            if retry is not None
            else {}
        ),
        history=tuple(retry.history) if retry is not None else (),
        samples=samples,
        monotonic=monotonic,
        warnings=tuple(warnings),
    )
