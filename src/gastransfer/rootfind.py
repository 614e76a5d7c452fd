"""Inverse solve: restriction area from a target transfer time.

Forward time decreases strictly with area, so a bracket [A_lo, A_hi] holds a
root when t(A_lo) >= t_target >= t(A_hi). The bracket starts from the vessel
size, is widened by decades when it does not include the target, and is then
narrowed by bisection on log(A). The candidate is rejected if it collapsed
onto a bracket edge or if its re-evaluated time misses the target.

Every call returns either a `SolverResult` or a `SolverFailure`; both carry a
`Diagnostic`. The solver never retries on its own: pass `retry.next(failure)`
back in to search again with a wider bracket.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Callable

from .capillary import capillary_diameter_from_time
from .constants import (
    A_LO_START,
    BISECT_RTOL,
    BISECT_XTOL_LOG,
    BOUNDARY_RTOL,
    K_PHYSICAL,
    MAX_BISECT_ITER,
    MAX_EXPANSIONS,
    RESIDUAL_TOL_BLOWDOWN_MIN,
    RESIDUAL_TOL_FILLING,
    T_TARGET_FLOOR,
)
from .diagnostics import Diagnostic, build_diagnostic
from .errors import FailureKind, InvalidInputError, SolverError
from .forward import forward_time, time_function
from .geometry import area_from_diameter, diameter_from_area, equivalent_sphere_diameter
from .selector import ModelSelection, select_model
from .state import FlowState, ForwardResult, Model, Process

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SolverOptions:
    rtol: float = BISECT_RTOL
    max_iter: int = MAX_BISECT_ITER
    max_expansions: int = MAX_EXPANSIONS
    boundary_rtol: float = BOUNDARY_RTOL
    xtol_log: float = BISECT_XTOL_LOG
    a_lo_start: float = A_LO_START
    k_physical: float = K_PHYSICAL
    # None means max(epsilon, RESIDUAL_TOL_BLOWDOWN_MIN)
    blowdown_residual_tol: float | None = None
    filling_residual_tol: float = RESIDUAL_TOL_FILLING

    def __post_init__(self):
        for name in ("rtol", "boundary_rtol", "xtol_log", "a_lo_start", "k_physical",
                     "filling_residual_tol"):
            val = getattr(self, name)
            if not (math.isfinite(val) and val > 0.0):
                raise ValueError(f"{name} must be > 0, got {val}")
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        if self.max_expansions < 0:
            raise ValueError(f"max_expansions must be >= 0, got {self.max_expansions}")

    def residual_tol(self, process: Process, epsilon: float) -> float:
        if process is Process.FILLING:
            return self.filling_residual_tol
        if self.blowdown_residual_tol is not None:
            return self.blowdown_residual_tol
        return max(epsilon, RESIDUAL_TOL_BLOWDOWN_MIN)


@dataclass(frozen=True)
class Bracket:
    a_lo: float
    a_hi: float
    t_lo: float
    t_hi: float
    expansions: int = 0

    def contains(self, target: float) -> bool:
        """Inclusion test; +inf at A_lo counts as "too long"."""
        if math.isnan(self.t_lo) or math.isnan(self.t_hi) or math.isinf(self.t_hi):
            return False
        return self.t_lo >= target >= self.t_hi

    def midpoint(self) -> float:
        return math.sqrt(self.a_lo * self.a_hi)

    @property
    def log_width(self) -> float:
        return math.log(self.a_hi / self.a_lo)

    def to_dict(self) -> dict:
        return {
            "A_lo": self.a_lo,
            "A_hi": self.a_hi,
            "t_lo": self.t_lo,
            "t_hi": self.t_hi,
            "D_lo": diameter_from_area(self.a_lo),
            "D_hi": diameter_from_area(self.a_hi),
            "expansions": self.expansions,
        }


@dataclass(frozen=True)
class RetryContext:
    attempt: int = 0
    expansion_factor: float = 1.0
    history: tuple[dict, ...] = ()

    def next(self, failure: SolverFailure) -> RetryContext:
        entry = {
            "attempt": self.attempt,
            "expansion_factor": self.expansion_factor,
            "reason": failure.kind.reason,
            "residual": failure.diagnostic.residual,
            "bracket": failure.diagnostic.bracket,
        }
        return RetryContext(
            attempt=self.attempt + 1,
            expansion_factor=self.expansion_factor * 2.0,
            history=self.history + (entry,),
        )


@dataclass(frozen=True)
class SolverResult:
    area: float
    residual: float
    iterations: int
    expansions: int
    model: Model
    time: float
    target_time: float
    diagnostic: Diagnostic
    forward: ForwardResult | None = None

    ok = True

    @property
    def diameter(self) -> float:
        return diameter_from_area(self.area)

    def raise_for_status(self) -> SolverResult:
        return self

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "A_m2": self.area,
            "D_m": self.diameter,
            "residual": self.residual,
            "iterations": self.iterations,
            "expansions": self.expansions,
            "model": self.model.value,
            "t_s": self.time,
            "target_time_s": self.target_time,
            "forward": self.forward.to_dict() if self.forward is not None else None,
            "diagnostic": self.diagnostic.to_dict(),
        }


@dataclass(frozen=True)
class SolverFailure:
    kind: FailureKind
    message: str
    diagnostic: Diagnostic
    field: str | None = None

    ok = False

    def raise_for_status(self):
        raise SolverError(self)

    def to_dict(self) -> dict:
        return {
            "ok": False,
            "kind": self.kind.name,
            "reason": self.kind.reason,
            "message": self.message,
            "field": self.field,
            "diagnostic": self.diagnostic.to_dict(),
        }


@dataclass(frozen=True)
class SearchOutcome:
    """Result of the model-independent search over a bare t(A) function."""

    kind: FailureKind | None
    message: str
    bracket: Bracket | None
    start_bracket: Bracket | None = None
    area: float | None = None
    time: float | None = None
    residual: float | None = None
    iterations: int = 0

    @property
    def ok(self) -> bool:
        return self.kind is None


def relative_residual(t: float, target: float) -> float:
    return abs(t - target) / max(target, T_TARGET_FLOOR)


def initial_bounds(
    volume: float, options: SolverOptions, retry: RetryContext | None = None
) -> tuple[float, float, float]:
    """(A_lo, A_hi, A_cap) from the equivalent spherical vessel diameter."""
    retry = retry or RetryContext()
    d_eq = equivalent_sphere_diameter(volume)
    factor = retry.expansion_factor
    a_lo = options.a_lo_start / factor
    a_hi = area_from_diameter(options.k_physical * d_eq)
    a_cap = area_from_diameter(options.k_physical * d_eq * (1 + retry.attempt)) * factor**2
    return a_lo, min(a_hi, a_cap), a_cap


def evaluate_bracket(
    time_fn: Callable[[float], float], a_lo: float, a_hi: float, expansions: int = 0
) -> Bracket:
    return Bracket(a_lo, a_hi, float(time_fn(a_lo)), float(time_fn(a_hi)), expansions)


def expand_bracket(
    bracket: Bracket, time_fn: Callable[[float], float], a_cap: float
) -> Bracket:
    a_lo = bracket.a_lo / 10.0
    a_hi = min(bracket.a_hi * 10.0, a_cap)
    return evaluate_bracket(time_fn, a_lo, a_hi, bracket.expansions + 1)


def bisect_step(
    bracket: Bracket, target: float, time_fn: Callable[[float], float]
) -> tuple[Bracket, float, float]:
    """One log-space bisection step; returns (new bracket, A_mid, t_mid).

    t_mid above the target means A_mid is too small, so A_lo moves up.
    +inf counts as too long. NaN leaves the bracket unchanged.
    """
    a_mid = bracket.midpoint()
    t_mid = float(time_fn(a_mid))
    if math.isnan(t_mid):
        return bracket, a_mid, t_mid
    if t_mid > target:
        return replace(bracket, a_lo=a_mid, t_lo=t_mid), a_mid, t_mid
    return replace(bracket, a_hi=a_mid, t_hi=t_mid), a_mid, t_mid


def _near(a: float, b: float, rtol: float) -> bool:
    return abs(math.log(a / b)) <= rtol


def find_root(
    time_fn: Callable[[float], float],
    target: float,
    a_lo: float,
    a_hi: float,
    a_cap: float,
    residual_tol: float,
    options: SolverOptions | None = None,
) -> SearchOutcome:
    """Bracket, bisect and validate a root of t(A) = target."""
    options = options or SolverOptions()

    bracket = evaluate_bracket(time_fn, a_lo, a_hi)
    while not bracket.contains(target):
        if bracket.expansions >= options.max_expansions:
            msg = (
                f"t_target={target:.6g} s not within t(A_hi)={bracket.t_hi:.6g} s .. "
                f"t(A_lo)={bracket.t_lo:.6g} s after {bracket.expansions} expansions"
            )
            logger.warning("bracket exhausted: %s", msg)
            return SearchOutcome(FailureKind.BRACKET_EXHAUSTED, msg, bracket, bracket)
        bracket = expand_bracket(bracket, time_fn, a_cap)
        logger.debug(
            "expansion %d: A=[%.3e, %.3e] t=[%.6g, %.6g]",
            bracket.expansions, bracket.a_lo, bracket.a_hi, bracket.t_lo, bracket.t_hi,
        )

    start = bracket
    a_mid = bracket.midpoint()
    converged = False
    iterations = 0
    for iterations in range(1, options.max_iter + 1):
        bracket, a_mid, t_mid = bisect_step(bracket, target, time_fn)
        if math.isnan(t_mid):
            msg = f"t(A={a_mid:.6e}) is NaN at iteration {iterations}"
            logger.warning("non-finite forward time: %s", msg)
            return SearchOutcome(
                FailureKind.NON_FINITE_RESULT, msg, bracket, start, a_mid, t_mid,
                None, iterations,
            )
        if relative_residual(t_mid, target) <= options.rtol:
            converged = True
            break
        if bracket.log_width <= options.xtol_log:
            # Bracket collapsed without meeting rtol; validation decides.
            converged = True
            break
    logger.debug("bisection stopped after %d iterations at A=%.6e", iterations, a_mid)

    if not converged:
        msg = (
            f"no convergence in {options.max_iter} iterations, "
            f"A=[{bracket.a_lo:.6e}, {bracket.a_hi:.6e}]"
        )
        logger.warning("non-convergent: %s", msg)
        return SearchOutcome(
            FailureKind.NON_CONVERGENT, msg, bracket, start, a_mid, None, None, iterations
        )

    for edge in (start.a_lo, start.a_hi):
        if _near(a_mid, edge, options.boundary_rtol):
            msg = f"candidate A={a_mid:.6e} coincides with bracket bound {edge:.6e}"
            logger.warning("boundary hit: %s", msg)
            return SearchOutcome(
                FailureKind.BOUNDARY_HIT, msg, bracket, start, a_mid, None, None, iterations
            )

    t_star = float(time_fn(a_mid))
    if not math.isfinite(t_star):
        msg = f"re-evaluated t(A={a_mid:.6e}) = {t_star}"
        logger.warning("non-finite forward time: %s", msg)
        return SearchOutcome(
            FailureKind.NON_FINITE_RESULT, msg, bracket, start, a_mid, t_star, None, iterations
        )
    residual = relative_residual(t_star, target)
    if residual > residual_tol:
        msg = (
            f"residual {residual:.3e} > {residual_tol:.3e}: t={t_star:.6g} s vs "
            f"target {target:.6g} s, A=[{bracket.a_lo:.6e}, {bracket.a_hi:.6e}]"
        )
        logger.warning("residual rejected: %s", msg)
        return SearchOutcome(
            FailureKind.RESIDUAL_REJECTED, msg, bracket, start, a_mid, t_star, residual,
            iterations,
        )
    return SearchOutcome(None, "ok", bracket, start, a_mid, t_star, residual, iterations)


def _selection_for(state: FlowState, target_time: float, model) -> ModelSelection:
    if model is not None:
        return select_model(state, override=model)
    d_cap = capillary_diameter_from_time(state, target_time)
    return select_model(state, candidate_diameter=d_cap)


def _validate_target(target_time) -> float:
    try:
        t = float(target_time)
    except (TypeError, ValueError):
        raise InvalidInputError("target_time", f"must be a number, got {target_time!r}") from None
    if not math.isfinite(t) or t <= 0.0:
        raise InvalidInputError("target_time", f"must be > 0, got {t}")
    return t


def solve_area_from_time(
    state: FlowState,
    target_time: float,
    model: Model | str | None = None,
    options: SolverOptions | None = None,
    retry: RetryContext | None = None,
) -> SolverResult | SolverFailure:
    """Find the restriction area whose forward time equals `target_time`.

    `model` forces orifice or capillary; otherwise the model is selected
    automatically at the capillary closed-form diameter for the target.
    """
    options = options or SolverOptions()
    retry = retry or RetryContext()

    validated = False
    try:
        state.validate()
        validated = True
        target = _validate_target(target_time)
        selection = _selection_for(state, target, model)
    except InvalidInputError as exc:
        logger.warning("invalid input: %s", exc)
        fallback = Model(model) if model in ("orifice", "capillary") else Model.ORIFICE
        diag = build_diagnostic(
            state, fallback, "input validation failed",
            target_time if isinstance(target_time, (int, float)) else None,
            FailureKind.INVALID_INPUT.reason, retry=retry, validated=validated,
        )
        return SolverFailure(FailureKind.INVALID_INPUT, str(exc), diag, field=exc.field)

    time_fn = time_function(state, selection.model)
    residual_tol = options.residual_tol(state.process, state.epsilon)
    a_lo, a_hi, a_cap = initial_bounds(state.V, options, retry)
    outcome = find_root(time_fn, target, a_lo, a_hi, a_cap, residual_tol, options)

    warnings: tuple[str, ...] = ()
    forward = None
    if outcome.ok:
        forward = forward_time(state, outcome.area, selection.model)
        warnings = forward.warnings

    diag = build_diagnostic(
        state,
        selection.model,
        selection.rationale,
        target,
        "ok" if outcome.ok else outcome.kind.reason,
        achieved_time=outcome.time,
        residual=outcome.residual,
        residual_tol=residual_tol,
        bracket=outcome.bracket,
        initial_bracket=outcome.start_bracket,
        expansions=outcome.bracket.expansions if outcome.bracket is not None else 0,
        iterations=outcome.iterations,
        retry=retry,
        time_fn=time_fn,
        warnings=warnings,
        forward=forward,
    )
    if not outcome.ok:
        return SolverFailure(outcome.kind, outcome.message, diag)

    logger.info(
        "solved %s: D=%.6e m, residual=%.3e, %d iterations, %d expansions",
        selection.model.value, diameter_from_area(outcome.area), outcome.residual,
        outcome.iterations, diag.expansions,
    )
    return SolverResult(
        area=outcome.area,
        residual=outcome.residual,
        iterations=outcome.iterations,
        expansions=diag.expansions,
        model=selection.model,
        time=outcome.time,
        target_time=target,
        diagnostic=diag,
        forward=forward,
    )
