"""Laminar (Poiseuille) capillary model.

Isothermal compressible Poiseuille flow gives dP/dt = -K (P^2 - P_ref^2) with
K = pi D^4 / (256 mu L V), which integrates in closed form. Time scales as
1/D^4, i.e. 1/A^2.
"""

from __future__ import annotations

import math

from .constants import T_SAFE
from .errors import InvalidInputError
from .orifice import critical_pressure_ratio
from .state import FlowState, ForwardResult, Model, Process, Regime, RestrictionGeometry
from .validity import (
    collect_warnings,
    evaluate_validity_flags,
    mean_mass_flow,
    mean_velocity_mach,
    reynolds_number,
)


def _check_length(L: float) -> None:
    if L is None or not math.isfinite(L) or L <= 0.0:
        raise InvalidInputError("L", f"invalid capillary length, got {L}")


def mdot_capillary(
    P_up: float, T_up: float, P_dn: float, D: float, L: float, mu: float, r_gas: float
) -> float:
    if P_up <= 0.0 or D <= 0.0:
        return 0.0
    _check_length(L)
    t_eff = max(T_up, T_SAFE)
    K = math.pi * D**4 / (256.0 * mu * L)
    dp2 = max(P_up**2 - max(P_dn, 0.0) ** 2, 0.0)
    return K * dp2 / (r_gas * t_eff)


def _log_pressure_term(state: FlowState) -> tuple[float, float]:
    """(P_ref, ln of the pressure-difference ratio) for the closed form."""
    p_f = state.stop_pressure
    if state.process is Process.BLOWDOWN:
        p_ref = state.P2
        num = (state.P1 - p_ref) * (p_f + p_ref)
        den = (state.P1 + p_ref) * (p_f - p_ref)
    else:
        p_ref = float(state.Ps)
        num = (p_ref - state.P1) * (p_ref + p_f)
        den = (p_ref + state.P1) * (p_ref - p_f)
    if den <= 0.0 or num <= 0.0:
        return p_ref, math.inf
    return p_ref, math.log(num / den)


def capillary_time(state: FlowState, area: float) -> float:
    _check_length(state.L)
    d = math.sqrt(4.0 * area / math.pi)
    p_ref, log_term = _log_pressure_term(state)
    return 128.0 * state.gas.mu * state.L * state.V * log_term / (math.pi * d**4 * p_ref)


def capillary_diameter_from_time(state: FlowState, t: float) -> float:
    """Closed-form inverse of `capillary_time` for a target duration `t`."""
    _check_length(state.L)
    if t is None or not math.isfinite(t) or t <= 0.0:
        raise InvalidInputError("target_time", f"must be > 0, got {t}")
    p_ref, log_term = _log_pressure_term(state)
    d4 = 128.0 * state.gas.mu * state.L * state.V * log_term / (math.pi * t * p_ref)
    return d4**0.25


def capillary_forward_time(state: FlowState, geometry: RestrictionGeometry) -> ForwardResult:
    area = geometry.area
    d = geometry.diameter
    t = capillary_time(state, area)

    mdot = mean_mass_flow(state, t)
    re = reynolds_number(mdot, d, state.gas.mu)
    flags = evaluate_validity_flags(state, d, re, Model.CAPILLARY)
    warnings = collect_warnings(flags)
    if state.regime is Regime.ADIABATIC:
        warnings.append("Capillary model is isothermal: adiabatic regime ignored")
    return ForwardResult(
        model=Model.CAPILLARY,
        time=t,
        geometry=geometry,
        reynolds=re,
        l_over_d=state.L / d,
        mach=mean_velocity_mach(state, mdot, area),
        choked=False,
        critical_ratio=critical_pressure_ratio(state.gas.gamma),
        transition_pressure=None,
        phase_times={"laminar": t},
        warnings=tuple(warnings),
    )
