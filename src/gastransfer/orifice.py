"""Compressible sharp-orifice model for vessel blowdown and filling.

The vessel pressure history is split at the transition pressure where the
orifice unchokes. The choked phase has a closed form; the subsonic phase is
integrated by quadrature over the pressure ratio. Time scales exactly as 1/A
because the restriction area only enters the mass flow as a prefactor.
"""

from __future__ import annotations

import math

from scipy.integrate import quad

from .constants import T_SAFE
from .state import FlowState, ForwardResult, Model, Process, Regime, RestrictionGeometry
from .validity import (
    collect_warnings,
    evaluate_validity_flags,
    mean_mass_flow,
    reynolds_number,
    throat_mach,
)


def critical_pressure_ratio(gamma: float) -> float:
    return (2.0 / (gamma + 1.0)) ** (gamma / (gamma - 1.0))


def choked_flux_coefficient(gamma: float) -> float:
    return math.sqrt(gamma * (2.0 / (gamma + 1.0)) ** ((gamma + 1.0) / (gamma - 1.0)))


def subsonic_flux_coefficient(gamma: float) -> float:
    return math.sqrt(2.0 * gamma / (gamma - 1.0))


def mdot_orifice(
    P_up: float,
    T_up: float,
    P_dn: float,
    Cd: float,
    A: float,
    gamma: float,
    r_gas: float,
) -> float:
    if P_up <= 0.0 or A <= 0.0:
        return 0.0
    t_eff = max(T_up, T_SAFE)
    r = max(P_dn, 0.0) / P_up
    if r >= 1.0:
        return 0.0

    if r <= critical_pressure_ratio(gamma):
        return Cd * A * P_up * choked_flux_coefficient(gamma) / math.sqrt(r_gas * t_eff)

    bracket = r ** (2.0 / gamma) - r ** ((gamma + 1.0) / gamma)
    if bracket <= 0.0:
        return 0.0
    return (
        Cd
        * A
        * P_up
        * math.sqrt(2.0 * gamma / ((gamma - 1.0) * r_gas * t_eff) * bracket)
    )


def transition_pressure(state: FlowState) -> float:
    """Vessel pressure at which the orifice switches between choked and subsonic."""
    r_crit = critical_pressure_ratio(state.gas.gamma)
    if state.process is Process.BLOWDOWN:
        return state.P2 / r_crit
    return r_crit * float(state.Ps)


def _flow_function(r: float, gamma: float) -> float:
    return max(r ** (2.0 / gamma) - r ** ((gamma + 1.0) / gamma), 0.0)


def _quad(fn, a: float, b: float) -> float:
    if b <= a:
        return 0.0
    val, _err = quad(fn, a, b, limit=200, epsabs=0.0, epsrel=1e-10)
    return float(val)


def _blowdown_subsonic_integral(
    r_a: float, r_b: float, gamma: float, p_ratio_adiabatic: float | None = None
) -> float:
    """Integral of dr / (r sqrt(psi(r))) with r = P2/P rising from r_a to r_b.

    With `p_ratio_adiabatic` = P1/P2 the isentropic temperature drop of the
    vessel gas is folded in as the extra factor (r P1/P2)^((gamma-1)/(2 gamma)).
    """
    n = (gamma - 1.0) / (2.0 * gamma)

    def integrand(r: float) -> float:
        psi = _flow_function(r, gamma)
        if psi <= 0.0:
            return 0.0
        base = 1.0 / (r * math.sqrt(psi))
        if p_ratio_adiabatic is None:
            return base
        return base * (r * p_ratio_adiabatic) ** n

    return _quad(integrand, r_a, r_b)


def _filling_subsonic_integral(r_a: float, r_b: float, gamma: float) -> float:
    """Integral of dr / sqrt(psi(r)) with r = P/Ps rising from r_a to r_b."""

    def integrand(r: float) -> float:
        psi = _flow_function(r, gamma)
        if psi <= 0.0:
            return 0.0
        return 1.0 / math.sqrt(psi)

    return _quad(integrand, r_a, r_b)


def _blowdown_phases(state: FlowState, area: float) -> dict[str, float]:
    gamma = state.gas.gamma
    rt = state.gas.R * state.T
    a_eff = state.Cd * area
    p_star = transition_pressure(state)
    p_f = state.stop_pressure
    p_sub_start = min(state.P1, p_star)
    adiabatic = state.regime is Regime.ADIABATIC

    t_choked = 0.0
    if state.P1 > p_star:
        p_end = max(p_star, p_f)
        c = a_eff * choked_flux_coefficient(gamma) * math.sqrt(rt) / state.V
        if adiabatic:
            n = (gamma - 1.0) / (2.0 * gamma)
            t_choked = ((state.P1 / p_end) ** n - 1.0) / (gamma * c * n)
        else:
            t_choked = math.log(state.P1 / p_end) / c

    t_sub = 0.0
    if p_f < p_sub_start:
        k = a_eff * subsonic_flux_coefficient(gamma) * math.sqrt(rt) / state.V
        if adiabatic:
            integral = _blowdown_subsonic_integral(
                state.P2 / p_sub_start, state.P2 / p_f, gamma, state.P1 / state.P2
            )
            t_sub = integral / (gamma * k)
        else:
            integral = _blowdown_subsonic_integral(
                state.P2 / p_sub_start, state.P2 / p_f, gamma
            )
            t_sub = integral / k
    return {"choked": t_choked, "subsonic": t_sub}


def _filling_phases(state: FlowState, area: float) -> dict[str, float]:
    gamma = state.gas.gamma
    rt = state.gas.R * state.T
    ps = float(state.Ps)
    a_eff = state.Cd * area
    p_star = transition_pressure(state)
    p_f = state.stop_pressure
    # Inflow enthalpy raises the vessel pressure gamma times faster.
    energy = gamma if state.regime is Regime.ADIABATIC else 1.0

    t_choked = 0.0
    if state.P1 < p_star:
        p_end = min(p_star, p_f)
        rate = a_eff * choked_flux_coefficient(gamma) * math.sqrt(rt) * ps / state.V
        t_choked = (p_end - state.P1) / (energy * rate)

    t_sub = 0.0
    p_sub_start = max(state.P1, p_star)
    if p_f > p_sub_start:
        k = a_eff * subsonic_flux_coefficient(gamma) * math.sqrt(rt) / state.V
        integral = _filling_subsonic_integral(p_sub_start / ps, p_f / ps, gamma)
        t_sub = integral / (energy * k)
    return {"choked": t_choked, "subsonic": t_sub}


def orifice_phase_times(state: FlowState, area: float) -> dict[str, float]:
    if state.process is Process.BLOWDOWN:
        return _blowdown_phases(state, area)
    return _filling_phases(state, area)


def orifice_time(state: FlowState, area: float) -> float:
    phases = orifice_phase_times(state, area)
    return phases["choked"] + phases["subsonic"]


def initial_pressure_ratio(state: FlowState) -> float:
    """Downstream/upstream pressure ratio at the start of the process."""
    if state.process is Process.BLOWDOWN:
        return state.P2 / state.P1
    return state.P1 / float(state.Ps)


def orifice_forward_time(state: FlowState, geometry: RestrictionGeometry) -> ForwardResult:
    gamma = state.gas.gamma
    area = geometry.area
    d = geometry.diameter
    phases = orifice_phase_times(state, area)
    t = phases["choked"] + phases["subsonic"]

    r_crit = critical_pressure_ratio(gamma)
    r0 = initial_pressure_ratio(state)
    re = reynolds_number(mean_mass_flow(state, t), d, state.gas.mu)
    flags = evaluate_validity_flags(state, d, re, Model.ORIFICE)
    return ForwardResult(
        model=Model.ORIFICE,
        time=t,
        geometry=geometry,
        reynolds=re,
        l_over_d=state.L / d,
        mach=throat_mach(r0, gamma, r_crit),
        choked=phases["choked"] > 0.0,
        critical_ratio=r_crit,
        transition_pressure=transition_pressure(state),
        phase_times=phases,
        warnings=tuple(collect_warnings(flags)),
    )
