"""Numerical gates: closed-form/quadrature forward times vs. direct ODE integration.

Each gate integrates the vessel mass balance dP/dt with `solve_ivp` until the
stopping pressure is reached and compares the event time with the model's
forward time for the same restriction.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from scipy.integrate import solve_ivp

from .capillary import mdot_capillary
from .forward import forward_time
from .geometry import area_from_diameter
from .orifice import mdot_orifice
from .presets import PRESETS
from .state import FlowState, Model, Process, Regime


@dataclass(frozen=True)
class GateMetrics:
    name: str
    t_model: float
    t_ode: float
    rel_err: float

    def passed(self, tol: float = 1e-3) -> bool:
        return math.isfinite(self.rel_err) and self.rel_err <= tol


def _orifice_rhs(state: FlowState, area: float):
    gas = state.gas
    gamma = gas.gamma

    if state.process is Process.BLOWDOWN:
        adiabatic = state.regime is Regime.ADIABATIC

        def rhs(t, y):
            P = max(float(y[0]), state.P2)
            T = state.T * (P / state.P1) ** ((gamma - 1.0) / gamma) if adiabatic else state.T
            md = mdot_orifice(P, T, state.P2, state.Cd, area, gamma, gas.R)
            k = gamma if adiabatic else 1.0
            return [-k * gas.R * T * md / state.V]

        return rhs

    ps = float(state.Ps)
    k = gamma if state.regime is Regime.ADIABATIC else 1.0

    def rhs(t, y):
        P = min(float(y[0]), ps)
        md = mdot_orifice(ps, state.T, P, state.Cd, area, gamma, gas.R)
        return [k * gas.R * state.T * md / state.V]

    return rhs


def _capillary_rhs(state: FlowState, area: float):
    gas = state.gas
    d = math.sqrt(4.0 * area / math.pi)

    if state.process is Process.BLOWDOWN:

        def rhs(t, y):
            P = max(float(y[0]), state.P2)
            md = mdot_capillary(P, state.T, state.P2, d, state.L, gas.mu, gas.R)
            return [-gas.R * state.T * md / state.V]

        return rhs

    ps = float(state.Ps)

    def rhs(t, y):
        P = min(float(y[0]), ps)
        md = mdot_capillary(ps, state.T, P, d, state.L, gas.mu, gas.R)
        return [gas.R * state.T * md / state.V]

    return rhs


def ode_time(state: FlowState, area: float, model: Model, t_guess: float) -> float:
    """Event time at which the integrated vessel pressure reaches the stopping pressure."""
    rhs = _orifice_rhs(state, area) if model is Model.ORIFICE else _capillary_rhs(state, area)
    p_stop = state.stop_pressure

    def ev_p_stop(t, y):
        return float(y[0]) - p_stop

    ev_p_stop.terminal = True
    ev_p_stop.direction = -1.0 if state.process is Process.BLOWDOWN else 1.0

    sol = solve_ivp(
        rhs,
        (0.0, 10.0 * t_guess),
        [state.P1],
        method="Radau",
        rtol=1e-9,
        atol=1e-7 * min(state.P1, p_stop),
        events=ev_p_stop,
    )
    if not sol.success:
        raise RuntimeError(f"ODE integration failed: {sol.message}")
    if len(sol.t_events[0]) == 0:
        return float("inf")
    return float(sol.t_events[0][0])


def gate_forward(name: str, state: FlowState, diameter: float, model: Model) -> GateMetrics:
    area = area_from_diameter(diameter)
    t_model = forward_time(state, area, model).time
    t_ode = ode_time(state, area, model, t_model)
    rel_err = abs(t_ode - t_model) / t_model
    return GateMetrics(name=name, t_model=t_model, t_ode=t_ode, rel_err=rel_err)


def run_gates() -> list[GateMetrics]:
    ref = PRESETS["reference"]
    ref_adi = ref.state.evolve(regime=Regime.ADIABATIC)
    n2 = PRESETS["n2-capillary"]
    ch4 = PRESETS["ch4-adiabatic"]
    ch4_iso = ch4.state.evolve(regime=Regime.ISOTHERMAL)
    return [
        gate_forward("orifice blowdown isothermal", ref.state, ref.diameter, Model.ORIFICE),
        gate_forward("orifice blowdown adiabatic", ref_adi, ref.diameter, Model.ORIFICE),
        gate_forward("orifice filling isothermal", ch4_iso, ch4.diameter, Model.ORIFICE),
        gate_forward("orifice filling adiabatic", ch4.state, ch4.diameter, Model.ORIFICE),
        gate_forward("capillary filling", n2.state, n2.diameter, Model.CAPILLARY),
        gate_forward("capillary blowdown", ref.state, 20e-6, Model.CAPILLARY),
    ]
