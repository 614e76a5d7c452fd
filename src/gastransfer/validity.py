from __future__ import annotations

import math

from .constants import (
    HIGH_PRESSURE_RATIO,
    LD_CAPILLARY_MIN,
    RE_LAMINAR_MAX,
    T_SAFE,
)
from .geometry import check_diameter_vs_volume
from .state import Model, Process


def reynolds_number(mdot: float, d: float, mu: float) -> float:
    """Pipe Reynolds number from mass flow, rho*u*D/mu = 4*mdot/(pi*D*mu)."""
    if not (d > 0.0 and mu > 0.0) or not math.isfinite(mdot):
        return float("nan")
    return 4.0 * mdot / (math.pi * d * mu)


def mean_mass_flow(state, t: float) -> float:
    if not (t > 0.0) or not math.isfinite(t):
        return 0.0
    return state.transferred_mass() / t


def throat_mach(r: float, gamma: float, r_crit: float) -> float:
    """Isentropic throat Mach number for downstream/upstream ratio r."""
    if r <= r_crit:
        return 1.0
    if r >= 1.0:
        return 0.0
    return math.sqrt(2.0 / (gamma - 1.0) * (r ** (-(gamma - 1.0) / gamma) - 1.0))


def mean_velocity_mach(state, mdot: float, area: float) -> float:
    p_mean = 0.5 * (state.P1 + state.stop_pressure)
    t_eff = max(state.T, T_SAFE)
    rho = p_mean / (state.gas.R * t_eff)
    u = mdot / max(rho * area, 1e-300)
    return u / math.sqrt(state.gas.gamma * state.gas.R * t_eff)


def _laminar_flag(re: float) -> dict:
    if not math.isfinite(re):
        return {"status": "warning", "Re": re, "message": "Reynolds number undefined"}
    status = "ok" if re <= RE_LAMINAR_MAX else "warning"
    return {
        "status": status,
        "Re": re,
        "message": (
            "Laminar flow"
            if status == "ok"
            else f"Reynolds number {re:.0f} > {RE_LAMINAR_MAX:.0f}: turbulent flow, "
            "capillary model may be invalid"
        ),
    }


def _length_ratio_flag(l_over_d: float) -> dict:
    status = "ok" if l_over_d >= LD_CAPILLARY_MIN else "warning"
    return {
        "status": status,
        "L_over_D": l_over_d,
        "message": (
            "Long channel, developed laminar profile plausible"
            if status == "ok"
            else f"L/D ratio {l_over_d:.1f} < {LD_CAPILLARY_MIN:.0f}: entrance effects "
            "significant, capillary model may be invalid"
        ),
    }


def _pressure_ratio_flag(state) -> dict:
    if state.process is Process.BLOWDOWN:
        ratio = state.P1 / state.P2
    else:
        ratio = float(state.Ps) / state.P1
    high = ratio > HIGH_PRESSURE_RATIO
    return {
        "status": "warning" if high else "ok",
        "pressure_ratio": ratio,
        "message": (
            "High pressure ratio: consider compressibility effects"
            if high
            else "Moderate pressure ratio"
        ),
    }


def evaluate_validity_flags(state, d: float, re: float, model) -> dict:
    """Per-concern status flags for one forward evaluation.

    Capillary assumptions are only flagged when the capillary model produced
    the result; for the orifice model they are reported as information.
    """
    flags = {
        "pressure_ratio": _pressure_ratio_flag(state),
        "vessel_geometry": check_diameter_vs_volume(d, state.V),
    }
    lam = _laminar_flag(re)
    ld = _length_ratio_flag(state.L / d)
    if model is Model.CAPILLARY:
        flags["capillary_laminarity"] = lam
        flags["capillary_length_ratio"] = ld
    else:
        flags["capillary_laminarity"] = {**lam, "status": "info"}
        flags["capillary_length_ratio"] = {**ld, "status": "info"}
    return flags


def collect_warnings(flags: dict) -> list[str]:
    return [f["message"] for f in flags.values() if f.get("status") == "warning"]
