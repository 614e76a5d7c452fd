"""Ideal-gas property table for the flow models.

Values at 20 degC (293.15 K). The specific gas constant is derived from the
molar mass; viscosity for air can be re-evaluated at another temperature with
Sutherland's law.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace

from .constants import R_UNIVERSAL, T_SAFE


@dataclass(frozen=True)
class GasProps:
    name: str
    M: float  # kg/mol
    R: float  # J/(kg K)
    gamma: float
    mu: float  # Pa s

    def with_viscosity(self, mu: float) -> GasProps:
        return replace(self, mu=mu)


def _gas(name: str, M: float, gamma: float, mu: float) -> GasProps:
    return GasProps(name=name, M=M, R=R_UNIVERSAL / M, gamma=gamma, mu=mu)


GASES: dict[str, GasProps] = {
    "air": _gas("Air", 0.028964, 1.4, 1.825e-5),
    "N2": _gas("Nitrogen", 0.028014, 1.4, 1.780e-5),
    "O2": _gas("Oxygen", 0.031998, 1.4, 2.055e-5),
    "CH4": _gas("Methane", 0.016042, 1.32, 1.127e-5),
    "CO2": _gas("Carbon Dioxide", 0.044010, 1.30, 1.480e-5),
    "He": _gas("Helium", 0.004003, 1.67, 1.990e-5),
}


def get_gas(name: str) -> GasProps:
    key = name.strip()
    if key in GASES:
        return GASES[key]
    for k, props in GASES.items():
        if k.lower() == key.lower() or props.name.lower() == key.lower():
            return props
    raise ValueError(f"unknown gas '{name}', expected one of {sorted(GASES)}")


def custom_gas(
    R: float, gamma: float, mu: float, name: str = "custom", M: float | None = None
) -> GasProps:
    if not (math.isfinite(R) and R > 0.0):
        raise ValueError(f"gas.R must be > 0, got {R}")
    if not (math.isfinite(gamma) and gamma > 1.0):
        raise ValueError(f"gas.gamma must be > 1, got {gamma}")
    if not (math.isfinite(mu) and mu > 0.0):
        raise ValueError(f"gas.mu must be > 0, got {mu}")
    return GasProps(name=name, M=M if M is not None else R_UNIVERSAL / R, R=R, gamma=gamma, mu=mu)


def mu_air_sutherland(T: float) -> float:
    t_eff = max(T, T_SAFE)
    mu0 = 1.716e-5
    t_ref = 273.15
    s = 111.0
    return mu0 * (t_eff / t_ref) ** 1.5 * (t_ref + s) / (t_eff + s)
