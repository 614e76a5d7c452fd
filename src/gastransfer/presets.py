from __future__ import annotations

from dataclasses import dataclass

from .errors import InvalidInputError
from .gases import get_gas
from .state import FlowState, Process, Regime


@dataclass(frozen=True)
class Preset:
    name: str
    description: str
    state: FlowState
    diameter: float | None = None
    target_time: float | None = None
    model: str | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "description": self.description,
            "state": self.state.to_dict(),
            "D_m": self.diameter,
            "target_time_s": self.target_time,
            "model": self.model,
        }


def reference_microleak() -> Preset:
    """2 cm^3 cell vented to 1 kPa through a micron-size leak (orifice)."""
    state = FlowState(
        process=Process.BLOWDOWN,
        V=2e-7,
        P1=1.2e6,
        P2=1e3,
        T=288.15,
        L=0.002,
        gas=get_gas("air"),
        Cd=0.62,
        epsilon=0.01,
        regime=Regime.ISOTHERMAL,
    )
    return Preset(
        "reference",
        "Micro-leak blowdown, air, 12 bar to 10 mbar",
        state,
        diameter=9e-6,
        model="orifice",
    )


def air_thin_plate() -> Preset:
    state = FlowState(
        process=Process.BLOWDOWN,
        V=0.05,
        P1=1e6,
        P2=1e5,
        T=293.15,
        L=0.002,
        gas=get_gas("air"),
    )
    return Preset(
        "air-plate",
        "Air blowdown through a thin plate, 50 L, 10 to 1 bar in 30 s",
        state,
        target_time=30.0,
        model="orifice",
    )


def n2_capillary_filling() -> Preset:
    state = FlowState(
        process=Process.FILLING,
        V=0.01,
        P1=1e5,
        P2=5e5,
        Ps=6e5,
        T=298.15,
        L=0.1,
        gas=get_gas("N2"),
    )
    return Preset(
        "n2-capillary",
        "Nitrogen filling through a 1 mm x 100 mm capillary, 10 L, 1 to 5 bar",
        state,
        diameter=1e-3,
        model="capillary",
    )


def ch4_adiabatic_filling() -> Preset:
    state = FlowState(
        process=Process.FILLING,
        V=0.2,
        P1=2e5,
        P2=1.5e6,
        Ps=2e6,
        T=288.15,
        L=0.01,
        gas=get_gas("CH4"),
        regime=Regime.ADIABATIC,
    )
    return Preset(
        "ch4-adiabatic",
        "Methane adiabatic filling through an 8 mm orifice, 200 L, 2 to 15 bar",
        state,
        diameter=8e-3,
        model="orifice",
    )


PRESETS = {
    p.name: p
    for p in (
        reference_microleak(),
        air_thin_plate(),
        n2_capillary_filling(),
        ch4_adiabatic_filling(),
    )
}


def get_preset(name: str) -> Preset:
    try:
        return PRESETS[name]
    except KeyError:
        raise InvalidInputError(
            "preset", f"unknown preset '{name}', expected one of {sorted(PRESETS)}"
        ) from None
