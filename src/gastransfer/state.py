from __future__ import annotations

import math
import numbers
from dataclasses import asdict, dataclass, field, replace
from enum import Enum

from .constants import CD_DEFAULT, EPS_DEFAULT, EPS_MAX, EPS_MIN
from .errors import InvalidInputError
from .gases import GasProps
from .geometry import area_from_diameter, diameter_from_area


class Process(str, Enum):
    BLOWDOWN = "blowdown"
    FILLING = "filling"


class Model(str, Enum):
    ORIFICE = "orifice"
    CAPILLARY = "capillary"


class Regime(str, Enum):
    ISOTHERMAL = "isothermal"
    ADIABATIC = "adiabatic"


class Verdict(str, Enum):
    ORIFICE = "orifice"
    CAPILLARY = "capillary"
    BOTH = "both"


def _require_pos(name: str, val) -> float:
    if val is None:
        raise InvalidInputError(name, "is required")
    if isinstance(val, bool) or not isinstance(val, numbers.Real):
        raise InvalidInputError(name, f"must be a number, got {val!r}")
    v = float(val)
    if not math.isfinite(v):
        raise InvalidInputError(name, f"must be finite, got {v}")
    if v <= 0.0:
        raise InvalidInputError(name, f"must be > 0, got {v}")
    return v


@dataclass(frozen=True)
class FlowState:
    """SI input bundle for one vessel + restriction configuration.

    Pressures are absolute. For filling, P2 is the target vessel pressure and
    Ps the supply pressure.
    """

    process: Process
    V: float
    P1: float
    P2: float
    T: float
    L: float
    gas: GasProps
    Cd: float = CD_DEFAULT
    epsilon: float = EPS_DEFAULT
    regime: Regime = Regime.ISOTHERMAL
    Ps: float | None = None

    def validate(self) -> FlowState:
        if not isinstance(self.process, Process):
            raise InvalidInputError("process", f"must be blowdown|filling, got {self.process!r}")
        if not isinstance(self.regime, Regime):
            raise InvalidInputError("regime", f"must be isothermal|adiabatic, got {self.regime!r}")
        v = {name: _require_pos(name, getattr(self, name))
             for name in ("V", "P1", "P2", "T", "L", "Cd", "epsilon")}
        if not isinstance(self.gas, GasProps):
            raise InvalidInputError("gas", f"gas properties are required, got {self.gas!r}")
        _require_pos("gas.R", self.gas.R)
        _require_pos("gas.mu", self.gas.mu)
        gamma = _require_pos("gas.gamma", self.gas.gamma)
        if gamma <= 1.0:
            raise InvalidInputError("gas.gamma", f"must be > 1, got {gamma}")
        if v["Cd"] > 1.0:
            raise InvalidInputError("Cd", f"must be <= 1, got {self.Cd}")
        if v["epsilon"] >= 1.0:
            raise InvalidInputError("epsilon", f"must be < 1, got {self.epsilon}")

        if self.process is Process.BLOWDOWN:
            if v["P1"] <= v["P2"]:
                raise InvalidInputError(
                    "P2", f"blowdown needs P1 > P2, got P1={self.P1} P2={self.P2}"
                )
        else:
            ps = _require_pos("Ps", self.Ps)
            if v["P2"] <= v["P1"]:
                raise InvalidInputError(
                    "P2", f"filling needs P2 > P1, got P1={self.P1} P2={self.P2}"
                )
            if ps <= v["P2"]:
                raise InvalidInputError(
                    "Ps", f"filling needs Ps > P2, got Ps={self.Ps} P2={self.P2}"
                )
        return self

    @property
    def eps_pressure(self) -> float:
        """Tolerance used for the stopping-pressure offset, clamped."""
        return min(max(self.epsilon, EPS_MIN), EPS_MAX)

    @property
    def stop_pressure(self) -> float:
        if self.process is Process.BLOWDOWN:
            return self.P2 * (1.0 + self.eps_pressure)
        return self.P2 * (1.0 - self.eps_pressure)

    def transferred_mass(self) -> float:
        """Mass leaving (blowdown) or entering (filling) the vessel [kg]."""
        return abs(self.P1 - self.stop_pressure) * self.V / (self.gas.R * self.T)

    def evolve(self, **changes) -> FlowState:
        return replace(self, **changes)

    def to_dict(self) -> dict:
        d = asdict(self)
        d["process"] = self.process.value
        d["regime"] = self.regime.value
        return d


@dataclass(frozen=True)
class RestrictionGeometry:
    area: float

    def __post_init__(self):
        _require_pos("area", self.area)

    @property
    def diameter(self) -> float:
        return diameter_from_area(self.area)

    @classmethod
    def from_diameter(cls, d: float) -> RestrictionGeometry:
        _require_pos("D", d)
        return cls(area_from_diameter(d))


@dataclass(frozen=True)
class ForwardResult:
    model: Model
    time: float
    geometry: RestrictionGeometry
    reynolds: float
    l_over_d: float
    mach: float
    choked: bool
    critical_ratio: float
    transition_pressure: float | None
    phase_times: dict[str, float] = field(default_factory=dict)
    warnings: tuple[str, ...] = ()

    @property
    def diameter(self) -> float:
        return self.geometry.diameter

    @property
    def area(self) -> float:
        return self.geometry.area

    def to_dict(self) -> dict:
        return {
            "model": self.model.value,
            "t_s": self.time,
            "A_m2": self.area,
            "D_m": self.diameter,
            "Re": self.reynolds,
            "L_over_D": self.l_over_d,
            "Mach": self.mach,
            "choked": self.choked,
            "r_crit": self.critical_ratio,
            "P_transition_Pa": self.transition_pressure,
            "phase_times_s": dict(self.phase_times),
            "warnings": list(self.warnings),
        }
