from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from .constants import CD_DEFAULT, EPS_DEFAULT
from .errors import InvalidInputError
from .gases import GasProps, custom_gas, get_gas, mu_air_sutherland
from .state import FlowState, Model, Process, Regime

ALLOWED_PROCESS = {p.value for p in Process}
ALLOWED_REGIME = {r.value for r in Regime}
ALLOWED_MODEL = {"auto"} | {m.value for m in Model}


@dataclass
class CaseFile:
    # vessel / process (SI unless suffix says otherwise)
    process: str = "blowdown"
    V_m3: float = 2e-7
    P1_Pa: float = 1.2e6
    P2_Pa: float = 1e3
    Ps_Pa: float | None = None
    T_K: float = 288.15
    L_m: float = 0.002

    # gas: a library name, or "custom" with the three properties below
    gas: str = "air"
    gas_R_J_kgK: float | None = None
    gas_gamma: float | None = None
    gas_mu_Pa_s: float | None = None
    # air only: viscosity from Sutherland's law at T_K
    mu_sutherland: bool = False

    # model
    model: str = "auto"
    regime: str = "isothermal"
    Cd: float = CD_DEFAULT
    epsilon: float = EPS_DEFAULT

    # what to compute: forward (D_m) and/or inverse (target_time_s)
    D_m: float | None = None
    target_time_s: float | None = None

    output_case_name: str = "case"

    def validate(self) -> None:
        if self.process not in ALLOWED_PROCESS:
            raise InvalidInputError("process", "must be blowdown|filling")
        if self.regime not in ALLOWED_REGIME:
            raise InvalidInputError("regime", "must be isothermal|adiabatic")
        if self.model not in ALLOWED_MODEL:
            raise InvalidInputError("model", "must be auto|orifice|capillary")
        if self.D_m is None and self.target_time_s is None:
            raise InvalidInputError("D_m", "either D_m or target_time_s is required")
        self.to_flow_state()

    def gas_props(self) -> GasProps:
        if self.gas == "custom":
            for name in ("gas_R_J_kgK", "gas_gamma", "gas_mu_Pa_s"):
                if getattr(self, name) is None:
                    raise InvalidInputError(name, "is required for a custom gas")
            try:
                return custom_gas(self.gas_R_J_kgK, self.gas_gamma, self.gas_mu_Pa_s)
            except ValueError as exc:
                raise InvalidInputError("gas", str(exc)) from None
        try:
            props = get_gas(self.gas)
        except ValueError as exc:
            raise InvalidInputError("gas", str(exc)) from None
        if self.gas_mu_Pa_s is not None:
            props = props.with_viscosity(self.gas_mu_Pa_s)
        elif self.mu_sutherland:
            if props is not get_gas("air"):
                raise InvalidInputError("mu_sutherland", "only available for air")
            props = props.with_viscosity(mu_air_sutherland(self.T_K))
        return props

    def to_flow_state(self) -> FlowState:
        return FlowState(
            process=Process(self.process),
            V=self.V_m3,
            P1=self.P1_Pa,
            P2=self.P2_Pa,
            Ps=self.Ps_Pa,
            T=self.T_K,
            L=self.L_m,
            gas=self.gas_props(),
            Cd=self.Cd,
            epsilon=self.epsilon,
            regime=Regime(self.regime),
        ).validate()

    @property
    def model_override(self) -> str | None:
        return None if self.model == "auto" else self.model

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False, indent=2)

    @classmethod
    def from_json(cls, payload: str) -> CaseFile:
        data = json.loads(payload)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidInputError(unknown[0], "unknown case file key")
        return cls(**data)

    def save_json(self, path: str | Path) -> None:
        Path(path).write_text(self.to_json(), encoding="utf-8")

    @classmethod
    def load_json(cls, path: str | Path) -> CaseFile:
        return cls.from_json(Path(path).read_text(encoding="utf-8"))
