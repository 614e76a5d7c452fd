"""Orifice vs. capillary model selection."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from .capillary import capillary_time
from .constants import (
    BOTH_AGREEMENT_RTOL,
    LD_CAPILLARY_MIN,
    RE_CAPILLARY_REJECT,
    RE_LAMINAR_MAX,
)
from .errors import InvalidInputError
from .geometry import area_from_diameter
from .orifice import orifice_time
from .state import FlowState, Model, Verdict
from .validity import mean_mass_flow, reynolds_number

logger = logging.getLogger(__name__)

FORCED_RATIONALE = "forced by user selection"


@dataclass(frozen=True)
class ModelSelection:
    model: Model
    rationale: str
    forced: bool = False
    reynolds: float | None = None
    l_over_d: float | None = None
    verdict: Verdict | None = None

    def to_dict(self) -> dict:
        return {
            "model": self.model.value,
            "rationale": self.rationale,
            "forced": self.forced,
            "Re": self.reynolds,
            "L_over_D": self.l_over_d,
            "verdict": self.verdict.value if self.verdict is not None else None,
        }


def capillary_reynolds(state: FlowState, d: float) -> float:
    """Reynolds number implied by the capillary model's own mean mass flow."""
    t = capillary_time(state, area_from_diameter(d))
    return reynolds_number(mean_mass_flow(state, t), d, state.gas.mu)


def select_model(
    state: FlowState,
    candidate_diameter: float | None = None,
    override: Model | str | None = None,
) -> ModelSelection:
    if override is not None:
        try:
            model = Model(override)
        except ValueError:
            raise InvalidInputError(
                "model", f"must be orifice|capillary, got {override!r}"
            ) from None
        logger.info("model %s (%s)", model.value, FORCED_RATIONALE)
        return ModelSelection(model=model, rationale=FORCED_RATIONALE, forced=True)

    if candidate_diameter is None:
        logger.info("model orifice (no candidate diameter)")
        return ModelSelection(
            model=Model.ORIFICE,
            rationale="no candidate diameter: orifice model by default",
        )
    if not math.isfinite(candidate_diameter) or candidate_diameter <= 0.0:
        raise InvalidInputError("D", f"must be > 0, got {candidate_diameter}")

    ld = state.L / candidate_diameter
    re = capillary_reynolds(state, candidate_diameter)
    if ld >= LD_CAPILLARY_MIN and re <= RE_LAMINAR_MAX:
        model = Model.CAPILLARY
        rationale = (
            f"L/D={ld:.1f} >= {LD_CAPILLARY_MIN:.0f} and Re={re:.0f} <= "
            f"{RE_LAMINAR_MAX:.0f}: laminar capillary"
        )
    else:
        model = Model.ORIFICE
        if ld < LD_CAPILLARY_MIN and re > RE_CAPILLARY_REJECT:
            rationale = (
                f"L/D={ld:.1f} < {LD_CAPILLARY_MIN:.0f} and Re={re:.0f} > "
                f"{RE_CAPILLARY_REJECT:.0f}: capillary rejected, orifice"
            )
        elif ld < LD_CAPILLARY_MIN:
            rationale = f"L/D={ld:.1f} < {LD_CAPILLARY_MIN:.0f}: short restriction, orifice"
        else:
            rationale = f"Re={re:.0f} > {RE_LAMINAR_MAX:.0f}: not laminar, orifice"
    logger.info("model %s (%s)", model.value, rationale)
    return ModelSelection(model=model, rationale=rationale, reynolds=re, l_over_d=ld)


def forward_verdict(state: FlowState, diameter: float, selection: ModelSelection) -> Verdict:
    """Verdict for a forward evaluation.

    BOTH when the two models agree on the time within `BOTH_AGREEMENT_RTOL`;
    the caller then reports the orifice time. A forced selection is kept.
    """
    if selection.forced:
        return Verdict(selection.model.value)
    area = area_from_diameter(diameter)
    t_o = orifice_time(state, area)
    t_c = capillary_time(state, area)
    if math.isfinite(t_o) and math.isfinite(t_c) and t_o > 0.0:
        if abs(t_c - t_o) / t_o <= BOTH_AGREEMENT_RTOL:
            return Verdict.BOTH
    return Verdict(selection.model.value)
