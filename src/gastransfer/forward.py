from __future__ import annotations

from typing import Callable

from .capillary import capillary_forward_time, capillary_time
from .orifice import orifice_forward_time, orifice_time
from .state import FlowState, ForwardResult, Model, RestrictionGeometry

_FORWARD = {
    Model.ORIFICE: orifice_forward_time,
    Model.CAPILLARY: capillary_forward_time,
}

_TIME = {
    Model.ORIFICE: orifice_time,
    Model.CAPILLARY: capillary_time,
}


def forward_time(state: FlowState, area, model: Model | str) -> ForwardResult:
    """Elapsed time and regime diagnostics for one restriction.

    `area` is either a `RestrictionGeometry` or an area in m^2; non-positive
    or non-finite areas raise `InvalidInputError`.
    """
    model = Model(model)
    geometry = area if isinstance(area, RestrictionGeometry) else RestrictionGeometry(area)
    return _FORWARD[model](state, geometry)


def time_function(state: FlowState, model: Model | str) -> Callable[[float], float]:
    """Bare t(A) closure for the root finder, skipping diagnostics."""
    fn = _TIME[Model(model)]

    def t_of_area(area: float) -> float:
        return fn(state, area)

    return t_of_area
