import json
import math

import pytest

from gastransfer.capillary import capillary_diameter_from_time
from gastransfer.errors import FailureKind, SolverError
from gastransfer.forward import forward_time
from gastransfer.geometry import area_from_diameter
from gastransfer.presets import PRESETS
from gastransfer.rootfind import (
    Bracket,
    RetryContext,
    SolverOptions,
    bisect_step,
    find_root,
    initial_bounds,
    solve_area_from_time,
)
from gastransfer.state import Model, Process

A_LO, A_HI = 1e-12, 1e-3


def _inverse(area: float) -> float:
    return 1.0 / area


def _find(time_fn, target, options=None, residual_tol=0.01):
    return find_root(time_fn, target, A_LO, A_HI, A_HI, residual_tol, options)


def test_find_root_simple_inverse_law():
    out = _find(_inverse, 1e6)
    assert out.ok
    assert out.area == pytest.approx(1e-6, rel=1e-5)
    assert out.residual <= 1e-6
    assert out.bracket.expansions == 0


def test_find_root_expands_bracket_downwards():
    out = find_root(_inverse, 5e12, A_LO, A_HI, A_HI, 0.01)
    assert out.ok
    assert out.bracket.expansions == 1
    assert out.area == pytest.approx(2e-13, rel=1e-5)


def test_find_root_exhausts_bracket():
    out = _find(_inverse, 1e-9)
    assert out.kind is FailureKind.BRACKET_EXHAUSTED
    assert out.bracket.expansions == 4
    assert out.bracket.t_hi > 1e-9
    assert "not within" in out.message


def test_find_root_infinite_time_at_lower_end_is_too_long():
    def fn(a):
        return math.inf if a < 1e-10 else 1.0 / a

    out = _find(fn, 1e6)
    assert out.ok
    assert out.area == pytest.approx(1e-6, rel=1e-5)


def test_find_root_nan_at_upper_end_forces_expansion_until_exhausted():
    def fn(a):
        return math.nan if a > 1e-4 else 1.0 / a

    out = _find(fn, 1e6)
    assert out.kind is FailureKind.BRACKET_EXHAUSTED
    assert math.isnan(out.bracket.t_hi)


def test_find_root_nan_during_bisection():
    def fn(a):
        return math.nan if 1e-8 < a < 1e-5 else 1.0 / a

    out = _find(fn, 1e6)
    assert out.kind is FailureKind.NON_FINITE_RESULT
    assert out.iterations == 1


def test_find_root_boundary_hit():
    def step(a):
        return 100.0 if a < A_HI else 1.0

    out = _find(step, 50.0)
    assert out.kind is FailureKind.BOUNDARY_HIT
    assert out.area == pytest.approx(A_HI, rel=1e-9)


def test_find_root_residual_rejected_on_interior_jump():
    def jump(a):
        return 100.0 if a < 1e-6 else 1.0

    out = _find(jump, 50.0)
    assert out.kind is FailureKind.RESIDUAL_REJECTED
    assert out.residual > 0.9
    assert out.area == pytest.approx(1e-6, rel=1e-6)


def test_find_root_non_convergent():
    out = _find(_inverse, 1e6, options=SolverOptions(max_iter=3))
    assert out.kind is FailureKind.NON_CONVERGENT
    assert out.iterations == 3


def test_bisect_step_is_pure_and_uses_geometric_mean():
    b = Bracket(1e-12, 1e-4, 1e12, 1e4)
    nb, a_mid, t_mid = bisect_step(b, 1e6, _inverse)
    assert a_mid == pytest.approx(1e-8)
    assert t_mid == pytest.approx(1e8)
    assert nb.a_lo == pytest.approx(1e-8)
    assert nb.a_hi == b.a_hi
    assert b.a_lo == 1e-12

    nb2, _, _ = bisect_step(Bracket(1e-8, 1e-4, 1e8, 1e4), 1e7, _inverse)
    assert nb2.a_hi == pytest.approx(1e-6)
    assert nb2.a_lo == 1e-8


def test_bracket_contains():
    assert Bracket(1e-12, 1e-3, math.inf, 1.0).contains(10.0)
    assert not Bracket(1e-12, 1e-3, 100.0, math.inf).contains(10.0)
    assert not Bracket(1e-12, 1e-3, math.nan, 1.0).contains(10.0)
    assert not Bracket(1e-12, 1e-3, 5.0, 1.0).contains(10.0)


def test_initial_bounds_from_vessel_size():
    v = 2e-7
    d_eq = (6.0 * v / math.pi) ** (1.0 / 3.0)
    a_lo, a_hi, a_cap = initial_bounds(v, SolverOptions())
    assert a_lo == 1e-12
    assert a_hi == pytest.approx(area_from_diameter(2.0 * d_eq))
    assert a_cap == pytest.approx(a_hi)

    a_lo2, a_hi2, a_cap2 = initial_bounds(v, SolverOptions(), RetryContext(1, 2.0))
    assert a_lo2 == pytest.approx(5e-13)
    assert a_hi2 == pytest.approx(a_hi)
    assert a_cap2 == pytest.approx(area_from_diameter(4.0 * d_eq) * 4.0)


def test_residual_tolerance_is_configurable_per_process():
    opts = SolverOptions()
    assert opts.residual_tol(Process.BLOWDOWN, 0.001) == 0.01
    assert opts.residual_tol(Process.BLOWDOWN, 0.03) == 0.03
    assert opts.residual_tol(Process.FILLING, 0.001) == 0.05
    custom = SolverOptions(blowdown_residual_tol=0.002, filling_residual_tol=0.1)
    assert custom.residual_tol(Process.BLOWDOWN, 0.03) == 0.002
    assert custom.residual_tol(Process.FILLING, 0.03) == 0.1


def test_solver_options_reject_bad_values():
    with pytest.raises(ValueError, match="rtol"):
        SolverOptions(rtol=0.0)
    with pytest.raises(ValueError, match="max_iter"):
        SolverOptions(max_iter=0)


@pytest.mark.parametrize("d", [9e-6, 5e-6, 40e-6])
def test_round_trip_orifice_blowdown(d):
    state = PRESETS["reference"].state
    a = area_from_diameter(d)
    t = forward_time(state, a, Model.ORIFICE).time
    res = solve_area_from_time(state, t, model="orifice")
    assert res.ok
    assert res.area == pytest.approx(a, rel=0.05)
    assert res.model is Model.ORIFICE


def test_round_trip_orifice_filling():
    preset = PRESETS["ch4-adiabatic"]
    state = preset.state
    a = area_from_diameter(1e-4)
    t = forward_time(state, a, Model.ORIFICE).time
    res = solve_area_from_time(state, t, model=Model.ORIFICE)
    assert res.ok
    assert res.area == pytest.approx(a, rel=0.10)
    assert res.residual <= 0.05


def test_round_trip_capillary():
    state = PRESETS["n2-capillary"].state
    a = area_from_diameter(30e-6)
    t = forward_time(state, a, Model.CAPILLARY).time
    res = solve_area_from_time(state, t, model="capillary")
    assert res.ok
    assert res.area == pytest.approx(a, rel=0.10)


def test_auto_inverse_selects_capillary_at_closed_form_candidate():
    state = PRESETS["reference"].state
    res = solve_area_from_time(state, 188.0)
    assert res.ok
    assert res.model is Model.CAPILLARY
    assert res.diameter == pytest.approx(capillary_diameter_from_time(state, 188.0), rel=1e-3)
    assert "laminar" in res.diagnostic.rationale


def test_unreachable_target_is_bracket_exhausted_not_success():
    state = PRESETS["reference"].state
    res = solve_area_from_time(state, 1e-9, model="orifice")
    assert not res.ok
    assert res.kind is FailureKind.BRACKET_EXHAUSTED
    diag = res.diagnostic
    assert diag.reason == "target time out of bracket"
    assert diag.bracket["t_hi"] > 1e-9
    assert diag.expansions == 4
    with pytest.raises(SolverError, match="out of bracket") as exc:
        res.raise_for_status()
    assert exc.value.kind is FailureKind.BRACKET_EXHAUSTED
    assert exc.value.diagnostic is diag


def test_invalid_target_is_reported_with_field():
    state = PRESETS["reference"].state
    res = solve_area_from_time(state, -1.0, model="orifice")
    assert res.kind is FailureKind.INVALID_INPUT
    assert res.field == "target_time"
    assert res.diagnostic.reason == "invalid input"
    assert "stop_pressure" in res.diagnostic.inputs
    assert res.diagnostic.choking["r_crit"] == pytest.approx(0.5283, abs=1e-4)


def test_invalid_state_is_reported_with_field():
    state = PRESETS["reference"].state.evolve(P2=2e6)
    res = solve_area_from_time(state, 100.0)
    assert res.kind is FailureKind.INVALID_INPUT
    assert res.field == "P2"


@pytest.mark.parametrize(
    "changes,field",
    [
        ({"P2": None}, "P2"),
        ({"V": None}, "V"),
        ({"gas": None}, "gas"),
        ({"process": "blowdown"}, "process"),
        ({"regime": "x"}, "regime"),
        ({"P1": "1.2e6"}, "P1"),
    ],
)
def test_malformed_state_returns_invalid_input_failure(changes, field):
    state = PRESETS["reference"].state.evolve(**changes)
    res = solve_area_from_time(state, 100.0)
    assert not res.ok
    assert res.kind is FailureKind.INVALID_INPUT
    assert res.field == field
    assert res.diagnostic.choking == {}
    payload = json.loads(json.dumps(res.diagnostic.to_dict()))
    assert payload["reason"] == "invalid input"
    assert payload["inputs"]["T"] == state.T
    assert "stop_pressure" not in payload["inputs"]


def test_success_diagnostic_is_complete():
    state = PRESETS["reference"].state
    res = solve_area_from_time(state, 188.0, model="orifice")
    diag = res.diagnostic
    assert diag.ok
    assert diag.model == "orifice"
    assert diag.target_time == 188.0
    assert diag.achieved_time == pytest.approx(188.0, rel=1e-5)
    assert diag.inputs["V"] == state.V
    assert diag.choking["choked"] is True
    assert diag.choking["choked_time_s"] + diag.choking["subsonic_time_s"] == pytest.approx(
        diag.achieved_time
    )
    assert 0.0 < diag.choking["choked_fraction"] < 1.0
    assert any(line.startswith("at solution:") for line in diag.summary_lines())
    assert diag.choking["r_crit"] == pytest.approx(0.5283, abs=1e-4)
    assert len(diag.samples) == 5
    assert diag.monotonic is True
    assert diag.initial_bracket["A_lo"] <= res.area <= diag.initial_bracket["A_hi"]
    assert diag.iterations == res.iterations > 0


def test_retry_context_threads_history():
    state = PRESETS["reference"].state
    first = solve_area_from_time(state, 1e-9, model="orifice")
    retry = RetryContext().next(first)
    assert retry.attempt == 1
    assert retry.expansion_factor == 2.0
    assert retry.history[0]["reason"] == "target time out of bracket"

    second = solve_area_from_time(state, 1e-9, model="orifice", retry=retry)
    assert not second.ok
    assert second.diagnostic.retry == {"attempt": 1, "expansion_factor": 2.0}
    assert len(second.diagnostic.history) == 1
    assert second.diagnostic.bracket["A_hi"] > first.diagnostic.bracket["A_hi"]
