import math

import pytest

from gastransfer.diagnostics import (
    build_diagnostic,
    choking_state,
    input_snapshot,
    sample_time_curve,
    solution_choking,
)
from gastransfer.errors import InvalidInputError
from gastransfer.forward import forward_time
from gastransfer.gases import GASES, custom_gas, get_gas, mu_air_sutherland
from gastransfer.geometry import (
    area_from_diameter,
    check_diameter_vs_volume,
    diameter_from_area,
    equivalent_sphere_diameter,
)
from gastransfer.presets import PRESETS
from gastransfer.state import FlowState, Model, Process, RestrictionGeometry
from gastransfer.validity import (
    collect_warnings,
    evaluate_validity_flags,
    reynolds_number,
    throat_mach,
)


def test_area_diameter_inverse():
    assert diameter_from_area(area_from_diameter(3e-3)) == pytest.approx(3e-3)
    assert RestrictionGeometry.from_diameter(2e-3).area == pytest.approx(math.pi * 1e-6)


def test_equivalent_sphere_diameter():
    d = equivalent_sphere_diameter(math.pi / 6.0)
    assert d == pytest.approx(1.0)


def test_diameter_vs_vessel_warning():
    flag = check_diameter_vs_volume(5e-3, 1e-6)
    assert flag["status"] == "warning"
    assert flag["diameter_ratio"] > 0.1
    assert check_diameter_vs_volume(1e-5, 1e-6)["status"] == "ok"


def test_gas_library_and_lookup():
    assert set(GASES) == {"air", "N2", "O2", "CH4", "CO2", "He"}
    air = get_gas("AIR")
    assert air.R == pytest.approx(287.06, rel=1e-3)
    assert get_gas("methane").gamma == pytest.approx(1.32)
    with pytest.raises(ValueError, match="unknown gas"):
        get_gas("argon-ish")


def test_custom_gas_validation():
    g = custom_gas(R=300.0, gamma=1.3, mu=1e-5)
    assert g.M == pytest.approx(8.314462618 / 300.0)
    with pytest.raises(ValueError, match="gamma"):
        custom_gas(R=300.0, gamma=1.0, mu=1e-5)


def test_sutherland_reference_point():
    assert mu_air_sutherland(273.15) == pytest.approx(1.716e-5)
    assert mu_air_sutherland(373.15) > mu_air_sutherland(273.15)


@pytest.mark.parametrize(
    "field,changes",
    [
        ("V", {"V": 0.0}),
        ("P1", {"P1": float("nan")}),
        ("T", {"T": -5.0}),
        ("L", {"L": 0.0}),
        ("Cd", {"Cd": 1.5}),
        ("P2", {"P2": 2e6}),
    ],
)
def test_flow_state_validation_names_field(field, changes):
    state = PRESETS["reference"].state.evolve(**changes)
    with pytest.raises(InvalidInputError) as exc:
        state.validate()
    assert exc.value.field == field


def test_flow_state_gas_validation():
    gas = custom_gas(R=287.0, gamma=1.4, mu=1.8e-5).with_viscosity(-1.0)
    state = PRESETS["reference"].state.evolve(gas=gas)
    with pytest.raises(InvalidInputError, match="gas.mu"):
        state.validate()


def test_stop_pressure_offsets_and_clamp():
    bd = PRESETS["reference"].state
    assert bd.stop_pressure == pytest.approx(1e3 * 1.01)
    fl = PRESETS["n2-capillary"].state
    assert fl.stop_pressure == pytest.approx(5e5 * 0.99)
    assert bd.evolve(epsilon=1e-6).stop_pressure == pytest.approx(1e3 * 1.001)
    assert bd.evolve(epsilon=0.5).stop_pressure == pytest.approx(1e3 * 1.1)


def test_reynolds_and_mach_helpers():
    assert reynolds_number(1e-3, 1e-3, 1.8e-5) == pytest.approx(4e-3 / (math.pi * 1e-3 * 1.8e-5))
    assert math.isnan(reynolds_number(1e-3, 0.0, 1.8e-5))
    assert throat_mach(0.1, 1.4, 0.528) == 1.0
    assert throat_mach(1.0, 1.4, 0.528) == 0.0
    assert 0.0 < throat_mach(0.8, 1.4, 0.528) < 1.0


def test_validity_flags_for_orifice_are_informational_for_capillary_checks():
    state = PRESETS["reference"].state
    flags = evaluate_validity_flags(state, 9e-6, 5000.0, Model.ORIFICE)
    assert flags["capillary_laminarity"]["status"] == "info"
    assert flags["pressure_ratio"]["status"] == "warning"
    warnings = collect_warnings(flags)
    assert any("pressure ratio" in w for w in warnings)
    assert not any("Reynolds" in w for w in warnings)

    cap = evaluate_validity_flags(state, 9e-6, 5000.0, Model.CAPILLARY)
    assert cap["capillary_laminarity"]["status"] == "warning"


def test_choking_state_filling_unchoked():
    state = FlowState(
        process=Process.FILLING,
        V=0.01,
        P1=4e5,
        P2=5e5,
        Ps=6e5,
        T=293.15,
        L=0.01,
        gas=get_gas("air"),
    )
    c = choking_state(state, Model.ORIFICE)
    assert c["r"] == pytest.approx(4e5 / 6e5)
    assert c["choked"] is False
    assert c["P_transition_Pa"] == pytest.approx(c["r_crit"] * 6e5)


def test_sample_time_curve_detects_non_monotonic():
    samples, mono = sample_time_curve(lambda a: 1.0 / a, 1e-9, 1e-5)
    assert len(samples) == 5
    assert mono is True
    assert samples[0][0] == pytest.approx(1e-9)
    assert samples[-1][0] == pytest.approx(1e-5)

    _, mono_bad = sample_time_curve(lambda a: 5.0, 1e-9, 1e-5)
    assert mono_bad is False


def test_build_diagnostic_without_bracket_serialises():
    state = PRESETS["reference"].state
    diag = build_diagnostic(state, Model.ORIFICE, "forced by user selection", 10.0, "invalid input")
    d = diag.to_dict()
    assert d["reason"] == "invalid input"
    assert d["bracket"] is None
    assert d["samples"] == []
    assert d["history"] == []
    assert any(line.startswith("reason:") for line in diag.summary_lines())


def test_solution_choking_splits_orifice_time_only():
    state = PRESETS["reference"].state
    area = area_from_diameter(9e-6)
    orf = forward_time(state, area, Model.ORIFICE)
    split = solution_choking(orf)
    assert split["choked_time_s"] > split["subsonic_time_s"] > 0.0
    assert split["choked_time_s"] + split["subsonic_time_s"] == pytest.approx(orf.time)
    assert solution_choking(forward_time(state, area, Model.CAPILLARY)) == {}


def test_input_snapshot_of_unvalidated_state_uses_raw_fields():
    state = PRESETS["reference"].state.evolve(P2=None, gas=None)
    snap = input_snapshot(state, validated=False)
    assert snap["P2"] is None
    assert snap["gas"] is None
    assert snap["process"] == "blowdown"
    assert "stop_pressure" not in snap
