import json
from pathlib import Path

import pytest

from gastransfer.cli import build_parser, main
from gastransfer.gates import gate_forward, run_gates
from gastransfer.presets import PRESETS
from gastransfer.state import Model


def test_gate_baseline_closed_form_matches_ode():
    gates = run_gates()
    assert len(gates) == 6
    for g in gates:
        assert g.passed(1e-3), g


def test_gate_capillary_blowdown_reference():
    g = gate_forward("cap", PRESETS["reference"].state, 20e-6, Model.CAPILLARY)
    assert g.rel_err < 1e-3
    assert g.t_model > 0.0


def test_cli_time_reference(capsys):
    code = main(["time", "--preset", "reference", "--model", "orifice", "--D", "9e-6"])
    out = capsys.readouterr().out
    assert code == 0
    assert "model: orifice" in out
    assert "t = " in out


def test_cli_size_with_case_file(tmp_path: Path, capsys):
    case = tmp_path / "case.json"
    case.write_text(
        json.dumps({"model": "orifice", "target_time_s": 188.0}), encoding="utf-8"
    )
    code = main(["size", "--case", str(case), "--verbose"])
    out = capsys.readouterr().out
    assert code == 0
    assert "D = " in out
    assert "reason: ok" in out


def test_cli_size_unreachable_exits_2_with_diagnostic(capsys):
    code = main(["size", "--model", "orifice", "--t", "1e-9"])
    captured = capsys.readouterr()
    assert code == 2
    assert "target time out of bracket" in captured.out
    assert "error:" in captured.err


def test_cli_invalid_input_exits_2(capsys):
    code = main(["time", "--D", "9e-6", "--P2", "5e6"])
    err = capsys.readouterr().err
    assert code == 2
    assert err.startswith("error: P2:")


def test_cli_preset_listing(capsys):
    assert main(["preset"]) == 0
    out = capsys.readouterr().out
    for name in PRESETS:
        assert name in out


def test_cli_sample_table(capsys):
    code = main(["sample", "--d-min", "1e-6", "--d-max", "1e-4", "--n", "3"])
    out = capsys.readouterr().out.splitlines()
    assert code == 0
    assert out[0].startswith("D [m]")
    assert len(out) == 4


def test_parser_requires_subcommand():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
