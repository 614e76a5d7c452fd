from __future__ import annotations

import argparse
import sys

from .config import CaseFile
from .errors import InvalidInputError, SolverError
from .forward import time_function
from .gates import run_gates
from .io import format_time_display, print_diagnostic
from .plotting import plot_time_curve, time_curve
from .presets import PRESETS, get_preset
from .run import (
    compute_diameter_from_time,
    compute_time_from_diameter,
    export_report,
    make_case_output_dir,
)
from .state import Model


def _add_state_args(s: argparse.ArgumentParser) -> None:
    s.add_argument("--case", default="", help="JSON case file (SI units)")
    s.add_argument("--preset", default="", choices=[""] + sorted(PRESETS))
    s.add_argument("--process", default="blowdown", choices=["blowdown", "filling"])
    s.add_argument("--V", type=float, default=2e-7, help="vessel volume [m3]")
    s.add_argument("--P1", type=float, default=1.2e6, help="initial pressure [Pa abs]")
    s.add_argument("--P2", type=float, default=1e3, help="final/target pressure [Pa abs]")
    s.add_argument("--Ps", type=float, default=None, help="supply pressure [Pa abs]")
    s.add_argument("--T", type=float, default=288.15, help="temperature [K]")
    s.add_argument("--L", type=float, default=0.002, help="restriction length [m]")
    s.add_argument("--gas", default="air")
    s.add_argument("--gas-R", type=float, default=None)
    s.add_argument("--gas-gamma", type=float, default=None)
    s.add_argument("--gas-mu", type=float, default=None)
    s.add_argument("--mu-sutherland", action="store_true", help="air viscosity at --T")
    s.add_argument("--cd", type=float, default=0.62)
    s.add_argument("--eps", type=float, default=0.01)
    s.add_argument("--regime", default="isothermal", choices=["isothermal", "adiabatic"])
    s.add_argument("--model", default="auto", choices=["auto", "orifice", "capillary"])
    s.add_argument("--save", action="store_true", help="write results/ artifacts")


def _case_from_args(args) -> CaseFile:
    if args.case:
        return CaseFile.load_json(args.case)
    if args.preset:
        p = get_preset(args.preset)
        s = p.state
        return CaseFile(
            process=s.process.value,
            V_m3=s.V,
            P1_Pa=s.P1,
            P2_Pa=s.P2,
            Ps_Pa=s.Ps,
            T_K=s.T,
            L_m=s.L,
            gas="custom",
            gas_R_J_kgK=s.gas.R,
            gas_gamma=s.gas.gamma,
            gas_mu_Pa_s=s.gas.mu,
            model=p.model or "auto",
            regime=s.regime.value,
            Cd=s.Cd,
            epsilon=s.epsilon,
            D_m=p.diameter,
            target_time_s=p.target_time,
            output_case_name=p.name,
        )
    return CaseFile(
        process=args.process,
        V_m3=args.V,
        P1_Pa=args.P1,
        P2_Pa=args.P2,
        Ps_Pa=args.Ps,
        T_K=args.T,
        L_m=args.L,
        gas="custom" if args.gas_R is not None else args.gas,
        gas_R_J_kgK=args.gas_R,
        gas_gamma=args.gas_gamma,
        gas_mu_Pa_s=args.gas_mu,
        mu_sutherland=args.mu_sutherland,
        model=args.model,
        regime=args.regime,
        Cd=args.cd,
        epsilon=args.eps,
        output_case_name=args.cmd,
    )


def _run_time(case: CaseFile, diameter: float, save: bool) -> int:
    state = case.to_flow_state()
    rep = compute_time_from_diameter(state, diameter, case.model_override)
    res = rep.result
    print(f"model: {res.model.value} ({rep.selection.rationale}), verdict: {rep.verdict.value}")
    print(f"t = {res.time:.6g} s ({format_time_display(res.time)})")
    print(
        f"Re = {res.reynolds:.4g}, L/D = {res.l_over_d:.4g}, Mach = {res.mach:.3g}, "
        f"choked = {res.choked}"
    )
    for w in res.warnings:
        print(f"warning: {w}")
    if save:
        out = make_case_output_dir(case.output_case_name)
        export_report(out, "time", rep, state, {"command": "time", **case.__dict__})
    return 0


def _run_size(case: CaseFile, target: float, retries: int, save: bool, verbose: bool) -> int:
    state = case.to_flow_state()
    out = compute_diameter_from_time(state, target, case.model_override, retries=retries)
    if save:
        outdir = make_case_output_dir(case.output_case_name)
        export_report(outdir, "size", out, state, {"command": "size", **case.__dict__})
    if not out.ok:
        print_diagnostic(out.diagnostic)
        out.raise_for_status()
    print(f"model: {out.model.value} ({out.diagnostic.rationale})")
    print(f"D = {out.diameter:.6e} m, A = {out.area:.6e} m2")
    print(f"t = {out.time:.6g} s ({format_time_display(out.time)}), residual = {out.residual:.3e}")
    for w in out.diagnostic.warnings:
        print(f"warning: {w}")
    if verbose:
        print_diagnostic(out.diagnostic)
    return 0


def _run_sample(case: CaseFile, d_min: float, d_max: float, n: int, do_plots: bool) -> int:
    state = case.to_flow_state()
    models = [Model(case.model)] if case.model != "auto" else list(Model)
    curves = {}
    for m in models:
        curves[m.value] = time_curve(time_function(state, m), d_min, d_max, n)
    print("D [m]" + "".join(f"  t_{m.value} [s]" for m in models))
    d_vals = curves[models[0].value][0]
    for i, d in enumerate(d_vals):
        print(f"{d:.4e}" + "".join(f"  {curves[m.value][1][i]:.6g}" for m in models))
    if do_plots:
        out = make_case_output_dir(case.output_case_name)
        plot_time_curve(out, case.output_case_name, curves)
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="gastransfer")
    sub = p.add_subparsers(dest="cmd", required=True)

    g = sub.add_parser("gate", help="closed-form vs ODE verification")
    g.add_argument("--tol", type=float, default=1e-3)

    pr = sub.add_parser("preset", help="list or run a reference scenario")
    pr.add_argument("name", nargs="?", default="")

    t = sub.add_parser("time", help="transfer time from diameter")
    _add_state_args(t)
    t.add_argument("--D", type=float, default=None, help="restriction diameter [m]")

    s = sub.add_parser("size", help="diameter from target time")
    _add_state_args(s)
    s.add_argument("--t", type=float, default=None, help="target time [s]")
    s.add_argument("--retries", type=int, default=0)
    s.add_argument("--verbose", action="store_true")

    sm = sub.add_parser("sample", help="tabulate t(D)")
    _add_state_args(sm)
    sm.add_argument("--d-min", type=float, default=1e-6)
    sm.add_argument("--d-max", type=float, default=1e-3)
    sm.add_argument("--n", type=int, default=13)
    sm.add_argument("--do-plots", action="store_true")
    return p


def _dispatch(args) -> int:
    if args.cmd == "gate":
        failed = 0
        for gm in run_gates():
            ok = gm.passed(args.tol)
            failed += not ok
            print(
                f"{gm.name}: t_model={gm.t_model:.6g} s  t_ode={gm.t_ode:.6g} s  "
                f"rel_err={gm.rel_err:.2e}  {'ok' if ok else 'FAIL'}"
            )
        return 1 if failed else 0
    if args.cmd == "preset":
        if not args.name:
            for name, preset in sorted(PRESETS.items()):
                print(f"{name}: {preset.description}")
            return 0
        preset = get_preset(args.name)
        case = _case_from_args(argparse.Namespace(case="", preset=preset.name))
        if preset.diameter is not None:
            return _run_time(case, preset.diameter, save=False)
        return _run_size(case, preset.target_time, 0, save=False, verbose=True)

    case = _case_from_args(args)
    if args.cmd == "time":
        d = args.D if args.D is not None else case.D_m
        if d is None:
            raise InvalidInputError("D", "is required")
        return _run_time(case, d, args.save)
    if args.cmd == "size":
        t = args.t if args.t is not None else case.target_time_s
        if t is None:
            raise InvalidInputError("target_time", "is required")
        return _run_size(case, t, args.retries, args.save, args.verbose)
    return _run_sample(case, args.d_min, args.d_max, args.n, args.do_plots)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return _dispatch(args)
    except InvalidInputError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except SolverError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
