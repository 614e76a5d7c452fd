from __future__ import annotations

import json
import math
import platform
import subprocess
import sys
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")


def make_results_dir(case_name: str) -> Path:
    out = Path("results") / f"{utc_timestamp()}_{case_name}"
    out.mkdir(parents=True, exist_ok=True)
    return out


def current_git_commit() -> str:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "HEAD"], text=True, stderr=subprocess.DEVNULL
        ).strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def package_version() -> str:
    try:
        return version("gastransfer")
    except PackageNotFoundError:
        return "0.1.0"


def write_run_json(outdir: Path, params: dict, solver_settings: dict) -> None:
    payload = {
        "timestamp_utc": datetime.now(timezone.utc).isoformat(),
        "git_commit": current_git_commit(),
        "python_version": sys.version,
        "package_version": package_version(),
        "platform": platform.platform(),
        "parameters": params,
        "solver_settings": solver_settings,
    }
    (outdir / "run.json").write_text(
        json.dumps(payload, ensure_ascii=False, indent=2),
        encoding="utf-8",
    )


def dump_meta_json(outdir: Path, filename: str, meta: dict) -> Path:
    path = outdir / filename
    path.write_text(json.dumps(meta, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def write_validity_json(outdir: Path, stem: str, validity_flags: dict) -> Path:
    path = outdir / f"{stem}_validity.json"
    path.write_text(
        json.dumps(validity_flags, ensure_ascii=False, indent=2), encoding="utf-8"
    )
    return path


def print_validity_summary(validity_flags: dict) -> None:
    print("Validity flags:")
    for key, payload in validity_flags.items():
        status = payload.get("status", "n/a")
        msg = payload.get("message", "")
        print(f"  - {key}: {status} {msg}".rstrip())


def print_diagnostic(diagnostic) -> None:
    print("Diagnostic:")
    for line in diagnostic.summary_lines():
        print(f"  {line}")


def format_time_display(seconds: float) -> str:
    """Human-readable duration, e.g. '850 µs', '12.3 ms', '2 min 5.0 s'."""
    if seconds is None or math.isnan(seconds):
        return "n/a"
    if math.isinf(seconds):
        return "inf"
    if seconds < 1e-3:
        return f"{seconds * 1e6:.3g} µs"
    if seconds < 1.0:
        return f"{seconds * 1e3:.3g} ms"
    if seconds < 60.0:
        return f"{seconds:.3g} s"
    if seconds < 3600.0:
        minutes, rest = divmod(seconds, 60.0)
        return f"{int(minutes)} min {rest:.1f} s"
    hours, rest = divmod(seconds, 3600.0)
    return f"{int(hours)} h {int(rest // 60.0)} min"
