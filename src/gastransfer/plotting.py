from __future__ import annotations

from pathlib import Path

import numpy as np

HAS_MPL = False
try:
    import matplotlib

    matplotlib.use("Agg")
    import matplotlib.pyplot as plt

    HAS_MPL = True
except ImportError:
    HAS_MPL = False


def time_curve(time_fn, d_min: float, d_max: float, n: int = 60):
    """(D, t) arrays over log-spaced diameters."""
    d = np.geomspace(d_min, d_max, n)
    t = np.array([time_fn(np.pi * dd**2 / 4.0) for dd in d], dtype=float)
    return d, t


def plot_time_curve(
    outdir: Path,
    name: str,
    curves: dict,
    marker: tuple[float, float] | None = None,
) -> Path | None:
    """Log-log t(D) plot; `curves` maps a label to (D, t) arrays."""
    if not HAS_MPL:
        return None
    outdir.mkdir(parents=True, exist_ok=True)

    fig, ax = plt.subplots(figsize=(9, 6))
    for label, (d, t) in curves.items():
        ax.loglog(np.asarray(d) * 1e6, t, lw=2, label=label)
    if marker is not None:
        ax.loglog([marker[0] * 1e6], [marker[1]], "ko", label="solution")
    ax.set(xlabel="D, µm", ylabel="t, s", title=f"{name}: transfer time vs diameter")
    ax.grid(True, which="both", alpha=0.3)
    ax.legend()
    fig.tight_layout()
    path = outdir / f"{name}_t_of_D.png"
    fig.savefig(path, dpi=200)
    plt.close(fig)
    return path
