import math

from .constants import DIAMETER_VESSEL_RATIO_MAX


def area_from_diameter(d: float) -> float:
    return math.pi * d * d / 4.0


def diameter_from_area(a: float) -> float:
    return math.sqrt(4.0 * a / math.pi)


def equivalent_sphere_diameter(volume: float) -> float:
    """Diameter of the sphere holding `volume` [m]."""
    return (6.0 * volume / math.pi) ** (1.0 / 3.0)


def equivalent_cylinder_diameter(volume: float, length: float) -> float:
    return math.sqrt(4.0 * volume / (math.pi * length))


def check_diameter_vs_volume(
    d: float,
    volume: float,
    vessel_length: float = 1e-3,
    threshold: float = DIAMETER_VESSEL_RATIO_MAX,
) -> dict:
    """Flag a restriction that is implausibly large for the vessel it drains.

    The smaller of the sphere and cylinder equivalent diameters is used as the
    reference, which is the conservative choice for flat vessels.
    """
    d_sphere = equivalent_sphere_diameter(volume)
    d_cyl = equivalent_cylinder_diameter(volume, vessel_length)
    d_ref = min(d_sphere, d_cyl)
    ratio = d / d_ref
    unphysical = ratio > threshold
    return {
        "status": "warning" if unphysical else "ok",
        "D_equiv_sphere_m": d_sphere,
        "D_equiv_cylinder_m": d_cyl,
        "D_equiv_used_m": d_ref,
        "diameter_ratio": ratio,
        "message": (
            f"Diameter {d * 1e3:.3g} mm is {ratio * 100:.1f}% of the equivalent "
            f"vessel diameter {d_ref * 1e3:.3g} mm"
            if unphysical
            else "Diameter small relative to vessel"
        ),
    }
