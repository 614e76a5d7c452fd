R_UNIVERSAL = 8.314462618

T_SAFE = 1.0

CD_DEFAULT = 0.62
EPS_DEFAULT = 0.01
EPS_MIN = 1e-3
EPS_MAX = 0.1

# Model selection thresholds
RE_LAMINAR_MAX = 2000.0
RE_CAPILLARY_REJECT = 5000.0
LD_CAPILLARY_MIN = 10.0
BOTH_AGREEMENT_RTOL = 0.05
HIGH_PRESSURE_RATIO = 10.0
DIAMETER_VESSEL_RATIO_MAX = 0.1

# Root-finder limits
A_LO_START = 1e-12
K_PHYSICAL = 2.0
MAX_EXPANSIONS = 4
MAX_BISECT_ITER = 100
BISECT_RTOL = 1e-6
BISECT_XTOL_LOG = 1e-12
BOUNDARY_RTOL = 1e-9
T_TARGET_FLOOR = 1e-9
RESIDUAL_TOL_BLOWDOWN_MIN = 0.01
RESIDUAL_TOL_FILLING = 0.05
