"""
Physical and mathematical constants.

Sources:
    - IAU 2012 for astronomical constants
    - IERS conventions for Earth parameters
    - DE440 for planetary gravitational parameters
"""

import numpy as np

# ---------------------------------------------------------------------------
# Mathematical constants
# ---------------------------------------------------------------------------
TWO_PI = 2.0 * np.pi

# ---------------------------------------------------------------------------
# Time constants
# ---------------------------------------------------------------------------
MJD_J2000 = 51544.5                     # MJD of J2000.0 epoch (2000-01-01 12:00 TT)
SECONDS_PER_DAY = 86400.0
DAYS_PER_CENTURY = 36525.0

# ---------------------------------------------------------------------------
# Signal propagation
# ---------------------------------------------------------------------------
C_LIGHT = 299792.458                    # Speed of light [km/s]

# ---------------------------------------------------------------------------
# Gravitational parameters [km³/s²]
# ---------------------------------------------------------------------------
MU_SUN = 1.32712440041e11
MU_EARTH = 398600.4418

# ---------------------------------------------------------------------------
# Earth parameters
# ---------------------------------------------------------------------------
R_EARTH = 6378.137                      # Equatorial radius [km]
OMEGA_EARTH = 7.2921150e-5              # Earth rotation rate [rad/s]
AU_KM = 149597870.7                     # Astronomical unit [km]

# ---------------------------------------------------------------------------
# Estimation layout
# ---------------------------------------------------------------------------
TRANSLATIONAL_STATE_SIZE = 6            # Width of an initial-state block
MUTUAL_APPROXIMATION_LEG_COUNT = 2      # Light-time legs of a three-body link
