"""
Earth-centered environment: analytical Sun ephemeris and a rotating Earth.

Low-precision formula from Meeus/Montenbruck, ~0.01 deg accuracy. The
velocity is the exact time derivative of the same series, so the state is
self-consistent for light-time and relativistic-correction geometry.

References:
    Montenbruck & Gill, "Satellite Orbits", Sec. 3.3.2
    Meeus, "Astronomical Algorithms", Ch. 25
"""

from __future__ import annotations

import numpy as np
from typing import Optional

from ..core.constants import (
    MJD_J2000, AU_KM, MU_EARTH, MU_SUN, SECONDS_PER_DAY, DAYS_PER_CENTURY
)
from ..core.frames import earth_fixed_to_inertial, mjd_tt_from_seconds
from .bodies import Body

_CENTURIES_PER_SECOND = 1.0 / (DAYS_PER_CENTURY * SECONDS_PER_DAY)


def sun_state_eci(mjd_tt: float) -> np.ndarray:
    """Sun position and velocity in the Earth-centered inertial frame.

    Args:
        mjd_tt: Modified Julian Date in Terrestrial Time.

    Returns:
        state: [x, y, z, vx, vy, vz] in [km, km/s], shape (6,).
    """
    T = (mjd_tt - MJD_J2000) / DAYS_PER_CENTURY

    # Mean anomaly [rad] and its rate [rad/century]
    M = np.deg2rad((357.5256 + 35999.049 * T) % 360.0)
    dM = np.deg2rad(35999.049)

    # Ecliptic longitude [rad] and rate [rad/century]
    lam = np.deg2rad((280.460 + 36000.770 * T
                      + 1.9146 * np.sin(M) + 0.0200 * np.sin(2.0 * M)) % 360.0)
    dlam = (np.deg2rad(36000.770)
            + np.deg2rad(1.9146 * np.cos(M) + 0.0400 * np.cos(2.0 * M)) * dM)

    # Distance [km] and rate [km/century]
    r = AU_KM * (1.00014 - 0.01671 * np.cos(M) - 0.00014 * np.cos(2.0 * M))
    dr = AU_KM * (0.01671 * np.sin(M) + 0.00028 * np.sin(2.0 * M)) * dM

    # Obliquity of the ecliptic [rad] and rate [rad/century]
    eps = np.deg2rad(23.4393 - 0.0130 * T)
    deps = np.deg2rad(-0.0130)

    cl, sl = np.cos(lam), np.sin(lam)
    ce, se = np.cos(eps), np.sin(eps)

    position = np.array([r * cl, r * sl * ce, r * sl * se])
    velocity = np.array([
        dr * cl - r * sl * dlam,
        dr * sl * ce + r * cl * ce * dlam - r * sl * se * deps,
        dr * sl * se + r * cl * se * dlam + r * sl * ce * deps,
    ]) * _CENTURIES_PER_SECOND

    return np.concatenate([position, velocity])


def create_sun_body() -> Body:
    """Sun body for Earth-centered setups, driven by :func:`sun_state_eci`."""
    return Body(
        name="Sun",
        gravitational_parameter=MU_SUN,
        state_function=lambda t: sun_state_eci(mjd_tt_from_seconds(t)),
    )


def create_earth_body(ground_stations: Optional[dict[str, np.ndarray]] = None) -> Body:
    """Earth at the origin of an Earth-centered frame, rotating with GMST.

    Args:
        ground_stations: Station name -> Earth-fixed position [km].
    """
    return Body(
        name="Earth",
        gravitational_parameter=MU_EARTH,
        rotation_to_inertial=earth_fixed_to_inertial,
        ground_stations={name: np.asarray(r, dtype=float)
                         for name, r in (ground_stations or {}).items()},
    )
