"""
Reference frame transformations.

Provides the rotation between the Earth body-fixed frame and the inertial
(J2000) frame, with its time derivative, for placing ground-station link
ends and for their position partials.

Simplified model: Earth rotation only (no precession/nutation/polar motion).
"""

from __future__ import annotations

import numpy as np
from ..core.constants import (
    OMEGA_EARTH, MJD_J2000, SECONDS_PER_DAY, DAYS_PER_CENTURY, TWO_PI
)


def mjd_tt_from_seconds(t: float) -> float:
    """Convert seconds since J2000 TT to MJD TT."""
    return MJD_J2000 + t / SECONDS_PER_DAY


def gmst_from_mjd_tt(mjd_tt: float) -> float:
    """Greenwich Mean Sidereal Time from MJD in Terrestrial Time.

    Args:
        mjd_tt: Modified Julian Date in TT.

    Returns:
        GMST in radians, wrapped to [0, 2π).
    """
    T = (mjd_tt - MJD_J2000) / DAYS_PER_CENTURY

    gmst_sec = (67310.54841
                + (876600.0 * 3600.0 + 8640184.812866) * T
                + 0.093104 * T**2
                - 6.2e-6 * T**3)

    return ((gmst_sec / SECONDS_PER_DAY) * TWO_PI) % TWO_PI


def earth_fixed_to_inertial(t: float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Earth body-fixed to inertial rotation matrix and its time derivatives.

    Args:
        t: Epoch [s since J2000 TT].

    Returns:
        R: 3x3 rotation matrix, r_inertial = R · r_fixed.
        dR: 3x3 time derivative of R [1/s].
        ddR: 3x3 second time derivative of R [1/s²].
    """
    theta = gmst_from_mjd_tt(mjd_tt_from_seconds(t))
    c, s = np.cos(theta), np.sin(theta)

    R = np.array([
        [c, -s, 0.],
        [s,  c, 0.],
        [0., 0., 1.]
    ])

    # dR/dt = [ω×] · R with ω along +z
    dR = OMEGA_EARTH * np.array([
        [-s, -c, 0.],
        [c,  -s, 0.],
        [0., 0., 0.]
    ])

    ddR = -OMEGA_EARTH**2 * np.array([
        [c, -s, 0.],
        [s,  c, 0.],
        [0., 0., 0.]
    ])

    return R, dR, ddR


def uniform_rotation_to_inertial(rotation_rate: float, phase_at_epoch: float = 0.0):
    """Build a body-fixed to inertial rotation for a body spinning about +z.

    Args:
        rotation_rate: Spin rate [rad/s].
        phase_at_epoch: Rotation angle at t = 0 [rad].

    Returns:
        Callable t -> (R, dR, ddR) with the same convention as
        :func:`earth_fixed_to_inertial`.
    """
    def rotation(t: float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        theta = phase_at_epoch + rotation_rate * t
        c, s = np.cos(theta), np.sin(theta)
        R = np.array([[c, -s, 0.], [s, c, 0.], [0., 0., 1.]])
        dR = rotation_rate * np.array([[-s, -c, 0.], [c, -s, 0.], [0., 0., 0.]])
        ddR = -rotation_rate**2 * np.array([[c, -s, 0.], [s, c, 0.], [0., 0., 0.]])
        return R, dR, ddR

    return rotation
