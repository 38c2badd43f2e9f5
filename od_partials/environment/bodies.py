"""
Minimal body representation consumed by the partial framework.

A body supplies its inertial state (and optionally acceleration) as a
function of time, its gravitational parameter, a body-fixed to inertial
rotation, and the body-fixed positions of any ground stations. Ephemeris
generation and propagation live outside this package; the factories here
cover analytic motion used for setup and verification.
"""

from __future__ import annotations

import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..core.types import LinkEndId, LinkEndState


def _at_rest(t: float) -> np.ndarray:
    return np.zeros(6)


@dataclass
class Body:
    """A named body of the environment.

    Attributes:
        name: Body name, used in link ends and parameter identifiers.
        gravitational_parameter: GM [km³/s²].
        state_function: Callable t -> inertial [r, v] [km, km/s], shape (6,).
        acceleration_function: Optional callable t -> inertial acceleration
            [km/s²], shape (3,). Zero acceleration when absent.
        rotation_to_inertial: Optional callable t -> (R, dR, ddR), body-fixed
            to inertial rotation and its first and second time derivatives.
            Required for bodies carrying ground stations.
        ground_stations: Station name -> body-fixed position [km], shape (3,).
    """
    name: str
    gravitational_parameter: float = 0.0
    state_function: Callable[[float], np.ndarray] = _at_rest
    acceleration_function: Optional[Callable[[float], np.ndarray]] = None
    rotation_to_inertial: Optional[Callable[[float], tuple]] = None
    ground_stations: dict[str, np.ndarray] = field(default_factory=dict)

    def state_at(self, t: float) -> np.ndarray:
        return np.asarray(self.state_function(t), dtype=float)

    def acceleration_at(self, t: float) -> np.ndarray:
        if self.acceleration_function is None:
            return np.zeros(3)
        return np.asarray(self.acceleration_function(t), dtype=float)

    def rotation_at(self, t: float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        if self.rotation_to_inertial is None:
            raise ValueError(f"Body {self.name} has no rotation model")
        return self.rotation_to_inertial(t)

    def station_position(self, station: str) -> np.ndarray:
        try:
            return self.ground_stations[station]
        except KeyError:
            raise ValueError(
                f"Ground station {station} not found on body {self.name}"
            ) from None

    def link_end_state(self, reference_point: str, t: float) -> LinkEndState:
        """Inertial state of the body center or one of its ground stations."""
        state = self.state_at(t)
        acceleration = self.acceleration_at(t)
        if not reference_point:
            return LinkEndState.from_state_vector(t, state, acceleration)

        r_fixed = self.station_position(reference_point)
        R, dR, ddR = self.rotation_at(t)
        return LinkEndState(
            time=t,
            position=state[0:3] + R @ r_fixed,
            velocity=state[3:6] + dR @ r_fixed,
            acceleration=acceleration + ddR @ r_fixed
        )


NamedBodyMap = dict[str, Body]


def link_end_state(bodies: NamedBodyMap, link_end: LinkEndId, t: float) -> LinkEndState:
    """Look up the inertial state of a link end in a body map."""
    try:
        body = bodies[link_end.body]
    except KeyError:
        raise ValueError(f"Body {link_end.body} not found in body map") from None
    return body.link_end_state(link_end.reference_point, t)


def create_linear_motion_body(name: str,
                              position: np.ndarray,
                              velocity: np.ndarray,
                              gravitational_parameter: float = 0.0,
                              reference_time: float = 0.0) -> Body:
    """Body moving on a straight line at constant velocity.

    Args:
        name: Body name.
        position: Position at the reference time [km], shape (3,).
        velocity: Constant velocity [km/s], shape (3,).
        gravitational_parameter: GM [km³/s²].
        reference_time: Time of ``position`` [s since J2000].
    """
    r0 = np.array(position, dtype=float)
    v0 = np.array(velocity, dtype=float)

    def state(t: float) -> np.ndarray:
        return np.concatenate([r0 + v0 * (t - reference_time), v0])

    return Body(name=name, gravitational_parameter=gravitational_parameter,
                state_function=state)


def create_circular_orbit_body(name: str,
                               radius: float,
                               central_gravitational_parameter: float,
                               phase_at_epoch: float = 0.0,
                               inclination: float = 0.0,
                               gravitational_parameter: float = 0.0,
                               central_body: Optional[Body] = None) -> Body:
    """Body on a circular Keplerian orbit, with analytic acceleration.

    The orbit lies in the x-y plane rotated about x by ``inclination``.

    Args:
        name: Body name.
        radius: Orbit radius [km].
        central_gravitational_parameter: GM of the attracting body [km³/s²].
        phase_at_epoch: Argument of latitude at t = 0 [rad].
        inclination: Orbit inclination [rad].
        gravitational_parameter: GM of this body [km³/s²].
        central_body: Optional body the orbit is centered on; its state and
            acceleration are added.
    """
    n = np.sqrt(central_gravitational_parameter / radius**3)
    ci, si = np.cos(inclination), np.sin(inclination)
    tilt = np.array([[1., 0., 0.], [0., ci, -si], [0., si, ci]])

    def relative_state(t: float) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        u = phase_at_epoch + n * t
        r = radius * np.array([np.cos(u), np.sin(u), 0.])
        v = radius * n * np.array([-np.sin(u), np.cos(u), 0.])
        return tilt @ r, tilt @ v, -n**2 * (tilt @ r)

    def state(t: float) -> np.ndarray:
        r, v, _ = relative_state(t)
        if central_body is not None:
            central = central_body.state_at(t)
            r = r + central[0:3]
            v = v + central[3:6]
        return np.concatenate([r, v])

    def acceleration(t: float) -> np.ndarray:
        _, _, a = relative_state(t)
        if central_body is not None:
            a = a + central_body.acceleration_at(t)
        return a

    return Body(name=name, gravitational_parameter=gravitational_parameter,
                state_function=state, acceleration_function=acceleration)
