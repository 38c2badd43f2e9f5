"""
Partials of link-end inertial states w.r.t. estimated parameters.

For every link end whose inertial position (and velocity) depends on a
parameter, a :class:`CartesianStatePartial` returns

    d r_link_end / d p   (3 x N)
    d v_link_end / d p   (3 x N, or None when the velocity is insensitive)

at the link-end time. The observation partial later contracts these with
the observable's scaling factors.
"""

from __future__ import annotations

import numpy as np
from abc import ABC, abstractmethod
from typing import Optional

from ..core.constants import TRANSLATIONAL_STATE_SIZE
from ..core.types import EstimatableParameterType, LinkEnds, LinkEndType
from ..environment.bodies import Body, NamedBodyMap
from ..estimation.parameters import EstimatableParameter

PositionPartialMap = dict[LinkEndType, "CartesianStatePartial"]


class CartesianStatePartial(ABC):
    """Partial of one link end's inertial state w.r.t. one parameter."""

    parameter_size: int

    @abstractmethod
    def wrt_position(self, time: float) -> np.ndarray:
        """d(position) / d(parameter), shape (3, parameter_size)."""

    def wrt_velocity(self, time: float) -> Optional[np.ndarray]:
        """d(velocity) / d(parameter), shape (3, parameter_size), or None."""
        return None


class BodyStatePartial(CartesianStatePartial):
    """Partial of a link end on a body w.r.t. that body's current state.

    A ground station moves rigidly with its body's center, so the same
    [I 0] / [0 I] blocks apply to stations and to the center of mass.
    """
    parameter_size = TRANSLATIONAL_STATE_SIZE

    def wrt_position(self, time: float) -> np.ndarray:
        return np.hstack([np.eye(3), np.zeros((3, 3))])

    def wrt_velocity(self, time: float) -> np.ndarray:
        return np.hstack([np.zeros((3, 3)), np.eye(3)])


class GroundStationPositionPartial(CartesianStatePartial):
    """Partial of a station's inertial state w.r.t. its body-fixed position.

        r = r_body + R(t) r_fixed      ->  dr/dr_fixed = R(t)
        v = v_body + dR/dt(t) r_fixed  ->  dv/dr_fixed = dR/dt(t)
    """
    parameter_size = 3

    def __init__(self, body: Body):
        self.body = body

    def wrt_position(self, time: float) -> np.ndarray:
        R, _, _ = self.body.rotation_at(time)
        return np.asarray(R, dtype=float)

    def wrt_velocity(self, time: float) -> np.ndarray:
        _, dR, _ = self.body.rotation_at(time)
        return np.asarray(dR, dtype=float)


def create_cartesian_state_partials_wrt_body_state(
        link_ends: LinkEnds, bodies: NamedBodyMap, body: str) -> PositionPartialMap:
    """State partials of all link ends located on ``body``.

    Args:
        link_ends: Link ends of the observation.
        bodies: Environment body map.
        body: Body whose translational state is estimated.

    Returns:
        Role -> partial for each link end on the body; empty if none.
    """
    if body not in bodies:
        raise ValueError(f"Body {body} not found in body map")
    return {role: BodyStatePartial() for role in link_ends.roles_on_body(body)}


def create_cartesian_state_partials_wrt_parameter(
        link_ends: LinkEnds, bodies: NamedBodyMap,
        parameter: EstimatableParameter) -> PositionPartialMap:
    """State partials of all link ends w.r.t. a non-initial-state parameter.

    Only ground-station positions move link ends directly; every other
    parameter kind yields an empty map.
    """
    if parameter.parameter_type != EstimatableParameterType.GROUND_STATION_POSITION:
        return {}

    body, station = parameter.identifier.body, parameter.identifier.secondary
    partials = {}
    for role, end in link_ends.items():
        if end.body == body and end.reference_point == station:
            partials[role] = GroundStationPositionPartial(bodies[body])
    return partials
