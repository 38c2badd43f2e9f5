"""
Observable scaling factors for mutual-approximation observables.

The scaling turns link-end state partials into observable partials:

    d h / d p = sum_role  S_r(role) @ d r_role/d p  +  S_v(role) @ d v_role/d p
              + sum_leg   S_lt(leg) @ d tau_leg/d p

Geometry (observer = receiver R, observed bodies = transmitter (1) and
transmitter2 (2)):

    rho_i = r_i - r_R,  d_i = |rho_i|,  e_i = rho_i / d_i,  P_i = I - e_i e_i^T
    de_i/dt = P_i drho_i/dt / d_i
    D = e_2 - e_1                         (apparent separation vector)
    g = D . dD/dt                         (half the rate of |D|^2)

Observables:
    - central instant t_c, defined by g(t_c) = 0; dt_c/dx = -(dg/dx) / (dg/dt)
    - derivative ("modified") formulation: g itself
    - impact parameter theta = 2 asin(|D| / 2) at t_c; since d|D|/dt = 0 at
      t_c, theta has no velocity sensitivity and no t_c coupling
    - central instant and impact parameter stacked as a 2-vector

The position partials neglect the coupling of a state change into the
light time (instantaneous-geometry scaling). Light-time correction legs are
attributed to the transmitter of the leg: increasing the light time of leg
i by dtau moves transmitter i by -v_i dtau along its trajectory.
"""

from __future__ import annotations

import numpy as np
from abc import ABC, abstractmethod
from scipy.optimize import brentq
from typing import Optional

from ..core.types import (
    LinkEnds, LinkEndState, LinkEndType, ObservableType, observable_size,
    required_link_end_types
)
from .dependent_variables import DependentVariablesInterface

# Transmitting link end of each light-time correction leg
LEG_TRANSMITTERS = (LinkEndType.TRANSMITTER, LinkEndType.TRANSMITTER2)


class ApparentMotion:
    """Apparent direction of a body seen from an observer, with derivatives.

    Attributes:
        distance: d = |rho| [km].
        direction: e = rho / d, shape (3,).
        projection: P = I - e e^T, shape (3, 3).
        direction_rate: de/dt [1/s], shape (3,).
        direction_acceleration: d²e/dt² [1/s²], shape (3,).
    """

    def __init__(self, body_state: LinkEndState, observer_state: LinkEndState):
        rho = body_state.position - observer_state.position
        rho_dot = body_state.velocity - observer_state.velocity
        rho_ddot = body_state.acceleration - observer_state.acceleration

        d = np.linalg.norm(rho)
        e = rho / d
        P = np.eye(3) - np.outer(e, e)
        e_dot = P @ rho_dot / d

        range_rate = e @ rho_dot
        range_acceleration = e @ rho_ddot + d * (e_dot @ e_dot)

        self.relative_velocity = rho_dot
        self.distance = d
        self.direction = e
        self.projection = P
        self.direction_rate = e_dot
        self.range_rate = range_rate
        self.direction_acceleration = (
            rho_ddot - range_acceleration * e - 2.0 * range_rate * e_dot) / d

    @property
    def direction_wrt_relative_position(self) -> np.ndarray:
        """de/drho = P / d, shape (3, 3)."""
        return self.projection / self.distance

    @property
    def direction_rate_wrt_relative_position(self) -> np.ndarray:
        """d(de/dt)/drho, shape (3, 3)."""
        e = self.direction
        u = self.range_rate
        rho_dot = self.relative_velocity
        return -(np.outer(rho_dot, e)
                 + u * (np.eye(3) - 2.0 * np.outer(e, e))
                 + np.outer(e, rho_dot @ self.projection)) / self.distance**2

    @property
    def direction_rate_wrt_relative_velocity(self) -> np.ndarray:
        """d(de/dt)/d(drho/dt) = P / d, shape (3, 3)."""
        return self.projection / self.distance


class MutualApproximationGeometry:
    """Apparent relative motion of two bodies seen from one observer."""

    def __init__(self, receiver_state: LinkEndState, transmitter_state: LinkEndState,
                 transmitter2_state: LinkEndState):
        self.first = ApparentMotion(transmitter_state, receiver_state)
        self.second = ApparentMotion(transmitter2_state, receiver_state)

        self.separation = self.second.direction - self.first.direction
        self.separation_rate_vector = self.second.direction_rate - self.first.direction_rate
        self.separation_acceleration_vector = (
            self.second.direction_acceleration - self.first.direction_acceleration)

    @property
    def apparent_separation(self) -> float:
        """|D|, chord length between the apparent directions."""
        return float(np.linalg.norm(self.separation))

    @property
    def impact_parameter(self) -> float:
        """Apparent angular separation [rad]."""
        return 2.0 * np.arcsin(0.5 * self.apparent_separation)

    @property
    def separation_rate(self) -> float:
        """g = D . dD/dt; zero at the central instant."""
        return float(self.separation @ self.separation_rate_vector)

    @property
    def separation_rate_derivative(self) -> float:
        """dg/dt = |dD/dt|² + D . d²D/dt²."""
        return float(self.separation_rate_vector @ self.separation_rate_vector
                     + self.separation @ self.separation_acceleration_vector)

    def separation_rate_partials(self) -> tuple[np.ndarray, ...]:
        """Partials of g w.r.t. (rho_1, rho_2, drho_1/dt, drho_2/dt), each shape (3,)."""
        D, D_dot = self.separation, self.separation_rate_vector
        first, second = self.first, self.second

        wrt_rho_2 = (D_dot @ second.direction_wrt_relative_position
                     + D @ second.direction_rate_wrt_relative_position)
        wrt_rho_1 = -(D_dot @ first.direction_wrt_relative_position
                      + D @ first.direction_rate_wrt_relative_position)
        wrt_rho_dot_2 = D @ second.direction_rate_wrt_relative_velocity
        wrt_rho_dot_1 = -(D @ first.direction_rate_wrt_relative_velocity)
        return wrt_rho_1, wrt_rho_2, wrt_rho_dot_1, wrt_rho_dot_2

    def impact_parameter_partials(self) -> tuple[np.ndarray, np.ndarray]:
        """Partials of theta w.r.t. (rho_1, rho_2), each shape (3,)."""
        s = self.apparent_separation
        d_theta_d_separation = 2.0 / np.sqrt(4.0 - s**2) * self.separation / s
        wrt_rho_2 = d_theta_d_separation @ self.second.direction_wrt_relative_position
        wrt_rho_1 = -(d_theta_d_separation @ self.first.direction_wrt_relative_position)
        return wrt_rho_1, wrt_rho_2


def _role_factors(wrt_first: np.ndarray, wrt_second: np.ndarray) -> dict[LinkEndType, np.ndarray]:
    """Per-role (1 x 3) factors; the receiver enters both relative vectors with -I."""
    return {
        LinkEndType.TRANSMITTER: np.atleast_2d(wrt_first),
        LinkEndType.TRANSMITTER2: np.atleast_2d(wrt_second),
        LinkEndType.RECEIVER: -np.atleast_2d(wrt_first + wrt_second),
    }


def _zero_factors(rows: int) -> dict[LinkEndType, np.ndarray]:
    return {role: np.zeros((rows, 3)) for role in LEG_TRANSMITTERS + (LinkEndType.RECEIVER,)}


class PositionPartialScaling(ABC):
    """Per-epoch scaling factors shared by all partials of one link-end set.

    Call :meth:`update` once per epoch before evaluating any partial.

    Attributes:
        link_ends: Link ends of the observation.
        dependent_variables: Optional state supplier used when ``update`` is
            given a reception time instead of explicit link-end states.
    """

    observable_type: ObservableType

    def __init__(self, link_ends: LinkEnds,
                 dependent_variables: Optional[DependentVariablesInterface] = None):
        self.required_roles = required_link_end_types(self.observable_type)
        missing = link_ends.missing_roles(self.required_roles)
        if missing:
            raise ValueError(
                f"Cannot scale {self.observable_type.name} partials, link ends "
                f"{link_ends!r} lack {[role.name for role in missing]}"
            )
        self.link_ends = link_ends
        self.dependent_variables = dependent_variables
        self._states: Optional[dict[LinkEndType, LinkEndState]] = None
        self._position_factors: dict[LinkEndType, np.ndarray] = {}
        self._velocity_factors: dict[LinkEndType, np.ndarray] = {}
        self._observation = np.zeros(self.observable_size)

    @property
    def observable_size(self) -> int:
        return observable_size(self.observable_type)

    def update(self, reception_time: Optional[float] = None,
               link_end_states: Optional[dict[LinkEndType, LinkEndState]] = None):
        """Refresh the cached geometry for a new epoch.

        Args:
            reception_time: Reception time [s since J2000]; link-end states
                are then taken from the dependent-variable supplier.
            link_end_states: Explicit role -> state mapping; takes precedence.
        """
        if link_end_states is None:
            if reception_time is None or self.dependent_variables is None:
                raise ValueError(
                    "Scaling update needs link-end states, or a reception time "
                    "and a dependent-variable supplier"
                )
            link_end_states = self.dependent_variables.link_end_states(
                self.link_ends, reception_time)

        missing = [role.name for role in self.required_roles if role not in link_end_states]
        if missing:
            raise ValueError(f"Scaling update lacks link-end states for {missing}")

        self._states = dict(link_end_states)
        self._compute_factors()

    @abstractmethod
    def _compute_factors(self):
        """Fill the position/velocity factors and the observation from ``_states``."""

    def _check_updated(self):
        if self._states is None:
            raise RuntimeError(
                f"{type(self).__name__} evaluated before the first update"
            )

    @property
    def link_end_states(self) -> dict[LinkEndType, LinkEndState]:
        self._check_updated()
        return self._states

    @property
    def link_end_times(self) -> dict[LinkEndType, float]:
        self._check_updated()
        return {role: state.time for role, state in self._states.items()}

    @property
    def reception_time(self) -> float:
        self._check_updated()
        return self._states[LinkEndType.RECEIVER].time

    @property
    def observation(self) -> np.ndarray:
        """Observable value at the current epoch, shape (m,)."""
        self._check_updated()
        return self._observation.copy()

    def position_scaling_factor(self, role: LinkEndType) -> np.ndarray:
        """d(observable)/d(position of ``role``), shape (m, 3)."""
        self._check_updated()
        return self._position_factors.get(role, np.zeros((self.observable_size, 3)))

    def velocity_scaling_factor(self, role: LinkEndType) -> np.ndarray:
        """d(observable)/d(velocity of ``role``), shape (m, 3)."""
        self._check_updated()
        return self._velocity_factors.get(role, np.zeros((self.observable_size, 3)))

    def light_time_correction_scaling(self, leg: int) -> np.ndarray:
        """d(observable)/d(light time of ``leg``) [1/s], shape (m, 1)."""
        self._check_updated()
        if not 0 <= leg < len(LEG_TRANSMITTERS):
            raise ValueError(
                f"Light-time leg {leg} does not exist, expected 0 to {len(LEG_TRANSMITTERS) - 1}"
            )
        role = LEG_TRANSMITTERS[leg]
        state = self._states[role]
        scaling = -(self.position_scaling_factor(role) @ state.velocity
                    + self.velocity_scaling_factor(role) @ state.acceleration)
        return scaling.reshape(self.observable_size, 1)


class MutualApproximationScalingBase(PositionPartialScaling):
    """Shared geometry for the mutual-approximation family."""

    geometry: MutualApproximationGeometry

    def _compute_factors(self):
        states = self._states
        self.geometry = MutualApproximationGeometry(
            states[LinkEndType.RECEIVER], states[LinkEndType.TRANSMITTER],
            states[LinkEndType.TRANSMITTER2])
        self._position_factors, self._velocity_factors, observation = self._factors()
        self._observation = np.atleast_1d(np.asarray(observation, dtype=float))

    @abstractmethod
    def _factors(self) -> tuple[dict, dict, np.ndarray]:
        """(position factors, velocity factors, observation) for ``geometry``."""

    def _central_instant_factors(self) -> tuple[dict, dict]:
        g_dot = self.geometry.separation_rate_derivative
        if g_dot == 0.0:
            raise RuntimeError(
                "Central instant is undefined: apparent separation rate is stationary"
            )
        w_rho_1, w_rho_2, w_rho_dot_1, w_rho_dot_2 = self.geometry.separation_rate_partials()
        return (_role_factors(-w_rho_1 / g_dot, -w_rho_2 / g_dot),
                _role_factors(-w_rho_dot_1 / g_dot, -w_rho_dot_2 / g_dot))

    def _impact_parameter_factors(self) -> tuple[dict, dict]:
        if self.geometry.apparent_separation == 0.0:
            raise RuntimeError(
                "Impact parameter partials are undefined: transmitters are "
                "aligned as seen from the receiver"
            )
        w_rho_1, w_rho_2 = self.geometry.impact_parameter_partials()
        return _role_factors(w_rho_1, w_rho_2), _zero_factors(1)


class MutualApproximationScaling(MutualApproximationScalingBase):
    """Central instant of closest apparent approach as the observable.

    The link-end states must be those at the central instant; accelerations
    enter through dg/dt.
    """
    observable_type = ObservableType.MUTUAL_APPROXIMATION

    def _factors(self):
        position, velocity = self._central_instant_factors()
        return position, velocity, self.reception_time


class ModifiedMutualApproximationScaling(MutualApproximationScalingBase):
    """Apparent separation rate g at the observation epoch as the observable."""
    observable_type = ObservableType.MUTUAL_APPROXIMATION

    def _factors(self):
        w_rho_1, w_rho_2, w_rho_dot_1, w_rho_dot_2 = self.geometry.separation_rate_partials()
        return (_role_factors(w_rho_1, w_rho_2),
                _role_factors(w_rho_dot_1, w_rho_dot_2),
                self.geometry.separation_rate)


class ImpactParameterMutualApproxScaling(MutualApproximationScalingBase):
    """Apparent angular separation at the central instant."""
    observable_type = ObservableType.IMPACT_PARAMETER_MUTUAL_APPROX

    def _factors(self):
        position, velocity = self._impact_parameter_factors()
        return position, velocity, self.geometry.impact_parameter


class MutualApproximationWithImpactParameterScaling(MutualApproximationScalingBase):
    """Central instant and impact parameter, stacked as [t_c, theta]."""
    observable_type = ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER

    def _factors(self):
        instant_position, instant_velocity = self._central_instant_factors()
        impact_position, impact_velocity = self._impact_parameter_factors()
        roles = instant_position.keys()
        return ({role: np.vstack([instant_position[role], impact_position[role]]) for role in roles},
                {role: np.vstack([instant_velocity[role], impact_velocity[role]]) for role in roles},
                [self.reception_time, self.geometry.impact_parameter])


def mutual_approximation_separation_rate(
        link_end_states: dict[LinkEndType, LinkEndState]) -> float:
    """g = D . dD/dt for a set of receiver/transmitter/transmitter2 states."""
    return MutualApproximationGeometry(
        link_end_states[LinkEndType.RECEIVER], link_end_states[LinkEndType.TRANSMITTER],
        link_end_states[LinkEndType.TRANSMITTER2]).separation_rate


def find_central_instant(link_ends: LinkEnds,
                         dependent_variables: DependentVariablesInterface,
                         lower_bound: float, upper_bound: float,
                         tolerance: float = 1e-9) -> float:
    """Reception time at which the apparent separation is stationary.

    Args:
        link_ends: Mutual-approximation link ends.
        dependent_variables: Link-end state supplier.
        lower_bound: Start of the search bracket [s since J2000].
        upper_bound: End of the search bracket [s since J2000].
        tolerance: Absolute tolerance on the instant [s].

    Returns:
        Central instant t_c [s since J2000].

    Raises:
        ValueError: If the separation rate does not change sign on the bracket.
    """
    def separation_rate(t: float) -> float:
        return mutual_approximation_separation_rate(
            dependent_variables.link_end_states(link_ends, t))

    return brentq(separation_rate, lower_bound, upper_bound, xtol=tolerance)
