"""
Observation partials w.r.t. a single estimated parameter.

A partial is evaluated after its link-end set's scaling has been updated
for the current epoch. It returns a list of (matrix, time) pairs, each
matrix of shape (m x N) with N the parameter size, and the time at which
the contribution applies (the link-end time for state-like parameters).
Summing the matrices gives d(observation)/d(parameter) at fixed states;
initial-state parameters are mapped to the initial epoch by the caller.
"""

from __future__ import annotations

import logging
import numpy as np
from abc import ABC, abstractmethod
from typing import Optional

from ..core.types import (
    EstimatableParameterType, LinkEnds, LinkEndType, ObservableType,
    ParameterIdentifier, ParameterIndex, observable_size
)
from ..estimation.parameters import EstimatableParameter
from .light_time_correction_partials import (
    CorrectionPartialFunction, LightTimeCorrectionPartial
)
from .position_partials import PositionPartialMap
from .scaling import (
    LEG_TRANSMITTERS, ImpactParameterMutualApproxScaling, MutualApproximationScalingBase,
    MutualApproximationWithImpactParameterScaling, PositionPartialScaling
)

logger = logging.getLogger(__name__)

PartialContribution = tuple[np.ndarray, Optional[float]]


class ObservationPartial(ABC):
    """Partial of one observable w.r.t. one parameter.

    Attributes:
        parameter: The estimated parameter.
        scaling: Scaling of the link-end set, shared with sibling partials.
    """

    def __init__(self, parameter: EstimatableParameter,
                 scaling: Optional[PositionPartialScaling] = None):
        self.parameter = parameter
        self.scaling = scaling

    @property
    def parameter_identifier(self) -> ParameterIdentifier:
        return self.parameter.identifier

    @abstractmethod
    def __call__(self, observation: Optional[np.ndarray] = None) -> list[PartialContribution]:
        """Partial contributions at the scaling's current epoch."""


class ScaledPositionObservationPartial(ObservationPartial):
    """Partial assembled from link-end state partials and light-time corrections.

    Args:
        scaling: Shared scaling of the link-end set.
        position_partials: Role -> link-end state partial; may be empty.
        parameter: The estimated parameter.
        light_time_correction_partials: One list of correction partials per
            propagation leg, leg 0 = transmitter, leg 1 = transmitter2.
    """

    observable_type: ObservableType
    scaling_type: type = PositionPartialScaling

    def __init__(self, scaling: PositionPartialScaling,
                 position_partials: PositionPartialMap,
                 parameter: EstimatableParameter,
                 light_time_correction_partials: list[list[LightTimeCorrectionPartial]] = ()):
        if not isinstance(scaling, self.scaling_type):
            raise ValueError(
                f"{type(self).__name__} requires a {self.scaling_type.__name__}, "
                f"got {type(scaling).__name__}"
            )
        super().__init__(parameter, scaling)
        self.position_partials = dict(position_partials)
        self.number_of_correction_legs = len(light_time_correction_partials)

        self.correction_partial_functions: list[tuple[int, CorrectionPartialFunction]] = []
        for leg, corrections in enumerate(light_time_correction_partials):
            functions = [c.parameter_partial_function(parameter) for c in corrections]
            functions = [f for f in functions if f is not None]
            if not functions:
                continue
            if leg >= len(LEG_TRANSMITTERS):
                logger.warning(
                    "Ignoring %d light-time correction partials of leg %d for %s",
                    len(functions), leg, parameter.identifier)
                continue
            self.correction_partial_functions += [(leg, f) for f in functions]

    @property
    def number_of_light_time_correction_partial_functions(self) -> int:
        return len(self.correction_partial_functions)

    def __call__(self, observation: Optional[np.ndarray] = None) -> list[PartialContribution]:
        scaling = self.scaling
        states = scaling.link_end_states
        contributions = []

        for role, state_partial in self.position_partials.items():
            time = states[role].time
            partial = scaling.position_scaling_factor(role) @ state_partial.wrt_position(time)
            wrt_velocity = state_partial.wrt_velocity(time)
            if wrt_velocity is not None:
                partial = partial + scaling.velocity_scaling_factor(role) @ wrt_velocity
            contributions.append((partial, time))

        receiver_state = states[LinkEndType.RECEIVER]
        for leg, function in self.correction_partial_functions:
            transmitter_state = states[LEG_TRANSMITTERS[leg]]
            partial = (scaling.light_time_correction_scaling(leg)
                       @ function(transmitter_state, receiver_state))
            contributions.append((partial, receiver_state.time))

        return contributions


class MutualApproximationPartial(ScaledPositionObservationPartial):
    """Partial of the central instant (or its derivative formulation)."""
    observable_type = ObservableType.MUTUAL_APPROXIMATION
    scaling_type = MutualApproximationScalingBase


class MutualApproximationWithImpactParameterPartial(ScaledPositionObservationPartial):
    """Partial of the stacked [central instant, impact parameter] observable."""
    observable_type = ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER
    scaling_type = MutualApproximationWithImpactParameterScaling


class ImpactParameterMutualApproxPartial(ScaledPositionObservationPartial):
    """Partial of the impact parameter at the central instant."""
    observable_type = ObservableType.IMPACT_PARAMETER_MUTUAL_APPROX
    scaling_type = ImpactParameterMutualApproxScaling


class _BiasPartial(ObservationPartial):
    """Partial w.r.t. a constant bias; independent of the geometry."""

    def __init__(self, parameter: EstimatableParameter, observable_type: ObservableType,
                 scaling: Optional[PositionPartialScaling] = None):
        super().__init__(parameter, scaling)
        self.observable_type = observable_type

    def _time(self) -> Optional[float]:
        return self.scaling.reception_time if self.scaling is not None else None


class ObservationPartialWrtConstantAbsoluteBias(_BiasPartial):
    """h = h_ideal + b  ->  dh/db = I."""

    def __call__(self, observation: Optional[np.ndarray] = None) -> list[PartialContribution]:
        return [(np.eye(observable_size(self.observable_type)), self._time())]


class ObservationPartialWrtConstantRelativeBias(_BiasPartial):
    """h = h_ideal (1 + b)  ->  dh/db = diag(h_ideal).

    The observation defaults to the scaling's current observable value.
    """

    def __call__(self, observation: Optional[np.ndarray] = None) -> list[PartialContribution]:
        if observation is None:
            if self.scaling is None:
                raise RuntimeError(
                    "Relative bias partial needs an observation or a scaling"
                )
            observation = self.scaling.observation
        observation = np.atleast_1d(np.asarray(observation, dtype=float))
        return [(np.diag(observation), self._time())]


_BIAS_PARTIAL_TYPES = {
    EstimatableParameterType.CONSTANT_ADDITIVE_OBSERVATION_BIAS: ObservationPartialWrtConstantAbsoluteBias,
    EstimatableParameterType.CONSTANT_RELATIVE_OBSERVATION_BIAS: ObservationPartialWrtConstantRelativeBias,
}


def create_observation_partial_wrt_link_property(
        link_ends: LinkEnds, observable_type: ObservableType,
        parameter: EstimatableParameter,
        scaling: Optional[PositionPartialScaling] = None) -> Optional[ObservationPartial]:
    """Partial w.r.t. a link-property parameter, or None if it belongs elsewhere.

    A bias only affects the observable kind and link ends it was defined for.

    Raises:
        ValueError: If the parameter is not a link property.
    """
    partial_type = _BIAS_PARTIAL_TYPES.get(parameter.parameter_type)
    if partial_type is None:
        raise ValueError(
            f"Parameter {parameter.identifier} is not an observation link property"
        )
    if parameter.link_ends != link_ends or parameter.observable_type != observable_type:
        return None
    return partial_type(parameter, observable_type, scaling)


SingleLinkPartialList = dict[ParameterIndex, ObservationPartial]
MultiLinkPartialMap = dict[LinkEnds, tuple[SingleLinkPartialList, PositionPartialScaling]]
