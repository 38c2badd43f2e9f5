"""
Assembly of mutual-approximation observation partials.

For each link-end set the builder creates one scaling object and then walks
the parameter catalog in column order:

    1. initial states      -> partial w.r.t. the body's translational state
    2. scalar parameters   -> partial through link-end states or corrections
    3. vector parameters   -> as scalars, with link-property (bias)
                              parameters handled without the position chain

A partial is stored only if the parameter moves a link end or a light-time
correction depends on it; absence from the result means "no dependency".
"""

from __future__ import annotations

import logging
from typing import Iterable, Mapping, Optional, Sequence

from ..core.config import LightTimeConfig, ObservablePartialConfig, PartialsConfig
from ..core.types import LinkEnds, ObservableType, ParameterIndex, required_link_end_types
from ..environment.bodies import NamedBodyMap
from ..estimation.parameters import (
    EstimatableParameter, EstimatableParameterSet, estimated_body
)
from ..observation_models.light_time_corrections import LightTimeCorrection
from .dependent_variables import BodyEphemerisDependentVariables, DependentVariablesInterface
from .light_time_correction_partials import (
    LightTimeCorrectionPartial, compose_light_time_correction_partials
)
from .observation_partial import (
    ImpactParameterMutualApproxPartial, MultiLinkPartialMap, MutualApproximationPartial,
    MutualApproximationWithImpactParameterPartial, ObservationPartial,
    ScaledPositionObservationPartial, SingleLinkPartialList,
    create_observation_partial_wrt_link_property
)
from .position_partials import (
    create_cartesian_state_partials_wrt_body_state,
    create_cartesian_state_partials_wrt_parameter
)
from .scaling import (
    ImpactParameterMutualApproxScaling, ModifiedMutualApproximationScaling,
    MutualApproximationScaling, MutualApproximationWithImpactParameterScaling,
    PositionPartialScaling
)

logger = logging.getLogger(__name__)

LegCorrections = Sequence[Sequence[LightTimeCorrection]]

_PARTIAL_TYPES: dict[ObservableType, type[ScaledPositionObservationPartial]] = {
    ObservableType.MUTUAL_APPROXIMATION: MutualApproximationPartial,
    ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER: MutualApproximationWithImpactParameterPartial,
    ObservableType.IMPACT_PARAMETER_MUTUAL_APPROX: ImpactParameterMutualApproxPartial,
}


class ObservationPartialBuilder:
    """Builds observation partials for one observable kind.

    Attributes:
        bodies: Environment body map.
        config: Observable formulation and light-time settings.
        dependent_variables: State supplier handed to every scaling.
    """

    def __init__(self, bodies: NamedBodyMap,
                 config: Optional[PartialsConfig] = None,
                 dependent_variables: Optional[DependentVariablesInterface] = None):
        self.bodies = bodies
        self.config = config if config is not None else PartialsConfig()
        if self.config.observable.observable_type not in _PARTIAL_TYPES:
            raise ValueError(
                f"Error when making observation partials, observable "
                f"{self.config.observable.observable_type} is not supported"
            )
        if dependent_variables is None:
            dependent_variables = BodyEphemerisDependentVariables(
                bodies, self.config.light_time.iterations)
        self.dependent_variables = dependent_variables

    @property
    def observable_type(self) -> ObservableType:
        return self.config.observable.observable_type

    def create_scaling(self, link_ends: LinkEnds) -> PositionPartialScaling:
        """Scaling object for one link-end set, selected by the observable config."""
        observable_type = self.observable_type
        if observable_type == ObservableType.MUTUAL_APPROXIMATION:
            if self.config.observable.is_central_instant_used_as_observable:
                return MutualApproximationScaling(link_ends, self.dependent_variables)
            return ModifiedMutualApproximationScaling(link_ends, self.dependent_variables)
        if observable_type == ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER:
            return MutualApproximationWithImpactParameterScaling(link_ends, self.dependent_variables)
        return ImpactParameterMutualApproxScaling(link_ends, self.dependent_variables)

    def _keep(self, partial: ScaledPositionObservationPartial) -> Optional[ScaledPositionObservationPartial]:
        if (len(partial.position_partials) > 0
                or partial.number_of_light_time_correction_partial_functions > 0):
            return partial
        return None

    def create_partial_wrt_body_state(
            self, link_ends: LinkEnds, body: str, scaling: PositionPartialScaling,
            parameter: EstimatableParameter,
            light_time_correction_partials: list[list[LightTimeCorrectionPartial]] = ()
    ) -> Optional[ObservationPartial]:
        """Partial w.r.t. the translational state of ``body``, or None."""
        position_partials = create_cartesian_state_partials_wrt_body_state(
            link_ends, self.bodies, body)
        partial_type = _PARTIAL_TYPES[self.observable_type]
        return self._keep(partial_type(
            scaling, position_partials, parameter, light_time_correction_partials))

    def create_partial_wrt_parameter(
            self, link_ends: LinkEnds, parameter: EstimatableParameter,
            scaling: PositionPartialScaling,
            light_time_correction_partials: list[list[LightTimeCorrectionPartial]] = ()
    ) -> Optional[ObservationPartial]:
        """Partial w.r.t. a scalar or vector parameter, or None."""
        if parameter.is_link_property:
            return create_observation_partial_wrt_link_property(
                link_ends, self.observable_type, parameter, scaling)

        position_partials = create_cartesian_state_partials_wrt_parameter(
            link_ends, self.bodies, parameter)
        partial_type = _PARTIAL_TYPES[self.observable_type]
        return self._keep(partial_type(
            scaling, position_partials, parameter, light_time_correction_partials))

    def _check_link_ends(self, link_ends: LinkEnds):
        missing = link_ends.missing_roles(required_link_end_types(self.observable_type))
        if missing:
            raise ValueError(
                "Error when making mutual approximation partials, did not find "
                f"transmitter, transmitter2 and receiver in link ends {link_ends!r} "
                f"(missing {[role.name for role in missing]})"
            )

    def _create_partials(self, link_ends: LinkEnds, parameters: EstimatableParameterSet,
                         light_time_corrections: LegCorrections,
                         strict: bool) -> tuple[SingleLinkPartialList, PositionPartialScaling]:
        self._check_link_ends(link_ends)
        correction_partials = compose_light_time_correction_partials(
            light_time_corrections, strict=strict,
            required_leg_count=self.config.light_time.required_leg_count)
        scaling = self.create_scaling(link_ends)

        partials: SingleLinkPartialList = {}
        for index, parameter in parameters.initial_state_indices():
            partial = self.create_partial_wrt_body_state(
                link_ends, estimated_body(parameter), scaling, parameter, correction_partials)
            if partial is not None:
                partials[index] = partial

        for key, parameter in parameters.scalar_parameters.items():
            partial = self.create_partial_wrt_parameter(
                link_ends, parameter, scaling, correction_partials)
            if partial is not None:
                partials[ParameterIndex(key, 1)] = partial

        for key, parameter in parameters.vector_parameters.items():
            partial = self.create_partial_wrt_parameter(
                link_ends, parameter, scaling, correction_partials)
            if partial is not None:
                partials[ParameterIndex(key, parameter.size)] = partial

        logger.debug("%s: %d of %d parameters observable for %r",
                     self.config.observable.describe(), len(partials), len(parameters),
                     link_ends)
        return partials, scaling

    def create_partials(self, link_ends: LinkEnds, parameters: EstimatableParameterSet,
                        light_time_corrections: LegCorrections = ()
                        ) -> tuple[SingleLinkPartialList, PositionPartialScaling]:
        """Partials and shared scaling of one link-end set.

        Args:
            link_ends: Link ends with transmitter, transmitter2 and receiver.
            parameters: Estimated-parameter catalog.
            light_time_corrections: Either empty, or one sequence of
                corrections per leg (transmitter, transmitter2).

        Returns:
            (parameter index -> partial, scaling).

        Raises:
            ValueError: Missing link-end role, or a non-empty correction list
                with a leg count other than the link's.
        """
        return self._create_partials(link_ends, parameters, light_time_corrections, strict=True)

    def create_partials_for_link_ends_list(
            self, link_ends_list: Iterable[LinkEnds], parameters: EstimatableParameterSet,
            light_time_corrections: Optional[Mapping[LinkEnds, LegCorrections]] = None
    ) -> MultiLinkPartialMap:
        """Partials and scalings of every link-end set.

        Unlike :meth:`create_partials`, a wrong number of correction legs is
        reported and the supplied legs are used as given.
        """
        light_time_corrections = light_time_corrections or {}
        required_legs = self.config.light_time.required_leg_count
        result: MultiLinkPartialMap = {}

        for link_ends in link_ends_list:
            corrections = light_time_corrections.get(link_ends, ())
            if len(corrections) not in (0, required_legs):
                logger.warning(
                    "Light time corrections for %d links found for %r, instead of %d; "
                    "using the supplied links",
                    len(corrections), link_ends, required_legs)
            result[link_ends] = self._create_partials(
                link_ends, parameters, corrections, strict=False)
        return result


def _builder(bodies: NamedBodyMap, observable_type: ObservableType,
             is_central_instant_used_as_observable: bool,
             dependent_variables: Optional[DependentVariablesInterface],
             light_time_iterations: int) -> ObservationPartialBuilder:
    config = PartialsConfig(
        observable=ObservablePartialConfig(observable_type, is_central_instant_used_as_observable),
        light_time=LightTimeConfig(iterations=light_time_iterations),
    )
    return ObservationPartialBuilder(bodies, config, dependent_variables)


def create_mutual_approximation_partials(
        link_ends_list: Iterable[LinkEnds], bodies: NamedBodyMap,
        parameters: EstimatableParameterSet,
        light_time_corrections: Optional[Mapping[LinkEnds, LegCorrections]] = None,
        is_central_instant_used_as_observable: bool = True,
        dependent_variables: Optional[DependentVariablesInterface] = None,
        light_time_iterations: int = 3) -> MultiLinkPartialMap:
    """Mutual-approximation partials for a list of link-end sets."""
    builder = _builder(bodies, ObservableType.MUTUAL_APPROXIMATION,
                       is_central_instant_used_as_observable, dependent_variables,
                       light_time_iterations)
    return builder.create_partials_for_link_ends_list(
        link_ends_list, parameters, light_time_corrections)


def create_single_link_mutual_approximation_partials(
        link_ends: LinkEnds, bodies: NamedBodyMap,
        parameters: EstimatableParameterSet,
        light_time_corrections: LegCorrections = (),
        is_central_instant_used_as_observable: bool = True,
        dependent_variables: Optional[DependentVariablesInterface] = None,
        light_time_iterations: int = 3
) -> tuple[SingleLinkPartialList, PositionPartialScaling]:
    """Mutual-approximation partials for one link-end set (strict leg count)."""
    builder = _builder(bodies, ObservableType.MUTUAL_APPROXIMATION,
                       is_central_instant_used_as_observable, dependent_variables,
                       light_time_iterations)
    return builder.create_partials(link_ends, parameters, light_time_corrections)


def create_mutual_approximation_with_impact_parameter_partials(
        link_ends_list: Iterable[LinkEnds], bodies: NamedBodyMap,
        parameters: EstimatableParameterSet,
        light_time_corrections: Optional[Mapping[LinkEnds, LegCorrections]] = None,
        dependent_variables: Optional[DependentVariablesInterface] = None,
        light_time_iterations: int = 3) -> MultiLinkPartialMap:
    """[central instant, impact parameter] partials for a list of link-end sets."""
    builder = _builder(bodies, ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER,
                       True, dependent_variables, light_time_iterations)
    return builder.create_partials_for_link_ends_list(
        link_ends_list, parameters, light_time_corrections)


def create_single_link_mutual_approximation_with_impact_parameter_partials(
        link_ends: LinkEnds, bodies: NamedBodyMap,
        parameters: EstimatableParameterSet,
        light_time_corrections: LegCorrections = (),
        dependent_variables: Optional[DependentVariablesInterface] = None,
        light_time_iterations: int = 3
) -> tuple[SingleLinkPartialList, PositionPartialScaling]:
    builder = _builder(bodies, ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER,
                       True, dependent_variables, light_time_iterations)
    return builder.create_partials(link_ends, parameters, light_time_corrections)


def create_impact_parameter_mutual_approx_partials(
        link_ends_list: Iterable[LinkEnds], bodies: NamedBodyMap,
        parameters: EstimatableParameterSet,
        light_time_corrections: Optional[Mapping[LinkEnds, LegCorrections]] = None,
        dependent_variables: Optional[DependentVariablesInterface] = None,
        light_time_iterations: int = 3) -> MultiLinkPartialMap:
    """Impact-parameter partials for a list of link-end sets."""
    builder = _builder(bodies, ObservableType.IMPACT_PARAMETER_MUTUAL_APPROX,
                       True, dependent_variables, light_time_iterations)
    return builder.create_partials_for_link_ends_list(
        link_ends_list, parameters, light_time_corrections)


def create_single_link_impact_parameter_mutual_approx_partials(
        link_ends: LinkEnds, bodies: NamedBodyMap,
        parameters: EstimatableParameterSet,
        light_time_corrections: LegCorrections = (),
        dependent_variables: Optional[DependentVariablesInterface] = None,
        light_time_iterations: int = 3
) -> tuple[SingleLinkPartialList, PositionPartialScaling]:
    builder = _builder(bodies, ObservableType.IMPACT_PARAMETER_MUTUAL_APPROX,
                       True, dependent_variables, light_time_iterations)
    return builder.create_partials(link_ends, parameters, light_time_corrections)
