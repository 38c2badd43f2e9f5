"""
Partials of light-time corrections w.r.t. estimated parameters.

A correction partial answers, for one parameter, either "no dependency"
(``None``) or a function (transmitter_state, receiver_state) -> (1 x N)
row of d(correction [s]) / d(parameter). Three-body observables carry
exactly two legs of corrections (transmitter -> receiver and
transmitter2 -> receiver); the composition helpers below enforce that.
"""

from __future__ import annotations

import logging
import numpy as np
from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence

from ..core.constants import MUTUAL_APPROXIMATION_LEG_COUNT
from ..core.types import EstimatableParameterType, LightTimeCorrectionType, LinkEndState
from ..estimation.parameters import EstimatableParameter
from ..observation_models.light_time_corrections import (
    ConstantLightTimeCorrection, FirstOrderRelativisticLightTimeCorrection,
    LightTimeCorrection
)

logger = logging.getLogger(__name__)

CorrectionPartialFunction = Callable[[LinkEndState, LinkEndState], np.ndarray]


class LightTimeCorrectionPartial(ABC):
    """Base class of light-time correction partials."""

    def __init__(self, correction: LightTimeCorrection):
        self.correction = correction

    @property
    def correction_type(self) -> LightTimeCorrectionType:
        return self.correction.correction_type

    @abstractmethod
    def parameter_partial_function(
            self, parameter: EstimatableParameter) -> Optional[CorrectionPartialFunction]:
        """Partial function w.r.t. ``parameter``, or None if independent of it."""


class FirstOrderRelativisticLightTimeCorrectionPartial(LightTimeCorrectionPartial):
    """Partials of the Shapiro delay w.r.t. PPN gamma and perturbing-body GM.

        d(dt)/d(gamma) = dt / (1 + gamma)
        d(dt)/d(mu_k)  = dt_k / mu_k
    """

    correction: FirstOrderRelativisticLightTimeCorrection

    def parameter_partial_function(
            self, parameter: EstimatableParameter) -> Optional[CorrectionPartialFunction]:
        correction = self.correction
        parameter_type = parameter.parameter_type

        if parameter_type == EstimatableParameterType.PPN_PARAMETER_GAMMA:
            def wrt_gamma(transmitter_state, receiver_state):
                delay = correction.calculate(transmitter_state, receiver_state)
                return np.array([[delay / (1.0 + correction.ppn_parameters.gamma)]])
            return wrt_gamma

        if (parameter_type == EstimatableParameterType.GRAVITATIONAL_PARAMETER
                and parameter.identifier.body in correction.perturbing_bodies):
            body = parameter.identifier.body

            def wrt_gravitational_parameter(transmitter_state, receiver_state):
                return np.array([[correction.unit_mass_contribution(
                    body, transmitter_state, receiver_state)]])
            return wrt_gravitational_parameter

        return None


class ConstantLightTimeCorrectionPartial(LightTimeCorrectionPartial):
    """A fixed delay depends on no estimated parameter."""

    correction: ConstantLightTimeCorrection

    def parameter_partial_function(
            self, parameter: EstimatableParameter) -> Optional[CorrectionPartialFunction]:
        return None


_PARTIAL_TYPES = {
    LightTimeCorrectionType.FIRST_ORDER_RELATIVISTIC: FirstOrderRelativisticLightTimeCorrectionPartial,
    LightTimeCorrectionType.CONSTANT_DELAY: ConstantLightTimeCorrectionPartial,
}


def create_light_time_correction_partial(
        correction: LightTimeCorrection) -> LightTimeCorrectionPartial:
    """Partial object for a single light-time correction.

    Raises:
        ValueError: If no partial exists for the correction type.
    """
    partial_type = _PARTIAL_TYPES.get(getattr(correction, "correction_type", None))
    if partial_type is None:
        raise ValueError(
            f"Error when making light time correction partials, correction "
            f"{type(correction).__name__} is not supported"
        )
    return partial_type(correction)


def create_light_time_correction_partials(
        corrections: Sequence[LightTimeCorrection]) -> list[LightTimeCorrectionPartial]:
    """Partial objects for all corrections of one propagation leg."""
    return [create_light_time_correction_partial(c) for c in corrections]


def compose_light_time_correction_partials(
        leg_corrections: Sequence[Sequence[LightTimeCorrection]],
        strict: bool = True,
        required_leg_count: int = MUTUAL_APPROXIMATION_LEG_COUNT
) -> list[list[LightTimeCorrectionPartial]]:
    """Correction partials for every propagation leg of a link.

    Args:
        leg_corrections: One sequence of corrections per leg. Empty means
            no corrections at all.
        strict: If True, a non-empty input with a leg count other than
            ``required_leg_count`` is an error. If False, the supplied legs
            are composed as given.
        required_leg_count: Number of legs of the link topology.

    Returns:
        One list of correction partials per supplied leg.

    Raises:
        ValueError: Strict mode and wrong number of legs.
    """
    if len(leg_corrections) == 0:
        return []

    if len(leg_corrections) != required_leg_count:
        message = (f"light time corrections for {len(leg_corrections)} links "
                   f"found, instead of {required_leg_count}.")
        if strict:
            raise ValueError(f"Error when making observation partials, {message}")
        logger.debug("Composing correction partials for %d legs (expected %d)",
                     len(leg_corrections), required_leg_count)

    return [create_light_time_correction_partials(leg) for leg in leg_corrections]
