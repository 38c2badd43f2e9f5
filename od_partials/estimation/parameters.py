"""
Estimated parameters and the parameter catalog.

Each parameter reports its identity, its width in the full parameter vector
and its current value. The catalog (:class:`EstimatableParameterSet`)
orders parameters in three passes and assigns non-overlapping column blocks:

    [ initial states (6 each) | scalar parameters (1 each) | vector parameters ]

Scalar and vector parameters are keyed by their start column, so the key
is stable for the lifetime of the set and doubles as the global index.
"""

from __future__ import annotations

import numpy as np
from abc import ABC, abstractmethod
from itertools import accumulate
from typing import Iterable, Optional, Union

from ..core.constants import TRANSLATIONAL_STATE_SIZE
from ..core.types import (
    EstimatableParameterType, LinkEnds, ObservableType, ParameterIdentifier,
    ParameterIndex, is_parameter_observation_link_property, observable_size
)
from ..environment.bodies import NamedBodyMap
from ..observation_models.light_time_corrections import PPNParameters


class EstimatableParameter(ABC):
    """Base class of all estimated parameters.

    Scalar and vector parameters share this interface; ``size`` tells them
    apart, and ``value`` is a float for scalars and an array otherwise.
    """

    parameter_type: EstimatableParameterType
    is_initial_state = False

    def __init__(self, body: str = "", secondary: str = ""):
        self.identifier = ParameterIdentifier(self.parameter_type, body, secondary)

    @property
    @abstractmethod
    def size(self) -> int:
        """Number of columns the parameter occupies."""

    @property
    @abstractmethod
    def value(self) -> Union[float, np.ndarray]:
        """Current parameter value."""

    @value.setter
    @abstractmethod
    def value(self, new_value):
        pass

    @property
    def is_link_property(self) -> bool:
        return is_parameter_observation_link_property(self.parameter_type)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identifier}, size={self.size})"


class _VectorValue:
    """Mixin storing a fixed-size array value."""

    _value: np.ndarray

    @property
    def size(self) -> int:
        return self._value.shape[0]

    @property
    def value(self) -> np.ndarray:
        return self._value.copy()

    @value.setter
    def value(self, new_value):
        new_value = np.asarray(new_value, dtype=float).flatten()
        if new_value.shape != self._value.shape:
            raise ValueError(
                f"Parameter {self.identifier} expects {self._value.shape[0]} "
                f"values, got {new_value.shape[0]}"
            )
        self._value = new_value


# ---------------------------------------------------------------------------
# Initial-state parameters
# ---------------------------------------------------------------------------

class InitialTranslationalState(_VectorValue, EstimatableParameter):
    """Initial Cartesian state of a propagated body.

    Attributes:
        central_body: Origin of the propagated state.
    """
    parameter_type = EstimatableParameterType.INITIAL_BODY_STATE
    is_initial_state = True

    def __init__(self, body: str, initial_state: np.ndarray, central_body: str = "SSB"):
        super().__init__(body)
        self.central_body = central_body
        self._value = np.asarray(initial_state, dtype=float).flatten()
        if self._value.shape != (TRANSLATIONAL_STATE_SIZE,):
            raise ValueError(
                f"Initial state of {body} must have {TRANSLATIONAL_STATE_SIZE} "
                f"elements, got {self._value.shape[0]}"
            )


class ArcWiseInitialTranslationalState(_VectorValue, EstimatableParameter):
    """Initial Cartesian state of one propagation arc of a body.

    Each arc is a separate 6-wide parameter; multi-arc estimation adds one
    parameter per arc.
    """
    parameter_type = EstimatableParameterType.ARC_WISE_INITIAL_BODY_STATE
    is_initial_state = True

    def __init__(self, body: str, arc_index: int, arc_start_time: float,
                 initial_state: np.ndarray, central_body: str = "SSB"):
        super().__init__(body, f"arc {arc_index}")
        self.arc_index = arc_index
        self.arc_start_time = arc_start_time
        self.central_body = central_body
        self._value = np.asarray(initial_state, dtype=float).flatten()
        if self._value.shape != (TRANSLATIONAL_STATE_SIZE,):
            raise ValueError(
                f"Arc {arc_index} initial state of {body} must have "
                f"{TRANSLATIONAL_STATE_SIZE} elements, got {self._value.shape[0]}"
            )


class InitialRotationalState(_VectorValue, EstimatableParameter):
    """Initial attitude quaternion and angular velocity of a body, size 7.

    Observation partials w.r.t. rotational states are not available; the
    catalog rejects this parameter in the initial-state pass.
    """
    parameter_type = EstimatableParameterType.INITIAL_ROTATIONAL_BODY_STATE
    is_initial_state = True

    def __init__(self, body: str, initial_state: np.ndarray):
        super().__init__(body)
        self._value = np.asarray(initial_state, dtype=float).flatten()


# ---------------------------------------------------------------------------
# Scalar parameters
# ---------------------------------------------------------------------------

class GravitationalParameter(EstimatableParameter):
    """Gravitational parameter of a body, read from and written to the body map."""
    parameter_type = EstimatableParameterType.GRAVITATIONAL_PARAMETER

    def __init__(self, bodies: NamedBodyMap, body: str):
        super().__init__(body)
        if body not in bodies:
            raise ValueError(f"Body {body} not found in body map")
        self._body = bodies[body]

    @property
    def size(self) -> int:
        return 1

    @property
    def value(self) -> float:
        return self._body.gravitational_parameter

    @value.setter
    def value(self, new_value):
        self._body.gravitational_parameter = float(new_value)


class PPNParameterGamma(EstimatableParameter):
    """PPN parameter gamma, shared with the relativistic light-time models."""
    parameter_type = EstimatableParameterType.PPN_PARAMETER_GAMMA

    def __init__(self, ppn_parameters: PPNParameters):
        super().__init__("global_metric")
        self._ppn_parameters = ppn_parameters

    @property
    def size(self) -> int:
        return 1

    @property
    def value(self) -> float:
        return self._ppn_parameters.gamma

    @value.setter
    def value(self, new_value):
        self._ppn_parameters.gamma = float(new_value)


class RadiationPressureCoefficient(EstimatableParameter):
    """Cannonball radiation pressure coefficient. Affects dynamics only."""
    parameter_type = EstimatableParameterType.RADIATION_PRESSURE_COEFFICIENT

    def __init__(self, body: str, cr: float):
        super().__init__(body)
        self._cr = float(cr)

    @property
    def size(self) -> int:
        return 1

    @property
    def value(self) -> float:
        return self._cr

    @value.setter
    def value(self, new_value):
        self._cr = float(new_value)


# ---------------------------------------------------------------------------
# Vector parameters
# ---------------------------------------------------------------------------

class GroundStationPosition(EstimatableParameter):
    """Body-fixed position of a ground station, size 3."""
    parameter_type = EstimatableParameterType.GROUND_STATION_POSITION

    def __init__(self, bodies: NamedBodyMap, body: str, station: str):
        super().__init__(body, station)
        if body not in bodies:
            raise ValueError(f"Body {body} not found in body map")
        self._body = bodies[body]
        self._body.station_position(station)
        self.station = station

    @property
    def size(self) -> int:
        return 3

    @property
    def value(self) -> np.ndarray:
        return np.array(self._body.ground_stations[self.station], dtype=float)

    @value.setter
    def value(self, new_value):
        new_value = np.asarray(new_value, dtype=float).flatten()
        if new_value.shape != (3,):
            raise ValueError(f"Station position needs 3 values, got {new_value.shape[0]}")
        self._body.ground_stations[self.station] = new_value


class _ObservationBias(_VectorValue, EstimatableParameter):
    """Constant bias on one observable for one set of link ends."""

    def __init__(self, link_ends: LinkEnds, observable_type: ObservableType,
                 bias: Optional[np.ndarray] = None):
        super().__init__("", f"{observable_type.name.lower()} {link_ends!r}")
        self.link_ends = link_ends
        self.observable_type = observable_type
        size = observable_size(observable_type)
        self._value = (np.zeros(size) if bias is None
                       else np.asarray(bias, dtype=float).flatten())
        if self._value.shape != (size,):
            raise ValueError(
                f"Bias for {observable_type.name} needs {size} values, "
                f"got {self._value.shape[0]}"
            )


class ConstantObservationBias(_ObservationBias):
    """Additive bias: observation = ideal + b."""
    parameter_type = EstimatableParameterType.CONSTANT_ADDITIVE_OBSERVATION_BIAS


class ConstantRelativeObservationBias(_ObservationBias):
    """Relative bias: observation = ideal * (1 + b)."""
    parameter_type = EstimatableParameterType.CONSTANT_RELATIVE_OBSERVATION_BIAS


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def estimated_body(parameter: EstimatableParameter) -> str:
    """Body whose initial state an initial-state parameter describes.

    Raises:
        ValueError: If the parameter is not a translational initial state.
    """
    if parameter.parameter_type in (EstimatableParameterType.INITIAL_BODY_STATE,
                                    EstimatableParameterType.ARC_WISE_INITIAL_BODY_STATE):
        return parameter.identifier.body
    raise ValueError(
        "Error when making observation partials, could not identify parameter "
        f"{parameter.identifier} as a translational initial state"
    )


def _fold_indices(start: int, sizes: list[int]) -> list[ParameterIndex]:
    """Consecutive column blocks of the given sizes, starting at ``start``."""
    starts = accumulate(sizes, initial=start)
    return [ParameterIndex(s, n) for s, n in zip(starts, sizes)]


class EstimatableParameterSet:
    """Ordered catalog of estimated parameters with global column indices.

    Attributes:
        initial_state_parameters: Initial-state parameters in estimation order.
        scalar_parameters: Start column -> scalar parameter, ascending.
        vector_parameters: Start column -> vector parameter, ascending.
    """

    def __init__(self,
                 initial_state_parameters: Iterable[EstimatableParameter] = (),
                 scalar_parameters: Iterable[EstimatableParameter] = (),
                 vector_parameters: Iterable[EstimatableParameter] = ()):
        initial = list(initial_state_parameters)
        scalars = list(scalar_parameters)
        vectors = list(vector_parameters)

        for parameter in initial:
            estimated_body(parameter)
        for parameter in scalars:
            if parameter.size != 1:
                raise ValueError(
                    f"Scalar parameter {parameter.identifier} has size {parameter.size}"
                )

        self._initial_indices = _fold_indices(
            0, [TRANSLATIONAL_STATE_SIZE] * len(initial))
        scalar_start = TRANSLATIONAL_STATE_SIZE * len(initial)
        scalar_indices = _fold_indices(scalar_start, [1] * len(scalars))
        vector_start = scalar_start + len(scalars)
        vector_indices = _fold_indices(vector_start, [p.size for p in vectors])

        self.initial_state_parameters = initial
        self.scalar_parameters = {index.start: p for index, p in zip(scalar_indices, scalars)}
        self.vector_parameters = {index.start: p for index, p in zip(vector_indices, vectors)}
        self.total_size = vector_start + sum(p.size for p in vectors)

    def initial_state_indices(self) -> list[tuple[ParameterIndex, EstimatableParameter]]:
        """(index, parameter) pairs of the initial-state pass, in catalog order."""
        return list(zip(self._initial_indices, self.initial_state_parameters))

    def parameter_indices(self) -> list[tuple[ParameterIndex, EstimatableParameter]]:
        """(index, parameter) pairs of all three passes, in column order."""
        pairs = self.initial_state_indices()
        pairs += [(ParameterIndex(key, 1), p) for key, p in self.scalar_parameters.items()]
        pairs += [(ParameterIndex(key, p.size), p) for key, p in self.vector_parameters.items()]
        return pairs

    @property
    def values(self) -> np.ndarray:
        """Full stacked parameter vector, shape (total_size,)."""
        vector = np.zeros(self.total_size)
        for index, parameter in self.parameter_indices():
            vector[index.start:index.stop] = parameter.value
        return vector

    @values.setter
    def values(self, new_values: np.ndarray):
        new_values = np.asarray(new_values, dtype=float).flatten()
        if new_values.shape != (self.total_size,):
            raise ValueError(
                f"Parameter vector must have {self.total_size} elements, "
                f"got {new_values.shape[0]}"
            )
        for index, parameter in self.parameter_indices():
            if index.size == 1 and not parameter.is_initial_state:
                parameter.value = new_values[index.start]
            else:
                parameter.value = new_values[index.start:index.stop]

    def __len__(self) -> int:
        return (len(self.initial_state_parameters) + len(self.scalar_parameters)
                + len(self.vector_parameters))
