"""
Foundational data types for observation-partial assembly.

All link-end, parameter and state data flows through these types.
Convention:
    - Distances: km
    - Time: seconds since J2000 (TT)
    - Velocity: km/s
    - Acceleration: km/s²
    - Angles: radians
"""

from __future__ import annotations

import numpy as np
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import NamedTuple, Optional, Union


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class LinkEndType(Enum):
    """Role of a link end in a tracking geometry."""
    TRANSMITTER = auto()
    TRANSMITTER2 = auto()       # Second emitting body of a three-body link
    RECEIVER = auto()
    REFLECTOR = auto()
    OBSERVED_BODY = auto()


class ObservableType(Enum):
    """Observable kinds with a partial-assembly implementation."""
    MUTUAL_APPROXIMATION = auto()
    MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER = auto()
    IMPACT_PARAMETER_MUTUAL_APPROX = auto()


class EstimatableParameterType(Enum):
    """Kinds of estimated parameters."""
    INITIAL_BODY_STATE = auto()
    ARC_WISE_INITIAL_BODY_STATE = auto()
    INITIAL_ROTATIONAL_BODY_STATE = auto()
    GRAVITATIONAL_PARAMETER = auto()
    PPN_PARAMETER_GAMMA = auto()
    RADIATION_PRESSURE_COEFFICIENT = auto()
    GROUND_STATION_POSITION = auto()
    CONSTANT_ADDITIVE_OBSERVATION_BIAS = auto()
    CONSTANT_RELATIVE_OBSERVATION_BIAS = auto()


class LightTimeCorrectionType(Enum):
    """Light-time correction model identifiers."""
    FIRST_ORDER_RELATIVISTIC = auto()
    CONSTANT_DELAY = auto()


_OBSERVABLE_SIZES = {
    ObservableType.MUTUAL_APPROXIMATION: 1,
    ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER: 2,
    ObservableType.IMPACT_PARAMETER_MUTUAL_APPROX: 1,
}

_THREE_BODY_LINK_ENDS = (
    LinkEndType.TRANSMITTER, LinkEndType.TRANSMITTER2, LinkEndType.RECEIVER
)

_LINK_PROPERTY_PARAMETERS = (
    EstimatableParameterType.CONSTANT_ADDITIVE_OBSERVATION_BIAS,
    EstimatableParameterType.CONSTANT_RELATIVE_OBSERVATION_BIAS,
)


def observable_size(observable_type: ObservableType) -> int:
    """Number of scalar entries in one observation of the given kind."""
    try:
        return _OBSERVABLE_SIZES[observable_type]
    except KeyError:
        raise ValueError(
            f"Observable type {observable_type} has no known size"
        ) from None


def required_link_end_types(observable_type: ObservableType) -> tuple[LinkEndType, ...]:
    """Link-end roles that must be present for the given observable."""
    if observable_type in _OBSERVABLE_SIZES:
        return _THREE_BODY_LINK_ENDS
    raise ValueError(f"Observable type {observable_type} has no link-end definition")


def is_parameter_observation_link_property(
        parameter_type: EstimatableParameterType) -> bool:
    """Whether a parameter is a property of an observation link (e.g. a bias)."""
    return parameter_type in _LINK_PROPERTY_PARAMETERS


# ---------------------------------------------------------------------------
# Link ends
# ---------------------------------------------------------------------------

@dataclass(frozen=True, order=True)
class LinkEndId:
    """Body and (optional) reference point on that body.

    Attributes:
        body: Name of the body the link end is on.
        reference_point: Ground station or other reference point name;
            empty for the body's center of mass.
    """
    body: str
    reference_point: str = ""

    def __str__(self) -> str:
        if self.reference_point:
            return f"{self.body}/{self.reference_point}"
        return self.body


class LinkEnds(Mapping):
    """Immutable, hashable mapping from link-end role to link-end identifier.

    Plain strings are promoted to center-of-mass identifiers, and
    (body, reference_point) tuples to ground-station identifiers.
    """

    def __init__(self, link_ends: Mapping[LinkEndType,
                                          Union[LinkEndId, str, tuple[str, str]]]):
        ends = {}
        for role, end in link_ends.items():
            if isinstance(end, LinkEndId):
                ends[role] = end
            elif isinstance(end, str):
                ends[role] = LinkEndId(end)
            else:
                ends[role] = LinkEndId(*end)
        self._ends = dict(sorted(ends.items(), key=lambda item: item[0].value))

    def __getitem__(self, role: LinkEndType) -> LinkEndId:
        return self._ends[role]

    def __iter__(self):
        return iter(self._ends)

    def __len__(self) -> int:
        return len(self._ends)

    def __hash__(self) -> int:
        return hash(frozenset(self._ends.items()))

    def __eq__(self, other) -> bool:
        if isinstance(other, LinkEnds):
            return self._ends == other._ends
        return NotImplemented

    def __repr__(self) -> str:
        body = ", ".join(f"{role.name}: {end}" for role, end in self._ends.items())
        return f"LinkEnds({{{body}}})"

    def roles_on_body(self, body: str) -> list[LinkEndType]:
        """Roles whose link end lies on the given body (any reference point)."""
        return [role for role, end in self._ends.items() if end.body == body]

    def missing_roles(self, required: tuple[LinkEndType, ...]) -> list[LinkEndType]:
        return [role for role in required if role not in self._ends]


# ---------------------------------------------------------------------------
# Parameters
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ParameterIdentifier:
    """Identity of an estimated parameter.

    Attributes:
        parameter_type: Kind of parameter.
        body: Owning body, empty for global parameters.
        secondary: Sub-identifier (ground station name, arc index, link
            description), empty when not needed.
    """
    parameter_type: EstimatableParameterType
    body: str = ""
    secondary: str = ""

    def __str__(self) -> str:
        parts = [self.parameter_type.name.lower()]
        if self.body:
            parts.append(self.body)
        if self.secondary:
            parts.append(self.secondary)
        return ":".join(parts)


class ParameterIndex(NamedTuple):
    """Column block of a parameter in the full estimated-parameter vector."""
    start: int
    size: int

    @property
    def stop(self) -> int:
        return self.start + self.size


# ---------------------------------------------------------------------------
# Link-end state at an evaluation epoch
# ---------------------------------------------------------------------------

@dataclass
class LinkEndState:
    """Inertial state of a link end at its own (light-time corrected) time.

    Attributes:
        time: Link-end time [s since J2000 TT].
        position: Inertial position [km], shape (3,).
        velocity: Inertial velocity [km/s], shape (3,).
        acceleration: Inertial acceleration [km/s²], shape (3,). Zero when
            the supplier provides no dynamics.
    """
    time: float
    position: np.ndarray        # (3,) km
    velocity: np.ndarray        # (3,) km/s
    acceleration: np.ndarray = field(
        default_factory=lambda: np.zeros(3)
    )  # (3,) km/s²

    @property
    def state_vector(self) -> np.ndarray:
        """Combined [r, v] state vector, shape (6,)."""
        return np.concatenate([self.position, self.velocity])

    @classmethod
    def from_state_vector(cls, time: float, state: np.ndarray,
                          acceleration: Optional[np.ndarray] = None) -> LinkEndState:
        return cls(
            time=time,
            position=np.array(state[0:3], dtype=float),
            velocity=np.array(state[3:6], dtype=float),
            acceleration=(np.zeros(3) if acceleration is None
                          else np.array(acceleration, dtype=float))
        )
