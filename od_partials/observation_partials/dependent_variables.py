"""
Link-end state suppliers for the observable scalings.

A supplier returns, for a reception time, the inertial state of every link
end at its own emission/reception time. The body-ephemeris supplier solves
the Newtonian light-time equation

    t_tx = t_rx - |r_tx(t_tx) - r_rx(t_rx)| / c

by fixed-point iteration for each transmitting body; light-time corrections
are not applied here.
"""

from __future__ import annotations

import logging
import numpy as np
from abc import ABC, abstractmethod

from ..core.constants import C_LIGHT
from ..core.types import LinkEnds, LinkEndState, LinkEndType
from ..environment.bodies import NamedBodyMap, link_end_state

logger = logging.getLogger(__name__)

_TRANSMITTING_ROLES = (LinkEndType.TRANSMITTER, LinkEndType.TRANSMITTER2)


class DependentVariablesInterface(ABC):
    """Supplies link-end states at the light-time corrected link-end times."""

    @abstractmethod
    def link_end_states(self, link_ends: LinkEnds,
                        reception_time: float) -> dict[LinkEndType, LinkEndState]:
        """States of all link ends for an observation received at ``reception_time``."""


class BodyEphemerisDependentVariables(DependentVariablesInterface):
    """Link-end states read from the body map's state functions.

    Attributes:
        bodies: Environment body map.
        light_time_iterations: Fixed-point iterations of the light-time solution.
    """

    def __init__(self, bodies: NamedBodyMap, light_time_iterations: int = 3):
        self.bodies = bodies
        self.light_time_iterations = light_time_iterations

    def transmission_time(self, link_ends: LinkEnds, role: LinkEndType,
                          receiver_state: LinkEndState) -> float:
        """Emission time of ``role`` for a signal received in ``receiver_state``."""
        t_tx = receiver_state.time
        for _ in range(self.light_time_iterations):
            r_tx = link_end_state(self.bodies, link_ends[role], t_tx).position
            t_tx = receiver_state.time - np.linalg.norm(r_tx - receiver_state.position) / C_LIGHT
        return t_tx

    def link_end_states(self, link_ends: LinkEnds,
                        reception_time: float) -> dict[LinkEndType, LinkEndState]:
        receiver_state = link_end_state(
            self.bodies, link_ends[LinkEndType.RECEIVER], reception_time)
        states = {LinkEndType.RECEIVER: receiver_state}

        for role in _TRANSMITTING_ROLES:
            if role not in link_ends:
                continue
            t_tx = self.transmission_time(link_ends, role, receiver_state)
            states[role] = link_end_state(self.bodies, link_ends[role], t_tx)
            logger.debug("%s %s: light time %.6f s", role.name, link_ends[role],
                         reception_time - t_tx)
        return states
