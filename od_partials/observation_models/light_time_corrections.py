"""
Light-time correction models.

A correction adds a delay [s] to the geometric light time of one
propagation leg (transmitter -> receiver). The models here are the ones the
partial framework knows how to differentiate:

    - First-order relativistic (Shapiro) delay of a set of point masses:

        dt = sum_k (1 + gamma) * mu_k / c^3 * ln((r_t + r_r + r_tr) / (r_t + r_r - r_tr))

      with r_t, r_r the distances of transmitter and receiver from body k and
      r_tr the transmitter-receiver distance.
    - A constant instrumental delay.

Reference: Moyer, "Formulation for Observed and Computed Values of Deep
Space Network Data Types for Navigation", Sec. 8.3.
"""

from __future__ import annotations

import numpy as np
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from ..core.constants import C_LIGHT
from ..core.types import LightTimeCorrectionType, LinkEndState
from ..environment.bodies import NamedBodyMap


@dataclass
class PPNParameters:
    """Parametrized post-Newtonian parameters shared by relativistic models."""
    gamma: float = 1.0


class LightTimeCorrection(ABC):
    """Base class of light-time corrections on a single propagation leg."""

    correction_type: LightTimeCorrectionType

    @abstractmethod
    def calculate(self, transmitter_state: LinkEndState,
                  receiver_state: LinkEndState) -> float:
        """Light-time correction [s] for the given leg geometry."""


class FirstOrderRelativisticLightTimeCorrection(LightTimeCorrection):
    """Shapiro delay due to a set of perturbing point masses.

    Perturbing bodies are evaluated at the mid-point of the leg's
    transmission and reception times.

    Attributes:
        perturbing_bodies: Names of the bodies causing the delay.
        ppn_parameters: Shared PPN parameters (gamma).
    """
    correction_type = LightTimeCorrectionType.FIRST_ORDER_RELATIVISTIC

    def __init__(self, bodies: NamedBodyMap, perturbing_bodies: list[str],
                 ppn_parameters: Optional[PPNParameters] = None):
        missing = [name for name in perturbing_bodies if name not in bodies]
        if missing:
            raise ValueError(
                f"Perturbing bodies {missing} of relativistic light-time "
                "correction not found in body map"
            )
        self.bodies = bodies
        self.perturbing_bodies = list(perturbing_bodies)
        self.ppn_parameters = ppn_parameters if ppn_parameters is not None else PPNParameters()

    def unit_mass_contribution(self, body: str, transmitter_state: LinkEndState,
                               receiver_state: LinkEndState) -> float:
        """Delay of one body per unit gravitational parameter [s / (km³/s²)]."""
        t_mid = 0.5 * (transmitter_state.time + receiver_state.time)
        r_body = self.bodies[body].state_at(t_mid)[0:3]

        r_t = np.linalg.norm(transmitter_state.position - r_body)
        r_r = np.linalg.norm(receiver_state.position - r_body)
        r_tr = np.linalg.norm(receiver_state.position - transmitter_state.position)

        return ((1.0 + self.ppn_parameters.gamma) / C_LIGHT**3
                * np.log((r_t + r_r + r_tr) / (r_t + r_r - r_tr)))

    def body_contribution(self, body: str, transmitter_state: LinkEndState,
                          receiver_state: LinkEndState) -> float:
        """Delay [s] caused by one perturbing body."""
        mu = self.bodies[body].gravitational_parameter
        return mu * self.unit_mass_contribution(body, transmitter_state, receiver_state)

    def calculate(self, transmitter_state: LinkEndState,
                  receiver_state: LinkEndState) -> float:
        return sum(self.body_contribution(body, transmitter_state, receiver_state)
                   for body in self.perturbing_bodies)


class ConstantLightTimeCorrection(LightTimeCorrection):
    """Fixed delay [s], e.g. a calibrated instrumental delay."""
    correction_type = LightTimeCorrectionType.CONSTANT_DELAY

    def __init__(self, delay_s: float):
        self.delay_s = float(delay_s)

    def calculate(self, transmitter_state: LinkEndState,
                  receiver_state: LinkEndState) -> float:
        return self.delay_s
