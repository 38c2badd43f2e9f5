"""
Partial-assembly configuration.

Central configuration object selecting the observable formulation and the
light-time handling used when building observation partials.
"""

from dataclasses import dataclass, field
from .types import ObservableType
from .constants import MUTUAL_APPROXIMATION_LEG_COUNT


@dataclass
class ObservablePartialConfig:
    """Observable kind and formulation.

    The central-instant flag only affects the mutual approximation
    observable; it selects between the instant-of-closest-approach
    formulation (True) and the apparent-separation-rate formulation (False).
    It is never inferred from the data.
    """
    observable_type: ObservableType = ObservableType.MUTUAL_APPROXIMATION
    is_central_instant_used_as_observable: bool = True

    def describe(self) -> str:
        """Human-readable description of the observable formulation."""
        name = self.observable_type.name.replace("_", " ").lower()
        if self.observable_type == ObservableType.MUTUAL_APPROXIMATION:
            if self.is_central_instant_used_as_observable:
                return f"{name} (central instant)"
            return f"{name} (apparent separation rate)"
        return name


@dataclass
class LightTimeConfig:
    """Light-time handling for the state supplier and correction legs.

    Attributes:
        iterations: Fixed-point iterations of the Newtonian light-time
            solution used by the body-ephemeris state supplier.
        required_leg_count: Number of propagation legs of a three-body link.
    """
    iterations: int = 3
    required_leg_count: int = MUTUAL_APPROXIMATION_LEG_COUNT


@dataclass
class PartialsConfig:
    """Top-level partial-assembly configuration."""
    observable: ObservablePartialConfig = field(default_factory=ObservablePartialConfig)
    light_time: LightTimeConfig = field(default_factory=LightTimeConfig)

    def describe(self) -> str:
        return (f"{self.observable.describe()}, "
                f"{self.light_time.required_leg_count} light-time legs")
