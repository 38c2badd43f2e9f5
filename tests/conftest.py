"""
Shared fixtures: a receiver on a rotating Earth watching two bodies pass
each other in apparent position.

The bodies move on straight lines ~10^6 km away; seen from the Earth
center their apparent separation is smallest near t = 100 s.
"""

import numpy as np
import pytest

from od_partials.core.constants import R_EARTH
from od_partials.core.types import LinkEnds, LinkEndType
from od_partials.environment.bodies import create_linear_motion_body
from od_partials.environment.ephemeris import create_earth_body
from od_partials.observation_partials.dependent_variables import BodyEphemerisDependentVariables

IO_POSITION = np.array([1.0e6, -100.0, 0.0])
IO_VELOCITY = np.array([0.0, 1.0, 0.0])
EUROPA_POSITION = np.array([1.2e6, 100.0, 50.0])
EUROPA_VELOCITY = np.array([0.0, -1.0, 0.0])


def make_bodies(io_position=IO_POSITION, io_velocity=IO_VELOCITY,
                europa_position=EUROPA_POSITION, europa_velocity=EUROPA_VELOCITY):
    return {
        "Earth": create_earth_body({"Station": [R_EARTH, 0.0, 0.0]}),
        "Io": create_linear_motion_body("Io", io_position, io_velocity,
                                        gravitational_parameter=5959.916),
        "Europa": create_linear_motion_body("Europa", europa_position, europa_velocity,
                                            gravitational_parameter=3202.739),
    }


@pytest.fixture
def bodies():
    return make_bodies()


@pytest.fixture
def link_ends():
    return LinkEnds({
        LinkEndType.TRANSMITTER: "Io",
        LinkEndType.TRANSMITTER2: "Europa",
        LinkEndType.RECEIVER: "Earth",
    })


@pytest.fixture
def station_link_ends():
    return LinkEnds({
        LinkEndType.TRANSMITTER: "Io",
        LinkEndType.TRANSMITTER2: "Europa",
        LinkEndType.RECEIVER: ("Earth", "Station"),
    })


@pytest.fixture
def geometric_states(bodies):
    """Supplier of link-end states without light-time delay."""
    return BodyEphemerisDependentVariables(bodies, light_time_iterations=0)
