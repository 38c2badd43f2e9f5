"""
Tests for link-end state partials.
"""

import numpy as np
import pytest
from numpy.testing import assert_allclose

from od_partials.core.constants import OMEGA_EARTH
from od_partials.core.types import LinkEndId, LinkEndType
from od_partials.environment.bodies import link_end_state
from od_partials.estimation.parameters import GravitationalParameter, GroundStationPosition
from od_partials.observation_partials.position_partials import (
    BodyStatePartial, GroundStationPositionPartial,
    create_cartesian_state_partials_wrt_body_state,
    create_cartesian_state_partials_wrt_parameter
)


class TestBodyStatePartials:

    def test_only_link_ends_on_body(self, bodies, link_ends):
        partials = create_cartesian_state_partials_wrt_body_state(link_ends, bodies, "Europa")
        assert list(partials) == [LinkEndType.TRANSMITTER2]
        assert isinstance(partials[LinkEndType.TRANSMITTER2], BodyStatePartial)

    def test_station_moves_with_body(self, bodies, station_link_ends):
        partials = create_cartesian_state_partials_wrt_body_state(station_link_ends, bodies, "Earth")
        assert list(partials) == [LinkEndType.RECEIVER]

    def test_blocks(self):
        partial = BodyStatePartial()
        assert_allclose(partial.wrt_position(0.0), np.hstack([np.eye(3), np.zeros((3, 3))]))
        assert_allclose(partial.wrt_velocity(0.0), np.hstack([np.zeros((3, 3)), np.eye(3)]))

    def test_unknown_body_rejected(self, bodies, link_ends):
        with pytest.raises(ValueError, match="not found"):
            create_cartesian_state_partials_wrt_body_state(link_ends, bodies, "Ganymede")

    def test_body_not_in_link(self, bodies, link_ends):
        bodies = dict(bodies)
        bodies["Ganymede"] = bodies["Io"]
        assert create_cartesian_state_partials_wrt_body_state(link_ends, bodies, "Ganymede") == {}


class TestGroundStationPartials:

    def test_only_matching_station(self, bodies, link_ends, station_link_ends):
        parameter = GroundStationPosition(bodies, "Earth", "Station")
        assert create_cartesian_state_partials_wrt_parameter(link_ends, bodies, parameter) == {}

        partials = create_cartesian_state_partials_wrt_parameter(
            station_link_ends, bodies, parameter)
        assert list(partials) == [LinkEndType.RECEIVER]
        assert isinstance(partials[LinkEndType.RECEIVER], GroundStationPositionPartial)

    def test_matches_finite_difference(self, bodies):
        station = LinkEndId("Earth", "Station")
        partial = GroundStationPositionPartial(bodies["Earth"])
        t = 3600.0
        h = 1.0

        numerical_r = np.zeros((3, 3))
        numerical_v = np.zeros((3, 3))
        nominal = bodies["Earth"].ground_stations["Station"].copy()
        for i in range(3):
            offsets = []
            for sign in (1.0, -1.0):
                perturbed = nominal.copy()
                perturbed[i] += sign * h
                bodies["Earth"].ground_stations["Station"] = perturbed
                offsets.append(link_end_state(bodies, station, t))
            numerical_r[:, i] = (offsets[0].position - offsets[1].position) / (2 * h)
            numerical_v[:, i] = (offsets[0].velocity - offsets[1].velocity) / (2 * h)
        bodies["Earth"].ground_stations["Station"] = nominal

        assert_allclose(partial.wrt_position(t), numerical_r, atol=1e-9)
        assert_allclose(partial.wrt_velocity(t), numerical_v, atol=1e-12)

    def test_velocity_sensitivity_scales_with_rotation_rate(self, bodies):
        dR = GroundStationPositionPartial(bodies["Earth"]).wrt_velocity(0.0)
        assert np.linalg.norm(dR[:, 0]) == pytest.approx(OMEGA_EARTH)

    def test_other_parameters_move_nothing(self, bodies, station_link_ends):
        parameter = GravitationalParameter(bodies, "Io")
        assert create_cartesian_state_partials_wrt_parameter(
            station_link_ends, bodies, parameter) == {}
