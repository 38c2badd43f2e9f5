"""
Tests for partial assembly: sparsity, index placement, link-end validation,
light-time leg handling and link-property parameters.
"""

import logging
import numpy as np
import pytest
from unittest import mock
from numpy.testing import assert_allclose

from od_partials.core.config import ObservablePartialConfig, PartialsConfig
from od_partials.core.constants import MU_SUN
from od_partials.core.types import LinkEndType, LinkEnds, ObservableType, ParameterIndex
from od_partials.environment.bodies import create_linear_motion_body
from od_partials.estimation.parameters import (
    ConstantObservationBias, ConstantRelativeObservationBias, EstimatableParameterSet,
    GravitationalParameter, GroundStationPosition, InitialTranslationalState,
    PPNParameterGamma, RadiationPressureCoefficient
)
from od_partials.observation_models.light_time_corrections import (
    ConstantLightTimeCorrection, FirstOrderRelativisticLightTimeCorrection, PPNParameters
)
from od_partials.observation_partials import create_partials as create_partials_module
from od_partials.observation_partials.create_partials import (
    ObservationPartialBuilder, create_impact_parameter_mutual_approx_partials,
    create_mutual_approximation_partials,
    create_mutual_approximation_with_impact_parameter_partials,
    create_single_link_mutual_approximation_partials
)
from od_partials.observation_partials.observation_partial import (
    ImpactParameterMutualApproxPartial, MutualApproximationPartial,
    ObservationPartialWrtConstantAbsoluteBias, ObservationPartialWrtConstantRelativeBias,
    create_observation_partial_wrt_link_property
)
from od_partials.observation_partials.scaling import (
    ImpactParameterMutualApproxScaling, ModifiedMutualApproximationScaling,
    MutualApproximationScaling, MutualApproximationWithImpactParameterScaling
)


@pytest.fixture
def bodies(bodies):
    bodies["Sun"] = create_linear_motion_body("Sun", [-1.5e8, 0.0, 0.0], [0.0, 0.0, 0.0], MU_SUN)
    bodies["Ganymede"] = create_linear_motion_body("Ganymede", [1.1e6, 0.0, 0.0], [0.0, 0.0, 0.0])
    return bodies


@pytest.fixture
def ppn():
    return PPNParameters()


@pytest.fixture
def shapiro(bodies, ppn):
    return FirstOrderRelativisticLightTimeCorrection(bodies, ["Sun"], ppn)


@pytest.fixture
def builder(bodies):
    return ObservationPartialBuilder(bodies, PartialsConfig(
        observable=ObservablePartialConfig(is_central_instant_used_as_observable=False)))


def target_catalog(body):
    return EstimatableParameterSet(
        initial_state_parameters=[InitialTranslationalState(body, np.zeros(6))])


class TestScenarios:

    def test_dependent_initial_state(self, builder, link_ends):
        partials, scaling = builder.create_partials(link_ends, target_catalog("Europa"))
        assert list(partials) == [ParameterIndex(0, 6)]
        partial = partials[ParameterIndex(0, 6)]
        assert list(partial.position_partials) == [LinkEndType.TRANSMITTER2]
        assert partial.scaling is scaling

    def test_independent_initial_state(self, builder, link_ends):
        partials, scaling = builder.create_partials(link_ends, target_catalog("Ganymede"))
        assert partials == {}
        assert isinstance(scaling, ModifiedMutualApproximationScaling)

    def test_corrections_per_link_end_set(self, builder, link_ends, station_link_ends, shapiro, ppn):
        catalog = EstimatableParameterSet(
            initial_state_parameters=[InitialTranslationalState("Europa", np.zeros(6))],
            scalar_parameters=[PPNParameterGamma(ppn)])
        result = builder.create_partials_for_link_ends_list(
            [link_ends, station_link_ends], catalog,
            {link_ends: [[shapiro], [shapiro]]})

        with_corrections, _ = result[link_ends]
        without_corrections, _ = result[station_link_ends]

        assert with_corrections[ParameterIndex(0, 6)].number_of_correction_legs == 2
        assert without_corrections[ParameterIndex(0, 6)].number_of_correction_legs == 0
        assert with_corrections[ParameterIndex(6, 1)].number_of_light_time_correction_partial_functions == 2
        assert ParameterIndex(6, 1) not in without_corrections

    def test_link_property_bypasses_position_partials(self, builder, link_ends):
        bias = ConstantObservationBias(link_ends, ObservableType.MUTUAL_APPROXIMATION)
        catalog = EstimatableParameterSet(vector_parameters=[bias])

        original = create_partials_module.create_cartesian_state_partials_wrt_parameter
        with mock.patch.object(create_partials_module,
                               "create_cartesian_state_partials_wrt_parameter",
                               wraps=original) as provider:
            partials, _ = builder.create_partials(link_ends, catalog)

        assert provider.call_count == 0
        assert isinstance(partials[ParameterIndex(0, 1)], ObservationPartialWrtConstantAbsoluteBias)


class TestSparsity:

    def test_only_coupled_parameters_kept(self, builder, bodies, station_link_ends, link_ends, ppn):
        catalog = EstimatableParameterSet(
            initial_state_parameters=[
                InitialTranslationalState("Io", np.zeros(6)),
                InitialTranslationalState("Ganymede", np.zeros(6)),
                InitialTranslationalState("Earth", np.zeros(6)),
            ],
            scalar_parameters=[
                GravitationalParameter(bodies, "Io"),
                PPNParameterGamma(ppn),
                RadiationPressureCoefficient("Io", 1.2),
            ],
            vector_parameters=[
                GroundStationPosition(bodies, "Earth", "Station"),
                ConstantObservationBias(link_ends, ObservableType.MUTUAL_APPROXIMATION),
            ])

        partials, _ = builder.create_partials(station_link_ends, catalog)
        assert list(partials) == [ParameterIndex(0, 6), ParameterIndex(12, 6), ParameterIndex(21, 3)]

    def test_gravitational_parameter_through_corrections(self, builder, bodies, link_ends, shapiro):
        catalog = EstimatableParameterSet(scalar_parameters=[
            GravitationalParameter(bodies, "Sun"), GravitationalParameter(bodies, "Io")])
        partials, _ = builder.create_partials(
            link_ends, catalog, [[shapiro, ConstantLightTimeCorrection(1.0e-6)], [shapiro]])
        assert list(partials) == [ParameterIndex(0, 1)]
        assert partials[ParameterIndex(0, 1)].position_partials == {}

    def test_bias_of_other_link_ends_ignored(self, builder, link_ends, station_link_ends):
        catalog = EstimatableParameterSet(vector_parameters=[
            ConstantObservationBias(station_link_ends, ObservableType.MUTUAL_APPROXIMATION),
            ConstantObservationBias(link_ends, ObservableType.IMPACT_PARAMETER_MUTUAL_APPROX),
        ])
        partials, _ = builder.create_partials(link_ends, catalog)
        assert partials == {}


class TestValidation:

    @pytest.mark.parametrize("missing", [LinkEndType.TRANSMITTER, LinkEndType.TRANSMITTER2,
                                         LinkEndType.RECEIVER])
    def test_missing_role(self, builder, link_ends, missing):
        incomplete = LinkEnds({role: end for role, end in link_ends.items() if role != missing})
        with pytest.raises(ValueError, match="did not find transmitter, transmitter2 and receiver"):
            builder.create_partials(incomplete, target_catalog("Io"))
        with pytest.raises(ValueError, match="did not find transmitter, transmitter2 and receiver"):
            builder.create_partials_for_link_ends_list([link_ends, incomplete], target_catalog("Io"))

    def test_link_ends_checked_once_per_set(self, builder, link_ends, station_link_ends):
        with mock.patch.object(builder, "_check_link_ends",
                               wraps=builder._check_link_ends) as check:
            builder.create_partials_for_link_ends_list(
                [link_ends, station_link_ends], target_catalog("Io"))
        assert check.call_count == 2

    @pytest.mark.parametrize("legs", [1, 3])
    def test_strict_leg_count(self, builder, link_ends, shapiro, legs):
        with pytest.raises(ValueError, match=f"light time corrections for {legs} links found, instead of 2"):
            builder.create_partials(link_ends, target_catalog("Io"), [[shapiro]] * legs)

    def test_no_corrections(self, builder, link_ends):
        partials, _ = builder.create_partials(link_ends, target_catalog("Io"), [])
        assert partials[ParameterIndex(0, 6)].number_of_light_time_correction_partial_functions == 0

    def test_permissive_leg_count_warns(self, builder, link_ends, shapiro, ppn, caplog):
        catalog = EstimatableParameterSet(scalar_parameters=[PPNParameterGamma(ppn)])
        with caplog.at_level(logging.WARNING):
            result = builder.create_partials_for_link_ends_list(
                [link_ends], catalog, {link_ends: [[shapiro]] * 3})

        assert "Light time corrections for 3 links found" in caplog.text
        assert "Ignoring 1 light-time correction partials of leg 2" in caplog.text
        partial = result[link_ends][0][ParameterIndex(0, 1)]
        assert partial.number_of_correction_legs == 3
        assert partial.number_of_light_time_correction_partial_functions == 2

    def test_single_leg_accepted_by_multi_set_entry(self, builder, link_ends, shapiro, ppn, caplog):
        catalog = EstimatableParameterSet(scalar_parameters=[PPNParameterGamma(ppn)])
        with caplog.at_level(logging.WARNING):
            result = builder.create_partials_for_link_ends_list(
                [link_ends], catalog, {link_ends: [[shapiro]]})
        partial = result[link_ends][0][ParameterIndex(0, 1)]
        assert partial.correction_partial_functions[0][0] == 0
        assert partial.number_of_light_time_correction_partial_functions == 1
        assert "instead of 2" in caplog.text

    def test_unsupported_observable(self, bodies):
        config = PartialsConfig(observable=ObservablePartialConfig(observable_type="range"))
        with pytest.raises(ValueError, match="not supported"):
            ObservationPartialBuilder(bodies, config)

    def test_non_link_property_rejected(self, bodies, link_ends):
        with pytest.raises(ValueError, match="not an observation link property"):
            create_observation_partial_wrt_link_property(
                link_ends, ObservableType.MUTUAL_APPROXIMATION, GravitationalParameter(bodies, "Io"))


class TestScalingSelection:

    def test_flag_selects_variant(self, bodies, link_ends):
        catalog = target_catalog("Io")
        _, instant = create_single_link_mutual_approximation_partials(
            link_ends, bodies, catalog, is_central_instant_used_as_observable=True)
        _, rate = create_single_link_mutual_approximation_partials(
            link_ends, bodies, catalog, is_central_instant_used_as_observable=False)
        assert type(instant) is MutualApproximationScaling
        assert type(rate) is ModifiedMutualApproximationScaling

    def test_observable_kinds(self, bodies, link_ends):
        catalog = target_catalog("Io")
        combined = create_mutual_approximation_with_impact_parameter_partials(
            [link_ends], bodies, catalog)
        impact = create_impact_parameter_mutual_approx_partials([link_ends], bodies, catalog)
        instant = create_mutual_approximation_partials([link_ends], bodies, catalog)

        assert isinstance(combined[link_ends][1], MutualApproximationWithImpactParameterScaling)
        assert isinstance(impact[link_ends][1], ImpactParameterMutualApproxScaling)
        assert isinstance(impact[link_ends][0][ParameterIndex(0, 6)], ImpactParameterMutualApproxPartial)
        assert isinstance(instant[link_ends][0][ParameterIndex(0, 6)], MutualApproximationPartial)

    def test_partial_rejects_foreign_scaling(self, link_ends, bodies):
        with pytest.raises(ValueError, match="requires a ImpactParameterMutualApproxScaling"):
            ImpactParameterMutualApproxPartial(
                MutualApproximationScaling(link_ends), {},
                InitialTranslationalState("Io", np.zeros(6)))


class TestEvaluation:

    def test_body_state_partial(self, builder, link_ends):
        partials, scaling = builder.create_partials(link_ends, target_catalog("Europa"))
        scaling.update(reception_time=40.0)

        contributions = partials[ParameterIndex(0, 6)]()
        assert len(contributions) == 1
        matrix, time = contributions[0]
        role = LinkEndType.TRANSMITTER2
        assert time == scaling.link_end_times[role]
        assert_allclose(matrix, np.hstack([scaling.position_scaling_factor(role),
                                           scaling.velocity_scaling_factor(role)]))

    def test_station_position_partial(self, builder, bodies, station_link_ends):
        catalog = EstimatableParameterSet(
            vector_parameters=[GroundStationPosition(bodies, "Earth", "Station")])
        partials, scaling = builder.create_partials(station_link_ends, catalog)
        scaling.update(reception_time=40.0)

        matrix, time = partials[ParameterIndex(0, 3)]()[0]
        R, dR, _ = bodies["Earth"].rotation_at(40.0)
        expected = (scaling.position_scaling_factor(LinkEndType.RECEIVER) @ R
                    + scaling.velocity_scaling_factor(LinkEndType.RECEIVER) @ dR)
        assert time == 40.0
        assert_allclose(matrix, expected)

    def test_gamma_partial_sums_both_legs(self, builder, link_ends, shapiro, ppn):
        catalog = EstimatableParameterSet(scalar_parameters=[PPNParameterGamma(ppn)])
        partials, scaling = builder.create_partials(link_ends, catalog, [[shapiro], [shapiro]])
        scaling.update(reception_time=40.0)

        contributions = partials[ParameterIndex(0, 1)]()
        states = scaling.link_end_states
        receiver = states[LinkEndType.RECEIVER]
        expected = [
            scaling.light_time_correction_scaling(leg)
            * shapiro.calculate(states[role], receiver) / (1.0 + ppn.gamma)
            for leg, role in enumerate((LinkEndType.TRANSMITTER, LinkEndType.TRANSMITTER2))
        ]
        assert len(contributions) == 2
        for (matrix, time), value in zip(contributions, expected):
            assert time == 40.0
            assert_allclose(matrix, value)

    def test_bias_partials(self, bodies, link_ends):
        builder = ObservationPartialBuilder(bodies, PartialsConfig(
            observable=ObservablePartialConfig(ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER)))
        catalog = EstimatableParameterSet(vector_parameters=[
            ConstantObservationBias(link_ends, ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER),
            ConstantRelativeObservationBias(link_ends, ObservableType.MUTUAL_APPROXIMATION_WITH_IMPACT_PARAMETER),
        ])
        partials, scaling = builder.create_partials(link_ends, catalog)
        scaling.update(reception_time=40.0)

        absolute = partials[ParameterIndex(0, 2)]
        relative = partials[ParameterIndex(2, 2)]
        assert isinstance(relative, ObservationPartialWrtConstantRelativeBias)
        assert_allclose(absolute()[0][0], np.eye(2))
        assert_allclose(relative()[0][0], np.diag(scaling.observation))
        assert_allclose(relative(np.array([3.0, 4.0]))[0][0], np.diag([3.0, 4.0]))

    def test_relative_bias_without_observation_or_scaling(self, link_ends):
        bias = ConstantRelativeObservationBias(link_ends, ObservableType.MUTUAL_APPROXIMATION)
        partial = create_observation_partial_wrt_link_property(
            link_ends, ObservableType.MUTUAL_APPROXIMATION, bias)
        with pytest.raises(RuntimeError, match="needs an observation"):
            partial()
        assert_allclose(partial(np.array([2.0]))[0][0], [[2.0]])

    def test_setup_summary_logged(self, builder, link_ends, caplog):
        with caplog.at_level(logging.DEBUG, logger="od_partials"):
            builder.create_partials(link_ends, target_catalog("Io"))
        assert "1 of 1 parameters observable" in caplog.text
