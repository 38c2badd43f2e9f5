"""
Design-matrix assembly from observation partials.

For one observation of size m, the row block of the design matrix is

    H = sum_p  dh/dp  placed at columns [p.start, p.stop)

Partials w.r.t. initial states are given w.r.t. the body's state at the
link-end time; they are mapped to the estimation epoch with the state
transition matrix of the body:

    dh/dx0 = dh/dx(t) Phi(t, t0)
"""

from __future__ import annotations

import numpy as np
from typing import Callable, Optional, Sequence

from ..core.types import LinkEndState, LinkEndType
from ..observation_partials.observation_partial import SingleLinkPartialList
from ..observation_partials.scaling import PositionPartialScaling
from .parameters import EstimatableParameter

# (parameter, time) -> 6x6 Phi(t, t0) of the parameter's body
StateTransitionFunction = Callable[[EstimatableParameter, float], np.ndarray]


def observation_partial_rows(partials: SingleLinkPartialList,
                             total_size: int,
                             observable_size: int,
                             observation: Optional[np.ndarray] = None,
                             state_transition: Optional[StateTransitionFunction] = None
                             ) -> np.ndarray:
    """Design-matrix rows of one observation at the scaling's current epoch.

    Args:
        partials: Parameter index -> partial, all sharing one updated scaling.
        total_size: Number of estimated parameters N.
        observable_size: Size m of one observation.
        observation: Observed value, used by relative-bias partials.
        state_transition: Optional Phi(t, t0) supplier for initial-state
            parameters. Without it, initial-state blocks are w.r.t. the
            current state.

    Returns:
        H: (m x N) partial matrix; columns without a partial stay zero.
    """
    H = np.zeros((observable_size, total_size))
    for index, partial in partials.items():
        for matrix, time in partial(observation):
            if state_transition is not None and partial.parameter.is_initial_state:
                matrix = matrix @ state_transition(partial.parameter, time)
            H[:, index.start:index.stop] += matrix
    return H


def design_matrix_along_epochs(partials: SingleLinkPartialList,
                               scaling: PositionPartialScaling,
                               total_size: int,
                               reception_times: Optional[Sequence[float]] = None,
                               link_end_states: Optional[Sequence[dict[LinkEndType, LinkEndState]]] = None,
                               observations: Optional[Sequence[np.ndarray]] = None,
                               state_transition: Optional[StateTransitionFunction] = None
                               ) -> np.ndarray:
    """Stacked design matrix of one link-end set over several epochs.

    The scaling is updated once per epoch, either from the reception time
    (through its dependent-variable supplier) or from explicit states.

    Returns:
        H: (n_epochs * m x N) design matrix.

    Raises:
        ValueError: No epochs given, or an observation count that differs
            from the number of epochs.
    """
    if link_end_states is None and reception_times is None:
        raise ValueError("Need reception times or link-end states")
    if link_end_states is not None:
        updates = [dict(link_end_states=states) for states in link_end_states]
    else:
        updates = [dict(reception_time=t) for t in reception_times]
    if observations is None:
        observations = [None] * len(updates)
    elif len(observations) != len(updates):
        raise ValueError(
            f"Got {len(observations)} observations for {len(updates)} epochs"
        )

    rows = []
    for update, observation in zip(updates, observations):
        scaling.update(**update)
        rows.append(observation_partial_rows(
            partials, total_size, scaling.observable_size, observation, state_transition))
    return np.vstack(rows)
