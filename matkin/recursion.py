"""
recursion.py - Kin Recursion Kernels
====================================

Each kin type follows the same first-order recursion over Focal's age:

    k(a+1) = U~ k(a) + F~ driver(a)

where k is the [living; dead] state of that kin type, U~ ages and thins it,
and F~ injects newborns at kin age 0 from the fertility of the driving
relative. Focal is assumed alive, so her own state at age a is the unit
vector e_a and daughters are driven by e_a.

At Focal age 0 each kin type starts from its initial parent: the kin of
Focal's mother, averaged over the mother's age at Focal's birth (pi). For a
mother of age j, her own kin of type p are exactly "Focal's kin of type p at
Focal age j" one generation up, so the start vector is P[:n, :] @ pi.

The kernels work on state matrices with shape (2n, n): one column per Focal
age 0..omega, living kin ages in the first n rows, dead in the last n.
"""

from __future__ import annotations

from typing import Dict, Iterable, Mapping

import numpy as np
from loguru import logger

from .network import evaluation_order
from .rates import ProjectionOperators
from .types import FOCAL, KIN_SPECS, KinSpec, KinType

KinStates = Dict[KinType, np.ndarray]


def focal_states(n: int) -> np.ndarray:
    """Focal's own state matrix: alive, at age a, in column a."""
    return np.vstack([np.eye(n), np.zeros((n, n))])


def initial_state(spec: KinSpec, parents: Mapping[KinType, np.ndarray], pi: np.ndarray) -> np.ndarray:
    """
    State of one kin type at Focal's birth.

    Parameters
    ----------
    spec : KinSpec
        The kin type being started.
    parents : mapping
        State matrices (2n, n) already available for the initial parent.
    pi : np.ndarray
        Distribution of the mother's age at Focal's birth.
    """
    n = pi.shape[0]
    state = np.zeros(2 * n)
    if spec.starts_from_pi:
        state[:n] = pi
    elif spec.initial_parent is not None:
        state[:n] = parents[spec.initial_parent][:n, :] @ pi
    return state


def _driver_states(spec: KinSpec, states: Mapping[KinType, np.ndarray], focal: np.ndarray):
    if spec.driver is None:
        return None
    if spec.driver == FOCAL:
        return focal
    return states[spec.driver]


def project_stable(operators: ProjectionOperators, kins: Iterable[KinType]) -> KinStates:
    """
    Run every requested recursion over Focal ages 0..omega with fixed rates.

    Parameters
    ----------
    operators : ProjectionOperators
        Rates of the reference year.
    kins : iterable of KinType
        Kin types wanted. Their dependencies are computed as well.

    Returns
    -------
    dict
        KinType -> state matrix (2n, n), for the whole dependency closure.
    """
    n = operators.n_ages
    U, F, pi = operators.transition, operators.fertility, operators.pi
    focal = focal_states(n)
    order = evaluation_order(kins)
    logger.debug(f"Stable projection: {len(order)} kin types, ages 0..{n - 1}")

    states: KinStates = {}
    for kin in order:
        spec = KIN_SPECS[kin]
        K = np.zeros((2 * n, n))
        K[:, 0] = initial_state(spec, states, pi)

        driver = _driver_states(spec, states, focal)
        births = None if driver is None else F @ driver

        # sequential in Focal age: column a+1 needs column a
        for a in range(n - 1):
            K[:, a + 1] = U @ K[:, a]
            if births is not None:
                K[:, a + 1] += births[:, a]
        states[kin] = K
    return states


def advance_year(
    previous: Mapping[KinType, np.ndarray],
    operators: ProjectionOperators,
    kins: Iterable[KinType],
) -> KinStates:
    """
    Step every recursion from calendar year t to t+1.

    Focal of age a in year t becomes Focal of age a+1 in year t+1, so all
    columns shift right by one. Column 0 (a Focal born in t+1) starts from
    the year-t kin of the mother.

    Parameters
    ----------
    previous : mapping
        State matrices (2n, n) of year t, for the whole dependency closure.
    operators : ProjectionOperators
        Rates and pi of year t.
    kins : iterable of KinType
        Kin types to advance (closure taken).
    """
    n = operators.n_ages
    U, F, pi = operators.transition, operators.fertility, operators.pi
    focal = focal_states(n)

    states: KinStates = {}
    for kin in evaluation_order(kins):
        spec = KIN_SPECS[kin]
        K = np.empty((2 * n, n))
        K[:, 0] = initial_state(spec, previous, pi)
        K[:, 1:] = U @ previous[kin][:, :-1]

        driver = _driver_states(spec, previous, focal)
        if driver is not None:
            K[:, 1:] += F @ driver[:, :-1]
        states[kin] = K
    return states
