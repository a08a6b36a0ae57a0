"""
network.py - Dependency Graph of the Kin Recursions

Some kin types are produced by the fertility of another kin type (nieces are
born to sisters), and some start from another kin type's distribution at
Focal's birth (grandmothers start from the mother's mothers). Together these
edges form a fixed acyclic graph. The evaluation order is computed once, here,
rather than relying on the order kin types happen to be listed in.
"""

from __future__ import annotations

from graphlib import CycleError, TopologicalSorter
from typing import Dict, FrozenSet, Iterable, Optional, Tuple, Union

from .errors import ConfigurationError, InvalidKinCode
from .types import KIN_SPECS, KinType

KinSelector = Union[KinType, str]

# Also accept readable aliases on input; output always uses the short codes.
_ALIASES: Dict[str, KinType] = {
    **{k.value: k for k in KinType},
    **{k.name.lower(): k for k in KinType},
    **{spec.label: k for k, spec in KIN_SPECS.items()},
}


def topological_order(kins: Iterable[KinType]) -> Tuple[KinType, ...]:
    """
    Order kin types so every kin type follows the ones it depends on.

    Ties are broken by the declaration order of KinType so the result is
    deterministic.
    """
    kins = set(kins)
    graph = {k: [d for d in KIN_SPECS[k].depends_on if d in kins] for k in kins}
    sorter = TopologicalSorter(graph)
    try:
        sorter.prepare()
    except CycleError as e:
        raise ConfigurationError(f"Kin dependency graph has a cycle: {e.args[1]}") from e

    declared = list(KinType)
    order = []
    while sorter.is_active():
        ready = sorted(sorter.get_ready(), key=declared.index)
        order.extend(ready)
        sorter.done(*ready)
    return tuple(order)


KIN_ORDER: Tuple[KinType, ...] = topological_order(KinType)


def parse_kin(selected: Optional[Iterable[KinSelector]]) -> FrozenSet[KinType]:
    """
    Normalise a kin selection into a set of KinType.

    Parameters
    ----------
    selected : iterable of KinType or str, optional
        Kin codes (``"m"``), enum names (``"mother"``) or labels. None or an
        empty selection means all 14 kin types. A single string is read as
        one code.

    Raises
    ------
    InvalidKinCode
        If any entry is not a known kin type.
    """
    if selected is None:
        return frozenset(KinType)
    if isinstance(selected, (str, KinType)):
        selected = [selected]

    parsed = set()
    for item in selected:
        if isinstance(item, KinType):
            parsed.add(item)
            continue
        key = str(item).strip().lower()
        if key not in _ALIASES:
            raise InvalidKinCode(item, [k.value for k in KinType])
        parsed.add(_ALIASES[key])
    return frozenset(parsed) if parsed else frozenset(KinType)


def dependency_closure(selected: Iterable[KinType]) -> FrozenSet[KinType]:
    """All kin types needed to compute ``selected``, including themselves."""
    closure = set()
    stack = list(selected)
    while stack:
        kin = stack.pop()
        if kin in closure:
            continue
        closure.add(kin)
        stack.extend(KIN_SPECS[kin].depends_on)
    return frozenset(closure)


def evaluation_order(selected: Iterable[KinType]) -> Tuple[KinType, ...]:
    """The closure of ``selected`` in dependency order."""
    closure = dependency_closure(selected)
    return tuple(k for k in KIN_ORDER if k in closure)
