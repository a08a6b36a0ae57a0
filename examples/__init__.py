"""
matkin Examples
===============

Runnable kinship computations on synthetic rates.

    stable_kinship        kin counts under fixed rates, early vs late year
    time_varying_kinship  cohort and period views with changing rates
    kin_loss              deaths of kin over Focal's life, per cohort

Run one from the command line:

    $ python -m examples.stable_kinship
    $ python -m examples.kin_loss

or through ``run_example``, which forwards keyword arguments to the
example's ``main``:

    >>> from examples import run_example
    >>> result = run_example("stable_kinship", n_ages=80)
"""

import importlib

EXAMPLES = {
    "stable_kinship": (
        "Expected living kin under stable rates. Compares an early and a "
        "late reference year of a synthetic population."
    ),
    "time_varying_kinship": (
        "Time-varying kinship for a Focal cohort and for a calendar year, "
        "with mortality improvement and fertility decline."
    ),
    "kin_loss": (
        "Deaths of kin by Focal age and the lifetime number of kin lost, "
        "per cohort."
    ),
}


def list_examples():
    """Example names mapped to a one-line description."""
    return dict(EXAMPLES)


def run_example(name, **kwargs):
    """
    Import ``examples.<name>`` and call its ``main(**kwargs)``.

    Raises
    ------
    ValueError
        If ``name`` is not one of ``list_examples()``.
    """
    if name not in EXAMPLES:
        raise ValueError(
            f"Unknown example {name!r}; choose from {', '.join(EXAMPLES)}"
        )
    return importlib.import_module(f"examples.{name}").main(**kwargs)


__all__ = ["EXAMPLES", "list_examples", "run_example"]
