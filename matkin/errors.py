"""
errors.py - Exception Hierarchy for matkin

All errors are raised synchronously where they are detected. Input problems
subclass ValueError so callers that already guard with ``except ValueError``
keep working.
"""


class KinshipError(Exception):
    """Base class for every error raised by matkin."""


class ConfigurationError(KinshipError, ValueError):
    """Malformed or mismatched rate schedules, or conflicting run options."""


class OutOfRangeYear(ConfigurationError):
    """A requested year or cohort lies outside the years covered by the rates."""

    def __init__(self, year, first, last, what: str = "year"):
        self.year = year
        self.first = first
        self.last = last
        super().__init__(
            f"Requested {what} {year} is outside the rate schedule range "
            f"[{first}, {last}]"
        )


class InvalidKinCode(ConfigurationError):
    """An unrecognised kin selector was passed in ``selected_kin``."""

    def __init__(self, code, valid):
        self.code = code
        super().__init__(
            f"Unknown kin code {code!r}. Valid codes: {', '.join(valid)}"
        )


class ConsistencyError(KinshipError):
    """The summary table does not agree with the full table it came from."""
