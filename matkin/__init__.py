"""
matkin - One-Sex Matrix Kinship Models with Stable and Time-Varying Rates
"""

__version__ = "1.0.0"

# =============================================================================
# CORE TYPES
# =============================================================================
from .types import (
    AgeRateSchedule,
    ComputationMode,
    KinType,
    KinSpec,
    KinshipResult,
    KIN_SPECS,
    Lineage,
)

# =============================================================================
# ERRORS
# =============================================================================
from .errors import (
    KinshipError,
    ConfigurationError,
    OutOfRangeYear,
    InvalidKinCode,
    ConsistencyError,
)

# =============================================================================
# RATES
# =============================================================================
from .rates import (
    RateProvider,
    ProjectionOperators,
    survival_from_lx,
    survival_from_life_table,
    schedule_from_long,
)

# =============================================================================
# KIN NETWORK
# =============================================================================
from .network import (
    KIN_ORDER,
    parse_kin,
    dependency_closure,
)

# =============================================================================
# ENGINE
# =============================================================================
from .engine import (
    KinshipConfig,
    compute_kinship,
    run_kinship,
)
from .summary import summarize, verify_summary
from .deaths import lifetime_death_burden

# =============================================================================
# SYNTHETIC RATES
# =============================================================================
from .synthetic import (
    SyntheticRates,
    gompertz_makeham_survival,
    beta_fertility,
)

# =============================================================================
# I/O
# =============================================================================
from .io import (
    load_schedule,
    save_schedule,
    save_result,
    load_result,
    ResultFormat,
)

# PUBLIC API
# =============================================================================
__all__ = [
    "__version__",
    "AgeRateSchedule",
    "ComputationMode",
    "KinType",
    "KinSpec",
    "KinshipResult",
    "KIN_SPECS",
    "Lineage",
    "KinshipError",
    "ConfigurationError",
    "OutOfRangeYear",
    "InvalidKinCode",
    "ConsistencyError",
    "RateProvider",
    "ProjectionOperators",
    "survival_from_lx",
    "survival_from_life_table",
    "schedule_from_long",
    "KIN_ORDER",
    "parse_kin",
    "dependency_closure",
    "KinshipConfig",
    "compute_kinship",
    "run_kinship",
    "summarize",
    "verify_summary",
    "lifetime_death_burden",
    "SyntheticRates",
    "gompertz_makeham_survival",
    "beta_fertility",
    "load_schedule",
    "save_schedule",
    "save_result",
    "load_result",
    "ResultFormat",
]
