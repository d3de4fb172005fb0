"""Track two-phase burn-to-vest token migrations."""

# Expose package version
__version__ = "0.1.0"

# ---------------------------------------------------------------------------
# Early initialisation: load env settings & configure logging once so that any
# downstream imports can rely on them.
# ---------------------------------------------------------------------------

from migration_tracker.core.logging_utils import init_logger  # noqa: E402
from migration_tracker.core.settings import (
    settings,  # noqa: E402 – initialisation import
)

init_logger(level=settings.log_level)

from migration_tracker.engine import MigrationEngine  # noqa: E402
from migration_tracker.models import (  # noqa: E402
    ErrorDisplay,
    ErrorType,
    MigrationFormData,
    MigrationSession,
    MigrationStatus,
    MigrationStep,
)

__all__ = [
    "ErrorDisplay",
    "ErrorType",
    "MigrationEngine",
    "MigrationFormData",
    "MigrationSession",
    "MigrationStatus",
    "MigrationStep",
    "__version__",
]
