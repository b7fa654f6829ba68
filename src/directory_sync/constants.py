"""Configuration constants for the Directory Sync tool.

Named constants for magic numbers and wire-level values shared by the
client, the monitor and the CLI.
"""

# -----------------------------------------------------------------------------
# Pagination Limits
# -----------------------------------------------------------------------------

# Default number of transactions per page when listing history
DEFAULT_PAGE_SIZE: int = 50

# Maximum page size accepted by the Directory API
MAX_PAGE_SIZE: int = 1000


# -----------------------------------------------------------------------------
# Client Defaults
# -----------------------------------------------------------------------------

DEFAULT_TIMEOUT_SECONDS: int = 30
DEFAULT_RETRY_ATTEMPTS: int = 3

# Users per request in bulk imports
DEFAULT_BATCH_SIZE: int = 100

# Seconds between transaction status polls
DEFAULT_POLL_INTERVAL: float = 5.0

# Seconds to wait on a 429 without a usable Retry-After header
DEFAULT_RETRY_AFTER_SECONDS: int = 5

# Authentication headers
TENANT_HEADER: str = "auth-tenant-id"
TOKEN_HEADER: str = "auth-token"


# -----------------------------------------------------------------------------
# Form Entry Reporting
# -----------------------------------------------------------------------------

DEFAULT_VISIBILITY: str = "DEPARTMENT_AND_CHILDREN"
DEFAULT_CASE_TYPE_ID: str = "1"
DEFAULT_LOOKBACK_DAYS: int = 60


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------

# Rotation for the combined and error log files (5 MiB x 5 files)
LOG_MAX_BYTES: int = 5 * 1024 * 1024
LOG_BACKUP_COUNT: int = 5

SERVICE_NAME: str = "directory-sync"
