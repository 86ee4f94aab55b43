"""Common configuration constants used across the application."""

# HTTP and Network Constants
DEFAULT_SIDECAR_URL = "https://polkadot-public-sidecar.parity-chains.parity.io"
"""Default Substrate API Sidecar endpoint"""

DEFAULT_TIMEOUT = 30.0
"""Default HTTP request timeout in seconds"""

MAX_KEEPALIVE_CONNECTIONS = 20
"""Maximum number of keepalive connections in pool"""

MAX_CONNECTIONS = 50
"""Minimum size of the connection pool"""

QUERIES_PER_FETCH = 4
"""Storage queries one validator fetch can have in flight (prefs, exposure, payout, points)"""

# Retry Configuration
MAX_CONNECT_ATTEMPTS = 5
"""Default maximum number of connection attempts"""

RETRY_BASE_DELAY = 1.0
"""Base delay for exponential backoff in seconds"""

RETRY_MAX_DELAY = 30.0
"""Maximum delay between retries in seconds"""

FETCH_RETRIES = 1
"""Extra attempts for a failed per-validator fetch"""

FETCH_RETRY_DELAY = 0.5
"""Base delay before retrying a per-validator fetch in seconds"""

# Batch Size Constants
DEFAULT_BATCH_SIZE = 20
"""Default number of validators fetched concurrently per batch"""

DEFAULT_TOP_N = 16
"""Default number of validators shown in the yield report"""

# Era Constants
MAX_ERA_LOOKBACK = 84
"""Eras scanned backward for a rewarded era (Polkadot history depth)"""

# Reward Arithmetic
PERBILL = 1_000_000_000
"""Fixed-point denominator of commission rates (parts per billion)"""

ANNUALIZATION_FACTOR = 365
"""Eras per year (one era per day on Polkadot)"""

APY_DECIMALS = 2
"""Decimal digits kept in computed APY percentages"""

PLANCK_PER_DOT = 10**10
"""Planck units per DOT"""


__all__ = [
    "ANNUALIZATION_FACTOR",
    "APY_DECIMALS",
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_SIDECAR_URL",
    "DEFAULT_TIMEOUT",
    "DEFAULT_TOP_N",
    "FETCH_RETRIES",
    "FETCH_RETRY_DELAY",
    "MAX_CONNECTIONS",
    "MAX_CONNECT_ATTEMPTS",
    "MAX_ERA_LOOKBACK",
    "MAX_KEEPALIVE_CONNECTIONS",
    "PERBILL",
    "PLANCK_PER_DOT",
    "QUERIES_PER_FETCH",
    "RETRY_BASE_DELAY",
    "RETRY_MAX_DELAY",
]
