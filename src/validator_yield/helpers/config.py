"""Configuration management and environment variable utilities."""

from decimal import Decimal, InvalidOperation
import os

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from validator_yield.helpers.constants import (
    ANNUALIZATION_FACTOR,
    DEFAULT_BATCH_SIZE,
    DEFAULT_SIDECAR_URL,
    DEFAULT_TOP_N,
    FETCH_RETRIES,
    MAX_CONNECT_ATTEMPTS,
    MAX_ERA_LOOKBACK,
)


# Load environment variables from .env file
load_dotenv()


def get_required_env(key: str) -> str:
    """Get a required environment variable.

    Args:
        key: Environment variable name

    Returns:
        Environment variable value

    Raises:
        ValueError: If the environment variable is not set

    Example:
        ```python
        from validator_yield.helpers.config import get_required_env

        sidecar_url = get_required_env("SIDECAR_URL")
        ```
    """
    value = os.getenv(key)
    if not value:
        msg = f"{key} environment variable is not set"
        raise ValueError(msg)
    return value


def get_optional_env(key: str, default: str | None = None) -> str | None:
    """Get an optional environment variable with a default value.

    Args:
        key: Environment variable name
        default: Default value if not set

    Returns:
        Environment variable value or default

    Example:
        ```python
        from validator_yield.helpers.config import get_optional_env

        batch_size = int(get_optional_env("BATCH_SIZE", "20"))
        ```
    """
    return os.getenv(key, default)


def get_sidecar_url(sidecar_url: str | None = None) -> str:
    """Get the Sidecar endpoint from parameter, environment or default.

    Args:
        sidecar_url: Optional endpoint to use directly

    Returns:
        Sidecar base URL without a trailing slash
    """
    url = sidecar_url or os.getenv("SIDECAR_URL") or DEFAULT_SIDECAR_URL
    return url.rstrip("/")


class RunConfig(BaseModel):
    """Parameters of one yield computation run."""

    endpoint: str = Field(default=DEFAULT_SIDECAR_URL, min_length=1)
    max_connect_attempts: int = Field(default=MAX_CONNECT_ATTEMPTS, ge=1)
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    top_n: int | None = Field(default=DEFAULT_TOP_N, ge=0)
    annualization_factor: Decimal = Field(
        default=Decimal(ANNUALIZATION_FACTOR), gt=0
    )
    max_era_lookback: int | None = Field(default=MAX_ERA_LOOKBACK, ge=0)
    fetch_retries: int = Field(default=FETCH_RETRIES, ge=0)

    model_config = ConfigDict(frozen=True)


# Environment variable -> RunConfig field
_RUN_CONFIG_ENV = {
    "SIDECAR_URL": "endpoint",
    "MAX_CONNECT_ATTEMPTS": "max_connect_attempts",
    "BATCH_SIZE": "batch_size",
    "TOP_N": "top_n",
    "ANNUALIZATION_FACTOR": "annualization_factor",
    "MAX_ERA_LOOKBACK": "max_era_lookback",
    "FETCH_RETRIES": "fetch_retries",
}

_FIELD_ENV = {field: env_key for env_key, field in _RUN_CONFIG_ENV.items()}

# Fields where an empty value or "none" disables the limit
_NULLABLE_FIELDS = {"top_n", "max_era_lookback"}


def load_run_config(**overrides: object) -> RunConfig:
    """Build the run configuration from environment variables.

    Explicit keyword overrides win over the environment, which wins over the
    defaults in ``constants``.

    Args:
        **overrides: RunConfig field values

    Returns:
        Validated RunConfig

    Raises:
        ValueError: If a variable holds an invalid value

    Example:
        ```python
        from validator_yield.helpers.config import load_run_config

        config = load_run_config(batch_size=10)
        ```
    """
    values: dict[str, object] = {}
    for env_key, field in _RUN_CONFIG_ENV.items():
        raw = os.getenv(env_key)
        if raw is None:
            continue
        raw = raw.strip()
        if field in _NULLABLE_FIELDS and raw.lower() in {"", "none"}:
            values[field] = None
        elif field == "annualization_factor":
            try:
                values[field] = Decimal(raw)
            except InvalidOperation as e:
                msg = f"{env_key} must be a number, got {raw!r}"
                raise ValueError(msg) from e
        else:
            values[field] = raw

    values.update(overrides)
    if "endpoint" in values and isinstance(values["endpoint"], str):
        values["endpoint"] = get_sidecar_url(values["endpoint"])

    try:
        return RunConfig.model_validate(values)
    except ValidationError as e:
        fields = ", ".join(
            _FIELD_ENV.get(str(err["loc"][0]), str(err["loc"][0]))
            for err in e.errors()
            if err["loc"]
        )
        msg = f"Invalid run configuration ({fields}): {e}"
        raise ValueError(msg) from e


__all__ = [
    "RunConfig",
    "get_optional_env",
    "get_required_env",
    "get_sidecar_url",
    "load_run_config",
]
