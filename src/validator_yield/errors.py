"""Exception hierarchy for the validator yield pipeline."""

from pydantic import ValidationError


class ValidatorYieldError(Exception):
    """Base class for all validator yield errors."""


class ChainConnectionError(ValidatorYieldError):
    """Raised when no session could be established with the chain data source."""

    def __init__(
        self, endpoint: str, attempts: int, last_cause: BaseException | None
    ) -> None:
        self.endpoint = endpoint
        self.attempts = attempts
        self.last_cause = last_cause
        msg = f"Could not connect to {endpoint} after {attempts} attempts"
        if last_cause is not None:
            msg = f"{msg}. Last error: {last_cause}"
        super().__init__(msg)


class InvalidArgumentError(ValidatorYieldError, ValueError):
    """Raised for arguments that can never produce a valid result."""


class FetchError(ValidatorYieldError):
    """Raised when the chain facts for one validator could not be retrieved."""

    def __init__(self, validator_id: str, era: int, cause: BaseException) -> None:
        self.validator_id = validator_id
        self.era = era
        self.cause = cause
        msg = f"Failed to fetch era {era} facts for {validator_id}: {cause}"
        super().__init__(msg)

    @property
    def retryable(self) -> bool:
        """Whether another attempt could succeed.

        Bad input and malformed chain data fail the same way every time.
        """
        return not isinstance(self.cause, (InvalidArgumentError, ValidationError))


__all__ = [
    "ChainConnectionError",
    "FetchError",
    "InvalidArgumentError",
    "ValidatorYieldError",
]
