"""Session with a Substrate API Sidecar serving the chain's staking storage.

``connect`` establishes the session with a retrying probe. The returned
``ChainSession`` is shared read-only by every concurrent storage query of a
run; httpx multiplexes the requests over its connection pool and re-opens
dropped connections on the next request. Drops are reported to listeners but
in-flight requests are not resumed.
"""

from __future__ import annotations

from enum import StrEnum
from types import TracebackType

from typing import TYPE_CHECKING, Any, Self

import httpx

from validator_yield.errors import ChainConnectionError, InvalidArgumentError
from validator_yield.helpers.constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_TIMEOUT,
    MAX_CONNECT_ATTEMPTS,
    RETRY_BASE_DELAY,
    RETRY_MAX_DELAY,
)
from validator_yield.helpers.http import (
    connection_limits,
    create_http_client,
    retry_with_backoff,
)
from validator_yield.helpers.logging import get_logger


if TYPE_CHECKING:
    from collections.abc import Callable


logger = get_logger(__name__)


class SessionEvent(StrEnum):
    """Connection events reported by a ChainSession."""

    DISCONNECTED = "disconnected"
    ERROR = "error"
    RECONNECTED = "reconnected"


type SessionListener = Callable[[SessionEvent, BaseException | None], None]


class ChainSession:
    """Read-only session with the chain data source."""

    def __init__(
        self,
        endpoint: str,
        client: httpx.AsyncClient,
        node_version: dict[str, Any] | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            endpoint: Sidecar base URL
            client: HTTP client whose base_url is the endpoint
            node_version: Response of the connect probe
        """
        self.endpoint = endpoint
        self.client = client
        self.node_version = node_version or {}
        self._connected = True
        self._listeners: dict[SessionEvent, list[SessionListener]] = {
            event: [] for event in SessionEvent
        }

    @property
    def connected(self) -> bool:
        """False between a transport drop and the next successful request."""
        return self._connected

    @property
    def chain(self) -> str | None:
        """Chain name reported by the node, if any."""
        return self.node_version.get("chain")

    def on(self, event: SessionEvent, listener: SessionListener) -> None:
        """Register a listener for a connection event.

        Args:
            event: Event to listen for
            listener: Called with the event and the triggering exception
        """
        self._listeners[event].append(listener)

    def _emit(self, event: SessionEvent, error: BaseException | None = None) -> None:
        for listener in list(self._listeners[event]):
            try:
                listener(event, error)
            except Exception:
                logger.exception("Session listener for %s failed", event)

    def _report_transport_error(self, error: httpx.TransportError) -> None:
        self._emit(SessionEvent.ERROR, error)
        dropped = isinstance(error, (httpx.NetworkError, httpx.RemoteProtocolError))
        if dropped and self._connected:
            self._connected = False
            logger.warning("Disconnected from %s: %s", self.endpoint, error)
            self._emit(SessionEvent.DISCONNECTED, error)

    async def get_json(
        self, path: str, params: list[tuple[str, str]] | None = None
    ) -> Any:
        """GET a Sidecar path and decode the JSON body.

        Args:
            path: Path relative to the endpoint
            params: Query parameters, repeated keys allowed

        Returns:
            Decoded JSON body

        Raises:
            httpx.HTTPError: If the request fails or returns an error status
        """
        try:
            response = await self.client.get(path, params=params)
        except httpx.TransportError as e:
            self._report_transport_error(e)
            raise

        if not self._connected:
            self._connected = True
            logger.info("Reconnected to %s", self.endpoint)
            self._emit(SessionEvent.RECONNECTED)

        response.raise_for_status()
        return response.json()

    async def storage(
        self,
        pallet: str,
        item: str,
        *keys: str | int,
        at: str | int | None = None,
    ) -> Any:
        """Read one storage item.

        Args:
            pallet: Pallet name (e.g., "staking")
            item: Storage item name (e.g., "erasRewardPoints")
            *keys: Storage map keys in declaration order
            at: Optional block hash or height to read at

        Returns:
            Decoded storage value, None for an empty optional item

        Raises:
            httpx.HTTPError: If the request fails
            ValueError: If the response has no storage value

        Example:
            ```python
            session = await connect("https://sidecar.example")
            points = await session.storage("staking", "erasRewardPoints", 1510)
            ```
        """
        params = [("keys[]", str(key)) for key in keys]
        if at is not None:
            params.append(("at", str(at)))

        data = await self.get_json(
            f"/pallets/{pallet}/storage/{item}", params=params or None
        )
        if not isinstance(data, dict) or "value" not in data:
            msg = f"Unexpected response for {pallet}.{item}: {data!r}"
            raise ValueError(msg)
        return data["value"]

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


async def connect(
    endpoint: str,
    max_attempts: int = MAX_CONNECT_ATTEMPTS,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    base_delay: float = RETRY_BASE_DELAY,
    max_delay: float = RETRY_MAX_DELAY,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> ChainSession:
    """Connect to a Sidecar endpoint, retrying with exponential backoff.

    Each call is an independent attempt sequence and returns a new session.

    Args:
        endpoint: Sidecar base URL
        max_attempts: Attempts before giving up
        timeout: Request timeout of the session in seconds
        base_delay: Backoff base in seconds
        max_delay: Backoff cap in seconds
        batch_size: Validators the session will serve concurrently, sizes
            the connection pool

    Returns:
        Connected ChainSession

    Raises:
        InvalidArgumentError: If endpoint is empty or max_attempts < 1
        ChainConnectionError: If every attempt failed

    Example:
        ```python
        async with await connect("https://sidecar.example") as session:
            validators = await get_validators(session)
        ```
    """
    if not endpoint:
        msg = "Endpoint cannot be empty"
        raise InvalidArgumentError(msg)
    if max_attempts < 1:
        msg = f"max_attempts must be >= 1, got {max_attempts}"
        raise InvalidArgumentError(msg)

    endpoint = endpoint.rstrip("/")
    client = create_http_client(
        endpoint, timeout=timeout, limits=connection_limits(batch_size)
    )
    attempts = 0

    @retry_with_backoff(
        max_retries=max_attempts,
        base_delay=base_delay,
        max_delay=max_delay,
        retry_if=lambda e: isinstance(e, (httpx.HTTPError, ValueError)),
    )
    async def probe_node() -> dict[str, Any]:
        nonlocal attempts
        attempts += 1
        response = await client.get("/node/version")
        response.raise_for_status()
        version = response.json()
        if not isinstance(version, dict):
            msg = f"Unexpected /node/version response: {version!r}"
            raise ValueError(msg)
        return version

    try:
        node_version = await probe_node()
    except (httpx.HTTPError, ValueError) as e:
        await client.aclose()
        raise ChainConnectionError(endpoint, attempts, e) from e
    except BaseException:
        await client.aclose()
        raise

    logger.info(
        "Connected to %s (%s) on attempt #%d",
        endpoint,
        node_version.get("chain", "unknown chain"),
        attempts,
    )
    return ChainSession(endpoint, client, node_version)


__all__ = [
    "ChainSession",
    "SessionEvent",
    "SessionListener",
    "connect",
]
