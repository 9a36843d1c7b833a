# src/tracecheck/plugins/clients/beryx.py
"""Beryx indexer as an event height provider.

Lists the heights of an address's canonical transactions, so the
event-driven checks only visit heights where the address was active.
"""

from typing import Any, ClassVar, Self

import httpx
from pydantic import BaseModel, Field, ValidationError

from tracecheck.contracts.errors import EventProviderError, SetupError
from tracecheck.core.config import BERYX_URL
from tracecheck.core.logging import get_logger

logger = get_logger(__name__)


class BeryxOptions(BaseModel):
    """Options of the Beryx provider, built by the plugin manager."""

    model_config = {"extra": "forbid", "frozen": True}

    url: str = BERYX_URL
    token: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0)

    @classmethod
    def from_dict(cls, options: dict[str, Any]) -> Self:
        try:
            return cls.model_validate(options)
        except ValidationError as e:
            raise SetupError(f"Invalid configuration for beryx event provider: {e}") from e


class BeryxTransaction(BaseModel):
    height: int
    canonical: bool


class BeryxTransactionsResponse(BaseModel):
    """Body of GET /transactions/address/{address}.

    Only the first page is read; next_cursor is kept for logging.
    """

    transactions: list[BeryxTransaction] | None = None
    next_cursor: str | None = None
    total_items: int | None = None


class BeryxEventProvider:
    """EventHeightProvider backed by the Beryx REST API."""

    name: ClassVar[str] = "beryx"

    def __init__(self, options: dict[str, Any]) -> None:
        """Initialize the provider.

        Args:
            options: ``url``, ``token`` and ``timeout_seconds``
        """
        self._options = BeryxOptions.from_dict(options)
        headers = {"Content-Type": "application/json"}
        if self._options.token:
            headers["Authorization"] = f"Bearer {self._options.token}"
        self._client = httpx.Client(timeout=self._options.timeout_seconds, headers=headers)

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def get_address_event_heights(self, address: str) -> list[int]:
        """Ascending, unique heights of the address's canonical transactions.

        Raises:
            EventProviderError: On transport failure, a non-200 status or
                a body that is not the expected JSON
        """
        url = f"{self._options.url.rstrip('/')}/transactions/address/{address}"
        try:
            response = self._client.get(url)
        except httpx.HTTPError as e:
            raise EventProviderError(f"failed to execute request for {address}: {e}") from e

        if response.status_code != 200:
            raise EventProviderError(f"API request failed with status {response.status_code}: {response.text}")

        try:
            body = BeryxTransactionsResponse.model_validate_json(response.content)
        except ValidationError as e:
            raise EventProviderError(f"failed to parse JSON response for {address}: {e}") from e

        heights = sorted({tx.height for tx in body.transactions or () if tx.canonical})
        logger.debug(
            "Fetched event heights",
            address=address,
            heights=len(heights),
            next_cursor=body.next_cursor,
        )
        return heights
