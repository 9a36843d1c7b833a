# src/tracecheck/plugins/clients/lotus.py
"""Lotus full node client speaking JSON-RPC 2.0 over HTTP.

Implements ChainStateReader with the handful of Filecoin.* methods the
checks need. Every failure surfaces as RpcError; nothing is retried.
"""

import itertools
from collections.abc import Mapping
from typing import Any, Self

import httpx

from tracecheck.contracts.chain import Actor, ActorState, BlockHeader, TipSet, TipSetKey
from tracecheck.contracts.errors import RpcError
from tracecheck.core.config import NodeSettings
from tracecheck.core.context import CancellationToken
from tracecheck.core.logging import get_logger

logger = get_logger(__name__)


def encode_tipset_key(key: TipSetKey) -> list[dict[str, str]]:
    """JSON form of a tipset key: a list of CID links. Empty means head."""
    return [{"/": cid} for cid in key]


def _cid(value: Any, method: str) -> str:
    if isinstance(value, Mapping) and isinstance(value.get("/"), str):
        return str(value["/"])
    raise RpcError(method, f"expected a CID link, got {value!r}")


def _bigint(value: Any, method: str) -> int:
    # Lotus serializes big integers as decimal strings
    try:
        return int(str(value), 10)
    except ValueError:
        raise RpcError(method, f"expected a decimal amount, got {value!r}") from None


def _object(result: Any, method: str) -> Mapping[str, Any]:
    if not isinstance(result, Mapping):
        raise RpcError(method, f"unexpected result {result!r}")
    return result


def _string(result: Any, method: str) -> str:
    if not isinstance(result, str):
        raise RpcError(method, f"expected an address, got {result!r}")
    return result


class LotusClient:
    """ChainStateReader over a Lotus JSON-RPC v1 endpoint.

    Example:
        with LotusClient.from_settings(settings.node) as client:
            tipset = client.get_tipset_by_height(1000, EMPTY_TIPSET_KEY)
    """

    def __init__(
        self,
        url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = 30.0,
        cancellation: CancellationToken | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            url: JSON-RPC endpoint, e.g. http://127.0.0.1:1234/rpc/v1
            token: Bearer token, sent only when given
            timeout_seconds: Timeout of every call
            cancellation: Checked before each call
        """
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._url = url
        self._cancellation = cancellation
        self._client = httpx.Client(timeout=timeout_seconds, headers=headers)
        self._ids = itertools.count(1)

    @classmethod
    def from_settings(cls, settings: NodeSettings, *, cancellation: CancellationToken | None = None) -> Self:
        return cls(
            settings.url,
            token=settings.token,
            timeout_seconds=settings.timeout_seconds,
            cancellation=cancellation,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def call(self, method: str, *params: Any) -> Any:
        """Invoke Filecoin.<method> and return its result.

        Raises:
            CheckCancelled: If the run was cancelled before the call
            RpcError: On transport failure, an error response or a body
                that is not a JSON-RPC response
        """
        if self._cancellation is not None:
            self._cancellation.raise_if_cancelled()

        request_id = next(self._ids)
        payload = {"jsonrpc": "2.0", "id": request_id, "method": f"Filecoin.{method}", "params": list(params)}
        try:
            response = self._client.post(self._url, json=payload)
        except httpx.HTTPError as e:
            raise RpcError(method, f"transport error: {e}") from e

        try:
            body = response.json()
        except ValueError:
            # Error pages from proxies are not JSON
            raise RpcError(method, f"HTTP {response.status_code}: {response.text[:200]}") from None

        if isinstance(body, Mapping) and body.get("error") is not None:
            error = body["error"]
            if isinstance(error, Mapping):
                code = error.get("code")
                raise RpcError(method, str(error.get("message", error)), code=code if isinstance(code, int) else None)
            raise RpcError(method, str(error))
        if response.status_code != 200:
            raise RpcError(method, f"HTTP {response.status_code}: {response.text[:200]}")
        if not isinstance(body, Mapping) or "result" not in body:
            raise RpcError(method, f"malformed response: {str(body)[:200]}")

        logger.debug("RPC call completed", method=method, request_id=request_id)
        return body["result"]

    # === ChainStateReader ===

    def get_actor(self, address: str, tipset_key: TipSetKey) -> Actor:
        method = "StateGetActor"
        result = _object(self.call(method, address, encode_tipset_key(tipset_key)), method)
        delegated = result.get("DelegatedAddress")
        return Actor(
            balance=_bigint(result.get("Balance"), method),
            code=_cid(result.get("Code"), method),
            delegated_address=delegated if isinstance(delegated, str) and delegated else None,
        )

    def lookup_id(self, address: str, tipset_key: TipSetKey) -> str:
        return _string(self.call("StateLookupID", address, encode_tipset_key(tipset_key)), "StateLookupID")

    def lookup_robust_address(self, address: str, tipset_key: TipSetKey) -> str:
        method = "StateLookupRobustAddress"
        return _string(self.call(method, address, encode_tipset_key(tipset_key)), method)

    def account_key(self, address: str, tipset_key: TipSetKey) -> str:
        return _string(self.call("StateAccountKey", address, encode_tipset_key(tipset_key)), "StateAccountKey")

    def get_tipset_by_height(self, height: int, tipset_key: TipSetKey) -> TipSet:
        method = "ChainGetTipSetByHeight"
        result = _object(self.call(method, height, encode_tipset_key(tipset_key)), method)
        cids = result.get("Cids")
        blocks = result.get("Blocks")
        tipset_height = result.get("Height")
        if not isinstance(cids, list) or not isinstance(blocks, list) or not isinstance(tipset_height, int):
            raise RpcError(method, f"malformed tipset at height {height}")
        headers = []
        for block in blocks:
            miner = block.get("Miner") if isinstance(block, Mapping) else None
            if not isinstance(miner, str):
                raise RpcError(method, f"block without miner at height {height}")
            headers.append(BlockHeader(miner=miner))
        return TipSet(
            key=tuple(_cid(cid, method) for cid in cids),
            height=tipset_height,
            blocks=tuple(headers),
        )

    def read_state(self, address: str, tipset_key: TipSetKey) -> ActorState:
        method = "StateReadState"
        result = _object(self.call(method, address, encode_tipset_key(tipset_key)), method)
        state = result.get("State")
        return ActorState(
            balance=_bigint(result.get("Balance"), method),
            code=_cid(result.get("Code"), method),
            state=state if isinstance(state, Mapping) else {},
        )
